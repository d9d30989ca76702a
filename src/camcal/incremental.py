"""
Live calibration from a stream of frames.

Feed every captured frame to IncrementalCalibrator.process(). Frames are
only offered to the session while the camera is still (motion blur ruins
corner accuracy) and not more often than time_threshold seconds.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from .config import DEFAULT_MAX_REPROJECTION_ERROR
from .image import to_gray_u8
from .session import CalibrationSession

logger = logging.getLogger(__name__)


class IncrementalCalibrator:
    """
    Accepts still frames into a session, recalibrating after each one.

    Args:
        session: Session to feed
        diff_threshold: Maximum mean absolute frame difference (0-255 scale)
            for the camera to count as still
        time_threshold: Minimum seconds between accepted frames
        start_cleaning: Run clean() once the session holds more views than this
        max_reprojection_error: Threshold passed to clean()
        save_path: Save the calibration here after every accepted frame
    """

    def __init__(
        self,
        session: CalibrationSession,
        diff_threshold: float = 2.5,
        time_threshold: float = 1.0,
        start_cleaning: int = 10,
        max_reprojection_error: float = DEFAULT_MAX_REPROJECTION_ERROR,
        save_path: Path | None = None,
    ):
        self.session = session
        self.diff_threshold = diff_threshold
        self.time_threshold = time_threshold
        self.start_cleaning = start_cleaning
        self.max_reprojection_error = max_reprojection_error
        self.save_path = Path(save_path) if save_path is not None else None

        self.active = True
        self.last_diff: float | None = None
        self._previous: np.ndarray | None = None
        self._last_time: float | None = None

    def motion(self, frame: np.ndarray) -> float | None:
        """
        Mean absolute difference to the previous frame, or None for the
        first frame (or after a size change). Updates the stored frame.
        """
        gray = to_gray_u8(frame).astype(np.int16)
        previous = self._previous
        self._previous = gray

        if previous is None or previous.shape != gray.shape:
            return None
        return float(np.mean(np.abs(gray - previous)))

    def process(self, frame: np.ndarray, timestamp: float) -> bool:
        """
        Offer one frame.

        Args:
            frame: Captured image
            timestamp: Capture time in seconds (any monotonic clock)

        Returns:
            True if the frame was added to the session
        """
        self.last_diff = self.motion(frame)

        if not self.active or self.last_diff is None:
            return False
        if self.last_diff >= self.diff_threshold:
            return False
        if self._last_time is not None and timestamp - self._last_time <= self.time_threshold:
            return False

        if not self.session.add(frame):
            return False

        logger.info(f"Re-calibrating with {self.session.size()} views")
        self.session.calibrate()
        if self.session.size() > self.start_cleaning:
            self.session.clean(self.max_reprojection_error)
        if self.save_path is not None and self.session.is_ready:
            self.session.save(self.save_path)

        self._last_time = timestamp
        return True
