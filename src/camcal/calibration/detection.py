"""
Calibration pattern detection.

Pure functions - no threading, no state. Caller manages frame collection.
"""

from __future__ import annotations

import cv2
import numpy as np

from ..image import to_gray_u8
from ..types import PatternConfig, PatternType


# No CALIB_CB_FAST_CHECK: it rejects dark frames (e.g. IR cameras) that
# adaptive thresholding still handles.
CHESSBOARD_FLAGS = cv2.CALIB_CB_ADAPTIVE_THRESH

SUBPIX_CRITERIA = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 30, 0.1)

_CIRCLE_FLAGS = {
    PatternType.CIRCLES_GRID: cv2.CALIB_CB_SYMMETRIC_GRID,
    PatternType.ASYMMETRIC_CIRCLES_GRID: cv2.CALIB_CB_ASYMMETRIC_GRID,
}


def _empty_points() -> np.ndarray:
    return np.array([], dtype=np.float32).reshape(0, 2)


# ============================================================================
# Pattern Detection
# ============================================================================


def find_pattern(
    image: np.ndarray,
    pattern_size: tuple[int, int],
    pattern_type: PatternType = PatternType.CHESSBOARD,
    refine: bool = True,
    subpixel_window: int = 11,
) -> tuple[bool, np.ndarray]:
    """
    Locate the grid points of a calibration pattern in a single image.

    Chessboard corners are refined to sub-pixel accuracy when refine is
    set. If the smallest square in the image is 11x11 pixels, use 11.

    Args:
        image: Grayscale or BGR image
        pattern_size: (columns, rows) grid point counts
        pattern_type: Pattern family
        refine: Run sub-pixel corner refinement (chessboard only)
        subpixel_window: cornerSubPix window size in pixels

    Returns:
        (found, points) where points is (columns * rows, 2) float32 in
        row-major order, or (0, 2) when not found
    """
    gray = to_gray_u8(image)
    pattern_type = PatternType(pattern_type)
    pattern_size = (int(pattern_size[0]), int(pattern_size[1]))

    if pattern_type == PatternType.CHESSBOARD:
        found, corners = cv2.findChessboardCorners(gray, pattern_size, None, CHESSBOARD_FLAGS)
        if not found or corners is None:
            return False, _empty_points()

        if refine:
            window = (subpixel_window, subpixel_window)
            corners = cv2.cornerSubPix(gray, corners, window, (-1, -1), SUBPIX_CRITERIA)
    else:
        found, corners = cv2.findCirclesGrid(gray, pattern_size, None, _CIRCLE_FLAGS[pattern_type])
        if not found or corners is None:
            return False, _empty_points()

    return True, corners.reshape(-1, 2).astype(np.float32)


def find_pattern_with_config(
    image: np.ndarray,
    config: PatternConfig,
    refine: bool = True,
) -> tuple[bool, np.ndarray]:
    """find_pattern using the geometry and window from a PatternConfig."""
    return find_pattern(
        image,
        config.pattern_size,
        config.pattern_type,
        refine=refine,
        subpixel_window=config.subpixel_window,
    )
