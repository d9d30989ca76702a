"""
Stateful per-camera calibration session.

Accumulates pattern observations, solves for the camera model, prunes
outliers, persists, and undistorts. Usage:

    session = CalibrationSession(PatternConfig(columns=9, rows=6, square_size=25.0))
    for frame in frames:
        session.add(frame)
    if session.calibrate():
        session.clean()
        session.save("calibration.toml")
        fixed = session.undistort(frame)

Either load() a saved file instead of adding frames, or use set_intrinsics()
/ apply_lens_profile() when the model comes from elsewhere.

Not thread-safe. Serialize add/calibrate/clean on a given session.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

import cv2
import numpy as np

from .calibration.detection import find_pattern_with_config
from .calibration.extrinsic import link_stereo
from .calibration.intrinsic import (
    compute_reprojection_errors,
    is_sane,
    pad_dist_coeffs,
    solve_intrinsics,
)
from .calibration.lens_profile import (
    interpolate_lens_profile,
    profile_dist_coeffs,
    profile_intrinsics,
)
from .calibration.pattern import get_pattern_object_points
from .calibration.undistort import Undistorter, undistort_points
from .config import DEFAULT_MAX_REPROJECTION_ERROR, read_calibration_file, write_calibration_file
from .errors import (
    CalibrationDiverged,
    CalibrationError,
    CalibrationIOError,
    InsufficientData,
    InvalidArgument,
    PatternNotFound,
    PreconditionViolation,
)
from .image import image_size as get_image_size
from .types import (
    CalibrationRecord,
    Intrinsics,
    LensProfileEntry,
    PatternConfig,
    PatternType,
    StereoTransform,
)

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff"}


class CalibrationSession:
    """
    Intrinsic calibration and undistortion for a single camera.

    image_points, object_points, rotations and translations are index-aligned
    once a solve has succeeded.
    """

    def __init__(self, config: PatternConfig | None = None):
        self._config = config or PatternConfig()

        self.image_points: list[np.ndarray] = []
        self.object_points: list[np.ndarray] = []
        self.rotations: list[np.ndarray] = []
        self.translations: list[np.ndarray] = []

        self._image_size: tuple[int, int] | None = None
        self._dist_coeffs = np.zeros(8, dtype=np.float64)
        self._distorted: Intrinsics | None = None
        self._undistorter: Undistorter | None = None

        self._reprojection_error = 0.0
        self._per_view_errors: list[float] = []
        self._ready = False

        self.last_error: CalibrationError | None = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def pattern_config(self) -> PatternConfig:
        return self._config

    def set_pattern_size(self, columns: int, rows: int) -> None:
        self._set_config(columns=int(columns), rows=int(rows))

    def set_square_size(self, square_size: float) -> None:
        self._set_config(square_size=float(square_size))

    def set_pattern_type(self, pattern_type: PatternType) -> None:
        self._set_config(pattern_type=PatternType(pattern_type))

    def set_subpixel_window(self, size: int) -> None:
        self._set_config(subpixel_window=max(int(size), 2))

    def set_fill_frame(self, fill_frame: bool) -> None:
        """Crop undistorted output to valid pixels (True) or keep the full fov."""
        self._config = replace(self._config, fill_frame=bool(fill_frame))
        if self._ready and self._distorted is not None:
            self._update_undistortion()
        else:
            self._undistorter = None

    def _set_config(self, **changes) -> None:
        self._config = replace(self._config, **changes)
        # Geometry changed: remap must be rebuilt by calibrate() or load()
        self._undistorter = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def image_size(self) -> tuple[int, int] | None:
        """Size of the most recently added (or loaded) image."""
        return self._image_size

    @property
    def dist_coeffs(self) -> np.ndarray:
        return self._dist_coeffs.copy()

    @property
    def distorted_intrinsics(self) -> Intrinsics | None:
        return self._distorted

    @property
    def undistorted_intrinsics(self) -> Intrinsics | None:
        if self._undistorter is None:
            return None
        return self._undistorter.undistorted_intrinsics

    @property
    def undistorter(self) -> Undistorter | None:
        return self._undistorter

    @property
    def reprojection_error(self) -> float:
        return self._reprojection_error

    @property
    def per_view_errors(self) -> list[float]:
        return list(self._per_view_errors)

    def get_reprojection_error(self, index: int | None = None) -> float:
        """
        Pooled RMS over all observations, or the RMS of observation index.
        """
        if index is None:
            return self._reprojection_error
        return self._per_view_errors[index]

    def size(self) -> int:
        return len(self.image_points)

    def __len__(self) -> int:
        return self.size()

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def find_pattern(self, image: np.ndarray, refine: bool = True) -> tuple[bool, np.ndarray]:
        """Detect the configured pattern without adding it."""
        return find_pattern_with_config(image, self._config, refine=refine)

    def add(self, image: np.ndarray) -> bool:
        """
        Detect the pattern in image and keep it as an observation.

        Returns:
            True if the pattern was found and added
        """
        try:
            size = get_image_size(image)
            found, points = self.find_pattern(image)
        except (InvalidArgument, cv2.error) as e:
            self._fail(InvalidArgument(f"add() cannot use this image: {e}"))
            return False
        self._image_size = size

        if not found:
            self._fail(
                PatternNotFound(
                    "add() failed, maybe your pattern size is wrong or the image has poor lighting?"
                ),
                level=logging.WARNING,
            )
            return False

        self.image_points.append(points)
        self.last_error = None
        return True

    def add_image_points(
        self,
        points: np.ndarray,
        image_size: tuple[int, int] | None = None,
    ) -> None:
        """
        Add an observation detected elsewhere.

        Args:
            points: (n, 2) pixel coordinates in pattern order
            image_size: (width, height) of the source image, if known

        Raises:
            InvalidArgument: If the point count does not match the pattern
        """
        pts = np.asarray(points, dtype=np.float32).reshape(-1, 2)
        if len(pts) != self._config.point_count:
            raise InvalidArgument(
                f"expected {self._config.point_count} points for a "
                f"{self._config.columns}x{self._config.rows} pattern, got {len(pts)}"
            )
        if image_size is not None:
            self._image_size = (int(image_size[0]), int(image_size[1]))
        self.image_points.append(pts)

    def calibrate_from_directory(self, directory: Path) -> bool:
        """
        Add every image in a directory (sorted by name), then calibrate.
        """
        directory = Path(directory)
        try:
            paths = sorted(
                p for p in directory.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS
            )
        except OSError as e:
            self._fail(CalibrationIOError(f"cannot list images in {directory}: {e}"))
            return False
        for path in paths:
            image = cv2.imread(str(path))
            if image is None:
                logger.error(f"Could not read image {path}")
                continue
            if not self.add(image):
                logger.error(f"add() failed on {path}")
        return self.calibrate()

    def reset(self) -> None:
        """Discard observations, poses and errors. Pattern config is kept."""
        self._ready = False
        self._reprojection_error = 0.0
        self._per_view_errors = []
        self.image_points = []
        self.object_points = []
        self.rotations = []
        self.translations = []
        self._undistorter = None
        self.last_error = None

    # ------------------------------------------------------------------
    # Solving
    # ------------------------------------------------------------------

    def _update_object_points(self) -> None:
        points = get_pattern_object_points(self._config)
        self.object_points = [points.copy() for _ in self.image_points]

    def calibrate(self) -> bool:
        """
        Solve camera matrix, distortion and per-view poses from all observations.

        On failure any previously solved model is kept.

        Returns:
            True if the session is ready with a freshly solved model. With no
            observations, the prior ready state is returned unchanged.
        """
        if self.size() < 1:
            self._fail(InsufficientData("calibrate() doesn't have any image data to calibrate from."))
            if self._ready:
                logger.error("calibrate() doesn't need to be called after load().")
            return self._ready

        if self._image_size is None:
            self._fail(InsufficientData("calibrate() needs an image size; pass it to add_image_points()"))
            return self._ready

        self._update_object_points()

        try:
            solution = solve_intrinsics(self.object_points, self.image_points, self._image_size)
        except CalibrationDiverged as e:
            # Prior model stays in place but is no longer trusted
            self._ready = False
            self._fail(e)
            logger.error("calibrate() failed to calibrate the camera")
            return False

        sensor_size = self._distorted.sensor_size if self._distorted is not None else (0.0, 0.0)
        self._distorted = Intrinsics.from_camera_matrix(
            solution.camera_matrix, self._image_size, sensor_size
        )
        self._dist_coeffs = solution.dist_coeffs
        self.rotations = solution.rotations
        self.translations = solution.translations
        self._ready = True

        self._update_reprojection_error()
        self._update_undistortion()

        logger.info(
            f"Calibrated from {self.size()} views: RMS {self._reprojection_error:.4f}px, "
            f"fx={self._distorted.fx:.2f} fy={self._distorted.fy:.2f}"
        )
        self.last_error = None
        return True

    def clean(self, max_reprojection_error: float = DEFAULT_MAX_REPROJECTION_ERROR) -> bool:
        """
        Drop observations whose per-view error exceeds the threshold, then
        recalibrate if anything was dropped.

        Refuses (returns False, nothing removed) if every observation would go.
        """
        if len(self._per_view_errors) != self.size():
            self._fail(PreconditionViolation("clean() requires a calibrate() on the current observations"))
            return False

        keep = [
            i for i, err in enumerate(self._per_view_errors) if err <= max_reprojection_error
        ]

        if not keep:
            self._fail(
                InsufficientData("clean() would have removed the last object/image point pair")
            )
            return False

        removed = self.size() - len(keep)
        if removed == 0:
            self.last_error = None
            return True

        logger.info(f"clean() removing {removed} views above {max_reprojection_error}px")
        self.image_points = [self.image_points[i] for i in keep]
        self.object_points = [self.object_points[i] for i in keep]
        self.rotations = [self.rotations[i] for i in keep]
        self.translations = [self.translations[i] for i in keep]
        self._per_view_errors = [self._per_view_errors[i] for i in keep]

        return self.calibrate()

    def _update_reprojection_error(self) -> None:
        self._reprojection_error, self._per_view_errors = compute_reprojection_errors(
            self.object_points,
            self.image_points,
            self.rotations,
            self.translations,
            self._distorted.camera_matrix,
            self._dist_coeffs,
        )

    def _update_undistortion(self) -> None:
        self._undistorter = Undistorter(
            self._distorted.camera_matrix,
            self._dist_coeffs,
            self._distorted.image_size,
            fill_frame=self._config.fill_frame,
            sensor_size=self._distorted.sensor_size,
        )

    # ------------------------------------------------------------------
    # Externally supplied models
    # ------------------------------------------------------------------

    def set_distortion_coefficients(
        self,
        k1: float,
        k2: float,
        p1: float = 0.0,
        p2: float = 0.0,
        k3: float = 0.0,
        k4: float = 0.0,
        k5: float = 0.0,
        k6: float = 0.0,
    ) -> None:
        """
        Replace the distortion model. Takes effect on the remap at the next
        set_intrinsics(), load() or calibrate().
        """
        self._dist_coeffs = np.array([k1, k2, p1, p2, k3, k4, k5, k6], dtype=np.float64)
        self._undistorter = None

    def set_intrinsics(self, intrinsics: Intrinsics) -> bool:
        """
        Adopt a distorted-space model supplied from outside a solve.

        Returns:
            True if the model passed sanity checks and the session is ready
        """
        if not (is_sane(intrinsics.camera_matrix) and is_sane(self._dist_coeffs)):
            self._fail(CalibrationDiverged("set_intrinsics() got a non-finite or singular model"))
            return False

        self._distorted = intrinsics
        self._image_size = intrinsics.image_size
        self._update_undistortion()
        self._ready = True
        self.last_error = None
        return True

    def apply_lens_profile(
        self,
        entries: Sequence[LensProfileEntry],
        focal_length: float,
        image_size: tuple[int, int] | None = None,
    ) -> bool:
        """
        Populate distortion and intrinsics from lens-profile entries.

        Coefficients are interpolated between the entries bracketing
        focal_length. Existing observations are discarded.

        Args:
            entries: Parsed profile entries for one lens
            focal_length: Lens focal length in mm
            image_size: Actual (width, height); defaults to the profile's
        """
        try:
            entry = interpolate_lens_profile(entries, focal_length)
            intrinsics = profile_intrinsics(entry, image_size)
        except InvalidArgument as e:
            self._fail(e)
            return False

        previous_dist = self._dist_coeffs
        self._dist_coeffs = profile_dist_coeffs(entry)
        if not self.set_intrinsics(intrinsics):
            self._dist_coeffs = previous_dist
            return False

        self.image_points = []
        self.object_points = []
        self.rotations = []
        self.translations = []
        self._per_view_errors = []
        self._reprojection_error = 0.0
        return True

    # ------------------------------------------------------------------
    # Undistortion
    # ------------------------------------------------------------------

    def undistort(
        self,
        image: np.ndarray,
        dst: np.ndarray | None = None,
        interpolation: int = cv2.INTER_NEAREST,
    ) -> np.ndarray:
        """
        Remove lens distortion from an image using the precomputed remap.

        Pass dst=image to undistort in place.

        Raises:
            PreconditionViolation: If no valid remap exists
            InvalidArgument: If the image size differs from the solved size
        """
        if not self._ready or self._undistorter is None:
            raise PreconditionViolation(
                "undistort() requires calibrate() or load() after the last configuration change"
            )
        return self._undistorter.remap(image, dst, interpolation)

    def undistort_points(self, points: np.ndarray, normalized: bool = False) -> np.ndarray:
        """
        Map distorted pixel coordinates to undistorted ones.

        Args:
            points: (2,) or (n, 2) pixel coordinates
            normalized: Return normalized camera coordinates instead of pixels

        Raises:
            PreconditionViolation: If no camera model is available
        """
        if self._distorted is None:
            raise PreconditionViolation("undistort_points() requires a camera model")
        return undistort_points(
            points, self._distorted.camera_matrix, self._dist_coeffs, normalized=normalized
        )

    # ------------------------------------------------------------------
    # Stereo
    # ------------------------------------------------------------------

    def get_transformation(self, other: CalibrationSession) -> StereoTransform | None:
        """
        Rotation and translation from this camera to other's camera.

        Both sessions must be ready and have been fed the same number of
        simultaneous observations of the same pattern.

        Returns:
            StereoTransform, or None on failure (see last_error)
        """
        try:
            transform = link_stereo(self, other)
        except (PreconditionViolation, CalibrationDiverged) as e:
            self._fail(e)
            return None
        self.last_error = None
        return transform

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_record(self) -> CalibrationRecord:
        if self._distorted is None:
            raise PreconditionViolation("no camera model to export")
        return CalibrationRecord(
            camera_matrix=self._distorted.camera_matrix,
            image_size=self._distorted.image_size,
            sensor_size=self._distorted.sensor_size,
            dist_coeffs=self._dist_coeffs,
            reprojection_error=self._reprojection_error,
            features=list(self.image_points),
        )

    def save(self, path: Path) -> bool:
        """
        Write camera model and observations to a TOML calibration file.
        """
        if not self._ready:
            self._fail(PreconditionViolation("save() failed, because your calibration isn't ready yet!"))
            return False
        try:
            write_calibration_file(self.to_record(), Path(path))
        except CalibrationError as e:
            self._fail(e)
            return False
        logger.info(f"Saved calibration to {path}")
        self.last_error = None
        return True

    def load(self, path: Path) -> bool:
        """
        Restore camera model and observations from a calibration file.

        The file is fully parsed and validated before anything is replaced;
        on failure the session is unchanged.
        """
        try:
            record = read_calibration_file(Path(path))
        except CalibrationError as e:
            self._fail(e)
            return False

        if not (is_sane(record.camera_matrix) and is_sane(record.dist_coeffs)):
            self._fail(CalibrationDiverged(f"{path} holds a non-finite or singular camera model"))
            return False

        try:
            distorted = Intrinsics.from_camera_matrix(
                record.camera_matrix, record.image_size, record.sensor_size
            )
            undistorter = Undistorter(
                distorted.camera_matrix,
                pad_dist_coeffs(record.dist_coeffs),
                distorted.image_size,
                fill_frame=self._config.fill_frame,
                sensor_size=distorted.sensor_size,
            )
        except (cv2.error, ValueError) as e:
            self._fail(CalibrationDiverged(f"cannot build undistortion from {path}: {e}"))
            return False

        self.image_points = list(record.features)
        self._update_object_points()
        self.rotations = []
        self.translations = []
        self._per_view_errors = []
        self._image_size = record.image_size
        self._distorted = distorted
        self._dist_coeffs = pad_dist_coeffs(record.dist_coeffs)
        self._reprojection_error = record.reprojection_error
        self._undistorter = undistorter
        self._ready = True

        logger.info(f"Loaded calibration from {path} ({self.size()} views)")
        self.last_error = None
        return True

    # ------------------------------------------------------------------

    def _fail(self, error: CalibrationError, level: int = logging.ERROR) -> None:
        self.last_error = error
        logger.log(level, str(error))
