"""
Core data structures for camcal.

Value types are frozen dataclasses. Derived values are computed once at
construction; logic that needs OpenCV lives in the calibration package.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from .errors import InvalidArgument


# ============================================================================
# Calibration Pattern
# ============================================================================


class PatternType(str, Enum):
    """Calibration pattern family."""

    CHESSBOARD = "chessboard"
    CIRCLES_GRID = "circles_grid"
    ASYMMETRIC_CIRCLES_GRID = "asymmetric_circles_grid"


@dataclass(frozen=True, slots=True)
class PatternConfig:
    """
    Geometry of a calibration pattern plus the detection/undistortion options
    that go with it.

    columns and rows count grid points (inner corners for a chessboard),
    not squares. If square_size is in mm, solved translations are in mm too.
    """

    columns: int = 10
    rows: int = 7
    square_size: float = 2.5
    pattern_type: PatternType = PatternType.CHESSBOARD
    subpixel_window: int = 11
    fill_frame: bool = True

    @property
    def pattern_size(self) -> tuple[int, int]:
        """(columns, rows) as OpenCV expects it."""
        return (self.columns, self.rows)

    @property
    def point_count(self) -> int:
        return self.columns * self.rows


# ============================================================================
# Intrinsics
# ============================================================================


@dataclass(frozen=True, eq=False)  # No slots - derived fields set in __post_init__
class Intrinsics:
    """
    Projective geometry of a camera.

    Corresponds to the pinhole decomposition of a 3x3 camera matrix for a
    given image size. The camera matrix is only meaningful together with the
    image size it was computed for.

    fov is (horizontal, vertical) in degrees. focal_length and
    principal_point are in sensor units (mm) when sensor_size is known,
    otherwise in pixels.

    Instances compare by identity; compare camera_matrix explicitly.
    """

    camera_matrix: np.ndarray  # 3x3 float64
    image_size: tuple[int, int]  # (width, height)
    sensor_size: tuple[float, float] = (0.0, 0.0)  # (width, height) in mm
    fov: tuple[float, float] = field(init=False)
    focal_length: float = field(init=False)
    aspect_ratio: float = field(init=False)
    principal_point: tuple[float, float] = field(init=False)

    def __post_init__(self):
        matrix = np.array(self.camera_matrix, dtype=np.float64)
        if matrix.shape != (3, 3):
            raise InvalidArgument(f"camera matrix must be 3x3, got {matrix.shape}")
        matrix.setflags(write=False)

        width, height = (int(v) for v in self.image_size)
        sensor_w, sensor_h = (float(v) for v in self.sensor_size)

        fx, fy = matrix[0, 0], matrix[1, 1]
        cx, cy = matrix[0, 2], matrix[1, 2]

        fov_x = math.degrees(2.0 * math.atan(width / (2.0 * fx))) if fx else 0.0
        fov_y = math.degrees(2.0 * math.atan(height / (2.0 * fy))) if fy else 0.0
        aspect = fy / fx if fx else 0.0

        # Pixels per sensor unit; falls back to pixel units if unknown
        if sensor_w > 0 and sensor_h > 0:
            mx = width / sensor_w
            my = height / sensor_h
        else:
            mx = 1.0
            my = 1.0

        object.__setattr__(self, "camera_matrix", matrix)
        object.__setattr__(self, "image_size", (width, height))
        object.__setattr__(self, "sensor_size", (sensor_w, sensor_h))
        object.__setattr__(self, "fov", (fov_x, fov_y))
        object.__setattr__(self, "focal_length", float(fx / mx))
        object.__setattr__(self, "aspect_ratio", float(aspect))
        object.__setattr__(self, "principal_point", (float(cx / mx), float(cy / my)))

    @classmethod
    def from_camera_matrix(
        cls,
        camera_matrix: np.ndarray,
        image_size: tuple[int, int],
        sensor_size: tuple[float, float] = (0.0, 0.0),
    ) -> Intrinsics:
        return cls(camera_matrix, image_size, sensor_size)

    @classmethod
    def from_focal_length(
        cls,
        focal_length: float,
        image_size: tuple[int, int],
        sensor_size: tuple[float, float],
        principal_point: tuple[float, float] = (0.5, 0.5),
    ) -> Intrinsics:
        """
        Build intrinsics from a physical focal length.

        Args:
            focal_length: Lens focal length, same units as sensor_size
            image_size: (width, height) in pixels
            sensor_size: (width, height) of the sensor, usually mm
            principal_point: Principal point as a ratio of image size

        Raises:
            InvalidArgument: If the sensor width is not positive
        """
        sensor_w = float(sensor_size[0])
        if sensor_w <= 0:
            raise InvalidArgument(
                f"sensor width must be positive to convert focal length, got {sensor_w}"
            )

        width, height = image_size
        focal_pixels = focal_length / sensor_w * width
        matrix = np.array([
            [focal_pixels, 0.0, width * principal_point[0]],
            [0.0, focal_pixels, height * principal_point[1]],
            [0.0, 0.0, 1.0],
        ], dtype=np.float64)
        return cls(matrix, image_size, sensor_size)

    @property
    def fx(self) -> float:
        return float(self.camera_matrix[0, 0])

    @property
    def fy(self) -> float:
        return float(self.camera_matrix[1, 1])

    @property
    def cx(self) -> float:
        return float(self.camera_matrix[0, 2])

    @property
    def cy(self) -> float:
        return float(self.camera_matrix[1, 2])


# ============================================================================
# Stereo
# ============================================================================


@dataclass(frozen=True, slots=True, eq=False)
class StereoTransform:
    """
    Rigid transform taking points from the first camera's frame into the
    second camera's frame: x_b = rotation @ x_a + translation.
    """

    rotation: np.ndarray  # 3x3 rotation matrix
    translation: np.ndarray  # (3,) translation vector
    error: float = 0.0  # RMS reported by the stereo solve


def compute_transformation_matrix(transform: StereoTransform) -> np.ndarray:
    """
    Compute 4x4 homogeneous transformation matrix from a stereo transform.
    """
    t = np.eye(4, dtype=np.float64)
    t[0:3, 0:3] = transform.rotation
    t[0:3, 3] = transform.translation
    return t


# ============================================================================
# Lens Profiles
# ============================================================================


@dataclass(frozen=True, slots=True)
class LensProfileEntry:
    """
    One focal-length entry of a vendor lens profile.

    Only radial terms are carried; profiles supply no tangential distortion.
    """

    focal_length: float  # mm
    image_width: int
    image_height: int
    crop_factor: float  # 35mm-equivalent multiplier
    k1: float = 0.0
    k2: float = 0.0
    k3: float = 0.0
    principal_point: tuple[float, float] = (0.5, 0.5)  # ratio of image size


# ============================================================================
# Persistence
# ============================================================================


@dataclass(frozen=True, slots=True, eq=False)
class CalibrationRecord:
    """
    Everything stored in a calibration file.

    Object points are not stored; they are regenerated from the pattern
    geometry on load.
    """

    camera_matrix: np.ndarray  # 3x3
    image_size: tuple[int, int]  # (width, height)
    sensor_size: tuple[float, float]  # (width, height) in mm, zeros if unknown
    dist_coeffs: np.ndarray  # (8,) k1, k2, p1, p2, k3, k4, k5, k6
    reprojection_error: float
    features: list[np.ndarray] = field(default_factory=list)  # each (n, 2) float32
