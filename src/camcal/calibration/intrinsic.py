"""
Intrinsic camera calibration.

Pure functions - no threading, no state. CalibrationSession owns the
observation set and calls into these.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import cv2
import numpy as np

from ..errors import CalibrationDiverged, InsufficientData

logger = logging.getLogger(__name__)

DIST_COEFF_COUNT = 8  # k1, k2, p1, p2, k3, k4, k5, k6


@dataclass(frozen=True, slots=True, eq=False)
class IntrinsicSolution:
    """Result of a joint camera matrix + distortion + per-view pose solve."""

    camera_matrix: np.ndarray  # 3x3
    dist_coeffs: np.ndarray  # (8,)
    rotations: list[np.ndarray]  # per-view (3,) Rodrigues vectors
    translations: list[np.ndarray]  # per-view (3,)
    solver_rms: float  # RMS reported by cv2.calibrateCamera


# ============================================================================
# Numerical Checks
# ============================================================================


def pad_dist_coeffs(dist: np.ndarray | None) -> np.ndarray:
    """
    Normalize distortion coefficients to a flat length-8 float64 vector.

    Shorter inputs (4 or 5 terms) are zero-padded, longer ones truncated.
    """
    out = np.zeros(DIST_COEFF_COUNT, dtype=np.float64)
    if dist is None:
        return out
    flat = np.asarray(dist, dtype=np.float64).ravel()[:DIST_COEFF_COUNT]
    out[: flat.size] = flat
    return out


def is_sane(values: np.ndarray) -> bool:
    """
    Every element finite, and for square matrices, invertible.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.size == 0 or not np.all(np.isfinite(values)):
        return False
    if values.ndim == 2 and values.shape[0] == values.shape[1]:
        det = np.linalg.det(values)
        return bool(np.isfinite(det) and abs(det) > 1e-12)
    return True


# ============================================================================
# Calibration
# ============================================================================


def solve_intrinsics(
    object_points: list[np.ndarray],
    image_points: list[np.ndarray],
    image_size: tuple[int, int],
    flags: int = 0,
) -> IntrinsicSolution:
    """
    Solve for one camera matrix, one distortion vector and one pose per view.

    Minimizes total squared reprojection error over all views.

    Args:
        object_points: Per-view (n, 3) pattern coordinates
        image_points: Per-view (n, 2) detected pixel coordinates
        image_size: (width, height) of the images the points came from
        flags: cv2.calibrateCamera flags

    Returns:
        IntrinsicSolution

    Raises:
        InsufficientData: If there are no views
        CalibrationDiverged: If the solver fails or returns a non-finite or
            singular model
    """
    if len(image_points) == 0:
        raise InsufficientData("no observations to calibrate from")
    if len(object_points) != len(image_points):
        raise ValueError(
            f"object/image view count mismatch: {len(object_points)} != {len(image_points)}"
        )

    obj = [np.asarray(p, dtype=np.float32).reshape(-1, 3) for p in object_points]
    img = [np.asarray(p, dtype=np.float32).reshape(-1, 2) for p in image_points]

    camera_matrix = np.eye(3, dtype=np.float64)
    dist = np.zeros(5, dtype=np.float64)

    try:
        rms, camera_matrix, dist, rvecs, tvecs = cv2.calibrateCamera(
            obj,
            img,
            (int(image_size[0]), int(image_size[1])),
            camera_matrix,
            dist,
            flags=flags,
        )
    except cv2.error as e:
        raise CalibrationDiverged(f"calibrateCamera failed: {e}") from e

    logger.debug(f"calibrateCamera() reports RMS error of {rms}")

    if not (is_sane(camera_matrix) and is_sane(dist)):
        raise CalibrationDiverged("solve produced a non-finite or singular camera model")

    return IntrinsicSolution(
        camera_matrix=np.asarray(camera_matrix, dtype=np.float64),
        dist_coeffs=pad_dist_coeffs(dist),
        rotations=[np.asarray(r, dtype=np.float64).ravel() for r in rvecs],
        translations=[np.asarray(t, dtype=np.float64).ravel() for t in tvecs],
        solver_rms=float(rms),
    )


# ============================================================================
# Reprojection Error
# ============================================================================


def compute_view_squared_error(
    object_points: np.ndarray,
    image_points: np.ndarray,
    rvec: np.ndarray,
    tvec: np.ndarray,
    camera_matrix: np.ndarray,
    dist_coeffs: np.ndarray,
) -> float:
    """
    Sum of squared pixel distances between observed and projected points.
    """
    projected, _ = cv2.projectPoints(
        np.asarray(object_points, dtype=np.float64).reshape(-1, 3),
        np.asarray(rvec, dtype=np.float64),
        np.asarray(tvec, dtype=np.float64),
        camera_matrix,
        dist_coeffs,
    )
    diff = np.asarray(image_points, dtype=np.float64).reshape(-1, 2) - projected[:, 0, :]
    return float(np.sum(diff**2))


def compute_reprojection_errors(
    object_points: list[np.ndarray],
    image_points: list[np.ndarray],
    rotations: list[np.ndarray],
    translations: list[np.ndarray],
    camera_matrix: np.ndarray,
    dist_coeffs: np.ndarray,
) -> tuple[float, list[float]]:
    """
    Compute pooled RMS and per-view RMS reprojection error.

    Per view: sqrt(sum squared error / n). The aggregate pools every point
    across views: sqrt(total squared error / total points), which is not the
    mean of the per-view values.

    Returns:
        (aggregate_rms, per_view_rms)
    """
    per_view = []
    total_err = 0.0
    total_points = 0

    for i, (obj, img, rvec, tvec) in enumerate(
        zip(object_points, image_points, rotations, translations)
    ):
        err = compute_view_squared_error(obj, img, rvec, tvec, camera_matrix, dist_coeffs)
        n = len(obj)
        per_view.append(float(np.sqrt(err / n)))
        total_err += err
        total_points += n
        logger.debug(f"view {i} has error of {per_view[-1]}")

    aggregate = float(np.sqrt(total_err / total_points)) if total_points else 0.0
    logger.debug(f"all views have error of {aggregate}")

    return aggregate, per_view
