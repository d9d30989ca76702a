"""
Extrinsic (stereo) calibration between two calibrated cameras.

Pure functions - no classes, no state.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import cv2
import numpy as np

from ..errors import CalibrationDiverged, PreconditionViolation
from ..types import StereoTransform

if TYPE_CHECKING:
    from ..session import CalibrationSession

logger = logging.getLogger(__name__)

STEREO_CRITERIA = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 40, 1e-6)


# ============================================================================
# Stereo Calibration
# ============================================================================


def stereo_calibrate_pair(
    object_points: list[np.ndarray],
    image_points_a: list[np.ndarray],
    image_points_b: list[np.ndarray],
    camera_matrix_a: np.ndarray,
    dist_coeffs_a: np.ndarray,
    camera_matrix_b: np.ndarray,
    dist_coeffs_b: np.ndarray,
    image_size: tuple[int, int],
) -> StereoTransform:
    """
    Solve for the rigid transform between two cameras with fixed intrinsics.

    Args:
        object_points: Per-view (n, 3) pattern coordinates shared by both cameras
        image_points_a: Per-view (n, 2) detections in camera A
        image_points_b: Per-view (n, 2) detections in camera B, same order
        camera_matrix_a, dist_coeffs_a: Intrinsics of camera A
        camera_matrix_b, dist_coeffs_b: Intrinsics of camera B
        image_size: (width, height) of camera A's images

    Returns:
        StereoTransform of camera B relative to camera A

    Raises:
        CalibrationDiverged: If the solver fails or returns non-finite values
    """
    obj = [np.asarray(p, dtype=np.float32).reshape(-1, 3) for p in object_points]
    img_a = [np.asarray(p, dtype=np.float32).reshape(-1, 2) for p in image_points_a]
    img_b = [np.asarray(p, dtype=np.float32).reshape(-1, 2) for p in image_points_b]

    # stereoCalibrate treats the camera matrices as in/out arguments and
    # rejects read-only arrays, so pass copies
    try:
        ret, _, _, _, _, R, T, _, _ = cv2.stereoCalibrate(
            obj,
            img_a,
            img_b,
            np.array(camera_matrix_a, dtype=np.float64),
            np.array(dist_coeffs_a, dtype=np.float64),
            np.array(camera_matrix_b, dtype=np.float64),
            np.array(dist_coeffs_b, dtype=np.float64),
            (int(image_size[0]), int(image_size[1])),
            criteria=STEREO_CRITERIA,
            flags=cv2.CALIB_FIX_INTRINSIC,
        )
    except cv2.error as e:
        raise CalibrationDiverged(f"stereoCalibrate failed: {e}") from e

    if not (np.all(np.isfinite(R)) and np.all(np.isfinite(T))):
        raise CalibrationDiverged("stereo solve produced non-finite values")

    return StereoTransform(
        rotation=np.asarray(R, dtype=np.float64),
        translation=np.asarray(T, dtype=np.float64).ravel(),
        error=float(ret),
    )


def check_stereo_compatible(a: CalibrationSession, b: CalibrationSession) -> None:
    """
    Raise PreconditionViolation unless both sessions can be linked.

    Both must be ready and fed the same number of observations of the same
    pattern, captured simultaneously.
    """
    if not (a.is_ready and b.is_ready):
        raise PreconditionViolation(
            "stereo linking requires both sessions to have just been calibrated"
        )
    if a.size() != b.size() or a.pattern_config.pattern_size != b.pattern_config.pattern_size:
        raise PreconditionViolation(
            "stereo linking requires both sessions to be trained simultaneously on the same board"
        )
    if a.pattern_config.square_size != b.pattern_config.square_size or (
        a.pattern_config.pattern_type != b.pattern_config.pattern_type
    ):
        raise PreconditionViolation(
            "stereo linking requires both sessions to use the same pattern geometry"
        )
    if a.size() == 0:
        raise PreconditionViolation("stereo linking requires at least one paired observation")


def link_stereo(a: CalibrationSession, b: CalibrationSession) -> StereoTransform:
    """
    Compute the transform from session a's camera to session b's camera.

    Raises:
        PreconditionViolation: If the sessions are not ready or not paired
        CalibrationDiverged: If the stereo solve fails
    """
    check_stereo_compatible(a, b)

    transform = stereo_calibrate_pair(
        a.object_points,
        a.image_points,
        b.image_points,
        a.distorted_intrinsics.camera_matrix,
        a.dist_coeffs,
        b.distorted_intrinsics.camera_matrix,
        b.dist_coeffs,
        a.distorted_intrinsics.image_size,
    )
    logger.info(f"Stereo transform solved with RMS {transform.error:.4f}")
    return transform
