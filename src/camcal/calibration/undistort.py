"""
Lens undistortion.

Undistorter precomputes one dense lookup table per axis for a fixed camera
model and image size; applying it is a table lookup plus resampling.
"""

from __future__ import annotations

import cv2
import numpy as np

from ..errors import InvalidArgument
from ..image import image_size as get_image_size
from ..types import Intrinsics


class Undistorter:
    """
    Dense undistortion remap for one camera model at one image size.

    With fill_frame=True the output is cropped to the valid region (no
    black borders). With fill_frame=False every source pixel is kept and
    borders may appear.
    """

    def __init__(
        self,
        camera_matrix: np.ndarray,
        dist_coeffs: np.ndarray,
        image_size: tuple[int, int],
        fill_frame: bool = True,
        sensor_size: tuple[float, float] = (0.0, 0.0),
    ):
        self.camera_matrix = np.asarray(camera_matrix, dtype=np.float64)
        self.dist_coeffs = np.asarray(dist_coeffs, dtype=np.float64).ravel()
        self.image_size = (int(image_size[0]), int(image_size[1]))
        self.fill_frame = fill_frame

        alpha = 0.0 if fill_frame else 1.0
        new_matrix, _ = cv2.getOptimalNewCameraMatrix(
            self.camera_matrix,
            self.dist_coeffs,
            self.image_size,
            alpha,
        )
        self.map_x, self.map_y = cv2.initUndistortRectifyMap(
            self.camera_matrix,
            self.dist_coeffs,
            None,
            new_matrix,
            self.image_size,
            cv2.CV_32FC1,
        )
        self.undistorted_intrinsics = Intrinsics.from_camera_matrix(
            new_matrix, self.image_size, sensor_size
        )

    def remap(
        self,
        src: np.ndarray,
        dst: np.ndarray | None = None,
        interpolation: int = cv2.INTER_NEAREST,
    ) -> np.ndarray:
        """
        Apply the remap to an image.

        Args:
            src: Image of exactly image_size
            dst: Optional output array of the same shape/dtype. May be src
                itself, in which case src is copied to a buffer first.
            interpolation: cv2 interpolation flag

        Returns:
            The undistorted image (dst when given)

        Raises:
            InvalidArgument: If the image size does not match the remap
        """
        size = get_image_size(src)
        if size != self.image_size:
            raise InvalidArgument(
                f"input image size {size} does not match undistort map size {self.image_size}"
            )

        if dst is None:
            return cv2.remap(src, self.map_x, self.map_y, interpolation)

        if dst.shape != src.shape or dst.dtype != src.dtype:
            raise InvalidArgument("dst must match src shape and dtype")

        if dst is src or np.shares_memory(dst, src):
            src = src.copy()

        cv2.remap(src, self.map_x, self.map_y, interpolation, dst=dst)
        return dst


def undistort_points(
    points: np.ndarray,
    camera_matrix: np.ndarray,
    dist_coeffs: np.ndarray,
    normalized: bool = False,
) -> np.ndarray:
    """
    Map distorted pixel coordinates through the inverse distortion model.

    Computed per point, independent of any remap table.

    Args:
        points: (2,) single point or (n, 2) array of pixel coordinates
        camera_matrix: 3x3 camera matrix the points were observed with
        dist_coeffs: Distortion coefficients
        normalized: Return normalized camera coordinates instead of pixels

    Returns:
        Array with the same shape as points
    """
    pts = np.asarray(points, dtype=np.float64)
    single = pts.ndim == 1
    pts = pts.reshape(-1, 1, 2)

    if pts.shape[0] == 0:
        return np.array([], dtype=np.float64).reshape(0, 2)

    camera_matrix = np.asarray(camera_matrix, dtype=np.float64)
    projection = None if normalized else camera_matrix

    out = cv2.undistortPoints(
        pts,
        camera_matrix,
        np.asarray(dist_coeffs, dtype=np.float64).ravel(),
        P=projection,
    )
    out = out.reshape(-1, 2)

    return out[0] if single else out
