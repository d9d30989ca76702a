"""
Image helpers.

Images are numpy arrays: (H, W) single channel or (H, W, C) with C in
{1, 3, 4}, any of uint8 / uint16 / float. Pattern detection needs
single-channel 8-bit input; these helpers get it there.
"""

from __future__ import annotations

import cv2
import numpy as np

from .errors import InvalidArgument


def image_size(image: np.ndarray) -> tuple[int, int]:
    """(width, height) of an image array."""
    if image is None or image.ndim < 2 or image.size == 0:
        raise InvalidArgument("image must be a non-empty 2-D or 3-D array")
    height, width = image.shape[:2]
    return (int(width), int(height))


def channel_count(image: np.ndarray) -> int:
    return 1 if image.ndim == 2 else int(image.shape[2])


def to_gray_u8(image: np.ndarray) -> np.ndarray:
    """
    Convert an image to single-channel uint8.

    Args:
        image: BGR, BGRA, or grayscale array of any supported depth

    Returns:
        (H, W) uint8 array (the input itself if already in that format)
    """
    channels = channel_count(image)
    if channels not in (1, 3, 4):
        raise InvalidArgument(f"unsupported channel count: {channels}")

    # Depth first: cvtColor only accepts 8U, 16U and 32F input
    image = to_u8(image)

    if channels == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return image if image.ndim == 2 else image[:, :, 0]


def to_u8(image: np.ndarray) -> np.ndarray:
    """
    Convert any supported depth to uint8, keeping the channel layout.

    uint16 keeps the high byte. Float images are assumed normalized to
    [0, 1]. Other integer types are clipped to [0, 255].
    """
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.uint16:
        return (image >> 8).astype(np.uint8)
    if np.issubdtype(image.dtype, np.floating):
        return np.clip(image * 255.0, 0, 255).astype(np.uint8)
    if np.issubdtype(image.dtype, np.integer):
        return np.clip(image, 0, 255).astype(np.uint8)
    raise InvalidArgument(f"unsupported image dtype: {image.dtype}")
