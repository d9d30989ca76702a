"""
Lens-profile distortion lookup.

Vendor lens profiles list radial distortion terms per focal length. Parsing
the profile files happens elsewhere; these functions pick and blend entries.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from ..errors import InvalidArgument
from ..types import Intrinsics, LensProfileEntry

FULL_FRAME_WIDTH_MM = 35.0


def interpolate_lens_profile(
    entries: Sequence[LensProfileEntry],
    focal_length: float,
) -> LensProfileEntry:
    """
    Radial coefficients for a focal length, blended from bracketing entries.

    The lower bracket is the entry with the largest focal length <= target,
    the upper one the smallest focal length > target. k1..k3 are linearly
    interpolated by focal length when both exist. Image size, crop factor
    and principal point come from the lower bracket.

    Raises:
        InvalidArgument: If entries is empty
    """
    if not entries:
        raise InvalidArgument("lens profile has no entries")

    lower = [e for e in entries if e.focal_length <= focal_length]
    upper = [e for e in entries if e.focal_length > focal_length]

    lt = max(lower, key=lambda e: e.focal_length) if lower else None
    gt = min(upper, key=lambda e: e.focal_length) if upper else None

    if lt is None:
        # Below every entry: nothing to blend with
        return _with_focal_length(gt, focal_length)
    if gt is None:
        return _with_focal_length(lt, focal_length)

    t = (focal_length - lt.focal_length) / (gt.focal_length - lt.focal_length)
    k_lt = np.array([lt.k1, lt.k2, lt.k3])
    k_gt = np.array([gt.k1, gt.k2, gt.k3])
    k1, k2, k3 = (k_gt * t + k_lt * (1.0 - t)).tolist()

    return LensProfileEntry(
        focal_length=focal_length,
        image_width=lt.image_width,
        image_height=lt.image_height,
        crop_factor=lt.crop_factor,
        k1=k1,
        k2=k2,
        k3=k3,
        principal_point=lt.principal_point,
    )


def _with_focal_length(entry: LensProfileEntry, focal_length: float) -> LensProfileEntry:
    return LensProfileEntry(
        focal_length=focal_length,
        image_width=entry.image_width,
        image_height=entry.image_height,
        crop_factor=entry.crop_factor,
        k1=entry.k1,
        k2=entry.k2,
        k3=entry.k3,
        principal_point=entry.principal_point,
    )


def profile_sensor_size(entry: LensProfileEntry) -> tuple[float, float]:
    """Physical sensor size in mm implied by the profile's crop factor."""
    if entry.crop_factor <= 0:
        raise InvalidArgument(f"crop factor must be positive, got {entry.crop_factor}")
    width = FULL_FRAME_WIDTH_MM / entry.crop_factor
    return (width, width * entry.image_height / entry.image_width)


def profile_dist_coeffs(entry: LensProfileEntry) -> np.ndarray:
    """Length-8 distortion vector: radial terms only, no tangential."""
    dist = np.zeros(8, dtype=np.float64)
    dist[0] = entry.k1
    dist[1] = entry.k2
    dist[4] = entry.k3
    return dist


def profile_intrinsics(
    entry: LensProfileEntry,
    image_size: tuple[int, int] | None = None,
) -> Intrinsics:
    """
    Intrinsics for a (possibly interpolated) profile entry.

    Args:
        entry: Profile entry whose focal_length is the lens setting in mm
        image_size: Actual (width, height); defaults to the profile's
    """
    if image_size is None:
        image_size = (entry.image_width, entry.image_height)
    return Intrinsics.from_focal_length(
        entry.focal_length,
        image_size,
        profile_sensor_size(entry),
        entry.principal_point,
    )
