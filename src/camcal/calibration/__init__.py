"""
Calibration building blocks for camcal.

All functions are pure - they take arrays/dataclasses and return them.
No threading, no state. CalibrationSession (camcal.session) owns state.
"""

from .pattern import (
    create_object_points,
    get_pattern_object_points,
    get_pattern_extent,
)

from .detection import (
    find_pattern,
    find_pattern_with_config,
)

from .intrinsic import (
    IntrinsicSolution,
    solve_intrinsics,
    compute_reprojection_errors,
    is_sane,
)

from .undistort import (
    Undistorter,
    undistort_points,
)

from .extrinsic import (
    stereo_calibrate_pair,
    link_stereo,
)

from .lens_profile import (
    interpolate_lens_profile,
    profile_intrinsics,
)

__all__ = [
    # Pattern
    "create_object_points",
    "get_pattern_object_points",
    "get_pattern_extent",
    # Detection
    "find_pattern",
    "find_pattern_with_config",
    # Intrinsic
    "IntrinsicSolution",
    "solve_intrinsics",
    "compute_reprojection_errors",
    "is_sane",
    # Undistortion
    "Undistorter",
    "undistort_points",
    # Extrinsic
    "stereo_calibrate_pair",
    "link_stereo",
    # Lens profiles
    "interpolate_lens_profile",
    "profile_intrinsics",
]
