# camcal - camera intrinsic calibration, undistortion and stereo linking

__version__ = "0.1.0"

# Core types
from camcal.types import (
    PatternType,
    PatternConfig,
    Intrinsics,
    StereoTransform,
    LensProfileEntry,
    CalibrationRecord,
)

# Errors
from camcal.errors import (
    CalibrationError,
    PatternNotFound,
    InsufficientData,
    CalibrationDiverged,
    PreconditionViolation,
    CalibrationIOError,
    InvalidArgument,
)

# Session
from camcal.session import CalibrationSession
from camcal.incremental import IncrementalCalibrator

# Configuration
from camcal.config import (
    load_pattern_config,
    save_pattern_config,
    read_calibration_file,
    write_calibration_file,
)

# Building blocks
from camcal.calibration import (
    create_object_points,
    find_pattern,
    link_stereo,
    Undistorter,
)

__all__ = [
    # Core types
    "PatternType",
    "PatternConfig",
    "Intrinsics",
    "StereoTransform",
    "LensProfileEntry",
    "CalibrationRecord",
    # Errors
    "CalibrationError",
    "PatternNotFound",
    "InsufficientData",
    "CalibrationDiverged",
    "PreconditionViolation",
    "CalibrationIOError",
    "InvalidArgument",
    # Session
    "CalibrationSession",
    "IncrementalCalibrator",
    # Configuration
    "load_pattern_config",
    "save_pattern_config",
    "read_calibration_file",
    "write_calibration_file",
    # Building blocks
    "create_object_points",
    "find_pattern",
    "link_stereo",
    "Undistorter",
]
