"""
Error taxonomy for camcal.

Session operations that report success with a return value store one of
these in CalibrationSession.last_error instead of raising. Functions that
return data raise them directly.
"""


class CalibrationError(Exception):
    """Base class for all calibration failures."""


class PatternNotFound(CalibrationError):
    """The calibration pattern could not be located in an image."""


class InsufficientData(CalibrationError):
    """Not enough observations (or no image size) to solve."""


class CalibrationDiverged(CalibrationError):
    """The solve produced a non-finite or singular model."""


class PreconditionViolation(CalibrationError):
    """An operation was called in a state that does not support it."""


class CalibrationIOError(CalibrationError):
    """A calibration file could not be read or written."""


class InvalidArgument(CalibrationError, ValueError):
    """An argument is outside the accepted domain."""
