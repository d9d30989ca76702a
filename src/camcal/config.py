"""
Configuration loading/saving.

Pure functions operating on dataclasses.
- TOML for pattern configuration
- TOML for calibration files (camera model + observed features)
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import rtoml

from .errors import CalibrationIOError
from .types import CalibrationRecord, PatternConfig, PatternType

DEFAULT_MAX_REPROJECTION_ERROR = 2.0


# ============================================================================
# TOML Pattern Configuration
# ============================================================================


def _read_toml(path: Path) -> dict:
    try:
        return rtoml.load(path)
    except (OSError, rtoml.TomlParsingError) as e:
        raise CalibrationIOError(f"cannot read {path}: {e}") from e


def load_pattern_config(path: Path) -> PatternConfig:
    """
    Load pattern configuration from a TOML file.

    Reads the [pattern] table; missing keys fall back to defaults.

    Args:
        path: Path to config.toml file

    Returns:
        PatternConfig dataclass

    Raises:
        CalibrationIOError: If the file is missing, unreadable, or malformed
    """
    path = Path(path)
    section = _read_toml(path).get("pattern", {})
    defaults = PatternConfig()

    try:
        return PatternConfig(
            columns=int(section.get("columns", defaults.columns)),
            rows=int(section.get("rows", defaults.rows)),
            square_size=float(section.get("square_size", defaults.square_size)),
            pattern_type=PatternType(section.get("type", defaults.pattern_type.value)),
            subpixel_window=int(section.get("subpixel_window", defaults.subpixel_window)),
            fill_frame=bool(section.get("fill_frame", defaults.fill_frame)),
        )
    except (AttributeError, ValueError, TypeError) as e:
        raise CalibrationIOError(f"malformed [pattern] table in {path}: {e}") from e


def load_clean_threshold(path: Path) -> float:
    """Max per-view reprojection error from the [clean] table."""
    path = Path(path)
    section = _read_toml(path).get("clean", {})
    try:
        return float(section.get("max_reprojection_error", DEFAULT_MAX_REPROJECTION_ERROR))
    except (AttributeError, ValueError, TypeError) as e:
        raise CalibrationIOError(f"malformed [clean] table in {path}: {e}") from e


def save_pattern_config(
    config: PatternConfig,
    path: Path,
    max_reprojection_error: float = DEFAULT_MAX_REPROJECTION_ERROR,
) -> None:
    """
    Save pattern configuration to a TOML file.

    Args:
        config: PatternConfig dataclass
        path: Path to save config.toml
        max_reprojection_error: Threshold written to the [clean] table
    """
    data = {
        "pattern": {
            "columns": config.columns,
            "rows": config.rows,
            "square_size": config.square_size,
            "type": config.pattern_type.value,
            "subpixel_window": config.subpixel_window,
            "fill_frame": config.fill_frame,
        },
        "clean": {
            "max_reprojection_error": max_reprojection_error,
        },
    }

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        rtoml.dump(data, f)


def create_default_pattern_config() -> PatternConfig:
    """
    Default pattern: A4 chessboard with 10x7 inner corners, 2.5cm squares.
    """
    return PatternConfig(columns=10, rows=7, square_size=2.5)


# ============================================================================
# Calibration Files
# ============================================================================


def _padded_dist(values) -> np.ndarray:
    dist = np.zeros(8, dtype=np.float64)
    raw = np.asarray(values, dtype=np.float64).ravel()[:8]
    dist[: raw.size] = raw
    return dist


def calibration_record_to_dict(record: CalibrationRecord) -> dict:
    return {
        "camera_matrix": np.asarray(record.camera_matrix, dtype=np.float64).tolist(),
        "image_width": int(record.image_size[0]),
        "image_height": int(record.image_size[1]),
        "sensor_width": float(record.sensor_size[0]),
        "sensor_height": float(record.sensor_size[1]),
        "dist_coeffs": _padded_dist(record.dist_coeffs).tolist(),
        "reprojection_error": float(record.reprojection_error),
        "features": [
            np.asarray(points, dtype=np.float32).reshape(-1, 2).astype(np.float64).tolist()
            for points in record.features
        ],
    }


def calibration_record_from_dict(data: dict) -> CalibrationRecord:
    """
    Build a CalibrationRecord from parsed TOML.

    Raises:
        KeyError, ValueError, TypeError: If required keys are missing or malformed
    """
    camera_matrix = np.asarray(data["camera_matrix"], dtype=np.float64)
    if camera_matrix.shape != (3, 3):
        raise ValueError(f"camera_matrix must be 3x3, got {camera_matrix.shape}")

    dist = _padded_dist(data["dist_coeffs"])

    features = [
        np.asarray(points, dtype=np.float32).reshape(-1, 2)
        for points in data.get("features", [])
    ]

    return CalibrationRecord(
        camera_matrix=camera_matrix,
        image_size=(int(data["image_width"]), int(data["image_height"])),
        sensor_size=(
            float(data.get("sensor_width", 0.0)),
            float(data.get("sensor_height", 0.0)),
        ),
        dist_coeffs=dist,
        reprojection_error=float(data.get("reprojection_error", 0.0)),
        features=features,
    )


def write_calibration_file(record: CalibrationRecord, path: Path) -> None:
    """
    Write a calibration record as TOML.

    Raises:
        CalibrationIOError: If the file cannot be written
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            rtoml.dump(calibration_record_to_dict(record), f)
    except OSError as e:
        raise CalibrationIOError(f"cannot write calibration file {path}: {e}") from e


def read_calibration_file(path: Path) -> CalibrationRecord:
    """
    Read a calibration record from TOML.

    Raises:
        CalibrationIOError: If the file is missing, unreadable, or malformed
    """
    path = Path(path)
    data = _read_toml(path)

    try:
        return calibration_record_from_dict(data)
    except (KeyError, ValueError, TypeError) as e:
        raise CalibrationIOError(f"malformed calibration file {path}: {e}") from e
