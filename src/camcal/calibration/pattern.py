"""
Calibration pattern geometry.

Pure functions - no classes, no state.
"""

from __future__ import annotations

import numpy as np

from ..types import PatternConfig, PatternType


# ============================================================================
# Object Points
# ============================================================================


def create_object_points(
    pattern_size: tuple[int, int],
    square_size: float,
    pattern_type: PatternType = PatternType.CHESSBOARD,
) -> np.ndarray:
    """
    Get the 3D object points for every grid point of a planar pattern.

    Points lie on z=0 in row-major order. Asymmetric circle grids offset
    every odd row by one spacing, so x advances two spacings per column.

    Args:
        pattern_size: (columns, rows) grid point counts
        square_size: Grid spacing in world units
        pattern_type: Pattern family

    Returns:
        (columns * rows, 3) float32 array
    """
    columns, rows = pattern_size
    j, i = np.meshgrid(np.arange(columns), np.arange(rows))
    j = j.ravel()
    i = i.ravel()

    if PatternType(pattern_type) == PatternType.ASYMMETRIC_CIRCLES_GRID:
        x = (2 * j + i % 2) * square_size
    else:
        x = j * square_size
    y = i * square_size

    points = np.zeros((columns * rows, 3), dtype=np.float32)
    points[:, 0] = x
    points[:, 1] = y
    return points


def get_pattern_object_points(config: PatternConfig) -> np.ndarray:
    """Object points for a PatternConfig."""
    return create_object_points(config.pattern_size, config.square_size, config.pattern_type)


def get_pattern_extent(config: PatternConfig) -> tuple[float, float]:
    """
    Physical (width, height) spanned by the pattern's grid points.

    Useful for sizing a printed target or placing synthetic views.
    """
    points = get_pattern_object_points(config)
    return (float(points[:, 0].max()), float(points[:, 1].max()))
