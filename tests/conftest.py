"""
Pytest configuration and shared fixtures.
"""

import tempfile
from pathlib import Path

import cv2
import numpy as np
import pytest


# Board tilts for synthetic views (Rodrigues vectors)
VIEW_ROTATIONS = [
    (0.4, 0.0, 0.0),
    (-0.4, 0.0, 0.0),
    (0.0, 0.4, 0.0),
    (0.0, -0.4, 0.0),
    (0.3, 0.3, 0.1),
    (-0.3, 0.3, -0.2),
    (0.3, -0.3, 0.2),
    (-0.3, -0.3, 0.0),
]

IMAGE_SIZE = (640, 480)


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that's cleaned up after test."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def image_size():
    return IMAGE_SIZE


@pytest.fixture
def sample_camera_matrix():
    """Ground-truth camera matrix for a 640x480 camera."""
    return np.array([
        [800.0, 0.0, 320.0],
        [0.0, 800.0, 240.0],
        [0.0, 0.0, 1.0],
    ], dtype=np.float64)


@pytest.fixture
def sample_pattern_config():
    """9x6 chessboard with 25mm squares."""
    from camcal.types import PatternConfig
    return PatternConfig(columns=9, rows=6, square_size=25.0)


@pytest.fixture
def make_views(sample_camera_matrix, sample_pattern_config):
    """
    Factory for synthetic observations of the sample pattern.

    Each view tilts the board around its center, 600 units in front of the
    camera. An optional (rotation, translation) pair moves the camera,
    mapping points x_a to x_b = R @ x_a + t.
    """
    from camcal.calibration.pattern import get_pattern_object_points

    def _make(
        n_views=8,
        noise=0.0,
        seed=0,
        camera_matrix=None,
        dist_coeffs=None,
        camera_transform=None,
    ):
        K = sample_camera_matrix if camera_matrix is None else camera_matrix
        dist = np.zeros(5) if dist_coeffs is None else np.asarray(dist_coeffs, dtype=np.float64)
        obj = get_pattern_object_points(sample_pattern_config).astype(np.float64)
        center = obj.mean(axis=0)
        rng = np.random.default_rng(seed)

        views = []
        for rvec in VIEW_ROTATIONS[:n_views]:
            R, _ = cv2.Rodrigues(np.array(rvec, dtype=np.float64))
            t = np.array([0.0, 0.0, 600.0]) - R @ center

            if camera_transform is not None:
                R_ab, t_ab = camera_transform
                t = R_ab @ t + t_ab
                R = R_ab @ R

            rvec_view, _ = cv2.Rodrigues(R)
            projected, _ = cv2.projectPoints(obj, rvec_view, t, K, dist)
            points = projected[:, 0, :]
            if noise > 0:
                points = points + rng.normal(0.0, noise, points.shape)
            views.append(points.astype(np.float32))
        return views

    return _make


@pytest.fixture
def calibrated_session(sample_pattern_config, make_views, image_size):
    """Ready session solved from 8 noise-free synthetic views."""
    from camcal.session import CalibrationSession
    session = CalibrationSession(sample_pattern_config)
    for view in make_views():
        session.add_image_points(view, image_size)
    assert session.calibrate()
    return session


def render_chessboard(squares=(10, 7), square_px=40, margin=60):
    """
    Render a chessboard with squares[0] x squares[1] squares on white.

    Inner corner count is (squares[0] - 1, squares[1] - 1).
    """
    cols, rows = squares
    width = cols * square_px + 2 * margin
    height = rows * square_px + 2 * margin
    img = np.full((height, width), 255, dtype=np.uint8)
    for r in range(rows):
        for c in range(cols):
            if (r + c) % 2 == 0:
                y0 = margin + r * square_px
                x0 = margin + c * square_px
                img[y0:y0 + square_px, x0:x0 + square_px] = 0
    return img


def render_circles_grid(grid=(5, 4), spacing=50, radius=12, margin=60):
    """Render a symmetric grid of black circles on white."""
    cols, rows = grid
    width = (cols - 1) * spacing + 2 * margin
    height = (rows - 1) * spacing + 2 * margin
    img = np.full((height, width), 255, dtype=np.uint8)
    for r in range(rows):
        for c in range(cols):
            center = (margin + c * spacing, margin + r * spacing)
            cv2.circle(img, center, radius, 0, -1, lineType=cv2.LINE_AA)
    return img


def render_asymmetric_circles_grid(grid=(4, 11), spacing=25, radius=8, margin=60):
    """
    Render an asymmetric circle grid: odd rows shift right by one spacing
    and circles in a row sit two spacings apart.
    """
    cols, rows = grid
    width = (2 * cols - 1) * spacing + 2 * margin
    height = (rows - 1) * spacing + 2 * margin
    img = np.full((height, width), 255, dtype=np.uint8)
    for r in range(rows):
        for c in range(cols):
            center = (margin + (2 * c + r % 2) * spacing, margin + r * spacing)
            cv2.circle(img, center, radius, 0, -1, lineType=cv2.LINE_AA)
    return img


@pytest.fixture
def chessboard_image():
    """Grayscale chessboard with 9x6 inner corners."""
    return render_chessboard()


@pytest.fixture
def circles_image():
    """Grayscale symmetric circle grid, 5x4 circles."""
    return render_circles_grid()


@pytest.fixture
def asymmetric_circles_image():
    """Grayscale asymmetric circle grid, 4x11 circles."""
    return render_asymmetric_circles_grid()
