"""
Tests for camcal.calibration.detection.
"""

import cv2
import numpy as np

from camcal.calibration.detection import find_pattern, find_pattern_with_config
from camcal.types import PatternConfig, PatternType


class TestFindChessboard:
    def test_detect_in_synthetic_image(self, chessboard_image):
        """Detection should work on a clean rendered board."""
        found, points = find_pattern(chessboard_image, (9, 6), PatternType.CHESSBOARD)

        assert found
        assert points.shape == (54, 2)
        assert points.dtype == np.float32

    def test_corners_land_on_grid(self, chessboard_image):
        found, points = find_pattern(chessboard_image, (9, 6))
        assert found

        # Inner corners sit at margin + k * square_px (60 + 40k)
        offsets = (points - 60.0) / 40.0
        np.testing.assert_allclose(offsets, np.round(offsets), atol=0.1)

    def test_detect_in_bgr_image(self, chessboard_image):
        bgr = cv2.cvtColor(chessboard_image, cv2.COLOR_GRAY2BGR)
        found, points = find_pattern(bgr, (9, 6))
        assert found
        assert len(points) == 54

    def test_without_refinement(self, chessboard_image):
        found, points = find_pattern(chessboard_image, (9, 6), refine=False)
        assert found
        assert len(points) == 54

    def test_empty_on_blank_image(self):
        blank = np.zeros((480, 640, 3), dtype=np.uint8)
        found, points = find_pattern(blank, (9, 6))
        assert not found
        assert points.shape == (0, 2)

    def test_with_config(self, chessboard_image):
        config = PatternConfig(columns=9, rows=6, square_size=25.0, subpixel_window=5)
        found, points = find_pattern_with_config(chessboard_image, config)
        assert found
        assert len(points) == config.point_count


class TestFindCirclesGrid:
    def test_detect_symmetric_grid(self, circles_image):
        found, points = find_pattern(circles_image, (5, 4), PatternType.CIRCLES_GRID)

        assert found
        assert points.shape == (20, 2)
        # Centers sit at margin + k * spacing (60 + 50k)
        offsets = (points - 60.0) / 50.0
        np.testing.assert_allclose(offsets, np.round(offsets), atol=0.05)

    def test_detect_asymmetric_grid(self, asymmetric_circles_image):
        found, points = find_pattern(
            asymmetric_circles_image, (4, 11), PatternType.ASYMMETRIC_CIRCLES_GRID
        )

        assert found
        assert points.shape == (44, 2)
        offsets = (points - 60.0) / 25.0
        np.testing.assert_allclose(offsets, np.round(offsets), atol=0.1)

    def test_config_with_circles(self, circles_image):
        config = PatternConfig(columns=5, rows=4, pattern_type=PatternType.CIRCLES_GRID)
        found, points = find_pattern_with_config(circles_image, config)
        assert found
        assert len(points) == config.point_count

    def test_blank_image(self):
        blank = np.full((300, 300), 255, dtype=np.uint8)
        found, points = find_pattern(blank, (5, 4), PatternType.CIRCLES_GRID)
        assert not found
        assert points.shape == (0, 2)
