"""
Tests for stereo linking between two sessions.
"""

import cv2
import numpy as np
import pytest

from camcal.calibration.extrinsic import (
    check_stereo_compatible,
    link_stereo,
    stereo_calibrate_pair,
)
from camcal.errors import PreconditionViolation
from camcal.session import CalibrationSession
from camcal.types import PatternConfig


@pytest.fixture
def stereo_rig():
    """Camera B sits 60 units to the right of A, yawed slightly."""
    R, _ = cv2.Rodrigues(np.array([0.0, 0.05, 0.0]))
    t = np.array([-60.0, 0.0, 0.0])
    return R, t


@pytest.fixture
def stereo_sessions(sample_pattern_config, make_views, image_size, stereo_rig):
    a = CalibrationSession(sample_pattern_config)
    b = CalibrationSession(sample_pattern_config)
    for view_a, view_b in zip(make_views(), make_views(camera_transform=stereo_rig)):
        a.add_image_points(view_a, image_size)
        b.add_image_points(view_b, image_size)
    assert a.calibrate()
    assert b.calibrate()
    return a, b


class TestLinkStereo:
    def test_recovers_transform(self, stereo_sessions, stereo_rig):
        a, b = stereo_sessions
        R, t = stereo_rig

        transform = a.get_transformation(b)

        assert transform is not None
        np.testing.assert_allclose(transform.rotation, R, atol=1e-3)
        np.testing.assert_allclose(transform.translation, t, atol=0.5)
        assert transform.translation.shape == (3,)
        assert transform.error < 0.1
        assert a.last_error is None

    def test_link_function(self, stereo_sessions):
        a, b = stereo_sessions
        transform = link_stereo(a, b)
        assert transform.rotation.shape == (3, 3)

    def test_accepts_read_only_intrinsics(self, stereo_sessions, stereo_rig):
        a, b = stereo_sessions
        matrix_a = a.distorted_intrinsics.camera_matrix
        matrix_b = b.distorted_intrinsics.camera_matrix
        assert not matrix_a.flags.writeable

        transform = stereo_calibrate_pair(
            a.object_points, a.image_points, b.image_points,
            matrix_a, a.dist_coeffs, matrix_b, b.dist_coeffs, a.image_size,
        )

        np.testing.assert_allclose(transform.rotation, stereo_rig[0], atol=1e-3)
        # Inputs are left untouched
        assert not matrix_a.flags.writeable

    def test_requires_ready(self, sample_pattern_config, calibrated_session):
        fresh = CalibrationSession(sample_pattern_config)

        assert calibrated_session.get_transformation(fresh) is None
        assert isinstance(calibrated_session.last_error, PreconditionViolation)

    def test_mismatched_counts(self, stereo_sessions, make_views, image_size):
        a, b = stereo_sessions
        b.add_image_points(make_views(n_views=1)[0], image_size)
        assert b.calibrate()

        assert a.get_transformation(b) is None
        assert isinstance(a.last_error, PreconditionViolation)

    def test_mismatched_square_size(self, stereo_sessions):
        a, b = stereo_sessions
        b.set_square_size(30.0)
        with pytest.raises(PreconditionViolation):
            check_stereo_compatible(a, b)

    def test_mismatched_pattern(self, calibrated_session):
        other = CalibrationSession(PatternConfig(columns=7, rows=5, square_size=25.0))
        with pytest.raises(PreconditionViolation):
            check_stereo_compatible(calibrated_session, other)
