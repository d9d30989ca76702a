"""
Tests for the camcal command line.
"""

import sys

import cv2
import numpy as np

from camcal import cli


def run(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["camcal", *args])
    return cli.main()


def test_help(monkeypatch, capsys):
    assert run(monkeypatch, "--help") == 0
    assert "Usage" in capsys.readouterr().out


def test_no_arguments(monkeypatch, capsys):
    assert run(monkeypatch) == 0
    assert "camcal calibrate" in capsys.readouterr().out


def test_unknown_command(monkeypatch, capsys):
    assert run(monkeypatch, "explode") == 1
    assert "Unknown command" in capsys.readouterr().out


def test_wrong_argument_count(monkeypatch):
    assert run(monkeypatch, "info") == 1
    assert run(monkeypatch, "undistort", "a.toml") == 1
    assert run(monkeypatch, "calibrate") == 1


def test_info(monkeypatch, capsys, calibrated_session, temp_dir):
    path = temp_dir / "calibration.toml"
    assert calibrated_session.save(path)

    assert run(monkeypatch, "info", str(path)) == 0

    out = capsys.readouterr().out
    assert "Image size: 640x480" in out
    assert "from 8 views" in out


def test_info_missing_file(monkeypatch, temp_dir):
    assert run(monkeypatch, "info", str(temp_dir / "missing.toml")) == 1


def test_undistort(monkeypatch, calibrated_session, temp_dir):
    calibration = temp_dir / "calibration.toml"
    calibrated_session.save(calibration)
    source = temp_dir / "in.png"
    target = temp_dir / "out.png"
    cv2.imwrite(str(source), np.full((480, 640, 3), 200, dtype=np.uint8))

    assert run(monkeypatch, "undistort", str(calibration), str(source), str(target)) == 0

    result = cv2.imread(str(target))
    assert result.shape == (480, 640, 3)


def test_undistort_missing_image(monkeypatch, calibrated_session, temp_dir):
    calibration = temp_dir / "calibration.toml"
    calibrated_session.save(calibration)

    assert run(monkeypatch, "undistort", str(calibration), str(temp_dir / "none.png"), str(temp_dir / "o.png")) == 1


def test_calibrate_empty_directory(monkeypatch, temp_dir):
    assert run(monkeypatch, "calibrate", str(temp_dir), str(temp_dir / "out.toml")) == 1
    assert not (temp_dir / "out.toml").exists()


def test_calibrate_missing_directory(monkeypatch, temp_dir):
    assert run(monkeypatch, "calibrate", str(temp_dir / "nope"), str(temp_dir / "out.toml")) == 1


def test_calibrate_bad_config(monkeypatch, temp_dir):
    config = temp_dir / "config.toml"
    config.write_text("[pattern]\ntype = \"hexagons\"\n")

    assert run(monkeypatch, "calibrate", str(temp_dir), str(temp_dir / "out.toml"), str(config)) == 1


def test_undistort_wrong_size(monkeypatch, calibrated_session, temp_dir):
    calibration = temp_dir / "calibration.toml"
    calibrated_session.save(calibration)
    source = temp_dir / "small.png"
    cv2.imwrite(str(source), np.zeros((100, 100, 3), dtype=np.uint8))

    assert run(monkeypatch, "undistort", str(calibration), str(source), str(temp_dir / "o.png")) == 1
    assert not (temp_dir / "o.png").exists()
