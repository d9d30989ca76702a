#!/usr/bin/env python3
"""
camcal CLI - camera calibration and undistortion.

Usage:
    camcal calibrate IMAGE_DIR OUTPUT.toml [CONFIG.toml]
    camcal undistort CALIBRATION.toml INPUT_IMAGE OUTPUT_IMAGE
    camcal info CALIBRATION.toml
    camcal --help
"""

import logging
import sys
from pathlib import Path

import cv2

from camcal.config import create_default_pattern_config, load_clean_threshold, load_pattern_config
from camcal.errors import CalibrationError
from camcal.session import CalibrationSession

logger = logging.getLogger("camcal")


def calibrate_command(args: list[str]) -> int:
    if len(args) not in (2, 3):
        print("Usage: camcal calibrate IMAGE_DIR OUTPUT.toml [CONFIG.toml]")
        return 1

    image_dir, output = Path(args[0]), Path(args[1])
    if len(args) == 3:
        config = load_pattern_config(Path(args[2]))
        threshold = load_clean_threshold(Path(args[2]))
    else:
        config = create_default_pattern_config()
        threshold = None

    session = CalibrationSession(config)
    if not session.calibrate_from_directory(image_dir):
        logger.error(f"Calibration failed: {session.last_error}")
        return 1

    if threshold is not None and not session.clean(threshold):
        logger.error(f"Cleaning failed: {session.last_error}")
        return 1

    print(f"Views used: {session.size()}")
    print(f"Reprojection error: {session.reprojection_error:.4f}px")
    return 0 if session.save(output) else 1


def undistort_command(args: list[str]) -> int:
    if len(args) != 3:
        print("Usage: camcal undistort CALIBRATION.toml INPUT_IMAGE OUTPUT_IMAGE")
        return 1

    session = CalibrationSession()
    if not session.load(Path(args[0])):
        return 1

    image = cv2.imread(args[1], cv2.IMREAD_UNCHANGED)
    if image is None:
        logger.error(f"Could not read image {args[1]}")
        return 1

    undistorted = session.undistort(image, interpolation=cv2.INTER_LINEAR)
    if not cv2.imwrite(args[2], undistorted):
        logger.error(f"Could not write image {args[2]}")
        return 1
    return 0


def info_command(args: list[str]) -> int:
    if len(args) != 1:
        print("Usage: camcal info CALIBRATION.toml")
        return 1

    session = CalibrationSession()
    if not session.load(Path(args[0])):
        return 1

    intrinsics = session.distorted_intrinsics
    print(f"Image size: {intrinsics.image_size[0]}x{intrinsics.image_size[1]}")
    print(f"fx={intrinsics.fx:.3f} fy={intrinsics.fy:.3f} cx={intrinsics.cx:.3f} cy={intrinsics.cy:.3f}")
    print(f"fov: {intrinsics.fov[0]:.2f} x {intrinsics.fov[1]:.2f} deg")
    print(f"distCoeffs: {session.dist_coeffs.tolist()}")
    print(f"Reprojection error: {session.reprojection_error:.4f}px from {session.size()} views")
    return 0


COMMANDS = {
    "calibrate": calibrate_command,
    "undistort": undistort_command,
    "info": info_command,
}


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if len(sys.argv) < 2 or sys.argv[1] in ("-h", "--help"):
        print(__doc__)
        return 0

    command = sys.argv[1]
    if command not in COMMANDS:
        print(f"Unknown command: {command}")
        print("Run 'camcal --help' for usage")
        return 1

    try:
        return COMMANDS[command](sys.argv[2:])
    except CalibrationError as e:
        logger.error(f"{command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
