"""
Pytest configuration file
"""

import pytest
import sys
from pathlib import Path

import numpy as np

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

IMAGE_WIDTH = 640
IMAGE_HEIGHT = 480

CALIBRATION_VALUES = {
    'fx1': 500.0, 'fy1': 500.0, 'cx1': 320.0, 'cy1': 240.0,
    'd01': 0.0, 'd11': 0.0, 'd21': 0.0, 'd31': 0.0,
    'fx2': 500.0, 'fy2': 500.0, 'cx2': 320.0, 'cy2': 240.0,
    'd02': 0.0, 'd12': 0.0, 'd22': 0.0, 'd32': 0.0,
    'tx': -0.12, 'ty': 0.0, 'tz': 0.0, 'rx': 0.0, 'ry': 0.0, 'rz': 0.0,
}


def write_calibration_yaml(path: Path, values: dict, nested: bool = True) -> Path:
    """Write calibration scalars as an OpenCV FileStorage YAML file"""
    lines = ["%YAML:1.0", "---"]
    indent = ""
    if nested:
        lines.append("calibration:")
        indent = "   "
    for name, value in values.items():
        lines.append(f"{indent}{name}: {float(value)!r}")
    path.write_text("\n".join(lines) + "\n")
    return path


class StubMatcher:
    """Matcher returning fixed disparity fields and recording its calls"""

    def __init__(self, left_value: float = 0.0, right_value: float = 0.0, shape=None):
        self.left_value = left_value
        self.right_value = right_value
        self.shape = shape
        self.calls = []

    def match(self, left, right):
        self.calls.append((left.shape, right.shape))
        shape = self.shape or left.shape
        return (np.full(shape, self.left_value, dtype=np.float32),
                np.full(shape, self.right_value, dtype=np.float32))


@pytest.fixture
def calibration_values():
    """Provide calibration scalars of an ideal horizontal rig"""
    return dict(CALIBRATION_VALUES)


@pytest.fixture
def stereo_calibration():
    """Provide the ideal rig as a calibration record"""
    from src_dense_stereo.calibration import (
        CameraCalibration, ExtrinsicCalibration, StereoCameraCalibration
    )

    camera = dict(fx=500.0, fy=500.0, cx=320.0, cy=240.0)
    return StereoCameraCalibration(
        cam_left=CameraCalibration(**camera),
        cam_right=CameraCalibration(**camera),
        extrinsic=ExtrinsicCalibration(tx=-0.12)
    )


@pytest.fixture
def calibration_file(tmp_path, calibration_values):
    """Provide a complete calibration file"""
    return write_calibration_yaml(tmp_path / "calibration.yml", calibration_values)


@pytest.fixture
def loaded_calibration(stereo_calibration):
    """Provide a calibration store in LOADED state"""
    from src_dense_stereo.calibration import CalibrationParameters

    calibration = CalibrationParameters(image_size=(IMAGE_WIDTH, IMAGE_HEIGHT))
    calibration.set_stereo_calibration_parameters(stereo_calibration)
    return calibration


@pytest.fixture
def ready_calibration(loaded_calibration):
    """Provide a calibration store with rectification maps"""
    loaded_calibration.calculate_undistort_and_rectify_maps()
    return loaded_calibration


@pytest.fixture
def textured_image():
    """Provide a reproducible random texture suited for block matching"""
    import cv2

    rng = np.random.default_rng(42)
    noise = rng.integers(0, 256, size=(IMAGE_HEIGHT, IMAGE_WIDTH), dtype=np.uint8)
    return cv2.GaussianBlur(noise, (3, 3), 0)


@pytest.fixture
def stub_matcher():
    """Provide a matcher returning all-zero disparity"""
    return StubMatcher()
