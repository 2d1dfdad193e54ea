"""
Calibration module: parameter store, calibration records and rectification maps.
"""

from .parameters import CalibrationParameters, CalibrationState, SCALAR_FIELDS
from .stereo_calibration import CameraCalibration, ExtrinsicCalibration, StereoCameraCalibration
from .maps import RectificationMaps

__all__ = [
    'CalibrationParameters',
    'CalibrationState',
    'SCALAR_FIELDS',
    'CameraCalibration',
    'ExtrinsicCalibration',
    'StereoCameraCalibration',
    'RectificationMaps'
]
