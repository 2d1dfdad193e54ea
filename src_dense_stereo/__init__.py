"""
Dense stereo preprocessing and disparity postprocessing.
"""

from .calibration import (
    CalibrationParameters, CalibrationState, CameraCalibration,
    ExtrinsicCalibration, StereoCameraCalibration, RectificationMaps
)
from .dense_stereo import DenseStereo
from .disparity import StereoMatcher, MatcherConfiguration, SGBMEngine, DisparityProcessor
from .distance import DistanceImage, DistanceGrid
from .image_buffer import ImageBuffer
from .rectification import RectificationStage

__all__ = [
    'CalibrationParameters',
    'CalibrationState',
    'CameraCalibration',
    'ExtrinsicCalibration',
    'StereoCameraCalibration',
    'RectificationMaps',
    'DenseStereo',
    'StereoMatcher',
    'MatcherConfiguration',
    'SGBMEngine',
    'DisparityProcessor',
    'DistanceImage',
    'DistanceGrid',
    'ImageBuffer',
    'RectificationStage'
]
