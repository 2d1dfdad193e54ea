"""
Disparity calculation module for stereo vision processing.

This module contains the matcher interface, the SGBM engine implementing it,
disparity post-processing and the disparity file manager.
"""

from .matcher import StereoMatcher, MatcherConfiguration
from .sgbm_engine import SGBMEngine
from .disparity_processor import DisparityProcessor
from .file_manager import DisparityFileManager

__all__ = [
    'StereoMatcher',
    'MatcherConfiguration',
    'SGBMEngine',
    'DisparityProcessor',
    'DisparityFileManager'
]
