"""
Rectification module for stereo vision processing.
"""

from .stage import RectificationStage

__all__ = ['RectificationStage']
