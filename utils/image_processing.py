"""
Image processing utilities for stereo vision applications.

This module provides geometric helpers that are not tied to a particular
pipeline stage.
"""

import cv2
import numpy as np

from utils.logger_config import get_logger

logger = get_logger(__name__)


class ImageProcessor:
    """Handles common image processing operations for stereo vision."""

    @staticmethod
    def rotate_image(source: np.ndarray, angle: float) -> np.ndarray:
        """
        Rotate an image about its centre, keeping its size.

        Args:
            source: Input image
            angle: Rotation angle in degrees, counter-clockwise

        Returns:
            np.ndarray: Rotated image; uncovered corners are black
        """
        height, width = source.shape[:2]
        center = (width / 2.0, height / 2.0)
        rotation = cv2.getRotationMatrix2D(center, angle, 1.0)
        logger.debug(f"Rotating {width}x{height} image by {angle} degrees")
        return cv2.warpAffine(source, rotation, (width, height))
