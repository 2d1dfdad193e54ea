"""
Rectification of single frames with the cached maps of a calibration store.
"""

from typing import Tuple, Union

import cv2
import numpy as np

from ..calibration.parameters import CalibrationParameters
from ..exceptions import RectificationFailed, RectificationSizeMismatch
from ..image_buffer import ImageBuffer
from ..image_io import convert_to_grayscale
from utils.logger_config import get_logger

Frame = Union[np.ndarray, ImageBuffer]


class RectificationStage:
    """Applies the rectification maps of one camera to a frame."""

    def __init__(self, calibration: CalibrationParameters, interpolation: int = cv2.INTER_LINEAR):
        self.calibration = calibration
        self.interpolation = interpolation
        self.logger = get_logger(__name__)

    def _maps_for(self, frame: np.ndarray, is_right_camera: bool) -> Tuple[np.ndarray, np.ndarray]:
        maps = self.calibration.maps
        if maps is None:
            raise RectificationFailed(
                f"Rectification maps not available (calibration state: "
                f"{self.calibration.state.value})"
            )

        height, width = frame.shape[:2]
        if (width, height) != maps.image_size:
            camera = "right" if is_right_camera else "left"
            raise RectificationSizeMismatch(
                f"Image size of the {camera} frame ({width}x{height}) does not match "
                f"rectification size ({maps.image_width}x{maps.image_height})",
                expected=maps.image_size, actual=(width, height)
            )
        return maps.select(is_right_camera)

    def rectify(self, frame: Frame, is_right_camera: bool) -> np.ndarray:
        """
        Rectify a frame of one camera.

        The input is left untouched; the result has the dtype and channel
        count of the input.

        Raises:
            RectificationFailed: If no maps have been computed
            RectificationSizeMismatch: If the frame size differs from the map size
        """
        if isinstance(frame, ImageBuffer):
            frame = frame.access
        map_x, map_y = self._maps_for(frame, is_right_camera)

        try:
            return cv2.remap(frame, map_x, map_y, self.interpolation)
        except cv2.error as e:
            raise RectificationFailed(f"Remapping failed: {e}") from e

    def rectify_grayscale(self, frame: Frame, is_right_camera: bool) -> ImageBuffer:
        """
        Convert a frame to 8-bit grayscale and rectify it.

        Raises:
            UnsupportedImageFormat: If the pixel encoding cannot be converted
            RectificationFailed: As for rectify()
        """
        if isinstance(frame, ImageBuffer):
            frame = frame.access
        gray = convert_to_grayscale(frame)
        return ImageBuffer.from_array(self.rectify(gray, is_right_camera), dtype=np.uint8)

    def rectify_pair(self, left: Frame, right: Frame) -> Tuple[np.ndarray, np.ndarray]:
        """Rectify a left/right pair, keeping dtype and channels."""
        return self.rectify(left, False), self.rectify(right, True)
