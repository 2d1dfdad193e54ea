"""
Rectification map cache.

Holds the per-pixel remap coordinate fields and valid-pixel rectangles that
``cv2.initUndistortRectifyMap`` produces for both cameras, together with the
rectification matrices they were derived from. Instances are built once per
calibration load and are read-only afterwards.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class RectificationMaps:
    """Immutable remap fields for a stereo pair"""
    left_map_x: np.ndarray
    left_map_y: np.ndarray
    right_map_x: np.ndarray
    right_map_y: np.ndarray
    left_roi: Tuple[int, int, int, int]     # (x, y, width, height)
    right_roi: Tuple[int, int, int, int]
    image_width: int
    image_height: int
    R1: np.ndarray
    R2: np.ndarray
    P1: np.ndarray
    P2: np.ndarray
    Q: np.ndarray

    def __post_init__(self):
        expected_shape = (self.image_height, self.image_width)
        for name in ('left_map_x', 'left_map_y', 'right_map_x', 'right_map_y'):
            array = getattr(self, name)
            if array.shape != expected_shape:
                raise ValueError(
                    f"{name} has shape {array.shape}, expected {expected_shape}"
                )

    @property
    def image_size(self) -> Tuple[int, int]:
        """(width, height) of frames these maps accept and produce"""
        return self.image_width, self.image_height

    def select(self, is_right_camera: bool) -> Tuple[np.ndarray, np.ndarray]:
        """Return the (map_x, map_y) pair for one camera."""
        if is_right_camera:
            return self.right_map_x, self.right_map_y
        return self.left_map_x, self.left_map_y
