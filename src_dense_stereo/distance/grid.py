"""Regular grid with named float layers, the target of distance image export"""

from typing import Dict, Tuple

import numpy as np


class DistanceGrid:
    """
    Grid of width x height cells placed on the projective plane.

    Cell (x, y) sits at ``(x * scale_x + offset_x, y * scale_y + offset_y)``.
    Layers are float32 arrays indexed ``[y][x]`` and start out as NaN.
    """

    DISTANCE = "distance"

    def __init__(self, width: int, height: int,
                 scale_x: float, scale_y: float,
                 offset_x: float = 0.0, offset_y: float = 0.0):
        if width <= 0 or height <= 0:
            raise ValueError(f"Grid size must be positive, got {width}x{height}")

        self.width = int(width)
        self.height = int(height)
        self.scale_x = float(scale_x)
        self.scale_y = float(scale_y)
        self.offset_x = float(offset_x)
        self.offset_y = float(offset_y)
        self._layers: Dict[str, np.ndarray] = {}

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def has_grid_data(self, name: str) -> bool:
        return name in self._layers

    def get_grid_data(self, name: str = DISTANCE) -> np.ndarray:
        """Layer ``name`` as a (height, width) array, created on first access."""
        if name not in self._layers:
            self._layers[name] = np.full((self.height, self.width), np.nan, dtype=np.float32)
        return self._layers[name]

    def to_world(self, x: int, y: int) -> Tuple[float, float]:
        """Projective plane position of a cell."""
        return x * self.scale_x + self.offset_x, y * self.scale_y + self.offset_y

    def __repr__(self) -> str:
        return (f"DistanceGrid({self.width}x{self.height}, scale=({self.scale_x:g}, {self.scale_y:g}), "
                f"offset=({self.offset_x:g}, {self.offset_y:g}), layers={sorted(self._layers)})")
