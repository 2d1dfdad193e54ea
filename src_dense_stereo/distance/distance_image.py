"""
Distance image for a pinhole camera.

Grid indices are scaled so that ``x * scale_x + center_x = p_x`` is the
coordinate on the projective plane (likewise for y). The row-major ``data``
holds the distance d of each image point, so the 3D point is
``(p_x, p_y, 1) * d``. NaN marks pixels without a value.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Optional, Tuple

import numpy as np

from ..exceptions import DimensionMismatch
from .grid import DistanceGrid
from utils.stereo_math import StereoMath
from utils.vector_store import store_pod_vector, load_pod_vector
from utils.logger_config import get_logger

logger = get_logger(__name__)


@dataclass(eq=False)
class DistanceImage:
    width: int
    height: int
    scale_x: float
    scale_y: float
    center_x: float
    center_y: float
    data: Optional[np.ndarray] = None
    time: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise DimensionMismatch(f"Distance image size must be positive, got {self.width}x{self.height}",
                                    actual=(self.width, self.height))
        if self.data is None:
            self.data = np.full(self.width * self.height, np.nan, dtype=np.float32)
        else:
            self.data = np.ascontiguousarray(self.data, dtype=np.float32).reshape(-1)
        if self.data.size != self.width * self.height:
            raise DimensionMismatch(
                f"Distance data holds {self.data.size} values, expected "
                f"{self.width}x{self.height}={self.width * self.height}",
                expected=(self.width, self.height)
            )

    @classmethod
    def from_disparity(cls, disparity: np.ndarray, Q: np.ndarray,
                       time: Optional[datetime] = None) -> 'DistanceImage':
        """
        Convert a left-reference disparity field to distances.

        Args:
            disparity: Float disparity (height, width), non-positive where invalid
            Q: 4x4 reprojection matrix of the rectified pair
            time: Capture time of the source frames

        Raises:
            ValueError: If Q cannot describe a pinhole projection
        """
        scale_x, scale_y, center_x, center_y = StereoMath.projective_parameters_from_q(Q)

        disparity = np.asarray(disparity, dtype=np.float64)
        denominator = Q[3, 2] * disparity + Q[3, 3]
        valid = np.isfinite(disparity) & (disparity > 0) & (denominator > 0)

        distance = np.full(disparity.shape, np.nan, dtype=np.float32)
        distance[valid] = Q[2, 3] / denominator[valid]

        height, width = disparity.shape
        logger.debug(f"Distance image {width}x{height}: "
                     f"{int(np.count_nonzero(valid))} valid pixels")
        return cls(width=width, height=height,
                   scale_x=scale_x, scale_y=scale_y,
                   center_x=center_x, center_y=center_y,
                   data=distance, time=time or datetime.now())

    def to_array(self) -> np.ndarray:
        """(height, width) view of the data."""
        return self.data.reshape(self.height, self.width)

    def projective_coordinates(self, x: float, y: float) -> Tuple[float, float]:
        return x * self.scale_x + self.center_x, y * self.scale_y + self.center_y

    def point_at(self, x: int, y: int) -> np.ndarray:
        """3D point of pixel (x, y), NaN if the pixel has no distance."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} distance image")
        p_x, p_y = self.projective_coordinates(x, y)
        return np.array([p_x, p_y, 1.0]) * float(self.data[y * self.width + x])

    def valid_ratio(self) -> float:
        return float(np.count_nonzero(~np.isnan(self.data)) / self.data.size)

    def update_distance_grid(self, grid: Optional[DistanceGrid] = None) -> Tuple[DistanceGrid, bool]:
        """
        Copy the distances into the distance layer of a grid.

        A new grid with this image's size, scale and centre is created when
        ``grid`` is None.

        Returns:
            (grid, created): created is True if a new grid was made

        Raises:
            DimensionMismatch: If the given grid has another size
        """
        created = False
        if grid is None:
            grid = DistanceGrid(self.width, self.height,
                                self.scale_x, self.scale_y,
                                self.center_x, self.center_y)
            created = True
        elif grid.size != (self.width, self.height):
            raise DimensionMismatch(
                f"Distance grid is {grid.width}x{grid.height}, "
                f"distance image is {self.width}x{self.height}",
                expected=(self.width, self.height), actual=grid.size
            )

        distance = grid.get_grid_data(DistanceGrid.DISTANCE)
        distance[:, :] = self.to_array()
        return grid, created

    def store(self, stream: BinaryIO) -> None:
        """Write the image with the vector store format."""
        store_pod_vector([self.time.isoformat()], stream)
        store_pod_vector([self.width, self.height], stream)
        store_pod_vector(np.array([self.scale_x, self.scale_y, self.center_x, self.center_y],
                                  dtype=np.float64), stream)
        store_pod_vector(self.data, stream)

    @classmethod
    def load(cls, stream: BinaryIO) -> 'DistanceImage':
        """Read an image written by store()."""
        time = datetime.fromisoformat(load_pod_vector(stream, str)[0])
        width, height = load_pod_vector(stream, int)
        scale_x, scale_y, center_x, center_y = load_pod_vector(stream, float)
        data = np.array(load_pod_vector(stream, float), dtype=np.float32)
        return cls(width=width, height=height,
                   scale_x=scale_x, scale_y=scale_y,
                   center_x=center_x, center_y=center_y,
                   data=data, time=time)
