"""
Owning pixel buffer used to move image data between pipeline stages.

An ImageBuffer holds exactly width*height samples of a single dtype in
row-major order. The storage is never shared: copies are deep and
``release()`` hands the storage to the caller and empties the buffer.
"""

from typing import Optional, Tuple, Union

import numpy as np

from .exceptions import BufferReleasedError, DimensionMismatch


class ImageBuffer:
    """Fixed-size, row-major 2D pixel buffer with exclusive ownership."""

    def __init__(self, width: int, height: int, dtype=np.uint8, init: bool = False):
        """
        Allocate a buffer.

        Args:
            width: Number of columns (must be positive)
            height: Number of rows (must be positive)
            dtype: Sample type, e.g. np.uint8 or np.float32
            init: Zero the samples after allocation
        """
        if width <= 0 or height <= 0:
            raise DimensionMismatch(
                f"Image buffer size must be positive, got {width}x{height}",
                actual=(width, height)
            )

        self._width = int(width)
        self._height = int(height)
        if init:
            self._storage: Optional[np.ndarray] = np.zeros(self._width * self._height, dtype=dtype)
        else:
            self._storage = np.empty(self._width * self._height, dtype=dtype)

    @classmethod
    def from_array(cls, array: np.ndarray, dtype=None) -> 'ImageBuffer':
        """Create a buffer owning a copy of a 2D array."""
        array = np.asarray(array)
        if array.ndim != 2:
            raise DimensionMismatch(f"Expected a single-channel 2D array, got shape {array.shape}")

        height, width = array.shape
        buffer = cls(width, height, dtype=array.dtype if dtype is None else dtype)
        buffer.access[:, :] = array
        return buffer

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height)"""
        return self._width, self._height

    @property
    def dtype(self):
        return self._require_storage().dtype

    @property
    def data(self) -> np.ndarray:
        """Flat view of all width*height samples."""
        return self._require_storage()

    @property
    def access(self) -> np.ndarray:
        """Row view with shape (height, width); ``access[y][x]`` addresses a sample."""
        return self._require_storage().reshape(self._height, self._width)

    @property
    def is_released(self) -> bool:
        return self._storage is None

    def init(self, value: Union[int, float]) -> None:
        """Set every sample to ``value``."""
        self._require_storage().fill(value)

    def copy(self) -> 'ImageBuffer':
        """Deep copy with independent storage."""
        duplicate = ImageBuffer(self._width, self._height, dtype=self.dtype)
        np.copyto(duplicate.data, self.data)
        return duplicate

    def to_array(self) -> np.ndarray:
        """Independent (height, width) copy of the samples."""
        return self.access.copy()

    def release(self) -> np.ndarray:
        """
        Hand the storage over to the caller.

        The buffer is empty afterwards; any further access raises
        BufferReleasedError.
        """
        array = self.access
        self._storage = None
        return array

    def _require_storage(self) -> np.ndarray:
        if self._storage is None:
            raise BufferReleasedError("Image buffer storage has been released")
        return self._storage

    def __getitem__(self, index: Tuple[int, int]):
        x, y = index
        self._check_bounds(x, y)
        return self.access[y, x]

    def __setitem__(self, index: Tuple[int, int], value) -> None:
        x, y = index
        self._check_bounds(x, y)
        self.access[y, x] = value

    def _check_bounds(self, x: int, y: int) -> None:
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise IndexError(
                f"Pixel ({x}, {y}) outside buffer of size {self._width}x{self._height}"
            )

    def __len__(self) -> int:
        return self._width * self._height

    def __repr__(self) -> str:
        state = "released" if self.is_released else str(self.dtype)
        return f"ImageBuffer({self._width}x{self._height}, {state})"
