"""Test module for the owning image buffer"""

import pytest
import numpy as np

from src_dense_stereo.image_buffer import ImageBuffer
from src_dense_stereo.exceptions import BufferReleasedError, DimensionMismatch


class TestImageBuffer:
    """Test ImageBuffer class"""

    def test_buffer_creation(self):
        """Test a buffer exposes exactly width*height samples"""
        buffer = ImageBuffer(640, 480, init=True)

        assert buffer.width == 640
        assert buffer.height == 480
        assert buffer.size == (640, 480)
        assert len(buffer) == 640 * 480
        assert buffer.data.shape == (640 * 480,)
        assert buffer.access.shape == (480, 640)
        assert buffer.dtype == np.uint8
        assert not buffer.data.any()

    def test_invalid_size(self):
        """Test non-positive sizes are rejected"""
        with pytest.raises(DimensionMismatch):
            ImageBuffer(0, 480)
        with pytest.raises(DimensionMismatch):
            ImageBuffer(640, -1)

    def test_row_major_layout(self):
        """Test pixel (x, y) lives at index y*width + x"""
        buffer = ImageBuffer(4, 3, dtype=np.float32, init=True)
        buffer[3, 1] = 7.5

        assert buffer.data[1 * 4 + 3] == 7.5
        assert buffer.access[1][3] == 7.5
        assert buffer[3, 1] == 7.5

    def test_out_of_bounds_access(self):
        buffer = ImageBuffer(4, 3)
        with pytest.raises(IndexError):
            buffer[4, 0]
        with pytest.raises(IndexError):
            buffer[0, 3] = 1

    def test_init_fills_all_samples(self):
        buffer = ImageBuffer(5, 5)
        buffer.init(42)
        assert np.all(buffer.data == 42)

    def test_copy_is_independent(self):
        """Test modifying a copy leaves the original untouched"""
        original = ImageBuffer(8, 6, init=True)
        duplicate = original.copy()
        duplicate.init(200)

        assert np.all(original.data == 0)
        assert np.all(duplicate.data == 200)
        assert duplicate.size == original.size

    def test_from_array_and_to_array(self):
        """Test conversions copy the samples"""
        array = np.arange(12, dtype=np.uint8).reshape(3, 4)
        buffer = ImageBuffer.from_array(array)

        array[0, 0] = 99
        assert buffer[0, 0] == 0
        assert buffer.size == (4, 3)

        exported = buffer.to_array()
        exported[2, 3] = 0
        assert buffer[3, 2] == 11

    def test_from_array_rejects_color(self):
        with pytest.raises(DimensionMismatch):
            ImageBuffer.from_array(np.zeros((3, 4, 3), dtype=np.uint8))

    def test_release_moves_storage(self):
        """Test release hands over the samples and empties the buffer"""
        buffer = ImageBuffer(4, 3)
        buffer.init(5)

        array = buffer.release()

        assert array.shape == (3, 4)
        assert np.all(array == 5)
        assert buffer.is_released
        with pytest.raises(BufferReleasedError):
            buffer.data
        with pytest.raises(BufferReleasedError):
            buffer.copy()
