"""
Conversions between caller images, owning buffers and PGM files.

Caller images are numpy arrays in OpenCV layout (height x width [x channels]).
The matcher works on single-channel 8-bit ImageBuffers, so every input goes
through ``to_grayscale_buffer`` first:

* uint8, 1 channel   -> copied as is
* uint16, 1 channel  -> scaled by 1/256
* uint8, 3 channels  -> BGR to gray
* uint16, 3 channels -> scaled by 1/256, then BGR to gray

The minimal file format is binary PGM (``P5``) with a maximum sample value
of at most 255.
"""

from pathlib import Path
from typing import BinaryIO, Union

import cv2
import numpy as np

from .exceptions import DenseStereoIOError, ImageFormatError, UnsupportedImageFormat
from .image_buffer import ImageBuffer
from utils.logger_config import get_logger

logger = get_logger(__name__)

PGM_MAGIC = b"P5"
PGM_MAX_VALUE = 255


def convert_to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert an OpenCV-style image to a single-channel uint8 array.

    Raises:
        UnsupportedImageFormat: If dtype or channel count is not supported
    """
    if image is None:
        raise UnsupportedImageFormat("Input image is None")

    channels = 1 if image.ndim == 2 else image.shape[2] if image.ndim == 3 else None
    if channels not in (1, 3):
        raise UnsupportedImageFormat(
            f"Unknown format: cannot convert image with shape {image.shape} to grayscale"
        )
    if image.dtype not in (np.uint8, np.uint16):
        raise UnsupportedImageFormat(
            f"Unknown format: cannot convert {image.dtype} image to grayscale"
        )

    if image.dtype == np.uint16:
        image = cv2.convertScaleAbs(image, alpha=1 / 256.)

    if channels == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

    if image.ndim == 3:
        image = image[:, :, 0]
    return np.ascontiguousarray(image, dtype=np.uint8)


def to_grayscale_buffer(image: np.ndarray) -> ImageBuffer:
    """Convert an image into a new grayscale ImageBuffer."""
    return ImageBuffer.from_array(convert_to_grayscale(image), dtype=np.uint8)


def _read_token(stream: BinaryIO, path: str) -> bytes:
    """Read one whitespace separated header token, skipping '#' comments."""
    char = stream.read(1)
    while True:
        while char and char.isspace():
            char = stream.read(1)
        if char == b"#":
            stream.readline()
            char = stream.read(1)
            continue
        break

    if not char:
        raise ImageFormatError(f"Could not read file {path}: truncated header", path=path)

    token = bytearray()
    while char and not char.isspace():
        token += char
        char = stream.read(1)
    # The single whitespace byte after a token has been consumed here
    return bytes(token)


def _read_header_int(stream: BinaryIO, path: str, field: str) -> int:
    token = _read_token(stream, path)
    try:
        value = int(token)
    except ValueError:
        raise ImageFormatError(
            f"Could not read file {path}: invalid {field} {token!r}", path=path
        ) from None
    if value <= 0:
        raise ImageFormatError(f"Could not read file {path}: {field} must be positive, got {value}",
                               path=path)
    return value


def load_pgm(path: Union[str, Path]) -> ImageBuffer:
    """
    Load a binary 8-bit PGM file.

    Args:
        path: Path to the file

    Returns:
        ImageBuffer: uint8 buffer holding the samples

    Raises:
        DenseStereoIOError: If the file cannot be opened
        ImageFormatError: If the header is wrong or the data is truncated
    """
    path = str(path)
    try:
        with open(path, 'rb') as stream:
            magic = _read_token(stream, path)
            if magic != PGM_MAGIC:
                raise ImageFormatError(
                    f"Could not read file {path}: expected magic {PGM_MAGIC!r}, got {magic!r}",
                    path=path
                )
            width = _read_header_int(stream, path, "width")
            height = _read_header_int(stream, path, "height")
            max_value = _read_header_int(stream, path, "maximum value")
            if max_value > PGM_MAX_VALUE:
                raise ImageFormatError(
                    f"Could not read file {path}: maximum value {max_value} exceeds {PGM_MAX_VALUE}",
                    path=path
                )

            expected = width * height
            payload = stream.read(expected)
    except OSError as e:
        if isinstance(e, DenseStereoIOError):
            raise
        raise DenseStereoIOError(f"Could not read file {path}: {e}", path=path) from e

    if len(payload) < expected:
        raise ImageFormatError(
            f"Could not read file {path}: expected {expected} samples, got {len(payload)}",
            path=path
        )

    buffer = ImageBuffer(width, height, dtype=np.uint8)
    buffer.data[:] = np.frombuffer(payload, dtype=np.uint8)

    logger.debug(f"Loaded PGM {path}: {width}x{height}")
    return buffer


def save_pgm(buffer: Union[ImageBuffer, np.ndarray], path: Union[str, Path]) -> Path:
    """
    Write a uint8 buffer as binary PGM, overwriting existing content.

    Raises:
        DenseStereoIOError: If the file cannot be written
    """
    if isinstance(buffer, np.ndarray):
        buffer = ImageBuffer.from_array(buffer)
    if buffer.dtype != np.uint8:
        raise UnsupportedImageFormat(f"PGM output requires uint8 samples, got {buffer.dtype}")

    path = Path(path)
    header = f"P5\n{buffer.width} {buffer.height}\n{PGM_MAX_VALUE}\n".encode("ascii")
    try:
        with open(path, 'wb') as stream:
            stream.write(header)
            stream.write(buffer.data.tobytes())
    except OSError as e:
        raise DenseStereoIOError(f"Could not write file {path}: {e}", path=str(path)) from e

    logger.debug(f"Saved PGM {path}: {buffer.width}x{buffer.height}")
    return path
