"""
Storing and loading whole sequences on binary streams.

Every sequence starts with its element count as an 8-byte little-endian
unsigned integer. Plain values (numbers) follow as text, each value followed
by a single space. Objects follow as whatever their own ``store(stream)``
writes, and are read back with ``load(stream)``.
"""

import struct
from typing import BinaryIO, Callable, List, Sequence, Type, TypeVar

import numpy as np

T = TypeVar('T')

_SIZE_FORMAT = '<Q'
_SIZE_BYTES = struct.calcsize(_SIZE_FORMAT)


def _write_size(stream: BinaryIO, size: int) -> None:
    stream.write(struct.pack(_SIZE_FORMAT, size))


def _read_size(stream: BinaryIO) -> int:
    raw = stream.read(_SIZE_BYTES)
    if len(raw) != _SIZE_BYTES:
        raise EOFError(f"Expected {_SIZE_BYTES} byte length prefix, got {len(raw)} bytes")
    return struct.unpack(_SIZE_FORMAT, raw)[0]


def _read_value_token(stream: BinaryIO) -> bytes:
    char = stream.read(1)
    while char and char.isspace():
        char = stream.read(1)
    if not char:
        raise EOFError("Stream ended before all values were read")

    token = bytearray()
    while char and not char.isspace():
        token += char
        char = stream.read(1)
    # the separator after the token is consumed as well
    return bytes(token)


def store_pod_vector(values: Sequence, stream: BinaryIO) -> None:
    """Write a sequence of numbers as length prefix plus text values."""
    if isinstance(values, np.ndarray):
        values = values.ravel()
    _write_size(stream, len(values))
    for value in values:
        stream.write(f"{value} ".encode('ascii'))


def load_pod_vector(stream: BinaryIO, value_type: Callable = float) -> List:
    """
    Read a sequence written by store_pod_vector.

    Args:
        stream: Binary input stream
        value_type: Conversion applied to each text value

    Raises:
        EOFError: If the stream ends early
        ValueError: If a value cannot be converted
    """
    size = _read_size(stream)
    return [value_type(_read_value_token(stream).decode('ascii')) for _ in range(size)]


def store_class_vector(items: Sequence, stream: BinaryIO) -> None:
    """Write a sequence of objects using their own store(stream) method."""
    _write_size(stream, len(items))
    for item in items:
        item.store(stream)


def load_class_vector(stream: BinaryIO, item_type: Type[T]) -> List[T]:
    """Read a sequence written by store_class_vector via ``item_type.load(stream)``."""
    size = _read_size(stream)
    return [item_type.load(stream) for _ in range(size)]
