"""Custom exceptions for the dense stereo pipeline"""

from typing import Optional, Tuple


class DenseStereoError(Exception):
    """Base exception for the dense stereo pipeline"""
    pass


class ConfigurationUnavailable(DenseStereoError):
    """Raised when no persisted calibration can be found"""
    pass


class ConfigurationCorrupt(DenseStereoError):
    """Raised when calibration data is malformed or incomplete"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class DimensionMismatch(DenseStereoError):
    """Raised when two image sizes that must agree do not"""

    def __init__(self, message: str,
                 expected: Optional[Tuple[int, int]] = None,
                 actual: Optional[Tuple[int, int]] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class RectificationFailed(DenseStereoError):
    """Raised when rectification maps are absent or cannot be applied"""
    pass


class RectificationSizeMismatch(RectificationFailed, DimensionMismatch):
    """Raised when a frame does not have the size the maps were built for"""

    def __init__(self, message: str,
                 expected: Optional[Tuple[int, int]] = None,
                 actual: Optional[Tuple[int, int]] = None):
        DimensionMismatch.__init__(self, message, expected, actual)


class UnsupportedImageFormat(DenseStereoError):
    """Raised when a pixel encoding cannot be converted to 8-bit grayscale"""
    pass


class DenseStereoIOError(DenseStereoError, OSError):
    """Raised when calibration or image files cannot be read or written"""

    def __init__(self, message: str, path: Optional[str] = None):
        DenseStereoError.__init__(self, message)
        self.path = path

    def __str__(self) -> str:
        return self.args[0] if self.args else ""


class ImageFormatError(DenseStereoIOError):
    """Raised when an image file header does not match the expected format"""
    pass


class MatcherFailure(DenseStereoError):
    """Raised when the external stereo matcher fails"""
    pass


class BufferReleasedError(DenseStereoError):
    """Raised when an image buffer is used after its storage was released"""
    pass
