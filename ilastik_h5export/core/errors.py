"""
Exception types raised by the export engine.
"""


class ExportError(Exception):
    """Base class for all export failures."""


class ExporterStateError(ExportError):
    """Raised when exporting through an exporter that has no open file."""


class UnsupportedPixelKindError(ExportError, TypeError):
    """Raised when a pixel buffer has an element type the container cannot store."""

    def __init__(self, dtype):
        self.dtype = dtype
        super().__init__(
            f"Unsupported pixel type {dtype}; expected uint8, uint16, uint32 or float32"
        )


class PixelKindMismatchError(ExportError, TypeError):
    """Raised when a buffer's element type differs from the dataset's element type."""

    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Pixel type {actual.name} does not match dataset type {expected.name}"
        )


class InvalidDimensionsError(ExportError, ValueError):
    """Raised for empty or inconsistent image dimensions."""


class DatasetExistsError(ExportError):
    """Raised when the target dataset name is already present in the file."""
