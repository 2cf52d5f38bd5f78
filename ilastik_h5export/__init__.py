"""
Export image stacks to ilastik-compatible HDF5 files.

The exporter writes a single 5D dataset per call with axis order
(frame, column, row, depth, channel).
"""

from .core.dimensions import ImageDims, resolve_dims
from .core.errors import (
    DatasetExistsError,
    ExportError,
    ExporterStateError,
    InvalidDimensionsError,
    PixelKindMismatchError,
    UnsupportedPixelKindError,
)
from .core.export_manager import ExportResult, HDF5Exporter
from .core.image_stack import ImageLoader, ImageStack
from .core.pixels import PixelKind, split_rgb, transpose_slice

__version__ = '0.1.0'

__all__ = [
    'DatasetExistsError',
    'ExportError',
    'ExportResult',
    'ExporterStateError',
    'HDF5Exporter',
    'ImageDims',
    'ImageLoader',
    'ImageStack',
    'InvalidDimensionsError',
    'PixelKind',
    'PixelKindMismatchError',
    'UnsupportedPixelKindError',
    'resolve_dims',
    'split_rgb',
    'transpose_slice',
]
