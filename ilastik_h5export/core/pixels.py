"""
Pixel buffer conversion between the host image layout and the HDF5 layout.

Host slices are flat row-major buffers (x varies fastest). The exported
dataset stores each plane as (column, row), so a pixel at (x, y) ends up at
flat position y + x * rows.
"""

from enum import Enum

import numpy as np

from .errors import InvalidDimensionsError, UnsupportedPixelKindError


class PixelKind(Enum):
    """Element types that can be written to the exported dataset."""

    UINT8 = ('uint8', 8)
    UINT16 = ('uint16', 16)
    UINT32 = ('uint32', 32)
    FLOAT32 = ('float32', 32)

    def __init__(self, dtype_name, bit_depth):
        self.dtype = np.dtype(dtype_name)
        self.bit_depth = bit_depth

    @property
    def h5_type(self):
        """Short HDF5 type code for this kind ('u1', 'u2', 'u4', 'f4')."""
        return self.dtype.str.lstrip('<>|=')

    @classmethod
    def from_dtype(cls, dtype):
        """Map a numpy dtype to a PixelKind, raising for anything else.

        Byte order is ignored; big-endian buffers map to the same kind.
        """
        dtype = np.dtype(dtype)
        if dtype.kind in 'uf':
            dtype = dtype.newbyteorder('=')
        for kind in cls:
            if kind.dtype == dtype:
                return kind
        raise UnsupportedPixelKindError(dtype)

    @classmethod
    def of(cls, buffer):
        """Return the kind of a pixel buffer."""
        return cls.from_dtype(np.asarray(buffer).dtype)


def transpose_slice(buffer, rows, columns):
    """Convert a row-major slice buffer to the column-fastest export layout.

    Args:
        buffer: Flat pixel buffer of length rows * columns
        rows: Slice height
        columns: Slice width

    Returns:
        New flat native-endian array of the same kind where
        out[y + x * rows] == buffer[x + y * columns]

    Raises:
        UnsupportedPixelKindError: If the buffer dtype is not one of the PixelKind types
        InvalidDimensionsError: If the buffer length does not match rows * columns
    """
    pixels = np.asarray(buffer)
    kind = PixelKind.from_dtype(pixels.dtype)

    if pixels.size != rows * columns:
        raise InvalidDimensionsError(
            f"Slice has {pixels.size} pixels, expected {rows} x {columns} = {rows * columns}"
        )

    # Swap to native byte order on the way; the values are unchanged
    return pixels.reshape(rows, columns).T.astype(kind.dtype, order='C').ravel()


def split_rgb(color_slice, rows, columns):
    """Split an interleaved colour slice into transposed red, green and blue planes.

    The slice is either an (rows * columns, 3) uint8 array or a flat array of
    packed 0xRRGGBB integers, as produced by ImageJ colour processors.
    """
    pixels = np.asarray(color_slice)

    if pixels.ndim == 2 and pixels.shape[1] == 3:
        if pixels.dtype != np.uint8:
            raise UnsupportedPixelKindError(pixels.dtype)
        planes = [pixels[:, i] for i in range(3)]
    elif pixels.ndim == 1 and np.issubdtype(pixels.dtype, np.integer):
        packed = pixels.astype(np.uint32, copy=False)
        planes = [
            ((packed >> shift) & 0xFF).astype(np.uint8)
            for shift in (16, 8, 0)
        ]
    else:
        raise InvalidDimensionsError(
            f"Colour slice must be interleaved (N, 3) or packed (N,), got shape {pixels.shape}"
        )

    red, green, blue = (transpose_slice(plane, rows, columns) for plane in planes)
    return red, green, blue
