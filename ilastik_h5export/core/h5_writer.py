"""
HDF5 dataset creation and unit writes for the export.

An ExportSession owns one dataset for the duration of a single export call.
The dataset is created with the shape of a single unit, written once in full,
grown to its final shape and then filled hyperslab by hyperslab.
"""

import json
import logging
from typing import NamedTuple

import numpy as np

from .dimensions import DEFAULT_CHUNK_DIVISOR
from .errors import DatasetExistsError, PixelKindMismatchError
from .pixels import PixelKind

MAX_COMPRESSION_LEVEL = 9

# vigra axis type flags understood by ilastik
_AXIS_TYPE_FLAGS = {'t': 8, 'x': 2, 'y': 2, 'z': 2, 'c': 1}


class UnitWrite(NamedTuple):
    """Position of one written unit in the dataset."""

    t: int
    z: int
    c: int


def axistags_json(keys='txyzc'):
    """Return the vigra axistags JSON string describing the exported axis order."""
    axes = [
        {'key': key, 'typeFlags': _AXIS_TYPE_FLAGS[key], 'resolution': 0, 'description': ''}
        for key in keys
    ]
    return json.dumps({'axes': axes}, indent=2)


def validate_compression(compression):
    """Check a deflate level and return it as an int."""
    if isinstance(compression, bool) or not isinstance(compression, (int, np.integer)):
        raise ValueError(f"Compression level must be an integer, got {compression!r}")
    if not 0 <= compression <= MAX_COMPRESSION_LEVEL:
        raise ValueError(
            f"Compression level must be between 0 and {MAX_COMPRESSION_LEVEL}, got {compression}"
        )
    return int(compression)


class ExportSession:
    """Lifecycle of one exported dataset: bounded -> extended -> closed."""

    BOUNDED = 'bounded'
    EXTENDED = 'extended'
    CLOSED = 'closed'

    def __init__(self, h5file, name, dims, kind, final_shape, compression=0,
                 chunk_divisor=DEFAULT_CHUNK_DIVISOR, overwrite=False,
                 write_axistags=True, logger=None):
        self.logger = logger or logging.getLogger('ilastik_h5export')
        self.h5file = h5file
        self.name = name
        self.dims = dims
        self.kind = kind
        self.final_shape = tuple(final_shape)
        self.compression = validate_compression(compression)
        self.chunks = dims.chunk_shape(chunk_divisor)
        self.unit_shape = (1, dims.columns, dims.rows, 1, 1)
        self.overwrite = overwrite
        self.write_axistags = write_axistags

        self.dataset = None
        self.state = None
        self.writes = []
        self.extensions = 0

    def __enter__(self):
        self.create()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.logger.error(
                f"Export of '{self.name}' aborted after {len(self.writes)} unit writes: {exc_val}"
            )
        self.close()
        return False

    def create(self):
        """Create the dataset with the shape of a single unit and unlimited maxshape."""
        if self.name in self.h5file:
            if not self.overwrite:
                raise DatasetExistsError(
                    f"Dataset '{self.name}' already exists in {self.h5file.filename}"
                )
            self.logger.info(f"Replacing existing dataset '{self.name}'")
            del self.h5file[self.name]

        compression_args = {}
        if self.compression > 0:
            compression_args = {'compression': 'gzip', 'compression_opts': self.compression}

        self.logger.debug(
            f"Creating dataset '{self.name}': type={self.kind.h5_type}, "
            f"initial shape={self.unit_shape}, chunks={self.chunks}, "
            f"compression={self.compression}"
        )

        self.dataset = self.h5file.create_dataset(
            self.name,
            shape=self.unit_shape,
            maxshape=(None,) * 5,
            chunks=self.chunks,
            dtype=self.kind.dtype,
            **compression_args,
        )
        if self.write_axistags:
            self.dataset.attrs['axistags'] = axistags_json()

        self.state = self.BOUNDED
        return self.dataset

    def write_unit(self, buffer, t, z, c):
        """Write one transposed plane at frame t, level z, channel c.

        The first unit fills the whole (still unit-sized) dataset. The dataset
        is then grown to its final shape and every later unit goes through a
        hyperslab selection.
        """
        if self.state not in (self.BOUNDED, self.EXTENDED):
            raise RuntimeError(f"Dataset '{self.name}' is not open for writing")

        unit = np.ascontiguousarray(buffer).reshape(self.unit_shape)

        if self.state == self.BOUNDED:
            self.dataset.write_direct(unit)
            self.writes.append(UnitWrite(t, z, c))
            self._extend()
        else:
            selection = np.s_[t:t + 1, :, :, z:z + 1, c:c + 1]
            self.dataset.write_direct(unit, dest_sel=selection)
            self.writes.append(UnitWrite(t, z, c))

    def _extend(self):
        """Grow the dataset to its final shape; happens once per export."""
        self.dataset.resize(self.final_shape)
        self.extensions += 1
        self.state = self.EXTENDED
        self.logger.debug(f"Extended dataset '{self.name}' to {self.final_shape}")

    def close(self):
        """Flush and release the dataset handle."""
        if self.state == self.CLOSED:
            return False

        if self.dataset is not None:
            self.dataset.flush()
            self.dataset = None
        self.state = self.CLOSED
        return True


def write_typed(session, buffer, t, z, c):
    """Write a buffer through the session using the HDF5 type matching its element kind.

    No conversion is done: a buffer whose kind differs from the dataset's kind
    is rejected before anything is written.
    """
    kind = PixelKind.of(buffer)
    if kind is not session.kind:
        raise PixelKindMismatchError(session.kind, kind)
    session.write_unit(buffer, t, z, c)
    return kind
