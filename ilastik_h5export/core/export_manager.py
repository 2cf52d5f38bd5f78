"""
Export of image stacks to ilastik HDF5 files.
"""

import logging
from dataclasses import dataclass, field

import h5py

from .dimensions import DEFAULT_CHUNK_DIVISOR, resolve_dims
from .errors import ExporterStateError, InvalidDimensionsError
from .h5_writer import ExportSession, write_typed
from .pixels import PixelKind, split_rgb, transpose_slice

DEFAULT_DATASET_NAME = 'exported_data'
RGB_CHANNELS = 3

# Colour frames run over range(frames + COLOR_FRAME_STOP_OFFSET), i.e. the
# same exclusive bound as the grayscale path.
COLOR_FRAME_STOP_OFFSET = 0


@dataclass
class ExportResult:
    """Summary of one finished export."""

    name: str
    shape: tuple
    dtype: str
    chunks: tuple
    compression: int
    writes: list = field(default_factory=list)
    extensions: int = 0

    @property
    def n_writes(self):
        return len(self.writes)


class HDF5Exporter:
    """Writes image stacks into an HDF5 file in the layout ilastik reads.

    The file is opened for read/write if it exists, otherwise it is created.
    Every export call adds one 5D dataset with axes (t, x, y, z, c).
    """

    def __init__(self, filename='', chunk_divisor=DEFAULT_CHUNK_DIVISOR,
                 write_axistags=True, logger=None):
        """Initialize exporter and open or create the file when a name is given."""
        self.logger = logger or logging.getLogger('ilastik_h5export')

        if not isinstance(chunk_divisor, int) or chunk_divisor < 1:
            raise ValueError(f"Chunk divisor must be a positive integer, got {chunk_divisor!r}")

        self.filename = filename
        self.file = None
        self.chunk_divisor = chunk_divisor
        self.write_axistags = write_axistags

        # Open an existing file, fall back to creating it
        if filename:
            try:
                self.open(filename)
            except OSError as e:
                self.logger.debug(f"Could not open {filename} ({e}), creating it")
                self.create(filename)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def is_open(self):
        return self.file is not None

    def open(self, name=None):
        """Open an existing HDF5 file for writing.

        Returns:
            The open h5py.File, or None if a file is already open
        """
        if self.is_open:
            self.logger.warning(f"Cannot open {name or self.filename}: {self.filename} is already open")
            return None

        if name is not None:
            self.filename = name
        self.file = h5py.File(self.filename, 'r+')
        self.logger.info(f"Opened HDF5 file {self.filename}")
        return self.file

    def create(self, name=None):
        """Create (or truncate) an HDF5 file for writing.

        Returns:
            The open h5py.File, or None if a file is already open
        """
        if self.is_open:
            self.logger.warning(f"Cannot create {name or self.filename}: {self.filename} is already open")
            return None

        if name is not None:
            self.filename = name
        self.file = h5py.File(self.filename, 'w')
        self.logger.info(f"Created HDF5 file {self.filename}")
        return self.file

    def close(self):
        """Close the HDF5 file.

        Returns:
            True if a file was closed, False if nothing was open
        """
        if not self.is_open:
            return False

        self.file.close()
        self.file = None
        self.logger.info(f"Closed HDF5 file {self.filename}")
        return True

    def export(self, image, compression=0, datasetname=DEFAULT_DATASET_NAME, overwrite=False):
        """Save an image stack as a new dataset in the open file.

        Args:
            image: Host image stack (see ImageStack)
            compression: Deflate level 0-9, 0 disables compression. A string
                here is taken as the dataset name.
            datasetname: Name of the dataset to create
            overwrite: Replace an existing dataset of the same name

        Returns:
            ExportResult describing the written dataset
        """
        # export(image, name) form
        if isinstance(compression, str):
            datasetname, compression = compression, 0

        if not self.is_open:
            raise ExporterStateError("No HDF5 file is open for export")

        # Choose the colour or grayscale path from the image type
        dims = resolve_dims(image)
        self.logger.info(
            f"Exporting {'RGB' if image.is_rgb else 'grayscale'} stack {dims.shape} "
            f"to {self.filename}:/{datasetname}"
        )

        if image.is_rgb:
            result = self._export_rgb(image, dims, datasetname, compression, overwrite)
        else:
            result = self._export_stack(image, dims, datasetname, compression, overwrite)

        self.logger.info(
            f"Exported {result.n_writes} planes to {datasetname} with shape {result.shape}"
        )
        return result

    def _session(self, dims, name, kind, final_shape, compression, overwrite):
        return ExportSession(
            self.file, name, dims, kind, final_shape,
            compression=compression,
            chunk_divisor=self.chunk_divisor,
            overwrite=overwrite,
            write_axistags=self.write_axistags,
            logger=self.logger,
        )

    def _export_stack(self, image, dims, name, compression, overwrite):
        """Write a grayscale or float stack, one unit per source slice."""
        if image.size != dims.n_slices:
            raise InvalidDimensionsError(
                f"Stack holds {image.size} slices but dimensions {dims.shape} need {dims.n_slices}"
            )

        # Dataset type follows the first slice
        first = image.get_pixels(dims.slice_index(0, 0, 0))
        kind = PixelKind.of(first)

        with self._session(dims, name, kind, dims.shape, compression, overwrite) as session:
            for t in range(dims.frames):
                self.logger.debug(f"Writing frame {t + 1}/{dims.frames}")
                for z in range(dims.depth):
                    for c in range(dims.channels):
                        # Fetch, transpose and write one plane per unit
                        index = dims.slice_index(t, z, c)
                        pixels = first if index == 1 else image.get_pixels(index)
                        plane = transpose_slice(pixels, dims.rows, dims.columns)
                        write_typed(session, plane, t, z, c)

        return self._result(session)

    def _export_rgb(self, image, dims, name, compression, overwrite):
        """Write a colour stack as three uint8 channel planes per source slice."""
        if dims.channels != 1:
            raise InvalidDimensionsError(
                f"RGB stacks must have a single channel axis entry, got {dims.channels}"
            )

        # Colour planes go to a trailing axis of three uint8 channels
        final_shape = (dims.frames, dims.columns, dims.rows, dims.depth, RGB_CHANNELS)

        with self._session(dims, name, PixelKind.UINT8, final_shape, compression, overwrite) as session:
            for t in range(dims.frames + COLOR_FRAME_STOP_OFFSET):
                self.logger.debug(f"Writing frame {t + 1}/{dims.frames}")
                for z in range(dims.depth):
                    # One interleaved slice gives three unit writes
                    pixels = image.get_pixels(dims.slice_index(t, z, 0))
                    planes = split_rgb(pixels, dims.rows, dims.columns)
                    for c, plane in enumerate(planes):
                        write_typed(session, plane, t, z, c)

        return self._result(session)

    @staticmethod
    def _result(session):
        return ExportResult(
            name=session.name,
            shape=session.final_shape,
            dtype=session.kind.h5_type,
            chunks=session.chunks,
            compression=session.compression,
            writes=list(session.writes),
            extensions=session.extensions,
        )
