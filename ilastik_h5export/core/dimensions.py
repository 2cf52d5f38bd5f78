"""
Image dimension handling for the HDF5 export.

Dimensions follow the ilastik axis order (frame, column, row, depth, channel).
"""

from dataclasses import dataclass

from .errors import InvalidDimensionsError

DEFAULT_CHUNK_DIVISOR = 8


@dataclass(frozen=True)
class ImageDims:
    """Sizes of an image stack along the five exported axes."""

    frames: int
    columns: int
    rows: int
    depth: int
    channels: int

    def __post_init__(self):
        for field_name in ('frames', 'columns', 'rows', 'depth', 'channels'):
            value = getattr(self, field_name)
            if int(value) != value or value < 1:
                raise InvalidDimensionsError(
                    f"Image {field_name} must be a positive integer, got {value!r}"
                )

    @property
    def shape(self):
        """Return the dimensions as a (t, x, y, z, c) tuple."""
        return (self.frames, self.columns, self.rows, self.depth, self.channels)

    @property
    def n_slices(self):
        """Number of 2D planes in the source stack."""
        return self.frames * self.depth * self.channels

    def slice_index(self, t, z, c):
        """Return the 1-based linear slice index for frame t, level z, channel c.

        Channels vary fastest, then depth, then frames, which is the order the
        host stack stores its planes in.
        """
        return t * self.channels * self.depth + z * self.channels + c + 1

    def chunk_shape(self, divisor=DEFAULT_CHUNK_DIVISOR):
        """Return the HDF5 chunk shape for these dimensions.

        Spatial chunk sizes are one eighth of the image (by default) and never
        smaller than one pixel.
        """
        return (
            1,
            max(1, self.columns // divisor),
            max(1, self.rows // divisor),
            self.depth,
            self.channels,
        )


def resolve_dims(image):
    """Extract the export dimensions from a host image.

    Width maps to columns and height to rows without any reinterpretation.
    """
    if image is None:
        raise InvalidDimensionsError("No image to export")

    return ImageDims(
        frames=image.n_frames,
        columns=image.width,
        rows=image.height,
        depth=image.n_slices,
        channels=image.n_channels,
    )
