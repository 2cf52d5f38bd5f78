"""
Image stack loading and slice access for export.
"""

import os
import re
import logging
from pathlib import Path

import numpy as np
from tifffile import TiffFile
from skimage import io, transform

# Axis letters tifffile uses for unlabelled leading dimensions
_FRAME_LIKE_AXES = ('I', 'Q')


class ImageStack:
    """Class for holding a 5D image stack and serving its slices.

    Grayscale data is kept as (T, Z, C, Y, X), colour data as (T, Z, Y, X, 3).
    Slices are addressed by a 1-based linear index with channels varying
    fastest, then depth, then frames.
    """

    def __init__(self, data=None, is_rgb=False, logger=None):
        """Initialize image stack from already ordered data."""
        self.logger = logger or logging.getLogger('ilastik_h5export')
        self.data = data
        self.is_rgb = is_rgb
        self.file_path = None
        self.metadata = {}
        self.dimensions = None
        self._update_dimensions()

    @classmethod
    def from_array(cls, data, axes='TZCYX', logger=None):
        """Build a stack from an array with the given axis letters.

        Supported letters are T, Z, C, Y, X and S (interleaved RGB samples).
        Missing T, Z and C axes are added with length one, and an alpha
        sample of RGBA data is dropped.
        """
        data = np.asarray(data)
        axes = axes.upper()

        # Check axis labels against the array
        if len(axes) != data.ndim:
            raise ValueError(f"Axes '{axes}' do not match array with {data.ndim} dimensions")

        # Unlabelled leading axes count as frames
        axes = ''.join('T' if a in _FRAME_LIKE_AXES else a for a in axes)
        unknown = set(axes) - set('TZCYXS')
        if unknown or len(set(axes)) != len(axes):
            raise ValueError(f"Unsupported axes '{axes}'")
        if 'Y' not in axes or 'X' not in axes:
            raise ValueError(f"Axes '{axes}' must contain both Y and X")

        # Colour data keeps its samples as the last axis
        is_rgb = 'S' in axes
        if is_rgb and 'C' in axes:
            raise ValueError("RGB data cannot have a separate channel axis")
        if is_rgb:
            samples = data.shape[axes.index('S')]
            if samples == 4:
                # Drop alpha
                data = np.take(data, [0, 1, 2], axis=axes.index('S'))
            elif samples != 3:
                raise ValueError(f"RGB data needs 3 or 4 samples, got {samples}")

        # Add missing axes in front, then reorder
        target = 'TZYXS' if is_rgb else 'TZCYX'
        for axis in target:
            if axis not in axes:
                data = data[np.newaxis]
                axes = axis + axes

        data = np.transpose(data, [axes.index(a) for a in target])
        return cls(np.ascontiguousarray(data), is_rgb=is_rgb, logger=logger)

    def load_tiff(self, file_path):
        """Load a TIFF stack from file."""
        self.logger.info(f"Loading TIFF stack from {file_path}")

        try:
            # Read the first series together with its axis labels
            with TiffFile(file_path) as tif:
                series = tif.series[0]
                data = series.asarray()
                axes = series.axes

                # Keep ImageJ metadata if present
                if tif.imagej_metadata:
                    for key, value in tif.imagej_metadata.items():
                        self.metadata[f'ImageJ_{key}'] = value

            # Reorder into the export layout
            stack = ImageStack.from_array(data, axes, logger=self.logger)
            self.data = stack.data
            self.is_rgb = stack.is_rgb
            self.file_path = file_path

            # Update dimensions and metadata
            self._update_dimensions()
            self._extract_metadata(axes)

            self.logger.info(f"Loaded TIFF stack with axes {axes} and shape {data.shape}")
            return True

        except Exception as e:
            self.logger.error(f"Error loading TIFF stack: {e}")
            return False

    def _update_dimensions(self):
        """Update dimension information based on loaded data."""
        if self.data is not None:
            if self.is_rgb:
                frames, slices, height, width, _ = self.data.shape
                channels = 1
            else:
                frames, slices, channels, height, width = self.data.shape
            self.dimensions = {
                'frames': frames,
                'slices': slices,
                'channels': channels,
                'height': height,
                'width': width,
            }
        else:
            self.dimensions = None

    def _extract_metadata(self, axes):
        """Record basic file metadata."""
        self.metadata.update({
            'filename': os.path.basename(self.file_path),
            'directory': os.path.dirname(self.file_path),
            'size_mb': os.path.getsize(self.file_path) / (1024 * 1024),
            'dtype': str(self.data.dtype),
            'source_axes': axes,
            'dimensions': self.dimensions,
        })

    def _dim(self, key):
        return self.dimensions[key] if self.dimensions else 0

    @property
    def width(self):
        return self._dim('width')

    @property
    def height(self):
        return self._dim('height')

    @property
    def n_frames(self):
        return self._dim('frames')

    @property
    def n_slices(self):
        return self._dim('slices')

    @property
    def n_channels(self):
        return self._dim('channels')

    @property
    def size(self):
        """Number of 2D planes in the stack."""
        return self.n_frames * self.n_slices * self.n_channels

    @property
    def bit_depth(self):
        """Bits per pixel; colour stacks report 24."""
        if self.data is None:
            return 0
        if self.is_rgb:
            return 24
        return self.data.dtype.itemsize * 8

    def get_pixels(self, index):
        """Return the flat row-major pixels of the slice at a 1-based index.

        Colour stacks return an interleaved (height * width, 3) array.
        """
        if self.data is None:
            raise ValueError("Image stack has no data")
        if not 1 <= index <= self.size:
            raise IndexError(f"Slice index {index} out of range 1..{self.size}")

        # Channels vary fastest, then depth, then frames
        position = index - 1
        channels = self.n_channels
        slices = self.n_slices
        c = position % channels
        z = (position // channels) % slices
        t = position // (channels * slices)

        if self.is_rgb:
            return self.data[t, z].reshape(-1, 3)
        return self.data[t, z, c].ravel()


class ImageLoader:
    """Class to handle loading image files into stacks."""

    def __init__(self, logger=None):
        self.logger = logger or logging.getLogger('ilastik_h5export')
        self.supported_formats = {
            'tiff': ['.tif', '.tiff'],
            'image_series': ['.png', '.jpg', '.jpeg', '.bmp']
        }

    def load_file(self, file_path):
        """Load image data from file and return an ImageStack."""
        file_path = Path(file_path)
        if not file_path.exists():
            self.logger.error(f"File not found: {file_path}")
            return None

        ext = file_path.suffix.lower()
        image_stack = ImageStack(logger=self.logger)

        if ext in self.supported_formats['tiff']:
            success = image_stack.load_tiff(str(file_path))

        elif ext in self.supported_formats['image_series']:
            success = self._load_image_series(image_stack, file_path)

        else:
            self.logger.error(f"Unsupported file format: {ext}")
            return None

        if success:
            return image_stack
        return None

    def _load_image_series(self, image_stack, file_path):
        """Load a numbered series of 2D images as frames of one stack."""
        try:
            directory = file_path.parent
            base_name = file_path.name.split('.')[0]
            extension = file_path.suffix

            # Strip a trailing frame number so any member of the series can be passed
            prefix = re.sub(r'_?\d+$', '', base_name)
            pattern = re.compile(rf"{re.escape(prefix)}_?(\d+){re.escape(extension)}$")

            # Collect numbered files sharing the prefix
            matching_files = []
            for f in directory.glob(f"*{extension}"):
                match = pattern.match(f.name)
                if match:
                    matching_files.append((int(match.group(1)), f))
            matching_files.sort(key=lambda x: x[0])

            if not matching_files:
                self.logger.info("No image series found, loading single image")
                matching_files = [(0, file_path)]
            else:
                self.logger.info(f"Loading image series with {len(matching_files)} files")

            # Load first image to get dimensions
            first_img = io.imread(str(matching_files[0][1]))
            all_images = np.zeros((len(matching_files), *first_img.shape), dtype=first_img.dtype)
            all_images[0] = first_img
            for i, (_, img_path) in enumerate(matching_files[1:], 1):
                img = io.imread(str(img_path))
                # Resize frames that do not match the first one
                if img.shape != first_img.shape:
                    img = transform.resize(img, first_img.shape, preserve_range=True).astype(first_img.dtype)
                all_images[i] = img

            # Frames become the T axis; RGBA alpha is dropped by from_array
            axes = 'TYXS' if all_images.ndim == 4 else 'TYX'
            stack = ImageStack.from_array(all_images, axes, logger=self.logger)
            image_stack.data = stack.data
            image_stack.is_rgb = stack.is_rgb
            image_stack.file_path = str(file_path)

            # Update dimensions and metadata
            image_stack._update_dimensions()
            image_stack._extract_metadata(axes)
            return True

        except Exception as e:
            self.logger.error(f"Error loading image series: {e}")
            return False
