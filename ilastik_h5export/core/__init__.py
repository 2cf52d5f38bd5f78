"""
Core functionality for the ilastik HDF5 exporter.

This package contains modules for dimension handling, pixel layout conversion,
HDF5 dataset writing, and the export entry point.
"""

__all__ = ['dimensions', 'pixels', 'h5_writer', 'export_manager', 'image_stack', 'errors']
