"""
Utility functions for the ilastik HDF5 exporter.

This package contains helper modules for logging and configuration.
"""

__all__ = ['logger', 'config']
