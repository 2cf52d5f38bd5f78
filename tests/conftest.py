from __future__ import annotations

import logging

import numpy as np
import pytest

from ilastik_h5export import ImageStack


def make_stack(frames=1, depth=1, channels=1, height=16, width=16, dtype=np.uint8):
    """Grayscale stack whose pixels are all distinct (modulo the dtype range)."""
    shape = (frames, depth, channels, height, width)
    data = np.arange(np.prod(shape)).reshape(shape)
    if np.issubdtype(np.dtype(dtype), np.integer):
        data = data % (np.iinfo(dtype).max + 1)
    return ImageStack.from_array(data.astype(dtype), 'TZCYX')


def make_rgb_stack(frames=1, depth=1, height=16, width=16):
    shape = (frames, depth, height, width, 3)
    rng = np.random.default_rng(0)
    data = rng.integers(0, 256, size=shape, dtype=np.uint8)
    return ImageStack.from_array(data, 'TZYXS')


@pytest.fixture
def h5_path(tmp_path):
    return tmp_path / "export.h5"


@pytest.fixture
def gray_stack():
    return make_stack(frames=2, depth=3, channels=2, height=24, width=16, dtype=np.uint16)


@pytest.fixture
def rgb_stack():
    return make_rgb_stack(frames=2, depth=2, height=16, width=24)


@pytest.fixture(autouse=True)
def _quiet_logger():
    logger = logging.getLogger('ilastik_h5export')
    handlers = list(logger.handlers)
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
