from __future__ import annotations

import h5py
import numpy as np
import pytest

from ilastik_h5export import (
    DatasetExistsError,
    ExporterStateError,
    HDF5Exporter,
    ImageStack,
    InvalidDimensionsError,
    UnsupportedPixelKindError,
)
from ilastik_h5export.core import export_manager
from ilastik_h5export.core.h5_writer import UnitWrite

from .conftest import make_rgb_stack, make_stack


@pytest.fixture
def call_log(monkeypatch):
    """Record the order of dataset writes and extent changes."""
    events = []
    write_direct = h5py.Dataset.write_direct
    resize = h5py.Dataset.resize

    def logged_write(self, *args, **kwargs):
        events.append("write")
        return write_direct(self, *args, **kwargs)

    def logged_resize(self, *args, **kwargs):
        events.append("resize")
        return resize(self, *args, **kwargs)

    monkeypatch.setattr(h5py.Dataset, "write_direct", logged_write)
    monkeypatch.setattr(h5py.Dataset, "resize", logged_resize)
    return events


def test_grayscale_8bit_scenario(h5_path):
    stack = make_stack(frames=2, height=16, width=16, dtype=np.uint8)

    with HDF5Exporter(str(h5_path)) as exporter:
        result = exporter.export(stack)

    assert result.name == "exported_data"
    assert result.shape == (2, 16, 16, 1, 1)
    assert result.dtype == "u1"
    assert result.compression == 0

    with h5py.File(h5_path, "r") as f:
        dataset = f["exported_data"]
        assert dataset.shape == (2, 16, 16, 1, 1)
        assert dataset.dtype == np.uint8
        assert dataset.compression is None
        frame0 = dataset[0, :, :, 0, 0]

    source = stack.get_pixels(1).reshape(16, 16)
    assert frame0[3, 5] == source[5, 3]
    assert frame0.ravel()[5 + 3 * 16] == source[5, 3]


def test_grayscale_16bit_writes_channel_fastest(h5_path, call_log):
    stack = make_stack(frames=1, depth=3, channels=2, height=16, width=16, dtype=np.uint16)

    with HDF5Exporter(str(h5_path)) as exporter:
        result = exporter.export(stack)

    assert result.writes == [
        UnitWrite(0, 0, 0), UnitWrite(0, 0, 1),
        UnitWrite(0, 1, 0), UnitWrite(0, 1, 1),
        UnitWrite(0, 2, 0), UnitWrite(0, 2, 1),
    ]
    assert call_log == ["write", "resize"] + ["write"] * 5

    with h5py.File(h5_path, "r") as f:
        data = f["exported_data"][...]
    assert data.dtype == np.uint16
    for z in range(3):
        for c in range(2):
            np.testing.assert_array_equal(data[0, :, :, z, c], stack.data[0, z, c].T)


def test_rgb_scenario(h5_path, call_log):
    stack = make_rgb_stack(frames=1, depth=2, height=16, width=16)

    with HDF5Exporter(str(h5_path)) as exporter:
        result = exporter.export(stack)

    assert result.shape == (1, 16, 16, 2, 3)
    assert result.dtype == "u1"
    assert result.writes == [
        UnitWrite(0, 0, 0), UnitWrite(0, 0, 1), UnitWrite(0, 0, 2),
        UnitWrite(0, 1, 0), UnitWrite(0, 1, 1), UnitWrite(0, 1, 2),
    ]
    assert call_log == ["write", "resize"] + ["write"] * 5

    with h5py.File(h5_path, "r") as f:
        data = f["exported_data"][...]
    assert data.dtype == np.uint8
    for z in range(2):
        for c in range(3):
            np.testing.assert_array_equal(data[0, :, :, z, c], stack.data[0, z, :, :, c].T)


def test_reopen_on_open_exporter_returns_sentinel(h5_path, tmp_path):
    exporter = HDF5Exporter(str(h5_path))
    handle = exporter.file

    assert exporter.open(str(tmp_path / "other.h5")) is None
    assert exporter.create(str(tmp_path / "other.h5")) is None
    assert exporter.file is handle
    assert exporter.filename == str(h5_path)
    assert not (tmp_path / "other.h5").exists()

    assert exporter.close() is True
    assert exporter.close() is False


@pytest.mark.parametrize(
    "frames, depth, channels, dtype",
    [
        (1, 1, 1, np.uint8),
        (3, 2, 1, np.uint16),
        (2, 1, 3, np.uint32),
        (2, 2, 2, np.float32),
    ],
)
def test_grayscale_shape_and_write_count(h5_path, frames, depth, channels, dtype):
    stack = make_stack(frames=frames, depth=depth, channels=channels, height=24, width=40, dtype=dtype)

    with HDF5Exporter(str(h5_path)) as exporter:
        result = exporter.export(stack, 2)

    assert result.shape == (frames, 40, 24, depth, channels)
    assert result.n_writes == frames * depth * channels
    assert result.extensions == 1
    assert result.chunks == (1, 5, 3, depth, channels)

    with h5py.File(h5_path, "r") as f:
        dataset = f["exported_data"]
        assert dataset.shape == result.shape
        assert dataset.chunks == result.chunks
        assert dataset.dtype == np.dtype(dtype)
        assert dataset.compression_opts == 2
        np.testing.assert_array_equal(
            dataset[...], np.transpose(stack.data, (0, 4, 3, 1, 2))
        )


@pytest.mark.parametrize("frames, depth", [(1, 1), (3, 1), (2, 4)])
def test_rgb_shape_and_write_count(h5_path, frames, depth):
    stack = make_rgb_stack(frames=frames, depth=depth, height=16, width=8)

    with HDF5Exporter(str(h5_path)) as exporter:
        result = exporter.export(stack)

    assert result.shape == (frames, 8, 16, depth, 3)
    assert result.n_writes == frames * depth * 3
    assert result.extensions == 1
    assert result.chunks == (1, 1, 2, depth, 1)

    with h5py.File(h5_path, "r") as f:
        np.testing.assert_array_equal(
            f["exported_data"][...], np.transpose(stack.data, (0, 3, 2, 1, 4))
        )


def test_color_frame_bound_is_exclusive():
    assert export_manager.COLOR_FRAME_STOP_OFFSET == 0


def test_rgb_export_visits_every_frame_once(h5_path):
    stack = make_rgb_stack(frames=3, depth=1, height=8, width=8)
    requested = []
    get_pixels = stack.get_pixels

    def tracking_get_pixels(index):
        requested.append(index)
        return get_pixels(index)

    stack.get_pixels = tracking_get_pixels

    with HDF5Exporter(str(h5_path)) as exporter:
        exporter.export(stack)

    assert requested == [1, 2, 3]


def test_export_call_forms(h5_path):
    stack = make_stack(frames=1, height=16, width=16)

    with HDF5Exporter(str(h5_path)) as exporter:
        assert exporter.export(stack).name == "exported_data"
        default_named = exporter.export(stack, "by_name")
        compressed = exporter.export(stack, 5, "both")
        assert exporter.export(stack, 1, datasetname="keyword").compression == 1

    assert default_named.name == "by_name"
    assert default_named.compression == 0
    assert compressed.name == "both"
    assert compressed.compression == 5

    with h5py.File(h5_path, "r") as f:
        assert sorted(f.keys()) == ["both", "by_name", "exported_data", "keyword"]
        assert f["both"].compression_opts == 5


def test_existing_file_is_opened_not_truncated(h5_path):
    with h5py.File(h5_path, "w") as f:
        f.create_dataset("keep", data=np.arange(4))

    with HDF5Exporter(str(h5_path)) as exporter:
        exporter.export(make_stack(height=8, width=8))

    with h5py.File(h5_path, "r") as f:
        assert set(f.keys()) == {"keep", "exported_data"}


def test_missing_file_is_created(h5_path):
    assert not h5_path.exists()
    with HDF5Exporter(str(h5_path)) as exporter:
        assert exporter.is_open
    assert h5_path.exists()


def test_non_hdf5_file_is_recreated(h5_path):
    h5_path.write_text("not an hdf5 file")
    with HDF5Exporter(str(h5_path)) as exporter:
        exporter.export(make_stack(height=8, width=8))
    with h5py.File(h5_path, "r") as f:
        assert "exported_data" in f


def test_unnamed_exporter_starts_closed(h5_path):
    exporter = HDF5Exporter()
    assert not exporter.is_open
    with pytest.raises(ExporterStateError):
        exporter.export(make_stack(height=8, width=8))

    assert exporter.create(str(h5_path)) is exporter.file
    exporter.export(make_stack(height=8, width=8))
    exporter.close()

    assert exporter.open() is exporter.file
    assert "exported_data" in exporter.file
    exporter.close()


def test_export_after_close_fails_loudly(h5_path):
    exporter = HDF5Exporter(str(h5_path))
    exporter.close()
    with pytest.raises(ExporterStateError):
        exporter.export(make_stack(height=8, width=8))


def test_duplicate_dataset_name(h5_path):
    stack = make_stack(height=8, width=8)
    with HDF5Exporter(str(h5_path)) as exporter:
        exporter.export(stack)
        with pytest.raises(DatasetExistsError):
            exporter.export(stack)
        result = exporter.export(make_stack(frames=2, height=8, width=8), overwrite=True)
    assert result.shape == (2, 8, 8, 1, 1)


def test_unsupported_pixel_type_aborts_export(h5_path):
    stack = ImageStack.from_array(np.zeros((2, 8, 8), dtype=np.int16), "TYX")
    with HDF5Exporter(str(h5_path)) as exporter:
        with pytest.raises(UnsupportedPixelKindError):
            exporter.export(stack)
        assert "exported_data" not in exporter.file


def test_rgb_with_extra_channels_rejected(h5_path):
    stack = make_rgb_stack(height=8, width=8)
    stack.dimensions["channels"] = 2
    with HDF5Exporter(str(h5_path)) as exporter:
        with pytest.raises(InvalidDimensionsError):
            exporter.export(stack)


def test_slice_count_mismatch_rejected(h5_path):
    class ShortStack:
        width = height = 8
        n_frames = 2
        n_slices = 1
        n_channels = 1
        size = 1
        is_rgb = False

        def get_pixels(self, index):
            return np.zeros(64, dtype=np.uint8)

    with HDF5Exporter(str(h5_path)) as exporter:
        with pytest.raises(InvalidDimensionsError):
            exporter.export(ShortStack())


def test_invalid_compression_rejected(h5_path):
    with HDF5Exporter(str(h5_path)) as exporter:
        with pytest.raises(ValueError):
            exporter.export(make_stack(height=8, width=8), 12)


@pytest.mark.parametrize("dtype", [">u2", ">f4"])
def test_big_endian_stack_exports_values(h5_path, dtype):
    data = np.arange(2 * 16 * 16).reshape(2, 16, 16).astype(dtype)
    stack = ImageStack.from_array(data, "TYX")

    with HDF5Exporter(str(h5_path)) as exporter:
        result = exporter.export(stack)

    assert result.shape == (2, 16, 16, 1, 1)
    with h5py.File(h5_path, "r") as f:
        exported = f["exported_data"][...]
    assert exported.dtype == np.dtype(dtype).newbyteorder("=")
    np.testing.assert_array_equal(exported[:, :, :, 0, 0], np.transpose(data, (0, 2, 1)))


@pytest.mark.parametrize("divisor", [0, -8, 2.5])
def test_invalid_chunk_divisor_rejected(h5_path, divisor):
    with pytest.raises(ValueError, match="Chunk divisor"):
        HDF5Exporter(str(h5_path), chunk_divisor=divisor)
    assert not h5_path.exists()
