"""
Tests for the Dataset model and the array <-> Dataset transform.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from peelcal.data.dataset import Dataset, Polarization
from peelcal.data.metadata import Metadata, all_baselines
from peelcal.data.transform import pack, unpack, unpack_flags
from peelcal.jones.matrices import JonesMatrix, DiagonalJonesMatrix
from peelcal.sky.coordinates import Direction, AZEL

OVRO = np.array([-2409150.4, -4478573.1, 3838617.3])
ZENITH = Direction(AZEL, 0.0, np.pi / 2)


def make_metadata(n_ant=4, n_freq=3, n_time=1, seed=0):
    """Small array around a fixed site with zenith phase centre."""
    rng = np.random.default_rng(seed)
    positions = OVRO + rng.uniform(-100, 100, size=(n_ant, 3))
    channels = np.linspace(40e6, 60e6, n_freq)
    times = 5e9 + 13.0 * np.arange(n_time)
    return Metadata.from_arrays(positions, channels, ZENITH, times=times)


def random_array(shape, seed=1):
    rng = np.random.default_rng(seed)
    return rng.normal(size=shape) + 1j * rng.normal(size=shape)


class TestMetadata:
    """Test metadata construction."""

    def test_counts(self):
        meta = make_metadata(n_ant=4, n_freq=3, n_time=2)
        assert meta.n_ant == 4
        assert meta.n_base == 10
        assert meta.n_freq == 3
        assert meta.n_time == 2

    def test_all_baselines(self):
        baselines = all_baselines(3)
        pairs = [(b.antenna1, b.antenna2) for b in baselines]
        assert pairs == [(0, 0), (0, 1), (0, 2), (1, 1), (1, 2), (2, 2)]

    def test_autocorrelations(self):
        meta = make_metadata(n_ant=3)
        assert meta.autocorrelations().sum() == 3

    def test_channels_read_only(self):
        meta = make_metadata()
        with pytest.raises(ValueError):
            meta.channels[0] = 0.0

    def test_bad_baseline(self):
        with pytest.raises(ValueError):
            Metadata.from_arrays(np.zeros((2, 3)), [50e6], ZENITH,
                                 antenna1=[0], antenna2=[5])

    def test_baseline_lengths(self):
        meta = Metadata.from_arrays(
            [[0, 0, 0], [30, 0, 0]], [299792458.0 / 3], ZENITH,
            antenna1=[0], antenna2=[1],
        )
        assert_allclose(meta.baseline_lengths(0), [10.0])

    def test_slice_and_collapse(self):
        meta = make_metadata(n_freq=4)
        assert_allclose(meta.slice_channels([1, 3]).channels, meta.channels[[1, 3]])
        collapsed = meta.collapse_channels()
        assert collapsed.n_freq == 1
        assert_allclose(collapsed.channels, [50e6])


class TestDataset:
    """Test Dataset cell access and arithmetic."""

    def test_full_cells(self):
        data = Dataset(make_metadata(), Polarization.FULL)
        J = JonesMatrix(1, 2j, 3, 4)
        data[1, 2, 0] = J
        assert data[1, 2, 0] == J
        assert data.data.shape == (3, 10, 1, 2, 2)

    def test_dual_cells(self):
        data = Dataset(make_metadata(), Polarization.DUAL)
        data[0, 1, 0] = DiagonalJonesMatrix(1, 2)
        assert data[0, 1, 0] == DiagonalJonesMatrix(1, 2)
        assert data.data.shape == (3, 10, 1, 2)

    def test_single_cells(self):
        data = Dataset(make_metadata(), Polarization.YY)
        data[0, 1, 0] = 2 + 1j
        assert data[0, 1, 0] == 2 + 1j
        assert data.data.shape == (3, 10, 1)

    def test_full_rejects_scalar(self):
        data = Dataset(make_metadata(), Polarization.FULL)
        with pytest.raises(TypeError):
            data[0, 0, 0] = 1.0

    def test_bad_data_shape(self):
        with pytest.raises(ValueError):
            Dataset(make_metadata(), Polarization.FULL, np.zeros((3, 10, 1, 2)))

    def test_add_subtract(self):
        meta = make_metadata()
        a = Dataset(meta, Polarization.FULL, random_array((3, 10, 1, 2, 2), seed=1))
        b = Dataset(meta, Polarization.FULL, random_array((3, 10, 1, 2, 2), seed=2))
        expected = a.data + b.data
        a.add(b)
        assert_allclose(a.data, expected)
        a.subtract(b)
        a.subtract(b)
        assert_allclose(a.data, expected - 2 * b.data)

    def test_subtract_mismatch(self):
        a = Dataset(make_metadata(), Polarization.FULL)
        b = Dataset(make_metadata(), Polarization.DUAL)
        with pytest.raises(ValueError):
            a.subtract(b)

    def test_copy_is_independent(self):
        a = Dataset(make_metadata(), Polarization.DUAL)
        b = a.copy()
        b.data[...] = 1
        b.flags[...] = True
        assert np.all(a.data == 0)
        assert not np.any(a.flags)

    def test_matrices(self):
        data = Dataset(make_metadata(), Polarization.DUAL, random_array((3, 10, 1, 2)))
        V = data.matrices()
        assert_allclose(V[..., 0, 0], data.data[..., 0])
        assert_allclose(V[..., 1, 1], data.data[..., 1])
        assert np.all(V[..., 0, 1] == 0)

    def test_flag_autocorrelations(self):
        data = Dataset(make_metadata(n_ant=3), Polarization.FULL)
        data.flag_autocorrelations()
        assert data.flags.sum() == 3 * 3

    def test_flag_short_baselines(self):
        data = Dataset(make_metadata(), Polarization.FULL)
        data.flag_short_baselines(1e9)
        assert np.all(data.flags)

    def test_slice_channels(self):
        data = Dataset(make_metadata(), Polarization.FULL, random_array((3, 10, 1, 2, 2)))
        sliced = data.slice_channels([0, 2])
        assert sliced.n_freq == 2
        assert_allclose(sliced.data[1], data.data[2])


class TestPack:
    """Test packing flat arrays into Datasets."""

    def test_full(self):
        meta = make_metadata()
        A = random_array((4, 3, 10))
        data = pack(A, meta, Polarization.FULL)
        assert data[2, 5, 0] == JonesMatrix(A[0, 2, 5], A[1, 2, 5], A[2, 2, 5], A[3, 2, 5])

    def test_dual_from_four(self):
        meta = make_metadata()
        A = random_array((4, 3, 10))
        data = pack(A, meta, Polarization.DUAL)
        assert data[1, 3, 0] == DiagonalJonesMatrix(A[0, 1, 3], A[3, 1, 3])

    def test_dual_from_two(self):
        meta = make_metadata()
        A = random_array((2, 3, 10))
        data = pack(A, meta, Polarization.DUAL)
        assert data[1, 3, 0] == DiagonalJonesMatrix(A[0, 1, 3], A[1, 1, 3])

    def test_single(self):
        meta = make_metadata()
        A = random_array((4, 3, 10))
        assert pack(A, meta, Polarization.XX)[0, 1, 0] == A[0, 0, 1]
        assert pack(A, meta, Polarization.YY)[0, 1, 0] == A[3, 0, 1]

    def test_full_needs_four(self):
        with pytest.raises(ValueError):
            pack(random_array((2, 3, 10)), make_metadata(), Polarization.FULL)

    def test_grid_mismatch(self):
        with pytest.raises(ValueError):
            pack(random_array((4, 5, 10)), make_metadata(), Polarization.FULL)

    def test_zero_cells_are_elided(self):
        meta = make_metadata()
        A = random_array((4, 3, 10))
        A[0, 1, 2] = 0
        A[3, 1, 2] = 0
        data = pack(A, meta, Polarization.DUAL)
        assert data[1, 2, 0] == DiagonalJonesMatrix.zero()
        assert data.flags[1, 2, 0]
        assert data.flags.sum() == 1

    def test_full_cells_are_never_elided(self):
        meta = make_metadata()
        A = random_array((4, 3, 10))
        A[0, 1, 2] = 0
        A[3, 1, 2] = 0
        data = pack(A, meta, Polarization.FULL)
        assert data[1, 2, 0] == JonesMatrix(0, A[1, 1, 2], A[2, 1, 2], 0)
        assert not np.any(data.flags)

    def test_flags(self):
        meta = make_metadata()
        A = random_array((4, 3, 10))
        flags = np.zeros(A.shape, dtype=bool)
        flags[1, 0, 4] = True  # XY only
        assert pack(A, meta, Polarization.FULL, flags=flags).flags[0, 4, 0]
        assert not pack(A, meta, Polarization.DUAL, flags=flags).flags[0, 4, 0]

    def test_channel_selection(self):
        meta = make_metadata(n_freq=2)
        A = random_array((4, 5, 10))
        data = pack(A, meta, Polarization.FULL, channels=[1, 4])
        assert_allclose(data.data[1, :, 0, 0, 0], A[0, 4])

    def test_time_axis(self):
        meta = make_metadata(n_time=3)
        A = random_array((4, 3, 10, 3))
        data = pack(A, meta, Polarization.FULL)
        assert data.shape == (3, 10, 3)
        assert data[2, 1, 2][0, 1] == A[1, 2, 1, 2]


class TestUnpack:
    """Test unpacking Datasets into flat arrays."""

    @pytest.mark.parametrize("polarization,n_corr", [
        (Polarization.FULL, 4),
        (Polarization.DUAL, 4),
        (Polarization.DUAL, 2),
        (Polarization.XX, 4),
        (Polarization.YY, 2),
    ])
    def test_round_trip(self, polarization, n_corr):
        meta = make_metadata()
        A = random_array((n_corr, 3, 10))
        out = unpack(pack(A, meta, polarization), A.copy())
        assert_array_equal(out, A)

    def test_dual_leaves_cross_hands(self):
        meta = make_metadata()
        A = random_array((4, 3, 10))
        data = pack(A, meta, Polarization.DUAL)
        data.data[...] = 0
        out = unpack(data, A.copy())
        assert_array_equal(out[1], A[1])
        assert_array_equal(out[2], A[2])
        assert np.all(out[0] == 0)
        assert np.all(out[3] == 0)

    def test_new_array_drops_time(self):
        data = pack(random_array((4, 3, 10)), make_metadata(), Polarization.FULL)
        assert unpack(data).shape == (4, 3, 10)

    def test_new_array_keeps_time(self):
        meta = make_metadata(n_time=2)
        A = random_array((4, 3, 10, 2))
        out = unpack(pack(A, meta, Polarization.FULL))
        assert out.shape == (4, 3, 10, 2)
        assert_array_equal(out, A)

    def test_single_new_array(self):
        A = random_array((1, 3, 10))
        out = unpack(pack(A, make_metadata(), Polarization.XX))
        assert_array_equal(out, A)

    def test_elided_cells_are_lost(self):
        meta = make_metadata()
        A = random_array((2, 3, 10))
        A[:, 0, 0] = 0
        data = pack(A, meta, Polarization.DUAL)
        assert data.flags[0, 0, 0]
        assert data.flags.sum() == 1
        assert_array_equal(unpack(data), A)

    def test_full_cross_hands_round_trip(self):
        meta = make_metadata()
        A = random_array((4, 3, 10))
        A[0, 0, 1] = 0
        A[3, 0, 1] = 0
        A[1, 0, 1] = 0.5 + 0.1j
        out = unpack(pack(A, meta, Polarization.FULL))
        assert out[1, 0, 1] == 0.5 + 0.1j
        assert_array_equal(out, A)

    def test_unpack_flags(self):
        data = Dataset(make_metadata(), Polarization.FULL)
        data.flags[1, 2, 0] = True
        flags = unpack_flags(data, 4)
        assert flags.shape == (4, 3, 10)
        assert np.all(flags[:, 1, 2])
        assert flags.sum() == 4


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
