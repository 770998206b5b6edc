"""
Tests for HDF5 calibration tables.
"""

import h5py
import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from peelcal.core.calibration import Calibration
from peelcal.io.table_io import (
    save_calibration,
    load_calibration,
    save_peeling_calibrations,
    load_peeling_calibrations,
    peeling_source_names,
    get_table_info,
)


def random_calibration(n_freq=4, n_ant=5, full=False, seed=0):
    rng = np.random.default_rng(seed)
    shape = (n_freq, n_ant, 2, 2) if full else (n_freq, n_ant, 2)
    gains = rng.normal(size=shape) + 1j * rng.normal(size=shape)
    converged = np.ones(n_freq, dtype=bool)
    converged[-1] = False
    return Calibration(
        gains,
        converged=converged,
        channels=np.linspace(40e6, 60e6, n_freq),
        iterations=np.arange(n_freq) + 3,
    )


class TestSingleCalibration:
    """Test saving and loading one calibration."""

    @pytest.mark.parametrize("full", [False, True])
    def test_save_load(self, tmp_path, full):
        path = str(tmp_path / "cal.h5")
        cal = random_calibration(full=full)
        save_calibration(path, cal, metadata={"ms": "test.ms"})

        loaded = load_calibration(path)
        assert loaded.full == full
        assert_allclose(loaded.gains, cal.gains)
        assert_array_equal(loaded.converged, cal.converged)
        assert_allclose(loaded.channels, cal.channels)
        assert_array_equal(loaded.iterations, cal.iterations)

    def test_attributes(self, tmp_path):
        path = str(tmp_path / "cal.h5")
        save_calibration(path, random_calibration(full=True), metadata={"ms": "test.ms"})
        with h5py.File(path, "r") as f:
            assert f.attrs["mode"] == "full"
            assert "created" in f.attrs
            assert '"test.ms"' in f.attrs["metadata"]

    def test_missing_gains(self, tmp_path):
        path = str(tmp_path / "empty.h5")
        with h5py.File(path, "w") as f:
            f.attrs["n_sources"] = 0
        with pytest.raises(KeyError):
            load_calibration(path)

    def test_info(self, tmp_path):
        path = str(tmp_path / "cal.h5")
        save_calibration(path, random_calibration(n_freq=4, n_ant=5))
        info = get_table_info(path)
        assert info["mode"] == "diagonal"
        assert info["n_freq"] == 4
        assert info["n_ant"] == 5
        assert info["n_converged"] == 3


class TestPeelingCalibrations:
    """Test saving and loading one calibration per direction."""

    def test_save_load_in_order(self, tmp_path):
        path = str(tmp_path / "peel.h5")
        cals = [random_calibration(seed=i, full=(i == 1)) for i in range(3)]
        save_peeling_calibrations(path, cals, names=["Cyg A", "Cas A", "Vir A"])

        loaded = load_peeling_calibrations(path)
        assert len(loaded) == 3
        for original, restored in zip(cals, loaded):
            assert restored.full == original.full
            assert_allclose(restored.gains, original.gains)
        assert peeling_source_names(path) == ["Cyg A", "Cas A", "Vir A"]

    def test_without_names(self, tmp_path):
        path = str(tmp_path / "peel.h5")
        save_peeling_calibrations(path, [random_calibration()])
        assert peeling_source_names(path) == [""]

    def test_name_count_mismatch(self, tmp_path):
        with pytest.raises(ValueError):
            save_peeling_calibrations(str(tmp_path / "peel.h5"), [random_calibration()], names=["a", "b"])

    def test_collapsed_calibration(self, tmp_path):
        path = str(tmp_path / "peel.h5")
        cal = random_calibration(n_freq=1)
        save_peeling_calibrations(path, [cal], names=["A"])
        loaded = load_peeling_calibrations(path)[0]
        assert loaded.n_freq == 1

    def test_info(self, tmp_path):
        path = str(tmp_path / "peel.h5")
        save_peeling_calibrations(path, [random_calibration(), random_calibration(full=True)])
        info = get_table_info(path)
        assert info["n_sources"] == 2
        assert [d["mode"] for d in info["directions"]] == ["diagonal", "full"]

    def test_missing_direction(self, tmp_path):
        path = str(tmp_path / "peel.h5")
        save_peeling_calibrations(path, [random_calibration()])
        with h5py.File(path, "a") as f:
            f.attrs["n_sources"] = 2
        with pytest.raises(KeyError):
            load_peeling_calibrations(path)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
