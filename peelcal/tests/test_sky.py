"""
Tests for the sky model: coordinates, spectra, sources, beams and prediction.
"""

import json

import numpy as np
import pytest
from numpy.testing import assert_allclose

from peelcal.data.dataset import Polarization
from peelcal.data.metadata import Metadata
from peelcal.jones.matrices import JonesMatrix
from peelcal.sky.beams import ConstantBeam, SineBeam, get_beam
from peelcal.sky.coordinates import Direction, ReferenceFrame, J2000, AZEL, ITRF, mjd_to_gmst
from peelcal.sky.predict import genvis
from peelcal.sky.sources import (
    PointSource, GaussianSource, MultiSource, is_above_horizon, read_sources,
)
from peelcal.sky.spectra import PowerLaw, StokesVector

OVRO = np.array([-2409150.4, -4478573.1, 3838617.3])
ZENITH = Direction(AZEL, 0.0, np.pi / 2)


def make_metadata(n_ant=6, n_freq=4, n_time=1, beam=None, seed=0):
    rng = np.random.default_rng(seed)
    positions = OVRO + rng.uniform(-200, 200, size=(n_ant, 3))
    channels = np.linspace(40e6, 60e6, n_freq)
    times = 5e9 + 13.0 * np.arange(n_time)
    return Metadata.from_arrays(positions, channels, ZENITH, times=times, beam=beam)


def point(name, az, el, flux=1.0, index=()):
    direction = Direction(AZEL, np.deg2rad(az), np.deg2rad(el))
    return PointSource(name, direction, PowerLaw(StokesVector(flux), 50e6, tuple(index)))


class TestCoordinates:
    """Test direction conversions."""

    def test_unknown_system(self):
        with pytest.raises(ValueError):
            Direction("GALACTIC", 0.0, 0.0)

    def test_gmst_range(self):
        gmst = mjd_to_gmst(58000.25)
        assert 0 <= gmst < 2 * np.pi

    def test_zenith_is_up(self):
        frame = ReferenceFrame(5e9, tuple(OVRO))
        up = frame.to_itrf(ZENITH)
        assert_allclose(np.linalg.norm(up), 1.0)
        assert frame.to_azel(ZENITH)[1] == pytest.approx(np.pi / 2)

    def test_azel_round_trip(self):
        frame = ReferenceFrame(5e9, tuple(OVRO))
        direction = Direction(AZEL, 1.0, 0.6)
        itrf = frame.convert(direction, ITRF)
        az, el = frame.to_azel(itrf)
        assert az == pytest.approx(1.0)
        assert el == pytest.approx(0.6)

    def test_j2000_round_trip(self):
        frame = ReferenceFrame(5e9, tuple(OVRO))
        direction = Direction(J2000, 2.0, 0.4)
        azel = frame.convert(direction, AZEL)
        back = frame.convert(azel, J2000)
        assert back.longitude == pytest.approx(2.0)
        assert back.latitude == pytest.approx(0.4)


class TestSpectra:
    """Test power-law spectra."""

    def test_reference_frequency(self):
        spectrum = PowerLaw(StokesVector(10, 1, 0, 0), 50e6, (-0.7,))
        assert spectrum(50e6) == StokesVector(10, 1, 0, 0)

    def test_spectral_index(self):
        spectrum = PowerLaw(StokesVector(10), 50e6, (-0.7,))
        assert spectrum(100e6).I == pytest.approx(10 * 2 ** -0.7)

    def test_curvature(self):
        spectrum = PowerLaw(StokesVector(1), 1e6, (1.0, 0.5))
        # log10(ratio) = 1: 10^(1 + 0.5)
        assert spectrum(10e6).I == pytest.approx(10 ** 1.5)


class TestBeams:
    """Test beam models and lookup."""

    def test_constant(self):
        assert ConstantBeam()(50e6, 0.0, 0.1) == JonesMatrix.identity()

    def test_sine(self):
        beam = SineBeam(2.0)
        J = beam(50e6, 0.0, np.pi / 6)
        # flux response sin(el)^2 = 0.25
        assert abs(J.xx) ** 2 == pytest.approx(0.25)

    def test_sine_below_horizon(self):
        assert SineBeam()(50e6, 0.0, -0.1) == JonesMatrix.zero()

    @pytest.mark.parametrize("name,expected", [
        ("constant", ConstantBeam),
        ("sine", SineBeam),
        ("SINE", SineBeam),
    ])
    def test_get_beam(self, name, expected):
        assert isinstance(get_beam(name), expected)

    def test_get_beam_power(self):
        beam = get_beam("sine-2.5")
        assert beam.power == 2.5
        assert get_beam("sine").power == 1.6

    @pytest.mark.parametrize("name", ["memo178", "gaussian", "constant-2", "sine-"])
    def test_unknown_beam(self, name):
        with pytest.raises(ValueError):
            get_beam(name)


class TestSources:
    """Test the JSON sky model reader."""

    def test_read_sources(self, tmp_path):
        path = tmp_path / "sky.json"
        path.write_text(json.dumps([
            {"name": "Cyg A", "ra": "19h59m28.35663s", "dec": "+40d44m02.0970s",
             "I": 43170.55, "freq": 1.0e6, "index": [0.085, -0.178]},
            {"name": "Cas A", "ra": 350.85, "dec": 58.815, "I": 20000.0, "Q": 1.0},
            {"name": "Low", "az": 10.0, "el": 20.0, "I": 5.0,
             "major-fwhm": 60.0, "minor-fwhm": 30.0, "position-angle": 45.0},
            {"name": "Double", "components": [
                {"az": 0.0, "el": 80.0, "I": 1.0},
                {"az": 90.0, "el": 80.0, "I": 2.0},
            ]},
        ]))

        sources = read_sources(str(path))
        assert [s.name for s in sources] == ["Cyg A", "Cas A", "Low", "Double"]

        cyg = sources[0]
        assert isinstance(cyg, PointSource)
        assert cyg.direction.system == J2000
        assert np.rad2deg(cyg.direction.longitude) == pytest.approx(299.868, abs=1e-3)
        assert np.rad2deg(cyg.direction.latitude) == pytest.approx(40.734, abs=1e-3)
        assert cyg.spectrum.index == (0.085, -0.178)

        cas = sources[1]
        assert np.rad2deg(cas.direction.longitude) == pytest.approx(350.85)
        assert cas.spectrum.stokes.Q == 1.0
        assert cas.spectrum.reference_frequency == 1e6

        low = sources[2]
        assert isinstance(low, GaussianSource)
        assert low.direction.system == AZEL
        assert low.major_fwhm == pytest.approx(np.deg2rad(60 / 3600))
        assert low.position_angle == pytest.approx(np.pi / 4)

        double = sources[3]
        assert isinstance(double, MultiSource)
        assert len(double.components()) == 2

    def test_missing_direction(self, tmp_path):
        path = tmp_path / "sky.json"
        path.write_text(json.dumps([{"name": "nowhere", "I": 1.0}]))
        with pytest.raises(ValueError):
            read_sources(str(path))

    def test_is_above_horizon(self):
        frame = ReferenceFrame(5e9, tuple(OVRO))
        assert is_above_horizon(frame, point("up", 0, 45))
        assert not is_above_horizon(frame, point("down", 0, -10))


class TestPrediction:
    """Test model visibility prediction."""

    def test_phase_centre_source_is_unity(self):
        meta = make_metadata()
        source = PointSource("centre", ZENITH, PowerLaw(StokesVector(1.0), 50e6))
        model = genvis(meta, [source])
        expected = np.broadcast_to(np.eye(2), model.data.shape)
        assert_allclose(model.data, expected, atol=1e-12)

    def test_fringe(self):
        meta = make_metadata(n_time=1)
        source = point("off", 30, 70)
        model = genvis(meta, source)

        frame = meta.reference_frame(0)
        s = frame.to_itrf(source.direction)
        p = frame.to_itrf(ZENITH)
        b = meta.baseline_vectors()
        wavelength = 299792458.0 / meta.channels[2]
        fringe = np.exp(2j * np.pi * (b @ (s - p)) / wavelength)
        assert_allclose(model.data[2, :, 0, 0, 0], fringe, atol=1e-10)
        assert_allclose(model.data[2, :, 0, 0, 1], 0, atol=1e-12)

    def test_autocorrelations_equal_flux(self):
        meta = make_metadata()
        model = genvis(meta, point("off", 30, 70, flux=3.0))
        autos = meta.autocorrelations()
        assert_allclose(model.data[:, autos, :, 0, 0], 3.0)

    def test_below_horizon_contributes_nothing(self):
        meta = make_metadata()
        model = genvis(meta, point("set", 0, -5))
        assert np.all(model.data == 0)

    def test_beam_scales_flux(self):
        meta = make_metadata(beam=SineBeam(1.0))
        model = genvis(meta, point("off", 0, 30, flux=2.0))
        autos = meta.autocorrelations()
        assert_allclose(model.data[:, autos, :, 0, 0], 2.0 * np.sin(np.deg2rad(30)))

    def test_multisource_is_sum_of_components(self):
        meta = make_metadata()
        a = point("a", 10, 60, flux=2.0)
        b = point("b", 200, 50, flux=1.0, index=(-0.7,))
        combined = genvis(meta, MultiSource("ab", (a, b)))
        separate = genvis(meta, a).data + genvis(meta, b).data
        assert_allclose(combined.data, separate, atol=1e-12)

    def test_zero_width_gaussian_is_point(self):
        meta = make_metadata()
        p = point("p", 40, 65, flux=4.0)
        g = GaussianSource("g", p.direction, p.spectrum, 0.0, 0.0, 0.3)
        assert_allclose(genvis(meta, g).data, genvis(meta, p).data, atol=1e-12)

    def test_gaussian_is_resolved(self):
        meta = make_metadata()
        p = point("p", 40, 65, flux=4.0)
        g = GaussianSource("g", p.direction, p.spectrum, np.deg2rad(2.0), np.deg2rad(1.0), 0.3)
        point_vis = np.abs(genvis(meta, p).data[..., 0, 0])
        gauss_vis = np.abs(genvis(meta, g).data[..., 0, 0])
        autos = meta.autocorrelations()
        assert_allclose(gauss_vis[:, autos], point_vis[:, autos])
        assert np.all(gauss_vis[:, ~autos] < point_vis[:, ~autos])

    def test_polarized_source(self):
        meta = make_metadata()
        direction = Direction(AZEL, 0.3, 1.2)
        source = PointSource("pol", direction, PowerLaw(StokesVector(10, 1, 2, 3), 50e6))
        autos = meta.autocorrelations()
        V = genvis(meta, source).data[0, autos, 0]
        assert_allclose(V[0], [[11, 2 + 3j], [2 - 3j, 9]], atol=1e-12)

    def test_dual_polarization(self):
        meta = make_metadata()
        source = point("off", 30, 70)
        full = genvis(meta, source)
        dual = genvis(meta, source, Polarization.DUAL)
        assert_allclose(dual.data[..., 0], full.data[..., 0, 0])
        assert_allclose(dual.data[..., 1], full.data[..., 1, 1])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
