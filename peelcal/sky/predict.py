"""
Visibility Prediction.

Model visibilities of a sky model for the geometry, channels, times and
beam described by a Metadata bundle.

For a component in direction s (ITRF unit vector) and phase centre p, the
visibility on baseline (1, 2) at wavelength lambda is

    V = B K B^H * exp(2 pi i (r1 - r2) . (s - p) / lambda) * envelope

with B the beam Jones matrix towards the component, K the linear-feed
coherency of its Stokes flux, and envelope the Fourier transform of a
Gaussian component's shape (1 for point sources).
"""

import numpy as np
from typing import Iterable, Union

from peelcal.data.dataset import Dataset, Polarization
from peelcal.data.metadata import Metadata, C
from peelcal.jones.matrices import congruence_transform
from peelcal.sky.sources import GaussianSource, MultiSource, PointSource
from peelcal.sky.spectra import linear

# pi^2 / (4 ln 2): Fourier transform of a Gaussian given by its FWHM
GAUSSIAN_FACTOR = np.pi**2 / (4 * np.log(2))


def _sky_basis(s: np.ndarray):
    """East and north unit vectors on the sky at direction s (ITRF)."""
    east = np.cross([0.0, 0.0, 1.0], s)
    norm = np.linalg.norm(east)
    if norm == 0:
        # Pole
        east = np.array([0.0, 1.0, 0.0])
    else:
        east = east / norm
    north = np.cross(s, east)
    return east, north


def gaussian_envelope(source: GaussianSource, baselines: np.ndarray, s: np.ndarray,
                      wavelength: float) -> np.ndarray:
    """
    Visibility amplitude of a Gaussian component.

    Parameters
    ----------
    source : GaussianSource
    baselines : ndarray (n_base, 3)
        Baseline vectors in metres
    s : ndarray (3,)
        ITRF unit vector towards the source
    wavelength : float
        Metres

    Returns
    -------
    envelope : ndarray (n_base,)
        exp(-pi^2 / (4 ln 2) * ((theta_maj u_maj)^2 + (theta_min u_min)^2))
    """
    east, north = _sky_basis(s)
    pa = source.position_angle
    major_axis = north * np.cos(pa) + east * np.sin(pa)
    minor_axis = east * np.cos(pa) - north * np.sin(pa)

    u_major = baselines @ major_axis / wavelength
    u_minor = baselines @ minor_axis / wavelength

    return np.exp(-GAUSSIAN_FACTOR * (
        (source.major_fwhm * u_major) ** 2 + (source.minor_fwhm * u_minor) ** 2
    ))


def _predict_component(V: np.ndarray, metadata: Metadata, component) -> None:
    """Accumulate one point or Gaussian component into V (n_freq, n_base, n_time, 2, 2)."""
    baselines = metadata.baseline_vectors()

    for t in range(metadata.n_time):
        frame = metadata.reference_frame(t)
        az, el = frame.to_azel(component.direction)
        if el <= 0:
            continue

        s = frame.to_itrf(component.direction)
        p = frame.to_itrf(metadata.phase_center)
        delay = baselines @ (s - p)

        for f, frequency in enumerate(metadata.channels):
            wavelength = C / frequency
            beam = metadata.beam(frequency, az, el)
            flux = congruence_transform(beam, linear(component.spectrum(frequency)))

            fringe = np.exp(2j * np.pi * delay / wavelength)
            if isinstance(component, GaussianSource):
                fringe = fringe * gaussian_envelope(component, baselines, s, wavelength)

            V[f, :, t] += fringe[:, np.newaxis, np.newaxis] * flux.to_array()


def genvis(
    metadata: Metadata,
    sources: Union[Iterable, PointSource, GaussianSource, MultiSource],
    polarization: Polarization = Polarization.FULL,
) -> Dataset:
    """
    Predict model visibilities.

    Parameters
    ----------
    metadata : Metadata
    sources : source or list of sources
        Multi-component sources contribute the sum of their components
    polarization : Polarization
        Cell type of the returned Dataset (default: FULL)

    Returns
    -------
    model : Dataset
        Components below the horizon contribute nothing
    """
    if isinstance(sources, (PointSource, GaussianSource, MultiSource)):
        sources = [sources]

    V = np.zeros((metadata.n_freq, metadata.n_base, metadata.n_time, 2, 2), dtype=np.complex128)
    for source in sources:
        for component in source.components():
            _predict_component(V, metadata, component)

    model = Dataset(metadata, polarization)
    model.set_matrices(V)
    return model
