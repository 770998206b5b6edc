"""
Sky Model.

Directions and reference frames, source spectra, source catalogs and beam
models. Visibility prediction lives in `peelcal.sky.predict`.
"""

from peelcal.sky.coordinates import Direction, ReferenceFrame, J2000, AZEL, ITRF
from peelcal.sky.spectra import StokesVector, PowerLaw, linear, stokes
from peelcal.sky.sources import (
    PointSource,
    GaussianSource,
    MultiSource,
    is_above_horizon,
    parse_source,
    read_sources,
)
from peelcal.sky.beams import Beam, ConstantBeam, SineBeam, get_beam

__all__ = [
    "Direction",
    "ReferenceFrame",
    "J2000",
    "AZEL",
    "ITRF",
    "StokesVector",
    "PowerLaw",
    "linear",
    "stokes",
    "PointSource",
    "GaussianSource",
    "MultiSource",
    "is_above_horizon",
    "parse_source",
    "read_sources",
    "Beam",
    "ConstantBeam",
    "SineBeam",
    "get_beam",
]
