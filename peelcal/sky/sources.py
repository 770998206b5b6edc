"""
Sky Model Sources.

Point, Gaussian and multi-component sources, and the JSON sky-model reader.

JSON format (a list of sources):

    [
        {
            "name": "Cyg A",
            "ra": "19h59m28.35663s",
            "dec": "+40d44m02.0970s",
            "I": 43170.55, "Q": 0.0, "U": 0.0, "V": 0.0,
            "freq": 1.0e6,
            "index": [1.021, -0.3]
        },
        {
            "name": "Cas A",
            "components": [ {...}, {...} ]
        }
    ]

A source may give "az"/"el" instead of "ra"/"dec". Gaussian components add
"major-fwhm" and "minor-fwhm" (arcsec) and "position-angle" (degrees).
Numeric angles are degrees; string RAs without unit letters are hours.
"""

import json

import numpy as np
from astropy import units as u
from astropy.coordinates import Angle
from dataclasses import dataclass
from typing import List, Tuple

from peelcal.sky.coordinates import Direction, J2000, AZEL, ReferenceFrame
from peelcal.sky.spectra import PowerLaw, StokesVector


@dataclass(frozen=True)
class PointSource:
    """Unresolved source."""
    name: str
    direction: Direction
    spectrum: PowerLaw

    def components(self) -> List["PointSource"]:
        return [self]


@dataclass(frozen=True)
class GaussianSource:
    """
    Elliptical Gaussian source.

    Attributes
    ----------
    major_fwhm, minor_fwhm : float
        Full widths at half maximum in radians
    position_angle : float
        Major axis angle, north through east, radians
    """
    name: str
    direction: Direction
    spectrum: PowerLaw
    major_fwhm: float
    minor_fwhm: float
    position_angle: float

    def components(self) -> List["GaussianSource"]:
        return [self]


@dataclass(frozen=True)
class MultiSource:
    """A source made of several components, predicted as their sum."""
    name: str
    sources: Tuple

    def components(self) -> list:
        out = []
        for source in self.sources:
            out.extend(source.components())
        return out

    @property
    def direction(self) -> Direction:
        return self.sources[0].direction


def is_above_horizon(frame: ReferenceFrame, source) -> bool:
    """True if any component of the source has positive elevation."""
    return any(frame.to_azel(c.direction)[1] > 0 for c in source.components())


def _angle(value, default_unit) -> float:
    if isinstance(value, str):
        if not any(c.isalpha() for c in value):
            return float(Angle(value, unit=default_unit).rad)
        return float(Angle(value).rad)
    return float(Angle(value, unit=u.deg).rad)


def _parse_direction(entry: dict) -> Direction:
    if "ra" in entry and "dec" in entry:
        return Direction(J2000, _angle(entry["ra"], u.hourangle), _angle(entry["dec"], u.deg))
    if "az" in entry and "el" in entry:
        return Direction(AZEL, _angle(entry["az"], u.deg), _angle(entry["el"], u.deg))
    raise ValueError(f"Source '{entry.get('name', '?')}' has no ra/dec or az/el")


def _parse_spectrum(entry: dict) -> PowerLaw:
    flux = StokesVector(
        float(entry.get("I", 0.0)),
        float(entry.get("Q", 0.0)),
        float(entry.get("U", 0.0)),
        float(entry.get("V", 0.0)),
    )
    index = entry.get("index", [])
    if np.isscalar(index):
        index = [index]
    return PowerLaw(flux, float(entry.get("freq", 1e6)), tuple(float(x) for x in index))


def parse_source(entry: dict, name: str = ""):
    """Build one source from its JSON dictionary."""
    name = entry.get("name", name)

    if "components" in entry:
        components = tuple(
            parse_source(c, f"{name}[{i}]") for i, c in enumerate(entry["components"])
        )
        if not components:
            raise ValueError(f"Multi-component source '{name}' has no components")
        return MultiSource(name, components)

    direction = _parse_direction(entry)
    spectrum = _parse_spectrum(entry)

    if "major-fwhm" in entry or "minor-fwhm" in entry:
        arcsec = np.pi / (180 * 3600)
        return GaussianSource(
            name, direction, spectrum,
            major_fwhm=float(entry.get("major-fwhm", 0.0)) * arcsec,
            minor_fwhm=float(entry.get("minor-fwhm", 0.0)) * arcsec,
            position_angle=np.deg2rad(float(entry.get("position-angle", 0.0))),
        )

    return PointSource(name, direction, spectrum)


def read_sources(filepath: str) -> list:
    """
    Read a JSON sky model.

    Source order is preserved; peeling calibrates in this order.

    Parameters
    ----------
    filepath : str
        Path to the JSON file

    Returns
    -------
    sources : list
        PointSource, GaussianSource or MultiSource objects
    """
    with open(filepath, "r") as f:
        raw = json.load(f)

    if isinstance(raw, dict):
        raw = [raw]

    return [parse_source(entry, f"source{i}") for i, entry in enumerate(raw)]
