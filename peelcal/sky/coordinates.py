"""
Coordinate Conversions.

Directions on the sky in J2000, AZEL or ITRF, and the reference frame
(time + observatory position) needed to move between them.

Precession and nutation are ignored: J2000 is rotated to ITRF with the
Greenwich mean sidereal time only.
"""

import numpy as np
from dataclasses import dataclass
from typing import Tuple

J2000 = "J2000"
AZEL = "AZEL"
ITRF = "ITRF"

SYSTEMS = (J2000, AZEL, ITRF)


@dataclass(frozen=True)
class Direction:
    """
    A direction on the sky.

    Attributes
    ----------
    system : str
        'J2000' (ra, dec), 'AZEL' (azimuth, elevation) or 'ITRF'
    longitude : float
        RA, azimuth or ITRF longitude in radians
    latitude : float
        Dec, elevation or ITRF latitude in radians
    """
    system: str
    longitude: float
    latitude: float

    def __post_init__(self):
        if self.system not in SYSTEMS:
            raise ValueError(f"Unknown coordinate system: {self.system}")

    def unit_vector(self) -> np.ndarray:
        """Cartesian unit vector in this direction's own system."""
        cos_lat = np.cos(self.latitude)
        return np.array([
            cos_lat * np.cos(self.longitude),
            cos_lat * np.sin(self.longitude),
            np.sin(self.latitude),
        ])


def mjd_to_gmst(mjd: float) -> float:
    """
    Convert Modified Julian Date to Greenwich Mean Sidereal Time.

    Parameters
    ----------
    mjd : float
        Modified Julian Date (days)

    Returns
    -------
    gmst : float
        GMST in radians
    """
    # Julian centuries from J2000.0
    T = (mjd - 51544.5) / 36525.0

    # GMST at 0h UT (in seconds)
    gmst_0h = 24110.54841 + 8640184.812866 * T + 0.093104 * T**2 - 6.2e-6 * T**3

    frac = mjd % 1.0
    gmst_sec = gmst_0h + 86400.0 * 1.00273790935 * frac

    return (gmst_sec % 86400.0) * 2 * np.pi / 86400.0


def itrf_to_geodetic(position: np.ndarray) -> Tuple[float, float]:
    """
    Geodetic (latitude, longitude) of an ITRF position, WGS84 ellipsoid.

    Parameters
    ----------
    position : ndarray (3,)
        ITRF position in metres

    Returns
    -------
    latitude, longitude : float
        Radians
    """
    x, y, z = position

    a = 6378137.0
    b = 6356752.314245
    e2 = (a**2 - b**2) / a**2

    p = np.sqrt(x**2 + y**2)
    lat = np.arctan2(z, p * (1 - e2))

    for _ in range(10):
        N = a / np.sqrt(1 - e2 * np.sin(lat)**2)
        lat_new = np.arctan2(z + e2 * N * np.sin(lat), p)
        if np.abs(lat_new - lat) < 1e-12:
            lat = lat_new
            break
        lat = lat_new

    return float(lat), float(np.arctan2(y, x))


@dataclass(frozen=True)
class ReferenceFrame:
    """
    Observing epoch and location.

    Attributes
    ----------
    time : float
        MJD seconds (the MS TIME convention)
    position : tuple of float
        Observatory ITRF position in metres
    """
    time: float
    position: Tuple[float, float, float]

    @property
    def gmst(self) -> float:
        return mjd_to_gmst(self.time / 86400.0)

    def _local_axes(self):
        lat, lon = itrf_to_geodetic(np.asarray(self.position, dtype=np.float64))
        east = np.array([-np.sin(lon), np.cos(lon), 0.0])
        north = np.array([-np.sin(lat) * np.cos(lon), -np.sin(lat) * np.sin(lon), np.cos(lat)])
        up = np.array([np.cos(lat) * np.cos(lon), np.cos(lat) * np.sin(lon), np.sin(lat)])
        return east, north, up

    def to_itrf(self, direction: Direction) -> np.ndarray:
        """ITRF unit vector of a direction."""
        if direction.system == ITRF:
            return direction.unit_vector()
        if direction.system == J2000:
            dec = direction.latitude
            lon = direction.longitude - self.gmst
            return np.array([np.cos(dec) * np.cos(lon), np.cos(dec) * np.sin(lon), np.sin(dec)])
        east, north, up = self._local_axes()
        az, el = direction.longitude, direction.latitude
        return (east * np.cos(el) * np.sin(az)
                + north * np.cos(el) * np.cos(az)
                + up * np.sin(el))

    def to_azel(self, direction: Direction) -> Tuple[float, float]:
        """Azimuth (north through east) and elevation in radians."""
        if direction.system == AZEL:
            return direction.longitude, direction.latitude
        vec = self.to_itrf(direction)
        east, north, up = self._local_axes()
        az = np.arctan2(vec @ east, vec @ north) % (2 * np.pi)
        el = np.arcsin(np.clip(vec @ up, -1.0, 1.0))
        return float(az), float(el)

    def convert(self, direction: Direction, system: str) -> Direction:
        """Express a direction in another coordinate system."""
        if system == direction.system:
            return direction
        if system == AZEL:
            return Direction(AZEL, *self.to_azel(direction))
        vec = self.to_itrf(direction)
        lon = np.arctan2(vec[1], vec[0])
        lat = np.arcsin(np.clip(vec[2], -1.0, 1.0))
        if system == J2000:
            return Direction(J2000, float((lon + self.gmst) % (2 * np.pi)), float(lat))
        return Direction(ITRF, float(lon), float(lat))
