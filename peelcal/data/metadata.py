"""
Dataset Metadata.

Antennas, baselines, channels, times, phase centre and beam of one
observation. Built once per dataset and immutable afterwards.
"""

import numpy as np
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from peelcal.sky.beams import Beam, ConstantBeam
from peelcal.sky.coordinates import Direction, ReferenceFrame

# Speed of light (m/s)
C = 299792458.0


@dataclass(frozen=True)
class Antenna:
    """An antenna and its ITRF position in metres."""
    position: Tuple[float, float, float]


@dataclass(frozen=True)
class Baseline:
    """An antenna index pair. antenna1 == antenna2 is an autocorrelation."""
    antenna1: int
    antenna2: int

    @property
    def is_auto(self) -> bool:
        return self.antenna1 == self.antenna2


def all_baselines(n_ant: int) -> Tuple[Baseline, ...]:
    """Baselines (i, j) with i <= j, autocorrelations included, row-major."""
    return tuple(Baseline(i, j) for i in range(n_ant) for j in range(i, n_ant))


def _readonly(arr, dtype) -> np.ndarray:
    arr = np.array(arr, dtype=dtype, ndmin=1)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class Metadata:
    """
    Metadata for one Dataset.

    Attributes
    ----------
    antennas : tuple of Antenna
    baselines : tuple of Baseline
    channels : ndarray (n_freq,)
        Channel frequencies in Hz
    times : ndarray (n_time,)
        Integration times in MJD seconds
    phase_center : Direction
    beam : Beam
        Callable (frequency, az, el) -> JonesMatrix
    """
    antennas: Tuple[Antenna, ...]
    baselines: Tuple[Baseline, ...]
    channels: np.ndarray
    times: np.ndarray
    phase_center: Direction
    beam: Beam

    def __post_init__(self):
        object.__setattr__(self, "antennas", tuple(self.antennas))
        object.__setattr__(self, "baselines", tuple(self.baselines))
        object.__setattr__(self, "channels", _readonly(self.channels, np.float64))
        object.__setattr__(self, "times", _readonly(self.times, np.float64))

        n_ant = len(self.antennas)
        for bl in self.baselines:
            if not (0 <= bl.antenna1 < n_ant and 0 <= bl.antenna2 < n_ant):
                raise ValueError(f"Baseline {bl} refers to a missing antenna (n_ant={n_ant})")

    @classmethod
    def from_arrays(
        cls,
        positions: np.ndarray,
        channels: Sequence[float],
        phase_center: Direction,
        times: Sequence[float] = (0.0,),
        beam: Optional[Beam] = None,
        antenna1: Optional[np.ndarray] = None,
        antenna2: Optional[np.ndarray] = None,
    ) -> "Metadata":
        """
        Build metadata from plain arrays.

        Parameters
        ----------
        positions : ndarray (n_ant, 3)
            ITRF antenna positions in metres
        channels : array-like (n_freq,)
            Frequencies in Hz
        phase_center : Direction
        times : array-like (n_time,)
            MJD seconds
        beam : Beam, optional
            Defaults to ConstantBeam
        antenna1, antenna2 : ndarray (n_bl,), optional
            Baseline antenna indices. Default: every pair i <= j.
        """
        positions = np.asarray(positions, dtype=np.float64)
        antennas = tuple(Antenna(tuple(float(x) for x in p)) for p in positions)

        if antenna1 is None or antenna2 is None:
            baselines = all_baselines(len(antennas))
        else:
            baselines = tuple(Baseline(int(a1), int(a2)) for a1, a2 in zip(antenna1, antenna2))

        return cls(
            antennas=antennas,
            baselines=baselines,
            channels=channels,
            times=times,
            phase_center=phase_center,
            beam=beam if beam is not None else ConstantBeam(),
        )

    @property
    def n_ant(self) -> int:
        return len(self.antennas)

    @property
    def n_base(self) -> int:
        return len(self.baselines)

    @property
    def n_freq(self) -> int:
        return len(self.channels)

    @property
    def n_time(self) -> int:
        return len(self.times)

    @property
    def antenna1(self) -> np.ndarray:
        return np.array([bl.antenna1 for bl in self.baselines], dtype=np.int64)

    @property
    def antenna2(self) -> np.ndarray:
        return np.array([bl.antenna2 for bl in self.baselines], dtype=np.int64)

    @property
    def positions(self) -> np.ndarray:
        """Antenna positions, ndarray (n_ant, 3)."""
        return np.array([a.position for a in self.antennas], dtype=np.float64).reshape(-1, 3)

    @property
    def array_center(self) -> Tuple[float, float, float]:
        return tuple(float(x) for x in self.positions.mean(axis=0))

    def reference_frame(self, time_index: int = 0) -> ReferenceFrame:
        """Frame at one integration, located at the array centre."""
        return ReferenceFrame(float(self.times[time_index]), self.array_center)

    def baseline_vectors(self) -> np.ndarray:
        """
        Baseline vectors r1 - r2 in metres (ITRF).

        Returns
        -------
        b : ndarray (n_base, 3)
        """
        positions = self.positions
        return positions[self.antenna1] - positions[self.antenna2]

    def baseline_lengths(self, channel: int) -> np.ndarray:
        """Baseline lengths in wavelengths at one channel, ndarray (n_base,)."""
        wavelength = C / self.channels[channel]
        return np.linalg.norm(self.baseline_vectors(), axis=1) / wavelength

    def autocorrelations(self) -> np.ndarray:
        """Boolean mask (n_base,) of autocorrelation baselines."""
        return self.antenna1 == self.antenna2

    def slice_channels(self, channels: Sequence[int]) -> "Metadata":
        """Metadata restricted to the given channel indices."""
        return replace(self, channels=self.channels[np.asarray(channels, dtype=np.int64)])

    def collapse_channels(self) -> "Metadata":
        """Metadata with a single channel at the mean frequency."""
        return replace(self, channels=[float(np.mean(self.channels))])
