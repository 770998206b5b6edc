"""
Calibration Solutions.

Per-channel, per-antenna gains as produced by the solver, together with a
per-channel convergence flag. Full solutions hold (n_freq, n_ant, 2, 2)
Jones matrices, diagonal solutions (n_freq, n_ant, 2) gains.

A one-channel calibration (from a frequency-collapsed solve) applies to
every channel of a dataset.
"""

import numpy as np
from typing import Optional, Sequence

from peelcal.data.dataset import Dataset, Polarization
from peelcal.jones.matrices import DiagonalJonesMatrix, JonesMatrix
from peelcal.jones.operations import (
    apply_diagonal,
    apply_jones,
    diagonal_to_full,
    identity_jones,
    jones_determinant,
    jones_inverse,
    unapply_diagonal,
    unapply_jones,
)

# Gain columns matching the correlations a non-FULL dataset holds
_GAIN_SLOTS = {
    Polarization.DUAL: [0, 1],
    Polarization.XX: [0],
    Polarization.YY: [1],
}


class Calibration:
    """
    Antenna gain solutions.

    Parameters
    ----------
    gains : ndarray
        (n_freq, n_ant, 2, 2) for a full solution, (n_freq, n_ant, 2) for a
        diagonal one
    converged : ndarray (n_freq,), bool, optional
        Default: all True
    channels : ndarray (n_freq,), optional
        Channel frequencies in Hz
    iterations : ndarray (n_freq,), int, optional
        Solver iterations taken per channel
    """

    def __init__(
        self,
        gains: np.ndarray,
        converged: Optional[np.ndarray] = None,
        channels: Optional[Sequence[float]] = None,
        iterations: Optional[np.ndarray] = None,
    ):
        gains = np.asarray(gains, dtype=np.complex128)
        if gains.ndim == 4 and gains.shape[2:] == (2, 2):
            self.full = True
        elif gains.ndim == 3 and gains.shape[2] == 2:
            self.full = False
        else:
            raise ValueError(
                f"Gains must be (n_freq, n_ant, 2, 2) or (n_freq, n_ant, 2), got {gains.shape}"
            )
        self.gains = gains

        n_freq = gains.shape[0]
        if converged is None:
            converged = np.ones(n_freq, dtype=bool)
        if channels is None:
            channels = np.full(n_freq, np.nan)
        if iterations is None:
            iterations = np.zeros(n_freq, dtype=np.int64)

        self.converged = np.asarray(converged, dtype=bool).reshape(n_freq)
        self.channels = np.asarray(channels, dtype=np.float64).reshape(n_freq)
        self.iterations = np.asarray(iterations, dtype=np.int64).reshape(n_freq)

    @classmethod
    def identity(cls, n_ant: int, channels: Sequence[float], full: bool = False) -> "Calibration":
        """Unit gains for every antenna and channel."""
        channels = np.atleast_1d(np.asarray(channels, dtype=np.float64))
        n_freq = len(channels)
        if full:
            gains = identity_jones((n_freq, n_ant))
        else:
            gains = np.ones((n_freq, n_ant, 2), dtype=np.complex128)
        return cls(gains, channels=channels)

    @property
    def n_freq(self) -> int:
        return self.gains.shape[0]

    @property
    def n_ant(self) -> int:
        return self.gains.shape[1]

    def __repr__(self):
        kind = "full" if self.full else "diagonal"
        return (
            f"Calibration({kind}, n_freq={self.n_freq}, n_ant={self.n_ant}, "
            f"converged={int(self.converged.sum())}/{self.n_freq})"
        )

    def __getitem__(self, idx):
        channel, antenna = idx
        g = self.gains[channel, antenna]
        if self.full:
            return JonesMatrix.from_array(g)
        return DiagonalJonesMatrix(g[0], g[1])

    def __setitem__(self, idx, value):
        channel, antenna = idx
        if self.full:
            self.gains[channel, antenna] = value.to_array()
        else:
            J = value.general()
            self.gains[channel, antenna] = (J.xx, J.yy)

    def copy(self) -> "Calibration":
        return Calibration(
            self.gains.copy(), self.converged.copy(), self.channels.copy(), self.iterations.copy()
        )

    def matrices(self) -> np.ndarray:
        """Gains as (n_freq, n_ant, 2, 2) Jones matrices."""
        if self.full:
            return self.gains
        return diagonal_to_full(self.gains)

    def invert(self) -> "Calibration":
        """
        Inverse gains.

        Antennas with a singular gain get NaN entries.
        """
        if self.full:
            inverse = jones_inverse(self.gains)
        else:
            with np.errstate(divide="ignore", invalid="ignore"):
                inverse = 1.0 / np.where(self.gains == 0, np.nan, self.gains)
        return Calibration(inverse, self.converged.copy(), self.channels.copy(),
                           self.iterations.copy())

    def _channel_gains(self, dataset: Dataset, full: bool = True):
        """
        Per-baseline gains and per-channel convergence.

        Gains are (n_freq, n_base, 1, 2, 2) Jones matrices, or the
        (n_freq, n_base, 1, 2) diagonal gains when `full` is False.
        """
        if self.n_ant != dataset.n_ant:
            raise ValueError(
                f"Calibration has {self.n_ant} antennas, dataset has {dataset.n_ant}"
            )
        G = self.matrices() if full else self.gains
        if self.n_freq == dataset.n_freq:
            converged = self.converged
        elif self.n_freq == 1:
            G = np.broadcast_to(G, (dataset.n_freq,) + G.shape[1:])
            converged = np.repeat(self.converged, dataset.n_freq)
        else:
            raise ValueError(
                f"Calibration has {self.n_freq} channels, dataset has {dataset.n_freq}"
            )

        a1 = dataset.metadata.antenna1
        a2 = dataset.metadata.antenna2
        G1 = G[:, a1][:, :, np.newaxis]
        G2 = G[:, a2][:, :, np.newaxis]
        return G1, G2, converged

    def _diagonal_gains(self, dataset: Dataset):
        """Diagonal gains for the correlations `dataset` holds, or None for a full product."""
        if self.full or dataset.polarization is Polarization.FULL:
            return None
        g1, g2, converged = self._channel_gains(dataset, full=False)
        slots = _GAIN_SLOTS[dataset.polarization]
        return g1[..., slots], g2[..., slots], converged

    def corrupt(self, model: Dataset) -> Dataset:
        """
        Apply the gains to model visibilities.

        V_pq -> J_p V_pq J_q^H

        Returns
        -------
        corrupted : Dataset
            New dataset, same polarization and flags as `model`
        """
        out = model.copy()
        diagonal = self._diagonal_gains(model)
        if diagonal is not None:
            g1, g2, _ = diagonal
            v = apply_diagonal(model.correlations(), g1, g2)
            out.data[...] = v.reshape(model.data.shape)
            return out

        J1, J2, _ = self._channel_gains(model)
        out.set_matrices(apply_jones(model.matrices(), J1, J2))
        return out

    def applycal(self, dataset: Dataset) -> Dataset:
        """
        Remove the gains from visibilities.

        V_pq -> J_p^{-1} V_pq J_q^{-H}

        Cells of non-converged channels and cells touching an antenna with
        a singular gain are zeroed and flagged.

        Returns
        -------
        corrected : Dataset
        """
        out = dataset.copy()
        diagonal = self._diagonal_gains(dataset)
        if diagonal is not None:
            g1, g2, converged = diagonal
            corrected = unapply_diagonal(dataset.correlations(), g1, g2)
            singular = np.any(g1 == 0, axis=-1) | np.any(g2 == 0, axis=-1)
            finite = np.all(np.isfinite(corrected), axis=-1)
        else:
            J1, J2, converged = self._channel_gains(dataset)
            corrected = unapply_jones(dataset.matrices(), J1, J2)
            singular = (jones_determinant(J1) == 0) | (jones_determinant(J2) == 0)
            finite = np.all(np.isfinite(corrected), axis=(-2, -1))

        bad = np.broadcast_to(singular, dataset.shape) | ~converged[:, np.newaxis, np.newaxis]
        bad = bad | ~finite
        corrected[bad] = 0

        if diagonal is not None:
            out.data[...] = corrected.reshape(dataset.data.shape)
        else:
            out.set_matrices(corrected)
        out.flags |= bad
        return out
