"""
Self-Calibration Solver.

StefCal-style alternating least squares: every antenna's gain is updated
from the current estimates of all the others,

    full:      J_p <- (sum_q V_pq Z_pq^H) (sum_q Z_pq Z_pq^H)^{-1},  Z_pq = M_pq J_q^H
    diagonal:  g_p <- sum_q conj(z_pq) v_pq / sum_q |z_pq|^2,        z_pq = m_pq conj(g_q)

and on every second iteration the new estimate is averaged with the
previous one. Iteration stops once ||G_new - G|| / ||G|| <= tolerance, or
with the channel not converged once every gain has gone to zero (no signal
left in the observed data).

Channels are solved independently on a thread pool.
"""

import os
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from typing import Optional, Tuple

from peelcal.core.calibration import Calibration
from peelcal.data.dataset import Dataset, Polarization
from peelcal.jones.operations import identity_jones, jones_determinant, jones_hermitian, jones_inverse


def _usable_mask(observed: Dataset, model: Dataset, minuvw: float) -> np.ndarray:
    """Cells that take part in the solve, bool (n_freq, n_base, n_time)."""
    metadata = observed.metadata
    usable = ~(observed.flags | model.flags)
    usable[:, metadata.autocorrelations(), :] = False
    if minuvw > 0:
        for channel in range(observed.n_freq):
            short = metadata.baseline_lengths(channel) < minuvw
            usable[channel, short, :] = False
    return usable


def _gather(V: np.ndarray, M: np.ndarray, usable: np.ndarray,
            antenna1: np.ndarray, antenna2: np.ndarray, full: bool):
    """
    Flatten the usable cells into doubled baseline rows.

    Each baseline (p, q) appears once as (p, q, V, M) and once as
    (q, p, V^H, M^H), so every antenna sees every baseline it is part of
    as the first antenna.
    """
    index = np.nonzero(usable)
    baseline = index[-2]
    p = antenna1[baseline]
    q = antenna2[baseline]

    v = V[index]
    m = M[index]
    if full:
        v_rev = jones_hermitian(v)
        m_rev = jones_hermitian(m)
    else:
        v_rev = np.conj(v)
        m_rev = np.conj(m)

    return (
        np.concatenate([p, q]),
        np.concatenate([q, p]),
        np.concatenate([v, v_rev]),
        np.concatenate([m, m_rev]),
    )


def _stefcal_full(p, q, V, M, n_ant, maxiter, tolerance) -> Tuple[np.ndarray, bool, int]:
    """
    Iterate the full-Jones update.

    Parameters
    ----------
    p, q : ndarray (n_row,)
        Antenna indices of each row
    V, M : ndarray (n_row, 2, 2)
        Observed and model visibilities
    n_ant : int
    maxiter : int
    tolerance : float

    Returns
    -------
    G : ndarray (n_ant, 2, 2)
    converged : bool
    iterations : int
    """
    G = identity_jones((n_ant,))

    for iteration in range(1, maxiter + 1):
        Z = M @ jones_hermitian(G[q])

        numerator = np.zeros((n_ant, 2, 2), dtype=np.complex128)
        denominator = np.zeros((n_ant, 2, 2), dtype=np.complex128)
        np.add.at(numerator, p, V @ jones_hermitian(Z))
        np.add.at(denominator, p, Z @ jones_hermitian(Z))

        G_new = G.copy()
        solvable = jones_determinant(denominator) != 0
        G_new[solvable] = numerator[solvable] @ jones_inverse(denominator[solvable])

        if iteration % 2 == 0:
            G_new = 0.5 * (G_new + G)

        if not np.any(G_new):
            return G_new, False, iteration

        change = np.linalg.norm(G_new - G) / np.linalg.norm(G)
        G = G_new
        if change <= tolerance:
            return G, True, iteration

    return G, False, maxiter


def _stefcal_diagonal(p, q, v, m, n_ant, maxiter, tolerance) -> Tuple[np.ndarray, bool, int]:
    """
    Iterate the diagonal gain update, each polarization independently.

    v, m have shape (n_row, n_pol); the returned gains (n_ant, n_pol).
    """
    n_pol = v.shape[-1]
    g = np.ones((n_ant, n_pol), dtype=np.complex128)

    for iteration in range(1, maxiter + 1):
        z = m * np.conj(g[q])

        numerator = np.zeros((n_ant, n_pol), dtype=np.complex128)
        denominator = np.zeros((n_ant, n_pol), dtype=np.float64)
        np.add.at(numerator, p, np.conj(z) * v)
        np.add.at(denominator, p, np.abs(z) ** 2)

        g_new = g.copy()
        solvable = denominator > 0
        g_new[solvable] = numerator[solvable] / denominator[solvable]

        if iteration % 2 == 0:
            g_new = 0.5 * (g_new + g)

        if not np.any(g_new):
            return g_new, False, iteration

        change = np.linalg.norm(g_new - g) / np.linalg.norm(g)
        g = g_new
        if change <= tolerance:
            return g, True, iteration

    return g, False, maxiter


class _ChannelProblem:
    """Observed/model arrays and settings shared by every channel solve."""

    def __init__(self, observed: Dataset, model: Dataset, usable: np.ndarray,
                 full: bool, maxiter: int, tolerance: float):
        self.full = full
        self.maxiter = maxiter
        self.tolerance = tolerance
        self.n_ant = observed.n_ant
        self.antenna1 = observed.metadata.antenna1
        self.antenna2 = observed.metadata.antenna2
        self.usable = usable
        self.polarization = observed.polarization

        if full:
            self.V = observed.matrices()
            self.M = model.matrices()
        else:
            self.V = observed.correlations()
            self.M = model.correlations()

    def _unit_gains(self) -> np.ndarray:
        if self.full:
            return identity_jones((self.n_ant,))
        return np.ones((self.n_ant, 2), dtype=np.complex128)

    def _expand(self, g: np.ndarray) -> np.ndarray:
        """Single-correlation gains (n_ant, 1) into the matching (n_ant, 2) slot."""
        if self.full or g.shape[-1] == 2:
            return g
        out = np.ones((self.n_ant, 2), dtype=np.complex128)
        slot = 0 if self.polarization is Polarization.XX else 1
        out[:, slot] = g[:, 0]
        return out

    def solve(self, channels) -> Tuple[np.ndarray, bool, int]:
        """
        Solve one group of channels as a single problem.

        Parameters
        ----------
        channels : int or slice
            A single channel, or slice(None) for a frequency-collapsed solve
        """
        p, q, V, M = _gather(
            self.V[channels], self.M[channels], self.usable[channels],
            self.antenna1, self.antenna2, self.full,
        )

        if not np.any(M != 0):
            return self._unit_gains(), False, 0

        if self.full:
            return _stefcal_full(p, q, V, M, self.n_ant, self.maxiter, self.tolerance)

        g, converged, iterations = _stefcal_diagonal(
            p, q, V, M, self.n_ant, self.maxiter, self.tolerance
        )
        return self._expand(g), converged, iterations


def solve(
    observed: Dataset,
    model: Dataset,
    maxiter: int = 20,
    tolerance: float = 1e-3,
    minuvw: float = 0.0,
    full: bool = False,
    collapse_frequency: bool = False,
    workers: Optional[int] = None,
    verbose: bool = False,
) -> Calibration:
    """
    Solve for antenna gains that take `model` to `observed`.

    Parameters
    ----------
    observed : Dataset
        Observed (or residual) visibilities
    model : Dataset
        Model visibilities, same shape and polarization as `observed`
    maxiter : int
        Maximum iterations per channel (default: 20)
    tolerance : float
        Relative change at which a channel counts as converged (default: 1e-3)
    minuvw : float
        Baselines shorter than this many wavelengths are left out (default: 0)
    full : bool
        Solve for full 2x2 Jones matrices instead of diagonal gains
    collapse_frequency : bool
        Treat all channels as samples of one solve; the result has a single
        channel at the mean frequency
    workers : int, optional
        Thread pool size (default: os.cpu_count())
    verbose : bool
        Print progress

    Returns
    -------
    calibration : Calibration
        A channel with no usable non-zero model gets unit gains and is
        marked not converged.
    """
    if observed.data.shape != model.data.shape or observed.polarization is not model.polarization:
        raise ValueError(
            f"Observed {observed!r} and model {model!r} datasets do not match"
        )
    if observed.metadata.n_ant != model.metadata.n_ant:
        raise ValueError("Observed and model datasets have different antennas")
    if int(maxiter) != maxiter or maxiter <= 0:
        raise ValueError(f"maxiter must be a positive integer, got {maxiter}")
    if not tolerance > 0:
        raise ValueError(f"tolerance must be positive, got {tolerance}")
    if full and observed.polarization.is_single:
        raise ValueError(
            f"A full-polarization solve needs FULL or DUAL data, got {observed.polarization.name}"
        )

    maxiter = int(maxiter)
    usable = _usable_mask(observed, model, minuvw)
    problem = _ChannelProblem(observed, model, usable, full, maxiter, tolerance)

    if verbose:
        kind = "full Jones" if full else "diagonal"
        print(f"[PEELCAL] Solving {kind} gains: {observed.n_ant} antennas, "
              f"{observed.n_freq} channels, maxiter={maxiter}, tolerance={tolerance:g}")

    if collapse_frequency:
        gains, converged, iterations = problem.solve(slice(None))
        channels = [float(np.mean(observed.metadata.channels))]
        results = [(gains, converged, iterations)]
    else:
        channels = observed.metadata.channels
        n_workers = workers or os.cpu_count() or 1
        with ThreadPoolExecutor(max_workers=n_workers) as pool:
            results = list(pool.map(problem.solve, range(observed.n_freq)))

    calibration = Calibration(
        np.stack([r[0] for r in results]),
        converged=np.array([r[1] for r in results], dtype=bool),
        channels=channels,
        iterations=np.array([r[2] for r in results], dtype=np.int64),
    )

    if verbose:
        n_conv = int(calibration.converged.sum())
        print(f"[PEELCAL] Converged: {n_conv}/{calibration.n_freq} channels")
        for channel in np.nonzero(~calibration.converged)[0]:
            print(f"[PEELCAL]   channel {channel}: not converged "
                  f"({calibration.iterations[channel]} iterations)")

    return calibration


def gaincal(observed: Dataset, model: Dataset, **kwargs) -> Calibration:
    """Diagonal gain calibration."""
    return solve(observed, model, full=False, **kwargs)


def polcal(observed: Dataset, model: Dataset, **kwargs) -> Calibration:
    """Full-polarization (2x2 Jones) calibration."""
    return solve(observed, model, full=True, **kwargs)
