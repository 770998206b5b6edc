"""
Vectorised Jones Matrix Operations.

Bulk counterparts of the Jones matrix types for ndarrays with trailing
(2, 2) (full) or (2,) (diagonal) axes. The solver and the calibration
apply/corrupt code work on these.
"""

import numpy as np


def identity_jones(shape: tuple = ()) -> np.ndarray:
    """
    Identity Jones matrices.

    Parameters
    ----------
    shape : tuple
        Leading dimensions, e.g. (n_freq, n_ant)

    Returns
    -------
    I : ndarray, shape (*shape, 2, 2)
    """
    I = np.zeros(tuple(shape) + (2, 2), dtype=np.complex128)
    I[..., 0, 0] = 1.0
    I[..., 1, 1] = 1.0
    return I


def diagonal_to_full(g: np.ndarray) -> np.ndarray:
    """Expand (..., 2) diagonal gains to (..., 2, 2) matrices."""
    J = np.zeros(g.shape[:-1] + (2, 2), dtype=np.complex128)
    J[..., 0, 0] = g[..., 0]
    J[..., 1, 1] = g[..., 1]
    return J


def jones_hermitian(J: np.ndarray) -> np.ndarray:
    """
    Conjugate transpose of Jones matrices.

    Parameters
    ----------
    J : ndarray (..., 2, 2)

    Returns
    -------
    J_H : ndarray (..., 2, 2)
    """
    return np.conj(np.swapaxes(J, -2, -1))


def jones_determinant(J: np.ndarray) -> np.ndarray:
    """
    Determinant of Jones matrices.

    Parameters
    ----------
    J : ndarray (..., 2, 2)

    Returns
    -------
    det : ndarray (...)
    """
    return J[..., 0, 0] * J[..., 1, 1] - J[..., 0, 1] * J[..., 1, 0]


def jones_inverse(J: np.ndarray) -> np.ndarray:
    """
    Inverse of Jones matrices.

    For 2x2: J^{-1} = (1/det) * |  j_11  -j_01 |
                                | -j_10   j_00 |

    Singular matrices come back as NaN instead of raising, so a single
    bad element does not abort a batch. Check with ``np.isfinite``.

    Parameters
    ----------
    J : ndarray (..., 2, 2)

    Returns
    -------
    J_inv : ndarray (..., 2, 2)
    """
    det = jones_determinant(J)

    J_inv = np.empty_like(J, dtype=np.complex128)
    J_inv[..., 0, 0] = J[..., 1, 1]
    J_inv[..., 0, 1] = -J[..., 0, 1]
    J_inv[..., 1, 0] = -J[..., 1, 0]
    J_inv[..., 1, 1] = J[..., 0, 0]

    singular = det == 0
    with np.errstate(divide="ignore", invalid="ignore"):
        J_inv = J_inv / np.where(singular, np.nan, det)[..., np.newaxis, np.newaxis]

    return J_inv


def apply_jones(V: np.ndarray, J_i: np.ndarray, J_j: np.ndarray) -> np.ndarray:
    """
    Corrupt visibilities with antenna Jones matrices.

    V_obs = J_i @ V_model @ J_j^H

    Parameters
    ----------
    V : ndarray (..., 2, 2)
        Model visibility matrix
    J_i : ndarray (..., 2, 2)
        Jones matrix for antenna i
    J_j : ndarray (..., 2, 2)
        Jones matrix for antenna j

    Returns
    -------
    V_obs : ndarray (..., 2, 2)
    """
    return J_i @ V @ jones_hermitian(J_j)


def unapply_jones(V_obs: np.ndarray, J_i: np.ndarray, J_j: np.ndarray) -> np.ndarray:
    """
    Remove antenna Jones matrices from visibilities.

    V_corrected = J_i^{-1} @ V_obs @ (J_j^{-1})^H

    Elements with a singular Jones matrix come back as NaN.
    """
    return jones_inverse(J_i) @ V_obs @ jones_hermitian(jones_inverse(J_j))


def apply_diagonal(v: np.ndarray, g_i: np.ndarray, g_j: np.ndarray) -> np.ndarray:
    """
    Corrupt per-polarization visibilities with diagonal gains.

    v_obs = g_i * v_model * conj(g_j)
    """
    return g_i * v * np.conj(g_j)


def unapply_diagonal(v_obs: np.ndarray, g_i: np.ndarray, g_j: np.ndarray) -> np.ndarray:
    """
    Remove diagonal gains, NaN where a gain is exactly zero.

    v_corrected = v_obs / (g_i * conj(g_j))
    """
    denom = g_i * np.conj(g_j)
    with np.errstate(divide="ignore", invalid="ignore"):
        return v_obs / np.where(denom == 0, np.nan, denom)
