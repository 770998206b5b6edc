"""
Array <-> Dataset Transform.

Measurement-set columns come back from casacore as flat complex arrays laid
out [correlation, frequency, baseline] or [correlation, frequency, baseline,
time]. `pack` turns such an array into a Dataset of the requested
polarization mode and `unpack` writes a Dataset back into that layout.

Correlation order is the linear-feed MS order (XX, XY, YX, YY):

    FULL  reads 0, 1, 2, 3           -> | xx xy |
                                        | yx yy |
    DUAL  reads 0, 3 of 4 correlations, or 0, 1 of 2
    XX    reads 0
    YY    reads the last correlation

DUAL cells whose xx and yy entries are both exactly zero are treated as
missing and flagged. FULL cells are always kept, so a cell with only cross
hands survives a pack/unpack round trip.
"""

import numpy as np
from typing import Optional, Sequence

from peelcal.data.dataset import Dataset, Polarization
from peelcal.data.metadata import Metadata


def _with_time_axis(array: np.ndarray, name: str) -> np.ndarray:
    if array.ndim == 3:
        return array[..., np.newaxis]
    if array.ndim == 4:
        return array
    raise ValueError(
        f"{name} must be laid out [pol, freq, base] or [pol, freq, base, time], "
        f"got {array.ndim} dimensions"
    )


def correlation_indices(polarization: Polarization, n_corr: int) -> tuple:
    """
    Correlations read or written for a polarization mode.

    Parameters
    ----------
    polarization : Polarization
    n_corr : int
        Number of correlations in the flat array (1, 2 or 4)

    Returns
    -------
    indices : tuple of int
    """
    polarization = Polarization(polarization)

    if polarization is Polarization.FULL:
        if n_corr != 4:
            raise ValueError(f"FULL polarization needs 4 correlations, got {n_corr}")
        return (0, 1, 2, 3)
    if polarization is Polarization.DUAL:
        if n_corr == 4:
            return (0, 3)
        if n_corr == 2:
            return (0, 1)
        raise ValueError(f"DUAL polarization needs 2 or 4 correlations, got {n_corr}")
    if n_corr not in (1, 2, 4):
        raise ValueError(f"Unsupported number of correlations: {n_corr}")
    if polarization is Polarization.XX:
        return (0,)
    return (n_corr - 1,)


def pack(
    array: np.ndarray,
    metadata: Metadata,
    polarization: Polarization = Polarization.FULL,
    channels: Optional[Sequence[int]] = None,
    flags: Optional[np.ndarray] = None,
) -> Dataset:
    """
    Build a Dataset from a flat correlation array.

    Parameters
    ----------
    array : ndarray, complex
        [n_corr, n_freq, n_base] or [n_corr, n_freq, n_base, n_time]
    metadata : Metadata
        Must describe the selected channels, baselines and times
    polarization : Polarization
        Target cell type
    channels : sequence of int, optional
        Input channels to keep (default: all)
    flags : ndarray, bool, optional
        Same layout as `array`. A cell is flagged if any correlation it
        reads is flagged.

    Returns
    -------
    dataset : Dataset
    """
    polarization = Polarization(polarization)
    array = _with_time_axis(np.asarray(array), "array")

    if channels is not None:
        channels = np.asarray(channels, dtype=np.int64)
        array = array[:, channels]

    n_corr = array.shape[0]
    grid = array.shape[1:]
    expected = (metadata.n_freq, metadata.n_base, metadata.n_time)
    if grid != expected:
        raise ValueError(f"Array grid {grid} does not match metadata {expected}")

    idx = correlation_indices(polarization, n_corr)
    dataset = Dataset(metadata, polarization)

    if polarization is Polarization.FULL:
        dataset.data[..., 0, 0] = array[idx[0]]
        dataset.data[..., 0, 1] = array[idx[1]]
        dataset.data[..., 1, 0] = array[idx[2]]
        dataset.data[..., 1, 1] = array[idx[3]]
    elif polarization is Polarization.DUAL:
        dataset.data[..., 0] = array[idx[0]]
        dataset.data[..., 1] = array[idx[1]]
        dataset.flags |= (array[idx[0]] == 0) & (array[idx[1]] == 0)
    else:
        dataset.data[...] = array[idx[0]]

    if flags is not None:
        flags = _with_time_axis(np.asarray(flags, dtype=bool), "flags")
        if channels is not None:
            flags = flags[:, channels]
        if flags.shape != array.shape:
            raise ValueError(f"Flag shape {flags.shape} does not match array {array.shape}")
        dataset.flags |= np.any(flags[list(idx)], axis=0)

    return dataset


def unpack(dataset: Dataset, out: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Write a Dataset back to a flat correlation array.

    Only the correlations belonging to the dataset's polarization mode are
    written; the rest of `out` is left untouched.

    Parameters
    ----------
    dataset : Dataset
    out : ndarray, optional
        Destination array, updated in place. A new zero array with
        4 (FULL), 2 (DUAL) or 1 (XX/YY) correlations is made if omitted.

    Returns
    -------
    array : ndarray
        [n_corr, n_freq, n_base, n_time], or [n_corr, n_freq, n_base] when
        the dataset has a single integration
    """
    polarization = dataset.polarization

    if out is None:
        n_corr = {Polarization.FULL: 4, Polarization.DUAL: 2}.get(polarization, 1)
        shape = (n_corr,) + dataset.shape
        if dataset.n_time == 1:
            shape = shape[:-1]
        out = np.zeros(shape, dtype=np.complex128)

    target = _with_time_axis(out, "out")
    if target.shape[1:] != dataset.shape:
        raise ValueError(f"Output grid {target.shape[1:]} does not match dataset {dataset.shape}")

    idx = correlation_indices(polarization, target.shape[0])

    if polarization is Polarization.FULL:
        target[idx[0]] = dataset.data[..., 0, 0]
        target[idx[1]] = dataset.data[..., 0, 1]
        target[idx[2]] = dataset.data[..., 1, 0]
        target[idx[3]] = dataset.data[..., 1, 1]
    elif polarization is Polarization.DUAL:
        target[idx[0]] = dataset.data[..., 0]
        target[idx[1]] = dataset.data[..., 1]
    else:
        target[idx[0]] = dataset.data

    if dataset.n_time == 1 and out.ndim == 4:
        return out[..., 0]
    return out


def unpack_flags(dataset: Dataset, n_corr: int = 4) -> np.ndarray:
    """
    Dataset flags broadcast to every correlation.

    Returns
    -------
    flags : ndarray, bool
        [n_corr, n_freq, n_base(, n_time)], time axis dropped for a single
        integration
    """
    flags = np.broadcast_to(dataset.flags, (n_corr,) + dataset.shape).copy()
    if dataset.n_time == 1:
        return flags[..., 0]
    return flags
