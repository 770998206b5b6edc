"""
HDF5 Calibration Table I/O.

Store and retrieve Calibration solutions in HDF5 format.

File structure (single calibration):
    cal.h5/
        gains         # (n_freq, n_ant, 2, 2) or (n_freq, n_ant, 2) complex
        freq          # (n_freq,) float64 - Hz
        converged     # (n_freq,) bool
        iterations    # (n_freq,) int64
        attrs:
            mode      # 'full' or 'diagonal'
            created   # ISO timestamp
            metadata  # JSON string

Peeling calibrations are stored one group per direction, in peeling order:
    peel.h5/
        000/          # same layout as above
            attrs:
                source    # source name
        001/
        ...
        attrs:
            n_sources
"""

import json
from datetime import datetime

import h5py
import numpy as np
from typing import Dict, List, Optional, Sequence

from peelcal.core.calibration import Calibration


def _write_group(grp: h5py.Group, calibration: Calibration, metadata: Optional[Dict]):
    grp.create_dataset("gains", data=calibration.gains, compression="gzip")
    grp.create_dataset("freq", data=calibration.channels)
    grp.create_dataset("converged", data=calibration.converged)
    grp.create_dataset("iterations", data=calibration.iterations)

    grp.attrs["mode"] = "full" if calibration.full else "diagonal"
    grp.attrs["created"] = datetime.now().isoformat()
    if metadata:
        grp.attrs["metadata"] = json.dumps(metadata)


def _read_group(grp: h5py.Group) -> Calibration:
    return Calibration(
        grp["gains"][...],
        converged=grp["converged"][...],
        channels=grp["freq"][...],
        iterations=grp["iterations"][...],
    )


def save_calibration(
    filepath: str,
    calibration: Calibration,
    metadata: Optional[Dict] = None,
) -> None:
    """
    Save a calibration to an HDF5 file, replacing any existing file.

    Parameters
    ----------
    filepath : str
        Path to HDF5 file
    calibration : Calibration
    metadata : dict, optional
        Extra information stored as a JSON attribute
    """
    with h5py.File(filepath, "w") as f:
        _write_group(f, calibration, metadata)


def load_calibration(filepath: str) -> Calibration:
    """
    Load a calibration written by `save_calibration`.

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    KeyError
        If the file holds no single calibration
    """
    with h5py.File(filepath, "r") as f:
        if "gains" not in f:
            raise KeyError(f"No calibration found in {filepath}")
        return _read_group(f)


def save_peeling_calibrations(
    filepath: str,
    calibrations: Sequence[Calibration],
    names: Optional[Sequence[str]] = None,
    metadata: Optional[Dict] = None,
) -> None:
    """
    Save one calibration per peeled direction.

    Parameters
    ----------
    filepath : str
        Path to HDF5 file
    calibrations : list of Calibration
        In peeling order
    names : list of str, optional
        Source names, same order
    metadata : dict, optional
        Extra information stored with every direction
    """
    if names is not None and len(names) != len(calibrations):
        raise ValueError(f"Got {len(names)} names for {len(calibrations)} calibrations")

    with h5py.File(filepath, "w") as f:
        f.attrs["n_sources"] = len(calibrations)
        for i, calibration in enumerate(calibrations):
            grp = f.create_group(f"{i:03d}")
            _write_group(grp, calibration, metadata)
            grp.attrs["source"] = names[i] if names is not None else ""


def load_peeling_calibrations(filepath: str) -> List[Calibration]:
    """
    Load calibrations written by `save_peeling_calibrations`, in peeling order.
    """
    with h5py.File(filepath, "r") as f:
        n_sources = int(f.attrs.get("n_sources", 0))
        calibrations = []
        for i in range(n_sources):
            key = f"{i:03d}"
            if key not in f:
                raise KeyError(f"Direction {i} missing from {filepath}")
            calibrations.append(_read_group(f[key]))
    return calibrations


def peeling_source_names(filepath: str) -> List[str]:
    """Source names stored by `save_peeling_calibrations`."""
    with h5py.File(filepath, "r") as f:
        n_sources = int(f.attrs.get("n_sources", 0))
        names = []
        for i in range(n_sources):
            name = f[f"{i:03d}"].attrs.get("source", "")
            if isinstance(name, bytes):
                name = name.decode()
            names.append(str(name))
    return names


def get_table_info(filepath: str) -> Dict:
    """
    Summary of a calibration file.

    Returns
    -------
    info : dict
        mode, n_freq, n_ant, n_converged (single calibration), or
        n_sources and a per-direction list (peeling file)
    """
    def summarize(grp):
        gains = grp["gains"]
        return {
            "mode": grp.attrs.get("mode", ""),
            "n_freq": gains.shape[0],
            "n_ant": gains.shape[1],
            "n_converged": int(np.sum(grp["converged"][...])),
            "created": grp.attrs.get("created", ""),
        }

    with h5py.File(filepath, "r") as f:
        if "gains" in f:
            return summarize(f)
        n_sources = int(f.attrs.get("n_sources", 0))
        return {
            "n_sources": n_sources,
            "directions": [summarize(f[f"{i:03d}"]) for i in range(n_sources)],
        }
