"""
Visibility Dataset.

A grid of visibilities indexed by (frequency channel, baseline, time). The
cell type is fixed by the polarization mode at construction:

    FULL   JonesMatrix           data shape (n_freq, n_base, n_time, 2, 2)
    DUAL   DiagonalJonesMatrix   data shape (n_freq, n_base, n_time, 2)
    XX/YY  complex scalar        data shape (n_freq, n_base, n_time)

`flags` has shape (n_freq, n_base, n_time); True marks a cell to ignore.
"""

import enum

import numpy as np
from typing import Optional

from peelcal.data.metadata import Metadata
from peelcal.jones.matrices import AbstractJonesMatrix, DiagonalJonesMatrix, JonesMatrix


class Polarization(enum.Enum):
    """Polarization mode of a Dataset."""
    FULL = "full"
    DUAL = "dual"
    XX = "xx"
    YY = "yy"

    @property
    def cell_shape(self) -> tuple:
        if self is Polarization.FULL:
            return (2, 2)
        if self is Polarization.DUAL:
            return (2,)
        return ()

    @property
    def is_single(self) -> bool:
        return self in (Polarization.XX, Polarization.YY)


class Dataset:
    """
    Visibilities of one observation plus their metadata.

    Parameters
    ----------
    metadata : Metadata
    polarization : Polarization
        Cell type (default: FULL)
    data : ndarray, optional
        Initial visibilities, shape (n_freq, n_base, n_time) + cell shape.
        Zeros if omitted.
    flags : ndarray, optional
        Initial flags, shape (n_freq, n_base, n_time)
    """

    def __init__(
        self,
        metadata: Metadata,
        polarization: Polarization = Polarization.FULL,
        data: Optional[np.ndarray] = None,
        flags: Optional[np.ndarray] = None,
    ):
        self.metadata = metadata
        self.polarization = Polarization(polarization)

        grid = (metadata.n_freq, metadata.n_base, metadata.n_time)
        shape = grid + self.polarization.cell_shape

        if data is None:
            data = np.zeros(shape, dtype=np.complex128)
        else:
            data = np.asarray(data, dtype=np.complex128)
            if data.shape != shape:
                raise ValueError(f"Dataset data has shape {data.shape}, expected {shape}")

        if flags is None:
            flags = np.zeros(grid, dtype=bool)
        else:
            flags = np.asarray(flags, dtype=bool)
            if flags.shape != grid:
                raise ValueError(f"Dataset flags have shape {flags.shape}, expected {grid}")

        self.data = data
        self.flags = flags

    # ------------------------------------------------------------------
    # Shape
    # ------------------------------------------------------------------

    @property
    def n_freq(self) -> int:
        return self.metadata.n_freq

    @property
    def n_base(self) -> int:
        return self.metadata.n_base

    @property
    def n_time(self) -> int:
        return self.metadata.n_time

    @property
    def n_ant(self) -> int:
        return self.metadata.n_ant

    @property
    def shape(self) -> tuple:
        return (self.n_freq, self.n_base, self.n_time)

    def __repr__(self):
        return (
            f"Dataset({self.polarization.name}, n_freq={self.n_freq}, "
            f"n_base={self.n_base}, n_time={self.n_time})"
        )

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def __getitem__(self, idx):
        frequency, baseline, time = idx
        cell = self.data[frequency, baseline, time]
        if self.polarization is Polarization.FULL:
            return JonesMatrix.from_array(cell)
        if self.polarization is Polarization.DUAL:
            return DiagonalJonesMatrix(cell[0], cell[1])
        return complex(cell)

    def __setitem__(self, idx, value):
        frequency, baseline, time = idx
        if self.polarization is Polarization.FULL:
            if not isinstance(value, AbstractJonesMatrix):
                raise TypeError(f"FULL datasets hold Jones matrices, got {type(value).__name__}")
            self.data[frequency, baseline, time] = value.to_array()
        elif self.polarization is Polarization.DUAL:
            if isinstance(value, DiagonalJonesMatrix):
                self.data[frequency, baseline, time] = (value.xx, value.yy)
            elif isinstance(value, AbstractJonesMatrix):
                J = value.general()
                self.data[frequency, baseline, time] = (J.xx, J.yy)
            else:
                raise TypeError(f"DUAL datasets hold Jones matrices, got {type(value).__name__}")
        else:
            self.data[frequency, baseline, time] = complex(value)

    # ------------------------------------------------------------------
    # Copies and views
    # ------------------------------------------------------------------

    def copy(self) -> "Dataset":
        return Dataset(self.metadata, self.polarization, self.data.copy(), self.flags.copy())

    def zeros_like(self) -> "Dataset":
        """Empty dataset with the same metadata, polarization and flags."""
        return Dataset(self.metadata, self.polarization, flags=self.flags.copy())

    def slice_channels(self, channels) -> "Dataset":
        """New dataset holding a copy of the selected channels."""
        channels = np.asarray(channels, dtype=np.int64)
        return Dataset(
            self.metadata.slice_channels(channels),
            self.polarization,
            self.data[channels].copy(),
            self.flags[channels].copy(),
        )

    def matrices(self) -> np.ndarray:
        """
        Visibilities as dense Jones matrices.

        Returns
        -------
        V : ndarray (n_freq, n_base, n_time, 2, 2)
            A copy unless the dataset is FULL. Missing correlations are zero.
        """
        if self.polarization is Polarization.FULL:
            return self.data
        V = np.zeros(self.shape + (2, 2), dtype=np.complex128)
        if self.polarization is Polarization.DUAL:
            V[..., 0, 0] = self.data[..., 0]
            V[..., 1, 1] = self.data[..., 1]
        elif self.polarization is Polarization.XX:
            V[..., 0, 0] = self.data
        else:
            V[..., 1, 1] = self.data
        return V

    def set_matrices(self, V: np.ndarray) -> None:
        """Overwrite the visibilities from dense Jones matrices, keeping this mode."""
        if V.shape != self.shape + (2, 2):
            raise ValueError(f"Expected shape {self.shape + (2, 2)}, got {V.shape}")
        if self.polarization is Polarization.FULL:
            self.data[...] = V
        elif self.polarization is Polarization.DUAL:
            self.data[..., 0] = V[..., 0, 0]
            self.data[..., 1] = V[..., 1, 1]
        elif self.polarization is Polarization.XX:
            self.data[...] = V[..., 0, 0]
        else:
            self.data[...] = V[..., 1, 1]

    def correlations(self) -> np.ndarray:
        """
        Per-polarization visibilities for diagonal solves.

        Returns
        -------
        v : ndarray (n_freq, n_base, n_time, n_pol)
            n_pol is 2 (xx, yy) for FULL/DUAL and 1 for single-correlation data.
        """
        if self.polarization is Polarization.FULL:
            return np.stack([self.data[..., 0, 0], self.data[..., 1, 1]], axis=-1)
        if self.polarization is Polarization.DUAL:
            return self.data
        return self.data[..., np.newaxis]

    # ------------------------------------------------------------------
    # In-place arithmetic
    # ------------------------------------------------------------------

    def _check_compatible(self, other: "Dataset"):
        if other.polarization is not self.polarization:
            raise ValueError(
                f"Polarization mismatch: {self.polarization.name} vs {other.polarization.name}"
            )
        if other.data.shape != self.data.shape:
            raise ValueError(f"Shape mismatch: {self.data.shape} vs {other.data.shape}")

    def add(self, other: "Dataset") -> "Dataset":
        """Add another dataset's visibilities in place."""
        self._check_compatible(other)
        self.data += other.data
        return self

    def subtract(self, other: "Dataset") -> "Dataset":
        """Subtract another dataset's visibilities in place."""
        self._check_compatible(other)
        self.data -= other.data
        return self

    # ------------------------------------------------------------------
    # Flagging
    # ------------------------------------------------------------------

    def flag_autocorrelations(self) -> "Dataset":
        self.flags[:, self.metadata.autocorrelations(), :] = True
        return self

    def flag_short_baselines(self, minuvw: float) -> "Dataset":
        """Flag baselines shorter than `minuvw` wavelengths, per channel."""
        for channel in range(self.n_freq):
            short = self.metadata.baseline_lengths(channel) < minuvw
            self.flags[channel, short, :] = True
        return self

    def norm(self) -> float:
        """Frobenius norm of the unflagged visibilities."""
        mask = ~self.flags
        return float(np.linalg.norm(self.data[mask]))
