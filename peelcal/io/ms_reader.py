"""
MeasurementSet Access.

Read and write visibility columns, flags and metadata of a CASA
MeasurementSet through casacore.

Columns are exchanged as flat arrays laid out [correlation, frequency,
baseline, time] (time axis dropped for a single integration), the layout
`peelcal.data.transform.pack` expects. Rows must be time-major with the
same baseline order in every integration, as written by the usual
correlator and conversion tools.
"""

import os

import numpy as np
from typing import Optional

from peelcal.data.metadata import Metadata
from peelcal.sky.beams import Beam
from peelcal.sky.coordinates import Direction, J2000


class MeasurementSet:
    """
    A MeasurementSet on disk.

    Parameters
    ----------
    ms_path : str
        Path to the MeasurementSet

    Raises
    ------
    FileNotFoundError
        If the path does not exist
    ValueError
        If the rows are not a regular time x baseline grid
    """

    def __init__(self, ms_path: str):
        from casacore.tables import table

        if not os.path.exists(ms_path):
            raise FileNotFoundError(f"MeasurementSet not found: {ms_path}")
        self.ms_path = ms_path

        with table(ms_path, ack=False) as tb:
            self.colnames = list(tb.colnames())
            antenna1 = tb.getcol("ANTENNA1")
            antenna2 = tb.getcol("ANTENNA2")
            time = tb.getcol("TIME")

        self.times = np.unique(time)
        self.n_time = len(self.times)
        self.n_rows = len(time)

        if self.n_rows % self.n_time != 0:
            raise ValueError(
                f"{ms_path}: {self.n_rows} rows do not divide into {self.n_time} integrations"
            )
        self.n_base = self.n_rows // self.n_time

        self.antenna1 = antenna1[:self.n_base]
        self.antenna2 = antenna2[:self.n_base]

        grid_time = time.reshape(self.n_time, self.n_base)
        if (np.any(grid_time != self.times[:, np.newaxis])
                or np.any(antenna1.reshape(self.n_time, self.n_base) != self.antenna1)
                or np.any(antenna2.reshape(self.n_time, self.n_base) != self.antenna2)):
            raise ValueError(f"{ms_path}: rows are not ordered by time with a fixed baseline order")

    def exists(self, column: str) -> bool:
        """True if the main table has this column."""
        return column in self.colnames

    def _require(self, column: str):
        if not self.exists(column):
            raise KeyError(f"Column {column} not found in {self.ms_path}")

    def _to_grid(self, rows: np.ndarray) -> np.ndarray:
        """(n_row, n_chan, n_corr) -> (n_corr, n_chan, n_base[, n_time])."""
        n_chan, n_corr = rows.shape[1:]
        grid = rows.reshape(self.n_time, self.n_base, n_chan, n_corr).transpose(3, 2, 1, 0)
        if self.n_time == 1:
            return grid[..., 0]
        return grid

    def _to_rows(self, array: np.ndarray) -> np.ndarray:
        """(n_corr, n_chan, n_base[, n_time]) -> (n_row, n_chan, n_corr)."""
        if array.ndim == 3:
            array = array[..., np.newaxis]
        n_corr, n_chan, n_base, n_time = array.shape
        if (n_base, n_time) != (self.n_base, self.n_time):
            raise ValueError(
                f"Array has {n_base} baselines x {n_time} times, "
                f"{self.ms_path} has {self.n_base} x {self.n_time}"
            )
        return np.ascontiguousarray(array.transpose(3, 2, 1, 0)).reshape(self.n_rows, n_chan, n_corr)

    def read(self, column: str = "DATA") -> np.ndarray:
        """
        Read a visibility column.

        Returns
        -------
        data : ndarray, complex
            [n_corr, n_chan, n_base(, n_time)]

        Raises
        ------
        KeyError
            If the column does not exist
        """
        from casacore.tables import table

        self._require(column)
        with table(self.ms_path, ack=False) as tb:
            rows = tb.getcol(column)
        return self._to_grid(rows)

    def read_flags(self) -> np.ndarray:
        """
        Read FLAG, with FLAG_ROW folded in.

        Returns
        -------
        flags : ndarray, bool
            [n_corr, n_chan, n_base(, n_time)]
        """
        from casacore.tables import table

        self._require("FLAG")
        with table(self.ms_path, ack=False) as tb:
            flags = tb.getcol("FLAG")
            if "FLAG_ROW" in self.colnames:
                flags = flags | tb.getcol("FLAG_ROW")[:, np.newaxis, np.newaxis]
        return self._to_grid(flags)

    def write(self, column: str, array: np.ndarray, create: bool = False) -> None:
        """
        Write a visibility column.

        Parameters
        ----------
        column : str
            e.g. 'CORRECTED_DATA' or 'MODEL_DATA'
        array : ndarray
            [n_corr, n_chan, n_base(, n_time)]
        create : bool
            Add the column (described like DATA) if it does not exist

        Raises
        ------
        KeyError
            If the column does not exist and `create` is False
        """
        from casacore.tables import table

        if not self.exists(column) and not create:
            raise KeyError(f"Column {column} not found in {self.ms_path}")

        rows = self._to_rows(np.asarray(array))

        with table(self.ms_path, readonly=False, ack=False) as tb:
            if column not in tb.colnames():
                desc = tb.getcoldesc("DATA")
                tb.addcols({column: desc})
                self.colnames.append(column)
            tb.putcol(column, rows)

    def write_flags(self, flags: np.ndarray) -> None:
        """Overwrite FLAG from a [n_corr, n_chan, n_base(, n_time)] bool array."""
        from casacore.tables import table

        self._require("FLAG")
        rows = self._to_rows(np.asarray(flags, dtype=bool))
        with table(self.ms_path, readonly=False, ack=False) as tb:
            tb.putcol("FLAG", rows)

    def frequencies(self) -> np.ndarray:
        """Channel frequencies (Hz) of the first spectral window."""
        from casacore.tables import table

        with table(f"{self.ms_path}/SPECTRAL_WINDOW", ack=False) as tb:
            return tb.getcol("CHAN_FREQ")[0]

    def positions(self) -> np.ndarray:
        """Antenna ITRF positions (n_ant, 3) in metres."""
        from casacore.tables import table

        with table(f"{self.ms_path}/ANTENNA", ack=False) as tb:
            return tb.getcol("POSITION")

    def phase_center(self) -> Direction:
        """Phase centre of the first field (J2000)."""
        from casacore.tables import table

        with table(f"{self.ms_path}/FIELD", ack=False) as tb:
            phase_dir = tb.getcol("PHASE_DIR")  # (n_field, n_poly, 2)
        ra, dec = phase_dir[0, 0]
        return Direction(J2000, float(ra) % (2 * np.pi), float(dec))

    def metadata(self, beam: Optional[Beam] = None) -> Metadata:
        """
        Metadata bundle for this MeasurementSet.

        Parameters
        ----------
        beam : Beam, optional
            Beam model attached to the metadata (default: ConstantBeam)
        """
        return Metadata.from_arrays(
            positions=self.positions(),
            channels=self.frequencies(),
            phase_center=self.phase_center(),
            times=self.times,
            beam=beam,
            antenna1=self.antenna1,
            antenna2=self.antenna2,
        )
