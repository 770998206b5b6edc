"""
Calibration Pipeline Runner.

Executes one calibration command against a MeasurementSet.
"""

import numpy as np
from typing import List, Optional

from peelcal.core.calibration import Calibration
from peelcal.core.peeling import peel
from peelcal.core.solver import solve
from peelcal.data.dataset import Dataset, Polarization
from peelcal.data.transform import pack, unpack, unpack_flags
from peelcal.io.ms_reader import MeasurementSet
from peelcal.io.table_io import load_calibration, save_calibration, save_peeling_calibrations
from peelcal.pipeline.config_parser import COMMANDS, CalibrationConfig
from peelcal.sky.beams import get_beam
from peelcal.sky.predict import genvis
from peelcal.sky.sources import read_sources

PEELING_COMMANDS = ("peel", "zest", "shave", "prune")

_POLARIZATION_FOR_CORRELATIONS = {
    4: Polarization.FULL,
    2: Polarization.DUAL,
    1: Polarization.XX,
}


class CalibrationRunner:
    """
    Run a calibration command on a MeasurementSet.

    Parameters
    ----------
    ms_path : str
        Path to MeasurementSet
    config : CalibrationConfig
        Settings, with `full`/`collapse_frequency` matching the command
    beam : str
        Beam model name (default: 'sine')
    force_imaging : bool
        Create MODEL_DATA / CORRECTED_DATA when they are missing
    use_corrected : bool
        applycal: calibrate CORRECTED_DATA instead of DATA
    verbose : bool
        Print progress
    """

    def __init__(
        self,
        ms_path: str,
        config: Optional[CalibrationConfig] = None,
        beam: str = "sine",
        force_imaging: bool = False,
        use_corrected: bool = False,
        verbose: bool = True,
    ):
        self.ms_path = ms_path
        self.config = (config if config is not None else CalibrationConfig()).validate()
        self.beam = get_beam(beam)
        self.force_imaging = force_imaging
        self.use_corrected = use_corrected
        self.verbose = verbose
        self.ms = MeasurementSet(ms_path)

    def _print(self, msg: str):
        """Print if verbose."""
        if self.verbose:
            print(f"[PEELCAL] {msg}")

    def _read(self, column: str):
        """Read a column and its flags into a Dataset."""
        self._print(f"Reading {column} from {self.ms_path}")
        raw = self.ms.read(column)
        flags = self.ms.read_flags()

        n_corr = raw.shape[0]
        if n_corr not in _POLARIZATION_FOR_CORRELATIONS:
            raise ValueError(f"{self.ms_path}: unsupported number of correlations {n_corr}")
        polarization = _POLARIZATION_FOR_CORRELATIONS[n_corr]

        metadata = self.ms.metadata(self.beam)
        data = pack(raw, metadata, polarization, flags=flags)
        self._print(f"Data: {data.n_ant} antennas, {data.n_base} baselines, "
                    f"{data.n_freq} channels, {data.n_time} integrations, "
                    f"{polarization.name} polarization")
        return data, raw

    def _data_column(self) -> str:
        return "CORRECTED_DATA" if self.ms.exists("CORRECTED_DATA") else "DATA"

    def _write_model(self, model: Dataset, raw: np.ndarray):
        if self.force_imaging or self.ms.exists("MODEL_DATA"):
            self._print("Writing MODEL_DATA")
            self.ms.write("MODEL_DATA", unpack(model, np.zeros_like(raw)), create=True)

    def calibrate(self, sources_path: str, output: str, full: Optional[bool] = None) -> Calibration:
        """
        Solve for a direction-independent calibration (gaincal / polcal).

        Parameters
        ----------
        sources_path : str
            JSON sky model
        output : str
            HDF5 file for the solution (overwritten)
        full : bool, optional
            Override the config's `full` switch

        Returns
        -------
        calibration : Calibration
        """
        full = self.config.full if full is None else full
        column = self._data_column() if full else "DATA"

        sources = read_sources(sources_path)
        self._print(f"Sky model: {len(sources)} sources from {sources_path}")

        data, raw = self._read(column)
        self._print("Predicting model visibilities")
        model = genvis(data.metadata, sources, data.polarization)

        calibration = solve(
            data,
            model,
            maxiter=self.config.maxiter,
            tolerance=self.config.tolerance,
            minuvw=self.config.minuvw,
            full=full,
            collapse_frequency=self.config.collapse_frequency,
            workers=self.config.workers,
            verbose=self.verbose,
        )

        save_calibration(output, calibration, metadata={
            "ms": self.ms_path,
            "sources": sources_path,
            "beam": repr(self.beam),
            "column": column,
        })
        self._print(f"Saved calibration to {output}")

        self._write_model(model, raw)
        return calibration

    def applycal(self, calibration_path: str) -> Dataset:
        """
        Apply a saved calibration.

        Reads CORRECTED_DATA when `use_corrected` is set and the column
        exists, DATA otherwise. Writes CORRECTED_DATA when it exists or
        `force_imaging` is set, DATA otherwise.

        Returns
        -------
        corrected : Dataset
        """
        calibration = load_calibration(calibration_path)
        self._print(f"Loaded {calibration!r} from {calibration_path}")

        read_column = "DATA"
        if self.use_corrected and self.ms.exists("CORRECTED_DATA"):
            read_column = "CORRECTED_DATA"
        write_column = "DATA"
        if self.force_imaging or self.ms.exists("CORRECTED_DATA"):
            write_column = "CORRECTED_DATA"

        data, raw = self._read(read_column)
        corrected = calibration.applycal(data)

        n_flagged = int(corrected.flags.sum() - data.flags.sum())
        self._print(f"Flagged {n_flagged} additional cells")

        self.ms.write(write_column, unpack(corrected, raw.copy()), create=True)
        flags = self.ms.read_flags() | unpack_flags(corrected, raw.shape[0])
        self.ms.write_flags(flags)
        self._print(f"Written calibrated data to {write_column}")
        return corrected

    def peel(self, sources_path: str, output: Optional[str] = None) -> List[Calibration]:
        """
        Peel sources and write the residual back to the column it came from.

        Parameters
        ----------
        sources_path : str
            JSON sky model, in peeling order
        output : str, optional
            HDF5 file for the per-direction calibrations

        Returns
        -------
        calibrations : list of Calibration
        """
        sources = read_sources(sources_path)
        self._print(f"Sky model: {len(sources)} sources from {sources_path}")

        column = self._data_column()
        data, raw = self._read(column)
        calibrations = peel(data, sources, self.config, verbose=self.verbose)

        self.ms.write(column, unpack(data, raw.copy()))
        self._print(f"Written residual to {column}")

        if output:
            save_peeling_calibrations(output, calibrations, names=[s.name for s in sources],
                                      metadata={"ms": self.ms_path, "sources": sources_path})
            self._print(f"Saved {len(calibrations)} calibrations to {output}")

        return calibrations


def run_command(
    command: str,
    ms_path: str,
    sources: Optional[str] = None,
    output: Optional[str] = None,
    calibration: Optional[str] = None,
    beam: str = "sine",
    config: Optional[CalibrationConfig] = None,
    force_imaging: bool = False,
    corrected: bool = False,
    verbose: bool = True,
):
    """
    Run one CLI command.

    Parameters
    ----------
    command : str
        gaincal, polcal, applycal, peel, zest, shave or prune
    ms_path : str
        Path to MeasurementSet
    sources : str, optional
        JSON sky model (all commands but applycal)
    output : str, optional
        Calibration output file (required for gaincal/polcal)
    calibration : str, optional
        Calibration to apply (applycal)
    beam : str
        Beam model name
    config : CalibrationConfig, optional
        Settings; `full`/`collapse_frequency` are set from the command
    force_imaging : bool
        Create MODEL_DATA / CORRECTED_DATA when missing
    corrected : bool
        applycal: calibrate CORRECTED_DATA
    verbose : bool
        Print progress
    """
    if command not in COMMANDS:
        raise ValueError(f"Unknown command: '{command}'")

    config = CalibrationConfig.for_command(command, base=config)
    runner = CalibrationRunner(
        ms_path,
        config=config,
        beam=beam,
        force_imaging=force_imaging,
        use_corrected=corrected,
        verbose=verbose,
    )

    runner._print(f"Running `{command}` on {ms_path}")

    if command == "applycal":
        if not calibration:
            raise ValueError("applycal needs a calibration file")
        return runner.applycal(calibration)

    if not sources:
        raise ValueError(f"{command} needs a sky model (--sources)")

    if command in PEELING_COMMANDS:
        return runner.peel(sources, output)

    if not output:
        raise ValueError(f"{command} needs an output file (--output)")
    return runner.calibrate(sources, output)
