"""
Peeling.

Direction-dependent calibration: each source in the sky model is in turn
calibrated against the residual visibilities and its calibrated model is
subtracted, leaving the residual with that direction removed. Passes over
the whole source list repeat `peeliter` times; from the second pass on a
source's previous calibrated model is added back before it is re-solved.

The four variants differ in two switches on the config:

    variant   collapse_frequency   full
    peel      False                True
    zest      False                False
    shave     True                 True
    prune     True                 False
"""

from dataclasses import replace
from typing import List

from peelcal.core.calibration import Calibration
from peelcal.core.solver import solve
from peelcal.data.dataset import Dataset
from peelcal.sky.predict import genvis


def peel(data: Dataset, sources: list, config, verbose: bool = False) -> List[Calibration]:
    """
    Peel sources from a dataset.

    Parameters
    ----------
    data : Dataset
        Observed visibilities. Overwritten with the residual.
    sources : list
        Sky model sources, peeled in this order
    config : CalibrationConfig
        maxiter, tolerance, peeliter, minuvw, full, collapse_frequency, workers
    verbose : bool
        Print progress

    Returns
    -------
    calibrations : list of Calibration
        One per source, in source order
    """
    config.validate()
    sources = list(sources)

    if verbose:
        print(f"[PEELCAL] Peeling {len(sources)} sources, {config.peeliter} passes "
              f"(full={config.full}, collapse_frequency={config.collapse_frequency})")
        print("[PEELCAL] Predicting model visibilities")

    coherencies = [genvis(data.metadata, source, data.polarization) for source in sources]
    calibrations = [None] * len(sources)
    subtracted = [None] * len(sources)

    for iteration in range(config.peeliter):
        if verbose:
            print(f"[PEELCAL] Pass {iteration + 1}/{config.peeliter}")

        for i, (source, coherency) in enumerate(zip(sources, coherencies)):
            if subtracted[i] is not None:
                data.add(subtracted[i])

            calibration = solve(
                data,
                coherency,
                maxiter=config.maxiter,
                tolerance=config.tolerance,
                minuvw=config.minuvw,
                full=config.full,
                collapse_frequency=config.collapse_frequency,
                workers=config.workers,
            )

            subtracted[i] = calibration.corrupt(coherency)
            data.subtract(subtracted[i])
            calibrations[i] = calibration

            if verbose:
                print(f"[PEELCAL]   {source.name}: converged "
                      f"{int(calibration.converged.sum())}/{calibration.n_freq} channels")

    if verbose and sources:
        print(f"[PEELCAL] Residual norm: {data.norm():.6g}")

    return calibrations


def peel_sources(data: Dataset, sources: list, config, verbose: bool = False) -> List[Calibration]:
    """Per-channel, full-Jones peeling."""
    return peel(data, sources, replace(config, full=True, collapse_frequency=False), verbose)


def zest(data: Dataset, sources: list, config, verbose: bool = False) -> List[Calibration]:
    """Per-channel, diagonal-gain peeling."""
    return peel(data, sources, replace(config, full=False, collapse_frequency=False), verbose)


def shave(data: Dataset, sources: list, config, verbose: bool = False) -> List[Calibration]:
    """Frequency-collapsed, full-Jones peeling."""
    return peel(data, sources, replace(config, full=True, collapse_frequency=True), verbose)


def prune(data: Dataset, sources: list, config, verbose: bool = False) -> List[Calibration]:
    """Frequency-collapsed, diagonal-gain peeling."""
    return peel(data, sources, replace(config, full=False, collapse_frequency=True), verbose)
