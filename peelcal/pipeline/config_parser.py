"""
Configuration Parser.

One configuration record drives every calibration command. Values come
from the defaults below, then an optional YAML file, then the command line.

Example YAML file:

    maxiter: 50
    tolerance: 1.0e-4
    peeliter: 5
    minuvw: 10.0
    workers: 8
"""

import yaml
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional


# Command name -> (full, collapse_frequency)
COMMANDS = {
    "gaincal": (False, False),
    "polcal": (True, False),
    "applycal": (False, False),
    "peel": (True, False),
    "zest": (False, False),
    "shave": (True, True),
    "prune": (False, True),
}


@dataclass
class CalibrationConfig:
    """
    Solver and peeling settings.

    Attributes
    ----------
    maxiter : int
        Maximum solver iterations per channel
    tolerance : float
        Relative change at which a channel counts as converged
    peeliter : int
        Passes over the source list while peeling
    minuvw : float
        Minimum baseline length in wavelengths used by the solver
    full : bool
        Solve for full Jones matrices instead of diagonal gains
    collapse_frequency : bool
        One wideband solve instead of one per channel
    workers : int, optional
        Solver thread pool size (default: number of CPUs)
    """
    maxiter: int = 20
    tolerance: float = 1e-3
    peeliter: int = 3
    minuvw: float = 0.0
    full: bool = False
    collapse_frequency: bool = False
    workers: Optional[int] = None

    def validate(self) -> "CalibrationConfig":
        """Raise ValueError on an out-of-range setting."""
        if not isinstance(self.maxiter, int) or isinstance(self.maxiter, bool) or self.maxiter <= 0:
            raise ValueError(f"maxiter must be a positive integer, got {self.maxiter!r}")
        if not self.tolerance > 0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance!r}")
        if not isinstance(self.peeliter, int) or isinstance(self.peeliter, bool) or self.peeliter <= 0:
            raise ValueError(f"peeliter must be a positive integer, got {self.peeliter!r}")
        if self.minuvw < 0:
            raise ValueError(f"minuvw must not be negative, got {self.minuvw!r}")
        if self.workers is not None and self.workers <= 0:
            raise ValueError(f"workers must be positive, got {self.workers!r}")
        return self

    @classmethod
    def for_command(
        cls,
        name: str,
        base: Optional["CalibrationConfig"] = None,
        **overrides,
    ) -> "CalibrationConfig":
        """
        Configuration for a CLI command.

        Parameters
        ----------
        name : str
            gaincal, polcal, applycal, peel, zest, shave or prune
        base : CalibrationConfig, optional
            Starting values (default: the defaults)
        **overrides
            Settings that replace those of `base`; None values are ignored

        Returns
        -------
        config : CalibrationConfig
            With `full` and `collapse_frequency` set for the command
        """
        if name not in COMMANDS:
            raise ValueError(f"Unknown command: '{name}'. Choose from: {', '.join(COMMANDS)}")

        full, collapse_frequency = COMMANDS[name]
        config = base if base is not None else cls()
        overrides = {k: v for k, v in overrides.items() if v is not None}
        config = replace(config, **overrides, full=full, collapse_frequency=collapse_frequency)
        return config.validate()


def parse_config(raw: Dict[str, Any]) -> CalibrationConfig:
    """
    Build a CalibrationConfig from a dictionary.

    Keys may use dashes in place of underscores, e.g. 'collapse-frequency'.
    """
    known = {f.name for f in fields(CalibrationConfig)}
    values = {}
    for key, value in (raw or {}).items():
        name = str(key).replace("-", "_")
        if name not in known:
            raise ValueError(f"Unknown configuration key: '{key}'")
        values[name] = value

    for name in ("maxiter", "peeliter", "workers"):
        if values.get(name) is not None:
            values[name] = int(values[name])
    for name in ("tolerance", "minuvw"):
        if values.get(name) is not None:
            values[name] = float(values[name])

    return CalibrationConfig(**values).validate()


def load_config(filepath: str) -> CalibrationConfig:
    """
    Load configuration from YAML file.

    Parameters
    ----------
    filepath : str
        Path to YAML configuration file

    Returns
    -------
    config : CalibrationConfig
    """
    with open(filepath, "r") as f:
        raw = yaml.safe_load(f)

    if raw is not None and not isinstance(raw, dict):
        raise ValueError(f"{filepath}: expected a mapping of settings")

    return parse_config(raw)
