"""
Calibration Pipeline.
"""

from peelcal.pipeline.runner import run_command, CalibrationRunner
from peelcal.pipeline.config_parser import load_config, parse_config, CalibrationConfig

__all__ = [
    "run_command",
    "CalibrationRunner",
    "load_config",
    "parse_config",
    "CalibrationConfig",
]
