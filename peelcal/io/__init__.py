"""
I/O Module for PEELCAL.

Handles:
- MeasurementSet reading/writing
- HDF5 calibration table I/O
"""

from peelcal.io.ms_reader import MeasurementSet
from peelcal.io.table_io import (
    save_calibration,
    load_calibration,
    save_peeling_calibrations,
    load_peeling_calibrations,
    peeling_source_names,
    get_table_info,
)

__all__ = [
    "MeasurementSet",
    "save_calibration",
    "load_calibration",
    "save_peeling_calibrations",
    "load_peeling_calibrations",
    "peeling_source_names",
    "get_table_info",
]
