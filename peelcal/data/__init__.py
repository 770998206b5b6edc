"""
Visibility Dataset Model.

Metadata, the frequency x baseline x time Dataset, and the transform
between Datasets and flat measurement-set arrays.
"""

from peelcal.data.metadata import Antenna, Baseline, Metadata, all_baselines, C
from peelcal.data.dataset import Dataset, Polarization
from peelcal.data.transform import pack, unpack, unpack_flags

__all__ = [
    "Antenna",
    "Baseline",
    "Metadata",
    "all_baselines",
    "C",
    "Dataset",
    "Polarization",
    "pack",
    "unpack",
    "unpack_flags",
]
