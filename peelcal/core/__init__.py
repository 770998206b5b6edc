"""
Core Solver Components.

1. Calibration: per-channel antenna gain solutions
2. StefCal-style self-calibration solver (gaincal, polcal)
3. Peeling of sky-model directions (peel, zest, shave, prune)
"""

from peelcal.core.calibration import Calibration
from peelcal.core.solver import solve, gaincal, polcal
from peelcal.core.peeling import peel, peel_sources, zest, shave, prune

__all__ = [
    "Calibration",
    "solve",
    "gaincal",
    "polcal",
    "peel",
    "peel_sources",
    "zest",
    "shave",
    "prune",
]
