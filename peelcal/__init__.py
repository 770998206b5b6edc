"""
PEELCAL - StefCal self-calibration and source peeling

Direction-independent and direction-dependent calibration of radio
interferometer visibilities.

Components:
- Jones matrix algebra: general, diagonal and Hermitian 2x2 matrices
- Dataset model: frequency x baseline x time grids of visibilities
- Solver: per-channel StefCal iteration (gaincal, polcal)
- Peeling: peel, zest, shave and prune over a sky model
- Sky model: point, Gaussian and multi-component sources, beams, prediction

Modes:
- diagonal: one complex gain per antenna and polarization
- full: 2x2 complex Jones matrix per antenna
"""

__version__ = "0.1.0"

from .core.calibration import Calibration
from .core.solver import solve, gaincal, polcal
from .core.peeling import peel

__all__ = ['Calibration', 'solve', 'gaincal', 'polcal', 'peel']
