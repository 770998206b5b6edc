"""
Source Spectra.

Stokes parameters and the power-law spectral model used by the sky model.
"""

import numpy as np
from dataclasses import dataclass
from typing import Tuple

from peelcal.jones.matrices import HermitianJonesMatrix


@dataclass(frozen=True)
class StokesVector:
    """Stokes parameters (I, Q, U, V) in Jy."""
    I: float
    Q: float = 0.0
    U: float = 0.0
    V: float = 0.0

    def __add__(self, other):
        if not isinstance(other, StokesVector):
            return NotImplemented
        return StokesVector(self.I + other.I, self.Q + other.Q,
                            self.U + other.U, self.V + other.V)

    def __mul__(self, a):
        return StokesVector(self.I * a, self.Q * a, self.U * a, self.V * a)

    __rmul__ = __mul__


def linear(s: StokesVector) -> HermitianJonesMatrix:
    """
    Stokes parameters to linear-feed coherency.

    K = | I + Q     U + iV |
        | U - iV    I - Q  |
    """
    return HermitianJonesMatrix(s.I + s.Q, complex(s.U, s.V), s.I - s.Q)


def stokes(K: HermitianJonesMatrix) -> StokesVector:
    """Linear-feed coherency to Stokes parameters (inverse of `linear`)."""
    return StokesVector(
        I=0.5 * (K.xx + K.yy),
        Q=0.5 * (K.xx - K.yy),
        U=K.xy.real,
        V=K.xy.imag,
    )


@dataclass(frozen=True)
class PowerLaw:
    """
    Polynomial-in-log power-law spectrum.

    S(nu) = S_0 * 10^( sum_k index[k] * log10(nu / nu_0)^(k+1) )

    A single-element index is an ordinary spectral index.
    """
    stokes: StokesVector
    reference_frequency: float
    index: Tuple[float, ...] = ()

    def __call__(self, frequency: float) -> StokesVector:
        s = np.log10(frequency / self.reference_frequency)
        exponent = sum(a * s ** (k + 1) for k, a in enumerate(self.index))
        return self.stokes * float(10.0 ** exponent)
