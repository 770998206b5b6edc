"""
Jones Matrix Types.

Three storage shapes share one algebra:

    JonesMatrix           | xx  xy |   general 2x2 complex
                          | yx  yy |

    DiagonalJonesMatrix   | xx   0 |   antenna gains without leakage
                          |  0  yy |

    HermitianJonesMatrix  | xx       xy |   xx, yy real
                          | conj(xy) yy |   (flux / coherency)

The Hermitian type never stores yx, so sums and congruence transforms of
Hermitian matrices stay exactly Hermitian.

Convention:
    - `@` is the matrix product, `*` and `/` scale by a number
    - Products promote to JonesMatrix unless both operands are diagonal
    - Linear indexing is column-major: J[0..3] = xx, yx, xy, yy
"""

import numbers

import numpy as np
from typing import Optional


class AbstractJonesMatrix:
    """Common behaviour of the three Jones matrix shapes."""

    __slots__ = ()

    # ndarray operands defer to the Jones operators
    __array_ufunc__ = None

    # Subclasses list their stored elements in this order
    _fields = ()

    def general(self) -> "JonesMatrix":
        """Return this matrix as a general JonesMatrix."""
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Element access
    # ------------------------------------------------------------------

    def __getitem__(self, idx):
        J = self.general()
        if isinstance(idx, tuple):
            if len(idx) != 2 or any(not 0 <= i <= 1 for i in idx):
                raise IndexError(f"Jones matrix index out of range: {idx}")
            return ((J.xx, J.xy), (J.yx, J.yy))[idx[0]][idx[1]]
        if not isinstance(idx, numbers.Integral) or not 0 <= idx <= 3:
            raise IndexError(f"Jones matrix index out of range: {idx}")
        return (J.xx, J.yx, J.xy, J.yy)[idx]

    def __len__(self):
        return 4

    def __iter__(self):
        for idx in range(4):
            yield self[idx]

    @property
    def shape(self):
        return (2, 2)

    def to_array(self) -> np.ndarray:
        """Return the matrix as a dense (2, 2) complex ndarray."""
        J = self.general()
        return np.array([[J.xx, J.xy], [J.yx, J.yy]], dtype=np.complex128)

    def __array__(self, dtype=None, copy=None):
        arr = self.to_array()
        return arr if dtype is None else arr.astype(dtype)

    def norm(self) -> float:
        """Frobenius norm."""
        return float(np.sqrt(sum(abs(x) ** 2 for x in self)))

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def _values(self):
        return tuple(getattr(self, f) for f in self._fields)

    def __eq__(self, other):
        if type(self) is type(other):
            return self._values() == other._values()
        if isinstance(other, AbstractJonesMatrix):
            return tuple(self) == tuple(other)
        return NotImplemented

    def __hash__(self):
        return hash((type(self).__name__,) + self._values())

    def __repr__(self):
        args = ", ".join(f"{f}={getattr(self, f)!r}" for f in self._fields)
        return f"{type(self).__name__}({args})"

    # ------------------------------------------------------------------
    # Elementwise arithmetic (same shape only)
    # ------------------------------------------------------------------

    def __add__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return type(self)(*(a + b for a, b in zip(self._values(), other._values())))

    def __sub__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return type(self)(*(a - b for a, b in zip(self._values(), other._values())))

    def __neg__(self):
        return type(self)(*(-a for a in self._values()))

    def __mul__(self, a):
        if not isinstance(a, numbers.Number):
            return NotImplemented
        return type(self)(*(x * a for x in self._values()))

    __rmul__ = __mul__

    def __truediv__(self, a):
        if not isinstance(a, numbers.Number):
            return NotImplemented
        return type(self)(*(x / a for x in self._values()))

    def __rtruediv__(self, a):
        if not isinstance(a, numbers.Number):
            return NotImplemented
        return self.inv() * a

    # ------------------------------------------------------------------
    # Matrix product
    # ------------------------------------------------------------------

    def __matmul__(self, other):
        if not isinstance(other, AbstractJonesMatrix):
            return NotImplemented
        A = self.general()
        B = other.general()
        return JonesMatrix(
            A.xx * B.xx + A.xy * B.yx,
            A.xx * B.xy + A.xy * B.yy,
            A.yx * B.xx + A.yy * B.yx,
            A.yx * B.xy + A.yy * B.yy,
        )

    def solve(self, other: "AbstractJonesMatrix") -> "AbstractJonesMatrix":
        """Left division: inv(self) @ other."""
        return self.inv() @ other

    # ------------------------------------------------------------------
    # Linear algebra
    # ------------------------------------------------------------------

    def det(self):
        raise NotImplementedError

    def inv(self):
        raise NotImplementedError

    def conj(self):
        raise NotImplementedError

    def transpose(self):
        raise NotImplementedError

    def adjoint(self):
        raise NotImplementedError

    @property
    def T(self):
        return self.transpose()

    @property
    def H(self):
        return self.adjoint()


def _check_invertible(det, J):
    if det == 0:
        raise ZeroDivisionError(f"Singular Jones matrix: {J!r}")


class JonesMatrix(AbstractJonesMatrix):
    """
    General 2x2 complex Jones matrix.

    J = | xx  xy |
        | yx  yy |
    """

    __slots__ = ("xx", "xy", "yx", "yy")
    _fields = ("xx", "xy", "yx", "yy")

    def __init__(self, xx, xy, yx, yy):
        object.__setattr__(self, "xx", complex(xx))
        object.__setattr__(self, "xy", complex(xy))
        object.__setattr__(self, "yx", complex(yx))
        object.__setattr__(self, "yy", complex(yy))

    def __setattr__(self, name, value):
        raise AttributeError("Jones matrices are immutable")

    @classmethod
    def zero(cls):
        return cls(0, 0, 0, 0)

    @classmethod
    def identity(cls):
        return cls(1, 0, 0, 1)

    @classmethod
    def random(cls, rng: Optional[np.random.Generator] = None):
        rng = np.random.default_rng() if rng is None else rng
        values = rng.random(4) + 1j * rng.random(4)
        return cls(*values)

    @classmethod
    def from_array(cls, arr) -> "JonesMatrix":
        """Build from a (2, 2) array-like."""
        arr = np.asarray(arr)
        if arr.shape != (2, 2):
            raise ValueError(f"A Jones matrix must be 2x2, got shape {arr.shape}")
        return cls(arr[0, 0], arr[0, 1], arr[1, 0], arr[1, 1])

    def general(self):
        return self

    def det(self):
        return self.xx * self.yy - self.xy * self.yx

    def inv(self):
        det = self.det()
        _check_invertible(det, self)
        return JonesMatrix(self.yy / det, -self.xy / det, -self.yx / det, self.xx / det)

    def conj(self):
        return JonesMatrix(self.xx.conjugate(), self.xy.conjugate(),
                           self.yx.conjugate(), self.yy.conjugate())

    def transpose(self):
        return JonesMatrix(self.xx, self.yx, self.xy, self.yy)

    def adjoint(self):
        return JonesMatrix(self.xx.conjugate(), self.yx.conjugate(),
                           self.xy.conjugate(), self.yy.conjugate())


class DiagonalJonesMatrix(AbstractJonesMatrix):
    """
    Diagonal Jones matrix.

    G = | xx   0 |
        |  0  yy |

    Used for the complex gain of each antenna when polarization leakage
    is ignored.
    """

    __slots__ = ("xx", "yy")
    _fields = ("xx", "yy")

    def __init__(self, xx, yy):
        object.__setattr__(self, "xx", complex(xx))
        object.__setattr__(self, "yy", complex(yy))

    def __setattr__(self, name, value):
        raise AttributeError("Jones matrices are immutable")

    @classmethod
    def zero(cls):
        return cls(0, 0)

    @classmethod
    def identity(cls):
        return cls(1, 1)

    @classmethod
    def random(cls, rng: Optional[np.random.Generator] = None):
        rng = np.random.default_rng() if rng is None else rng
        values = rng.random(2) + 1j * rng.random(2)
        return cls(*values)

    def general(self):
        return JonesMatrix(self.xx, 0, 0, self.yy)

    def __matmul__(self, other):
        if isinstance(other, DiagonalJonesMatrix):
            return DiagonalJonesMatrix(self.xx * other.xx, self.yy * other.yy)
        return super().__matmul__(other)

    def det(self):
        return self.xx * self.yy

    def inv(self):
        _check_invertible(self.det(), self)
        return DiagonalJonesMatrix(1 / self.xx, 1 / self.yy)

    def conj(self):
        return DiagonalJonesMatrix(self.xx.conjugate(), self.yy.conjugate())

    def transpose(self):
        return self

    def adjoint(self):
        return self.conj()


class HermitianJonesMatrix(AbstractJonesMatrix):
    """
    Hermitian Jones matrix.

    K = | xx        xy |     xx, yy real
        | conj(xy)  yy |

    Represents the xx, xy, yx, yy flux of a source or a visibility. The
    yx element is implied, so the Hermitian constraint cannot be broken by
    rounding.
    """

    __slots__ = ("xx", "xy", "yy")
    _fields = ("xx", "xy", "yy")

    def __init__(self, xx, xy, yy):
        object.__setattr__(self, "xx", float(xx))
        object.__setattr__(self, "xy", complex(xy))
        object.__setattr__(self, "yy", float(yy))

    def __setattr__(self, name, value):
        raise AttributeError("Jones matrices are immutable")

    @property
    def yx(self):
        return self.xy.conjugate()

    @classmethod
    def zero(cls):
        return cls(0, 0, 0)

    @classmethod
    def identity(cls):
        return cls(1, 0, 1)

    @classmethod
    def random(cls, rng: Optional[np.random.Generator] = None):
        rng = np.random.default_rng() if rng is None else rng
        xx, yy, re, im = rng.random(4)
        return cls(xx, re + 1j * im, yy)

    def general(self):
        return JonesMatrix(self.xx, self.xy, self.xy.conjugate(), self.yy)

    def __mul__(self, a):
        if isinstance(a, numbers.Real):
            return HermitianJonesMatrix(self.xx * a, self.xy * a, self.yy * a)
        if isinstance(a, numbers.Number):
            return self.general() * a
        return NotImplemented

    __rmul__ = __mul__

    def __truediv__(self, a):
        if isinstance(a, numbers.Real):
            return HermitianJonesMatrix(self.xx / a, self.xy / a, self.yy / a)
        if isinstance(a, numbers.Number):
            return self.general() / a
        return NotImplemented

    def det(self):
        return self.xx * self.yy - abs(self.xy) ** 2

    def inv(self):
        det = self.det()
        _check_invertible(det, self)
        return HermitianJonesMatrix(self.yy / det, -self.xy / det, self.xx / det)

    def conj(self):
        return HermitianJonesMatrix(self.xx, self.xy.conjugate(), self.yy)

    def transpose(self):
        return self.conj()

    def adjoint(self):
        return self


def kron(J1: AbstractJonesMatrix, J2: AbstractJonesMatrix) -> np.ndarray:
    """
    Kronecker product of two Jones matrices.

    Returns
    -------
    K : ndarray (4, 4)
    """
    return np.kron(J1.to_array(), J2.to_array())


def congruence_transform(J: AbstractJonesMatrix, K: HermitianJonesMatrix) -> HermitianJonesMatrix:
    """
    Congruence transformation K -> J K J^H.

    Using this instead of ``J @ K @ J.adjoint()`` guarantees the result is
    exactly Hermitian: the diagonal is accumulated as real sums.

    Parameters
    ----------
    J : AbstractJonesMatrix
        Any Jones matrix (beam, gain)
    K : HermitianJonesMatrix
        Flux or coherency

    Returns
    -------
    K' : HermitianJonesMatrix
    """
    J = J.general()
    xx = (abs(J.xx) ** 2 * K.xx
          + 2 * (J.xx * J.xy.conjugate() * K.xy).real
          + abs(J.xy) ** 2 * K.yy)
    xy = (J.xx * J.yx.conjugate() * K.xx
          + J.xx * J.yy.conjugate() * K.xy
          + J.xy * J.yx.conjugate() * K.xy.conjugate()
          + J.xy * J.yy.conjugate() * K.yy)
    yy = (abs(J.yx) ** 2 * K.xx
          + 2 * (J.yx * J.yy.conjugate() * K.xy).real
          + abs(J.yy) ** 2 * K.yy)
    return HermitianJonesMatrix(xx, xy, yy)


def make_hermitian(J: AbstractJonesMatrix) -> HermitianJonesMatrix:
    """
    Force a Jones matrix into Hermitian form.

    This is an approximation: the imaginary parts of the diagonal are
    dropped and the off-diagonal becomes the mean of xy and conj(yx).
    """
    if isinstance(J, HermitianJonesMatrix):
        return J
    if isinstance(J, DiagonalJonesMatrix):
        return HermitianJonesMatrix(J.xx.real, 0, J.yy.real)
    return HermitianJonesMatrix(J.xx.real, 0.5 * (J.xy + J.yx.conjugate()), J.yy.real)
