"""
Jones Matrix Algebra.

Scalar 2x2 Jones matrix value types (general, diagonal, Hermitian) and
their vectorised ndarray counterparts.
"""

from peelcal.jones.matrices import (
    AbstractJonesMatrix,
    JonesMatrix,
    DiagonalJonesMatrix,
    HermitianJonesMatrix,
    kron,
    congruence_transform,
    make_hermitian,
)

from peelcal.jones.operations import (
    identity_jones,
    diagonal_to_full,
    jones_hermitian,
    jones_determinant,
    jones_inverse,
    apply_jones,
    unapply_jones,
    apply_diagonal,
    unapply_diagonal,
)

__all__ = [
    # Types
    "AbstractJonesMatrix",
    "JonesMatrix",
    "DiagonalJonesMatrix",
    "HermitianJonesMatrix",
    "kron",
    "congruence_transform",
    "make_hermitian",
    # Operations
    "identity_jones",
    "diagonal_to_full",
    "jones_hermitian",
    "jones_determinant",
    "jones_inverse",
    "apply_jones",
    "unapply_jones",
    "apply_diagonal",
    "unapply_diagonal",
]
