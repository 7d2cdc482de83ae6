"""
Linear operator interface shared by system matrices and preconditioners.
"""

from abc import ABC, abstractmethod
from typing import Any

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from .errors import ConfigurationError, DimensionError


def check_vector(v: Any, n: int, name: str = "vector") -> np.ndarray:
    """
    Return ``v`` as a 1-D float array of length ``n``.

    Raises
    ------
    DimensionError
        If ``v`` is not one-dimensional or its length differs from ``n``.
    """
    v = np.asarray(v, dtype=np.float64)
    if v.ndim != 1:
        raise DimensionError(f"{name} must be one-dimensional, got shape {v.shape}")
    if v.shape[0] != n:
        raise DimensionError(f"{name} has length {v.shape[0]}, expected {n}")
    return v


def as_csr(A: Any) -> sp.csr_matrix:
    """
    Convert a dense or sparse matrix to SciPy CSR format.

    A matrix that is already CSR is returned as-is (no copy), so several
    operators can share the same read-only matrix data.
    """
    if isinstance(A, MatrixOperator):
        A = A.matrix
    if sp.issparse(A):
        if A.format == "csr":
            return A
        return sp.csr_matrix(A)
    return sp.csr_matrix(np.asarray(A, dtype=np.float64))


def check_square(A: Any, what: str = "matrix"):
    n_rows, n_cols = A.shape
    if n_rows != n_cols:
        raise ConfigurationError(f"{what} must be square, got shape {A.shape}")
    return n_rows


class LinearOperator(ABC):
    """
    Abstract linear operator.

    Anything the solvers multiply with (system matrices and
    preconditioners alike) exposes ``apply``, ``rows`` and ``cols``.
    """

    @abstractmethod
    def apply(self, x: np.ndarray) -> np.ndarray:
        """Return the result of applying the operator to ``x``."""

    @abstractmethod
    def rows(self) -> int:
        pass

    @abstractmethod
    def cols(self) -> int:
        pass

    @property
    def shape(self) -> tuple[int, int]:
        return (self.rows(), self.cols())

    def to_scipy(self) -> spla.LinearOperator:
        """
        Wrap this operator as a ``scipy.sparse.linalg.LinearOperator``.

        Useful for passing a smoother as ``M=`` to the SciPy Krylov solvers.
        """
        return spla.LinearOperator(self.shape, matvec=self.apply, dtype=np.float64)

    def __repr__(self):
        return f"{type(self).__name__}(shape={self.shape})"


class MatrixOperator(LinearOperator):
    """
    Operator backed by an explicit dense or sparse matrix.

    Dense ``numpy`` arrays are kept dense; SciPy sparse input is stored in
    CSR format.
    """

    def __init__(self, A: Any):
        if sp.issparse(A):
            self._mat = as_csr(A)
        else:
            self._mat = np.asarray(A, dtype=np.float64)
            if self._mat.ndim != 2:
                raise DimensionError(f"matrix must be two-dimensional, got shape {self._mat.shape}")

    def apply(self, x: np.ndarray) -> np.ndarray:
        x = check_vector(x, self.cols(), "operator input")
        return np.asarray(self._mat @ x, dtype=np.float64)

    def rows(self) -> int:
        return self._mat.shape[0]

    def cols(self) -> int:
        return self._mat.shape[1]

    @property
    def matrix(self):
        """The wrapped matrix."""
        return self._mat


class IdentityOperator(LinearOperator):
    """Identity map of size ``n``."""

    def __init__(self, n: int):
        if n <= 0:
            raise ConfigurationError(f"identity size must be positive, got {n}")
        self._n = int(n)

    def apply(self, x: np.ndarray) -> np.ndarray:
        return check_vector(x, self._n, "operator input").copy()

    def rows(self) -> int:
        return self._n

    def cols(self) -> int:
        return self._n


class ScipyOperator(LinearOperator):
    """Adapter for a ``scipy.sparse.linalg.LinearOperator`` or a matrix-free callable."""

    def __init__(self, op: spla.LinearOperator):
        self._op = op

    def apply(self, x: np.ndarray) -> np.ndarray:
        x = check_vector(x, self.cols(), "operator input")
        return np.asarray(self._op.matvec(x), dtype=np.float64).ravel()

    def rows(self) -> int:
        return self._op.shape[0]

    def cols(self) -> int:
        return self._op.shape[1]


def as_operator(A: Any) -> LinearOperator:
    """
    Wrap ``A`` as a :class:`LinearOperator`.

    Parameters
    ----------
    A : LinearOperator, numpy.ndarray, scipy.sparse matrix or scipy LinearOperator
        Operator or matrix to wrap. Objects that already implement the
        interface are returned unchanged.

    Returns
    -------
    op : LinearOperator
    """
    if isinstance(A, LinearOperator):
        return A
    if isinstance(A, spla.LinearOperator):
        return ScipyOperator(A)
    return MatrixOperator(A)
