"""
Relaxation-based preconditioners and smoothers.

Each operator approximates ``A^{-1}``: ``apply(f)`` starts from a zero
vector and performs a configured number of sweeps on ``A y = f``.
"""

import logging
from typing import Any, Optional

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from .errors import ConfigurationError
from .operators import IdentityOperator, LinearOperator, as_csr, check_square, check_vector
from .sweeps import _check_diagonal, _inverse_diagonal, _triangular_sweep

logger = logging.getLogger(__name__)


class _SweepOp(LinearOperator):
    """Common state of the sweep-based operators: the matrix and the sweep count."""

    def __init__(self, A: Any, num_sweeps: int = 1):
        self._mat = as_csr(A)
        check_square(self._mat, "preconditioner matrix")
        self._num_sweeps = 1
        self.set_num_sweeps(num_sweeps)

    def rows(self) -> int:
        return self._mat.shape[0]

    def cols(self) -> int:
        return self._mat.shape[1]

    def set_num_sweeps(self, n: int):
        """Set the number of sweeps performed per ``apply``."""
        if int(n) != n or n <= 0:
            raise ConfigurationError(f"Number of sweeps needs to be positive, got {n}")
        self._num_sweeps = int(n)

    @property
    def num_sweeps(self) -> int:
        return self._num_sweeps

    @property
    def matrix(self) -> sp.csr_matrix:
        """The (shared, read-only) CSR matrix."""
        return self._mat


class RichardsonOp(_SweepOp):
    """
    Richardson preconditioner ``y <- y + tau (f - A y)``.

    Parameters
    ----------
    A : sparse or dense matrix
        Square system matrix
    tau : float, optional
        Relaxation factor. Default is 1.0.
    num_sweeps : int, optional
        Sweeps per application. Default is 1.
    """

    def __init__(self, A: Any, tau: float = 1.0, num_sweeps: int = 1):
        super().__init__(A, num_sweeps)
        self.tau = float(tau)

    def apply(self, f: np.ndarray) -> np.ndarray:
        f = check_vector(f, self.rows(), "preconditioner input")
        # starting from zero, the first sweep needs no matrix product
        y = self.tau * f
        for _ in range(1, self._num_sweeps):
            y += self.tau * (f - self._mat @ y)
        return y


class JacobiOp(_SweepOp):
    """
    (Damped) Jacobi preconditioner ``y <- y + tau D^{-1} (f - A y)``.

    Requires a matrix with nonzero (ideally positive) diagonal.

    Parameters
    ----------
    A : sparse or dense matrix
        Square system matrix
    tau : float, optional
        Damping factor. Default is 1.0 (plain Jacobi).
    num_sweeps : int, optional
        Sweeps per application. Default is 1.
    """

    def __init__(self, A: Any, tau: float = 1.0, num_sweeps: int = 1):
        super().__init__(A, num_sweeps)
        self.tau = float(tau)
        self._dinv = _inverse_diagonal(self._mat)

    def apply(self, f: np.ndarray) -> np.ndarray:
        f = check_vector(f, self.rows(), "preconditioner input")
        y = self.tau * f * self._dinv
        for _ in range(1, self._num_sweeps):
            y += self.tau * (f - self._mat @ y) * self._dinv
        return y


class GaussSeidelOp(_SweepOp):
    """Forward Gauss-Seidel preconditioner."""

    def __init__(self, A: Any, num_sweeps: int = 1):
        super().__init__(A, num_sweeps)
        _check_diagonal(self._mat, "Gauss-Seidel")
        self._lower = sp.tril(self._mat, format="csr")

    def apply(self, f: np.ndarray) -> np.ndarray:
        f = check_vector(f, self.rows(), "preconditioner input")
        y = spla.spsolve_triangular(self._lower, f, lower=True)
        for _ in range(1, self._num_sweeps):
            _triangular_sweep(self._mat, self._lower, y, f, lower=True)
        return y


class SymmetricGaussSeidelOp(_SweepOp):
    """
    Symmetric Gauss-Seidel preconditioner.

    Each sweep is one forward Gauss-Seidel sweep followed by one backward
    sweep, which keeps the operator symmetric for symmetric ``A``. A CSR
    matrix passed in is shared, not copied.
    """

    def __init__(self, A: Any, num_sweeps: int = 1):
        super().__init__(A, num_sweeps)
        _check_diagonal(self._mat, "Gauss-Seidel")
        self._lower = sp.tril(self._mat, format="csr")
        self._upper = sp.triu(self._mat, format="csr")

    def apply(self, f: np.ndarray) -> np.ndarray:
        f = check_vector(f, self.rows(), "preconditioner input")
        y = np.zeros(self.rows(), dtype=np.float64)
        for _ in range(self._num_sweeps):
            _triangular_sweep(self._mat, self._lower, y, f, lower=True)
            _triangular_sweep(self._mat, self._upper, y, f, lower=False)
        return y


_PRECONDITIONERS = {
    "richardson": RichardsonOp,
    "jacobi": JacobiOp,
    "gauss-seidel": GaussSeidelOp,
    "symmetric-gauss-seidel": SymmetricGaussSeidelOp,
}


def make_preconditioner(name: str,
                        A: Any,
                        num_sweeps: int = 1,
                        tau: Optional[float] = None) -> Optional[LinearOperator]:
    """
    Build a preconditioner from its name.

    Parameters
    ----------
    name : str
        "none", "identity", "richardson", "jacobi", "gauss-seidel" or
        "symmetric-gauss-seidel" (underscores are accepted as well).
    A : sparse or dense matrix
        Square system matrix
    num_sweeps : int, optional
        Sweeps per application. Default is 1.
    tau : float, optional
        Relaxation factor for Richardson and Jacobi. Defaults to the
        operator's own default.

    Returns
    -------
    M : LinearOperator or None
        None for "none".
    """
    key = name.lower().replace("_", "-")
    if key == "none":
        return None
    if key == "identity":
        return IdentityOperator(A.shape[0])
    if key not in _PRECONDITIONERS:
        raise ConfigurationError(
            f"Unknown preconditioner type: {name}. "
            f"Available: {['none', 'identity'] + list(_PRECONDITIONERS)}"
        )

    cls = _PRECONDITIONERS[key]
    kwargs = {"num_sweeps": num_sweeps}
    if tau is not None:
        if cls not in (RichardsonOp, JacobiOp):
            raise ConfigurationError(f"Preconditioner {name} does not take a relaxation factor")
        kwargs["tau"] = tau
    M = cls(A, **kwargs)
    logger.debug("Built %s preconditioner of size %d with %d sweep(s)", key, M.rows(), M.num_sweeps)
    return M
