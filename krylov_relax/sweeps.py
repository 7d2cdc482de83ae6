"""
Relaxation sweeps for sparse linear systems.

Every sweep updates the approximate solution ``x`` of ``A x = f`` in place.
The matrix may be dense or any SciPy sparse format; it is converted to CSR
on entry, so callers that sweep repeatedly should pass CSR matrices.
"""

import numpy as np
import scipy.linalg as sla
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from .errors import ConfigurationError, DimensionError
from .operators import as_csr, check_square, check_vector


def _check_system(A: sp.csr_matrix, x: np.ndarray, f) -> np.ndarray:
    n = check_square(A)
    if not isinstance(x, np.ndarray) or not np.issubdtype(x.dtype, np.floating):
        raise TypeError("x must be a floating point numpy array (it is updated in place)")
    check_vector(x, n, "x")
    return check_vector(f, n, "f")


def _check_diagonal(A: sp.csr_matrix, method: str) -> np.ndarray:
    D = A.diagonal()
    if np.any(D == 0):
        raise ConfigurationError(f"Zero diagonal entry, cannot perform a {method} sweep.")
    return D


def _inverse_diagonal(A: sp.csr_matrix) -> np.ndarray:
    return 1.0 / _check_diagonal(A, "Jacobi")


def _triangular_sweep(A: sp.csr_matrix, T: sp.csr_matrix, x: np.ndarray, f: np.ndarray, lower: bool):
    # x <- x + T^{-1} (f - A x), T the lower or upper triangle of A incl. diagonal
    r = f - A @ x
    x += spla.spsolve_triangular(T, r, lower=lower)


def richardson_sweep(A, x: np.ndarray, f, tau: float = 1.0):
    """
    Update ``x`` with a (damped) Richardson sweep ``x += tau * (f - A x)``.
    """
    A = as_csr(A)
    f = _check_system(A, x, f)
    x += tau * (f - A @ x)


def jacobi_sweep(A, x: np.ndarray, f):
    """Update ``x`` with a Jacobi sweep ``x += D^{-1} (f - A x)``."""
    damped_jacobi_sweep(A, x, f, tau=1.0)


def damped_jacobi_sweep(A, x: np.ndarray, f, tau: float = 0.5):
    """
    Update ``x`` with a damped Jacobi sweep ``x += tau * D^{-1} (f - A x)``.

    All components are updated from the same pre-sweep ``x``.

    Parameters
    ----------
    A : sparse or dense matrix
        Square system matrix with nonzero diagonal
    x : numpy.ndarray
        Current iterate, updated in place
    f : array-like
        Right-hand side
    tau : float, optional
        Damping factor. Default is 0.5.
    """
    A = as_csr(A)
    f = _check_system(A, x, f)
    x += tau * (f - A @ x) * _inverse_diagonal(A)


def gauss_seidel_sweep(A, x: np.ndarray, f):
    """
    Update ``x`` with a forward Gauss-Seidel sweep.

    Unknowns are visited in ascending order, which amounts to a solve with
    the lower triangle (diagonal included) of ``A``.
    """
    A = as_csr(A)
    f = _check_system(A, x, f)
    _check_diagonal(A, "Gauss-Seidel")
    _triangular_sweep(A, sp.tril(A, format="csr"), x, f, lower=True)


def reverse_gauss_seidel_sweep(A, x: np.ndarray, f):
    """Update ``x`` with a backward Gauss-Seidel sweep (descending order)."""
    A = as_csr(A)
    f = _check_system(A, x, f)
    _check_diagonal(A, "Gauss-Seidel")
    _triangular_sweep(A, sp.triu(A, format="csr"), x, f, lower=False)


def symmetric_gauss_seidel_sweep(A, x: np.ndarray, f):
    """One forward Gauss-Seidel sweep followed by one backward sweep."""
    A = as_csr(A)
    f = _check_system(A, x, f)
    _check_diagonal(A, "Gauss-Seidel")
    _triangular_sweep(A, sp.tril(A, format="csr"), x, f, lower=True)
    _triangular_sweep(A, sp.triu(A, format="csr"), x, f, lower=False)


def gauss_seidel_single_block(A, x: np.ndarray, f, dofs):
    """
    Block Gauss-Seidel update restricted to the degrees of freedom in ``dofs``.

    The residual on the rows ``dofs`` is removed by solving the dense
    sub-block ``A[dofs, dofs]`` exactly. Entries of ``x`` outside ``dofs``
    are left untouched.

    Parameters
    ----------
    A : sparse or dense matrix
        Square system matrix
    x : numpy.ndarray
        Current iterate, updated in place
    f : array-like
        Right-hand side
    dofs : array-like of int
        Indices of the unknowns forming the block (e.g. interface dofs)
    """
    A = as_csr(A)
    f = _check_system(A, x, f)
    dofs = np.asarray(dofs, dtype=np.intp).ravel()
    if dofs.size == 0:
        return
    n = A.shape[0]
    if dofs.min() < 0 or dofs.max() >= n:
        raise DimensionError(f"block indices must lie in [0, {n})")
    if np.unique(dofs).size != dofs.size:
        raise ConfigurationError("block indices must be unique")

    A_rows = A[dofs, :]
    residual = f[dofs] - A_rows @ x
    block = A_rows[:, dofs].toarray()
    x[dofs] += sla.solve(block, residual)
