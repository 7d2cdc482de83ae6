"""
Preconditioned GMRES without restarts.

The Krylov basis is built with the Arnoldi process (modified Gram-Schmidt)
and the Hessenberg matrix is reduced to upper triangular form on the fly
with Givens rotations. The residual norm of the least-squares problem is
then available after every step without forming ``x``; the solution is
assembled once, in :meth:`GMRES.finalize_iteration`.

The preconditioner is applied from the left, so the tracked residual is
``||P (b - A x)||``.
"""

import logging
from typing import Any, List, Optional

import numpy as np
import scipy.linalg as sla

from .iterative import IterativeSolver

logger = logging.getLogger(__name__)


def givens_rotation(a: float, b: float) -> tuple[float, float]:
    """
    Compute ``(c, s)`` such that::

        [ c  s ] [ a ]   [ r ]
        [-s  c ] [ b ] = [ 0 ]

    with ``r = hypot(a, b)``.
    """
    if b == 0.0:
        return 1.0, 0.0
    r = np.hypot(a, b)
    return a / r, b / r


def solve_upper_triangular(R: np.ndarray, g: np.ndarray) -> np.ndarray:
    """
    Back substitution for ``R y = g`` with ``R`` upper triangular.

    Falls back to a least-squares solution if ``R`` is exactly singular,
    which happens when the system matrix itself is singular.
    """
    if R.shape[0] == 0:
        return np.zeros(0)
    try:
        return sla.solve_triangular(R, g, lower=False, check_finite=False)
    except sla.LinAlgError:
        logger.warning("Singular triangular factor of size %d, using least squares", R.shape[0])
        return sla.lstsq(R, g)[0]


class GMRES(IterativeSolver):
    """
    Generalized minimal residual method.

    Parameters
    ----------
    matrix : LinearOperator, numpy.ndarray or scipy.sparse matrix
        Square system matrix
    preconditioner : LinearOperator, optional
        Left preconditioner approximating ``matrix^{-1}``
    tol : float, optional
        Relative residual tolerance. Default is 1e-8.
    max_iters : int, optional
        Maximum number of iterations (= maximum basis size). Default is 1000.
    breakdown_tol : float, optional
        Relative threshold on the norm of a new basis vector below which
        the Krylov space is considered invariant. Default is 1e-14.
    keep_basis : bool, optional
        Keep the Krylov basis and Hessenberg matrix after the solve for
        inspection. Default is False.
    """

    def __init__(self,
                 matrix: Any,
                 preconditioner: Optional[Any] = None,
                 tol: float = 1e-8,
                 max_iters: int = 1000,
                 breakdown_tol: float = 1e-14,
                 keep_basis: bool = False):
        super().__init__(matrix, preconditioner, tol=tol, max_iters=max_iters)
        self.breakdown_tol = float(breakdown_tol)
        self.keep_basis = keep_basis
        self._clear()

    def _clear(self):
        self._x_init: Optional[np.ndarray] = None
        self._v: List[np.ndarray] = []
        self._h: List[np.ndarray] = []   # unrotated Hessenberg columns
        self._r: List[np.ndarray] = []   # rotated columns, upper triangular
        self._cs: List[float] = []
        self._sn: List[float] = []
        self._g: List[float] = []
        self._beta = 0.0
        self.breakdown = False
        self.singular = False

    def _precondition(self, w: np.ndarray) -> np.ndarray:
        if self._precond is None:
            return w
        return self._precond.apply(w)

    def init_iteration(self, rhs, x):
        rhs = self._begin(rhs, x)
        self._clear()
        self._x_init = x.copy()

        r0 = self._precondition(rhs - self._mat.apply(x))
        self._beta = float(np.linalg.norm(r0))
        self._g = [self._beta]
        if self._beta == 0.0:
            self._set_initial_error(0.0)
            return True
        self._v.append(r0 / self._beta)
        self._set_initial_error(self._beta)
        return False

    def step(self, x):
        self._require_active("step")
        if self.breakdown:
            # the basis cannot be extended any further
            return True
        k = len(self._r)

        w = np.array(self._precondition(self._mat.apply(self._v[k])), dtype=np.float64)
        w_norm = np.linalg.norm(w)

        h = np.zeros(k + 2)
        for j in range(k + 1):
            h[j] = np.dot(w, self._v[j])
            w -= h[j] * self._v[j]
        h[k + 1] = np.linalg.norm(w)
        self._h.append(h.copy())

        self.breakdown = bool(h[k + 1] <= self.breakdown_tol * w_norm)
        if not self.breakdown:
            self._v.append(w / h[k + 1])

        # bring the new column to triangular form
        for i in range(k):
            c, s = self._cs[i], self._sn[i]
            h[i], h[i + 1] = c * h[i] + s * h[i + 1], -s * h[i] + c * h[i + 1]
        c, s = givens_rotation(h[k], h[k + 1])
        h[k] = c * h[k] + s * h[k + 1]
        h[k + 1] = 0.0
        self._cs.append(c)
        self._sn.append(s)
        self._r.append(h)

        g_k = self._g[k]
        self._g[k] = c * g_k
        self._g.append(-s * g_k)

        if h[k] == 0.0:
            # new column depends on the previous ones, R is singular
            self.singular = True
            logger.warning("GMRES: singular Hessenberg matrix at iteration %d", k + 1)
            self._record(abs(g_k))
            return True

        converged = self._record(abs(self._g[k + 1]))
        if self.breakdown:
            logger.debug("GMRES: lucky breakdown at iteration %d", k + 1)
            return True
        return converged

    def finalize_iteration(self, rhs, x):
        self._finish()
        k = len(self._r)
        if k > 0:
            y = solve_upper_triangular(self.triangular_factor(), np.asarray(self._g[:k]))
            x[:] = self._x_init + np.column_stack(self._v[:k]) @ y
        else:
            x[:] = self._x_init
        if not self.keep_basis:
            breakdown, singular = self.breakdown, self.singular
            self._clear()
            self.breakdown, self.singular = breakdown, singular

    def _convergence_info(self, done, solve_time):
        info = super()._convergence_info(done, solve_time)
        info.breakdown = self.breakdown
        if self.singular:
            info.converged = False
            info.reason = "Breakdown: singular system matrix"
        elif self.breakdown:
            info.reason = "Converged (Krylov subspace became invariant)"
        return info

    # ------------------------------------------------------------------
    # inspection
    # ------------------------------------------------------------------

    @property
    def basis(self) -> List[np.ndarray]:
        """The orthonormal Krylov basis vectors ``v[0..k]``."""
        return list(self._v)

    def hessenberg(self) -> np.ndarray:
        """The unrotated ``(k+1) x k`` Hessenberg matrix of the Arnoldi process."""
        k = len(self._h)
        H = np.zeros((k + 1, k))
        for j, col in enumerate(self._h):
            H[:j + 2, j] = col
        return H

    def triangular_factor(self) -> np.ndarray:
        """The ``k x k`` upper triangular factor ``R`` of the rotated Hessenberg matrix."""
        k = len(self._r)
        R = np.zeros((k, k))
        for j, col in enumerate(self._r):
            R[:j + 1, j] = col[:j + 1]
        return R

    def projected_residual(self) -> np.ndarray:
        """The rotated right-hand side ``g`` of the least-squares problem."""
        return np.asarray(self._g)
