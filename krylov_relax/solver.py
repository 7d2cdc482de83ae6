"""
High-level interface: pick a method and a preconditioner by name.
"""

import logging
from typing import Any, Callable, Optional, Union

import numpy as np

from .convergence import ConvergenceInfo
from .errors import ConfigurationError
from .gmres import GMRES
from .iterative import IterativeSolver, StationaryIteration
from .operators import LinearOperator, MatrixOperator, as_operator
from .preconditioners import make_preconditioner

logger = logging.getLogger(__name__)

_METHODS = {
    "gmres": GMRES,
    "stationary": StationaryIteration,
}


class KrylovSolver:
    """
    Unified interface for the iterative solvers.

    This class bundles a solver method with a preconditioner choice, so
    the same configuration can be applied to several systems.
    """

    def __init__(self,
                 method: str = "gmres",
                 preconditioner: Union[str, LinearOperator, None] = "none",
                 tol: float = 1e-8,
                 max_iters: int = 1000,
                 num_sweeps: int = 1,
                 tau: Optional[float] = None,
                 breakdown_tol: float = 1e-14):
        """
        Initialize the solver configuration.

        Parameters
        ----------
        method : str, optional
            "gmres" or "stationary" (preconditioned Richardson iteration).
            Default is "gmres".
        preconditioner : str or LinearOperator, optional
            Preconditioner name (see :func:`make_preconditioner`), a ready
            operator, or None. Default is "none".
        tol : float, optional
            Relative residual tolerance. Default is 1e-8.
        max_iters : int, optional
            Maximum number of iterations. Default is 1000.
        num_sweeps : int, optional
            Sweeps per preconditioner application. Default is 1.
        tau : float, optional
            Relaxation factor for Richardson/Jacobi preconditioners.
        breakdown_tol : float, optional
            GMRES breakdown threshold. Default is 1e-14.
        """
        method = method.lower()
        if method not in _METHODS:
            raise ConfigurationError(f"method must be one of {list(_METHODS)}, got '{method}'")
        if int(num_sweeps) != num_sweeps or num_sweeps <= 0:
            raise ConfigurationError(f"Number of sweeps needs to be positive, got {num_sweeps}")
        if preconditioner is None:
            preconditioner = "none"

        self.method = method
        self.preconditioner = preconditioner
        self.tol = tol
        self.max_iters = max_iters
        self.num_sweeps = num_sweeps
        self.tau = tau
        self.breakdown_tol = breakdown_tol

    def build(self, A: Any) -> IterativeSolver:
        """
        Create the configured solver for the system matrix ``A``.
        """
        if isinstance(self.preconditioner, str):
            M = None
            if self.preconditioner.lower() != "none":
                op = as_operator(A)
                if not isinstance(op, MatrixOperator):
                    raise ConfigurationError(
                        f"Preconditioner '{self.preconditioner}' needs an explicit matrix, got {A!r}"
                    )
                M = make_preconditioner(self.preconditioner, op.matrix,
                                        num_sweeps=self.num_sweeps, tau=self.tau)
        else:
            M = as_operator(self.preconditioner)

        if self.method == "gmres":
            return GMRES(A, M, tol=self.tol, max_iters=self.max_iters,
                         breakdown_tol=self.breakdown_tol)
        return StationaryIteration(A, M, tol=self.tol, max_iters=self.max_iters)

    def solve(self,
              A: Any,
              b: Any,
              x0: Optional[np.ndarray] = None,
              callback: Optional[Callable[[int, float], Any]] = None) -> tuple[np.ndarray, ConvergenceInfo]:
        """
        Solve ``A x = b``.

        Parameters
        ----------
        A : numpy.ndarray, scipy.sparse matrix or LinearOperator
            Square system matrix. Named sweep preconditioners need an
            explicit matrix.
        b : array-like
            Right-hand side vector
        x0 : numpy.ndarray, optional
            Initial guess (zero by default)
        callback : callable, optional
            ``callback(iteration, relative_residual)``

        Returns
        -------
        x : numpy.ndarray
            Solution vector
        info : ConvergenceInfo
            Convergence information
        """
        solver = self.build(A)
        logger.debug("Solving system of size %d with %s, preconditioner %s",
                     solver.matrix.rows(), self.method, self.preconditioner)
        return solver.solve(b, x0, callback=callback)


def solve(A: Any,
          b: Any,
          x0: Optional[np.ndarray] = None,
          method: str = "gmres",
          preconditioner: Union[str, LinearOperator, None] = "none",
          tol: float = 1e-8,
          max_iters: int = 1000,
          num_sweeps: int = 1,
          tau: Optional[float] = None,
          breakdown_tol: float = 1e-14,
          callback: Optional[Callable[[int, float], Any]] = None) -> tuple[np.ndarray, ConvergenceInfo]:
    """
    High-level solve function for linear systems.

    Parameters
    ----------
    A : numpy.ndarray, scipy.sparse matrix or LinearOperator
        Square system matrix
    b : array-like
        Right-hand side vector
    x0 : numpy.ndarray, optional
        Initial guess
    method : str, optional
        "gmres" or "stationary". Default is "gmres".
    preconditioner : str or LinearOperator, optional
        "none", "identity", "richardson", "jacobi", "gauss-seidel",
        "symmetric-gauss-seidel" or an operator. Default is "none".
    tol : float, optional
        Relative residual tolerance. Default is 1e-8.
    max_iters : int, optional
        Maximum number of iterations. Default is 1000.
    num_sweeps : int, optional
        Sweeps per preconditioner application. Default is 1.
    tau : float, optional
        Relaxation factor for Richardson/Jacobi preconditioners.
    breakdown_tol : float, optional
        GMRES breakdown threshold. Default is 1e-14.
    callback : callable, optional
        ``callback(iteration, relative_residual)``

    Returns
    -------
    x : numpy.ndarray
        Solution vector
    info : ConvergenceInfo
        Convergence information

    Examples
    --------
    >>> import numpy as np
    >>> from krylov_relax import solve, poisson_2d
    >>> A = poisson_2d(20, 20)
    >>> b = np.ones(A.shape[0])
    >>> x, info = solve(A, b, preconditioner="symmetric-gauss-seidel", tol=1e-10)
    >>> print(f"Converged: {info.converged}, Iterations: {info.iterations}")
    """
    solver = KrylovSolver(
        method=method,
        preconditioner=preconditioner,
        tol=tol,
        max_iters=max_iters,
        num_sweeps=num_sweeps,
        tau=tau,
        breakdown_tol=breakdown_tol,
    )
    return solver.solve(A, b, x0, callback=callback)
