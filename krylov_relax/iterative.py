"""
Iteration driver shared by the iterative solvers.

A solver implements three phases:

* ``init_iteration(rhs, x)`` computes the initial residual,
* ``step(x)`` performs one iteration and reports convergence,
* ``finalize_iteration(rhs, x)`` materializes the final ``x``.

:meth:`IterativeSolver.solve` runs them in order and collects the
convergence information.
"""

import enum
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import numpy as np

from .convergence import ConvergenceInfo
from .errors import ConfigurationError, DimensionError, SolverStateError
from .operators import LinearOperator, as_operator, check_square, check_vector

logger = logging.getLogger(__name__)

_TINY = np.finfo(np.float64).tiny


class SolverState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    ITERATING = "iterating"
    FINALIZED = "finalized"


@dataclass
class IterationState:
    """Counters and residual norms of the current solve."""
    tol: float
    max_iters: int
    num_iter: int = 0
    initial_error: float = 0.0
    error: float = 0.0
    history: List[float] = field(default_factory=list)

    @property
    def relative_error(self) -> float:
        if self.initial_error <= _TINY:
            return self.error
        return self.error / self.initial_error

    def converged(self) -> bool:
        return self.relative_error <= self.tol


class IterativeSolver(ABC):
    """
    Base class for iterative solvers of ``A x = b``.

    Parameters
    ----------
    matrix : LinearOperator, numpy.ndarray or scipy.sparse matrix
        Square system matrix
    preconditioner : LinearOperator, optional
        Approximate inverse of ``matrix``
    tol : float, optional
        Relative residual tolerance. Default is 1e-8.
    max_iters : int, optional
        Maximum number of iterations. Default is 1000.
    """

    def __init__(self,
                 matrix: Any,
                 preconditioner: Optional[Any] = None,
                 tol: float = 1e-8,
                 max_iters: int = 1000):
        self._mat = as_operator(matrix)
        n = check_square(self._mat, "system matrix")
        self._precond: Optional[LinearOperator] = None
        if preconditioner is not None:
            self._precond = as_operator(preconditioner)
            check_square(self._precond, "preconditioner")
            if self._precond.rows() != n:
                raise DimensionError(
                    f"preconditioner has size {self._precond.rows()}, matrix has size {n}"
                )

        self._it = IterationState(tol=1e-8, max_iters=1000)
        self.set_tolerance(tol)
        self.set_max_iterations(max_iters)
        self._state = SolverState.UNINITIALIZED

    # ------------------------------------------------------------------
    # configuration
    # ------------------------------------------------------------------

    def set_tolerance(self, tol: float):
        tol = float(tol)
        if not tol >= 0.0:
            raise ConfigurationError(f"tolerance must be non-negative, got {tol}")
        self._it.tol = tol

    def set_max_iterations(self, max_iters: int):
        if int(max_iters) != max_iters or max_iters <= 0:
            raise ConfigurationError(f"max_iters must be a positive integer, got {max_iters}")
        self._it.max_iters = int(max_iters)

    @property
    def tol(self) -> float:
        return self._it.tol

    @tol.setter
    def tol(self, value: float):
        self.set_tolerance(value)

    @property
    def max_iters(self) -> int:
        return self._it.max_iters

    @max_iters.setter
    def max_iters(self, value: int):
        self.set_max_iterations(value)

    @property
    def matrix(self) -> LinearOperator:
        return self._mat

    @property
    def preconditioner(self) -> Optional[LinearOperator]:
        return self._precond

    # ------------------------------------------------------------------
    # diagnostics
    # ------------------------------------------------------------------

    @property
    def state(self) -> SolverState:
        return self._state

    @property
    def iterations(self) -> int:
        """Number of iterations of the last (or current) solve."""
        return self._it.num_iter

    @property
    def initial_error(self) -> float:
        return self._it.initial_error

    @property
    def error(self) -> float:
        """Current relative residual."""
        return self._it.relative_error

    @property
    def residual_history(self) -> List[float]:
        return list(self._it.history)

    # ------------------------------------------------------------------
    # iteration phases
    # ------------------------------------------------------------------

    @abstractmethod
    def init_iteration(self, rhs: np.ndarray, x: np.ndarray) -> bool:
        """Start a solve from the initial guess ``x``; True if nothing is left to do."""

    @abstractmethod
    def step(self, x: np.ndarray) -> bool:
        """Perform one iteration; True once converged."""

    @abstractmethod
    def finalize_iteration(self, rhs: np.ndarray, x: np.ndarray):
        """Write the final approximation into ``x``."""

    def solve(self,
              rhs: Any,
              x: Optional[np.ndarray] = None,
              callback: Optional[Callable[[int, float], Any]] = None) -> tuple[np.ndarray, ConvergenceInfo]:
        """
        Solve ``A x = rhs``.

        Parameters
        ----------
        rhs : array-like
            Right-hand side vector
        x : numpy.ndarray, optional
            Initial guess (zero if omitted). A float64 array is updated in
            place; anything else is copied first.
        callback : callable, optional
            Called as ``callback(iteration, relative_residual)`` after
            every iteration.

        Returns
        -------
        x : numpy.ndarray
            Approximate solution
        info : ConvergenceInfo
            Convergence information. Running out of iterations is reported
            here (``converged=False``), not raised.
        """
        n = self._mat.rows()
        rhs = check_vector(rhs, n, "right-hand side")
        if x is None:
            x = np.zeros(n, dtype=np.float64)
        elif not (isinstance(x, np.ndarray) and x.dtype == np.float64):
            x = np.array(x, dtype=np.float64)
        check_vector(x, n, "initial guess")

        t0 = time.perf_counter()
        done = self.init_iteration(rhs, x)
        if done:
            logger.debug("%s: initial guess is already a solution", type(self).__name__)
        while not done and self._it.num_iter < self._it.max_iters:
            done = self.step(x)
            logger.debug("%s iteration %d: relative residual %.3e",
                         type(self).__name__, self._it.num_iter, self._it.relative_error)
            if callback is not None:
                callback(self._it.num_iter, self._it.relative_error)
        self.finalize_iteration(rhs, x)
        solve_time = time.perf_counter() - t0

        info = self._convergence_info(done, solve_time)
        if info.converged:
            logger.info("%s converged in %d iterations (relative residual %.3e)",
                        type(self).__name__, info.iterations, info.relative_residual)
        else:
            logger.warning("%s did not converge in %d iterations (relative residual %.3e > %.3e)",
                           type(self).__name__, info.iterations, info.relative_residual, self._it.tol)
        return x, info

    # ------------------------------------------------------------------
    # helpers for subclasses
    # ------------------------------------------------------------------

    def _begin(self, rhs: Any, x: np.ndarray) -> np.ndarray:
        """Validate the inputs of ``init_iteration`` and reset the counters."""
        n = self._mat.rows()
        rhs = check_vector(rhs, n, "right-hand side")
        if not isinstance(x, np.ndarray) or not np.issubdtype(x.dtype, np.floating):
            raise TypeError("x must be a floating point numpy array (it is updated in place)")
        check_vector(x, n, "initial guess")
        self._it = IterationState(tol=self._it.tol, max_iters=self._it.max_iters)
        self._state = SolverState.UNINITIALIZED
        return rhs

    def _set_initial_error(self, error: float) -> bool:
        self._it.initial_error = float(error)
        self._it.error = float(error)
        self._it.history.append(self._it.relative_error)
        self._state = SolverState.INITIALIZED
        return self._it.converged()

    def _record(self, error: float) -> bool:
        """Account for one finished iteration with residual norm ``error``."""
        self._it.num_iter += 1
        self._it.error = float(error)
        self._it.history.append(self._it.relative_error)
        self._state = SolverState.ITERATING
        return self._it.converged()

    def _require_active(self, what: str):
        if self._state not in (SolverState.INITIALIZED, SolverState.ITERATING):
            raise SolverStateError(f"{what} called in state '{self._state.value}'; call init_iteration first")

    def _finish(self):
        self._require_active("finalize_iteration")
        self._state = SolverState.FINALIZED

    def _convergence_info(self, done: bool, solve_time: float) -> ConvergenceInfo:
        if done:
            reason = "Converged"
        else:
            reason = f"Did not converge in {self._it.num_iter} iterations"
        return ConvergenceInfo(
            converged=bool(done),
            iterations=self._it.num_iter,
            initial_residual=self._it.initial_error,
            residual_norm=self._it.error,
            relative_residual=self._it.relative_error,
            solve_time=solve_time,
            reason=reason,
            residual_history=list(self._it.history),
        )


class StationaryIteration(IterativeSolver):
    """
    Preconditioned Richardson iteration ``x <- x + P (b - A x)``.

    With one of the sweep preconditioners as ``P`` this is the classical
    stationary smoother iteration. The tracked residual is the true
    residual ``||b - A x||``.
    """

    def init_iteration(self, rhs, x):
        rhs = self._begin(rhs, x)
        self._rhs = rhs
        self._residual = rhs - self._mat.apply(x)
        return self._set_initial_error(np.linalg.norm(self._residual))

    def step(self, x):
        self._require_active("step")
        if self._precond is None:
            x += self._residual
        else:
            x += self._precond.apply(self._residual)
        self._residual = self._rhs - self._mat.apply(x)
        return self._record(np.linalg.norm(self._residual))

    def finalize_iteration(self, rhs, x):
        # x is current after every step
        self._finish()
