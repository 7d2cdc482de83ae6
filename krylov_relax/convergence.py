"""
Convergence information and result objects.
"""

from dataclasses import dataclass, field
from typing import List


@dataclass
class ConvergenceInfo:
    """
    Information about the convergence of an iterative solve.

    Attributes
    ----------
    converged : bool
        Whether the relative residual reached the tolerance
    iterations : int
        Number of iterations performed
    initial_residual : float
        Norm of the initial (preconditioned) residual
    residual_norm : float
        Final (preconditioned) residual norm tracked by the solver
    relative_residual : float
        ``residual_norm / initial_residual`` (absolute value when the
        initial residual is zero)
    solve_time : float
        Time taken for the solve (seconds)
    reason : str
        Human-readable reason for termination
    breakdown : bool
        Whether the Krylov basis could not be extended (lucky breakdown)
    residual_history : list of float
        Relative residual after each iteration, starting with the
        initial one
    """
    converged: bool
    iterations: int
    initial_residual: float
    residual_norm: float
    relative_residual: float
    solve_time: float = 0.0
    reason: str = ""
    breakdown: bool = False
    residual_history: List[float] = field(default_factory=list)

    def __str__(self):
        status = "Converged" if self.converged else "Not converged"
        return (
            f"{status} in {self.iterations} iterations\n"
            f"  Initial residual: {self.initial_residual:.2e}\n"
            f"  Residual norm: {self.residual_norm:.2e}\n"
            f"  Relative residual: {self.relative_residual:.2e}\n"
            f"  Solve time: {self.solve_time:.4f}s"
        )

    def to_dict(self):
        """Convert to a plain dictionary."""
        return {
            "converged": self.converged,
            "niter": self.iterations,
            "initial_residual": self.initial_residual,
            "residual_norm": self.residual_norm,
            "relative_residual": self.relative_residual,
            "time": self.solve_time,
            "reason": self.reason,
            "breakdown": self.breakdown,
            "residual_history": list(self.residual_history),
        }
