"""
Preconditioned Krylov solvers and relaxation smoothers for sparse linear systems.

This package provides a restart-free GMRES method working through an
abstract linear operator interface, together with relaxation-based
preconditioners (Richardson, Jacobi, Gauss-Seidel, symmetric
Gauss-Seidel) and the underlying sweep kernels, including block
Gauss-Seidel on a subset of degrees of freedom.
"""

from .convergence import ConvergenceInfo
from .errors import ConfigurationError, DimensionError, SolverStateError
from .gmres import GMRES
from .iterative import IterationState, IterativeSolver, SolverState, StationaryIteration
from .operators import IdentityOperator, LinearOperator, MatrixOperator, as_operator
from .preconditioners import (
    GaussSeidelOp,
    JacobiOp,
    RichardsonOp,
    SymmetricGaussSeidelOp,
    make_preconditioner,
)
from .solver import KrylovSolver, solve
from .sweeps import (
    damped_jacobi_sweep,
    gauss_seidel_single_block,
    gauss_seidel_sweep,
    jacobi_sweep,
    reverse_gauss_seidel_sweep,
    richardson_sweep,
    symmetric_gauss_seidel_sweep,
)
from .utils import convection_diffusion_1d, load_matrix_market, poisson_2d

__version__ = "0.3.0"
__all__ = [
    # Solvers
    "solve",
    "KrylovSolver",
    "GMRES",
    "IterativeSolver",
    "StationaryIteration",
    "IterationState",
    "SolverState",
    "ConvergenceInfo",
    # Operators
    "LinearOperator",
    "MatrixOperator",
    "IdentityOperator",
    "as_operator",
    "RichardsonOp",
    "JacobiOp",
    "GaussSeidelOp",
    "SymmetricGaussSeidelOp",
    "make_preconditioner",
    # Sweeps
    "richardson_sweep",
    "jacobi_sweep",
    "damped_jacobi_sweep",
    "gauss_seidel_sweep",
    "reverse_gauss_seidel_sweep",
    "symmetric_gauss_seidel_sweep",
    "gauss_seidel_single_block",
    # Errors
    "ConfigurationError",
    "DimensionError",
    "SolverStateError",
    # Utilities
    "load_matrix_market",
    "poisson_2d",
    "convection_diffusion_1d",
]
