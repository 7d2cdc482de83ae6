"""
Example comparing GMRES with the relaxation preconditioners of krylov_relax.
"""

import logging

import numpy as np
from krylov_relax import (
    GMRES, KrylovSolver, StationaryIteration, SymmetricGaussSeidelOp,
    gauss_seidel_single_block, poisson_2d, solve,
)


def example_preconditioners():
    """Solve the same Poisson problem with every named preconditioner."""
    print("=" * 70)
    print("Example 1: GMRES with relaxation preconditioners")
    print("=" * 70)

    A = poisson_2d(40, 40)
    b = np.random.default_rng(0).random(A.shape[0])

    for name in ["none", "richardson", "jacobi", "gauss-seidel", "symmetric-gauss-seidel"]:
        x, info = solve(A, b, preconditioner=name, num_sweeps=2, tol=1e-8)
        print(f"{name:>24s}: {info.iterations:4d} iterations, "
              f"relative residual {info.relative_residual:.2e}, {info.solve_time:.3f}s")
    print()


def example_solver_reuse():
    """Reuse one configured solver for several right-hand sides."""
    print("=" * 70)
    print("Example 2: One preconditioner, several right-hand sides")
    print("=" * 70)

    A = poisson_2d(30, 30)
    M = SymmetricGaussSeidelOp(A, num_sweeps=2)
    solver = GMRES(A, M, tol=1e-10)
    rng = np.random.default_rng(1)
    for i in range(3):
        b = rng.random(A.shape[0])
        x, info = solver.solve(b)
        print(f"rhs {i}: {info}")
    print()


def example_smoother():
    """Use the operators as smoothers in a stationary iteration."""
    print("=" * 70)
    print("Example 3: Stationary iteration and block Gauss-Seidel")
    print("=" * 70)

    A = poisson_2d(16, 16)
    b = np.ones(A.shape[0])
    x, info = KrylovSolver(method="stationary", preconditioner="symmetric-gauss-seidel",
                           max_iters=2000, tol=1e-6).solve(A, b)
    print(f"Symmetric Gauss-Seidel iteration: {info.reason} ({info.iterations} iterations)")

    # relax only the unknowns of the middle grid row
    dofs = np.arange(8 * 16, 9 * 16)
    before = np.linalg.norm((b - A @ x)[dofs])
    x_block = x.copy()
    gauss_seidel_single_block(A, x_block, b, dofs)
    after = np.linalg.norm((b - A @ x_block)[dofs])
    print(f"Block residual before/after block sweep: {before:.2e} / {after:.2e}")

    history = StationaryIteration(A, SymmetricGaussSeidelOp(A), max_iters=10).solve(b)[1].residual_history
    print("First relative residuals:", ", ".join(f"{r:.3f}" for r in history[:5]))
    print()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    example_preconditioners()
    example_solver_reuse()
    example_smoother()
