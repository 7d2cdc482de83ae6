from __future__ import annotations

import logging

import numpy as np
import pytest
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from krylov_relax import (
    GMRES,
    ConfigurationError,
    DimensionError,
    GaussSeidelOp,
    IdentityOperator,
    JacobiOp,
    RichardsonOp,
    SolverState,
    SolverStateError,
    SymmetricGaussSeidelOp,
    convection_diffusion_1d,
    poisson_2d,
)
from krylov_relax.gmres import givens_rotation, solve_upper_triangular


def _random_system(n: int, seed: int = 0):
    rng = np.random.default_rng(seed)
    A = rng.standard_normal((n, n)) + n * np.eye(n)
    b = rng.standard_normal(n)
    return A, b


# ----------------------------------------------------------------------
# scenarios
# ----------------------------------------------------------------------

def test_two_by_two_system():
    A = np.array([[4.0, 1.0], [1.0, 3.0]])
    b = np.array([1.0, 2.0])
    x, info = GMRES(A, tol=1e-10, max_iters=2).solve(b, np.zeros(2))
    assert info.converged
    assert info.iterations <= 2
    np.testing.assert_allclose(x, [1.0 / 11.0, 7.0 / 11.0], atol=1e-12)
    np.testing.assert_allclose(x, [0.0909, 0.6364], atol=1e-4)


def test_identity_converges_in_one_iteration():
    b = np.random.default_rng(1).standard_normal(7)
    x, info = GMRES(np.eye(7), tol=1e-12).solve(b)
    assert info.converged
    assert info.iterations == 1
    assert info.breakdown
    np.testing.assert_allclose(x, b, rtol=1e-14)


def test_eigenvector_rhs_triggers_lucky_breakdown():
    A = np.array([[2.0, 1.0], [1.0, 2.0]])
    b = np.array([1.0, 1.0])
    x, info = GMRES(A, tol=1e-14, max_iters=10).solve(b)
    assert info.converged
    assert info.breakdown
    assert info.iterations == 1
    np.testing.assert_allclose(x, [1.0 / 3.0, 1.0 / 3.0], rtol=1e-14)


def test_eigenvector_of_diagonal_matrix():
    A = sp.diags([[1.0, 2.0, 3.0, 4.0]], [0], format="csr")
    b = np.array([0.0, 0.0, 6.0, 0.0])
    x, info = GMRES(A, tol=0.0, max_iters=4).solve(b)
    assert info.converged
    assert info.iterations == 1
    np.testing.assert_allclose(x, [0.0, 0.0, 2.0, 0.0], atol=1e-15)


def test_finite_termination():
    n = 8
    A, b = _random_system(n, seed=3)
    x, info = GMRES(A, tol=0.0, max_iters=n).solve(b)
    assert info.iterations <= n
    assert np.linalg.norm(b - A @ x) <= 1e-10 * np.linalg.norm(b)
    np.testing.assert_allclose(x, np.linalg.solve(A, b), rtol=1e-9, atol=1e-10)


def test_residual_history_is_monotone():
    A = poisson_2d(8, 8)
    b = np.ones(A.shape[0])
    _, info = GMRES(A, tol=1e-10).solve(b)
    history = np.asarray(info.residual_history)
    assert history[0] == 1.0
    assert len(history) == info.iterations + 1
    assert np.all(np.diff(history) <= 1e-15)


def test_tracked_residual_matches_true_residual():
    A = convection_diffusion_1d(40)
    b = np.random.default_rng(5).standard_normal(40)
    x, info = GMRES(A, tol=0.0, max_iters=15).solve(b)
    true_res = np.linalg.norm(b - A @ x)
    assert info.iterations == 15
    assert abs(true_res - info.residual_norm) <= 1e-10 * np.linalg.norm(b)
    assert info.initial_residual == pytest.approx(np.linalg.norm(b))


def test_matches_direct_solver_on_sparse_system():
    A = poisson_2d(12, 10)
    b = np.random.default_rng(2).standard_normal(A.shape[0])
    x, info = GMRES(A, tol=1e-12).solve(b)
    assert info.converged
    np.testing.assert_allclose(x, spla.spsolve(A.tocsc(), b), atol=1e-8)


def test_dense_and_sparse_agree():
    A = convection_diffusion_1d(25)
    b = np.linspace(0.0, 1.0, 25)
    x_sparse, info_sparse = GMRES(A, tol=1e-12).solve(b)
    x_dense, info_dense = GMRES(A.toarray(), tol=1e-12).solve(b)
    assert info_sparse.converged and info_dense.converged
    np.testing.assert_allclose(x_sparse, x_dense, atol=1e-9)


# ----------------------------------------------------------------------
# Arnoldi / factorization internals
# ----------------------------------------------------------------------

def test_arnoldi_relation_and_orthonormal_basis():
    A = convection_diffusion_1d(30).toarray()
    b = np.random.default_rng(7).standard_normal(30)
    solver = GMRES(A, tol=0.0, max_iters=10, keep_basis=True)
    solver.solve(b)

    V = np.column_stack(solver.basis)
    H = solver.hessenberg()
    assert V.shape == (30, 11)
    assert H.shape == (11, 10)
    np.testing.assert_allclose(V.T @ V, np.eye(11), atol=1e-10)
    np.testing.assert_allclose(A @ V[:, :10], V @ H, atol=1e-10)
    # Hessenberg structure
    assert np.all(np.tril(H, -2) == 0.0)


def test_triangular_factor_is_upper_triangular():
    A = poisson_2d(5, 5)
    b = np.random.default_rng(8).standard_normal(25)
    solver = GMRES(A, tol=0.0, max_iters=6, keep_basis=True)
    solver.solve(b)
    R = solver.triangular_factor()
    assert R.shape == (6, 6)
    np.testing.assert_array_equal(np.tril(R, -1), 0.0)
    g = solver.projected_residual()
    assert len(g) == 7
    # rotations preserve the norm of g
    assert np.linalg.norm(g) == pytest.approx(solver.initial_error)
    assert abs(g[-1]) == pytest.approx(solver.error * solver.initial_error)


def test_basis_discarded_by_default():
    A = poisson_2d(4, 4)
    solver = GMRES(A)
    solver.solve(np.ones(16))
    assert solver.basis == []
    assert solver.hessenberg().shape == (1, 0)


def test_back_substitution():
    rng = np.random.default_rng(11)
    R = np.triu(rng.standard_normal((9, 9))) + 5.0 * np.eye(9)
    g = rng.standard_normal(9)
    y = solve_upper_triangular(R, g)
    np.testing.assert_allclose(R @ y, g, atol=1e-12)


def test_givens_rotation_annihilates_second_entry():
    for a, b in [(3.0, 4.0), (-1.0, 2.0), (0.0, 5.0), (2.0, 0.0)]:
        c, s = givens_rotation(a, b)
        assert c * c + s * s == pytest.approx(1.0)
        assert -s * a + c * b == pytest.approx(0.0, abs=1e-15)
        assert c * a + s * b == pytest.approx(np.hypot(a, b))


# ----------------------------------------------------------------------
# preconditioning
# ----------------------------------------------------------------------

@pytest.mark.parametrize("make_op", [
    lambda A: RichardsonOp(A, tau=0.25),
    lambda A: JacobiOp(A),
    lambda A: GaussSeidelOp(A),
    lambda A: SymmetricGaussSeidelOp(A, num_sweeps=2),
    lambda A: IdentityOperator(A.shape[0]),
])
def test_preconditioned_solve(make_op):
    A = poisson_2d(10, 10)
    b = np.random.default_rng(4).standard_normal(A.shape[0])
    x, info = GMRES(A, make_op(A), tol=1e-11).solve(b)
    assert info.converged
    np.testing.assert_allclose(x, spla.spsolve(A.tocsc(), b), atol=1e-7)


def test_preconditioning_reduces_iterations():
    A = poisson_2d(15, 15)
    b = np.random.default_rng(6).standard_normal(A.shape[0])
    _, plain = GMRES(A, tol=1e-8).solve(b)
    _, sgs = GMRES(A, SymmetricGaussSeidelOp(A, num_sweeps=2), tol=1e-8).solve(b)
    assert sgs.converged and plain.converged
    assert sgs.iterations < plain.iterations


def test_preconditioned_residual_is_tracked():
    A = convection_diffusion_1d(20)
    M = JacobiOp(A)
    b = np.ones(20)
    x0 = np.zeros(20)
    solver = GMRES(A, M, tol=1e-10)
    solver.init_iteration(b, x0)
    assert solver.initial_error == pytest.approx(np.linalg.norm(M.apply(b)))


# ----------------------------------------------------------------------
# loop contract and diagnostics
# ----------------------------------------------------------------------

def test_exact_initial_guess_needs_no_iteration():
    A, b = _random_system(5, seed=9)
    x0 = np.linalg.solve(A, b)
    # make the residual exactly zero
    b = A @ x0
    x, info = GMRES(A).solve(b, x0.copy())
    assert info.converged
    assert info.iterations == 0
    np.testing.assert_array_equal(x, x0)


def test_initial_guess_updated_in_place():
    A = poisson_2d(4, 4)
    b = np.ones(16)
    x = np.zeros(16)
    result, info = GMRES(A, tol=1e-12).solve(b, x)
    assert result is x
    assert info.converged
    np.testing.assert_allclose(A @ x, b, atol=1e-10)


def test_non_convergence_is_reported(caplog):
    A = poisson_2d(10, 10)
    b = np.ones(100)
    with caplog.at_level(logging.WARNING, logger="krylov_relax"):
        x, info = GMRES(A, tol=1e-12, max_iters=3).solve(b)
    assert not info.converged
    assert info.iterations == 3
    assert "Did not converge" in info.reason
    assert info.relative_residual > 1e-12
    assert np.all(np.isfinite(x))
    assert np.linalg.norm(b - A @ x) < np.linalg.norm(b)
    assert "did not converge" in caplog.text


def test_callback_receives_every_iteration():
    A = poisson_2d(6, 6)
    calls = []
    _, info = GMRES(A, tol=1e-10).solve(np.ones(36), callback=lambda k, err: calls.append((k, err)))
    assert [k for k, _ in calls] == list(range(1, info.iterations + 1))
    assert calls[-1][1] == pytest.approx(info.relative_residual)


def test_singular_matrix_reports_breakdown():
    A = np.array([[0.0, 1.0], [0.0, 0.0]])
    b = np.array([1.0, 0.0])
    x, info = GMRES(A, tol=1e-10).solve(b)
    assert info.breakdown
    assert not info.converged
    assert np.all(np.isfinite(x))


def test_solver_is_reusable():
    A = poisson_2d(5, 5)
    solver = GMRES(A, tol=1e-12)
    b1 = np.ones(25)
    b2 = np.arange(25, dtype=float)
    x1, _ = solver.solve(b1)
    x2, _ = solver.solve(b2)
    np.testing.assert_allclose(A @ x1, b1, atol=1e-9)
    np.testing.assert_allclose(A @ x2, b2, atol=1e-9)


def test_state_machine():
    A = poisson_2d(3, 3)
    b = np.ones(9)
    x = np.zeros(9)
    solver = GMRES(A, tol=1e-12)
    assert solver.state is SolverState.UNINITIALIZED
    with pytest.raises(SolverStateError):
        solver.step(x)
    with pytest.raises(SolverStateError):
        solver.finalize_iteration(b, x)

    assert solver.init_iteration(b, x) is False
    assert solver.state is SolverState.INITIALIZED
    solver.step(x)
    assert solver.state is SolverState.ITERATING
    assert solver.iterations == 1
    # x is only formed at the end
    np.testing.assert_array_equal(x, 0.0)

    solver.finalize_iteration(b, x)
    assert solver.state is SolverState.FINALIZED
    assert np.linalg.norm(b - A @ x) < np.linalg.norm(b)
    with pytest.raises(SolverStateError):
        solver.step(x)
    with pytest.raises(SolverStateError):
        solver.finalize_iteration(b, x)


# ----------------------------------------------------------------------
# configuration and dimension errors
# ----------------------------------------------------------------------

def test_non_square_matrix_rejected():
    with pytest.raises(ConfigurationError):
        GMRES(np.ones((3, 4)))


def test_invalid_iteration_settings():
    A = np.eye(3)
    with pytest.raises(ConfigurationError):
        GMRES(A, max_iters=0)
    with pytest.raises(ConfigurationError):
        GMRES(A, tol=-1.0)
    solver = GMRES(A)
    with pytest.raises(ConfigurationError):
        solver.max_iters = -5
    solver.tol = 1e-6
    assert solver.tol == 1e-6


def test_dimension_errors():
    A = poisson_2d(3, 3)
    solver = GMRES(A)
    with pytest.raises(DimensionError):
        solver.solve(np.ones(8))
    with pytest.raises(DimensionError):
        solver.solve(np.ones(9), np.zeros(10))
    with pytest.raises(DimensionError):
        GMRES(A, JacobiOp(poisson_2d(2, 2)))
