from __future__ import annotations

import numpy as np
import pytest
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from krylov_relax import (
    ConfigurationError,
    DimensionError,
    IdentityOperator,
    LinearOperator,
    MatrixOperator,
    as_operator,
)
from krylov_relax.operators import as_csr


def test_matrix_operator_dense():
    A = np.array([[1.0, 2.0], [3.0, 4.0]])
    op = MatrixOperator(A)
    assert op.rows() == op.cols() == 2
    np.testing.assert_allclose(op.apply(np.array([1.0, 1.0])), [3.0, 7.0])


def test_matrix_operator_sparse_is_csr():
    A = sp.coo_matrix(np.array([[2.0, 0.0], [0.0, 3.0]]))
    op = MatrixOperator(A)
    assert op.matrix.format == "csr"
    np.testing.assert_allclose(op.apply(np.array([1.0, 2.0])), [2.0, 6.0])


def test_matrix_operator_rejects_bad_input():
    op = MatrixOperator(np.eye(3))
    with pytest.raises(DimensionError):
        op.apply(np.ones(2))
    with pytest.raises(DimensionError):
        op.apply(np.ones((3, 1)))
    with pytest.raises(DimensionError):
        MatrixOperator(np.ones(3))


def test_identity_operator_returns_copy():
    op = IdentityOperator(3)
    x = np.array([1.0, 2.0, 3.0])
    y = op.apply(x)
    np.testing.assert_array_equal(x, y)
    assert y is not x
    with pytest.raises(ConfigurationError):
        IdentityOperator(0)


def test_as_operator():
    op = MatrixOperator(np.eye(2))
    assert as_operator(op) is op
    assert isinstance(as_operator(np.eye(2)), MatrixOperator)
    assert isinstance(as_operator(sp.eye(2, format="csr")), MatrixOperator)

    scaled = spla.LinearOperator((2, 2), matvec=lambda v: 2.0 * v)
    wrapped = as_operator(scaled)
    assert isinstance(wrapped, LinearOperator)
    np.testing.assert_allclose(wrapped.apply(np.array([1.0, -1.0])), [2.0, -2.0])


def test_to_scipy_round_trip():
    A = np.array([[2.0, 1.0], [0.0, 3.0]])
    M = MatrixOperator(A).to_scipy()
    assert M.shape == (2, 2)
    np.testing.assert_allclose(M.matvec(np.array([1.0, 1.0])), [3.0, 3.0])


def test_as_csr_shares_csr_input():
    A = sp.csr_matrix(np.eye(3))
    assert as_csr(A) is A
    assert as_csr(MatrixOperator(A)) is A
    assert as_csr(np.eye(3)).format == "csr"
