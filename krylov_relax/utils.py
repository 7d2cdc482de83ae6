"""
Test problems and matrix loading.
"""

import numpy as np
import scipy.sparse as sp


def poisson_2d(nx: int, ny: int):
    """
    Build the 5-point Poisson matrix on a regular ``nx * ny`` grid with
    Dirichlet boundary conditions.

    Parameters
    ----------
    nx : int
        Number of grid points in x-direction
    ny : int
        Number of grid points in y-direction

    Returns
    -------
    A : scipy.sparse.csr_matrix
        Symmetric positive definite matrix of size ``(nx*ny, nx*ny)``
    """
    N = nx * ny
    main_diag = np.full(N, 4.0)
    off_diag = np.full(N - 1, -1.0)
    off_diag2 = np.full(N - nx, -1.0)

    # no coupling across the end of a grid row
    off_diag[nx - 1::nx] = 0.0

    diags = [main_diag, off_diag, off_diag, off_diag2, off_diag2]
    offsets = [0, -1, 1, -nx, nx]
    return sp.diags(diags, offsets, shape=(N, N), format="csr")


def convection_diffusion_1d(n: int, peclet: float = 0.5):
    """
    Non-symmetric upwind convection-diffusion matrix on ``n`` interior points.

    The matrix is strictly diagonally dominant for ``peclet > 0``.

    Returns
    -------
    A : scipy.sparse.csr_matrix
    """
    lower = np.full(n - 1, -1.0 - peclet)
    upper = np.full(n - 1, -1.0)
    main = np.full(n, 2.0 + peclet) + 0.1
    return sp.diags([lower, main, upper], [-1, 0, 1], shape=(n, n), format="csr")


def load_matrix_market(filename: str):
    """
    Load a sparse matrix from a Matrix Market file.

    Parameters
    ----------
    filename : str
        Path to the Matrix Market file (.mtx)

    Returns
    -------
    A : scipy.sparse.csr_matrix
        The matrix in CSR format
    """
    from scipy.io import mmread
    A = mmread(filename)
    if not sp.issparse(A):
        return sp.csr_matrix(A)
    return sp.csr_matrix(A.tocsr())
