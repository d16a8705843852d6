import numpy as np
import pytest
from scipy import sparse

from src.core import linear_solver
from src.core.linear_solver import (
    SOLVER_BICGSTAB,
    SOLVER_DIRECT,
    BiCGSTABSolver,
    DirectSolver,
    make_solver,
)


def _laplacian_system(n=30):
    # 1D Dirichlet Laplacian with identity end rows; solution is linear.
    main = np.full(n, 2.0)
    off = np.full(n - 1, -1.0)
    A = sparse.diags([off, main, off], [-1, 0, 1], format="lil")
    A[0, :] = 0.0
    A[0, 0] = 1.0
    A[n - 1, :] = 0.0
    A[n - 1, n - 1] = 1.0
    b = np.zeros(n)
    b[0] = 0.0
    b[n - 1] = 1.0
    expected = np.linspace(0.0, 1.0, n)
    return A.tocsr(), b, expected


@pytest.mark.parametrize("solver", [BiCGSTABSolver(), DirectSolver()])
def test_solvers_converge(solver):
    A, b, expected = _laplacian_system()
    x, ok = solver.solve(A, b)
    assert ok
    np.testing.assert_allclose(x, expected, atol=1e-8)


def test_direct_solver_reports_singular_matrix():
    A = sparse.csc_matrix((3, 3))
    x, ok = DirectSolver().solve(A, np.ones(3))
    assert not ok
    assert x.shape == (3,)


def test_bicgstab_reports_preconditioner_failure(monkeypatch):
    def _broken_spilu(*args, **kwargs):
        raise RuntimeError("Factor is exactly singular")

    monkeypatch.setattr(linear_solver, "spilu", _broken_spilu)
    A, b, _ = _laplacian_system()
    x, ok = BiCGSTABSolver().solve(A, b)
    assert not ok
    np.testing.assert_array_equal(x, np.zeros_like(b))


def test_bicgstab_reports_non_convergence(monkeypatch):
    def _stalled_bicgstab(A, b, **kwargs):
        return np.zeros_like(b), 7

    monkeypatch.setattr(linear_solver, "bicgstab", _stalled_bicgstab)
    A, b, _ = _laplacian_system()
    _, ok = BiCGSTABSolver().solve(A, b)
    assert not ok


def test_make_solver():
    assert isinstance(make_solver(SOLVER_DIRECT), DirectSolver)
    assert isinstance(make_solver(SOLVER_BICGSTAB), BiCGSTABSolver)
    assert isinstance(make_solver(" BiCGSTAB "), BiCGSTABSolver)
    with pytest.raises(ValueError):
        make_solver("cholesky")
