"""
Sparse linear solvers for the MVC system.

Every solver exposes ``solve(A, b) -> (x, success)``. Failures (non-convergence,
factorization errors, non-finite results) are reported through ``success``;
they never raise.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional, Protocol, Tuple

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import LinearOperator, bicgstab, spilu, splu

from .runtime_defaults import DEFAULTS

_LOGGER = logging.getLogger(__name__)

SOLVER_BICGSTAB = "bicgstab"
SOLVER_DIRECT = "direct"


class SparseLinearSolver(Protocol):
    def solve(self, A: sparse.spmatrix, b: np.ndarray) -> Tuple[np.ndarray, bool]:
        ...


def _finite_result(x: np.ndarray) -> bool:
    return bool(np.all(np.isfinite(x)))


@dataclass
class BiCGSTABSolver:
    """BiCGSTAB with an incomplete LU preconditioner."""
    rtol: float = DEFAULTS.solver_rtol
    max_iterations: int = DEFAULTS.solver_max_iterations
    drop_tol: float = DEFAULTS.ilu_drop_tol
    fill_factor: float = DEFAULTS.ilu_fill_factor

    def _preconditioner(self, A: sparse.csc_matrix) -> Optional[LinearOperator]:
        try:
            ilu = spilu(A, drop_tol=self.drop_tol, fill_factor=self.fill_factor)
        except RuntimeError:
            _LOGGER.warning("Incomplete LU factorization failed", exc_info=True)
            return None
        return LinearOperator(A.shape, matvec=ilu.solve, dtype=np.float64)

    def solve(self, A: sparse.spmatrix, b: np.ndarray) -> Tuple[np.ndarray, bool]:
        A = sparse.csc_matrix(A, dtype=np.float64)
        b = np.asarray(b, dtype=np.float64)
        x0 = np.zeros_like(b)

        M = self._preconditioner(A)
        if M is None:
            return x0, False

        x, info = bicgstab(A, b, x0=x0, rtol=self.rtol, atol=0.0, maxiter=self.max_iterations, M=M)
        if info > 0:
            _LOGGER.warning("BiCGSTAB did not converge after %d iterations", info)
            return x, False
        if info < 0:
            _LOGGER.warning("BiCGSTAB breakdown (info=%d)", info)
            return x, False
        if not _finite_result(x):
            _LOGGER.warning("BiCGSTAB produced non-finite values")
            return x, False
        return x, True


class DirectSolver:
    """Sparse LU (SuperLU) direct solve."""

    def solve(self, A: sparse.spmatrix, b: np.ndarray) -> Tuple[np.ndarray, bool]:
        A = sparse.csc_matrix(A, dtype=np.float64)
        b = np.asarray(b, dtype=np.float64)
        try:
            x = splu(A).solve(b)
        except RuntimeError:
            _LOGGER.warning("Sparse LU factorization failed", exc_info=True)
            return np.zeros_like(b), False
        if not _finite_result(x):
            _LOGGER.warning("Sparse LU produced non-finite values")
            return x, False
        return x, True


def make_solver(kind: Optional[str] = None) -> SparseLinearSolver:
    kind = str(kind or DEFAULTS.solver).lower().strip()
    if kind == SOLVER_DIRECT:
        return DirectSolver()
    if kind == SOLVER_BICGSTAB:
        return BiCGSTABSolver()
    raise ValueError(f"Unknown solver: {kind!r} (expected '{SOLVER_BICGSTAB}' or '{SOLVER_DIRECT}')")
