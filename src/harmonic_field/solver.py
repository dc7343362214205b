"""Solver selection and sparse solves for the penalized Laplace system.

The Laplacian ``L`` is negative semidefinite (negative diagonal), so the
penalty enters with the opposite sign::

    (L - P) x = P c

whose solution is the negated harmonic field. Both strategies work on the
symmetric positive definite form ``(P - L) x = -P c``:

  - DirectSolver: SuperLU in symmetric mode with diagonal pivoting, which is
    an LDL^T (Cholesky-style) factorization; a non-positive pivot means the
    matrix is not positive definite.
  - IterativeSolver: Jacobi-preconditioned conjugate gradient.

Solver outcomes are reported as a `SolverStatus`, never raised.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional
from numpy.typing import NDArray

import numpy as np
import scipy.sparse as sp

_LOGGER = logging.getLogger(__name__)

SOLVER_THRESHOLD = 500000


class SolvingMethod(enum.Enum):
    """Strategy requested by the caller."""

    AUTO = "auto"
    DIRECT = "direct"
    ITERATIVE = "iterative"

    @classmethod
    def parse(cls, value: "SolvingMethod | str") -> "SolvingMethod":
        """Accept an enum member or its (case-insensitive) name/value."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ValueError(
            f"Unknown solving method {value!r}; expected one of "
            f"{[m.value for m in cls]}"
        )


class SolverType(enum.Enum):
    """Strategy actually used for a solve."""

    DIRECT = "direct"
    ITERATIVE = "iterative"

    @property
    def alternate(self) -> "SolverType":
        """Return the other strategy."""
        if self is SolverType.DIRECT:
            return SolverType.ITERATIVE
        return SolverType.DIRECT


class SolverStatus(enum.Enum):
    """Outcome of a sparse solve."""

    SUCCESS = "success"
    NUMERICAL_ISSUE = "numerical issue"
    NO_CONVERGENCE = "no convergence"
    INVALID_INPUT = "invalid input"


class SolverError(RuntimeError):
    """Raised on demand for a solve that did not succeed.

    Attributes:
        status: The solver outcome, or None when the solver was unavailable.
    """

    def __init__(self, message: str, status: Optional[SolverStatus] = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass
class SolveOutcome:
    """Solution and diagnostics of one solve.

    Attributes:
        solution: Dense solution of ``(L - P) x = P c`` (the negated field).
        status: Solver outcome.
        solver_type: Strategy used.
        iterations: CG iterations (0 for the direct strategy).
        message: Human readable diagnostic.
    """

    solution: NDArray[Any]
    status: SolverStatus
    solver_type: SolverType
    iterations: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        """Return True if the solve succeeded."""
        return self.status is SolverStatus.SUCCESS


def solver_available() -> bool:
    """Return True if SciPy's sparse linear algebra backend can be imported.

    Only ``scipy.sparse.linalg`` is checked: the package itself imports
    ``scipy.sparse`` at module load, so a missing SciPy fails at import time
    rather than at this gate.
    """
    try:
        import scipy.sparse.linalg  # noqa: F401
    except ImportError as exc:
        _LOGGER.debug("scipy.sparse.linalg unavailable: %r", exc)
        return False
    return True


def find_best_solver(
    vertex_number: int, edge_number: int, threshold: int = SOLVER_THRESHOLD
) -> SolverType:
    """Pick a strategy from the problem size.

    ``2 * edge_number + vertex_number`` approximates the number of nonzeros of
    the Laplacian. Above `threshold` the iterative strategy is used.
    """
    score = 2 * int(edge_number) + int(vertex_number)
    chosen = SolverType.ITERATIVE if score > threshold else SolverType.DIRECT
    _LOGGER.debug(
        "find_best_solver: score=%d threshold=%d -> %s",
        score,
        threshold,
        chosen.value,
    )
    return chosen


def select_solver(
    method: SolvingMethod | str,
    vertex_number: int,
    edge_number: int,
    threshold: int = SOLVER_THRESHOLD,
) -> SolverType:
    """Honor an explicit strategy, or apply `find_best_solver` for AUTO."""
    method = SolvingMethod.parse(method)
    if method is SolvingMethod.DIRECT:
        return SolverType.DIRECT
    if method is SolvingMethod.ITERATIVE:
        return SolverType.ITERATIVE
    return find_best_solver(vertex_number, edge_number, threshold)


class DirectSolver:
    """Sparse LDL^T-style factorization through SuperLU.

    An exactly singular factor (e.g. an unconstrained connected component) is
    retried once on ``A + shift * I``; the shifted solution keeps the well
    defined part of the field and is zero on an unconstrained component. The
    status is NUMERICAL_ISSUE either way.
    """

    solver_type = SolverType.DIRECT

    #: Diagonal shift relative to the largest diagonal entry of the matrix.
    singular_shift = 1e-12

    @staticmethod
    def _factor(A: sp.spmatrix) -> Any:
        import scipy.sparse.linalg as spla

        return spla.splu(
            A.tocsc(),
            permc_spec="MMD_AT_PLUS_A",
            diag_pivot_thresh=0.0,
            options={"SymmetricMode": True},
        )

    def _shifted_solve(self, A: sp.spmatrix, b: NDArray[Any]) -> NDArray[Any]:
        """Solve the diagonally shifted system; zeros if that fails as well."""
        n = b.shape[0]
        scale = max(float(np.abs(A.diagonal()).max(initial=0.0)), 1.0)
        shift = self.singular_shift * scale
        try:
            lu = self._factor(A + shift * sp.identity(n, format="csr"))
        except RuntimeError as exc:
            _LOGGER.debug("DirectSolver: shifted factorization failed: %s", exc)
            return np.zeros(n)
        x = lu.solve(b)
        if not np.all(np.isfinite(x)):
            return np.zeros(n)
        _LOGGER.debug("DirectSolver: solved with diagonal shift %.3e", shift)
        return x

    def solve(self, A: sp.spmatrix, b: NDArray[Any]) -> SolveOutcome:
        """Solve ``A x = b`` for a symmetric positive definite `A`.

        Args:
            A: System matrix.
            b: Right-hand side, shape (n,).

        Returns:
            SolveOutcome: The solution. A singular factor yields NUMERICAL_ISSUE
            with the solution of the diagonally shifted system (zeros if even
            that cannot be factored).
        """
        try:
            lu = self._factor(A)
        except RuntimeError as exc:
            # SuperLU reports an exactly singular factor this way.
            _LOGGER.debug("DirectSolver: factorization failed: %s", exc)
            return SolveOutcome(
                self._shifted_solve(A, b),
                SolverStatus.NUMERICAL_ISSUE,
                self.solver_type,
                message=str(exc),
            )

        x = lu.solve(b)
        n_bad = int(np.count_nonzero(lu.U.diagonal() <= 0.0))
        if n_bad:
            return SolveOutcome(
                x,
                SolverStatus.NUMERICAL_ISSUE,
                self.solver_type,
                message=f"{n_bad} non-positive pivot(s); matrix is not positive definite",
            )
        if not np.all(np.isfinite(x)):
            return SolveOutcome(
                x,
                SolverStatus.NUMERICAL_ISSUE,
                self.solver_type,
                message="non-finite solution",
            )
        return SolveOutcome(x, SolverStatus.SUCCESS, self.solver_type)


class IterativeSolver:
    """Conjugate gradient with a Jacobi preconditioner.

    Args:
        tolerance: Relative residual target.
        max_iterations: Iteration budget; None means ``10 * n``.
    """

    solver_type = SolverType.ITERATIVE

    def __init__(
        self, tolerance: float = 1e-10, max_iterations: Optional[int] = None
    ) -> None:
        self.tolerance = tolerance
        self.max_iterations = max_iterations

    def solve(self, A: sp.spmatrix, b: NDArray[Any]) -> SolveOutcome:
        """Solve ``A x = b`` for a symmetric positive (semi)definite `A`."""
        import scipy.sparse.linalg as spla

        n = b.shape[0]
        maxiter = self.max_iterations if self.max_iterations is not None else 10 * n

        diag = A.diagonal()
        inv_diag = np.divide(1.0, diag, out=np.ones_like(diag), where=diag != 0.0)
        preconditioner = sp.diags(inv_diag, format="csr")

        iterations = 0

        def _count(_xk: NDArray[Any]) -> None:
            nonlocal iterations
            iterations += 1

        x, info = spla.cg(
            A.tocsr(),
            b,
            rtol=self.tolerance,
            atol=0.0,
            maxiter=maxiter,
            M=preconditioner,
            callback=_count,
        )

        if info > 0:
            status = SolverStatus.NO_CONVERGENCE
            message = f"tolerance {self.tolerance:g} not reached in {info} iterations"
        elif info < 0:
            status = SolverStatus.INVALID_INPUT
            message = f"conjugate gradient breakdown (info={info})"
        elif not np.all(np.isfinite(x)):
            status = SolverStatus.NUMERICAL_ISSUE
            message = "non-finite solution"
        else:
            status = SolverStatus.SUCCESS
            message = ""
        return SolveOutcome(x, status, self.solver_type, iterations, message)


def make_solver(
    solver_type: SolverType,
    tolerance: float = 1e-10,
    max_iterations: Optional[int] = None,
) -> DirectSolver | IterativeSolver:
    """Instantiate the strategy object for `solver_type`."""
    if solver_type is SolverType.DIRECT:
        return DirectSolver()
    return IterativeSolver(tolerance=tolerance, max_iterations=max_iterations)


def _log_status(outcome: SolveOutcome) -> None:
    if outcome.ok:
        _LOGGER.debug(
            "solve: %s solver -> Success! (iterations=%d)",
            outcome.solver_type.value,
            outcome.iterations,
        )
        return
    _LOGGER.warning(
        "solve: %s solver -> %s (%s)",
        outcome.solver_type.value,
        outcome.status.value.title(),
        outcome.message,
    )


def solve(
    laplacian: sp.spmatrix,
    penalty: sp.spmatrix,
    constraints: sp.spmatrix,
    solver_type: SolverType,
    tolerance: float = 1e-10,
    max_iterations: Optional[int] = None,
) -> SolveOutcome:
    """Solve the penalized system ``(L - P) x = P c``.

    Args:
        laplacian: (n, n) Laplacian with negative diagonal.
        penalty: (n, n) diagonal penalty matrix.
        constraints: (n, 1) sparse constraint column.
        solver_type: Strategy to use.
        tolerance: CG relative tolerance.
        max_iterations: CG iteration budget.

    Returns:
        SolveOutcome: Dense solution (the negated field) and status. Mismatched
        dimensions yield INVALID_INPUT with a zero solution.
    """
    n = laplacian.shape[0]
    if (
        laplacian.shape != (n, n)
        or penalty.shape != (n, n)
        or constraints.shape[0] != n
    ):
        outcome = SolveOutcome(
            np.zeros(n),
            SolverStatus.INVALID_INPUT,
            solver_type,
            message=(
                f"dimension mismatch: laplacian {laplacian.shape}, "
                f"penalty {penalty.shape}, constraints {constraints.shape}"
            ),
        )
        _log_status(outcome)
        return outcome

    A = (penalty - laplacian).tocsr()
    pc = penalty @ constraints
    if sp.issparse(pc):
        pc = pc.toarray()
    rhs = -np.asarray(pc, dtype=float).ravel()

    _LOGGER.debug(
        "solve: n=%d nnz=%d solver=%s |rhs|=%.3e",
        n,
        A.nnz,
        solver_type.value,
        float(np.linalg.norm(rhs)),
    )

    outcome = make_solver(solver_type, tolerance, max_iterations).solve(A, rhs)
    _log_status(outcome)
    return outcome
