"""Module for harmonic scalar fields on triangle and tetrahedron meshes.

This module defines the HarmonicField class, which computes the smoothest
per-vertex scalar field (minimal Laplacian energy) approximately matching a
set of vertex constraints, and the HarmonicFieldResult returned by a solve.
"""
from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple
from numpy.typing import NDArray

import numpy as np

from .constraints import ConstraintSystem, assemble_constraints
from .laplacian import build_laplacian
from .mesh import Mesh
from .parameters import Parameters
from .result import materialize
from .solver import (
    SolveOutcome,
    SolverError,
    SolverStatus,
    SolverType,
    select_solver,
    solve,
    solver_available,
)

logger = logging.getLogger(__name__)

_RETRY_STATUSES = (SolverStatus.NUMERICAL_ISSUE, SolverStatus.NO_CONVERGENCE)


@dataclass
class HarmonicFieldResult:
    """Outcome of `HarmonicField.execute`.

    Attributes:
        field: The per-vertex output buffer.
        status: Final solver status, None when the computation was skipped.
        solver_type: Strategy that produced `field`.
        fallback_used: True if the alternate strategy was tried.
        iterations: Iterative solver iterations (0 for the direct solver).
        elapsed: Wall time in seconds.
        skipped: True when the sparse solver backend was unavailable.
        message: Solver diagnostic.
    """

    field: Optional[NDArray[Any]]
    status: Optional[SolverStatus]
    solver_type: Optional[SolverType] = None
    fallback_used: bool = False
    iterations: int = 0
    elapsed: float = 0.0
    skipped: bool = False
    message: str = ""

    @property
    def ok(self) -> bool:
        """Return True if the field was computed without solver issues."""
        return self.status is SolverStatus.SUCCESS

    @property
    def returncode(self) -> int:
        """Return 0, the integer result of the classic API."""
        return 0

    def raise_for_status(self) -> None:
        """Raise SolverError unless the solve succeeded.

        Raises:
            SolverError: Carrying the SolverStatus (None if skipped).
        """
        if self.skipped:
            raise SolverError("sparse solver backend unavailable", status=None)
        if not self.ok:
            assert self.status is not None
            raise SolverError(
                f"harmonic field solve failed: {self.status.value} ({self.message})",
                status=self.status,
            )


class HarmonicField:
    """Compute harmonic scalar fields with soft vertex constraints.

    The instance only carries configuration; every call to `execute` builds
    and discards its own Laplacian, penalty system and solver.

    Args:
        parameters (Optional[Parameters]): Options; defaults are used if None.
        **overrides: Individual `Parameters` fields overriding `parameters`.
    """

    def __init__(
        self, parameters: Optional[Parameters] = None, **overrides: Any
    ) -> None:
        if parameters is None:
            parameters = Parameters(**overrides)
        elif overrides:
            parameters = dataclasses.replace(parameters, **overrides)
        self.parameters = parameters

    def select_solver(self, mesh: Mesh) -> SolverType:
        """Return the strategy used for `mesh` under the current options."""
        p = self.parameters
        return select_solver(
            p.solving_method, mesh.vertex_number, mesh.edge_number, p.solver_threshold
        )

    def _prepare_output(
        self, output: Optional[NDArray[Any]], vertex_number: int
    ) -> NDArray[Any]:
        if output is None:
            return np.zeros(vertex_number, dtype=self.parameters.dtype)
        if not isinstance(output, np.ndarray) or output.shape != (vertex_number,):
            logger.error(
                "execute: output buffer shape %s != (%d,)",
                getattr(output, "shape", None),
                vertex_number,
            )
            raise ValueError(
                f"Output buffer must be a numpy array of shape ({vertex_number},)."
            )
        return output

    def _solve(
        self, laplacian: Any, system: ConstraintSystem, solver_type: SolverType
    ) -> Tuple[SolveOutcome, bool]:
        p = self.parameters
        outcome = solve(
            laplacian,
            system.penalty,
            system.constraints,
            solver_type,
            tolerance=p.tolerance,
            max_iterations=p.max_iterations,
        )
        if not (p.fallback_on_failure and outcome.status in _RETRY_STATUSES):
            return outcome, False

        logger.warning(
            "execute: %s solver reported %s; retrying with %s solver.",
            solver_type.value,
            outcome.status.value,
            solver_type.alternate.value,
        )
        retry = solve(
            laplacian,
            system.penalty,
            system.constraints,
            solver_type.alternate,
            tolerance=p.tolerance,
            max_iterations=p.max_iterations,
        )
        if retry.ok:
            return retry, True
        # Keep the first attempt's solution; the retry did no better.
        return outcome, True

    def execute(
        self,
        mesh: Mesh,
        sources: Sequence[int] | NDArray[Any],
        constraints: Sequence[float] | NDArray[Any],
        output: Optional[NDArray[Any]] = None,
        filename: Optional[str] = None,
    ) -> HarmonicFieldResult:
        """Compute the harmonic field of `mesh` under the given constraints.

        Args:
            mesh (Mesh): Read-only topology provider.
            sources (Sequence[int] | NDArray[Any]): Constrained vertex ids.
            constraints (Sequence[float] | NDArray[Any]): Values paired by
                position with the sorted distinct ids of `sources`.
            output (Optional[NDArray[Any]]): Buffer of length ``vertex_number``
                overwritten in place; allocated if None.
            filename (Optional[str]): VTU export path for the field.

        Returns:
            HarmonicFieldResult: The field and the solver diagnostics.

        Raises:
            ValueError: On invalid constraints or output buffer.
        """
        p = self.parameters

        if not solver_available():
            logger.warning(
                "Sparse solver support (scipy.sparse.linalg) unavailable; "
                "computation skipped and output left untouched."
            )
            return HarmonicFieldResult(field=output, status=None, skipped=True)

        start = time.perf_counter()
        logger.debug("Beginning computation on %r", mesh)

        n_nodes = mesh.vertex_number
        out = self._prepare_output(output, n_nodes)

        system = assemble_constraints(sources, constraints, n_nodes, p.log_alpha)
        laplacian = build_laplacian(mesh, p.use_cotan_weights)
        solver_type = self.select_solver(mesh)

        outcome, fallback_used = self._solve(laplacian, system, solver_type)

        materialize(outcome.solution, out, thread_number=p.thread_number)

        elapsed = time.perf_counter() - start
        logger.info(
            "Ending computation after %.3fs (%s, %s, %d thread(s)): %s",
            elapsed,
            "cotan weights" if p.use_cotan_weights else "discrete laplacian",
            "iterative solver"
            if outcome.solver_type is SolverType.ITERATIVE
            else "Cholesky",
            p.thread_number,
            outcome.status.value,
        )

        if filename is not None:
            mesh.writeVTU(filename, point_data={"OutputHarmonicField": out})

        return HarmonicFieldResult(
            field=out,
            status=outcome.status,
            solver_type=outcome.solver_type,
            fallback_used=fallback_used,
            iterations=outcome.iterations,
            elapsed=elapsed,
            message=outcome.message,
        )
