"""The harmonic_field package computes harmonic scalar fields on meshes.

This package offers:
  - Combinatorial and cotangent Laplacians of triangle and tetrahedron meshes.
  - Soft vertex constraints through a diagonal penalty.
  - Direct (sparse LDL^T) and iterative (conjugate gradient) solves, picked
    by problem size or by the caller.

Submodules:
  - config: Logging level and environment defaults.
  - constraints: Constraint vector and penalty matrix assembly.
  - harmonic_field: HarmonicField orchestration and result type.
  - laplacian: Sparse Laplacian operators.
  - mesh: Mesh topology provider.
  - parameters: Parameter container for a computation.
  - result: Copy of the solution into the output buffer.
  - solver: Solver selection, strategies and status codes.

Classes:
  HarmonicField, HarmonicFieldResult, Mesh, Parameters, SolverError
"""

from .config import set_log_level, bool_env, int_env, float_env

from harmonic_field.constraints import ConstraintSystem, assemble_constraints
from harmonic_field.harmonic_field import HarmonicField, HarmonicFieldResult
from harmonic_field.laplacian import (
    build_laplacian,
    compute_laplacian,
    compute_laplacian_with_cotan_weights,
)
from harmonic_field.mesh import Mesh
from harmonic_field.parameters import Parameters
from harmonic_field.result import materialize
from harmonic_field.solver import (
    SolveOutcome,
    SolverError,
    SolverStatus,
    SolverType,
    SolvingMethod,
    find_best_solver,
    select_solver,
    solve,
)

__all__ = [
    # Core classes
    "HarmonicField",
    "HarmonicFieldResult",
    "Mesh",
    "Parameters",
    # Building blocks
    "ConstraintSystem",
    "assemble_constraints",
    "build_laplacian",
    "compute_laplacian",
    "compute_laplacian_with_cotan_weights",
    "materialize",
    # Solvers
    "SolveOutcome",
    "SolverError",
    "SolverStatus",
    "SolverType",
    "SolvingMethod",
    "find_best_solver",
    "select_solver",
    "solve",
    # Configuration
    "set_log_level",
    "bool_env",
    "int_env",
    "float_env",
]
