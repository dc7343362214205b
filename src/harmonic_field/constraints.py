"""Assembly of the penalty system from (vertex id, value) constraints.

Constrained vertex ids are deduplicated into a sorted set. The k-th distinct id
(ascending) is paired with the k-th entry of the value array: values are
matched by position, not by id, so callers must order them consistently with
the sorted distinct ids.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence
from numpy.typing import NDArray

import numpy as np
import scipy.sparse as sp

_LOGGER = logging.getLogger(__name__)


@dataclass
class ConstraintSystem:
    """Sparse pieces of the penalty formulation.

    Attributes:
        identifiers: Sorted distinct constrained vertex ids.
        constraints: Sparse (n_nodes, 1) column holding the target values.
        penalty: Diagonal (n_nodes, n_nodes) matrix with `alpha` at each id.
        alpha: Penalty magnitude, ``10 ** log_alpha``.
    """

    identifiers: NDArray[Any]
    constraints: sp.csr_matrix
    penalty: sp.csr_matrix
    alpha: float

    @property
    def constraint_number(self) -> int:
        """Return the number of distinct constrained vertices."""
        return int(self.identifiers.shape[0])


def penalty_alpha(log_alpha: int) -> float:
    """Return the penalty magnitude ``10 ** log_alpha``.

    Raises:
        ValueError: If ``10 ** log_alpha`` overflows or underflows to zero.
    """
    log_alpha = int(log_alpha)
    try:
        alpha = float(10.0 ** log_alpha)
    except OverflowError as exc:
        _LOGGER.error("penalty_alpha: 10**%d overflows a float.", log_alpha)
        raise ValueError(
            f"log_alpha={log_alpha} gives a penalty too large for a float."
        ) from exc
    if alpha == 0.0:
        _LOGGER.error("penalty_alpha: 10**%d underflows to zero.", log_alpha)
        raise ValueError(f"log_alpha={log_alpha} gives a zero penalty.")
    return alpha


def assemble_constraints(
    sources: Sequence[int] | NDArray[Any],
    constraints: Sequence[float] | NDArray[Any],
    vertex_number: int,
    log_alpha: int = 5,
) -> ConstraintSystem:
    """Build the constraint vector and penalty matrix.

    Args:
        sources: Constrained vertex ids; duplicates collapse to one unknown.
        constraints: Values paired by position with the sorted distinct ids.
        vertex_number: Number of mesh vertices.
        log_alpha: Penalty exponent.

    Returns:
        ConstraintSystem: Sorted ids, constraint vector and penalty matrix.

    Raises:
        ValueError: If an id lies outside ``[0, vertex_number)``, if fewer
            values than distinct ids are given, if a value is not finite, or
            if ``10 ** log_alpha`` is not a usable penalty.
    """
    ids = np.asarray(sources, dtype=np.int64).reshape(-1)
    vals = np.asarray(constraints, dtype=float).reshape(-1)

    if ids.size and ((ids < 0).any() or (ids >= vertex_number).any()):
        bad = ids[(ids < 0) | (ids >= vertex_number)]
        _LOGGER.error(
            "assemble_constraints: %d vertex id(s) outside [0, %d): %s",
            bad.size,
            vertex_number,
            bad[:5].tolist(),
        )
        raise ValueError(
            f"Constraint vertex ids must lie in [0, {vertex_number}); "
            f"got {bad[:5].tolist()}"
        )

    identifiers = np.unique(ids)
    n_ids = int(identifiers.shape[0])

    if vals.shape[0] < n_ids:
        _LOGGER.error(
            "assemble_constraints: %d value(s) for %d distinct vertex id(s).",
            vals.shape[0],
            n_ids,
        )
        raise ValueError(
            f"Expected at least {n_ids} constraint values; got {vals.shape[0]}."
        )

    paired = vals[:n_ids]
    if not np.all(np.isfinite(paired)):
        _LOGGER.error("assemble_constraints: non-finite constraint value(s).")
        raise ValueError("Constraint values must be finite.")

    if n_ids < ids.shape[0]:
        _LOGGER.warning(
            "assemble_constraints: %d duplicate vertex id(s) collapsed; values "
            "are paired with the sorted distinct ids by position.",
            ids.shape[0] - n_ids,
        )

    alpha = penalty_alpha(log_alpha)
    zeros = np.zeros(n_ids, dtype=np.int64)

    constraint_vec = sp.csr_matrix(
        (paired, (identifiers, zeros)), shape=(vertex_number, 1), dtype=float
    )
    penalty = sp.csr_matrix(
        (np.full(n_ids, alpha), (identifiers, identifiers)),
        shape=(vertex_number, vertex_number),
        dtype=float,
    )

    _LOGGER.debug(
        "assemble_constraints: n_nodes=%d, #constraints=%d (distinct=%d), alpha=%.3e",
        vertex_number,
        ids.shape[0],
        n_ids,
        alpha,
    )

    return ConstraintSystem(
        identifiers=identifiers,
        constraints=constraint_vec,
        penalty=penalty,
        alpha=alpha,
    )
