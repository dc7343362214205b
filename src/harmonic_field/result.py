"""Copy of a solver solution into the caller's per-vertex buffer.

The penalized system yields the negated harmonic field, so every value is
negated on the way out. Vertex ranges are independent and are written by a
thread pool; leaving the pool is the barrier before returning.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Tuple
from numpy.typing import NDArray

import numpy as np
import scipy.sparse as sp

_LOGGER = logging.getLogger(__name__)

MIN_CHUNK = 65536


def _as_dense(solution: Any) -> NDArray[Any]:
    """Return `solution` as a flat dense array (sparse inputs are densified)."""
    if sp.issparse(solution):
        return np.asarray(solution.toarray()).ravel()
    return np.asarray(solution).ravel()


def _chunks(n: int, parts: int) -> List[Tuple[int, int]]:
    bounds = np.linspace(0, n, parts + 1).astype(int)
    return [(int(lo), int(hi)) for lo, hi in zip(bounds[:-1], bounds[1:]) if hi > lo]


def materialize(
    solution: Any,
    output: NDArray[Any],
    thread_number: int = 1,
    min_chunk: int = MIN_CHUNK,
) -> NDArray[Any]:
    """Write ``output[i] = -solution[i]`` for every vertex.

    Args:
        solution: Dense or sparse solver output with one entry per vertex.
        output: Writable 1-D buffer of the same length, overwritten in place.
        thread_number: Number of worker threads.
        min_chunk: Smallest vertex range handed to one worker.

    Returns:
        NDArray[Any]: `output`.

    Raises:
        ValueError: If `output` is not a writable 1-D array matching `solution`.
    """
    sol = _as_dense(solution)
    n = sol.shape[0]

    if not isinstance(output, np.ndarray) or output.ndim != 1:
        _LOGGER.error("materialize: output must be a 1-D numpy array.")
        raise ValueError("Output buffer must be a 1-D numpy array.")
    if output.shape[0] != n:
        _LOGGER.error(
            "materialize: output length %d != vertex number %d", output.shape[0], n
        )
        raise ValueError(f"Output buffer length {output.shape[0]} != {n} vertices.")
    if not output.flags.writeable:
        _LOGGER.error("materialize: output buffer is read-only.")
        raise ValueError("Output buffer is read-only.")

    parts = max(1, min(int(thread_number), n // max(1, int(min_chunk))))

    def _copy(bounds: Tuple[int, int]) -> None:
        lo, hi = bounds
        output[lo:hi] = -sol[lo:hi]

    if parts == 1:
        _copy((0, n))
    else:
        with ThreadPoolExecutor(
            max_workers=parts, thread_name_prefix="harmonic-field"
        ) as pool:
            # list() surfaces worker exceptions
            list(pool.map(_copy, _chunks(n, parts)))

    _LOGGER.debug("materialize: copied %d value(s) with %d worker(s)", n, parts)
    return output
