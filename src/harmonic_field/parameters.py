"""Module defining the Parameters class for configuring harmonic field solves.

Defaults for the thread count, the penalty exponent and the Auto-mode
threshold are read from the environment (see `harmonic_field.config`).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from .config import default_log_alpha, default_solver_threshold, default_thread_number
from .constraints import penalty_alpha
from .solver import SolvingMethod

_LOGGER = logging.getLogger(__name__)

_SUPPORTED_DTYPES = (np.dtype(np.float64), np.dtype(np.float32))


@dataclass
class Parameters:
    """Holds the options of one harmonic field computation.

    Attributes:
        use_cotan_weights (bool): Cotangent-weighted Laplacian if True,
            combinatorial Laplacian otherwise.
        solving_method (SolvingMethod): AUTO, DIRECT or ITERATIVE (strings accepted).
        log_alpha (int): Penalty exponent; constraints are weighted by ``10 ** log_alpha``.
        thread_number (int): Worker count for the output copy.
        solver_threshold (int): Size above which AUTO picks the iterative solver.
        tolerance (float): Relative residual target of the iterative solver.
        max_iterations (Optional[int]): Iteration budget of the iterative solver
            (None means ten times the vertex count).
        fallback_on_failure (bool): Retry once with the other strategy when a
            solve reports a numerical issue or no convergence.
        dtype (Any): Output precision, float64 or float32.

    Notes:
        - A larger `log_alpha` matches the constraints more tightly but makes
          the system worse conditioned.
    """

    use_cotan_weights: bool = True
    solving_method: SolvingMethod = SolvingMethod.AUTO
    log_alpha: int = field(default_factory=default_log_alpha)
    thread_number: int = field(default_factory=default_thread_number)
    solver_threshold: int = field(default_factory=default_solver_threshold)
    tolerance: float = 1e-10
    max_iterations: Optional[int] = None
    fallback_on_failure: bool = True
    dtype: Any = np.float64

    def __post_init__(self) -> None:
        """Normalize and validate the options.

        Raises:
            ValueError: If an option is out of range (including a `log_alpha`
                whose penalty ``10 ** log_alpha`` is not a finite, non-zero float).
        """
        self.solving_method = SolvingMethod.parse(self.solving_method)

        if isinstance(self.log_alpha, bool) or int(self.log_alpha) != self.log_alpha:
            raise ValueError(f"log_alpha must be an integer; got {self.log_alpha!r}")
        self.log_alpha = int(self.log_alpha)
        penalty_alpha(self.log_alpha)

        if int(self.thread_number) < 1:
            raise ValueError(f"thread_number must be >= 1; got {self.thread_number}")
        self.thread_number = int(self.thread_number)

        if self.tolerance <= 0.0:
            raise ValueError(f"tolerance must be positive; got {self.tolerance}")
        if self.max_iterations is not None and int(self.max_iterations) < 1:
            raise ValueError(
                f"max_iterations must be >= 1 or None; got {self.max_iterations}"
            )

        dtype = np.dtype(self.dtype)
        if dtype not in _SUPPORTED_DTYPES:
            raise ValueError(f"dtype must be float64 or float32; got {dtype}")
        self.dtype = dtype

        _LOGGER.debug("Parameters: %s", self)
