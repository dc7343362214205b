"""Package-wide configuration for harmonic-field.

This module holds the logging setup shared by every submodule and the small
environment helpers used to derive defaults (thread count, penalty exponent,
solver threshold). Nothing here is mutated by a solve: per-call options live
in :class:`harmonic_field.parameters.Parameters`.
"""

from __future__ import annotations

import logging
import os


# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
_PACKAGE_LOGGER = logging.getLogger("harmonic_field")
_LOGGER = logging.getLogger(__name__)


def _parse_log_level(val: str | int | None, default: int = logging.WARNING) -> int:
    """Parse a logging level string or int into a `logging` level constant.

    Args:
        val: The desired level (e.g., "DEBUG", 10). May be None.
        default: Fallback level if `val` cannot be parsed.

    Returns:
        An integer logging level (e.g., logging.DEBUG).
    """
    if val is None:
        return default
    if isinstance(val, int):
        return val
    lvl = getattr(logging, str(val).strip().upper(), None)
    if isinstance(lvl, int):
        return lvl
    return default


def set_log_level(level: str | int = "WARNING") -> None:
    """Set the package logger level programmatically.

    Args:
        level: A standard logging level name or integer.
    """
    _PACKAGE_LOGGER.setLevel(_parse_log_level(level))


# Default level can be overridden by env.
set_log_level(os.getenv("HARMONIC_FIELD_LOGLEVEL", "WARNING"))


# -----------------------------------------------------------------------------
# Env helpers
# -----------------------------------------------------------------------------
def bool_env(varname: str, default: bool) -> bool:
    """Read an environment variable and interpret it as a boolean.

    True values: 'y', 'yes', 't', 'true', 'on', '1'.
    False values: 'n', 'no', 'f', 'false', 'off', '0'.

    Args:
        varname: The name of the environment variable.
        default: The default value if the variable is unset.

    Returns:
        A boolean value parsed from the environment.

    Raises:
        ValueError: If the variable holds an unrecognized value.
    """
    val = os.getenv(varname, str(default)).strip().lower()
    if val in ("y", "yes", "t", "true", "on", "1"):
        return True
    if val in ("n", "no", "f", "false", "off", "0"):
        return False
    raise ValueError(f"invalid truth value {val!r} for environment {varname!r}")


def int_env(varname: str, default: int) -> int:
    """Read an environment variable and interpret it as an integer."""
    return int(os.getenv(varname, str(default)))


def float_env(varname: str, default: float) -> float:
    """Read an environment variable and interpret it as a float."""
    return float(os.getenv(varname, str(default)))


def default_thread_number() -> int:
    """Return the default worker count for parallel loops.

    Reads ``HARMONIC_FIELD_THREADS`` and falls back to ``os.cpu_count()``.
    Values below one are clamped to one.
    """
    threads = int_env("HARMONIC_FIELD_THREADS", os.cpu_count() or 1)
    if threads < 1:
        _LOGGER.warning(
            "HARMONIC_FIELD_THREADS=%d is not positive; using 1 thread.", threads
        )
        threads = 1
    _LOGGER.debug("Default thread number: %d", threads)
    return threads


def default_log_alpha() -> int:
    """Return the default penalty exponent (``HARMONIC_FIELD_LOG_ALPHA``, 5)."""
    return int_env("HARMONIC_FIELD_LOG_ALPHA", 5)


def default_solver_threshold() -> int:
    """Return the Auto-mode size threshold (``HARMONIC_FIELD_SOLVER_THRESHOLD``).

    The default of 500000 is a tuned constant compared against
    ``2 * edge_number + vertex_number``.
    """
    return int_env("HARMONIC_FIELD_SOLVER_THRESHOLD", 500000)
