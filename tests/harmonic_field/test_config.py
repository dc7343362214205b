from __future__ import annotations

import logging

import pytest

from harmonic_field.config import (
    bool_env,
    default_log_alpha,
    default_solver_threshold,
    default_thread_number,
    float_env,
    int_env,
    set_log_level,
)


def test_bool_int_float_env_roundtrip(monkeypatch):
    monkeypatch.setenv("TBOOL", "true")
    assert bool_env("TBOOL", False) is True
    monkeypatch.setenv("TBOOL", "0")
    assert bool_env("TBOOL", True) is False
    monkeypatch.setenv("TINT", "42")
    assert int_env("TINT", 0) == 42
    monkeypatch.setenv("TFLOAT", "1e-3")
    assert float_env("TFLOAT", 0.0) == pytest.approx(1e-3)


def test_bool_env_default_and_invalid(monkeypatch):
    monkeypatch.delenv("TBOOL_UNSET", raising=False)
    assert bool_env("TBOOL_UNSET", True) is True
    monkeypatch.setenv("TBOOL", "maybe")
    with pytest.raises(ValueError):
        bool_env("TBOOL", False)


def test_default_thread_number(monkeypatch):
    monkeypatch.setenv("HARMONIC_FIELD_THREADS", "3")
    assert default_thread_number() == 3
    monkeypatch.setenv("HARMONIC_FIELD_THREADS", "0")
    assert default_thread_number() == 1
    monkeypatch.delenv("HARMONIC_FIELD_THREADS")
    assert default_thread_number() >= 1


def test_defaults_from_env(monkeypatch):
    monkeypatch.delenv("HARMONIC_FIELD_LOG_ALPHA", raising=False)
    monkeypatch.delenv("HARMONIC_FIELD_SOLVER_THRESHOLD", raising=False)
    assert default_log_alpha() == 5
    assert default_solver_threshold() == 500000

    monkeypatch.setenv("HARMONIC_FIELD_LOG_ALPHA", "7")
    monkeypatch.setenv("HARMONIC_FIELD_SOLVER_THRESHOLD", "1000")
    assert default_log_alpha() == 7
    assert default_solver_threshold() == 1000


def test_set_log_level():
    pkg = logging.getLogger("harmonic_field")
    previous = pkg.level
    try:
        set_log_level("DEBUG")
        assert pkg.level == logging.DEBUG
        set_log_level(logging.ERROR)
        assert pkg.level == logging.ERROR
        set_log_level("not-a-level")
        assert pkg.level == logging.WARNING
    finally:
        pkg.setLevel(previous)
