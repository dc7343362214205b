"""End-to-end tests for HarmonicField.execute."""

from __future__ import annotations

import meshio
import numpy as np
import pytest

import harmonic_field.harmonic_field as hf_module
from harmonic_field import HarmonicField, Parameters, SolverError
from harmonic_field.solver import SolverStatus, SolverType


def test_single_triangle_scenario(simple_triangle_mesh):
    """
    One triangle with vertex 0 constrained to 2.0.

    Vertex 0 must match the constraint and, by symmetry, vertices 1 and 2
    must receive the same value between 0 and 2.
    """
    result = HarmonicField().execute(simple_triangle_mesh, [0], [2.0])
    out = result.field

    assert result.ok
    assert result.returncode == 0
    assert out[0] == pytest.approx(2.0, abs=1e-6)
    assert out[1] == pytest.approx(out[2], abs=1e-9)
    assert -1e-9 <= out[1] <= 2.0 + 1e-9


@pytest.mark.parametrize("use_cotan_weights", [True, False])
@pytest.mark.parametrize("solving_method", ["direct", "iterative"])
def test_all_vertices_constrained(grid_mesh, use_cotan_weights, solving_method):
    n = grid_mesh.vertex_number
    values = np.random.default_rng(1).uniform(-3.0, 3.0, size=n)

    hf = HarmonicField(
        log_alpha=8,
        use_cotan_weights=use_cotan_weights,
        solving_method=solving_method,
        tolerance=1e-12,
    )
    result = hf.execute(grid_mesh, np.arange(n), values)

    assert result.ok
    assert np.all(np.abs(result.field - values) < 1e-3)


def test_zero_constraints_degrade_gracefully(grid_mesh):
    result = HarmonicField().execute(grid_mesh, [], [])

    assert result.status in (SolverStatus.SUCCESS, SolverStatus.NUMERICAL_ISSUE)
    assert np.all(np.isfinite(result.field))
    np.testing.assert_allclose(result.field, 0.0)


def test_execute_is_idempotent(jittered_grid_mesh):
    n = jittered_grid_mesh.vertex_number
    hf = HarmonicField(solving_method="direct")

    first = hf.execute(jittered_grid_mesh, [0, n - 1], [0.0, 1.0]).field
    second = hf.execute(jittered_grid_mesh, [0, n - 1], [0.0, 1.0]).field

    np.testing.assert_array_equal(first, second)


@pytest.mark.parametrize("use_cotan_weights", [True, False])
def test_flat_grid_corner_to_corner(grid_factory, use_cotan_weights):
    """
    Opposite corners held at 0 and 1 on a regular grid:
      - every value stays within the constrained range (no interior extrema),
      - the field increases along the diagonal,
      - f(v) + f(reflected v) = 1 and f is symmetric about the diagonal.
    """
    k = 7
    mesh = grid_factory(k)
    n = mesh.vertex_number

    result = HarmonicField(use_cotan_weights=use_cotan_weights).execute(
        mesh, [0, n - 1], [0.0, 1.0]
    )
    out = result.field
    grid = out.reshape(k, k)

    assert result.ok
    assert out[0] == pytest.approx(0.0, abs=1e-3)
    assert out[-1] == pytest.approx(1.0, abs=1e-3)
    assert np.all(out >= -1e-9)
    assert np.all(out <= 1.0 + 1e-9)

    diagonal = np.diag(grid)
    assert np.all(np.diff(diagonal) > -1e-9)

    np.testing.assert_allclose(out + out[::-1], 1.0, atol=1e-8)
    np.testing.assert_allclose(grid, grid.T, atol=1e-8)


def test_weighting_modes_differ(jittered_grid_mesh):
    n = jittered_grid_mesh.vertex_number
    cot = HarmonicField(use_cotan_weights=True).execute(
        jittered_grid_mesh, [0, n - 1], [0.0, 1.0]
    )
    comb = HarmonicField(use_cotan_weights=False).execute(
        jittered_grid_mesh, [0, n - 1], [0.0, 1.0]
    )

    assert not np.allclose(cot.field, comb.field)


def test_direct_and_iterative_agree(jittered_grid_mesh):
    n = jittered_grid_mesh.vertex_number
    direct = HarmonicField(solving_method="direct").execute(
        jittered_grid_mesh, [0, n - 1], [0.0, 1.0]
    )
    iterative = HarmonicField(solving_method="iterative", tolerance=1e-12).execute(
        jittered_grid_mesh, [0, n - 1], [0.0, 1.0]
    )

    assert direct.solver_type is SolverType.DIRECT
    assert iterative.solver_type is SolverType.ITERATIVE
    assert iterative.iterations > 0
    np.testing.assert_allclose(direct.field, iterative.field, atol=1e-4)


def test_no_convergence_is_reported(grid_mesh):
    n = grid_mesh.vertex_number
    hf = HarmonicField(
        solving_method="iterative",
        max_iterations=1,
        tolerance=1e-12,
        fallback_on_failure=False,
    )
    result = hf.execute(grid_mesh, [0, n - 1], [0.0, 1.0])

    assert result.status is SolverStatus.NO_CONVERGENCE
    assert not result.ok
    assert not result.fallback_used
    assert np.all(np.isfinite(result.field))

    with pytest.raises(SolverError) as exc_info:
        result.raise_for_status()
    assert exc_info.value.status is SolverStatus.NO_CONVERGENCE


def test_no_convergence_falls_back_to_direct(grid_mesh, caplog):
    n = grid_mesh.vertex_number
    hf = HarmonicField(solving_method="iterative", max_iterations=1, tolerance=1e-12)
    result = hf.execute(grid_mesh, [0, n - 1], [0.0, 1.0])

    assert result.ok
    assert result.fallback_used
    assert result.solver_type is SolverType.DIRECT
    assert "retrying" in caplog.text
    result.raise_for_status()


def test_direct_singular_factor_keeps_constrained_component(disconnected_mesh):
    hf = HarmonicField(
        solving_method="direct", use_cotan_weights=False, fallback_on_failure=False
    )
    result = hf.execute(disconnected_mesh, [0], [2.0])

    assert result.status is SolverStatus.NUMERICAL_ISSUE
    assert result.solver_type is SolverType.DIRECT
    np.testing.assert_allclose(result.field, [2.0, 2.0, 2.0, 0.0, 0.0, 0.0], atol=1e-5)


def test_overflowing_log_alpha_raises_value_error():
    with pytest.raises(ValueError):
        HarmonicField(log_alpha=400)
    with pytest.raises(ValueError):
        HarmonicField(Parameters(), log_alpha=400)


def test_output_buffer_is_filled_in_place(simple_triangle_mesh):
    out = np.full(3, -7.0)
    result = HarmonicField().execute(simple_triangle_mesh, [1], [4.0], output=out)

    assert result.field is out
    np.testing.assert_allclose(out, 4.0, atol=1e-6)


def test_wrong_output_buffer_raises(simple_triangle_mesh):
    with pytest.raises(ValueError):
        HarmonicField().execute(simple_triangle_mesh, [0], [1.0], output=np.zeros(5))


def test_float32_output(grid_mesh):
    n = grid_mesh.vertex_number
    result = HarmonicField(dtype="float32").execute(grid_mesh, [0, n - 1], [0.0, 1.0])

    assert result.field.dtype == np.float32
    assert result.ok


def test_tetra_mesh_field(cube_tet_mesh):
    result = HarmonicField(use_cotan_weights=False).execute(
        cube_tet_mesh, [0, 7], [0.0, 1.0]
    )
    out = result.field

    assert result.ok
    assert out[0] == pytest.approx(0.0, abs=1e-3)
    assert out[7] == pytest.approx(1.0, abs=1e-3)
    assert np.all((out >= -1e-9) & (out <= 1.0 + 1e-9))


def test_solver_unavailable_leaves_output_untouched(
    monkeypatch, simple_triangle_mesh, caplog
):
    monkeypatch.setattr(hf_module, "solver_available", lambda: False)
    out = np.full(3, 5.0)

    result = HarmonicField().execute(simple_triangle_mesh, [0], [1.0], output=out)

    assert result.skipped
    assert result.status is None
    assert result.returncode == 0
    np.testing.assert_array_equal(out, 5.0)
    assert "unavailable" in caplog.text
    with pytest.raises(SolverError) as exc_info:
        result.raise_for_status()
    assert exc_info.value.status is None


def test_vtu_export(tmp_path, grid_mesh):
    n = grid_mesh.vertex_number
    path = tmp_path / "field.vtu"

    result = HarmonicField().execute(
        grid_mesh, [0, n - 1], [0.0, 1.0], filename=str(path)
    )

    m = meshio.read(str(path))
    np.testing.assert_allclose(m.point_data["OutputHarmonicField"], result.field)


def test_parameters_and_overrides():
    base = Parameters(log_alpha=6, thread_number=2)
    hf = HarmonicField(base, solving_method="iterative")

    assert hf.parameters.log_alpha == 6
    assert hf.parameters.thread_number == 2
    assert hf.parameters.solving_method.value == "iterative"
    assert base.solving_method.value == "auto"
