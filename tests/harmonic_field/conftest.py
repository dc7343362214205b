from __future__ import annotations

import itertools
from typing import Callable

import numpy as np
import pytest

from harmonic_field.mesh import Mesh


def make_grid(n: int, jitter: float = 0.0, seed: int = 0) -> Mesh:
    """Unit square split into (n-1)^2 cells, each cut along its rising diagonal.

    Vertex (i, j) has id ``j * n + i``; vertex 0 is (0, 0) and the last vertex
    is (1, 1). Interior vertices are displaced by up to `jitter` cell widths.
    """
    xs = np.linspace(0.0, 1.0, n)
    X, Y = np.meshgrid(xs, xs, indexing="xy")
    verts = np.column_stack([X.ravel(), Y.ravel(), np.zeros(n * n)])

    if jitter:
        h = 1.0 / (n - 1)
        rng = np.random.default_rng(seed)
        interior = [j * n + i for j in range(1, n - 1) for i in range(1, n - 1)]
        verts[interior, :2] += rng.uniform(-jitter * h, jitter * h, (len(interior), 2))

    tris = []
    for j in range(n - 1):
        for i in range(n - 1):
            a = j * n + i
            b = a + 1
            c = a + n + 1
            d = a + n
            tris.append([a, b, c])
            tris.append([a, c, d])
    return Mesh(verts=verts, connectivity=np.array(tris))


def make_cube_tets() -> Mesh:
    """Unit cube split into six tetrahedra around the (0,0,0)-(1,1,1) diagonal."""
    verts = np.array(
        [[x, y, z] for z in (0.0, 1.0) for y in (0.0, 1.0) for x in (0.0, 1.0)]
    )
    steps = (1, 2, 4)
    tets = []
    for perm in itertools.permutations(steps):
        path = [0]
        for s in perm:
            path.append(path[-1] + s)
        tets.append(path)
    return Mesh(verts=verts, connectivity=np.array(tets))


@pytest.fixture
def simple_triangle_mesh() -> Mesh:
    """
    Provides a Mesh instance with a single triangle:
        v0 = [0, 0, 0]
        v1 = [1, 0, 0]
        v2 = [0, 1, 0]
    """
    verts = np.array(
        [
            [0.0, 0.0, 0.0],  # v0
            [1.0, 0.0, 0.0],  # v1
            [0.0, 1.0, 0.0],  # v2
        ]
    )
    connectivity = np.array([[0, 1, 2]])  # One triangle
    return Mesh(verts=verts, connectivity=connectivity)


@pytest.fixture
def equilateral_mesh() -> Mesh:
    """A single equilateral triangle with unit sides."""
    verts = np.array([[0.0, 0.0], [1.0, 0.0], [0.5, np.sqrt(3.0) / 2.0]])
    return Mesh(verts=verts, connectivity=np.array([[0, 1, 2]]))


@pytest.fixture
def disconnected_mesh() -> Mesh:
    """Two separate triangles: vertices 0-2 and 3-5."""
    verts = np.array(
        [
            [0.0, 0.0],
            [1.0, 0.0],
            [0.0, 1.0],
            [3.0, 0.0],
            [4.0, 0.0],
            [3.0, 1.0],
        ]
    )
    return Mesh(verts=verts, connectivity=np.array([[0, 1, 2], [3, 4, 5]]))


@pytest.fixture
def grid_factory() -> Callable[..., Mesh]:
    return make_grid


@pytest.fixture
def grid_mesh() -> Mesh:
    """A regular 6x6 vertex grid on the unit square."""
    return make_grid(6)


@pytest.fixture
def jittered_grid_mesh() -> Mesh:
    """A 7x7 vertex grid with randomly displaced interior vertices."""
    return make_grid(7, jitter=0.2, seed=3)


@pytest.fixture
def cube_tet_mesh() -> Mesh:
    return make_cube_tets()
