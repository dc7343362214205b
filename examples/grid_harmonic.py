"""Harmonic field between two corners of a triangulated square.

Run with ``HARMONIC_FIELD_LOGLEVEL=INFO`` to see the solver summary.
"""
import numpy as np

from harmonic_field import HarmonicField, Mesh

n = 21
xs = np.linspace(0.0, 1.0, n)
X, Y = np.meshgrid(xs, xs)
verts = np.column_stack([X.ravel(), Y.ravel()])

tris = []
for j in range(n - 1):
    for i in range(n - 1):
        a = j * n + i
        tris.append([a, a + 1, a + n + 1])
        tris.append([a, a + n + 1, a + n])

mesh = Mesh(verts=verts, connectivity=np.array(tris))

# Values must follow the ascending order of the constrained vertex ids.
result = HarmonicField(solving_method="auto").execute(
    mesh, sources=[0, n * n - 1], constraints=[0.0, 1.0], filename="grid_harmonic.vtu"
)
result.raise_for_status()
print(f"{result.solver_type.value} solve in {result.elapsed:.3f}s")
