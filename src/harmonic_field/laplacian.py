"""Sparse Laplacian operators over a Mesh.

Two weightings are available:
  - combinatorial: every edge has weight one,
  - cotangent: the discrete Laplace-Beltrami weight of each edge.

Both operators are symmetric, carry non-negative off-diagonal weights on
well-shaped meshes and a diagonal equal to the negative row sum, so that every
row sums to zero.
"""
from __future__ import annotations

import logging
from typing import Any
from numpy.typing import NDArray

import numpy as np
import scipy.sparse as sp

from .mesh import Mesh

_LOGGER = logging.getLogger(__name__)

# Triangles whose doubled area is below this are treated as degenerate.
_DEGENERATE_AREA = 1e-15


def _assemble(
    mesh: Mesh, rows: NDArray[Any], cols: NDArray[Any], weights: NDArray[Any]
) -> sp.csr_matrix:
    """Build ``W - diag(W 1)`` from one-sided edge weights (duplicates summed)."""
    n_nodes = mesh.vertex_number
    W = sp.coo_matrix(
        (
            np.concatenate([weights, weights]),
            (np.concatenate([rows, cols]), np.concatenate([cols, rows])),
        ),
        shape=(n_nodes, n_nodes),
        dtype=float,
    ).tocsr()
    degree = np.asarray(W.sum(axis=1)).ravel()
    lap = (W - sp.diags(degree, format="csr")).tocsr()
    lap.sum_duplicates()
    return lap


def compute_laplacian(mesh: Mesh) -> sp.csr_matrix:
    """Assemble the combinatorial (graph) Laplacian of the mesh.

    Args:
        mesh (Mesh): Topology provider.

    Returns:
        sp.csr_matrix: (n_nodes, n_nodes) operator with ``1`` on every edge
        and ``-degree`` on the diagonal.
    """
    edges = mesh.edges
    lap = _assemble(
        mesh, edges[:, 0], edges[:, 1], np.ones(edges.shape[0], dtype=float)
    )

    _LOGGER.debug(
        "compute_laplacian: nodes=%d, edges=%d, nnz=%d",
        mesh.vertex_number,
        mesh.edge_number,
        lap.nnz,
    )
    return lap


def cotangent_weights(mesh: Mesh) -> NDArray[Any]:
    """Compute the cotangent weight of every edge.

    The weight of an edge is half the sum, over every triangle containing it,
    of the cotangent of the angle opposite the edge. Boundary edges get a
    single cotangent; in tetrahedral meshes all incident faces contribute.

    Args:
        mesh (Mesh): Topology provider with vertex coordinates.

    Returns:
        NDArray[Any]: Weights indexed by edge id, shape (n_edges,).
    """
    tris = mesh.triangles
    weights = np.zeros(mesh.edge_number, dtype=float)
    if tris.shape[0] == 0:
        return weights

    P = mesh.verts
    degenerate = np.zeros(tris.shape[0], dtype=bool)

    for corner in range(3):
        apex = P[tris[:, corner]]
        u = P[tris[:, (corner + 1) % 3]] - apex
        v = P[tris[:, (corner + 2) % 3]] - apex

        dot = np.einsum("ij,ij->i", u, v)
        cross = np.linalg.norm(np.cross(u, v), axis=1)
        bad = cross < _DEGENERATE_AREA
        degenerate |= bad

        cot = np.divide(dot, cross, out=np.zeros_like(dot), where=~bad)
        np.add.at(weights, mesh.triangle_edges[:, corner], 0.5 * cot)

    if np.any(degenerate):
        _LOGGER.warning(
            "cotangent_weights: %d degenerate triangle(s) with ~zero area; "
            "their cotangents are set to 0.",
            int(np.count_nonzero(degenerate)),
        )
    if np.any(weights < 0.0):
        _LOGGER.debug(
            "cotangent_weights: %d edge(s) with negative weight (obtuse angles).",
            int(np.count_nonzero(weights < 0.0)),
        )

    return weights


def compute_laplacian_with_cotan_weights(mesh: Mesh) -> sp.csr_matrix:
    """Assemble the cotangent-weighted Laplacian of the mesh.

    Args:
        mesh (Mesh): Topology provider with vertex coordinates.

    Returns:
        sp.csr_matrix: (n_nodes, n_nodes) operator with the cotangent weight
        on every edge and the negative sum of incident weights on the diagonal.
    """
    edges = mesh.edges
    lap = _assemble(mesh, edges[:, 0], edges[:, 1], cotangent_weights(mesh))

    _LOGGER.debug(
        "compute_laplacian_with_cotan_weights: nodes=%d, edges=%d, nnz=%d",
        mesh.vertex_number,
        mesh.edge_number,
        lap.nnz,
    )
    return lap


def build_laplacian(mesh: Mesh, use_cotan_weights: bool = True) -> sp.csr_matrix:
    """Return the Laplacian of `mesh` in the requested weighting mode."""
    if use_cotan_weights:
        return compute_laplacian_with_cotan_weights(mesh)
    return compute_laplacian(mesh)
