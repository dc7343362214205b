"""Module defining the Mesh class, the topology provider for harmonic fields.

This module provides:
  - Construction from vertex coordinates and triangle or tetrahedron connectivity.
  - Dense edge numbering and edge/triangle incidence.
  - Boundary edge detection.
  - VTU export of per-vertex fields through meshio.

A Mesh is read-only once built and may be shared by concurrent solves.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple
from numpy.typing import NDArray

import numpy as np
import meshio

_LOGGER = logging.getLogger(__name__)

# Local (corner) indices of the three edges of a triangle.
_TRIANGLE_EDGES = ((0, 1), (1, 2), (2, 0))
# Local indices of the four faces of a tetrahedron.
_TETRA_FACES = ((0, 1, 2), (0, 1, 3), (0, 2, 3), (1, 2, 3))


class Mesh:
    """Hold the topology and geometry of a triangle or tetrahedron mesh.

    Args:
        verts (NDArray[Any]): Vertex coordinates, shape (n_nodes, 2) or (n_nodes, 3).
            Planar coordinates are padded with a zero z component.
        connectivity (NDArray[Any]): Cell indices, shape (n_cells, 3) for
            triangles or (n_cells, 4) for tetrahedra.

    Attributes:
        verts (NDArray[Any]): Vertex array, shape (n_nodes, 3).
        connectivity (NDArray[Any]): Cell indices as given.
        cell_type (str): ``"triangle"`` or ``"tetra"``.
        triangles (NDArray[Any]): All triangles, shape (n_triangles, 3). For
            volume meshes these are the unique faces of the tetrahedra.
        edges (NDArray[Any]): Undirected edges as sorted pairs, shape (n_edges, 2).
        triangle_edges (NDArray[Any]): Edge ids of each triangle, shape
            (n_triangles, 3); column k is the edge opposite corner k.
        boundary_edges (Optional[List[Tuple[int, int]]]): Edges contained in a
            single triangle, filled by `detect_boundary`.
    """

    verts: NDArray[Any]
    connectivity: NDArray[Any]
    cell_type: str
    triangles: NDArray[Any]
    edges: NDArray[Any]
    triangle_edges: NDArray[Any]
    boundary_edges: Optional[List[Tuple[int, int]]]

    def __init__(self, verts: NDArray[Any], connectivity: NDArray[Any]) -> None:
        """Build the edge and triangle tables from raw arrays.

        Raises:
            ValueError: If the arrays have unexpected shapes or the connectivity
                references vertices outside ``[0, n_nodes)``.
        """
        verts_np = np.asarray(verts, dtype=float)
        conn = np.asarray(connectivity, dtype=int)

        if verts_np.ndim != 2 or verts_np.shape[1] not in (2, 3):
            _LOGGER.error("Mesh __init__: invalid verts shape %s", verts_np.shape)
            raise ValueError(f"verts must be (n_nodes, 2|3); got {verts_np.shape}")
        if verts_np.shape[1] == 2:
            verts_np = np.hstack([verts_np, np.zeros((verts_np.shape[0], 1))])

        if conn.ndim != 2 or conn.shape[1] not in (3, 4):
            _LOGGER.error("Mesh __init__: invalid connectivity shape %s", conn.shape)
            raise ValueError(
                f"connectivity must be (n_cells, 3|4); got {conn.shape}"
            )

        n_nodes = int(verts_np.shape[0])
        if conn.size and ((conn < 0).any() or (conn >= n_nodes).any()):
            _LOGGER.error("Mesh __init__: connectivity has out-of-range indices.")
            raise ValueError("Connectivity contains out-of-range vertex indices.")

        self.verts = verts_np
        self.connectivity = conn
        self.cell_type = "triangle" if conn.shape[1] == 3 else "tetra"

        if self.cell_type == "tetra":
            faces = conn[:, _TETRA_FACES].reshape(-1, 3)
            faces = np.sort(faces, axis=1)
            self.triangles = (
                np.unique(faces, axis=0) if faces.size else faces.reshape(0, 3)
            )
        else:
            self.triangles = conn

        self._build_edges()
        self.boundary_edges = None

        _LOGGER.info(
            "Mesh initialized with %d vertices, %d edges and %d %s cell(s)",
            self.vertex_number,
            self.edge_number,
            conn.shape[0],
            self.cell_type,
        )

    def _build_edges(self) -> None:
        """Number the undirected edges and map each triangle to its edges."""
        tris = self.triangles
        n_tris = int(tris.shape[0])
        if n_tris == 0:
            self.edges = np.zeros((0, 2), dtype=int)
            self.triangle_edges = np.zeros((0, 3), dtype=int)
            return

        # Edge k of a triangle is opposite corner (k + 2) % 3; reorder so that
        # column k of triangle_edges is the edge opposite corner k.
        pairs = np.stack([tris[:, list(e)] for e in _TRIANGLE_EDGES], axis=1)
        pairs = np.sort(pairs.reshape(-1, 2), axis=1)
        edges, inverse = np.unique(pairs, axis=0, return_inverse=True)
        per_tri = inverse.reshape(n_tris, 3)

        self.edges = edges
        self.triangle_edges = per_tri[:, [1, 2, 0]]

        _LOGGER.debug(
            "_build_edges: triangles=%d -> unique undirected edges=%d",
            n_tris,
            edges.shape[0],
        )

    @property
    def vertex_number(self) -> int:
        """Return the number of vertices."""
        return int(self.verts.shape[0])

    @property
    def edge_number(self) -> int:
        """Return the number of undirected edges."""
        return int(self.edges.shape[0])

    @property
    def triangle_number(self) -> int:
        """Return the number of triangles (faces for volume meshes)."""
        return int(self.triangles.shape[0])

    def edge_triangles(self) -> List[List[int]]:
        """Return, for every edge id, the ids of the triangles containing it."""
        incident: List[List[int]] = [[] for _ in range(self.edge_number)]
        for tri_idx, tri_edges in enumerate(self.triangle_edges.tolist()):
            for edge_idx in tri_edges:
                incident[edge_idx].append(tri_idx)
        return incident

    def vertex_degrees(self) -> NDArray[Any]:
        """Return the number of edges incident to each vertex."""
        return np.bincount(self.edges.ravel(), minlength=self.vertex_number)

    def detect_boundary(self) -> None:
        """Identify boundary edges (edges in exactly one triangle)."""
        counts = np.bincount(
            self.triangle_edges.ravel(), minlength=self.edge_number
        )
        boundary = self.edges[counts == 1]
        nonmanifold = int(np.count_nonzero(counts > 2))

        self.boundary_edges = [(int(a), int(b)) for a, b in boundary]

        if nonmanifold and self.cell_type == "triangle":
            _LOGGER.warning(
                "detect_boundary: %d non-manifold edge(s) detected (used by >2 tris).",
                nonmanifold,
            )

        _LOGGER.debug(
            "detect_boundary: tris=%d -> boundary_edges=%d (unique undirected edges=%d).",
            self.triangle_number,
            len(self.boundary_edges),
            self.edge_number,
        )

    def boundary_vertices(self) -> NDArray[Any]:
        """Return the sorted ids of vertices lying on a boundary edge."""
        if self.boundary_edges is None:
            self.detect_boundary()
        assert self.boundary_edges is not None
        if not self.boundary_edges:
            return np.zeros(0, dtype=int)
        return np.unique(np.asarray(self.boundary_edges, dtype=int))

    def writeVTU(
        self,
        filename: str,
        point_data: Optional[Dict[str, NDArray[Any]]] = None,
    ) -> None:
        """Export this mesh and optional per-vertex fields in VTU format.

        Args:
            filename: Output path (e.g., ``"field.vtu"``).
            point_data: Optional dict of per-node arrays (shape (n_nodes,) or (n_nodes, k)).

        Raises:
            ValueError: If provided data have incompatible lengths.
            Exception: If the underlying mesh writer fails.
        """
        try:
            m = meshio.Mesh(
                points=self.verts, cells=[(self.cell_type, self.connectivity)]
            )

            if point_data:
                for name, arr in point_data.items():
                    arr_np = np.asarray(arr)
                    if arr_np.shape[0] != self.vertex_number:
                        msg = (
                            f"point_data['{name}'] length {arr_np.shape[0]} "
                            f"!= n_nodes {self.vertex_number}"
                        )
                        _LOGGER.error("writeVTU: %s", msg)
                        raise ValueError(msg)
                    m.point_data[name] = arr_np

            m.write(filename)
            _LOGGER.info(
                "VTU written to '%s' (nodes=%d, cells=%d, point_data=%d)",
                filename,
                self.vertex_number,
                self.connectivity.shape[0],
                0 if not point_data else len(point_data),
            )

        except Exception:
            _LOGGER.exception("writeVTU failed for '%s'.", filename)
            raise

    def __repr__(self) -> str:
        """Return a short description of the mesh size."""
        return (
            f"Mesh(vertices={self.vertex_number}, edges={self.edge_number}, "
            f"cells={self.connectivity.shape[0]}, cell_type={self.cell_type!r})"
        )
