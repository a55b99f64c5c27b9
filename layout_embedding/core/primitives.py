"""
Small meshes for building and testing embeddings.

Target meshes are triangle meshes with positions (planar grids, icospheres).
Layout meshes are coarse polygon meshes (a single quad, a tetrahedron, a
cube) whose positions are only used to pick matching vertices.
"""

from typing import List, Optional, Sequence

import numpy as np
import trimesh
from scipy.spatial import cKDTree

from .mesh import HalfEdgeMesh


def grid_vertex(n: int, i: int, j: int) -> int:
    """Index of grid vertex (i, j) in grid_mesh(n)."""
    return j * (n + 1) + i


def grid_mesh(n: int, spacing: float = 1.0) -> HalfEdgeMesh:
    """
    Planar n x n grid of squares, each split into two triangles.

    Vertices lie in the z = 0 plane at ``(i * spacing, j * spacing)`` for
    ``0 <= i, j <= n``. Triangles are counter-clockwise seen from +z.
    """
    if n < 1:
        raise ValueError(f"Grid needs at least one cell, got n={n}")

    positions = np.array(
        [[i * spacing, j * spacing, 0.0] for j in range(n + 1) for i in range(n + 1)],
        dtype=float,
    )
    faces = []
    for j in range(n):
        for i in range(n):
            v00 = grid_vertex(n, i, j)
            v10 = grid_vertex(n, i + 1, j)
            v01 = grid_vertex(n, i, j + 1)
            v11 = grid_vertex(n, i + 1, j + 1)
            faces.append([v00, v10, v11])
            faces.append([v00, v11, v01])
    return HalfEdgeMesh(faces, positions=positions)


def icosphere_mesh(subdivisions: int = 2, radius: float = 1.0) -> HalfEdgeMesh:
    """Triangulated sphere from trimesh.creation.icosphere."""
    return HalfEdgeMesh.from_trimesh(
        trimesh.creation.icosphere(subdivisions=subdivisions, radius=radius)
    )


def quad_layout(positions: Optional[np.ndarray] = None) -> HalfEdgeMesh:
    """Single quad (0, 1, 2, 3) with four boundary edges."""
    return HalfEdgeMesh([[0, 1, 2, 3]], n_vertices=4, positions=positions)


def tetrahedron_layout() -> HalfEdgeMesh:
    """Closed tetrahedron, outward oriented, inscribed in the cube [-1, 1]^3."""
    positions = np.array([
        [1.0, 1.0, 1.0],
        [1.0, -1.0, -1.0],
        [-1.0, 1.0, -1.0],
        [-1.0, -1.0, 1.0],
    ])
    faces = [[0, 1, 2], [0, 3, 1], [0, 2, 3], [1, 3, 2]]
    return HalfEdgeMesh(faces, positions=positions)


def cube_layout() -> HalfEdgeMesh:
    """
    Closed cube of six quads, outward oriented.

    Vertex ``x + 2 y + 4 z`` (bits) sits at the corner with coordinates
    ``2 * bit - 1``.
    """
    positions = np.array(
        [[2.0 * (v & 1) - 1.0, 2.0 * ((v >> 1) & 1) - 1.0, 2.0 * ((v >> 2) & 1) - 1.0]
         for v in range(8)]
    )
    faces = [
        [0, 2, 3, 1],
        [4, 5, 7, 6],
        [0, 1, 5, 4],
        [2, 6, 7, 3],
        [0, 4, 6, 2],
        [1, 3, 7, 5],
    ]
    return HalfEdgeMesh(faces, positions=positions)


def nearest_vertices(target: HalfEdgeMesh, points: Sequence[Sequence[float]]) -> List[int]:
    """Index of the target vertex closest to each point."""
    tree = cKDTree(target.positions)
    _, idx = tree.query(np.asarray(points, dtype=float).reshape(-1, 3))
    return [int(i) for i in np.atleast_1d(idx)]


def project_to_sphere_vertices(target: HalfEdgeMesh, directions: Sequence[Sequence[float]]) -> List[int]:
    """Target vertex with the largest dot product with each direction."""
    pos = target.positions
    return [int(np.argmax(pos @ np.asarray(d, dtype=float))) for d in directions]


__all__ = [
    "grid_vertex",
    "grid_mesh",
    "icosphere_mesh",
    "quad_layout",
    "tetrahedron_layout",
    "cube_layout",
    "nearest_vertices",
    "project_to_sphere_vertices",
]
