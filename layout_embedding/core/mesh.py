"""
Half-edge mesh data structure.

Both the layout mesh (small polygon graph of landmarks) and the target mesh
(fine triangle surface) are represented by HalfEdgeMesh. Topology is fixed
at construction; per-element embedding state (blocking) lives on the
Embedding, not on the mesh.

Halfedge conventions
--------------------
Edge ``e`` owns halfedges ``2e`` (halfedge A) and ``2e + 1`` (halfedge B),
so ``opposite(h) == h ^ 1``. Faces are expected to be oriented consistently
(counter-clockwise seen from outside). Boundary halfedges have face ``-1``
and are linked into boundary loops, so rotation around boundary vertices
works the same way as around interior vertices.
"""

from typing import Dict, Iterator, List, Optional, Sequence, Tuple, TYPE_CHECKING
import logging

import numpy as np

from .virtual import VirtualVertex, edge_point, real_vertex

if TYPE_CHECKING:
    import networkx as nx
    import trimesh

logger = logging.getLogger(__name__)


class HalfEdgeMesh:
    """
    Polygon mesh with half-edge connectivity and optional vertex positions.

    Parameters
    ----------
    faces : sequence of sequences of int
        Vertex indices per face, counter-clockwise.
    n_vertices : int, optional
        Number of vertices. Defaults to ``len(positions)`` or the largest
        referenced index + 1.
    positions : array-like, optional
        Vertex positions with shape (n_vertices, 3).
    """

    def __init__(
        self,
        faces: Sequence[Sequence[int]],
        n_vertices: Optional[int] = None,
        positions: Optional[np.ndarray] = None,
    ):
        faces = [[int(v) for v in face] for face in faces]

        if positions is not None:
            positions = np.asarray(positions, dtype=float).reshape(-1, 3)
        if n_vertices is None:
            if positions is not None:
                n_vertices = len(positions)
            else:
                n_vertices = max((max(face) for face in faces), default=-1) + 1
        if positions is not None and len(positions) != n_vertices:
            raise ValueError(
                f"Got {len(positions)} positions for {n_vertices} vertices"
            )

        self._n_vertices = int(n_vertices)
        self._positions = positions
        self._faces = faces

        to: List[int] = []
        face_of: List[int] = []
        lookup: Dict[Tuple[int, int], int] = {}
        next_of: Dict[int, int] = {}

        for f_idx, face in enumerate(faces):
            if len(face) < 3:
                raise ValueError(f"Face {f_idx} has fewer than 3 vertices")
            if len(set(face)) != len(face):
                raise ValueError(f"Face {f_idx} repeats a vertex: {face}")

            face_hes = []
            for a, b in zip(face, face[1:] + face[:1]):
                if not (0 <= a < n_vertices and 0 <= b < n_vertices):
                    raise ValueError(f"Face {f_idx} references invalid vertex")
                h = lookup.get((a, b))
                if h is None:
                    h = len(to)
                    to.extend([b, a])
                    face_of.extend([-1, -1])
                    lookup[(a, b)] = h
                    lookup[(b, a)] = h + 1
                elif face_of[h] != -1:
                    raise ValueError(
                        f"Halfedge ({a}, {b}) used by two faces; the mesh is "
                        f"non-manifold or inconsistently oriented"
                    )
                face_of[h] = f_idx
                face_hes.append(h)

            for i, h in enumerate(face_hes):
                next_of[h] = face_hes[(i + 1) % len(face_hes)]

        # Link boundary halfedges into loops
        boundary_out: Dict[int, int] = {}
        for h, f in enumerate(face_of):
            if f == -1:
                v_from = to[h ^ 1]
                if v_from in boundary_out:
                    raise ValueError(f"Vertex {v_from} is non-manifold (multiple boundary fans)")
                boundary_out[v_from] = h
        for h, f in enumerate(face_of):
            if f == -1:
                next_of[h] = boundary_out[to[h]]

        n_halfedges = len(to)
        self._to = to
        self._face = face_of
        self._next = [next_of[h] for h in range(n_halfedges)]
        self._prev = [0] * n_halfedges
        for h, n in enumerate(self._next):
            self._prev[n] = h
        self._lookup = lookup

        self._face_he = [-1] * len(faces)
        for h, f in enumerate(face_of):
            if f >= 0 and self._face_he[f] == -1:
                self._face_he[f] = h

        # Prefer the boundary halfedge so that CCW iteration starts at the gap
        self._vertex_out = [-1] * self._n_vertices
        for h in range(n_halfedges):
            v_from = to[h ^ 1]
            if self._vertex_out[v_from] == -1:
                self._vertex_out[v_from] = h
        for v, h in boundary_out.items():
            self._vertex_out[v] = h

        self._ring_cache: Dict[int, Tuple[List[VirtualVertex], Dict[VirtualVertex, int]]] = {}

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_trimesh(cls, mesh: "trimesh.Trimesh") -> "HalfEdgeMesh":
        """Build a half-edge mesh from a trimesh.Trimesh (faces and vertices)."""
        return cls(
            faces=np.asarray(mesh.faces).tolist(),
            n_vertices=len(mesh.vertices),
            positions=np.asarray(mesh.vertices, dtype=float),
        )

    def to_trimesh(self) -> "trimesh.Trimesh":
        """Convert a triangle mesh with positions to trimesh.Trimesh."""
        import trimesh

        if self._positions is None:
            raise ValueError("Mesh has no positions")
        faces = [self.face_vertices(f) for f in range(self.n_faces)]
        if any(len(face) != 3 for face in faces):
            raise ValueError("Only triangle meshes can be converted to trimesh")
        return trimesh.Trimesh(
            vertices=self._positions.copy(),
            faces=np.asarray(faces, dtype=np.int64),
            process=False,
        )

    def to_networkx(self) -> "nx.MultiGraph":
        """
        Vertex graph as a networkx.MultiGraph.

        Edge keys are mesh edge indices. If positions are available each
        edge carries its Euclidean length as ``weight``.
        """
        import networkx as nx

        graph = nx.MultiGraph()
        graph.add_nodes_from(range(self.n_vertices))
        for e in range(self.n_edges):
            a, b = self.edge_vertices(e)
            weight = self.edge_length(e) if self._positions is not None else 1.0
            graph.add_edge(a, b, key=e, weight=weight)
        return graph

    # ------------------------------------------------------------------
    # Sizes and geometry
    # ------------------------------------------------------------------

    @property
    def n_vertices(self) -> int:
        return self._n_vertices

    @property
    def n_halfedges(self) -> int:
        return len(self._to)

    @property
    def n_edges(self) -> int:
        return len(self._to) // 2

    @property
    def n_faces(self) -> int:
        return len(self._face_he)

    @property
    def positions(self) -> Optional[np.ndarray]:
        return self._positions

    @property
    def faces(self) -> List[List[int]]:
        """Vertex indices per face as given at construction."""
        return [list(face) for face in self._faces]

    def with_positions(self, positions: Optional[np.ndarray]) -> "HalfEdgeMesh":
        """Mesh with the same topology and new positions."""
        return HalfEdgeMesh(self._faces, n_vertices=self.n_vertices, positions=positions)

    def position(self, v: int) -> np.ndarray:
        if self._positions is None:
            raise ValueError("Mesh has no positions")
        return self._positions[v]

    def edge_midpoint(self, e: int) -> np.ndarray:
        a, b = self.edge_vertices(e)
        return 0.5 * (self._positions[a] + self._positions[b])

    def edge_length(self, e: int) -> float:
        a, b = self.edge_vertices(e)
        return float(np.linalg.norm(self._positions[b] - self._positions[a]))

    def surface_area(self) -> float:
        """Total area of all faces (polygons fanned from their first vertex)."""
        area = 0.0
        for f in range(self.n_faces):
            verts = self.face_vertices(f)
            p0 = self._positions[verts[0]]
            for i in range(1, len(verts) - 1):
                d1 = self._positions[verts[i]] - p0
                d2 = self._positions[verts[i + 1]] - p0
                area += 0.5 * float(np.linalg.norm(np.cross(d1, d2)))
        return area

    # ------------------------------------------------------------------
    # Halfedge navigation
    # ------------------------------------------------------------------

    def halfedge_to(self, h: int) -> int:
        return self._to[h]

    def halfedge_from(self, h: int) -> int:
        return self._to[h ^ 1]

    def next(self, h: int) -> int:
        return self._next[h]

    def prev(self, h: int) -> int:
        return self._prev[h]

    @staticmethod
    def opposite(h: int) -> int:
        return h ^ 1

    @staticmethod
    def edge(h: int) -> int:
        return h >> 1

    @staticmethod
    def halfedge_a(e: int) -> int:
        return 2 * e

    @staticmethod
    def halfedge_b(e: int) -> int:
        return 2 * e + 1

    def face(self, h: int) -> int:
        return self._face[h]

    def is_boundary_halfedge(self, h: int) -> bool:
        return self._face[h] == -1

    def is_boundary_edge(self, e: int) -> bool:
        return self._face[2 * e] == -1 or self._face[2 * e + 1] == -1

    def rotated_ccw(self, h: int) -> int:
        """Next outgoing halfedge counter-clockwise around the from-vertex."""
        return self._prev[h] ^ 1

    def rotated_cw(self, h: int) -> int:
        """Next outgoing halfedge clockwise around the from-vertex."""
        return self._next[h ^ 1]

    def edge_vertices(self, e: int) -> Tuple[int, int]:
        """(from, to) of halfedge A."""
        return self._to[2 * e + 1], self._to[2 * e]

    def edge_faces(self, e: int) -> Tuple[int, int]:
        """Faces of halfedge A and halfedge B (-1 on the boundary)."""
        return self._face[2 * e], self._face[2 * e + 1]

    def halfedge_from_to(self, a: int, b: int) -> int:
        """Halfedge a -> b, or -1 if the vertices are not adjacent."""
        return self._lookup.get((a, b), -1)

    def any_outgoing_halfedge(self, v: int) -> int:
        return self._vertex_out[v]

    def outgoing_halfedges(self, v: int) -> Iterator[int]:
        """Outgoing halfedges of v in counter-clockwise order."""
        start = self._vertex_out[v]
        if start == -1:
            return
        h = start
        while True:
            yield h
            h = self.rotated_ccw(h)
            if h == start:
                break

    def vertex_edges(self, v: int) -> List[int]:
        return [h >> 1 for h in self.outgoing_halfedges(v)]

    def degree(self, v: int) -> int:
        return sum(1 for _ in self.outgoing_halfedges(v))

    def face_halfedges(self, f: int) -> List[int]:
        start = self._face_he[f]
        hes = [start]
        h = self._next[start]
        while h != start:
            hes.append(h)
            h = self._next[h]
        return hes

    def face_vertices(self, f: int) -> List[int]:
        return [self._to[self._prev[h]] for h in self.face_halfedges(f)]

    def opposite_vertex(self, h: int) -> int:
        """Vertex opposite to halfedge h in its (triangle) face, -1 on the boundary."""
        if self._face[h] == -1:
            return -1
        return self._to[self._next[h]]

    def face_with_edge_and_vertex(self, e: int, v: int) -> int:
        """Triangle containing edge e whose opposite vertex is v, or -1."""
        for h in (2 * e, 2 * e + 1):
            if self._face[h] != -1 and self._to[self._next[h]] == v:
                return self._face[h]
        return -1

    def common_face(self, e0: int, e1: int) -> int:
        """Face incident to both edges, or -1."""
        faces0 = {f for f in self.edge_faces(e0) if f != -1}
        for f in self.edge_faces(e1):
            if f != -1 and f in faces0:
                return f
        return -1

    # ------------------------------------------------------------------
    # Virtual vertex ring
    # ------------------------------------------------------------------

    def ring(self, v: int) -> List[VirtualVertex]:
        """
        Counter-clockwise cyclic list of virtual vertices adjacent to v.

        Neighbour vertices alternate with the edges opposite to v in the
        incident faces. Ports around v rotate through this list.
        """
        return self._ring(v)[0]

    def ring_index(self, v: int) -> Dict[VirtualVertex, int]:
        return self._ring(v)[1]

    def _ring(self, v: int) -> Tuple[List[VirtualVertex], Dict[VirtualVertex, int]]:
        cached = self._ring_cache.get(v)
        if cached is None:
            items: List[VirtualVertex] = []
            for h in self.outgoing_halfedges(v):
                items.append(real_vertex(self._to[h]))
                if self._face[h] != -1:
                    items.append(edge_point(self._next[h] >> 1))
            cached = (items, {item: i for i, item in enumerate(items)})
            self._ring_cache[v] = cached
        return cached

    def __repr__(self) -> str:
        return (
            f"HalfEdgeMesh(n_vertices={self.n_vertices}, n_edges={self.n_edges}, "
            f"n_faces={self.n_faces})"
        )


__all__ = ["HalfEdgeMesh"]
