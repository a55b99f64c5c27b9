"""
Virtual vertices, ports and paths on the target mesh.

A virtual vertex is either a real target vertex or a point strictly inside
a target edge. Edge points carry no positional refinement here; for length
computations they sit at the edge midpoint, and "on edge e" is the identity
used for crossing and conflict checks.

A virtual path is a list of at least two virtual vertices whose first and
last elements are real vertices. Consecutive elements are adjacent in the
target mesh (they share an edge or a face).
"""

from typing import List, NamedTuple, Tuple, TYPE_CHECKING

import numpy as np

from .errors import EmbeddingInvariantError, ensure

if TYPE_CHECKING:
    from .mesh import HalfEdgeMesh

VERTEX = "vertex"
EDGE = "edge"
FACE = "face"

# Mesh element key: (kind, index) with kind in {"vertex", "edge", "face"}
Element = Tuple[str, int]


class VirtualVertex(NamedTuple):
    """Real target vertex (kind "vertex") or point on a target edge (kind "edge")."""

    kind: str
    index: int

    @property
    def is_real(self) -> bool:
        return self.kind == VERTEX

    @property
    def element(self) -> Element:
        return (self.kind, self.index)

    def __repr__(self) -> str:
        return f"{'V' if self.kind == VERTEX else 'E'}{self.index}"


VirtualPath = List[VirtualVertex]


def real_vertex(v: int) -> VirtualVertex:
    return VirtualVertex(VERTEX, int(v))


def edge_point(e: int) -> VirtualVertex:
    return VirtualVertex(EDGE, int(e))


def is_real_vertex(vv: VirtualVertex) -> bool:
    return vv.kind == VERTEX


class VirtualPort(NamedTuple):
    """
    Direction in which a path leaves (or enters) a real vertex.

    ``origin`` is the real vertex, ``to`` the adjacent virtual vertex the
    path steps to. Ports rotate through the ring of ``origin``.
    """

    origin: int
    to: VirtualVertex

    def rotated_ccw(self, mesh: "HalfEdgeMesh") -> "VirtualPort":
        ring = mesh.ring(self.origin)
        return VirtualPort(self.origin, ring[(self._ring_position(mesh) + 1) % len(ring)])

    def rotated_cw(self, mesh: "HalfEdgeMesh") -> "VirtualPort":
        ring = mesh.ring(self.origin)
        return VirtualPort(self.origin, ring[(self._ring_position(mesh) - 1) % len(ring)])

    def _ring_position(self, mesh: "HalfEdgeMesh") -> int:
        i = mesh.ring_index(self.origin).get(self.to)
        if i is None:
            raise EmbeddingInvariantError(
                f"{self.to!r} is not adjacent to target vertex {self.origin}"
            )
        return i


def path_ports(path: VirtualPath) -> Tuple[VirtualPort, VirtualPort]:
    """Ports through which path leaves its first and enters its last vertex."""
    ensure(len(path) >= 2, "Virtual path needs at least two vertices")
    ensure(is_real_vertex(path[0]) and is_real_vertex(path[-1]),
           "Virtual path must start and end at real vertices")
    return (
        VirtualPort(path[0].index, path[1]),
        VirtualPort(path[-1].index, path[-2]),
    )


def segment_element(mesh: "HalfEdgeMesh", a: VirtualVertex, b: VirtualVertex) -> Element:
    """
    Mesh element a path segment runs through.

    Vertex-to-vertex segments run along an edge; every other segment
    crosses the interior of exactly one triangle.
    """
    if a.is_real and b.is_real:
        h = mesh.halfedge_from_to(a.index, b.index)
        ensure(h != -1, f"Segment {a!r}-{b!r} is not a mesh edge")
        return (EDGE, h >> 1)
    if a.is_real:
        f = mesh.face_with_edge_and_vertex(b.index, a.index)
    elif b.is_real:
        f = mesh.face_with_edge_and_vertex(a.index, b.index)
    else:
        f = mesh.common_face(a.index, b.index)
    ensure(f != -1, f"Segment {a!r}-{b!r} does not lie in a face")
    return (FACE, f)


def path_elements(mesh: "HalfEdgeMesh", path: VirtualPath) -> List[Element]:
    """Interior virtual vertices followed by all segment elements of path."""
    elements = [vv.element for vv in path[1:-1]]
    elements.extend(segment_element(mesh, a, b) for a, b in zip(path, path[1:]))
    return elements


def virtual_position(mesh: "HalfEdgeMesh", vv: VirtualVertex) -> np.ndarray:
    if vv.is_real:
        return mesh.position(vv.index)
    return mesh.edge_midpoint(vv.index)


def path_positions(mesh: "HalfEdgeMesh", path: VirtualPath) -> np.ndarray:
    """Polyline of a virtual path, shape (len(path), 3)."""
    if not path:
        return np.zeros((0, 3))
    return np.array([virtual_position(mesh, vv) for vv in path])


def path_length(mesh: "HalfEdgeMesh", path: VirtualPath) -> float:
    """Sum of Euclidean segment lengths; infinite for an empty path."""
    if not path:
        return float("inf")
    pts = path_positions(mesh, path)
    return float(np.linalg.norm(np.diff(pts, axis=0), axis=1).sum())


__all__ = [
    "VERTEX",
    "EDGE",
    "FACE",
    "Element",
    "VirtualVertex",
    "VirtualPath",
    "VirtualPort",
    "real_vertex",
    "edge_point",
    "is_real_vertex",
    "path_ports",
    "segment_element",
    "path_elements",
    "virtual_position",
    "path_positions",
    "path_length",
]
