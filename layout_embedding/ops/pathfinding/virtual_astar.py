"""
A* shortest virtual paths on a partially embedded target mesh.

The search graph has a node for every target vertex and for every point on
a non-blocked interior edge. A node steps to the virtual vertices that share
a triangle (or, vertex to vertex, an edge) with it. Step cost is the
Euclidean distance between positions, with edge points at edge midpoints,
so the straight-line distance to the goal is an admissible and consistent
heuristic.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, TYPE_CHECKING
import heapq
import logging

import numpy as np

from ...core.errors import ensure
from ...core.virtual import (
    VirtualPath,
    VirtualVertex,
    edge_point,
    real_vertex,
    virtual_position,
)

if TYPE_CHECKING:
    from ...core.embedding import Embedding

logger = logging.getLogger(__name__)


@dataclass
class VirtualPathResult:
    """Result of a virtual path search."""
    success: bool
    path: VirtualPath = field(default_factory=list)
    path_length: float = float("inf")
    nodes_explored: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "path": [repr(vv) for vv in self.path],
            "path_length": self.path_length,
            "nodes_explored": self.nodes_explored,
            "errors": self.errors,
        }


class _SearchNode:
    """Node in the A* search graph."""

    __slots__ = ['vv', 'g', 'f', 'parent']

    def __init__(
        self,
        vv: VirtualVertex,
        g: float,
        h: float,
        parent: Optional["_SearchNode"] = None,
    ):
        self.vv = vv
        self.g = g
        self.f = g + h
        self.parent = parent

    def __lt__(self, other: "_SearchNode") -> bool:
        # Ties are broken by element index for reproducible paths
        return (self.f, self.vv) < (other.f, other.vv)


def find_virtual_path(
    em: "Embedding",
    source: int,
    goal: int,
    allowed_start: Optional[Set[VirtualVertex]] = None,
    allowed_end: Optional[Set[VirtualVertex]] = None,
) -> VirtualPathResult:
    """
    Find the shortest virtual path from source to goal avoiding blocked elements.

    Parameters
    ----------
    em : Embedding
        Embedding providing the target mesh and its blocking state.
        It is only read.
    source, goal : int
        Target vertices (matching vertices of a layout halfedge).
    allowed_start : set of VirtualVertex, optional
        If given, the first step must go to one of these ring elements of
        source (sector restriction).
    allowed_end : set of VirtualVertex, optional
        If given, the last step must arrive from one of these ring
        elements of goal.

    Returns
    -------
    VirtualPathResult
        Result containing the path (empty on failure) and its length.
    """
    ensure(source != goal, f"Source and goal coincide (target vertex {source})")

    mesh = em.target_mesh
    goal_pos = mesh.position(goal)
    positions: Dict[VirtualVertex, np.ndarray] = {}

    def position(vv: VirtualVertex) -> np.ndarray:
        pos = positions.get(vv)
        if pos is None:
            pos = virtual_position(mesh, vv)
            positions[vv] = pos
        return pos

    def heuristic(vv: VirtualVertex) -> float:
        return float(np.linalg.norm(goal_pos - position(vv)))

    start_vv = real_vertex(source)
    start_node = _SearchNode(vv=start_vv, g=0.0, h=heuristic(start_vv))

    open_set: List[_SearchNode] = [start_node]
    closed_set: Set[VirtualVertex] = set()
    g_scores: Dict[VirtualVertex, float] = {start_vv: 0.0}

    nodes_explored = 0

    while open_set:
        current = heapq.heappop(open_set)

        if current.vv in closed_set:
            continue

        closed_set.add(current.vv)
        nodes_explored += 1

        if current.vv.is_real and current.vv.index == goal:
            path = []
            node = current
            while node is not None:
                path.append(node.vv)
                node = node.parent
            path.reverse()
            return VirtualPathResult(
                success=True,
                path=path,
                path_length=current.g,
                nodes_explored=nodes_explored,
            )

        for neighbor in _neighbors(em, current.vv, source, allowed_start):
            if neighbor in closed_set:
                continue

            if neighbor.is_real:
                if neighbor.index == goal:
                    if allowed_end is not None and current.vv not in allowed_end:
                        continue
                elif (
                    neighbor.index == source
                    or em.is_vertex_blocked(neighbor.index)
                    or em.is_matching_vertex(neighbor.index)
                ):
                    continue

            step = float(np.linalg.norm(position(neighbor) - position(current.vv)))
            tentative_g = current.g + step

            if neighbor in g_scores and tentative_g >= g_scores[neighbor]:
                continue

            g_scores[neighbor] = tentative_g
            heapq.heappush(
                open_set,
                _SearchNode(
                    vv=neighbor,
                    g=tentative_g,
                    h=heuristic(neighbor),
                    parent=current,
                ),
            )

    logger.debug(f"No virtual path from {source} to {goal} ({nodes_explored} nodes explored)")
    return VirtualPathResult(
        success=False,
        nodes_explored=nodes_explored,
        errors=["No path found"],
    )


def _edge_point_usable(em: "Embedding", e: int) -> bool:
    return not em.target_mesh.is_boundary_edge(e) and not em.is_edge_blocked(e)


def _neighbors(
    em: "Embedding",
    vv: VirtualVertex,
    source: int,
    allowed_start: Optional[Set[VirtualVertex]],
) -> Iterator[VirtualVertex]:
    """Virtual vertices reachable from vv through non-blocked edges and faces."""
    mesh = em.target_mesh

    if vv.is_real:
        v = vv.index
        restrict = allowed_start if v == source else None
        for nb in mesh.ring(v):
            if restrict is not None and nb not in restrict:
                continue
            if nb.is_real:
                h = mesh.halfedge_from_to(v, nb.index)
                if em.is_edge_blocked(h >> 1):
                    continue
            else:
                if not _edge_point_usable(em, nb.index):
                    continue
                if em.is_face_blocked(mesh.face_with_edge_and_vertex(nb.index, v)):
                    continue
            yield nb
        return

    e = vv.index
    for h in (mesh.halfedge_a(e), mesh.halfedge_b(e)):
        f = mesh.face(h)
        if f == -1 or em.is_face_blocked(f):
            continue
        for h_other in mesh.face_halfedges(f):
            if h_other != h and _edge_point_usable(em, h_other >> 1):
                yield edge_point(h_other >> 1)
        yield real_vertex(mesh.opposite_vertex(h))


__all__ = [
    "find_virtual_path",
    "VirtualPathResult",
]
