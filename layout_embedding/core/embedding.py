"""
Embedding of a layout mesh into a target mesh.

An Embedding owns the layout mesh, the target mesh, the matching relation
(layout vertex -> target vertex) and one committed virtual path per embedded
layout edge. Committing a path is the only operation that changes which
target elements are blocked for tracing other layout edges.

Instead of copying the target mesh per search node, every commit is
recorded in an undo log: ``checkpoint()`` returns a token and
``rollback(token)`` removes all paths committed after it, restoring the
blocking state exactly.
"""

from typing import Dict, List, Mapping, Optional, Sequence, Set, Union
import logging

import numpy as np

from embedding_policies import OperationReport

from .errors import ensure
from .mesh import HalfEdgeMesh
from .virtual import (
    EDGE,
    FACE,
    VERTEX,
    Element,
    VirtualPath,
    VirtualPort,
    VirtualVertex,
    path_elements,
    path_length,
    path_ports,
    path_positions,
)

logger = logging.getLogger(__name__)


class Embedding:
    """
    Layout embedding state.

    Parameters
    ----------
    layout_mesh : HalfEdgeMesh
        Coarse layout mesh. Must be oriented consistently with the target.
    target_mesh : HalfEdgeMesh
        Triangle mesh with vertex positions.
    matching : sequence or mapping of int
        Target vertex for every layout vertex. Must be injective.
    """

    def __init__(
        self,
        layout_mesh: HalfEdgeMesh,
        target_mesh: HalfEdgeMesh,
        matching: Union[Sequence[int], Mapping[int, int]],
    ):
        if target_mesh.positions is None:
            raise ValueError("Target mesh needs vertex positions")

        if isinstance(matching, Mapping):
            ensure(
                set(matching.keys()) == set(range(layout_mesh.n_vertices)),
                "Matching must cover every layout vertex",
            )
            matching = [matching[l_v] for l_v in range(layout_mesh.n_vertices)]
        matching = [int(t_v) for t_v in matching]

        ensure(
            len(matching) == layout_mesh.n_vertices,
            f"Expected {layout_mesh.n_vertices} matching vertices, got {len(matching)}",
        )
        for l_v, t_v in enumerate(matching):
            ensure(
                0 <= t_v < target_mesh.n_vertices,
                f"Layout vertex {l_v} matched to invalid target vertex {t_v}",
            )
        ensure(
            len(set(matching)) == len(matching),
            "Matching is not injective: two layout vertices share a target vertex",
        )

        self._layout = layout_mesh
        self._target = target_mesh
        self._l_matching = np.asarray(matching, dtype=np.int64)
        self._t_matching: Dict[int, int] = {t_v: l_v for l_v, t_v in enumerate(matching)}

        self._vertex_owner = np.full(target_mesh.n_vertices, -1, dtype=np.int64)
        self._edge_owner = np.full(target_mesh.n_edges, -1, dtype=np.int64)
        self._face_owner = np.full(target_mesh.n_faces, -1, dtype=np.int64)

        self._paths: Dict[int, VirtualPath] = {}
        self._lengths: Dict[int, float] = {}
        self._elements: Dict[int, List[Element]] = {}
        self._ports: Dict[int, VirtualPort] = {}
        self._port_owner: Dict[VirtualPort, int] = {}
        self._log: List[int] = []

    def copy(self) -> "Embedding":
        """Independent copy of the embedding state (meshes are shared, they are immutable)."""
        em = Embedding.__new__(Embedding)
        em._layout = self._layout
        em._target = self._target
        em._l_matching = self._l_matching.copy()
        em._t_matching = dict(self._t_matching)
        em._vertex_owner = self._vertex_owner.copy()
        em._edge_owner = self._edge_owner.copy()
        em._face_owner = self._face_owner.copy()
        em._paths = {l_e: list(path) for l_e, path in self._paths.items()}
        em._lengths = dict(self._lengths)
        em._elements = {l_e: list(els) for l_e, els in self._elements.items()}
        em._ports = dict(self._ports)
        em._port_owner = dict(self._port_owner)
        em._log = list(self._log)
        return em

    # ------------------------------------------------------------------
    # Meshes and matching
    # ------------------------------------------------------------------

    @property
    def layout_mesh(self) -> HalfEdgeMesh:
        return self._layout

    @property
    def target_mesh(self) -> HalfEdgeMesh:
        return self._target

    @property
    def target_positions(self) -> np.ndarray:
        return self._target.positions

    def matching_target_vertex(self, l_v: int) -> int:
        return int(self._l_matching[l_v])

    def matching_layout_vertex(self, t_v: int) -> int:
        """Layout vertex pinned to t_v, or -1."""
        return self._t_matching.get(t_v, -1)

    def is_matching_vertex(self, t_v: int) -> bool:
        return t_v in self._t_matching

    # ------------------------------------------------------------------
    # Blocking state
    # ------------------------------------------------------------------

    def is_vertex_blocked(self, t_v: int) -> bool:
        return self._vertex_owner[t_v] != -1

    def is_edge_blocked(self, t_e: int) -> bool:
        return self._edge_owner[t_e] != -1

    def is_face_blocked(self, t_f: int) -> bool:
        return self._face_owner[t_f] != -1

    def element_owner(self, element: Element) -> int:
        """Layout edge whose path occupies the target element, or -1."""
        kind, idx = element
        return int(self._owner_array(kind)[idx])

    def _owner_array(self, kind: str) -> np.ndarray:
        if kind == VERTEX:
            return self._vertex_owner
        if kind == EDGE:
            return self._edge_owner
        if kind == FACE:
            return self._face_owner
        raise ValueError(f"Unknown element kind: {kind}")

    # ------------------------------------------------------------------
    # Embedded paths
    # ------------------------------------------------------------------

    def is_embedded(self, l_e: int) -> bool:
        return l_e in self._paths

    def is_halfedge_embedded(self, l_he: int) -> bool:
        return (l_he >> 1) in self._paths

    def embedded_edges(self) -> List[int]:
        """Embedded layout edges in commit order."""
        return list(self._log)

    def is_complete(self) -> bool:
        return len(self._paths) == self._layout.n_edges

    def get_embedded_path(self, l_he: int) -> VirtualPath:
        """Committed path oriented along layout halfedge l_he."""
        path = self._paths[l_he >> 1]
        if l_he & 1:
            return path[::-1]
        return list(path)

    def embedded_port(self, l_he: int) -> VirtualPort:
        """Port through which the path of l_he leaves its from-vertex."""
        return self._ports[l_he]

    def is_embedded_port(self, port: VirtualPort) -> bool:
        return port in self._port_owner

    def embedded_length(self, l_e: int) -> float:
        return self._lengths[l_e]

    def total_embedded_path_length(self) -> float:
        return float(sum(self._lengths.values()))

    def path_length(self, path: VirtualPath) -> float:
        return path_length(self._target, path)

    def embedded_positions(self, path: VirtualPath) -> np.ndarray:
        return path_positions(self._target, path)

    # ------------------------------------------------------------------
    # Tracing
    # ------------------------------------------------------------------

    def sector_ports(self, l_he: int) -> Optional[Set[VirtualVertex]]:
        """
        Ring elements through which a path for l_he may leave its source.

        Returns None if no layout halfedge around the from-vertex is
        embedded yet. Otherwise the allowed directions are those strictly
        between the embedded ports of the nearest embedded halfedges
        clockwise and counter-clockwise of l_he.
        """
        layout = self._layout
        ensure(not self.is_halfedge_embedded(l_he), f"Layout halfedge {l_he} is already embedded")

        cw_bound = -1
        h = layout.rotated_cw(l_he)
        while h != l_he:
            if self.is_halfedge_embedded(h):
                cw_bound = h
                break
            h = layout.rotated_cw(h)
        if cw_bound == -1:
            return None

        h = layout.rotated_ccw(l_he)
        while not self.is_halfedge_embedded(h):
            h = layout.rotated_ccw(h)
        ccw_bound = h

        end_port = self._ports[ccw_bound]
        port = self._ports[cw_bound].rotated_ccw(self._target)
        allowed = set()
        while port != end_port:
            allowed.add(port.to)
            port = port.rotated_ccw(self._target)
        return allowed

    def find_shortest_path(self, l_he: int) -> VirtualPath:
        """
        Shortest virtual path for layout halfedge l_he.

        Only non-blocked target elements are used and the path leaves and
        enters the matching vertices inside the sectors given by already
        embedded layout halfedges. Returns an empty list if no path exists.
        The embedding is not modified.
        """
        # Imported here to avoid a circular import with ops
        from ..ops.pathfinding.virtual_astar import find_virtual_path

        layout = self._layout
        source = self.matching_target_vertex(layout.halfedge_from(l_he))
        goal = self.matching_target_vertex(layout.halfedge_to(l_he))
        result = find_virtual_path(
            self,
            source,
            goal,
            allowed_start=self.sector_ports(l_he),
            allowed_end=self.sector_ports(layout.opposite(l_he)),
        )
        return result.path

    # ------------------------------------------------------------------
    # Commitment and undo log
    # ------------------------------------------------------------------

    def embed_path(self, l_he: int, path: VirtualPath) -> None:
        """
        Commit path as the embedding of layout halfedge l_he.

        Marks every target element the path occupies as owned by the layout
        edge, which blocks it for tracing other layout edges, and records
        the ports at both endpoints.
        """
        layout = self._layout
        l_e = l_he >> 1
        ensure(not self.is_embedded(l_e), f"Layout edge {l_e} is already embedded")
        ensure(len(path) >= 2, "Virtual path needs at least two vertices")
        ensure(path[0].is_real and path[-1].is_real, "Virtual path must end at real vertices")
        ensure(
            path[0].index == self.matching_target_vertex(layout.halfedge_from(l_he)),
            f"Path for layout halfedge {l_he} starts at the wrong target vertex",
        )
        ensure(
            path[-1].index == self.matching_target_vertex(layout.halfedge_to(l_he)),
            f"Path for layout halfedge {l_he} ends at the wrong target vertex",
        )
        ensure(len(set(path)) == len(path), "Virtual path repeats an element")

        path_a = list(path) if (l_he & 1) == 0 else list(path[::-1])
        for vv in path_a[1:-1]:
            ensure(
                not (vv.is_real and self.is_matching_vertex(vv.index)),
                f"Path for layout edge {l_e} passes through matching vertex {vv.index}",
            )

        elements = path_elements(self._target, path_a)
        for kind, idx in elements:
            owner = self._owner_array(kind)[idx]
            ensure(
                owner == -1 or owner == l_e,
                f"Path for layout edge {l_e} uses {kind} {idx} blocked by layout edge {owner}",
            )

        port_a, port_b = path_ports(path_a)
        ensure(
            port_a not in self._port_owner and port_b not in self._port_owner,
            f"Path for layout edge {l_e} reuses an embedded port",
        )

        for kind, idx in elements:
            self._owner_array(kind)[idx] = l_e

        self._ports[layout.halfedge_a(l_e)] = port_a
        self._ports[layout.halfedge_b(l_e)] = port_b
        self._port_owner[port_a] = layout.halfedge_a(l_e)
        self._port_owner[port_b] = layout.halfedge_b(l_e)

        self._paths[l_e] = path_a
        self._lengths[l_e] = path_length(self._target, path_a)
        self._elements[l_e] = elements
        self._log.append(l_e)

        logger.debug(
            f"Embedded layout edge {l_e}: {len(path_a)} virtual vertices, "
            f"length {self._lengths[l_e]:.6g}"
        )

    def unembed_edge(self, l_e: int) -> None:
        """Remove the committed path of l_e and release its target elements."""
        ensure(self.is_embedded(l_e), f"Layout edge {l_e} is not embedded")
        for kind, idx in self._elements.pop(l_e):
            owners = self._owner_array(kind)
            if owners[idx] == l_e:
                owners[idx] = -1
        for l_he in (self._layout.halfedge_a(l_e), self._layout.halfedge_b(l_e)):
            port = self._ports.pop(l_he)
            del self._port_owner[port]
        del self._paths[l_e]
        del self._lengths[l_e]
        self._log.remove(l_e)

    def checkpoint(self) -> int:
        """Token for the current commit state, see rollback()."""
        return len(self._log)

    def rollback(self, token: int) -> None:
        """Un-embed every path committed after checkpoint token."""
        ensure(0 <= token <= len(self._log), f"Invalid checkpoint token {token}")
        while len(self._log) > token:
            self.unembed_edge(self._log[-1])

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> OperationReport:
        """
        Check endpoint and disjointness invariants of all committed paths.

        Returns
        -------
        OperationReport
            Report with one error per violated invariant.
        """
        report = OperationReport(operation="validate_embedding")
        layout = self._layout

        owners: Dict[Element, int] = {}
        for l_e, path in sorted(self._paths.items()):
            l_he = layout.halfedge_a(l_e)
            if path[0] != VirtualVertex(VERTEX, self.matching_target_vertex(layout.halfedge_from(l_he))):
                report.add_error(f"Path of layout edge {l_e} starts at the wrong vertex")
            if path[-1] != VirtualVertex(VERTEX, self.matching_target_vertex(layout.halfedge_to(l_he))):
                report.add_error(f"Path of layout edge {l_e} ends at the wrong vertex")

            for element in set(path_elements(self._target, path)):
                other = owners.get(element)
                if other is not None:
                    report.add_error(
                        f"Layout edges {other} and {l_e} share {element[0]} {element[1]}"
                    )
                else:
                    owners[element] = l_e

        if not self.is_complete():
            report.add_warning(
                f"{layout.n_edges - len(self._paths)} of {layout.n_edges} layout edges are not embedded"
            )

        report.metadata = {
            "n_layout_edges": layout.n_edges,
            "n_embedded": len(self._paths),
            "complete": self.is_complete(),
            "total_length": self.total_embedded_path_length(),
        }
        return report

    def __repr__(self) -> str:
        return (
            f"Embedding(layout={self._layout!r}, target={self._target!r}, "
            f"embedded={len(self._paths)}/{self._layout.n_edges})"
        )


__all__ = ["Embedding"]
