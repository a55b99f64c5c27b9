"""
Conflict detection between candidate virtual paths.

Given an embedding and one candidate path per unembedded layout edge, the
VirtualPathConflictSentinel determines which candidates cannot all be
committed together. Two checks are layered:

1. Element sharing: any target vertex, edge or face used by the interiors
   of two candidates marks both as conflicting.
2. Cyclic order: around every layout vertex the candidate ports must appear
   in the same rotational order as the layout halfedges. Embedded layout
   halfedges split the target directions around the matching vertex into
   sectors; inside a sector candidate ports are swept counter-clockwise and
   every candidate a clockwise correction sweeps over conflicts with the
   current one.
"""

from collections import defaultdict
from typing import DefaultDict, Set, Tuple, TYPE_CHECKING
import logging

from ..core.errors import ensure
from ..core.virtual import (
    Element,
    VirtualPath,
    VirtualPort,
    path_ports,
    real_vertex,
    segment_element,
)

if TYPE_CHECKING:
    from ..core.embedding import Embedding

logger = logging.getLogger(__name__)

Conflict = Tuple[int, int]


class VirtualPathConflictSentinel:
    """
    Collects candidate paths and the conflicts between them.

    Candidate paths must be traced along halfedge A of their layout edge,
    i.e. with ``Embedding.find_shortest_path(2 * l_e)``.

    Attributes
    ----------
    global_conflicts : set of int
        Layout edges involved in at least one conflict.
    conflict_relation : set of (int, int)
        Conflicting pairs of layout edges, each stored as (min, max).
    """

    def __init__(self, em: "Embedding"):
        self.em = em
        self._labels: DefaultDict[Element, Set[int]] = defaultdict(set)
        self._l_port: dict = {}
        self._t_port: DefaultDict[VirtualPort, Set[int]] = defaultdict(set)
        self.global_conflicts: Set[int] = set()
        self.conflict_relation: Set[Conflict] = set()

    def _insert(self, element: Element, label: int) -> None:
        for prev_label in self._labels[element]:
            self.mark_conflicting(label, prev_label)
        self._labels[element].add(label)

    def insert_path(self, path: VirtualPath, l_e: int) -> None:
        """Register the candidate path of layout edge l_e."""
        ensure(len(path) >= 2, "Candidate path needs at least two vertices")
        em = self.em
        layout = em.layout_mesh
        target = em.target_mesh

        # Endpoints are shared between paths and are not labelled
        for vv in path[1:-1]:
            self._insert(vv.element, l_e)

        for a, b in zip(path, path[1:]):
            self._insert(segment_element(target, a, b), l_e)

        l_he_a = layout.halfedge_a(l_e)
        ensure(
            path[0] == real_vertex(em.matching_target_vertex(layout.halfedge_from(l_he_a))),
            f"Candidate path of layout edge {l_e} is not traced along halfedge A",
        )

        port_a, port_b = path_ports(path)
        self._l_port[l_he_a] = port_a
        self._l_port[layout.halfedge_b(l_e)] = port_b
        self._t_port[port_a].add(l_e)
        self._t_port[port_b].add(l_e)

    def mark_conflicting(self, a: int, b: int) -> None:
        if a == b:
            return
        self.global_conflicts.add(a)
        self.global_conflicts.add(b)
        self.conflict_relation.add((min(a, b), max(a, b)))

    def conflicts_with(self, l_e: int) -> Set[int]:
        """Layout edges conflicting with l_e."""
        result = set()
        for a, b in self.conflict_relation:
            if a == l_e:
                result.add(b)
            elif b == l_e:
                result.add(a)
        return result

    def _candidate_port(self, l_he: int) -> VirtualPort:
        port = self._l_port.get(l_he)
        ensure(port is not None, f"No candidate path registered for layout halfedge {l_he}")
        return port

    def _reachable_by_sweep_ccw_in_sector(self, start: VirtualPort, end: VirtualPort) -> bool:
        ensure(start.origin == end.origin, "Ports around different vertices")
        if start == end:
            # Identical ports always conflict
            return False
        target = self.em.target_mesh
        port = start
        while port != end:
            port = port.rotated_ccw(target)
            if self.em.is_embedded_port(port):
                return False
        return True

    def _mark_and_sweep_cw_in_sector(self, start: VirtualPort, end: VirtualPort, label: int) -> None:
        ensure(start.origin == end.origin, "Ports around different vertices")
        target = self.em.target_mesh
        for other in self._t_port[start]:
            self.mark_conflicting(label, other)

        port = start
        while port != end:
            port = port.rotated_cw(target)
            ensure(
                not self.em.is_embedded_port(port),
                f"Clockwise sweep around target vertex {port.origin} left its sector",
            )
            for other in self._t_port[port]:
                self.mark_conflicting(label, other)

    def check_path_ordering(self) -> None:
        """Mark candidates whose ports violate the layout's rotation system."""
        em = self.em
        layout = em.layout_mesh

        for l_v in range(layout.n_vertices):
            vertex_has_sectors = False
            for l_boundary_he in layout.outgoing_halfedges(l_v):
                if not em.is_halfedge_embedded(l_boundary_he):
                    continue
                vertex_has_sectors = True

                # Walk the unembedded halfedges of the sector following the
                # embedded one and require their ports to keep rotating CCW.
                l_current_he = layout.rotated_ccw(l_boundary_he)
                if em.is_halfedge_embedded(l_current_he):
                    continue
                current_port = self._candidate_port(l_current_he)

                while True:
                    l_next_he = layout.rotated_ccw(l_current_he)
                    if em.is_halfedge_embedded(l_next_he):
                        break
                    next_port = self._candidate_port(l_next_he)

                    if not self._reachable_by_sweep_ccw_in_sector(current_port, next_port):
                        self._mark_and_sweep_cw_in_sector(
                            current_port, next_port, layout.edge(l_current_he)
                        )

                    l_current_he = l_next_he
                    current_port = next_port

            if not vertex_has_sectors:
                self._check_cyclic_order(l_v)

    def _check_cyclic_order(self, l_v: int) -> None:
        """
        Cyclic order check around a layout vertex without embedded edges.

        Any mismatch marks all incident layout edges as mutually
        conflicting. This is coarser than necessary.
        """
        em = self.em
        layout = em.layout_mesh
        target = em.target_mesh

        l_he_start = layout.any_outgoing_halfedge(l_v)
        if l_he_start == -1:
            return

        t_port_start = self._candidate_port(l_he_start)
        t_port = t_port_start
        l_he = l_he_start
        cyclic_conflict = False

        while not cyclic_conflict:
            l_he_next = layout.rotated_ccw(l_he)
            if l_he_next == l_he_start:
                # Closing the cycle cannot pass the start port again
                break
            t_port_next = self._candidate_port(l_he_next)
            if t_port_next == t_port:
                cyclic_conflict = True
                break

            while t_port != t_port_next:
                t_port = t_port.rotated_ccw(target)
                if t_port == t_port_start:
                    # Went once around the target vertex before the layout cycle closed
                    cyclic_conflict = True
                    break

            l_he = l_he_next

        if cyclic_conflict:
            logger.debug(f"Cyclic order mismatch around layout vertex {l_v}")
            l_edges = layout.vertex_edges(l_v)
            for l_e_a in l_edges:
                for l_e_b in l_edges:
                    self.mark_conflicting(l_e_a, l_e_b)


__all__ = [
    "VirtualPathConflictSentinel",
    "Conflict",
]
