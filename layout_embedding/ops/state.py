"""
Search state for layout embedding.

An EmbeddingState wraps an Embedding together with the derived quantities
branch and bound needs at a search node: the cost of the committed paths,
one shortest candidate path per unembedded layout edge, the conflicts among
those candidates and the resulting lower bound.

The state works directly on the embedding it is given. Callers that need to
evaluate several alternatives use ``Embedding.checkpoint()`` and
``Embedding.rollback()`` around it.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple, TYPE_CHECKING
import hashlib
import logging

import numpy as np
from scipy.cluster.hierarchy import DisjointSet

from ..core.errors import ensure
from ..core.virtual import VirtualPath
from .conflicts import VirtualPathConflictSentinel

if TYPE_CHECKING:
    from ..core.embedding import Embedding

logger = logging.getLogger(__name__)


@dataclass
class CandidatePath:
    """Shortest path for an unembedded layout edge, traced along halfedge A."""
    path: VirtualPath = field(default_factory=list)
    cost: float = float("inf")


class EmbeddingState:
    """
    Snapshot of an embedding plus candidate paths and their conflicts.

    Parameters
    ----------
    em : Embedding
        Embedding to extend. It is modified in place by ``extend``.

    Attributes
    ----------
    valid : bool
        False once a trace failed; the state then has infinite cost.
    embedded_cost : float
        Total length of committed paths.
    unembedded_cost : float
        Total length of the candidate paths.
    insertions : list of int
        Layout edges committed through this state, in order.
    """

    def __init__(self, em: "Embedding"):
        self.em = em
        self.valid = True
        self.embedded_l_edges: Set[int] = set(em.embedded_edges())
        self.embedded_cost = em.total_embedded_path_length()
        self.unembedded_cost = 0.0
        self.insertions: List[int] = []

        self.candidate_paths: Dict[int, CandidatePath] = {}
        self.conflicting_l_edges: Set[int] = set()
        self.non_conflicting_l_edges: Set[int] = set()
        self.conflict_relation: Set[Tuple[int, int]] = set()

    @property
    def unembedded_l_edges(self) -> List[int]:
        return [
            l_e for l_e in range(self.em.layout_mesh.n_edges)
            if l_e not in self.embedded_l_edges
        ]

    def _invalidate(self, reason: str) -> None:
        logger.debug(f"Embedding state invalidated: {reason}")
        self.valid = False
        self.embedded_cost = float("inf")

    def extend(self, l_e: int, path: Optional[VirtualPath] = None) -> None:
        """
        Commit layout edge l_e.

        Without a path the edge is traced against the current blocking
        state. If tracing fails the state becomes invalid and nothing is
        committed. An explicit path is validated and committed as given,
        oriented along halfedge A.
        """
        ensure(self.valid, "Cannot extend an invalid embedding state")
        ensure(l_e not in self.embedded_l_edges, f"Layout edge {l_e} is already embedded")

        l_he = self.em.layout_mesh.halfedge_a(l_e)
        if path is None:
            path = self.em.find_shortest_path(l_he)
            if not path:
                self._invalidate(f"no path for layout edge {l_e}")
                return

        self.em.embed_path(l_he, path)
        self.embedded_cost += self.em.embedded_length(l_e)
        self.embedded_l_edges.add(l_e)
        self.insertions.append(l_e)

        # Candidates depend on the blocking state
        self.candidate_paths.clear()
        self.conflicting_l_edges.clear()
        self.non_conflicting_l_edges.clear()
        self.conflict_relation.clear()
        self.unembedded_cost = 0.0

    def extend_sequence(self, l_edges: Iterable[int]) -> None:
        """Commit layout edges in order, stopping at the first failure."""
        for l_e in l_edges:
            self.extend(l_e)
            if not self.valid:
                return

    def compute_candidate_paths(self) -> None:
        """Trace a shortest path for every unembedded layout edge."""
        ensure(self.valid, "Cannot compute candidates of an invalid embedding state")
        layout = self.em.layout_mesh

        self.candidate_paths.clear()
        self.unembedded_cost = 0.0
        for l_e in self.unembedded_l_edges:
            path = self.em.find_shortest_path(layout.halfedge_a(l_e))
            if not path:
                self.candidate_paths.clear()
                self.unembedded_cost = float("inf")
                self._invalidate(f"no candidate path for layout edge {l_e}")
                return
            cost = self.em.path_length(path)
            self.candidate_paths[l_e] = CandidatePath(path=path, cost=cost)
            self.unembedded_cost += cost

    def detect_candidate_path_conflicts(self) -> None:
        """Split unembedded edges into conflicting and non-conflicting ones."""
        ensure(self.valid, "Cannot detect conflicts of an invalid embedding state")
        unembedded = self.unembedded_l_edges
        ensure(
            set(self.candidate_paths) == set(unembedded),
            "Candidate paths must be computed before detecting conflicts",
        )

        sentinel = VirtualPathConflictSentinel(self.em)
        for l_e in unembedded:
            sentinel.insert_path(self.candidate_paths[l_e].path, l_e)
        sentinel.check_path_ordering()

        self.conflicting_l_edges = set(sentinel.global_conflicts)
        self.non_conflicting_l_edges = set(unembedded) - self.conflicting_l_edges
        self.conflict_relation = set(sentinel.conflict_relation)

        ensure(
            len(self.conflicting_l_edges) + len(self.non_conflicting_l_edges)
            + len(self.embedded_l_edges) == self.em.layout_mesh.n_edges,
            "Conflict classification does not cover every layout edge",
        )

    def cost_lower_bound(self) -> float:
        if not self.valid:
            return float("inf")
        return self.embedded_cost + self.unembedded_cost

    def hash(self) -> int:
        """Deterministic hash of the committed paths."""
        digest = hashlib.blake2b(digest_size=16)
        for l_e in sorted(self.embedded_l_edges):
            path = self.em.get_embedded_path(self.em.layout_mesh.halfedge_a(l_e))
            digest.update(np.int64(l_e).tobytes())
            digest.update(np.ascontiguousarray(self.em.embedded_positions(path)).tobytes())
        return int.from_bytes(digest.digest(), "little")

    def count_connected_components(self) -> int:
        """
        Number of regions the committed paths cut the layout surface into.

        Layout faces are joined across every unembedded layout edge. Edges
        on the layout boundary have only one face and are skipped.
        """
        layout = self.em.layout_mesh
        components = DisjointSet(range(layout.n_faces))
        n_components = layout.n_faces
        for l_e in self.unembedded_l_edges:
            f_a, f_b = layout.edge_faces(l_e)
            if f_a == -1 or f_b == -1:
                continue
            if components.merge(f_a, f_b):
                n_components -= 1
        return n_components

    def solution(self) -> Dict[int, VirtualPath]:
        """Committed paths and candidate paths keyed by layout edge (halfedge A direction)."""
        layout = self.em.layout_mesh
        result = {
            l_e: self.em.get_embedded_path(layout.halfedge_a(l_e))
            for l_e in self.embedded_l_edges
        }
        for l_e, candidate in self.candidate_paths.items():
            result[l_e] = list(candidate.path)
        return result

    def __repr__(self) -> str:
        return (
            f"EmbeddingState(valid={self.valid}, embedded={len(self.embedded_l_edges)}, "
            f"conflicting={len(self.conflicting_l_edges)}, lb={self.cost_lower_bound():.6g})"
        )


__all__ = [
    "CandidatePath",
    "EmbeddingState",
]
