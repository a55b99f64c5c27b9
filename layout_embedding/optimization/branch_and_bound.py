"""
Branch-and-bound search for layout embeddings.

Search nodes are sequences of forced insertions. At every node the forced
layout edges are traced and committed in order, all other edges get a
shortest candidate path, and the candidates are checked for conflicts.
A node without conflicts is a feasible embedding whose cost equals its
lower bound. Otherwise one child is created per conflicting layout edge,
forcing that edge next.

Nodes are expanded best-first by lower bound. The search stops when the
relative gap between the best remaining bound and the incumbent drops to
``max_gap``, when the queue is exhausted, or when the time limit is hit.

A single working copy of the caller's embedding is used for the whole
search; each node rolls it back to the base checkpoint and replays its
insertions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, TYPE_CHECKING
import heapq
import itertools
import logging
import math
import time

from scipy.cluster.hierarchy import DisjointSet

from embedding_policies import BranchAndBoundPolicy

from ..core.errors import NoFeasibleEmbeddingError, ensure
from ..core.virtual import VirtualPath
from ..ops.state import EmbeddingState

if TYPE_CHECKING:
    from ..core.embedding import Embedding

logger = logging.getLogger(__name__)


@dataclass
class BranchAndBoundResult:
    """Result of an embedding search."""
    success: bool
    cost: float = float("inf")
    lower_bound: float = 0.0
    gap: float = 1.0
    insertions: List[int] = field(default_factory=list)
    nodes_expanded: int = 0
    nodes_pruned: int = 0
    time_elapsed: float = 0.0
    timed_out: bool = False
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def raise_for_status(self) -> None:
        """Raise NoFeasibleEmbeddingError if the search found no embedding."""
        if not self.success:
            message = "; ".join(self.errors) if self.errors else "No feasible embedding found"
            raise NoFeasibleEmbeddingError(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "cost": self.cost,
            "lower_bound": self.lower_bound,
            "gap": self.gap,
            "insertions": list(self.insertions),
            "nodes_expanded": self.nodes_expanded,
            "nodes_pruned": self.nodes_pruned,
            "time_elapsed": self.time_elapsed,
            "timed_out": self.timed_out,
            "warnings": self.warnings,
            "errors": self.errors,
            "metadata": self.metadata,
        }


@dataclass(order=True)
class _Candidate:
    lower_bound: float
    sequence: int
    insertions: List[int] = field(compare=False, default_factory=list)


def relative_gap(lower_bound: float, upper_bound: float) -> float:
    """Relative optimality gap 1 - lb/ub; 1.0 while no upper bound is known."""
    if math.isinf(upper_bound):
        return 1.0
    if upper_bound <= 0.0:
        return 0.0
    return 1.0 - lower_bound / upper_bound


def topology_blocked_edges(em: "Embedding", insertions: List[int], l_edges: Set[int]) -> Set[int]:
    """
    Edges of l_edges whose endpoints are already connected by the forced insertions.

    Forcing such an edge would close a cycle of forced edges.
    """
    layout = em.layout_mesh
    components = DisjointSet(range(layout.n_vertices))
    for l_e in insertions:
        components.merge(*layout.edge_vertices(l_e))
    return {l_e for l_e in l_edges if components.connected(*layout.edge_vertices(l_e))}


def expandable_edges(em: "Embedding", state: EmbeddingState, insertions: List[int]) -> List[int]:
    """Conflicting edges that are not topology-blocked, or all conflicting edges if every one is."""
    blocked = topology_blocked_edges(em, insertions, state.conflicting_l_edges)
    free = state.conflicting_l_edges - blocked
    return sorted(free) if free else sorted(state.conflicting_l_edges)


def _child_lower_bound(working: "Embedding", l_e: int) -> float:
    token = working.checkpoint()
    child = EmbeddingState(working)
    child.extend(l_e)
    if child.valid:
        child.compute_candidate_paths()
    lower_bound = child.cost_lower_bound()
    working.rollback(token)
    return lower_bound


def apply_solution(em: "Embedding", solution: Dict[int, VirtualPath], insertions: List[int]) -> None:
    """Commit a full edge -> path solution onto em, forced insertions first."""
    layout = em.layout_mesh
    forced = set(insertions)
    order = list(insertions) + [l_e for l_e in range(layout.n_edges) if l_e not in forced]
    for l_e in order:
        if em.is_embedded(l_e):
            continue
        ensure(l_e in solution, f"Solution has no path for layout edge {l_e}")
        em.embed_path(layout.halfedge_a(l_e), solution[l_e])


def branch_and_bound(
    em: "Embedding",
    policy: Optional[BranchAndBoundPolicy] = None,
) -> BranchAndBoundResult:
    """
    Embed all layout edges with branch and bound.

    Parameters
    ----------
    em : Embedding
        Embedding to complete. Already embedded edges are kept. On success
        the best embedding found is committed onto em; otherwise em is left
        unchanged.
    policy : BranchAndBoundPolicy, optional
        Time limit, optimality gap and hashing settings.

    Returns
    -------
    BranchAndBoundResult
        Search statistics, cost of the returned embedding and the best
        proven lower bound.
    """
    if policy is None:
        policy = BranchAndBoundPolicy()

    start_time = time.time()
    working = em.copy()
    base = working.checkpoint()

    upper_bound = float("inf")
    best_solution: Optional[Dict[int, VirtualPath]] = None
    best_insertions: List[int] = []

    counter = itertools.count()
    queue: List[_Candidate] = [_Candidate(0.0, next(counter), [])]
    seen_hashes: Set[int] = set()
    # Smallest bound among nodes discarded because they could not beat the incumbent
    discarded_bound = float("inf")
    stopped_bound = float("inf")

    nodes_expanded = 0
    nodes_pruned = 0
    timed_out = False
    warnings: List[str] = []

    while queue:
        if time.time() - start_time > policy.time_limit:
            timed_out = True
            logger.warning(
                f"Branch and bound reached the time limit of {policy.time_limit}s "
                f"with {len(queue)} open nodes"
            )
            warnings.append("Time limit reached")
            break

        node = heapq.heappop(queue)
        if relative_gap(node.lower_bound, upper_bound) <= policy.max_gap:
            stopped_bound = node.lower_bound
            break

        working.rollback(base)
        state = EmbeddingState(working)
        state.extend_sequence(node.insertions)
        if not state.valid:
            nodes_pruned += 1
            continue

        if policy.use_hashing:
            state_hash = state.hash()
            if state_hash in seen_hashes:
                nodes_pruned += 1
                continue
            seen_hashes.add(state_hash)

        state.compute_candidate_paths()
        if not state.valid:
            nodes_pruned += 1
            continue
        state.detect_candidate_path_conflicts()
        nodes_expanded += 1

        lower_bound = state.cost_lower_bound()
        logger.debug(
            f"|Embd| = {len(state.embedded_l_edges)}, "
            f"|Conf| = {len(state.conflicting_l_edges)}, "
            f"|Ncnf| = {len(state.non_conflicting_l_edges)}, "
            f"|CC| = {state.count_connected_components()}, "
            f"LB = {lower_bound:.6g}, UB = {upper_bound:.6g}, "
            f"gap = {100.0 * relative_gap(lower_bound, upper_bound):.2f}%, |Q| = {len(queue)}"
        )

        if not state.conflicting_l_edges:
            if lower_bound < upper_bound:
                upper_bound = lower_bound
                best_solution = state.solution()
                best_insertions = list(node.insertions)
                logger.info(
                    f"New incumbent with cost {upper_bound:.6g} "
                    f"after {len(best_insertions)} forced insertions"
                )
            continue

        if lower_bound >= upper_bound:
            discarded_bound = min(discarded_bound, lower_bound)
            nodes_pruned += 1
            continue

        for l_e in expandable_edges(working, state, node.insertions):
            child_bound = _child_lower_bound(working, l_e)
            if math.isinf(child_bound):
                nodes_pruned += 1
                continue
            if relative_gap(child_bound, upper_bound) > policy.max_gap:
                heapq.heappush(queue, _Candidate(child_bound, next(counter), node.insertions + [l_e]))
            else:
                discarded_bound = min(discarded_bound, child_bound)
                nodes_pruned += 1

    bounds = [upper_bound, discarded_bound, stopped_bound]
    if queue:
        bounds.append(queue[0].lower_bound)
    proven_bound = min(bounds)

    result = BranchAndBoundResult(
        success=best_solution is not None,
        lower_bound=proven_bound,
        nodes_expanded=nodes_expanded,
        nodes_pruned=nodes_pruned,
        timed_out=timed_out,
        warnings=warnings,
        metadata={"policy": policy.to_dict(), "open_nodes": len(queue)},
    )

    if best_solution is None:
        message = "No feasible embedding found"
        if timed_out:
            message += " within the time limit"
        logger.warning(message)
        result.errors.append(message)
        result.time_elapsed = time.time() - start_time
        return result

    apply_solution(em, best_solution, best_insertions)
    result.cost = em.total_embedded_path_length()
    result.insertions = best_insertions
    result.gap = max(0.0, relative_gap(proven_bound, result.cost))
    result.time_elapsed = time.time() - start_time

    logger.info(
        f"Branch and bound finished: cost {result.cost:.6g}, lower bound {proven_bound:.6g}, "
        f"gap {100.0 * result.gap:.2f}%, {nodes_expanded} nodes expanded "
        f"in {result.time_elapsed:.2f}s"
    )
    return result


__all__ = [
    "BranchAndBoundResult",
    "branch_and_bound",
    "relative_gap",
    "topology_blocked_edges",
    "expandable_edges",
    "apply_solution",
]
