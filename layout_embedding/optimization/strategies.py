"""
Greedy layout embedding with selectable insertion order.

Each strategy maps an embedding to the order in which its unembedded layout
edges are traced and committed. Strategies are registered per
InsertionStrategy member; ``embed_greedy`` looks them up by policy.
"""

from typing import Callable, Dict, List, Optional, TYPE_CHECKING
import logging

import networkx as nx

from embedding_policies import GreedyPolicy, InsertionStrategy, OperationReport

from ..ops.state import EmbeddingState

if TYPE_CHECKING:
    from ..core.embedding import Embedding

logger = logging.getLogger(__name__)

OrderFunction = Callable[["Embedding"], List[int]]


def _unembedded(em: "Embedding") -> List[int]:
    return [l_e for l_e in range(em.layout_mesh.n_edges) if not em.is_embedded(l_e)]


def _unconstrained_lengths(em: "Embedding") -> Dict[int, float]:
    """Candidate length of every unembedded edge against the current blocking state."""
    layout = em.layout_mesh
    lengths = {}
    for l_e in _unembedded(em):
        path = em.find_shortest_path(layout.halfedge_a(l_e))
        lengths[l_e] = em.path_length(path)
    return lengths


def natural_order(em: "Embedding") -> List[int]:
    """Unembedded layout edges by index."""
    return _unembedded(em)


def shortest_first_order(em: "Embedding") -> List[int]:
    """Unembedded layout edges by increasing candidate length."""
    lengths = _unconstrained_lengths(em)
    return sorted(lengths, key=lambda l_e: (lengths[l_e], l_e))


def spanning_tree_first_order(em: "Embedding") -> List[int]:
    """
    Edges of a minimum spanning tree of the layout graph first.

    Embedded edges are part of the graph with zero weight so that the tree
    extends what is already committed. Tree edges follow in order of
    increasing length, then the remaining edges by length.
    """
    layout = em.layout_mesh
    lengths = _unconstrained_lengths(em)

    graph = layout.to_networkx()
    for _, _, l_e, data in graph.edges(keys=True, data=True):
        data["weight"] = lengths.get(l_e, 0.0)

    tree = {
        key
        for _, _, key in nx.minimum_spanning_edges(
            graph, algorithm="kruskal", weight="weight", keys=True, data=False
        )
        if key in lengths
    }

    def order_key(l_e: int):
        return (l_e not in tree, lengths[l_e], l_e)

    return sorted(lengths, key=order_key)


INSERTION_ORDERS: Dict[InsertionStrategy, OrderFunction] = {
    InsertionStrategy.NATURAL: natural_order,
    InsertionStrategy.SHORTEST_FIRST: shortest_first_order,
    InsertionStrategy.SPANNING_TREE_FIRST: spanning_tree_first_order,
}


def insertion_order(em: "Embedding", strategy: InsertionStrategy) -> List[int]:
    """Order of unembedded layout edges for a strategy."""
    strategy = InsertionStrategy(strategy)
    return INSERTION_ORDERS[strategy](em)


def embed_greedy(em: "Embedding", policy: Optional[GreedyPolicy] = None) -> OperationReport:
    """
    Trace and commit layout edges one at a time.

    Each edge is traced against the paths committed before it. If any edge
    cannot be traced em is left unchanged and the report holds an error.
    """
    if policy is None:
        policy = GreedyPolicy()

    report = OperationReport(
        operation="embed_greedy",
        requested_policy=policy.to_dict(),
    )

    order = insertion_order(em, policy.strategy)
    working = em.copy()
    state = EmbeddingState(working)
    state.extend_sequence(order)

    if not state.valid:
        failed = order[len(state.insertions)]
        report.add_error(
            f"Layout edge {failed} could not be traced after "
            f"{len(state.insertions)} insertions ({policy.strategy.value} order)"
        )
        logger.warning(report.errors[-1])
        report.metadata = {"order": order, "n_inserted": len(state.insertions)}
        return report

    layout = em.layout_mesh
    for l_e in order:
        em.embed_path(layout.halfedge_a(l_e), working.get_embedded_path(layout.halfedge_a(l_e)))

    report.metadata = {
        "order": order,
        "n_inserted": len(order),
        "total_length": em.total_embedded_path_length(),
    }
    logger.info(
        f"Greedy embedding ({policy.strategy.value}) committed {len(order)} edges, "
        f"total length {report.metadata['total_length']:.6g}"
    )
    return report


__all__ = [
    "INSERTION_ORDERS",
    "natural_order",
    "shortest_first_order",
    "spanning_tree_first_order",
    "insertion_order",
    "embed_greedy",
]
