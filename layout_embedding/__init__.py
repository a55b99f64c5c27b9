"""
Layout Embedding - Embedding coarse layout meshes into triangle surfaces

This package embeds the edges of a small polygon layout mesh as disjoint
shortest paths on a fine target triangle mesh, with every layout vertex
pinned to a matching target vertex. Paths run through target vertices and
across target edges ("virtual paths"). Conflicts between independently
traced shortest paths are resolved by branch and bound over the order in
which layout edges are committed.

Main Entry Points:
    - Embedding: Matching, committed paths and blocking state
    - branch_and_bound(): Best-first search for a short conflict-free embedding
    - stochastic_conflict_resolution(): Randomized baseline
    - embed_greedy(): One-edge-at-a-time embedding in a chosen order

Example:
    >>> from layout_embedding import Embedding, branch_and_bound
    >>> from layout_embedding.core.primitives import grid_mesh, grid_vertex, quad_layout
    >>>
    >>> target = grid_mesh(4)
    >>> corners = [grid_vertex(4, 0, 0), grid_vertex(4, 4, 0),
    ...            grid_vertex(4, 4, 4), grid_vertex(4, 0, 4)]
    >>> em = Embedding(quad_layout(), target, corners)
    >>> result = branch_and_bound(em)
    >>> result.raise_for_status()
    >>> em.total_embedded_path_length()
    16.0
"""

from .core import (
    Embedding,
    EmbeddingInput,
    EmbeddingInvariantError,
    HalfEdgeMesh,
    NoFeasibleEmbeddingError,
    VirtualPort,
    VirtualVertex,
    randomize_matching_vertices,
)
from .ops import (
    CandidatePath,
    EmbeddingState,
    VirtualPathConflictSentinel,
    find_virtual_path,
)
from .optimization import (
    BranchAndBoundResult,
    branch_and_bound,
    embed_greedy,
    insertion_order,
    stochastic_conflict_resolution,
)

__version__ = "0.1.0"

__all__ = [
    "Embedding",
    "EmbeddingInput",
    "EmbeddingInvariantError",
    "HalfEdgeMesh",
    "NoFeasibleEmbeddingError",
    "VirtualPort",
    "VirtualVertex",
    "randomize_matching_vertices",
    "CandidatePath",
    "EmbeddingState",
    "VirtualPathConflictSentinel",
    "find_virtual_path",
    "BranchAndBoundResult",
    "branch_and_bound",
    "embed_greedy",
    "insertion_order",
    "stochastic_conflict_resolution",
]
