"""
Operations on embeddings.

For full API access, import from specific submodules:
    - layout_embedding.ops.pathfinding: Virtual path tracing
    - layout_embedding.ops.conflicts: Conflict detection between candidate paths
    - layout_embedding.ops.state: Search state with candidates and bounds
"""

from .pathfinding import find_virtual_path, VirtualPathResult
from .conflicts import VirtualPathConflictSentinel
from .state import CandidatePath, EmbeddingState

__all__ = [
    "find_virtual_path",
    "VirtualPathResult",
    "VirtualPathConflictSentinel",
    "CandidatePath",
    "EmbeddingState",
]
