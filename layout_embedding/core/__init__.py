"""
Core data structures: half-edge meshes, virtual paths and the embedding.
"""

from .errors import EmbeddingInvariantError, NoFeasibleEmbeddingError, ensure
from .mesh import HalfEdgeMesh
from .virtual import (
    VirtualVertex,
    VirtualPath,
    VirtualPort,
    real_vertex,
    edge_point,
    path_ports,
    path_length,
)
from .embedding import Embedding
from .input import EmbeddingInput, randomize_matching_vertices

__all__ = [
    "EmbeddingInvariantError",
    "NoFeasibleEmbeddingError",
    "ensure",
    "HalfEdgeMesh",
    "VirtualVertex",
    "VirtualPath",
    "VirtualPort",
    "real_vertex",
    "edge_point",
    "path_ports",
    "path_length",
    "Embedding",
    "EmbeddingInput",
    "randomize_matching_vertices",
]
