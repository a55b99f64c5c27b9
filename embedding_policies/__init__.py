"""
Embedding Policies - Centralized policy definitions for layout embedding.

This package provides the policy dataclasses used by the layout_embedding
search and validation operations. All policies are JSON-serializable.

Usage:
    from embedding_policies import BranchAndBoundPolicy, OperationReport
    from embedding_policies.search import InsertionStrategy, GreedyPolicy
"""

from .base import (
    OperationReport,
    coerce_float,
)

from .search import (
    InsertionStrategy,
    BranchAndBoundPolicy,
    StochasticPolicy,
    GreedyPolicy,
)

__all__ = [
    "OperationReport",
    "coerce_float",
    "InsertionStrategy",
    "BranchAndBoundPolicy",
    "StochasticPolicy",
    "GreedyPolicy",
]
