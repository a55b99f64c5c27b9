"""
Search for complete, conflict-free layout embeddings.
"""

from .branch_and_bound import BranchAndBoundResult, branch_and_bound
from .stochastic import stochastic_conflict_resolution
from .strategies import INSERTION_ORDERS, embed_greedy, insertion_order

__all__ = [
    "BranchAndBoundResult",
    "branch_and_bound",
    "stochastic_conflict_resolution",
    "INSERTION_ORDERS",
    "embed_greedy",
    "insertion_order",
]
