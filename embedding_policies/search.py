"""
Search policies for layout embedding.

This module contains policy dataclasses for branch-and-bound search,
the stochastic conflict-resolution baseline, and greedy insertion.

All policies are JSON-serializable and support from_dict/to_dict methods.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .base import coerce_float


class InsertionStrategy(str, Enum):
    """Order in which layout edges are inserted by greedy embedding."""
    NATURAL = "natural"
    SHORTEST_FIRST = "shortest_first"
    SPANNING_TREE_FIRST = "spanning_tree_first"


@dataclass
class BranchAndBoundPolicy:
    """
    Policy for branch-and-bound embedding search.

    Controls termination (time limit and optimality gap) and whether
    structurally identical search states are deduplicated by hash.

    JSON Schema:
    {
        "time_limit": float (seconds),
        "use_hashing": bool,
        "max_gap": float (fraction in [0, 1))
    }
    """
    time_limit: float = 60.0
    use_hashing: bool = True
    max_gap: float = 0.03

    def __post_init__(self):
        self.time_limit = coerce_float(self.time_limit, 60.0)
        self.max_gap = coerce_float(self.max_gap, 0.03)
        if self.max_gap < 0.0 or self.max_gap >= 1.0:
            raise ValueError(f"max_gap must be in [0, 1), got {self.max_gap}")
        if self.time_limit <= 0.0:
            raise ValueError(f"time_limit must be positive, got {self.time_limit}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time_limit": self.time_limit,
            "use_hashing": self.use_hashing,
            "max_gap": self.max_gap,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BranchAndBoundPolicy":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


@dataclass
class StochasticPolicy:
    """
    Policy for the randomized conflict-resolution baseline.

    JSON Schema:
    {
        "seed": int or null,
        "max_iterations": int
    }
    """
    seed: Optional[int] = None
    max_iterations: int = 10_000

    def __post_init__(self):
        self.max_iterations = int(self.max_iterations)
        if self.max_iterations <= 0:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed": self.seed,
            "max_iterations": self.max_iterations,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StochasticPolicy":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


@dataclass
class GreedyPolicy:
    """
    Policy for greedy one-edge-at-a-time embedding.

    JSON Schema:
    {
        "strategy": "natural" | "shortest_first" | "spanning_tree_first"
    }
    """
    strategy: InsertionStrategy = InsertionStrategy.NATURAL

    def __post_init__(self):
        # Raises ValueError for unknown strategy names
        self.strategy = InsertionStrategy(self.strategy)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GreedyPolicy":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


__all__ = [
    "InsertionStrategy",
    "BranchAndBoundPolicy",
    "StochasticPolicy",
    "GreedyPolicy",
]
