"""
Randomized conflict resolution.

Baseline for branch and bound: instead of branching on every conflicting
layout edge, a single conflicting edge is chosen uniformly at random and
committed, until the remaining candidate paths are conflict free.
"""

from typing import List, Optional, TYPE_CHECKING
import logging
import time

import numpy as np

from embedding_policies import StochasticPolicy

from ..ops.state import EmbeddingState
from .branch_and_bound import (
    BranchAndBoundResult,
    apply_solution,
    expandable_edges,
    relative_gap,
)

if TYPE_CHECKING:
    from ..core.embedding import Embedding

logger = logging.getLogger(__name__)


def stochastic_conflict_resolution(
    em: "Embedding",
    policy: Optional[StochasticPolicy] = None,
) -> BranchAndBoundResult:
    """
    Embed all layout edges by forcing random conflicting edges.

    On success the embedding is committed onto em. If a trace fails the
    embedding is left unchanged and the result reports the failure.
    """
    if policy is None:
        policy = StochasticPolicy()

    start_time = time.time()
    rng = np.random.default_rng(policy.seed)
    working = em.copy()
    state = EmbeddingState(working)
    insertions: List[int] = []
    num_potential_leaves = 1

    result = BranchAndBoundResult(success=False, metadata={"policy": policy.to_dict()})

    for iteration in range(policy.max_iterations):
        state.compute_candidate_paths()
        if not state.valid:
            result.errors.append(
                f"Candidate tracing failed after {len(insertions)} forced insertions"
            )
            break
        state.detect_candidate_path_conflicts()
        result.nodes_expanded += 1
        if iteration == 0:
            # Root bound is the only proven one
            result.lower_bound = state.cost_lower_bound()

        logger.debug(
            f"Iteration {iteration}: |Embd| = {len(state.embedded_l_edges)}, "
            f"|Conf| = {len(state.conflicting_l_edges)}, "
            f"LB = {state.cost_lower_bound():.6g}"
        )

        if not state.conflicting_l_edges:
            solution = state.solution()
            apply_solution(em, solution, insertions)
            result.success = True
            result.cost = em.total_embedded_path_length()
            result.gap = max(0.0, relative_gap(result.lower_bound, result.cost))
            break

        choices = expandable_edges(working, state, insertions)
        num_potential_leaves *= len(state.conflicting_l_edges)
        l_e = int(choices[rng.integers(len(choices))])
        state.extend(l_e)
        insertions.append(l_e)
        if not state.valid:
            result.errors.append(f"Forcing layout edge {l_e} left no path for it")
            break
    else:
        result.errors.append(f"No conflict-free state after {policy.max_iterations} iterations")

    result.insertions = insertions
    result.time_elapsed = time.time() - start_time
    result.metadata["num_potential_leaves"] = num_potential_leaves

    if result.success:
        logger.info(
            f"Stochastic conflict resolution finished: cost {result.cost:.6g} "
            f"after {len(insertions)} forced insertions"
        )
    else:
        logger.warning(f"Stochastic conflict resolution failed: {result.errors[-1]}")
    return result


__all__ = ["stochastic_conflict_resolution"]
