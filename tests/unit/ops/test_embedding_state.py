"""
Tests for EmbeddingState: extension, candidate paths, bounds, hashing and
connected components.
"""

import itertools
import math

import numpy as np
import pytest

from layout_embedding.core.embedding import Embedding
from layout_embedding.core.errors import EmbeddingInvariantError
from layout_embedding.core.mesh import HalfEdgeMesh
from layout_embedding.core.primitives import grid_mesh, grid_vertex, quad_layout
from layout_embedding.ops.state import EmbeddingState

N = 8


def crossing_embedding():
    matching = [grid_vertex(N, 2, 2), grid_vertex(N, 6, 6), grid_vertex(N, 6, 2), grid_vertex(N, 2, 6)]
    return Embedding(quad_layout(), grid_mesh(N), matching)


def split_square_embedding():
    matching = [grid_vertex(N, 1, 1), grid_vertex(N, 7, 1), grid_vertex(N, 7, 7), grid_vertex(N, 1, 7)]
    return Embedding(HalfEdgeMesh([[0, 1, 2], [0, 2, 3]], n_vertices=4), grid_mesh(N), matching)


def disconnected_embedding():
    positions = np.array([
        [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0],
        [5.0, 0.0, 0.0], [6.0, 0.0, 0.0], [5.0, 1.0, 0.0],
    ])
    target = HalfEdgeMesh([[0, 1, 2], [3, 4, 5]], positions=positions)
    return Embedding(quad_layout(), target, [0, 3, 4, 1])


def sequential_cost(em, order):
    """Cost of committing edges in order, or inf if some edge cannot be traced."""
    state = EmbeddingState(em.copy())
    state.extend_sequence(order)
    return state.embedded_cost if state.valid else math.inf


class TestCandidates:
    """Candidate paths and the lower bound."""

    def test_root_lower_bound(self):
        state = EmbeddingState(crossing_embedding())
        state.compute_candidate_paths()

        expected = 2 * 4.0 + 2 * 4.0 * math.sqrt(2.0)
        assert state.valid
        assert state.embedded_cost == 0.0
        assert state.unembedded_cost == pytest.approx(expected)
        assert state.cost_lower_bound() == pytest.approx(expected)
        assert set(state.candidate_paths) == {0, 1, 2, 3}

    def test_conflict_partition(self):
        state = EmbeddingState(crossing_embedding())
        state.compute_candidate_paths()
        state.detect_candidate_path_conflicts()

        assert state.conflicting_l_edges == {0, 2}
        assert state.non_conflicting_l_edges == {1, 3}
        assert state.conflict_relation == {(0, 2)}

    def test_retracing_is_idempotent(self):
        em = crossing_embedding()
        state = EmbeddingState(em)
        state.compute_candidate_paths()
        first = {l_e: list(c.path) for l_e, c in state.candidate_paths.items()}

        state.compute_candidate_paths()

        assert {l_e: c.path for l_e, c in state.candidate_paths.items()} == first

    def test_conflicts_require_candidates(self):
        state = EmbeddingState(crossing_embedding())

        with pytest.raises(EmbeddingInvariantError):
            state.detect_candidate_path_conflicts()

    def test_lower_bound_is_admissible(self):
        em = crossing_embedding()
        state = EmbeddingState(em)
        state.compute_candidate_paths()
        lower_bound = state.cost_lower_bound()

        costs = [sequential_cost(em, order) for order in itertools.permutations(range(4))]
        feasible = [c for c in costs if math.isfinite(c)]

        assert feasible
        assert all(lower_bound <= c + 1e-9 for c in feasible)
        # Resolving the crossing costs something
        assert min(feasible) > lower_bound + 1e-9

    def test_solution_covers_all_edges(self):
        em = crossing_embedding()
        state = EmbeddingState(em)
        state.extend(0)
        state.compute_candidate_paths()

        solution = state.solution()

        assert set(solution) == {0, 1, 2, 3}
        assert solution[0] == em.get_embedded_path(0)


class TestExtend:
    """Committing edges through the state."""

    def test_extend_traces_and_commits(self):
        em = crossing_embedding()
        state = EmbeddingState(em)

        state.extend(0)

        assert state.valid
        assert em.is_embedded(0)
        assert state.insertions == [0]
        assert state.embedded_cost == pytest.approx(4.0 * math.sqrt(2.0))

    def test_forcing_one_crossing_edge_reroutes_the_other(self):
        em = crossing_embedding()
        state = EmbeddingState(em)
        state.extend(0)
        state.compute_candidate_paths()

        assert state.candidate_paths[2].cost > 4.0 * math.sqrt(2.0) + 1e-9
        assert state.cost_lower_bound() > 2 * 4.0 + 2 * 4.0 * math.sqrt(2.0)

    def test_extend_with_explicit_path(self):
        em = crossing_embedding()
        path = em.find_shortest_path(2)
        state = EmbeddingState(em)

        state.extend(1, path)

        assert em.get_embedded_path(2) == path
        assert state.embedded_cost == pytest.approx(4.0)

    def test_extend_twice_raises(self):
        state = EmbeddingState(crossing_embedding())
        state.extend(1)

        with pytest.raises(EmbeddingInvariantError):
            state.extend(1)

    def test_failed_trace_invalidates(self):
        em = disconnected_embedding()
        state = EmbeddingState(em)

        state.extend(0)

        assert not state.valid
        assert state.cost_lower_bound() == math.inf
        assert not em.is_embedded(0)

    def test_extend_sequence_stops_at_failure(self):
        em = disconnected_embedding()
        state = EmbeddingState(em)

        # Layout edge 3 joins target vertices 1 and 0 and can be traced
        state.extend_sequence([3, 0, 1])

        assert not state.valid
        assert state.insertions == [3]

    def test_failed_candidates_invalidate(self):
        state = EmbeddingState(disconnected_embedding())

        state.compute_candidate_paths()

        assert not state.valid
        assert state.candidate_paths == {}


class TestHash:
    """Deterministic hashing of committed paths."""

    def test_same_insertions_same_hash(self):
        a = EmbeddingState(crossing_embedding())
        b = EmbeddingState(crossing_embedding())
        a.extend_sequence([0, 1])
        b.extend_sequence([0, 1])

        assert a.hash() == b.hash()

    def test_different_insertions_differ(self):
        a = EmbeddingState(crossing_embedding())
        b = EmbeddingState(crossing_embedding())
        a.extend(0)
        b.extend(2)

        assert a.hash() != b.hash()

    def test_empty_state_hash_is_stable(self):
        assert EmbeddingState(crossing_embedding()).hash() == EmbeddingState(crossing_embedding()).hash()


class TestConnectedComponents:
    """Regions of the layout separated by embedded edges."""

    def test_no_embedded_edges(self):
        state = EmbeddingState(split_square_embedding())

        assert state.count_connected_components() == 1

    def test_embedded_diagonal_splits_faces(self):
        em = split_square_embedding()
        diagonal = em.layout_mesh.halfedge_from_to(0, 2)
        state = EmbeddingState(em)

        state.extend(diagonal >> 1)

        assert state.count_connected_components() == 2

    def test_boundary_edges_are_skipped(self):
        em = split_square_embedding()
        state = EmbeddingState(em)
        state.extend(em.layout_mesh.halfedge_from_to(0, 1) >> 1)

        assert state.count_connected_components() == 1
