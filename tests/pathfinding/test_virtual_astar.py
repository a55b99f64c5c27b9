"""
Tests for A* tracing of virtual paths on a target mesh.

Paths may run along target edges or cut through triangles via edge points,
so straight lines in any grid direction are found exactly.
"""

import math

import numpy as np
import pytest

from layout_embedding.core.embedding import Embedding
from layout_embedding.core.errors import EmbeddingInvariantError
from layout_embedding.core.mesh import HalfEdgeMesh
from layout_embedding.core.primitives import grid_mesh, grid_vertex, quad_layout
from layout_embedding.core.virtual import path_length, real_vertex, segment_element
from layout_embedding.ops.pathfinding import find_virtual_path


def make_square_embedding(n=4):
    target = grid_mesh(n)
    matching = [
        grid_vertex(n, 0, 0),
        grid_vertex(n, n, 0),
        grid_vertex(n, n, n),
        grid_vertex(n, 0, n),
    ]
    return Embedding(quad_layout(), target, matching)


class TestShortestPaths:
    """Unobstructed shortest paths."""

    def test_straight_along_edges(self):
        em = make_square_embedding()

        result = find_virtual_path(em, grid_vertex(4, 0, 0), grid_vertex(4, 4, 0))

        assert result.success
        assert result.path_length == pytest.approx(4.0)
        assert result.path == [real_vertex(grid_vertex(4, i, 0)) for i in range(5)]

    def test_diagonal(self):
        em = make_square_embedding()

        result = find_virtual_path(em, grid_vertex(4, 0, 0), grid_vertex(4, 4, 4))

        assert result.success
        assert result.path_length == pytest.approx(4.0 * math.sqrt(2.0))

    def test_anti_diagonal_crosses_triangles(self):
        em = make_square_embedding()
        target = em.target_mesh

        result = find_virtual_path(em, grid_vertex(4, 4, 0), grid_vertex(4, 0, 4))

        assert result.success
        assert result.path_length == pytest.approx(4.0 * math.sqrt(2.0))
        assert any(not vv.is_real for vv in result.path)
        assert path_length(target, result.path) == pytest.approx(result.path_length)

    def test_path_is_adjacent_chain(self):
        em = make_square_embedding(6)
        target = em.target_mesh

        result = find_virtual_path(em, grid_vertex(6, 1, 2), grid_vertex(6, 5, 3))

        assert result.success
        # Raises if two consecutive virtual vertices share no edge or face
        for a, b in zip(result.path, result.path[1:]):
            segment_element(target, a, b)

    def test_result_to_dict(self):
        em = make_square_embedding()

        result = find_virtual_path(em, grid_vertex(4, 0, 0), grid_vertex(4, 1, 0))
        d = result.to_dict()

        assert d["success"] is True
        assert d["path"][0] == f"V{grid_vertex(4, 0, 0)}"
        assert d["nodes_explored"] >= 2


class TestObstacles:
    """Matching vertices, restrictions and unreachable goals."""

    def test_avoids_matching_vertices(self):
        target = grid_mesh(4)
        blocker = grid_vertex(4, 2, 0)
        matching = [grid_vertex(4, 0, 0), grid_vertex(4, 4, 0), grid_vertex(4, 4, 4), blocker]
        em = Embedding(quad_layout(), target, matching)

        path = em.find_shortest_path(0)

        assert path
        assert real_vertex(blocker) not in path
        assert em.path_length(path) > 4.0

    def test_restricted_first_step(self):
        em = make_square_embedding()
        up = real_vertex(grid_vertex(4, 1, 2))

        result = find_virtual_path(
            em, grid_vertex(4, 1, 1), grid_vertex(4, 3, 1), allowed_start={up}
        )

        assert result.success
        assert result.path[1] == up
        assert result.path_length > 2.0

    def test_restricted_last_step(self):
        em = make_square_embedding()
        below = real_vertex(grid_vertex(4, 3, 0))

        result = find_virtual_path(
            em, grid_vertex(4, 1, 1), grid_vertex(4, 3, 1), allowed_end={below}
        )

        assert result.success
        assert result.path[-2] == below

    def test_unreachable_goal(self):
        positions = np.array([
            [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0],
            [5.0, 0.0, 0.0], [6.0, 0.0, 0.0], [5.0, 1.0, 0.0],
        ])
        target = HalfEdgeMesh([[0, 1, 2], [3, 4, 5]], positions=positions)
        em = Embedding(quad_layout(), target, [0, 3, 4, 1])

        result = find_virtual_path(em, 0, 3)

        assert not result.success
        assert result.path == []
        assert result.errors

    def test_same_source_and_goal_raises(self):
        em = make_square_embedding()

        with pytest.raises(EmbeddingInvariantError):
            find_virtual_path(em, 0, 0)
