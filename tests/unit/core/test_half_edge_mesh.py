"""
Unit tests for HalfEdgeMesh connectivity and rotation queries.

The CCW rotation around vertices is what virtual ports and sector
restrictions rely on, so it is checked against vertex positions.
"""

import math

import numpy as np
import pytest

from layout_embedding.core.mesh import HalfEdgeMesh
from layout_embedding.core.primitives import (
    cube_layout,
    grid_mesh,
    grid_vertex,
    icosphere_mesh,
    quad_layout,
    tetrahedron_layout,
)
from layout_embedding.core.virtual import real_vertex


class TestHalfEdgeConventions:
    """Halfedge pairing and face linkage."""

    def test_grid_sizes(self):
        mesh = grid_mesh(2)

        assert mesh.n_vertices == 9
        assert mesh.n_faces == 8
        assert mesh.n_edges == 16
        assert mesh.n_halfedges == 32

    def test_opposite_and_endpoints(self):
        mesh = grid_mesh(3)

        for h in range(mesh.n_halfedges):
            assert mesh.opposite(mesh.opposite(h)) == h
            assert mesh.halfedge_from(h) == mesh.halfedge_to(mesh.opposite(h))
            assert mesh.edge(h) == h // 2

    def test_face_loops_close(self):
        mesh = grid_mesh(3)

        for f in range(mesh.n_faces):
            hes = mesh.face_halfedges(f)
            assert len(hes) == 3
            for h in hes:
                assert mesh.face(h) == f
                assert mesh.prev(mesh.next(h)) == h

    def test_edge_vertices_follow_halfedge_a(self):
        layout = quad_layout()

        assert layout.edge_vertices(0) == (0, 1)
        assert layout.edge_vertices(2) == (2, 3)
        assert layout.halfedge_from(layout.halfedge_a(3)) == 3

    def test_halfedge_from_to(self):
        mesh = grid_mesh(2)
        a = grid_vertex(2, 0, 0)
        b = grid_vertex(2, 1, 1)

        h = mesh.halfedge_from_to(a, b)
        assert h != -1
        assert mesh.halfedge_from(h) == a
        assert mesh.halfedge_to(h) == b
        # Anti-diagonals are not edges of the grid triangulation
        assert mesh.halfedge_from_to(grid_vertex(2, 1, 0), grid_vertex(2, 0, 1)) == -1


class TestRotation:
    """Rotation of outgoing halfedges around vertices."""

    def test_ccw_and_cw_are_inverse(self):
        mesh = grid_mesh(3)

        for h in range(mesh.n_halfedges):
            assert mesh.rotated_cw(mesh.rotated_ccw(h)) == h
            assert mesh.rotated_ccw(mesh.rotated_cw(h)) == h

    def test_interior_vertex_rotates_ccw(self):
        mesh = grid_mesh(2)
        v = grid_vertex(2, 1, 1)
        center = mesh.position(v)

        angles = []
        for h in mesh.outgoing_halfedges(v):
            d = mesh.position(mesh.halfedge_to(h)) - center
            angles.append(math.atan2(d[1], d[0]))

        assert len(angles) == 6
        steps = [(angles[(i + 1) % 6] - angles[i]) % (2 * math.pi) for i in range(6)]
        assert all(step > 0 for step in steps)
        assert sum(steps) == pytest.approx(2 * math.pi)

    def test_boundary_vertex_starts_at_boundary(self):
        mesh = grid_mesh(2)
        corner = grid_vertex(2, 0, 0)

        h = mesh.any_outgoing_halfedge(corner)
        assert mesh.is_boundary_halfedge(h)
        assert mesh.degree(corner) == 3

    def test_isolated_vertex_has_no_halfedges(self):
        mesh = HalfEdgeMesh([[0, 1, 2]], n_vertices=4)

        assert mesh.any_outgoing_halfedge(3) == -1
        assert list(mesh.outgoing_halfedges(3)) == []
        assert mesh.ring(3) == []


class TestRing:
    """Virtual vertex ring around target vertices."""

    def test_interior_ring_alternates(self):
        mesh = grid_mesh(2)
        ring = mesh.ring(grid_vertex(2, 1, 1))

        assert len(ring) == 12
        for i, vv in enumerate(ring):
            assert vv.is_real == (i % 2 == 0)

    def test_corner_ring(self):
        mesh = grid_mesh(1)
        ring = mesh.ring(grid_vertex(1, 0, 0))

        # Three neighbours, two incident triangles
        assert len(ring) == 5
        assert ring[0] == real_vertex(grid_vertex(1, 0, 1))
        assert ring[1] == real_vertex(grid_vertex(1, 1, 0))

    def test_ring_index_matches_ring(self):
        mesh = grid_mesh(3)
        v = grid_vertex(3, 1, 2)

        index = mesh.ring_index(v)
        for i, vv in enumerate(mesh.ring(v)):
            assert index[vv] == i

    def test_ring_edges_are_opposite(self):
        mesh = grid_mesh(2)
        v = grid_vertex(2, 1, 1)

        for vv in mesh.ring(v):
            if not vv.is_real:
                assert v not in mesh.edge_vertices(vv.index)
                assert mesh.face_with_edge_and_vertex(vv.index, v) != -1


class TestFaceQueries:
    """Face lookups used by segment classification."""

    def test_opposite_vertex(self):
        mesh = HalfEdgeMesh([[0, 1, 2]], positions=np.eye(3))

        h = mesh.halfedge_from_to(0, 1)
        assert mesh.opposite_vertex(h) == 2
        assert mesh.opposite_vertex(mesh.opposite(h)) == -1

    def test_common_face(self):
        mesh = HalfEdgeMesh([[0, 1, 2], [0, 2, 3]], positions=np.zeros((4, 3)))
        e01 = mesh.halfedge_from_to(0, 1) >> 1
        e12 = mesh.halfedge_from_to(1, 2) >> 1
        e23 = mesh.halfedge_from_to(2, 3) >> 1

        assert mesh.common_face(e01, e12) == 0
        assert mesh.common_face(e01, e23) == -1

    def test_surface_area(self):
        mesh = grid_mesh(2, spacing=0.5)

        assert mesh.surface_area() == pytest.approx(1.0)


class TestConstructionErrors:
    """Malformed input raises ValueError."""

    def test_non_manifold_halfedge(self):
        with pytest.raises(ValueError):
            HalfEdgeMesh([[0, 1, 2], [0, 1, 3]])

    def test_repeated_vertex(self):
        with pytest.raises(ValueError):
            HalfEdgeMesh([[0, 1, 1]])

    def test_degenerate_face(self):
        with pytest.raises(ValueError):
            HalfEdgeMesh([[0, 1]])

    def test_out_of_range_vertex(self):
        with pytest.raises(ValueError):
            HalfEdgeMesh([[0, 1, 5]], n_vertices=3)

    def test_position_count_mismatch(self):
        with pytest.raises(ValueError):
            HalfEdgeMesh([[0, 1, 2]], n_vertices=3, positions=np.zeros((4, 3)))


class TestLayoutPrimitives:
    """Closed layout meshes used in tests and examples."""

    def test_tetrahedron_is_closed(self):
        layout = tetrahedron_layout()

        assert layout.n_vertices == 4
        assert layout.n_edges == 6
        assert not any(layout.is_boundary_edge(e) for e in range(layout.n_edges))
        assert all(layout.degree(v) == 3 for v in range(4))

    def test_cube_is_closed(self):
        layout = cube_layout()

        assert (layout.n_vertices, layout.n_edges, layout.n_faces) == (8, 12, 6)
        assert not any(layout.is_boundary_edge(e) for e in range(layout.n_edges))
        assert all(layout.degree(v) == 3 for v in range(8))

    def test_quad_edges_are_boundary(self):
        layout = quad_layout()

        assert layout.n_edges == 4
        assert all(layout.is_boundary_edge(e) for e in range(4))


class TestConversions:
    """trimesh and networkx interoperability."""

    def test_trimesh_round_trip(self):
        mesh = grid_mesh(3)
        tri = mesh.to_trimesh()

        assert len(tri.faces) == mesh.n_faces
        back = HalfEdgeMesh.from_trimesh(tri)
        assert back.n_edges == mesh.n_edges
        np.testing.assert_allclose(back.positions, mesh.positions)

    def test_icosphere_is_closed(self):
        mesh = icosphere_mesh(subdivisions=1)

        assert mesh.n_vertices - mesh.n_edges + mesh.n_faces == 2
        assert not any(mesh.is_boundary_edge(e) for e in range(mesh.n_edges))

    def test_networkx_graph(self):
        mesh = grid_mesh(2)
        graph = mesh.to_networkx()

        assert graph.number_of_nodes() == mesh.n_vertices
        assert graph.number_of_edges() == mesh.n_edges
        a, b = mesh.edge_vertices(0)
        assert graph[a][b][0]["weight"] == pytest.approx(mesh.edge_length(0))

    def test_with_positions(self):
        mesh = grid_mesh(2)
        moved = mesh.with_positions(mesh.positions * 2.0)

        assert moved.faces == mesh.faces
        assert moved.n_edges == mesh.n_edges
        assert moved.surface_area() == pytest.approx(4.0 * mesh.surface_area())
