import unittest

import numpy as np

from src.core.boundary_check import (
    find_boundary_intersection,
    is_polygon_simple,
    segments_intersect,
)
from src.core.halfedge_mesh import HalfedgeMesh


SQUARE_FACES = np.array([[0, 1, 2], [0, 2, 3]], dtype=np.int64)


class TestSegmentsIntersect(unittest.TestCase):
    def test_proper_crossing(self):
        self.assertTrue(segments_intersect([0, 0], [1, 1], [0, 1], [1, 0]))

    def test_disjoint(self):
        self.assertFalse(segments_intersect([0, 0], [1, 0], [0, 1], [1, 1]))

    def test_touching_endpoint_counts(self):
        self.assertTrue(segments_intersect([0, 0], [1, 0], [0.5, 0.0], [0.5, 1.0]))

    def test_collinear_overlap_counts(self):
        self.assertTrue(segments_intersect([0, 0], [2, 0], [1, 0], [3, 0]))
        self.assertFalse(segments_intersect([0, 0], [1, 0], [2, 0], [3, 0]))

    def test_vectorized(self):
        q1 = np.array([[0.0, 1.0], [0.0, 2.0]])
        q2 = np.array([[1.0, 0.0], [1.0, 2.0]])
        out = segments_intersect([0, 0], [1, 1], q1, q2)
        np.testing.assert_array_equal(out, [True, False])


class TestBoundarySimplicity(unittest.TestCase):
    def test_square_is_simple(self):
        mesh = HalfedgeMesh(SQUARE_FACES)
        uv = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=np.float64)
        bhd = mesh.border_loops()[0]
        self.assertTrue(is_polygon_simple(mesh, bhd, uv))
        self.assertIsNone(find_boundary_intersection(mesh, bhd, uv))

    def test_hourglass_is_rejected(self):
        mesh = HalfedgeMesh(SQUARE_FACES)
        # Edges 0-1 and 2-3 cross at (0.5, 0.5).
        uv = np.array([[0, 0], [1, 1], [1, 0], [0, 1]], dtype=np.float64)
        bhd = mesh.border_loops()[0]
        self.assertFalse(is_polygon_simple(mesh, bhd, uv))

        hit = find_boundary_intersection(mesh, bhd, uv)
        self.assertIsNotNone(hit)
        self.assertTrue(mesh.is_border(hit.halfedge_a))
        self.assertTrue(mesh.is_border(hit.halfedge_b))
        self.assertEqual(hit.segment_a.shape, (2, 2))
        crossing = {
            frozenset((int(mesh.source(h)), int(mesh.target(h))))
            for h in (hit.halfedge_a, hit.halfedge_b)
        }
        self.assertEqual(crossing, {frozenset((0, 1)), frozenset((2, 3))})

    def test_adjacent_edges_are_exempt(self):
        # Shared endpoints of consecutive border edges never count as a crossing,
        # even at a reflex vertex.
        mesh = HalfedgeMesh(np.array([[0, 1, 3], [1, 2, 3], [0, 3, 4], [0, 4, 5]]))
        uv = np.array(
            [[0, 0], [2, 0], [2, 1], [1, 1], [1, 2], [0, 2]], dtype=np.float64
        )
        bhd = mesh.border_loops()[0]
        self.assertTrue(is_polygon_simple(mesh, bhd, uv))

    def test_triangle_border_is_trivially_simple(self):
        mesh = HalfedgeMesh(np.array([[0, 1, 2]]))
        uv = np.array([[0, 0], [1, 0], [0, 1]], dtype=np.float64)
        self.assertTrue(is_polygon_simple(mesh, mesh.border_loops()[0], uv))

    def test_vertex_touching_far_edge_is_rejected(self):
        mesh = HalfedgeMesh(np.array([[0, 1, 3], [1, 2, 3], [0, 3, 4], [0, 4, 5]]))
        # Vertex 3 pushed onto edge 5-0 (the x=0 side).
        uv = np.array(
            [[0, 0], [2, 0], [2, 1], [0, 1], [1, 2], [0, 2]], dtype=np.float64
        )
        self.assertFalse(is_polygon_simple(mesh, mesh.border_loops()[0], uv))


if __name__ == "__main__":
    unittest.main()
