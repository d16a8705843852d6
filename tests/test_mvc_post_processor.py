import tempfile
import unittest
from pathlib import Path

import numpy as np

from src.core.diagnostics import DiagnosticsWriter
from src.core.halfedge_mesh import HalfedgeMesh
from src.core.linear_solver import BiCGSTABSolver, DirectSolver
from src.core.mesh_loader import MeshData
from src.core.mvc_post_processor import (
    ErrorCode,
    MVCPostProcessor,
    assign_solution,
    repair_uv_flips,
)
from src.core.output_paths import GAP_EXTERIOR_SVG, NON_SIMPLE_BOUNDARY_SVG
from src.core.uv_metrics import count_flipped_faces


def _processor(**kwargs):
    kwargs.setdefault("solver", DirectSolver())
    kwargs.setdefault("check_coloring", True)
    kwargs.setdefault("diagnostics", DiagnosticsWriter(None))
    return MVCPostProcessor(**kwargs)


def _fan_faces(n_rim: int) -> np.ndarray:
    center = n_rim
    return np.array([[j, (j + 1) % n_rim, center] for j in range(n_rim)], dtype=np.int64)


def _mvc_average(center: np.ndarray, rim: np.ndarray) -> np.ndarray:
    """Mean value coordinates of center w.r.t. a star-shaped rim (CCW order)."""
    d = rim - center
    r = np.linalg.norm(d, axis=1)
    theta = np.arctan2(d[:, 1], d[:, 0])
    wedge = np.mod(np.roll(theta, -1) - theta, 2.0 * np.pi)  # angle from rim j to rim j+1
    t = np.tan(0.5 * wedge)
    w = (np.roll(t, 1) + t) / r
    return (w[:, None] * rim).sum(axis=0) / w.sum()


class _FailingSolver:
    def __init__(self):
        self.calls = 0

    def solve(self, A, b):
        self.calls += 1
        return np.full_like(b, np.nan), False


class TestMVCPostProcessor(unittest.TestCase):
    def test_unit_square_is_unchanged(self):
        mesh = HalfedgeMesh(np.array([[0, 1, 2], [0, 2, 3]]))
        uv = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=np.float64)
        before = uv.copy()

        report = _processor().run(mesh, mesh.border_loops()[0], uv)

        self.assertEqual(report.status, ErrorCode.OK)
        self.assertTrue(report.ok)
        self.assertEqual(report.n_fixed, 4)
        self.assertEqual(report.n_gap_faces, 0)
        np.testing.assert_allclose(uv, before, atol=1e-12)

    def test_interior_vertex_is_mean_value_average(self):
        angles = np.linspace(0.0, 2.0 * np.pi, 5, endpoint=False) + 0.1
        rim = np.column_stack([np.cos(angles), 1.3 * np.sin(angles)])
        center = np.array([0.2, -0.15])
        uv = np.vstack([rim, center])
        mesh = HalfedgeMesh(_fan_faces(5))

        for solver in (DirectSolver(), BiCGSTABSolver()):
            work = uv.copy()
            status = _processor(solver=solver).parameterize(mesh, mesh.border_loops()[0], work)
            self.assertEqual(status, ErrorCode.OK)
            np.testing.assert_allclose(work[:5], rim, atol=1e-8)
            np.testing.assert_allclose(work[5], _mvc_average(center, rim), atol=1e-8)

    def test_flipped_center_is_pulled_inside(self):
        rim = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=np.float64)
        uv = np.vstack([rim, [[1.3, 0.5]]])
        faces = _fan_faces(4)
        mesh = HalfedgeMesh(faces)
        self.assertGreaterEqual(count_flipped_faces(uv, faces), 1)

        report = _processor().run(mesh, mesh.border_loops()[0], uv)

        self.assertEqual(report.status, ErrorCode.OK)
        np.testing.assert_allclose(uv[:4], rim, atol=1e-12)
        self.assertTrue(np.all((uv[4] > 0.0) & (uv[4] < 1.0)))
        self.assertEqual(count_flipped_faces(uv, faces), 0)

    def test_l_shape_reflex_vertex_uses_gap_face(self):
        faces = np.array([[0, 1, 3], [1, 2, 3], [0, 3, 4], [0, 4, 5]], dtype=np.int64)
        mesh = HalfedgeMesh(faces)
        uv = np.array([[0, 0], [2, 0], [2, 1], [1.2, 0.9], [1, 2], [0, 2]], dtype=np.float64)
        initial = uv.copy()

        report = _processor().run(mesh, mesh.border_loops()[0], uv)

        self.assertEqual(report.status, ErrorCode.OK)
        self.assertEqual(report.n_fixed, 5)
        self.assertEqual(report.n_gap_faces, 1)
        # Only the reflex corner moves; its star is 1 -> 2 -> (gap) -> 4 -> 0.
        np.testing.assert_allclose(
            np.delete(uv, 3, axis=0), np.delete(initial, 3, axis=0), atol=1e-12
        )
        star = initial[[1, 2, 4, 0]]
        np.testing.assert_allclose(uv[3], _mvc_average(initial[3], star), atol=1e-10)
        np.testing.assert_allclose(uv[3], initial[3], atol=1e-10)

    def test_non_simple_boundary_is_rejected_without_changes(self):
        mesh = HalfedgeMesh(np.array([[0, 1, 2], [0, 2, 3]]))
        uv = np.array([[0, 0], [1, 1], [1, 0], [0, 1]], dtype=np.float64)
        before = uv.copy()

        report = _processor().run(mesh, mesh.border_loops()[0], uv)

        self.assertEqual(report.status, ErrorCode.ERROR_NON_SIMPLE_BOUNDARY)
        self.assertFalse(report.ok)
        np.testing.assert_array_equal(uv, before)

    def test_solver_failure_leaves_uv_untouched(self):
        mesh = HalfedgeMesh(_fan_faces(4))
        uv = np.array([[0, 0], [1, 0], [1, 1], [0, 1], [1.3, 0.5]], dtype=np.float64)
        before = uv.copy()
        solver = _FailingSolver()

        status = _processor(solver=solver).parameterize(mesh, mesh.border_loops()[0], uv)

        self.assertEqual(status, ErrorCode.ERROR_CANNOT_SOLVE_LINEAR_SYSTEM)
        self.assertEqual(solver.calls, 1)
        np.testing.assert_array_equal(uv, before)

    def test_second_run_is_a_fixed_point(self):
        mesh = HalfedgeMesh(_fan_faces(4))
        uv = np.array([[0, 0], [1, 0], [1, 1], [0, 1], [1.3, 0.5]], dtype=np.float64)
        proc = _processor()

        self.assertEqual(proc.parameterize(mesh, mesh.border_loops()[0], uv), ErrorCode.OK)
        first = uv.copy()
        self.assertEqual(proc.parameterize(mesh, mesh.border_loops()[0], uv), ErrorCode.OK)
        np.testing.assert_allclose(uv, first, atol=1e-10)

    def test_assign_solution_is_idempotent(self):
        uv = np.zeros((4, 2))
        vimap = np.array([2, 0, 3, 1])
        Xu = np.array([10.0, 11.0, 12.0, 13.0])
        Xv = -Xu

        assign_solution(Xu, Xv, np.arange(4), uv, vimap)
        first = uv.copy()
        assign_solution(Xu, Xv, np.arange(4), uv, vimap)

        np.testing.assert_array_equal(uv, first)
        np.testing.assert_array_equal(uv[:, 0], [12.0, 10.0, 13.0, 11.0])

    def test_vertex_subset_limits_write_back(self):
        mesh = HalfedgeMesh(_fan_faces(4))
        uv = np.array([[0, 0], [1, 0], [1, 1], [0, 1], [1.3, 0.5]], dtype=np.float64)
        before = uv.copy()

        report = _processor().run(mesh, mesh.border_loops()[0], uv, vertices=[0, 1, 2, 3])

        self.assertEqual(report.status, ErrorCode.OK)
        np.testing.assert_allclose(uv, before, atol=1e-12)
        self.assertEqual(tuple(uv[4]), (1.3, 0.5))

    def test_free_vertex_subset_keeps_hull_anchored(self):
        mesh = HalfedgeMesh(_fan_faces(4))
        uv = np.array([[0, 0], [1, 0], [1, 1], [0, 1], [1.3, 0.5]], dtype=np.float64)
        full = uv.copy()
        _processor().run(mesh, mesh.border_loops()[0], full)

        # Hull vertices are left out of the write-back set but still pin the solve.
        report = _processor().run(mesh, mesh.border_loops()[0], uv, vertices=[4])

        self.assertEqual(report.status, ErrorCode.OK)
        np.testing.assert_array_equal(uv[:4], [[0, 0], [1, 0], [1, 1], [0, 1]])
        self.assertTrue(np.all((uv[4] > 0.0) & (uv[4] < 1.0)))
        np.testing.assert_allclose(uv[4], full[4], atol=1e-12)

    def test_permuted_vimap_gives_same_result(self):
        mesh = HalfedgeMesh(_fan_faces(4))
        uv = np.array([[0, 0], [1, 0], [1, 1], [0, 1], [1.3, 0.5]], dtype=np.float64)
        a = uv.copy()
        b = uv.copy()

        _processor().run(mesh, mesh.border_loops()[0], a)
        _processor().run(mesh, mesh.border_loops()[0], b, np.array([3, 0, 4, 1, 2]))

        np.testing.assert_allclose(a, b, atol=1e-10)

    def test_invalid_inputs_raise(self):
        mesh = HalfedgeMesh(np.array([[0, 1, 2], [0, 2, 3]]))
        uv = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=np.float64)
        bhd = mesh.border_loops()[0]
        proc = _processor()

        with self.assertRaises(ValueError):
            proc.run(mesh, 0, uv)  # interior halfedge
        with self.assertRaises(ValueError):
            proc.run(mesh, bhd, uv[:3].copy())
        with self.assertRaises(ValueError):
            proc.run(mesh, bhd, uv.astype(np.float32))
        with self.assertRaises(ValueError):
            proc.run(mesh, bhd, uv, np.array([0, 0, 1, 2]))
        with self.assertRaises(ValueError):
            proc.run(mesh, bhd, uv, faces=[5])
        bad = uv.copy()
        bad[2, 0] = np.nan
        with self.assertRaises(ValueError):
            proc.run(mesh, bhd, bad)

    def test_diagnostics_are_written(self):
        with tempfile.TemporaryDirectory() as td:
            proc = _processor(diagnostics=DiagnosticsWriter(td))

            mesh = HalfedgeMesh(np.array([[0, 1, 2], [0, 2, 3]]))
            hourglass = np.array([[0, 0], [1, 1], [1, 0], [0, 1]], dtype=np.float64)
            proc.run(mesh, mesh.border_loops()[0], hourglass)
            self.assertTrue((Path(td) / NON_SIMPLE_BOUNDARY_SVG).exists())

            l_mesh = HalfedgeMesh(np.array([[0, 1, 3], [1, 2, 3], [0, 3, 4], [0, 4, 5]]))
            l_uv = np.array([[0, 0], [2, 0], [2, 1], [1, 1], [1, 2], [0, 2]], dtype=np.float64)
            proc.run(l_mesh, l_mesh.border_loops()[0], l_uv)
            svg = (Path(td) / GAP_EXTERIOR_SVG).read_text(encoding="utf-8")
            self.assertEqual(svg.count("<polygon"), 1)


class TestRepairUVFlips(unittest.TestCase):
    def _mesh(self, uv):
        vertices = np.column_stack([uv, np.zeros(len(uv))])
        return MeshData(vertices=vertices, faces=_fan_faces(4), uv_coords=uv)

    def test_repair_counts_flips_and_keeps_input(self):
        uv = np.array([[0, 0], [1, 0], [1, 1], [0, 1], [1.3, 0.5]], dtype=np.float64)
        mesh = self._mesh(uv)

        result = repair_uv_flips(mesh, processor=_processor())

        self.assertEqual(result.status, ErrorCode.OK)
        self.assertEqual(result.flipped_before, 1)
        self.assertEqual(result.flipped_after, 0)
        np.testing.assert_array_equal(mesh.uv_coords, uv)
        self.assertFalse(np.shares_memory(result.uv, mesh.uv_coords))

    def test_repair_requires_uv_and_border(self):
        mesh = MeshData(vertices=np.zeros((5, 3)), faces=_fan_faces(4))
        with self.assertRaises(ValueError):
            repair_uv_flips(mesh, processor=_processor())

        tetra = MeshData(
            vertices=np.eye(4, 3),
            faces=np.array([[0, 2, 1], [0, 1, 3], [1, 2, 3], [0, 3, 2]]),
            uv_coords=np.zeros((4, 2)),
        )
        with self.assertRaises(ValueError):
            repair_uv_flips(tetra, processor=_processor())


if __name__ == "__main__":
    unittest.main()
