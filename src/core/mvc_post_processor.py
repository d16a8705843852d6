"""
MVC Post-Processor Module
뒤집힌 삼각형 복구를 위한 convex virtual boundary MVC 후처리

초기 UV(ARAP/LSCM 등)의 경계 다각형을 자신의 convex hull에 끼워 넣고,
hull과 경계 사이의 빈 공간을 삼각분할한 뒤 Mean Value Coordinates
선형 시스템을 풀어 뒤집힘 없는 2D 임베딩을 만듭니다.

처리 순서:
    simplicity check -> gap triangulation -> face coloring
    -> fix hull vertices -> assemble A -> build RHS -> solve -> write UV

Based on: "Mesh Parameterization with a Virtual Boundary"
(Karni, Gotsman & Gortler, 2005)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Optional, Tuple

import numpy as np
from scipy import sparse

from .boundary_check import find_boundary_intersection
from .diagnostics import DiagnosticsWriter
from .gap_triangulation import (
    OUTSIDE,
    GapTriangulation,
    TriangulationError,
    check_face_coloring,
    color_faces,
    fix_convex_hull_border,
    triangulate_convex_hull,
)
from .halfedge_mesh import HalfedgeMesh
from .linear_solver import SparseLinearSolver, make_solver
from .logging_utils import log_once
from .mesh_loader import MeshData
from .mvc_system import (
    MVCSystemBuilder,
    compute_mvc_rhs,
    mesh_face_corners,
    triangle_corners,
)
from .runtime_defaults import DEFAULTS
from .uv_metrics import count_flipped_faces

_LOGGER = logging.getLogger(__name__)


class ErrorCode(Enum):
    OK = "ok"
    ERROR_NON_SIMPLE_BOUNDARY = "non_simple_boundary"
    ERROR_CANNOT_SOLVE_LINEAR_SYSTEM = "cannot_solve_linear_system"


@dataclass
class ParameterizationReport:
    """
    parameterize 한 번의 실행 결과

    Attributes:
        status: 결과 코드
        n_fixed: convex hull에 고정된 정점 수
        n_gap_faces: hull gap을 채운 외부 면 수
        n_free_corners: MVC 가중치를 계산한 코너 수
    """
    status: ErrorCode
    n_fixed: int = 0
    n_gap_faces: int = 0
    n_free_corners: int = 0

    @property
    def ok(self) -> bool:
        return self.status is ErrorCode.OK


def assign_solution(
    Xu: np.ndarray,
    Xv: np.ndarray,
    vertices: np.ndarray,
    uvmap: np.ndarray,
    vimap: np.ndarray,
) -> None:
    """해 벡터 (Xu, Xv)를 UV 맵에 기록"""
    vertices = np.asarray(vertices, dtype=np.int64).reshape(-1)
    index = np.asarray(vimap, dtype=np.int64)[vertices]
    uvmap[vertices, 0] = Xu[index]
    uvmap[vertices, 1] = Xv[index]


class MVCPostProcessor:
    """
    Convex virtual boundary MVC 후처리기

    ARAP 등의 결과에 남은 (소수의) 뒤집힌 삼각형을 복구합니다.
    호출마다 필요한 상태(삼각분할, 고정 플래그, 행렬)는 호출 범위 안에서만 존재합니다.
    """

    def __init__(
        self,
        solver: Optional[SparseLinearSolver] = None,
        check_coloring: Optional[bool] = None,
        diagnostics: Optional[DiagnosticsWriter] = None,
    ):
        """
        Args:
            solver: solve(A, b) -> (x, success)를 제공하는 희소 솔버 (기본: BiCGSTAB + ILU)
            check_coloring: 면 색칠 검증 실행 여부 (기본: 환경 변수)
            diagnostics: 진단 SVG 싱크 (기본: 환경 변수 디렉터리, 없으면 비활성)
        """
        self.solver = solver if solver is not None else make_solver()
        self.check_coloring = DEFAULTS.check_coloring if check_coloring is None else bool(check_coloring)
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticsWriter(DEFAULTS.diagnostics_dir)

    # ------------------------------------------------------------------
    # 단계별 연산
    # ------------------------------------------------------------------

    def prepare_ct_for_parameterization(self, ct: GapTriangulation, vpmap: np.ndarray) -> np.ndarray:
        """면 색칠 + convex hull 정점 고정. 고정된 메쉬 정점 배열 반환"""
        color_faces(ct)
        if self.check_coloring and not check_face_coloring(ct):
            raise TriangulationError("face coloring violates the inside/outside parity")
        _LOGGER.debug("Face coloring done (%d gap faces)", int(np.count_nonzero(ct.colors == OUTSIDE)))

        if self.diagnostics.enabled:
            self.diagnostics.dump_gap_exterior_faces(ct.points, ct.faces_with_color(OUTSIDE))

        return fix_convex_hull_border(ct, vpmap)

    def compute_mvc_matrix(
        self,
        ct: GapTriangulation,
        mesh: HalfedgeMesh,
        faces: np.ndarray,
        builder: MVCSystemBuilder,
    ) -> Tuple[sparse.csr_matrix, int]:
        """
        행렬 A 조립

        convex hull 안에서 메쉬에 없는 면(색 -1)은 ct에서, 나머지는 메쉬 면에서 가져옵니다.
        """
        if np.any(ct.colors == 0):
            raise TriangulationError("constrained triangulation has uncolored faces")

        gap = ct.faces_with_color(OUTSIDE)
        n_corners = builder.add_corners(ct.vertex_info[triangle_corners(gap)])
        n_corners += builder.add_corners(mesh_face_corners(mesh, faces))
        return builder.build(), n_corners

    def solve_mvc(
        self,
        A: sparse.csr_matrix,
        Bu: np.ndarray,
        Bv: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray, bool]:
        """A*Xu = Bu, A*Xv = Bv. 둘 중 하나라도 실패하면 실패"""
        Xu, ok_u = self.solver.solve(A, Bu)
        if not ok_u:
            return Xu, np.zeros_like(Bv), False
        Xv, ok_v = self.solver.solve(A, Bv)
        return Xu, Xv, bool(ok_v)

    def parameterize_convex_hull_with_mvc(
        self,
        mesh: HalfedgeMesh,
        vertices: np.ndarray,
        faces: np.ndarray,
        ct: GapTriangulation,
        uvmap: np.ndarray,
        vimap: np.ndarray,
        vpmap: np.ndarray,
    ) -> ParameterizationReport:
        """볼록화된 메쉬에서 MVC 시스템을 풀고 UV를 갱신"""
        n = mesh.n_vertices
        builder = MVCSystemBuilder(uvmap, vimap, vpmap, n)

        A, n_corners = self.compute_mvc_matrix(ct, mesh, faces, builder)

        row_vertices = np.empty(n, dtype=np.int64)
        row_vertices[vimap] = np.arange(n, dtype=np.int64)
        Bu, Bv = compute_mvc_rhs(
            uvmap, vimap, vpmap, n,
            identity_rows=builder.untouched_rows(),
            row_vertices=row_vertices,
        )

        Xu, Xv, ok = self.solve_mvc(A, Bu, Bv)
        if not ok:
            _LOGGER.warning("MVC linear system could not be solved (n=%d, nnz=%d)", n, A.nnz)
            return ParameterizationReport(
                status=ErrorCode.ERROR_CANNOT_SOLVE_LINEAR_SYSTEM,
                n_free_corners=n_corners,
            )

        assign_solution(Xu, Xv, vertices, uvmap, vimap)
        return ParameterizationReport(status=ErrorCode.OK, n_free_corners=n_corners)

    # ------------------------------------------------------------------
    # 진입점
    # ------------------------------------------------------------------

    def run(
        self,
        mesh: HalfedgeMesh,
        bhd: int,
        uvmap: np.ndarray,
        vimap: Optional[np.ndarray] = None,
        *,
        vertices: Optional[np.ndarray] = None,
        faces: Optional[np.ndarray] = None,
    ) -> ParameterizationReport:
        """
        경계 halfedge bhd의 루프를 convex hull에 끼워 MVC로 UV를 다시 계산합니다.

        Args:
            mesh: halfedge 메쉬
            bhd: 경계 루프의 시작 halfedge (경계 halfedge여야 함)
            uvmap: (N, 2) UV 배열. 성공 시에만 제자리에서 갱신됩니다.
            vimap: (N,) 정점 -> 행 인덱스 (기본: 항등)
            vertices: 갱신 대상 정점 (기본: 전체)
            faces: 가중치에 사용할 메쉬 면 (기본: 전체)

        Returns:
            ParameterizationReport

        Raises:
            ValueError: 잘못된 입력
            DegenerateTriangleError: 길이 0 엣지를 가진 코너
            TriangulationError: 삼각분할 실패
        """
        uvmap, vimap, vertices, faces = self._validate(mesh, bhd, uvmap, vimap, vertices, faces)

        intersection = find_boundary_intersection(mesh, bhd, uvmap)
        if intersection is not None:
            _LOGGER.warning(
                "Border is not simple: halfedges %d and %d intersect (%s / %s)",
                intersection.halfedge_a,
                intersection.halfedge_b,
                intersection.segment_a.tolist(),
                intersection.segment_b.tolist(),
            )
            if self.diagnostics.enabled:
                self.diagnostics.dump_non_simple_boundary(intersection.segment_a, intersection.segment_b)
            return ParameterizationReport(status=ErrorCode.ERROR_NON_SIMPLE_BOUNDARY)
        _LOGGER.debug("Border is simple")

        ct = triangulate_convex_hull(mesh, bhd, uvmap)

        vpmap = np.zeros(mesh.n_vertices, dtype=bool)
        fixed = self.prepare_ct_for_parameterization(ct, vpmap)

        report = self.parameterize_convex_hull_with_mvc(mesh, vertices, faces, ct, uvmap, vimap, vpmap)
        report.n_fixed = int(fixed.size)
        report.n_gap_faces = int(np.count_nonzero(ct.colors == OUTSIDE))

        _LOGGER.info(
            "MVC post-processing %s: %d fixed vertices, %d gap faces",
            report.status.value, report.n_fixed, report.n_gap_faces,
        )
        return report

    def parameterize(
        self,
        mesh: HalfedgeMesh,
        bhd: int,
        uvmap: np.ndarray,
        vimap: Optional[np.ndarray] = None,
        *,
        vertices: Optional[np.ndarray] = None,
        faces: Optional[np.ndarray] = None,
    ) -> ErrorCode:
        """run()의 결과 코드만 반환"""
        return self.run(mesh, bhd, uvmap, vimap, vertices=vertices, faces=faces).status

    def _validate(self, mesh, bhd, uvmap, vimap, vertices, faces):
        n = mesh.n_vertices
        if not isinstance(uvmap, np.ndarray) or uvmap.dtype != np.float64:
            raise ValueError("uvmap must be a float64 numpy array (it is updated in place)")
        if uvmap.shape != (n, 2):
            raise ValueError(f"uvmap must have shape ({n}, 2), got {uvmap.shape}")
        if not np.all(np.isfinite(uvmap)):
            raise ValueError("uvmap contains non-finite coordinates")

        bhd = int(bhd)
        if bhd < 0 or bhd >= mesh.n_halfedges or not mesh.is_border(bhd):
            raise ValueError(f"halfedge {bhd} is not a border halfedge")

        if vimap is None:
            vimap = np.arange(n, dtype=np.int64)
        vimap = np.asarray(vimap, dtype=np.int64).reshape(-1)
        if vimap.size != n or not np.array_equal(np.sort(vimap), np.arange(n)):
            raise ValueError("vimap must be a permutation of range(n_vertices)")

        if vertices is None:
            vertices = np.arange(n, dtype=np.int64)
        vertices = np.unique(np.asarray(vertices, dtype=np.int64).reshape(-1))
        if vertices.size and (vertices[0] < 0 or vertices[-1] >= n):
            raise ValueError("vertices contain out-of-range indices")

        if faces is None:
            faces = np.arange(mesh.n_faces, dtype=np.int64)
        faces = np.asarray(faces, dtype=np.int64).reshape(-1)
        if faces.size and (faces.min() < 0 or faces.max() >= mesh.n_faces):
            raise ValueError("faces contain out-of-range indices")

        return uvmap, vimap, vertices, faces


@dataclass
class RepairResult:
    """
    UV 뒤집힘 복구 결과

    Attributes:
        uv: (N, 2) 복구된 UV (실패 시 입력과 동일)
        faces: (M, 3) 면 인덱스
        report: 후처리 실행 결과
        flipped_before: 복구 전 뒤집힌 면 수
        flipped_after: 복구 후 뒤집힌 면 수
    """
    uv: np.ndarray
    faces: np.ndarray
    report: ParameterizationReport
    flipped_before: int
    flipped_after: int

    @property
    def status(self) -> ErrorCode:
        return self.report.status


def repair_uv_flips(
    mesh: MeshData,
    uv: Optional[np.ndarray] = None,
    processor: Optional[MVCPostProcessor] = None,
) -> RepairResult:
    """
    MeshData의 UV(또는 주어진 uv)에서 가장 긴 경계 루프로 MVC 후처리를 실행합니다.

    입력 UV는 변경하지 않고 복사본을 갱신해 반환합니다.

    Raises:
        ValueError: UV가 없거나 경계가 없는 (닫힌) 메쉬
    """
    if uv is None:
        if mesh.uv_coords is None:
            raise ValueError("mesh has no UV coordinates")
        uv = mesh.uv_coords
    uv_work = np.array(uv, dtype=np.float64, copy=True)

    hm = HalfedgeMesh.from_mesh_data(mesh)
    loops = hm.border_loops()
    if not loops:
        raise ValueError("mesh has no border; closed meshes cannot be post-processed")
    if len(loops) > 1:
        log_once(
            _LOGGER,
            "mvc_post_processor:multiple_borders",
            logging.WARNING,
            "Mesh has %d border loops; only the longest one is embedded in its convex hull",
            len(loops),
        )

    flipped_before = count_flipped_faces(uv_work, mesh.faces)
    processor = processor or MVCPostProcessor()
    report = processor.run(hm, loops[0], uv_work)
    flipped_after = count_flipped_faces(uv_work, mesh.faces)

    _LOGGER.info("Flipped faces: %d -> %d", flipped_before, flipped_after)
    return RepairResult(
        uv=uv_work,
        faces=mesh.faces,
        report=report,
        flipped_before=flipped_before,
        flipped_after=flipped_after,
    )
