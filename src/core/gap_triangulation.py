"""
Convex Hull Gap Triangulation
경계 다각형과 그 convex hull 사이의 빈 공간(gap)을 삼각분할

경계 정점만으로 constrained triangulation을 만들고(경계 엣지 = 제약),
각 유한 면을 내부(+1) / 외부(-1)로 색칠합니다.

- 삼각분할: triangle 라이브러리 (Shewchuk's Triangle, PSLG + convex hull 포함)
- 면 색상 / 정점 역참조는 side table(배열)로 보관
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import List, Optional, Tuple

import numpy as np
import triangle as tr

from .halfedge_mesh import HalfedgeMesh

_LOGGER = logging.getLogger(__name__)

INSIDE = 1
OUTSIDE = -1
UNCOLORED = 0

INFINITE_FACE = -1

# p: PSLG (세그먼트 보존), z: 0-based 인덱스, c: convex hull까지 삼각분할, Q: quiet
_TRIANGLE_OPTS = "pzcQ"


class TriangulationError(RuntimeError):
    """Gap triangulation 구성/검증 실패"""


def _edge_key(a: int, b: int) -> Tuple[int, int]:
    return (a, b) if a < b else (b, a)


@dataclass
class GapTriangulation:
    """
    경계 정점의 constrained triangulation

    Attributes:
        points: (P, 2) 삼각분할 정점 좌표 (중복 UV 제거됨)
        triangles: (T, 3) CCW 정점 인덱스
        neighbors: (T, 3) neighbors[t, i] = 정점 i 맞은편 엣지 너머의 면 (-1 = 무한 면)
        vertex_info: (P,) 삼각분할 정점 -> 메쉬 정점
        constraints: 제약 엣지 집합 (정렬된 삼각분할 정점 쌍)
        colors: (T,) 면 색상 (0 미분류, +1 내부, -1 외부)
    """
    points: np.ndarray
    triangles: np.ndarray
    neighbors: np.ndarray
    vertex_info: np.ndarray
    constraints: set = field(default_factory=set)
    colors: Optional[np.ndarray] = None

    def __post_init__(self):
        if self.colors is None:
            self.colors = np.zeros(self.n_faces, dtype=np.int8)

    @property
    def n_vertices(self) -> int:
        return int(self.points.shape[0])

    @property
    def n_faces(self) -> int:
        return int(self.triangles.shape[0])

    def is_infinite(self, f: int) -> bool:
        return int(f) == INFINITE_FACE

    def neighbor(self, f: int, i: int) -> int:
        return int(self.neighbors[f, i])

    def edge_vertices(self, f: int, i: int) -> Tuple[int, int]:
        """면 f에서 정점 i 맞은편 엣지의 두 끝점"""
        tri = self.triangles[f]
        return int(tri[(i + 1) % 3]), int(tri[(i + 2) % 3])

    def is_constrained(self, f: int, i: int) -> bool:
        a, b = self.edge_vertices(f, i)
        return _edge_key(a, b) in self.constraints

    def infinite_edges(self) -> List[Tuple[int, int]]:
        """convex hull 엣지 (무한 면과 맞닿은 (면, 정점 인덱스) 쌍)"""
        faces, corners = np.nonzero(self.neighbors == INFINITE_FACE)
        return [(int(f), int(i)) for f, i in zip(faces, corners)]

    def hull_vertices(self) -> np.ndarray:
        """무한 정점에 인접한 삼각분할 정점 (convex hull 위의 정점)"""
        verts: set[int] = set()
        for f, i in self.infinite_edges():
            verts.update(self.edge_vertices(f, i))
        return np.asarray(sorted(verts), dtype=np.int64)

    def faces_with_color(self, color: int) -> np.ndarray:
        return self.triangles[self.colors == color]


def _compute_neighbors(triangles: np.ndarray) -> np.ndarray:
    neighbors = np.full(triangles.shape, INFINITE_FACE, dtype=np.int64)
    edge_owner: dict[Tuple[int, int], Tuple[int, int]] = {}
    for f, tri in enumerate(triangles):
        for i in range(3):
            key = _edge_key(int(tri[(i + 1) % 3]), int(tri[(i + 2) % 3]))
            other = edge_owner.pop(key, None)
            if other is None:
                edge_owner[key] = (f, i)
                continue
            g, j = other
            neighbors[f, i] = g
            neighbors[g, j] = f
    return neighbors


def triangulate_convex_hull(
    mesh: HalfedgeMesh,
    bhd: int,
    uvmap: np.ndarray,
) -> GapTriangulation:
    """
    경계 루프의 UV 점과 경계 엣지 제약으로 convex hull 전체를 삼각분할합니다.

    선행 조건: 경계가 단순 다각형 (is_polygon_simple 통과)
    """
    uv = np.asarray(uvmap, dtype=np.float64)

    # 동일 UV 좌표는 하나의 삼각분할 정점으로 병합
    point_ids: dict[Tuple[float, float], int] = {}
    points: list[Tuple[float, float]] = []
    info: list[int] = []
    segments: list[Tuple[int, int]] = []

    def insert(vd: int) -> int:
        key = (float(uv[vd, 0]), float(uv[vd, 1]))
        pid = point_ids.get(key)
        if pid is None:
            pid = len(points)
            point_ids[key] = pid
            points.append(key)
            info.append(int(vd))
        return pid

    loop = list(mesh.halfedges_around_face(int(bhd)))
    for hd in loop:
        insert(int(mesh.source(hd)))

    constraints: set[Tuple[int, int]] = set()
    for hd in loop:
        s = insert(int(mesh.source(hd)))
        t = insert(int(mesh.target(hd)))
        if s == t:
            continue
        key = _edge_key(s, t)
        if key not in constraints:
            constraints.add(key)
            segments.append(key)

    if len(points) < 3:
        raise TriangulationError(f"border has only {len(points)} distinct UV points")

    pts = np.asarray(points, dtype=np.float64)
    data = {
        "vertices": pts,
        "segments": np.asarray(segments, dtype=np.int32),
    }
    try:
        result = tr.triangulate(data, _TRIANGLE_OPTS)
    except Exception as exc:
        raise TriangulationError(f"constrained triangulation failed: {exc}") from exc

    out_vertices = np.asarray(result.get("vertices", np.zeros((0, 2))), dtype=np.float64)
    if out_vertices.shape[0] != pts.shape[0]:
        raise TriangulationError(
            f"triangulation inserted {out_vertices.shape[0] - pts.shape[0]} Steiner points"
        )

    triangles = np.asarray(result.get("triangles", np.zeros((0, 3))), dtype=np.int64).reshape(-1, 3)
    if triangles.shape[0] == 0:
        raise TriangulationError("triangulation has no finite face (collinear border?)")

    # CCW 보장
    a = pts[triangles[:, 0]]
    b = pts[triangles[:, 1]]
    c = pts[triangles[:, 2]]
    area2 = (b[:, 0] - a[:, 0]) * (c[:, 1] - a[:, 1]) - (b[:, 1] - a[:, 1]) * (c[:, 0] - a[:, 0])
    cw = area2 < 0
    if np.any(cw):
        triangles[cw] = triangles[cw][:, [0, 2, 1]]

    ct = GapTriangulation(
        points=pts,
        triangles=triangles,
        neighbors=_compute_neighbors(triangles),
        vertex_info=np.asarray(info, dtype=np.int64),
        constraints=constraints,
    )
    _LOGGER.debug(
        "Gap triangulation: %d vertices, %d faces, %d constraints",
        ct.n_vertices, ct.n_faces, len(constraints),
    )
    return ct


def color_faces(ct: GapTriangulation) -> GapTriangulation:
    """
    유한 면을 내부(+1) / 외부(-1)로 색칠합니다.

    무한 면에 맞닿은 면에서 시작해 이웃으로 퍼뜨리며,
    제약 엣지를 건널 때만 색을 뒤집습니다. (재귀 대신 명시적 스택)
    """
    ct.colors[:] = UNCOLORED

    hull = ct.infinite_edges()
    if not hull:
        raise TriangulationError("triangulation has no convex hull edge")

    start_face, mirror = hull[0]
    # hull 엣지가 제약이면 시작 면은 원래 다각형 내부
    ct.colors[start_face] = INSIDE if ct.is_constrained(start_face, mirror) else OUTSIDE

    stack = [start_face]
    while stack:
        fh = stack.pop()
        color = int(ct.colors[fh])
        for i in range(3):
            neigh = ct.neighbor(fh, i)
            if ct.is_infinite(neigh) or ct.colors[neigh] != UNCOLORED:
                continue
            ct.colors[neigh] = -color if ct.is_constrained(fh, i) else color
            stack.append(neigh)

    n_uncolored = int(np.count_nonzero(ct.colors == UNCOLORED))
    if n_uncolored:
        raise TriangulationError(f"{n_uncolored} faces unreachable from the convex hull")

    _LOGGER.debug(
        "Colored faces: %d inside, %d outside",
        int(np.count_nonzero(ct.colors == INSIDE)),
        int(np.count_nonzero(ct.colors == OUTSIDE)),
    )
    return ct


def check_face_coloring(ct: GapTriangulation) -> bool:
    """
    색칠 결과 검증: 인접한 두 유한 면은
    공유 엣지가 제약이면 색이 다르고, 아니면 같아야 합니다.
    """
    for f in range(ct.n_faces):
        c1 = int(ct.colors[f])
        if c1 == UNCOLORED:
            return False
        for i in range(3):
            g = ct.neighbor(f, i)
            if ct.is_infinite(g):
                continue
            c2 = int(ct.colors[g])
            if c2 == UNCOLORED:
                return False
            if ct.is_constrained(f, i):
                if c1 != -c2:
                    return False
            elif c1 != c2:
                return False
    return True


def fix_convex_hull_border(ct: GapTriangulation, vpmap: np.ndarray) -> np.ndarray:
    """convex hull 위의 정점을 고정 정점으로 표시 (vpmap: 메쉬 정점 인덱스 bool 배열)"""
    hull_mesh_vertices = ct.vertex_info[ct.hull_vertices()]
    vpmap[hull_mesh_vertices] = True
    return hull_mesh_vertices
