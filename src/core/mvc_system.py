"""
Mean Value Coordinates Linear System
MVC 가중치 기반 희소 선형 시스템 조립

각 삼각형 코너 (i: 꼭짓점, j/k: 나머지, i-j-k CCW)에 대해
    alpha = angle(i->j, i->k) in (0, 2pi), 뒤집힌 삼각형이면 2pi - alpha
    w = -tan(alpha / 2)
    A(i, j) += w / |ij|,  A(i, k) += w / |ik|,  A(i, i) -= (w / |ij| + w / |ik|)
고정 정점 i의 행은 항등 행 (A(i, i) = 1).

Based on: "Mean Value Coordinates" (Floater, 2003) and the convex virtual
boundary method (Karni, Gotsman & Gortler, 2005)
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from scipy import sparse

from .halfedge_mesh import HalfedgeMesh


class DegenerateTriangleError(ValueError):
    """삼각형 코너의 두 점이 UV 공간에서 일치함 (길이 0 엣지)"""


def compute_angle_rad(p: np.ndarray, q: np.ndarray, r: np.ndarray) -> np.ndarray:
    """
    (P, Q, R) 코너의 각도 = 벡터 QP에서 QR까지의 각 [0, 2pi)

    p, q, r은 (2,) 또는 (K, 2) 배열입니다.
    """
    p = np.asarray(p, dtype=np.float64)
    q = np.asarray(q, dtype=np.float64)
    r = np.asarray(r, dtype=np.float64)
    u = p - q
    v = r - q
    angle = np.arctan2(v[..., 1], v[..., 0]) - np.arctan2(u[..., 1], u[..., 0])
    return np.where(angle < 0, angle + 2.0 * np.pi, angle)


def compute_w_ij_mvc(pi: np.ndarray, pj: np.ndarray, pk: np.ndarray) -> np.ndarray:
    """tan(alpha / 2), alpha = angle(pj, pi, pk). 뒤집힌 삼각형은 explementary angle 사용"""
    angle = compute_angle_rad(pj, pi, pk)
    angle = np.where(angle > np.pi, 2.0 * np.pi - angle, angle)
    return np.tan(0.5 * angle)


def mvc_corner_triplets(
    uv_i: np.ndarray,
    uv_j: np.ndarray,
    uv_k: np.ndarray,
    i: np.ndarray,
    j: np.ndarray,
    k: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    자유 정점 코너들의 (rows, cols, vals) COO triplet 계산

    Raises:
        DegenerateTriangleError: |ij| 또는 |ik|가 0인 코너가 있을 때
    """
    w_base = -compute_w_ij_mvc(uv_i, uv_j, uv_k)

    len_ij = np.linalg.norm(uv_i - uv_j, axis=-1)
    len_ik = np.linalg.norm(uv_i - uv_k, axis=-1)
    bad = (len_ij == 0.0) | (len_ik == 0.0)
    if np.any(bad):
        first = int(np.flatnonzero(bad)[0])
        raise DegenerateTriangleError(
            f"two points are identical in corner (i={int(i[first])}, "
            f"j={int(j[first])}, k={int(k[first])})"
        )

    w_ij = w_base / len_ij
    w_ik = w_base / len_ik
    w_ii = -w_ij - w_ik

    rows = np.concatenate([i, i, i])
    cols = np.concatenate([j, k, i])
    vals = np.concatenate([w_ij, w_ik, w_ii])
    return rows, cols, vals


class MVCSystemBuilder:
    """
    MVC 행렬 A 누적기

    코너 (i, j, k)는 메쉬 정점 id로 받고, vimap으로 행/열 인덱스로 변환합니다.
    고정 정점 행은 항등 행으로 한 번만 기록됩니다 (add가 아닌 set 의미).
    """

    def __init__(self, uvmap: np.ndarray, vimap: np.ndarray, vpmap: np.ndarray, n: Optional[int] = None):
        self.uv = np.asarray(uvmap, dtype=np.float64)
        self.vimap = np.asarray(vimap, dtype=np.int64)
        self.vpmap = np.asarray(vpmap, dtype=bool)
        self.n = int(n) if n is not None else int(self.vimap.size)
        self._rows: list[np.ndarray] = []
        self._cols: list[np.ndarray] = []
        self._vals: list[np.ndarray] = []
        self._fixed_rows = np.zeros(self.n, dtype=bool)
        self._touched_rows = np.zeros(self.n, dtype=bool)

    def add_corners(self, corners: np.ndarray) -> int:
        """
        (C, 3) 코너 배열 [i, j, k]의 기여를 누적합니다. i-j-k는 CCW.

        Returns:
            가중치를 계산한 (자유 정점) 코너 개수
        """
        corners = np.asarray(corners, dtype=np.int64).reshape(-1, 3)
        if corners.shape[0] == 0:
            return 0

        vi, vj, vk = corners[:, 0], corners[:, 1], corners[:, 2]
        fixed = self.vpmap[vi]

        fixed_idx = self.vimap[vi[fixed]]
        self._fixed_rows[fixed_idx] = True

        free = ~fixed
        if not np.any(free):
            return 0
        vi, vj, vk = vi[free], vj[free], vk[free]
        i, j, k = self.vimap[vi], self.vimap[vj], self.vimap[vk]

        rows, cols, vals = mvc_corner_triplets(self.uv[vi], self.uv[vj], self.uv[vk], i, j, k)
        self._rows.append(rows)
        self._cols.append(cols)
        self._vals.append(vals)
        self._touched_rows[i] = True
        return int(i.size)

    def untouched_rows(self) -> np.ndarray:
        """어떤 코너도 기여하지 않은 행 (항등 행으로 채워짐)"""
        return np.flatnonzero(~(self._fixed_rows | self._touched_rows))

    def build(self) -> sparse.csr_matrix:
        """CSR 행렬 생성 (중복 triplet은 합산)"""
        identity_rows = np.flatnonzero(self._fixed_rows | ~self._touched_rows)
        rows = self._rows + [identity_rows]
        cols = self._cols + [identity_rows]
        vals = self._vals + [np.ones(identity_rows.size, dtype=np.float64)]

        A = sparse.coo_matrix(
            (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
            shape=(self.n, self.n),
        ).tocsr()
        return A


def mesh_face_corners(mesh: HalfedgeMesh, faces: Optional[np.ndarray] = None) -> np.ndarray:
    """
    메쉬 면의 코너 (C, 3) [i, j, k]

    halfedge h마다 i = target(h), j = target(next(h)), k = source(h).
    """
    if faces is None:
        faces = np.arange(mesh.n_faces, dtype=np.int64)
    faces = np.asarray(faces, dtype=np.int64).reshape(-1)
    hd = mesh.halfedge(faces)
    hds = np.concatenate([hd, mesh.next(hd), mesh.prev(hd)])
    return np.column_stack([mesh.target(hds), mesh.target(mesh.next(hds)), mesh.source(hds)])


def triangle_corners(triangles: np.ndarray) -> np.ndarray:
    """CCW 삼각형 (T, 3)의 세 코너 [v0, v1, v2], [v1, v2, v0], [v2, v0, v1]"""
    t = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    return np.concatenate([t, t[:, [1, 2, 0]], t[:, [2, 0, 1]]])


def compute_mvc_rhs(
    uvmap: np.ndarray,
    vimap: np.ndarray,
    vpmap: np.ndarray,
    n: int,
    identity_rows: Optional[np.ndarray] = None,
    row_vertices: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    우변 벡터 (Bu, Bv)

    고정 정점은 현재 UV (Dirichlet 조건), 자유 정점은 0.
    고정 정점은 갱신 대상 정점 집합과 무관하게 모두 현재 UV로 묶입니다.
    identity_rows/row_vertices가 주어지면 해당 항등 행에도 현재 UV를 넣습니다.
    """
    uv = np.asarray(uvmap, dtype=np.float64)
    vimap = np.asarray(vimap, dtype=np.int64)
    vpmap = np.asarray(vpmap, dtype=bool)

    Bu = np.zeros(n, dtype=np.float64)
    Bv = np.zeros(n, dtype=np.float64)

    fixed = np.flatnonzero(vpmap)
    idx = vimap[fixed]
    Bu[idx] = uv[fixed, 0]
    Bv[idx] = uv[fixed, 1]

    if identity_rows is not None and row_vertices is not None and identity_rows.size:
        owners = row_vertices[identity_rows]
        Bu[identity_rows] = uv[owners, 0]
        Bv[identity_rows] = uv[owners, 1]

    return Bu, Bv
