"""
Boundary Simplicity Check
UV 공간에서 경계 루프가 단순 다각형(자기 교차 없음)인지 검사

경계 halfedge 쌍 중 동일하거나 인접한(끝점 공유) 쌍을 제외한 모든 쌍에 대해
선분 교차를 검사합니다. 접촉/겹침도 교차로 봅니다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .halfedge_mesh import HalfedgeMesh


@dataclass(frozen=True)
class BoundaryIntersection:
    """교차하는 두 경계 halfedge와 그 UV 선분"""
    halfedge_a: int
    halfedge_b: int
    segment_a: np.ndarray  # (2, 2)
    segment_b: np.ndarray  # (2, 2)


def _orient(ax, ay, bx, by, cx, cy):
    return (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)


def _on_segment(ax, ay, bx, by, px, py):
    """collinear인 p가 [a, b]의 bounding box 안에 있는지"""
    return (
        (np.minimum(ax, bx) <= px) & (px <= np.maximum(ax, bx))
        & (np.minimum(ay, by) <= py) & (py <= np.maximum(ay, by))
    )


def segments_intersect(p1, p2, q1, q2):
    """
    선분 [p1, p2]와 [q1, q2]의 교차 여부 (끝점 접촉, collinear 겹침 포함)

    q1, q2는 (K, 2) 배열일 수 있으며 이 경우 (K,) bool 배열을 반환합니다.
    """
    p1 = np.asarray(p1, dtype=np.float64)
    p2 = np.asarray(p2, dtype=np.float64)
    q1 = np.asarray(q1, dtype=np.float64)
    q2 = np.asarray(q2, dtype=np.float64)

    px1, py1 = p1[..., 0], p1[..., 1]
    px2, py2 = p2[..., 0], p2[..., 1]
    qx1, qy1 = q1[..., 0], q1[..., 1]
    qx2, qy2 = q2[..., 0], q2[..., 1]

    d1 = np.sign(_orient(px1, py1, px2, py2, qx1, qy1))
    d2 = np.sign(_orient(px1, py1, px2, py2, qx2, qy2))
    d3 = np.sign(_orient(qx1, qy1, qx2, qy2, px1, py1))
    d4 = np.sign(_orient(qx1, qy1, qx2, qy2, px2, py2))

    proper = (d1 * d2 < 0) & (d3 * d4 < 0)
    touching = (
        ((d1 == 0) & _on_segment(px1, py1, px2, py2, qx1, qy1))
        | ((d2 == 0) & _on_segment(px1, py1, px2, py2, qx2, qy2))
        | ((d3 == 0) & _on_segment(qx1, qy1, qx2, qy2, px1, py1))
        | ((d4 == 0) & _on_segment(qx1, qy1, qx2, qy2, px2, py2))
    )
    out = proper | touching
    if np.ndim(out) == 0:
        return bool(out)
    return out


def find_boundary_intersection(
    mesh: HalfedgeMesh,
    bhd: int,
    uvmap: np.ndarray,
) -> Optional[BoundaryIntersection]:
    """
    bhd로 시작하는 경계 루프의 첫 번째 비인접 교차 쌍을 찾습니다.

    Returns:
        BoundaryIntersection 또는 None (단순 다각형)
    """
    # TODO: replace the per-edge scan with a Bentley-Ottmann sweep for very long borders
    uv = np.asarray(uvmap, dtype=np.float64)
    loop = np.fromiter(mesh.halfedges_around_face(int(bhd)), dtype=np.int64)
    n = int(loop.size)
    if n < 4:
        # 삼각형 이하의 루프는 모든 쌍이 인접
        return None

    starts = uv[mesh.source(loop)]
    ends = uv[mesh.target(loop)]
    nexts = mesh.next(loop)

    for a in range(n - 1):
        b = np.arange(a + 1, n)
        ha = loop[a]
        hb = loop[b]
        adjacent = (nexts[a] == hb) | (nexts[b] == ha)
        cand = b[~adjacent]
        if cand.size == 0:
            continue
        hits = segments_intersect(starts[a], ends[a], starts[cand], ends[cand])
        hit_idx = np.flatnonzero(hits)
        if hit_idx.size:
            bb = int(cand[hit_idx[0]])
            return BoundaryIntersection(
                halfedge_a=int(ha),
                halfedge_b=int(loop[bb]),
                segment_a=np.stack([starts[a], ends[a]]),
                segment_b=np.stack([starts[bb], ends[bb]]),
            )
    return None


def is_polygon_simple(mesh: HalfedgeMesh, bhd: int, uvmap: np.ndarray) -> bool:
    """경계 루프의 UV 이미지가 단순 다각형이면 True"""
    return find_boundary_intersection(mesh, bhd, uvmap) is None

