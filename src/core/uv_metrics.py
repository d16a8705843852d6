"""
UV metrics
UV 좌표의 면 방향(뒤집힘) 검사
"""

from __future__ import annotations

import numpy as np


def signed_uv_areas(uv: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """각 면의 UV 부호 면적 (CCW > 0)"""
    uv = np.asarray(uv, dtype=np.float64)
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    if faces.shape[0] == 0:
        return np.zeros((0,), dtype=np.float64)
    tri = uv[faces][:, :, :2]
    e1 = tri[:, 1, :] - tri[:, 0, :]
    e2 = tri[:, 2, :] - tri[:, 0, :]
    return 0.5 * (e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0])


def flipped_faces(uv: np.ndarray, faces: np.ndarray, eps: float = 0.0) -> np.ndarray:
    """
    다수 방향과 반대이거나 면적이 eps 이하인 면의 bool 마스크

    UV 전체가 CW로 배치된 경우에도 다수 방향을 기준으로 판정합니다.
    """
    areas = signed_uv_areas(uv, faces)
    if areas.size == 0:
        return np.zeros((0,), dtype=bool)
    orientation = 1.0 if float(np.sum(areas > 0)) >= float(np.sum(areas < 0)) else -1.0
    return (areas * orientation) <= float(eps)


def count_flipped_faces(uv: np.ndarray, faces: np.ndarray, eps: float = 0.0) -> int:
    return int(np.count_nonzero(flipped_faces(uv, faces, eps=eps)))
