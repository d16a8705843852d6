"""
Halfedge Mesh Module
삼각형 메쉬의 방향성 엣지(halfedge) 탐색 구조

면 배열 (M, 3)로부터 halfedge 연결 정보를 구성합니다.
- 내부 halfedge: 3*f + c  (faces[f, c] -> faces[f, (c+1) % 3])
- 경계 halfedge: 3*M 이후에 추가, face = -1

모든 접근자는 정수 스칼라 또는 정수 배열을 받습니다.
"""

from __future__ import annotations

from typing import Iterator, List, Optional

import numpy as np

NULL_FACE = -1


class HalfedgeMesh:
    """
    Face 배열 기반 halfedge 메쉬

    Attributes:
        n_vertices: 정점 개수 (faces에 등장하지 않는 정점 포함)
        n_faces: 면 개수
    """

    def __init__(self, faces: np.ndarray, n_vertices: Optional[int] = None):
        faces = np.asarray(faces, dtype=np.int64)
        if faces.size == 0:
            faces = faces.reshape(0, 3)
        if faces.ndim != 2 or faces.shape[1] != 3:
            raise ValueError(f"faces must have shape (M, 3), got {faces.shape}")
        if faces.size and int(faces.min()) < 0:
            raise ValueError("faces contain negative vertex indices")

        m = int(faces.shape[0])
        max_index = int(faces.max()) + 1 if faces.size else 0
        if n_vertices is None:
            n_vertices = max_index
        if n_vertices < max_index:
            raise ValueError(f"n_vertices={n_vertices} but faces reference vertex {max_index - 1}")

        self._faces = faces
        self._n_vertices = int(n_vertices)

        src = faces.reshape(-1)
        tgt = faces[:, [1, 2, 0]].reshape(-1)

        # 방향 엣지 (u, v) -> halfedge
        directed: dict[tuple[int, int], int] = {}
        for h in range(3 * m):
            key = (int(src[h]), int(tgt[h]))
            if key[0] == key[1]:
                raise ValueError(f"face {h // 3} is degenerate (repeated vertex {key[0]})")
            if key in directed:
                raise ValueError(
                    f"directed edge {key} appears twice (inconsistent face orientation)"
                )
            directed[key] = h

        opposite = np.full(3 * m, -1, dtype=np.int64)
        border_src: list[int] = []
        border_tgt: list[int] = []
        border_opp: list[int] = []
        for h in range(3 * m):
            twin = directed.get((int(tgt[h]), int(src[h])))
            if twin is not None:
                opposite[h] = twin
                continue
            # 짝이 없는 halfedge -> 반대 방향 경계 halfedge 생성
            opposite[h] = 3 * m + len(border_src)
            border_src.append(int(tgt[h]))
            border_tgt.append(int(src[h]))
            border_opp.append(h)

        nb = len(border_src)
        self._source = np.concatenate([src, np.asarray(border_src, dtype=np.int64)])
        self._target = np.concatenate([tgt, np.asarray(border_tgt, dtype=np.int64)])
        self._opposite = np.concatenate([opposite, np.asarray(border_opp, dtype=np.int64)])

        face_of = np.repeat(np.arange(m, dtype=np.int64), 3)
        self._face = np.concatenate([face_of, np.full(nb, NULL_FACE, dtype=np.int64)])

        corner = np.arange(3 * m, dtype=np.int64)
        interior_next = 3 * (corner // 3) + (corner % 3 + 1) % 3

        # 경계 halfedge의 next: target에서 출발하는 경계 halfedge
        border_out: dict[int, int] = {}
        for b in range(nb):
            s = border_src[b]
            if s in border_out:
                raise ValueError(f"vertex {s} is a non-manifold border vertex")
            border_out[s] = 3 * m + b
        border_next = np.empty(nb, dtype=np.int64)
        for b in range(nb):
            border_next[b] = border_out[border_tgt[b]]

        self._next = np.concatenate([interior_next, border_next])
        self._prev = np.empty_like(self._next)
        self._prev[self._next] = np.arange(self._next.size, dtype=np.int64)

    @classmethod
    def from_mesh_data(cls, mesh) -> 'HalfedgeMesh':
        """MeshData에서 생성"""
        return cls(mesh.faces, n_vertices=mesh.n_vertices)

    @property
    def n_vertices(self) -> int:
        return self._n_vertices

    @property
    def n_faces(self) -> int:
        return int(self._faces.shape[0])

    @property
    def n_halfedges(self) -> int:
        return int(self._next.size)

    @property
    def faces(self) -> np.ndarray:
        return self._faces

    def source(self, h):
        return self._source[h]

    def target(self, h):
        return self._target[h]

    def next(self, h):
        return self._next[h]

    def prev(self, h):
        return self._prev[h]

    def opposite(self, h):
        return self._opposite[h]

    def face(self, h):
        return self._face[h]

    def halfedge(self, f):
        """면 f의 첫 halfedge (faces[f, 0] -> faces[f, 1])"""
        return 3 * np.asarray(f, dtype=np.int64) if np.ndim(f) else 3 * int(f)

    def is_border(self, h):
        return self._face[h] == NULL_FACE

    def border_halfedges(self) -> np.ndarray:
        return np.arange(3 * self.n_faces, self.n_halfedges, dtype=np.int64)

    def halfedges_around_face(self, h: int) -> Iterator[int]:
        """h에서 시작해 next를 따라 한 바퀴 (경계 루프에도 사용)"""
        start = int(h)
        cur = start
        while True:
            yield cur
            cur = int(self._next[cur])
            if cur == start:
                break

    def vertices_around_face(self, h: int) -> List[int]:
        return [int(self._source[x]) for x in self.halfedges_around_face(h)]

    def border_loops(self) -> List[int]:
        """경계 루프마다 시작 halfedge 하나씩 반환 (길이 내림차순)"""
        seen = np.zeros(self.n_halfedges, dtype=bool)
        loops: list[tuple[int, int]] = []
        for b in self.border_halfedges():
            if seen[b]:
                continue
            length = 0
            for x in self.halfedges_around_face(int(b)):
                seen[x] = True
                length += 1
            loops.append((length, int(b)))
        loops.sort(key=lambda item: item[0], reverse=True)
        return [b for _, b in loops]
