"""
Mesh Loader Module
메쉬 파일 로딩/저장 및 데이터 구조 정의

Supports: OBJ, PLY, STL, OFF, GLTF/GLB formats (trimesh)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List, Union
import numpy as np

from .halfedge_mesh import HalfedgeMesh

try:
    import trimesh
except ImportError:
    raise ImportError("trimesh is required. Install with: pip install trimesh")


@dataclass
class MeshData:
    """
    삼각형 메쉬 + UV 데이터 컨테이너

    Attributes:
        vertices: (N, 3) 정점 좌표 배열
        faces: (M, 3) 면 인덱스 배열 (삼각형)
        uv_coords: (N, 2) 정점별 UV 좌표 (선택)
        unit: 좌표 단위 ('mm', 'cm', 'm')
        filepath: 원본 파일 경로
    """
    vertices: np.ndarray
    faces: np.ndarray
    uv_coords: Optional[np.ndarray] = None
    unit: str = 'mm'
    filepath: Optional[Path] = None

    def __post_init__(self):
        """데이터 검증 및 타입 변환"""
        self.vertices = np.asarray(self.vertices, dtype=np.float64)
        self.faces = np.asarray(self.faces, dtype=np.int64)
        if self.faces.size == 0:
            self.faces = self.faces.reshape(0, 3)
        if self.uv_coords is not None:
            uv = np.asarray(self.uv_coords, dtype=np.float64)
            if uv.ndim != 2 or uv.shape[0] != self.vertices.shape[0] or uv.shape[1] < 2:
                raise ValueError(
                    f"uv_coords must have shape ({self.vertices.shape[0]}, 2), got {uv.shape}"
                )
            self.uv_coords = uv[:, :2].copy()

    @property
    def n_vertices(self) -> int:
        """정점 개수"""
        return len(self.vertices)

    @property
    def n_faces(self) -> int:
        """면 개수"""
        return len(self.faces)

    @property
    def has_uv(self) -> bool:
        return self.uv_coords is not None

    def get_boundary_loops(self) -> List[np.ndarray]:
        """
        경계 루프(들)을 정렬된 정점 인덱스 배열로 반환합니다.

        Returns:
            List[np.ndarray]: 각 루프는 (L,) 형태의 정점 인덱스 배열 (반복된 시작점 없음)
        """
        if self.n_faces == 0:
            return []
        hm = HalfedgeMesh.from_mesh_data(self)
        return [np.asarray(hm.vertices_around_face(b), dtype=np.int64) for b in hm.border_loops()]

    def planar_projection_uv(self) -> np.ndarray:
        """
        PCA 평면 투영 UV (UV가 없는 메쉬의 초기값)

        가장 잘 맞는 평면의 두 주축으로 정점을 투영합니다.
        """
        vertices = self.vertices.astype(np.float64, copy=False)
        centered = vertices - vertices.mean(axis=0)

        cov = np.cov(centered.T)
        eigenvalues, eigenvectors = np.linalg.eigh(cov)
        order = np.argsort(eigenvalues)[::-1]
        axes = eigenvectors[:, order]

        u = axes[:, 0].copy()
        v = axes[:, 1].copy()

        # 축 부호를 결정적으로 고정 (PCA 부호 뒤집힘 방지)
        for axis in (u, v):
            idx = int(np.argmax(np.abs(axis)))
            if axis[idx] < 0:
                axis *= -1

        return centered @ np.column_stack([u, v])

    def with_uv(self, uv: np.ndarray) -> 'MeshData':
        """UV만 교체한 새 메쉬 반환"""
        return MeshData(
            vertices=self.vertices,
            faces=self.faces,
            uv_coords=np.asarray(uv, dtype=np.float64),
            unit=self.unit,
            filepath=self.filepath,
        )

    def to_trimesh(self) -> 'trimesh.Trimesh':
        """trimesh 객체로 변환 (UV가 있으면 TextureVisuals로 포함)"""
        visual = None
        if self.uv_coords is not None:
            # 재질이 없으면 OBJ export가 vt를 생략함
            visual = trimesh.visual.TextureVisuals(
                uv=self.uv_coords,
                material=trimesh.visual.material.SimpleMaterial(),
            )
        return trimesh.Trimesh(
            vertices=self.vertices,
            faces=self.faces,
            visual=visual,
            process=False
        )

    @classmethod
    def from_trimesh(cls, mesh: 'trimesh.Trimesh',
                     filepath: Optional[Path] = None,
                     unit: str = 'mm') -> 'MeshData':
        """trimesh 객체에서 생성"""
        uv_coords = None
        visual = getattr(mesh, "visual", None)
        uv = getattr(visual, "uv", None) if visual is not None else None
        if uv is not None:
            uv = np.asarray(uv, dtype=np.float64)
            if uv.ndim == 2 and uv.shape[0] == len(mesh.vertices) and uv.shape[1] >= 2:
                uv_coords = uv[:, :2]

        return cls(
            vertices=mesh.vertices,
            faces=mesh.faces,
            uv_coords=uv_coords,
            unit=unit,
            filepath=filepath
        )


class MeshLoader:
    """
    다양한 3D 포맷의 메쉬 파일 로더

    Supported formats:
        - OBJ (Wavefront)
        - PLY (Polygon File Format)
        - STL (Stereolithography)
        - OFF (Object File Format)
        - GLTF/GLB (GL Transmission Format)
    """

    SUPPORTED_FORMATS = {
        '.obj': 'Wavefront OBJ',
        '.ply': 'Polygon File Format',
        '.stl': 'Stereolithography',
        '.off': 'Object File Format',
        '.gltf': 'GL Transmission Format',
        '.glb': 'GL Transmission Format (Binary)',
    }

    def __init__(self, default_unit: str = 'mm'):
        """
        Args:
            default_unit: 기본 좌표 단위 ('mm', 'cm', 'm')
        """
        self.default_unit = default_unit

    def load(self, filepath: Union[str, Path], unit: Optional[str] = None) -> MeshData:
        """
        메쉬 파일 로드

        Args:
            filepath: 메쉬 파일 경로
            unit: 좌표 단위 (None이면 default_unit 사용)

        Returns:
            MeshData: 로드된 메쉬 데이터

        Raises:
            FileNotFoundError: 파일이 존재하지 않음
            ValueError: 지원하지 않는 포맷
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        ext = filepath.suffix.lower()
        if ext not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format: {ext}\n"
                f"Supported formats: {list(self.SUPPORTED_FORMATS.keys())}"
            )

        unit = unit or self.default_unit

        # UV seam 정점 병합 등 후처리를 하지 않아야 UV가 정점별로 유지됨
        mesh = trimesh.load(str(filepath), force='mesh', process=False, maintain_order=True)

        if isinstance(mesh, trimesh.Scene):
            meshes = [g for g in mesh.geometry.values() if isinstance(g, trimesh.Trimesh)]
            if len(meshes) == 0:
                raise ValueError(f"No valid mesh found in: {filepath}")
            mesh = trimesh.util.concatenate(meshes)

        if not isinstance(mesh, trimesh.Trimesh):
            raise TypeError(f"Expected trimesh.Trimesh, got {type(mesh).__name__}")

        return MeshData.from_trimesh(mesh, filepath=filepath, unit=unit)

    def get_file_info(self, filepath: Union[str, Path]) -> dict:
        """
        파일 정보 (정점/면/UV/경계 루프 수)

        Args:
            filepath: 메쉬 파일 경로

        Returns:
            dict: 파일 정보 딕셔너리
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        ext = filepath.suffix.lower()
        info = {
            'filename': filepath.name,
            'format': self.SUPPORTED_FORMATS.get(ext, 'Unknown'),
            'extension': ext,
            'file_size_mb': round(filepath.stat().st_size / (1024 * 1024), 2),
        }

        try:
            mesh = self.load(filepath)
            info['n_vertices'] = mesh.n_vertices
            info['n_faces'] = mesh.n_faces
            info['has_uv'] = mesh.has_uv
            info['n_boundary_loops'] = len(mesh.get_boundary_loops())
        except Exception as e:
            info['error'] = str(e)

        return info


class MeshProcessor:
    """메쉬 저장 유틸리티"""

    def save_mesh(self, mesh_data: Union[MeshData, 'trimesh.Trimesh'], filepath: Union[str, Path]) -> str:
        """
        메쉬를 파일로 저장 (OBJ는 UV 포함)

        Args:
            mesh_data: MeshData 또는 trimesh.Trimesh 객체
            filepath: 저장할 파일 경로
        """
        filepath = str(filepath)

        if isinstance(mesh_data, MeshData):
            mesh = mesh_data.to_trimesh()
        else:
            mesh = mesh_data

        mesh.export(filepath)
        return filepath
