"""
Core processing modules for UVFlipRepair
"""

from .mesh_loader import MeshLoader, MeshData, MeshProcessor
from .halfedge_mesh import HalfedgeMesh
from .boundary_check import is_polygon_simple, find_boundary_intersection
from .gap_triangulation import GapTriangulation, TriangulationError
from .mvc_system import DegenerateTriangleError
from .linear_solver import BiCGSTABSolver, DirectSolver, make_solver
from .mvc_post_processor import (
    ErrorCode,
    MVCPostProcessor,
    ParameterizationReport,
    RepairResult,
    repair_uv_flips,
)

__all__ = [
    # Mesh IO
    'MeshLoader',
    'MeshData',
    'MeshProcessor',
    # Traversal
    'HalfedgeMesh',
    # Boundary check
    'is_polygon_simple',
    'find_boundary_intersection',
    # Gap triangulation
    'GapTriangulation',
    'TriangulationError',
    # Linear system
    'DegenerateTriangleError',
    'BiCGSTABSolver',
    'DirectSolver',
    'make_solver',
    # Post-processing
    'ErrorCode',
    'MVCPostProcessor',
    'ParameterizationReport',
    'RepairResult',
    'repair_uv_flips',
]
