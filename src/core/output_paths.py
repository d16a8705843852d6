"""
Output path helpers for repaired meshes and diagnostic dumps.

Centralizes naming conventions so the CLI and the post-processor stay in sync.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]

REPAIRED_SUFFIX = ".mvc.obj"
NON_SIMPLE_BOUNDARY_SVG = "non_simple_boundary.svg"
GAP_EXTERIOR_SVG = "gap_triangulation_exterior.svg"


def _as_path(value: PathLike) -> Path:
    return value if isinstance(value, Path) else Path(value)


def _resolve_output_path(input_path: PathLike, output_path: Optional[PathLike], suffix: str) -> Path:
    if output_path:
        return _as_path(output_path)
    return _as_path(input_path).with_suffix(suffix)


def repaired_mesh_path(input_path: PathLike, output_path: Optional[PathLike] = None) -> Path:
    return _resolve_output_path(input_path, output_path, REPAIRED_SUFFIX)


def non_simple_boundary_path(diagnostics_dir: PathLike) -> Path:
    return _as_path(diagnostics_dir) / NON_SIMPLE_BOUNDARY_SVG


def gap_exterior_path(diagnostics_dir: PathLike) -> Path:
    return _as_path(diagnostics_dir) / GAP_EXTERIOR_SVG
