"""
UVFlipRepair - Flip repair for 2D mesh parameterizations
UV 파라미터화의 뒤집힌 삼각형 복구 도구

Main entry point
"""

import sys
import os
import logging
from pathlib import Path

# Ensure repository root is on sys.path so "src" is importable.
ROOT_DIR = Path(__file__).resolve().parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from src.core.output_paths import repaired_mesh_path

_LOGGER = logging.getLogger(__name__)
DEFAULT_MESH_UNIT = "mm"


def run_cli():
    """커맨드라인 인터페이스 실행"""
    try:
        from src.core.logging_utils import setup_logging

        setup_logging()
    except Exception as e:
        _LOGGER.debug("Failed to initialize logging: %s", e, exc_info=True)

    if len(sys.argv) < 2:
        print_help()
        return 0

    cmd = sys.argv[1]

    if cmd == '--help' or cmd == '-h':
        print_help()
        return 0

    if cmd == '--info' and len(sys.argv) > 2:
        return show_file_info(sys.argv[2])

    if cmd == '--check' and len(sys.argv) > 2:
        return check_boundary(sys.argv[2])

    if cmd == '--repair' and len(sys.argv) > 2:
        return repair_mesh(sys.argv[2], sys.argv[3] if len(sys.argv) > 3 else None)

    # 기본: 파일 복구
    if os.path.exists(cmd):
        return repair_mesh(cmd)

    print(f"Error: Unknown command or file not found: {cmd}")
    print("Use --help for usage information")
    return 2


def print_help():
    """도움말 출력"""
    from src.core.mesh_loader import MeshLoader

    print("=" * 60)
    print("UVFlipRepair - Convex virtual boundary MVC post-processor")
    print("UV 파라미터화의 뒤집힌 삼각형 복구 도구")
    print("=" * 60)
    print()
    print("Usage:")
    print("  python main.py <mesh_file>                     # Repair stored UVs")
    print("  python main.py --info <mesh_file>              # Show file info")
    print("  python main.py --check <mesh_file>             # Check UV border simplicity")
    print("  python main.py --repair <mesh_file> [output]   # Repair and save (.mvc.obj)")
    print()
    print(f"Supported formats: {list(MeshLoader.SUPPORTED_FORMATS.keys())}")
    print()
    print("Examples:")
    print("  python main.py --repair patch.obj")
    print("  python main.py --repair patch.obj patch_fixed.obj")


def _load_with_uv(filepath: str):
    from src.core.mesh_loader import MeshLoader

    loader = MeshLoader(default_unit=DEFAULT_MESH_UNIT)
    mesh = loader.load(filepath)
    if not mesh.has_uv:
        print("  No UV coordinates in file: using PCA planar projection")
        mesh = mesh.with_uv(mesh.planar_projection_uv())
    return mesh


def show_file_info(filepath: str) -> int:
    """파일 정보 표시"""
    from src.core.mesh_loader import MeshLoader

    print(f"\nFile Info: {filepath}")
    print("-" * 40)

    try:
        loader = MeshLoader(default_unit=DEFAULT_MESH_UNIT)
        info = loader.get_file_info(filepath)
        for key, value in info.items():
            print(f"  {key}: {value}")
    except Exception as e:
        print(f"  Error: {e}")
        return 1
    return 0


def check_boundary(filepath: str) -> int:
    """UV 경계 루프의 단순성 검사"""
    from src.core.halfedge_mesh import HalfedgeMesh
    from src.core.boundary_check import find_boundary_intersection

    print(f"\nChecking border: {filepath}")
    print("-" * 40)

    try:
        mesh = _load_with_uv(filepath)
        hm = HalfedgeMesh.from_mesh_data(mesh)
        loops = hm.border_loops()
        if not loops:
            print("  Mesh has no border")
            return 1

        simple = True
        for n, bhd in enumerate(loops):
            hit = find_boundary_intersection(hm, bhd, mesh.uv_coords)
            if hit is None:
                print(f"  Loop {n}: simple")
                continue
            simple = False
            print(f"  Loop {n}: self-intersecting "
                  f"({hit.segment_a.tolist()} x {hit.segment_b.tolist()})")
        return 0 if simple else 1

    except Exception as e:
        print(f"Error: {e}")
        _LOGGER.exception("Border check failed: %s", filepath)
        return 1


def repair_mesh(filepath: str, output_path: str | None = None) -> int:
    """UV 뒤집힘 복구 후 저장"""
    from src.core.mesh_loader import MeshProcessor
    from src.core.mvc_post_processor import repair_uv_flips

    print(f"\nRepairing: {filepath}")
    print("-" * 40)

    try:
        mesh = _load_with_uv(filepath)
        print(f"  Loaded: {mesh.n_vertices:,} vertices, {mesh.n_faces:,} faces")

        result = repair_uv_flips(mesh)
        report = result.report
        print(f"  Status: {report.status.value}")
        print(f"  Fixed (convex hull) vertices: {report.n_fixed:,}")
        print(f"  Gap faces: {report.n_gap_faces:,}")
        print(f"  Flipped faces: {result.flipped_before:,} -> {result.flipped_after:,}")

        if not report.ok:
            return 1

        save_path = repaired_mesh_path(filepath, output_path)
        MeshProcessor().save_mesh(mesh.with_uv(result.uv), save_path)
        print(f"  Saved: {save_path}")

    except Exception as e:
        print(f"Error: {e}")
        _LOGGER.exception("Repair failed: %s", filepath)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(run_cli())
