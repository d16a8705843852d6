"""
Diagnostics → SVG dump

MVC 후처리 중 문제 지오메트리를 UV 공간 SVG로 내보냅니다.
- 자기 교차하는 경계 선분 두 개 (non-simple boundary)
- gap triangulation의 외부(-1) 면

Best-effort: 저장 실패는 로그만 남기고 제어 흐름에 영향을 주지 않습니다.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Iterable, Optional

import numpy as np

from .logging_utils import log_once
from .output_paths import gap_exterior_path, non_simple_boundary_path

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagnosticsOptions:
    size: float = 512.0  # SVG 긴 변 길이 (px)
    margin: float = 8.0
    stroke_color: str = "#D62728"
    fill_color: str = "#FFBB78"
    stroke_width: float = 1.0


class DiagnosticsWriter:
    """UV 공간 지오메트리를 SVG로 기록하는 진단 싱크."""

    def __init__(self, directory: Optional[str | Path] = None, options: DiagnosticsOptions | None = None):
        self.directory = Path(directory) if directory else None
        self.options = options or DiagnosticsOptions()

    @property
    def enabled(self) -> bool:
        return self.directory is not None

    def _svg(self, shapes: Iterable[np.ndarray], closed: bool, title: str) -> str:
        opts = self.options
        shapes = [np.asarray(s, dtype=np.float64).reshape(-1, 2) for s in shapes]
        pts = np.concatenate(shapes) if shapes else np.zeros((0, 2))
        if pts.shape[0] == 0:
            min_uv = np.zeros(2)
            extent = 1.0
        else:
            min_uv = pts.min(axis=0)
            extent = float(max(np.max(pts.max(axis=0) - min_uv), 1e-12))

        scale = (opts.size - 2.0 * opts.margin) / extent
        height = opts.size

        # SVG는 y-down
        def to_svg_xy(points: np.ndarray) -> np.ndarray:
            out = (points - min_uv) * scale + opts.margin
            out[:, 1] = height - out[:, 1]
            return out

        parts: list[str] = [
            '<?xml version="1.0" encoding="UTF-8" standalone="no"?>',
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{opts.size:.0f}" '
            f'height="{opts.size:.0f}" viewBox="0 0 {opts.size:.6f} {opts.size:.6f}">',
            f'<title>{title}</title>',
            '<!-- Produced by UVFlipRepair (diagnostics) -->',
            f'<g stroke="{opts.stroke_color}" stroke-width="{opts.stroke_width}" '
            f'fill="{opts.fill_color if closed else "none"}">',
        ]
        tag = "polygon" if closed else "polyline"
        for shape in shapes:
            p = " ".join(f"{xy[0]:.6f},{xy[1]:.6f}" for xy in to_svg_xy(shape.copy()))
            parts.append(f'<{tag} points="{p}" />')
        parts.append('</g>')
        parts.append('</svg>')
        return "\n".join(parts)

    def _write(self, path: Path, text: str) -> Optional[Path]:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except Exception:
            log_once(
                _LOGGER,
                f"diagnostics:write:{path.name}",
                logging.WARNING,
                "Failed to write diagnostic dump %s",
                path,
                exc_info=True,
            )
            return None
        _LOGGER.info("Diagnostic dump written: %s", path)
        return path

    def dump_non_simple_boundary(self, segment_a: np.ndarray, segment_b: np.ndarray) -> Optional[Path]:
        """교차하는 두 경계 선분 기록"""
        if self.directory is None:
            return None
        text = self._svg([segment_a, segment_b], closed=False, title="Non-simple boundary")
        return self._write(non_simple_boundary_path(self.directory), text)

    def dump_gap_exterior_faces(self, points: np.ndarray, triangles: np.ndarray) -> Optional[Path]:
        """gap triangulation 외부 면 기록"""
        if self.directory is None:
            return None
        pts = np.asarray(points, dtype=np.float64)
        tris = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
        text = self._svg([pts[t] for t in tris], closed=True, title="Convex hull gap faces")
        return self._write(gap_exterior_path(self.directory), text)
