"""
Logging helpers for the UVFlipRepair CLI.

main.py attaches one UTF-8 file handler so that rejected borders and solver
failures from a batch of --repair runs end up in a single log.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Optional

ENV_LOG_LEVEL = "UVFLIPREPAIR_LOG_LEVEL"
LOG_FILENAME = "uvfliprepair.log"

_seen_keys: set[str] = set()
_seen_lock = threading.Lock()


def default_log_dir() -> Path:
    if os.name == "nt":
        return Path(os.environ.get("LOCALAPPDATA") or Path.home()) / "UVFlipRepair" / "logs"
    state = os.environ.get("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
    return Path(state) / "uvfliprepair" / "logs"


def setup_logging(log_dir: Optional[str | Path] = None) -> Optional[Path]:
    """
    루트 로거에 파일 핸들러 연결 (이미 있으면 그 경로 반환)

    레벨은 UVFLIPREPAIR_LOG_LEVEL (기본 INFO). 로그 디렉터리를 만들 수 없으면 None.
    """
    root = logging.getLogger()
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)

    name = (os.environ.get(ENV_LOG_LEVEL) or "INFO").strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        level = logging.INFO

    path = Path(log_dir) if log_dir is not None else default_log_dir()
    try:
        path.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path / LOG_FILENAME, encoding="utf-8")
    except OSError:
        return None

    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root.addHandler(handler)
    root.setLevel(level)
    root.info("Logging to %s (level=%s)", handler.baseFilename, logging.getLevelName(level))
    return Path(handler.baseFilename)


def log_once(
    logger: logging.Logger,
    key: str,
    level: int,
    msg: str,
    *args,
    exc_info: bool | BaseException | None = None,
) -> bool:
    """key마다 프로세스당 한 번만 기록. 기록했으면 True"""
    with _seen_lock:
        if key in _seen_keys:
            return False
        _seen_keys.add(key)
    logger.log(level, msg, *args, exc_info=exc_info)
    return True
