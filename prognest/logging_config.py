"""Logging helpers for prognest.

The library itself only attaches ``NullHandler``s; applications (and the
``prognest`` CLI) call ``setup_logging`` to route records to a file:

* ``setup_logging`` initialises a single file handler, level from the
  environment.
* ``current_run_dir`` / ``get_log_path`` expose the location used for logs.
"""

from __future__ import annotations

import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Optional

__all__ = [
    "current_run_dir",
    "get_log_path",
    "setup_logging",
]

_configured = False
_run_dir: Optional[Path] = None
_log_path: Optional[Path] = None


def _platform_data_dir() -> Path:
    """Return a per-user writable application data directory."""
    app = "prognest"
    if os.name == "nt":
        base = Path(os.getenv("LOCALAPPDATA") or os.getenv("APPDATA") or (Path.home() / "AppData" / "Local"))
        return base / app
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / app
    xdg_home = os.getenv("XDG_DATA_HOME")
    if xdg_home:
        return Path(xdg_home) / app
    return Path.home() / ".local" / "share" / app


def _default_logs_dir() -> Path:
    return _platform_data_dir() / "logs"


def current_run_dir() -> Optional[Path]:
    """Return the directory that currently holds log artefacts."""
    return _run_dir


def _resolve_log_path(file_env: str) -> Path:
    override = os.getenv(file_env)
    if override:
        path = Path(override).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        return path
    logs_dir = _default_logs_dir()
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir / "prognest.log"


def setup_logging(
    *,
    level_env: str = "PROGNEST_LOG_LEVEL",
    file_env: str = "PROGNEST_LOG_FILE",
    force: bool = False,
) -> Path:
    """
    Configure the ``prognest`` logger with a single file handler.

    Records at the level named by ``PROGNEST_LOG_LEVEL`` (default WARNING) go
    to ``prognest.log`` in the per-user data directory, or to the path given
    by ``PROGNEST_LOG_FILE``. Idempotent unless ``force`` is set.
    """
    global _configured, _run_dir, _log_path

    if _configured and not force:
        return _run_dir if _run_dir is not None else _default_logs_dir()

    level_name = os.getenv(level_env, "WARNING").upper().strip()
    level = getattr(logging, level_name, logging.WARNING)
    if not isinstance(level, int):
        level = logging.WARNING

    handler: logging.Handler
    try:
        log_path = _resolve_log_path(file_env)
        handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError:
        log_path = Path(tempfile.gettempdir()) / "prognest.log"
        handler = logging.FileHandler(log_path, encoding="utf-8")
    _log_path = log_path
    _run_dir = log_path.parent

    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    logger = logging.getLogger("prognest")
    for existing in list(logger.handlers):
        if not isinstance(existing, logging.NullHandler):
            logger.removeHandler(existing)
            existing.close()
    logger.addHandler(handler)
    logger.setLevel(level)

    _configured = True
    return _run_dir


def get_log_path() -> Optional[Path]:
    """Expose the resolved log file path for modules that need it."""
    return _log_path
