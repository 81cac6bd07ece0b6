"""
Centralized rotating file logging for the web terminal exec server (wte_server).

This module configures a RotatingFileHandler that writes logs to a file, with a
fallback strategy for choosing a writable log path, plus a console handler so
the pod log shows startup and request logs. The file handler captures DEBUG and
above so issues can be diagnosed post-mortem.

Usage (call once during process startup, before uvicorn wires its handlers):

    from wte_server.app.logging_setup import initialize_from_env

    log_path = initialize_from_env(level=settings.log_level)

Environment variables (optional):
- WTE_LOG_FILE: Absolute path to the desired log file.
- WTE_LOG_DIR:  Directory where the log file should be created.
- WTE_LOG_MAX_BYTES: Max file size before rotate (default: 10485760 = 10MB).
- WTE_LOG_BACKUP_COUNT: Number of rotated files to keep (default: 3).
- LOG_LEVEL: Base log level for app logs (default: INFO).
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple, Union

__all__ = [
    "APP_LOGGER_NAME",
    "initialize_from_env",
    "setup_logging",
    "configure_third_party_loggers",
]

APP_LOGGER_NAME = "wte_server"

_DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
_DEFAULT_BACKUP_COUNT = 3
_DEFAULT_FORMAT_FILE = "%(asctime)s %(levelname)s [wte_server] %(name)s pid=%(process)d %(filename)s:%(lineno)d - %(message)s"
_DEFAULT_FORMAT_CONSOLE = "%(asctime)s %(levelname)s [wte_server] %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_ATTACHED_LOG_PATHS: set[str] = set()


def _coerce_level(level: Optional[Union[int, str]], default: int = logging.INFO) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        value = getattr(logging, level.strip().upper(), None)
        if isinstance(value, int):
            return value
    return default


def _candidate_paths(service_name: str, log_dir: Optional[Union[str, Path]]) -> List[Path]:
    """
    Compute a prioritized list of candidate paths to use for the log file.
    """
    candidates: List[Path] = []
    env_file = os.getenv("WTE_LOG_FILE")
    if env_file:
        candidates.append(Path(env_file).expanduser())

    file_name = f"{service_name}.log"
    if log_dir:
        candidates.append(Path(log_dir).expanduser() / file_name)
    env_dir = os.getenv("WTE_LOG_DIR")
    if env_dir:
        candidates.append(Path(env_dir).expanduser() / file_name)

    candidates.append(Path.home() / ".web_terminal_exec" / "logs" / file_name)
    candidates.append(Path(tempfile.gettempdir()) / "web_terminal_exec" / "logs" / file_name)
    return candidates


def _ensure_writable_file(path: Path) -> Tuple[bool, Optional[str]]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, mode="a", encoding="utf-8"):
            pass
        return True, None
    except OSError as e:
        return False, f"{e.__class__.__name__}: {e}"


def _pick_log_path(service_name: str, log_dir: Optional[Union[str, Path]]) -> Path:
    """
    Choose the first writable path from a prioritized list of candidates.
    Raises RuntimeError if none are writable.
    """
    attempts: List[Tuple[str, str]] = []
    for candidate in _candidate_paths(service_name, log_dir):
        ok, reason = _ensure_writable_file(candidate)
        if ok:
            return candidate
        attempts.append((str(candidate), reason or "unknown error"))

    reasons = "; ".join([f"{p} -> {r}" for p, r in attempts]) or "no candidates were attempted"
    raise RuntimeError(f"Failed to initialize wte_server file logging (no writable paths). Attempts: {reasons}")


def configure_third_party_loggers(base_level: int) -> None:
    """
    Tame noisy third-party libraries while allowing escalation via DEBUG when needed.
    """
    noisy = [
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "fastapi",
        "kubernetes",
        "urllib3",
        "websocket",
    ]
    lib_level = logging.INFO if base_level <= logging.DEBUG else logging.WARNING
    for name in noisy:
        logging.getLogger(name).setLevel(lib_level)

    for name in ("urllib3.connectionpool", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging(
    service_name: str = "web_terminal_exec",
    *,
    level: Optional[Union[int, str]] = None,
    log_dir: Optional[Union[str, Path]] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
    add_console: bool = True,
) -> Path:
    """
    Configure root logging with a rotating file handler and, optionally, a
    console handler.

    Returns:
        Path to the active log file.

    Raises:
        RuntimeError if no writable log path could be created.
    """
    requested = level if level is not None else (os.getenv("LOG_LEVEL") or "INFO")
    base_level = _coerce_level(requested, default=logging.INFO)
    bytes_limit = int(os.getenv("WTE_LOG_MAX_BYTES", str(max_bytes if max_bytes is not None else _DEFAULT_MAX_BYTES)))
    keep_files = int(os.getenv("WTE_LOG_BACKUP_COUNT", str(backup_count if backup_count is not None else _DEFAULT_BACKUP_COUNT)))

    log_path = _pick_log_path(service_name, log_dir)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)  # handlers decide what to emit

    target_key = str(Path(log_path).resolve())
    already_attached = any(
        getattr(h, "baseFilename", None) and str(Path(getattr(h, "baseFilename")).resolve()) == target_key
        for h in root.handlers
    )
    if not already_attached and target_key not in _ATTACHED_LOG_PATHS:
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_path,
            maxBytes=max(1, bytes_limit),
            backupCount=max(1, keep_files),
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT_FILE, datefmt=_DEFAULT_DATEFMT))
        root.addHandler(file_handler)
        _ATTACHED_LOG_PATHS.add(target_key)

    if add_console:
        has_console = any(
            isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) in (sys.stdout, sys.stderr)
            for h in root.handlers
        )
        if not has_console:
            ch = logging.StreamHandler(stream=sys.stdout)
            ch.setLevel(base_level)
            ch.setFormatter(logging.Formatter(_DEFAULT_FORMAT_CONSOLE, datefmt=_DEFAULT_DATEFMT))
            root.addHandler(ch)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(base_level)
    configure_third_party_loggers(base_level)

    if isinstance(requested, str) and _coerce_level(requested, default=-1) == -1:
        app_logger.error(
            "Failed to parse log level '%s'. Possible values: critical, error, warning, info, debug. Default 'info' is applied",
            requested,
        )
    app_logger.info(
        "Logging initialized: file=%s level=%s backup=%s",
        str(log_path),
        logging.getLevelName(base_level),
        keep_files,
    )
    return log_path


def initialize_from_env(level: Optional[Union[int, str]] = None) -> Path:
    """
    Convenience initializer for process startup: file + console logging,
    other settings read from the environment.
    """
    return setup_logging(level=level, add_console=True)
