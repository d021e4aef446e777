"""
Request Context and Logging Configuration State.

The request id lives in a ContextVar so it follows a request through
FastAPI's threadpool and any helper it calls. Level and configuration
are process-wide module state, set once by configure_logging().

Environment Variables:
    - LMS_SPEAKS_LOG_LEVEL: Log level (1-4 or name)
    - LMS_SPEAKS_LOG_DIR: Directory for the JSONL log file
    - LMS_SPEAKS_JSONL_FILE: JSONL log filename
    - LMS_SPEAKS_LOG_ROTATE_BYTES: Max file size before rotation
    - LMS_SPEAKS_LOG_ROTATE_BACKUP: Number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict, Mapping, Optional

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Request id of the current context, or "-" outside a request."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request id to the current context for log correlation."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def read_logging_config(section: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Resolve logging options from settings and the environment.

    Priority (highest first): environment variables, the ``logging``
    section (``section`` when given, else the one in the default settings
    file), built-in defaults.
    """
    cfg: Dict[str, Any] = {}

    if section is None:
        from lms_speaks.core.config import ConfigValidationError, load_settings
        try:
            section = load_settings().raw.get("logging")
        except (OSError, ConfigValidationError):
            section = None
    cfg.update(section or {})

    if os.getenv("LMS_SPEAKS_LOG_LEVEL"):
        cfg["level"] = os.environ["LMS_SPEAKS_LOG_LEVEL"]
    if os.getenv("LMS_SPEAKS_LOG_DIR"):
        cfg["log_dir"] = os.environ["LMS_SPEAKS_LOG_DIR"]
    if os.getenv("LMS_SPEAKS_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["LMS_SPEAKS_JSONL_FILE"]

    rotate_bytes = _env_int("LMS_SPEAKS_LOG_ROTATE_BYTES")
    if rotate_bytes is not None:
        cfg["rotate_max_bytes"] = rotate_bytes
    rotate_backup = _env_int("LMS_SPEAKS_LOG_ROTATE_BACKUP")
    if rotate_backup is not None:
        cfg["rotate_backup_count"] = rotate_backup

    return cfg
