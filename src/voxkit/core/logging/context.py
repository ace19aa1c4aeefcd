"""
Request correlation and shared logging state.

The request id lives in a ContextVar so it follows a request through
threads started by the web framework as well as plain synchronous calls.
Everything else is process-wide configuration.

Environment variables:
    VOXKIT_LOG_LEVEL   level 1-4 or a level name
    VOXKIT_LOG_DIR     directory for the JSONL log file (disabled if unset)
    VOXKIT_JSONL_FILE  JSONL file name (default ``voxkit.jsonl``)
    VOXKIT_NO_COLOR    disable ANSI colors on the console
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("voxkit_request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """
    Get current request ID from context.

    Returns:
        The request ID for the current context, or "-" outside a request.
    """
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind ``rid`` to every log line emitted from the current context."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    """Current console verbosity."""
    return _current_level


def set_level(level: LogLevel) -> None:
    """Set the verbosity used by every logging helper."""
    global _current_level
    _current_level = level


def get_level_name() -> str:
    """Name of the current level, e.g. "VERBOSE"."""
    return LEVEL_NAMES.get(int(_current_level), "NORMAL")


def is_configured() -> bool:
    """Whether configure_logging() has already installed handlers."""
    return _configured


def set_configured(value: bool) -> None:
    """Mark logging as configured (or not, to allow reconfiguration in tests)."""
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    """Settings the handlers were built from (dir, file name, rotation)."""
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    """Store the settings the handlers were built from."""
    global _log_config
    _log_config = config


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve the logging section of the settings file plus env overrides.

    The settings file is optional here: logging has to come up even when
    configuration is broken, so a missing or unreadable file means defaults.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("VOXKIT_CONFIG", "config/settings.yaml")
    try:
        from voxkit.core.config import load_settings
        settings = load_settings(settings_path)
        cfg.update(settings.raw.get("logging", {}) or {})
    except Exception:
        pass

    if os.getenv("VOXKIT_LOG_LEVEL"):
        cfg["level"] = os.environ["VOXKIT_LOG_LEVEL"]
    if os.getenv("VOXKIT_LOG_DIR"):
        cfg["log_dir"] = os.environ["VOXKIT_LOG_DIR"]
    if os.getenv("VOXKIT_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["VOXKIT_JSONL_FILE"]

    return cfg
