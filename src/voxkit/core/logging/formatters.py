"""
Console and JSONL formatters.

Console lines look like::

    14:30:05 [ INFO  ] (3f2a9c1d) clone_prompt_hit voice=narrator tier=disk 0.004s

and the JSONL file receives one object per record::

    {"ts": "...", "level": 2, "tag": "INFO", "message": "clone_prompt_hit",
     "request_id": "3f2a9c1d", "seconds": 0.004, "extra": {"voice": "narrator"}}
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    GRAY = "\033[90m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


_TAG_COLORS = {
    "SUCCESS": Colors.BRIGHT_GREEN,
    "FAIL": Colors.BRIGHT_RED,
    "ERROR": Colors.BRIGHT_RED,
    "WARN": Colors.BRIGHT_YELLOW,
    "INFO": Colors.BRIGHT_CYAN,
    "DEBUG": Colors.GRAY,
    "TRACE": Colors.GRAY,
}

# Flipped by configure_logging() and by tests.
USE_COLORS = False


def supports_color() -> bool:
    """True when stdout is a TTY and neither NO_COLOR nor VOXKIT_NO_COLOR is set."""
    if os.getenv("NO_COLOR") or os.getenv("VOXKIT_NO_COLOR") == "1":
        return False
    stream = sys.stdout
    return hasattr(stream, "isatty") and stream.isatty()


def get_tag_color(tag: str) -> str:
    """ANSI color for a log tag; unknown tags are uncolored."""
    return _TAG_COLORS.get(tag.upper(), Colors.RESET)


def colorize(text: str, color: str) -> str:
    """Wrap ``text`` in ``color`` unless colors are disabled."""
    if not USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


class JsonlFormatter(logging.Formatter):
    """One JSON object per line, for log shipping and offline analysis."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "logger": record.name,
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Human-readable single-line records, colored when the terminal allows it."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            colorize(ts, Colors.DIM),
            colorize(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(colorize(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(colorize(f"event={event}", Colors.BLUE))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for key, value in extra_data.items():
                parts.append(colorize(f"{key}={value}", self._field_color(key)))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            parts.append(colorize(f"{seconds:.3f}s", self._timing_color(seconds)))

        return " ".join(parts)

    @staticmethod
    def _timing_color(seconds: float) -> str:
        if seconds < 0.1:
            return Colors.GREEN
        if seconds < 1.0:
            return Colors.YELLOW
        return Colors.RED

    @staticmethod
    def _field_color(key: str) -> str:
        # Cache tier names stand out so cold derivations are easy to spot.
        if key == "tier":
            return Colors.YELLOW
        if key in ("voice", "variant"):
            return Colors.CYAN
        return Colors.DIM
