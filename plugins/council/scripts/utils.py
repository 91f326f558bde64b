#!/usr/bin/env python3
"""
Agent Council Utilities

Timestamps, text helpers, and the live log used for tail -f monitoring.
"""
from __future__ import annotations

import datetime as dt
import logging
import re
from typing import IO, Optional

logger = logging.getLogger("council")

# Valid characters for agent names
VALID_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

# Global live log file handle (set by the entry point)
_live_log: Optional[IO[str]] = None


def set_live_log(log_file: Optional[IO[str]]) -> None:
    """Set the global live log file handle."""
    global _live_log
    _live_log = log_file


def write_live(msg: str, prefix: str = "") -> None:
    """Write to live log file for real-time monitoring via tail -f."""
    if _live_log:
        ts = dt.datetime.now().strftime("%H:%M:%S")
        line = f"[{ts}] {prefix}{msg}\n" if prefix else f"[{ts}] {msg}\n"
        _live_log.write(line)
        _live_log.flush()


def validate_name(name: str, kind: str) -> None:
    """Validate agent names so they stay usable as labels and file stems."""
    if not VALID_NAME_PATTERN.match(name):
        raise ValueError(
            f"Invalid {kind} name '{name}': must contain only alphanumeric, underscore, or hyphen"
        )


def truncate(text: str, limit: int, marker: str = "\n[...truncated]") -> str:
    """Cut text to at most `limit` characters, marking the cut."""
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + marker


def tail_lines(text: str, n: int) -> str:
    """Return the last n lines of text."""
    if n <= 0:
        return ""
    return "\n".join(text.splitlines()[-n:])


def format_duration(ms: Optional[int]) -> str:
    """Render milliseconds as seconds with one decimal, e.g. '3.2s'."""
    if ms is None:
        return "-"
    return f"{ms / 1000:.1f}s"
