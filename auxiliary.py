#!/usr/bin/env python3
"""
Auxiliary formatting helpers for Kenosis reports
"""

import datetime
import pathlib
from typing import Optional

from tzlocal import get_localzone

_UNITS = (("GiB", 1024**3), ("MiB", 1024**2), ("KiB", 1024))


def format_bytes(size_bytes: int) -> str:
    """Format byte size into human-readable string

    Returns:
        Formatted string like "1.2 GiB", "345.0 MiB", "12.0 KiB", or "789 B"
    """
    for unit, factor in _UNITS:
        if size_bytes >= factor:
            return f"{size_bytes / factor:.1f} {unit}"
    return f"{size_bytes} B"


def format_path_for_display(path: str, home_path: Optional[str] = None) -> str:
    """Replace a leading home directory in *path* with ~"""
    if home_path is None:
        home_path = str(pathlib.Path.home())
    home_path = home_path.rstrip("/")
    if home_path and (path == home_path or path.startswith(home_path + "/")):
        return "~" + path[len(home_path) :]
    return path


def format_timestamp(epoch_seconds: float, tz=None) -> str:
    """Format a modification time as a local date and time"""
    tz = tz or get_localzone()
    return datetime.datetime.fromtimestamp(epoch_seconds, tz).strftime("%Y-%m-%d %H:%M")


def truncate_path(path: str, max_length: int = 50) -> str:
    """Shorten *path* to *max_length* characters with ... in the middle"""
    if len(path) <= max_length:
        return path

    available = max_length - 3
    start_len = available // 2
    end_len = available - start_len
    return f"{path[:start_len]}...{path[-end_len:]}"
