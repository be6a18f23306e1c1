"""Small text and display helpers used by the parsers and the dashboard payload."""

from __future__ import annotations

import logging
from datetime import datetime

logger = logging.getLogger(__name__)

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")
MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def decode_instagram_text(text: str | None) -> str:
    """Undo Instagram's double encoding of non-ASCII text.

    Instagram exports write UTF-8 bytes as individual ``\\u00XX`` escapes,
    so after ``json.loads`` an emoji shows up as mojibake such as
    ``"ð\\x9f\\x98\\x8a"``.  Re-encoding as Latin-1 recovers the raw bytes.

    Args:
        text: The string as produced by ``json.loads``.  ``None`` is
            treated as empty.

    Returns:
        The decoded string, or *text* unchanged when it was not
        double-encoded (already-correct text fails the Latin-1 step).
    """
    if not text:
        return ""
    try:
        return text.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return text


def format_file_size(size: int | float) -> str:
    """Render a byte count as e.g. ``"1.5 MB"``.

    Args:
        size: Size in bytes.

    Returns:
        Human-readable size string; ``"0 Bytes"`` for zero or negative input.
    """
    if not size or size <= 0:
        return "0 Bytes"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[unit]}"


def format_percentage(part: float, total: float) -> str:
    """Percentage string with one decimal, ``"0%"`` when *total* is zero."""
    if not total:
        return "0%"
    return f"{part / total * 100:.1f}%"


def format_duration(minutes: float) -> str:
    """Render a duration in minutes as ``"45 sec"``, ``"12 min"``, ``"2h 5m"``,
    or ``"1d 3h"``.
    """
    if minutes < 1:
        return f"{round(minutes * 60)} sec"
    if minutes < 60:
        return f"{round(minutes)} min"
    if minutes < 1440:
        hours = int(minutes // 60)
        mins = round(minutes % 60)
        return f"{hours}h {mins}m" if mins else f"{hours}h"
    days = int(minutes // 1440)
    hours = round((minutes % 1440) / 60)
    return f"{days}d {hours}h" if hours else f"{days}d"


def format_display_date(timestamp: datetime | None) -> str:
    """``M/D/YYYY`` without zero padding, or ``"Unknown date"``."""
    if timestamp is None:
        return "Unknown date"
    return f"{timestamp.month}/{timestamp.day}/{timestamp.year}"


def month_key(timestamp: datetime) -> str:
    """Year-qualified sort key for month bucketing, e.g. ``"2023-05"``."""
    return timestamp.strftime("%Y-%m")


def month_label(key: str) -> str:
    """Display label for a ``YYYY-MM`` key, e.g. ``"May 2023"``."""
    try:
        parsed = datetime.strptime(key, "%Y-%m")
    except ValueError:
        logger.debug("Unexpected month key %r", key)
        return key
    return f"{MONTH_ABBREVIATIONS[parsed.month - 1]} {parsed.year}"
