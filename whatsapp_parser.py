"""WhatsApp plain-text export parsing.

Export lines look like::

    12/05/23, 9:54 pm - Alice: see you tomorrow
    12/05/23, 9:55 pm - Messages and calls are end-to-end encrypted.

Lines without a header continue the previous message.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

from analytics import build_statistics, empty_statistics
from chat_message import (
    LINK,
    WHATSAPP_DELETED_MARKERS,
    WHATSAPP_EDITED_MARKER,
    ChatMessage,
    MediaItem,
)

logger = logging.getLogger(__name__)

_HEADER = r"^(\d{1,2}/\d{1,2}/(?:\d{2}|\d{4})),\s(\d{1,2}:\d{1,2}(?:\s?[ap]m)?)\s-\s"
MESSAGE_RE = re.compile(_HEADER + r"([^:]+):(?:\s(.*))?$", re.IGNORECASE)
SYSTEM_RE = re.compile(_HEADER + r"(.+)$", re.IGNORECASE)


def parse_whatsapp_timestamp(date_str: str, time_str: str) -> datetime:
    """Parse a day-first WhatsApp date and a 12h or 24h time.

    Two-digit years are taken as 20YY.  Hours and minutes are clamped
    into range.  A date that does not exist on the calendar (e.g. 31/02)
    falls back to today at the parsed time rather than failing the line.

    Args:
        date_str: ``D/M/YY`` or ``D/M/YYYY``.
        time_str: ``9:54 pm``, ``9:54pm``, ``9:54 PM`` or ``21:54``.

    Returns:
        A naive datetime.
    """
    day, month, year = (int(part) for part in date_str.split("/"))
    if year < 100:
        year += 2000

    clock = time_str.strip().lower()
    meridiem = None
    if clock.endswith(("am", "pm")):
        meridiem = clock[-2:]
        clock = clock[:-2].strip()
    hour, minute = (int(part) for part in clock.split(":"))
    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0
    hour = min(max(hour, 0), 23)
    minute = min(max(minute, 0), 59)

    try:
        return datetime(year, month, day, hour, minute)
    except ValueError:
        logger.warning("Invalid WhatsApp date %r, falling back to today", date_str)
        return datetime.now().replace(hour=hour, minute=minute, second=0, microsecond=0)


def _finish_message(message: ChatMessage) -> ChatMessage:
    """Apply marker and link detection once a message has all its lines."""
    content = message.content or ""
    if WHATSAPP_EDITED_MARKER in content:
        message.is_edited = True
        content = content.replace(WHATSAPP_EDITED_MARKER, "").strip()
    if content.strip() in WHATSAPP_DELETED_MARKERS:
        message.is_deleted = True
    if "http://" in content or "https://" in content:
        message.media.append(MediaItem(LINK))
    message.content = content
    return message


def tokenize_whatsapp_export(text: str) -> list[ChatMessage]:
    """Split a WhatsApp export into messages.

    Args:
        text: The whole export file as a string.

    Returns:
        Messages in file order.  System lines come back with an empty
        sender and ``is_system_message`` set.
    """
    messages: list[ChatMessage] = []
    current: ChatMessage | None = None

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        match = MESSAGE_RE.match(line)
        if match:
            if current is not None:
                messages.append(_finish_message(current))
            date_str, time_str, sender, content = match.groups()
            current = ChatMessage(
                sender=sender.strip(),
                timestamp=parse_whatsapp_timestamp(date_str, time_str),
                content=content or "",
            )
            continue

        match = SYSTEM_RE.match(line)
        if match:
            if current is not None:
                messages.append(_finish_message(current))
                current = None
            date_str, time_str, content = match.groups()
            messages.append(
                ChatMessage(
                    sender="",
                    timestamp=parse_whatsapp_timestamp(date_str, time_str),
                    content=content,
                    is_system_message=True,
                )
            )
            continue

        if current is not None:
            current.content = f"{current.content}\n{line}"
        else:
            logger.debug("Dropping continuation line with no open message")

    if current is not None:
        messages.append(_finish_message(current))
    return messages


def parse_whatsapp_export(text: str) -> dict[str, Any]:
    """Parse a WhatsApp text export into the statistics dict.

    Args:
        text: The export contents; a leading byte-order mark is ignored.

    Returns:
        The complete statistics dict; the empty default when nothing in
        *text* looks like a WhatsApp message.
    """
    messages = tokenize_whatsapp_export(text.lstrip("\ufeff"))
    if not messages:
        logger.warning("No WhatsApp messages found in export")
        return empty_statistics("whatsapp")
    return build_statistics(messages, "whatsapp")
