"""Instagram JSON export (``message_1.json``) parsing.

Instagram writes every non-ASCII character as escaped UTF-8 bytes, so all
names, text and reaction emoji pass through ``decode_instagram_text``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from analytics import build_statistics, empty_statistics
from chat_message import (
    DOCUMENT,
    IMAGE,
    INSTAGRAM_NOTICE_MARKERS,
    LINK,
    POST,
    REEL,
    STORY,
    VIDEO,
    ChatMessage,
    MediaItem,
    Reaction,
)
from format_utils import decode_instagram_text

logger = logging.getLogger(__name__)


def classify_share_link(link: str | None) -> str:
    """Media kind for a shared Instagram link; no link at all is a document."""
    if not link:
        return DOCUMENT
    if "/stories/" in link:
        return STORY
    if "/reel/" in link:
        return REEL
    if "/p/" in link:
        return POST
    return LINK


def is_notice(text: str) -> bool:
    """True for pseudo-messages like "You shared a story." or reaction notices."""
    return any(marker in text for marker in INSTAGRAM_NOTICE_MARKERS)


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.debug("Unparsable Instagram timestamp %r", value)
        return None


def _media_for(record: dict) -> list[MediaItem]:
    media = []
    photos = record.get("photos")
    if isinstance(photos, list) and photos:
        media.append(MediaItem(IMAGE, count=len(photos)))
    videos = record.get("videos")
    if isinstance(videos, list) and videos:
        media.append(MediaItem(VIDEO, count=len(videos)))
    share = record.get("share")
    if isinstance(share, dict):
        media.append(MediaItem(classify_share_link(share.get("link"))))
    return media


def _reactions_for(record: dict) -> list[Reaction]:
    reactions = []
    for entry in record.get("reactions") or []:
        if not isinstance(entry, dict) or not entry.get("reaction"):
            continue
        reactions.append(
            Reaction(
                actor=decode_instagram_text(entry.get("actor")),
                emoji=decode_instagram_text(entry["reaction"]),
            )
        )
    return reactions


def normalize_instagram_messages(data: Any) -> list[ChatMessage]:
    """Map Instagram export records onto ``ChatMessage``.

    Notices ("shared a story", reaction notices, ...) keep their sender
    and are counted, but are flagged as system messages so their text is
    not treated as conversation.

    Args:
        data: The decoded export, ``{"participants", "messages"}``.

    Returns:
        Normalized messages in export order (Instagram exports newest
        first; analysis sorts where order matters).

    Raises:
        ValueError: If *data* has no ``messages`` list.
    """
    if not isinstance(data, dict) or not isinstance(data.get("messages"), list):
        raise ValueError("Instagram export has no messages list")

    messages = []
    for index, record in enumerate(data["messages"]):
        if not isinstance(record, dict):
            logger.debug("Skipping non-object Instagram record #%d", index)
            continue
        sender = decode_instagram_text(record.get("sender_name"))
        if not sender or sender.lower() == "unknown":
            logger.debug("Skipping Instagram record #%d with no sender", index)
            continue

        content = record.get("content")
        text = decode_instagram_text(content) if isinstance(content, str) else ""
        messages.append(
            ChatMessage(
                sender=sender,
                timestamp=_parse_timestamp(record.get("timestamp_ms")),
                content=text,
                is_system_message=is_notice(text),
                media=_media_for(record),
                reactions=_reactions_for(record),
            )
        )
    return messages


def parse_instagram_export(data: Any) -> dict[str, Any]:
    """Parse a decoded Instagram export into the statistics dict.

    Returns:
        The complete statistics dict, or the empty default when *data* is
        not an Instagram export.
    """
    try:
        messages = normalize_instagram_messages(data)
    except ValueError as e:
        logger.warning("Malformed Instagram export: %s", e)
        return empty_statistics("instagram")
    return build_statistics(messages, "instagram")
