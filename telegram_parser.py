"""Telegram JSON export (``result.json``) parsing."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from analytics import build_statistics, empty_statistics
from chat_message import (
    ANIMATION,
    DOCUMENT,
    IMAGE,
    LINK,
    STICKER,
    TELEGRAM_SKIPPED_SENDERS,
    VIDEO,
    ChatMessage,
    MediaItem,
    Reaction,
)

logger = logging.getLogger(__name__)

_MEDIA_RECORD_TYPES = {
    "image": IMAGE,
    "video": VIDEO,
    "document": DOCUMENT,
    "sticker": STICKER,
}
_MEDIA_TYPE_FIELD = {
    "video_file": VIDEO,
    "animation": ANIMATION,
    "sticker": STICKER,
}
_LINK_ENTITY_TYPES = ("link", "text_link")


def _flatten_text(text: Any) -> tuple[str, bool]:
    """Join Telegram's text entity list into one string.

    Returns:
        Tuple of (text, has_link_entity).
    """
    if isinstance(text, str):
        return text, False
    if not isinstance(text, list):
        return "", False
    parts = []
    has_link = False
    for item in text:
        if isinstance(item, str):
            parts.append(item)
        elif isinstance(item, dict):
            parts.append(str(item.get("text", "")))
            if item.get("type") in _LINK_ENTITY_TYPES:
                has_link = True
    return " ".join(parts), has_link


def _parse_date(record: dict) -> datetime | None:
    """Naive datetime from ``date`` (ISO) or ``date_unixtime``, else None."""
    value = record.get("date")
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value)
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
            return parsed
        except ValueError:
            logger.debug("Unparsable Telegram date %r", value)
    unix = record.get("date_unixtime")
    if unix is not None:
        try:
            return datetime.fromtimestamp(int(unix), tz=timezone.utc).replace(tzinfo=None)
        except (TypeError, ValueError, OverflowError, OSError):
            logger.debug("Unparsable Telegram unixtime %r", unix)
    return None


def _size(record: dict, key: str = "file_size") -> int:
    value = record.get(key)
    return value if isinstance(value, int) and value > 0 else 0


def _media_for(record: dict, has_link: bool) -> list[MediaItem]:
    """Media items for a record; the first matching rule wins."""
    record_type = record.get("type")
    if record_type in _MEDIA_RECORD_TYPES:
        return [MediaItem(_MEDIA_RECORD_TYPES[record_type], size=_size(record))]
    if record_type != "message":
        return []
    if record.get("photo"):
        return [MediaItem(IMAGE, size=_size(record, "photo_file_size"))]
    media_type = record.get("media_type")
    if media_type in _MEDIA_TYPE_FIELD:
        return [MediaItem(_MEDIA_TYPE_FIELD[media_type], size=_size(record))]
    if has_link:
        return [MediaItem(LINK)]
    if record.get("file_name"):
        return [MediaItem(DOCUMENT, size=_size(record))]
    return []


def _is_sticker(record: dict) -> bool:
    return record.get("type") == "sticker" or record.get("media_type") == "sticker"


def _reactions_for(record: dict, sender: str) -> list[Reaction]:
    reactions = []
    if record.get("type") == "reaction" and record.get("reaction_emoji"):
        reactions.append(Reaction(sender, record["reaction_emoji"]))
    for entry in record.get("reactions") or []:
        if not isinstance(entry, dict) or not entry.get("emoji"):
            continue
        recent = [r for r in entry.get("recent") or [] if isinstance(r, dict)]
        if recent:
            reactions.extend(Reaction(str(r.get("from") or ""), entry["emoji"]) for r in recent)
        else:
            count = entry.get("count") if isinstance(entry.get("count"), int) else 1
            reactions.extend(Reaction("", entry["emoji"]) for _ in range(count))
    return reactions


def normalize_telegram_messages(data: Any) -> list[ChatMessage]:
    """Map Telegram export records onto ``ChatMessage``.

    Records whose ``from`` is missing, empty, ``"undefined"`` or
    ``"unknown"`` are dropped.

    Args:
        data: The decoded export, ``{"chat_id", "participants", "messages"}``.

    Returns:
        Normalized messages in export order.

    Raises:
        ValueError: If *data* has no ``messages`` list.
    """
    if not isinstance(data, dict) or not isinstance(data.get("messages"), list):
        raise ValueError("Telegram export has no messages list")

    messages = []
    for index, record in enumerate(data["messages"]):
        if not isinstance(record, dict):
            logger.debug("Skipping non-object Telegram record #%d", index)
            continue
        sender = record.get("from")
        if not isinstance(sender, str) or sender.strip().lower() in TELEGRAM_SKIPPED_SENDERS:
            logger.debug("Skipping Telegram record #%d with sender %r", index, sender)
            continue

        text, has_link = _flatten_text(record.get("text"))
        messages.append(
            ChatMessage(
                sender=sender,
                timestamp=_parse_date(record),
                content=text,
                is_system_message=record.get("type") == "service",
                is_edited=bool(record.get("edited") or record.get("edited_date")),
                media=_media_for(record, has_link),
                reactions=_reactions_for(record, sender),
                sticker_emoji=record.get("sticker_emoji") if _is_sticker(record) else None,
            )
        )
    return messages


def parse_telegram_export(data: Any) -> dict[str, Any]:
    """Parse a decoded Telegram export into the statistics dict.

    Returns:
        The complete statistics dict, or the empty default when *data* is
        not a Telegram export.
    """
    try:
        messages = normalize_telegram_messages(data)
    except ValueError as e:
        logger.warning("Malformed Telegram export: %s", e)
        return empty_statistics("telegram")
    return build_statistics(messages, "telegram")
