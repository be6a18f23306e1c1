"""Route an uploaded chat export to the parser for its platform.

This is the boundary the web layer calls.  Malformed uploads never raise
from here: they produce the empty statistics dict for the platform.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from analytics import build_statistics, empty_statistics
from chat_message import SUPPORTED_PLATFORMS, ChatMessage
from insights import Generator, augment_statistics
from instagram_parser import normalize_instagram_messages, parse_instagram_export
from telegram_parser import normalize_telegram_messages, parse_telegram_export
from whatsapp_parser import parse_whatsapp_export, tokenize_whatsapp_export

logger = logging.getLogger(__name__)

_NORMALIZERS = {
    "telegram": normalize_telegram_messages,
    "instagram": normalize_instagram_messages,
}
_JSON_PARSERS = {
    "telegram": parse_telegram_export,
    "instagram": parse_instagram_export,
}


def check_platform(platform: str | None) -> str:
    """Return the canonical platform name.

    Raises:
        ValueError: If *platform* is not one of ``SUPPORTED_PLATFORMS``.
    """
    name = (platform or "").strip().lower()
    if name not in SUPPORTED_PLATFORMS:
        raise ValueError(f"Unsupported platform: {platform!r}")
    return name


def decode_upload(content: str | bytes) -> str:
    """Upload bytes as text; UTF-8 with an optional byte-order mark."""
    if isinstance(content, bytes):
        return content.decode("utf-8-sig")
    return content.lstrip("\ufeff")


def read_messages(content: str | bytes, platform: str) -> list[ChatMessage]:
    """Decode an upload and normalize it into messages.

    Raises:
        ValueError: If the platform is unknown, or the upload is not valid
            UTF-8 / JSON / an export of that platform.
    """
    platform = check_platform(platform)
    text = decode_upload(content)
    if platform == "whatsapp":
        return tokenize_whatsapp_export(text)
    return _NORMALIZERS[platform](json.loads(text))


def parse_chat_export(content: str | bytes, platform: str) -> dict[str, Any]:
    """Statistics for an upload, without insights.

    Args:
        content: Raw upload, bytes or already-decoded text.
        platform: "whatsapp", "telegram" or "instagram".

    Returns:
        The complete statistics dict; the empty default for malformed input.

    Raises:
        ValueError: If *platform* is not supported.
    """
    platform = check_platform(platform)
    try:
        text = decode_upload(content)
        if platform == "whatsapp":
            return parse_whatsapp_export(text)
        return _JSON_PARSERS[platform](json.loads(text))
    except ValueError as e:
        logger.warning("Could not read %s export: %s", platform, e)
    except Exception:
        logger.exception("Unexpected error parsing %s export", platform)
    return empty_statistics(platform)


def analyze_chat_export(
    content: str | bytes,
    platform: str,
    with_insights: bool = True,
    generator: Generator | None = None,
) -> dict[str, Any]:
    """Statistics for an upload, optionally augmented with generated insights.

    Args:
        content: Raw upload, bytes or already-decoded text.
        platform: "whatsapp", "telegram" or "instagram".
        with_insights: Whether to call the insight generator.
        generator: Overrides the default Gemini generator.

    Returns:
        The complete statistics dict.  Insight fields stay ``None`` when
        *with_insights* is false.

    Raises:
        ValueError: If *platform* is not supported.
    """
    platform = check_platform(platform)
    messages: list[ChatMessage] = []
    try:
        messages = read_messages(content, platform)
        stats = build_statistics(messages, platform)
    except ValueError as e:
        logger.warning("Could not read %s export: %s", platform, e)
        stats = empty_statistics(platform)
    except Exception:
        logger.exception("Unexpected error parsing %s export", platform)
        stats = empty_statistics(platform)

    if not with_insights:
        return stats
    return augment_statistics(stats, messages, generator)
