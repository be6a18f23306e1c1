"""Shared test helpers for chat_stats tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

from datetime import datetime, timezone

from chat_message import ChatMessage


def make_message(
    sender: str,
    text: str | None,
    timestamp: datetime | None = None,
    **extra,
) -> ChatMessage:
    """Build a normalized message directly, bypassing any parser."""
    return ChatMessage(sender=sender, timestamp=timestamp, content=text, **extra)


def make_whatsapp_export(lines: list[tuple[str, str, str | None, str]]) -> str:
    """Build WhatsApp export text from (date, time, sender, text) tuples.

    A ``None`` sender produces a system line.
    """
    out = []
    for date, time, sender, text in lines:
        if sender is None:
            out.append(f"{date}, {time} - {text}")
        else:
            out.append(f"{date}, {time} - {sender}: {text}")
    return "\n".join(out) + "\n"


def make_telegram_message(sender: str | None, text, date: str, **extra) -> dict:
    """Build one Telegram export record of type "message"."""
    record = {"id": 1, "type": "message", "date": date, "text": text}
    if sender is not None:
        record["from"] = sender
    record.update(extra)
    return record


def make_telegram_export(records: list[dict]) -> dict:
    for i, record in enumerate(records):
        record["id"] = i + 1
    return {"chat_id": 42, "participants": {}, "messages": records}


def instagram_escape(text: str) -> str:
    """Reproduce Instagram's double encoding of non-ASCII text."""
    return text.encode("utf-8").decode("latin-1")


def instagram_ms(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> int:
    """Epoch milliseconds for a UTC wall-clock time."""
    dt = datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def make_instagram_message(sender: str, content: str | None, timestamp_ms: int, **extra) -> dict:
    """Build one Instagram export record; *sender* and *content* get escaped."""
    record = {"sender_name": instagram_escape(sender), "timestamp_ms": timestamp_ms}
    if content is not None:
        record["content"] = instagram_escape(content)
    record.update(extra)
    return record


def make_instagram_export(records: list[dict]) -> dict:
    participants = []
    for record in records:
        name = {"name": record["sender_name"]}
        if name not in participants:
            participants.append(name)
    return {"participants": participants, "messages": records}
