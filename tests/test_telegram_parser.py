"""Tests for telegram_parser.py."""

from __future__ import annotations

from datetime import datetime

from analytics import empty_statistics
from chat_message import ANIMATION, DOCUMENT, IMAGE, LINK, STICKER, VIDEO
from telegram_parser import normalize_telegram_messages, parse_telegram_export
from tests.helpers import make_telegram_export, make_telegram_message


def _single(record: dict):
    (message,) = normalize_telegram_messages(make_telegram_export([record]))
    return message


# ── Normalizer ──────────────────────────────


class TestNormalizeTelegramMessages:
    def test_undefined_sender_excluded(self, telegram_data):
        senders = [m.sender for m in normalize_telegram_messages(telegram_data)]
        assert "undefined" not in senders
        assert len(senders) == 3

    def test_missing_and_unknown_senders_excluded(self):
        data = make_telegram_export([
            make_telegram_message(None, "no from", "2023-05-12T08:00:00"),
            make_telegram_message("", "empty from", "2023-05-12T08:00:00"),
            make_telegram_message("unknown", "unknown from", "2023-05-12T08:00:00"),
        ])
        assert normalize_telegram_messages(data) == []

    def test_text_entities_joined_with_space(self):
        message = _single(make_telegram_message(
            "Alice",
            ["see", {"type": "bold", "text": "this"}, "now"],
            "2023-05-12T08:00:00",
        ))
        assert message.content == "see this now"

    def test_link_entity_becomes_link_media(self):
        message = _single(make_telegram_message(
            "Alice",
            ["look ", {"type": "link", "text": "https://example.com"}],
            "2023-05-12T08:00:00",
        ))
        assert [item.kind for item in message.media] == [LINK]

    def test_photo_with_size(self):
        message = _single(make_telegram_message(
            "Alice", "", "2023-05-12T08:00:00", photo="p.jpg", photo_file_size=512
        ))
        assert [(i.kind, i.size) for i in message.media] == [(IMAGE, 512)]

    def test_media_type_field(self):
        for media_type, kind in (
            ("video_file", VIDEO),
            ("animation", ANIMATION),
            ("sticker", STICKER),
        ):
            message = _single(make_telegram_message(
                "Alice", "", "2023-05-12T08:00:00", media_type=media_type, file_size=10
            ))
            assert [(i.kind, i.size) for i in message.media] == [(kind, 10)]

    def test_file_name_is_document(self):
        message = _single(make_telegram_message(
            "Alice", "", "2023-05-12T08:00:00", file_name="notes.pdf", file_size=99
        ))
        assert [(i.kind, i.size) for i in message.media] == [(DOCUMENT, 99)]

    def test_photo_wins_over_file_name(self):
        message = _single(make_telegram_message(
            "Alice", "", "2023-05-12T08:00:00", photo="p.jpg", file_name="p.jpg"
        ))
        assert [i.kind for i in message.media] == [IMAGE]

    def test_sticker_record_type(self):
        record = make_telegram_message("Alice", "", "2023-05-12T08:00:00", sticker_emoji="🔥")
        record["type"] = "sticker"
        message = _single(record)
        assert [i.kind for i in message.media] == [STICKER]
        assert message.sticker_emoji == "🔥"

    def test_reaction_record(self):
        record = make_telegram_message("Bob", "", "2023-05-12T08:00:00", reaction_emoji="❤️")
        record["type"] = "reaction"
        message = _single(record)
        assert [(r.actor, r.emoji) for r in message.reactions] == [("Bob", "❤️")]

    def test_reactions_list_with_recent_actors(self):
        message = _single(make_telegram_message(
            "Alice",
            "nice",
            "2023-05-12T08:00:00",
            reactions=[{"type": "emoji", "count": 1, "emoji": "👍", "recent": [{"from": "Bob"}]}],
        ))
        assert [(r.actor, r.emoji) for r in message.reactions] == [("Bob", "👍")]

    def test_edited_flag(self):
        message = _single(make_telegram_message(
            "Alice", "fixed", "2023-05-12T08:00:00", edited="2023-05-12T08:01:00"
        ))
        assert message.is_edited

    def test_service_record_is_system(self):
        record = make_telegram_message("Alice", "", "2023-05-12T08:00:00")
        record["type"] = "service"
        assert _single(record).is_system_message

    def test_unixtime_fallback(self):
        record = make_telegram_message("Alice", "hi", "not a date", date_unixtime="1683878400")
        assert _single(record).timestamp == datetime(2023, 5, 12, 8, 0)

    def test_bad_date_leaves_timestamp_empty(self):
        assert _single(make_telegram_message("Alice", "hi", "garbage")).timestamp is None


# ── Full lane ───────────────────────────────


class TestParseTelegramExport:
    def test_undefined_sender_not_counted(self, telegram_data):
        stats = parse_telegram_export(telegram_data)
        assert stats["messagesByUser"] == {"Alice": 2, "Bob": 1}
        assert "ghost" not in stats["wordFrequency"]
        assert stats["totalMessages"] == 3

    def test_photo_media_stats(self, telegram_data):
        stats = parse_telegram_export(telegram_data)
        assert stats["mediaStats"]["byType"]["images"] == 1
        assert stats["mediaStats"]["totalSize"] == 2048
        assert stats["mediaStats"]["byUser"]["Alice"]["byType"]["reels"] == 0

    def test_response_time(self, telegram_data):
        stats = parse_telegram_export(telegram_data)
        assert stats["responseTimes"]["Bob"]["distribution"]["0-5min"] == 1
        assert stats["responseTimes"]["Alice"]["distribution"]["5-15min"] == 1

    def test_temporal_buckets(self, telegram_data):
        stats = parse_telegram_export(telegram_data)
        assert stats["messagesByHour"]["8"] == 3
        assert stats["messagesByDay"]["Friday"] == 3
        assert stats["messagesByMonth"] == {"May 2023": 3}

    def test_sticker_emoji_counted(self):
        record = make_telegram_message("Alice", "", "2023-05-12T08:00:00", sticker_emoji="🔥")
        record["type"] = "sticker"
        stats = parse_telegram_export(make_telegram_export([record]))
        assert stats["emojiFrequency"] == {"🔥": 1}
        assert stats["emojiStats"]["byUser"]["Alice"] == {"🔥": 1}

    def test_edited_messages_tallied(self):
        data = make_telegram_export([
            make_telegram_message("Alice", "fixed", "2023-05-12T08:00:00", edited=True),
        ])
        stats = parse_telegram_export(data)
        assert stats["editedMessages"] == {"total": 1, "byUser": {"Alice": 1}}

    def test_missing_messages_returns_default(self):
        assert parse_telegram_export({"chat_id": 1}) == empty_statistics("telegram")

    def test_non_dict_returns_default(self):
        assert parse_telegram_export(["nope"]) == empty_statistics("telegram")
