"""Shared fixtures for chat_stats tests."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from insight_generator import InsightGeneratorUnavailable
from tests.helpers import (
    instagram_ms,
    make_instagram_export,
    make_instagram_message,
    make_telegram_export,
    make_telegram_message,
    make_whatsapp_export,
)


# ── Sample exports ──


@pytest.fixture()
def whatsapp_text() -> str:
    """Two-person WhatsApp export with a system line, media and an apology."""
    return make_whatsapp_export([
        ("12/05/23", "9:00 pm", None, "Messages and calls are end-to-end encrypted."),
        ("12/05/23", "9:00 pm", "Alice", "hi there 😊"),
        ("12/05/23", "9:05 pm", "Bob", "hey! sorry I was late"),
        ("12/05/23", "9:06 pm", "Bob", "<Media omitted>"),
        ("12/05/23", "9:20 pm", "Alice", "no worries at all"),
    ])


@pytest.fixture()
def telegram_data() -> dict:
    """Two-person Telegram export with one unattributable record."""
    return make_telegram_export([
        make_telegram_message("Alice", "good morning", "2023-05-12T08:00:00"),
        make_telegram_message("Bob", "morning!", "2023-05-12T08:03:00"),
        make_telegram_message("undefined", "ghost text", "2023-05-12T08:04:00"),
        make_telegram_message(
            "Alice", "", "2023-05-12T08:10:00", photo="photos/1.jpg", photo_file_size=2048
        ),
    ])


@pytest.fixture()
def instagram_data() -> dict:
    """Instagram export, newest first, with escaped emoji in a sender name."""
    return make_instagram_export([
        make_instagram_message("Bob", "see you 👋", instagram_ms(2023, 5, 12, 10, 12)),
        make_instagram_message("Ana 😊", "hello Bob", instagram_ms(2023, 5, 12, 10, 0)),
    ])


@pytest.fixture()
def telegram_bytes(telegram_data) -> bytes:
    return json.dumps(telegram_data).encode("utf-8")


# ── App client ──


@pytest.fixture()
def client():
    """TestClient for app.py with the insight generator disabled.

    Patches request_insights so no Gemini call is attempted; every
    request falls back to default insights.
    """
    import app as app_module

    with patch(
        "insights.request_insights",
        side_effect=InsightGeneratorUnavailable("GEMINI_API_KEY is not set"),
    ):
        with TestClient(app_module.app) as tc:
            yield tc
