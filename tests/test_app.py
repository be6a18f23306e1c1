"""Tests for the FastAPI app (app.py) routes."""

from __future__ import annotations

import json
from unittest.mock import patch


# ── Health routes ─────────────────────────────


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_healthz(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestPlatforms:
    def test_lists_platforms(self, client):
        response = client.get("/api/platforms")
        assert response.json() == {"platforms": ["whatsapp", "telegram", "instagram"]}


# ── Analyze ───────────────────────────────────


class TestAnalyze:
    def test_whatsapp_upload(self, client, whatsapp_text):
        response = client.post(
            "/api/analyze",
            files={"file": ("chat.txt", whatsapp_text.encode("utf-8"), "text/plain")},
            data={"platform": "whatsapp"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["source"] == "whatsapp"
        assert body["messagesByUser"] == {"Alice": 2, "Bob": 2}
        assert body["responseTimes"]["Bob"]["distribution"]["5-15min"] == 1

    def test_default_insights_when_generator_unavailable(self, client, telegram_bytes):
        response = client.post(
            "/api/analyze",
            files={"file": ("result.json", telegram_bytes, "application/json")},
            data={"platform": "telegram"},
        )
        body = response.json()
        assert body["cookedStatus"]["isCooked"] is False
        assert set(body["interestPercentage"]) == {"Alice", "Bob"}

    def test_insights_can_be_disabled(self, client, telegram_bytes):
        response = client.post(
            "/api/analyze",
            files={"file": ("result.json", telegram_bytes, "application/json")},
            data={"platform": "telegram", "insights": "false"},
        )
        assert response.json()["aiSummary"] is None

    def test_instagram_upload(self, client, instagram_data):
        response = client.post(
            "/api/analyze",
            files={"file": ("message_1.json", json.dumps(instagram_data).encode("utf-8"))},
            data={"platform": "instagram"},
        )
        assert "Ana 😊" in response.json()["messagesByUser"]

    def test_malformed_upload_returns_default(self, client):
        response = client.post(
            "/api/analyze",
            files={"file": ("result.json", b"{broken", "application/json")},
            data={"platform": "telegram"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["totalMessages"] == 0
        assert len(body["messagesByHour"]) == 24

    def test_unknown_platform_is_400(self, client):
        response = client.post(
            "/api/analyze",
            files={"file": ("chat.txt", b"hello", "text/plain")},
            data={"platform": "signal"},
        )
        assert response.status_code == 400

    def test_missing_platform_is_422(self, client):
        response = client.post(
            "/api/analyze",
            files={"file": ("chat.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 422

    def test_oversized_upload_is_413(self, client):
        with patch("app.MAX_UPLOAD_BYTES", 10):
            response = client.post(
                "/api/analyze",
                files={"file": ("chat.txt", b"x" * 11, "text/plain")},
                data={"platform": "whatsapp"},
            )
        assert response.status_code == 413
