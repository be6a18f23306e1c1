"""FastAPI service for chat export statistics.

Accepts a WhatsApp, Telegram or Instagram export as a multipart upload and
returns the statistics dict, optionally with generated relationship
insights.

Deployment: uvicorn app:app --host 127.0.0.1 --port 8204
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, File, Form, HTTPException, UploadFile

from chat_message import SUPPORTED_PLATFORMS
from chat_parser import analyze_chat_export, check_platform

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
MAX_UPLOAD_BYTES = int(os.environ.get("CHAT_STATS_MAX_UPLOAD_BYTES", 50 * 1024 * 1024))

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="Chat Statistics")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health")
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/api/platforms")
def api_platforms():
    """List the export formats the analyzer understands."""
    return {"platforms": list(SUPPORTED_PLATFORMS)}


@app.post("/api/analyze")
def api_analyze(
    file: UploadFile = File(...),
    platform: str = Form(...),
    insights: bool = Form(True),
):
    """Parse an uploaded export and return its statistics.

    A file that cannot be parsed still returns 200 with the empty
    statistics for the platform.
    """
    try:
        platform = check_platform(platform)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    content = file.file.read(MAX_UPLOAD_BYTES + 1)
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Upload too large")

    logger.info(
        "Analyzing %s upload %r (%d bytes)", platform, file.filename, len(content)
    )
    return analyze_chat_export(content, platform, with_insights=insights)
