"""Gemini client for relationship insight generation.

Only the network call lives here; prompt construction and response
parsing are in ``insights``.  Any failure surfaces as
``InsightGeneratorError`` so callers can fall back to default insights.
"""

from __future__ import annotations

import logging
import os

import google.generativeai as genai

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
API_KEY_ENV = "GEMINI_API_KEY"
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.0-flash-lite")
TEMPERATURE = 0.2
TOP_P = 0.95
TOP_K = 40
MAX_OUTPUT_TOKENS = 1000
REQUEST_TIMEOUT_SECONDS = 60


class InsightGeneratorError(Exception):
    """The generator could not produce any text."""


class InsightGeneratorUnavailable(InsightGeneratorError):
    """No API key is configured."""


def request_insights(prompt: str, api_key: str | None = None) -> str:
    """Send *prompt* to Gemini and return the raw response text.

    Args:
        prompt: Full prompt, statistics and sample messages included.
        api_key: Overrides the ``GEMINI_API_KEY`` environment variable.

    Returns:
        The model's text output, unparsed.

    Raises:
        InsightGeneratorUnavailable: If no API key is configured.
        InsightGeneratorError: If the request fails or the response has
            no text (for example when it was blocked).
    """
    key = api_key or os.environ.get(API_KEY_ENV)
    if not key:
        raise InsightGeneratorUnavailable(f"{API_KEY_ENV} is not set")

    genai.configure(api_key=key)
    model = genai.GenerativeModel(model_name=GEMINI_MODEL)
    config = genai.GenerationConfig(
        temperature=TEMPERATURE,
        top_p=TOP_P,
        top_k=TOP_K,
        max_output_tokens=MAX_OUTPUT_TOKENS,
    )

    try:
        response = model.generate_content(
            prompt,
            generation_config=config,
            request_options={"timeout": REQUEST_TIMEOUT_SECONDS},
        )
    except Exception as e:
        raise InsightGeneratorError(f"Gemini request failed: {type(e).__name__}") from e

    try:
        text = response.text
    except ValueError as e:
        raise InsightGeneratorError("Gemini response contained no text") from e

    logger.info("Gemini returned %d characters using %s", len(text), GEMINI_MODEL)
    return text
