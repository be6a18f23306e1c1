"""Relationship insights from an external text generator.

The statistics dict plus a sample of recent messages is turned into a
prompt; the generator's free-form reply is then read with increasingly
lenient strategies:

    parsed    the reply contains valid JSON
    repaired  the JSON parses after fixing trailing commas / bare keys
    salvaged  only the ``aiSummary`` string could be recovered
    default   nothing usable, or the generator failed

Every outcome yields the same six-field shape, so the dashboard never
branches on how the insights were obtained.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import Any, Callable

from analytics import classify_message
from chat_message import ChatMessage
from insight_generator import InsightGeneratorUnavailable, request_insights

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
SAMPLE_MESSAGE_LIMIT = 50
SUMMARY_TOP_N = 10
SUMMARY_GAPS_LIMIT = 5
NEUTRAL_SCORE = 50

DEFAULT_SUMMARY = "AI chat summary could not be generated. Please try again later."
NO_DATA_SUMMARY = "No data available for AI analysis."
DEFAULT_ATTACHMENT_DESCRIPTION = "Not enough information to determine an attachment style."

INSIGHT_FIELDS = (
    "aiSummary",
    "relationshipHealthScore",
    "interestPercentage",
    "cookedStatus",
    "attachmentStyles",
    "matchPercentage",
)

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_BARE_KEY_RE = re.compile(r'"(?:[^"\\]|\\.)*"|([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:')
_SUMMARY_RE = re.compile(r'"aiSummary"\s*:\s*"((?:[^"\\]|\\.)*)"')

Generator = Callable[[str], str]


# ---------------------------------------------------------------------------
# Prompt input
# ---------------------------------------------------------------------------

def select_sample_messages(
    messages: list[ChatMessage], limit: int = SAMPLE_MESSAGE_LIMIT
) -> list[dict[str, str]]:
    """Most recent *limit* plain text messages, shaped ``{from, text, date}``.

    System, deleted, edited and media-bearing (links included) messages
    are left out.
    """
    eligible = [
        m
        for m in messages
        if classify_message(m) == "text" and not m.media and not m.is_edited
    ]
    # Instagram exports list newest first; order chronologically before slicing.
    eligible.sort(key=lambda m: m.timestamp or datetime.min)
    return [
        {
            "from": m.sender,
            "text": m.content or "",
            "date": m.timestamp.isoformat() if m.timestamp else "",
        }
        for m in eligible[-limit:]
    ]


def build_chat_summary(stats: dict[str, Any]) -> dict[str, Any]:
    """The subset of *stats* sent to the generator."""
    return {
        "source": stats.get("source"),
        "totalMessages": stats.get("totalMessages", 0),
        "messagesByUser": stats.get("messagesByUser", {}),
        "totalWords": stats.get("totalWords", 0),
        "wordsByUser": stats.get("wordsByUser", {}),
        "mostUsedWords": stats.get("mostUsedWords", [])[:SUMMARY_TOP_N],
        "mostUsedEmojis": stats.get("mostUsedEmojis", [])[:SUMMARY_TOP_N],
        "responseTimes": stats.get("responseTimes", {}),
        "commonPhrases": stats.get("commonPhrases", [])[:SUMMARY_TOP_N],
        "overusedPhrases": stats.get("overusedPhrases", {}),
        "biggestGaps": stats.get("biggestGaps", [])[:SUMMARY_GAPS_LIMIT],
        "longestMessages": stats.get("longestMessages", {}),
        "messagesByHour": stats.get("messagesByHour", {}),
        "messagesByDay": stats.get("messagesByDay", {}),
        "messagesByMonth": stats.get("messagesByMonth", {}),
        "sorryByUser": stats.get("sorryByUser", {}),
    }


_RESPONSE_FORMAT = """{
  "aiSummary": "detailed 3-4 paragraph summary of chat dynamics",
  "relationshipHealthScore": {
    "overall": 75,
    "details": {"balance": 80, "engagement": 85, "positivity": 70, "consistency": 65},
    "redFlags": ["flag1", "flag2"]
  },
  "interestPercentage": {
    "User1": {
      "score": 85,
      "details": {"initiation": 90, "responseRate": 80, "enthusiasm": 85, "consistency": 85}
    }
  },
  "cookedStatus": {"isCooked": true, "user": "User1", "confidence": 90},
  "attachmentStyles": {
    "User1": {
      "user": "User1",
      "primaryStyle": "Secure",
      "secondaryStyle": "Anxious",
      "confidence": 70,
      "details": {"secure": 60, "anxious": 25, "avoidant": 10, "disorganized": 5},
      "description": "one or two sentences"
    }
  },
  "matchPercentage": {
    "score": 80,
    "compatibility": {"reasons": ["reason1"], "incompatibilities": ["issue1"]},
    "confidence": 70
  }
}"""


def build_prompt(summary: dict[str, Any], samples: list[dict[str, str]]) -> str:
    """Full prompt text for the generator."""
    return (
        "You are an expert in analyzing chat conversations. Based on the provided "
        "chat statistics and sample messages, generate:\n\n"
        "1. A 3-4 paragraph chat summary describing the relationship dynamics, "
        "communication patterns, and whether one person is \"cooked\" (showing "
        "significantly more interest than the other).\n"
        "2. A relationship health score from 0-100 with subscores (0-100) for "
        "balance, engagement, positivity and consistency.\n"
        "3. A list of potential red flags, if any.\n"
        "4. An interest percentage (0-100) for each participant with subscores for "
        "initiation, responseRate, enthusiasm and consistency.\n"
        "5. Whether one user is \"cooked\", meaning clearly more invested than the other.\n"
        "6. The likely attachment style of each participant (secure, anxious, "
        "avoidant, disorganized).\n"
        "7. A match percentage with compatibility reasons and incompatibilities.\n\n"
        "Use the participants' real names as keys.\n\n"
        f"Chat Statistics:\n{json.dumps(summary, indent=2, ensure_ascii=False)}\n\n"
        f"Sample Messages:\n{json.dumps(samples, indent=2, ensure_ascii=False)}\n\n"
        f"Respond in the following JSON format only:\n{_RESPONSE_FORMAT}\n"
    )


# ---------------------------------------------------------------------------
# Response strategies
# ---------------------------------------------------------------------------

def _json_span(raw: str) -> str | None:
    """Outermost ``{...}`` in *raw*, looking inside a code fence first."""
    fenced = _CODE_FENCE_RE.search(raw)
    text = fenced.group(1) if fenced else raw
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def _loads_object(text: str) -> dict | None:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def parse_direct(raw: str) -> dict | None:
    """Strictly parse the JSON object in *raw*."""
    span = _json_span(raw or "")
    return _loads_object(span) if span else None


def _quote_bare_key(match: re.Match) -> str:
    # String literals match without groups and pass through untouched.
    if match.group(2) is None:
        return match.group(0)
    return f'{match.group(1)}"{match.group(2)}":'


def parse_repaired(raw: str) -> dict | None:
    """Parse after fixing smart quotes, trailing commas and unquoted keys."""
    span = _json_span(raw or "")
    if not span:
        return None
    repaired = span.replace("\u201c", '"').replace("\u201d", '"')
    repaired = _TRAILING_COMMA_RE.sub(r"\1", repaired)
    parsed = _loads_object(repaired)
    if parsed is not None:
        return parsed
    return _loads_object(_BARE_KEY_RE.sub(_quote_bare_key, repaired))


def salvage_summary(raw: str) -> dict | None:
    """Recover just the ``aiSummary`` string from an unparsable reply."""
    match = _SUMMARY_RE.search(raw or "")
    if not match:
        return None
    try:
        summary = json.loads(f'"{match.group(1)}"')
    except json.JSONDecodeError:
        summary = match.group(1)
    return {"aiSummary": summary} if summary.strip() else None


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def _score(value: Any, default: int = NEUTRAL_SCORE) -> int | float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return min(max(value, 0), 100)


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, (str, int, float))]


def _interest_entry(raw: Any) -> dict[str, Any]:
    entry = _as_dict(raw)
    details = _as_dict(entry.get("details"))
    return {
        "score": _score(entry.get("score")),
        "details": {
            key: _score(details.get(key))
            for key in ("initiation", "responseRate", "enthusiasm", "consistency")
        },
    }


def _attachment_entry(user: str, raw: Any) -> dict[str, Any]:
    entry = _as_dict(raw)
    details = _as_dict(entry.get("details"))
    primary = entry.get("primaryStyle")
    secondary = entry.get("secondaryStyle")
    description = entry.get("description")
    return {
        "user": user,
        "primaryStyle": primary if isinstance(primary, str) and primary else "Undetermined",
        "secondaryStyle": secondary if isinstance(secondary, str) and secondary else None,
        "confidence": _score(entry.get("confidence"), 0),
        "details": {
            key: _score(details.get(key), 0)
            for key in ("secure", "anxious", "avoidant", "disorganized")
        },
        "description": (
            description
            if isinstance(description, str) and description
            else DEFAULT_ATTACHMENT_DESCRIPTION
        ),
    }


def normalize_insights(candidate: dict[str, Any], stats: dict[str, Any]) -> dict[str, Any]:
    """Coerce a generator reply into the complete six-field insight shape.

    Missing or mistyped values get neutral defaults: scores 50,
    confidences 0, empty lists, not cooked.  Per-user sections are keyed
    by the users in ``stats["messagesByUser"]``.

    Args:
        candidate: Whatever a parse strategy produced.
        stats: The statistics the insights describe.

    Returns:
        A new dict holding exactly the keys in ``INSIGHT_FIELDS``.
    """
    users = list(stats.get("messagesByUser") or {})

    summary = candidate.get("aiSummary")
    health = _as_dict(candidate.get("relationshipHealthScore"))
    health_details = _as_dict(health.get("details"))
    interest = _as_dict(candidate.get("interestPercentage"))
    cooked = _as_dict(candidate.get("cookedStatus"))
    attachment = _as_dict(candidate.get("attachmentStyles"))
    match = _as_dict(candidate.get("matchPercentage"))
    compatibility = _as_dict(match.get("compatibility"))

    cooked_user = cooked.get("user")
    if not isinstance(cooked_user, str) or not cooked_user:
        cooked_user = users[0] if users else "Unknown"

    return {
        "aiSummary": summary if isinstance(summary, str) and summary.strip() else DEFAULT_SUMMARY,
        "relationshipHealthScore": {
            "overall": _score(health.get("overall")),
            "details": {
                key: _score(health_details.get(key))
                for key in ("balance", "engagement", "positivity", "consistency")
            },
            "redFlags": _string_list(health.get("redFlags")),
        },
        "interestPercentage": {user: _interest_entry(interest.get(user)) for user in users},
        "cookedStatus": {
            "isCooked": cooked.get("isCooked") is True,
            "user": cooked_user,
            "confidence": _score(cooked.get("confidence"), 0),
        },
        "attachmentStyles": {
            user: _attachment_entry(user, attachment.get(user)) for user in users
        },
        "matchPercentage": {
            "score": _score(match.get("score")),
            "compatibility": {
                "reasons": _string_list(compatibility.get("reasons")),
                "incompatibilities": _string_list(compatibility.get("incompatibilities")),
            },
            "confidence": _score(match.get("confidence"), 0),
        },
    }


def default_insights(stats: dict[str, Any]) -> dict[str, Any]:
    """Neutral insights used when nothing could be generated."""
    return normalize_insights({"aiSummary": DEFAULT_SUMMARY}, stats)


def interpret_response(raw: str, stats: dict[str, Any]) -> tuple[dict[str, Any], str]:
    """Run the parse ladder over a generator reply.

    Returns:
        Tuple of (insights, outcome) where outcome is one of "parsed",
        "repaired", "salvaged" or "default".
    """
    strategies = (
        ("parsed", parse_direct),
        ("repaired", parse_repaired),
        ("salvaged", salvage_summary),
    )
    for outcome, strategy in strategies:
        candidate = strategy(raw)
        if candidate is not None:
            return normalize_insights(candidate, stats), outcome
    return default_insights(stats), "default"


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def generate_insights(
    stats: dict[str, Any],
    samples: list[dict[str, str]],
    generator: Generator | None = None,
) -> dict[str, Any]:
    """Ask the generator for insights; never raises.

    Args:
        stats: Complete statistics dict.
        samples: Output of ``select_sample_messages``.
        generator: Callable taking the prompt and returning raw text.
            Defaults to the Gemini client.

    Returns:
        The six insight fields.
    """
    if not stats.get("totalMessages"):
        insights = normalize_insights({"aiSummary": NO_DATA_SUMMARY}, stats)
        insights["relationshipHealthScore"]["overall"] = 0
        insights["relationshipHealthScore"]["redFlags"] = ["No data provided"]
        return insights

    generate = generator or request_insights
    prompt = build_prompt(build_chat_summary(stats), samples)
    try:
        raw = generate(prompt)
    except InsightGeneratorUnavailable as e:
        logger.warning("Insight generation unavailable: %s", e)
        return default_insights(stats)
    except Exception:
        logger.exception("Insight generation failed")
        return default_insights(stats)

    insights, outcome = interpret_response(raw, stats)
    if outcome == "parsed":
        logger.info("Insights parsed from generator response")
    else:
        logger.warning("Insights read with fallback strategy %r", outcome)
    return insights


def augment_statistics(
    stats: dict[str, Any],
    messages: list[ChatMessage],
    generator: Generator | None = None,
) -> dict[str, Any]:
    """Return a copy of *stats* with the insight fields filled in."""
    insights = generate_insights(stats, select_sample_messages(messages), generator)
    augmented = dict(stats)
    augmented.update(insights)
    return augmented
