"""Core statistics for normalized chat messages.

Turns the ``ChatMessage`` list produced by any of the platform parsers
into the statistics dict returned by the web service: counts, per-user
breakdowns, activity histograms, media and emoji tallies, apology and
phrase analysis, and response-time / gap analysis.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import emoji

from chat_message import (
    APOLOGY_KEYWORDS,
    DOCUMENT,
    MEDIA_TYPE_KEYS,
    WHATSAPP_MEDIA_OMITTED,
    ChatMessage,
)
from format_utils import format_display_date, month_key, month_label

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
TOP_N = 10
LONGEST_PER_USER = 3
BIGGEST_GAPS_LIMIT = 10
MAX_RESPONSE_GAP_MINUTES = 24 * 60
MIN_TOP_WORD_LENGTH = 3

PHRASE_MIN_WORDS = 2
PHRASE_MAX_WORDS = 5
PHRASE_MIN_OCCURRENCES = 3
PHRASE_OVERUSE_SHARE = 0.7
COMMON_PHRASES_LIMIT = 20
OVERUSED_PHRASES_LIMIT = 10

RESPONSE_BUCKETS = ("0-5min", "5-15min", "15-30min", "30min-1hour", "1hour+")
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

_NON_WORD_RE = re.compile(r"[^\w\s]")
_TRIVIAL_PHRASE_RE = re.compile(r"^[\d\s.,!?;:'\"()\[\]{}]+$")
# Single digits, ASCII letters and punctuation that are not real emoji.
_EMOJI_LEAK_RE = re.compile(r"^[0-9A-Za-z\s.,!?;:'\"()\[\]{}*#\-]$")


# ---------------------------------------------------------------------------
# Default shapes
# ---------------------------------------------------------------------------

def _empty_media_by_type() -> dict[str, int]:
    return {key: 0 for key in MEDIA_TYPE_KEYS.values()}


def _empty_media_entry() -> dict[str, Any]:
    return {"total": 0, "totalSize": 0, "byType": _empty_media_by_type()}


def _empty_response_entry() -> dict[str, Any]:
    return {
        "average": 0,
        "longest": 0,
        "distribution": {bucket: 0 for bucket in RESPONSE_BUCKETS},
    }


def empty_statistics(source: str) -> dict[str, Any]:
    """Return the fully populated default statistics dict for *source*.

    Every key a consumer may read is present: histograms carry all 24
    hours and all 7 days, media ``byType`` carries every kind, and the
    insight fields are ``None`` until insights are merged in.

    Args:
        source: Platform identifier ("whatsapp", "telegram" or "instagram").

    Returns:
        A new dict; callers may mutate it freely.
    """
    return {
        "source": source,
        "totalMessages": 0,
        "totalWords": 0,
        "messagesByUser": {},
        "wordsByUser": {},
        "wordFrequency": {},
        "wordFrequencyByUser": {},
        "emojiFrequency": {},
        "emojiStats": {
            "frequency": {},
            "byUser": {},
            "combinations": [],
            "sentiment": {"positive": 0, "negative": 0, "neutral": 0},
        },
        "mostUsedWords": [],
        "mostUsedEmojis": [],
        "messagesByHour": {str(hour): 0 for hour in range(24)},
        "messagesByDay": {day: 0 for day in DAY_NAMES},
        "messagesByMonth": {},
        "longestMessages": {},
        "mediaStats": {
            "total": 0,
            "totalSize": 0,
            "byType": _empty_media_by_type(),
            "byUser": {},
        },
        "editedMessages": {"total": 0, "byUser": {}},
        "sorryByUser": {},
        "mostApologeticUser": None,
        "equalApologies": False,
        "commonPhrases": [],
        "overusedPhrases": {},
        "responseTimes": {},
        "gapTrends": [],
        "gapAnalysis": {},
        "biggestGaps": [],
        "aiSummary": None,
        "relationshipHealthScore": None,
        "interestPercentage": None,
        "cookedStatus": None,
        "attachmentStyles": None,
        "matchPercentage": None,
    }


# ---------------------------------------------------------------------------
# Per-message classification
# ---------------------------------------------------------------------------

def classify_message(message: ChatMessage) -> str:
    """Decide which aggregation path a message takes.

    Returns:
        One of ``"skip"`` (no sender, ignored entirely), ``"system"``,
        ``"deleted"``, ``"media_omitted"``, ``"text"`` or ``"empty"``.
        Only ``"text"`` messages reach word, emoji, apology and phrase
        counting; all but ``"skip"`` are counted as messages.
    """
    if not message.sender:
        return "skip"
    if message.is_system_message:
        return "system"
    if message.is_deleted:
        return "deleted"
    content = (message.content or "").strip()
    if content in WHATSAPP_MEDIA_OMITTED:
        return "media_omitted"
    if content:
        return "text"
    return "empty"


def extract_emojis(text: str) -> list[str]:
    """Return every emoji in *text*, in order, duplicates kept."""
    return [match["emoji"] for match in emoji.emoji_list(text)]


def _match_apology(text: str) -> str | None:
    lowered = text.lower()
    for keyword in APOLOGY_KEYWORDS:
        if keyword in lowered:
            return keyword
    return None


def _increment(counter: dict, key: str, amount: int = 1) -> None:
    counter[key] = counter.get(key, 0) + amount


def _top_entries(counter: dict[str, int], label: str, limit: int = TOP_N) -> list[dict]:
    """Top *limit* ``{label: key, "count": n}`` entries, ties in first-seen order."""
    ranked = sorted(counter.items(), key=lambda kv: kv[1], reverse=True)
    return [{label: key, "count": count} for key, count in ranked[:limit]]


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def _record_media(stats: dict, sender: str, kind: str, count: int, size: int) -> None:
    type_key = MEDIA_TYPE_KEYS.get(kind)
    if type_key is None:
        logger.debug("Ignoring unknown media kind %r", kind)
        return
    media = stats["mediaStats"]
    media["total"] += count
    media["totalSize"] += size
    media["byType"][type_key] += count

    user_media = media["byUser"].setdefault(sender, _empty_media_entry())
    user_media["total"] += count
    user_media["totalSize"] += size
    user_media["byType"][type_key] += count


def _record_emoji(stats: dict, user: str | None, symbol: str) -> None:
    _increment(stats["emojiFrequency"], symbol)
    if user:
        _increment(stats["emojiStats"]["byUser"].setdefault(user, {}), symbol)


def _record_longest(stats: dict, message: ChatMessage, text: str, length: int) -> None:
    entries = stats["longestMessages"].setdefault(message.sender, [])
    entries.append(
        {
            "text": text,
            "length": length,
            "date": format_display_date(message.timestamp),
        }
    )
    entries.sort(key=lambda e: e["length"], reverse=True)
    del entries[LONGEST_PER_USER:]


def _record_text(
    stats: dict,
    message: ChatMessage,
    apology_keywords: dict[str, dict[str, int]],
    combinations: dict[tuple[str, ...], int],
) -> None:
    """Word, apology, emoji and longest-message accounting for a text message."""
    sender = message.sender
    text = message.content or ""
    tokens = text.split()

    stats["totalWords"] += len(tokens)
    stats["wordsByUser"][sender] += len(tokens)
    user_words = stats["wordFrequencyByUser"][sender]
    for token in tokens:
        word = _NON_WORD_RE.sub("", token.lower())
        if not word:
            continue
        _increment(stats["wordFrequency"], word)
        _increment(user_words, word)

    keyword = _match_apology(text)
    if keyword is not None:
        _increment(stats["sorryByUser"], sender)
        _increment(apology_keywords.setdefault(sender, {}), keyword)

    found = extract_emojis(text)
    for symbol in found:
        _record_emoji(stats, sender, symbol)
    distinct = list(dict.fromkeys(found))
    if len(distinct) >= 2:
        _increment(combinations, tuple(sorted(distinct)))

    _record_longest(stats, message, text, len(tokens))


def compute_apology_summary(
    sorry_by_user: dict[str, int],
    apology_keywords: dict[str, dict[str, int]],
) -> tuple[dict | None, bool]:
    """Pick the most apologetic user, or report a tie.

    Args:
        sorry_by_user: Apology counts, only users with at least one.
        apology_keywords: Per-user tally of the apology keyword matched.

    Returns:
        Tuple of (mostApologeticUser dict or None, equalApologies).  A tie
        between the top two users yields ``(None, True)``; no apologies
        at all yields ``(None, False)``.
    """
    ranked = sorted(sorry_by_user.items(), key=lambda kv: kv[1], reverse=True)
    if not ranked or ranked[0][1] == 0:
        return None, False
    if len(ranked) >= 2 and ranked[0][1] == ranked[1][1]:
        return None, True

    user, apologies = ranked[0]
    total = sum(sorry_by_user.values())
    keywords = apology_keywords.get(user, {})
    most_common = max(keywords, key=keywords.get) if keywords else "sorry"
    return (
        {
            "user": user,
            "apologies": apologies,
            "percentage": round(apologies / total * 100),
            "mostCommonSorry": most_common,
        },
        False,
    )


def aggregate_messages(messages: list[ChatMessage]) -> dict[str, Any]:
    """Single pass over normalized messages producing the count-based stats.

    Messages without a sender are ignored.  Every other message is
    counted, bucketed by hour/weekday/month when it has a timestamp, and
    its media, sticker emoji and reactions are tallied.  Only text
    messages feed word frequency, emoji extraction, apology detection and
    the longest-message lists.

    Args:
        messages: Normalized messages in source order.

    Returns:
        Partial statistics dict (no source, no response-time or phrase
        keys); pass it through ``assemble_statistics`` for the full shape.
    """
    stats = empty_statistics("")
    del stats["source"]
    month_counts: dict[str, int] = {}
    apology_keywords: dict[str, dict[str, int]] = {}
    combinations: dict[tuple[str, ...], int] = {}

    for message in messages:
        kind = classify_message(message)
        if kind == "skip":
            continue
        sender = message.sender

        stats["totalMessages"] += 1
        _increment(stats["messagesByUser"], sender)
        stats["wordsByUser"].setdefault(sender, 0)
        stats["wordFrequencyByUser"].setdefault(sender, {})

        if message.timestamp is not None:
            ts = message.timestamp
            _increment(stats["messagesByHour"], str(ts.hour))
            # weekday() is Monday-based, DAY_NAMES starts on Sunday
            _increment(stats["messagesByDay"], DAY_NAMES[(ts.weekday() + 1) % 7])
            _increment(month_counts, month_key(ts))

        if message.is_edited:
            edited = stats["editedMessages"]
            edited["total"] += 1
            _increment(edited["byUser"], sender)

        if kind == "media_omitted":
            _record_media(stats, sender, DOCUMENT, 1, 0)
        for item in message.media:
            _record_media(stats, sender, item.kind, item.count, item.size)

        if message.sticker_emoji:
            _record_emoji(stats, sender, message.sticker_emoji)
        for reaction in message.reactions:
            if not reaction.emoji:
                continue
            known = reaction.actor and reaction.actor.lower() != "unknown"
            _record_emoji(stats, reaction.actor if known else None, reaction.emoji)

        if kind == "text":
            _record_text(stats, message, apology_keywords, combinations)

    stats["messagesByMonth"] = {
        month_label(key): month_counts[key] for key in sorted(month_counts)
    }
    stats["emojiStats"]["frequency"] = dict(stats["emojiFrequency"])
    stats["emojiStats"]["combinations"] = [
        {"emojis": list(combo), "count": count}
        for combo, count in sorted(
            combinations.items(), key=lambda kv: kv[1], reverse=True
        )[:TOP_N]
    ]

    stats["mostUsedWords"] = _top_entries(
        {w: c for w, c in stats["wordFrequency"].items() if len(w) >= MIN_TOP_WORD_LENGTH},
        "word",
    )
    stats["mostUsedEmojis"] = _top_entries(
        {e: c for e, c in stats["emojiFrequency"].items() if not _EMOJI_LEAK_RE.match(e)},
        "emoji",
    )

    most_apologetic, tie = compute_apology_summary(stats["sorryByUser"], apology_keywords)
    stats["mostApologeticUser"] = most_apologetic
    stats["equalApologies"] = tie
    return stats


# ---------------------------------------------------------------------------
# Response times and gaps
# ---------------------------------------------------------------------------

def response_bucket(minutes: float) -> str:
    """Distribution bucket for a response gap in minutes."""
    if minutes < 5:
        return "0-5min"
    if minutes < 15:
        return "5-15min"
    if minutes < 30:
        return "15-30min"
    if minutes < 60:
        return "30min-1hour"
    return "1hour+"


def _push_biggest_gap(biggest: list[dict], entry: dict) -> None:
    """Keep *biggest* as the top-N gaps, longest first."""
    if len(biggest) >= BIGGEST_GAPS_LIMIT and entry["duration"] <= biggest[-1]["duration"]:
        return
    biggest.append(entry)
    biggest.sort(key=lambda g: g["duration"], reverse=True)
    del biggest[BIGGEST_GAPS_LIMIT:]


def compute_response_times(
    messages: list[ChatMessage],
    users: list[str] | dict[str, int],
) -> dict[str, Any]:
    """Reconstruct turn-taking and measure how long each user takes to reply.

    Messages are sorted chronologically (stable, so equal timestamps keep
    source order).  Every consecutive pair with two different senders is a
    response by the second sender, unless the gap is 24 hours or more, in
    which case the pair is ignored as a conversation restart.

    Args:
        messages: Normalized messages, any order.
        users: Users to pre-populate (typically ``messagesByUser``), so
            users who never reply still get a zeroed entry.

    Returns:
        Dict with keys:
            - responseTimes: per-user {average, longest, distribution}.
            - gapTrends: list of {time, duration} for every response.
            - gapAnalysis: per-user list of {time, duration}.
            - biggestGaps: top 10 {user, duration, date}, longest first.
    """
    response_times = {user: _empty_response_entry() for user in users}
    gap_analysis: dict[str, list[dict]] = {user: [] for user in users}
    samples: dict[str, list[float]] = {user: [] for user in users}
    gap_trends: list[dict] = []
    biggest: list[dict] = []

    timed = [m for m in messages if m.sender and m.timestamp is not None]
    timed.sort(key=lambda m: m.timestamp)

    for prev, curr in zip(timed, timed[1:]):
        if prev.sender == curr.sender:
            continue
        minutes = (curr.timestamp - prev.timestamp).total_seconds() / 60
        if minutes >= MAX_RESPONSE_GAP_MINUTES:
            continue

        user = curr.sender
        entry = response_times.setdefault(user, _empty_response_entry())
        entry["distribution"][response_bucket(minutes)] += 1
        samples.setdefault(user, []).append(minutes)

        duration = round(minutes, 2)
        point = {"time": curr.timestamp.date().isoformat(), "duration": duration}
        gap_trends.append(point)
        gap_analysis.setdefault(user, []).append(dict(point))
        _push_biggest_gap(
            biggest,
            {"user": user, "duration": duration, "date": curr.timestamp.isoformat()},
        )

    for user, values in samples.items():
        if values:
            response_times[user]["average"] = round(sum(values) / len(values), 2)
            response_times[user]["longest"] = round(max(values), 2)

    return {
        "responseTimes": response_times,
        "gapTrends": gap_trends,
        "gapAnalysis": gap_analysis,
        "biggestGaps": biggest,
    }


# ---------------------------------------------------------------------------
# Phrase analysis
# ---------------------------------------------------------------------------

def filter_subset_phrases(phrase_counts: dict[str, int]) -> dict[str, int]:
    """Drop phrases contained in a longer phrase with the same count.

    "good night" and "good night love" both seen 5 times keeps only the
    longer one.  Surviving entries keep their original order.
    """
    by_count: dict[int, list[str]] = {}
    for phrase, count in phrase_counts.items():
        by_count.setdefault(count, []).append(phrase)

    dropped: set[str] = set()
    for phrases in by_count.values():
        if len(phrases) < 2:
            continue
        ordered = sorted(phrases, key=len, reverse=True)
        for i, longer in enumerate(ordered):
            if longer in dropped:
                continue
            for shorter in ordered[i + 1:]:
                if shorter not in dropped and shorter in longer:
                    dropped.add(shorter)

    return {p: c for p, c in phrase_counts.items() if p not in dropped}


def _message_phrases(text: str) -> list[str]:
    words = re.sub(r"\s+", " ", text.lower()).strip().split(" ")
    phrases = []
    for size in range(PHRASE_MIN_WORDS, PHRASE_MAX_WORDS + 1):
        for i in range(len(words) - size + 1):
            phrase = " ".join(words[i:i + size])
            if len(phrase) < 4 or _TRIVIAL_PHRASE_RE.match(phrase):
                continue
            phrases.append(phrase)
    return phrases


def analyze_phrases(
    messages: list[ChatMessage],
) -> tuple[list[dict], dict[str, list[dict]]]:
    """Find repeated 2-5 word phrases overall and per user.

    Only text messages without links are considered.

    Returns:
        Tuple of (commonPhrases, overusedPhrases).  commonPhrases holds the
        top 20 phrases seen at least 3 times.  overusedPhrases maps a user
        to up to 10 phrases they used at least 3 times and account for at
        least 70% of; users with none are omitted.
    """
    phrase_counts: dict[str, int] = {}
    user_counts: dict[str, dict[str, int]] = {}

    for message in messages:
        if classify_message(message) != "text" or message.has_link:
            continue
        text = message.content or ""
        if "http://" in text or "https://" in text:
            continue
        per_user = user_counts.setdefault(message.sender, {})
        for phrase in _message_phrases(text):
            _increment(phrase_counts, phrase)
            _increment(per_user, phrase)

    frequent = filter_subset_phrases(
        {p: c for p, c in phrase_counts.items() if c >= PHRASE_MIN_OCCURRENCES}
    )
    common = _top_entries(frequent, "text", limit=COMMON_PHRASES_LIMIT)

    overused: dict[str, list[dict]] = {}
    for user, counts in user_counts.items():
        candidates = filter_subset_phrases(
            {p: c for p, c in counts.items() if c >= PHRASE_MIN_OCCURRENCES}
        )
        significant = {
            p: c
            for p, c in candidates.items()
            if c / frequent.get(p, c) >= PHRASE_OVERUSE_SHARE
        }
        if significant:
            overused[user] = _top_entries(significant, "text", limit=OVERUSED_PHRASES_LIMIT)

    return common, overused


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

_PLAIN_KEYS = (
    "totalMessages",
    "totalWords",
    "messagesByUser",
    "wordsByUser",
    "wordFrequency",
    "wordFrequencyByUser",
    "emojiFrequency",
    "mostUsedWords",
    "mostUsedEmojis",
    "messagesByMonth",
    "longestMessages",
    "sorryByUser",
    "mostApologeticUser",
    "equalApologies",
    "commonPhrases",
    "overusedPhrases",
    "gapTrends",
    "gapAnalysis",
    "biggestGaps",
    "aiSummary",
    "relationshipHealthScore",
    "interestPercentage",
    "cookedStatus",
    "attachmentStyles",
    "matchPercentage",
)


def _assemble_media(partial: dict) -> dict[str, Any]:
    media = _empty_media_entry()
    media["byUser"] = {}
    media["total"] = partial.get("total", 0)
    media["totalSize"] = partial.get("totalSize", 0)
    media["byType"].update(partial.get("byType") or {})
    for user, entry in (partial.get("byUser") or {}).items():
        user_media = _empty_media_entry()
        user_media["total"] = entry.get("total", 0)
        user_media["totalSize"] = entry.get("totalSize", 0)
        user_media["byType"].update(entry.get("byType") or {})
        media["byUser"][user] = user_media
    return media


def _assemble_response_times(partial: dict) -> dict[str, Any]:
    result = {}
    for user, entry in partial.items():
        filled = _empty_response_entry()
        filled["average"] = entry.get("average", 0)
        filled["longest"] = entry.get("longest", 0)
        filled["distribution"].update(entry.get("distribution") or {})
        result[user] = filled
    return result


def assemble_statistics(partial: dict[str, Any], source: str) -> dict[str, Any]:
    """Fill every field of the statistics dict from *partial*.

    Each field is taken from *partial* when present, otherwise from the
    documented default in ``empty_statistics``.  Nested fixed-shape dicts
    (histograms, media ``byType`` per user, response distributions,
    emoji stats) are filled key by key, so a lane that never produces,
    say, reels still reports ``reels: 0``.

    Args:
        partial: Whatever the lane computed.
        source: Platform identifier stored under ``"source"``.

    Returns:
        A new, complete statistics dict.
    """
    stats = empty_statistics(source)
    for key in _PLAIN_KEYS:
        if key in partial:
            stats[key] = partial[key]

    stats["messagesByHour"].update(partial.get("messagesByHour") or {})
    stats["messagesByDay"].update(partial.get("messagesByDay") or {})
    stats["mediaStats"] = _assemble_media(partial.get("mediaStats") or {})
    stats["responseTimes"] = _assemble_response_times(partial.get("responseTimes") or {})

    emoji_stats = partial.get("emojiStats") or {}
    for key in ("frequency", "byUser", "combinations"):
        if key in emoji_stats:
            stats["emojiStats"][key] = emoji_stats[key]
    stats["emojiStats"]["sentiment"].update(emoji_stats.get("sentiment") or {})

    edited = partial.get("editedMessages") or {}
    stats["editedMessages"]["total"] = edited.get("total", 0)
    stats["editedMessages"]["byUser"] = edited.get("byUser", {})
    return stats


def build_statistics(messages: list[ChatMessage], source: str) -> dict[str, Any]:
    """One-call entry point: aggregate, analyze responses and phrases, assemble.

    Args:
        messages: Normalized messages from one lane.
        source: Platform identifier.

    Returns:
        The complete statistics dict.
    """
    partial = aggregate_messages(messages)
    partial.update(compute_response_times(messages, partial["messagesByUser"]))
    common, overused = analyze_phrases(messages)
    partial["commonPhrases"] = common
    partial["overusedPhrases"] = overused
    stats = assemble_statistics(partial, source)
    logger.info(
        "Built %s statistics: %d messages from %d users",
        source,
        stats["totalMessages"],
        len(stats["messagesByUser"]),
    )
    return stats


# ---------------------------------------------------------------------------
# Dashboard helpers
# ---------------------------------------------------------------------------

def total_responses(distribution: dict[str, int]) -> int:
    return sum(distribution.values())


def response_percentage(distribution: dict[str, int], bucket: str) -> float:
    """Share of responses in *bucket*, as a percentage rounded to 1 dp."""
    total = total_responses(distribution)
    if not total:
        return 0.0
    return round(distribution.get(bucket, 0) / total * 100, 1)


def top_media_contributor(stats: dict[str, Any]) -> dict[str, Any] | None:
    """User who shared the most media, as ``{"user", "total"}``, or None."""
    by_user = stats.get("mediaStats", {}).get("byUser", {})
    best = None
    for user, entry in by_user.items():
        if entry.get("total", 0) > 0 and (best is None or entry["total"] > best["total"]):
            best = {"user": user, "total": entry["total"]}
    return best


def media_type_percentages(stats: dict[str, Any]) -> dict[str, float]:
    """Percentage of all media per type, only for types that occurred."""
    media = stats.get("mediaStats", {})
    total = media.get("total", 0)
    if not total:
        return {}
    return {
        key: round(count / total * 100, 1)
        for key, count in media.get("byType", {}).items()
        if count
    }
