"""Normalized chat message record shared by every export lane.

Each platform parser maps its own raw fields onto ``ChatMessage``; the
analytics pass only ever sees this shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# ---------------------------------------------------------------------------
# Media kinds
# ---------------------------------------------------------------------------
IMAGE = "image"
VIDEO = "video"
DOCUMENT = "document"
STICKER = "sticker"
ANIMATION = "animation"
LINK = "link"
REEL = "reel"
STORY = "story"
POST = "post"

# Media kind -> key under mediaStats.byType
MEDIA_TYPE_KEYS = {
    IMAGE: "images",
    VIDEO: "videos",
    DOCUMENT: "documents",
    STICKER: "stickers",
    ANIMATION: "animations",
    LINK: "links",
    REEL: "reels",
    STORY: "stories",
    POST: "posts",
}

SUPPORTED_PLATFORMS = ("whatsapp", "telegram", "instagram")

# ---------------------------------------------------------------------------
# Platform marker allow-lists
# ---------------------------------------------------------------------------
WHATSAPP_MEDIA_OMITTED = ("<Media omitted>", "Media omitted")
WHATSAPP_EDITED_MARKER = "<This message was edited>"
WHATSAPP_DELETED_MARKERS = ("This message was deleted", "You deleted this message")

# Localized phrases are best-effort; exports in other locales slip through.
INSTAGRAM_NOTICE_MARKERS = (
    "shared a story",
    "sent an attachment",
    "You shared",
    "reaction to",
    "reacted to",
    "रिएक्शन",
    "मैसेज पर",
    "आपके मैसेज",
)

TELEGRAM_SKIPPED_SENDERS = ("", "undefined", "unknown")

APOLOGY_KEYWORDS = ("sorry", "apolog", "regret", "forgive", "my bad", "my fault")


@dataclass
class MediaItem:
    kind: str
    count: int = 1
    size: int = 0


@dataclass
class Reaction:
    actor: str
    emoji: str


@dataclass
class ChatMessage:
    """One message after lane normalization.

    An empty ``sender`` marks the message as unattributable; it is left out
    of every count.  A ``None`` timestamp only removes the message from
    temporal bucketing and response analysis.
    """

    sender: str
    timestamp: datetime | None = None
    content: str | None = None
    is_system_message: bool = False
    is_edited: bool = False
    is_deleted: bool = False
    media: list[MediaItem] = field(default_factory=list)
    reactions: list[Reaction] = field(default_factory=list)
    sticker_emoji: str | None = None

    @property
    def has_link(self) -> bool:
        return any(item.kind == LINK for item in self.media)
