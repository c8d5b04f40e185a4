from __future__ import annotations

import logging
import time
from typing import Any

import feedparser

from rss2hook.models import FeedItem

logger = logging.getLogger(__name__)


class ParseError(ValueError):
    """Raised when fetched bytes are not a usable feed."""


def parse_feed(raw: bytes) -> list[FeedItem]:
    parsed = feedparser.parse(raw)
    bozo = bool(getattr(parsed, "bozo", False))

    if not parsed.get("version"):
        raise ParseError("unrecognised feed format")
    if bozo and not parsed.entries:
        raise ParseError(f"malformed feed: {parsed.get('bozo_exception')}")
    if bozo:
        # The loose parser still recovers entries past undefined entities or a bare "&".
        logger.warning("Feed parsing bozo exception: %s", parsed.get("bozo_exception"))

    items: list[FeedItem] = []
    for entry in parsed.entries:
        item = _entry_to_item(entry)
        if item is None:
            logger.warning("Skipping feed entry without id, link or title")
            continue
        items.append(item)
    return items


def _entry_to_item(entry: Any) -> FeedItem | None:
    link = str(entry.get("link", "")).strip()
    title = str(entry.get("title", "")).strip()
    identifier = str(entry.get("id", "")).strip() or link or title
    if not identifier:
        return None

    return FeedItem(
        identifier=identifier,
        link=link,
        title=title,
        payload=_to_serializable_dict(entry),
    )


def _to_serializable_dict(value: Any) -> dict[str, Any]:
    serialized = _to_serializable(value)
    if isinstance(serialized, dict):
        return serialized
    return {"value": serialized}


def _to_serializable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, dict):
        return {str(key): _to_serializable(item) for key, item in value.items()}
    if isinstance(value, time.struct_time):
        return time.strftime("%Y-%m-%dT%H:%M:%SZ", value)
    if isinstance(value, (list, tuple)):
        return [_to_serializable(item) for item in value]
    return str(value)
