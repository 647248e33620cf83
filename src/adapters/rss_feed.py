"""RSS/Atom release feed source backed by feedparser."""

from collections.abc import Callable
from datetime import datetime
from typing import Any

import feedparser
import pytz

from src.config.logging_config import get_logger
from src.domain.exceptions import FeedError
from src.domain.models import FeedItem

logger = get_logger(__name__)

ParseFunc = Callable[[str], Any]


def _entry_value(entry: Any, key: str) -> str:
    value = entry.get(key) if hasattr(entry, "get") else getattr(entry, key, None)
    return str(value).strip() if value else ""


def _published(entry: Any) -> datetime | None:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return datetime(*parsed[:6], tzinfo=pytz.UTC)


def entry_to_item(entry: Any) -> FeedItem | None:
    """Convert a feed entry, or None when it has no usable identity.

    The item id is the entry id, falling back to the link and then the title.
    """
    title = _entry_value(entry, "title")
    link = _entry_value(entry, "link")
    item_id = _entry_value(entry, "id") or link or title
    if not item_id or not title:
        return None
    return FeedItem(item_id=item_id, title=title, link=link, published=_published(entry))


class RSSFeedSource:
    """Reads entries of one feed URL."""

    def __init__(self, url: str, *, parser: ParseFunc | None = None) -> None:
        if not url:
            raise ValueError("Feed URL must be set")
        self._url = url
        self._parser = parser or feedparser.parse

    def fetch_items(self) -> list[FeedItem]:
        """Fetch feed entries in feed order.

        Raises:
            FeedError: If the feed is unreadable and yields no entries
        """
        feed = self._parser(self._url)
        entries = list(getattr(feed, "entries", []) or [])

        if getattr(feed, "bozo", False):
            reason = str(getattr(feed, "bozo_exception", "unknown error"))
            if not entries:
                raise FeedError(f"Failed to parse feed {self._url}: {reason}")
            logger.warning("feed_parse_warning", url=self._url, error=reason)

        items: list[FeedItem] = []
        for entry in entries:
            item = entry_to_item(entry)
            if item is None:
                logger.debug("feed_entry_skipped", reason="missing_identity")
                continue
            items.append(item)

        logger.info("feed_fetched", url=self._url, item_count=len(items))
        return items
