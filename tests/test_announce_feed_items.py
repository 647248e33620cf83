"""Tests for the feed announcement orchestrator."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.adapters.sqlite_ledger import SQLiteProcessedLedger
from src.domain.exceptions import CatalogAPIError, FeedError
from src.domain.models import FeedItem, SearchCandidate
from src.services.asset_uploader import AssetUploader
from src.services.candidate_scorer import CandidateScorer
from src.services.thread_composer import ThreadComposer
from src.use_cases.announce_feed_items import (
    AnnouncementContext,
    AnnouncementOptions,
    ItemOutcome,
    announce_feed_items_use_case,
    announce_item,
)
from src.use_cases.post_game_thread import ThreadPostingOptions
from tests.conftest import FakeChatClient, FakeFetcher

COVER_URL = "https://images.example.org/cover.png"
SHOT_URL = "https://images.example.org/shot0.png"


class FakeCatalog:
    def __init__(
        self,
        results: list[SearchCandidate] | None = None,
        *,
        error: Exception | None = None,
        cover_url: str | None = COVER_URL,
        screenshot_urls: list[str] | None = None,
    ) -> None:
        self.results = results or []
        self.error = error
        self.cover_url = cover_url
        self.screenshot_urls = screenshot_urls or []
        self.queries: list[tuple[str, int | None]] = []

    def search_games(self, query, *, fields=None, limit=None, filters=None):
        self.queries.append((query, limit))
        if self.error is not None:
            raise self.error
        return list(self.results)

    def resolve_image_urls(self, candidate):
        return self.cover_url, list(self.screenshot_urls)


class InMemoryLedger:
    def __init__(self, processed: set[str] | None = None) -> None:
        self.processed = set(processed or ())

    def exists(self, item_id: str) -> bool:
        return item_id in self.processed

    def mark_processed(self, item_id: str) -> None:
        self.processed.add(item_id)


class StaticFeed:
    def __init__(self, items: list[FeedItem]) -> None:
        self.items = items

    def fetch_items(self) -> list[FeedItem]:
        return list(self.items)


def _item(item_id: str = "post-1", title: str = "Hades [FitGirl Repack]") -> FeedItem:
    return FeedItem(item_id=item_id, title=title, link=f"https://example.org/{item_id}")


def _context(
    catalog: FakeCatalog,
    chat_client: FakeChatClient,
    *,
    ledger=None,
    fetcher: FakeFetcher | None = None,
    fixed_clock=None,
    sleeps: list[float] | None = None,
) -> AnnouncementContext:
    sleep_calls = sleeps if sleeps is not None else []
    return AnnouncementContext(
        catalog=catalog,
        ledger=ledger or InMemoryLedger(),
        scorer=CandidateScorer(clock=fixed_clock),
        uploader=AssetUploader(chat_client, fetcher or FakeFetcher()),
        composer=ThreadComposer(chat_client),
        options=AnnouncementOptions(
            item_delay_seconds=2.0,
            thread=ThreadPostingOptions(reply_delay_seconds=0.0),
        ),
        sleep=sleep_calls.append,
    )


def test_empty_search_sends_plain_notice(chat_client, fixed_clock) -> None:
    ledger = InMemoryLedger()
    fetcher = FakeFetcher()
    context = _context(
        FakeCatalog([]), chat_client, ledger=ledger, fetcher=fetcher, fixed_clock=fixed_clock
    )

    outcome = announce_item(_item(), context)

    assert outcome is ItemOutcome.TEXT_ONLY
    assert chat_client.texts == [
        {"body": "🎮 New Game: Hades\n🔗 https://example.org/post-1"}
    ]
    assert chat_client.uploads == []
    assert fetcher.requested == []
    assert ledger.processed == {"post-1"}


def test_catalog_error_sends_plain_notice(chat_client, fixed_clock) -> None:
    catalog = FakeCatalog(error=CatalogAPIError("IGDB down"))
    context = _context(catalog, chat_client, fixed_clock=fixed_clock)

    outcome = announce_item(_item(), context)

    assert outcome is ItemOutcome.TEXT_ONLY
    assert len(chat_client.texts) == 1


def test_search_uses_extracted_name_and_limit(chat_client, fixed_clock) -> None:
    catalog = FakeCatalog([])
    context = _context(catalog, chat_client, fixed_clock=fixed_clock)

    announce_item(_item(title="Stardew Valley v1.6.9 [GOG]"), context)

    assert catalog.queries == [("Stardew Valley v1.6.9", 10)]


def test_resolved_game_is_posted_as_thread(
    chat_client, fixed_clock, make_candidate, image_bytes
) -> None:
    ledger = InMemoryLedger()
    catalog = FakeCatalog(
        [
            make_candidate(catalog_id=2, name="Hades Deluxe"),
            make_candidate(catalog_id=1, name="Hades", url="https://www.igdb.com/games/hades"),
        ],
        screenshot_urls=[SHOT_URL],
    )
    fetcher = FakeFetcher({COVER_URL: image_bytes("PNG"), SHOT_URL: image_bytes("PNG")})
    context = _context(
        catalog, chat_client, ledger=ledger, fetcher=fetcher, fixed_clock=fixed_clock
    )

    outcome = announce_item(_item(), context)

    assert outcome is ItemOutcome.ENRICHED
    root, reply = chat_client.events
    assert root["body"].startswith("🎮 **Hades**")
    assert "https://www.igdb.com/games/hades" in root["formatted_body"]
    assert reply["m.relates_to"]["event_id"] == "$event1"
    assert ledger.processed == {"post-1"}


def test_missing_cover_falls_back_to_formatted_text(
    chat_client, fixed_clock, make_candidate
) -> None:
    catalog = FakeCatalog([make_candidate(name="Hades")], cover_url=None)
    ledger = InMemoryLedger()
    context = _context(catalog, chat_client, ledger=ledger, fixed_clock=fixed_clock)

    outcome = announce_item(_item(), context)

    assert outcome is ItemOutcome.TEXT_ONLY
    assert chat_client.uploads == []
    assert "formatted_body" in chat_client.texts[0]
    assert ledger.processed == {"post-1"}


def test_already_processed_items_are_skipped(chat_client, fixed_clock) -> None:
    catalog = FakeCatalog([])
    ledger = InMemoryLedger({"post-1"})
    context = _context(catalog, chat_client, ledger=ledger, fixed_clock=fixed_clock)

    outcome = announce_item(_item(), context)

    assert outcome is ItemOutcome.SKIPPED
    assert catalog.queries == []
    assert chat_client.texts == []


def test_undelivered_item_is_not_marked(chat_client, fixed_clock) -> None:
    chat_client.fail_texts = True
    ledger = InMemoryLedger()
    sleeps: list[float] = []
    context = _context(
        FakeCatalog([]), chat_client, ledger=ledger, fixed_clock=fixed_clock, sleeps=sleeps
    )

    result = announce_feed_items_use_case(StaticFeed([_item()]), context)

    assert result.items_failed == 1
    assert ledger.processed == set()


def test_run_counts_outcomes_and_delays_between_items(
    chat_client, fixed_clock
) -> None:
    ledger = InMemoryLedger({"post-0"})
    sleeps: list[float] = []
    feed = StaticFeed([_item("post-0"), _item("post-1"), _item("post-2")])
    context = _context(
        FakeCatalog([]), chat_client, ledger=ledger, fixed_clock=fixed_clock, sleeps=sleeps
    )

    result = announce_feed_items_use_case(feed, context)

    assert result.items_seen == 3
    assert result.items_skipped == 1
    assert result.items_text_only == 2
    assert result.items_failed == 0
    assert sleeps == [2.0]
    assert ledger.processed == {"post-0", "post-1", "post-2"}


def test_second_run_does_not_repost(chat_client, fixed_clock, tmp_path: Path) -> None:
    ledger = SQLiteProcessedLedger.from_path(str(tmp_path / "ledger.db"))
    feed = StaticFeed([_item("post-1"), _item("post-2")])
    context = _context(FakeCatalog([]), chat_client, ledger=ledger, fixed_clock=fixed_clock)

    first = announce_feed_items_use_case(feed, context)
    second = announce_feed_items_use_case(feed, context)

    assert first.items_text_only == 2
    assert second.items_skipped == 2
    assert len(chat_client.texts) == 2


def test_unexpected_errors_are_isolated_per_item(chat_client, fixed_clock) -> None:
    class ExplodingLedger(InMemoryLedger):
        def exists(self, item_id: str) -> bool:
            if item_id == "post-1":
                raise RuntimeError("disk on fire")
            return super().exists(item_id)

    ledger = ExplodingLedger()
    feed = StaticFeed([_item("post-1"), _item("post-2")])
    context = _context(FakeCatalog([]), chat_client, ledger=ledger, fixed_clock=fixed_clock)

    result = announce_feed_items_use_case(feed, context)

    assert result.items_failed == 1
    assert result.items_text_only == 1
    assert ledger.processed == {"post-2"}


def test_feed_errors_propagate(chat_client, fixed_clock) -> None:
    class BrokenFeed:
        def fetch_items(self) -> list[FeedItem]:
            raise FeedError("unreachable")

    context = _context(FakeCatalog([]), chat_client, fixed_clock=fixed_clock)

    with pytest.raises(FeedError):
        announce_feed_items_use_case(BrokenFeed(), context)
