"""Announce new feed items.

For every feed entry not yet in the ledger: extract a game name, look it up
in the catalog, pick the best candidate and post it as an image thread. When
the catalog has no usable match a plain text notice is sent instead. Items
are recorded only after something reached the room, so failures are retried
on the next poll.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Final

from src.config.logging_config import get_logger
from src.domain.exceptions import CatalogAPIError, NotFoundError
from src.domain.models import AnnouncementResult, FeedItem
from src.domain.protocols import (
    CatalogClientProtocol,
    FeedSourceProtocol,
    ProcessedLedgerProtocol,
)
from src.observability.tracing import correlation_scope
from src.services.asset_uploader import AssetUploader
from src.services.candidate_resolver import resolve_candidate
from src.services.candidate_scorer import CandidateScorer
from src.services.message_formatter import (
    DEFAULT_SUMMARY_LENGTH,
    format_game_html,
    format_game_text,
    format_plain_notice,
)
from src.services.thread_composer import ThreadComposer
from src.services.title_extractor import extract_game_name
from src.use_cases.post_game_thread import (
    SleepCallable,
    ThreadPostingOptions,
    post_game_thread_use_case,
)

logger = get_logger(__name__)

DEFAULT_ITEM_DELAY_SECONDS: Final[float] = 2.0
DEFAULT_SEARCH_LIMIT: Final[int] = 10


class ItemOutcome(str, Enum):
    SKIPPED = "skipped"
    ENRICHED = "enriched"
    TEXT_ONLY = "text_only"


@dataclass(frozen=True)
class AnnouncementOptions:
    """Per-run options for announcing feed items."""

    item_delay_seconds: float = DEFAULT_ITEM_DELAY_SECONDS
    search_limit: int = DEFAULT_SEARCH_LIMIT
    summary_length: int = DEFAULT_SUMMARY_LENGTH
    thread: ThreadPostingOptions = field(default_factory=ThreadPostingOptions)


@dataclass
class AnnouncementContext:
    """Collaborators shared by every item of a run."""

    catalog: CatalogClientProtocol
    ledger: ProcessedLedgerProtocol
    scorer: CandidateScorer
    uploader: AssetUploader
    composer: ThreadComposer
    options: AnnouncementOptions = field(default_factory=AnnouncementOptions)
    sleep: SleepCallable = time.sleep


def announce_item(item: FeedItem, context: AnnouncementContext) -> ItemOutcome:
    """Announce a single feed item.

    Args:
        item: Feed entry
        context: Shared collaborators

    Returns:
        What happened to the item

    Raises:
        PostError: If nothing could be delivered
        LedgerError: On ledger storage errors
    """
    if context.ledger.exists(item.item_id):
        logger.debug("feed_item_already_processed")
        return ItemOutcome.SKIPPED

    game_name = extract_game_name(item.title)
    logger.info("feed_item_processing", title=item.title, game_name=game_name)

    try:
        candidates = context.catalog.search_games(
            game_name, limit=context.options.search_limit
        )
        resolution = resolve_candidate(game_name, candidates, context.scorer)
        cover_url, screenshot_urls = context.catalog.resolve_image_urls(
            resolution.candidate
        )
    except (NotFoundError, CatalogAPIError) as error:
        logger.warning(
            "catalog_lookup_failed",
            game_name=game_name,
            error_type=type(error).__name__,
            error=str(error),
        )
        context.composer.send_text_fallback(format_plain_notice(game_name, item.link))
        context.ledger.mark_processed(item.item_id)
        return ItemOutcome.TEXT_ONLY

    candidate = resolution.candidate
    summary_length = context.options.summary_length
    result = post_game_thread_use_case(
        candidate,
        cover_url,
        screenshot_urls,
        caption=format_game_text(candidate, item.link, summary_length),
        html=format_game_html(candidate, item.link, summary_length),
        uploader=context.uploader,
        composer=context.composer,
        options=context.options.thread,
        sleep=context.sleep,
    )

    context.ledger.mark_processed(item.item_id)
    if result.root_event_id:
        return ItemOutcome.ENRICHED
    return ItemOutcome.TEXT_ONLY


def announce_feed_items_use_case(
    feed: FeedSourceProtocol,
    context: AnnouncementContext,
) -> AnnouncementResult:
    """Process every item of the feed sequentially.

    Args:
        feed: Release feed source
        context: Shared collaborators

    Returns:
        AnnouncementResult with per-outcome counts

    Raises:
        FeedError: If the feed cannot be read
    """
    items = feed.fetch_items()
    result = AnnouncementResult(items_seen=len(items))
    previous_processed = False

    for item in items:
        with correlation_scope(source_item_id=item.item_id):
            if previous_processed and context.options.item_delay_seconds > 0:
                context.sleep(context.options.item_delay_seconds)

            try:
                outcome = announce_item(item, context)
            except Exception:  # noqa: BLE001
                result.items_failed += 1
                previous_processed = True
                logger.exception("feed_item_failed", title=item.title)
                continue

            previous_processed = outcome != ItemOutcome.SKIPPED
            if outcome == ItemOutcome.SKIPPED:
                result.items_skipped += 1
            elif outcome == ItemOutcome.ENRICHED:
                result.items_enriched += 1
            else:
                result.items_text_only += 1

    logger.info(
        "feed_announcement_complete",
        items_seen=result.items_seen,
        items_skipped=result.items_skipped,
        items_enriched=result.items_enriched,
        items_text_only=result.items_text_only,
        items_failed=result.items_failed,
    )
    return result
