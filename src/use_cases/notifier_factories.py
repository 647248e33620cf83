"""Factories that compose the notifier from settings."""

from __future__ import annotations

import requests

from src.adapters.igdb_client import IGDBClient, TwitchTokenProvider
from src.adapters.matrix_client import MatrixClient
from src.adapters.rss_feed import RSSFeedSource
from src.adapters.sqlite_ledger import SQLiteProcessedLedger
from src.config.settings import Settings
from src.services.asset_uploader import AssetUploader
from src.services.candidate_scorer import CandidateScorer
from src.services.media_fetcher import MediaFetcher
from src.services.thread_composer import ThreadComposer
from src.use_cases.announce_feed_items import AnnouncementContext, AnnouncementOptions
from src.use_cases.post_game_thread import ThreadPostingOptions


def create_thread_options(settings: Settings) -> ThreadPostingOptions:
    return ThreadPostingOptions(
        max_screenshots=settings.max_screenshots,
        batch_timeout_seconds=settings.screenshot_batch_timeout_seconds,
        reply_delay_seconds=settings.reply_delay_seconds,
        max_workers=settings.screenshot_workers,
        order=settings.screenshot_order,
    )


def create_announcement_options(settings: Settings) -> AnnouncementOptions:
    return AnnouncementOptions(
        item_delay_seconds=settings.item_delay_seconds,
        search_limit=settings.igdb_search_limit,
        summary_length=settings.summary_length,
        thread=create_thread_options(settings),
    )


def create_matrix_client(settings: Settings) -> MatrixClient:
    return MatrixClient(
        settings.matrix_homeserver,
        settings.matrix_access_token.get_secret_value(),
        settings.matrix_room_id,
        timeout_seconds=settings.http_timeout_seconds,
        max_retries=settings.matrix_max_retries,
    )


def create_catalog_client(settings: Settings) -> IGDBClient:
    session = requests.Session()
    token_provider = TwitchTokenProvider(
        settings.igdb_client_id,
        settings.igdb_client_secret.get_secret_value(),
        session=session,
        timeout_seconds=settings.igdb_timeout_seconds,
    )
    return IGDBClient(
        settings.igdb_client_id,
        token_provider,
        session=session,
        timeout_seconds=settings.igdb_timeout_seconds,
        default_limit=settings.igdb_search_limit,
    )


def create_feed_source(settings: Settings) -> RSSFeedSource:
    return RSSFeedSource(settings.feed_url)


def create_announcement_context(
    settings: Settings,
    *,
    matrix_client: MatrixClient | None = None,
) -> AnnouncementContext:
    """Wire every collaborator needed to announce feed items."""

    chat_client = matrix_client or create_matrix_client(settings)
    fetcher = MediaFetcher(
        timeout_seconds=settings.http_timeout_seconds,
        max_attempts=settings.fetch_max_attempts,
    )
    uploader = AssetUploader(
        chat_client,
        fetcher,
        thumbnail_width=settings.thumbnail_width,
        thumbnail_height=settings.thumbnail_height,
    )
    return AnnouncementContext(
        catalog=create_catalog_client(settings),
        ledger=SQLiteProcessedLedger.from_path(settings.db_path),
        scorer=CandidateScorer(settings.matcher_config()),
        uploader=uploader,
        composer=ThreadComposer(chat_client),
        options=create_announcement_options(settings),
    )
