"""Tests for composing the notifier from settings."""

from pathlib import Path

import pytest

from src.adapters.igdb_client import IGDBClient
from src.adapters.matrix_client import MatrixClient
from src.adapters.sqlite_ledger import SQLiteProcessedLedger
from src.config.settings import Settings
from src.use_cases.notifier_factories import (
    create_announcement_context,
    create_announcement_options,
    create_catalog_client,
    create_feed_source,
    create_matrix_client,
)


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MATRIX_ACCESS_TOKEN", "syt_test_token")
    monkeypatch.setenv("IGDB_CLIENT_ID", "client-id")
    monkeypatch.setenv("IGDB_CLIENT_SECRET", "client-secret")
    monkeypatch.setenv("MATRIX_ROOM_ID", "!room:example.org")
    monkeypatch.setenv("FEED_URL", "https://example.org/rss")
    monkeypatch.setenv("DB_PATH", str(tmp_path / "ledger.db"))
    monkeypatch.setenv("MAX_SCREENSHOTS", "3")
    monkeypatch.setenv("SCREENSHOT_ORDER", "completion")
    return Settings()


def test_announcement_options_follow_settings(settings: Settings) -> None:
    options = create_announcement_options(settings)

    assert options.item_delay_seconds == 2.0
    assert options.search_limit == 10
    assert options.thread.max_screenshots == 3
    assert options.thread.order == "completion"
    assert options.thread.reply_delay_seconds == 0.5


def test_clients_are_built_from_settings(settings: Settings) -> None:
    matrix_client = create_matrix_client(settings)

    assert isinstance(matrix_client, MatrixClient)
    assert matrix_client.room_id == "!room:example.org"
    assert isinstance(create_catalog_client(settings), IGDBClient)


def test_feed_source_requires_url(settings: Settings) -> None:
    settings.feed_url = ""

    with pytest.raises(ValueError):
        create_feed_source(settings)


def test_announcement_context_reuses_matrix_client(
    settings: Settings, tmp_path: Path
) -> None:
    matrix_client = create_matrix_client(settings)

    context = create_announcement_context(settings, matrix_client=matrix_client)

    assert isinstance(context.ledger, SQLiteProcessedLedger)
    assert (tmp_path / "ledger.db").exists()
    assert context.options.thread.max_screenshots == 3
    assert context.scorer.config.exact_score == 1.0
