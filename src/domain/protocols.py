"""Protocol definitions for dependency inversion.

These abstract interfaces define contracts that adapters must implement.
"""

from collections.abc import Sequence
from typing import Any, Protocol

from src.domain.models import FeedItem, MediaAsset, SearchCandidate


class CatalogClientProtocol(Protocol):
    """Protocol for game catalog lookups (IGDB)."""

    def search_games(
        self,
        query: str,
        *,
        fields: Sequence[str] | None = None,
        limit: int | None = None,
        filters: str | None = None,
    ) -> list[SearchCandidate]:
        """Search the catalog for games matching a query.

        Args:
            query: Game title to search for
            fields: Catalog fields to request (None = default set)
            limit: Maximum records to return
            filters: Optional raw filter clause

        Returns:
            Candidates in catalog relevance order

        Raises:
            CatalogAPIError: On API communication errors
        """
        ...

    def resolve_image_urls(
        self, candidate: SearchCandidate
    ) -> tuple[str | None, list[str]]:
        """Return the cover URL (or None) and screenshot URLs in catalog order.

        Raises:
            CatalogAPIError: On API communication errors
        """
        ...


class ChatClientProtocol(Protocol):
    """Protocol for chat backend interactions (Matrix)."""

    def upload_media(self, data: bytes, content_type: str, filename: str) -> str:
        """Upload bytes to the content repository.

        Args:
            data: Raw file bytes
            content_type: MIME type
            filename: File name shown to clients

        Returns:
            Content locator (mxc:// URI)

        Raises:
            MatrixAPIError: On API communication errors
        """
        ...

    def send_message_event(self, content: dict[str, Any]) -> str:
        """Post an ``m.room.message`` event to the configured room.

        Args:
            content: Event content

        Returns:
            Event ID

        Raises:
            MatrixAPIError: On API communication errors
        """
        ...

    def send_text(self, text: str) -> str:
        """Post a plain text message and return its event id."""
        ...

    def send_formatted(self, text: str, html: str) -> str:
        """Post a text message with an HTML body and return its event id."""
        ...


class ProcessedLedgerProtocol(Protocol):
    """Protocol for the already-announced items ledger."""

    def exists(self, item_id: str) -> bool:
        """Check whether a source item was already announced.

        Raises:
            LedgerError: On storage errors
        """
        ...

    def mark_processed(self, item_id: str) -> None:
        """Record a source item as announced (idempotent).

        Raises:
            LedgerError: On storage errors
        """
        ...


class FeedSourceProtocol(Protocol):
    """Protocol for release feed sources."""

    def fetch_items(self) -> list[FeedItem]:
        """Fetch current feed entries in feed order."""
        ...


class MediaFetcherProtocol(Protocol):
    """Protocol for image download and decoding."""

    def fetch(self, url: str) -> MediaAsset:
        """Download and decode an image.

        Raises:
            TransportError: On network failures
            DecodeError: On unrecognized or corrupt image bytes
        """
        ...
