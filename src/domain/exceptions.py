"""Custom exception hierarchy for the game release notifier.

Following error taxonomy: retryable, non-retryable, validation, rate-limit.
Asset-level errors (decode, transport, upload, post) are isolated per image;
candidate-level errors (not found) degrade to a plain-text notification.
"""


class GameReleaseNotifierError(Exception):
    """Base exception for all application errors."""

    pass


class RetryableError(GameReleaseNotifierError):
    """Errors that can be retried (network issues, temporary failures)."""

    pass


class NonRetryableError(GameReleaseNotifierError):
    """Errors that should not be retried (validation, auth, logic errors)."""

    pass


class RateLimitError(RetryableError):
    """API rate limit exceeded."""

    def __init__(self, retry_after: float | None = None) -> None:
        """Initialize with optional retry_after seconds."""
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded. Retry after: {retry_after}s")


class NotFoundError(NonRetryableError):
    """Catalog lookup produced no candidates to choose from."""

    pass


class AssetError(GameReleaseNotifierError):
    """Failure that is terminal for a single media asset only."""

    pass


class TransportError(AssetError, RetryableError):
    """Network failure while fetching an image."""

    pass


class DecodeError(AssetError, NonRetryableError):
    """Image bytes are corrupt or in an unsupported format."""

    pass


class UnsupportedFormatError(AssetError, NonRetryableError):
    """Requested encoding format is outside the supported set."""

    pass


class UploadError(AssetError):
    """Chat backend rejected an uploaded asset."""

    pass


class PostError(AssetError):
    """Chat backend rejected a message event."""

    pass


class InvalidRelationError(NonRetryableError):
    """Threaded reply requested without an immediate parent event."""

    pass


class CatalogAPIError(RetryableError):
    """Game catalog (IGDB) communication errors."""

    pass


class MatrixAPIError(RetryableError):
    """Matrix homeserver communication errors."""

    def __init__(
        self, message: str, *, status_code: int | None = None, errcode: str = ""
    ) -> None:
        """Initialize with optional HTTP status and Matrix errcode."""
        self.status_code = status_code
        self.errcode = errcode
        super().__init__(message)


class LedgerError(RetryableError):
    """Processed-items ledger storage errors."""

    pass


class FeedError(RetryableError):
    """Release feed could not be fetched or parsed."""

    pass
