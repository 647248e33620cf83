"""Media fetcher: download image bytes and decode them into Pillow images."""

import io
import time
from collections.abc import Callable
from typing import Final

import requests
from PIL import Image, UnidentifiedImageError

from src.config.logging_config import get_logger
from src.domain.exceptions import DecodeError, TransportError
from src.domain.models import ImageFormat, MediaAsset

logger = get_logger(__name__)

IGDB_IMAGE_BASE_URL: Final[str] = "https://images.igdb.com/igdb/image/upload"
DEFAULT_IMAGE_SIZE: Final[str] = "t_original"
DEFAULT_FETCH_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_FETCH_MAX_ATTEMPTS: Final[int] = 3
FALLBACK_DECODERS: Final[tuple[str, ...]] = ("JPEG", "PNG")
MIN_IMAGE_BYTES: Final[int] = 32

SleepCallable = Callable[[float], None]


def igdb_image_url(image_id: str, size: str = DEFAULT_IMAGE_SIZE) -> str:
    """Build the canonical IGDB image URL.

    Example:
        >>> igdb_image_url("co1abc")
        'https://images.igdb.com/igdb/image/upload/t_original/co1abc.webp'
    """
    return f"{IGDB_IMAGE_BASE_URL}/{size}/{image_id}.webp"


def _is_client_error(error: requests.RequestException) -> bool:
    response = error.response
    return response is not None and 400 <= response.status_code < 500


def _open(data: bytes, formats: list[str] | None = None) -> Image.Image:
    image = Image.open(io.BytesIO(data), formats=formats)
    image.load()
    return image


def decode_image(data: bytes) -> tuple[Image.Image, ImageFormat]:
    """Decode raw bytes into a Pillow image.

    Tries generic format detection first, then the JPEG and PNG decoders.

    Args:
        data: Raw image bytes

    Returns:
        Tuple of (decoded image, detected format)

    Raises:
        DecodeError: If no decoder accepts the bytes, the format is unsupported,
            or the pixel count exceeds Pillow's decompression bomb limit
    """
    if len(data) < MIN_IMAGE_BYTES:
        logger.warning("image_bytes_too_short", size=len(data))

    try:
        image = _open(data)
    except Image.DecompressionBombError as error:
        raise DecodeError(f"Image too large to decode: {error}") from error
    except (UnidentifiedImageError, OSError, ValueError) as generic_error:
        logger.info("image_generic_decode_failed", error=str(generic_error))
        for decoder in FALLBACK_DECODERS:
            try:
                image = _open(data, formats=[decoder])
            except Image.DecompressionBombError as error:
                raise DecodeError(f"Image too large to decode: {error}") from error
            except (UnidentifiedImageError, OSError, ValueError) as error:
                logger.info("image_decoder_failed", decoder=decoder, error=str(error))
                continue
            logger.info("image_decoded_with_fallback", decoder=decoder)
            return image, ImageFormat(decoder)
        raise DecodeError(f"Unrecognized image data: {generic_error}") from generic_error

    try:
        return image, ImageFormat(image.format)
    except ValueError as error:
        raise DecodeError(f"Unsupported image format: {image.format}") from error


class MediaFetcher:
    """HTTP image downloader with bounded retry on transport failures."""

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_FETCH_MAX_ATTEMPTS,
        sleep: SleepCallable | None = None,
    ) -> None:
        """Initialize fetcher.

        Args:
            session: Optional requests session (new one if omitted)
            timeout_seconds: Per-request timeout
            max_attempts: Attempts for transport failures (1 = no retry)
            sleep: Sleep function used for backoff
        """
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds
        self._max_attempts = max(max_attempts, 1)
        self._sleep = sleep or time.sleep

    def fetch(self, url: str) -> MediaAsset:
        """Download and decode an image.

        Args:
            url: Image URL

        Returns:
            Decoded media asset with original bytes

        Raises:
            TransportError: On network failure after all attempts
            DecodeError: On unrecognized or corrupt image bytes
        """
        data = self._download(url)
        image, image_format = decode_image(data)
        width, height = image.size
        logger.debug(
            "image_fetched",
            url=url,
            format=image_format.value,
            width=width,
            height=height,
            size=len(data),
        )
        return MediaAsset(
            image=image,
            format=image_format,
            width=width,
            height=height,
            raw_bytes=data,
            source_url=url,
        )

    def _download(self, url: str) -> bytes:
        attempt = 0
        while True:
            attempt += 1
            try:
                response = self._session.get(url, timeout=self._timeout_seconds)
                response.raise_for_status()
                return response.content
            except requests.RequestException as error:
                if attempt >= self._max_attempts or _is_client_error(error):
                    logger.warning(
                        "image_download_failed",
                        url=url,
                        error=str(error),
                        attempts=attempt,
                    )
                    raise TransportError(
                        f"Failed to download {url} after {attempt} attempts: {error}"
                    ) from error

                backoff_seconds = 2**attempt
                logger.warning(
                    "image_download_retry",
                    url=url,
                    error=str(error),
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    backoff_seconds=backoff_seconds,
                )
                self._sleep(backoff_seconds)
