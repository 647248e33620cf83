"""Asset uploader: push images and their thumbnails to the chat content store."""

import re

from src.config.logging_config import get_logger
from src.domain.exceptions import MatrixAPIError, RateLimitError, UploadError
from src.domain.models import AssetDescriptor, Thumbnail, UploadedImage
from src.domain.protocols import ChatClientProtocol, MediaFetcherProtocol
from src.services.image_transcoder import (
    BLURHASH_X_COMPONENTS,
    BLURHASH_Y_COMPONENTS,
    DEFAULT_THUMBNAIL_HEIGHT,
    DEFAULT_THUMBNAIL_WIDTH,
    compute_signature,
    encode_thumbnail,
    make_thumbnail,
)

logger = get_logger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w\- .()]+")


def safe_filename(label: str) -> str:
    """Strip characters that do not belong in an upload file name.

    Example:
        >>> safe_filename("Screenshot 1 of Hades: II")
        'Screenshot 1 of Hades II'
    """
    cleaned = _UNSAFE_FILENAME_CHARS.sub("", label).strip()
    return cleaned or "image"


class AssetUploader:
    """Fetch, transcode and upload images for message events."""

    def __init__(
        self,
        chat_client: ChatClientProtocol,
        fetcher: MediaFetcherProtocol,
        *,
        thumbnail_width: int = DEFAULT_THUMBNAIL_WIDTH,
        thumbnail_height: int = DEFAULT_THUMBNAIL_HEIGHT,
        signature_components: tuple[int, int] = (
            BLURHASH_X_COMPONENTS,
            BLURHASH_Y_COMPONENTS,
        ),
    ) -> None:
        self._chat_client = chat_client
        self._fetcher = fetcher
        self._thumbnail_width = thumbnail_width
        self._thumbnail_height = thumbnail_height
        self._signature_components = signature_components

    def upload(
        self,
        data: bytes,
        mime_type: str,
        filename: str,
        *,
        width: int,
        height: int,
    ) -> UploadedImage:
        """Upload bytes and describe them.

        Args:
            data: Encoded image bytes
            mime_type: MIME type of data
            filename: File name shown to clients
            width: Pixel width
            height: Pixel height

        Returns:
            Content locator with its descriptor

        Raises:
            UploadError: If the chat backend rejects the upload
        """
        try:
            content_uri = self._chat_client.upload_media(data, mime_type, filename)
        except (MatrixAPIError, RateLimitError) as error:
            raise UploadError(f"Failed to upload {filename}: {error}") from error

        descriptor = AssetDescriptor(mimetype=mime_type, size=len(data), w=width, h=height)
        return UploadedImage(
            content_uri=content_uri, descriptor=descriptor, filename=filename
        )

    def prepare_image(self, url: str, label: str) -> UploadedImage:
        """Fetch an image and upload it together with its thumbnail.

        Runs fetch → thumbnail → signature → upload original → upload
        thumbnail. The returned descriptor references the thumbnail and
        carries the blurhash signature.

        Args:
            url: Image URL
            label: Human-readable label used for file names

        Returns:
            Uploaded original image with thumbnail back-reference

        Raises:
            TransportError: On download failure
            DecodeError: On undecodable image data
            UnsupportedFormatError: If the thumbnail cannot be encoded
            UploadError: If either upload is rejected
        """
        asset = self._fetcher.fetch(url)
        thumbnail = make_thumbnail(asset, self._thumbnail_width, self._thumbnail_height)
        thumbnail_bytes = encode_thumbnail(thumbnail)
        signature = self._signature(label, thumbnail)

        mime_type = asset.format.mime_type
        base_name = safe_filename(label)
        extension = asset.format.extension

        original = self.upload(
            asset.raw_bytes,
            mime_type,
            f"{base_name}.{extension}",
            width=asset.width,
            height=asset.height,
        )
        thumb = self.upload(
            thumbnail_bytes,
            mime_type,
            f"{base_name}_thumb.{extension}",
            width=thumbnail.width,
            height=thumbnail.height,
        )

        descriptor = original.descriptor.model_copy(
            update={
                "thumbnail_url": thumb.content_uri,
                "thumbnail_info": thumb.descriptor,
                "signature": signature,
            }
        )
        logger.info(
            "image_prepared",
            label=label,
            content_uri=original.content_uri,
            thumbnail_uri=thumb.content_uri,
            width=asset.width,
            height=asset.height,
        )
        return original.model_copy(update={"descriptor": descriptor})

    def _signature(self, label: str, thumbnail: Thumbnail) -> str | None:
        try:
            return compute_signature(thumbnail, *self._signature_components)
        except (ValueError, OSError) as error:
            logger.warning("image_signature_failed", label=label, error=str(error))
            return None
