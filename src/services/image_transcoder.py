"""Thumbnail generation, image encoding and blurhash signatures."""

import io
from typing import Final

import blurhash
from PIL import Image

from src.domain.exceptions import UnsupportedFormatError
from src.domain.models import ImageFormat, MediaAsset, Thumbnail

DEFAULT_THUMBNAIL_WIDTH: Final[int] = 225
DEFAULT_THUMBNAIL_HEIGHT: Final[int] = 300
BLURHASH_X_COMPONENTS: Final[int] = 4
BLURHASH_Y_COMPONENTS: Final[int] = 3
JPEG_QUALITY: Final[int] = 85

_JPEG_MODES: Final[frozenset[str]] = frozenset({"RGB", "L", "CMYK"})
_WEBP_MODES: Final[frozenset[str]] = frozenset({"RGB", "RGBA"})


def make_thumbnail(
    asset: MediaAsset,
    width: int = DEFAULT_THUMBNAIL_WIDTH,
    height: int = DEFAULT_THUMBNAIL_HEIGHT,
) -> Thumbnail:
    """Resize an asset to exactly the target box with Lanczos resampling.

    Aspect ratio is not preserved.

    Example:
        >>> thumb = make_thumbnail(asset, 225, 300)
        >>> (thumb.width, thumb.height)
        (225, 300)
    """
    if width <= 0 or height <= 0:
        raise ValueError("Thumbnail dimensions must be positive")
    resized = asset.image.resize((width, height), Image.Resampling.LANCZOS)
    return Thumbnail(image=resized, format=asset.format, width=width, height=height)


def _coerce_format(image_format: ImageFormat | str) -> ImageFormat:
    if isinstance(image_format, ImageFormat):
        return image_format
    try:
        return ImageFormat(str(image_format).upper())
    except ValueError as error:
        raise UnsupportedFormatError(
            f"Unsupported format: {image_format}"
        ) from error


def encode_image(image: Image.Image, image_format: ImageFormat | str) -> bytes:
    """Encode a Pillow image to bytes.

    Args:
        image: Image to encode
        image_format: Target format (JPEG, PNG or WEBP)

    Returns:
        Encoded bytes

    Raises:
        UnsupportedFormatError: If the format is outside the supported set
    """
    target = _coerce_format(image_format)

    if target is ImageFormat.JPEG and image.mode not in _JPEG_MODES:
        image = image.convert("RGB")
    elif target is ImageFormat.WEBP and image.mode not in _WEBP_MODES:
        image = image.convert("RGBA" if "A" in image.getbands() else "RGB")

    buffer = io.BytesIO()
    if target is ImageFormat.JPEG:
        image.save(buffer, format=target.value, quality=JPEG_QUALITY)
    else:
        image.save(buffer, format=target.value)
    return buffer.getvalue()


def encode_thumbnail(
    thumbnail: Thumbnail, image_format: ImageFormat | str | None = None
) -> bytes:
    """Encode a thumbnail, in its source format unless one is given."""
    return encode_image(thumbnail.image, image_format or thumbnail.format)


def compute_signature(
    thumbnail: Thumbnail,
    x_components: int = BLURHASH_X_COMPONENTS,
    y_components: int = BLURHASH_Y_COMPONENTS,
) -> str:
    """Compute the blurhash placeholder of a thumbnail.

    The result is 4 + 2 * x_components * y_components characters of base83
    and is identical for identical pixels. Components must be in 1..9.
    """
    # encode() closes the image it is given
    pixels = thumbnail.image.convert("RGB")
    return blurhash.encode(pixels, x_components=x_components, y_components=y_components)
