"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import io
import struct
import zlib
from collections.abc import Callable
from datetime import datetime
from typing import Any

import pytest
import pytz
from PIL import Image

from src.domain.exceptions import MatrixAPIError, TransportError
from src.domain.models import (
    GameCategory,
    ImageRef,
    MediaAsset,
    SearchCandidate,
)
from src.services.media_fetcher import decode_image

FIXED_NOW = datetime(2025, 1, 1, tzinfo=pytz.UTC)

CandidateFactory = Callable[..., SearchCandidate]
ImageBytesFactory = Callable[..., bytes]


def encode_test_image(
    fmt: str = "PNG",
    size: tuple[int, int] = (64, 48),
    color: tuple[int, int, int] = (200, 40, 40),
) -> bytes:
    image = Image.new("RGB", size, color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def oversized_png(width: int = 20000, height: int = 20000) -> bytes:
    """Small PNG whose IHDR claims more pixels than Pillow agrees to open."""
    data = bytearray(encode_test_image("PNG", size=(1, 1)))
    ihdr = bytearray(data[12:29])
    ihdr[4:12] = struct.pack(">II", width, height)
    data[12:29] = ihdr
    data[29:33] = struct.pack(">I", zlib.crc32(bytes(ihdr)) & 0xFFFFFFFF)
    return bytes(data)


class FakeChatClient:
    """In-memory chat backend recording uploads and events."""

    def __init__(self) -> None:
        self.uploads: list[dict[str, Any]] = []
        self.events: list[dict[str, Any]] = []
        self.texts: list[dict[str, Any]] = []
        self.fail_uploads_for: set[str] = set()
        self.fail_event_numbers: set[int] = set()
        self.fail_texts = False
        self._event_counter = 0

    def upload_media(self, data: bytes, content_type: str, filename: str) -> str:
        if any(marker in filename for marker in self.fail_uploads_for):
            raise MatrixAPIError("upload rejected", status_code=413, errcode="M_TOO_LARGE")
        self.uploads.append(
            {"data": data, "content_type": content_type, "filename": filename}
        )
        return f"mxc://test/{len(self.uploads)}"

    def send_message_event(self, content: dict[str, Any]) -> str:
        self._event_counter += 1
        if self._event_counter in self.fail_event_numbers:
            raise MatrixAPIError("send rejected", status_code=403, errcode="M_FORBIDDEN")
        self.events.append(content)
        return f"$event{self._event_counter}"

    def send_text(self, text: str) -> str:
        if self.fail_texts:
            raise MatrixAPIError("send rejected", status_code=403, errcode="M_FORBIDDEN")
        self.texts.append({"body": text})
        return f"$text{len(self.texts)}"

    def send_formatted(self, text: str, html: str) -> str:
        if self.fail_texts:
            raise MatrixAPIError("send rejected", status_code=403, errcode="M_FORBIDDEN")
        self.texts.append({"body": text, "formatted_body": html})
        return f"$text{len(self.texts)}"


class FakeFetcher:
    """Media fetcher serving in-memory bytes per URL."""

    def __init__(self, responses: dict[str, bytes | Exception] | None = None) -> None:
        self.responses = responses or {}
        self.requested: list[str] = []

    def fetch(self, url: str) -> MediaAsset:
        self.requested.append(url)
        response = self.responses.get(url)
        if response is None:
            raise TransportError(f"no route to {url}")
        if isinstance(response, Exception):
            raise response
        image, image_format = decode_image(response)
        return MediaAsset(
            image=image,
            format=image_format,
            width=image.size[0],
            height=image.size[1],
            raw_bytes=response,
            source_url=url,
        )


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def make_candidate() -> CandidateFactory:
    """Build SearchCandidate instances with sensible defaults."""

    def _make(
        catalog_id: int = 1,
        name: str = "Hades",
        *,
        first_release_date: int = 0,
        category: GameCategory = GameCategory.MAIN_GAME,
        cover: str | None = None,
        screenshots: tuple[str, ...] = (),
        **extra: Any,
    ) -> SearchCandidate:
        return SearchCandidate(
            catalog_id=catalog_id,
            name=name,
            first_release_date=first_release_date,
            category=category,
            cover=ImageRef(ref_id=catalog_id * 100, image_id=cover) if cover else None,
            screenshots=tuple(
                ImageRef(ref_id=catalog_id * 100 + index + 1, image_id=image_id)
                for index, image_id in enumerate(screenshots)
            ),
            **extra,
        )

    return _make


@pytest.fixture
def image_bytes() -> ImageBytesFactory:
    return encode_test_image


@pytest.fixture
def chat_client() -> FakeChatClient:
    return FakeChatClient()
