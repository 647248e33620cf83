"""Domain models for the game release notifier.

Catalog and chat records use Pydantic v2 for validation and serialization.
Records that carry decoded Pillow images are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import pytz
from PIL import Image
from pydantic import BaseModel, ConfigDict, Field

from src.domain.exceptions import InvalidRelationError


class GameCategory(str, Enum):
    """Catalog category of a game record (IGDB category codes)."""

    MAIN_GAME = "main_game"
    DLC_ADDON = "dlc_addon"
    EXPANSION = "expansion"
    BUNDLE = "bundle"
    STANDALONE_EXPANSION = "standalone_expansion"
    MOD = "mod"
    EPISODE = "episode"
    SEASON = "season"
    REMAKE = "remake"
    REMASTER = "remaster"
    EXPANDED_GAME = "expanded_game"
    PORT = "port"
    FORK = "fork"
    PACK = "pack"
    UPDATE = "update"
    UNKNOWN = "unknown"

    @classmethod
    def from_igdb(cls, code: int | None) -> GameCategory:
        """Map an IGDB numeric category to the enum (missing code = main game)."""
        if code is None:
            return cls.MAIN_GAME
        return _IGDB_CATEGORIES.get(code, cls.UNKNOWN)


_IGDB_CATEGORIES: dict[int, GameCategory] = {
    0: GameCategory.MAIN_GAME,
    1: GameCategory.DLC_ADDON,
    2: GameCategory.EXPANSION,
    3: GameCategory.BUNDLE,
    4: GameCategory.STANDALONE_EXPANSION,
    5: GameCategory.MOD,
    6: GameCategory.EPISODE,
    7: GameCategory.SEASON,
    8: GameCategory.REMAKE,
    9: GameCategory.REMASTER,
    10: GameCategory.EXPANDED_GAME,
    11: GameCategory.PORT,
    12: GameCategory.FORK,
    13: GameCategory.PACK,
    14: GameCategory.UPDATE,
}


class GameStatus(str, Enum):
    """Lifecycle status of a game record (IGDB status codes)."""

    RELEASED = "released"
    ALPHA = "alpha"
    BETA = "beta"
    EARLY_ACCESS = "early_access"
    OFFLINE = "offline"
    CANCELLED = "cancelled"
    RUMORED = "rumored"
    DELISTED = "delisted"
    UNKNOWN = "unknown"

    @classmethod
    def from_igdb(cls, code: int | None) -> GameStatus:
        """Map an IGDB numeric status to the enum (missing code = released)."""
        if code is None:
            return cls.RELEASED
        return _IGDB_STATUSES.get(code, cls.UNKNOWN)


_IGDB_STATUSES: dict[int, GameStatus] = {
    0: GameStatus.RELEASED,
    2: GameStatus.ALPHA,
    3: GameStatus.BETA,
    4: GameStatus.EARLY_ACCESS,
    5: GameStatus.OFFLINE,
    6: GameStatus.CANCELLED,
    7: GameStatus.RUMORED,
    8: GameStatus.DELISTED,
}


class ImageRef(BaseModel):
    """Reference to a catalog image (cover or screenshot)."""

    model_config = ConfigDict(frozen=True)

    ref_id: int = Field(..., description="Catalog id of the cover/screenshot record")
    image_id: str | None = Field(
        default=None, description="Image hash used to build the image URL"
    )


class SearchCandidate(BaseModel):
    """One catalog record returned by a game search."""

    model_config = ConfigDict(frozen=True)

    catalog_id: int = Field(..., description="Unique catalog identifier")
    name: str = Field(..., description="Display name")
    first_release_date: int = Field(
        default=0, description="Release timestamp in epoch seconds (0 = unknown)"
    )
    category: GameCategory = Field(default=GameCategory.MAIN_GAME)
    status: GameStatus = Field(default=GameStatus.RELEASED)
    summary: str = Field(default="", description="Free-text summary")
    storyline: str = Field(default="", description="Free-text storyline")
    url: str = Field(default="", description="Catalog page URL")
    rating: float | None = Field(default=None, description="Rating 0-100")
    genres: tuple[str, ...] = Field(default_factory=tuple)
    platforms: tuple[str, ...] = Field(default_factory=tuple)
    cover: ImageRef | None = Field(default=None, description="Cover image reference")
    screenshots: tuple[ImageRef, ...] = Field(
        default_factory=tuple, description="Ordered screenshot references"
    )

    @property
    def release_datetime(self) -> datetime | None:
        """Release date as aware UTC datetime, None when unknown."""
        if not self.first_release_date:
            return None
        return datetime.fromtimestamp(self.first_release_date, tz=pytz.UTC)


class ScoreBreakdown(BaseModel):
    """Explainable scoring result for one (query, candidate) pair."""

    catalog_id: int
    name: str
    match_kind: str = Field(..., description="exact/prefix/contains/contained/words/none")
    base_score: float = 0.0
    recency_bonus: float = 0.0
    category_bonus: float = 0.0
    old_release_penalty_applied: bool = False
    penalty_keyword: str | None = None
    final_score: float = 0.0


class ResolutionTrace(BaseModel):
    """Full decision trace of one resolution, for diagnostics only."""

    query: str
    normalized_query: str
    breakdowns: list[ScoreBreakdown] = Field(default_factory=list)
    selected_index: int = 0


class Resolution(BaseModel):
    """Selected candidate with its score and the decision trace."""

    candidate: SearchCandidate
    score: float
    trace: ResolutionTrace


class ImageFormat(str, Enum):
    """Supported raster encodings (Pillow format names)."""

    JPEG = "JPEG"
    PNG = "PNG"
    WEBP = "WEBP"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value.lower()}"

    @property
    def extension(self) -> str:
        return "jpg" if self is ImageFormat.JPEG else self.value.lower()


@dataclass(frozen=True)
class MediaAsset:
    """Decoded image with its detected format and original bytes."""

    image: Image.Image
    format: ImageFormat
    width: int
    height: int
    raw_bytes: bytes
    source_url: str = ""


@dataclass(frozen=True)
class Thumbnail:
    """Image resized to the fixed thumbnail box."""

    image: Image.Image
    format: ImageFormat
    width: int
    height: int


class AssetDescriptor(BaseModel):
    """Metadata of an uploaded image (Matrix ``info`` block)."""

    mimetype: str
    size: int
    w: int
    h: int
    thumbnail_url: str | None = None
    thumbnail_info: AssetDescriptor | None = None
    signature: str | None = Field(
        default=None, description="Blurhash placeholder, decorative metadata only"
    )

    def to_info(self) -> dict[str, Any]:
        """Render the ``info`` block without the auxiliary signature."""
        return self.model_dump(exclude={"signature"}, exclude_none=True)


class UploadedImage(BaseModel):
    """Uploaded image ready to be referenced from a message event."""

    content_uri: str = Field(..., description="Content locator (mxc:// URI)")
    descriptor: AssetDescriptor
    filename: str


@dataclass(frozen=True)
class NoRelation:
    """Standalone message."""


@dataclass(frozen=True)
class ThreadReply:
    """Message inside a thread, replying to an explicit parent."""

    root: str
    parent: str

    def __post_init__(self) -> None:
        if not self.root or not self.parent:
            raise InvalidRelationError(
                "Thread replies require both a root and a parent event id"
            )


@dataclass(frozen=True)
class PlainReply:
    """Non-threaded reply to a parent event."""

    parent: str

    def __post_init__(self) -> None:
        if not self.parent:
            raise InvalidRelationError("Plain replies require a parent event id")


Relation = NoRelation | ThreadReply | PlainReply


class ThreadPhase(str, Enum):
    """Thread composition state for one candidate."""

    IDLE = "idle"
    ROOT_POSTED = "root_posted"
    DONE = "done"
    TEXT_FALLBACK = "text_fallback"


@dataclass
class ThreadState:
    """Root and current reply target of a thread being composed.

    The root is set exactly once, by the first successful post; the reply
    target is never set without a root.
    """

    root_event_id: str | None = None
    reply_target: str | None = None

    def record_post(self, event_id: str) -> None:
        if self.root_event_id is None:
            self.root_event_id = event_id
        self.reply_target = event_id

    def next_relation(self) -> ThreadReply:
        if self.root_event_id is None or self.reply_target is None:
            raise InvalidRelationError("Thread root has not been posted yet")
        return ThreadReply(root=self.root_event_id, parent=self.reply_target)


@dataclass
class ThreadResult:
    """Outcome of posting one candidate."""

    phase: ThreadPhase = ThreadPhase.IDLE
    root_event_id: str | None = None
    fallback_event_id: str | None = None
    reply_event_ids: list[str] = field(default_factory=list)
    screenshots_failed: int = 0

    @property
    def replies_posted(self) -> int:
        return len(self.reply_event_ids)

    @property
    def delivered(self) -> bool:
        """True when at least one message reached the room."""
        return bool(self.root_event_id or self.fallback_event_id)


class FeedItem(BaseModel):
    """Release feed entry."""

    item_id: str = Field(..., description="Stable source item identity")
    title: str = Field(..., description="Raw entry title")
    link: str = Field(default="", description="Entry link")
    published: datetime | None = Field(default=None)


class AnnouncementResult(BaseModel):
    """Counters for one pass over the feed."""

    items_seen: int = 0
    items_skipped: int = 0
    items_enriched: int = 0
    items_text_only: int = 0
    items_failed: int = 0
