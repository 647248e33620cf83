"""IGDB catalog API adapter.

Authenticates with the Twitch client-credentials grant and searches games
through the Apicalypse query endpoint.
"""

import time
from collections.abc import Callable, Sequence
from typing import Any, Final, cast

import requests

from src.config.logging_config import get_logger
from src.domain.exceptions import CatalogAPIError
from src.domain.models import (
    GameCategory,
    GameStatus,
    ImageRef,
    SearchCandidate,
)
from src.services.media_fetcher import igdb_image_url

logger = get_logger(__name__)

TWITCH_TOKEN_URL: Final[str] = "https://id.twitch.tv/oauth2/token"
IGDB_API_BASE_URL: Final[str] = "https://api.igdb.com/v4"
DEFAULT_IGDB_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_SEARCH_LIMIT: Final[int] = 10
TOKEN_EXPIRY_MARGIN_SECONDS: Final[float] = 60.0
HTTP_STATUS_UNAUTHORIZED: Final[int] = 401

DEFAULT_SEARCH_FIELDS: Final[tuple[str, ...]] = (
    "name",
    "slug",
    "url",
    "first_release_date",
    "category",
    "status",
    "summary",
    "storyline",
    "rating",
    "genres.name",
    "platforms.name",
    "cover.image_id",
    "screenshots.image_id",
)

ClockCallable = Callable[[], float]


class TwitchTokenProvider:
    """App access token for IGDB, cached until shortly before expiry."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        session: requests.Session | None = None,
        timeout_seconds: float = DEFAULT_IGDB_TIMEOUT_SECONDS,
        clock: ClockCallable | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds
        self._clock = clock or time.monotonic
        self._token: str | None = None
        self._expires_at = 0.0

    def get_token(self) -> str:
        """Return a valid access token, requesting a new one when needed.

        Raises:
            CatalogAPIError: If the token request fails
        """
        if self._token and self._clock() < self._expires_at:
            return self._token

        try:
            response = self._session.post(
                TWITCH_TOKEN_URL,
                data={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "grant_type": "client_credentials",
                },
                timeout=self._timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as error:
            raise CatalogAPIError(f"Failed to obtain IGDB access token: {error}") from error

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise CatalogAPIError("Token response missing access_token")

        expires_in = float(payload.get("expires_in", 0) or 0)
        self._token = str(token)
        self._expires_at = self._clock() + max(
            expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0.0
        )
        logger.info("igdb_token_acquired", expires_in_seconds=expires_in)
        return self._token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_search_query(
    query: str,
    fields: Sequence[str],
    limit: int,
    filters: str | None = None,
) -> str:
    """Build an Apicalypse search body.

    Example:
        >>> build_search_query("hades", ["name"], 10)
        'search "hades"; fields name; limit 10;'
    """
    parts = [f'search "{_quote(query)}";', f"fields {','.join(fields)};"]
    if filters:
        parts.append(f"where {filters};")
    parts.append(f"limit {limit};")
    return " ".join(parts)


def _names(values: Any) -> tuple[str, ...]:
    if not isinstance(values, list):
        return ()
    return tuple(
        str(item["name"]) for item in values if isinstance(item, dict) and item.get("name")
    )


def _image_ref(value: Any) -> ImageRef | None:
    if isinstance(value, dict) and "id" in value:
        return ImageRef(ref_id=int(value["id"]), image_id=value.get("image_id"))
    if isinstance(value, int):
        return ImageRef(ref_id=value)
    return None


def parse_game(record: dict[str, Any]) -> SearchCandidate:
    """Convert an IGDB game record into a SearchCandidate."""
    screenshots = [
        ref
        for ref in (_image_ref(item) for item in record.get("screenshots") or [])
        if ref is not None
    ]
    category_code = record.get("category", record.get("game_type"))
    return SearchCandidate(
        catalog_id=int(record["id"]),
        name=str(record.get("name", "")),
        first_release_date=int(record.get("first_release_date") or 0),
        category=GameCategory.from_igdb(
            category_code if isinstance(category_code, int) else None
        ),
        status=GameStatus.from_igdb(record.get("status")),
        summary=str(record.get("summary") or ""),
        storyline=str(record.get("storyline") or ""),
        url=str(record.get("url") or ""),
        rating=record.get("rating"),
        genres=_names(record.get("genres")),
        platforms=_names(record.get("platforms")),
        cover=_image_ref(record.get("cover")),
        screenshots=tuple(screenshots),
    )


class IGDBClient:
    """IGDB API client."""

    def __init__(
        self,
        client_id: str,
        token_provider: TwitchTokenProvider,
        *,
        session: requests.Session | None = None,
        base_url: str = IGDB_API_BASE_URL,
        timeout_seconds: float = DEFAULT_IGDB_TIMEOUT_SECONDS,
        default_limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> None:
        """Initialize IGDB client.

        Args:
            client_id: Twitch application client ID
            token_provider: Access token provider
            session: Optional requests session
            base_url: API base URL
            timeout_seconds: Per-request timeout
            default_limit: Search result limit when none is given
        """
        if default_limit <= 0:
            raise ValueError("IGDB search limit must be positive")
        self._client_id = client_id
        self._token_provider = token_provider
        self._session = session or requests.Session()
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._default_limit = default_limit

    def search_games(
        self,
        query: str,
        *,
        fields: Sequence[str] | None = None,
        limit: int | None = None,
        filters: str | None = None,
    ) -> list[SearchCandidate]:
        """Search games by name.

        Args:
            query: Game name
            fields: Fields to request (defaults to DEFAULT_SEARCH_FIELDS)
            limit: Maximum results
            filters: Optional Apicalypse ``where`` clause

        Returns:
            Candidates in IGDB relevance order

        Raises:
            CatalogAPIError: On API communication errors
        """
        body = build_search_query(
            query,
            fields or DEFAULT_SEARCH_FIELDS,
            limit or self._default_limit,
            filters,
        )
        records = self._post("games", body)
        candidates = [parse_game(record) for record in records if "id" in record]
        logger.info("igdb_search_completed", query=query, result_count=len(candidates))
        return candidates

    def fetch_image_ids(self, endpoint: str, ref_ids: Sequence[int]) -> dict[int, str]:
        """Resolve cover/screenshot reference ids to image ids.

        Args:
            endpoint: "covers" or "screenshots"
            ref_ids: Reference ids from a game record

        Returns:
            Mapping of reference id to image id

        Raises:
            CatalogAPIError: On API communication errors
        """
        if not ref_ids:
            return {}
        id_list = ",".join(str(ref_id) for ref_id in ref_ids)
        body = f"fields image_id; where id = ({id_list}); limit {len(ref_ids)};"
        records = self._post(endpoint, body)
        return {
            int(record["id"]): str(record["image_id"])
            for record in records
            if "id" in record and record.get("image_id")
        }

    def resolve_image_urls(
        self, candidate: SearchCandidate
    ) -> tuple[str | None, list[str]]:
        """Build cover and screenshot URLs, looking up missing image ids.

        Screenshot order follows the candidate; references that cannot be
        resolved are dropped.

        Raises:
            CatalogAPIError: On API communication errors
        """
        cover_url: str | None = None
        if candidate.cover is not None:
            image_id = candidate.cover.image_id
            if image_id is None:
                image_id = self.fetch_image_ids("covers", [candidate.cover.ref_id]).get(
                    candidate.cover.ref_id
                )
            if image_id:
                cover_url = igdb_image_url(image_id)

        missing = [ref.ref_id for ref in candidate.screenshots if ref.image_id is None]
        resolved = self.fetch_image_ids("screenshots", missing) if missing else {}
        screenshot_urls: list[str] = []
        for ref in candidate.screenshots:
            image_id = ref.image_id or resolved.get(ref.ref_id)
            if image_id:
                screenshot_urls.append(igdb_image_url(image_id))

        return cover_url, screenshot_urls

    def _post(self, endpoint: str, body: str) -> list[dict[str, Any]]:
        url = f"{self._base_url}/{endpoint}"
        for attempt in (1, 2):
            headers = {
                "Client-ID": self._client_id,
                "Authorization": f"Bearer {self._token_provider.get_token()}",
                "Accept": "application/json",
            }
            try:
                response = self._session.post(
                    url, data=body, headers=headers, timeout=self._timeout_seconds
                )
            except requests.RequestException as error:
                raise CatalogAPIError(f"IGDB request to {endpoint} failed: {error}") from error

            if response.status_code == HTTP_STATUS_UNAUTHORIZED and attempt == 1:
                logger.warning("igdb_token_rejected", endpoint=endpoint)
                self._token_provider.invalidate()
                continue

            if not response.ok:
                raise CatalogAPIError(
                    f"IGDB {endpoint} returned HTTP {response.status_code}: {response.text[:200]}"
                )

            try:
                payload = response.json()
            except ValueError as error:
                raise CatalogAPIError(f"IGDB {endpoint} returned invalid JSON") from error
            if not isinstance(payload, list):
                raise CatalogAPIError(f"IGDB {endpoint} returned unexpected payload")
            return cast(list[dict[str, Any]], payload)

        raise CatalogAPIError(f"IGDB {endpoint} rejected refreshed token")
