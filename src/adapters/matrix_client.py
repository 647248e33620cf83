"""Matrix client-server API adapter."""

import time
from collections.abc import Callable
from typing import Any, Final, cast
from urllib.parse import quote
from uuid import uuid4

import requests

from src.config.logging_config import get_logger
from src.domain.exceptions import MatrixAPIError, RateLimitError

logger = get_logger(__name__)

DEFAULT_MATRIX_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_MATRIX_MAX_RETRIES: Final[int] = 3
DEFAULT_RETRY_AFTER_SECONDS: Final[float] = 5.0
HTTP_STATUS_TOO_MANY_REQUESTS: Final[int] = 429
HTTP_STATUS_SERVER_ERROR: Final[int] = 500
ERRCODE_LIMIT_EXCEEDED: Final[str] = "M_LIMIT_EXCEEDED"

SleepCallable = Callable[[float], None]


class MatrixClient:
    """Minimal Matrix client posting into a single room."""

    def __init__(
        self,
        homeserver: str,
        access_token: str,
        room_id: str,
        *,
        session: requests.Session | None = None,
        timeout_seconds: float = DEFAULT_MATRIX_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MATRIX_MAX_RETRIES,
        sleep: SleepCallable | None = None,
    ) -> None:
        """Initialize Matrix client.

        Args:
            homeserver: Homeserver base URL (https://matrix.example.org)
            access_token: User access token
            room_id: Target room ID (!abc:example.org)
            session: Optional requests session
            timeout_seconds: Per-request timeout
            max_retries: Maximum attempts for rate limits and transient errors
            sleep: Sleep function used for backoff
        """
        if not homeserver:
            raise ValueError("Matrix homeserver must be provided")
        if not room_id:
            raise ValueError("Matrix room_id must be provided")
        self._homeserver = homeserver.rstrip("/")
        self._room_id = room_id
        self._session = session or requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {access_token}"})
        self._timeout_seconds = timeout_seconds
        self._max_retries = max(max_retries, 1)
        self._sleep = sleep or time.sleep

    @property
    def room_id(self) -> str:
        return self._room_id

    def whoami(self) -> str:
        """Validate the access token and return the user ID.

        Raises:
            MatrixAPIError: If the token is rejected
        """
        body = self._request("GET", "/_matrix/client/v3/account/whoami")
        return str(body.get("user_id", ""))

    def login_password(self, user: str, password: str) -> str:
        """Log in with ``m.login.password`` and switch to the new access token.

        Args:
            user: Localpart or full user ID
            password: Account password

        Returns:
            New access token

        Raises:
            ValueError: If user or password is empty
            MatrixAPIError: If the homeserver rejects the credentials
        """
        if not user or not password:
            raise ValueError("Matrix user and password must be provided")

        body = self._request(
            "POST",
            "/_matrix/client/v3/login",
            json={
                "type": "m.login.password",
                "identifier": {"type": "m.id.user", "user": user},
                "password": password,
            },
            # a stale bearer token must not reach the login endpoint
            headers={"Authorization": None},
        )
        access_token = body.get("access_token")
        if not access_token:
            raise MatrixAPIError("Login response missing access_token")

        self._session.headers.update({"Authorization": f"Bearer {access_token}"})
        logger.info(
            "matrix_password_login_succeeded",
            user_id=body.get("user_id"),
            device_id=body.get("device_id"),
        )
        return str(access_token)

    def upload_media(self, data: bytes, content_type: str, filename: str) -> str:
        """Upload bytes to the media repository.

        Args:
            data: File bytes
            content_type: MIME type
            filename: File name

        Returns:
            Content URI (mxc://server/media_id)

        Raises:
            MatrixAPIError: On API communication errors
            RateLimitError: When rate limited on every attempt
        """
        body = self._request(
            "POST",
            "/_matrix/media/v3/upload",
            params={"filename": filename},
            data=data,
            headers={"Content-Type": content_type},
        )
        content_uri = body.get("content_uri")
        if not content_uri:
            raise MatrixAPIError("Upload response missing content_uri")
        logger.debug(
            "matrix_media_uploaded",
            filename=filename,
            content_type=content_type,
            size=len(data),
        )
        return str(content_uri)

    def send_message_event(self, content: dict[str, Any]) -> str:
        """Send an m.room.message event to the room.

        Args:
            content: Event content

        Returns:
            Event ID

        Raises:
            MatrixAPIError: On API communication errors
            RateLimitError: When rate limited on every attempt
        """
        txn_id = uuid4().hex
        path = (
            f"/_matrix/client/v3/rooms/{quote(self._room_id, safe='')}"
            f"/send/m.room.message/{txn_id}"
        )
        body = self._request("PUT", path, json=content)
        event_id = body.get("event_id")
        if not event_id:
            raise MatrixAPIError("Send response missing event_id")
        return str(event_id)

    def send_text(self, text: str) -> str:
        """Send a plain text message."""
        event_id = self.send_message_event({"msgtype": "m.text", "body": text})
        logger.info("matrix_text_sent", event_id=event_id)
        return event_id

    def send_formatted(self, text: str, html: str) -> str:
        """Send a text message with an HTML formatted body."""
        event_id = self.send_message_event(
            {
                "msgtype": "m.text",
                "body": text,
                "format": "org.matrix.custom.html",
                "formatted_body": html,
            }
        )
        logger.info("matrix_formatted_sent", event_id=event_id)
        return event_id

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Execute a request with retry handling for 429 and 5xx responses."""

        url = f"{self._homeserver}{path}"
        attempt = 0
        while True:
            attempt += 1
            try:
                response = self._session.request(
                    method, url, timeout=self._timeout_seconds, **kwargs
                )
            except requests.RequestException as error:
                if attempt >= self._max_retries:
                    raise MatrixAPIError(
                        f"Failed after {self._max_retries} attempts: {error}"
                    ) from error
                self._backoff(path, attempt, str(error))
                continue

            body = _json_body(response)
            if (
                response.status_code == HTTP_STATUS_TOO_MANY_REQUESTS
                or body.get("errcode") == ERRCODE_LIMIT_EXCEEDED
            ):
                retry_after = _retry_after_seconds(response)
                logger.warning(
                    "matrix_rate_limited",
                    path=path,
                    retry_after_seconds=retry_after,
                    attempt=attempt,
                    max_retries=self._max_retries,
                )
                if attempt >= self._max_retries:
                    raise RateLimitError(retry_after=retry_after)
                self._sleep(retry_after)
                continue

            if response.status_code >= HTTP_STATUS_SERVER_ERROR:
                if attempt >= self._max_retries:
                    raise MatrixAPIError(
                        f"Matrix server error {response.status_code} on {path}",
                        status_code=response.status_code,
                    )
                self._backoff(path, attempt, f"HTTP {response.status_code}")
                continue

            if not response.ok:
                errcode = str(body.get("errcode", ""))
                raise MatrixAPIError(
                    f"Matrix API error on {path}: {errcode} {body.get('error', '')}".strip(),
                    status_code=response.status_code,
                    errcode=errcode,
                )
            return body

    def _backoff(self, path: str, attempt: int, error: str) -> None:
        backoff_seconds = 2**attempt
        logger.warning(
            "matrix_api_retry",
            path=path,
            error=error,
            attempt=attempt,
            max_retries=self._max_retries,
            backoff_seconds=backoff_seconds,
        )
        self._sleep(backoff_seconds)


def _json_body(response: requests.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return cast(dict[str, Any], body) if isinstance(body, dict) else {}


def _retry_after_seconds(response: requests.Response) -> float:
    body = _json_body(response)
    retry_after_ms = body.get("retry_after_ms")
    if isinstance(retry_after_ms, int | float):
        return retry_after_ms / 1000
    header = response.headers.get("Retry-After")
    if header:
        try:
            return float(header)
        except ValueError:
            pass
    return DEFAULT_RETRY_AFTER_SECONDS
