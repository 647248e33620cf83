from __future__ import annotations

"""Poll the release feed and announce new games to Matrix."""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from scripts import pipeline_runtime
from src.adapters.matrix_client import MatrixClient
from src.config.logging_config import get_logger
from src.config.settings import Settings, get_settings
from src.domain.exceptions import MatrixAPIError, RateLimitError
from src.use_cases.announce_feed_items import announce_feed_items_use_case
from src.use_cases.notifier_factories import (
    create_announcement_context,
    create_feed_source,
    create_matrix_client,
)

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Announce new game releases from an RSS feed to a Matrix room"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between feed polls (defaults to processing.poll_interval_seconds)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Process the feed a single time and exit",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs in JSON format",
    )
    args = parser.parse_args(argv)
    if args.interval is not None and args.interval <= 0:
        parser.error("--interval must be greater than 0")
    return args


def _authenticate(matrix_client: MatrixClient, settings: Settings) -> str:
    """Verify the access token, recovering with password login when configured."""
    try:
        return matrix_client.whoami()
    except MatrixAPIError as exc:
        credentials = settings.matrix_password_login()
        if credentials is None:
            raise
        logger.warning(
            "matrix_access_token_rejected",
            error=str(exc),
            errcode=exc.errcode,
            matrix_user=credentials[0],
        )

    matrix_client.login_password(*credentials)
    logger.warning(
        "matrix_access_token_refreshed",
        hint="store the new token as MATRIX_ACCESS_TOKEN to skip password login",
    )
    return matrix_client.whoami()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    settings = get_settings()
    pipeline_runtime.initialize_logging(settings, json_logs=args.json_logs)

    controller = pipeline_runtime.create_shutdown_controller()
    pipeline_runtime.install_signal_handlers(controller)

    try:
        matrix_client = create_matrix_client(settings)
        user_id = _authenticate(matrix_client, settings)
    except (ValueError, MatrixAPIError, RateLimitError) as exc:
        logger.error("matrix_login_failed", error=str(exc))
        return 1
    logger.info("matrix_login_verified", user_id=user_id)
    if settings.matrix_user_id and settings.matrix_user_id != user_id:
        logger.warning(
            "matrix_user_mismatch",
            configured_user_id=settings.matrix_user_id,
            user_id=user_id,
        )

    feed = create_feed_source(settings)
    context = create_announcement_context(settings, matrix_client=matrix_client)

    def _poll() -> None:
        announce_feed_items_use_case(feed, context)

    failures = pipeline_runtime.run_poll_loop(
        controller=controller,
        interval_seconds=args.interval or settings.poll_interval_seconds,
        run_once=args.once,
        action=_poll,
    )

    return 1 if args.once and failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
