"""Post a resolved game as an image thread.

The cover becomes the thread root; screenshots are prepared concurrently and
then posted one by one, each replying to the previous post. If the cover is
missing or cannot be delivered the caption is sent as a plain text message
and no screenshots are attempted.
"""

import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Final, Literal

from src.config.logging_config import get_logger
from src.domain.exceptions import AssetError, PostError
from src.domain.models import (
    SearchCandidate,
    ThreadPhase,
    ThreadResult,
    ThreadState,
    UploadedImage,
)
from src.services.asset_uploader import AssetUploader
from src.services.message_formatter import format_screenshot_caption
from src.services.thread_composer import ThreadComposer

logger = get_logger(__name__)

ScreenshotOrder = Literal["index", "completion"]

DEFAULT_MAX_SCREENSHOTS: Final[int] = 5
DEFAULT_BATCH_TIMEOUT_SECONDS: Final[float] = 120.0
DEFAULT_REPLY_DELAY_SECONDS: Final[float] = 0.5
DEFAULT_MAX_WORKERS: Final[int] = 5

SleepCallable = Callable[[float], None]


@dataclass(frozen=True)
class ThreadPostingOptions:
    """Tuning knobs for one thread."""

    max_screenshots: int = DEFAULT_MAX_SCREENSHOTS
    batch_timeout_seconds: float = DEFAULT_BATCH_TIMEOUT_SECONDS
    reply_delay_seconds: float = DEFAULT_REPLY_DELAY_SECONDS
    max_workers: int = DEFAULT_MAX_WORKERS
    order: ScreenshotOrder = "index"


@dataclass(frozen=True)
class PreparedScreenshot:
    """Uploaded screenshot with its position in the catalog list."""

    index: int
    image: UploadedImage


def cover_label(game_name: str) -> str:
    return f"{game_name} cover"


def collect_screenshots(
    uploader: AssetUploader,
    urls: Sequence[str],
    game_name: str,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    timeout_seconds: float = DEFAULT_BATCH_TIMEOUT_SECONDS,
    order: ScreenshotOrder = "index",
) -> tuple[list[PreparedScreenshot], int]:
    """Prepare screenshots concurrently under one shared timeout.

    Args:
        uploader: Asset uploader
        urls: Screenshot URLs in catalog order
        game_name: Name used for labels
        max_workers: Worker thread count
        timeout_seconds: Deadline for the whole batch
        order: "index" sorts by catalog position, "completion" keeps
            arrival order

    Returns:
        Prepared screenshots and the number that failed or timed out
    """
    if not urls:
        return [], 0

    collected: list[PreparedScreenshot] = []
    failed = 0
    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(urls))))
    futures: dict[Future[UploadedImage], int] = {
        executor.submit(
            uploader.prepare_image, url, format_screenshot_caption(index, game_name)
        ): index
        for index, url in enumerate(urls)
    }

    try:
        for future in as_completed(futures, timeout=timeout_seconds):
            index = futures[future]
            try:
                image = future.result()
            except AssetError as error:
                failed += 1
                logger.warning(
                    "screenshot_prepare_failed",
                    index=index,
                    error_type=type(error).__name__,
                    error=str(error),
                )
                continue
            except Exception:  # noqa: BLE001
                failed += 1
                logger.exception("screenshot_prepare_crashed", index=index)
                continue
            collected.append(PreparedScreenshot(index=index, image=image))
    except TimeoutError:
        unfinished = len(futures) - len(collected) - failed
        failed += unfinished
        logger.warning(
            "screenshot_batch_timeout",
            timeout_seconds=timeout_seconds,
            unfinished=unfinished,
            collected=len(collected),
        )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    if order == "index":
        collected.sort(key=lambda shot: shot.index)

    return collected, failed


def _send_fallback(
    composer: ThreadComposer,
    caption: str,
    html: str | None,
    result: ThreadResult,
    reason: str,
) -> ThreadResult:
    logger.info("thread_text_fallback", reason=reason)
    result.fallback_event_id = composer.send_text_fallback(caption, html)
    result.phase = ThreadPhase.TEXT_FALLBACK
    return result


def post_game_thread_use_case(
    candidate: SearchCandidate,
    cover_url: str | None,
    screenshot_urls: Sequence[str],
    *,
    caption: str,
    html: str | None,
    uploader: AssetUploader,
    composer: ThreadComposer,
    options: ThreadPostingOptions | None = None,
    sleep: SleepCallable | None = None,
) -> ThreadResult:
    """Post one candidate as a cover root followed by chained screenshots.

    1. No cover URL → text fallback
    2. Prepare and post the cover as thread root; on failure → text fallback
    3. Prepare up to max_screenshots concurrently
    4. Post each prepared screenshot as a reply to the previous post

    Args:
        candidate: Resolved game
        cover_url: Cover image URL (None when the game has no cover)
        screenshot_urls: Screenshot URLs in catalog order
        caption: Plain text caption for the root or fallback message
        html: Optional HTML caption
        uploader: Asset uploader
        composer: Thread composer
        options: Posting options
        sleep: Sleep function used between replies

    Returns:
        ThreadResult describing what reached the room

    Raises:
        PostError: If the text fallback itself cannot be sent
    """
    options = options or ThreadPostingOptions()
    sleep_fn = sleep or time.sleep
    result = ThreadResult()

    if not cover_url:
        return _send_fallback(composer, caption, html, result, reason="no_cover")

    try:
        cover = uploader.prepare_image(cover_url, cover_label(candidate.name))
        root_event_id = composer.post_root(caption, html, cover)
    except AssetError as error:
        logger.warning(
            "thread_root_failed",
            game=candidate.name,
            error_type=type(error).__name__,
            error=str(error),
        )
        return _send_fallback(composer, caption, html, result, reason="root_failed")

    state = ThreadState()
    state.record_post(root_event_id)
    result.root_event_id = root_event_id
    result.phase = ThreadPhase.ROOT_POSTED

    urls = list(screenshot_urls)[: max(options.max_screenshots, 0)]
    prepared, failed = collect_screenshots(
        uploader,
        urls,
        candidate.name,
        max_workers=options.max_workers,
        timeout_seconds=options.batch_timeout_seconds,
        order=options.order,
    )
    result.screenshots_failed = failed

    for shot in prepared:
        if options.reply_delay_seconds > 0:
            sleep_fn(options.reply_delay_seconds)
        relation = state.next_relation()
        try:
            event_id = composer.post_reply(
                format_screenshot_caption(shot.index, candidate.name),
                shot.image,
                relation.root,
                relation.parent,
            )
        except PostError as error:
            result.screenshots_failed += 1
            logger.warning("screenshot_post_failed", index=shot.index, error=str(error))
            continue
        state.record_post(event_id)
        result.reply_event_ids.append(event_id)

    if result.replies_posted or not urls:
        result.phase = ThreadPhase.DONE
    logger.info(
        "game_thread_posted",
        game=candidate.name,
        phase=result.phase.value,
        root_event_id=result.root_event_id,
        replies_posted=result.replies_posted,
        screenshots_failed=result.screenshots_failed,
    )
    return result
