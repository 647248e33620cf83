"""Caption formatting for game notifications.

Builds the plain text and HTML bodies of the root post and the plain notice
used when the catalog lookup fails.
"""

from collections.abc import Sequence
from datetime import datetime
from html import escape
from typing import Final

import pytz

from src.domain.models import SearchCandidate

UNKNOWN_VALUE: Final[str] = "Unknown"
DEFAULT_SUMMARY_LENGTH: Final[int] = 200


def format_release_date(timestamp: int) -> str:
    """Format an epoch timestamp as YYYY-MM-DD.

    Example:
        >>> format_release_date(0)
        'Unknown'
        >>> format_release_date(1607558400)
        '2020-12-10'
    """
    if not timestamp:
        return UNKNOWN_VALUE
    return datetime.fromtimestamp(timestamp, tz=pytz.UTC).strftime("%Y-%m-%d")


def format_list(values: Sequence[str]) -> str:
    """Join names with commas, Unknown when empty."""
    if not values:
        return UNKNOWN_VALUE
    return ", ".join(values)


def format_rating(rating: float | None) -> str:
    if rating is None:
        return UNKNOWN_VALUE
    return f"{rating:.1f}/100"


def format_summary(summary: str, max_length: int = DEFAULT_SUMMARY_LENGTH) -> str:
    """Truncate a summary, appending an ellipsis.

    Example:
        >>> format_summary("abcdefghij", 8)
        'abcde...'
    """
    if len(summary) <= max_length:
        return summary
    return summary[: max_length - 3] + "..."


def format_game_text(
    candidate: SearchCandidate,
    download_link: str = "",
    summary_length: int = DEFAULT_SUMMARY_LENGTH,
) -> str:
    """Plain text caption for a resolved game."""
    lines = [
        f"🎮 **{candidate.name}**",
        f"📅 Release Date: {format_release_date(candidate.first_release_date)}",
        f"⭐ Rating: {format_rating(candidate.rating)}",
        f"🎯 Genres: {format_list(candidate.genres)}",
        f"🖥️ Platforms: {format_list(candidate.platforms)}",
        f"📝 Summary: {format_summary(candidate.summary, summary_length) or UNKNOWN_VALUE}",
    ]
    if download_link:
        lines.append(f"🔗 {download_link}")
    return "\n".join(lines)


def format_game_html(
    candidate: SearchCandidate,
    download_link: str = "",
    summary_length: int = DEFAULT_SUMMARY_LENGTH,
) -> str:
    """HTML caption for a resolved game (all values escaped)."""
    title = escape(candidate.name)
    if candidate.url:
        title = f'<a href="{escape(candidate.url, quote=True)}">{title}</a>'

    summary = format_summary(candidate.summary, summary_length) or UNKNOWN_VALUE
    parts = [
        f"<h3>🎮 <strong>{title}</strong></h3>",
        "<p><strong>📅 Release Date:</strong> "
        f"{format_release_date(candidate.first_release_date)}</p>",
        f"<p><strong>⭐ Rating:</strong> {format_rating(candidate.rating)}</p>",
        f"<p><strong>🎯 Genres:</strong> {escape(format_list(candidate.genres))}</p>",
        "<p><strong>🖥️ Platforms:</strong> "
        f"{escape(format_list(candidate.platforms))}</p>",
        f"<p><strong>📝 Summary:</strong> {escape(summary)}</p>",
    ]
    if download_link:
        link = escape(download_link, quote=True)
        parts.append(f'<p><strong>🔗</strong> <a href="{link}">{link}</a></p>')
    return "\n".join(parts)


def format_plain_notice(game_name: str, link: str) -> str:
    """Unenriched notification used when no catalog record was found.

    Example:
        >>> format_plain_notice("Hades", "https://example.org/1")
        '🎮 New Game: Hades\\n🔗 https://example.org/1'
    """
    return f"🎮 New Game: {game_name}\n🔗 {link}"


def format_screenshot_caption(index: int, game_name: str) -> str:
    """Caption for the screenshot at zero-based index."""
    return f"Screenshot {index + 1} of {game_name}"
