"""Game name extraction from release feed titles.

Handles the usual release naming noise:
- Bracketed release groups ("Game [FitGirl Repack]")
- Parenthesised details ("Game (2024)")
- Dash suffixes ("Game - Deluxe Build")
- Version numbers ("Game v1.2.3")
- PC / REPACK / CRACK markers
"""

import re
from typing import Final

TITLE_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^(.+?)\s*\[.*?\]"),
    re.compile(r"^(.+?)\s*\(.*?\)"),
    re.compile(r"^(.+?)\s*-\s*.*"),
    re.compile(r"^(.+?)\s*v?\d+\.\d+"),
    re.compile(r"^(.+?)\s*PC.*"),
    re.compile(r"^(.+?)\s*REPACK.*"),
    re.compile(r"^(.+?)\s*CRACK.*"),
)
"""Ordered patterns; the first one that matches wins."""


def extract_game_name(title: str) -> str:
    """Extract a game name from a feed entry title.

    Args:
        title: Raw feed title

    Returns:
        Best-effort game name (the trimmed title when no pattern matches)

    Example:
        >>> extract_game_name("Cyberpunk 2077 [FitGirl Repack]")
        'Cyberpunk 2077'
        >>> extract_game_name("Stardew Valley v1.6.9")
        'Stardew Valley'
    """
    for pattern in TITLE_PATTERNS:
        match = pattern.search(title)
        if match:
            name = match.group(1).strip()
            name = name.removeprefix("[").removesuffix("]").strip()
            if name:
                return name

    return title.strip()
