"""Matching constants for catalog candidate resolution.

This module defines the default weights and limits used by the candidate
scorer. The live values are carried by ``MatcherConfig`` so they can be
overridden from config.yaml or swapped in tests; the values here are the
defaults and the business rules behind them.
"""

from typing import Final

# Base textual scores
EXACT_MATCH_SCORE: Final[float] = 1.0
"""Normalized query equals the normalized candidate name."""

PREFIX_MATCH_SCORE: Final[float] = 0.9
"""Candidate name starts with the query ("hades" → "Hades II")."""

CONTAINS_MATCH_SCORE: Final[float] = 0.8
"""Candidate name contains the query somewhere after the start."""

CONTAINED_MATCH_SCORE: Final[float] = 0.7
"""Query contains the whole candidate name.

Typical for noisy release titles: "cyberpunk 2077 gog repack" contains
"cyberpunk 2077".
"""

WORD_OVERLAP_FACTOR: Final[float] = 0.6
"""Multiplier applied to the word-overlap fraction.

Business rule: partial word matches must stay below every containment match,
so the fraction (at most 1.0) is scaled down to at most 0.6.
"""

WORD_OVERLAP_THRESHOLD: Final[float] = 0.5
"""Word-overlap fraction must be strictly greater than this to count."""

# Modifiers
MAX_RECENCY_BONUS: Final[float] = 0.2
"""Recency bonus for releases within two years (or one year ahead)."""

MID_RECENCY_BONUS: Final[float] = 0.1
"""Recency bonus at five years past release or two years ahead."""

MIN_RECENCY_BONUS: Final[float] = 0.05
"""Floor bonus for very old or far-future releases."""

MAIN_GAME_BONUS: Final[float] = 0.1
"""Additive bonus for the "main game" category over DLC, bundles, ports."""

OLD_RELEASE_YEAR: Final[int] = 2010
"""Releases before this year get the old-release penalty."""

OLD_RELEASE_FACTOR: Final[float] = 0.5
"""Multiplier for releases older than OLD_RELEASE_YEAR."""

PENALTY_KEYWORD_FACTOR: Final[float] = 0.3
"""Multiplier when the candidate name carries a collection/edition marker."""

PENALTY_KEYWORDS: Final[tuple[str, ...]] = (
    "pack",
    "collection",
    "bundle",
    "double",
    "triple",
    "quadruple",
    "complete",
    "ultimate",
    "deluxe",
    "edition",
    "remastered",
    "remaster",
    "definitive",
    "anniversary",
    "gold",
    "platinum",
    "+",
    "plus",
    "&",
    "with",
    "featuring",
    "including",
)
"""Collection/edition/bundle markers.

Release feeds usually announce the base game; a catalog hit such as
"Cyberpunk 2077: Ultimate Edition" should only win when nothing plainer
matches.
"""

MAX_SCORE: Final[float] = 1.0
"""Final scores are clamped to this ceiling."""

SECONDS_PER_YEAR: Final[float] = 365.25 * 24 * 60 * 60
"""Year length used by the recency bands."""
