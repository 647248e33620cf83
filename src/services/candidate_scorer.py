"""Scoring engine for catalog candidate resolution.

Scores how well one catalog record matches a noisy release title:
- Textual match (exact, prefix, substring, word overlap)
- Recency bonus
- Main game bonus
- Old release penalty
- Collection/edition keyword penalty

The scorer is pure: same query, candidate, config and clock give the same
score.
"""

import re
from collections.abc import Callable
from datetime import datetime
from typing import Final

import pytz
from pydantic import BaseModel, ConfigDict, Field

from src.domain.matching_constants import (
    CONTAINED_MATCH_SCORE,
    CONTAINS_MATCH_SCORE,
    EXACT_MATCH_SCORE,
    MAIN_GAME_BONUS,
    MAX_RECENCY_BONUS,
    MAX_SCORE,
    MID_RECENCY_BONUS,
    MIN_RECENCY_BONUS,
    OLD_RELEASE_FACTOR,
    OLD_RELEASE_YEAR,
    PENALTY_KEYWORD_FACTOR,
    PENALTY_KEYWORDS,
    PREFIX_MATCH_SCORE,
    SECONDS_PER_YEAR,
    WORD_OVERLAP_FACTOR,
    WORD_OVERLAP_THRESHOLD,
)
from src.domain.models import GameCategory, ScoreBreakdown, SearchCandidate

MATCH_EXACT: Final[str] = "exact"
MATCH_PREFIX: Final[str] = "prefix"
MATCH_CONTAINS: Final[str] = "contains"
MATCH_CONTAINED: Final[str] = "contained"
MATCH_WORDS: Final[str] = "words"
MATCH_NONE: Final[str] = "none"

Clock = Callable[[], datetime]


class MatcherConfig(BaseModel):
    """Immutable weights and keyword list used by the scorer."""

    model_config = ConfigDict(frozen=True)

    exact_score: float = Field(default=EXACT_MATCH_SCORE, ge=0.0, le=1.0)
    prefix_score: float = Field(default=PREFIX_MATCH_SCORE, ge=0.0, le=1.0)
    contains_score: float = Field(default=CONTAINS_MATCH_SCORE, ge=0.0, le=1.0)
    contained_score: float = Field(default=CONTAINED_MATCH_SCORE, ge=0.0, le=1.0)
    word_overlap_factor: float = Field(default=WORD_OVERLAP_FACTOR, ge=0.0, le=1.0)
    word_overlap_threshold: float = Field(
        default=WORD_OVERLAP_THRESHOLD, ge=0.0, le=1.0
    )
    max_recency_bonus: float = Field(default=MAX_RECENCY_BONUS, ge=0.0)
    mid_recency_bonus: float = Field(default=MID_RECENCY_BONUS, ge=0.0)
    min_recency_bonus: float = Field(default=MIN_RECENCY_BONUS, ge=0.0)
    main_game_bonus: float = Field(default=MAIN_GAME_BONUS, ge=0.0)
    old_release_year: int = Field(default=OLD_RELEASE_YEAR)
    old_release_factor: float = Field(default=OLD_RELEASE_FACTOR, ge=0.0, le=1.0)
    penalty_factor: float = Field(default=PENALTY_KEYWORD_FACTOR, ge=0.0, le=1.0)
    penalty_keywords: tuple[str, ...] = Field(default=PENALTY_KEYWORDS)


def _utc_now() -> datetime:
    return datetime.now(tz=pytz.UTC)


def normalize_title(text: str) -> str:
    """Trim whitespace and case-fold a title.

    Example:
        >>> normalize_title("  Cyberpunk 2077 ")
        'cyberpunk 2077'
    """
    return text.strip().casefold()


def recency_bonus(
    release_ts: int, now: datetime, config: MatcherConfig | None = None
) -> float:
    """Calculate the additive recency bonus for a release timestamp.

    Upcoming releases: within a year → max, one to two years → linear from
    max down to mid, further out → min. Past releases: within two years →
    max, two to five years → linear down to mid, five to ten years → linear
    down to min, older → min.

    Args:
        release_ts: Release time in epoch seconds (0 = unknown)
        now: Reference time
        config: Matcher config with bonus levels

    Returns:
        Bonus in [min, max], or 0.0 for unknown release time

    Example:
        >>> now = datetime(2026, 1, 1, tzinfo=pytz.UTC)
        >>> recency_bonus(int(now.timestamp()), now)
        0.2
    """
    if not release_ts:
        return 0.0

    cfg = config or MatcherConfig()
    top = cfg.max_recency_bonus
    mid = cfg.mid_recency_bonus
    floor = cfg.min_recency_bonus

    delta_years = (release_ts - now.timestamp()) / SECONDS_PER_YEAR

    if delta_years > 0:
        if delta_years <= 1:
            return top
        if delta_years <= 2:
            return top - (top - mid) * (delta_years - 1)
        return floor

    age_years = -delta_years
    if age_years <= 2:
        return top
    if age_years <= 5:
        return top - (top - mid) * (age_years - 2) / 3
    if age_years <= 10:
        return mid - (mid - floor) * (age_years - 5) / 5
    return floor


def _compile_penalty_patterns(
    keywords: tuple[str, ...],
) -> list[tuple[str, re.Pattern[str] | None]]:
    """Word keywords match whole words; symbol keywords match anywhere."""
    patterns: list[tuple[str, re.Pattern[str] | None]] = []
    for keyword in keywords:
        normalized = normalize_title(keyword)
        if not normalized:
            continue
        if re.fullmatch(r"\w+", normalized):
            patterns.append((normalized, re.compile(rf"\b{re.escape(normalized)}\b")))
        else:
            patterns.append((normalized, None))
    return patterns


class CandidateScorer:
    """Deterministic (query, candidate) → score function."""

    def __init__(
        self, config: MatcherConfig | None = None, *, clock: Clock | None = None
    ) -> None:
        """Initialize scorer.

        Args:
            config: Matcher weights and keywords (defaults from matching_constants)
            clock: Callable returning the current aware datetime
        """
        self._config = config or MatcherConfig()
        self._clock = clock or _utc_now
        self._penalty_patterns = _compile_penalty_patterns(
            self._config.penalty_keywords
        )

    @property
    def config(self) -> MatcherConfig:
        return self._config

    def score(self, query: str, candidate: SearchCandidate) -> float:
        """Score a candidate against a query.

        Example:
            >>> scorer = CandidateScorer()
            >>> scorer.score("Hades", SearchCandidate(catalog_id=1, name="Hades"))
            1.0
        """
        return self.explain(query, candidate).final_score

    def explain(self, query: str, candidate: SearchCandidate) -> ScoreBreakdown:
        """Score a candidate and return every stage of the calculation.

        Args:
            query: Raw query string
            candidate: Catalog record

        Returns:
            Score breakdown with final score in [0, 1]
        """
        normalized_query = normalize_title(query)
        normalized_name = normalize_title(candidate.name)
        match_kind, base_score = self._base_score(normalized_query, normalized_name)

        if base_score <= 0:
            return ScoreBreakdown(
                catalog_id=candidate.catalog_id,
                name=candidate.name,
                match_kind=match_kind,
            )

        cfg = self._config
        score = base_score

        bonus = recency_bonus(candidate.first_release_date, self._clock(), cfg)
        score += bonus

        category_bonus = (
            cfg.main_game_bonus if candidate.category == GameCategory.MAIN_GAME else 0.0
        )
        score += category_bonus

        release_dt = candidate.release_datetime
        old_release = release_dt is not None and release_dt.year < cfg.old_release_year
        if old_release:
            score *= cfg.old_release_factor

        penalty_keyword = self.find_penalty_keyword(normalized_name)
        if penalty_keyword is not None:
            score *= cfg.penalty_factor

        return ScoreBreakdown(
            catalog_id=candidate.catalog_id,
            name=candidate.name,
            match_kind=match_kind,
            base_score=base_score,
            recency_bonus=bonus,
            category_bonus=category_bonus,
            old_release_penalty_applied=old_release,
            penalty_keyword=penalty_keyword,
            final_score=max(0.0, min(score, MAX_SCORE)),
        )

    def find_penalty_keyword(self, normalized_name: str) -> str | None:
        """Return the first penalty keyword present in a normalized name."""
        for keyword, pattern in self._penalty_patterns:
            if pattern is None:
                if keyword in normalized_name:
                    return keyword
            elif pattern.search(normalized_name):
                return keyword
        return None

    def _base_score(self, query: str, name: str) -> tuple[str, float]:
        cfg = self._config

        if not query or not name:
            return MATCH_NONE, 0.0

        if name == query:
            return MATCH_EXACT, cfg.exact_score

        if name.startswith(query):
            return MATCH_PREFIX, cfg.prefix_score

        if query in name:
            return MATCH_CONTAINS, cfg.contains_score

        if name in query:
            return MATCH_CONTAINED, cfg.contained_score

        query_words = query.split()
        name_words = set(name.split())
        matched = sum(1 for word in query_words if word in name_words)
        fraction = matched / len(query_words)
        if fraction > cfg.word_overlap_threshold:
            return MATCH_WORDS, fraction * cfg.word_overlap_factor

        return MATCH_NONE, 0.0
