"""Tests for CandidateScorer and recency_bonus."""

from datetime import datetime, timedelta

import pytest
import pytz

from src.domain.matching_constants import SECONDS_PER_YEAR
from src.domain.models import GameCategory
from src.services.candidate_scorer import (
    MATCH_CONTAINED,
    MATCH_CONTAINS,
    MATCH_EXACT,
    MATCH_NONE,
    MATCH_PREFIX,
    MATCH_WORDS,
    CandidateScorer,
    MatcherConfig,
    normalize_title,
    recency_bonus,
)

NOW = datetime(2025, 1, 1, tzinfo=pytz.UTC)


def _years_from_now(years: float) -> int:
    return int(NOW.timestamp() + years * SECONDS_PER_YEAR)


@pytest.fixture
def scorer(fixed_clock) -> CandidateScorer:
    return CandidateScorer(clock=fixed_clock)


def test_normalize_title_trims_and_casefolds() -> None:
    assert normalize_title("  Cyberpunk 2077 ") == "cyberpunk 2077"
    assert normalize_title("STRASSE") == normalize_title("straße")


@pytest.mark.parametrize(
    ("query", "name", "expected_kind"),
    [
        ("hades", "Hades", MATCH_EXACT),
        ("hades", "Hades II", MATCH_PREFIX),
        ("souls", "Dark Souls Remastered", MATCH_CONTAINS),
        ("cyberpunk 2077 gog repack", "Cyberpunk 2077", MATCH_CONTAINED),
        ("elden ring nightreign", "Nightreign Elden Ring Edition", MATCH_WORDS),
        ("portal", "Half-Life", MATCH_NONE),
    ],
)
def test_match_kinds(
    scorer: CandidateScorer, make_candidate, query: str, name: str, expected_kind: str
) -> None:
    breakdown = scorer.explain(query, make_candidate(name=name))

    assert breakdown.match_kind == expected_kind


def test_exact_match_unknown_release_scores_base_plus_main_game_capped(
    scorer: CandidateScorer, make_candidate
) -> None:
    score = scorer.score("Hades", make_candidate(name="Hades"))

    assert score == pytest.approx(1.0)


def test_exact_match_non_main_game_without_date_is_base_only(
    scorer: CandidateScorer, make_candidate
) -> None:
    candidate = make_candidate(name="Hades", category=GameCategory.PORT)

    breakdown = scorer.explain("hades", candidate)

    assert breakdown.base_score == pytest.approx(1.0)
    assert breakdown.recency_bonus == 0.0
    assert breakdown.category_bonus == 0.0
    assert breakdown.final_score == pytest.approx(1.0)


def test_no_overlap_scores_zero_regardless_of_modifiers(
    scorer: CandidateScorer, make_candidate
) -> None:
    candidate = make_candidate(
        name="Completely Different", first_release_date=_years_from_now(-0.5)
    )

    breakdown = scorer.explain("hades", candidate)

    assert breakdown.final_score == 0.0
    assert breakdown.recency_bonus == 0.0
    assert breakdown.category_bonus == 0.0


def test_empty_query_scores_zero(scorer: CandidateScorer, make_candidate) -> None:
    assert scorer.score("   ", make_candidate(name="Hades")) == 0.0


def test_word_overlap_requires_more_than_half(
    scorer: CandidateScorer, make_candidate
) -> None:
    candidate = make_candidate(name="Ring Fit Adventure", category=GameCategory.PORT)

    # one of two words matches: exactly half, not above the threshold
    assert scorer.score("ring elden", candidate) == 0.0
    # two of three words match
    breakdown = scorer.explain("ring fit deluxe", candidate)
    assert breakdown.match_kind == MATCH_WORDS
    assert breakdown.base_score == pytest.approx(2 / 3 * 0.6)


def test_penalty_keyword_multiplies_score(
    scorer: CandidateScorer, make_candidate
) -> None:
    plain = make_candidate(name="Hades Chronicles", category=GameCategory.PORT)
    penalized = make_candidate(name="Hades Deluxe", category=GameCategory.PORT)

    plain_score = scorer.score("hades", plain)
    breakdown = scorer.explain("hades", penalized)

    assert breakdown.penalty_keyword == "deluxe"
    assert breakdown.final_score == pytest.approx(plain_score * 0.3)


def test_penalty_keyword_matches_whole_words_only(
    scorer: CandidateScorer, make_candidate
) -> None:
    assert scorer.find_penalty_keyword("packman adventures") is None
    assert scorer.find_penalty_keyword("starter pack") == "pack"


def test_penalty_applies_even_to_exact_match(
    scorer: CandidateScorer, make_candidate
) -> None:
    candidate = make_candidate(name="Ultimate Chicken Horse")

    breakdown = scorer.explain("ultimate chicken horse", candidate)

    assert breakdown.penalty_keyword == "ultimate"
    assert breakdown.final_score == pytest.approx((1.0 + 0.1) * 0.3)


def test_old_release_halves_score(scorer: CandidateScorer, make_candidate) -> None:
    release_2005 = int(datetime(2005, 6, 1, tzinfo=pytz.UTC).timestamp())
    candidate = make_candidate(
        name="Hades", first_release_date=release_2005, category=GameCategory.PORT
    )

    breakdown = scorer.explain("hades", candidate)

    assert breakdown.old_release_penalty_applied is True
    assert breakdown.final_score == pytest.approx((1.0 + 0.05) * 0.5)


def test_scores_are_bounded(scorer: CandidateScorer, make_candidate) -> None:
    candidates = [
        make_candidate(name="Hades", first_release_date=_years_from_now(0.5)),
        make_candidate(name="Hades Remastered Bundle"),
        make_candidate(name="Nothing Alike"),
        make_candidate(name="hades", first_release_date=_years_from_now(-30)),
    ]

    for candidate in candidates:
        score = scorer.score("Hades", candidate)
        assert 0.0 <= score <= 1.0


def test_scoring_is_deterministic(fixed_clock, make_candidate) -> None:
    candidate = make_candidate(
        name="Cyberpunk 2077", first_release_date=_years_from_now(-4)
    )

    first = CandidateScorer(clock=fixed_clock).explain("cyberpunk 2077 repack", candidate)
    second = CandidateScorer(clock=fixed_clock).explain(
        "cyberpunk 2077 repack", candidate
    )

    assert first == second


def test_custom_config_weights(fixed_clock, make_candidate) -> None:
    config = MatcherConfig(prefix_score=0.5, main_game_bonus=0.0)
    scorer = CandidateScorer(config, clock=fixed_clock)

    breakdown = scorer.explain("hades", make_candidate(name="Hades II"))

    assert breakdown.base_score == pytest.approx(0.5)
    assert breakdown.final_score == pytest.approx(0.5)


def test_contains_and_contained_scores(scorer: CandidateScorer, make_candidate) -> None:
    contains = scorer.explain(
        "souls", make_candidate(name="Dark Souls", category=GameCategory.PORT)
    )
    contained = scorer.explain(
        "dark souls repack", make_candidate(name="Dark Souls", category=GameCategory.PORT)
    )

    assert contains.match_kind == MATCH_CONTAINS
    assert contains.base_score == pytest.approx(0.8)
    assert contained.match_kind == MATCH_CONTAINED
    assert contained.base_score == pytest.approx(0.7)


class TestRecencyBonus:
    def test_unknown_release_gets_nothing(self) -> None:
        assert recency_bonus(0, NOW) == 0.0

    @pytest.mark.parametrize("years", [0.0, -0.5, -1.9, 0.5, 0.99])
    def test_recent_and_near_future_get_max(self, years: float) -> None:
        assert recency_bonus(_years_from_now(years), NOW) == pytest.approx(0.2)

    def test_far_future_gets_floor(self) -> None:
        assert recency_bonus(_years_from_now(3), NOW) == pytest.approx(0.05)

    def test_one_to_two_years_ahead_interpolates(self) -> None:
        assert recency_bonus(_years_from_now(1.5), NOW) == pytest.approx(0.15, abs=1e-3)

    def test_past_bands(self) -> None:
        assert recency_bonus(_years_from_now(-3.5), NOW) == pytest.approx(0.15, abs=1e-3)
        assert recency_bonus(_years_from_now(-5), NOW) == pytest.approx(0.1, abs=1e-3)
        assert recency_bonus(_years_from_now(-7.5), NOW) == pytest.approx(0.075, abs=1e-3)
        assert recency_bonus(_years_from_now(-25), NOW) == pytest.approx(0.05)

    def test_past_releases_are_monotonic(self) -> None:
        ages = [0.5, 2.5, 4.0, 6.0, 9.0, 12.0, 40.0]
        bonuses = [recency_bonus(_years_from_now(-age), NOW) for age in ages]

        assert bonuses == sorted(bonuses, reverse=True)
        assert all(0.05 <= bonus <= 0.2 for bonus in bonuses)

    def test_upcoming_releases_are_monotonic(self) -> None:
        lead_times = [0.5, 1.2, 1.8, 2.5, 5.0]
        bonuses = [recency_bonus(_years_from_now(years), NOW) for years in lead_times]

        assert bonuses == sorted(bonuses, reverse=True)
        assert bonuses[0] == pytest.approx(0.2)
        assert bonuses[-1] == pytest.approx(0.05)
        assert all(0.05 <= bonus <= 0.2 for bonus in bonuses)

    def test_bonus_uses_config_levels(self) -> None:
        config = MatcherConfig(
            max_recency_bonus=0.4, mid_recency_bonus=0.2, min_recency_bonus=0.0
        )

        assert recency_bonus(_years_from_now(-1), NOW, config) == pytest.approx(0.4)
        assert recency_bonus(_years_from_now(-20), NOW, config) == 0.0


def test_explain_reports_recency_bonus(scorer: CandidateScorer, make_candidate) -> None:
    release = NOW - timedelta(days=30)
    candidate = make_candidate(name="Hades II", first_release_date=int(release.timestamp()))

    breakdown = scorer.explain("hades", candidate)

    assert breakdown.recency_bonus == pytest.approx(0.2)
    assert breakdown.category_bonus == pytest.approx(0.1)
    assert breakdown.final_score == pytest.approx(1.0)
