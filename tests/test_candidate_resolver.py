"""Tests for resolve_candidate."""

from datetime import datetime

import pytest
import pytz

from src.domain.exceptions import NotFoundError
from src.domain.models import GameCategory, ResolutionTrace
from src.services.candidate_resolver import resolve_candidate
from src.services.candidate_scorer import CandidateScorer


def _ts(year: int, month: int, day: int) -> int:
    return int(datetime(year, month, day, tzinfo=pytz.UTC).timestamp())


@pytest.fixture
def scorer(fixed_clock) -> CandidateScorer:
    return CandidateScorer(clock=fixed_clock)


def test_empty_candidates_raise_not_found(scorer: CandidateScorer) -> None:
    with pytest.raises(NotFoundError):
        resolve_candidate("Hades", [], scorer)


def test_single_candidate_selected_even_with_zero_score(
    scorer: CandidateScorer, make_candidate
) -> None:
    candidate = make_candidate(name="Unrelated Title")

    resolution = resolve_candidate("hades", [candidate], scorer)

    assert resolution.candidate == candidate
    assert resolution.score == 0.0


def test_ties_keep_first_candidate(scorer: CandidateScorer, make_candidate) -> None:
    first = make_candidate(catalog_id=1, name="Hades")
    second = make_candidate(catalog_id=2, name="Hades")

    resolution = resolve_candidate("hades", [first, second], scorer)

    assert resolution.candidate.catalog_id == 1
    assert resolution.trace.selected_index == 0


def test_all_zero_scores_select_first(scorer: CandidateScorer, make_candidate) -> None:
    candidates = [
        make_candidate(catalog_id=7, name="Alpha"),
        make_candidate(catalog_id=8, name="Beta"),
    ]

    resolution = resolve_candidate("zzz", candidates, scorer)

    assert resolution.candidate.catalog_id == 7


def test_higher_scoring_later_candidate_wins(
    scorer: CandidateScorer, make_candidate
) -> None:
    candidates = [
        make_candidate(catalog_id=1, name="Hades Soundtrack Collection"),
        make_candidate(catalog_id=2, name="Hades"),
    ]

    resolution = resolve_candidate("Hades", candidates, scorer)

    assert resolution.candidate.catalog_id == 2
    assert resolution.trace.selected_index == 1


def test_main_game_beats_recent_bundle(
    scorer: CandidateScorer, make_candidate
) -> None:
    main_game = make_candidate(
        catalog_id=1877,
        name="Cyberpunk 2077",
        first_release_date=_ts(2020, 12, 10),
        category=GameCategory.MAIN_GAME,
    )
    bundle = make_candidate(
        catalog_id=250616,
        name="Cyberpunk 2077: Ultimate Edition",
        first_release_date=_ts(2023, 12, 5),
        category=GameCategory.BUNDLE,
    )

    resolution = resolve_candidate(
        "Cyberpunk 2077 GOG Repack [FitGirl]", [bundle, main_game], scorer
    )

    assert resolution.candidate.catalog_id == 1877
    assert resolution.score > 0.7
    bundle_breakdown = resolution.trace.breakdowns[0]
    assert bundle_breakdown.final_score < resolution.score


def test_trace_is_emitted_with_every_breakdown(
    scorer: CandidateScorer, make_candidate
) -> None:
    traces: list[ResolutionTrace] = []
    candidates = [
        make_candidate(catalog_id=1, name="Hades"),
        make_candidate(catalog_id=2, name="Hades II"),
        make_candidate(catalog_id=3, name="Hades Deluxe"),
    ]

    resolution = resolve_candidate("hades", candidates, scorer, on_trace=traces.append)

    assert len(traces) == 1
    trace = traces[0]
    assert trace is resolution.trace
    assert trace.normalized_query == "hades"
    assert [b.catalog_id for b in trace.breakdowns] == [1, 2, 3]
    assert trace.breakdowns[2].penalty_keyword == "deluxe"


def test_resolution_is_order_stable(scorer: CandidateScorer, make_candidate) -> None:
    candidates = [
        make_candidate(catalog_id=1, name="Stardew Valley"),
        make_candidate(catalog_id=2, name="Stardew Valley Collector's Edition"),
    ]

    first = resolve_candidate("Stardew Valley", candidates, scorer)
    second = resolve_candidate("Stardew Valley", candidates, scorer)

    assert first.candidate == second.candidate
    assert first.score == second.score
