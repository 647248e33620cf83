"""Candidate resolver.

Picks the single best catalog record for a noisy query. Scores every
candidate, keeps the strict maximum (first occurrence wins ties) and emits a
decision trace for observability.
"""

from collections.abc import Callable, Sequence

from src.config.logging_config import get_logger
from src.domain.exceptions import NotFoundError
from src.domain.models import Resolution, ResolutionTrace, SearchCandidate
from src.services.candidate_scorer import CandidateScorer, normalize_title

logger = get_logger(__name__)

TraceObserver = Callable[[ResolutionTrace], None]


def resolve_candidate(
    query: str,
    candidates: Sequence[SearchCandidate],
    scorer: CandidateScorer,
    on_trace: TraceObserver | None = None,
) -> Resolution:
    """Select the best matching candidate for a query.

    No minimum score is enforced: a lone candidate scoring 0.0 is still
    returned.

    Args:
        query: Normalized game name extracted from the feed entry
        candidates: Catalog search results
        scorer: Candidate scorer
        on_trace: Optional observer receiving the full decision trace

    Returns:
        Resolution with the selected candidate, its score and the trace

    Raises:
        NotFoundError: If candidates is empty

    Example:
        >>> resolution = resolve_candidate("hades", results, CandidateScorer())
        >>> resolution.candidate.name
        'Hades'
    """
    if not candidates:
        logger.info("candidate_resolution_empty", query=query)
        raise NotFoundError(f"No games found for '{query}'")

    trace = ResolutionTrace(query=query, normalized_query=normalize_title(query))

    best_index = 0
    best_score = 0.0
    for index, candidate in enumerate(candidates):
        breakdown = scorer.explain(query, candidate)
        trace.breakdowns.append(breakdown)
        logger.debug(
            "candidate_scored",
            query=query,
            catalog_id=breakdown.catalog_id,
            name=breakdown.name,
            match_kind=breakdown.match_kind,
            base_score=breakdown.base_score,
            recency_bonus=round(breakdown.recency_bonus, 4),
            category_bonus=breakdown.category_bonus,
            old_release_penalty=breakdown.old_release_penalty_applied,
            penalty_keyword=breakdown.penalty_keyword,
            final_score=round(breakdown.final_score, 4),
        )
        if index == 0 or breakdown.final_score > best_score:
            best_index = index
            best_score = breakdown.final_score

    trace.selected_index = best_index
    selected = candidates[best_index]

    logger.info(
        "candidate_resolved",
        query=query,
        candidate_count=len(candidates),
        catalog_id=selected.catalog_id,
        name=selected.name,
        score=round(best_score, 4),
    )

    if on_trace is not None:
        on_trace(trace)

    return Resolution(candidate=selected, score=best_score, trace=trace)
