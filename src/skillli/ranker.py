"""
Deduplication and re-ranking of trawl results from several sources.
"""

import logging
from typing import Dict, List, Sequence

from .models import TrawlResult, TrawlSource

logger = logging.getLogger(__name__)

_SOURCE_BONUS: Dict[TrawlSource, float] = {
    TrawlSource.REGISTRY: 0.2,
    TrawlSource.GITHUB: 0.05,
}
_NAME_TOKEN_BONUS = 0.15
_TAG_TOKEN_BONUS = 0.10
_MAX_CONFIDENCE = 1.0


def query_tokens(query: str) -> List[str]:
    """Lowercase whitespace-separated tokens of *query*."""
    return query.lower().split()


def _dedup_key(result: TrawlResult) -> str:
    if result.skill.name:
        return result.skill.name.lower()
    return result.url


def deduplicate_results(results: Sequence[TrawlResult]) -> List[TrawlResult]:
    """Keep one result per skill name (or URL), the most confident one.

    On a confidence tie the earlier result wins.
    """
    best: Dict[str, TrawlResult] = {}
    for result in results:
        key = _dedup_key(result)
        current = best.get(key)
        if current is None or result.confidence > current.confidence:
            best[key] = result

    if len(best) < len(results):
        logger.debug("Deduplicated %d results to %d", len(results), len(best))
    return list(best.values())


def _bonus(result: TrawlResult, tokens: Sequence[str]) -> float:
    bonus = _SOURCE_BONUS.get(result.source, 0.0)

    name = (result.skill.name or "").lower()
    bonus += sum(_NAME_TOKEN_BONUS for token in tokens if token in name)

    tags = [t.lower() for t in result.skill.tags or []]
    bonus += sum(_TAG_TOKEN_BONUS for token in tokens if token in tags)
    return bonus


def rank_results(results: Sequence[TrawlResult], query: str) -> List[TrawlResult]:
    """Add source and match bonuses, clamp to 1.0 and sort descending."""
    tokens = query_tokens(query)
    ranked = [
        result.model_copy(
            update={
                "confidence": min(result.confidence + _bonus(result, tokens), _MAX_CONFIDENCE)
            }
        )
        for result in results
    ]
    ranked.sort(key=lambda r: r.confidence, reverse=True)
    return ranked
