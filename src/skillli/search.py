"""
Deterministic lexical search over the local registry index.

Scores are unbounded additive sums and only meaningful relative to each
other within one result set.
"""

import logging
import math
import re
from typing import List, Optional, Sequence, Tuple

from .models import (
    LocalIndex,
    MatchField,
    RegistryEntry,
    SearchOptions,
    SearchResult,
    SkillCategory,
    TrustLevel,
)

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[\s\-_,./]+")

_NAME_WEIGHT = 5
_EXACT_NAME_BONUS = 10
_DESCRIPTION_WEIGHT = 2
_TAG_TOKEN_WEIGHT = 4
_FILTER_TAG_WEIGHT = 3
_CATEGORY_WEIGHT = 2
_TRUST_BOOSTS = {TrustLevel.OFFICIAL: 3.0, TrustLevel.VERIFIED: 1.5}
_RATING_FACTOR = 0.5
_DOWNLOADS_FACTOR = 0.5


def tokenize(text: str) -> List[str]:
    """Lowercase and split on whitespace and ``-_,./``; drop 1-char tokens."""
    return [t for t in _TOKEN_SPLIT.split(text.lower()) if len(t) > 1]


def _text_score(tokens: Sequence[str], text: str) -> int:
    lower = text.lower()
    return sum(1 for token in tokens if token in lower)


def _score_entry(
    entry: RegistryEntry, tokens: Sequence[str], options: SearchOptions
) -> Tuple[float, List[MatchField]]:
    score = 0.0
    matched_on: List[MatchField] = []

    name_hits = _text_score(tokens, entry.name)
    if name_hits:
        score += name_hits * _NAME_WEIGHT
        matched_on.append(MatchField.NAME)

    if entry.name.lower() == options.query.lower():
        score += _EXACT_NAME_BONUS

    description_hits = _text_score(tokens, entry.description)
    if description_hits:
        score += description_hits * _DESCRIPTION_WEIGHT
        matched_on.append(MatchField.DESCRIPTION)

    entry_tags = [t.lower() for t in entry.tags]
    for token in tokens:
        if token in entry_tags:
            score += _TAG_TOKEN_WEIGHT
            if MatchField.TAGS not in matched_on:
                matched_on.append(MatchField.TAGS)

    for tag in options.tags or []:
        if tag in entry.tags:
            score += _FILTER_TAG_WEIGHT
            if MatchField.TAGS not in matched_on:
                matched_on.append(MatchField.TAGS)

    if options.category is not None and entry.category == options.category:
        score += _CATEGORY_WEIGHT
        matched_on.append(MatchField.CATEGORY)

    # Popularity boosts only ever rank entries that already matched
    if matched_on:
        score += _TRUST_BOOSTS.get(entry.trust_level, 0.0)
        score += entry.rating.average * _RATING_FACTOR
        if entry.downloads > 0:
            score += math.log10(entry.downloads) * _DOWNLOADS_FACTOR

    return score, matched_on


def _passes_filters(entry: RegistryEntry, options: SearchOptions) -> bool:
    if options.category is not None and entry.category != options.category:
        return False
    if options.trust_level is not None and entry.trust_level != options.trust_level:
        return False
    if options.min_rating is not None and entry.rating.average < options.min_rating:
        return False
    return True


def search(index: LocalIndex, options: SearchOptions) -> List[SearchResult]:
    """Score, rank and page the entries of *index* against *options*."""
    tokens = tokenize(options.query)

    results: List[SearchResult] = []
    for entry in index.skills.values():
        if not _passes_filters(entry, options):
            continue
        score, matched_on = _score_entry(entry, tokens, options)
        if score > 0:
            results.append(
                SearchResult(entry=entry, relevance_score=score, matched_on=matched_on)
            )

    # sorted() is stable, so ties keep index order
    results.sort(key=lambda r: r.relevance_score, reverse=True)

    page = results[options.offset : options.offset + options.limit]
    logger.info(
        "search(%r) matched %d of %d entries, returning %d",
        options.query,
        len(results),
        len(index.skills),
        len(page),
    )
    return page


def search_by_tags(index: LocalIndex, tags: Sequence[str]) -> List[SearchResult]:
    """Search using *tags* both as the query text and as tag filters."""
    return search(index, SearchOptions(query=" ".join(tags), tags=list(tags)))


def search_by_category(
    index: LocalIndex, category: SkillCategory, limit: Optional[int] = None
) -> List[SearchResult]:
    """Every entry in *category*, ranked by the popularity boosts."""
    options = SearchOptions(query="", category=category)
    if limit is not None:
        options.limit = limit
    return search(index, options)
