"""
Star ratings kept on registry entries.

Ratings update the ``LocalIndex`` value passed in; persisting it is the
caller's job.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from .errors import SkillValidationError
from .models import LocalIndex, RatingInfo, RatingSubmission
from .registry import get_skill_entry

logger = logging.getLogger(__name__)


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def get_ratings(index: LocalIndex, name: str) -> RatingInfo:
    return get_skill_entry(index, name).rating


def submit_rating(
    index: LocalIndex,
    name: str,
    rating: int,
    user_id: str,
    comment: Optional[str] = None,
) -> RatingInfo:
    """Record one 1-5 star rating for *name* and return the new aggregate."""
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise SkillValidationError(
            "Invalid rating", [f"rating: must be an integer from 1 to 5, got {rating!r}"]
        )

    entry = get_skill_entry(index, name)
    submission = RatingSubmission(
        skill_name=name,
        rating=rating,
        user_id=user_id,
        comment=comment,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )

    current = entry.rating
    count = current.count + 1
    average = (current.average * current.count + rating) / count
    distribution = list(current.distribution)
    distribution[rating - 1] += 1

    entry.rating = RatingInfo(
        average=_round_half_up(average, 1),
        count=count,
        distribution=distribution,
    )
    logger.info(
        "Rating %d for %s by %s: average now %.1f over %d",
        submission.rating,
        name,
        submission.user_id,
        entry.rating.average,
        count,
    )
    return entry.rating


def format_rating(rating: RatingInfo) -> str:
    """Render e.g. ``★★★★☆ 4.2 (17 ratings)``."""
    filled = int(_round_half_up(rating.average))
    stars = "★" * filled + "☆" * (5 - filled)
    return f"{stars} {rating.average:.1f} ({rating.count} ratings)"
