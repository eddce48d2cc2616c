"""
Due-set selection: which of a deck's cards should be reviewed now, and in
what order.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from .models import Card, ensure_utc

logger = logging.getLogger(__name__)


def select_due(
    cards: Iterable[Card], now: datetime, limit: Optional[int] = None
) -> List[Card]:
    """
    Return the cards due at `now`, most overdue first.

    A card is due when its next_review is on or before `now`. The result is
    sorted ascending by next_review; sorted() is stable, so cards sharing a
    timestamp keep their input order. The function is pure, so calling it
    again with the same cards and the same `now` gives the same list.

    Args:
        cards: All cards of one deck. May be empty.
        now: Reference timestamp. Naive values are treated as UTC.
        limit: Optional cap on the number of cards returned, applied after
            ordering. None means no cap; 0 returns an empty list.

    Returns:
        The ordered due cards. An empty list means nothing to review; it is
        not an error.
    """
    if limit is not None and limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")

    cutoff = ensure_utc(now)
    due = sorted(
        (card for card in cards if card.next_review <= cutoff),
        key=lambda c: c.next_review,
    )
    if limit is not None:
        due = due[:limit]

    logger.debug(f"Selected {len(due)} due cards at {cutoff.isoformat()}")
    return due
