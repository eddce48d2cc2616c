"""
Study analytics over stored StudySession summaries: total study time, cards
reviewed, accuracy, a seven-day activity breakdown and time per deck.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Tuple

from .models import StudySession, ensure_utc


@dataclass
class StudySummary:
    total_minutes: int
    total_cards: int
    total_correct: int
    accuracy_percentage: int
    # (weekday abbreviation, minutes), oldest day first, ending today.
    weekly_minutes: List[Tuple[str, int]] = field(default_factory=list)
    # (deck name, minutes), most studied first.
    deck_minutes: List[Tuple[str, int]] = field(default_factory=list)


def format_minutes(minutes: int) -> str:
    """45 -> '45m', 120 -> '2h', 135 -> '2h 15m'."""
    hours, mins = divmod(minutes, 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"


def _weekly_minutes(
    sessions: List[StudySession], now: datetime
) -> List[Tuple[str, int]]:
    today = now.date()
    days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
    minutes: Dict = {day: 0 for day in days}
    for session in sessions:
        day = session.start_ts.date()
        if day in minutes:
            minutes[day] += session.duration_minutes
    return [(day.strftime("%a"), minutes[day]) for day in days]


def _deck_minutes(sessions: List[StudySession]) -> List[Tuple[str, int]]:
    per_deck: Dict[str, int] = defaultdict(int)
    for session in sessions:
        per_deck[session.deck_name] += session.duration_minutes
    return sorted(per_deck.items(), key=lambda item: (-item[1], item[0]))


def summarize_sessions(
    sessions: Iterable[StudySession], now: datetime
) -> StudySummary:
    """
    Aggregate session summaries. Accuracy is a rounded percentage of correct
    answers over cards reviewed, 0 when nothing was reviewed. Day buckets use
    UTC dates.
    """
    sessions = list(sessions)
    now = ensure_utc(now)

    total_cards = sum(s.cards_reviewed for s in sessions)
    total_correct = sum(s.correct_answers for s in sessions)
    accuracy = round(total_correct / total_cards * 100) if total_cards else 0

    return StudySummary(
        total_minutes=sum(s.duration_minutes for s in sessions),
        total_cards=total_cards,
        total_correct=total_correct,
        accuracy_percentage=accuracy,
        weekly_minutes=_weekly_minutes(sessions, now),
        deck_minutes=_deck_minutes(sessions),
    )
