"""
This module defines the ReviewSessionManager class, which runs a review
session for one deck: it loads the deck from the card store, drives a
ReviewSession with the real clock, and records a StudySession summary when
the session ends.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Optional, Protocol, runtime_checkable
from uuid import UUID, uuid4

from .exceptions import SessionOperationError
from .models import Card, StudySession, utcnow
from .review_session import ReviewOutcome, ReviewSession, SessionState
from .scheduler import BaseScheduler
from .selector import select_due
from .store import CardStore

# Initialize logger
logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@runtime_checkable
class StudySessionLog(Protocol):
    def add_study_session(self, session: StudySession) -> StudySession: ...


class ReviewSessionManager:
    """
    Manages a review session for one deck.

    The manager is the only place that reads the clock; the scheduler,
    selector and ReviewSession all receive `now` explicitly.
    """

    def __init__(
        self,
        store: CardStore,
        deck_name: str,
        scheduler: Optional[BaseScheduler] = None,
        clock: Clock = utcnow,
        limit: Optional[int] = None,
    ):
        """
        Parameters:
            store: Card store used to load the deck and persist schedules.
                If it also offers add_study_session, finished sessions are
                logged there.
            deck_name: Name of the deck to review.
            scheduler: Scheduling engine; SM-2 defaults when omitted.
            clock: Returns the current UTC time.
            limit: Maximum number of due cards in one session.
        """
        self.store = store
        self.deck_name = deck_name
        self.clock = clock
        self.limit = limit
        self.session = ReviewSession(store, scheduler)
        self.session_uuid: UUID = uuid4()
        self.session_start_time: Optional[datetime] = None

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def review_queue(self):
        return self.session.due_queue

    def initialize_session(self) -> int:
        """
        Load the deck and start a session over its due cards.

        Returns:
            Number of cards in the session; 0 if nothing is due.

        Raises:
            StoreUnavailableError: If the deck cannot be loaded.
        """
        logger.info(
            f"Initializing review session {self.session_uuid} "
            f"for deck '{self.deck_name}'"
        )
        now = self.clock()
        cards = self.store.load_cards_for_deck(self.deck_name)
        if self.limit is not None:
            cards = select_due(cards, now, limit=self.limit)

        if not self.session.start(cards, now):
            logger.info(f"No cards due in deck '{self.deck_name}'.")
            return 0

        self.session_start_time = now
        logger.info(
            f"Initialized session with {len(self.session.due_queue)} cards."
        )
        return len(self.session.due_queue)

    def get_next_card(self) -> Optional[Card]:
        """The card currently under review, or None when there is none."""
        return self.session.current_card

    def reveal_answer(self) -> bool:
        return self.session.flip()

    def submit_review(self, quality: int) -> ReviewOutcome:
        """
        Grade the current card at the current time.

        Raises:
            The errors of ReviewSession.answer, unchanged.
        """
        card = self.session.current_card
        outcome = self.session.answer(quality, self.clock())
        logger.debug(
            f"Card {card.uuid if card else None} graded {int(outcome.quality)}; "
            f"next review {outcome.card_after.next_review.isoformat()}"
        )
        return outcome

    def get_session_stats(self) -> Dict[str, float]:
        stats = self.session.stats
        return {
            "total_cards": len(self.session.due_queue),
            "reviewed_cards": stats.total,
            "correct": stats.correct,
            "incorrect": stats.incorrect,
            "accuracy": stats.accuracy,
        }

    def end_session(self) -> Optional[StudySession]:
        """
        Close the session: log a StudySession summary if any card was
        graded, then reset to Idle.

        A failure to write the summary is logged and swallowed: the card
        schedules are already saved and the summary is only analytics.

        Returns:
            The stored summary, or None if nothing was graded or logging
            failed.
        """
        stats = self.session.stats
        summary: Optional[StudySession] = None
        if stats.total > 0 and self.session_start_time is not None:
            end = self.clock()
            summary = StudySession(
                session_uuid=self.session_uuid,
                deck_name=self.deck_name,
                start_ts=self.session_start_time,
                end_ts=end,
                total_duration_ms=max(
                    0,
                    int((end - self.session_start_time).total_seconds() * 1000),
                ),
                cards_reviewed=stats.total,
                correct_answers=stats.correct,
            )
            summary = self._log_study_session(summary)

        self.session.reset()
        self.session_uuid = uuid4()
        self.session_start_time = None
        return summary

    def _log_study_session(
        self, summary: StudySession
    ) -> Optional[StudySession]:
        if not isinstance(self.store, StudySessionLog):
            return summary
        try:
            return self.store.add_study_session(summary)
        except SessionOperationError as e:
            logger.warning(f"Failed to record study session: {e}")
            return None
