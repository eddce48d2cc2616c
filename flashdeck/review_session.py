"""
This module defines ReviewSession, the state machine that walks a frozen
due-set one card at a time, grades each card with the SM-2 scheduler,
persists the result through a CardStore and keeps running statistics.

    Idle --start(non-empty)--> Reviewing --last answer--> Complete
      ^                                                      |
      +----------------------------reset---------------------+

Within Reviewing the current card is either unflipped (only flip() is
legal) or flipped (answer() is legal).
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional, Tuple

from .constants import PASSING_QUALITY
from .exceptions import (
    AnswerNotRevealedError,
    ReviewInProgressError,
    SessionAlreadyActiveError,
    SessionNotActiveError,
)
from .models import Card, CardSchedule, Quality, ensure_utc
from .scheduler import BaseScheduler, SM2Scheduler, validate_quality
from .selector import select_due
from .store import CardStore

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    Idle = "idle"
    Reviewing = "reviewing"
    Complete = "complete"


@dataclass
class SessionStats:
    """Running counts for one session. Correct means quality >= 3."""

    correct: int = 0
    incorrect: int = 0
    total: int = 0

    @property
    def accuracy(self) -> float:
        """Fraction of correct answers; 0.0 before any answer."""
        if self.total == 0:
            return 0.0
        return self.correct / self.total

    @property
    def accuracy_percentage(self) -> int:
        return round(self.accuracy * 100)

    def record(self, success: bool) -> None:
        if success:
            self.correct += 1
        else:
            self.incorrect += 1
        self.total += 1


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of grading one card."""

    card_before: Card
    card_after: Card
    quality: Quality

    @property
    def schedule(self) -> CardSchedule:
        return self.card_after.schedule


class ReviewSession:
    """
    One bounded pass over a deck's due cards.

    The due queue is fixed when the session starts: a card graded during the
    session is never re-inserted, even if its new schedule makes it due again
    before the session ends.
    """

    def __init__(
        self,
        store: CardStore,
        scheduler: Optional[BaseScheduler] = None,
    ):
        self.store = store
        self.scheduler = scheduler or SM2Scheduler()
        self._answer_lock = threading.Lock()
        # Guards the generation check and the advance against reset().
        self._state_lock = threading.Lock()
        # Bumped on reset so an in-flight answer cannot advance a new session.
        self._generation = 0
        self._clear()

    def _clear(self) -> None:
        self._state = SessionState.Idle
        self._due_queue: Tuple[Card, ...] = ()
        self._cursor = 0
        self._flipped = False
        self._stats = SessionStats()

    # --- Read-only view ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def due_queue(self) -> Tuple[Card, ...]:
        return self._due_queue

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def flipped(self) -> bool:
        return self._flipped

    @property
    def stats(self) -> SessionStats:
        """A copy of the running statistics."""
        return SessionStats(
            correct=self._stats.correct,
            incorrect=self._stats.incorrect,
            total=self._stats.total,
        )

    @property
    def current_card(self) -> Optional[Card]:
        if self._state is not SessionState.Reviewing:
            return None
        return self._due_queue[self._cursor]

    @property
    def remaining(self) -> int:
        return len(self._due_queue) - self._cursor

    @property
    def is_complete(self) -> bool:
        return self._state is SessionState.Complete

    # --- Transitions ---

    def start(self, cards: Iterable[Card], now: datetime) -> bool:
        """
        Select the due cards and, if there are any, enter Reviewing.

        Returns:
            True if a session started, False if nothing was due (the session
            stays Idle; an empty deck is not an error).

        Raises:
            SessionAlreadyActiveError: If the session is not Idle.
        """
        if self._state is not SessionState.Idle:
            raise SessionAlreadyActiveError(
                f"Cannot start a session in state '{self._state.value}'. "
                "Reset it first."
            )

        due = select_due(cards, ensure_utc(now))
        if not due:
            logger.info("No cards due; session stays idle.")
            return False

        self._due_queue = tuple(due)
        self._cursor = 0
        self._flipped = False
        self._stats = SessionStats()
        self._state = SessionState.Reviewing
        logger.info(f"Review session started with {len(due)} due cards.")
        return True

    def flip(self) -> bool:
        """
        Toggle whether the current card's answer is shown. Has no effect on
        scheduling.

        Returns:
            The new flipped flag.

        Raises:
            SessionNotActiveError: If the session is not Reviewing.
        """
        self._require_reviewing("flip")
        self._flipped = not self._flipped
        return self._flipped

    def answer(self, quality: int, now: datetime) -> ReviewOutcome:
        """
        Grade the current card, persist its new schedule and advance.

        Checks run before anything is changed, so a rejected call leaves the
        session exactly as it was. If the store write fails the error is
        re-raised and the cursor, stats and flipped flag stay put, so the
        same grade can be submitted again.

        Raises:
            SessionNotActiveError: If the session is not Reviewing.
            ReviewInProgressError: If another answer() has not returned yet.
            AnswerNotRevealedError: If the card has not been flipped.
            InvalidQualityError: If quality is not an integer in [0, 5].
            PersistenceFailureError: If the store write fails.
        """
        self._require_reviewing("answer")
        if not self._answer_lock.acquire(blocking=False):
            raise ReviewInProgressError(
                "A previous answer is still being saved."
            )
        try:
            return self._answer_locked(quality, now)
        finally:
            self._answer_lock.release()

    def _answer_locked(self, quality: int, now: datetime) -> ReviewOutcome:
        # Re-check under the lock: a concurrent reset may have run.
        self._require_reviewing("answer")
        if not self._flipped:
            raise AnswerNotRevealedError(
                "Reveal the answer (flip) before grading the card."
            )
        grade = validate_quality(quality)

        card = self._due_queue[self._cursor]
        generation = self._generation
        new_schedule = self.scheduler.compute_next_state(
            card.schedule, grade, ensure_utc(now)
        )

        try:
            stored = self.store.save_card_schedule(card.uuid, new_schedule)
        except Exception:
            logger.exception(
                f"Failed to save schedule for card {card.uuid}; "
                "session not advanced."
            )
            raise

        outcome = ReviewOutcome(
            card_before=card, card_after=stored, quality=grade
        )

        with self._state_lock:
            if generation != self._generation:
                # Reset while the write was in flight: the card is saved but
                # the session has moved on.
                logger.info(
                    f"Session was reset during review of card {card.uuid}; "
                    "not advancing."
                )
                return outcome

            self._stats.record(grade >= PASSING_QUALITY)
            self._flipped = False
            self._cursor += 1
            if self._cursor == len(self._due_queue):
                self._state = SessionState.Complete
                logger.info(
                    f"Review session complete: {self._stats.correct}/"
                    f"{self._stats.total} correct."
                )
        return outcome

    def reset(self) -> None:
        """
        Return to Idle and drop all session-local state. Persisted card
        schedules are not affected. Waits for an answer that is already
        advancing the session, but not for one still writing to the store.
        """
        with self._state_lock:
            self._generation += 1
            self._clear()
        logger.debug("Review session reset.")

    # --- Helpers ---

    def _require_reviewing(self, action: str) -> None:
        if self._state is not SessionState.Reviewing:
            raise SessionNotActiveError(
                f"Cannot {action} while the session is "
                f"'{self._state.value}'."
            )
