"""
Tests for the ReviewSession state machine in flashdeck.review_session.
"""

import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from flashdeck.db.database import FlashcardDatabase
from flashdeck.exceptions import (
    AnswerNotRevealedError,
    InvalidQualityError,
    PersistenceFailureError,
    ReviewInProgressError,
    SessionAlreadyActiveError,
    SessionNotActiveError,
)
from flashdeck.models import Card, Quality
from flashdeck.review_session import ReviewSession, SessionState, SessionStats


def _echo_save(card_uuid, schedule):
    return Card(
        uuid=card_uuid, deck_name="Spanish", front="f", back="b",
        **schedule.model_dump(),
    )


@pytest.fixture
def mock_store() -> MagicMock:
    store = MagicMock(spec=FlashcardDatabase)
    store.save_card_schedule.side_effect = _echo_save
    return store


@pytest.fixture
def session(mock_store) -> ReviewSession:
    return ReviewSession(mock_store)


@pytest.fixture
def due_cards(sample_card1, sample_card2, sample_card3_not_due):
    return [sample_card1, sample_card2, sample_card3_not_due]


def _grade(session: ReviewSession, quality, now):
    session.flip()
    return session.answer(quality, now)


class TestStart:
    def test_starts_with_due_cards_in_order(self, session, due_cards, now):
        assert session.start(due_cards, now) is True
        assert session.state is SessionState.Reviewing
        # sample_card2 is the more overdue of the two due cards.
        assert [c.front for c in session.due_queue] == ["gato", "hola"]
        assert session.cursor == 0
        assert session.flipped is False
        assert session.current_card.front == "gato"

    def test_empty_deck_stays_idle(self, session, now):
        assert session.start([], now) is False
        assert session.state is SessionState.Idle
        assert session.current_card is None

    def test_nothing_due_stays_idle(self, session, sample_card3_not_due, now):
        assert session.start([sample_card3_not_due], now) is False
        assert session.state is SessionState.Idle

    def test_start_while_reviewing_rejected(self, session, due_cards, now):
        session.start(due_cards, now)
        with pytest.raises(SessionAlreadyActiveError):
            session.start(due_cards, now)

    def test_start_after_complete_requires_reset(
        self, session, sample_card1, now
    ):
        session.start([sample_card1], now)
        _grade(session, 4, now)
        assert session.is_complete
        with pytest.raises(SessionAlreadyActiveError):
            session.start([sample_card1], now)

        session.reset()
        assert session.start([sample_card1], now) is True


class TestFlip:
    def test_flip_toggles(self, session, due_cards, now):
        session.start(due_cards, now)
        assert session.flip() is True
        assert session.flip() is False
        assert session.flipped is False

    def test_flip_when_idle_rejected(self, session):
        with pytest.raises(SessionNotActiveError):
            session.flip()

    def test_flip_when_complete_rejected(self, session, sample_card1, now):
        session.start([sample_card1], now)
        _grade(session, 5, now)
        with pytest.raises(SessionNotActiveError):
            session.flip()


class TestAnswer:
    def test_answer_persists_and_advances(
        self, session, mock_store, due_cards, now
    ):
        session.start(due_cards, now)
        first = session.current_card

        outcome = _grade(session, Quality.Good, now)

        mock_store.save_card_schedule.assert_called_once()
        saved_uuid, saved_schedule = mock_store.save_card_schedule.call_args[0]
        assert saved_uuid == first.uuid
        # sample_card2 had repetitions=2, interval=6, ease 2.5.
        assert saved_schedule.interval == 15
        assert saved_schedule.repetitions == 3
        assert saved_schedule.last_review == now

        assert outcome.card_before == first
        assert outcome.card_after.interval == 15
        assert outcome.quality is Quality.Good
        assert outcome.schedule == saved_schedule

        assert session.cursor == 1
        assert session.flipped is False
        assert session.stats == SessionStats(correct=1, incorrect=0, total=1)

    def test_session_completes_after_n_answers(self, session, due_cards, now):
        session.start(due_cards, now)
        queue_len = len(session.due_queue)

        for quality in (1, 5):
            assert session.state is SessionState.Reviewing
            _grade(session, quality, now)

        assert session.state is SessionState.Complete
        assert session.cursor == queue_len
        assert session.remaining == 0
        assert session.current_card is None
        stats = session.stats
        assert stats.total == queue_len
        assert stats.correct == 1
        assert stats.incorrect == 1
        assert stats.accuracy == pytest.approx(0.5)

    def test_answer_before_flip_rejected(self, session, mock_store, due_cards, now):
        session.start(due_cards, now)
        with pytest.raises(AnswerNotRevealedError):
            session.answer(3, now)
        mock_store.save_card_schedule.assert_not_called()
        assert session.cursor == 0

    def test_answer_when_idle_rejected(self, session, now):
        with pytest.raises(SessionNotActiveError):
            session.answer(3, now)

    @pytest.mark.parametrize("bad", [6, -1, 2.5, True])
    def test_invalid_quality_leaves_state_unchanged(
        self, session, mock_store, due_cards, now, bad
    ):
        session.start(due_cards, now)
        session.flip()
        with pytest.raises(InvalidQualityError):
            session.answer(bad, now)
        mock_store.save_card_schedule.assert_not_called()
        assert session.cursor == 0
        assert session.flipped is True
        assert session.stats.total == 0

    def test_persistence_failure_leaves_state_unchanged(
        self, session, mock_store, due_cards, now
    ):
        session.start(due_cards, now)
        session.flip()
        mock_store.save_card_schedule.side_effect = PersistenceFailureError(
            "disk full"
        )

        with pytest.raises(PersistenceFailureError):
            session.answer(4, now)

        assert session.state is SessionState.Reviewing
        assert session.cursor == 0
        assert session.flipped is True
        assert session.stats.total == 0

        # The same grade can be resubmitted once the store recovers.
        mock_store.save_card_schedule.side_effect = _echo_save
        session.answer(4, now)
        assert session.cursor == 1

    def test_reentrant_answer_rejected(
        self, session, mock_store, due_cards, now
    ):
        session.start(due_cards, now)
        session.flip()
        nested_errors = []

        def save_and_reenter(card_uuid, schedule):
            try:
                session.answer(5, now)
            except ReviewInProgressError as e:
                nested_errors.append(e)
            return _echo_save(card_uuid, schedule)

        mock_store.save_card_schedule.side_effect = save_and_reenter
        session.answer(3, now)

        assert len(nested_errors) == 1
        assert mock_store.save_card_schedule.call_count == 1
        assert session.cursor == 1
        assert session.stats.total == 1

    def test_reset_during_write_does_not_advance(
        self, session, mock_store, due_cards, now
    ):
        session.start(due_cards, now)
        session.flip()

        def save_then_reset(card_uuid, schedule):
            session.reset()
            return _echo_save(card_uuid, schedule)

        mock_store.save_card_schedule.side_effect = save_then_reset
        outcome = session.answer(5, now)

        # The write happened, but the reset session was not touched.
        assert outcome.card_after.repetitions == 3
        assert session.state is SessionState.Idle
        assert session.cursor == 0
        assert session.stats.total == 0
        assert session.due_queue == ()

    def test_reset_waits_for_answer_to_finish_advancing(
        self, session, due_cards, now
    ):
        session.start(due_cards, now)
        session.flip()
        resetter = threading.Thread(target=session.reset)

        class ResetWhileRecording(SessionStats):
            def record(self, success):
                # reset() from another thread lands mid-advance.
                resetter.start()
                resetter.join(timeout=0.2)
                assert resetter.is_alive()
                super().record(success)

        session._stats = ResetWhileRecording()
        session.answer(4, now)
        resetter.join(timeout=5)

        assert not resetter.is_alive()
        assert session.state is SessionState.Idle
        assert session.cursor == 0
        assert session.flipped is False
        assert session.stats.total == 0
        assert session.due_queue == ()

    def test_queue_is_frozen_for_the_session(
        self, session, mock_store, sample_card1, now
    ):
        # A failing grade makes the card due again in a day, but even a card
        # that becomes due immediately is never re-queued.
        session.start([sample_card1], now)
        _grade(session, 0, now + timedelta(days=5))
        assert session.is_complete
        assert len(session.due_queue) == 1


class TestReset:
    def test_reset_clears_everything(self, session, due_cards, now):
        session.start(due_cards, now)
        _grade(session, 4, now)
        session.flip()

        session.reset()

        assert session.state is SessionState.Idle
        assert session.due_queue == ()
        assert session.cursor == 0
        assert session.flipped is False
        assert session.stats == SessionStats()

    def test_reset_does_not_touch_store(self, session, mock_store, due_cards, now):
        session.start(due_cards, now)
        session.reset()
        mock_store.save_card_schedule.assert_not_called()
        mock_store.delete_card.assert_not_called()


class TestSessionStats:
    def test_accuracy_without_answers(self):
        assert SessionStats().accuracy == 0.0
        assert SessionStats().accuracy_percentage == 0

    def test_record(self):
        stats = SessionStats()
        stats.record(True)
        stats.record(True)
        stats.record(False)
        assert (stats.correct, stats.incorrect, stats.total) == (2, 1, 3)
        assert stats.accuracy_percentage == 67

    def test_stats_property_returns_copy(self, session, due_cards, now):
        session.start(due_cards, now)
        session.stats.record(True)
        assert session.stats.total == 0
