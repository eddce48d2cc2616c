"""Flashdeck - SM-2 spaced repetition flashcard engine."""

from .models import Card, CardSchedule, Difficulty, Quality, StudySession
from .scheduler import SM2Scheduler, SM2SchedulerConfig, apply_review
from .selector import select_due
from .review_session import ReviewSession, SessionState, SessionStats
from .store import CardStore
from .db import FlashcardDatabase

__all__ = [
    "Card",
    "CardSchedule",
    "Difficulty",
    "Quality",
    "StudySession",
    "SM2Scheduler",
    "SM2SchedulerConfig",
    "apply_review",
    "select_due",
    "ReviewSession",
    "SessionState",
    "SessionStats",
    "CardStore",
    "FlashcardDatabase",
]
