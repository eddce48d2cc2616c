"""
Pydantic models for flashcards, their SM-2 schedule, and study sessions.
"""

from __future__ import annotations

import uuid
from enum import Enum, IntEnum
from uuid import UUID
from datetime import datetime, timezone
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .constants import DEFAULT_EASE_FACTOR, MINIMUM_EASE_FACTOR


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(ts: datetime) -> datetime:
    """Ensures the given datetime is UTC. Assumes UTC if naive."""
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        return ts.replace(tzinfo=timezone.utc)
    if ts.tzinfo != timezone.utc:
        return ts.astimezone(timezone.utc)
    return ts


class Quality(IntEnum):
    """
    SM-2 recall grade. 0 is a complete failure to recall, 5 is perfect,
    effortless recall. Grades below 3 count as a failed review.

    The review UI only offers Again (1), Good (3) and Easy (5).
    """

    Blackout = 0
    Again = 1
    Hard = 2
    Good = 3
    Confident = 4
    Easy = 5


class Difficulty(str, Enum):
    """Informational label derived from the most recent quality grade."""

    Easy = "easy"
    Medium = "medium"
    Hard = "hard"


class CardSchedule(BaseModel):
    """
    The scheduling fields of a card: everything the SM-2 rule reads or
    writes, and nothing else.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ease_factor: float = Field(
        default=DEFAULT_EASE_FACTOR,
        ge=MINIMUM_EASE_FACTOR,
        description="Multiplier applied to the interval after a success.",
    )
    interval: int = Field(
        default=0,
        ge=0,
        description="Days until the next review. 0 for a new card.",
    )
    repetitions: int = Field(
        default=0,
        ge=0,
        description="Consecutive successful reviews (quality >= 3).",
    )
    next_review: datetime = Field(
        default_factory=utcnow,
        description="UTC timestamp from which the card is due.",
    )
    last_review: Optional[datetime] = Field(
        default=None,
        description="UTC timestamp of the last review (None if never).",
    )
    difficulty: Difficulty = Field(
        default=Difficulty.Medium,
        description="Label derived from the last quality grade.",
    )

    @field_validator("next_review", "last_review")
    @classmethod
    def normalize_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None


class Card(BaseModel):
    """
    A flashcard: its content plus its independent SM-2 review schedule.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    uuid: UUID = Field(
        default_factory=uuid.uuid4,
        description="Unique UUIDv4 for the card. Auto-generated.",
    )
    deck_name: str = Field(
        ...,
        min_length=1,
        description="Deck (subject) the card belongs to.",
    )
    front: str = Field(..., min_length=1, description="Question text.")
    back: str = Field(..., min_length=1, description="Answer text.")

    ease_factor: float = Field(
        default=DEFAULT_EASE_FACTOR, ge=MINIMUM_EASE_FACTOR
    )
    interval: int = Field(default=0, ge=0)
    repetitions: int = Field(default=0, ge=0)
    next_review: datetime = Field(default_factory=utcnow)
    last_review: Optional[datetime] = None
    difficulty: Difficulty = Difficulty.Medium

    added_at: datetime = Field(
        default_factory=utcnow,
        description="UTC timestamp when card was first added (persists).",
    )
    modified_at: datetime = Field(
        default_factory=utcnow,
        description="UTC timestamp of last modification.",
    )

    @field_validator("front", "back")
    @classmethod
    def reject_blank_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Card text must not be blank.")
        return v

    @field_validator("next_review", "last_review", "added_at", "modified_at")
    @classmethod
    def normalize_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @property
    def schedule(self) -> CardSchedule:
        """The card's current scheduling state."""
        return CardSchedule(
            ease_factor=self.ease_factor,
            interval=self.interval,
            repetitions=self.repetitions,
            next_review=self.next_review,
            last_review=self.last_review,
            difficulty=self.difficulty,
        )

    def with_schedule(self, schedule: CardSchedule) -> Card:
        """Return a copy of this card carrying the given schedule."""
        return self.model_copy(update=schedule.model_dump())

    def is_due(self, now: datetime) -> bool:
        return self.next_review <= ensure_utc(now)


class StudySession(BaseModel):
    """
    Summary of one review session, written once when the session ends.
    Feeds the study analytics; never used to resume a session.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    session_id: Optional[int] = Field(
        default=None,
        description="Auto-incrementing PK from study_sessions (None if new).",
    )
    session_uuid: UUID = Field(default_factory=uuid.uuid4)
    deck_name: str = Field(..., min_length=1)
    start_ts: datetime = Field(default_factory=utcnow)
    end_ts: datetime = Field(default_factory=utcnow)
    total_duration_ms: int = Field(default=0, ge=0)
    cards_reviewed: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)

    @field_validator("start_ts", "end_ts")
    @classmethod
    def normalize_to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def check_counts(self) -> StudySession:
        if self.correct_answers > self.cards_reviewed:
            raise ValueError(
                "correct_answers cannot exceed cards_reviewed "
                f"({self.correct_answers} > {self.cards_reviewed})."
            )
        return self

    @property
    def incorrect_answers(self) -> int:
        return self.cards_reviewed - self.correct_answers

    @property
    def duration_minutes(self) -> int:
        """Whole minutes spent in the session."""
        return self.total_duration_ms // 60000
