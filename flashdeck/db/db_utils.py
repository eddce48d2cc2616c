"""
Utility functions for data marshalling between Pydantic models and database
rows, plus file backups of the database.
"""

import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from ..exceptions import MarshallingError
from ..models import Card, CardSchedule, StudySession

# Column order shared by the card INSERT statement and card_to_db_params.
CARD_COLUMNS: Tuple[str, ...] = (
    "uuid",
    "deck_name",
    "front",
    "back",
    "ease_factor",
    "interval_days",
    "repetitions",
    "next_review",
    "last_review",
    "difficulty",
    "added_at",
    "modified_at",
)


def card_to_db_params(card: Card) -> Tuple:
    """Serialize a Card into a tuple ordered as CARD_COLUMNS."""
    return (
        card.uuid,
        card.deck_name,
        card.front,
        card.back,
        card.ease_factor,
        card.interval,
        card.repetitions,
        card.next_review,
        card.last_review,
        card.difficulty.value,
        card.added_at,
        card.modified_at,
    )


def card_to_db_params_list(cards: Sequence[Card]) -> List[Tuple]:
    return [card_to_db_params(card) for card in cards]


def schedule_to_db_params(schedule: CardSchedule) -> Tuple:
    """
    Serialize the six scheduling fields, in the order used by the
    schedule UPDATE statement:
    (ease_factor, interval_days, repetitions, next_review, last_review,
    difficulty).
    """
    return (
        schedule.ease_factor,
        schedule.interval,
        schedule.repetitions,
        schedule.next_review,
        schedule.last_review,
        schedule.difficulty.value,
    )


def transform_db_row_for_card(row_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Rename DB-only columns to Card field names."""
    data = row_dict.copy()
    data["interval"] = data.pop("interval_days", 0)
    return data


def db_row_to_card(row_dict: Dict[str, Any]) -> Card:
    """
    Create a Card model from a database row dictionary.

    Raises:
        MarshallingError: If the row does not validate as a Card.
    """
    data = transform_db_row_for_card(row_dict)
    try:
        return Card(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse card from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e


def session_to_db_params_tuple(session: StudySession) -> Tuple:
    """
    Serialize a StudySession for insertion:
    (session_uuid, deck_name, start_ts, end_ts, total_duration_ms,
    cards_reviewed, correct_answers).
    """
    return (
        session.session_uuid,
        session.deck_name,
        session.start_ts,
        session.end_ts,
        session.total_duration_ms,
        session.cards_reviewed,
        session.correct_answers,
    )


def db_row_to_session(row_dict: Dict[str, Any]) -> StudySession:
    """
    Raises:
        MarshallingError: If the row does not validate as a StudySession.
    """
    try:
        return StudySession(**row_dict)
    except ValidationError as e:
        raise MarshallingError(
            f"Data validation failed for study session: {e}",
            original_exception=e,
        ) from e


def find_latest_backup(db_path: Path) -> Optional[Path]:
    """
    Locate the most recent backup of `db_path` in its "backups" sibling
    directory, or None if there is none.
    """
    backup_dir = db_path.parent / "backups"
    if not backup_dir.exists():
        return None

    backup_files = list(backup_dir.glob(f"{db_path.stem}-backup-*{db_path.suffix}"))
    if not backup_files:
        return None

    # Names embed a sortable timestamp.
    return max(backup_files, key=lambda p: p.name)


def backup_database(db_path: Path) -> Path:
    """
    Creates a timestamped backup of the database file.

    Returns:
        The path to the created backup, or `db_path` itself when there is no
        database file to back up yet.
    """
    if not db_path.exists():
        return db_path

    backup_dir = db_path.parent / "backups"
    backup_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    backup_path = backup_dir / f"{db_path.stem}-backup-{timestamp}{db_path.suffix}"

    shutil.copy2(db_path, backup_path)
    return backup_path
