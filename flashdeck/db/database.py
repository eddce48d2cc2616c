"""
DuckDB database interactions for flashdeck.
Implements FlashcardDatabase, the card store used by the review engine.
"""

import duckdb
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from ..exceptions import (
    CardOperationError,
    DatabaseConnectionError,
    MarshallingError,
    PersistenceFailureError,
    SessionOperationError,
    StoreUnavailableError,
)

from datetime import datetime
import logging
from . import db_utils

from ..constants import MATURE_INTERVAL_DAYS
from ..models import Card, CardSchedule, StudySession, ensure_utc, utcnow
from ..scheduler import SM2Scheduler
from .connection import ConnectionHandler
from .schema_manager import SchemaManager

# --- Logging Setup ---
logger = logging.getLogger(__name__)

# --- Helper Functions ---


def _rows_to_dicts(cursor: duckdb.DuckDBPyConnection) -> List[Dict[str, Any]]:
    """Convert cursor results to list of dictionaries using column names."""
    rows = cursor.fetchall()
    if not rows:
        return []
    description = cursor.description
    if description is None:
        return []
    columns = [desc[0] for desc in description]
    return [dict(zip(columns, row, strict=True)) for row in rows]


class FlashcardDatabase:
    """
    Acts as a Facade for the database subsystem, providing a simple,
    high-level interface for card and study-session storage.

    It coordinates the ConnectionHandler, SchemaManager, and data marshalling
    utilities, and satisfies the CardStore protocol. Intended for use as a
    context manager.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Args:
            db_path: Path to the database file, or ':memory:'.
            read_only: If True, open the database in read-only mode.
        """
        self._handler = ConnectionHandler(db_path=db_path, read_only=read_only)
        self._schema_manager = SchemaManager(self._handler)
        self._new_card_scheduler = SM2Scheduler()
        logger.info(
            f"FlashcardDatabase initialized for DB at: {self._handler.db_path_resolved}"  # noqa: E501
        )

    @property
    def db_path_resolved(self) -> Path:
        return self._handler.db_path_resolved

    @property
    def read_only(self) -> bool:
        return self._handler.read_only

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self._handler.get_connection()

    def close_connection(self) -> None:
        self._handler.close_connection()

    def __enter__(self) -> "FlashcardDatabase":
        """
        Open the connection and create the schema if this is a new,
        writable database.
        """
        self.get_connection()
        if self._handler.is_new_db and not self._handler.read_only:
            self.initialize_schema()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Ensures the connection is closed on exiting the context."""
        self.close_connection()

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        self._schema_manager.initialize_schema(
            force_recreate_tables=force_recreate_tables
        )

    # --- Card Operations ---
    # fmt: off
    _UPSERT_CARDS_SQL = """
        INSERT INTO cards (uuid, deck_name, front, back, ease_factor, interval_days,
                           repetitions, next_review, last_review, difficulty,
                           added_at, modified_at)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
        ON CONFLICT (uuid) DO UPDATE SET
            -- Content only: re-adding a card must not reset its schedule.
            deck_name = EXCLUDED.deck_name,
            front = EXCLUDED.front,
            back = EXCLUDED.back,
            modified_at = EXCLUDED.modified_at;
        """

    _SAVE_SCHEDULE_SQL = """
        UPDATE cards SET
            ease_factor = $1,
            interval_days = $2,
            repetitions = $3,
            next_review = $4,
            last_review = $5,
            difficulty = $6,
            modified_at = $7
        WHERE uuid = $8
        RETURNING *;
        """
    # fmt: on

    def create_card(
        self,
        front: str,
        back: str,
        deck_name: str,
        now: Optional[datetime] = None,
    ) -> Card:
        """
        Create and store a new card, due immediately.

        Raises:
            pydantic.ValidationError: If front, back or deck_name is blank.
            CardOperationError: If the insert fails.
        """
        ts = ensure_utc(now) if now is not None else utcnow()
        schedule = self._new_card_scheduler.initial_schedule(ts)
        card = Card(
            deck_name=deck_name,
            front=front,
            back=back,
            added_at=ts,
            modified_at=ts,
            **schedule.model_dump(),
        )
        self.upsert_cards_batch([card])
        logger.info(f"Created card {card.uuid} in deck '{deck_name}'.")
        return card

    def upsert_cards_batch(self, cards: Sequence[Card]) -> int:
        """
        Insert cards, or update the content of cards that already exist,
        in a single transaction. Existing schedules are preserved.

        Returns:
            Number of cards processed; 0 for an empty sequence.

        Raises:
            CardOperationError: If the database operation fails.
        """
        if not cards:
            return 0

        params = db_utils.card_to_db_params_list(cards)
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                cursor.executemany(self._UPSERT_CARDS_SQL, params)
                cursor.commit()
        except duckdb.Error as e:
            raise self._handle_upsert_error(conn, e) from e
        logger.info(f"Upserted {len(params)} cards.")
        return len(params)

    def _handle_upsert_error(
        self, conn: duckdb.DuckDBPyConnection, e: duckdb.Error
    ) -> CardOperationError:
        logger.error(f"Error during batch card upsert: {e}")
        try:
            conn.rollback()
        except duckdb.Error as rb_err:
            # Keep the original error; the rollback failure is secondary.
            logger.error(
                f"Failed to rollback transaction during upsert error: {rb_err}"  # noqa: E501
            )
        return CardOperationError(
            f"Batch card upsert failed: {e}", original_exception=e
        )

    def _fetch_cards(
        self, sql: str, params: Sequence[Any], error_message: str
    ) -> List[Card]:
        conn = self.get_connection()
        try:
            rows = _rows_to_dicts(conn.execute(sql, list(params)))
        except duckdb.Error as e:
            logger.error(f"{error_message}: {e}")
            raise CardOperationError(
                f"{error_message}: {e}", original_exception=e
            ) from e
        try:
            return [db_utils.db_row_to_card(row) for row in rows]
        except MarshallingError as e:
            raise CardOperationError(
                "Failed to parse cards from database.", original_exception=e
            ) from e

    def get_card_by_uuid(self, card_uuid: uuid.UUID) -> Optional[Card]:
        """
        Returns:
            The card, or None if no card has this UUID.

        Raises:
            CardOperationError: On database or parsing errors.
        """
        cards = self._fetch_cards(
            "SELECT * FROM cards WHERE uuid = $1;",
            (card_uuid,),
            f"Failed to fetch card {card_uuid}",
        )
        return cards[0] if cards else None

    def load_cards_for_deck(self, deck_name: str) -> List[Card]:
        """
        Every card of a deck, oldest first. An unknown deck gives [].

        Raises:
            StoreUnavailableError: If the cards cannot be read.
        """
        try:
            return self._fetch_cards(
                "SELECT * FROM cards WHERE deck_name = $1 ORDER BY added_at, uuid;",  # noqa: E501
                (deck_name,),
                f"Failed to load deck '{deck_name}'",
            )
        except (CardOperationError, DatabaseConnectionError) as e:
            raise StoreUnavailableError(
                f"Card store unavailable while loading deck '{deck_name}': {e}",  # noqa: E501
                original_exception=e,
            ) from e

    def get_all_cards(
        self, deck_name_filter: Optional[str] = None
    ) -> List[Card]:
        """
        All cards ordered by deck then front, optionally restricted by a SQL
        LIKE pattern on deck_name (e.g. '%spanish%').
        """
        sql = "SELECT * FROM cards"
        params: List[Any] = []
        if deck_name_filter:
            sql += " WHERE deck_name LIKE $1"
            params.append(deck_name_filter)
        sql += " ORDER BY deck_name, front;"
        return self._fetch_cards(sql, params, "Failed to get all cards")

    def get_deck_names(self) -> List[str]:
        conn = self.get_connection()
        try:
            rows = conn.execute(
                "SELECT DISTINCT deck_name FROM cards ORDER BY deck_name;"
            ).fetchall()
        except duckdb.Error as e:
            logger.error(f"Could not fetch deck names: {e}")
            raise CardOperationError(
                "Could not fetch deck names.", original_exception=e
            ) from e
        return [row[0] for row in rows]

    def save_card_schedule(
        self,
        card_uuid: uuid.UUID,
        schedule: CardSchedule,
        modified_at: Optional[datetime] = None,
    ) -> Card:
        """
        Write the six scheduling fields of one card (and its modified_at).
        front and back are never written.

        Returns:
            The card as stored after the update.

        Raises:
            PersistenceFailureError: If the card does not exist or the
                update fails.
        """
        ts = ensure_utc(modified_at) if modified_at is not None else utcnow()
        params = (*db_utils.schedule_to_db_params(schedule), ts, card_uuid)
        try:
            conn = self.get_connection()
            rows = _rows_to_dicts(conn.execute(self._SAVE_SCHEDULE_SQL, params))
        except DatabaseConnectionError as e:
            logger.error(f"No connection to save schedule for card {card_uuid}: {e}")
            raise PersistenceFailureError(
                f"Failed to save schedule for card {card_uuid}: {e}",
                original_exception=e,
            ) from e
        except duckdb.Error as e:
            logger.error(f"Failed to save schedule for card {card_uuid}: {e}")
            raise PersistenceFailureError(
                f"Failed to save schedule for card {card_uuid}: {e}",
                original_exception=e,
            ) from e

        if not rows:
            raise PersistenceFailureError(
                f"Card {card_uuid} not found; schedule not saved."
            )
        try:
            card = db_utils.db_row_to_card(rows[0])
        except MarshallingError as e:
            raise PersistenceFailureError(
                f"Saved card {card_uuid} could not be read back.",
                original_exception=e,
            ) from e
        logger.debug(
            f"Saved schedule for card {card_uuid}: "
            f"interval={card.interval}, next_review={card.next_review}"
        )
        return card

    def delete_card(self, card_uuid: uuid.UUID) -> None:
        """
        Raises:
            CardOperationError: If the card does not exist or the delete fails.
        """
        conn = self.get_connection()
        try:
            rows = conn.execute(
                "DELETE FROM cards WHERE uuid = $1 RETURNING uuid;",
                (card_uuid,),
            ).fetchall()
        except duckdb.Error as e:
            logger.error(f"Failed to delete card {card_uuid}: {e}")
            raise CardOperationError(
                f"Failed to delete card {card_uuid}: {e}",
                original_exception=e,
            ) from e
        if not rows:
            raise CardOperationError(f"Card {card_uuid} not found.")
        logger.info(f"Deleted card {card_uuid}.")

    def get_due_card_count(self, deck_name: str, now: datetime) -> int:
        """Number of cards in the deck with next_review <= now."""
        conn = self.get_connection()
        sql = """
            SELECT COUNT(*)
            FROM cards
            WHERE deck_name = $1 AND next_review <= $2;
        """
        try:
            result = conn.execute(sql, (deck_name, ensure_utc(now))).fetchone()
        except duckdb.Error as e:
            logger.error(f"Error counting due cards for deck '{deck_name}': {e}")
            raise CardOperationError(
                f"Failed to count due cards: {e}", original_exception=e
            ) from e
        return result[0] if result else 0

    def get_deck_stats(self, now: datetime) -> List[Dict[str, Any]]:
        """
        Per-deck counts: card_count, due_count (next_review <= now) and
        mastered_count (interval of at least MATURE_INTERVAL_DAYS days).
        """
        conn = self.get_connection()
        sql = """
            SELECT
                deck_name,
                COUNT(*) AS card_count,
                COUNT(*) FILTER (WHERE next_review <= $1) AS due_count,
                COUNT(*) FILTER (WHERE interval_days >= $2) AS mastered_count
            FROM cards
            GROUP BY deck_name
            ORDER BY deck_name;
        """
        try:
            cursor = conn.execute(sql, (ensure_utc(now), MATURE_INTERVAL_DAYS))
            return _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error computing deck stats: {e}")
            raise CardOperationError(
                f"Failed to compute deck stats: {e}", original_exception=e
            ) from e

    def get_database_stats(self, now: datetime) -> Dict[str, Any]:
        """
        Returns:
            dict with total_cards, total_due, total_mastered,
            total_study_sessions, decks (see get_deck_stats) and
            difficulties (label -> count).
        """
        decks = self.get_deck_stats(now)
        conn = self.get_connection()
        try:
            difficulty_rows = conn.execute(
                "SELECT difficulty, COUNT(*) FROM cards GROUP BY difficulty;"
            ).fetchall()
            session_row = conn.execute(
                "SELECT COUNT(*) FROM study_sessions;"
            ).fetchone()
        except duckdb.Error as e:
            logger.error(f"Error computing database stats: {e}")
            raise CardOperationError(
                f"Failed to compute database stats: {e}", original_exception=e
            ) from e

        return {
            "total_cards": sum(d["card_count"] for d in decks),
            "total_due": sum(d["due_count"] for d in decks),
            "total_mastered": sum(d["mastered_count"] for d in decks),
            "total_study_sessions": session_row[0] if session_row else 0,
            "decks": decks,
            "difficulties": {label: count for label, count in difficulty_rows},
        }

    # --- Study Session Operations ---

    def add_study_session(self, session: StudySession) -> StudySession:
        """
        Store a finished session summary.

        Returns:
            The session with its database session_id filled in.

        Raises:
            SessionOperationError: If the insert fails.
        """
        sql = """
            INSERT INTO study_sessions (session_uuid, deck_name, start_ts, end_ts,
                                        total_duration_ms, cards_reviewed,
                                        correct_answers)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING session_id;
        """
        conn = self.get_connection()
        try:
            row = conn.execute(
                sql, db_utils.session_to_db_params_tuple(session)
            ).fetchone()
        except duckdb.Error as e:
            logger.error(f"Failed to store study session {session.session_uuid}: {e}")  # noqa: E501
            raise SessionOperationError(
                f"Failed to store study session: {e}", original_exception=e
            ) from e
        stored = session.model_copy(update={"session_id": row[0] if row else None})
        logger.info(
            f"Stored study session {session.session_uuid} "
            f"({session.cards_reviewed} cards)."
        )
        return stored

    def get_study_sessions(
        self,
        deck_name: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[StudySession]:
        """Stored sessions, newest first, optionally by deck and start time."""
        sql = "SELECT * FROM study_sessions"
        conditions: List[str] = []
        params: List[Any] = []
        if deck_name is not None:
            params.append(deck_name)
            conditions.append(f"deck_name = ${len(params)}")
        if since is not None:
            params.append(ensure_utc(since))
            conditions.append(f"start_ts >= ${len(params)}")
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY start_ts DESC;"

        conn = self.get_connection()
        try:
            rows = _rows_to_dicts(conn.execute(sql, params))
        except duckdb.Error as e:
            logger.error(f"Failed to fetch study sessions: {e}")
            raise SessionOperationError(
                f"Failed to fetch study sessions: {e}", original_exception=e
            ) from e
        try:
            return [db_utils.db_row_to_session(row) for row in rows]
        except MarshallingError as e:
            raise SessionOperationError(
                "Failed to parse study sessions from database.",
                original_exception=e,
            ) from e
