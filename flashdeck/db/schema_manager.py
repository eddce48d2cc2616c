import duckdb
import logging

from .connection import ConnectionHandler
from . import schema
from ..exceptions import DatabaseConnectionError, SchemaInitializationError
from .. import config as flashdeck_config

logger = logging.getLogger(__name__)


class SchemaManager:
    """Creates (and, on request, recreates) the flashdeck tables."""

    def __init__(self, handler: ConnectionHandler):
        self._handler = handler

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """
        Create the schema inside one transaction. Idempotent.

        With force_recreate_tables the existing tables are dropped first;
        this refuses to run against a file database that still holds data
        unless testing_mode is set.

        Raises:
            DatabaseConnectionError: If recreation is requested read-only.
            SchemaInitializationError: If any DDL statement fails.
        """
        if self._skip_for_read_only(force_recreate_tables):
            return

        conn = self._handler.get_connection()
        if force_recreate_tables:
            self._perform_safety_check(conn)
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                if force_recreate_tables:
                    self._recreate_tables(cursor)
                cursor.execute(schema.DB_SCHEMA_SQL)
                cursor.commit()
            logger.info(
                f"Schema ready at {self._handler.db_path_resolved}."
            )
        except duckdb.Error as e:
            logger.error(
                f"Schema initialization failed at "
                f"{self._handler.db_path_resolved}: {e}"
            )
            try:
                conn.rollback()
            except duckdb.Error as rb_err:
                logger.error(f"Failed to rollback transaction: {rb_err}")
            raise SchemaInitializationError(
                f"Failed to initialize schema: {e}", original_exception=e
            ) from e

    def _skip_for_read_only(self, force_recreate_tables: bool) -> bool:
        if not self._handler.read_only:
            return False
        if force_recreate_tables:
            raise DatabaseConnectionError(
                "Cannot force_recreate_tables in read-only mode."
            )
        if not self._handler.is_memory:
            logger.warning(
                "Attempting to initialize schema in read-only mode. Skipping."
            )
            return True
        return False

    def _perform_safety_check(self, cursor: duckdb.DuckDBPyConnection) -> None:
        """Refuse to drop tables that still contain cards or sessions."""
        if self._handler.is_memory or flashdeck_config.settings.testing_mode:
            return

        counts = {}
        for table in ("cards", "study_sessions"):
            try:
                row = cursor.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            except duckdb.CatalogException:
                # Table does not exist yet; nothing to lose.
                continue
            counts[table] = row[0] if row else 0

        if any(counts.values()):
            msg = (
                "Refusing to drop tables that contain data "
                f"({counts}). Use backup/restore instead."
            )
            logger.error(msg)
            raise SchemaInitializationError(msg)

    def _recreate_tables(self, cursor: duckdb.DuckDBPyConnection) -> None:
        logger.warning(
            f"Recreating tables in {self._handler.db_path_resolved}. "
            "ALL EXISTING DATA WILL BE LOST."
        )
        cursor.execute("DROP TABLE IF EXISTS study_sessions CASCADE;")
        cursor.execute("DROP SEQUENCE IF EXISTS study_session_seq;")
        cursor.execute("DROP TABLE IF EXISTS cards CASCADE;")
