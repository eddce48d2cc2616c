import duckdb
import logging
from pathlib import Path
from typing import Optional, Union

from ..exceptions import DatabaseConnectionError

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


class ConnectionHandler:
    """Owns the single DuckDB connection of a FlashcardDatabase."""

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Parameters:
            db_path: Path to the DuckDB file, or ":memory:" (any case) for a
                transient in-memory database. File paths are resolved.
            read_only: Open the database read-only.
        """
        if isinstance(db_path, str) and db_path.lower() == MEMORY_DB:
            self.db_path_resolved = Path(MEMORY_DB)
            logger.info("Using in-memory DuckDB database.")
        else:
            self.db_path_resolved = Path(db_path).resolve()
            logger.info(f"ConnectionHandler set up for {self.db_path_resolved}")

        self.read_only: bool = read_only
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self.is_new_db: bool = False

    @property
    def is_memory(self) -> bool:
        return str(self.db_path_resolved) == MEMORY_DB

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Return the open connection, connecting on first use.

        On connect, `is_new_db` records whether the schema still has to be
        created: always for in-memory databases, and for files that did not
        exist yet.

        Raises:
            DatabaseConnectionError: If DuckDB cannot open the database.
        """
        if self._connection is not None:
            return self._connection
        try:
            if self.is_memory:
                self.is_new_db = True
            else:
                self.is_new_db = not self.db_path_resolved.exists()
                self.db_path_resolved.parent.mkdir(parents=True, exist_ok=True)

            self._connection = duckdb.connect(
                database=str(self.db_path_resolved),
                read_only=self.read_only,
            )
            # TIMESTAMPTZ values come back in UTC, including the year-9999
            # saturated due date.
            self._connection.execute("SET TimeZone = 'UTC';")
            logger.info(f"Connected to {self.db_path_resolved}.")
        except (duckdb.Error, OSError) as e:
            raise DatabaseConnectionError(
                f"Failed to connect to database: {e}", original_exception=e
            ) from e
        return self._connection

    def close_connection(self) -> None:
        """Close the connection if open; a later get_connection reconnects."""
        if self._connection is None:
            return
        try:
            self._connection.close()
            logger.info(f"Closed connection to {self.db_path_resolved}.")
        except duckdb.Error as e:
            logger.error(f"Error closing the database connection: {e}")
        finally:
            self._connection = None

    def __enter__(self) -> duckdb.DuckDBPyConnection:
        return self.get_connection()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close_connection()
