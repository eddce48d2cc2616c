from typing import Optional


class DatabaseError(Exception):
    """Base exception for database-related errors."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class DatabaseConnectionError(DatabaseError):
    """Raised for errors connecting to the database."""

    pass


class StoreUnavailableError(DatabaseConnectionError):
    """Raised when the card store cannot be read (e.g. loading a deck)."""

    pass


class SchemaInitializationError(DatabaseError):
    """Raised for errors during schema setup."""

    pass


class CardOperationError(DatabaseError):
    """Raised for errors during card operations (CRUD)."""

    pass


class PersistenceFailureError(CardOperationError):
    """Raised when a card's new schedule could not be written."""

    pass


class MarshallingError(DatabaseError):
    """Indicates an error during data conversion between application models
    and DB format."""

    pass


class SessionOperationError(DatabaseError):
    """Indicates an error during a study-session database operation."""

    pass


# --- Review engine errors ---


class InvalidQualityError(ValueError):
    """Raised when a quality grade is not an integer in [0, 5]."""

    def __init__(self, quality: object):
        super().__init__(
            f"Invalid quality: {quality!r}. Must be an integer from 0 to 5."
        )
        self.quality = quality


class ReviewSessionError(Exception):
    """Base exception for illegal review session transitions."""

    pass


class SessionNotActiveError(ReviewSessionError):
    """Raised when flip/answer is called outside the Reviewing state."""

    pass


class SessionAlreadyActiveError(ReviewSessionError):
    """Raised when a session is started while one is in progress."""

    pass


class AnswerNotRevealedError(ReviewSessionError):
    """Raised when a card is graded before its answer was revealed."""

    pass


class ReviewInProgressError(ReviewSessionError):
    """Raised when answer() is re-entered before the previous one finished."""

    pass
