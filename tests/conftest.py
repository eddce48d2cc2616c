import pytest
from pathlib import Path
from typing import Generator
from datetime import datetime, timedelta, timezone

from flashdeck.models import Card
from flashdeck.db import FlashcardDatabase


NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


# each test runs on cwd to its temp dir
@pytest.fixture(autouse=True)
def go_to_tmpdir(tmp_path, monkeypatch):
    """
    Run every test inside its own temporary directory, so a stray .env or
    database file never leaks between tests.
    """
    monkeypatch.chdir(tmp_path)
    yield


@pytest.fixture
def now() -> datetime:
    """A fixed 'current time' shared by tests."""
    return NOW


# --- Database Fixtures ---
@pytest.fixture
def db_path_memory() -> str:
    """The DuckDB path identifier for a transient in-memory database."""
    return ":memory:"


@pytest.fixture
def db_path_file(tmp_path: Path) -> Path:
    return tmp_path / "test_flash.db"


@pytest.fixture(params=["memory", "file"])
def db_manager(
    request, db_path_memory: str, db_path_file: Path
) -> Generator[FlashcardDatabase, None, None]:
    """
    Provide a FlashcardDatabase instance for tests, either in-memory or
    file-backed, and close it on teardown.
    """
    if request.param == "memory":
        db_man = FlashcardDatabase(db_path_memory)
    else:
        db_man = FlashcardDatabase(db_path_file)
    try:
        yield db_man
    finally:
        db_man.close_connection()


@pytest.fixture
def initialized_db_manager(db_manager: FlashcardDatabase) -> FlashcardDatabase:
    """The db_manager fixture with its schema created."""
    db_manager.initialize_schema()
    return db_manager


@pytest.fixture
def sample_card1() -> Card:
    """A new card in 'Spanish', due at NOW - 1 day."""
    return Card(
        uuid="11111111-1111-1111-1111-111111111111",
        deck_name="Spanish",
        front="hola",
        back="hello",
        next_review=NOW - timedelta(days=1),
        added_at=datetime(2023, 1, 1, 10, 0, tzinfo=timezone.utc),
        modified_at=datetime(2023, 1, 1, 10, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_card2() -> Card:
    """A card in 'Spanish' that has been reviewed twice, due at NOW - 2 days."""
    return Card(
        uuid="22222222-2222-2222-2222-222222222222",
        deck_name="Spanish",
        front="gato",
        back="cat",
        ease_factor=2.5,
        interval=6,
        repetitions=2,
        next_review=NOW - timedelta(days=2),
        last_review=NOW - timedelta(days=8),
        added_at=datetime(2023, 1, 2, 10, 0, tzinfo=timezone.utc),
        modified_at=datetime(2023, 1, 2, 10, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_card3_not_due() -> Card:
    """A mature card in 'Spanish' not due until NOW + 10 days."""
    return Card(
        uuid="33333333-3333-3333-3333-333333333333",
        deck_name="Spanish",
        front="perro",
        back="dog",
        ease_factor=2.6,
        interval=30,
        repetitions=5,
        next_review=NOW + timedelta(days=10),
        last_review=NOW - timedelta(days=20),
        added_at=datetime(2023, 1, 3, 10, 0, tzinfo=timezone.utc),
        modified_at=datetime(2023, 1, 3, 10, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_card4_other_deck() -> Card:
    return Card(
        uuid="44444444-4444-4444-4444-444444444444",
        deck_name="French",
        front="chat",
        back="cat",
        next_review=NOW - timedelta(hours=1),
        added_at=datetime(2023, 1, 4, 10, 0, tzinfo=timezone.utc),
        modified_at=datetime(2023, 1, 4, 10, 0, tzinfo=timezone.utc),
    )
