# Standard library imports
import re
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch
from uuid import uuid4

# Third-party imports
import pytest
from typer.testing import CliRunner

# Local application imports
from flashdeck.cli.main import app
from flashdeck.db.database import FlashcardDatabase
from flashdeck.exceptions import StoreUnavailableError
from flashdeck.models import StudySession, utcnow


runner = CliRunner()


def normalize_output(text: str) -> str:
    """Strip ANSI codes and table borders, and collapse whitespace."""
    text = re.sub(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])", "", text)
    text = re.sub(r"[\u2500-\u257f|]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "cli.db"


def _add(db_path: Path, deck: str, front: str, back: str):
    return runner.invoke(
        app,
        ["add", deck, "--front", front, "--back", back, "--db", str(db_path)],
    )


# ---------------------------------------------------------------------------
# add / list / delete
# ---------------------------------------------------------------------------


def test_add_and_list(db_path: Path):
    result = _add(db_path, "Spanish", "hola", "hello")
    assert result.exit_code == 0, result.stdout
    assert "Added card" in result.stdout

    result = runner.invoke(app, ["list", "Spanish", "--db", str(db_path)])
    assert result.exit_code == 0
    output = normalize_output(result.stdout)
    assert "hola" in output
    assert "hello" in output
    assert "now" in output

    with FlashcardDatabase(db_path) as db:
        cards = db.load_cards_for_deck("Spanish")
    assert len(cards) == 1
    assert cards[0].interval == 0


def test_add_blank_front_fails(db_path: Path):
    result = _add(db_path, "Spanish", "   ", "hello")
    assert result.exit_code == 1
    assert "Invalid card" in result.stdout


def test_list_empty_deck(db_path: Path):
    result = runner.invoke(app, ["list", "Nothing", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No cards found in deck 'Nothing'" in normalize_output(result.stdout)


def test_list_database_error(db_path: Path):
    with patch.object(
        FlashcardDatabase,
        "load_cards_for_deck",
        side_effect=StoreUnavailableError("disk gone"),
    ):
        result = runner.invoke(app, ["list", "Spanish", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "disk gone" in result.stdout


def test_delete_card(db_path: Path):
    with FlashcardDatabase(db_path) as db:
        card = db.create_card(front="q", back="a", deck_name="D")

    result = runner.invoke(
        app, ["delete", str(card.uuid), "--yes", "--db", str(db_path)]
    )

    assert result.exit_code == 0
    assert "Deleted card" in result.stdout
    with FlashcardDatabase(db_path) as db:
        assert db.get_card_by_uuid(card.uuid) is None


def test_delete_unknown_card(db_path: Path):
    result = runner.invoke(
        app, ["delete", str(uuid4()), "--yes", "--db", str(db_path)]
    )
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_delete_cancelled(db_path: Path):
    with FlashcardDatabase(db_path) as db:
        card = db.create_card(front="q", back="a", deck_name="D")

    result = runner.invoke(
        app, ["delete", str(card.uuid), "--db", str(db_path)], input="n\n"
    )

    assert result.exit_code == 0
    assert "cancelled" in result.stdout
    with FlashcardDatabase(db_path) as db:
        assert db.get_card_by_uuid(card.uuid) is not None


def test_db_path_from_environment(db_path: Path):
    result = runner.invoke(
        app,
        ["add", "Env", "--front", "f", "--back", "b"],
        env={"FLASHDECK_DB": str(db_path)},
    )
    assert result.exit_code == 0
    with FlashcardDatabase(db_path) as db:
        assert db.get_deck_names() == ["Env"]


# ---------------------------------------------------------------------------
# stats / history
# ---------------------------------------------------------------------------


def test_stats_empty_database(db_path: Path):
    result = runner.invoke(app, ["stats", "--db", str(db_path)])
    assert result.exit_code == 0
    output = normalize_output(result.stdout)
    assert "Total Cards 0" in output
    assert "No cards found in the database." in output


def test_stats_with_cards(db_path: Path):
    _add(db_path, "Spanish", "hola", "hello")
    _add(db_path, "French", "chat", "cat")

    result = runner.invoke(app, ["stats", "--db", str(db_path)])

    assert result.exit_code == 0
    output = normalize_output(result.stdout)
    assert "Total Cards 2" in output
    assert "Due Now 2" in output
    assert "Spanish" in output
    assert "French" in output
    assert "medium" in output


def test_history_without_sessions(db_path: Path):
    result = runner.invoke(app, ["history", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No study sessions recorded yet." in result.stdout


def test_history_with_sessions(db_path: Path):
    start = utcnow() - timedelta(minutes=90)
    with FlashcardDatabase(db_path) as db:
        db.add_study_session(
            StudySession(
                deck_name="Spanish",
                start_ts=start,
                end_ts=start + timedelta(minutes=75),
                total_duration_ms=75 * 60_000,
                cards_reviewed=20,
                correct_answers=15,
            )
        )

    result = runner.invoke(app, ["history", "--db", str(db_path)])

    assert result.exit_code == 0
    output = normalize_output(result.stdout)
    assert "1h 15m" in output
    assert "Cards Reviewed 20" in output
    assert "Accuracy 75%" in output
    assert "Spanish" in output


# ---------------------------------------------------------------------------
# review
# ---------------------------------------------------------------------------


def test_review_calls_review_logic(db_path: Path):
    with patch("flashdeck.cli.main.review_logic") as mock_review_logic:
        result = runner.invoke(
            app, ["review", "Spanish", "--db", str(db_path), "--limit", "5"]
        )
    assert result.exit_code == 0
    mock_review_logic.assert_called_once_with(
        deck_name="Spanish", db_path=db_path, limit=5
    )


def test_review_limit_defaults_to_settings(db_path: Path, monkeypatch):
    from flashdeck import config

    monkeypatch.setattr(config.settings, "session_limit", 12)
    with patch("flashdeck.cli.main.review_logic") as mock_review_logic:
        result = runner.invoke(app, ["review", "Spanish", "--db", str(db_path)])
    assert result.exit_code == 0
    assert mock_review_logic.call_args.kwargs["limit"] == 12


def test_review_session_end_to_end(db_path: Path):
    _add(db_path, "Spanish", "hola", "hello")

    with patch("rich.console.Console.input", side_effect=["", "e"]):
        result = runner.invoke(app, ["review", "Spanish", "--db", str(db_path)])

    assert result.exit_code == 0, result.stdout
    output = normalize_output(result.stdout)
    assert "Database backed up to" in output
    assert "Card 1 of 1" in output
    assert "Next review in 1 days" in output
    assert "Accuracy: 100%" in output

    with FlashcardDatabase(db_path) as db:
        card = db.load_cards_for_deck("Spanish")[0]
        sessions = db.get_study_sessions()
    assert card.repetitions == 1
    assert card.ease_factor == pytest.approx(2.6)
    assert len(sessions) == 1
    assert sessions[0].cards_reviewed == 1
    assert (db_path.parent / "backups").is_dir()


def test_review_nothing_due(db_path: Path):
    result = runner.invoke(app, ["review", "Empty", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "All caught up!" in result.stdout


def test_review_unexpected_error(db_path: Path):
    with patch(
        "flashdeck.cli.main.review_logic", side_effect=RuntimeError("boom")
    ):
        result = runner.invoke(app, ["review", "Spanish", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "An unexpected error occurred" in result.stdout


# ---------------------------------------------------------------------------
# restore
# ---------------------------------------------------------------------------


def test_restore_without_backups(db_path: Path):
    result = runner.invoke(app, ["restore", "--db", str(db_path), "--yes"])
    assert result.exit_code == 1
    assert "No backup files found" in result.stdout


def test_restore_from_latest_backup(db_path: Path):
    _add(db_path, "Spanish", "hola", "hello")
    # Reviewing backs the database up first.
    with patch("rich.console.Console.input", side_effect=["", "a"]):
        runner.invoke(app, ["review", "Spanish", "--db", str(db_path)])

    result = runner.invoke(app, ["restore", "--db", str(db_path), "--yes"])

    assert result.exit_code == 0, result.stdout
    assert "Database successfully restored" in normalize_output(result.stdout)
    with FlashcardDatabase(db_path) as db:
        card = db.load_cards_for_deck("Spanish")[0]
        assert db.get_study_sessions() == []
    assert card.repetitions == 0
    assert card.last_review is None


def test_restore_cancelled(db_path: Path):
    _add(db_path, "Spanish", "hola", "hello")
    with patch("flashdeck.cli.main.review_logic"):
        runner.invoke(app, ["review", "Spanish", "--db", str(db_path)])

    result = runner.invoke(app, ["restore", "--db", str(db_path)], input="n\n")

    assert result.exit_code == 0
    assert "Restore operation cancelled." in result.stdout
