"""
CLI entry point for flashdeck.
"""

# Standard library imports
import shutil
from pathlib import Path
from typing import Optional
from uuid import UUID

# Third-party imports
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

# Local application imports
from flashdeck.analytics import StudySummary, format_minutes, summarize_sessions
from flashdeck.config import settings
from flashdeck.db.database import FlashcardDatabase
from flashdeck.db.db_utils import backup_database, find_latest_backup
from flashdeck.exceptions import DatabaseError
from flashdeck.models import utcnow
from flashdeck.cli._review_logic import review_logic


console = Console()

app = typer.Typer(
    name="flashdeck",
    help="Flashdeck: SM-2 spaced repetition flashcards.",
    add_completion=False,
    rich_markup_mode="markdown",
)


# ---------------------------------------------------------------------------
# Helpers for resolving the --db path
# ---------------------------------------------------------------------------


def _resolve_db_path(db: Optional[Path]) -> Path:
    """Resolve db path from the --db flag (or FLASHDECK_DB), else settings."""
    if db is not None:
        return db
    db_path = settings.db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


# Common typer options reused across commands
_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB database file. "
    "Falls back to FLASHDECK_DB env var, then FLASHDECK_DB_PATH.",
    envvar="FLASHDECK_DB",
)


def _truncate(text: str, width: int = 40) -> str:
    text = " ".join(text.split())
    return text if len(text) <= width else text[: width - 3] + "..."


# ---------------------------------------------------------------------------
# Card commands
# ---------------------------------------------------------------------------


@app.command()
def add(
    deck_name: str = typer.Argument(  # noqa: B008
        ..., help="The deck to add the card to."
    ),
    front: str = typer.Option(..., "--front", "-f", help="Question side."),
    back: str = typer.Option(..., "--back", "-b", help="Answer side."),
    db: Optional[Path] = _db_option,
):
    """Adds a new card to a deck. The card is due immediately."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            card = db_inst.create_card(
                front=front, back=back, deck_name=deck_name
            )
    except ValidationError as e:
        console.print(f"[bold red]Invalid card:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=1) from e
    except DatabaseError as e:
        console.print(f"[bold]A database error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e

    console.print(
        f"[green]Added card[/green] [dim]{card.uuid}[/dim] "
        f"to deck [bold cyan]{deck_name}[/bold cyan]."
    )


@app.command("list")
def list_cards(
    deck_name: str = typer.Argument(  # noqa: B008
        ..., help="The deck to list."
    ),
    db: Optional[Path] = _db_option,
):
    """Lists the cards of a deck with their schedules."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            cards = db_inst.load_cards_for_deck(deck_name)
    except DatabaseError as e:
        console.print(f"[bold]A database error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e

    if not cards:
        console.print(
            f"[yellow]No cards found in deck '{deck_name}'.[/yellow]"
        )
        return

    now = utcnow()
    table = Table(title=f"Deck: {deck_name}")
    table.add_column("UUID", style="dim")
    table.add_column("Front", style="cyan")
    table.add_column("Back")
    table.add_column("Difficulty", style="magenta")
    table.add_column("Interval", justify="right")
    table.add_column("Next Review", style="yellow")
    for card in cards:
        due = "now" if card.is_due(now) else card.next_review.strftime("%Y-%m-%d")
        table.add_row(
            str(card.uuid),
            _truncate(card.front),
            _truncate(card.back),
            card.difficulty.value,
            f"{card.interval}d",
            due,
        )
    console.print(table)


@app.command()
def delete(
    card_uuid: UUID = typer.Argument(  # noqa: B008
        ..., help="UUID of the card to delete."
    ),
    db: Optional[Path] = _db_option,
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Bypass confirmation prompt."
    ),
):
    """Deletes a card."""
    db_path = _resolve_db_path(db)
    if not yes:
        confirmed = typer.confirm(f"Delete card {card_uuid}?")
        if not confirmed:
            console.print("Delete operation cancelled.")
            raise typer.Exit()

    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            db_inst.delete_card(card_uuid)
    except DatabaseError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    console.print(f"[green]Deleted card[/green] [dim]{card_uuid}[/dim].")


# ---------------------------------------------------------------------------
# Stats helpers & command
# ---------------------------------------------------------------------------


def _display_overall_stats(cons: Console, stats_data: dict):
    """
    Prints a table of database-wide totals.

    Parameters:
        stats_data (dict): Mapping with "total_cards", "total_due",
            "total_mastered" and "total_study_sessions".
    """
    overall_table = Table(title="Overall Database Stats", show_header=False)
    overall_table.add_column("Metric", style="cyan")
    overall_table.add_column("Value", style="magenta")
    overall_table.add_row("Total Cards", str(stats_data["total_cards"]))
    overall_table.add_row("Due Now", str(stats_data["total_due"]))
    overall_table.add_row("Mastered", str(stats_data["total_mastered"]))
    overall_table.add_row(
        "Study Sessions", str(stats_data["total_study_sessions"])
    )
    cons.print(overall_table)


def _display_deck_stats(cons: Console, stats_data: dict):
    decks_table = Table(title="Decks")
    decks_table.add_column("Deck Name", style="cyan")
    decks_table.add_column("Card Count", style="magenta")
    decks_table.add_column("Due Count", style="yellow")
    decks_table.add_column("Mastered", style="green")

    for deck in stats_data["decks"]:
        decks_table.add_row(
            deck["deck_name"],
            str(deck["card_count"]),
            str(deck["due_count"]),
            str(deck["mastered_count"]),
        )
    cons.print(decks_table)


def _display_difficulty_stats(cons: Console, stats_data: dict):
    difficulty_table = Table(title="Card Difficulty")
    difficulty_table.add_column("Difficulty", style="cyan")
    difficulty_table.add_column("Count", style="magenta")
    for label, count in sorted(stats_data["difficulties"].items()):
        difficulty_table.add_row(label, str(count))
    cons.print(difficulty_table)


@app.command()
def stats(
    db: Optional[Path] = _db_option,
):
    """Display statistics about the flashcard database."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            stats_data = db_inst.get_database_stats(utcnow())

            _display_overall_stats(console, stats_data)

            if not stats_data["total_cards"]:
                console.print(
                    "[yellow]No cards found in the database.[/yellow]"
                )
                return

            _display_deck_stats(console, stats_data)
            _display_difficulty_stats(console, stats_data)

    except DatabaseError as e:
        console.print(f"[bold]A database error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e


# ---------------------------------------------------------------------------
# History command
# ---------------------------------------------------------------------------


def _display_study_summary(cons: Console, summary: StudySummary):
    overview = Table(title="Study Overview", show_header=False)
    overview.add_column("Metric", style="cyan")
    overview.add_column("Value", style="magenta")
    overview.add_row("Total Study Time", format_minutes(summary.total_minutes))
    overview.add_row("Cards Reviewed", str(summary.total_cards))
    overview.add_row("Accuracy", f"{summary.accuracy_percentage}%")
    cons.print(overview)

    weekly = Table(title="Last 7 Days")
    weekly.add_column("Day", style="cyan")
    weekly.add_column("Time", style="magenta")
    for day, minutes in summary.weekly_minutes:
        weekly.add_row(day, format_minutes(minutes))
    cons.print(weekly)

    if summary.deck_minutes:
        per_deck = Table(title="Time by Deck")
        per_deck.add_column("Deck Name", style="cyan")
        per_deck.add_column("Time", style="magenta")
        for deck_name, minutes in summary.deck_minutes:
            per_deck.add_row(deck_name, format_minutes(minutes))
        cons.print(per_deck)


@app.command()
def history(
    db: Optional[Path] = _db_option,
    deck_name: Optional[str] = typer.Option(
        None, "--deck", "-d", help="Only include sessions of this deck."
    ),
):
    """Shows study time and accuracy across past review sessions."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            sessions = db_inst.get_study_sessions(deck_name=deck_name)
    except DatabaseError as e:
        console.print(f"[bold]A database error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e

    if not sessions:
        console.print("[yellow]No study sessions recorded yet.[/yellow]")
        return

    _display_study_summary(console, summarize_sessions(sessions, utcnow()))


# ---------------------------------------------------------------------------
# Review command
# ---------------------------------------------------------------------------


@app.command()
def review(
    deck_name: str = typer.Argument(  # noqa: B008
        ..., help="The name of the deck to review."
    ),
    db: Optional[Path] = _db_option,
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-l",
        min=0,
        help="Maximum number of due cards to review. "
        "Defaults to FLASHDECK_SESSION_LIMIT (no limit if unset).",
    ),
):
    """Starts a review session for the specified deck."""
    db_path = _resolve_db_path(db)
    if limit is None:
        limit = settings.session_limit
    try:
        backup_path = backup_database(db_path)
        if backup_path.exists() and "backups" in str(backup_path):
            console.print(f"Database backed up to: [dim]{backup_path}[/dim]")

        console.print(
            f"Starting review for deck: [bold cyan]{deck_name}[/bold cyan]"
        )
        review_logic(deck_name=deck_name, db_path=db_path, limit=limit)
    except DatabaseError as e:
        console.print(f"[bold]A database error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"[bold]An unexpected error occurred:[/bold] {e}")
        raise typer.Exit(code=1) from e


# ---------------------------------------------------------------------------
# Restore command
# ---------------------------------------------------------------------------


@app.command()
def restore(
    db: Optional[Path] = _db_option,
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Bypass confirmation prompt."
    ),
):
    """Restores the database from the most recent backup."""
    db_path = _resolve_db_path(db)
    console.print(
        "[bold yellow]Attempting to restore database "
        "from backup...[/bold yellow]"
    )

    latest_backup = find_latest_backup(db_path)

    if not latest_backup:
        console.print("[bold red]Error: No backup files found.[/bold red]")
        raise typer.Exit(code=1)

    console.print(f"Found latest backup: [cyan]{latest_backup.name}[/cyan]")

    if not yes:
        confirmed = typer.confirm(
            "Are you sure you want to overwrite the current "
            "database with this backup?"
        )
        if not confirmed:
            console.print("Restore operation cancelled.")
            raise typer.Exit()

    try:
        shutil.copy2(latest_backup, db_path)
    except OSError as e:
        console.print(
            "[bold red]An unexpected error occurred "
            f"during restore: {e}[/bold red]"
        )
        raise typer.Exit(code=1) from e
    console.print(
        "[bold green]Database successfully restored "
        f"from {latest_backup.name}[/bold green]"
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """
    Run the CLI application, exiting with status 1 on an unexpected error.
    """
    try:
        app()
    except Exception as e:
        console.print(f"[bold red]UNEXPECTED ERROR: {e}[/bold red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
