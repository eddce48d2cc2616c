"""
Command-line interface for reviewing flashcards.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.panel import Panel

from flashdeck.exceptions import PersistenceFailureError
from flashdeck.models import Card, Quality
from flashdeck.review_manager import ReviewSessionManager

logger = logging.getLogger(__name__)
console = Console()

# Shortcut keys for the three grades the review UI offers.
GRADE_KEYS = {
    "a": Quality.Again,
    "g": Quality.Good,
    "e": Quality.Easy,
}
QUIT_KEYS = {"q", "quit"}


def _get_user_quality() -> Optional[int]:
    """
    Prompt until the user enters a grade.

    Accepts a/g/e (Again/Good/Easy) or any digit 0-5. Returns None when the
    user quits the session with 'q'.
    """
    while True:
        raw = console.input(
            "[bold]Grade (a/1: Again, g/3: Good, e/5: Easy, q: quit): [/bold]"
        ).strip().lower()
        if raw in QUIT_KEYS:
            return None
        if raw in GRADE_KEYS:
            return int(GRADE_KEYS[raw])
        if raw.isdigit() and 0 <= int(raw) <= 5:
            return int(raw)
        console.print(
            "[bold red]Invalid grade. Enter a, g, e or a number from 0 to 5.[/bold red]"  # noqa: E501
        )


def _display_front(card: Card) -> None:
    console.print(Panel(card.front, title="Front", border_style="green"))
    console.input("[italic]Press Enter to flip...[/italic]")


def _display_back(card: Card) -> None:
    console.print(Panel(card.back, title="Back", border_style="blue"))


def _grade_current_card(manager: ReviewSessionManager) -> bool:
    """
    Ask for a grade and submit it, re-asking after a failed save.

    Returns:
        False if the user quit instead of grading.
    """
    while True:
        quality = _get_user_quality()
        if quality is None:
            return False
        try:
            outcome = manager.submit_review(quality)
        except PersistenceFailureError as e:
            logger.error(f"Failed to save review: {e}")
            console.print(
                "[bold red]Could not save this review. "
                "Enter the grade again to retry.[/bold red]"
            )
            continue

        updated = outcome.card_after
        due_str = updated.next_review.strftime("%Y-%m-%d")
        console.print(
            f"[green]Reviewed.[/green] Next review in "
            f"[bold]{updated.interval} days[/bold] on {due_str}."
        )
        return True


def _print_summary(correct: int, incorrect: int, total: int) -> None:
    accuracy = round(correct / total * 100) if total else 0
    console.print(
        Panel(
            f"You reviewed [bold]{total}[/bold] cards\n"
            f"[green]Correct: {correct}[/green]   "
            f"[red]Need review: {incorrect}[/red]   "
            f"[cyan]Accuracy: {accuracy}%[/cyan]",
            title="Session Complete!",
            border_style="cyan",
        )
    )


def start_review_flow(manager: ReviewSessionManager) -> None:
    """
    Manages the command-line review session flow.

    Args:
        manager: An instance of ReviewSessionManager.
    """
    console.print("[bold cyan]Starting review session...[/bold cyan]")
    due_cards_count = manager.initialize_session()
    if due_cards_count == 0:
        console.print(
            "[bold yellow]No cards are due for review. All caught up![/bold yellow]"  # noqa: E501
        )
        console.print("[bold cyan]Review session finished.[/bold cyan]")
        return

    position = 0
    while (card := manager.get_next_card()) is not None:
        position += 1
        console.rule(f"[bold]Card {position} of {due_cards_count}[/bold]")

        _display_front(card)
        manager.reveal_answer()
        _display_back(card)

        if not _grade_current_card(manager):
            console.print("[yellow]Review session stopped early.[/yellow]")
            break
        console.print("")

    stats = manager.get_session_stats()
    manager.end_session()
    if stats["reviewed_cards"]:
        _print_summary(
            int(stats["correct"]),
            int(stats["incorrect"]),
            int(stats["reviewed_cards"]),
        )
    console.print("[bold cyan]Review session finished. Well done![/bold cyan]")
