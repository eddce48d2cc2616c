from pathlib import Path
from typing import Optional

from flashdeck.cli.review_ui import start_review_flow
from flashdeck.db.database import FlashcardDatabase
from flashdeck.review_manager import ReviewSessionManager
from flashdeck.scheduler import SM2Scheduler


def review_logic(
    deck_name: str,
    db_path: Path,
    limit: Optional[int] = None,
):
    """
    Set up and start a review session for the specified deck.

    Opens the database (creating its schema if needed), builds an SM-2
    scheduler and a review session manager for the deck, and launches the
    interactive review flow.

    Parameters:
        deck_name (str): Name of the deck to review.
        db_path (Path): Path to the flashcard database file.
        limit (Optional[int]): Maximum number of due cards to review.
    """
    with FlashcardDatabase(db_path=db_path) as db_manager:
        db_manager.initialize_schema()
        manager = ReviewSessionManager(
            store=db_manager,
            deck_name=deck_name,
            scheduler=SM2Scheduler(),
            limit=limit,
        )
        start_review_flow(manager)
