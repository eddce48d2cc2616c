"""
The card store interface the review engine depends on.

The engine only reads a deck's cards and writes back scheduling fields;
identity, persistence and deletion belong to the store.
FlashcardDatabase (flashdeck.db) is the DuckDB-backed implementation.
"""

from typing import List, Protocol, runtime_checkable
from uuid import UUID

from .models import Card, CardSchedule


@runtime_checkable
class CardStore(Protocol):
    def load_cards_for_deck(self, deck_name: str) -> List[Card]:
        """
        Return every card of a deck (empty list for an empty or unknown deck).

        Raises:
            StoreUnavailableError: If the store cannot be read.
        """
        ...

    def save_card_schedule(
        self, card_uuid: UUID, schedule: CardSchedule
    ) -> Card:
        """
        Persist the scheduling fields of one card and return the stored card.
        Never touches front/back.

        Raises:
            PersistenceFailureError: If the write fails or the card is gone.
        """
        ...

    def create_card(self, front: str, back: str, deck_name: str) -> Card:
        """Create a card with the new-card schedule (due immediately)."""
        ...

    def delete_card(self, card_uuid: UUID) -> None:
        ...
