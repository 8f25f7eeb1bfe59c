from enum import Enum


class DeckState(Enum):
    """
    Enum representing where a Deck is in its round-based traversal.
    """

    Reviewing = "reviewing"
    RoundComplete = "round_complete"
    DeckComplete = "deck_complete"


__all__ = ["DeckState"]
