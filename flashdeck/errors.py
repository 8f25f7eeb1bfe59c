"""
flashdeck.errors
----------------

Exceptions raised when a deck operation is rejected.

A rejected operation never changes the deck it was given.
"""

from __future__ import annotations


class DeckError(ValueError):
    """Base class for rejected deck operations."""


class InvalidRating(DeckError):
    """The rating token is not one of again, hard, good or easy."""

    def __init__(self, rating: object) -> None:
        self.rating = rating
        super().__init__(
            f"Invalid rating {rating!r}: expected one of 'again', 'hard', 'good', 'easy'."
        )


class NoActiveItem(DeckError):
    """A rating was submitted while the deck has no item under its cursor."""


class InvalidTransition(DeckError):
    """The requested operation is not allowed from the deck's current state."""


class InconsistentImport(DeckError):
    """
    A serialized deck failed validation.

    Attributes:
        problems: Every problem found in the input, in the order they were detected.
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__(
            "Deck failed validation:\n" + "\n".join(f"- {p}" for p in self.problems)
        )


class DeckNotFound(KeyError):
    """No deck with the requested id exists in the repository."""

    def __init__(self, deck_id: str) -> None:
        self.deck_id = deck_id
        super().__init__(deck_id)

    def __str__(self) -> str:
        return f"Deck {self.deck_id!r} not found"


__all__ = [
    "DeckError",
    "InvalidRating",
    "NoActiveItem",
    "InvalidTransition",
    "InconsistentImport",
    "DeckNotFound",
]
