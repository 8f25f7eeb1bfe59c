"""
flashdeck
---------

Flashdeck is an SM-2 spaced-repetition engine: it schedules each item's next review
from the learner's rating and walks a deck of items round by round until every
item has been mastered.
"""

from flashdeck.scheduler import Scheduler
from flashdeck.state import DeckState
from flashdeck.item import Item
from flashdeck.rating import Rating
from flashdeck.review_log import ReviewLog
from flashdeck.deck import Deck, RoundEngine
from flashdeck.stats import DeckStats, compute_stats
from flashdeck.repository import (
    DeckRepository,
    InMemoryDeckRepository,
    JsonFileDeckRepository,
)
from flashdeck.service import DeckService
from flashdeck.errors import (
    DeckError,
    DeckNotFound,
    InconsistentImport,
    InvalidRating,
    InvalidTransition,
    NoActiveItem,
)
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flashdeck.report import DeckReport


# lazy load the DeckReport module due to heavy dependencies
def __getattr__(name: str) -> type:
    if name == "DeckReport":
        global DeckReport
        from flashdeck.report import DeckReport

        return DeckReport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "Scheduler",
    "DeckState",
    "Item",
    "Rating",
    "ReviewLog",
    "Deck",
    "RoundEngine",
    "DeckStats",
    "compute_stats",
    "DeckRepository",
    "InMemoryDeckRepository",
    "JsonFileDeckRepository",
    "DeckService",
    "DeckError",
    "DeckNotFound",
    "InconsistentImport",
    "InvalidRating",
    "InvalidTransition",
    "NoActiveItem",
    "DeckReport",
]
