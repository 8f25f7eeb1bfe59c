"""
flashdeck.service
-----------------

DeckService runs engine operations against a repository, one writer per deck at a time.

Each mutating call loads the deck, applies the engine operation and saves the
result while holding that deck's lock, so concurrent callers working on the
same deck never interleave their read-modify-write cycles.
"""

from __future__ import annotations
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
import logging
import threading
from flashdeck.deck import Deck, RoundEngine
from flashdeck.errors import DeckNotFound
from flashdeck.rating import Rating
from flashdeck.repository import DeckRepository
from flashdeck.review_log import ReviewLog
from flashdeck.stats import DeckStats, compute_stats

logger = logging.getLogger(__name__)


class DeckService:
    """
    Serializes deck operations per deck id on top of a DeckRepository.

    Attributes:
        repository: Where decks are loaded from and saved to.
        engine: The round engine applied to loaded decks.
    """

    def __init__(
        self, repository: DeckRepository, engine: RoundEngine | None = None
    ) -> None:
        self.repository = repository
        self.engine = engine if engine is not None else RoundEngine()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, deck_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(deck_id)
            if lock is None:
                lock = self._locks[deck_id] = threading.Lock()
            return lock

    def _forget(self, deck_id: str) -> None:
        with self._locks_guard:
            self._locks.pop(deck_id, None)

    @contextmanager
    def _locked(self, deck_id: str) -> Iterator[None]:
        # ids that turn out not to exist must not keep a lock entry
        with self._lock_for(deck_id):
            try:
                yield
            except DeckNotFound:
                self._forget(deck_id)
                raise

    def _update(self, deck_id: str, operation: Callable[[Deck], Deck]) -> Deck:
        with self._locked(deck_id):
            deck = self.repository.load(deck_id)
            deck = operation(deck)
            self.repository.save(deck)
        return deck

    def create_deck(
        self,
        pairs: Iterable[tuple[str, str]],
        name: str = "",
        now: datetime | None = None,
    ) -> Deck:
        deck = self.engine.create_deck(pairs, name=name, now=now)
        with self._lock_for(deck.deck_id):
            self.repository.save(deck)
        return deck

    def get_deck(self, deck_id: str) -> Deck:
        return self.repository.load(deck_id)

    def submit_rating(
        self,
        deck_id: str,
        rating: Rating | str,
        now: datetime | None = None,
        review_duration: int | None = None,
    ) -> tuple[Deck, ReviewLog]:
        """
        Rates the current item of a stored deck.

        The review log is stored with the deck. Nothing is saved when the engine rejects the rating.
        """

        with self._locked(deck_id):
            deck = self.repository.load(deck_id)
            deck, review_log = self.engine.submit_rating(
                deck, rating, now=now, review_duration=review_duration
            )
            self.repository.save(deck)

        logger.debug(
            "Deck %s: rated item %s %s", deck_id, review_log.item_id, review_log.rating.value
        )
        return deck, review_log

    def advance_round(self, deck_id: str) -> Deck:
        return self._update(deck_id, self.engine.advance_round)

    def restart(self, deck_id: str) -> Deck:
        return self._update(deck_id, self.engine.restart)

    def reset_item(
        self, deck_id: str, item_id: str, now: datetime | None = None
    ) -> Deck:
        return self._update(
            deck_id, lambda deck: self.engine.reset_item(deck, item_id, now=now)
        )

    def reschedule_item(self, deck_id: str, item_id: str) -> Deck:
        return self._update(
            deck_id, lambda deck: self.engine.reschedule_item(deck, item_id)
        )

    def delete_deck(self, deck_id: str) -> None:
        with self._locked(deck_id):
            self.repository.delete(deck_id)
        self._forget(deck_id)
        logger.info("Deleted deck %s", deck_id)

    def stats(self, deck_id: str, now: datetime | None = None) -> DeckStats:
        return compute_stats(self.repository.load(deck_id), now=now)


__all__ = ["DeckService"]
