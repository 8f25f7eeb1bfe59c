"""
flashdeck.repository
--------------------

Storage for decks.

DeckRepository is the interface the rest of the package depends on; the two
implementations keep decks in memory or as one JSON file per deck.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
import json
import logging
import os
from pathlib import Path
import re
import tempfile
from flashdeck.deck import Deck, DeckDict
from flashdeck.errors import DeckNotFound

logger = logging.getLogger(__name__)

_DECK_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class DeckRepository(ABC):
    """
    Loads and saves decks by id.

    Implementations:
        - InMemoryDeckRepository: Keeps serialized decks in a dict.
        - JsonFileDeckRepository: Keeps one JSON file per deck in a directory.
    """

    @abstractmethod
    def load(self, deck_id: str) -> Deck:
        """
        Fetch the deck with the given id.

        Raises:
            DeckNotFound: If no such deck has been saved.
            InconsistentImport: If the stored deck fails validation.
        """

    @abstractmethod
    def save(self, deck: Deck) -> None:
        """Store the deck, replacing any deck with the same id."""

    @abstractmethod
    def delete(self, deck_id: str) -> None:
        """
        Remove the deck with the given id.

        Raises:
            DeckNotFound: If no such deck has been saved.
        """

    @abstractmethod
    def list_ids(self) -> list[str]:
        """Return the ids of every stored deck, sorted."""


class InMemoryDeckRepository(DeckRepository):
    """
    Keeps decks in memory.

    Decks are stored in serialized form, so neither the saved deck nor a loaded
    one shares mutable state with the store.
    """

    def __init__(self) -> None:
        self._decks: dict[str, DeckDict] = {}

    def load(self, deck_id: str) -> Deck:
        try:
            deck_dict = self._decks[deck_id]
        except KeyError:
            raise DeckNotFound(deck_id) from None
        return Deck.from_dict(deck_dict)

    def save(self, deck: Deck) -> None:
        self._decks[deck.deck_id] = deck.to_dict()
        logger.debug("Saved deck %s in memory", deck.deck_id)

    def delete(self, deck_id: str) -> None:
        try:
            del self._decks[deck_id]
        except KeyError:
            raise DeckNotFound(deck_id) from None

    def list_ids(self) -> list[str]:
        return sorted(self._decks)


class JsonFileDeckRepository(DeckRepository):
    """
    Keeps each deck as ``<deck_id>.json`` inside a directory.

    Writes go to a temporary file that then replaces the deck's file, so a
    reader never sees a half-written deck.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, deck_id: str) -> Path:
        if not _DECK_ID_PATTERN.match(deck_id):
            raise ValueError(f"deck id {deck_id!r} is not usable as a file name")
        return self.directory / f"{deck_id}.json"

    def load(self, deck_id: str) -> Deck:
        path = self._path(deck_id)
        try:
            source_json = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise DeckNotFound(deck_id) from None

        logger.debug("Loaded deck %s from %s", deck_id, path)
        return Deck.from_json(source_json)

    def save(self, deck: Deck) -> None:
        path = self._path(deck.deck_id)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.directory, prefix=f".{deck.deck_id}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(deck.to_dict(), f)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug("Saved deck %s to %s", deck.deck_id, path)

    def delete(self, deck_id: str) -> None:
        try:
            self._path(deck_id).unlink()
        except FileNotFoundError:
            raise DeckNotFound(deck_id) from None

    def list_ids(self) -> list[str]:
        return sorted(path.stem for path in self.directory.glob("*.json"))


__all__ = ["DeckRepository", "InMemoryDeckRepository", "JsonFileDeckRepository"]
