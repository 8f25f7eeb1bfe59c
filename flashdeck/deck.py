"""
flashdeck.deck
--------------

This module defines the Deck class and the RoundEngine that walks a deck round by round.

Classes:
    Deck: An ordered collection of items plus its traversal state.
    RoundEngine: Applies ratings, round advances and restarts to decks.
"""

from __future__ import annotations
from collections import Counter
from collections.abc import Iterable, Mapping
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
from typing import TypedDict
from uuid import uuid4
from typing_extensions import Self
from flashdeck.errors import (
    InconsistentImport,
    InvalidTransition,
    NoActiveItem,
)
from flashdeck.item import (
    Item,
    ItemDict,
    field_type_problems,
    from_epoch_ms,
    to_epoch_ms,
)
from flashdeck.rating import Rating
from flashdeck.review_log import ReviewLog, ReviewLogDict
from flashdeck.scheduler import Scheduler
from flashdeck.state import DeckState

logger = logging.getLogger(__name__)

_RATING_TOKENS = frozenset(rating.value for rating in Rating)

_DECK_FIELDS: dict[str, tuple[type, ...]] = {
    "deck_id": (str,),
    "items": (list,),
    "round_order": (list,),
    "cursor": (int,),
    "round": (int,),
    "round_complete": (bool,),
    "deck_complete": (bool,),
    "rating_tally": (dict,),
    "rating_history": (list,),
    "created_at": (int,),
    "last_studied": (int, type(None)),
}

# absent optional keys read as empty
_OPTIONAL_DECK_FIELDS: dict[str, tuple[type, ...]] = {
    "name": (str,),
    "review_logs": (list,),
}


def _is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _empty_tally() -> dict[Rating, int]:
    return {rating: 0 for rating in Rating}


def _active_positions(items: list[Item]) -> list[int]:
    positions = [position for position, item in enumerate(items) if not item.retired]

    # a fully retired deck is recycled so it stays drillable
    if not positions:
        positions = list(range(len(items)))

    return positions


class DeckDict(TypedDict):
    """
    JSON-serializable dictionary representation of a Deck object.
    """

    deck_id: str
    name: str
    items: list[ItemDict]
    round_order: list[int]
    cursor: int
    round: int
    round_complete: bool
    deck_complete: bool
    rating_tally: dict[str, int]
    rating_history: list[str]
    review_logs: list[ReviewLogDict]
    created_at: int
    last_studied: int | None


@dataclass(init=False)
class Deck:
    """
    Represents an ordered collection of items together with its round-based traversal state.

    Attributes:
        deck_id: The id of the deck. Defaults to a random uuid4 hex string.
        name: A display name for the deck.
        items: The deck's items in insertion order.
        round_order: Positions into `items` that are active in the current round.
        cursor: Index into `round_order` of the item currently being reviewed.
        round: The current round, starting at 1.
        state: Where the deck is in its traversal.
        rating_tally: The number of times each rating was given since the last restart.
        rating_history: Every rating given since the last restart, oldest first.
        review_logs: The log of every accepted rating, oldest first. Kept across restarts;
            an item's logs are dropped when the item is reset.
        created_at: The date and time the deck was created.
        last_studied: The date and time of the last accepted rating or None.
    """

    deck_id: str
    name: str
    items: list[Item]
    round_order: list[int]
    cursor: int
    round: int
    state: DeckState
    rating_tally: dict[Rating, int]
    rating_history: list[Rating]
    review_logs: list[ReviewLog]
    created_at: datetime
    last_studied: datetime | None

    def __init__(
        self,
        items: Iterable[Item],
        deck_id: str | None = None,
        name: str = "",
        round_order: Iterable[int] | None = None,
        cursor: int = 0,
        round: int = 1,
        state: DeckState = DeckState.Reviewing,
        rating_tally: dict[Rating, int] | None = None,
        rating_history: Iterable[Rating] | None = None,
        review_logs: Iterable[ReviewLog] | None = None,
        created_at: datetime | None = None,
        last_studied: datetime | None = None,
    ) -> None:
        if deck_id is None:
            deck_id = uuid4().hex
        self.deck_id = deck_id
        self.name = name

        self.items = list(items)

        if round_order is None:
            round_order = _active_positions(self.items)
        self.round_order = list(round_order)

        self.cursor = cursor
        self.round = round
        self.state = state

        tally = _empty_tally()
        if rating_tally is not None:
            tally.update(rating_tally)
        self.rating_tally = tally

        self.rating_history = list(rating_history) if rating_history else []
        self.review_logs = list(review_logs) if review_logs else []

        if created_at is None:
            created_at = datetime.now(timezone.utc)
        self.created_at = created_at
        self.last_studied = last_studied

    @property
    def current_item(self) -> Item | None:
        """
        The item under the cursor, or None when the deck is not in the Reviewing state.
        """

        if self.state != DeckState.Reviewing:
            return None
        if not 0 <= self.cursor < len(self.round_order):
            return None

        return self.items[self.round_order[self.cursor]]

    @property
    def round_complete(self) -> bool:
        return self.state == DeckState.RoundComplete

    @property
    def deck_complete(self) -> bool:
        return self.state == DeckState.DeckComplete

    def get_item(self, item_id: str) -> Item:
        """
        Looks up an item by id.

        Raises:
            KeyError: If the deck has no item with that id.
        """

        for item in self.items:
            if item.item_id == item_id:
                return item

        raise KeyError(item_id)

    def item_review_logs(self, item_id: str) -> list[ReviewLog]:
        return [log for log in self.review_logs if log.item_id == item_id]

    def to_dict(self) -> DeckDict:
        """
        Returns a JSON-serializable dictionary representation of the Deck object.

        This method is specifically useful for storing Deck objects in a database.

        Returns:
            A dictionary representation of the Deck object.
        """

        return {
            "deck_id": self.deck_id,
            "name": self.name,
            "items": [item.to_dict() for item in self.items],
            "round_order": list(self.round_order),
            "cursor": self.cursor,
            "round": self.round,
            "round_complete": self.round_complete,
            "deck_complete": self.deck_complete,
            "rating_tally": {
                rating.value: self.rating_tally[rating] for rating in Rating
            },
            "rating_history": [rating.value for rating in self.rating_history],
            "review_logs": [log.to_dict() for log in self.review_logs],
            "created_at": to_epoch_ms(self.created_at),
            "last_studied": (
                to_epoch_ms(self.last_studied)
                if self.last_studied is not None
                else None
            ),
        }

    @classmethod
    def from_dict(cls, source_dict: DeckDict) -> Self:
        """
        Creates a Deck object from an existing dictionary, re-validating every invariant.

        Nothing is coerced or repaired: every value must already have its JSON type
        and every problem found is reported together.

        Args:
            source_dict: A dictionary representing an existing Deck object.

        Returns:
            A Deck object created from the provided dictionary.

        Raises:
            InconsistentImport: If the dictionary is malformed or describes an inconsistent deck.
        """

        if not isinstance(source_dict, Mapping):
            raise InconsistentImport(
                [f"deck: expected an object, got {type(source_dict).__name__}"]
            )

        problems = field_type_problems(source_dict, _DECK_FIELDS, "deck")
        problems.extend(
            field_type_problems(
                source_dict,
                {
                    key: types
                    for key, types in _OPTIONAL_DECK_FIELDS.items()
                    if key in source_dict
                },
                "deck",
            )
        )
        if problems:
            raise cls._rejected(source_dict.get("deck_id"), problems)

        deck_id = source_dict["deck_id"]
        name = source_dict.get("name", "")

        # structure
        items = []
        for item_dict in source_dict["items"]:
            try:
                items.append(Item.from_dict(item_dict))
            except InconsistentImport as e:
                problems.extend(e.problems)

        review_logs = []
        for log_dict in source_dict.get("review_logs", []):
            try:
                review_logs.append(ReviewLog.from_dict(log_dict))
            except InconsistentImport as e:
                problems.extend(e.problems)

        round_order = source_dict["round_order"]
        for position in round_order:
            if not _is_count(position):
                problems.append(f"round_order entry {position!r} is not a position")

        timestamps: dict[str, datetime | None] = {"last_studied": None}
        for key in ("created_at", "last_studied"):
            if source_dict[key] is None:
                continue
            try:
                timestamps[key] = from_epoch_ms(source_dict[key])
            except ValueError as e:
                problems.append(f"deck: {key} {e}")

        if problems:
            raise cls._rejected(deck_id, problems)

        # items
        id_counts = Counter(item.item_id for item in items)
        for item_id, count in id_counts.items():
            if count > 1:
                problems.append(f"item id {item_id!r} appears {count} times")
        for item in items:
            problems.extend(item.invariant_violations())
        for log in review_logs:
            if log.item_id not in id_counts:
                problems.append(f"review log for unknown item {log.item_id!r}")

        # rating tally and history
        raw_tally = source_dict["rating_tally"]
        raw_history = source_dict["rating_history"]

        tally: dict[Rating, int] = {}
        for token, count in raw_tally.items():
            if token not in _RATING_TOKENS:
                problems.append(f"rating_tally has unknown rating {token!r}")
                continue
            if not _is_count(count):
                problems.append(f"rating_tally[{token!r}] = {count!r} is not a count")
                continue
            tally[Rating(token)] = count
        for rating in Rating:
            if rating.value not in raw_tally:
                problems.append(f"rating_tally is missing {rating.value!r}")

        history = []
        for token in raw_history:
            if not isinstance(token, str) or token not in _RATING_TOKENS:
                problems.append(f"rating_history has unknown rating {token!r}")
                continue
            history.append(Rating(token))

        if sum(tally.values()) != len(raw_history):
            problems.append(
                f"rating_history has {len(raw_history)} entries but rating_tally sums to {sum(tally.values())}"
            )
        history_counts = Counter(history)
        for rating, count in tally.items():
            if history_counts[rating] != count:
                problems.append(
                    f"rating_tally[{rating.value!r}] = {count} but rating_history has {history_counts[rating]}"
                )

        # traversal state
        round_ = source_dict["round"]
        cursor = source_dict["cursor"]
        round_complete = source_dict["round_complete"]
        deck_complete = source_dict["deck_complete"]

        if round_ < 1:
            problems.append(f"round {round_} is below 1")

        if round_complete and deck_complete:
            problems.append("round_complete and deck_complete are both set")
        state = (
            DeckState.DeckComplete
            if deck_complete
            else DeckState.RoundComplete
            if round_complete
            else DeckState.Reviewing
        )

        for position in round_order:
            if not position < len(items):
                problems.append(
                    f"round_order position {position} is out of range for {len(items)} items"
                )
        if len(set(round_order)) != len(round_order):
            problems.append("round_order has duplicate positions")

        if not 0 <= cursor <= len(round_order):
            problems.append(f"cursor {cursor} is outside [0, {len(round_order)}]")
        elif state == DeckState.Reviewing and cursor == len(round_order):
            problems.append("cursor is past the end of round_order while reviewing")
        elif state != DeckState.Reviewing and cursor < len(round_order):
            problems.append(
                f"cursor {cursor} is inside round_order while the round is complete"
            )

        active = [item.item_id for item in items if not item.retired]
        if state == DeckState.DeckComplete and active:
            problems.append(
                f"deck is complete but {len(active)} item(s) are not retired"
            )
        elif state == DeckState.RoundComplete and items and not active:
            problems.append("round is complete but every item is retired")

        if problems:
            raise cls._rejected(deck_id, problems)

        return cls(
            items=items,
            deck_id=deck_id,
            name=name,
            round_order=round_order,
            cursor=cursor,
            round=round_,
            state=state,
            rating_tally=tally,
            rating_history=history,
            review_logs=review_logs,
            created_at=timestamps["created_at"],
            last_studied=timestamps["last_studied"],
        )

    @staticmethod
    def _rejected(deck_id: object, problems: list[str]) -> InconsistentImport:
        logger.warning(
            "Rejected inconsistent deck %s with %d problem(s)", deck_id, len(problems)
        )
        return InconsistentImport(problems)

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the Deck object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the Deck object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates a Deck object from a JSON-serialized string.

        Args:
            source_json: A JSON-serialized string of an existing Deck object.

        Returns:
            Self: A Deck object created from the JSON string.

        Raises:
            InconsistentImport: If the JSON is not valid or describes an inconsistent deck.
        """

        try:
            source_dict: DeckDict = json.loads(source_json)
        except json.JSONDecodeError as e:
            raise InconsistentImport([f"invalid JSON: {e}"]) from e

        if not isinstance(source_dict, dict):
            raise InconsistentImport(["deck JSON is not an object"])

        return cls.from_dict(source_dict=source_dict)




class RoundEngine:
    """
    Walks decks through their rounds.

    Every operation returns a new Deck and leaves the deck it was given untouched,
    so a rejected operation can never leave a deck half-updated.

    Attributes:
        scheduler: The scheduler applied to each rated item.
    """

    scheduler: Scheduler

    def __init__(self, scheduler: Scheduler | None = None) -> None:
        if scheduler is None:
            scheduler = Scheduler()
        self.scheduler = scheduler

    def create_deck(
        self,
        pairs: Iterable[tuple[str, str]],
        name: str = "",
        now: datetime | None = None,
        deck_id: str | None = None,
    ) -> Deck:
        """
        Creates a new deck from (prompt, response) pairs.

        Args:
            pairs: The prompt and response text of each item, in deck order.
            name: A display name for the deck.
            now: The creation date and time. Defaults to the current UTC time.
            deck_id: An explicit deck id. Defaults to a random uuid4 hex string.

        Returns:
            Deck: A deck in the Reviewing state at round 1 with every item due now.

        Raises:
            ValueError: If there are no pairs or a prompt or response is empty.
        """

        if now is None:
            now = datetime.now(timezone.utc)

        items = []
        for index, (prompt, response) in enumerate(pairs):
            if not prompt.strip() or not response.strip():
                raise ValueError(f"pair {index} has an empty prompt or response")
            items.append(
                Item(
                    prompt=prompt,
                    response=response,
                    ease_factor=self.scheduler.initial_ease_factor,
                    created_at=now,
                )
            )

        if not items:
            raise ValueError("a deck needs at least one item")

        deck = Deck(items=items, deck_id=deck_id, name=name, created_at=now)
        logger.info("Created deck %s with %d items", deck.deck_id, len(items))

        return deck

    def submit_rating(
        self,
        deck: Deck,
        rating: Rating | str,
        now: datetime | None = None,
        review_duration: int | None = None,
    ) -> tuple[Deck, ReviewLog]:
        """
        Rates the deck's current item and moves the cursor on.

        Args:
            deck: The deck being reviewed.
            rating: The rating for the current item.
            now: The date and time of the review. Defaults to the current UTC time.
            review_duration: The number of milliseconds the review took or None if unspecified.

        Returns:
            tuple[Deck,ReviewLog]: The updated deck and the log of the review.

        Raises:
            InvalidRating: If `rating` is not one of the four rating tokens.
            NoActiveItem: If the deck's round or the whole deck is complete.
            InvalidTransition: If the deck is in an unrecognized state.
            ValueError: If `now` is not timezone-aware and set to UTC.
        """

        rating = Rating.parse(rating)

        match deck.state:
            case DeckState.Reviewing:
                pass
            case DeckState.RoundComplete | DeckState.DeckComplete:
                raise NoActiveItem(
                    f"deck {deck.deck_id} has no active item in state {deck.state.name}"
                )
            case _:
                raise InvalidTransition(f"deck {deck.deck_id} is in unknown state {deck.state!r}")

        if not 0 <= deck.cursor < len(deck.round_order):
            raise InvalidTransition(
                f"deck {deck.deck_id} cursor {deck.cursor} is outside its round of {len(deck.round_order)}"
            )

        position = deck.round_order[deck.cursor]
        reviewed_item, review_log = self.scheduler.review_item(
            item=deck.items[position],
            rating=rating,
            review_datetime=now,
            review_duration=review_duration,
        )

        deck = deepcopy(deck)
        deck.items[position] = reviewed_item
        deck.rating_history.append(rating)
        deck.rating_tally[rating] += 1
        deck.review_logs.append(review_log)
        deck.last_studied = review_log.review_datetime
        deck.cursor += 1

        if deck.cursor >= len(deck.round_order):
            if any(not item.retired for item in deck.items):
                deck.state = DeckState.RoundComplete
            else:
                deck.state = DeckState.DeckComplete
            logger.debug(
                "Deck %s finished round %d: %s", deck.deck_id, deck.round, deck.state.name
            )

        return deck, review_log

    def advance_round(self, deck: Deck) -> Deck:
        """
        Starts the next round over the items that are not retired.

        If every item is retired, the next round covers the whole deck.

        Raises:
            InvalidTransition: If the deck is not in the RoundComplete state.
        """

        if deck.state != DeckState.RoundComplete:
            raise InvalidTransition(
                f"cannot advance deck {deck.deck_id} from state {getattr(deck.state, 'name', deck.state)}"
            )

        deck = deepcopy(deck)
        deck.round += 1
        deck.round_order = _active_positions(deck.items)
        deck.cursor = 0
        deck.state = DeckState.Reviewing

        logger.debug(
            "Deck %s started round %d with %d items",
            deck.deck_id,
            deck.round,
            len(deck.round_order),
        )

        return deck

    def restart(self, deck: Deck) -> Deck:
        """
        Returns the deck to round 1 with every item back in rotation and the rating history cleared.

        Item scheduling state (intervals, ease factors, due dates) and the review logs are kept.

        Raises:
            InvalidTransition: If the deck is in an unrecognized state.
        """

        if not isinstance(deck.state, DeckState):
            raise InvalidTransition(f"deck {deck.deck_id} is in unknown state {deck.state!r}")

        deck = deepcopy(deck)
        for item in deck.items:
            item.retired = False
        deck.round = 1
        deck.round_order = list(range(len(deck.items)))
        deck.cursor = 0
        deck.rating_tally = _empty_tally()
        deck.rating_history = []
        deck.state = DeckState.Reviewing

        logger.debug("Deck %s restarted", deck.deck_id)

        return deck

    def reset_item(
        self, deck: Deck, item_id: str, now: datetime | None = None
    ) -> Deck:
        """
        Resets one item's scheduling state to that of a new item and drops its review logs.

        The round in progress is untouched; a reset item that was retired rejoins
        the rotation when the next round starts. A completed deck has an active
        item again afterwards, so it moves back to RoundComplete.

        Raises:
            KeyError: If the deck has no item with that id.
        """

        for position, item in enumerate(deck.items):
            if item.item_id == item_id:
                break
        else:
            raise KeyError(item_id)

        reset = self.scheduler.reset_item(item, now=now)

        deck = deepcopy(deck)
        deck.items[position] = reset
        deck.review_logs = [log for log in deck.review_logs if log.item_id != item_id]
        if deck.state == DeckState.DeckComplete:
            deck.state = DeckState.RoundComplete
            logger.debug("Deck %s reopened by resetting item %s", deck.deck_id, item_id)

        return deck

    def reschedule_item(self, deck: Deck, item_id: str) -> Deck:
        """
        Recomputes one item's scheduling state by replaying its stored review logs
        with this engine's scheduler.

        Useful after changing scheduler parameters. Traversal state, including the
        item's retired flag, is untouched.

        Raises:
            KeyError: If the deck has no item with that id.
        """

        for position, item in enumerate(deck.items):
            if item.item_id == item_id:
                break
        else:
            raise KeyError(item_id)

        rescheduled = self.scheduler.reschedule_item(item, deck.item_review_logs(item_id))
        # retirement belongs to the deck's traversal, not to the replayed schedule
        rescheduled.retired = item.retired

        deck = deepcopy(deck)
        deck.items[position] = rescheduled

        return deck


__all__ = ["Deck", "RoundEngine"]
