"""
flashdeck.item
--------------

This module defines the Item class, the persisted scheduling state of one learning item.

Classes:
    Item: Represents a single prompt/response unit under spaced-repetition management.
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import json
import math
from typing import Any, TypedDict
from uuid import uuid4
from typing_extensions import Self
from flashdeck.errors import InconsistentImport

INITIAL_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def to_epoch_ms(value: datetime) -> int:
    return (value - _EPOCH) // _ONE_MS


def from_epoch_ms(value: int) -> datetime:
    """
    Converts integer epoch milliseconds to a UTC datetime.

    Raises:
        ValueError: If the timestamp falls outside the range datetime can represent.
    """

    try:
        return _EPOCH + timedelta(milliseconds=value)
    except OverflowError as e:
        raise ValueError(f"timestamp {value} ms is out of range") from e


def field_type_problems(
    source_dict: Mapping[str, Any],
    fields: Mapping[str, tuple[type, ...]],
    label: str,
) -> list[str]:
    """
    Checks the JSON types of a serialized object's fields without coercing anything.

    A bool never passes for an int or a float, even though it is one in Python.

    Args:
        source_dict: The serialized object.
        fields: The accepted types of each required key.
        label: Prefix for the problem descriptions.

    Returns:
        list[str]: One description per missing or mistyped field.
    """

    if not isinstance(source_dict, Mapping):
        return [f"{label}: expected an object, got {type(source_dict).__name__}"]

    problems = []
    for key, types in fields.items():
        if key not in source_dict:
            problems.append(f"{label}: missing {key!r}")
            continue

        value = source_dict[key]
        if (isinstance(value, bool) and bool not in types) or not isinstance(
            value, types
        ):
            expected = " or ".join(
                "null" if t is type(None) else t.__name__ for t in types
            )
            problems.append(f"{label}: {key} {value!r} is not {expected}")

    return problems


_ITEM_FIELDS: dict[str, tuple[type, ...]] = {
    "item_id": (str,),
    "prompt": (str,),
    "response": (str,),
    "repetitions": (int,),
    "ease_factor": (float, int),
    "interval": (int,),
    "due": (int,),
    "retired": (bool,),
    "created_at": (int,),
    "last_review": (int, type(None)),
}


class ItemDict(TypedDict):
    """
    JSON-serializable dictionary representation of an Item object.
    """

    item_id: str
    prompt: str
    response: str
    repetitions: int
    ease_factor: float
    interval: int
    due: int
    retired: bool
    created_at: int
    last_review: int | None


@dataclass(init=False)
class Item:
    """
    Represents a single prompt/response unit under spaced-repetition management.

    Attributes:
        item_id: The id of the item. Defaults to a random uuid4 hex string.
        prompt: The question side of the item.
        response: The answer side of the item.
        repetitions: The number of consecutive successful recalls.
        ease_factor: Multiplier controlling how quickly the interval grows. Never below 1.3.
        interval: The number of days until the next scheduled exposure. 0 until first reviewed.
        due: The date and time when the item is due next.
        retired: Whether the item has been rated easy and left the rotation until the deck restarts.
        created_at: The date and time the item was created.
        last_review: The date and time of the item's last review.
    """

    item_id: str
    prompt: str
    response: str
    repetitions: int
    ease_factor: float
    interval: int
    due: datetime
    retired: bool
    created_at: datetime
    last_review: datetime | None

    def __init__(
        self,
        prompt: str,
        response: str,
        item_id: str | None = None,
        repetitions: int = 0,
        ease_factor: float = INITIAL_EASE_FACTOR,
        interval: int = 0,
        due: datetime | None = None,
        retired: bool = False,
        created_at: datetime | None = None,
        last_review: datetime | None = None,
    ) -> None:
        if item_id is None:
            item_id = uuid4().hex
        self.item_id = item_id

        self.prompt = prompt
        self.response = response

        self.repetitions = repetitions
        self.ease_factor = ease_factor
        self.interval = interval

        if created_at is None:
            created_at = datetime.now(timezone.utc)
        self.created_at = created_at

        # new items are due as soon as they exist
        if due is None:
            due = created_at
        self.due = due

        self.retired = retired
        self.last_review = last_review

    def is_due(self, now: datetime | None = None) -> bool:
        """
        Whether the item is due for review at the given date and time.

        Args:
            now: The current date and time. Defaults to the current UTC time.

        Returns:
            bool: True if the item's due date is at or before `now`.
        """

        if now is None:
            now = datetime.now(timezone.utc)

        return self.due <= now

    def invariant_violations(self) -> list[str]:
        """
        Lists every scheduling invariant the item currently breaks.

        Returns:
            list[str]: Human-readable descriptions, empty when the item is consistent.
        """

        problems = []
        label = f"item {self.item_id!r}"

        if not self.prompt.strip():
            problems.append(f"{label}: prompt is empty")
        if not self.response.strip():
            problems.append(f"{label}: response is empty")
        if self.repetitions < 0:
            problems.append(f"{label}: repetitions {self.repetitions} is negative")
        if not math.isfinite(self.ease_factor):
            problems.append(f"{label}: ease_factor {self.ease_factor} is not finite")
        elif self.ease_factor < MIN_EASE_FACTOR:
            problems.append(
                f"{label}: ease_factor {self.ease_factor} is below {MIN_EASE_FACTOR}"
            )
        if self.interval < 0:
            problems.append(f"{label}: interval {self.interval} is negative")

        if self.last_review is not None:
            if self.interval < 1:
                problems.append(f"{label}: reviewed item has interval {self.interval}")
            else:
                try:
                    expected_due = self.last_review + timedelta(days=self.interval)
                except OverflowError:
                    problems.append(f"{label}: interval {self.interval} is out of range")
                else:
                    if self.due != expected_due:
                        problems.append(f"{label}: due is not last_review + interval days")

        return problems

    def to_dict(self) -> ItemDict:
        """
        Returns a JSON-serializable dictionary representation of the Item object.

        Timestamps are stored as integer epoch milliseconds.

        Returns:
            A dictionary representation of the Item object.
        """

        return {
            "item_id": self.item_id,
            "prompt": self.prompt,
            "response": self.response,
            "repetitions": self.repetitions,
            "ease_factor": self.ease_factor,
            "interval": self.interval,
            "due": to_epoch_ms(self.due),
            "retired": self.retired,
            "created_at": to_epoch_ms(self.created_at),
            "last_review": (
                to_epoch_ms(self.last_review) if self.last_review is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, source_dict: ItemDict) -> Self:
        """
        Creates an Item object from an existing dictionary.

        Values are taken as they are; a field of the wrong JSON type is reported, never converted.

        Args:
            source_dict: A dictionary representing an existing Item object.

        Returns:
            An Item object created from the provided dictionary.

        Raises:
            InconsistentImport: If a field is missing, mistyped or holds an out-of-range timestamp.
        """

        label = "item"
        if isinstance(source_dict, Mapping):
            label = f"item {source_dict.get('item_id')!r}"

        problems = field_type_problems(source_dict, _ITEM_FIELDS, label)
        if problems:
            raise InconsistentImport(problems)

        timestamps: dict[str, datetime | None] = {}
        for key in ("due", "created_at", "last_review"):
            value = source_dict[key]
            if value is None:
                timestamps[key] = None
                continue
            try:
                timestamps[key] = from_epoch_ms(value)
            except ValueError as e:
                problems.append(f"{label}: {key} {e}")
        if problems:
            raise InconsistentImport(problems)

        return cls(
            item_id=source_dict["item_id"],
            prompt=source_dict["prompt"],
            response=source_dict["response"],
            repetitions=source_dict["repetitions"],
            ease_factor=float(source_dict["ease_factor"]),
            interval=source_dict["interval"],
            due=timestamps["due"],
            retired=source_dict["retired"],
            created_at=timestamps["created_at"],
            last_review=timestamps["last_review"],
        )

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the Item object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the Item object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates an Item object from a JSON-serialized string.

        Args:
            source_json: A JSON-serialized string of an existing Item object.

        Returns:
            Self: An Item object created from the JSON string.
        """

        source_dict: ItemDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = ["Item"]
