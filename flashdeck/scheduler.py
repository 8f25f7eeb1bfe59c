"""
flashdeck.scheduler
-------------------

This module defines the Scheduler class as well as the default constants used in its calculations.

Classes:
    Scheduler: The SM-2 spaced-repetition scheduler.
"""

from __future__ import annotations
from collections.abc import Iterable
from datetime import datetime, timezone, timedelta
from copy import copy
import json
import math
from dataclasses import dataclass
from flashdeck.item import Item, INITIAL_EASE_FACTOR, MIN_EASE_FACTOR
from flashdeck.rating import Rating
from flashdeck.review_log import ReviewLog
from typing import TypedDict
from typing_extensions import Self

AGAIN_EASE_PENALTY = 0.2
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15
HARD_INTERVAL_MULTIPLIER = 1.2
EASY_INTERVAL_MULTIPLIER = 1.3


def round_half_up(value: float) -> int:
    """
    Rounds to the nearest integer, with halves rounded up.

    The builtin round() rounds halves to even, which would turn a 6.5 day interval into 6.
    """

    return math.floor(value + 0.5)


class SchedulerDict(TypedDict):
    """
    JSON-serializable dictionary representation of a Scheduler object.
    """

    initial_ease_factor: float
    minimum_ease_factor: float
    maximum_ease_factor: float | None
    again_ease_penalty: float
    hard_ease_penalty: float
    easy_ease_bonus: float
    hard_interval_multiplier: float
    easy_interval_multiplier: float


@dataclass(init=False)
class Scheduler:
    """
    The SM-2 scheduler.

    Maps an item and a rating to the item's next interval, ease factor and due date.

    Attributes:
        initial_ease_factor: The ease factor given to new or reset items.
        minimum_ease_factor: The floor below which an item's ease factor never drops.
        maximum_ease_factor: The ceiling for an item's ease factor or None for no ceiling.
        again_ease_penalty: How much an 'again' rating lowers the ease factor.
        hard_ease_penalty: How much a 'hard' rating lowers the ease factor.
        easy_ease_bonus: How much an 'easy' rating raises the ease factor.
        hard_interval_multiplier: The factor a 'hard' rating grows the interval by.
        easy_interval_multiplier: The bonus factor applied on top of the ease factor for an 'easy' rating.
    """

    initial_ease_factor: float
    minimum_ease_factor: float
    maximum_ease_factor: float | None
    again_ease_penalty: float
    hard_ease_penalty: float
    easy_ease_bonus: float
    hard_interval_multiplier: float
    easy_interval_multiplier: float

    def __init__(
        self,
        initial_ease_factor: float = INITIAL_EASE_FACTOR,
        minimum_ease_factor: float = MIN_EASE_FACTOR,
        maximum_ease_factor: float | None = None,
        again_ease_penalty: float = AGAIN_EASE_PENALTY,
        hard_ease_penalty: float = HARD_EASE_PENALTY,
        easy_ease_bonus: float = EASY_EASE_BONUS,
        hard_interval_multiplier: float = HARD_INTERVAL_MULTIPLIER,
        easy_interval_multiplier: float = EASY_INTERVAL_MULTIPLIER,
    ) -> None:
        self.initial_ease_factor = initial_ease_factor
        self.minimum_ease_factor = minimum_ease_factor
        self.maximum_ease_factor = maximum_ease_factor
        self.again_ease_penalty = again_ease_penalty
        self.hard_ease_penalty = hard_ease_penalty
        self.easy_ease_bonus = easy_ease_bonus
        self.hard_interval_multiplier = hard_interval_multiplier
        self.easy_interval_multiplier = easy_interval_multiplier

        self._validate_parameters()

    def _validate_parameters(self) -> None:
        error_messages = []

        if self.minimum_ease_factor < MIN_EASE_FACTOR:
            error_messages.append(
                f"minimum_ease_factor = {self.minimum_ease_factor} is below {MIN_EASE_FACTOR}"
            )
        if self.initial_ease_factor < self.minimum_ease_factor:
            error_messages.append(
                f"initial_ease_factor = {self.initial_ease_factor} is below minimum_ease_factor = {self.minimum_ease_factor}"
            )
        if (
            self.maximum_ease_factor is not None
            and self.maximum_ease_factor < self.initial_ease_factor
        ):
            error_messages.append(
                f"maximum_ease_factor = {self.maximum_ease_factor} is below initial_ease_factor = {self.initial_ease_factor}"
            )

        for name in ("again_ease_penalty", "hard_ease_penalty", "easy_ease_bonus"):
            value = getattr(self, name)
            if value < 0:
                error_messages.append(f"{name} = {value} is negative")

        if self.hard_interval_multiplier <= 0:
            error_messages.append(
                f"hard_interval_multiplier = {self.hard_interval_multiplier} is not positive"
            )
        if self.easy_interval_multiplier < 1:
            error_messages.append(
                f"easy_interval_multiplier = {self.easy_interval_multiplier} is below 1"
            )

        if len(error_messages) > 0:
            raise ValueError(
                "One or more scheduler parameters are invalid:\n"
                + "\n".join(error_messages)
            )

    def review_item(
        self,
        item: Item,
        rating: Rating | str,
        review_datetime: datetime | None = None,
        review_duration: int | None = None,
    ) -> tuple[Item, ReviewLog]:
        """
        Reviews an item with a given rating at a given time.

        The item passed in is left untouched; an updated copy is returned.

        Args:
            item: The item being reviewed.
            rating: The chosen rating for the item being reviewed.
            review_datetime: The date and time of the review. Defaults to the current UTC time.
            review_duration: The number of milliseconds it took to review the item or None if unspecified.

        Returns:
            tuple[Item,ReviewLog]: A tuple containing the updated, reviewed item and its corresponding review log.

        Raises:
            InvalidRating: If `rating` is not one of the four rating tokens.
            ValueError: If the `review_datetime` argument is not timezone-aware and set to UTC.
        """

        rating = Rating.parse(rating)

        if review_datetime is not None and (
            (review_datetime.tzinfo is None) or (review_datetime.tzinfo != timezone.utc)
        ):
            raise ValueError("datetime must be timezone-aware and set to UTC")

        item = copy(item)

        if review_datetime is None:
            review_datetime = datetime.now(timezone.utc)

        match rating:
            case Rating.Again:
                item.repetitions = 0
                item.interval = 1
                item.ease_factor = self._clamp_ease_factor(
                    ease_factor=item.ease_factor - self.again_ease_penalty
                )

            case Rating.Hard:
                # repetitions stay the same
                item.interval = self._next_interval(
                    interval=item.interval, factor=self.hard_interval_multiplier
                )
                item.ease_factor = self._clamp_ease_factor(
                    ease_factor=item.ease_factor - self.hard_ease_penalty
                )

            case Rating.Good:
                item.repetitions += 1
                item.interval = self._next_interval(
                    interval=item.interval, factor=item.ease_factor
                )

            case Rating.Easy:
                item.repetitions += 1
                # the raised ease factor applies to this review's interval
                item.ease_factor = self._clamp_ease_factor(
                    ease_factor=item.ease_factor + self.easy_ease_bonus
                )
                item.interval = self._next_interval(
                    interval=item.interval,
                    factor=item.ease_factor * self.easy_interval_multiplier,
                )
                item.retired = True

        item.due = review_datetime + timedelta(days=item.interval)
        item.last_review = review_datetime

        review_log = ReviewLog(
            item_id=item.item_id,
            rating=rating,
            review_datetime=review_datetime,
            review_duration=review_duration,
        )

        return item, review_log

    def reset_item(self, item: Item, now: datetime | None = None) -> Item:
        """
        Returns a copy of the item with its scheduling state set back to that of a new item.

        The item's id, prompt, response and creation date are kept.

        Args:
            item: The item to reset.
            now: The date and time of the reset; the reset item is due at this time.

        Returns:
            Item: The reset item.
        """

        if now is None:
            now = datetime.now(timezone.utc)

        return Item(
            item_id=item.item_id,
            prompt=item.prompt,
            response=item.response,
            ease_factor=self.initial_ease_factor,
            due=now,
            created_at=item.created_at,
        )

    def reschedule_item(self, item: Item, review_logs: Iterable[ReviewLog]) -> Item:
        """
        Reschedules the given item with the current scheduler by replaying that item's review logs.

        If the item was previously scheduled with a differently configured scheduler, this
        recomputes its state as if it had always been scheduled with this one.

        Args:
            item: The item to be rescheduled.
            review_logs: That item's review logs (order doesn't matter).

        Returns:
            Item: A new item that has been rescheduled with this scheduler.

        Raises:
            ValueError: If any of the review logs are for an item other than the one specified.
        """

        review_logs = list(review_logs)
        for review_log in review_logs:
            if review_log.item_id != item.item_id:
                raise ValueError(
                    f"ReviewLog item_id {review_log.item_id!r} does not match Item item_id {item.item_id!r}"
                )

        review_logs.sort(key=lambda log: log.review_datetime)

        rescheduled_item = self.reset_item(item, now=item.created_at)

        for review_log in review_logs:
            rescheduled_item, _ = self.review_item(
                item=rescheduled_item,
                rating=review_log.rating,
                review_datetime=review_log.review_datetime,
            )

        return rescheduled_item

    def to_dict(
        self,
    ) -> SchedulerDict:
        """
        Returns a dictionary representation of the Scheduler object.

        Returns:
            SchedulerDict: A dictionary representation of the Scheduler object.
        """

        return {
            "initial_ease_factor": self.initial_ease_factor,
            "minimum_ease_factor": self.minimum_ease_factor,
            "maximum_ease_factor": self.maximum_ease_factor,
            "again_ease_penalty": self.again_ease_penalty,
            "hard_ease_penalty": self.hard_ease_penalty,
            "easy_ease_bonus": self.easy_ease_bonus,
            "hard_interval_multiplier": self.hard_interval_multiplier,
            "easy_interval_multiplier": self.easy_interval_multiplier,
        }

    @classmethod
    def from_dict(cls, source_dict: SchedulerDict) -> Self:
        """
        Creates a Scheduler object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing Scheduler object.

        Returns:
            Self: A Scheduler object created from the provided dictionary.
        """

        return cls(
            initial_ease_factor=source_dict["initial_ease_factor"],
            minimum_ease_factor=source_dict["minimum_ease_factor"],
            maximum_ease_factor=source_dict["maximum_ease_factor"],
            again_ease_penalty=source_dict["again_ease_penalty"],
            hard_ease_penalty=source_dict["hard_ease_penalty"],
            easy_ease_bonus=source_dict["easy_ease_bonus"],
            hard_interval_multiplier=source_dict["hard_interval_multiplier"],
            easy_interval_multiplier=source_dict["easy_interval_multiplier"],
        )

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the Scheduler object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the Scheduler object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates a Scheduler object from a JSON-serialized string.

        Args:
            source_json: A JSON-serialized string of an existing Scheduler object.

        Returns:
            Self: A Scheduler object created from the JSON string.
        """

        source_dict: SchedulerDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)

    def _clamp_ease_factor(self, *, ease_factor: float) -> float:
        ease_factor = max(ease_factor, self.minimum_ease_factor)

        if self.maximum_ease_factor is not None:
            ease_factor = min(ease_factor, self.maximum_ease_factor)

        return ease_factor

    def _next_interval(self, *, interval: int, factor: float) -> int:
        next_interval = round_half_up(interval * factor)  # intervals are full days

        # must be at least 1 day long
        next_interval = max(next_interval, 1)

        return next_interval


__all__ = ["Scheduler"]
