"""
flashdeck.review_log
--------------------

This module defines the ReviewLog class, the record of one accepted rating.

Decks keep the logs of every accepted rating so an item's schedule can be
replayed with Scheduler.reschedule_item and so stats can report progress per
day and response times per rating.

Classes:
    ReviewLog: One rating given to one item at one moment.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import TypedDict
import json
from typing_extensions import Self
from flashdeck.errors import InconsistentImport, InvalidRating
from flashdeck.item import field_type_problems, from_epoch_ms, to_epoch_ms
from flashdeck.rating import Rating

_REVIEW_LOG_FIELDS: dict[str, tuple[type, ...]] = {
    "item_id": (str,),
    "rating": (str,),
    "review_datetime": (int,),
    "review_duration": (int, type(None)),
}


class ReviewLogDict(TypedDict):
    """
    JSON-serializable dictionary representation of a ReviewLog object.
    """

    item_id: str
    rating: str
    review_datetime: int
    review_duration: int | None


@dataclass
class ReviewLog:
    """
    Represents one accepted rating of an item.

    Attributes:
        item_id: The id of the rated item.
        rating: The rating that was given.
        review_datetime: When the rating was given.
        review_duration: How long the learner took to answer, in milliseconds, or None if not measured.
    """

    item_id: str
    rating: Rating
    review_datetime: datetime
    review_duration: int | None = None

    def to_dict(self) -> ReviewLogDict:
        return {
            "item_id": self.item_id,
            "rating": self.rating.value,
            "review_datetime": to_epoch_ms(self.review_datetime),
            "review_duration": self.review_duration,
        }

    @classmethod
    def from_dict(cls, source_dict: ReviewLogDict) -> Self:
        """
        Creates a ReviewLog object from an existing dictionary.

        Raises:
            InconsistentImport: If a field is missing or mistyped, the rating is unknown,
                the timestamp is out of range or the duration is negative.
        """

        problems = field_type_problems(source_dict, _REVIEW_LOG_FIELDS, "review log")
        if problems:
            raise InconsistentImport(problems)

        try:
            rating = Rating.parse(source_dict["rating"])
        except InvalidRating as e:
            problems.append(f"review log: {e}")
        try:
            review_datetime = from_epoch_ms(source_dict["review_datetime"])
        except ValueError as e:
            problems.append(f"review log: review_datetime {e}")

        review_duration = source_dict["review_duration"]
        if review_duration is not None and review_duration < 0:
            problems.append(f"review log: review_duration {review_duration} is negative")

        if problems:
            raise InconsistentImport(problems)

        return cls(
            item_id=source_dict["item_id"],
            rating=rating,
            review_datetime=review_datetime,
            review_duration=review_duration,
        )

    def to_json(self, indent: int | str | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        source_dict: ReviewLogDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = ["ReviewLog"]
