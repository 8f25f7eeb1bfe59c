from __future__ import annotations
from enum import Enum
from flashdeck.errors import InvalidRating


class Rating(str, Enum):
    """
    Enum representing the four possible ratings when reviewing an item.

    Members compare equal to their string tokens, so ``Rating.Good == "good"``.
    """

    Again = "again"
    Hard = "hard"
    Good = "good"
    Easy = "easy"

    @classmethod
    def parse(cls, value: object) -> Rating:
        """
        Resolves a Rating member or raw token into a Rating.

        Raises:
            InvalidRating: If `value` is not one of the four rating tokens.
        """

        try:
            return cls(value)
        except (ValueError, TypeError):
            raise InvalidRating(value) from None


__all__ = ["Rating"]
