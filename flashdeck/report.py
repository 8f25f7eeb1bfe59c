"""
flashdeck.report
----------------

This module defines the optional DeckReport class, which lays a deck out as pandas DataFrames.
"""

from datetime import datetime, timezone
from flashdeck.deck import Deck
from flashdeck.rating import Rating
from flashdeck.stats import DIFFICULTY_LEVELS, difficulty_level

try:
    import pandas as pd

    ITEM_COLUMNS = [
        "item_id",
        "prompt",
        "repetitions",
        "ease_factor",
        "interval",
        "due",
        "last_review",
        "retired",
        "is_due",
        "difficulty",
    ]

    REVIEW_LOG_COLUMNS = ["item_id", "rating", "review_datetime", "review_duration"]

    class DeckReport:
        """
        Tabular views of a deck for analysis and export.

        Attributes:
            deck: The deck being reported on.
            now: The date and time against which items are checked for being due.
        """

        deck: Deck
        now: datetime

        def __init__(self, deck: Deck, now: datetime | None = None) -> None:
            if now is None:
                now = datetime.now(timezone.utc)

            self.deck = deck
            self.now = now

        def items_frame(self) -> pd.DataFrame:
            """
            One row per item, in deck order, with its scheduling state.
            """

            rows = [
                {
                    "item_id": item.item_id,
                    "prompt": item.prompt,
                    "repetitions": item.repetitions,
                    "ease_factor": item.ease_factor,
                    "interval": item.interval,
                    "due": item.due,
                    "last_review": item.last_review,
                    "retired": item.retired,
                    "is_due": item.is_due(self.now),
                    "difficulty": difficulty_level(item),
                }
                for item in self.deck.items
            ]

            return pd.DataFrame(rows, columns=ITEM_COLUMNS)

        def ratings_frame(self) -> pd.DataFrame:
            """
            Count and share of each rating since the last restart, indexed by rating token.
            """

            counts = pd.Series(
                {rating.value: self.deck.rating_tally[rating] for rating in Rating},
                name="count",
                dtype="int64",
            )
            total = int(counts.sum())
            share = counts / total if total else counts.astype("float64") * 0.0

            frame = pd.DataFrame({"count": counts, "share": share})
            frame.index.name = "rating"

            return frame

        def review_logs_frame(self) -> pd.DataFrame:
            """
            One row per stored review log, oldest first.
            """

            rows = [
                {
                    "item_id": log.item_id,
                    "rating": log.rating.value,
                    "review_datetime": log.review_datetime,
                    "review_duration": log.review_duration,
                }
                for log in self.deck.review_logs
            ]

            return pd.DataFrame(rows, columns=REVIEW_LOG_COLUMNS)

        def difficulty_breakdown(self) -> pd.Series:
            """
            Number of items in each difficulty level.
            """

            levels = pd.Series(
                [difficulty_level(item) for item in self.deck.items], dtype="object"
            )

            return (
                levels.value_counts()
                .reindex(list(DIFFICULTY_LEVELS), fill_value=0)
                .astype("int64")
                .rename("items")
            )

except ImportError:

    class DeckReport:  # type: ignore[no-redef]
        def __init__(self, *args, **kwargs) -> None:
            raise ImportError(
                'DeckReport is not installed.\nInstall it with: pip install "flashdeck[report]"'
            )


__all__ = ["DeckReport"]
