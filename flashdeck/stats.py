"""
flashdeck.stats
---------------

Derived, read-only metrics for a deck.

Everything here is recomputed from the deck on each call; nothing is cached.
"""

from __future__ import annotations
from dataclasses import dataclass
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone
from flashdeck.deck import Deck
from flashdeck.item import Item
from flashdeck.rating import Rating
from flashdeck.review_log import ReviewLog
from flashdeck.scheduler import round_half_up

DIFFICULTY_LEVELS = ("new", "hard", "medium", "easy")


@dataclass(frozen=True)
class DeckStats:
    """
    A snapshot of a deck's metrics.

    Attributes:
        total_items: Number of items in the deck.
        learned_items: Number of retired items.
        due_items: Number of items due at the time of computation.
        total_ratings: Number of ratings given since the last restart.
        accuracy_percent: Share of good and easy ratings, rounded to a whole percent.
        average_ease_factor: Mean ease factor over all items.
        average_interval: Mean interval in days over all items.
        learning_progress: Share of retired items as a percentage.
    """

    total_items: int
    learned_items: int
    due_items: int
    total_ratings: int
    accuracy_percent: int
    average_ease_factor: float
    average_interval: float
    learning_progress: float


def compute_stats(deck: Deck, now: datetime | None = None) -> DeckStats:
    """
    Computes the metrics of a deck.

    Args:
        deck: The deck to summarize.
        now: The date and time against which items are checked for being due.

    Returns:
        DeckStats: The deck's metrics.
    """

    if now is None:
        now = datetime.now(timezone.utc)

    items = deck.items
    total_items = len(items)
    learned_items = sum(1 for item in items if item.retired)
    due_count = sum(1 for item in items if item.is_due(now))

    total_ratings = len(deck.rating_history)
    if total_ratings == 0:
        accuracy_percent = 0
    else:
        correct = deck.rating_tally[Rating.Good] + deck.rating_tally[Rating.Easy]
        accuracy_percent = round_half_up(100 * correct / total_ratings)

    if total_items == 0:
        average_ease_factor = 0.0
        average_interval = 0.0
        learning_progress = 0.0
    else:
        average_ease_factor = sum(item.ease_factor for item in items) / total_items
        average_interval = sum(item.interval for item in items) / total_items
        learning_progress = 100 * learned_items / total_items

    return DeckStats(
        total_items=total_items,
        learned_items=learned_items,
        due_items=due_count,
        total_ratings=total_ratings,
        accuracy_percent=accuracy_percent,
        average_ease_factor=average_ease_factor,
        average_interval=average_interval,
        learning_progress=learning_progress,
    )


def due_items(deck: Deck, now: datetime | None = None) -> list[Item]:
    """
    Returns the deck's items that are due, most overdue first.

    Due items are independent of round state: an item can be due while its round is still running.
    """

    if now is None:
        now = datetime.now(timezone.utc)

    return sorted(
        (item for item in deck.items if item.is_due(now)), key=lambda item: item.due
    )


def difficulty_level(item: Item) -> str:
    """
    Buckets an item by how hard it has proven to recall.

    Returns:
        str: 'new' if the item has no successful repetitions yet, otherwise 'hard'
        for an ease factor below 1.5, 'medium' below 2.0 and 'easy' above that.
    """

    if item.repetitions == 0:
        return "new"
    if item.ease_factor < 1.5:
        return "hard"
    if item.ease_factor < 2.0:
        return "medium"
    return "easy"


def items_by_difficulty(deck: Deck) -> dict[str, list[Item]]:
    grouped: dict[str, list[Item]] = {level: [] for level in DIFFICULTY_LEVELS}
    for item in deck.items:
        grouped[difficulty_level(item)].append(item)
    return grouped


_CORRECT_RATINGS = (Rating.Good, Rating.Easy)


@dataclass(frozen=True)
class DailyProgress:
    """
    Review activity on one UTC calendar day.

    Attributes:
        day: The day the reviews were given.
        reviews: Number of ratings given that day.
        correct: Number of good and easy ratings.
        accuracy_percent: Share of correct ratings, rounded to a whole percent.
        average_duration: Mean review duration in milliseconds over the reviews that
            recorded one, rounded to a whole millisecond, or None if none did.
    """

    day: date
    reviews: int
    correct: int
    accuracy_percent: int
    average_duration: int | None


@dataclass(frozen=True)
class RatingSummary:
    count: int
    average_duration: int | None


def _average_duration(review_logs: Iterable[ReviewLog]) -> int | None:
    durations = [
        log.review_duration for log in review_logs if log.review_duration is not None
    ]
    if not durations:
        return None
    return round_half_up(sum(durations) / len(durations))


def daily_progress(
    deck: Deck, days: int | None = 30, now: datetime | None = None
) -> list[DailyProgress]:
    """
    Groups the deck's review logs by UTC day, oldest day first.

    Days without reviews are left out.

    Args:
        deck: The deck whose review logs are summarized.
        days: Only count reviews from the last `days` days before `now`; None counts all of them.
        now: The end of the window. Defaults to the current UTC time.

    Returns:
        list[DailyProgress]: One entry per day with at least one review.
    """

    if now is None:
        now = datetime.now(timezone.utc)

    review_logs = deck.review_logs
    if days is not None:
        since = now - timedelta(days=days)
        review_logs = [log for log in review_logs if log.review_datetime >= since]

    by_day: dict[date, list[ReviewLog]] = {}
    for log in review_logs:
        by_day.setdefault(log.review_datetime.date(), []).append(log)

    progress = []
    for day in sorted(by_day):
        logs = by_day[day]
        correct = sum(1 for log in logs if log.rating in _CORRECT_RATINGS)
        progress.append(
            DailyProgress(
                day=day,
                reviews=len(logs),
                correct=correct,
                accuracy_percent=round_half_up(100 * correct / len(logs)),
                average_duration=_average_duration(logs),
            )
        )

    return progress


def rating_summaries(deck: Deck) -> dict[Rating, RatingSummary]:
    """
    Count and mean review duration of each rating over every stored review log, in canonical rating order.
    """

    by_rating: dict[Rating, list[ReviewLog]] = {rating: [] for rating in Rating}
    for log in deck.review_logs:
        by_rating[log.rating].append(log)

    return {
        rating: RatingSummary(count=len(logs), average_duration=_average_duration(logs))
        for rating, logs in by_rating.items()
    }


__all__ = [
    "DeckStats",
    "DailyProgress",
    "RatingSummary",
    "compute_stats",
    "daily_progress",
    "rating_summaries",
    "due_items",
    "difficulty_level",
    "items_by_difficulty",
]
