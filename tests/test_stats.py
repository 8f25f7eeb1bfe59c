from flashdeck.deck import Deck, RoundEngine
from flashdeck.item import Item
from flashdeck.rating import Rating
from flashdeck.stats import (
    DailyProgress,
    DeckStats,
    RatingSummary,
    compute_stats,
    daily_progress,
    rating_summaries,
    difficulty_level,
    due_items,
    items_by_difficulty,
)

from datetime import date, datetime, timedelta, timezone
import pytest

NOW = datetime(2024, 3, 1, 9, 0, 0, 0, timezone.utc)


@pytest.fixture
def engine():
    return RoundEngine()


@pytest.fixture
def deck(engine):
    pairs = [(f"question {i}", f"answer {i}") for i in range(8)]
    return engine.create_deck(pairs, now=NOW)


class TestComputeStats:
    def test_new_deck(self, deck):
        stats = compute_stats(deck, now=NOW)

        assert stats == DeckStats(
            total_items=8,
            learned_items=0,
            due_items=8,
            total_ratings=0,
            accuracy_percent=0,
            average_ease_factor=2.5,
            average_interval=0.0,
            learning_progress=0.0,
        )

    def test_after_a_round(self, engine, deck):
        ratings = [Rating.Easy, Rating.Easy, Rating.Good] + [Rating.Again] * 5
        for rating in ratings:
            deck, _ = engine.submit_rating(deck, rating, now=NOW)

        stats = compute_stats(deck, now=NOW)

        assert stats.total_items == 8
        assert stats.learned_items == 2
        assert stats.total_ratings == 8
        # 3 of 8 correct is 37.5%, rounded half up
        assert stats.accuracy_percent == 38
        assert stats.learning_progress == 25.0
        # every reviewed item is due at least a day later
        assert stats.due_items == 0
        assert compute_stats(deck, now=NOW + timedelta(days=1)).due_items == 8

    def test_accuracy_rounds_half_up(self, engine, deck):
        ratings = [Rating.Good] + [Rating.Hard] * 7
        for rating in ratings:
            deck, _ = engine.submit_rating(deck, rating, now=NOW)

        # 1 of 8 correct is 12.5%
        assert compute_stats(deck, now=NOW).accuracy_percent == 13

    def test_due_items_ignore_round_state(self, engine, deck):
        deck, _ = engine.submit_rating(deck, Rating.Good, now=NOW)

        # still mid-round, but the first item is due again a day later
        later = NOW + timedelta(days=1)
        assert deck.cursor == 1
        assert compute_stats(deck, now=NOW).due_items == 7
        assert compute_stats(deck, now=later).due_items == 8

    def test_restart_clears_accuracy(self, engine, deck):
        for _ in range(8):
            deck, _ = engine.submit_rating(deck, Rating.Easy, now=NOW)
        assert compute_stats(deck, now=NOW).accuracy_percent == 100

        stats = compute_stats(engine.restart(deck), now=NOW)

        assert stats.total_ratings == 0
        assert stats.accuracy_percent == 0
        assert stats.learned_items == 0

    def test_averages(self):
        items = [
            Item(prompt="a", response="1", ease_factor=2.0, interval=4),
            Item(prompt="b", response="2", ease_factor=3.0, interval=10),
        ]

        stats = compute_stats(Deck(items=items), now=NOW)

        assert stats.average_ease_factor == pytest.approx(2.5)
        assert stats.average_interval == pytest.approx(7.0)

    def test_empty_deck(self):
        stats = compute_stats(Deck(items=[]), now=NOW)

        assert stats.total_items == 0
        assert stats.average_ease_factor == 0.0
        assert stats.average_interval == 0.0
        assert stats.learning_progress == 0.0

    def test_idempotent(self, engine, deck):
        for rating in (Rating.Good, Rating.Again, Rating.Easy):
            deck, _ = engine.submit_rating(deck, rating, now=NOW)

        assert compute_stats(deck, now=NOW) == compute_stats(deck, now=NOW)


class TestDueItems:
    def test_ordered_by_due(self):
        items = [
            Item(prompt="a", response="1", due=NOW - timedelta(hours=1)),
            Item(prompt="b", response="2", due=NOW + timedelta(hours=1)),
            Item(prompt="c", response="3", due=NOW - timedelta(days=3)),
            Item(prompt="d", response="4", due=NOW),
        ]

        due = due_items(Deck(items=items), now=NOW)

        assert [item.prompt for item in due] == ["c", "a", "d"]


class TestDifficulty:
    @pytest.mark.parametrize(
        "repetitions, ease_factor, level",
        [
            (0, 2.5, "new"),
            (0, 1.3, "new"),
            (3, 1.3, "hard"),
            (3, 1.49, "hard"),
            (3, 1.5, "medium"),
            (3, 1.99, "medium"),
            (3, 2.0, "easy"),
            (1, 2.65, "easy"),
        ],
    )
    def test_difficulty_level(self, repetitions, ease_factor, level):
        item = Item(
            prompt="q", response="a", repetitions=repetitions, ease_factor=ease_factor
        )
        assert difficulty_level(item) == level

    def test_items_by_difficulty(self):
        items = [
            Item(prompt="a", response="1"),
            Item(prompt="b", response="2", repetitions=2, ease_factor=1.4),
            Item(prompt="c", response="3", repetitions=2, ease_factor=2.6),
        ]

        grouped = items_by_difficulty(Deck(items=items))

        assert list(grouped) == ["new", "hard", "medium", "easy"]
        assert [item.prompt for item in grouped["new"]] == ["a"]
        assert [item.prompt for item in grouped["hard"]] == ["b"]
        assert grouped["medium"] == []
        assert [item.prompt for item in grouped["easy"]] == ["c"]


class TestDailyProgress:
    def test_groups_by_day(self, engine, deck):
        sessions = [
            (NOW, [(Rating.Good, 1000), (Rating.Again, 3000), (Rating.Easy, None)]),
            (NOW + timedelta(days=2), [(Rating.Hard, 2000), (Rating.Good, 2001)]),
        ]
        for day_start, ratings in sessions:
            for rating, duration in ratings:
                deck, _ = engine.submit_rating(
                    deck, rating, now=day_start, review_duration=duration
                )

        progress = daily_progress(deck, now=NOW + timedelta(days=2))

        assert progress == [
            DailyProgress(
                day=date(2024, 3, 1),
                reviews=3,
                correct=2,
                accuracy_percent=67,
                average_duration=2000,
            ),
            DailyProgress(
                day=date(2024, 3, 3),
                reviews=2,
                correct=1,
                accuracy_percent=50,
                # 2000.5 rounds half up
                average_duration=2001,
            ),
        ]

    def test_window(self, engine, deck):
        deck, _ = engine.submit_rating(deck, Rating.Good, now=NOW)
        deck, _ = engine.submit_rating(deck, Rating.Good, now=NOW + timedelta(days=40))

        later = NOW + timedelta(days=40)

        assert [p.day for p in daily_progress(deck, now=later)] == [date(2024, 4, 10)]
        assert len(daily_progress(deck, days=None, now=later)) == 2

    def test_survives_restart(self, engine, deck):
        for _ in range(8):
            deck, _ = engine.submit_rating(deck, Rating.Easy, now=NOW)

        deck = engine.restart(deck)

        assert daily_progress(deck, now=NOW)[0].reviews == 8

    def test_no_reviews(self, deck):
        assert daily_progress(deck, now=NOW) == []


class TestRatingSummaries:
    def test_counts_and_durations(self, engine, deck):
        for rating, duration in (
            (Rating.Good, 1200),
            (Rating.Good, 1800),
            (Rating.Again, None),
            (Rating.Hard, 4000),
        ):
            deck, _ = engine.submit_rating(
                deck, rating, now=NOW, review_duration=duration
            )

        summaries = rating_summaries(deck)

        assert list(summaries) == [Rating.Again, Rating.Hard, Rating.Good, Rating.Easy]
        assert summaries[Rating.Good] == RatingSummary(count=2, average_duration=1500)
        assert summaries[Rating.Again] == RatingSummary(count=1, average_duration=None)
        assert summaries[Rating.Hard] == RatingSummary(count=1, average_duration=4000)
        assert summaries[Rating.Easy] == RatingSummary(count=0, average_duration=None)
