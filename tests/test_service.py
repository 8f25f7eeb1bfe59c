from flashdeck.deck import RoundEngine
from flashdeck.rating import Rating
from flashdeck.repository import InMemoryDeckRepository
from flashdeck.scheduler import Scheduler
from flashdeck.service import DeckService
from flashdeck.state import DeckState
from flashdeck.errors import DeckNotFound, InvalidRating, NoActiveItem

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
import pytest

NOW = datetime(2024, 3, 1, 9, 0, 0, 0, timezone.utc)


@pytest.fixture
def service():
    return DeckService(InMemoryDeckRepository())


@pytest.fixture
def deck_id(service):
    deck = service.create_deck(
        [("q1", "a1"), ("q2", "a2"), ("q3", "a3")], name="Trio", now=NOW
    )
    return deck.deck_id


class TestDeckService:
    def test_create_deck_is_saved(self, service, deck_id):
        deck = service.get_deck(deck_id)

        assert deck.name == "Trio"
        assert service.repository.list_ids() == [deck_id]

    def test_custom_engine(self):
        engine = RoundEngine(Scheduler(initial_ease_factor=2.0))
        service = DeckService(InMemoryDeckRepository(), engine=engine)

        deck = service.create_deck([("q", "a")], now=NOW)

        assert service.get_deck(deck.deck_id).items[0].ease_factor == 2.0

    def test_session(self, service, deck_id):
        for rating in (Rating.Easy, Rating.Good, Rating.Again):
            deck, review_log = service.submit_rating(deck_id, rating, now=NOW)
            assert review_log.rating == rating

        assert service.get_deck(deck_id).state == DeckState.RoundComplete

        deck = service.advance_round(deck_id)
        assert deck.round == 2
        assert service.get_deck(deck_id).round_order == [1, 2]

        deck = service.restart(deck_id)
        assert service.get_deck(deck_id) == deck
        assert deck.round_order == [0, 1, 2]

    def test_rejected_rating_is_not_saved(self, service, deck_id):
        before = service.get_deck(deck_id)

        with pytest.raises(InvalidRating):
            service.submit_rating(deck_id, "meh", now=NOW)

        assert service.get_deck(deck_id) == before

        for _ in range(3):
            service.submit_rating(deck_id, Rating.Good, now=NOW)
        before = service.get_deck(deck_id)

        with pytest.raises(NoActiveItem):
            service.submit_rating(deck_id, Rating.Good, now=NOW)

        assert service.get_deck(deck_id) == before

    def test_reset_item(self, service, deck_id):
        service.submit_rating(deck_id, Rating.Easy, now=NOW)
        item_id = service.get_deck(deck_id).items[0].item_id

        later = NOW + timedelta(days=3)
        service.reset_item(deck_id, item_id, now=later)

        item = service.get_deck(deck_id).get_item(item_id)
        assert item.retired is False
        assert item.due == later

    def test_stats(self, service, deck_id):
        service.submit_rating(deck_id, Rating.Easy, now=NOW)
        service.submit_rating(deck_id, Rating.Hard, now=NOW)

        stats = service.stats(deck_id, now=NOW)

        assert stats.total_items == 3
        assert stats.learned_items == 1
        assert stats.due_items == 1
        assert stats.total_ratings == 2
        assert stats.accuracy_percent == 50

    def test_delete_deck(self, service, deck_id):
        service.delete_deck(deck_id)

        with pytest.raises(DeckNotFound):
            service.get_deck(deck_id)

        with pytest.raises(DeckNotFound):
            service.submit_rating(deck_id, Rating.Good, now=NOW)

    def test_concurrent_ratings(self, service):
        pairs = [(f"q{i}", f"a{i}") for i in range(200)]
        deck_id = service.create_deck(pairs, now=NOW).deck_id

        def rate(_):
            return service.submit_rating(deck_id, Rating.Good, now=NOW)

        with ThreadPoolExecutor(max_workers=16) as executor:
            review_logs = [log for _, log in executor.map(rate, range(200))]

        deck = service.get_deck(deck_id)

        assert deck.state == DeckState.RoundComplete
        assert deck.cursor == 200
        assert len(deck.rating_history) == 200
        assert deck.rating_tally[Rating.Good] == 200
        # every item was rated exactly once
        assert len({log.item_id for log in review_logs}) == 200
        assert all(item.repetitions == 1 for item in deck.items)
        assert len(deck.review_logs) == 200

    def test_review_logs_are_stored(self, service, deck_id):
        _, review_log = service.submit_rating(
            deck_id, Rating.Hard, now=NOW, review_duration=3100
        )

        assert service.get_deck(deck_id).review_logs == [review_log]

    def test_reschedule_item(self, service, deck_id):
        for rating in (Rating.Hard, Rating.Good, Rating.Good):
            service.submit_rating(deck_id, rating, now=NOW)
        item_id = service.get_deck(deck_id).items[0].item_id

        harsh = RoundEngine(Scheduler(hard_ease_penalty=0.5))
        harsh_service = DeckService(service.repository, engine=harsh)
        deck = harsh_service.reschedule_item(deck_id, item_id)

        assert deck.get_item(item_id).ease_factor == pytest.approx(2.0)
        assert service.get_deck(deck_id) == deck

    def test_unknown_ids_leave_no_locks(self, service, deck_id):
        for missing in ("nope", "gone", "missing"):
            with pytest.raises(DeckNotFound):
                service.submit_rating(missing, Rating.Good, now=NOW)
            with pytest.raises(DeckNotFound):
                service.advance_round(missing)
            with pytest.raises(DeckNotFound):
                service.delete_deck(missing)

        assert set(service._locks) <= {deck_id}
