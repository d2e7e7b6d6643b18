import json
import pytest
from leveling import LevelBook, xp_for_next_level
from storage import JsonStore
from tests.mock_utils import FakeScheduler


@pytest.fixture
def book(tmp_path):
    store = JsonStore(str(tmp_path / "levels.json"))
    return LevelBook(store, FakeScheduler(), save_delay=10)


class TestLevelBook:

    def test_new_user_starts_at_level_one(self, book):
        assert book.get(42) == {"xp": 0, "level": 1}
        assert "42" in book.store

    def test_award_accumulates_without_level_up(self, book):
        assert book.award(42, 60) is None
        assert book.award(42, 30) is None
        assert book.get(42) == {"xp": 90, "level": 1}

    def test_level_up_carries_remainder(self, book):
        assert xp_for_next_level(1) == 100
        book.award(42, 95)
        assert book.award(42, 15) == 2
        assert book.get(42) == {"xp": 10, "level": 2}

    def test_random_gain_within_bounds(self, book):
        for _ in range(20):
            before = book.get(7)["xp"]
            book.award(7)
            after = book.get(7)
            if after["level"] == 1:
                assert 5 <= after["xp"] - before <= 15

    def test_leaderboard_order(self, book):
        book.award(1, 50)
        book.award(2, 150)   # level 2, 50 xp
        book.award(3, 120)   # level 2, 20 xp
        ranked = [user for user, _ in book.leaderboard(limit=2)]
        assert ranked == ["2", "3"]

    @pytest.mark.asyncio
    async def test_saves_are_debounced(self, book, tmp_path):
        path = tmp_path / "levels.json"
        book.award(42, 10)
        book.award(42, 10)
        assert not path.exists()
        assert len(book.scheduler.pending()) == 1

        await book.scheduler.advance(10)
        assert json.loads(path.read_text()) == {"42": {"xp": 20, "level": 1}}

    def test_flush_writes_immediately(self, book, tmp_path):
        book.award(42, 10)
        book.flush()
        assert json.loads((tmp_path / "levels.json").read_text())["42"]["xp"] == 10
        assert book.scheduler.pending() == []

    def test_peek_does_not_create_record(self, book, tmp_path):
        assert book.peek(99) == {"xp": 0, "level": 1}
        assert "99" not in book.store
        book.award(1, 30)
        book.flush()
        assert [user for user, _ in book.leaderboard()] == ["1"]
        assert "99" not in json.loads((tmp_path / "levels.json").read_text())

    def test_peek_returns_a_copy(self, book):
        book.award(42, 30)
        record = book.peek(42)
        record["xp"] = 999
        assert book.peek(42) == {"xp": 30, "level": 1}
