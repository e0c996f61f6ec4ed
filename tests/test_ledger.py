"""
Tests for the order ledger: opening, feeding, closing and deleting tables.

Runs against both storage backends.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.errors import Conflict, DuplicateKeyError, InvalidReference, NotFound, StaleWriteError, ValidationError
from app.services import CatalogService, IdentityService, OrderLedger, order_total


class StepClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start=datetime(2024, 5, 1, 18, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self):
        self.current += timedelta(minutes=1)
        return self.current


def test_order_total():
    assert order_total([]) == 0
    assert order_total([{"dish_id": "a", "price_cents": 350}, {"dish_id": "b", "price_cents": 225}]) == 575


class TestOpenTable:

    def test_open_table_starts_empty(self, ledger, cafe):
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])

        assert table["name"] == "T1"
        assert table["is_open"] is True
        assert table["dishes"] == []
        assert table["total_cents"] == 0
        assert table["closed_at"] is None
        assert table["opened_at"] is not None
        assert table["user"] == {"id": cafe["user_id"], "username": "alice"}
        assert table["restaurant_id"] == cafe["restaurant_id"]

    def test_name_is_trimmed(self, ledger, cafe):
        table = ledger.open_table("  Terrace 4 ", cafe["user_id"], cafe["restaurant_id"])
        assert table["name"] == "Terrace 4"

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_name_rejected(self, ledger, cafe, name):
        with pytest.raises(ValidationError):
            ledger.open_table(name, cafe["user_id"], cafe["restaurant_id"])

    def test_unknown_user(self, ledger, cafe):
        with pytest.raises(NotFound):
            ledger.open_table("T1", "ghost", cafe["restaurant_id"])

    def test_unknown_restaurant(self, ledger, cafe):
        with pytest.raises(NotFound):
            ledger.open_table("T1", cafe["user_id"], "ghost")

    def test_user_of_another_restaurant(self, ledger, cafe, bistro):
        with pytest.raises(ValidationError):
            ledger.open_table("T1", bistro["user_id"], cafe["restaurant_id"])

    def test_second_open_table_with_same_name_conflicts(self, ledger, cafe):
        ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        with pytest.raises(Conflict):
            ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])

    def test_same_name_in_two_restaurants(self, ledger, cafe, bistro):
        ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        ledger.open_table("T1", bistro["user_id"], bistro["restaurant_id"])

    def test_name_reusable_once_closed(self, ledger, cafe):
        first = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        ledger.close_table(first["id"])
        second = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        assert second["id"] != first["id"]


class TestAttachDish:

    def test_total_follows_lines(self, ledger, cafe):
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])

        table = ledger.attach_dish(table["id"], cafe["coffee_id"])
        assert table["total_cents"] == 350
        table = ledger.attach_dish(table["id"], cafe["coffee_id"])
        assert table["total_cents"] == 700
        table = ledger.attach_dish(table["id"], cafe["cake_id"])
        assert table["total_cents"] == 1110

        assert [d["name"] for d in table["dishes"]] == ["Coffee", "Coffee", "Cake"]
        assert table["total_cents"] == sum(d["price_cents"] for d in table["dishes"])

    def test_lines_carry_dish_details(self, ledger, cafe):
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        table = ledger.attach_dish(table["id"], cafe["coffee_id"])
        assert table["dishes"] == [{
            "id": cafe["coffee_id"],
            "name": "Coffee",
            "price_cents": 350,
            "image": "coffee.png",
            "category": "Beverage",
        }]

    def test_unknown_table(self, ledger, cafe):
        with pytest.raises(NotFound):
            ledger.attach_dish("ghost", cafe["coffee_id"])

    def test_unknown_dish(self, ledger, cafe):
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        with pytest.raises(NotFound):
            ledger.attach_dish(table["id"], "ghost")
        assert ledger.get_table(table["id"])["dishes"] == []

    def test_dish_of_another_restaurant(self, ledger, cafe, bistro):
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        with pytest.raises(InvalidReference):
            ledger.attach_dish(table["id"], bistro["wine_id"])
        assert ledger.get_table(table["id"])["total_cents"] == 0

    def test_closed_table_rejects_dishes(self, ledger, cafe):
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        ledger.attach_dish(table["id"], cafe["coffee_id"])
        ledger.close_table(table["id"])

        with pytest.raises(Conflict):
            ledger.attach_dish(table["id"], cafe["tea_id"])
        assert ledger.get_table(table["id"])["total_cents"] == 350

    def test_deleted_dish_keeps_its_line_and_price(self, ledger, cafe, storage):
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        ledger.attach_dish(table["id"], cafe["coffee_id"])
        ledger.attach_dish(table["id"], cafe["tea_id"])

        CatalogService(storage).delete_dish(cafe["coffee_id"])

        table = ledger.get_table(table["id"])
        assert table["total_cents"] == 575
        assert table["dishes"][0] == {
            "id": cafe["coffee_id"],
            "name": None,
            "price_cents": 350,
            "image": None,
            "category": None,
        }
        assert table["dishes"][1]["name"] == "Tea"


class TestCloseTable:

    def test_close_sets_closed_at(self, storage, cafe):
        clock = StepClock()
        ledger = OrderLedger(storage, clock=clock)
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])

        closed = ledger.close_table(table["id"])

        assert closed["is_open"] is False
        assert closed["closed_at"] == clock.current
        assert closed["closed_at"] > closed["opened_at"]

    def test_closing_twice_keeps_first_closed_at(self, storage, cafe):
        clock = StepClock()
        ledger = OrderLedger(storage, clock=clock)
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        first = ledger.close_table(table["id"])

        again = ledger.close_table(table["id"])

        assert again["is_open"] is False
        assert again["closed_at"] == first["closed_at"]

    def test_close_keeps_total(self, ledger, cafe):
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        ledger.attach_dish(table["id"], cafe["cake_id"])
        assert ledger.close_table(table["id"])["total_cents"] == 410

    def test_unknown_table(self, ledger):
        with pytest.raises(NotFound):
            ledger.close_table("ghost")


class TestDeleteTable:

    def test_delete_leaves_dishes_and_users(self, ledger, cafe, storage):
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        ledger.attach_dish(table["id"], cafe["coffee_id"])

        ledger.delete_table(table["id"])

        with pytest.raises(NotFound):
            ledger.get_table(table["id"])
        assert storage.get_dish(cafe["coffee_id"]) is not None
        assert storage.get_user(cafe["user_id"]) is not None
        assert storage.get_restaurant(cafe["restaurant_id"]) is not None

    def test_delete_unknown_table(self, ledger):
        with pytest.raises(NotFound):
            ledger.delete_table("ghost")

    def test_deleted_open_table_frees_its_name(self, ledger, cafe):
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        ledger.delete_table(table["id"])
        ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])


class TestListings:

    def test_open_by_user(self, ledger, cafe, storage):
        carol = IdentityService(storage).register("carol", "carol@example.com", "pw123456", "Cafe", "1234")
        ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
        ledger.open_table("T2", carol["user_id"], cafe["restaurant_id"])
        t3 = ledger.open_table("T3", cafe["user_id"], cafe["restaurant_id"])
        ledger.close_table(t3["id"])

        assert [t["name"] for t in ledger.list_open_by_user(cafe["user_id"])] == ["T1"]
        assert [t["name"] for t in ledger.list_open_by_user(carol["user_id"])] == ["T2"]

    def test_open_and_closed_by_restaurant(self, storage, cafe, bistro):
        ledger = OrderLedger(storage, clock=StepClock())
        a = ledger.open_table("A", cafe["user_id"], cafe["restaurant_id"])
        b = ledger.open_table("B", cafe["user_id"], cafe["restaurant_id"])
        c = ledger.open_table("C", cafe["user_id"], cafe["restaurant_id"])
        ledger.open_table("Other", bistro["user_id"], bistro["restaurant_id"])
        ledger.close_table(a["id"])
        ledger.close_table(c["id"])

        open_tables = ledger.list_open_by_restaurant(cafe["restaurant_id"])
        closed_tables = ledger.list_closed_by_restaurant(cafe["restaurant_id"])

        assert [t["id"] for t in open_tables] == [b["id"]]
        # Most recently closed first
        assert [t["id"] for t in closed_tables] == [c["id"], a["id"]]

    def test_empty_lists(self, ledger, cafe):
        assert ledger.list_open_by_user(cafe["user_id"]) == []
        assert ledger.list_open_by_restaurant(cafe["restaurant_id"]) == []
        assert ledger.list_closed_by_restaurant(cafe["restaurant_id"]) == []

    def test_unknown_owner_of_listing(self, ledger):
        with pytest.raises(NotFound):
            ledger.list_open_by_user("ghost")
        with pytest.raises(NotFound):
            ledger.list_open_by_restaurant("ghost")
        with pytest.raises(NotFound):
            ledger.list_closed_by_restaurant("ghost")


class FlakyStorage:
    """Wraps a storage and fails the first ``failures`` table writes as stale."""

    def __init__(self, inner, failures):
        self._inner = inner
        self.failures = failures
        self.attempts = 0

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def update_table(self, data, expected_version):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise StaleWriteError("simulated concurrent write")
        return self._inner.update_table(data, expected_version)


class TestRetries:

    def test_stale_write_is_retried(self, storage, cafe):
        flaky = FlakyStorage(storage, failures=2)
        ledger = OrderLedger(flaky)
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])

        table = ledger.attach_dish(table["id"], cafe["coffee_id"])

        assert flaky.attempts == 3
        assert table["total_cents"] == 350
        assert len(table["dishes"]) == 1

    def test_lost_race_rereads_table(self, storage, cafe):
        """A write that lands between read and write is kept, not overwritten."""
        ledger = OrderLedger(storage)
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])

        class Interleaving(FlakyStorage):
            def update_table(self, data, expected_version):
                self.attempts += 1
                if self.attempts == 1:
                    # Someone else adds a tea first
                    ledger.attach_dish(table["id"], cafe["tea_id"])
                return self._inner.update_table(data, expected_version)

        racing = OrderLedger(Interleaving(storage, failures=0))
        result = racing.attach_dish(table["id"], cafe["coffee_id"])

        assert [d["name"] for d in result["dishes"]] == ["Tea", "Coffee"]
        assert result["total_cents"] == 575

    def test_gives_up_after_max_retries(self, storage, cafe):
        flaky = FlakyStorage(storage, failures=100)
        ledger = OrderLedger(flaky, max_retries=3)
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])

        with pytest.raises(Conflict):
            ledger.attach_dish(table["id"], cafe["coffee_id"])
        assert flaky.attempts == 3
        assert storage.get_table(table["id"])["dishes"] == []

    def test_close_is_retried(self, storage, cafe):
        flaky = FlakyStorage(storage, failures=1)
        ledger = OrderLedger(flaky)
        table = ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])

        closed = ledger.close_table(table["id"])

        assert closed["is_open"] is False
        assert flaky.attempts == 2


def test_duplicate_open_is_a_conflict(ledger, cafe):
    ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
    with pytest.raises(DuplicateKeyError) as exc_info:
        ledger.open_table("T1", cafe["user_id"], cafe["restaurant_id"])
    assert exc_info.value.status_code == 409
