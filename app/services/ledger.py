"""
Order ledger: lifecycle of tables (tabs) and their running totals.

Invariants kept here:
- at most one open table per (name, restaurant); the store's unique key
  is the final arbiter when two opens race
- a table's total is the sum of its dish lines, recomputed and written
  together with the line that changed it
- only dishes of the table's own restaurant can be attached
- closed_at is set exactly when the table is closed; closed tables
  accept no more dishes
- deleting a table never touches dishes, restaurants or users

Writes to an existing table are compare-and-set on its version; a lost
race re-reads the table and tries again.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.errors import Conflict, InvalidReference, NotFound, StaleWriteError, ValidationError
from app.storage.base import Storage
from app.utils.time_utils import now_utc

logger = logging.getLogger(__name__)


MAX_WRITE_RETRIES = 5


def order_total(lines: Iterable[Dict[str, Any]]) -> int:
    """Total in cents of a sequence of dish lines."""
    return sum(line["price_cents"] for line in lines)


class OrderLedger:
    """Opens, feeds, closes and deletes tables of a restaurant."""

    def __init__(
        self,
        storage: Storage,
        max_retries: int = MAX_WRITE_RETRIES,
        clock: Callable = now_utc,
    ):
        self.storage = storage
        self.max_retries = max_retries
        self.clock = clock

    # ---------- Lookups ----------

    def _require_table(self, table_id: str) -> Dict[str, Any]:
        table = self.storage.get_table(table_id)
        if table is None:
            raise NotFound("Table", table_id)
        return table

    def _require_user(self, user_id: str) -> Dict[str, Any]:
        user = self.storage.get_user(user_id)
        if user is None:
            raise NotFound("User", user_id)
        return user

    def _require_restaurant(self, restaurant_id: str) -> Dict[str, Any]:
        restaurant = self.storage.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFound("Restaurant", restaurant_id)
        return restaurant

    # ---------- Operations ----------

    def open_table(self, name: str, user_id: str, restaurant_id: str) -> Dict[str, Any]:
        """
        Open a new empty table.

        Raises ValidationError for a blank name or a user of another
        restaurant, NotFound for a missing user or restaurant and Conflict
        if a table with the same name is already open in the restaurant.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Table name must not be empty.")

        user = self._require_user(user_id)
        self._require_restaurant(restaurant_id)
        if user["restaurant_id"] != restaurant_id:
            raise ValidationError("User does not belong to this restaurant.")

        table = self.storage.insert_table({
            "name": name,
            "user_id": user_id,
            "restaurant_id": restaurant_id,
            "is_open": True,
            "dishes": [],
            "total_cents": 0,
            "opened_at": self.clock(),
            "closed_at": None,
        })
        logger.info("Table %s '%s' opened in restaurant %s by user %s", table["id"], name, restaurant_id, user_id)
        return self.resolve([table])[0]

    def attach_dish(self, table_id: str, dish_id: str) -> Dict[str, Any]:
        """
        Append a dish to an open table and recompute its total.

        Raises NotFound for a missing table or dish, Conflict if the table
        is closed (or stays contended past the retry budget) and
        InvalidReference if the dish belongs to another restaurant.
        """
        dish = None
        for attempt in range(1, self.max_retries + 1):
            table = self._require_table(table_id)
            if not table["is_open"]:
                raise Conflict(f"Table {table_id} is closed; dishes cannot be added.")

            if dish is None:
                dish = self.storage.get_dish(dish_id)
                if dish is None:
                    raise NotFound("Dish", dish_id)
                if dish["restaurant_id"] != table["restaurant_id"]:
                    raise InvalidReference("Dish does not belong to the same restaurant as the table.")

            lines = table["dishes"] + [{"dish_id": dish["id"], "price_cents": dish["price_cents"]}]
            table["dishes"] = lines
            table["total_cents"] = order_total(lines)

            try:
                stored = self.storage.update_table(table, expected_version=table["version"])
            except StaleWriteError:
                logger.debug("Stale write on table %s (attempt %d), retrying", table_id, attempt)
                continue

            logger.info(
                "Dish %s added to table %s, total now %d cents",
                dish_id, table_id, stored["total_cents"],
            )
            return self.resolve([stored])[0]

        raise Conflict(f"Table {table_id} is being modified concurrently; try again.")

    def close_table(self, table_id: str) -> Dict[str, Any]:
        """
        Close a table. Closing an already-closed table is a no-op that
        keeps the first closed_at.
        """
        for attempt in range(1, self.max_retries + 1):
            table = self._require_table(table_id)
            if not table["is_open"]:
                return self.resolve([table])[0]

            table["is_open"] = False
            table["closed_at"] = self.clock()
            try:
                stored = self.storage.update_table(table, expected_version=table["version"])
            except StaleWriteError:
                logger.debug("Stale write on table %s (attempt %d), retrying", table_id, attempt)
                continue

            logger.info("Table %s closed with total %d cents", table_id, stored["total_cents"])
            return self.resolve([stored])[0]

        raise Conflict(f"Table {table_id} is being modified concurrently; try again.")

    def get_table(self, table_id: str) -> Dict[str, Any]:
        return self.resolve([self._require_table(table_id)])[0]

    def delete_table(self, table_id: str) -> None:
        """Remove a table outright. Referenced entities stay."""
        if not self.storage.delete_table(table_id):
            raise NotFound("Table", table_id)
        logger.info("Table %s deleted", table_id)

    # ---------- Projections ----------

    def list_open_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        self._require_user(user_id)
        return self.resolve(self.storage.find_tables(user_id=user_id, is_open=True))

    def list_open_by_restaurant(self, restaurant_id: str) -> List[Dict[str, Any]]:
        self._require_restaurant(restaurant_id)
        return self.resolve(self.storage.find_tables(restaurant_id=restaurant_id, is_open=True))

    def list_closed_by_restaurant(self, restaurant_id: str) -> List[Dict[str, Any]]:
        """Closed tables, most recently closed first."""
        self._require_restaurant(restaurant_id)
        tables = self.storage.find_tables(restaurant_id=restaurant_id, is_open=False)
        tables.sort(key=lambda t: t["closed_at"], reverse=True)
        return self.resolve(tables)

    def resolve(self, tables: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Attach dish details and creator username to table documents.

        Each dish line keeps the price it was ordered at. A line whose dish
        was since removed from the catalog keeps its id and price with
        empty details.
        """
        dish_ids = [line["dish_id"] for table in tables for line in table["dishes"]]
        dishes = self.storage.get_dishes(dish_ids)

        usernames: Dict[str, Optional[str]] = {}
        for table in tables:
            if table["user_id"] not in usernames:
                user = self.storage.get_user(table["user_id"])
                usernames[table["user_id"]] = user["username"] if user else None

        resolved = []
        for table in tables:
            lines = []
            for line in table["dishes"]:
                dish = dishes.get(line["dish_id"]) or {}
                lines.append({
                    "id": line["dish_id"],
                    "name": dish.get("name"),
                    "price_cents": line["price_cents"],
                    "image": dish.get("image"),
                    "category": dish.get("category"),
                })
            resolved.append({
                "id": table["id"],
                "name": table["name"],
                "user": {"id": table["user_id"], "username": usernames[table["user_id"]]},
                "restaurant_id": table["restaurant_id"],
                "is_open": table["is_open"],
                "dishes": lines,
                "total_cents": table["total_cents"],
                "opened_at": table["opened_at"],
                "closed_at": table["closed_at"],
            })
        return resolved
