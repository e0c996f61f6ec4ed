"""
In-memory storage implementation for the restaurant tabs backend.

Keeps one dict of documents per collection. Documents are deep-copied on
the way in and out so callers never share state with the store, and every
mutation runs under a single lock so check-then-act sequences are atomic.
"""

import copy
import threading
from typing import Dict, List, Any, Optional
from uuid import uuid4

from app.errors import DuplicateKeyError, NotFound, StaleWriteError
from .base import Storage


class InMemoryStorage(Storage):
    """In-memory storage using dictionaries."""

    backend_name = "inmemory"

    def __init__(self):
        """Initialize with empty storage."""
        self._lock = threading.RLock()
        self._restaurants: Dict[str, Dict[str, Any]] = {}
        self._users: Dict[str, Dict[str, Any]] = {}
        self._dishes: Dict[str, Dict[str, Any]] = {}
        self._tables: Dict[str, Dict[str, Any]] = {}

    @staticmethod
    def _new_document(data: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(data)
        doc["id"] = uuid4().hex
        return doc

    @staticmethod
    def _out(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(doc) if doc is not None else None

    # ---------- Restaurants ----------

    def create_restaurant(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new restaurant (name is unique)."""
        with self._lock:
            if any(r["name"] == data["name"] for r in self._restaurants.values()):
                raise DuplicateKeyError(f"Restaurant '{data['name']}' already exists.")
            doc = self._new_document(data)
            doc.setdefault("owner_id", None)
            self._restaurants[doc["id"]] = doc
            return self._out(doc)

    def get_restaurant(self, restaurant_id: str) -> Optional[Dict[str, Any]]:
        """Get a restaurant by id."""
        with self._lock:
            return self._out(self._restaurants.get(restaurant_id))

    def find_restaurant_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        """Get a restaurant by name."""
        with self._lock:
            for restaurant in self._restaurants.values():
                if restaurant["name"] == name:
                    return self._out(restaurant)
            return None

    def set_restaurant_owner(self, restaurant_id: str, user_id: str) -> bool:
        """Assign the owner only if unset."""
        with self._lock:
            restaurant = self._restaurants.get(restaurant_id)
            if restaurant is None or restaurant.get("owner_id"):
                return False
            restaurant["owner_id"] = user_id
            return True

    def delete_restaurant(self, restaurant_id: str) -> bool:
        """Delete a restaurant without members."""
        with self._lock:
            if any(u["restaurant_id"] == restaurant_id for u in self._users.values()):
                return False
            return self._restaurants.pop(restaurant_id, None) is not None

    # ---------- Users ----------

    def create_user(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new user (username and email are unique)."""
        with self._lock:
            for user in self._users.values():
                if user["username"] == data["username"]:
                    raise DuplicateKeyError(f"Username '{data['username']}' is already taken.")
                if user["email"] == data["email"]:
                    raise DuplicateKeyError(f"Email '{data['email']}' is already registered.")
            doc = self._new_document(data)
            self._users[doc["id"]] = doc
            return self._out(doc)

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get a user by id."""
        with self._lock:
            return self._out(self._users.get(user_id))

    def find_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        """Get a user by username."""
        with self._lock:
            for user in self._users.values():
                if user["username"] == username:
                    return self._out(user)
            return None

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Get a user by email."""
        with self._lock:
            for user in self._users.values():
                if user["email"] == email:
                    return self._out(user)
            return None

    # ---------- Dishes ----------

    def create_dish(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new dish."""
        with self._lock:
            doc = self._new_document(data)
            self._dishes[doc["id"]] = doc
            return self._out(doc)

    def get_dish(self, dish_id: str) -> Optional[Dict[str, Any]]:
        """Get a dish by id."""
        with self._lock:
            return self._out(self._dishes.get(dish_id))

    def get_dishes(self, dish_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        """Bulk lookup of dishes by id."""
        with self._lock:
            return {
                dish_id: self._out(self._dishes[dish_id])
                for dish_id in set(dish_ids)
                if dish_id in self._dishes
            }

    def list_dishes(self, restaurant_id: str) -> List[Dict[str, Any]]:
        """List all dishes of a restaurant."""
        with self._lock:
            return [
                self._out(dish)
                for dish in self._dishes.values()
                if dish["restaurant_id"] == restaurant_id
            ]

    def delete_dish(self, dish_id: str) -> bool:
        """Delete a dish."""
        with self._lock:
            return self._dishes.pop(dish_id, None) is not None

    # ---------- Tables ----------

    def insert_table(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new table; at most one open table per (name, restaurant)."""
        with self._lock:
            if data.get("is_open", True):
                for table in self._tables.values():
                    if (
                        table["is_open"]
                        and table["name"] == data["name"]
                        and table["restaurant_id"] == data["restaurant_id"]
                    ):
                        raise DuplicateKeyError(
                            "A table with the same name is already open in this restaurant."
                        )
            doc = self._new_document(data)
            doc["version"] = 1
            self._tables[doc["id"]] = doc
            return self._out(doc)

    def get_table(self, table_id: str) -> Optional[Dict[str, Any]]:
        """Get a table by id."""
        with self._lock:
            return self._out(self._tables.get(table_id))

    def find_tables(
        self,
        restaurant_id: Optional[str] = None,
        user_id: Optional[str] = None,
        is_open: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        """List tables matching the given filters."""
        with self._lock:
            matches = [
                table
                for table in self._tables.values()
                if (restaurant_id is None or table["restaurant_id"] == restaurant_id)
                and (user_id is None or table["user_id"] == user_id)
                and (is_open is None or table["is_open"] == is_open)
            ]
            matches.sort(key=lambda t: t["opened_at"])
            return [self._out(t) for t in matches]

    def update_table(self, data: Dict[str, Any], expected_version: int) -> Dict[str, Any]:
        """Compare-and-set write of a table's mutable fields."""
        with self._lock:
            stored = self._tables.get(data["id"])
            if stored is None:
                raise NotFound("Table", data["id"])
            if stored["version"] != expected_version:
                raise StaleWriteError(
                    f"Table {data['id']} was modified concurrently "
                    f"(expected version {expected_version}, found {stored['version']})."
                )
            stored["is_open"] = data["is_open"]
            stored["dishes"] = copy.deepcopy(data["dishes"])
            stored["total_cents"] = data["total_cents"]
            stored["closed_at"] = data.get("closed_at")
            stored["version"] = expected_version + 1
            return self._out(stored)

    def delete_table(self, table_id: str) -> bool:
        """Delete a table."""
        with self._lock:
            return self._tables.pop(table_id, None) is not None

    def clear(self) -> None:
        """Clear all state."""
        with self._lock:
            self._restaurants.clear()
            self._users.clear()
            self._dishes.clear()
            self._tables.clear()
