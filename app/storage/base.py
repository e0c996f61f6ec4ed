"""
Abstract Storage interface for the restaurant tabs backend.

Defines the contract of the entity store: four document collections
(restaurants, users, dishes, tables) with unique-key enforcement and
lookup by identifier. Documents are plain dicts; identifiers are
generated by the store.

Table documents have the shape::

    {
        "id": str, "name": str, "user_id": str, "restaurant_id": str,
        "is_open": bool,
        "dishes": [{"dish_id": str, "price_cents": int}, ...],
        "total_cents": int,
        "opened_at": datetime, "closed_at": Optional[datetime],
        "version": int,
    }

Implementations can be in-memory, database-backed, or other backends.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Any, Optional


class Storage(ABC):
    """Abstract base class for storage implementations."""

    backend_name = "abstract"

    # ---------- Restaurants ----------

    @abstractmethod
    def create_restaurant(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Persist a new restaurant and return it with its generated id.

        Raises DuplicateKeyError if the name is already taken.
        """
        ...

    @abstractmethod
    def get_restaurant(self, restaurant_id: str) -> Optional[Dict[str, Any]]:
        """Get a restaurant by id, or None."""
        ...

    @abstractmethod
    def find_restaurant_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        """Get a restaurant by its unique name, or None."""
        ...

    @abstractmethod
    def set_restaurant_owner(self, restaurant_id: str, user_id: str) -> bool:
        """
        Assign the owner only if the restaurant has none yet.

        Returns True if this call assigned the owner.
        """
        ...

    @abstractmethod
    def delete_restaurant(self, restaurant_id: str) -> bool:
        """
        Delete a restaurant that no user belongs to.

        Returns True if it was deleted.
        """
        ...

    # ---------- Users ----------

    @abstractmethod
    def create_user(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Persist a new user and return it with its generated id.

        Raises DuplicateKeyError if username or email is already taken.
        """
        ...

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get a user by id, or None."""
        ...

    @abstractmethod
    def find_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        """Get a user by username, or None."""
        ...

    @abstractmethod
    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Get a user by email, or None."""
        ...

    # ---------- Dishes ----------

    @abstractmethod
    def create_dish(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new dish and return it with its generated id."""
        ...

    @abstractmethod
    def get_dish(self, dish_id: str) -> Optional[Dict[str, Any]]:
        """Get a dish by id, or None."""
        ...

    @abstractmethod
    def get_dishes(self, dish_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        """Bulk lookup; returns {dish_id: dish} for the ids that exist."""
        ...

    @abstractmethod
    def list_dishes(self, restaurant_id: str) -> List[Dict[str, Any]]:
        """List all dishes of a restaurant."""
        ...

    @abstractmethod
    def delete_dish(self, dish_id: str) -> bool:
        """Delete a dish. Returns True if it existed."""
        ...

    # ---------- Tables ----------

    @abstractmethod
    def insert_table(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Persist a new table and return it with its generated id and version 1.

        Raises DuplicateKeyError if another open table with the same
        (name, restaurant_id) exists. The check and the insert are atomic.
        """
        ...

    @abstractmethod
    def get_table(self, table_id: str) -> Optional[Dict[str, Any]]:
        """Get a table by id, or None."""
        ...

    @abstractmethod
    def find_tables(
        self,
        restaurant_id: Optional[str] = None,
        user_id: Optional[str] = None,
        is_open: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        """
        List tables matching all given filters (None means any).

        Ordered by opened_at ascending.
        """
        ...

    @abstractmethod
    def update_table(self, data: Dict[str, Any], expected_version: int) -> Dict[str, Any]:
        """
        Replace the mutable fields of a table (is_open, dishes, total_cents,
        closed_at) if its stored version equals expected_version.

        Returns the stored table with version incremented.
        Raises NotFound if the table does not exist and StaleWriteError
        if the version does not match.
        """
        ...

    @abstractmethod
    def delete_table(self, table_id: str) -> bool:
        """Delete a table. Returns True if it existed. Never cascades."""
        ...

    # ---------- Lifecycle ----------

    @abstractmethod
    def clear(self) -> None:
        """Clear all state (every collection)."""
        ...

    def close(self) -> None:
        """Release backend resources."""
        return None
