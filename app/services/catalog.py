"""Catalog service: dishes of a restaurant."""

import logging
from typing import Any, Dict, List, Optional

from app.errors import NotFound, ValidationError
from app.storage.base import Storage
from app.utils.money import to_cents

logger = logging.getLogger(__name__)


DISH_CATEGORIES = ("Kitchen", "Beverage", "Other")

# Prices are stored in a 32-bit integer column
MAX_PRICE_CENTS = 2**31 - 1

# Labels sent by the Spanish-language frontend
_CATEGORY_ALIASES = {
    "kitchen": "Kitchen",
    "beverage": "Beverage",
    "other": "Other",
    "cocina": "Kitchen",
    "bebida": "Beverage",
    "otros": "Other",
}


def normalize_category(category: Optional[str]) -> str:
    """Map a category label (any case, English or Spanish) to its canonical name."""
    canonical = _CATEGORY_ALIASES.get((category or "").strip().lower())
    if canonical is None:
        raise ValidationError(
            f"Invalid category '{category}'. Expected one of: {', '.join(DISH_CATEGORIES)}."
        )
    return canonical


class CatalogService:
    """Creates, lists and deletes dishes. Feeds prices to the order ledger."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def create_dish(
        self,
        name: str,
        price: Any,
        image: Optional[str],
        category: str,
        restaurant_id: str,
    ) -> Dict[str, Any]:
        """
        Create a dish in a restaurant's menu.

        Raises ValidationError for a blank name, a negative, oversized or non-numeric
        price or an unknown category, and NotFound if the restaurant is missing.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Dish name must not be empty.")
        try:
            price_cents = to_cents(price)
        except ValueError:
            raise ValidationError("Dish price must be a number.")
        if price_cents < 0:
            raise ValidationError("Dish price must not be negative.")
        if price_cents > MAX_PRICE_CENTS:
            raise ValidationError(f"Dish price must not exceed {MAX_PRICE_CENTS / 100:.2f}.")
        canonical_category = normalize_category(category)

        if self.storage.get_restaurant(restaurant_id) is None:
            raise NotFound("Restaurant", restaurant_id)

        dish = self.storage.create_dish({
            "name": name,
            "price_cents": price_cents,
            "image": image or None,
            "category": canonical_category,
            "restaurant_id": restaurant_id,
        })
        logger.info("Dish %s '%s' created in restaurant %s", dish["id"], name, restaurant_id)
        return dish

    def get_dish(self, dish_id: str) -> Dict[str, Any]:
        dish = self.storage.get_dish(dish_id)
        if dish is None:
            raise NotFound("Dish", dish_id)
        return dish

    def list_dishes_by_restaurant(self, restaurant_id: str) -> List[Dict[str, Any]]:
        """Dishes of a restaurant, grouped by category then sorted by name."""
        dishes = self.storage.list_dishes(restaurant_id)
        order = {category: i for i, category in enumerate(DISH_CATEGORIES)}
        dishes.sort(key=lambda d: (order.get(d["category"], len(order)), d["name"].lower()))
        return dishes

    def delete_dish(self, dish_id: str) -> None:
        """Remove a dish from the menu. Tables that ordered it keep their lines."""
        if not self.storage.delete_dish(dish_id):
            raise NotFound("Dish", dish_id)
        logger.info("Dish %s deleted", dish_id)
