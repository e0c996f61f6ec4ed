"""
Seed a restaurant's menu from a JSON file of dishes.

The file holds a list of dishes, or a mapping of category -> list of dishes:

    [{"name": "Coffee", "price": 3.5, "category": "Beverage", "image": "coffee.png"}, ...]
    {"Beverage": [{"name": "Coffee", "price": 3.5}], "Kitchen": [...]}

Seeding is idempotent: a dish whose name already exists in the
restaurant's menu is skipped.

Usage:
    python -m scripts.seed_dishes --restaurant "Cafe" --menu-file data/menu.json

Environment:
    APP_DATABASE_URL: Database connection (default: sqlite:///./restaurant_tabs.db)
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List

from app.errors import AppError
from app.services import CatalogService
from app.storage import SQLAlchemyStorage

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def load_dishes_json(menu_file: str) -> List[Dict[str, Any]]:
    """
    Load dishes from a JSON file, flattening the category mapping form.

    Raises FileNotFoundError if the file is missing and ValueError if
    its shape is not recognized.
    """
    if not os.path.exists(menu_file):
        raise FileNotFoundError(f"Menu file not found: {menu_file}")

    with open(menu_file, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if isinstance(data, list):
        dishes = data
    elif isinstance(data, dict):
        dishes = []
        for category, items in data.items():
            if not isinstance(items, list):
                logger.warning(f"Skipping section '{category}' - not a list")
                continue
            for item in items:
                dishes.append({"category": category, **item})
    else:
        raise ValueError("Menu file must contain a list or a category mapping")

    logger.info(f"Loaded {len(dishes)} dishes from {menu_file}")
    return dishes


def seed_dishes(catalog: CatalogService, restaurant_id: str, dishes: List[Dict[str, Any]]) -> Dict[str, int]:
    """
    Create the dishes missing from a restaurant's menu.

    Returns counts of created, skipped (already present) and invalid dishes.
    """
    existing = {d["name"].lower() for d in catalog.list_dishes_by_restaurant(restaurant_id)}
    stats = {"created": 0, "skipped": 0, "invalid": 0}

    for item in dishes:
        name = (item.get("name") or "").strip()
        if name.lower() in existing:
            stats["skipped"] += 1
            continue
        try:
            catalog.create_dish(
                name=name,
                price=item.get("price"),
                image=item.get("image"),
                category=item.get("category"),
                restaurant_id=restaurant_id,
            )
        except AppError as e:
            logger.warning(f"Skipping dish {item!r}: {e.message}")
            stats["invalid"] += 1
            continue
        existing.add(name.lower())
        stats["created"] += 1

    logger.info(
        f"Seeded restaurant {restaurant_id}: {stats['created']} created, "
        f"{stats['skipped']} skipped, {stats['invalid']} invalid"
    )
    return stats


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Seed a restaurant's dishes from a JSON file idempotently"
    )
    parser.add_argument('--restaurant', required=True, help='Name of an existing restaurant')
    parser.add_argument('--menu-file', required=True, help='Path to the dishes JSON file')
    parser.add_argument(
        '--database-url',
        help='Database URL (default: env var APP_DATABASE_URL or sqlite:///./restaurant_tabs.db)',
        default=None
    )
    args = parser.parse_args()

    try:
        dishes = load_dishes_json(args.menu_file)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load menu: {e}")
        return 1

    db_url = args.database_url or os.getenv('APP_DATABASE_URL', 'sqlite:///./restaurant_tabs.db')
    logger.info(f"Using database: {db_url}")

    storage = SQLAlchemyStorage(db_url, use_alembic=False)
    try:
        restaurant = storage.find_restaurant_by_name(args.restaurant)
        if restaurant is None:
            logger.error(f"Restaurant '{args.restaurant}' not found; register a user for it first")
            return 1

        stats = seed_dishes(CatalogService(storage), restaurant["id"], dishes)

        print("\n" + "=" * 60)
        print("SEED RESULTS")
        print("=" * 60)
        print(f"Restaurant:      {restaurant['name']} ({restaurant['id']})")
        print(f"Dishes Created:  {stats['created']}")
        print(f"Dishes Skipped:  {stats['skipped']}")
        print(f"Dishes Invalid:  {stats['invalid']}")
        print("=" * 60 + "\n")
        return 0
    except AppError as e:
        logger.error(f"Seeding failed: {e.message}", exc_info=True)
        return 1
    finally:
        storage.close()


if __name__ == '__main__':
    sys.exit(main())
