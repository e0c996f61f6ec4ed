"""Response models shared by the routers. JSON fields are camelCase."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.utils.money import from_cents


class CamelModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire (both accepted on input)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageResponse(CamelModel):
    message: str


class DishResponse(CamelModel):
    id: str
    name: str
    price: float
    image: Optional[str] = None
    category: str
    restaurant: str


class TableDishResponse(CamelModel):
    """A dish line of a table; price is the one it was ordered at."""
    id: str
    name: Optional[str] = None
    price: float
    image: Optional[str] = None
    category: Optional[str] = None


class TableCreator(CamelModel):
    id: str
    username: Optional[str] = None


class TableResponse(CamelModel):
    id: str
    name: str
    user: TableCreator
    restaurant: str
    is_open: bool
    dishes: List[TableDishResponse]
    total: float
    opened_at: datetime
    closed_at: Optional[datetime] = None


def dish_response(dish: Dict[str, Any]) -> DishResponse:
    return DishResponse(
        id=dish["id"],
        name=dish["name"],
        price=from_cents(dish["price_cents"]),
        image=dish.get("image"),
        category=dish["category"],
        restaurant=dish["restaurant_id"],
    )


def table_response(table: Dict[str, Any]) -> TableResponse:
    """Build the API view of a table resolved by OrderLedger.resolve()."""
    return TableResponse(
        id=table["id"],
        name=table["name"],
        user=TableCreator(**table["user"]),
        restaurant=table["restaurant_id"],
        is_open=table["is_open"],
        dishes=[
            TableDishResponse(
                id=line["id"],
                name=line["name"],
                price=from_cents(line["price_cents"]),
                image=line["image"],
                category=line["category"],
            )
            for line in table["dishes"]
        ],
        total=from_cents(table["total_cents"]),
        opened_at=table["opened_at"],
        closed_at=table["closed_at"],
    )
