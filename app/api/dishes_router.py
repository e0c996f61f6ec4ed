"""Dish (menu item) endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends

from app.api.schemas import CamelModel, DishResponse, MessageResponse, dish_response
from app.db.dependencies import get_catalog
from app.services import CatalogService


router = APIRouter(prefix="/api/dishes", tags=["dishes"])


class CreateDishRequest(CamelModel):
    """Request body for creating a dish."""
    name: str
    price: float
    image: Optional[str] = None  # URL or path of the picture
    category: str  # Kitchen / Beverage / Other
    restaurant_id: str


@router.post("", response_model=DishResponse, status_code=201, summary="Create a dish")
async def create_dish(
    request: CreateDishRequest,
    catalog: CatalogService = Depends(get_catalog),
):
    """
    Create a dish in a restaurant's menu.

    - **price**: non-negative decimal
    - **category**: Kitchen, Beverage or Other
    """
    dish = catalog.create_dish(
        name=request.name,
        price=request.price,
        image=request.image,
        category=request.category,
        restaurant_id=request.restaurant_id,
    )
    return dish_response(dish)


@router.get("/restaurant/{restaurant_id}", response_model=List[DishResponse], summary="Dishes of a restaurant")
async def list_dishes(
    restaurant_id: str,
    catalog: CatalogService = Depends(get_catalog),
):
    return [dish_response(d) for d in catalog.list_dishes_by_restaurant(restaurant_id)]


@router.delete("/{dish_id}", response_model=MessageResponse, summary="Delete a dish")
async def delete_dish(
    dish_id: str,
    catalog: CatalogService = Depends(get_catalog),
):
    catalog.delete_dish(dish_id)
    return MessageResponse(message="Dish deleted successfully.")
