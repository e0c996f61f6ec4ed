"""Table (tab) endpoints backed by the order ledger."""

from typing import List

from fastapi import APIRouter, Depends

from app.api.schemas import CamelModel, MessageResponse, TableResponse, table_response
from app.db.dependencies import get_identity, get_ledger
from app.services import IdentityService, OrderLedger


router = APIRouter(prefix="/api/tables", tags=["tables"])


class OpenTableRequest(CamelModel):
    name: str
    user_id: str
    restaurant_id: str


class AddDishRequest(CamelModel):
    dish_id: str


@router.post("/open", response_model=TableResponse, status_code=201, summary="Open a table")
async def open_table(
    request: OpenTableRequest,
    ledger: OrderLedger = Depends(get_ledger),
):
    """
    Open a new empty table in a restaurant.

    - **409** if a table with the same name is already open there
    """
    table = ledger.open_table(request.name, request.user_id, request.restaurant_id)
    return table_response(table)


@router.get("/open/{user_id}", response_model=List[TableResponse], summary="Open tables of a user")
async def list_open_tables_for_user(
    user_id: str,
    ledger: OrderLedger = Depends(get_ledger),
):
    return [table_response(t) for t in ledger.list_open_by_user(user_id)]


@router.get(
    "/restaurant/open/{user_id}",
    response_model=List[TableResponse],
    summary="Open tables of the user's restaurant",
)
async def list_open_tables_for_restaurant(
    user_id: str,
    ledger: OrderLedger = Depends(get_ledger),
    identity: IdentityService = Depends(get_identity),
):
    _, restaurant = identity.get_user_restaurant(user_id)
    return [table_response(t) for t in ledger.list_open_by_restaurant(restaurant["id"])]


@router.get(
    "/restaurant/closed/{user_id}",
    response_model=List[TableResponse],
    summary="Closed tables of the user's restaurant",
)
async def list_closed_tables_for_restaurant(
    user_id: str,
    ledger: OrderLedger = Depends(get_ledger),
    identity: IdentityService = Depends(get_identity),
):
    _, restaurant = identity.get_user_restaurant(user_id)
    return [table_response(t) for t in ledger.list_closed_by_restaurant(restaurant["id"])]


@router.get("/{table_id}", response_model=TableResponse, summary="Get a table")
async def get_table(
    table_id: str,
    ledger: OrderLedger = Depends(get_ledger),
):
    return table_response(ledger.get_table(table_id))


@router.put("/close/{table_id}", response_model=TableResponse, summary="Close a table")
async def close_table(
    table_id: str,
    ledger: OrderLedger = Depends(get_ledger),
):
    """Close a table. Closing an already closed table returns it unchanged."""
    return table_response(ledger.close_table(table_id))


@router.put("/add-dish/{table_id}", response_model=TableResponse, summary="Add a dish to a table")
async def add_dish_to_table(
    table_id: str,
    request: AddDishRequest,
    ledger: OrderLedger = Depends(get_ledger),
):
    """
    Append a dish to an open table and return it with the new total.

    - **400** if the dish belongs to another restaurant
    - **409** if the table is closed
    """
    return table_response(ledger.attach_dish(table_id, request.dish_id))


@router.delete("/{table_id}", response_model=MessageResponse, summary="Delete a table")
async def delete_table(
    table_id: str,
    ledger: OrderLedger = Depends(get_ledger),
):
    ledger.delete_table(table_id)
    return MessageResponse(message="Table deleted successfully.")
