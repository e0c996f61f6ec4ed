import pytest
import pytest_asyncio
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.main import app
from app.services import CatalogService, IdentityService, OrderLedger
from app.storage import InMemoryStorage, SQLAlchemyStorage
import httpx
from httpx import ASGITransport


@pytest.fixture
def reset_app_state():
    """Reset the application's storage before and after each test."""
    app.state.storage.clear()
    yield
    app.state.storage.clear()


@pytest_asyncio.fixture
async def async_client(reset_app_state):
    """Create async HTTP client for testing."""
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture(params=["inmemory", "sqlalchemy"])
def storage(request, tmp_path):
    """Fresh storage of each backend (SQLite file for the SQLAlchemy one)."""
    if request.param == "inmemory":
        yield InMemoryStorage()
    else:
        s = SQLAlchemyStorage(f"sqlite:///{tmp_path / 'tabs.db'}", use_alembic=False)
        yield s
        s.close()


@pytest.fixture
def ledger(storage):
    return OrderLedger(storage)


@pytest.fixture
def cafe(storage):
    """
    A registered restaurant "Cafe" (code 1234) with its owner and a small menu.

    Returns a dict of ids: user_id, restaurant_id, coffee_id (3.50),
    tea_id (2.25), cake_id (4.10).
    """
    identity = IdentityService(storage)
    catalog = CatalogService(storage)
    registered = identity.register("alice", "alice@example.com", "secret123", "Cafe", "1234")
    restaurant_id = registered["restaurant_id"]
    coffee = catalog.create_dish("Coffee", 3.50, "coffee.png", "Beverage", restaurant_id)
    tea = catalog.create_dish("Tea", 2.25, None, "Beverage", restaurant_id)
    cake = catalog.create_dish("Cake", 4.10, None, "Kitchen", restaurant_id)
    return {
        "user_id": registered["user_id"],
        "restaurant_id": restaurant_id,
        "coffee_id": coffee["id"],
        "tea_id": tea["id"],
        "cake_id": cake["id"],
    }


@pytest.fixture
def bistro(storage):
    """A second, unrelated restaurant "Bistro" with one user and one dish."""
    identity = IdentityService(storage)
    catalog = CatalogService(storage)
    registered = identity.register("bob", "bob@example.com", "hunter22", "Bistro", "9999")
    wine = catalog.create_dish("Wine", 6.00, None, "Beverage", registered["restaurant_id"])
    return {
        "user_id": registered["user_id"],
        "restaurant_id": registered["restaurant_id"],
        "wine_id": wine["id"],
    }


@pytest.fixture
def register_user(async_client):
    """Register through the API and return the JSON body."""
    async def register(username, restaurant_name="Cafe", code="1234", password="secret123"):
        response = await async_client.post("/api/users/register", json={
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
            "restaurantName": restaurant_name,
            "restaurantCode": code,
        })
        assert response.status_code == 201, response.text
        return response.json()
    return register
