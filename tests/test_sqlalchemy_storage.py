"""
Tests specific to SQLAlchemyStorage: persistence across restarts, the
partial unique index on open table names and error translation.
"""

import os
import shutil
import tempfile
from datetime import datetime, timezone

import pytest
from sqlalchemy import inspect

from app.errors import DuplicateKeyError, StoreError
from app.services import CatalogService, IdentityService, OrderLedger
from app.storage import SQLAlchemyStorage


@pytest.fixture
def db_url():
    """URL of a SQLite file in a temporary directory."""
    temp_dir = tempfile.mkdtemp()
    yield f"sqlite:///{os.path.join(temp_dir, 'tabs.db')}"
    shutil.rmtree(temp_dir, ignore_errors=True)


class TestSQLAlchemyPersistence:

    def test_data_survives_reopen(self, db_url):
        storage = SQLAlchemyStorage(db_url, use_alembic=False)
        registered = IdentityService(storage).register("alice", "alice@example.com", "pw123456", "Cafe", "1234")
        coffee = CatalogService(storage).create_dish("Coffee", 3.5, None, "Beverage", registered["restaurant_id"])
        ledger = OrderLedger(storage)
        table = ledger.open_table("T1", registered["user_id"], registered["restaurant_id"])
        ledger.attach_dish(table["id"], coffee["id"])
        ledger.attach_dish(table["id"], coffee["id"])
        storage.close()

        reopened = SQLAlchemyStorage(db_url, use_alembic=False)
        try:
            stored = reopened.get_table(table["id"])
            assert stored["total_cents"] == 700
            assert [line["dish_id"] for line in stored["dishes"]] == [coffee["id"], coffee["id"]]
            assert stored["version"] == 3
            assert reopened.find_user_by_username("alice")["restaurant_id"] == registered["restaurant_id"]
        finally:
            reopened.close()

    def test_timestamps_come_back_as_utc(self, db_url):
        storage = SQLAlchemyStorage(db_url, use_alembic=False)
        try:
            restaurant = storage.create_restaurant({"name": "Cafe", "code": "1", "owner_id": None})
            opened_at = datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)
            table = storage.insert_table({
                "name": "T1",
                "user_id": "u1",
                "restaurant_id": restaurant["id"],
                "is_open": True,
                "dishes": [],
                "total_cents": 0,
                "opened_at": opened_at,
                "closed_at": None,
            })
            assert table["opened_at"] == opened_at
            assert table["opened_at"].tzinfo is not None
        finally:
            storage.close()


class TestSQLAlchemySchema:

    def test_open_name_index_is_partial_and_unique(self, db_url):
        storage = SQLAlchemyStorage(db_url, use_alembic=False)
        try:
            indexes = {ix["name"]: ix for ix in inspect(storage.engine).get_indexes("tables")}
            assert "uq_tables_open_name" in indexes
            assert indexes["uq_tables_open_name"]["unique"]
            assert indexes["uq_tables_open_name"]["column_names"] == ["restaurant_id", "name"]
        finally:
            storage.close()

    def test_closed_tables_may_share_a_name(self, db_url):
        storage = SQLAlchemyStorage(db_url, use_alembic=False)
        try:
            registered = IdentityService(storage).register("alice", "alice@example.com", "pw123456", "Cafe", "1234")
            ledger = OrderLedger(storage)
            for _ in range(3):
                table = ledger.open_table("Terrace", registered["user_id"], registered["restaurant_id"])
                ledger.close_table(table["id"])

            closed = ledger.list_closed_by_restaurant(registered["restaurant_id"])
            assert [t["name"] for t in closed] == ["Terrace"] * 3

            ledger.open_table("Terrace", registered["user_id"], registered["restaurant_id"])
            with pytest.raises(DuplicateKeyError):
                ledger.open_table("Terrace", registered["user_id"], registered["restaurant_id"])
        finally:
            storage.close()

    def test_delete_table_removes_its_lines(self, db_url):
        storage = SQLAlchemyStorage(db_url, use_alembic=False)
        try:
            registered = IdentityService(storage).register("alice", "alice@example.com", "pw123456", "Cafe", "1234")
            coffee = CatalogService(storage).create_dish("Coffee", 3.5, None, "Beverage", registered["restaurant_id"])
            ledger = OrderLedger(storage)
            table = ledger.open_table("T1", registered["user_id"], registered["restaurant_id"])
            ledger.attach_dish(table["id"], coffee["id"])

            ledger.delete_table(table["id"])

            with storage.engine.connect() as conn:
                remaining = conn.exec_driver_sql("SELECT COUNT(*) FROM table_dishes").scalar()
            assert remaining == 0
            assert storage.get_dish(coffee["id"]) is not None
        finally:
            storage.close()


class TestSQLAlchemyErrors:

    def test_database_failure_becomes_store_error(self, db_url):
        storage = SQLAlchemyStorage(db_url, use_alembic=False)
        try:
            with storage.engine.begin() as conn:
                conn.exec_driver_sql("DROP TABLE table_dishes")
            with pytest.raises(StoreError):
                storage.clear()
        finally:
            storage.close()

    def test_backend_name(self, db_url):
        storage = SQLAlchemyStorage(db_url, use_alembic=False)
        try:
            assert storage.backend_name == "sqlalchemy"
        finally:
            storage.close()
