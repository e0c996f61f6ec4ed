"""
SQLAlchemy storage implementation for the relational domain models.

Maps the document-style Storage interface onto the canonical models in
app.db.models. Unique keys (restaurant name, username, email, open table
name) are enforced by the database; table writes are compare-and-set on
the version column.
"""

import logging
import os
from contextlib import contextmanager
from typing import Dict, List, Any, Iterator, Optional
from uuid import uuid4

from sqlalchemy import create_engine, select, update, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, selectinload, Session

from app.db import init_db
from app.db.models import Base, Restaurant, User, Dish, DiningTable, TableDish
from app.errors import DuplicateKeyError, NotFound, StaleWriteError, StoreError
from app.storage.base import Storage
from app.utils.time_utils import to_utc_naive

logger = logging.getLogger(__name__)


class SQLAlchemyStorage(Storage):
    """SQLAlchemy-backed storage (SQLite by default, any SQLAlchemy URL works)."""

    backend_name = "sqlalchemy"

    def __init__(self, database_url: str = "sqlite:///restaurant_tabs.db", use_alembic: Optional[bool] = None):
        """
        Initialize SQLAlchemy storage with canonical models.

        Args:
            database_url: SQLAlchemy database URL
            use_alembic: Run Alembic migrations instead of create_all.
                         Defaults to the USE_ALEMBIC env var.
        """
        self.database_url = database_url

        # future=True: SQLAlchemy 2.0 style execution
        # pool_pre_ping=True: verify connections before use
        self.engine = create_engine(
            self.database_url,
            connect_args={"check_same_thread": False} if "sqlite" in database_url else {},
            echo=False,
            future=True,
            pool_pre_ping=True,
        )
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        if use_alembic is None:
            use_alembic = os.getenv("USE_ALEMBIC", "false").lower() == "true"
        init_db(self.engine, use_alembic=use_alembic, base=Base)
        logger.info("SQLAlchemyStorage initialized at %s", self.database_url)

    def _get_session(self) -> Session:
        """Get a new database session (caller must close)."""
        return self.SessionLocal()

    @contextmanager
    def _session_scope(self, write: bool = False, duplicate_message: str = "Duplicate key.") -> Iterator[Session]:
        """
        Yield a session, wrapping writes in a transaction.

        IntegrityError becomes DuplicateKeyError, any other SQLAlchemy
        failure becomes StoreError.
        """
        session = self._get_session()
        try:
            if write:
                with session.begin():
                    yield session
            else:
                yield session
        except IntegrityError as e:
            raise DuplicateKeyError(duplicate_message) from e
        except SQLAlchemyError as e:
            logger.error("Storage failure: %s", e)
            raise StoreError(f"Storage failure: {e}") from e
        finally:
            session.close()

    # ---------- Restaurants ----------

    def create_restaurant(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new restaurant (name is unique)."""
        row = Restaurant(
            id=uuid4().hex,
            name=data["name"],
            code=data["code"],
            owner_id=data.get("owner_id"),
        )
        with self._session_scope(write=True, duplicate_message=f"Restaurant '{data['name']}' already exists.") as session:
            session.add(row)
        return row.to_dict()

    def get_restaurant(self, restaurant_id: str) -> Optional[Dict[str, Any]]:
        """Get a restaurant by id."""
        with self._session_scope() as session:
            row = session.get(Restaurant, restaurant_id)
            return row.to_dict() if row else None

    def find_restaurant_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        """Get a restaurant by name."""
        with self._session_scope() as session:
            stmt = select(Restaurant).where(Restaurant.name == name)
            row = session.execute(stmt).scalar_one_or_none()
            return row.to_dict() if row else None

    def set_restaurant_owner(self, restaurant_id: str, user_id: str) -> bool:
        """Assign the owner only if unset (single conditional UPDATE)."""
        with self._session_scope(write=True) as session:
            result = session.execute(
                update(Restaurant)
                .where(Restaurant.id == restaurant_id)
                .where(Restaurant.owner_id.is_(None))
                .values(owner_id=user_id)
            )
            return result.rowcount == 1

    def delete_restaurant(self, restaurant_id: str) -> bool:
        """Delete a restaurant without members."""
        members = select(User.id).where(User.restaurant_id == restaurant_id)
        with self._session_scope(write=True) as session:
            result = session.execute(
                delete(Restaurant)
                .where(Restaurant.id == restaurant_id)
                .where(~members.exists())
            )
            return result.rowcount == 1

    # ---------- Users ----------

    def create_user(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new user (username and email are unique)."""
        row = User(
            id=uuid4().hex,
            username=data["username"],
            email=data["email"],
            password_hash=data["password_hash"],
            restaurant_id=data["restaurant_id"],
        )
        with self._session_scope(write=True, duplicate_message="Username or email is already registered.") as session:
            session.add(row)
        return row.to_dict()

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get a user by id."""
        with self._session_scope() as session:
            row = session.get(User, user_id)
            return row.to_dict() if row else None

    def find_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        """Get a user by username."""
        with self._session_scope() as session:
            row = session.execute(select(User).where(User.username == username)).scalar_one_or_none()
            return row.to_dict() if row else None

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Get a user by email."""
        with self._session_scope() as session:
            row = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
            return row.to_dict() if row else None

    # ---------- Dishes ----------

    def create_dish(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new dish."""
        row = Dish(
            id=uuid4().hex,
            name=data["name"],
            price_cents=data["price_cents"],
            image=data.get("image"),
            category=data["category"],
            restaurant_id=data["restaurant_id"],
        )
        with self._session_scope(write=True) as session:
            session.add(row)
        return row.to_dict()

    def get_dish(self, dish_id: str) -> Optional[Dict[str, Any]]:
        """Get a dish by id."""
        with self._session_scope() as session:
            row = session.get(Dish, dish_id)
            return row.to_dict() if row else None

    def get_dishes(self, dish_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        """Bulk lookup of dishes by id."""
        if not dish_ids:
            return {}
        with self._session_scope() as session:
            rows = session.execute(select(Dish).where(Dish.id.in_(set(dish_ids)))).scalars().all()
            return {row.id: row.to_dict() for row in rows}

    def list_dishes(self, restaurant_id: str) -> List[Dict[str, Any]]:
        """List all dishes of a restaurant."""
        with self._session_scope() as session:
            rows = session.execute(select(Dish).where(Dish.restaurant_id == restaurant_id)).scalars().all()
            return [row.to_dict() for row in rows]

    def delete_dish(self, dish_id: str) -> bool:
        """Delete a dish. Table lines keep their price snapshot."""
        with self._session_scope(write=True) as session:
            result = session.execute(delete(Dish).where(Dish.id == dish_id))
            return result.rowcount == 1

    # ---------- Tables ----------

    def insert_table(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new table; the partial unique index guards open names."""
        table_id = uuid4().hex
        row = DiningTable(
            id=table_id,
            name=data["name"],
            user_id=data["user_id"],
            restaurant_id=data["restaurant_id"],
            is_open=data.get("is_open", True),
            total_cents=data.get("total_cents", 0),
            opened_at=to_utc_naive(data["opened_at"]),
            closed_at=to_utc_naive(data.get("closed_at")),
            version=1,
        )
        row.lines = self._build_lines(table_id, data.get("dishes", []))
        with self._session_scope(
            write=True,
            duplicate_message="A table with the same name is already open in this restaurant.",
        ) as session:
            session.add(row)
        return self.get_table(table_id)

    @staticmethod
    def _build_lines(table_id: str, dishes: List[Dict[str, Any]]) -> List[TableDish]:
        return [
            TableDish(table_id=table_id, position=position, dish_id=line["dish_id"], price_cents=line["price_cents"])
            for position, line in enumerate(dishes)
        ]

    def get_table(self, table_id: str) -> Optional[Dict[str, Any]]:
        """Get a table by id with its dish lines."""
        with self._session_scope() as session:
            stmt = select(DiningTable).options(selectinload(DiningTable.lines)).where(DiningTable.id == table_id)
            row = session.execute(stmt).scalar_one_or_none()
            return row.to_dict() if row else None

    def find_tables(
        self,
        restaurant_id: Optional[str] = None,
        user_id: Optional[str] = None,
        is_open: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        """List tables matching the given filters."""
        stmt = select(DiningTable).options(selectinload(DiningTable.lines))
        if restaurant_id is not None:
            stmt = stmt.where(DiningTable.restaurant_id == restaurant_id)
        if user_id is not None:
            stmt = stmt.where(DiningTable.user_id == user_id)
        if is_open is not None:
            stmt = stmt.where(DiningTable.is_open == is_open)
        stmt = stmt.order_by(DiningTable.opened_at)
        with self._session_scope() as session:
            return [row.to_dict() for row in session.execute(stmt).scalars().all()]

    def update_table(self, data: Dict[str, Any], expected_version: int) -> Dict[str, Any]:
        """Compare-and-set write: one UPDATE guarded by the version column."""
        table_id = data["id"]
        with self._session_scope(write=True) as session:
            result = session.execute(
                update(DiningTable)
                .where(DiningTable.id == table_id)
                .where(DiningTable.version == expected_version)
                .values(
                    is_open=data["is_open"],
                    total_cents=data["total_cents"],
                    closed_at=to_utc_naive(data.get("closed_at")),
                    version=expected_version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                if session.get(DiningTable, table_id) is None:
                    raise NotFound("Table", table_id)
                raise StaleWriteError(
                    f"Table {table_id} was modified concurrently (expected version {expected_version})."
                )
            session.execute(delete(TableDish).where(TableDish.table_id == table_id))
            session.add_all(self._build_lines(table_id, data["dishes"]))
        return self.get_table(table_id)

    def delete_table(self, table_id: str) -> bool:
        """Delete a table and its dish lines (never dishes themselves)."""
        with self._session_scope(write=True) as session:
            session.execute(delete(TableDish).where(TableDish.table_id == table_id))
            result = session.execute(delete(DiningTable).where(DiningTable.id == table_id))
            return result.rowcount == 1

    # ---------- Lifecycle ----------

    def clear(self) -> None:
        """Clear all state (children first)."""
        with self._session_scope(write=True) as session:
            session.execute(delete(TableDish))
            session.execute(delete(DiningTable))
            session.execute(delete(Dish))
            session.execute(delete(User))
            session.execute(delete(Restaurant))

    def close(self) -> None:
        """Dispose the engine and its connection pool."""
        self.engine.dispose()
