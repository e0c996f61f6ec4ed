"""
Canonical relational database models for the restaurant tabs backend.

These models back SQLAlchemyStorage and are used by Alembic for migration
generation. Money columns hold integer cents. Identifiers are uuid4 hex
strings generated by the storage layer.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.orm import declarative_base, relationship

from app.utils.time_utils import now_utc, to_utc, to_utc_naive

Base = declarative_base()


class Restaurant(Base):
    """Tenant boundary. Users join it with the shared code."""

    __tablename__ = "restaurants"

    id = Column(String(32), primary_key=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    code = Column(String(255), nullable=False)
    # Plain column: users reference restaurants, so a FK here would be circular
    owner_id = Column(String(32), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "owner_id": self.owner_id,
        }

    def __repr__(self):
        return f"<Restaurant(id={self.id}, name={self.name})>"


class User(Base):
    """Staff member of one restaurant."""

    __tablename__ = "users"

    id = Column(String(32), primary_key=True)
    username = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    restaurant_id = Column(String(32), ForeignKey("restaurants.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=lambda: to_utc_naive(now_utc()), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "password_hash": self.password_hash,
            "restaurant_id": self.restaurant_id,
            "created_at": to_utc(self.created_at),
        }

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"


class Dish(Base):
    """Menu item scoped to one restaurant."""

    __tablename__ = "dishes"

    id = Column(String(32), primary_key=True)
    name = Column(String(255), nullable=False)
    price_cents = Column(Integer, nullable=False)
    image = Column(String(1024), nullable=True)
    category = Column(String(20), nullable=False)  # Kitchen / Beverage / Other
    restaurant_id = Column(String(32), ForeignKey("restaurants.id"), nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "image": self.image,
            "category": self.category,
            "restaurant_id": self.restaurant_id,
        }

    def __repr__(self):
        return f"<Dish(id={self.id}, name={self.name}, price_cents={self.price_cents})>"


class DiningTable(Base):
    """An open or closed tab of a restaurant."""

    __tablename__ = "tables"

    id = Column(String(32), primary_key=True)
    name = Column(String(255), nullable=False)
    # Creator attribution only, no FK: removing a user must not touch tables
    user_id = Column(String(32), nullable=False, index=True)
    restaurant_id = Column(String(32), ForeignKey("restaurants.id"), nullable=False, index=True)
    is_open = Column(Boolean, default=True, nullable=False)
    total_cents = Column(Integer, default=0, nullable=False)
    opened_at = Column(DateTime, nullable=False)
    closed_at = Column(DateTime, nullable=True)
    version = Column(Integer, default=1, nullable=False)

    lines = relationship(
        "TableDish",
        back_populates="table",
        order_by="TableDish.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_tables_restaurant_open", "restaurant_id", "is_open"),
        # At most one open table per name within a restaurant
        Index(
            "uq_tables_open_name",
            "restaurant_id",
            "name",
            unique=True,
            sqlite_where=text("is_open = 1"),
            postgresql_where=text("is_open"),
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "user_id": self.user_id,
            "restaurant_id": self.restaurant_id,
            "is_open": self.is_open,
            "dishes": [line.to_dict() for line in self.lines],
            "total_cents": self.total_cents,
            "opened_at": to_utc(self.opened_at),
            "closed_at": to_utc(self.closed_at),
            "version": self.version,
        }

    def __repr__(self):
        return f"<DiningTable(id={self.id}, name={self.name}, open={self.is_open})>"


class TableDish(Base):
    """One dish line of a table, with the price it was added at."""

    __tablename__ = "table_dishes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_id = Column(String(32), ForeignKey("tables.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    # No FK: deleting a dish from the catalog keeps past tabs intact
    dish_id = Column(String(32), nullable=False, index=True)
    price_cents = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("table_id", "position", name="uq_table_dishes_position"),
    )

    table = relationship("DiningTable", back_populates="lines")

    def to_dict(self):
        return {"dish_id": self.dish_id, "price_cents": self.price_cents}

    def __repr__(self):
        return f"<TableDish(table_id={self.table_id}, dish_id={self.dish_id}, position={self.position})>"
