"""init schema: restaurants, users, dishes, tables, table_dishes

Revision ID: 001_init
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "restaurants",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(255), nullable=False),
        sa.Column("owner_id", sa.String(32), nullable=True),
        sa.UniqueConstraint("name"),
    )
    op.create_index("ix_restaurants_name", "restaurants", ["name"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("restaurant_id", sa.String(32), sa.ForeignKey("restaurants.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("username"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_username", "users", ["username"])
    op.create_index("ix_users_restaurant_id", "users", ["restaurant_id"])

    op.create_table(
        "dishes",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("image", sa.String(1024), nullable=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("restaurant_id", sa.String(32), sa.ForeignKey("restaurants.id"), nullable=False),
    )
    op.create_index("ix_dishes_restaurant_id", "dishes", ["restaurant_id"])

    op.create_table(
        "tables",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column("restaurant_id", sa.String(32), sa.ForeignKey("restaurants.id"), nullable=False),
        sa.Column("is_open", sa.Boolean(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("opened_at", sa.DateTime(), nullable=False),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_tables_user_id", "tables", ["user_id"])
    op.create_index("ix_tables_restaurant_id", "tables", ["restaurant_id"])
    op.create_index("idx_tables_restaurant_open", "tables", ["restaurant_id", "is_open"])
    op.create_index(
        "uq_tables_open_name",
        "tables",
        ["restaurant_id", "name"],
        unique=True,
        sqlite_where=sa.text("is_open = 1"),
        postgresql_where=sa.text("is_open"),
    )

    op.create_table(
        "table_dishes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("table_id", sa.String(32), sa.ForeignKey("tables.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("dish_id", sa.String(32), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.UniqueConstraint("table_id", "position", name="uq_table_dishes_position"),
    )
    op.create_index("ix_table_dishes_table_id", "table_dishes", ["table_id"])
    op.create_index("ix_table_dishes_dish_id", "table_dishes", ["dish_id"])


def downgrade() -> None:
    op.drop_table("table_dishes")
    op.drop_index("uq_tables_open_name", table_name="tables")
    op.drop_table("tables")
    op.drop_table("dishes")
    op.drop_table("users")
    op.drop_table("restaurants")
