"""Database models and migrations for the restaurant tabs backend."""

import logging
import os
from typing import Optional, Any
from sqlalchemy.engine import Engine

from app.db.models import Base

logger = logging.getLogger(__name__)


def init_db(engine: Engine, use_alembic: bool = True, base: Optional[Any] = None) -> None:
    """
    Initialize database schema using Alembic or create_all fallback.

    Args:
        engine: SQLAlchemy engine instance
        use_alembic: If True, run Alembic migrations; else use Base.metadata.create_all()
                    Useful for development: False gives instant schema, True tracks migrations
        base: SQLAlchemy declarative base to use. If None, uses app.db.models.Base.

    Raises:
        RuntimeError: If Alembic migration fails or alembic.ini is not found
    """
    if base is None:
        base = Base

    if use_alembic:
        from alembic.config import Config
        from alembic import command

        # Project root: app/db/__init__.py -> app/db -> app -> root
        root_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
        alembic_ini = os.path.join(root_dir, "alembic.ini")

        if not os.path.exists(alembic_ini):
            raise RuntimeError(f"alembic.ini not found at {alembic_ini}")

        config = Config(alembic_ini)
        config.set_main_option("script_location", os.path.join(root_dir, "alembic"))

        try:
            with engine.begin() as connection:
                config.attributes["connection"] = connection
                command.upgrade(config, "head")
        except Exception as e:
            raise RuntimeError(f"Alembic migration failed: {e}") from e
        logger.info("Alembic upgrade to head completed")
    else:
        # Create only missing tables; existing data is preserved
        try:
            base.metadata.create_all(engine)
        except Exception as e:
            raise RuntimeError(f"Failed to create database tables: {e}") from e
        logger.info("Schema synchronized from %s metadata", base.__name__)


__all__ = ["Base", "init_db"]
