"""Storage abstraction layer for the restaurant tabs backend."""

from .base import Storage
from .inmemory import InMemoryStorage
from .sqlalchemy_adapter import SQLAlchemyStorage

__all__ = ["Storage", "InMemoryStorage", "SQLAlchemyStorage"]
