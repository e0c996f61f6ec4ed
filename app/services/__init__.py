"""Domain services. Each one holds an explicit Storage handle."""

from .catalog import CatalogService, DISH_CATEGORIES
from .identity import IdentityService
from .ledger import OrderLedger, order_total

__all__ = ["CatalogService", "DISH_CATEGORIES", "IdentityService", "OrderLedger", "order_total"]
