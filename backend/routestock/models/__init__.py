"""
Aggregate export for all SQLModel table classes.

Importing ``routestock.models`` registers every table in
``SQLModel.metadata``, so Alembic and the test fixtures see the whole
schema.
"""

# --- catalogue -------------------------------------------------------------
from .catalog import Driver, Product, Route  # noqa: F401

# --- route stock -----------------------------------------------------------
from .stock import DailyStock  # noqa: F401

# --- warehouse -------------------------------------------------------------
from .warehouse import MovementType, WarehouseMovement, WarehouseStock  # noqa: F401

# --- billing ---------------------------------------------------------------
from .sale import Sale  # noqa: F401

# --- notifications ---------------------------------------------------------
from .notification import Notification  # noqa: F401

__all__ = [
    "Product",
    "Route",
    "Driver",
    "DailyStock",
    "WarehouseStock",
    "WarehouseMovement",
    "MovementType",
    "Sale",
    "Notification",
]
