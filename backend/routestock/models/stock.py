from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from routestock.models._time import timestamp_field, utcnow
from routestock.services.units import Quantity, quantities_by_product, quantity_lines


class DailyStock(SQLModel, table=True):
    """
    Stock handed to one route for one business date.

    ``stock`` is what is left to sell and goes down with every sale.
    ``initial_stock`` is the baseline of the last admin assignment and is
    only ever changed by further assignments.  ``driver_id`` is NULL until a
    driver claims the route.
    """

    __tablename__ = "daily_stock"

    id: Optional[int] = Field(default=None, primary_key=True)
    route_id: str = Field(index=True)
    date: dt.date = Field(index=True)
    driver_id: Optional[str] = Field(default=None, index=True)
    truck_id: Optional[str] = Field(default=None, index=True)

    # [{productId, boxQty, pcsQty}, ...]
    stock: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    initial_stock: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )

    created_at: dt.datetime = timestamp_field()
    updated_at: dt.datetime = timestamp_field()

    # JSON columns are replaced wholesale (never mutated in place) so the
    # ORM always sees the change.
    def stock_quantities(self) -> dict[str, Quantity]:
        return quantities_by_product(self.stock)

    def initial_quantities(self) -> dict[str, Quantity]:
        return quantities_by_product(self.initial_stock)

    def set_stock(self, quantities: dict[str, Quantity]) -> None:
        self.stock = quantity_lines(quantities)
        self.updated_at = utcnow()

    def set_initial_stock(self, quantities: dict[str, Quantity]) -> None:
        self.initial_stock = quantity_lines(quantities)
        self.updated_at = utcnow()
