from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from routestock.models._time import timestamp_field
from routestock.services.sale_items import SaleLine, normalize_sale_items


class Sale(SQLModel, table=True):
    __tablename__ = "sale"

    id: Optional[int] = Field(default=None, primary_key=True)
    route_id: str = Field(index=True)
    date: dt.date = Field(index=True)
    driver_id: Optional[str] = Field(default=None, index=True)
    truck_id: Optional[str] = Field(default=None)
    shop_name: str = Field(default="")
    # Older rows hold {"items": [...]} or a JSON string; see normalize_sale_items
    products_sold: Any = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    total_amount: float = Field(default=0.0)
    created_at: dt.datetime = timestamp_field()

    def items(self) -> list[SaleLine]:
        return normalize_sale_items(self.products_sold)
