from __future__ import annotations

import datetime as dt
from typing import Optional
from uuid import uuid4

from sqlmodel import Field, SQLModel

from routestock.models._time import timestamp_field
from routestock.services.units import effective_pcs_price, resolve_pcs_per_box


def _new_id() -> str:
    return uuid4().hex


class Product(SQLModel, table=True):
    __tablename__ = "product"

    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str = Field(index=True, description="display name")
    # NULL means "derive from prices, else 24"
    pcs_per_box: Optional[int] = Field(default=None, description="pieces per box")
    box_price: float = Field(default=0.0)
    pcs_price: Optional[float] = Field(default=None)
    status: str = Field(default="active", index=True)
    created_at: dt.datetime = timestamp_field()

    @property
    def units_per_box(self) -> int:
        return resolve_pcs_per_box(self.pcs_per_box, self.box_price, self.pcs_price)

    @property
    def unit_price(self) -> float:
        return effective_pcs_price(self.box_price, self.pcs_price, self.units_per_box)


class Route(SQLModel, table=True):
    __tablename__ = "route"

    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str = Field(index=True)
    truck_id: Optional[str] = Field(default=None, index=True)
    is_active: bool = Field(default=True)
    created_at: dt.datetime = timestamp_field()


class Driver(SQLModel, table=True):
    __tablename__ = "driver"

    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str = Field(index=True)
    phone: Optional[str] = Field(default=None)
    truck_id: Optional[str] = Field(default=None, index=True)
    is_active: bool = Field(default=True)
    created_at: dt.datetime = timestamp_field()
