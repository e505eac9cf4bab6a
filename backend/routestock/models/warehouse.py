from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from routestock.models._time import timestamp_field
from routestock.services.units import Quantity, to_total_pcs


class MovementType(str, Enum):
    IN = "IN"
    ASSIGN = "ASSIGN"
    RETURN = "RETURN"
    ADJUST = "ADJUST"


class WarehouseStock(SQLModel, table=True):
    """Current, authoritative warehouse level of one product."""

    __tablename__ = "warehouse_stock"

    product_id: str = Field(primary_key=True, foreign_key="product.id")
    boxes: int = Field(default=0)
    pcs: int = Field(default=0)
    updated_at: dt.datetime = timestamp_field()

    @property
    def quantity(self) -> Quantity:
        return Quantity(self.boxes, self.pcs)

    def total(self, pcs_per_box: int) -> int:
        return to_total_pcs(self.boxes, self.pcs, pcs_per_box)


class WarehouseMovement(SQLModel, table=True):
    """Append-only audit entry; never updated after insert."""

    __tablename__ = "warehouse_movement"

    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: str = Field(index=True, foreign_key="product.id")
    movement_type: str = Field(index=True, description="IN / ASSIGN / RETURN / ADJUST")
    # ASSIGN / RETURN / IN hold absolute amounts; ADJUST holds signed diffs
    boxes: int = Field(default=0)
    pcs: int = Field(default=0)
    note: Optional[str] = Field(default=None)
    created_at: dt.datetime = timestamp_field(index=True)
