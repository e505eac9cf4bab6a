"""Request bodies shared by the stock routers."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from routestock.services.context import StockContext


class StockLineIn(BaseModel):
    productId: str
    boxQty: int = 0
    pcsQty: int = 0

    def to_line(self) -> dict:
        return {"productId": self.productId, "boxQty": self.boxQty, "pcsQty": self.pcsQty}


class ContextIn(BaseModel):
    # plain str so malformed dates surface as a 400 from StockContext
    date: str
    route_id: str
    driver_id: Optional[str] = None
    truck_id: Optional[str] = None

    def context(self) -> StockContext:
        return StockContext(
            date=self.date,
            route_id=self.route_id,
            driver_id=self.driver_id,
            truck_id=self.truck_id,
        )


class AssignRequest(ContextIn):
    items: list[StockLineIn] = Field(default_factory=list)
    note: Optional[str] = None


class SaleLineIn(StockLineIn):
    unitPrice: Optional[float] = None
    productName: Optional[str] = None

    def to_line(self) -> dict:
        line = super().to_line()
        if self.unitPrice is not None:
            line["unitPrice"] = self.unitPrice
        if self.productName:
            line["productName"] = self.productName
        return line


class SaleRequest(ContextIn):
    shop_name: str
    items: list[SaleLineIn] = Field(default_factory=list)


class ReceiveRequest(BaseModel):
    product_id: str
    boxes: int = 0
    pcs: int = 0
    note: Optional[str] = None


class AdjustRequest(BaseModel):
    product_id: str
    boxes: int
    pcs: int = 0
    note: Optional[str] = None
