"""
Explicit request context for stock operations.

Every assignment, sale and route operation receives a ``StockContext``
naming the route, the business date and (optionally) the driver and truck
it acts for.  Nothing is looked up from process-global state.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, replace
from typing import Any, Optional

from routestock.services.errors import StockValidationError


def parse_date(value: Any) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return dt.date.fromisoformat(value.strip()[:10])
        except ValueError as exc:
            raise StockValidationError(f"Invalid date: {value!r}") from exc
    raise StockValidationError(f"Invalid date: {value!r}")


def _clean_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class StockContext:
    date: dt.date
    route_id: str
    driver_id: Optional[str] = None
    truck_id: Optional[str] = None

    def __post_init__(self) -> None:
        route_id = _clean_id(self.route_id)
        if route_id is None:
            raise StockValidationError("route_id is required")
        object.__setattr__(self, "route_id", route_id)
        object.__setattr__(self, "date", parse_date(self.date))
        object.__setattr__(self, "driver_id", _clean_id(self.driver_id))
        object.__setattr__(self, "truck_id", _clean_id(self.truck_id))

    def for_driver(self, driver_id: str) -> "StockContext":
        return replace(self, driver_id=driver_id)

    def require_driver(self) -> str:
        if self.driver_id is None:
            raise StockValidationError("driver_id is required")
        return self.driver_id

    def describe(self) -> str:
        parts = [f"route={self.route_id}", f"date={self.date.isoformat()}"]
        if self.driver_id:
            parts.append(f"driver={self.driver_id}")
        if self.truck_id:
            parts.append(f"truck={self.truck_id}")
        return " ".join(parts)
