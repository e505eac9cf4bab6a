"""
Domain errors raised by the stock services.

Routers translate them to HTTP status codes:

* ``StockValidationError`` -> 400 (bad input, rejected before any write)
* ``StockNotFoundError``   -> 404
* ``StockConflictError``   -> 409 (valid input that the current stock refuses)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from routestock.services.units import Quantity


class StockError(Exception):
    """Base class for every error the stock services raise on purpose."""


class StockValidationError(StockError, ValueError):
    pass


class StockNotFoundError(StockError, LookupError):
    pass


class StockConflictError(StockError):
    pass


class RouteAlreadyStartedError(StockConflictError):
    def __init__(self, route_id: str, date: object, driver_id: Optional[str] = None):
        self.route_id = route_id
        self.date = date
        self.driver_id = driver_id
        who = f" by driver {driver_id}" if driver_id else ""
        super().__init__(
            f"Route {route_id} on {date} has already been started{who}; "
            "stock can no longer be assigned"
        )


class InsufficientStockError(StockConflictError):
    """Warehouse cannot cover an assignment delta."""

    def __init__(
        self,
        product_name: str,
        available: "Quantity",
        required: "Quantity",
        shortfall: "Quantity",
    ):
        self.product_name = product_name
        self.available = available
        self.required = required
        self.shortfall = shortfall
        super().__init__(
            f"Not enough warehouse stock for {product_name}. "
            f"Available: {available.box_qty} boxes + {available.pcs_qty} pcs. "
            f"Additional required: {required.box_qty} boxes + {required.pcs_qty} pcs "
            f"(short by {shortfall.box_qty} boxes + {shortfall.pcs_qty} pcs)."
        )

    def to_dict(self) -> dict:
        return {
            "product": self.product_name,
            "available": self.available.to_dict(),
            "required": self.required.to_dict(),
            "shortfall": self.shortfall.to_dict(),
        }
