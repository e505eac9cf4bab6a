"""
One normaliser for the ``sale.products_sold`` column.

Over time the column has held three shapes:

* a JSON array of line objects (current),
* an object wrapping the array as ``{"items": [...]}``,
* either of the above serialised to a JSON *string*.

Line objects themselves come as ``{productId, boxQty, pcsQty, unitPrice}``
or the older flat ``{productId, quantity, unit, price}``.  Everything is
upgraded to ``SaleLine`` here, once, at read time; callers never inspect
the raw column.  Shapes that cannot be understood yield no lines.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from routestock.services.units import (
    Quantity,
    product_id_of,
    quantity_from_line,
    to_total_pcs,
)

logger = logging.getLogger(__name__)

_PRICE_KEYS = ("unitPrice", "unit_price", "price")


@dataclass(frozen=True)
class SaleLine:
    product_id: str
    box_qty: int = 0
    pcs_qty: int = 0
    unit_price: float = 0.0
    product_name: Optional[str] = None

    @property
    def quantity(self) -> Quantity:
        return Quantity(self.box_qty, self.pcs_qty)

    def total_pcs(self, pcs_per_box: int) -> int:
        return to_total_pcs(self.box_qty, self.pcs_qty, pcs_per_box)

    def revenue(self, pcs_per_box: int) -> float:
        return self.total_pcs(pcs_per_box) * self.unit_price

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "productId": self.product_id,
            "boxQty": int(self.box_qty),
            "pcsQty": int(self.pcs_qty),
            "unitPrice": float(self.unit_price),
        }
        if self.product_name:
            out["productName"] = self.product_name
        return out


def _unwrap(raw: Any) -> list[Any]:
    if raw is None:
        return []
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        if not raw.strip():
            return []
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.debug("products_sold is not valid JSON; treating as empty")
            return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    if isinstance(raw, Mapping) and isinstance(raw.get("items"), (list, tuple)):
        return list(raw["items"])
    return []


def _price(entry: Mapping[str, Any]) -> float:
    for key in _PRICE_KEYS:
        value = entry.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            price = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(price):
            return price
    return 0.0


def normalize_sale_items(raw: Any) -> list[SaleLine]:
    lines: list[SaleLine] = []
    for entry in _unwrap(raw):
        if not isinstance(entry, Mapping):
            continue
        pid = product_id_of(entry) or (str(entry["id"]) if entry.get("id") else None)
        if pid is None:
            continue
        qty = quantity_from_line(entry)
        name = entry.get("productName") or entry.get("name")
        lines.append(
            SaleLine(
                product_id=pid,
                box_qty=qty.box_qty,
                pcs_qty=qty.pcs_qty,
                unit_price=_price(entry),
                product_name=str(name) if name else None,
            )
        )
    return lines
