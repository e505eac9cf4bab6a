"""
Box / piece arithmetic.

Every product is counted in two units: whole boxes and loose pieces, tied
together by the product's ``pcs_per_box``.  All stock math converts to a
single total-pieces integer, does the arithmetic there, and converts back
to the *canonical* form where ``0 <= pcs_qty < pcs_per_box``.

Persisted stock lines use the camelCase keys the client sends
(``productId``, ``boxQty``, ``pcsQty``).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from routestock.services.errors import StockValidationError

DEFAULT_PCS_PER_BOX = 24

_BOX_KEYS = ("boxQty", "box_qty", "boxes")
_PCS_KEYS = ("pcsQty", "pcs_qty", "pcs")


# --------------------------------------------------------------------------- #
# scalar helpers                                                              #
# --------------------------------------------------------------------------- #
def _positive_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(num) or num <= 0:
        return None
    return num


def coerce_qty(value: Any) -> int:
    """Lenient int conversion for stored quantities (blank / junk -> 0)."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        num = float(str(value).strip().replace(",", ""))
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(num):
        return 0
    return int(num)


def resolve_pcs_per_box(
    pcs_per_box: Any = None,
    box_price: Any = None,
    pcs_price: Any = None,
) -> int:
    """
    Pieces per box for a product.

    Explicit ``pcs_per_box`` first, then the rounded ``box_price / pcs_price``
    ratio, then ``DEFAULT_PCS_PER_BOX``.  Zero, negative and non-finite
    inputs are skipped, so the result is always a positive int.
    """
    explicit = _positive_number(pcs_per_box)
    if explicit is not None and round(explicit) >= 1:
        return int(round(explicit))
    box = _positive_number(box_price)
    pcs = _positive_number(pcs_price)
    if box is not None and pcs is not None:
        ratio = round(box / pcs)
        if ratio >= 1:
            return int(ratio)
    return DEFAULT_PCS_PER_BOX


def to_total_pcs(box_qty: int, pcs_qty: int, pcs_per_box: Any) -> int:
    return int(box_qty) * resolve_pcs_per_box(pcs_per_box) + int(pcs_qty)


def to_canonical(total_pcs: int, pcs_per_box: Any) -> "Quantity":
    total = int(total_pcs)
    if total < 0:
        raise StockValidationError(f"Quantity cannot be negative (got {total} pcs)")
    ppb = resolve_pcs_per_box(pcs_per_box)
    return Quantity(total // ppb, total % ppb)


def effective_pcs_price(box_price: Any, pcs_price: Any, pcs_per_box: Any) -> float:
    """Stored piece price, or the box price spread over the box."""
    stored = _positive_number(pcs_price)
    if stored is not None:
        return stored
    box = _positive_number(box_price)
    if box is None:
        return 0.0
    return box / resolve_pcs_per_box(pcs_per_box)


# --------------------------------------------------------------------------- #
# Quantity                                                                    #
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class Quantity:
    box_qty: int = 0
    pcs_qty: int = 0

    def total(self, pcs_per_box: Any) -> int:
        return to_total_pcs(self.box_qty, self.pcs_qty, pcs_per_box)

    def canonical(self, pcs_per_box: Any) -> "Quantity":
        return to_canonical(self.total(pcs_per_box), pcs_per_box)

    @property
    def is_zero(self) -> bool:
        return self.box_qty == 0 and self.pcs_qty == 0

    @property
    def is_negative(self) -> bool:
        return self.box_qty < 0 or self.pcs_qty < 0

    def __add__(self, other: "Quantity") -> "Quantity":
        if not isinstance(other, Quantity):
            return NotImplemented
        return Quantity(self.box_qty + other.box_qty, self.pcs_qty + other.pcs_qty)

    def to_dict(self) -> dict[str, int]:
        return {"boxQty": int(self.box_qty), "pcsQty": int(self.pcs_qty)}

    @classmethod
    def from_line(cls, line: Mapping[str, Any]) -> "Quantity":
        return cls(_first_qty(line, _BOX_KEYS), _first_qty(line, _PCS_KEYS))


ZERO = Quantity()


def _first_qty(line: Mapping[str, Any], keys: tuple[str, ...]) -> int:
    for key in keys:
        if key in line and line[key] is not None:
            return coerce_qty(line[key])
    return 0


def quantity_from_line(line: Mapping[str, Any]) -> Quantity:
    """
    Read a quantity from either ``{boxQty, pcsQty}`` or the flat
    ``{quantity, unit}`` shape (``unit`` is ``"box"`` or ``"pcs"``).
    """
    if any(k in line for k in _BOX_KEYS + _PCS_KEYS):
        return Quantity.from_line(line)
    if "quantity" in line:
        qty = coerce_qty(line.get("quantity"))
        unit = str(line.get("unit") or "pcs").strip().lower()
        if unit.startswith("box"):
            return Quantity(qty, 0)
        return Quantity(0, qty)
    return ZERO


def product_id_of(line: Mapping[str, Any]) -> Optional[str]:
    pid = line.get("productId") or line.get("product_id")
    if pid is None or str(pid).strip() == "":
        return None
    return str(pid).strip()


# --------------------------------------------------------------------------- #
# stock line arrays                                                           #
# --------------------------------------------------------------------------- #
def quantities_by_product(lines: Optional[Iterable[Any]]) -> dict[str, Quantity]:
    """Fold a persisted ``[{productId, boxQty, pcsQty}]`` array into a dict."""
    out: dict[str, Quantity] = {}
    for entry in lines or []:
        if not isinstance(entry, Mapping):
            continue
        pid = product_id_of(entry)
        if pid is None:
            continue
        out[pid] = out.get(pid, ZERO) + quantity_from_line(entry)
    return out


def quantity_lines(quantities: Mapping[str, Quantity]) -> list[dict[str, Any]]:
    """Inverse of ``quantities_by_product``; zero quantities are dropped."""
    return [
        {"productId": pid, **qty.to_dict()}
        for pid, qty in quantities.items()
        if not qty.is_zero
    ]


def stock_is_empty(lines: Optional[Iterable[Any]]) -> bool:
    return all(q.is_zero for q in quantities_by_product(lines).values())
