"""
Sale deduction.

A sale reduces the driver's *remaining* stock only; ``initial_stock`` is
never touched, so ``sold = initial - remaining`` holds however many bills
were written.  Pieces may be sold beyond the loose-piece bucket by cutting
boxes open, so the piece limit for a product is
``pcs_available + boxes_available * pcs_per_box``.  Boxes cannot be
conjured from pieces: a box sale is capped at the boxes on hand.

``deduct_sale`` itself clamps each product at zero; ``record_sale``
validates against the cutting rule first and refuses oversells.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from sqlmodel import Session

from routestock.core.database import unit_of_work
from routestock.models import DailyStock, Product, Sale
from routestock.services.assignment import find_driver_record, find_unclaimed_record
from routestock.services.catalog import require_products
from routestock.services.context import StockContext
from routestock.services.errors import (
    StockConflictError,
    StockNotFoundError,
    StockValidationError,
)
from routestock.services.sale_items import SaleLine, normalize_sale_items
from routestock.services.units import ZERO, Quantity, product_id_of, to_canonical

logger = logging.getLogger(__name__)


def max_sellable_pcs(available: Quantity, pcs_per_box: int) -> int:
    """Pieces a driver can hand over, cutting every box on hand if needed."""
    return max(0, available.total(pcs_per_box))


def find_sale_record(session: Session, ctx: StockContext) -> DailyStock:
    """Driver's record; falls back to the route's unclaimed record."""
    record = find_driver_record(session, ctx)
    if record is None:
        record = find_unclaimed_record(session, ctx)
    if record is None:
        raise StockNotFoundError(f"No stock found for {ctx.describe()}")
    return record


def claim_for_driver(record: DailyStock, ctx: StockContext) -> None:
    """A driver selling from the unclaimed record takes it over."""
    if ctx.driver_id is None or record.driver_id is not None:
        return
    record.driver_id = ctx.driver_id
    if ctx.truck_id and not record.truck_id:
        record.truck_id = ctx.truck_id
    logger.info("driver %s claimed record %s on first sale", ctx.driver_id, record.id)


def _coerce_sale_lines(lines: Iterable[Any]) -> list[SaleLine]:
    out: list[SaleLine] = []
    mappings: list[Mapping[str, Any]] = []
    for raw in lines:
        if isinstance(raw, SaleLine):
            out.append(raw)
        elif isinstance(raw, Mapping):
            if product_id_of(raw) is None:
                raise StockValidationError("Every sale line needs a productId")
            mappings.append(raw)
        else:
            raise StockValidationError(f"Unsupported sale line: {raw!r}")
    out.extend(normalize_sale_items(mappings))
    for line in out:
        if line.box_qty < 0 or line.pcs_qty < 0:
            raise StockValidationError(
                f"Sold quantity for product {line.product_id} cannot be negative"
            )
    return out


def validate_sale_lines(
    lines: list[SaleLine],
    available: Mapping[str, Quantity],
    products: Mapping[str, Product],
) -> None:
    """Refuse lines that the remaining stock cannot cover."""
    wanted: dict[str, Quantity] = {}
    for line in lines:
        wanted[line.product_id] = wanted.get(line.product_id, ZERO) + line.quantity
    for pid, qty in wanted.items():
        product = products[pid]
        ppb = product.units_per_box
        have = available.get(pid, ZERO)
        if qty.box_qty > have.box_qty:
            raise StockConflictError(
                f"Cannot sell {qty.box_qty} boxes of {product.name}: "
                f"only {have.box_qty} boxes on hand"
            )
        if qty.total(ppb) > max_sellable_pcs(have, ppb):
            raise StockConflictError(
                f"Cannot sell {qty.box_qty} boxes + {qty.pcs_qty} pcs of {product.name}: "
                f"only {have.box_qty} boxes + {have.pcs_qty} pcs on hand"
            )


def _deduct(
    record: DailyStock, lines: list[SaleLine], products: Mapping[str, Product]
) -> dict[str, Quantity]:
    remaining = record.stock_quantities()
    for line in lines:
        ppb = products[line.product_id].units_per_box
        current = remaining.get(line.product_id, ZERO).total(ppb)
        left = max(0, current - line.total_pcs(ppb))
        remaining[line.product_id] = to_canonical(left, ppb)
    record.set_stock(remaining)
    return remaining


def deduct_sale(session: Session, ctx: StockContext, lines: Iterable[Any]) -> DailyStock:
    """Subtract sold quantities from the remaining stock (clamped at zero)."""
    sale_lines = _coerce_sale_lines(lines)
    products = require_products(session, {ln.product_id for ln in sale_lines})
    record = find_sale_record(session, ctx)
    with unit_of_work(session):
        claim_for_driver(record, ctx)
        _deduct(record, sale_lines, products)
        session.add(record)
    session.refresh(record)
    logger.info("deduct_sale: %s record=%s lines=%s", ctx.describe(), record.id, len(sale_lines))
    return record


def record_sale(
    session: Session,
    ctx: StockContext,
    shop_name: str,
    lines: Iterable[Any],
) -> Sale:
    """
    Bill a shop: store the sale and deduct it from the route stock in one
    transaction.  Lines without a price are billed at the product's piece
    price.
    """
    if not shop_name or not str(shop_name).strip():
        raise StockValidationError("shop_name is required")
    sale_lines = [ln for ln in _coerce_sale_lines(lines) if not ln.quantity.is_zero]
    if not sale_lines:
        raise StockValidationError("A sale needs at least one non-zero line")
    products = require_products(session, {ln.product_id for ln in sale_lines})

    priced: list[SaleLine] = []
    for ln in sale_lines:
        product = products[ln.product_id]
        price = ln.unit_price if ln.unit_price > 0 else product.unit_price
        priced.append(
            SaleLine(
                product_id=ln.product_id,
                box_qty=ln.box_qty,
                pcs_qty=ln.pcs_qty,
                unit_price=round(price, 4),
                product_name=ln.product_name or product.name,
            )
        )
    total = sum(ln.revenue(products[ln.product_id].units_per_box) for ln in priced)

    record = find_sale_record(session, ctx)
    validate_sale_lines(priced, record.stock_quantities(), products)
    with unit_of_work(session):
        claim_for_driver(record, ctx)
        sale = Sale(
            route_id=ctx.route_id,
            date=ctx.date,
            driver_id=record.driver_id,
            truck_id=ctx.truck_id or record.truck_id,
            shop_name=str(shop_name).strip(),
            products_sold=[ln.to_dict() for ln in priced],
            total_amount=round(total, 2),
        )
        session.add(sale)
        _deduct(record, priced, products)
        session.add(record)
    session.refresh(sale)
    logger.info(
        "record_sale: %s sale=%s shop=%s total=%.2f",
        ctx.describe(), sale.id, sale.shop_name, sale.total_amount,
    )
    return sale


def get_sale(session: Session, sale_id: int) -> Sale:
    sale = session.get(Sale, sale_id)
    if sale is None:
        raise StockNotFoundError(f"Sale {sale_id} not found")
    return sale
