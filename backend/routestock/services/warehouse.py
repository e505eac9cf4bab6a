"""
Warehouse reconciliation.

``WarehouseStock`` is the authoritative per-product level; every change to
it appends one ``WarehouseMovement``.  Two kinds of callers:

* assignment (``ensure_available`` / ``apply_assignment_delta``): runs
  inside the caller's unit of work and never commits;
* admin operations (``receive_stock`` / ``set_stock``): commit on their own.

The warehouse never goes negative.  An assignment delta that the current
level cannot cover raises ``InsufficientStockError`` and the whole
operation is abandoned.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from sqlmodel import Session, select

from routestock.core.config import get_settings
from routestock.core.database import unit_of_work
from routestock.models import MovementType, Product, WarehouseMovement, WarehouseStock
from routestock.models._time import utcnow
from routestock.services import notifications
from routestock.services.catalog import get_product, products_by_id
from routestock.services.errors import (
    InsufficientStockError,
    StockNotFoundError,
    StockValidationError,
)
from routestock.services.units import Quantity, to_canonical, to_total_pcs

logger = logging.getLogger(__name__)

# sign applied to a movement's pieces when replaying the log
_MOVEMENT_SIGN = {
    MovementType.IN.value: 1,
    MovementType.RETURN.value: 1,
    MovementType.ASSIGN.value: -1,
    MovementType.ADJUST.value: 1,
}


# --------------------------------------------------------------------------- #
# reads                                                                       #
# --------------------------------------------------------------------------- #
def fresh_row(session: Session, product_id: str) -> Optional[WarehouseStock]:
    """Re-read the row from the database (row-locked where supported)."""
    stmt = (
        select(WarehouseStock)
        .where(WarehouseStock.product_id == product_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return session.exec(stmt).first()


def available_pcs(session: Session, product: Product) -> int:
    row = fresh_row(session, product.id)
    return row.total(product.units_per_box) if row else 0


def warehouse_levels(session: Session) -> list[dict]:
    settings = get_settings()
    rows = {r.product_id: r for r in session.exec(select(WarehouseStock)).all()}
    out = []
    for product in products_by_id(session).values():
        row = rows.get(product.id)
        ppb = product.units_per_box
        total = row.total(ppb) if row else 0
        canon = to_canonical(total, ppb)
        out.append(
            {
                "product_id": product.id,
                "product_name": product.name,
                "pcs_per_box": ppb,
                "boxes": canon.box_qty,
                "pcs": canon.pcs_qty,
                "total_pcs": total,
                "is_low": total < ppb * settings.low_stock_boxes,
                "updated_at": row.updated_at.isoformat() if row else None,
            }
        )
    out.sort(key=lambda r: r["product_name"].lower())
    return out


def low_stock_products(session: Session) -> list[dict]:
    """Active products whose warehouse level is under ``LOW_STOCK_BOXES`` boxes."""
    active = {p.id for p in products_by_id(session).values() if p.status == "active"}
    return [r for r in warehouse_levels(session) if r["is_low"] and r["product_id"] in active]


def list_movements(
    session: Session,
    product_id: Optional[str] = None,
    movement_type: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> list[WarehouseMovement]:
    stmt = select(WarehouseMovement)
    if product_id:
        stmt = stmt.where(WarehouseMovement.product_id == product_id)
    if movement_type:
        stmt = stmt.where(WarehouseMovement.movement_type == movement_type.upper())
    stmt = stmt.order_by(WarehouseMovement.created_at.desc(), WarehouseMovement.id.desc())
    return list(session.exec(stmt.offset(offset).limit(limit)).all())


def movement_balance(
    session: Session,
    product_id: str,
    types: Optional[Iterable[str]] = None,
) -> int:
    """
    Signed piece sum of the movement log for one product.

    Over the full log this equals the current warehouse total; restricted
    to ``ASSIGN``/``RETURN`` it equals the negated net assignment.
    """
    product = get_product(session, product_id)
    ppb = product.units_per_box
    stmt = select(WarehouseMovement).where(WarehouseMovement.product_id == product_id)
    if types is not None:
        stmt = stmt.where(WarehouseMovement.movement_type.in_([t.upper() for t in types]))
    balance = 0
    for mv in session.exec(stmt).all():
        balance += _MOVEMENT_SIGN.get(mv.movement_type, 0) * to_total_pcs(mv.boxes, mv.pcs, ppb)
    return balance


# --------------------------------------------------------------------------- #
# assignment side (no commit)                                                 #
# --------------------------------------------------------------------------- #
def _insufficient(product: Product, available: int, delta: int) -> InsufficientStockError:
    ppb = product.units_per_box
    return InsufficientStockError(
        product.name,
        available=to_canonical(max(0, available), ppb),
        required=to_canonical(delta, ppb),
        shortfall=to_canonical(max(0, delta - available), ppb),
    )


def ensure_available(session: Session, product: Product, delta: int) -> None:
    """Fail unless the warehouse can hand out ``delta`` more pieces."""
    if delta <= 0:
        return
    available = available_pcs(session, product)
    if delta > available:
        logger.warning(
            "ensure_available: product=%s needs %s pcs, only %s in warehouse",
            product.id, delta, available,
        )
        raise _insufficient(product, available, delta)


def apply_assignment_delta(
    session: Session, product: Product, delta: int, note: str
) -> Optional[WarehouseMovement]:
    """
    Move ``delta`` pieces out of (positive) or back into (negative) the
    warehouse and log it.  ``delta == 0`` writes nothing.
    """
    if delta == 0:
        return None
    ppb = product.units_per_box
    row = fresh_row(session, product.id)
    if row is None:
        if delta > 0:
            raise StockNotFoundError(f"No warehouse stock row for product {product.name}")
        row = WarehouseStock(product_id=product.id, boxes=0, pcs=0)
    current = row.total(ppb)
    if delta > current:
        raise _insufficient(product, current, delta)

    new_level = to_canonical(current - delta, ppb)
    row.boxes, row.pcs = new_level.box_qty, new_level.pcs_qty
    row.updated_at = utcnow()
    session.add(row)

    moved = to_canonical(abs(delta), ppb)
    movement = WarehouseMovement(
        product_id=product.id,
        movement_type=(MovementType.ASSIGN if delta > 0 else MovementType.RETURN).value,
        boxes=moved.box_qty,
        pcs=moved.pcs_qty,
        note=note,
    )
    session.add(movement)
    logger.info(
        "warehouse %s: product=%s delta=%s pcs -> %s boxes + %s pcs",
        movement.movement_type, product.id, delta, row.boxes, row.pcs,
    )
    return movement


# --------------------------------------------------------------------------- #
# admin operations                                                            #
# --------------------------------------------------------------------------- #
def stage_receipt(
    session: Session, product: Product, qty: Quantity, note: Optional[str]
) -> WarehouseMovement:
    """Add ``qty`` to the warehouse and log an ``IN`` movement (no commit)."""
    if qty.is_negative:
        raise StockValidationError("Received quantity cannot be negative")
    ppb = product.units_per_box
    row = fresh_row(session, product.id) or WarehouseStock(product_id=product.id)
    added = qty.total(ppb)
    new_level = to_canonical(row.total(ppb) + added, ppb)
    row.boxes, row.pcs = new_level.box_qty, new_level.pcs_qty
    row.updated_at = utcnow()
    session.add(row)
    moved = to_canonical(added, ppb)
    movement = WarehouseMovement(
        product_id=product.id,
        movement_type=MovementType.IN.value,
        boxes=moved.box_qty,
        pcs=moved.pcs_qty,
        note=note or "Stock received",
    )
    session.add(movement)
    return movement


def receive_stock(
    session: Session,
    product_id: str,
    box_qty: int = 0,
    pcs_qty: int = 0,
    note: Optional[str] = None,
) -> WarehouseStock:
    """Add stock to the warehouse (``IN`` movement)."""
    product = get_product(session, product_id)
    qty = Quantity(box_qty, pcs_qty)
    if qty.is_zero:
        raise StockValidationError("Nothing to receive")
    with unit_of_work(session):
        stage_receipt(session, product, qty, note)
    logger.info("receive_stock: product=%s +%s boxes +%s pcs", product_id, box_qty, pcs_qty)
    return session.get(WarehouseStock, product_id)


def set_stock(
    session: Session,
    product_id: str,
    boxes: int,
    pcs: int,
    note: Optional[str] = None,
) -> WarehouseStock:
    """
    Overwrite the warehouse level (stock take).  Logs an ``ADJUST`` movement
    with the signed box and piece differences; no movement when unchanged.
    """
    product = get_product(session, product_id)
    target = Quantity(boxes, pcs)
    if target.is_negative:
        raise StockValidationError("Warehouse stock cannot be negative")
    ppb = product.units_per_box
    target = target.canonical(ppb)
    with unit_of_work(session):
        row = fresh_row(session, product.id) or WarehouseStock(product_id=product.id)
        old = Quantity(row.boxes or 0, row.pcs or 0)
        diff_boxes = target.box_qty - old.box_qty
        diff_pcs = target.pcs_qty - old.pcs_qty
        row.boxes, row.pcs = target.box_qty, target.pcs_qty
        row.updated_at = utcnow()
        session.add(row)
        if diff_boxes or diff_pcs:
            session.add(
                WarehouseMovement(
                    product_id=product.id,
                    movement_type=MovementType.ADJUST.value,
                    boxes=diff_boxes,
                    pcs=diff_pcs,
                    note=note or "Stock adjusted",
                )
            )
    logger.info("set_stock: product=%s -> %s boxes + %s pcs", product_id, target.box_qty, target.pcs_qty)
    return session.get(WarehouseStock, product_id)


def scan_low_stock(session: Session) -> list[dict]:
    """Raise a low-stock notification for each low product and commit them."""
    low = low_stock_products(session)
    with unit_of_work(session):
        for item in low:
            notifications.notify_low_stock(session, item["product_name"], item["boxes"], item["pcs"])
    return low
