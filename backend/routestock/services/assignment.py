"""
Assignment ledger: admin hands stock to a route for a date.

An assignment request names the *target* quantity per product.  For each
product the signed delta against what the route currently holds is
computed in pieces; positive deltas leave the warehouse (``ASSIGN``),
negative ones come back (``RETURN``).  The ``initial_stock`` baseline used
by reporting moves by the same delta and never drops below zero.

Order of work inside ``assign_stock``:

1. validate every requested line (no database access yet);
2. refuse if a driver has already started the route;
3. compute all deltas and check every positive one against a fresh
   warehouse read;
4. write daily stock, warehouse rows and movements in one transaction.

Nothing is written unless step 3 passes for every product, and a failure
in step 4 rolls the whole transaction back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from sqlmodel import Session, select

from routestock.core.database import unit_of_work
from routestock.models import DailyStock, Product, WarehouseMovement
from routestock.services import notifications, warehouse
from routestock.services.catalog import require_products
from routestock.services.context import StockContext
from routestock.services.errors import (
    RouteAlreadyStartedError,
    StockNotFoundError,
    StockValidationError,
)
from routestock.services.units import (
    ZERO,
    Quantity,
    product_id_of,
    quantity_from_line,
    stock_is_empty,
    to_canonical,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentLine:
    product_id: str
    quantity: Quantity


@dataclass
class ProductDelta:
    product_id: str
    product_name: str
    pcs_per_box: int
    old_total: int
    new_total: int
    delta: int
    initial_total: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "old_total_pcs": self.old_total,
            "new_total_pcs": self.new_total,
            "delta_pcs": self.delta,
            "initial_total_pcs": self.initial_total,
        }


@dataclass
class AssignmentResult:
    record: DailyStock
    deltas: list[ProductDelta] = field(default_factory=list)
    movements: list[WarehouseMovement] = field(default_factory=list)


@dataclass
class EndRouteResult:
    record: DailyStock
    returned: dict[str, Quantity] = field(default_factory=dict)
    movements: list[WarehouseMovement] = field(default_factory=list)


# --------------------------------------------------------------------------- #
# pure arithmetic                                                             #
# --------------------------------------------------------------------------- #
def compute_delta(
    existing: Optional[Quantity], requested: Quantity, pcs_per_box: int
) -> int:
    """Signed change in pieces from ``existing`` to ``requested``."""
    if requested.is_negative:
        raise StockValidationError("Requested quantity cannot be negative")
    old_total = (existing or ZERO).total(pcs_per_box)
    return requested.total(pcs_per_box) - old_total


def rebase_initial(old_initial_total: int, delta: int) -> int:
    return max(0, old_initial_total + delta)


# --------------------------------------------------------------------------- #
# record lookups                                                              #
# --------------------------------------------------------------------------- #
def _route_day(ctx: StockContext):
    return select(DailyStock).where(
        DailyStock.route_id == ctx.route_id, DailyStock.date == ctx.date
    )


def find_driver_record(session: Session, ctx: StockContext) -> Optional[DailyStock]:
    """The record claimed by ``ctx.driver_id`` for the route and date."""
    if ctx.driver_id is None:
        return None
    stmt = _route_day(ctx).where(DailyStock.driver_id == ctx.driver_id)
    return session.exec(stmt.order_by(DailyStock.id)).first()


def find_unclaimed_record(session: Session, ctx: StockContext) -> Optional[DailyStock]:
    """The route-level record nobody has claimed yet (truck-scoped when given)."""
    stmt = _route_day(ctx).where(DailyStock.driver_id.is_(None))
    if ctx.truck_id:
        by_truck = session.exec(
            stmt.where(DailyStock.truck_id == ctx.truck_id).order_by(DailyStock.id)
        ).first()
        if by_truck is not None:
            return by_truck
    return session.exec(stmt.order_by(DailyStock.id)).first()


def get_daily_stock(session: Session, ctx: StockContext) -> Optional[DailyStock]:
    """Driver's record when a driver is given, else the unclaimed one."""
    if ctx.driver_id is not None:
        return find_driver_record(session, ctx)
    return find_unclaimed_record(session, ctx)


def list_daily_stock(
    session: Session,
    date=None,
    route_id: Optional[str] = None,
    driver_id: Optional[str] = None,
) -> list[DailyStock]:
    stmt = select(DailyStock)
    if date is not None:
        stmt = stmt.where(DailyStock.date == date)
    if route_id:
        stmt = stmt.where(DailyStock.route_id == route_id)
    if driver_id:
        stmt = stmt.where(DailyStock.driver_id == driver_id)
    return list(session.exec(stmt.order_by(DailyStock.date, DailyStock.route_id, DailyStock.id)).all())


def is_route_started(session: Session, ctx: StockContext) -> bool:
    """True once a driver holds a non-empty record for the route and date."""
    claimed = session.exec(_route_day(ctx).where(DailyStock.driver_id.is_not(None))).all()
    return any(not stock_is_empty(rec.stock) for rec in claimed)


# --------------------------------------------------------------------------- #
# assign                                                                      #
# --------------------------------------------------------------------------- #
def _coerce_lines(lines: Iterable[Any]) -> list[AssignmentLine]:
    out: list[AssignmentLine] = []
    seen: set[str] = set()
    for raw in lines:
        if isinstance(raw, AssignmentLine):
            line = raw
        elif isinstance(raw, Mapping):
            pid = product_id_of(raw)
            if pid is None:
                raise StockValidationError("Every line needs a productId")
            line = AssignmentLine(pid, quantity_from_line(raw))
        else:
            raise StockValidationError(f"Unsupported assignment line: {raw!r}")
        if line.quantity.is_negative:
            raise StockValidationError(
                f"Quantity for product {line.product_id} cannot be negative"
            )
        if line.product_id in seen:
            raise StockValidationError(f"Product {line.product_id} appears more than once")
        seen.add(line.product_id)
        out.append(line)
    if not out:
        raise StockValidationError("At least one product line is required")
    return out


def _plan(
    line: AssignmentLine,
    product: Product,
    current: dict[str, Quantity],
    initial: dict[str, Quantity],
    legacy_baseline: bool,
) -> ProductDelta:
    ppb = product.units_per_box
    existing = current.get(line.product_id)
    delta = compute_delta(existing, line.quantity, ppb)
    # records written before initial_stock existed use the remaining stock
    baseline = current if legacy_baseline else initial
    old_initial = baseline.get(line.product_id, ZERO).total(ppb)
    return ProductDelta(
        product_id=product.id,
        product_name=product.name,
        pcs_per_box=ppb,
        old_total=(existing or ZERO).total(ppb),
        new_total=line.quantity.total(ppb),
        delta=delta,
        initial_total=rebase_initial(old_initial, delta),
    )


def _movement_note(ctx: StockContext, delta: int, note: Optional[str]) -> str:
    verb = "assigned" if delta > 0 else "returned"
    text = f"Route {ctx.route_id} {ctx.date.isoformat()}: {verb} {abs(delta)} pcs"
    return f"{text} ({note})" if note else text


def assign_stock(
    session: Session,
    ctx: StockContext,
    lines: Iterable[Any],
    *,
    note: Optional[str] = None,
) -> AssignmentResult:
    """
    Set the assigned quantity of each listed product for ``ctx``'s route/date.

    Products not listed keep their current quantities.  A zero target
    takes the product off the route and returns it to the warehouse.
    """
    requested = _coerce_lines(lines)
    products = require_products(session, [ln.product_id for ln in requested])

    if is_route_started(session, ctx):
        logger.warning("assign_stock rejected, route already started: %s", ctx.describe())
        raise RouteAlreadyStartedError(ctx.route_id, ctx.date.isoformat(), ctx.driver_id)

    with unit_of_work(session):
        record = get_daily_stock(session, ctx)
        current = record.stock_quantities() if record else {}
        initial = record.initial_quantities() if record else {}
        legacy_baseline = record is not None and not initial

        plans = [
            _plan(ln, products[ln.product_id], current, initial, legacy_baseline)
            for ln in requested
        ]

        # all availability checks happen before the first write
        for plan in plans:
            warehouse.ensure_available(session, products[plan.product_id], plan.delta)

        new_stock = dict(current)
        new_initial = dict(current if legacy_baseline else initial)
        for plan in plans:
            new_stock[plan.product_id] = to_canonical(plan.new_total, plan.pcs_per_box)
            new_initial[plan.product_id] = to_canonical(plan.initial_total, plan.pcs_per_box)

        if record is None:
            record = DailyStock(
                route_id=ctx.route_id,
                date=ctx.date,
                driver_id=ctx.driver_id,
                truck_id=ctx.truck_id,
            )
        elif ctx.truck_id and not record.truck_id:
            record.truck_id = ctx.truck_id
        record.set_stock(new_stock)
        record.set_initial_stock(new_initial)
        session.add(record)
        # daily stock is written before the warehouse is touched
        session.flush()

        movements: list[WarehouseMovement] = []
        for plan in plans:
            mv = warehouse.apply_assignment_delta(
                session,
                products[plan.product_id],
                plan.delta,
                _movement_note(ctx, plan.delta, note),
            )
            if mv is not None:
                movements.append(mv)

        handed_out = [p for p in plans if p.delta > 0]
        if handed_out:
            boxes = sum(to_canonical(p.delta, p.pcs_per_box).box_qty for p in handed_out)
            pcs = sum(to_canonical(p.delta, p.pcs_per_box).pcs_qty for p in handed_out)
            notifications.notify_stock_assigned(
                session, ctx.route_id, ctx.date.isoformat(), boxes, pcs
            )

    session.refresh(record)
    for mv in movements:
        session.refresh(mv)
    logger.info(
        "assign_stock: %s products=%s movements=%s",
        ctx.describe(), len(plans), len(movements),
    )
    return AssignmentResult(record=record, deltas=plans, movements=movements)


# --------------------------------------------------------------------------- #
# driver side                                                                 #
# --------------------------------------------------------------------------- #
def claim_route(session: Session, ctx: StockContext) -> DailyStock:
    """
    Driver starts the route: reuse the driver's own record, else claim the
    unclaimed one, else open an empty record for the driver.
    """
    driver_id = ctx.require_driver()
    with unit_of_work(session):
        record = find_driver_record(session, ctx)
        if record is None:
            record = find_unclaimed_record(session, ctx)
            if record is not None:
                record.driver_id = driver_id
                if ctx.truck_id and not record.truck_id:
                    record.truck_id = ctx.truck_id
                logger.info("claim_route: driver %s claimed record %s", driver_id, record.id)
            else:
                record = DailyStock(
                    route_id=ctx.route_id,
                    date=ctx.date,
                    driver_id=driver_id,
                    truck_id=ctx.truck_id,
                )
                logger.info("claim_route: no assigned stock, empty record for %s", ctx.describe())
            session.add(record)
    session.refresh(record)
    return record


def end_route(session: Session, ctx: StockContext) -> EndRouteResult:
    """
    Driver ends the day: everything still on the truck goes back to the
    warehouse and the remaining stock is zeroed.  ``initial_stock`` stays.
    """
    ctx.require_driver()
    record = find_driver_record(session, ctx)
    if record is None:
        raise StockNotFoundError(f"No stock found for {ctx.describe()}")

    remaining = {pid: q for pid, q in record.stock_quantities().items() if not q.is_zero}
    products = require_products(session, remaining.keys()) if remaining else {}
    returned: dict[str, Quantity] = {}
    movements: list[WarehouseMovement] = []
    with unit_of_work(session):
        for pid, qty in remaining.items():
            product = products[pid]
            total = qty.total(product.units_per_box)
            mv = warehouse.apply_assignment_delta(
                session, product, -total, f"End of route return: {ctx.describe()}"
            )
            returned[pid] = to_canonical(total, product.units_per_box)
            if mv is not None:
                movements.append(mv)
        record.set_stock({})
        session.add(record)
        boxes = sum(q.box_qty for q in returned.values())
        pcs = sum(q.pcs_qty for q in returned.values())
        if returned:
            notifications.notify_high_return(session, ctx.route_id, boxes, pcs)
    session.refresh(record)
    logger.info("end_route: %s returned %s boxes + %s pcs", ctx.describe(), boxes, pcs)
    return EndRouteResult(record=record, returned=returned, movements=movements)
