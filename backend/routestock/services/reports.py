"""
Reporting aggregation over daily stock and sales.

All figures are total pieces per product, then rolled up:

* ``assigned`` - the ``initial_stock`` line; records written before that
  column existed fall back to ``remaining + sold`` where *sold* is the
  matching sales of the same route and day, each sale counted against
  one record only;
* ``sold``     - sale lines matching ``date|route_id|driver_id``;
* ``returned`` - ``max(0, assigned - sold)``, computed per product before
  any summing so one product's oversell cannot hide another's return.

Rows sharing a composite key are merged.  Nothing here writes to the
database, so reading the same range twice gives the same numbers.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Optional

import pandas as pd
from sqlmodel import Session, select

from routestock.models import DailyStock, Driver, Product, Route, Sale
from routestock.services.catalog import products_by_id
from routestock.services.context import parse_date
from routestock.services.errors import StockValidationError
from routestock.services.units import DEFAULT_PCS_PER_BOX, ZERO

logger = logging.getLogger(__name__)

KEY = ["date", "route_id", "driver_id"]
LINE_KEY = KEY + ["product_id"]

SALE_COLUMNS = KEY + [
    "sale_id", "shop_name", "product_id", "product_name", "pcs_per_box",
    "box_qty", "pcs_qty", "sold_pcs", "unit_price", "revenue",
]
STOCK_COLUMNS = LINE_KEY + ["pcs_per_box", "assigned_pcs", "remaining_pcs"]
MEASURES = ["assigned", "sold", "returned"]


# --------------------------------------------------------------------------- #
# loading                                                                     #
# --------------------------------------------------------------------------- #
def _range(start: Any, end: Any) -> tuple[dt.date, dt.date]:
    start_d = parse_date(start)
    end_d = parse_date(end) if end is not None else start_d
    if end_d < start_d:
        raise StockValidationError(f"Report range ends before it starts: {start_d} > {end_d}")
    return start_d, end_d


def _load(
    session: Session,
    start: dt.date,
    end: dt.date,
    route_id: Optional[str],
    driver_id: Optional[str],
) -> tuple[list[DailyStock], list[Sale]]:
    rec_stmt = select(DailyStock).where(DailyStock.date >= start, DailyStock.date <= end)
    sale_stmt = select(Sale).where(Sale.date >= start, Sale.date <= end)
    if route_id:
        rec_stmt = rec_stmt.where(DailyStock.route_id == route_id)
        sale_stmt = sale_stmt.where(Sale.route_id == route_id)
    if driver_id:
        rec_stmt = rec_stmt.where(DailyStock.driver_id == driver_id)
        sale_stmt = sale_stmt.where(Sale.driver_id == driver_id)
    records = list(session.exec(rec_stmt.order_by(DailyStock.id)).all())
    sales = list(session.exec(sale_stmt.order_by(Sale.id)).all())
    return records, sales


def _ppb_lookup(products: dict[str, Product]) -> Callable[[str], int]:
    def ppb_for(product_id: str) -> int:
        product = products.get(product_id)
        return product.units_per_box if product is not None else DEFAULT_PCS_PER_BOX

    return ppb_for


# --------------------------------------------------------------------------- #
# frames                                                                      #
# --------------------------------------------------------------------------- #
def sale_frame(sales: list[Sale], products: dict[str, Product]) -> pd.DataFrame:
    """One row per normalised sale line."""
    ppb_for = _ppb_lookup(products)
    rows = []
    for sale in sales:
        for line in sale.items():
            ppb = ppb_for(line.product_id)
            sold = line.total_pcs(ppb)
            product = products.get(line.product_id)
            rows.append(
                {
                    "date": sale.date,
                    "route_id": sale.route_id,
                    "driver_id": sale.driver_id or "",
                    "sale_id": sale.id,
                    "shop_name": sale.shop_name,
                    "product_id": line.product_id,
                    "product_name": line.product_name or (product.name if product else line.product_id),
                    "pcs_per_box": ppb,
                    "box_qty": line.box_qty,
                    "pcs_qty": line.pcs_qty,
                    "sold_pcs": sold,
                    "unit_price": line.unit_price,
                    "revenue": sold * line.unit_price,
                }
            )
    return pd.DataFrame(rows, columns=SALE_COLUMNS)


def _is_legacy(rec: DailyStock) -> bool:
    return all(q.is_zero for q in rec.initial_quantities().values())


def legacy_sold(
    records: list[DailyStock], sales_df: pd.DataFrame, measure: str = "sold_pcs"
) -> dict[int, dict[str, int]]:
    """
    ``measure`` sold against each legacy record (no ``initial_stock``), by position.

    Sales match a record on ``date|route_id|driver_id`` first; whatever is
    left of the route's sales for the day goes to its first legacy record.
    Each sale is counted once however many records share the route.
    """
    taken: dict[int, dict[str, int]] = {i: {} for i, rec in enumerate(records) if _is_legacy(rec)}
    if not taken or sales_df.empty:
        return taken
    pool = sales_df.groupby(LINE_KEY)[measure].sum().to_dict()
    for i, rec in enumerate(records):
        key = (rec.date, rec.route_id, rec.driver_id or "")
        for line_key in [k for k in pool if k[:3] == key]:
            sold = int(pool.pop(line_key))
            if i in taken:
                taken[i][line_key[3]] = sold
    for (day, route_id, _driver, pid), sold in pool.items():
        for i in taken:
            if records[i].date == day and records[i].route_id == route_id:
                taken[i][pid] = taken[i].get(pid, 0) + int(sold)
                break
    return taken


def stock_frame(
    records: list[DailyStock], sales_df: pd.DataFrame, products: dict[str, Product]
) -> pd.DataFrame:
    """One row per (record, product) with assigned and remaining pieces."""
    ppb_for = _ppb_lookup(products)
    fallback_sold = legacy_sold(records, sales_df)

    rows = []
    for i, rec in enumerate(records):
        remaining = rec.stock_quantities()
        initial = rec.initial_quantities()
        sold_here = fallback_sold.get(i)
        product_ids = set(remaining) | set(initial) | set(sold_here or ())
        for pid in sorted(product_ids):
            ppb = ppb_for(pid)
            left = remaining.get(pid, ZERO).total(ppb)
            if sold_here is not None:
                assigned = left + sold_here.get(pid, 0)
            else:
                assigned = initial.get(pid, ZERO).total(ppb)
            rows.append(
                {
                    "date": rec.date,
                    "route_id": rec.route_id,
                    "driver_id": rec.driver_id or "",
                    "product_id": pid,
                    "pcs_per_box": ppb,
                    "assigned_pcs": assigned,
                    "remaining_pcs": left,
                }
            )
    return pd.DataFrame(rows, columns=STOCK_COLUMNS)


def line_frame(stock_df: pd.DataFrame, sales_df: pd.DataFrame) -> pd.DataFrame:
    """Merge stock and sales on ``date|route_id|driver_id|product_id``."""
    stock = stock_df.groupby(LINE_KEY, as_index=False).agg(
        pcs_per_box=("pcs_per_box", "first"),
        assigned_pcs=("assigned_pcs", "sum"),
        remaining_pcs=("remaining_pcs", "sum"),
    )
    sold = sales_df.groupby(LINE_KEY, as_index=False).agg(
        sale_ppb=("pcs_per_box", "first"),
        sold_pcs=("sold_pcs", "sum"),
        revenue=("revenue", "sum"),
    )
    merged = stock.merge(sold, on=LINE_KEY, how="outer")
    merged["pcs_per_box"] = merged["pcs_per_box"].fillna(merged["sale_ppb"])
    merged = merged.drop(columns=["sale_ppb"])
    for col in ("assigned_pcs", "remaining_pcs", "sold_pcs", "pcs_per_box"):
        merged[col] = merged[col].fillna(0).astype("int64")
    merged["revenue"] = merged["revenue"].fillna(0.0).astype(float)
    merged["returned_pcs"] = (merged["assigned_pcs"] - merged["sold_pcs"]).clip(lower=0)
    return merged


def _with_breakdown(df: pd.DataFrame) -> pd.DataFrame:
    """Add ``<measure>_boxes`` / ``<measure>_extra_pcs`` per product row."""
    ppb = df["pcs_per_box"].where(df["pcs_per_box"] > 0, DEFAULT_PCS_PER_BOX)
    for m in MEASURES:
        df[f"{m}_boxes"] = df[f"{m}_pcs"] // ppb
        df[f"{m}_extra_pcs"] = df[f"{m}_pcs"] % ppb
    return df


_SUM_COLUMNS = (
    [f"{m}_pcs" for m in MEASURES]
    + [f"{m}_boxes" for m in MEASURES]
    + [f"{m}_extra_pcs" for m in MEASURES]
    + ["revenue"]
)


def _rollup(lines: pd.DataFrame, group_cols: list[str]) -> pd.DataFrame:
    """Group by ``group_cols + product``, clamp returned per product, then sum."""
    per_product = lines.groupby(group_cols + ["product_id"], as_index=False).agg(
        pcs_per_box=("pcs_per_box", "first"),
        assigned_pcs=("assigned_pcs", "sum"),
        remaining_pcs=("remaining_pcs", "sum"),
        sold_pcs=("sold_pcs", "sum"),
        revenue=("revenue", "sum"),
    )
    per_product["returned_pcs"] = (per_product["assigned_pcs"] - per_product["sold_pcs"]).clip(lower=0)
    per_product = _with_breakdown(per_product)
    return per_product.groupby(group_cols, as_index=False)[_SUM_COLUMNS + ["remaining_pcs"]].sum()


def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """DataFrame -> JSON-safe list of dicts (python scalars, ISO dates)."""
    if df.empty:
        return []
    out = df.copy()
    if "date" in out.columns:
        out["date"] = out["date"].map(lambda d: d.isoformat() if hasattr(d, "isoformat") else d)
    if "revenue" in out.columns:
        out["revenue"] = out["revenue"].round(2)
    if "driver_id" in out.columns:
        out["driver_id"] = out["driver_id"].map(lambda d: d or None)
    out = out.astype(object).where(pd.notna(out), None)
    return out.to_dict(orient="records")


def _frames(session: Session, start, end, route_id=None, driver_id=None):
    start_d, end_d = _range(start, end)
    records, sales = _load(session, start_d, end_d, route_id, driver_id)
    products = products_by_id(session)
    sales_df = sale_frame(sales, products)
    stock_df = stock_frame(records, sales_df, products)
    return line_frame(stock_df, sales_df), sales_df, products


# --------------------------------------------------------------------------- #
# reports                                                                     #
# --------------------------------------------------------------------------- #
def daily_summary(
    session: Session,
    start: Any,
    end: Any = None,
    route_id: Optional[str] = None,
    driver_id: Optional[str] = None,
) -> list[dict[str, Any]]:
    """One row per ``date|route_id|driver_id``."""
    lines, sales_df, _ = _frames(session, start, end, route_id, driver_id)
    if lines.empty:
        return []
    summary = _rollup(lines, KEY)
    invoices = sales_df.groupby(KEY)["sale_id"].nunique().rename("invoices").reset_index()
    summary = summary.merge(invoices, on=KEY, how="left")
    summary["invoices"] = summary["invoices"].fillna(0).astype("int64")
    summary.insert(
        0,
        "key",
        summary["date"].map(lambda d: d.isoformat()) + "|" + summary["route_id"] + "|" + summary["driver_id"],
    )
    summary = summary.sort_values(KEY).reset_index(drop=True)
    logger.info("daily_summary: %s rows for %s..%s", len(summary), start, end or start)
    return _records(summary)


def route_summary(session: Session, start: Any, end: Any = None) -> list[dict[str, Any]]:
    lines, sales_df, _ = _frames(session, start, end)
    if lines.empty:
        return []
    summary = _rollup(lines, ["route_id"])
    invoices = sales_df.groupby("route_id")["sale_id"].nunique().rename("invoices")
    drivers = (
        lines[lines["driver_id"] != ""].groupby("route_id")["driver_id"].nunique().rename("unique_drivers")
    )
    summary = summary.join(invoices, on="route_id").join(drivers, on="route_id")
    summary[["invoices", "unique_drivers"]] = summary[["invoices", "unique_drivers"]].fillna(0).astype("int64")
    names = {r.id: r.name for r in session.exec(select(Route)).all()}
    summary.insert(1, "route_name", summary["route_id"].map(lambda r: names.get(r, r)))
    return _records(summary.sort_values("route_name").reset_index(drop=True))


def driver_summary(session: Session, start: Any, end: Any = None) -> list[dict[str, Any]]:
    lines, sales_df, _ = _frames(session, start, end)
    if lines.empty:
        return []
    summary = _rollup(lines, ["driver_id"])
    bills = sales_df.groupby("driver_id")["sale_id"].nunique().rename("bills")
    summary = summary.join(bills, on="driver_id")
    summary["bills"] = summary["bills"].fillna(0).astype("int64")
    names = {d.id: d.name for d in session.exec(select(Driver)).all()}
    summary.insert(
        1, "driver_name", summary["driver_id"].map(lambda d: names.get(d, d) if d else "Unassigned")
    )
    return _records(summary.sort_values("driver_name").reset_index(drop=True))


def product_summary(session: Session, start: Any, end: Any = None) -> list[dict[str, Any]]:
    lines, _, products = _frames(session, start, end)
    if lines.empty:
        return []
    summary = _rollup(lines, ["product_id"])
    summary["avg_unit_price"] = (
        (summary["revenue"] / summary["sold_pcs"].where(summary["sold_pcs"] > 0)).fillna(0.0).round(4)
    )
    summary.insert(
        1,
        "product_name",
        summary["product_id"].map(lambda p: products[p].name if p in products else p),
    )
    return _records(summary.sort_values("product_name").reset_index(drop=True))


def sales_report(
    session: Session,
    start: Any,
    end: Any = None,
    route_id: Optional[str] = None,
    driver_id: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Flattened sale lines with their line revenue."""
    start_d, end_d = _range(start, end)
    _, sales = _load(session, start_d, end_d, route_id, driver_id)
    df = sale_frame(sales, products_by_id(session))
    if df.empty:
        return []
    df = df.rename(columns={"revenue": "line_revenue"}).sort_values(["date", "sale_id"], kind="stable")
    df["line_revenue"] = df["line_revenue"].round(2)
    return _records(df.reset_index(drop=True))


def assignment_log(session: Session, date: Any) -> list[dict[str, Any]]:
    """
    Per-record view of one day's assignments for the admin screen.

    Totals are plain box and piece sums as entered (not converted), and the
    initial figures fall back to remaining plus the route's sales of the
    day for records without ``initial_stock``.
    """
    day = parse_date(date)
    records = list(
        session.exec(select(DailyStock).where(DailyStock.date == day).order_by(DailyStock.id)).all()
    )
    if not records:
        return []
    sales = list(session.exec(select(Sale).where(Sale.date == day).order_by(Sale.id)).all())
    sales_df = sale_frame(sales, products_by_id(session))
    boxes_sold = legacy_sold(records, sales_df, "box_qty")
    pcs_sold = legacy_sold(records, sales_df, "pcs_qty")

    routes = {r.id: r.name for r in session.exec(select(Route)).all()}
    drivers = {d.id: d.name for d in session.exec(select(Driver)).all()}

    out = []
    for i, rec in enumerate(records):
        remaining = rec.stock_quantities().values()
        initial = rec.initial_quantities().values()
        rem_boxes = sum(q.box_qty for q in remaining)
        rem_pcs = sum(q.pcs_qty for q in remaining)
        init_boxes = sum(q.box_qty for q in initial)
        init_pcs = sum(q.pcs_qty for q in initial)
        if i in boxes_sold:
            init_boxes = rem_boxes + sum(boxes_sold[i].values())
            init_pcs = rem_pcs + sum(pcs_sold[i].values())
        if rem_boxes == 0 and rem_pcs == 0:
            status = "ended"
        elif rec.driver_id or rec.truck_id:
            status = "started"
        else:
            status = "not_started"
        out.append(
            {
                "id": rec.id,
                "date": rec.date.isoformat(),
                "route_id": rec.route_id,
                "route_name": routes.get(rec.route_id),
                "driver_id": rec.driver_id,
                "driver_name": drivers.get(rec.driver_id) if rec.driver_id else None,
                "truck_id": rec.truck_id,
                "stock": rec.stock,
                "total_boxes": rem_boxes,
                "total_pcs": rem_pcs,
                "initial_boxes": init_boxes,
                "initial_pcs": init_pcs,
                "route_status": status,
                "updated_at": rec.updated_at.isoformat() if rec.updated_at else None,
            }
        )
    return out

