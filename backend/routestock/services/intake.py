"""
Bulk warehouse intake from a CSV / Excel sheet.

Expected columns (aliases are folded by ``read_dataframe``):
``product_id`` or ``product_name``, ``boxes``, ``pcs`` and an optional
``note``.  Each valid row becomes one ``IN`` movement.  Bad rows are
collected and reported; the valid rows are committed together.
"""

from __future__ import annotations

import logging
import math
import unicodedata
from typing import Any

import pandas as pd
from sqlmodel import Session

from routestock.core.database import unit_of_work
from routestock.models import Product
from routestock.services.catalog import products_by_id
from routestock.services.units import Quantity
from routestock.services.warehouse import stage_receipt
from routestock.utils.file_parser import read_dataframe

logger = logging.getLogger(__name__)


def _safe_int(val: Any, default: int | None = None) -> int:
    """
    Convert a cell to ``int``.

    Blank / NaN gives *default* (or ``ValueError`` when no default).
    Accepts thousands separators and full-width digits ("１,２００").
    """
    if val is None or (isinstance(val, float) and math.isnan(val)):
        val = ""
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return int(val)
    cleaned = unicodedata.normalize("NFKC", str(val)).replace(",", "").strip()
    if cleaned == "":
        if default is not None:
            return default
        raise ValueError("Value required")
    try:
        return int(cleaned)
    except ValueError:
        try:
            return int(float(cleaned))
        except ValueError as exc:
            raise ValueError(f"Cannot convert {val!r} to int") from exc


def _resolve_product(row: pd.Series, by_id: dict[str, Product], by_name: dict[str, Product]) -> Product:
    pid = str(row.get("product_id", "") or "").strip()
    if pid:
        if pid in by_id:
            return by_id[pid]
        # sheets often carry the product name in the product column
        if pid.lower() in by_name:
            return by_name[pid.lower()]
        raise ValueError(f"Unknown product {pid!r}")
    name = str(row.get("product_name", "") or "").strip()
    if name and name.lower() in by_name:
        return by_name[name.lower()]
    if name:
        raise ValueError(f"Unknown product {name!r}")
    raise ValueError("Row has neither product_id nor product_name")


def ingest_warehouse_sheet(session: Session, df: pd.DataFrame, note: str | None = None) -> dict:
    """Receive every valid row of ``df`` into the warehouse."""
    if "product_id" not in df.columns and "product_name" not in df.columns:
        raise ValueError("Sheet needs a product_id or product_name column")
    if "boxes" not in df.columns and "pcs" not in df.columns:
        raise ValueError("Sheet needs a boxes or pcs column")

    products = products_by_id(session)
    by_name = {p.name.lower(): p for p in products.values()}

    valid: list[tuple[Product, Quantity, str | None]] = []
    errors: list[dict] = []
    for idx, row in df.iterrows():
        row_no = int(idx) + 2  # header is line 1
        try:
            product = _resolve_product(row, products, by_name)
            qty = Quantity(_safe_int(row.get("boxes"), 0), _safe_int(row.get("pcs"), 0))
            if qty.is_negative:
                raise ValueError("Quantities cannot be negative")
            if qty.is_zero:
                raise ValueError("Nothing to receive")
            row_note = str(row.get("note", "") or "").strip() or note
            valid.append((product, qty, row_note))
        except ValueError as exc:
            errors.append({"row": row_no, "error": str(exc)})

    with unit_of_work(session):
        for product, qty, row_note in valid:
            stage_receipt(session, product, qty, row_note or "Bulk intake")

    logger.info(
        "ingest_warehouse_sheet: total=%s success=%s errors=%s",
        len(df), len(valid), len(errors),
    )
    return {
        "total_rows": int(len(df)),
        "success_rows": len(valid),
        "error_rows": len(errors),
        "errors": errors,
    }


def ingest_warehouse_file(session: Session, file: Any, note: str | None = None) -> dict:
    """``read_dataframe`` + ``ingest_warehouse_sheet``."""
    df = read_dataframe(file)
    return ingest_warehouse_sheet(session, df, note=note)
