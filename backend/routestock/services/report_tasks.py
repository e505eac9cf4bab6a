"""
Celery background tasks for stock reporting.

Business logic stays in ``routestock.services.warehouse`` and
``routestock.services.reports``; the tasks only open a session, call in and
return a JSON-safe summary.

Exposed tasks:
* ``reports.low_stock_scan()``   - notify about products under the low mark
* ``reports.daily_summary(date)`` - daily route/driver rollup for one date
"""

from __future__ import annotations

import datetime as _dt
import logging
import time
from typing import Optional

from celery import shared_task
from sqlmodel import Session

from routestock.core.database import engine
from routestock.services import reports, warehouse

logger = logging.getLogger(__name__)


@shared_task(name="reports.low_stock_scan")
def low_stock_scan() -> dict:
    """Celery task: raise low-stock notifications and list the products."""
    start = time.perf_counter()
    with Session(engine) as ses:
        low = warehouse.scan_low_stock(ses)
    elapsed = round(time.perf_counter() - start, 3)
    logger.info("low_stock_scan: %s low products in %.3fs", len(low), elapsed)
    return {
        "low_products": [item["product_id"] for item in low],
        "elapsed_sec": elapsed,
        "run_at": _dt.datetime.now(_dt.timezone.utc).isoformat(),
    }


@shared_task(name="reports.daily_summary")
def daily_summary(date: Optional[str] = None) -> dict:
    """
    Celery task: daily summary for ``date`` (ISO string, default today).

    Args:
        date: business date, e.g. "2025-01-31".
    """
    start = time.perf_counter()
    day = date or _dt.date.today().isoformat()
    with Session(engine) as ses:
        rows = reports.daily_summary(ses, day)
    elapsed = round(time.perf_counter() - start, 3)
    return {
        "date": day,
        "rows": rows,
        "elapsed_sec": elapsed,
        "run_at": _dt.datetime.now(_dt.timezone.utc).isoformat(),
    }
