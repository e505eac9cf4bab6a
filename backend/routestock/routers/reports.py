from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from routestock.routers.deps import SesDep, http_error
from routestock.services import reports as reports_service

# Read-only reporting API (no side effects).
router = APIRouter(prefix="/v1/reports", tags=["reports"])


@router.get("/daily")
def daily(
    ses: SesDep,
    start: str = Query(..., description="first date (YYYY-MM-DD)"),
    end: Optional[str] = Query(None, description="last date, defaults to start"),
    route_id: Optional[str] = Query(None),
    driver_id: Optional[str] = Query(None),
):
    try:
        return reports_service.daily_summary(ses, start, end, route_id, driver_id)
    except Exception as e:
        raise http_error(e, "daily_summary")


@router.get("/routes")
def routes(ses: SesDep, start: str = Query(...), end: Optional[str] = Query(None)):
    try:
        return reports_service.route_summary(ses, start, end)
    except Exception as e:
        raise http_error(e, "route_summary")


@router.get("/drivers")
def drivers(ses: SesDep, start: str = Query(...), end: Optional[str] = Query(None)):
    try:
        return reports_service.driver_summary(ses, start, end)
    except Exception as e:
        raise http_error(e, "driver_summary")


@router.get("/products")
def products(ses: SesDep, start: str = Query(...), end: Optional[str] = Query(None)):
    try:
        return reports_service.product_summary(ses, start, end)
    except Exception as e:
        raise http_error(e, "product_summary")


@router.get("/sales")
def sales(
    ses: SesDep,
    start: str = Query(...),
    end: Optional[str] = Query(None),
    route_id: Optional[str] = Query(None),
    driver_id: Optional[str] = Query(None),
):
    try:
        return reports_service.sales_report(ses, start, end, route_id, driver_id)
    except Exception as e:
        raise http_error(e, "sales_report")
