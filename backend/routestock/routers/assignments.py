from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Query

from routestock.routers.deps import SesDep, http_error
from routestock.routers.schemas import AssignRequest, ContextIn
from routestock.services import assignment as assignment_service
from routestock.services import reports as reports_service
from routestock.services.context import StockContext, parse_date

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/assignments", tags=["assignments"])


@router.post("")
def assign(body: AssignRequest, ses: SesDep):
    """Set the assigned quantities for a route/date (admin)."""
    try:
        ctx = body.context()
        result = assignment_service.assign_stock(
            ses, ctx, [item.to_line() for item in body.items], note=body.note
        )
        return {
            "record": result.record.model_dump(mode="json"),
            "deltas": [d.to_dict() for d in result.deltas],
            "movements": [m.model_dump(mode="json") for m in result.movements],
        }
    except Exception as e:
        raise http_error(e, "assign_stock")


@router.get("")
def list_assignments(
    ses: SesDep,
    date: str = Query(..., description="business date (YYYY-MM-DD)"),
    route_id: Optional[str] = Query(None),
    driver_id: Optional[str] = Query(None),
):
    try:
        rows = assignment_service.list_daily_stock(ses, parse_date(date), route_id, driver_id)
        return [r.model_dump(mode="json") for r in rows]
    except Exception as e:
        raise http_error(e, "list_assignments")


@router.get("/log")
def assignment_log(ses: SesDep, date: str = Query(...)):
    try:
        return reports_service.assignment_log(ses, date)
    except Exception as e:
        raise http_error(e, "assignment_log")


@router.get("/started")
def route_started(
    ses: SesDep,
    date: str = Query(...),
    route_id: str = Query(...),
):
    try:
        ctx = StockContext(date=date, route_id=route_id)
        return {"route_id": ctx.route_id, "date": ctx.date.isoformat(),
                "started": assignment_service.is_route_started(ses, ctx)}
    except Exception as e:
        raise http_error(e, "route_started")


@router.post("/claim")
def claim(body: ContextIn, ses: SesDep):
    """Driver starts the route."""
    try:
        record = assignment_service.claim_route(ses, body.context())
        return record.model_dump(mode="json")
    except Exception as e:
        raise http_error(e, "claim_route")


@router.post("/end")
def end(body: ContextIn, ses: SesDep):
    """Driver ends the route; remaining stock goes back to the warehouse."""
    try:
        result = assignment_service.end_route(ses, body.context())
        return {
            "record": result.record.model_dump(mode="json"),
            "returned": {pid: q.to_dict() for pid, q in result.returned.items()},
            "movements": [m.model_dump(mode="json") for m in result.movements],
        }
    except Exception as e:
        raise http_error(e, "end_route")
