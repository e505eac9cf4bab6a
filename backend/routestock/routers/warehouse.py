from __future__ import annotations

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, HTTPException, Query, UploadFile

from routestock.routers.deps import SesDep, http_error
from routestock.routers.schemas import AdjustRequest, ReceiveRequest
from routestock.services import intake as intake_service
from routestock.services import warehouse as warehouse_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/warehouse", tags=["warehouse"])

UploadDep = Annotated[UploadFile, File(...)]


@router.get("/stock")
def stock_levels(ses: SesDep):
    return warehouse_service.warehouse_levels(ses)


@router.get("/low-stock")
def low_stock(ses: SesDep):
    return warehouse_service.low_stock_products(ses)


@router.post("/receive")
def receive(body: ReceiveRequest, ses: SesDep):
    try:
        row = warehouse_service.receive_stock(ses, body.product_id, body.boxes, body.pcs, body.note)
        return row.model_dump(mode="json")
    except Exception as e:
        raise http_error(e, "receive_stock")


@router.post("/adjust")
def adjust(body: AdjustRequest, ses: SesDep):
    """Stock take: overwrite the warehouse level of one product."""
    try:
        row = warehouse_service.set_stock(ses, body.product_id, body.boxes, body.pcs, body.note)
        return row.model_dump(mode="json")
    except Exception as e:
        raise http_error(e, "set_stock")


@router.get("/movements")
def movements(
    ses: SesDep,
    product_id: Optional[str] = Query(None),
    movement_type: Optional[str] = Query(None, description="IN / ASSIGN / RETURN / ADJUST"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    rows = warehouse_service.list_movements(ses, product_id, movement_type, limit, offset)
    return [m.model_dump(mode="json") for m in rows]


@router.post("/intake")
async def intake(file: UploadDep, ses: SesDep, note: Optional[str] = Query(None)):
    """Bulk receive from a CSV / Excel sheet."""
    try:
        logger.info("intake: start filename=%s", getattr(file, "filename", None))
        return intake_service.ingest_warehouse_file(ses, file, note=note)
    except ValueError as e:
        logger.warning("intake failed: invalid file: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise http_error(e, "intake")
