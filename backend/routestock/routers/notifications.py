from __future__ import annotations

from fastapi import APIRouter, Query

from routestock.routers.deps import SesDep, http_error
from routestock.services import notifications as notification_service

router = APIRouter(prefix="/v1/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    ses: SesDep,
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
):
    rows = notification_service.list_notifications(ses, unread_only=unread_only, limit=limit)
    return [n.model_dump(mode="json") for n in rows]


@router.post("/{notification_id}/read")
def mark_read(notification_id: int, ses: SesDep):
    try:
        return notification_service.mark_read(ses, notification_id).model_dump(mode="json")
    except Exception as e:
        raise http_error(e, "mark_read")
