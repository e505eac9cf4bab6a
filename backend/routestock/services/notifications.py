"""
In-app notifications (low stock, assignments, large returns).

Helpers only ``session.add`` the row; the caller's unit of work decides
whether it is committed together with the stock change it describes.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlmodel import Session, select

from routestock.core.config import get_settings
from routestock.core.database import unit_of_work
from routestock.models import Notification
from routestock.services.errors import StockNotFoundError, StockValidationError

logger = logging.getLogger(__name__)

TYPES = {"info", "warning", "success", "error"}
CATEGORIES = {"stock", "sales", "assignment", "return", "warehouse", "system"}


def notify(
    session: Session,
    title: str,
    message: str,
    *,
    type: str = "info",
    category: str = "system",
) -> Notification:
    if type not in TYPES:
        raise StockValidationError(f"Unknown notification type: {type}")
    if category not in CATEGORIES:
        raise StockValidationError(f"Unknown notification category: {category}")
    note = Notification(title=title, message=message, type=type, category=category)
    session.add(note)
    logger.info("notify[%s/%s]: %s", category, type, title)
    return note


def notify_low_stock(
    session: Session, product_name: str, boxes: int, pcs: int
) -> Notification:
    return notify(
        session,
        "Low stock alert",
        f"{product_name} is running low in the warehouse: {boxes} boxes + {pcs} pcs left.",
        type="warning",
        category="stock",
    )


def notify_stock_assigned(
    session: Session, route_label: str, date_label: str, boxes: int, pcs: int
) -> Notification:
    return notify(
        session,
        "Stock assigned",
        f"{boxes} boxes + {pcs} pcs assigned to route {route_label} for {date_label}.",
        type="success",
        category="assignment",
    )


def notify_high_return(
    session: Session, route_label: str, boxes: int, pcs: int
) -> Optional[Notification]:
    """Warn when a route brings back at least ``HIGH_RETURN_BOXES`` boxes."""
    threshold = get_settings().high_return_boxes
    if boxes < threshold:
        return None
    return notify(
        session,
        "High return",
        f"Route {route_label} returned {boxes} boxes + {pcs} pcs "
        f"(threshold {threshold} boxes).",
        type="warning",
        category="return",
    )


def list_notifications(
    session: Session, *, unread_only: bool = False, limit: int = 50
) -> list[Notification]:
    stmt = select(Notification).order_by(Notification.created_at.desc(), Notification.id.desc())
    if unread_only:
        stmt = stmt.where(Notification.is_read == False)  # noqa: E712
    return list(session.exec(stmt.limit(limit)).all())


def mark_read(session: Session, notification_id: int) -> Notification:
    note = session.get(Notification, notification_id)
    if note is None:
        raise StockNotFoundError(f"Notification {notification_id} not found")
    with unit_of_work(session):
        note.is_read = True
        session.add(note)
    session.refresh(note)
    return note
