from __future__ import annotations

import logging
from typing import Iterable, Optional

from sqlmodel import Session, select

from routestock.core.database import unit_of_work
from routestock.models import Driver, Product, Route
from routestock.services.errors import StockNotFoundError, StockValidationError
from routestock.services.units import resolve_pcs_per_box

logger = logging.getLogger(__name__)


def products_by_id(
    session: Session, product_ids: Optional[Iterable[str]] = None
) -> dict[str, Product]:
    stmt = select(Product)
    if product_ids is not None:
        ids = sorted({str(p) for p in product_ids})
        if not ids:
            return {}
        stmt = stmt.where(Product.id.in_(ids))
    return {p.id: p for p in session.exec(stmt).all()}


def require_products(session: Session, product_ids: Iterable[str]) -> dict[str, Product]:
    """Load every id or fail with a validation error naming the unknown ones."""
    wanted = {str(p) for p in product_ids}
    found = products_by_id(session, wanted)
    missing = sorted(wanted - set(found))
    if missing:
        raise StockValidationError(f"Unknown product(s): {', '.join(missing)}")
    return found


def get_product(session: Session, product_id: str) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise StockNotFoundError(f"Product {product_id} not found")
    return product


def create_product(
    session: Session,
    name: str,
    *,
    pcs_per_box: Optional[int] = None,
    box_price: float = 0.0,
    pcs_price: Optional[float] = None,
    product_id: Optional[str] = None,
) -> Product:
    if not name or not name.strip():
        raise StockValidationError("Product name is required")
    if box_price is not None and box_price < 0:
        raise StockValidationError("box_price cannot be negative")
    if pcs_price is not None and pcs_price < 0:
        raise StockValidationError("pcs_price cannot be negative")
    if pcs_per_box is not None and pcs_per_box <= 0:
        raise StockValidationError("pcs_per_box must be positive")
    product = Product(
        name=name.strip(),
        # persist the resolved ratio so every later reader agrees on it
        pcs_per_box=resolve_pcs_per_box(pcs_per_box, box_price, pcs_price),
        box_price=box_price or 0.0,
        pcs_price=pcs_price,
    )
    if product_id:
        product.id = product_id
    with unit_of_work(session):
        session.add(product)
    session.refresh(product)
    logger.info("create_product: id=%s name=%s pcs_per_box=%s", product.id, product.name, product.pcs_per_box)
    return product


def list_products(session: Session, include_inactive: bool = False) -> list[Product]:
    stmt = select(Product).order_by(Product.name)
    if not include_inactive:
        stmt = stmt.where(Product.status == "active")
    return list(session.exec(stmt).all())


def create_route(
    session: Session, name: str, *, truck_id: Optional[str] = None, route_id: Optional[str] = None
) -> Route:
    if not name or not name.strip():
        raise StockValidationError("Route name is required")
    route = Route(name=name.strip(), truck_id=truck_id)
    if route_id:
        route.id = route_id
    with unit_of_work(session):
        session.add(route)
    session.refresh(route)
    return route


def list_routes(session: Session) -> list[Route]:
    return list(session.exec(select(Route).order_by(Route.name)).all())


def create_driver(
    session: Session,
    name: str,
    *,
    phone: Optional[str] = None,
    truck_id: Optional[str] = None,
    driver_id: Optional[str] = None,
) -> Driver:
    if not name or not name.strip():
        raise StockValidationError("Driver name is required")
    driver = Driver(name=name.strip(), phone=phone, truck_id=truck_id)
    if driver_id:
        driver.id = driver_id
    with unit_of_work(session):
        session.add(driver)
    session.refresh(driver)
    return driver


def list_drivers(session: Session) -> list[Driver]:
    return list(session.exec(select(Driver).order_by(Driver.name)).all())
