from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from routestock.routers.deps import SesDep, http_error
from routestock.services import catalog as catalog_service

router = APIRouter(prefix="/v1/catalog", tags=["catalog"])


class ProductIn(BaseModel):
    name: str
    pcs_per_box: Optional[int] = None
    box_price: float = 0.0
    pcs_price: Optional[float] = None
    id: Optional[str] = None


class RouteIn(BaseModel):
    name: str
    truck_id: Optional[str] = None
    id: Optional[str] = None


class DriverIn(BaseModel):
    name: str
    phone: Optional[str] = None
    truck_id: Optional[str] = None
    id: Optional[str] = None


def _product_out(p) -> dict:
    data = p.model_dump(mode="json")
    data["units_per_box"] = p.units_per_box
    data["unit_price"] = round(p.unit_price, 4)
    return data


# ---------------------------- products ---------------------------------
@router.get("/products")
def list_products(ses: SesDep, include_inactive: bool = Query(False)):
    return [_product_out(p) for p in catalog_service.list_products(ses, include_inactive)]


@router.post("/products", status_code=201)
def create_product(body: ProductIn, ses: SesDep):
    try:
        product = catalog_service.create_product(
            ses,
            body.name,
            pcs_per_box=body.pcs_per_box,
            box_price=body.box_price,
            pcs_price=body.pcs_price,
            product_id=body.id,
        )
        return _product_out(product)
    except Exception as e:
        raise http_error(e, "create_product")


# ----------------------------- routes ----------------------------------
@router.get("/routes")
def list_routes(ses: SesDep):
    return [r.model_dump(mode="json") for r in catalog_service.list_routes(ses)]


@router.post("/routes", status_code=201)
def create_route(body: RouteIn, ses: SesDep):
    try:
        route = catalog_service.create_route(ses, body.name, truck_id=body.truck_id, route_id=body.id)
        return route.model_dump(mode="json")
    except Exception as e:
        raise http_error(e, "create_route")


# ----------------------------- drivers ---------------------------------
@router.get("/drivers")
def list_drivers(ses: SesDep):
    return [d.model_dump(mode="json") for d in catalog_service.list_drivers(ses)]


@router.post("/drivers", status_code=201)
def create_driver(body: DriverIn, ses: SesDep):
    try:
        driver = catalog_service.create_driver(
            ses, body.name, phone=body.phone, truck_id=body.truck_id, driver_id=body.id
        )
        return driver.model_dump(mode="json")
    except Exception as e:
        raise http_error(e, "create_driver")
