from __future__ import annotations

from fastapi import APIRouter

from routestock.routers.deps import SesDep, http_error
from routestock.routers.schemas import SaleRequest
from routestock.services import sales as sales_service

router = APIRouter(prefix="/v1/sales", tags=["sales"])


def _sale_out(sale) -> dict:
    data = sale.model_dump(mode="json")
    # always expose the normalised line shape
    data["items"] = [line.to_dict() for line in sale.items()]
    return data


@router.post("", status_code=201)
def create_sale(body: SaleRequest, ses: SesDep):
    """Bill a shop and deduct the sold quantities from the route stock."""
    try:
        sale = sales_service.record_sale(
            ses, body.context(), body.shop_name, [item.to_line() for item in body.items]
        )
        return _sale_out(sale)
    except Exception as e:
        raise http_error(e, "record_sale")


@router.get("/{sale_id}")
def get_sale(sale_id: int, ses: SesDep):
    try:
        return _sale_out(sales_service.get_sale(ses, sale_id))
    except Exception as e:
        raise http_error(e, "get_sale")
