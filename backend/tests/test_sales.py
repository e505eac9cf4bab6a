import pytest
from sqlmodel import select

from routestock.models import Sale
from routestock.services import assignment, reports, sales
from routestock.services.errors import (
    StockConflictError,
    StockNotFoundError,
    StockValidationError,
)
from routestock.services.units import Quantity


@pytest.fixture
def assigned(session, stocked_cola, ctx):
    """Route R1 holds 1 box + 20 pcs of cola (44 pcs)."""
    return assignment.assign_stock(
        session, ctx, [{"productId": "cola", "boxQty": 1, "pcsQty": 20}]
    ).record


def test_max_sellable_counts_cut_boxes():
    assert sales.max_sellable_pcs(Quantity(2, 5), 24) == 53
    assert sales.max_sellable_pcs(Quantity(0, 0), 24) == 0


def test_pieces_can_cut_into_boxes(session, assigned, ctx):
    sale = sales.record_sale(session, ctx, "Corner Shop", [{"productId": "cola", "pcsQty": 44}])
    assert sale.id is not None
    session.refresh(assigned)
    assert assigned.stock == []


def test_box_sale_capped_at_boxes_on_hand(session, assigned, ctx):
    # 48 pcs worth of boxes, but only one whole box exists
    with pytest.raises(StockConflictError):
        sales.record_sale(session, ctx, "Corner Shop", [{"productId": "cola", "boxQty": 2}])


def test_sale_above_cutting_limit_is_refused(session, assigned, ctx):
    with pytest.raises(StockConflictError):
        sales.record_sale(
            session, ctx, "Corner Shop", [{"productId": "cola", "boxQty": 1, "pcsQty": 21}]
        )
    assert session.exec(select(Sale)).all() == []
    session.refresh(assigned)
    assert assigned.stock_quantities()["cola"] == Quantity(1, 20)


def test_record_sale_prices_and_deducts(session, assigned, ctx):
    sale = sales.record_sale(
        session, ctx, "  Corner Shop ", [{"productId": "cola", "boxQty": 0, "pcsQty": 30}]
    )
    assert sale.shop_name == "Corner Shop"
    # 2400 per box / 24 -> 100 per piece
    assert sale.total_amount == 3000.0
    (line,) = sale.items()
    assert line.unit_price == 100.0
    assert line.product_name == "Cola 500ml"

    session.refresh(assigned)
    assert assigned.stock_quantities()["cola"] == Quantity(0, 14)
    assert assigned.initial_quantities()["cola"] == Quantity(1, 20)


def test_record_sale_keeps_given_price(session, assigned, ctx):
    sale = sales.record_sale(
        session, ctx, "Shop", [{"productId": "cola", "pcsQty": 10, "unitPrice": 90}]
    )
    assert sale.total_amount == 900.0


def test_deduct_sale_clamps_at_zero(session, assigned, ctx):
    record = sales.deduct_sale(session, ctx, [{"productId": "cola", "boxQty": 3}])
    assert record.stock == []
    assert record.initial_quantities()["cola"] == Quantity(1, 20)


def test_missing_stock_record_is_a_hard_failure(session, cola, ctx):
    with pytest.raises(StockNotFoundError, match="No stock found"):
        sales.deduct_sale(session, ctx, [{"productId": "cola", "pcsQty": 1}])
    with pytest.raises(StockNotFoundError):
        sales.record_sale(session, ctx, "Shop", [{"productId": "cola", "pcsQty": 1}])
    assert session.exec(select(Sale)).all() == []


def test_driver_sale_uses_claimed_record(session, assigned, driver_ctx):
    claimed = assignment.claim_route(session, driver_ctx)
    sale = sales.record_sale(session, driver_ctx, "Shop", [{"productId": "cola", "pcsQty": 4}])
    assert sale.driver_id == "D1"
    session.refresh(claimed)
    assert claimed.stock_quantities()["cola"] == Quantity(1, 16)


def test_negative_and_empty_sales_are_rejected(session, assigned, ctx):
    with pytest.raises(StockValidationError):
        sales.record_sale(session, ctx, "Shop", [{"productId": "cola", "pcsQty": -2}])
    with pytest.raises(StockValidationError):
        sales.record_sale(session, ctx, "Shop", [{"productId": "cola", "pcsQty": 0}])
    with pytest.raises(StockValidationError):
        sales.record_sale(session, ctx, "", [{"productId": "cola", "pcsQty": 1}])
    with pytest.raises(StockValidationError):
        sales.record_sale(session, ctx, "Shop", [{"pcsQty": 1}])


def test_driver_billing_unclaimed_record_claims_it(session, assigned, driver_ctx):
    sale = sales.record_sale(session, driver_ctx, "Shop", [{"productId": "cola", "boxQty": 1}])
    session.refresh(assigned)
    assert (assigned.driver_id, assigned.truck_id) == ("D1", "T1")
    assert sale.driver_id == "D1"

    (row,) = reports.daily_summary(session, driver_ctx.date)
    assert row["key"] == "2025-01-15|R1|D1"
    assert (row["assigned_pcs"], row["sold_pcs"], row["returned_pcs"]) == (44, 24, 20)


def test_deduct_sale_claims_unclaimed_record_for_driver(session, assigned, driver_ctx):
    record = sales.deduct_sale(session, driver_ctx, [{"productId": "cola", "pcsQty": 4}])
    assert record.id == assigned.id
    assert record.driver_id == "D1"
    assert assignment.find_unclaimed_record(session, driver_ctx) is None
