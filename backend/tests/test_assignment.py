import pytest
from sqlmodel import select

from routestock.models import DailyStock, Notification, WarehouseMovement, WarehouseStock
from routestock.services import assignment, sales, warehouse
from routestock.services.assignment import compute_delta, rebase_initial
from routestock.services.errors import (
    InsufficientStockError,
    RouteAlreadyStartedError,
    StockNotFoundError,
    StockValidationError,
)
from routestock.services.units import Quantity


def _warehouse(session, product_id):
    session.expire_all()
    return session.get(WarehouseStock, product_id)


def _movements(session, product_id, kind=None):
    stmt = select(WarehouseMovement).where(WarehouseMovement.product_id == product_id)
    if kind:
        stmt = stmt.where(WarehouseMovement.movement_type == kind)
    return session.exec(stmt.order_by(WarehouseMovement.id)).all()


# ----------------------------------------------------------------------- #
# pure helpers                                                            #
# ----------------------------------------------------------------------- #
def test_compute_delta_signs():
    assert compute_delta(None, Quantity(5, 0), 24) == 120
    assert compute_delta(Quantity(5, 0), Quantity(3, 0), 24) == -48
    assert compute_delta(Quantity(1, 6), Quantity(0, 30), 24) == 0


def test_compute_delta_rejects_negative_request():
    with pytest.raises(StockValidationError):
        compute_delta(None, Quantity(-1, 0), 24)


def test_rebase_initial_clamps_at_zero():
    assert rebase_initial(120, -48) == 72
    assert rebase_initial(48, -72) == 0


# ----------------------------------------------------------------------- #
# assignment + warehouse                                                  #
# ----------------------------------------------------------------------- #
def test_assignment_then_partial_sale(session, stocked_cola, ctx):
    result = assignment.assign_stock(
        session, ctx, [{"productId": "cola", "boxQty": 5, "pcsQty": 0}]
    )
    record = result.record
    assert record.stock == [{"productId": "cola", "boxQty": 5, "pcsQty": 0}]
    assert record.initial_stock == [{"productId": "cola", "boxQty": 5, "pcsQty": 0}]
    wh = _warehouse(session, "cola")
    assert (wh.boxes, wh.pcs) == (5, 0)
    assign_moves = _movements(session, "cola", "ASSIGN")
    assert [(m.boxes, m.pcs) for m in assign_moves] == [(5, 0)]

    # 30 pieces cuts into two boxes
    record = sales.deduct_sale(session, ctx, [{"productId": "cola", "boxQty": 0, "pcsQty": 30}])
    assert record.stock_quantities()["cola"] == Quantity(3, 18)
    assert record.initial_quantities()["cola"] == Quantity(5, 0)


def test_correction_returns_delta_to_warehouse(session, stocked_cola, ctx):
    assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 5}])
    result = assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 3}])

    assert [d.delta for d in result.deltas] == [-48]
    assert result.record.initial_quantities()["cola"] == Quantity(3, 0)
    assert result.record.stock_quantities()["cola"] == Quantity(3, 0)
    wh = _warehouse(session, "cola")
    assert (wh.boxes, wh.pcs) == (7, 0)
    returns = _movements(session, "cola", "RETURN")
    assert [(m.boxes, m.pcs) for m in returns] == [(2, 0)]
    # still one record for the route/date
    assert len(session.exec(select(DailyStock)).all()) == 1


def test_insufficient_stock_changes_nothing(session, cola, ctx):
    warehouse.set_stock(session, "cola", 1, 0)
    with pytest.raises(InsufficientStockError) as exc_info:
        assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 2}])

    err = exc_info.value
    assert err.product_name == "Cola 500ml"
    assert err.shortfall == Quantity(1, 0)
    assert "Cola 500ml" in str(err)
    wh = _warehouse(session, "cola")
    assert (wh.boxes, wh.pcs) == (1, 0)
    assert session.exec(select(DailyStock)).all() == []
    assert _movements(session, "cola", "ASSIGN") == []


def test_multi_product_request_is_all_or_nothing(session, stocked_cola, soda, ctx):
    warehouse.set_stock(session, "soda", 1, 0)
    with pytest.raises(InsufficientStockError):
        assignment.assign_stock(
            session,
            ctx,
            [
                {"productId": "cola", "boxQty": 2},
                {"productId": "soda", "boxQty": 3},
            ],
        )
    assert (_warehouse(session, "cola").boxes, _warehouse(session, "soda").boxes) == (10, 1)
    assert session.exec(select(DailyStock)).all() == []


def test_write_failure_rolls_back_everything(session, stocked_cola, soda, ctx, monkeypatch):
    warehouse.set_stock(session, "soda", 5, 0)
    real_apply = warehouse.apply_assignment_delta
    calls = []

    def flaky_apply(ses, product, delta, note):
        calls.append(product.id)
        if len(calls) == 2:
            raise RuntimeError("movement insert failed")
        return real_apply(ses, product, delta, note)

    monkeypatch.setattr(warehouse, "apply_assignment_delta", flaky_apply)
    with pytest.raises(RuntimeError):
        assignment.assign_stock(
            session,
            ctx,
            [{"productId": "cola", "boxQty": 2}, {"productId": "soda", "boxQty": 1}],
        )

    assert calls == ["cola", "soda"]
    assert _warehouse(session, "cola").boxes == 10
    assert _warehouse(session, "soda").boxes == 5
    assert session.exec(select(DailyStock)).all() == []
    assert _movements(session, "cola", "ASSIGN") == []


def test_unchanged_target_writes_no_movement(session, stocked_cola, ctx):
    assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 4}])
    result = assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 4}])
    assert result.movements == []
    assert len(_movements(session, "cola", "ASSIGN")) == 1


def test_unlisted_products_keep_their_quantities(session, stocked_cola, soda, ctx):
    warehouse.set_stock(session, "soda", 5, 0)
    assignment.assign_stock(
        session, ctx, [{"productId": "cola", "boxQty": 2}, {"productId": "soda", "boxQty": 1}]
    )
    result = assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 0}])
    assert result.record.stock == [{"productId": "soda", "boxQty": 1, "pcsQty": 0}]
    assert _warehouse(session, "cola").boxes == 10


def test_negative_quantity_is_rejected_before_any_write(session, stocked_cola, ctx):
    with pytest.raises(StockValidationError):
        assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": -1}])
    assert session.exec(select(DailyStock)).all() == []


def test_unknown_product_is_a_validation_error(session, ctx):
    with pytest.raises(StockValidationError):
        assignment.assign_stock(session, ctx, [{"productId": "nope", "boxQty": 1}])


def test_duplicate_product_lines_are_rejected(session, stocked_cola, ctx):
    with pytest.raises(StockValidationError):
        assignment.assign_stock(
            session, ctx, [{"productId": "cola", "boxQty": 1}, {"productId": "cola", "pcsQty": 2}]
        )


def test_assignment_raises_notification(session, stocked_cola, ctx):
    assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 2, "pcsQty": 3}])
    notes = session.exec(select(Notification).where(Notification.category == "assignment")).all()
    assert len(notes) == 1
    assert "2 boxes + 3 pcs" in notes[0].message


# ----------------------------------------------------------------------- #
# route lifecycle                                                         #
# ----------------------------------------------------------------------- #
def test_started_route_rejects_assignment(session, stocked_cola, ctx, driver_ctx):
    assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 2}])
    assert not assignment.is_route_started(session, ctx)

    assignment.claim_route(session, driver_ctx)
    assert assignment.is_route_started(session, ctx)
    with pytest.raises(RouteAlreadyStartedError):
        assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 3}])
    assert _warehouse(session, "cola").boxes == 8


def test_claim_with_empty_stock_does_not_start_route(session, ctx, driver_ctx):
    record = assignment.claim_route(session, driver_ctx)
    assert record.driver_id == "D1"
    assert record.stock == []
    assert not assignment.is_route_started(session, ctx)


def test_claim_route_reuses_records(session, stocked_cola, ctx, driver_ctx):
    assigned = assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 2}]).record
    claimed = assignment.claim_route(session, driver_ctx)
    assert claimed.id == assigned.id
    assert claimed.driver_id == "D1"
    assert claimed.truck_id == "T1"
    again = assignment.claim_route(session, driver_ctx)
    assert again.id == assigned.id
    assert len(session.exec(select(DailyStock)).all()) == 1


def test_claim_requires_driver(session, ctx):
    with pytest.raises(StockValidationError):
        assignment.claim_route(session, ctx)


def test_end_route_returns_remaining_stock(session, stocked_cola, ctx, driver_ctx):
    assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 5}])
    assignment.claim_route(session, driver_ctx)
    sales.deduct_sale(session, driver_ctx, [{"productId": "cola", "boxQty": 1, "pcsQty": 6}])

    result = assignment.end_route(session, driver_ctx)
    assert result.returned == {"cola": Quantity(3, 18)}
    assert result.record.stock == []
    assert result.record.initial_quantities()["cola"] == Quantity(5, 0)
    wh = _warehouse(session, "cola")
    assert (wh.boxes, wh.pcs) == (8, 18)
    assert [(m.boxes, m.pcs) for m in _movements(session, "cola", "RETURN")] == [(3, 18)]
    # a finished route is no longer "started"
    assert not assignment.is_route_started(session, ctx)


def test_end_route_high_return_warning(session, cola, ctx, driver_ctx):
    warehouse.set_stock(session, "cola", 30, 0)
    assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 25}])
    assignment.claim_route(session, driver_ctx)
    assignment.end_route(session, driver_ctx)
    warnings = session.exec(select(Notification).where(Notification.category == "return")).all()
    assert len(warnings) == 1
    assert warnings[0].type == "warning"


def test_end_route_without_record(session, driver_ctx):
    with pytest.raises(StockNotFoundError):
        assignment.end_route(session, driver_ctx)


# ----------------------------------------------------------------------- #
# conservation                                                            #
# ----------------------------------------------------------------------- #
def test_movement_log_matches_warehouse_level(session, stocked_cola, soda, ctx):
    warehouse.set_stock(session, "soda", 4, 0)
    start_total = 240
    steps = [
        [{"productId": "cola", "boxQty": 5}],
        [{"productId": "cola", "boxQty": 3, "pcsQty": 7}],
        [{"productId": "cola", "boxQty": 6}, {"productId": "soda", "boxQty": 2}],
        [{"productId": "cola", "boxQty": 0, "pcsQty": 5}],
    ]
    for lines in steps:
        assignment.assign_stock(session, ctx, lines)

    current = _warehouse(session, "cola").total(24)
    assert current == start_total - 5
    net_out = -warehouse.movement_balance(session, "cola", types=["ASSIGN", "RETURN"])
    assert net_out == start_total - current
    assert warehouse.movement_balance(session, "cola") == current
    assert warehouse.movement_balance(session, "soda") == _warehouse(session, "soda").total(12)
