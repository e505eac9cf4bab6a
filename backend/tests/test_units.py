import math

import pytest

from routestock.services.errors import StockValidationError
from routestock.services.units import (
    DEFAULT_PCS_PER_BOX,
    Quantity,
    effective_pcs_price,
    quantities_by_product,
    quantity_from_line,
    quantity_lines,
    resolve_pcs_per_box,
    stock_is_empty,
    to_canonical,
    to_total_pcs,
)


def test_explicit_pcs_per_box_wins():
    assert resolve_pcs_per_box(12, 2400, 100) == 12


def test_pcs_per_box_from_price_ratio():
    assert resolve_pcs_per_box(None, 2400, 100) == 24
    # rounded, not truncated
    assert resolve_pcs_per_box(None, 1190, 100) == 12


@pytest.mark.parametrize(
    "value", [None, 0, -6, math.nan, math.inf, "abc", "", 0.2, True]
)
def test_bad_pcs_per_box_falls_back_to_default(value):
    assert resolve_pcs_per_box(value) == DEFAULT_PCS_PER_BOX


def test_bad_prices_fall_back_to_default():
    assert resolve_pcs_per_box(None, 2400, 0) == DEFAULT_PCS_PER_BOX
    assert resolve_pcs_per_box(None, None, 100) == DEFAULT_PCS_PER_BOX
    assert resolve_pcs_per_box(None, 50, 100) == DEFAULT_PCS_PER_BOX


def test_total_and_canonical():
    assert to_total_pcs(5, 0, 24) == 120
    assert to_canonical(90, 24) == Quantity(3, 18)
    assert to_canonical(0, 24) == Quantity(0, 0)


def test_canonical_never_overflows_pieces():
    for ppb in (1, 6, 24):
        for total in range(0, 3 * ppb + 1):
            q = to_canonical(total, ppb)
            assert 0 <= q.pcs_qty < ppb
            assert q.total(ppb) == total


def test_zero_pcs_per_box_is_not_a_division_by_zero():
    assert to_canonical(50, 0) == Quantity(2, 2)
    assert to_total_pcs(1, 1, 0) == 25


def test_negative_total_is_rejected():
    with pytest.raises(StockValidationError):
        to_canonical(-1, 24)


def test_quantity_from_line_shapes():
    assert quantity_from_line({"boxQty": 2, "pcsQty": 3}) == Quantity(2, 3)
    assert quantity_from_line({"quantity": 4, "unit": "box"}) == Quantity(4, 0)
    assert quantity_from_line({"quantity": "7", "unit": "pcs"}) == Quantity(0, 7)
    assert quantity_from_line({"quantity": 5}) == Quantity(0, 5)
    assert quantity_from_line({"boxQty": None, "pcsQty": "x"}) == Quantity(0, 0)


def test_effective_pcs_price():
    assert effective_pcs_price(2400, None, 24) == 100
    assert effective_pcs_price(2400, 110, 24) == 110
    assert effective_pcs_price(None, None, 24) == 0.0


def test_stock_line_arrays():
    lines = [
        {"productId": "a", "boxQty": 1, "pcsQty": 2},
        {"productId": "a", "boxQty": 1, "pcsQty": 0},
        {"productId": "b", "boxQty": 0, "pcsQty": 0},
        {"boxQty": 9},
        "junk",
    ]
    by_product = quantities_by_product(lines)
    assert by_product == {"a": Quantity(2, 2), "b": Quantity(0, 0)}
    assert quantity_lines(by_product) == [{"productId": "a", "boxQty": 2, "pcsQty": 2}]
    assert stock_is_empty([{"productId": "b", "boxQty": 0, "pcsQty": 0}])
    assert not stock_is_empty(lines)
