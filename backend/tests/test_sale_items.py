import json

from routestock.services.sale_items import SaleLine, normalize_sale_items

CURRENT = [{"productId": "cola", "boxQty": 1, "pcsQty": 2, "unitPrice": 100}]


def test_plain_array():
    assert normalize_sale_items(CURRENT) == [SaleLine("cola", 1, 2, 100.0)]


def test_items_wrapper_and_json_string():
    expected = normalize_sale_items(CURRENT)
    assert normalize_sale_items({"items": CURRENT}) == expected
    assert normalize_sale_items(json.dumps(CURRENT)) == expected
    assert normalize_sale_items(json.dumps({"items": CURRENT})) == expected


def test_flat_quantity_unit_and_price_fallbacks():
    lines = normalize_sale_items(
        [
            {"productId": "cola", "quantity": 3, "unit": "box", "price": 2400},
            {"product_id": "soda", "quantity": 5, "unit": "pcs"},
            {"productId": "tea", "boxQty": 1, "unitPrice": None, "price": "55.5"},
        ]
    )
    assert lines == [
        SaleLine("cola", 3, 0, 2400.0),
        SaleLine("soda", 0, 5, 0.0),
        SaleLine("tea", 1, 0, 55.5),
    ]


def test_unknown_shapes_degrade_to_nothing():
    assert normalize_sale_items(None) == []
    assert normalize_sale_items("") == []
    assert normalize_sale_items("not json") == []
    assert normalize_sale_items(42) == []
    assert normalize_sale_items({"rows": CURRENT}) == []
    assert normalize_sale_items(["junk", {"boxQty": 1}, CURRENT[0]]) == [
        SaleLine("cola", 1, 2, 100.0)
    ]


def test_line_revenue_uses_total_pieces():
    line = SaleLine("cola", 1, 6, 10.0)
    assert line.total_pcs(24) == 30
    assert line.revenue(24) == 300.0
    assert line.to_dict() == {"productId": "cola", "boxQty": 1, "pcsQty": 6, "unitPrice": 10.0}
