import pytest
from fastapi.testclient import TestClient

from routestock.main import app
from routestock.services import warehouse

DAY = "2025-01-15"


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def product(client):
    res = client.post(
        "/v1/catalog/products",
        json={"id": "cola", "name": "Cola 500ml", "pcs_per_box": 24, "box_price": 2400},
    )
    assert res.status_code == 201
    res = client.post("/v1/warehouse/adjust", json={"product_id": "cola", "boxes": 10, "pcs": 0})
    assert res.status_code == 200
    return res.json()


def _assign(client, box_qty, **extra):
    body = {"date": DAY, "route_id": "R1", "items": [{"productId": "cola", "boxQty": box_qty}]}
    body.update(extra)
    return client.post("/v1/assignments", json=body)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_route_day_flow(client, product):
    res = _assign(client, 5)
    assert res.status_code == 200, res.text
    assert res.json()["deltas"][0]["delta_pcs"] == 120

    started = client.get("/v1/assignments/started", params={"date": DAY, "route_id": "R1"})
    assert started.json()["started"] is False

    res = client.post("/v1/assignments/claim", json={"date": DAY, "route_id": "R1", "driver_id": "D1"})
    assert res.status_code == 200
    assert res.json()["driver_id"] == "D1"

    res = _assign(client, 6)
    assert res.status_code == 409

    res = client.post(
        "/v1/sales",
        json={
            "date": DAY,
            "route_id": "R1",
            "driver_id": "D1",
            "shop_name": "Corner Shop",
            "items": [{"productId": "cola", "boxQty": 0, "pcsQty": 30}],
        },
    )
    assert res.status_code == 201, res.text
    sale = res.json()
    assert sale["total_amount"] == 3000.0
    assert client.get(f"/v1/sales/{sale['id']}").json()["items"][0]["pcsQty"] == 30

    (row,) = client.get("/v1/reports/daily", params={"start": DAY}).json()
    assert (row["assigned_pcs"], row["sold_pcs"], row["returned_pcs"]) == (120, 30, 90)

    res = client.post("/v1/assignments/end", json={"date": DAY, "route_id": "R1", "driver_id": "D1"})
    assert res.status_code == 200
    assert res.json()["returned"] == {"cola": {"boxQty": 3, "pcsQty": 18}}

    (level,) = client.get("/v1/warehouse/stock").json()
    assert (level["boxes"], level["pcs"]) == (8, 18)
    kinds = [m["movement_type"] for m in client.get("/v1/warehouse/movements").json()]
    assert sorted(kinds) == ["ADJUST", "ASSIGN", "RETURN"]


def test_insufficient_stock_is_a_conflict(client, product):
    res = _assign(client, 11)
    assert res.status_code == 409
    detail = res.json()["detail"]
    assert detail["shortfall"] == {"boxQty": 1, "pcsQty": 0}
    assert "Cola 500ml" in detail["message"]


def test_validation_errors_are_400(client, product):
    assert _assign(client, -1).status_code == 400
    assert _assign(client, 1, date="15/01/2025").status_code == 400
    assert _assign(client, 1, route_id=" ").status_code == 400


def test_sale_without_stock_is_404(client, product):
    res = client.post(
        "/v1/sales",
        json={"date": DAY, "route_id": "R9", "shop_name": "X", "items": [{"productId": "cola", "pcsQty": 1}]},
    )
    assert res.status_code == 404
    assert "No stock found" in res.json()["detail"]


def test_unknown_sale_is_404(client):
    assert client.get("/v1/sales/999").status_code == 404


def test_notifications_can_be_marked_read(client, product):
    _assign(client, 2)
    notes = client.get("/v1/notifications", params={"unread_only": True}).json()
    assert len(notes) == 1
    res = client.post(f"/v1/notifications/{notes[0]['id']}/read")
    assert res.json()["is_read"] is True
    assert client.get("/v1/notifications", params={"unread_only": True}).json() == []


def test_warehouse_intake_upload(client, product):
    csv = b"Product,Box Qty,Pieces\ncola,2,5\nghost,1,0\n"
    res = client.post(
        "/v1/warehouse/intake",
        files={"file": ("intake.csv", csv, "text/csv")},
    )
    assert res.status_code == 200, res.text
    summary = res.json()
    assert (summary["success_rows"], summary["error_rows"]) == (1, 1)
    assert summary["errors"][0]["row"] == 3
    (level,) = client.get("/v1/warehouse/stock").json()
    assert (level["boxes"], level["pcs"]) == (12, 5)


def test_empty_intake_file_is_400(client):
    res = client.post("/v1/warehouse/intake", files={"file": ("empty.csv", b"", "text/csv")})
    assert res.status_code == 400


def test_unexpected_failure_is_500_and_logged(client, product, monkeypatch, caplog):
    def broken(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(warehouse, "receive_stock", broken)
    with caplog.at_level("ERROR", logger="routestock.routers.deps"):
        res = client.post("/v1/warehouse/receive", json={"product_id": "cola", "boxes": 1, "pcs": 0})
    assert res.status_code == 500
    (entry,) = [r for r in caplog.records if r.name == "routestock.routers.deps"]
    assert entry.exc_info is not None
    assert "receive_stock failed" in entry.getMessage()
