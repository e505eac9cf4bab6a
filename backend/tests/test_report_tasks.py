from routestock.services import assignment, report_tasks, warehouse
from routestock.services.context import StockContext


def test_low_stock_scan_task(session, stocked_cola):
    result = report_tasks.low_stock_scan()
    assert result["low_products"] == []

    warehouse.set_stock(session, "cola", 1, 0)
    result = report_tasks.low_stock_scan()
    assert result["low_products"] == ["cola"]


def test_daily_summary_task(session, stocked_cola):
    ctx = StockContext(date="2025-01-15", route_id="R1")
    assignment.assign_stock(session, ctx, [{"productId": "cola", "boxQty": 2}])
    result = report_tasks.daily_summary("2025-01-15")
    assert result["date"] == "2025-01-15"
    (row,) = result["rows"]
    assert row["assigned_pcs"] == 48
