import pytest

from servesoft.core.config import get_settings
from servesoft.services.excel_manager import ExcelManager
from servesoft.tasks import clear_excel_export, export_order_to_excel, health_check


@pytest.fixture
def export_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(get_settings(), "data_directory", str(tmp_path / "exports"))
    yield tmp_path / "exports"
    ExcelManager.clear_all()


def payload(order_id=1, code="ORD-AAAA0001"):
    return {
        "order_id": order_id,
        "order_code": code,
        "restaurant_id": 3,
        "order_type": "DELIVERY",
        "customer_name": "Awa Ndiaye",
        "customer_phone": "677000000",
        "delivery_address": "Bonapriso",
        "items": "2x Ndolé",
        "subtotal": 7000.0,
        "service_fee": 0.0,
        "delivery_fee": 1500.0,
        "total_amount": 8500.0,
        "order_status": "RECEIVED",
        "created_at": "2026-01-05T12:30:00",
    }


def test_export_appends_rows(export_dir):
    first = ExcelManager.export_order(payload(1, "ORD-AAAA0001"))
    second = ExcelManager.export_order(payload(2, "ORD-BBBB0002"))

    assert first["success"] and second["success"]
    assert (export_dir / "orders.xlsx").exists()

    rows = ExcelManager.get_all_orders()
    assert [r["order_code"] for r in rows] == ["ORD-AAAA0001", "ORD-BBBB0002"]
    assert rows[0]["total_amount"] == 8500
    assert rows[0]["date_time"] == "2026-01-05T12:30:00"
    assert list(rows[0].keys()) == ExcelManager.ORDER_COLUMNS


def test_clear_all(export_dir):
    ExcelManager.export_order(payload())

    assert ExcelManager.clear_all()
    assert ExcelManager.get_all_orders() == []


def test_export_task_runs_eagerly(export_dir):
    result = export_order_to_excel.delay(payload()).get()

    assert result["success"] is True
    assert result["order_id"] == 1
    assert "processing_time_seconds" in result
    assert len(ExcelManager.get_all_orders()) == 1

    cleared = clear_excel_export.delay().get()
    assert cleared["success"] is True


def test_health_check_task():
    assert health_check.delay().get()["status"] == "healthy"


def test_placed_orders_are_exported(client, customer, monkeypatch, export_dir, place_order):
    monkeypatch.setattr(get_settings(), "export_orders", True)

    body = place_order("DELIVERY").json()

    rows = ExcelManager.get_all_orders()
    assert [r["order_code"] for r in rows] == [body["order_code"]]
    assert rows[0]["items"] == "2x Ndolé, 1x Jus de foléré"
    assert rows[0]["order_type"] == "DELIVERY"
