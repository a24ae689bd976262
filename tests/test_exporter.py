from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from filelock import FileLock

from qrmenu.models import OrderStatus
from qrmenu.services.exporter import OrderExporter, QRCodeExporter
from qrmenu.tasks import ExportLockTimeout, export_orders_to_excel, health_check

CREATED = datetime(2026, 3, 14, 18, 30, tzinfo=timezone.utc)


def fake_order(order_id="o1", table="5", items=None, **extra):
    line = SimpleNamespace(
        menu_item=SimpleNamespace(name="Margherita"),
        quantity=2,
        unit_price=Decimal("12.50"),
    )
    fields = dict(
        id=order_id,
        status=OrderStatus.READY,
        total_amount=Decimal("25.00"),
        qr_code=SimpleNamespace(table_number=table) if table else None,
        customer_language="it",
        special_requests='no "basil"',
        created_at=CREATED,
        updated_at=CREATED,
        order_items=[line] if items is None else items,
    )
    fields.update(extra)
    return SimpleNamespace(**fields)


@pytest.fixture
def exporter(tmp_path):
    return OrderExporter(data_dir=tmp_path / "exports", lock_timeout=1)


def test_order_row():
    row = OrderExporter.order_row(fake_order())

    assert row == {
        "Order ID": "o1",
        "Status": "READY",
        "Total Amount": "25.00",
        "Table Number": "5",
        "Customer Language": "it",
        "Special Requests": 'no "basil"',
        "Created At": "2026-03-14T18:30:00+00:00",
        "Updated At": "2026-03-14T18:30:00+00:00",
        "Order Items": "Margherita (2x $12.50)",
    }


def test_order_row_without_table_or_menu_item():
    unknown = SimpleNamespace(menu_item=None, quantity=1, unit_price=Decimal("3.00"))
    row = OrderExporter.order_row(fake_order(table=None, items=[unknown], special_requests=None))

    assert row["Table Number"] == ""
    assert row["Special Requests"] == ""
    assert row["Order Items"] == "Unknown (1x $3.00)"


def test_to_csv_quotes_every_cell():
    text = OrderExporter.to_csv(OrderExporter.rows([fake_order()]))
    header, line = text.splitlines()

    assert header.startswith('"Order ID","Status","Total Amount"')
    assert line.startswith('"o1","READY","25.00","5","it","no ""basil"""')


def test_to_csv_without_orders():
    assert OrderExporter.to_csv([]).strip() == ",".join(f'"{c}"' for c in OrderExporter.COLUMNS)


def test_csv_filename():
    assert OrderExporter.csv_filename("r1", CREATED) == "orders-r1-2026-03-14.csv"


def test_qr_row():
    qr = SimpleNamespace(
        id="q1",
        table_number=None,
        qr_token="tok",
        is_active=False,
        scan_count=None,
        last_scanned=None,
        created_at=CREATED,
        updated_at=CREATED,
    )
    row = QRCodeExporter.qr_row({
        "qr_code": qr,
        "total_orders": 3,
        "total_revenue": Decimal("37.50"),
        "popular_languages": [{"language": "it", "count": 2}, {"language": "en", "count": 1}],
    })

    assert row["Table Number"] == ""
    assert row["Status"] == "Inactive"
    assert row["Scan Count"] == "0"
    assert row["Last Scanned"] == ""
    assert row["Created At"] == "2026-03-14T18:30:00+00:00"
    assert row["Total Revenue"] == "37.50"
    assert row["Popular Languages"] == "it(2); en(1)"
    assert QRCodeExporter.csv_filename("r1", CREATED) == "qr-codes-r1-2026-03-14.csv"


def test_append_to_workbook(exporter):
    first = exporter.append_to_workbook(OrderExporter.rows([fake_order("o1")]), "r1")
    second = exporter.append_to_workbook(OrderExporter.rows([fake_order("o2"), fake_order("o3")]), "r1")

    assert first["success"] is True
    assert second["message"] == "2 orders exported"
    assert exporter.workbook.exists()

    rows = exporter.read_workbook()
    assert [r["Order ID"] for r in rows] == ["o1", "o2", "o3"]
    assert rows[0]["Restaurant ID"] == "r1"
    assert rows[0]["Total Amount"] == "25.00"
    assert rows[2]["Exported At"] == second["exported_at"]


def test_read_missing_workbook(exporter):
    assert exporter.read_workbook() == []


def test_append_times_out_while_locked(tmp_path):
    exporter = OrderExporter(data_dir=tmp_path, lock_timeout=0.05)

    with FileLock(str(exporter.lock_file)):
        result = exporter.append_to_workbook(OrderExporter.rows([fake_order()]), "r1")

    assert result["success"] is False
    assert result["message"] == "Lock timeout (0.05s)"
    assert not exporter.workbook.exists()


# =============================================================================
# CELERY TASKS
# =============================================================================

@pytest.fixture
def data_dir(tmp_path, monkeypatch, settings):
    monkeypatch.setattr(settings, "data_directory", str(tmp_path))
    return tmp_path


def test_export_task(data_dir, settings):
    result = export_orders_to_excel(OrderExporter.rows([fake_order()]), "r1")

    assert result["success"] is True
    assert result["rows"] == 1
    assert "processing_time_seconds" in result
    assert (data_dir / settings.excel_filename).exists()


def test_export_task_raises_when_locked(data_dir, settings, monkeypatch):
    monkeypatch.setattr(settings, "excel_lock_timeout", 0.05)

    with FileLock(str(data_dir / f"{settings.excel_filename}.lock")):
        with pytest.raises(ExportLockTimeout, match="Lock timeout"):
            export_orders_to_excel(OrderExporter.rows([fake_order()]), "r1")


def test_health_check_task():
    assert health_check()["status"] == "healthy"
