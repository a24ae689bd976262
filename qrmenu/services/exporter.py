"""
Order Exporter with Concurrency Control

Flattens orders into rows and writes them out as:
- CSV (download from the API)
- Excel workbook under the data directory (Celery task, file-locked)

QR codes get a CSV download of their own.
"""

import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

import pandas as pd
from filelock import FileLock, Timeout

from qrmenu.core.config import get_settings

logger = logging.getLogger(__name__)


class OrderExporter:
    """Order export to CSV and to a shared Excel workbook."""

    COLUMNS = [
        "Order ID",
        "Status",
        "Total Amount",
        "Table Number",
        "Customer Language",
        "Special Requests",
        "Created At",
        "Updated At",
        "Order Items",
    ]

    def __init__(self, data_dir: Optional[Path] = None, lock_timeout: Optional[float] = None):
        settings = get_settings()
        self.data_dir = Path(data_dir or settings.data_directory)
        self.workbook = self.data_dir / settings.excel_filename
        self.lock_file = self.data_dir / f"{settings.excel_filename}.lock"
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.excel_lock_timeout

    @staticmethod
    def _iso(value: Any) -> str:
        return value.isoformat() if isinstance(value, datetime) else (value or "")

    @classmethod
    def order_row(cls, order: Any) -> dict[str, Any]:
        """One flat row per order. Accepts ORM orders and OrderOut models."""
        items = "; ".join(
            f"{item.menu_item.name if item.menu_item else 'Unknown'} "
            f"({item.quantity}x ${item.unit_price})"
            for item in order.order_items
        )
        status = getattr(order.status, "value", order.status)
        return {
            "Order ID": order.id,
            "Status": status,
            "Total Amount": str(order.total_amount),
            "Table Number": order.qr_code.table_number if order.qr_code and order.qr_code.table_number else "",
            "Customer Language": order.customer_language,
            "Special Requests": order.special_requests or "",
            "Created At": cls._iso(order.created_at),
            "Updated At": cls._iso(order.updated_at),
            "Order Items": items,
        }

    @classmethod
    def rows(cls, orders: Iterable[Any]) -> list[dict[str, Any]]:
        return [cls.order_row(o) for o in orders]

    @classmethod
    def to_csv(cls, rows: list[dict[str, Any]]) -> str:
        """CSV text with a header line and every cell quoted."""
        df = pd.DataFrame(rows, columns=cls.COLUMNS)
        return df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")

    @staticmethod
    def csv_filename(restaurant_id: str, day: Optional[datetime] = None) -> str:
        day = day or datetime.now(timezone.utc)
        return f"orders-{restaurant_id}-{day.strftime('%Y-%m-%d')}.csv"

    def _ensure_data_dir(self) -> None:
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _load_or_create_df(self) -> pd.DataFrame:
        columns = [*self.COLUMNS, "Restaurant ID", "Exported At"]
        if self.workbook.exists():
            try:
                return pd.read_excel(self.workbook, engine="openpyxl", dtype=str)
            except Exception as e:
                logger.warning(f"Error reading {self.workbook}: {e}")
        return pd.DataFrame(columns=columns)

    def append_to_workbook(self, rows: list[dict[str, Any]], restaurant_id: str) -> dict[str, Any]:
        """
        Append rows to the Excel workbook while holding the file lock.

        Returns:
            dict with success, message, rows, exported_at
        """
        self._ensure_data_dir()

        result = {
            "success": False,
            "message": "",
            "rows": len(rows),
            "exported_at": None,
        }

        try:
            with FileLock(str(self.lock_file), timeout=self.lock_timeout):
                logger.debug(f"Lock acquired for export of {len(rows)} orders")

                export_time = datetime.now(timezone.utc).isoformat()
                new_rows = pd.DataFrame(
                    [{**row, "Restaurant ID": restaurant_id, "Exported At": export_time} for row in rows]
                )

                df = self._load_or_create_df()
                df = pd.concat([df, new_rows], ignore_index=True) if not new_rows.empty else df
                df.to_excel(str(self.workbook), index=False, engine="openpyxl")

                logger.info(f"Exported {len(rows)} orders of restaurant {restaurant_id} to {self.workbook}")

                result["success"] = True
                result["message"] = f"{len(rows)} orders exported"
                result["exported_at"] = export_time

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Lock timeout exporting orders of restaurant {restaurant_id}")

        return result

    def read_workbook(self) -> list[dict[str, Any]]:
        """All rows currently in the workbook."""
        if not self.workbook.exists():
            return []
        df = pd.read_excel(self.workbook, engine="openpyxl", dtype=str)
        return df.fillna("").to_dict("records")


class QRCodeExporter:
    """CSV export of a restaurant's QR codes with their order totals."""

    COLUMNS = [
        "QR Code ID",
        "Table Number",
        "QR Token",
        "Status",
        "Scan Count",
        "Last Scanned",
        "Created At",
        "Updated At",
        "Total Orders",
        "Total Revenue",
        "Popular Languages",
    ]

    @classmethod
    def qr_row(cls, entry: dict[str, Any]) -> dict[str, Any]:
        """One row per entry of ``qr_codes.qr_codes_for_export``."""
        qr = entry["qr_code"]
        languages = "; ".join(f"{lang['language']}({lang['count']})" for lang in entry["popular_languages"])
        return {
            "QR Code ID": qr.id,
            "Table Number": qr.table_number or "",
            "QR Token": qr.qr_token,
            "Status": "Active" if qr.is_active else "Inactive",
            "Scan Count": str(qr.scan_count or 0),
            "Last Scanned": OrderExporter._iso(qr.last_scanned),
            "Created At": OrderExporter._iso(qr.created_at),
            "Updated At": OrderExporter._iso(qr.updated_at),
            "Total Orders": str(entry["total_orders"]),
            "Total Revenue": str(entry["total_revenue"]),
            "Popular Languages": languages,
        }

    @classmethod
    def to_csv(cls, entries: Iterable[dict[str, Any]]) -> str:
        df = pd.DataFrame([cls.qr_row(e) for e in entries], columns=cls.COLUMNS)
        return df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")

    @staticmethod
    def csv_filename(restaurant_id: str, day: Optional[datetime] = None) -> str:
        day = day or datetime.now(timezone.utc)
        return f"qr-codes-{restaurant_id}-{day.strftime('%Y-%m-%d')}.csv"
