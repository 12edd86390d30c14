"""
Excel File Manager with Concurrency Control

Process-safe append of placed orders to a spreadsheet that back-office
staff open directly. Writers serialize on a sidecar lock file.

Version: 1.0.0
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
from filelock import FileLock, Timeout

from servesoft.core.config import get_settings

logger = logging.getLogger(__name__)


class ExcelManager:
    """Locked Excel export of placed orders."""

    ORDER_COLUMNS = [
        "order_id",
        "order_code",
        "restaurant_id",
        "order_type",
        "date_time",
        "customer_name",
        "customer_phone",
        "delivery_address",
        "table_id",
        "scheduled_for",
        "items",
        "notes",
        "subtotal",
        "service_fee",
        "delivery_fee",
        "total_amount",
        "order_status",
        "exported_at",
    ]

    @staticmethod
    def data_dir() -> Path:
        return Path(get_settings().data_directory)

    @classmethod
    def orders_file(cls) -> Path:
        return cls.data_dir() / get_settings().excel_filename

    @classmethod
    def orders_lock(cls) -> Path:
        return cls.orders_file().with_name(cls.orders_file().name + ".lock")

    @classmethod
    def _ensure_data_dir(cls) -> None:
        """Create data directory if needed."""
        data_dir = cls.data_dir()
        if not data_dir.exists():
            data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {data_dir}")

    @classmethod
    def _load_or_create_df(cls, file_path: Path, columns: list) -> pd.DataFrame:
        """Load existing file or create new DataFrame."""
        if file_path.exists():
            try:
                return pd.read_excel(file_path, engine="openpyxl")
            except Exception as e:
                logger.warning(f"Error reading {file_path}: {e}")
                return pd.DataFrame(columns=columns)
        return pd.DataFrame(columns=columns)

    @classmethod
    def export_order(cls, order_data: dict[str, Any]) -> dict[str, Any]:
        """Append one order row under the file lock."""
        cls._ensure_data_dir()

        order_id = order_data.get("order_id", 0)
        timeout = get_settings().excel_lock_timeout
        result = {
            "success": False,
            "message": "",
            "order_id": order_id,
            "exported_at": None,
        }

        try:
            lock = FileLock(str(cls.orders_lock()), timeout=timeout)

            with lock:
                logger.debug(f"Lock acquired for Order #{order_id}")

                df = cls._load_or_create_df(cls.orders_file(), cls.ORDER_COLUMNS)

                export_time = datetime.now().isoformat()
                new_row = {column: order_data.get(column) for column in cls.ORDER_COLUMNS}
                new_row["date_time"] = order_data.get("created_at") or export_time
                new_row["exported_at"] = export_time

                frame = pd.DataFrame([new_row], columns=cls.ORDER_COLUMNS)
                df = frame if df.empty else pd.concat([df, frame], ignore_index=True)
                df.to_excel(str(cls.orders_file()), index=False, engine="openpyxl")

                logger.info(f"Order #{order_id} exported to Excel")

                result["success"] = True
                result["message"] = f"Order #{order_id} exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for Order #{order_id}")

        except Timeout:
            result["message"] = f"Lock timeout ({timeout}s)"
            logger.error(f"Lock timeout for Order #{order_id}")

        return result

    @classmethod
    def get_all_orders(cls) -> list[dict[str, Any]]:
        """Get all exported orders."""
        cls._ensure_data_dir()

        if not cls.orders_file().exists():
            return []

        try:
            df = pd.read_excel(cls.orders_file(), engine="openpyxl")
            return df.to_dict("records")
        except Exception as e:
            logger.error(f"Error reading orders: {e}")
            return []

    @classmethod
    def clear_all(cls) -> bool:
        """Delete the export and its lock file."""
        try:
            for f in [cls.orders_file(), cls.orders_lock()]:
                if f.exists():
                    f.unlink()
            logger.info("Excel export cleared")
            return True
        except OSError as e:
            logger.error(f"Error clearing files: {e}")
            return False
