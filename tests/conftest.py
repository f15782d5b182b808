# Shared pytest fixtures
from __future__ import annotations
import tempfile
from pathlib import Path
from collections.abc import Callable

import pandas as pd
import pytest


@pytest.fixture(autouse=True)
def _no_live_db(monkeypatch):
    # テストでは実 DB へ接続しない
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    for var in ("DATABASE_URL", "PGDSN"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
timezone: Asia/Bangkok
table: sales_orders
created_by: 11111111-2222-3333-4444-555555555555
formats:
  "*OrderSKUList*.xlsx": tiktok_order_sku_list
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def write_xlsx(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    """Write raw rows (no header inference) to an xlsx file."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
    return path


@pytest.fixture()
def make_xlsx() -> Callable[[Path, dict[str, list[list[object]]]], Path]:
    return write_xlsx


TIKTOK_HEADERS = [
    "Order ID", "Order Status", "Order Substatus", "SKU ID", "Seller SKU",
    "Product Name", "Variation", "Quantity", "SKU Subtotal After Discount",
    "Created Time", "Paid Time", "Tracking ID",
]
TIKTOK_DESCRIPTION = [
    "หมายเลขคำสั่งซื้อ", "สถานะ", "สถานะย่อย", "รหัส SKU", "SKU ผู้ขาย",
    "ชื่อสินค้า", "ตัวเลือก", "จำนวน", "ยอดหลังส่วนลด",
    "เวลาสร้าง", "เวลาชำระ", "เลขพัสดุ",
]


@pytest.fixture()
def tiktok_rows() -> list[list[object]]:
    return [
        TIKTOK_HEADERS,
        TIKTOK_DESCRIPTION,
        ["576000000000000001", "Completed", "Delivered", "1729000001", "NEWONN001",
         "Serum 30ml", "Default", 2, 398, "01/01/2026 10:15:00", "01/01/2026 10:16:00", "TH0001"],
        ["576000000000000001", "Completed", "Delivered", "1729000002", "NEWONN002",
         "Cream 50g", "Default", 1, 250, "01/01/2026 10:15:00", "01/01/2026 10:16:00", "TH0001"],
        ["576000000000000002", "Canceled", "Cancelled by buyer", "1729000001", "NEWONN001",
         "Serum 30ml", "Default", 1, 199, "02/01/2026 08:00:00", None, None],
    ]


SHOPEE_HEADERS = [
    "หมายเลขคำสั่งซื้อ", "สถานะการสั่งซื้อ", "วันที่ทำการสั่งซื้อ", "เวลาการชำระสินค้า",
    "เลขอ้างอิง SKU (SKU Reference No.)", "ชื่อสินค้า", "จำนวน", "ราคาขายสุทธิ",
    "จำนวนเงินทั้งหมด",
]


@pytest.fixture()
def shopee_rows() -> list[list[object]]:
    return [
        ["รายงานคำสั่งซื้อ", None],
        [None],
        SHOPEE_HEADERS,
        ["2601010001ABC", "สำเร็จแล้ว", "2026-01-01 09:00", "2026-01-01 09:05", "SKU-A", "Serum", 1, 190, 390],
        ["2601010001ABC", "สำเร็จแล้ว", "2026-01-01 09:00", "2026-01-01 09:05", "SKU-B", "Cream", 1, 200, 390],
        ["2601020002XYZ", "ยกเลิกแล้ว", "2026-01-02 12:30", None, "SKU-A", "Serum", 2, 380, 380],
        ["ยอดรวม", None, None, None, None, None, 4, 770, None],
    ]


@pytest.fixture(autouse=True)
def _fresh_logging():
    # setup_logging はキャッシュされるため、capsys の stdout を拾えるようテスト毎に戻す
    from sales_ingest.logging.init import reset_logging

    reset_logging()
    yield
    reset_logging()
