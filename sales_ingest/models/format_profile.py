from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path

from ..excel.ingestor import normalize_header

"""Import format profiles for marketplace order exports.

A profile fixes how many leading rows of a sheet are non-data, which sheet to
read, and which canonical headers map to which sales-line field.

- tiktok_order_sku_list: TikTok Shop "OrderSKUList" export. Row 1 = headers,
  Row 2 = Thai description row (skipped by position), Row 3+ = data.
- shopee_orders: Shopee Seller Center orders export (.xlsx or .csv). Thai
  headers, optional preamble rows above the header row (scanned).
"""

__all__ = [
    "FormatProfile",
    "UnknownFormatError",
    "TIKTOK_ORDER_SKU_LIST",
    "SHOPEE_ORDERS",
    "PROFILES",
    "get_profile",
    "detect_profile",
    "resolve_profile",
    "find_column",
]


class UnknownFormatError(Exception):
    """Raised when a configured format name has no profile."""


@dataclass(frozen=True)
class FormatProfile:
    """Static description of one spreadsheet export format."""
    name: str
    marketplace: str  # source_platform 値 (tiktok_shop / shopee)
    channel: str  # 表示用チャネル名
    header_row_count: int  # ヘッダ行を含む先頭の非データ行数
    required_headers: tuple[str, ...]
    columns: dict[str, tuple[str, ...]] = field(default_factory=dict)  # field -> 候補ヘッダ
    sheet_name: str | None = None  # None = ヘッダ行を持つ最初のシート
    header_scan_rows: int = 0  # >0 の場合、先頭 N 行からヘッダ行を探索

    def column(self, headers: Iterable[str], field_name: str) -> str | None:
        return find_column(headers, self.columns.get(field_name, ()))


def find_column(headers: Iterable[str], candidates: Iterable[str]) -> str | None:
    """Return the header matching the first candidate (case-insensitive)."""
    by_key = {}
    for h in headers:
        by_key.setdefault(normalize_header(h).casefold(), h)
    for candidate in candidates:
        found = by_key.get(normalize_header(candidate).casefold())
        if found:
            return found
    return None


TIKTOK_ORDER_SKU_LIST = FormatProfile(
    name="tiktok_order_sku_list",
    marketplace="tiktok_shop",
    channel="TikTok Shop",
    header_row_count=2,
    sheet_name="OrderSKUList",
    required_headers=("Order ID", "Created Time", "Product Name", "Quantity"),
    columns={
        "order_id": ("Order ID",),
        "created_at": ("Created Time",),
        "product_name": ("Product Name",),
        "qty": ("Quantity",),
        "line_amount": ("SKU Subtotal After Discount",),
        "status": ("Order Status",),
        "substatus": ("Order Substatus",),
        "paid_at": ("Paid Time",),
        "shipped_at": ("Shipped Time",),
        "delivered_at": ("Delivered Time",),
        "cancelled_at": ("Cancelled Time",),
        "cancel_reason": ("Cancel Reason",),
        "variation": ("Variation",),
        "tracking_no": ("Tracking ID",),
        "payment_method": ("Payment Method",),
        "seller_sku": ("Seller SKU",),
        "sku_id": ("SKU ID",),
    },
)

SHOPEE_ORDERS = FormatProfile(
    name="shopee_orders",
    marketplace="shopee",
    channel="Shopee",
    header_row_count=1,
    header_scan_rows=300,
    required_headers=("หมายเลขคำสั่งซื้อ", "สถานะการสั่งซื้อ", "จำนวน"),
    columns={
        "order_id": ("หมายเลขคำสั่งซื้อ",),
        "status": ("สถานะการสั่งซื้อ",),
        "created_at": ("วันที่ทำการสั่งซื้อ",),
        "paid_at": ("เวลาการชำระสินค้า",),
        "shipped_at": ("เวลาส่งสินค้า",),
        "completed_at": ("เวลาที่ทำการสั่งซื้อสำเร็จ",),
        "tracking_no": ("*หมายเลขติดตามพัสดุ", "หมายเลขติดตามพัสดุ"),
        "sku": ("เลขอ้างอิง SKU (SKU Reference No.)", "เลขอ้างอิง SKU", "SKU Reference No."),
        "parent_sku": ("เลขอ้างอิง Parent SKU", "Parent SKU"),
        "product_name": ("ชื่อสินค้า", "Product Name"),
        "qty": ("จำนวน",),
        "returned_qty": ("จำนวนที่ส่งคืน",),
        "line_amount": ("ราคาขายสุทธิ",),
        "order_total": ("จำนวนเงินทั้งหมด",),
        "commission": ("ค่าคอมมิชชั่น",),
        "transaction_fee": ("Transaction Fee", "ค่าธรรมเนียมการทำธุรกรรม"),
        "service_fee": ("ค่าบริการ",),
    },
)

PROFILES: dict[str, FormatProfile] = {
    p.name: p for p in (TIKTOK_ORDER_SKU_LIST, SHOPEE_ORDERS)
}


def get_profile(name: str) -> FormatProfile:
    try:
        return PROFILES[name]
    except KeyError as e:
        raise UnknownFormatError(f"unknown format: {name} (known: {sorted(PROFILES)})") from e


def detect_profile(sheet_names: Iterable[str]) -> FormatProfile:
    """Guess the export format from the workbook's sheet names."""
    if TIKTOK_ORDER_SKU_LIST.sheet_name in set(sheet_names):
        return TIKTOK_ORDER_SKU_LIST
    return SHOPEE_ORDERS


def resolve_profile(path: Path, sheet_names: Iterable[str], formats: dict[str, str] | None = None) -> FormatProfile:
    """Configured glob mapping wins; otherwise fall back to detection."""
    for pattern, name in (formats or {}).items():
        if fnmatch(path.name, pattern):
            return get_profile(name)
    return detect_profile(sheet_names)
