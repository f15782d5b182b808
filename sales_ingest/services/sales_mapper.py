from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime, timedelta, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

import pandas as pd

from ..excel.ingestor import IngestResult
from ..models.format_profile import FormatProfile
from ..models.sales_line import ImportSummary, MappingResult, RowError, SalesLine

"""Record -> SalesLine mapping for marketplace order exports.

Input is the ingestor output (canonical headers + dict records); this layer
owns every content rule: which rows are real orders, how dates/amounts are
parsed, and which statuses count toward revenue.
"""

__all__ = [
    "DEFAULT_TIMEZONE",
    "parse_excel_date",
    "parse_number",
    "to_text",
    "normalize_tiktok_status",
    "normalize_shopee_status",
    "map_records",
]

DEFAULT_TIMEZONE = "Asia/Bangkok"

EXCEL_EPOCH = datetime(1899, 12, 30)

DATE_FORMATS = (
    "%d/%m/%Y %H:%M:%S",  # TikTok
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%Y/%m/%d",
)

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_TIKTOK_ORDER_ID = re.compile(r"^[0-9A-Za-z\-_]+$")


def _localize(value: datetime, tz: tzinfo) -> datetime:
    # Excel / 文字列の日時はローカル時刻 (Bangkok) として扱う
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def parse_excel_date(value: Any, tz: tzinfo | None = None) -> datetime | None:
    """Parse an Excel cell into an aware datetime, or None.

    Accepts Excel serial numbers, datetime / pandas Timestamp, and the string
    formats found in TikTok and Shopee exports.
    """
    tz = tz or ZoneInfo(DEFAULT_TIMEZONE)
    if value is None or value == "" or value == "-":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        return _localize(value.to_pydatetime(), tz)
    if isinstance(value, datetime):
        return _localize(value, tz)
    if isinstance(value, (int, float)):
        if value != value or value <= 0:  # NaN
            return None
        try:
            return _localize(EXCEL_EPOCH + timedelta(days=float(value)), tz)
        except (OverflowError, ValueError):
            # datetime の範囲外 (例: 99999999)
            return None
    if isinstance(value, str):
        trimmed = value.strip()
        for fmt in DATE_FORMATS:
            try:
                return _localize(datetime.strptime(trimmed, fmt), tz)
            except ValueError:
                continue
    return None


def parse_number(value: Any) -> float:
    """Lenient numeric parse: '฿1,234.50' -> 1234.5, garbage -> 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if value != value else float(value)
    cleaned = _NON_NUMERIC.sub("", str(value))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def to_text(value: Any) -> str:
    """Cell -> stripped text. Integral floats lose their '.0' (Excel IDs)."""
    if value is None:
        return ""
    if isinstance(value, float):
        if value != value:
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def normalize_tiktok_status(raw: str | None) -> str:
    if not raw:
        return "pending"
    status = raw.lower()
    if "delivered" in status or "completed" in status:
        return "completed"
    if "cancel" in status or "return" in status:
        return "cancelled"
    return "pending"


def normalize_shopee_status(raw: str | None) -> str:
    if not raw:
        return "pending"
    status = raw.lower()
    if "ยกเลิก" in status or "cancel" in status:
        return "cancelled"
    if any(k in status for k in ("สำเร็จ", "ส่งแล้ว", "deliver", "complete")):
        return "completed"
    return "pending"


class _Row:
    """Field accessor over one record using the profile's column map."""

    def __init__(self, record: dict[str, Any], colmap: dict[str, str | None]) -> None:
        self.record = record
        self.colmap = colmap

    def raw(self, field_name: str) -> Any:
        col = self.colmap.get(field_name)
        return self.record.get(col) if col else None

    def text(self, field_name: str) -> str:
        return to_text(self.raw(field_name))

    def optional(self, field_name: str) -> str | None:
        return self.text(field_name) or None


def _map_tiktok_row(row: _Row, row_number: int, profile: FormatProfile, tz: tzinfo) -> SalesLine | RowError | None:
    order_id = row.text("order_id")
    # 空行 / 集計行など Order ID らしくない行は黙ってスキップ
    if len(order_id) < 10 or not _TIKTOK_ORDER_ID.match(order_id):
        return None

    created = parse_excel_date(row.raw("created_at"), tz)
    if created is None:
        return RowError(row=row_number, field="Created Time", message="invalid date")

    product_name = row.text("product_name")
    if not product_name:
        return RowError(row=row_number, field="Product Name", message="missing product name")

    qty = parse_number(row.raw("qty"))
    if qty <= 0:
        return RowError(row=row_number, field="Quantity", message="quantity must be greater than 0")

    line_amount = parse_number(row.raw("line_amount"))
    platform_status = row.optional("status")
    paid_at = parse_excel_date(row.raw("paid_at"), tz)
    cancelled_at = parse_excel_date(row.raw("cancelled_at"), tz)

    return SalesLine(
        order_id=order_id,
        marketplace=profile.marketplace,
        channel=profile.channel,
        product_name=product_name,
        quantity=qty,
        unit_price=line_amount / qty,
        total_amount=line_amount,
        order_date=created,
        status=normalize_tiktok_status(platform_status),
        row_number=row_number,
        sku=row.optional("sku_id"),
        payment_status="paid" if paid_at else "unpaid",
        platform_status=platform_status,
        platform_substatus=row.optional("substatus"),
        paid_at=paid_at,
        shipped_at=parse_excel_date(row.raw("shipped_at"), tz),
        delivered_at=parse_excel_date(row.raw("delivered_at"), tz),
        seller_sku=row.optional("seller_sku"),
        sku_id=row.optional("sku_id"),
        tracking_number=row.optional("tracking_no"),
        metadata={
            "source_report": "OrderSKUList",
            "variation": row.optional("variation"),
            "cancelled_time": cancelled_at.isoformat() if cancelled_at else None,
            "cancel_reason": row.optional("cancel_reason"),
            "tracking_id": row.optional("tracking_no"),
            "payment_method": row.optional("payment_method"),
        },
    )


def _map_shopee_row(
    row: _Row, row_number: int, profile: FormatProfile, tz: tzinfo, warnings: list[RowError]
) -> SalesLine | None:
    order_id = row.text("order_id")
    if not order_id or order_id == "-":
        return None
    if "ยอดรวม" in order_id or "Total" in order_id or order_id.startswith("#"):
        return None

    status_raw = row.text("status")
    order_date = parse_excel_date(row.raw("created_at"), tz)
    if order_date is None:
        warnings.append(RowError(row=row_number, field="วันที่ทำการสั่งซื้อ", message="invalid date", severity="warning"))
        order_date = datetime.now(tz)

    sku = row.text("sku")
    qty = parse_number(row.raw("qty"))
    line_amount = parse_number(row.raw("line_amount"))
    order_total = parse_number(row.raw("order_total"))
    paid_at = parse_excel_date(row.raw("paid_at"), tz)

    return SalesLine(
        order_id=order_id,
        marketplace=profile.marketplace,
        channel=profile.channel,
        product_name=row.text("product_name") or sku or order_id,
        quantity=qty,
        unit_price=line_amount / qty if qty > 0 else line_amount,
        total_amount=line_amount,
        order_date=order_date,
        status=normalize_shopee_status(status_raw),
        row_number=row_number,
        sku=sku or None,
        payment_status="paid" if paid_at else "unpaid",
        platform_status=status_raw or None,
        paid_at=paid_at,
        shipped_at=parse_excel_date(row.raw("shipped_at"), tz),
        delivered_at=parse_excel_date(row.raw("completed_at"), tz),
        seller_sku=sku or None,
        tracking_number=row.optional("tracking_no"),
        order_amount=order_total or None,
        metadata={
            "source_report": "ShopeeOrders",
            "parent_sku": row.optional("parent_sku"),
            "returned_qty": parse_number(row.raw("returned_qty")) or None,
            "commission": parse_number(row.raw("commission")) or None,
            "transaction_fee": parse_number(row.raw("transaction_fee")) or None,
            "service_fee": parse_number(row.raw("service_fee")) or None,
            "status_raw": status_raw or None,
        },
    )


# 売上計上対象の判定 (マーケットプレイスごと)
_REVENUE_RULES: dict[str, Callable[[SalesLine], bool]] = {
    "tiktok_shop": lambda line: line.status == "completed",
    "shopee": lambda line: line.status != "cancelled",
}


def _counts_as_revenue(line: SalesLine) -> bool:
    rule = _REVENUE_RULES.get(line.marketplace)
    return rule(line) if rule else line.status == "completed"


def _summarize(lines: list[SalesLine]) -> ImportSummary:
    if not lines:
        return ImportSummary()
    revenue = 0.0
    order_totals: dict[str, float] = {}
    for line in lines:
        if _counts_as_revenue(line):
            revenue += line.total_amount
        if line.order_amount:
            order_totals[line.order_id] = max(order_totals.get(line.order_id, 0.0), line.order_amount)
    dates = [line.order_date.date() for line in lines]
    return ImportSummary(
        total_revenue=revenue,
        gmv=sum(order_totals.values()),
        unique_orders=len({line.order_id for line in lines}),
        line_count=len(lines),
        date_range=(min(dates), max(dates)),
    )


def map_records(profile: FormatProfile, result: IngestResult, timezone: str = DEFAULT_TIMEZONE) -> MappingResult:
    """Map ingested records to SalesLine values according to the profile."""
    tz = ZoneInfo(timezone)
    colmap = {name: profile.column(result.headers, name) for name in profile.columns}
    lines: list[SalesLine] = []
    errors: list[RowError] = []

    row_numbers = result.row_numbers or list(range(1, len(result.records) + 1))
    for record, row_number in zip(result.records, row_numbers, strict=True):
        row = _Row(record, colmap)
        if profile.marketplace == "shopee":
            mapped = _map_shopee_row(row, row_number, profile, tz, errors)
        else:
            mapped = _map_tiktok_row(row, row_number, profile, tz)
        if mapped is None:
            continue
        if isinstance(mapped, RowError):
            errors.append(mapped)
            continue
        lines.append(mapped)

    return MappingResult(lines=lines, errors=errors, summary=_summarize(lines))
