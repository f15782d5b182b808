from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

"""SalesLine and mapping result models.

One SalesLine per SKU line of a marketplace order export. An order with
several SKUs appears as several lines sharing external_order_id.
"""

__all__ = [
    "SalesLine",
    "RowError",
    "ImportSummary",
    "MappingResult",
]


def _format_quantity(qty: float) -> str:
    return str(int(qty)) if float(qty).is_integer() else str(qty)


@dataclass(frozen=True)
class SalesLine:
    """A single normalized order line ready for the sales_orders table."""
    order_id: str
    marketplace: str
    channel: str
    product_name: str
    quantity: float
    unit_price: float
    total_amount: float
    order_date: datetime
    status: str  # pending / completed / cancelled
    row_number: int  # 元ファイルの行番号 (1 始まり)
    sku: str | None = None
    payment_status: str = "unpaid"
    platform_status: str | None = None
    platform_substatus: str | None = None
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    seller_sku: str | None = None
    sku_id: str | None = None
    tracking_number: str | None = None
    order_amount: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def external_order_id(self) -> str:
        return self.order_id

    def order_line_hash(self, created_by: str | None = None) -> str:
        """Deterministic dedupe key for idempotent re-imports.

        SHA256(created_by|source_platform|external_order_id|product_name|quantity|total_amount)
        """
        parts = [
            created_by or "",
            self.marketplace,
            self.external_order_id,
            self.product_name,
            _format_quantity(self.quantity),
            f"{self.total_amount:.2f}",
        ]
        return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RowError:
    row: int  # 行番号。ファイル単位なら -1
    message: str
    field: str | None = None
    severity: str = "error"  # error / warning


@dataclass(frozen=True)
class ImportSummary:
    total_revenue: float = 0.0
    gmv: float = 0.0  # 注文ごとの MAX(order_amount) 合計
    unique_orders: int = 0
    line_count: int = 0
    date_range: tuple[date, date] | None = None


@dataclass(frozen=True)
class MappingResult:
    lines: list[SalesLine]
    errors: list[RowError]
    summary: ImportSummary

    @property
    def has_errors(self) -> bool:
        return any(e.severity == "error" for e in self.errors)
