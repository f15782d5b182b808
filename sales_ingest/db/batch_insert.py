from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import Json, execute_values

from ..models.sales_line import SalesLine

"""Batched INSERT of sales lines via psycopg2.extras.execute_values.

Re-imports are idempotent: rows carry order_line_hash and the statement uses
ON CONFLICT ... DO NOTHING against the (created_by, order_line_hash) partial
unique index. RETURNING 1 is fetched so the inserted count excludes
duplicates.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "SALES_ORDER_COLUMNS",
    "SALES_ORDER_CONFLICT",
    "batch_insert",
    "sales_line_rows",
]

SALES_ORDER_COLUMNS = (
    "order_id",
    "marketplace",
    "channel",
    "product_name",
    "sku",
    "quantity",
    "unit_price",
    "total_amount",
    "order_date",
    "status",
    "source",
    "source_platform",
    "external_order_id",
    "platform_status",
    "platform_substatus",
    "payment_status",
    "paid_at",
    "shipped_at",
    "delivered_at",
    "seller_sku",
    "sku_id",
    "tracking_number",
    "order_amount",
    "metadata",
    "created_by",
    "order_line_hash",
)

SALES_ORDER_CONFLICT = "(created_by, order_line_hash) WHERE order_line_hash IS NOT NULL"


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    batch_size: int  # Number of rows in this batch
    elapsed_seconds: float  # Time spent on execute_values call
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int  # 重複スキップ後の実挿入行数
    attempted_rows: int = 0

    @property
    def duplicate_rows(self) -> int:
        return self.attempted_rows - self.inserted_rows


def sales_line_rows(lines: Iterable[SalesLine], created_by: str | None = None) -> list[tuple[Any, ...]]:
    """Row tuples in SALES_ORDER_COLUMNS order."""
    rows = []
    for line in lines:
        rows.append((
            line.order_id,
            line.marketplace,
            line.channel,
            line.product_name,
            line.sku,
            line.quantity,
            round(line.unit_price, 2),
            round(line.total_amount, 2),
            line.order_date,
            line.status,
            "imported",
            line.marketplace,
            line.external_order_id,
            line.platform_status,
            line.platform_substatus,
            line.payment_status,
            line.paid_at,
            line.shipped_at,
            line.delivered_at,
            line.seller_sku,
            line.sku_id,
            line.tracking_number,
            line.order_amount,
            Json(line.metadata),
            created_by,
            line.order_line_hash(created_by),
        ))
    return rows


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_target: str | None = None,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: 対象テーブル名 (config schema でサニタイズ済み)
    columns: 挿入列
    rows: 行シーケンス
    conflict_target: 指定時 ON CONFLICT <target> DO NOTHING を付与
    page_size: execute_values の page_size (性能調整)
    metrics_callback: receives one BatchMetrics per call. Not invoked when
        `rows` is empty (the function returns early).
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, attempted_rows=0)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"
    if conflict_target:
        sql += f" ON CONFLICT {conflict_target} DO NOTHING"
    sql += " RETURNING 1"

    start_time = time.time()
    try:
        returned = execute_values(cursor, sql, rows_list, page_size=page_size, fetch=True)
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(BatchMetrics(
                batch_size=len(rows_list),
                elapsed_seconds=end_time - start_time,
                start_time=start_time,
                end_time=end_time,
            ))

    inserted = len(returned) if returned is not None else len(rows_list)
    return InsertResult(inserted_rows=inserted, attempted_rows=len(rows_list))
