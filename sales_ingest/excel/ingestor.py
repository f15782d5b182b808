from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

"""Positional spreadsheet ingestion.

Row 0 of a raw grid is the structural header row. Rows [1, header_row_count)
are description rows (e.g. the Thai annotation row under TikTok OrderSKUList
headers) and are skipped by position only, never by content. Every remaining
row is zipped against the canonical headers into a plain dict record.
"""

__all__ = [
    "EmptySheetError",
    "MissingColumnsError",
    "IngestResult",
    "normalize_header",
    "ingest",
    "find_header_row",
    "require_columns",
]

_WHITESPACE_RUN = re.compile(r"\s+")


class EmptySheetError(Exception):
    """Raised when the sheet has no rows at all."""


class MissingColumnsError(Exception):
    """Raised when required canonical headers are absent."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"missing columns: {missing}")


@dataclass(frozen=True)
class IngestResult:
    headers: list[str]
    records: list[dict[str, Any]]
    # 1-based spreadsheet row number of each record (parallel to records)
    row_numbers: list[int] = field(default_factory=list)


def normalize_header(raw: Any) -> str:
    """Return the canonical form of a header cell.

    Anything that is not a string (None, NaN, numbers) is treated as empty.

    >>> normalize_header("  Order   ID ")
    'Order ID'
    >>> normalize_header(None)
    ''
    """
    if not isinstance(raw, str):
        return ""
    return _WHITESPACE_RUN.sub(" ", raw).strip()


def ingest(sheet: Sequence[Sequence[Any]], header_row_count: int, *, row_offset: int = 0) -> IngestResult:
    """Convert a raw row-major grid into canonical headers and records.

    Parameters
    ----------
    sheet: 行リスト (各行はセル値のリスト)。読み取り専用として扱う
    header_row_count: 先頭の非データ行数 (1 = ヘッダのみ, 2 = ヘッダ + 説明行)
    row_offset: grid の先頭行がファイル上で何行目から始まるか (0 = 1行目)

    Raises
    ------
    EmptySheetError: sheet に行が一つもない場合
    ValueError: header_row_count < 1
    """
    if header_row_count < 1:
        raise ValueError(f"header_row_count must be >= 1, got {header_row_count}")
    if len(sheet) == 0:
        raise EmptySheetError("sheet has no rows")

    headers = [normalize_header(cell) for cell in sheet[0]]

    records: list[dict[str, Any]] = []
    row_numbers: list[int] = []
    for index in range(header_row_count, len(sheet)):
        row = sheet[index]
        record: dict[str, Any] = {}
        for position, header in enumerate(headers):
            if not header:
                continue
            # 短い行は None で埋める (位置ずれ防止)。重複ヘッダは後勝ち
            record[header] = row[position] if position < len(row) else None
        records.append(record)
        row_numbers.append(row_offset + index + 1)

    return IngestResult(headers=headers, records=records, row_numbers=row_numbers)


def find_header_row(
    grid: Sequence[Sequence[Any]], required_headers: Iterable[str], max_scan_rows: int = 300
) -> int:
    """Index of the first row containing every required header, or -1."""
    required = {normalize_header(h) for h in required_headers}
    for index, row in enumerate(grid[:max_scan_rows]):
        cells = {normalize_header(c) for c in row}
        if required <= cells:
            return index
    return -1


def require_columns(headers: Iterable[str], required: Iterable[str]) -> None:
    present = set(headers)
    missing = [h for h in required if h not in present]
    if missing:
        raise MissingColumnsError(missing)
