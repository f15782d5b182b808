from __future__ import annotations

import math

import pytest

from sales_ingest.excel.ingestor import (
    EmptySheetError,
    MissingColumnsError,
    find_header_row,
    ingest,
    normalize_header,
    require_columns,
)


@pytest.mark.parametrize("raw", ["Order ID", " Order  ID ", "Order   ID", "\tOrder ID\n"])
def test_normalize_header_collapses_whitespace(raw):
    assert normalize_header(raw) == "Order ID"


@pytest.mark.parametrize("raw", [None, "", "   ", 12345, 1.5, math.nan, True])
def test_normalize_header_non_string_or_blank_is_empty(raw):
    assert normalize_header(raw) == ""


@pytest.mark.parametrize("raw", ["  a  b ", "Order ID", "", None, "x\n\ny"])
def test_normalize_header_idempotent(raw):
    once = normalize_header(raw)
    assert normalize_header(once) == once


def test_ingest_two_row_header_example():
    sheet = [
        ["Order ID", "Created Time"],
        ["รหัส", "เวลา"],
        [12345, "2026-01-01"],
        [12346, "2026-01-02"],
    ]
    result = ingest(sheet, 2)
    assert result.headers == ["Order ID", "Created Time"]
    assert result.records == [
        {"Order ID": 12345, "Created Time": "2026-01-01"},
        {"Order ID": 12346, "Created Time": "2026-01-02"},
    ]
    # 1行目=ヘッダ, 2行目=説明 → データは 3 行目から
    assert result.row_numbers == [3, 4]


def test_ingest_description_row_dropped_even_when_it_looks_like_data():
    sheet = [["Qty"], [999], [1], [2]]
    result = ingest(sheet, 2)
    assert result.records == [{"Qty": 1}, {"Qty": 2}]


@pytest.mark.parametrize("total_rows,k", [(1, 1), (3, 1), (3, 2), (5, 3), (2, 4)])
def test_ingest_drops_exactly_the_leading_rows(total_rows, k):
    sheet = [["A"]] + [[i] for i in range(1, total_rows)]
    result = ingest(sheet, k)
    assert len(result.records) == max(0, total_rows - k)
    assert [r["A"] for r in result.records] == list(range(k, total_rows))


def test_ingest_empty_sheet_raises():
    with pytest.raises(EmptySheetError):
        ingest([], 1)


def test_ingest_header_only_returns_no_records():
    result = ingest([["Order ID"], ["desc"]], 2)
    assert result.headers == ["Order ID"]
    assert result.records == []


def test_ingest_rejects_header_row_count_below_one():
    with pytest.raises(ValueError):
        ingest([["A"]], 0)


def test_ingest_duplicate_header_last_value_wins():
    result = ingest([["Qty", "Qty"], [1, 2]], 1)
    assert result.records == [{"Qty": 2}]


def test_ingest_duplicate_after_normalization_last_value_wins():
    result = ingest([["Qty", " Qty "], [1, 2]], 1)
    assert result.headers == ["Qty", "Qty"]
    assert result.records == [{"Qty": 2}]


def test_ingest_empty_header_never_becomes_key():
    result = ingest([["A", None, "  ", "B"], [1, 2, 3, 4]], 1)
    assert result.records == [{"A": 1, "B": 4}]
    for record in result.records:
        assert "" not in record


def test_ingest_short_rows_padded_with_none():
    result = ingest([["A", "B", "C"], [1], [1, 2, 3, 4]], 1)
    assert result.records[0] == {"A": 1, "B": None, "C": None}
    # ヘッダより長い行の余剰セルは無視
    assert result.records[1] == {"A": 1, "B": 2, "C": 3}


def test_ingest_preserves_row_order_and_does_not_mutate_input():
    sheet = [["A"], ["x"], ["y"], ["z"]]
    snapshot = [list(r) for r in sheet]
    result = ingest(sheet, 1)
    assert [r["A"] for r in result.records] == ["x", "y", "z"]
    assert sheet == snapshot


def test_ingest_row_offset_shifts_row_numbers():
    result = ingest([["A"], [1]], 1, row_offset=2)
    assert result.row_numbers == [4]


def test_find_header_row_skips_preamble():
    grid = [["Report"], [], ["  Order  ID", "Status", "Qty"], [1, "ok", 2]]
    assert find_header_row(grid, ["Order ID", "Qty"]) == 2


def test_find_header_row_not_found_and_scan_limit():
    grid = [["x"]] * 5 + [["Order ID"]]
    assert find_header_row(grid, ["Order ID"], max_scan_rows=5) == -1
    assert find_header_row(grid, ["Order ID"], max_scan_rows=6) == 5


def test_require_columns_reports_missing_in_order():
    require_columns(["Order ID", "Qty"], ["Order ID"])
    with pytest.raises(MissingColumnsError) as e:
        require_columns(["Order ID"], ["Created Time", "Order ID", "Quantity"])
    assert e.value.missing == ["Created Time", "Quantity"]
