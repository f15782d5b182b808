from __future__ import annotations

from pathlib import Path

import pytest

from sales_ingest.models.format_profile import (
    SHOPEE_ORDERS,
    TIKTOK_ORDER_SKU_LIST,
    UnknownFormatError,
    detect_profile,
    find_column,
    get_profile,
    resolve_profile,
)


def test_builtin_profiles_header_row_counts():
    assert TIKTOK_ORDER_SKU_LIST.header_row_count == 2
    assert TIKTOK_ORDER_SKU_LIST.sheet_name == "OrderSKUList"
    assert SHOPEE_ORDERS.header_row_count == 1
    assert SHOPEE_ORDERS.header_scan_rows == 300


def test_get_profile_unknown():
    assert get_profile("shopee_orders") is SHOPEE_ORDERS
    with pytest.raises(UnknownFormatError):
        get_profile("lazada_orders")


def test_detect_profile_by_sheet_name():
    assert detect_profile(["OrderSKUList"]) is TIKTOK_ORDER_SKU_LIST
    assert detect_profile(["orders"]) is SHOPEE_ORDERS
    assert detect_profile(["<csv>"]) is SHOPEE_ORDERS


def test_resolve_profile_prefers_configured_glob():
    formats = {"Order.all*": "shopee_orders"}
    # シート名は TikTok だが glob 指定が優先される
    assert resolve_profile(Path("Order.all.20260101.xlsx"), ["OrderSKUList"], formats) is SHOPEE_ORDERS
    assert resolve_profile(Path("tiktok.xlsx"), ["OrderSKUList"], formats) is TIKTOK_ORDER_SKU_LIST


def test_find_column_case_insensitive_and_alias_order():
    headers = ["order id", "เลขอ้างอิง SKU", "SKU Reference No."]
    assert find_column(headers, ["Order ID"]) == "order id"
    assert SHOPEE_ORDERS.column(headers, "sku") == "เลขอ้างอิง SKU"
    assert find_column(headers, ["Missing"]) is None
