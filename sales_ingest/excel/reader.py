from __future__ import annotations

import csv
import math
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pandas as pd

"""Spreadsheet reader: files -> raw row-major grids.

Sheets are always parsed with header=None so that no row is promoted to
column labels here. Header handling belongs to excel.ingestor, which needs
the untouched grid to skip description rows by position.
"""

__all__ = [
    "Grid",
    "UnsupportedFileError",
    "EXCEL_SUFFIXES",
    "CSV_SUFFIXES",
    "read_workbook_grids",
    "read_csv_grid",
    "read_grids",
    "dataframe_to_grid",
]

Grid = list[list[Any]]

EXCEL_SUFFIXES = {".xlsx", ".xls"}
CSV_SUFFIXES = {".csv"}

# CSV は 1 シート扱い。シート名の代わりに使うラベル
CSV_SHEET_NAME = "<csv>"


class UnsupportedFileError(Exception):
    """Raised for file types that are neither Excel nor CSV."""


def _clean_cell(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT:
        return None
    return value


def dataframe_to_grid(df: pd.DataFrame) -> Grid:
    """Convert a header-less DataFrame into a list of rows with NaN -> None."""
    return [[_clean_cell(v) for v in row] for row in df.itertuples(index=False, name=None)]


def read_workbook_grids(
    path: Path, target_sheets: Iterable[str] | None = None, keep_na_strings: list[str] | None = None
) -> dict[str, Grid]:
    """Read an Excel workbook returning raw grids keyed by sheet name.

    Parameters
    ----------
    path: Excel ファイルパス
    target_sheets: 対象シート制限 (None なら全シート)
    keep_na_strings: Pandasの既定NaN変換から除外する文字列リスト (例: ['NA'])
    """
    import pandas._libs.parsers as parsers

    if keep_na_strings:
        na_values = list(parsers.STR_NA_VALUES - set(keep_na_strings))
        keep_default_na = False
    else:
        na_values = None
        keep_default_na = True

    wanted = set(target_sheets) if target_sheets is not None else None
    grids: dict[str, Grid] = {}
    with pd.ExcelFile(path) as xls:
        for name in xls.sheet_names:
            if wanted is not None and str(name) not in wanted:
                continue
            df = xls.parse(name, header=None, keep_default_na=keep_default_na, na_values=na_values)
            grids[str(name)] = dataframe_to_grid(df)
    return grids


def read_csv_grid(path: Path) -> Grid:
    """Read a CSV export (UTF-8, BOM optional). Ragged rows are kept as-is."""
    text = path.read_bytes().decode("utf-8-sig")
    grid: Grid = []
    for row in csv.reader(text.splitlines()):
        grid.append([cell if cell != "" else None for cell in row])
    return grid


def read_grids(
    path: Path, target_sheets: Iterable[str] | None = None, keep_na_strings: list[str] | None = None
) -> dict[str, Grid]:
    suffix = path.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        return read_workbook_grids(path, target_sheets=target_sheets, keep_na_strings=keep_na_strings)
    if suffix in CSV_SUFFIXES:
        return {CSV_SHEET_NAME: read_csv_grid(path)}
    raise UnsupportedFileError(f"unsupported file type: {path.name}")
