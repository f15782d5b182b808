"""Spreadsheet reading and positional header ingestion."""

from .ingestor import (
    EmptySheetError,
    IngestResult,
    MissingColumnsError,
    find_header_row,
    ingest,
    normalize_header,
    require_columns,
)
from .reader import UnsupportedFileError, read_grids

__all__ = [
    "EmptySheetError",
    "IngestResult",
    "MissingColumnsError",
    "UnsupportedFileError",
    "find_header_row",
    "ingest",
    "normalize_header",
    "read_grids",
    "require_columns",
]
