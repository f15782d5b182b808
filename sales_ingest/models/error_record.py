from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .sales_line import RowError

"""ErrorRecord model for the JSON Lines error log.

Row-level mapping errors and file-level failures (row=-1) share one fixed
schema, see sales_ingest/schemas/error_log_schema.json.
"""

__all__ = [
    "ErrorRecord",
    "FILE_LEVEL_ROW",
    "FILE_LEVEL_SHEET",
]

FILE_LEVEL_ROW = -1
FILE_LEVEL_SHEET = "<FILE_LEVEL>"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: source file name
        sheet: sheet name within the file ('<csv>' for CSV exports)
        row: 1-based spreadsheet row number, -1 when not row-specific
        error_type: classification in UPPER_SNAKE_CASE
        message: human-readable description
    """
    timestamp: str  # ISO8601 UTC
    file: str
    sheet: str
    row: int
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    @staticmethod
    def from_row_error(file: str, sheet: str, error: RowError) -> ErrorRecord:
        """Build a record from a mapping RowError (ROW_ERROR / ROW_WARNING)."""
        message = f"{error.field}: {error.message}" if error.field else error.message
        return ErrorRecord.create(
            file=file,
            sheet=sheet,
            row=error.row,
            error_type=f"ROW_{error.severity.upper()}",
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
