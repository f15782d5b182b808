from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Aggregated results of one import run (feeds the SUMMARY line)."""


@dataclass(frozen=True)
class FileStat:
    """Per-file processing statistics."""
    file_name: str
    status: str  # success/failed
    format_name: str | None
    parsed_lines: int
    inserted_rows: int
    row_errors: int
    elapsed_seconds: float
    error: str | None = None


@dataclass(frozen=True)
class ProcessingResult:
    success_files: int
    failed_files: int
    total_lines: int  # 全ファイルの SalesLine 件数
    total_inserted_rows: int
    row_errors: int
    total_revenue: float
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    file_stats: list[FileStat] | None = None

    @property
    def total_files(self) -> int:
        return self.success_files + self.failed_files
