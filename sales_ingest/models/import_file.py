from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from .sales_line import ImportSummary

"""ImportFile domain model and FileStatus enum.

ImportFile is the processing context for one export file, tracking its
status from discovery through completion.
"""

__all__ = [
    "FileStatus",
    "ImportFile",
]


class FileStatus(Enum):
    """State transitions: pending → processing → (success | failed)"""
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class ImportFile:
    path: Path
    name: str
    format_name: str | None = None  # 解決された FormatProfile 名
    sheet: str | None = None  # 読み込んだシート名
    start_time: datetime | None = None  # UTC
    end_time: datetime | None = None  # UTC
    status: FileStatus = FileStatus.PENDING
    parsed_lines: int = 0  # SalesLine 件数
    inserted_rows: int = 0  # 実挿入件数 (mock mode では parsed_lines と同じ)
    row_errors: int = 0  # severity=error の行数
    summary: ImportSummary = field(default_factory=ImportSummary)
    error: str | None = None  # 失敗理由
