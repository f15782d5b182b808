from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from ..config.loader import ImportConfig
from ..db.batch_insert import (
    SALES_ORDER_COLUMNS,
    SALES_ORDER_CONFLICT,
    batch_insert,
    sales_line_rows,
)
from ..excel.ingestor import (
    EmptySheetError,
    IngestResult,
    MissingColumnsError,
    find_header_row,
    ingest,
    require_columns,
)
from ..excel.reader import CSV_SUFFIXES, EXCEL_SUFFIXES, Grid, UnsupportedFileError, read_grids
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import FILE_LEVEL_ROW, FILE_LEVEL_SHEET, ErrorRecord
from ..models.format_profile import FormatProfile, UnknownFormatError, resolve_profile
from ..models.import_file import FileStatus, ImportFile
from ..models.processing_result import FileStat, ProcessingResult
from .progress import ProgressTracker
from .sales_mapper import map_records

"""Import run orchestration.

For each export file in the source directory:
read grids -> resolve format profile -> pick sheet / header row -> ingest
-> required-column check -> map to SalesLine -> insert (one transaction per
file). A failing file is rolled back and recorded; the run continues.
"""

logger = logging.getLogger(__name__)

IMPORT_SUFFIXES = EXCEL_SUFFIXES | CSV_SUFFIXES


class ProcessingError(Exception):
    """Fatal run error (e.g. source directory unusable)."""


class SheetNotFoundError(Exception):
    """Raised when no sheet of the file matches the format profile."""


class FileImportError(Exception):
    """File-level failure carrying the error_type for the error log."""

    def __init__(self, error_type: str, message: str, sheet: str = FILE_LEVEL_SHEET) -> None:
        self.error_type = error_type
        self.sheet = sheet
        super().__init__(message)


@dataclass(frozen=True)
class SheetSelection:
    sheet_name: str
    profile: FormatProfile
    ingested: IngestResult


def scan_import_files(directory: Path) -> list[Path]:
    """Scan directory for .xlsx/.xls/.csv files (non-recursive, sorted by name).

    Raises:
        ProcessingError: If directory doesn't exist or can't be read
    """
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")

    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")

    try:
        return sorted(
            (p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in IMPORT_SUFFIXES),
            key=lambda p: p.name,
        )
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e


def _locate_grid(profile: FormatProfile, grids: dict[str, Grid]) -> tuple[str, Grid, int]:
    """Return (sheet name, grid starting at the header row, row offset)."""
    if profile.sheet_name is not None:
        if profile.sheet_name not in grids:
            raise SheetNotFoundError(
                f'sheet "{profile.sheet_name}" not found (found: {sorted(grids)})'
            )
        candidates = {profile.sheet_name: grids[profile.sheet_name]}
    else:
        candidates = grids

    if profile.header_scan_rows <= 0:
        name, grid = next(iter(candidates.items()))
        return name, grid, 0

    for name, grid in candidates.items():
        header_index = find_header_row(grid, profile.required_headers, profile.header_scan_rows)
        if header_index >= 0:
            return name, grid[header_index:], header_index
    raise SheetNotFoundError(
        f"no header row with columns {list(profile.required_headers)} in any sheet"
    )


def select_sheet(path: Path, config: ImportConfig) -> SheetSelection:
    """Read a file and ingest the sheet its format profile points at."""
    try:
        grids = read_grids(path, keep_na_strings=config.keep_na_strings)
    except UnsupportedFileError as e:
        raise FileImportError("UNSUPPORTED_FILE", str(e)) from e
    except Exception as e:
        raise FileImportError("READ_ERROR", f"failed to read {path.name}: {e}") from e

    if not grids:
        raise FileImportError("EMPTY_SHEET", "file has no sheets")

    try:
        profile = resolve_profile(path, grids.keys(), config.formats)
    except UnknownFormatError as e:
        raise FileImportError("UNKNOWN_FORMAT", str(e)) from e

    try:
        sheet_name, grid, offset = _locate_grid(profile, grids)
    except SheetNotFoundError as e:
        raise FileImportError("SHEET_NOT_FOUND", str(e)) from e

    try:
        ingested = ingest(grid, profile.header_row_count, row_offset=offset)
        require_columns(ingested.headers, profile.required_headers)
    except EmptySheetError as e:
        raise FileImportError("EMPTY_SHEET", str(e), sheet=sheet_name) from e
    except MissingColumnsError as e:
        raise FileImportError("MISSING_COLUMNS", str(e), sheet=sheet_name) from e

    return SheetSelection(sheet_name=sheet_name, profile=profile, ingested=ingested)


def inspect_file(path: Path, config: ImportConfig, sample_size: int = 3) -> dict[str, Any]:
    """Headers and the first records of a file, for the CLI --inspect-data switch."""
    selection = select_sheet(path, config)
    return {
        "file": path.name,
        "format": selection.profile.name,
        "sheet": selection.sheet_name,
        "headers": selection.ingested.headers,
        "data_rows": len(selection.ingested.records),
        "sample_rows": selection.ingested.records[:sample_size],
    }


def _rollback(cursor: Any) -> None:
    if cursor is None:
        return
    try:
        cursor.execute("ROLLBACK")
    except Exception as e:  # pragma: no cover
        logger.warning(f"rollback failed: {e}")


def process_file(
    path: Path, config: ImportConfig, cursor: Any, error_log: ErrorLogBuffer
) -> ImportFile:
    """Process one file inside its own transaction (cursor=None: mock mode)."""
    start_time = datetime.now(UTC)
    format_name: str | None = None
    sheet_name: str | None = None
    row_errors = 0
    try:
        selection = select_sheet(path, config)
        format_name = selection.profile.name
        sheet_name = selection.sheet_name
        logger.debug(
            f"{path.name}: format={format_name} sheet={sheet_name} "
            f"headers={len(selection.ingested.headers)} data_rows={len(selection.ingested.records)}"
        )

        mapped = map_records(selection.profile, selection.ingested, config.timezone)
        for row_error in mapped.errors:
            error_log.append(ErrorRecord.from_row_error(path.name, sheet_name, row_error))
        row_errors = sum(1 for e in mapped.errors if e.severity == "error")

        if not mapped.lines:
            raise FileImportError("NO_VALID_ROWS", "no valid data rows", sheet=sheet_name)

        inserted = len(mapped.lines)
        if cursor is not None:
            try:
                cursor.execute("BEGIN")
                result = batch_insert(
                    cursor,
                    config.table,
                    SALES_ORDER_COLUMNS,
                    sales_line_rows(mapped.lines, config.created_by),
                    conflict_target=SALES_ORDER_CONFLICT,
                )
                cursor.execute("COMMIT")
            except Exception as e:
                _rollback(cursor)
                raise FileImportError("INSERT_ERROR", str(e), sheet=sheet_name) from e
            inserted = result.inserted_rows
            if result.duplicate_rows:
                logger.info(f"{path.name}: skipped {result.duplicate_rows} already-imported lines")

        return ImportFile(
            path=path,
            name=path.name,
            format_name=format_name,
            sheet=sheet_name,
            start_time=start_time,
            end_time=datetime.now(UTC),
            status=FileStatus.SUCCESS,
            parsed_lines=len(mapped.lines),
            inserted_rows=inserted,
            row_errors=row_errors,
            summary=mapped.summary,
        )
    except FileImportError as e:
        error_type, message, sheet = e.error_type, str(e), e.sheet
    except Exception as e:
        # 想定外の例外もファイル単位の失敗として記録
        _rollback(cursor)
        error_type, message, sheet = "UNEXPECTED_ERROR", f"{type(e).__name__}: {e}", sheet_name or FILE_LEVEL_SHEET

    logger.error(f"{path.name}: {error_type} {message}")
    error_log.append(ErrorRecord.create(path.name, sheet, FILE_LEVEL_ROW, error_type, message))
    return ImportFile(
        path=path,
        name=path.name,
        format_name=format_name,
        sheet=sheet_name,
        start_time=start_time,
        end_time=datetime.now(UTC),
        status=FileStatus.FAILED,
        row_errors=row_errors,
        error=message,
    )


def _format_date_range(date_range: tuple[date, date] | None) -> str:
    if date_range is None:
        return "-"
    first, last = date_range
    return f"{first.isoformat()}..{last.isoformat()}"


def process_all(config: ImportConfig, cursor: Any = None, error_log: ErrorLogBuffer | None = None) -> ProcessingResult:
    """Process every export file in the configured directory.

    Raises:
        ProcessingError: source directory missing or unreadable, or a live
            cursor without config.created_by
    """
    if cursor is not None and not config.created_by:
        raise ProcessingError("created_by is required when importing into the database")

    start_time = datetime.now(UTC)
    error_log = error_log if error_log is not None else ErrorLogBuffer()

    file_paths = scan_import_files(Path(config.source_directory))

    file_stats: list[FileStat] = []
    success_count = 0
    failed_count = 0
    total_lines = 0
    total_inserted = 0
    total_row_errors = 0
    total_revenue = 0.0

    with ProgressTracker(len(file_paths), description="Importing") as progress:
        for file_path in file_paths:
            progress.start_file(file_path)
            imported = process_file(file_path, config, cursor, error_log)

            if imported.status == FileStatus.SUCCESS:
                success_count += 1
                total_lines += imported.parsed_lines
                total_inserted += imported.inserted_rows
                total_revenue += imported.summary.total_revenue
                logger.info(
                    f"{imported.name}: format={imported.format_name} lines={imported.parsed_lines} "
                    f"orders={imported.summary.unique_orders} rows={imported.inserted_rows} "
                    f"gmv={imported.summary.gmv:.2f} dates={_format_date_range(imported.summary.date_range)}"
                )
            else:
                failed_count += 1
            total_row_errors += imported.row_errors

            progress.set_postfix(success=success_count, failed=failed_count, lines=total_lines)
            progress.finish_file(success=imported.status == FileStatus.SUCCESS)

            elapsed = (
                (imported.end_time - imported.start_time).total_seconds()
                if imported.start_time and imported.end_time else 0.0
            )
            file_stats.append(FileStat(
                file_name=imported.name,
                status=imported.status.value,
                format_name=imported.format_name,
                parsed_lines=imported.parsed_lines,
                inserted_rows=imported.inserted_rows,
                row_errors=imported.row_errors,
                elapsed_seconds=elapsed,
                error=imported.error,
            ))

    try:
        log_path = error_log.flush()
    except OSError as e:
        logger.warning(f"failed to write error log: {e}")
    else:
        if log_path is not None:
            logger.info(f"error log: {log_path}")

    end_time = datetime.now(UTC)
    return ProcessingResult(
        success_files=success_count,
        failed_files=failed_count,
        total_lines=total_lines,
        total_inserted_rows=total_inserted,
        row_errors=total_row_errors,
        total_revenue=total_revenue,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        file_stats=file_stats,
    )
