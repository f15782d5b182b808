"""Domain models for the marketplace sales import tool."""

from .error_record import ErrorRecord
from .format_profile import FormatProfile, get_profile
from .import_file import FileStatus, ImportFile
from .processing_result import FileStat, ProcessingResult
from .sales_line import ImportSummary, MappingResult, RowError, SalesLine

__all__ = [
    "ErrorRecord",
    "FileStat",
    "FileStatus",
    "FormatProfile",
    "ImportFile",
    "ImportSummary",
    "MappingResult",
    "ProcessingResult",
    "RowError",
    "SalesLine",
    "get_profile",
]
