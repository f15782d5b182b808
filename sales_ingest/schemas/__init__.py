"""JSON schemas shipped with the package (config file, error log lines)."""

from pathlib import Path

SCHEMA_DIR = Path(__file__).parent
CONFIG_SCHEMA_PATH = SCHEMA_DIR / "config_schema.json"
ERROR_LOG_SCHEMA_PATH = SCHEMA_DIR / "error_log_schema.json"
