from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..schemas import CONFIG_SCHEMA_PATH
from ..services.sales_mapper import DEFAULT_TIMEZONE

"""Config loader.

Responsibilities:
- Load YAML config (default config/import.yml)
- Validate against sales_ingest/schemas/config_schema.json
- Apply defaults (timezone=Asia/Bangkok, table=sales_orders)
"""

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "ImportConfig",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_TABLE",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/import.yml")
DEFAULT_TABLE = "sales_orders"
SCHEMA_PATH = CONFIG_SCHEMA_PATH


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection fallback used when DATABASE_URL / PG* variables are not set."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    source_directory: str
    timezone: str = DEFAULT_TIMEZONE
    table: str = DEFAULT_TABLE
    created_by: str | None = None  # order_line_hash / created_by 列に使うユーザ UUID
    formats: dict[str, str] = field(default_factory=dict)  # ファイル名 glob -> format 名
    keep_na_strings: list[str] | None = None
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing / unreadable, or the config violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _validate_timezone(name: str) -> None:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {name}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    _validate_config_schema(data)
    timezone = data.get("timezone", DEFAULT_TIMEZONE)
    _validate_timezone(timezone)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return ImportConfig(
        source_directory=data["source_directory"],
        timezone=timezone,
        table=data.get("table", DEFAULT_TABLE),
        created_by=data.get("created_by"),
        formats=dict(data.get("formats") or {}),
        keep_na_strings=data.get("keep_na_strings"),
        database=db,
    )
