from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, ImportConfig, load_config
from ..logging.init import log_summary, setup_logging
from ..services.orchestrator import (
    FileImportError,
    ProcessingError,
    inspect_file,
    process_all,
    scan_import_files,
)
from ..services.summary import render_summary_line

"""CLI entrypoint: import TikTok / Shopee order exports into sales_orders.

Flow: load .env -> load config -> scan source directory -> process files
(live DB when reachable, otherwise mock mode) -> SUMMARY line -> exit code.
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2


def resolve_dsn(cfg: ImportConfig) -> str:
    """Connection string precedence.

    1. DATABASE_URL / PGDSN (whole DSN)
    2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. database section of the config file
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Yield a psycopg2 cursor; transactions are driven by the orchestrator."""
    import psycopg2

    conn = psycopg2.connect(resolve_dsn(cfg))
    conn.autocommit = True  # BEGIN/COMMIT はファイル単位で orchestrator が発行
    try:
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; .env values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="sales-ingest", description="TikTok / Shopee order export -> sales_orders importer"
    )
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to import.yml")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--dry-run", action="store_true", help="Parse and validate only, do not touch the database")
    p.add_argument("--inspect-data", action="store_true", help="Print headers & first records per file then exit")
    return p.parse_args(argv)


def _json_safe(value: Any) -> Any:
    return value.isoformat() if hasattr(value, "isoformat") else value


def _inspect_data(cfg: ImportConfig) -> int:
    try:
        files = scan_import_files(Path(cfg.source_directory))
    except ProcessingError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    if not files:
        print("inspect: no import files")
        return EXIT_SUCCESS_ALL
    for f in files:
        try:
            info = inspect_file(f, cfg)
        except FileImportError as e:
            print(f"FILE: {f.name} error={e.error_type} {e}")
            continue
        print(f"FILE: {f.name} format={info['format']} sheet={info['sheet']} rows={info['data_rows']}")
        print(f"  headers={info['headers']}")
        safe_rows = [{k: _json_safe(v) for k, v in r.items()} for r in info["sample_rows"]]
        print("  sample_rows=", safe_rows)
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # None のときのみシステム引数を読む (テストの cli_main([]) で pytest の引数を拾わない)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(logging.DEBUG if args.debug else logging.INFO)
    logger.debug("debug mode enabled")
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    directory = Path(cfg.source_directory)
    if not directory.exists():
        logger.error(f"directory not found: {directory}")
        return EXIT_FATAL

    logger.info(f"Processing files from: {directory}")

    if args.inspect_data:
        return _inspect_data(cfg)

    db_mode = "mock"
    try:
        if args.dry_run or os.getenv("DISABLE_DB_CONNECT") == "1":
            logger.debug("database disabled -> mock mode")
            result = process_all(cfg, cursor=None)
        else:
            try:
                with _db_connection(cfg) as cur:
                    db_mode = "live"
                    result = process_all(cfg, cursor=cur)
            except ProcessingError:
                raise
            except Exception as db_e:
                if db_mode == "live":
                    raise
                logger.info(f"DB connection failed -> fallback to mock mode: {db_e}")
                result = process_all(cfg, cursor=None)
    except ProcessingError as e:
        logger.error(f"processing({db_mode}): {e}")
        return EXIT_FATAL

    logger.info(f"mode={db_mode} total_rows={result.total_inserted_rows}")

    # log_summary adds the "SUMMARY " label itself
    summary_line = render_summary_line(result.total_files, result)
    log_summary(summary_line.removeprefix("SUMMARY "))

    if result.failed_files > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
