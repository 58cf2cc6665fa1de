from __future__ import annotations

import argparse
import dataclasses
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from lead_importer.config.loader import ConfigError, LeadImportConfig, load_config
from lead_importer.db.lead_store import LeadStore, PostgresCategoryStore, PostgresLeadStore
from lead_importer.logging.error_log import ErrorLogBuffer
from lead_importer.logging.init import log_summary, setup_logging
from lead_importer.mapping.field_mapper import FieldMapping, MappingError, infer_mapping, validate_mapping
from lead_importer.models.config_models import AssignmentStrategy, ImportOptions, ImportOptionsError
from lead_importer.models.raw_row import ParsedFile
from lead_importer.models.team import StatusVocabulary, TeamMember
from lead_importer.parsing.reader import ParseError, read_csv_file
from lead_importer.services.categories import CategoryStore
from lead_importer.services.orchestrator import LeadImportPipeline
from lead_importer.services.summary import render_summary_line

"""CLI entrypoint: import one CSV file of leads into a team's lead store.

    python -m lead_importer.cli leads.csv [--config config/import.yml] [--map "Tel=phone"] ...

Exit codes:
- 0: every accepted lead was inserted
- 2: partial failure (result carries errors; committed batches are kept)
- 1: fatal (config, parse, mapping, options, database connection)
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

DEFAULT_CONFIG_PATH = Path("config/import.yml")


def _resolve_dsn(cfg: LeadImportConfig) -> str:
    """Connection string, in priority order:

    1. DATABASE_URL / PGDSN (environment, `.env` loaded in override mode)
    2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. the ``database`` section of config/import.yml
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
def _db_connection(cfg: LeadImportConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """psycopg2 connection + cursor.

    autocommit is on: the lead store issues BEGIN / COMMIT per chunk, so a
    failed chunk never takes the committed ones with it.
    """
    conn = psycopg2.connect(_resolve_dsn(cfg))
    try:
        conn.autocommit = True
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _open_stores(
    cursor: Any, team_id: str
) -> tuple[LeadStore, list[TeamMember], StatusVocabulary, CategoryStore]:
    store = PostgresLeadStore(cursor, team_id)
    return store, store.list_team_members(), store.load_status_vocabulary(), PostgresCategoryStore(cursor, team_id)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="lead_importer", description="CSV -> lead store bulk importer")
    p.add_argument("file", type=Path, help="CSV file to import (UTF-8, header row)")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config YAML path")
    p.add_argument(
        "--map",
        action="append",
        default=[],
        metavar="HEADER=FIELD",
        help="Override the inferred field of one column (repeatable; FIELD may be 'ignore')",
    )
    p.add_argument("--assign", metavar="MODE", help="round_robin, none, or a member id")
    p.add_argument("--status", help="Default status for rows without one")
    p.add_argument("--priority", choices=["cold", "warm", "hot", "urgent"], help="Default priority")
    p.add_argument("--skip-duplicates", action="store_true", help="Do not insert detected duplicates")
    p.add_argument("--create-categories", action="store_true", help="Create missing formation types")
    p.add_argument("--chunk-size", type=int, help="Leads per committed batch")
    p.add_argument("--inspect-data", action="store_true", help="Print headers, mapping & first rows then exit")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _parse_map_args(values: list[str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for value in values:
        header, sep, field_name = value.rpartition("=")
        if not sep or not header.strip() or not field_name.strip():
            raise MappingError(f"--map expects HEADER=FIELD, got {value!r}")
        overrides[header.strip()] = field_name.strip()
    return overrides


def _options_from_args(base: ImportOptions, args: argparse.Namespace) -> ImportOptions:
    changes: dict[str, Any] = {}
    if args.assign is not None:
        changes["assignment"] = AssignmentStrategy.parse(args.assign)
    if args.status is not None:
        changes["default_status"] = args.status
    if args.priority is not None:
        changes["default_priority"] = args.priority
    if args.skip_duplicates:
        changes["skip_duplicates"] = True
    if args.create_categories:
        changes["create_missing_categories"] = True
    if args.chunk_size is not None:
        changes["chunk_size"] = args.chunk_size
    return dataclasses.replace(base, **changes) if changes else base


def _build_mapping(parsed: ParsedFile, cfg: LeadImportConfig, cli_overrides: dict[str, str], logger: Any) -> FieldMapping:
    mapping = infer_mapping(parsed.headers)
    for header, field_name in cfg.column_overrides.items():
        if header in mapping:
            mapping.override(header, field_name)
        else:
            logger.debug(f"column override for absent header {header!r} ignored")
    for header, field_name in cli_overrides.items():
        mapping.override(header, field_name)
    return mapping


def _inspect_data(parsed: ParsedFile, mapping: FieldMapping) -> int:
    print(f"FILE: {parsed.source_name} rows={parsed.row_count}")
    for header, field_name in mapping.items():
        print(f"  COLUMN: {header!r} -> {field_name}")
    conflicts = mapping.conflicts()
    if conflicts:
        print(f"  conflicts={conflicts}")
    for row in parsed.rows[:3]:
        print(f"  ROW {row.row_number}: {dict(row.values)}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # argv=[] must not fall back to sys.argv (pytest flags)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        options = _options_from_args(cfg.options, args)
    except ImportOptionsError as e:
        logger.error(f"options: {e}")
        return EXIT_FATAL

    try:
        parsed = read_csv_file(args.file)
    except ParseError as e:
        logger.error(f"parse: {e}")
        return EXIT_FATAL

    try:
        mapping = _build_mapping(parsed, cfg, _parse_map_args(args.map), logger)
        if args.inspect_data:
            return _inspect_data(parsed, mapping)
        validate_mapping(mapping)
    except MappingError as e:
        logger.error(f"mapping: {e}")
        return EXIT_FATAL

    logger.info(f"Importing {parsed.row_count} row(s) from: {args.file}")
    error_log = ErrorLogBuffer()
    try:
        with _db_connection(cfg) as cur:
            store, roster, statuses, category_store = _open_stores(cur, cfg.team_id)
            pipeline = LeadImportPipeline(
                store,
                roster,
                statuses,
                category_store=category_store,
                error_log=error_log,
            )
            try:
                result = pipeline.submit(parsed.rows, mapping, options, source_name=args.file.name)
            finally:
                pipeline.close()
    except ImportOptionsError as e:
        logger.error(f"options: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    logger.info(
        f"team={cfg.team_id} members={len(roster)} statuses={len(statuses)} "
        f"batches={result.total_batches} marked={result.marked_count}"
    )

    summary_line = render_summary_line(result)
    # log_summary adds the "SUMMARY " label itself
    log_summary(summary_line[len("SUMMARY "):])

    if result.errors:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
