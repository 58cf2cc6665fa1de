from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from lead_importer.models.config_models import (
    AssignmentMode,
    AssignmentStrategy,
    DatabaseConfig,
    ImportOptions,
    ImportOptionsError,
)

"""Config loader for config/import.yml.

Responsibilities:
- Load YAML (yaml.safe_load)
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults and build the typed ImportOptions / DatabaseConfig

Environment variables for the database connection are resolved by the CLI;
the ``database`` section is only the fallback.
"""

__all__ = [
    "ConfigError",
    "LeadImportConfig",
    "SCHEMA_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class LeadImportConfig:
    team_id: str
    database: DatabaseConfig
    options: ImportOptions = field(default_factory=ImportOptions)
    column_overrides: dict[str, str] = field(default_factory=dict)


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or not valid JSON, or the config
            data violates the schema (missing team_id, wrong types, ...)
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


def _build_options(raw: dict[str, Any]) -> ImportOptions:
    mode = raw.get("assignment", AssignmentMode.ROUND_ROBIN.value)
    try:
        assignment = AssignmentStrategy(AssignmentMode(mode), member_id=raw.get("assigned_member_id"))
        return ImportOptions(
            chunk_size=raw.get("chunk_size", ImportOptions.chunk_size),
            skip_duplicates=raw.get("skip_duplicates", False),
            create_missing_categories=raw.get("create_missing_categories", False),
            assignment=assignment,
            default_status=raw.get("default_status"),
            default_priority=raw.get("default_priority", ImportOptions.default_priority),
        )
    except ImportOptionsError as e:
        raise ConfigError(f"import options: {e}") from e


def load_config(path: Path) -> LeadImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return LeadImportConfig(
        team_id=str(data["team_id"]),
        database=db,
        options=_build_options(data.get("import") or {}),
        column_overrides=dict(data.get("column_overrides") or {}),
    )
