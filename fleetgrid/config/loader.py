from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from fleetgrid.models.config_models import DatabaseConfig, GridConfig

"""Config loader.

Responsibilities:
- Load YAML config (config/grid.yml by default)
- Validate against contracts/config_schema.json (unknown keys rejected)
- Apply defaults for every missing key
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "config_from_mapping",
]

# fleetgrid/config/loader.py -> fleetgrid/config -> fleetgrid
_package_root = Path(__file__).resolve().parent.parent
SCHEMA_PATH = _package_root / "contracts" / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/grid.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / not JSON, or the data violates it
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


def config_from_mapping(data: dict[str, Any]) -> GridConfig:
    """Build a GridConfig from an already validated mapping."""
    defaults = GridConfig()
    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    tz = data.get("timezone", defaults.timezone)
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {tz}") from e

    return GridConfig(
        empty_row_floor=data.get("empty_row_floor", defaults.empty_row_floor),
        supply_debounce_seconds=float(data.get("supply_debounce_seconds", defaults.supply_debounce_seconds)),
        empty_row_grace_seconds=float(data.get("empty_row_grace_seconds", defaults.empty_row_grace_seconds)),
        supply_cooldown_seconds=float(data.get("supply_cooldown_seconds", defaults.supply_cooldown_seconds)),
        batch_cooldown_seconds=float(data.get("batch_cooldown_seconds", defaults.batch_cooldown_seconds)),
        batch_noop_release_seconds=float(
            data.get("batch_noop_release_seconds", defaults.batch_noop_release_seconds)
        ),
        bulk_create_threshold=data.get("bulk_create_threshold", defaults.bulk_create_threshold),
        create_chunk_size=data.get("create_chunk_size", defaults.create_chunk_size),
        row_height=data.get("row_height", defaults.row_height),
        overscan=data.get("overscan", defaults.overscan),
        timezone=tz,
        database=db,
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> GridConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)
    return config_from_mapping(data)
