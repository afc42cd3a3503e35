from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from fleetgrid.config.loader import ConfigError, _validate_config_schema

"""Unit tests for config validation error cases."""


def test_validate_config_schema_missing_schema_file(tmp_path: Path):
    with patch("fleetgrid.config.loader.SCHEMA_PATH", tmp_path / "missing.json"):
        with pytest.raises(ConfigError) as e:
            _validate_config_schema({})
        assert "config schema not found" in str(e.value)


def test_validate_config_schema_invalid_json_schema(tmp_path: Path):
    bad = tmp_path / "schema.json"
    bad.write_text("{ not json", encoding="utf-8")
    with patch("fleetgrid.config.loader.SCHEMA_PATH", bad):
        with pytest.raises(ConfigError) as e:
            _validate_config_schema({})
        assert "invalid schema file" in str(e.value)


def test_validate_config_schema_wrong_type():
    with pytest.raises(ConfigError) as e:
        _validate_config_schema({"row_height": "tall"})
    assert "config validation failed" in str(e.value)


def test_validate_config_schema_additional_properties():
    with pytest.raises(ConfigError):
        _validate_config_schema({"sheet_mappings": {}})


def test_validate_config_schema_database_additional_properties():
    with pytest.raises(ConfigError):
        _validate_config_schema({"database": {"host": "db", "pool_size": 4}})


def test_validate_config_schema_zero_chunk_size():
    with pytest.raises(ConfigError):
        _validate_config_schema({"create_chunk_size": 0})


def test_validate_config_schema_valid_config():
    _validate_config_schema(
        {
            "empty_row_floor": 0,
            "bulk_create_threshold": 10,
            "timezone": "UTC",
            "database": {"host": None, "port": 5432, "dsn": "postgresql://u@h/d"},
        }
    )
