from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from fleetgrid.models.config_models import DatabaseConfig

"""PostgreSQL connection helpers.

接続情報の解決優先順位 (.env を最優先):
    1. `.env` (python-dotenv, override=True で既存の環境変数を上書き)
    2. DATABASE_URL / PGDSN (DSN 全体をそのまま使用)
    3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    4. config/grid.yml の database セクション (不足分のフォールバック)
"""

__all__ = [
    "load_env_file",
    "resolve_dsn",
    "db_connection",
]

logger = logging.getLogger(__name__)


def load_env_file(path: Path = Path(".env"), override: bool = True) -> bool:
    """Load ``path`` into the environment. False when the file is absent."""
    if not path.exists():
        return False
    return load_dotenv(dotenv_path=path, override=override)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
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
def db_connection(db_cfg: DatabaseConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Yield a psycopg2 connection (explicit transactions, closed on exit)."""
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    conn.autocommit = False  # the store commits per operation
    try:
        yield conn
    finally:
        conn.close()
