# migrations/env.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Alembic environment for the assumption tier tables.

Design:
    - Loads .env then .env.<ENVIRONMENT> without overriding exported vars.
    - The URL comes from DATABASE_URL, else ``sqlalchemy.url`` in alembic.ini.
    - ENVIRONMENT must be set and the target database must be on that
      environment's allowlist.
    - Offline runs emit SQL; online runs use an async engine with NullPool.
    - Connection info is only ever logged masked.

Environment variables:
    ENVIRONMENT         Required. An ``Environment`` value with an allowlist below.
    DATABASE_URL        Preferred over alembic.ini.
    DB_SCHEMA           Schema for tables and the version table.
    DB_ECHO             "1"/"true" enables SQL echo for online runs.

Usage:
    ENVIRONMENT=test alembic upgrade head --sql
    ENVIRONMENT=test alembic -x show_url=1 upgrade head
"""

from __future__ import annotations

import asyncio
import logging
import logging.config
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse, urlunparse

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from lore_engine.config.settings import Environment
from lore_engine.infrastructure.database.models import assumptions as _assumption_models  # noqa: F401
from lore_engine.infrastructure.database.models.base import metadata as target_metadata

config = context.config
if config.config_file_name is not None:
    logging.config.fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

_ALLOWED_DBS: dict[Environment, frozenset[str]] = {
    Environment.TEST: frozenset({"lore_test"}),
    Environment.CI: frozenset({"lore_test"}),
    Environment.DEVELOPMENT: frozenset({"lore"}),
    Environment.PRODUCTION: frozenset({"lore"}),
}


def _load_env_files() -> None:
    root = Path(__file__).resolve().parents[1]
    candidates = [root / ".env"]
    env = (os.getenv("ENVIRONMENT") or "").strip().lower()
    if env:
        candidates.append(root / f".env.{env}")
    for path in candidates:
        if path.exists():
            load_dotenv(path, override=False)


_load_env_files()


def _masked(url: str) -> str:
    """Return ``url`` with the password replaced, for logs and errors."""
    parts = urlparse(url)
    auth = f"{parts.username}:****@" if parts.username else ""
    port = f":{parts.port}" if parts.port else ""
    return urlunparse((parts.scheme, f"{auth}{parts.hostname or ''}{port}", parts.path, "", "", ""))


def _environment() -> Environment:
    raw = (os.getenv("ENVIRONMENT") or "").strip().lower()
    if not raw:
        raise RuntimeError("ENVIRONMENT is required for migrations (e.g. ENVIRONMENT=test).")
    try:
        env = Environment(raw)
    except ValueError as exc:
        raise RuntimeError(f"Unknown ENVIRONMENT={raw!r}") from exc
    if env not in _ALLOWED_DBS:
        raise RuntimeError(f"Migrations are not enabled for ENVIRONMENT={raw!r}")
    return env


def _database_url() -> str:
    """Resolve and vet the target URL.

    Raises:
        RuntimeError: If no URL is configured or the database is not on the
            allowlist for the current environment.
    """
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("Database URL not configured (DATABASE_URL/sqlalchemy.url).")

    env = _environment()
    dbname = urlparse(url).path.lstrip("/")
    if dbname not in _ALLOWED_DBS[env]:
        raise RuntimeError(
            f"Refusing to migrate {dbname!r} with ENVIRONMENT={env.value!r} "
            f"(allowed: {sorted(_ALLOWED_DBS[env])}, url: {_masked(url)})"
        )

    if dict(getattr(config, "x", {}) or {}).get("show_url") == "1":
        logger.info("Migrating %s", _masked(url))
    return url


def _configure_kwargs() -> dict[str, Any]:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "compare_server_default": True,
        "include_schemas": True,
        "version_table_schema": os.getenv("DB_SCHEMA") or "public",
    }


def run_migrations_offline() -> None:
    """Emit migration SQL without connecting."""
    context.configure(
        url=_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(),
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    context.configure(connection=connection, **_configure_kwargs())
    with context.begin_transaction():
        context.run_migrations()


async def _run_async() -> None:
    engine = create_async_engine(
        _database_url(),
        echo=(os.getenv("DB_ECHO") or "").lower() in {"1", "true"},
        poolclass=pool.NullPool,
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync)
    finally:
        await engine.dispose()


def run_migrations_online() -> None:
    """Apply migrations against a live database."""
    asyncio.run(_run_async())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
