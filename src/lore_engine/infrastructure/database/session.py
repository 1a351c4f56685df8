# src/lore_engine/infrastructure/database/session.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Process-global async engine and sessionmaker.

Lifecycle:
    * ``init_engine_and_sessionmaker(settings)`` at startup (idempotent). The
      engine places every table in ``settings.db_schema``.
    * ``get_sessionmaker()`` feeds ``make_uow_factory``.
    * ``dispose_engine()`` at shutdown.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from lore_engine.config.settings import Settings

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def init_engine_and_sessionmaker(settings: Settings) -> None:
    """Create the engine and sessionmaker unless they already exist.

    Raises:
        ValueError: If ``settings.database_url`` is empty.
    """
    global _engine, _sessionmaker

    if not settings.database_url:
        raise ValueError("database_url must be configured")
    if _engine is not None:
        return

    execution_options: dict[str, Any] = {}
    if settings.db_schema:
        # ORM tables are declared without a schema.
        execution_options["schema_translate_map"] = {None: settings.db_schema}

    _engine = create_async_engine(
        url=settings.database_url,
        pool_pre_ping=settings.db_pool_pre_ping,
        echo=settings.db_echo,
        execution_options=execution_options,
    )
    # Committed rows stay readable after the UoW closes its session.
    _sessionmaker = async_sessionmaker(bind=_engine, expire_on_commit=False, class_=AsyncSession)


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the initialized sessionmaker.

    Raises:
        RuntimeError: If ``init_engine_and_sessionmaker`` has not run.
    """
    if _sessionmaker is None:
        raise RuntimeError("DB sessionmaker not initialized (call init_engine_and_sessionmaker)")
    return _sessionmaker


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global _engine, _sessionmaker
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _sessionmaker = None
