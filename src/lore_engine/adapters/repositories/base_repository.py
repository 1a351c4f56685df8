# src/lore_engine/adapters/repositories/base_repository.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""
BaseRepository: shared repository foundation.

Purpose:
    Shared mechanics for all repositories:
      * Safe fetch helpers (all).
      * UTC timestamp helper for audit fields.
      * Latency/error metrics around each logical operation.

Layer: adapters / repositories

Notes:
    * No business logic, no domain decisions.
    * Repositories never commit; the UnitOfWork owns transactions.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lore_engine.domain.entities.assumptions import TierSnapshot
from lore_engine.infrastructure.observability.metrics import (
    get_db_errors_total,
    get_db_operation_duration_seconds,
)

TModel = TypeVar("TModel")


class BaseRepository(Generic[TModel]):  # noqa: UP046
    """Abstract base class for all repositories."""

    #: Logical table name used as the ``model`` metrics label.
    _MODEL_NAME = "unknown"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session bound to the target database.
        """
        self._session: AsyncSession = session
        self._metrics_hist = get_db_operation_duration_seconds()
        self._metrics_err = get_db_errors_total()

    @staticmethod
    def utc_now() -> datetime:
        """Return current UTC time with timezone info."""
        return datetime.now(UTC)

    async def fetch_all(self, stmt: Select[Any]) -> list[TModel]:
        """Execute a statement and return all rows as a list."""
        res = await self._session.execute(stmt)
        return list(res.scalars().all())

    async def fetch_snapshot(self, model: Any) -> TierSnapshot:
        """Return row count and newest ``updated_at`` for ``model``'s table."""
        stmt = select(func.count(), func.max(model.updated_at)).select_from(model)
        res = await self._session.execute(stmt)
        row_count, last_updated = res.one()
        return TierSnapshot(row_count=int(row_count or 0), last_updated=last_updated)

    @asynccontextmanager
    async def observe(self, operation: str) -> AsyncIterator[None]:
        """Record latency and errors for one logical repository operation.

        Exceptions raised inside the block are counted and re-raised
        unchanged; metric failures never mask them.
        """
        start = time.perf_counter()
        outcome = "success"
        try:
            yield
        except Exception as exc:
            outcome = "error"
            with suppress(Exception):
                self._metrics_err.labels(
                    operation=operation,
                    model=self._MODEL_NAME,
                    reason=type(exc).__name__,
                ).inc()
            raise
        finally:
            with suppress(Exception):
                self._metrics_hist.labels(
                    operation=operation,
                    model=self._MODEL_NAME,
                    outcome=outcome,
                ).observe(time.perf_counter() - start)
