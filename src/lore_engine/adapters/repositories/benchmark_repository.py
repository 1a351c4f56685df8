# src/lore_engine/adapters/repositories/benchmark_repository.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""SQLAlchemy implementation of the benchmark repository.

Purpose:
    Load research benchmark rows from the ``rd_benchmarks`` table into
    domain-level BenchmarkValue instances.

Layer:
    adapters/repositories

Design:
    - Async SQLAlchemy session (AsyncSession or compatible).
    - No business logic: purely persistence and mapping.
    - Persistence errors are translated into ``BenchmarkFetchFailed``; an
      unreachable table is never reported as "no benchmarks".
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lore_engine.adapters.repositories.base_repository import BaseRepository
from lore_engine.domain.entities.assumptions import BenchmarkValue, MetricKey, TierSnapshot
from lore_engine.domain.exceptions.assumptions import BenchmarkFetchFailed
from lore_engine.domain.interfaces.repositories.benchmark_repository import (
    BenchmarkRepository as BenchmarkRepositoryPort,
)
from lore_engine.infrastructure.database.models.assumptions import RdBenchmark

__all__ = ["SqlAlchemyBenchmarkRepository"]


class SqlAlchemyBenchmarkRepository(BaseRepository[RdBenchmark], BenchmarkRepositoryPort):
    """SQLAlchemy-backed implementation of the benchmark repository."""

    _MODEL_NAME = "rd_benchmarks"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session or compatible object exposing an
                ``execute`` coroutine method.
        """
        super().__init__(session=session)

    async def list_all(self) -> Sequence[BenchmarkValue]:
        """Return every stored benchmark, ordered by metric key."""
        stmt = select(RdBenchmark).order_by(RdBenchmark.metric_key.asc())
        try:
            async with self.observe("list_all"):
                rows = await self.fetch_all(stmt)
        except SQLAlchemyError as exc:
            raise BenchmarkFetchFailed(
                "Failed to fetch benchmarks.",
                details={"reason": type(exc).__name__},
            ) from exc
        return [self._to_domain(row) for row in rows]

    async def snapshot(self) -> TierSnapshot:
        """Return the benchmark row count and newest ``updated_at``."""
        try:
            async with self.observe("snapshot"):
                return await self.fetch_snapshot(RdBenchmark)
        except SQLAlchemyError as exc:
            raise BenchmarkFetchFailed(
                "Failed to read benchmark snapshot.",
                details={"reason": type(exc).__name__},
            ) from exc

    @staticmethod
    def _to_domain(row: Any) -> BenchmarkValue:
        """Map an ``RdBenchmark`` row (or a BenchmarkValue) to a BenchmarkValue."""
        # Dummy sessions in tests may feed domain objects directly.
        if isinstance(row, BenchmarkValue):
            return row

        return BenchmarkValue(
            metric_key=MetricKey(row.metric_key),
            value=float(row.value),
            unit=row.unit,
            confidence=row.confidence,
        )
