# src/lore_engine/adapters/repositories/override_repository.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""SQLAlchemy implementation of the override repository.

Purpose:
    Persist user overrides in the ``cfo_assumptions`` table and map them to
    domain-level OverrideValue instances.

Layer:
    adapters/repositories

Design:
    - Upsert is implemented via PostgreSQL ``ON CONFLICT (metric_key)``, with
      last-write-wins semantics for the value fields. ``created_by`` is kept
      from the first write.
    - ``upsert_many`` emits a single statement for the whole batch, so the
      batch succeeds or fails as a unit inside the caller's transaction.
      Duplicate keys within one batch collapse to their last occurrence.
    - Persistence errors are translated into ``OverrideFetchFailed`` /
      ``OverrideWriteFailed`` with the attempted keys attached.
    - The repository never commits.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lore_engine.adapters.repositories.base_repository import BaseRepository
from lore_engine.domain.entities.assumptions import (
    MetricKey,
    OverrideDraft,
    OverrideValue,
    TierSnapshot,
)
from lore_engine.domain.exceptions.assumptions import OverrideFetchFailed, OverrideWriteFailed
from lore_engine.domain.interfaces.repositories.override_repository import (
    OverrideRepository as OverrideRepositoryPort,
)
from lore_engine.infrastructure.database.models.assumptions import CfoAssumption

__all__ = ["SqlAlchemyOverrideRepository"]

_OVERRIDE_SOURCE = "cfo"


class SqlAlchemyOverrideRepository(BaseRepository[CfoAssumption], OverrideRepositoryPort):
    """SQLAlchemy-backed implementation of the override repository."""

    _MODEL_NAME = "cfo_assumptions"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session bound to the primary database.
        """
        super().__init__(session=session)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_all(self) -> Sequence[OverrideValue]:
        """Return every stored override, ordered by metric key."""
        stmt = select(CfoAssumption).order_by(CfoAssumption.metric_key.asc())
        try:
            async with self.observe("list_all"):
                rows = await self.fetch_all(stmt)
        except SQLAlchemyError as exc:
            raise OverrideFetchFailed(
                "Failed to fetch overrides.",
                details={"reason": type(exc).__name__},
            ) from exc
        return [self._to_domain(row) for row in rows]

    async def snapshot(self) -> TierSnapshot:
        """Return the override row count and newest ``updated_at``."""
        try:
            async with self.observe("snapshot"):
                return await self.fetch_snapshot(CfoAssumption)
        except SQLAlchemyError as exc:
            raise OverrideFetchFailed(
                "Failed to read override snapshot.",
                details={"reason": type(exc).__name__},
            ) from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_one(
        self,
        *,
        metric_key: str,
        value: float,
        unit: str | None = None,
        category: str | None = None,
        notes: str | None = None,
        actor: str | None = None,
    ) -> None:
        """Insert or replace the override for ``metric_key``."""
        draft = OverrideDraft(
            metric_key=MetricKey(metric_key),
            value=value,
            unit=unit,
            category=category,
            notes=notes,
        )
        await self._upsert("upsert_one", [draft], actor=actor)

    async def upsert_many(
        self,
        overrides: Sequence[OverrideDraft],
        *,
        actor: str | None = None,
    ) -> None:
        """Insert or replace several overrides with one statement."""
        if not overrides:
            return
        # ON CONFLICT cannot touch the same row twice in one statement.
        deduped: dict[str, OverrideDraft] = {}
        for draft in overrides:
            deduped[draft.metric_key] = draft
        await self._upsert("upsert_many", list(deduped.values()), actor=actor)

    async def delete_one(self, metric_key: str) -> None:
        """Delete the override for ``metric_key``; missing keys are a no-op."""
        stmt = delete(CfoAssumption).where(CfoAssumption.metric_key == metric_key)
        try:
            async with self.observe("delete_one"):
                await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise OverrideWriteFailed(
                "Failed to delete override.",
                metric_keys=(metric_key,),
                details={"reason": type(exc).__name__},
            ) from exc

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _upsert(
        self,
        operation: str,
        drafts: Sequence[OverrideDraft],
        *,
        actor: str | None,
    ) -> None:
        now = self.utc_now()
        payload: list[dict[str, Any]] = [
            {
                "id": uuid.uuid4(),
                "metric_key": draft.metric_key,
                "value": Decimal(str(draft.value)),
                "unit": draft.unit,
                "category": draft.category,
                "notes": draft.notes,
                "source": _OVERRIDE_SOURCE,
                "created_by": actor,
                "updated_by": actor,
                "created_at": now,
                "updated_at": now,
            }
            for draft in drafts
        ]

        stmt = pg_insert(CfoAssumption).values(payload)
        stmt = stmt.on_conflict_do_update(
            index_elements=[CfoAssumption.metric_key],
            set_={
                "value": stmt.excluded.value,
                "unit": stmt.excluded.unit,
                "category": stmt.excluded.category,
                "notes": stmt.excluded.notes,
                "source": stmt.excluded.source,
                "updated_by": stmt.excluded.updated_by,
                "updated_at": stmt.excluded.updated_at,
            },
        )

        try:
            async with self.observe(operation):
                await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise OverrideWriteFailed(
                "Failed to save overrides.",
                metric_keys=[draft.metric_key for draft in drafts],
                details={"reason": type(exc).__name__},
            ) from exc

    @staticmethod
    def _to_domain(row: Any) -> OverrideValue:
        """Map a ``CfoAssumption`` row (or an OverrideValue) to an OverrideValue."""
        if isinstance(row, OverrideValue):
            return row

        return OverrideValue(
            metric_key=MetricKey(row.metric_key),
            value=float(row.value),
            unit=row.unit,
            category=row.category,
            notes=row.notes,
            created_by=row.created_by,
            updated_by=row.updated_by,
            updated_at=row.updated_at,
        )
