# src/lore_engine/domain/interfaces/repositories/override_repository.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Override repository interface.

Purpose:
    Define the domain-level contract for reading and writing user overrides,
    the only writable tier of the layered assumption model.

Layer:
    domain/interfaces/repositories

Notes:
    - ``metric_key`` is the conflict key: at most one override exists per
      key, and writing the same key again replaces the prior value.
    - Implementations never commit. Transaction boundaries belong to the
      UnitOfWork owned by the calling application service, which is what
      makes ``upsert_many`` all-or-nothing.
    - Concurrent writes to the same key are last-write-wins; no optimistic
      concurrency token is checked.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from lore_engine.domain.entities.assumptions import OverrideDraft, OverrideValue, TierSnapshot

__all__ = ["OverrideRepository"]


class OverrideRepository(Protocol):
    """Repository interface for user overrides."""

    async def list_all(self) -> Sequence[OverrideValue]:
        """Return every stored override.

        Raises:
            OverrideFetchFailed: If the override source cannot be read.
        """
        ...

    async def snapshot(self) -> TierSnapshot:
        """Return the row count and newest ``updated_at`` of the tier.

        Raises:
            OverrideFetchFailed: If the override source cannot be read.
        """
        ...

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
        """Insert or replace the override for ``metric_key``.

        Raises:
            OverrideWriteFailed: If the write fails; carries ``metric_key``.
        """
        ...

    async def upsert_many(
        self,
        overrides: Sequence[OverrideDraft],
        *,
        actor: str | None = None,
    ) -> None:
        """Insert or replace several overrides as a single batch.

        Raises:
            OverrideWriteFailed: If the batch fails; carries every key of the
                batch, none of which should be considered saved.
        """
        ...

    async def delete_one(self, metric_key: str) -> None:
        """Delete the override for ``metric_key``. Missing keys are a no-op.

        Raises:
            OverrideWriteFailed: If the delete fails; carries ``metric_key``.
        """
        ...
