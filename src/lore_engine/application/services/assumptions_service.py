# src/lore_engine/application/services/assumptions_service.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Application service for layered assumption resolution.

Purpose:
    Provide the public query/mutation surface over the layered assumption
    model:

        * Fetch the benchmark and override tiers concurrently, then merge
          them with the schema registry via the domain resolver.
        * Mediate every write through the override repository inside a
          UnitOfWork, and invalidate the merged view afterwards.

Layer:
    application/services

Notes:
    - Reads fan out (one UnitOfWork per tier) inside an ``asyncio.TaskGroup``.
      When one tier fails the other fetch is cancelled before the error
      propagates. A failed or cancelled load never produces a merged map and
      drops any previously cached one, so the service reports not ready
      instead of serving stale data.
    - The merged map is cached together with a ``TierSnapshot`` per stored
      tier (row count and newest ``updated_at``). Every cached read first
      re-reads both snapshots and reloads when either changed, which picks
      up benchmark refreshes and override writes made by other processes.
    - Writes made through this service bump a local version as well, so a
      load that raced with one of them is returned but not cached.
    - This service never retries. Retry policy belongs to callers; upserts
      and deletes are idempotent, so retrying the keys carried by
      ``OverrideWriteFailed`` is safe.
    - Concurrent edits of the same key from different callers are
      last-write-wins at the store.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from lore_engine.application.uow import UnitOfWork, UnitOfWorkFactory, run_override_write
from lore_engine.domain.entities.assumptions import (
    AssumptionSummary,
    EffectiveAssumption,
    MetricKey,
    OverrideDraft,
    TierSnapshot,
)
from lore_engine.domain.exceptions.assumptions import (
    AssumptionsError,
    BenchmarkFetchFailed,
    OverrideFetchFailed,
    OverrideWriteFailed,
)
from lore_engine.domain.interfaces.repositories.benchmark_repository import (
    BenchmarkRepository,
)
from lore_engine.domain.interfaces.repositories.override_repository import (
    OverrideRepository,
)
from lore_engine.domain.services.assumption_resolver import (
    UNTRACKED_CATEGORY,
    UNTRACKED_UNIT,
    EffectiveAssumptionMap,
    resolve_effective_assumptions,
)
from lore_engine.domain.services.assumptions_schema import SchemaRegistry, get_default_registry

logger = logging.getLogger(__name__)

__all__ = ["AssumptionsService"]

T = TypeVar("T")
U = TypeVar("U")

#: (benchmark snapshot, override snapshot) a merged map was built from.
_Snapshots = tuple[TierSnapshot, TierSnapshot]


@dataclass(frozen=True, slots=True)
class _CachedMerge:
    merged: EffectiveAssumptionMap
    snapshots: _Snapshots


class AssumptionsService:
    """Resolve effective assumptions and mediate override writes.

    Typical usage::

        service = AssumptionsService(uow_factory=make_uow)
        churn = await service.get_effective_value("creator_monthly_churn_rate", 5)
        await service.save_assumption("pro_arpu", 34, notes="revised Q3")
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        registry: SchemaRegistry | None = None,
        cache_enabled: bool = True,
        untracked_category: str = UNTRACKED_CATEGORY,
        untracked_unit: str = UNTRACKED_UNIT,
    ) -> None:
        """Initialize the service.

        Args:
            uow_factory:
                Zero-argument callable returning a fresh UnitOfWork. A new UoW
                is created per tier read and per write.
            registry:
                Schema registry to seed merges from. Defaults to the CFO
                assumptions catalog.
            cache_enabled:
                When True, the merged map is reused while both tier snapshots
                are unchanged. When False, every read refetches.
            untracked_category:
                Category for keys that neither the registry nor an override
                categorised.
            untracked_unit:
                Unit for untracked keys that carry no unit.
        """
        self._uow_factory = uow_factory
        self._registry = registry or get_default_registry()
        self._cache_enabled = cache_enabled
        self._untracked_category = untracked_category
        self._untracked_unit = untracked_unit

        self._cached: _CachedMerge | None = None
        self._version = 0

    @property
    def registry(self) -> SchemaRegistry:
        """Schema registry backing this service."""
        return self._registry

    @property
    def is_ready(self) -> bool:
        """True when a complete merged map is currently held."""
        return self._cached is not None

    @property
    def snapshot_version(self) -> int:
        """Monotonic counter bumped on every write or invalidation."""
        return self._version

    def invalidate(self) -> None:
        """Drop the cached merged map so the next read refetches both tiers."""
        self._version += 1
        self._cached = None

    # ------------------------------------------------------------------ #
    # Reads                                                              #
    # ------------------------------------------------------------------ #

    async def load(self) -> EffectiveAssumptionMap:
        """Fetch both tiers concurrently and merge them.

        Returns:
            EffectiveAssumptionMap: The freshly merged view.

        Raises:
            BenchmarkFetchFailed: If the benchmark tier cannot be read.
            OverrideFetchFailed: If the override tier cannot be read.
        """
        version = self._version
        logger.info("assumptions.load.start", extra={"snapshot_version": version})

        try:
            (bench_snapshot, benchmarks), (override_snapshot, overrides) = await self._both(
                self._read_tier(BenchmarkRepository, BenchmarkFetchFailed, _snapshot_and_rows),
                self._read_tier(OverrideRepository, OverrideFetchFailed, _snapshot_and_rows),
            )
        except AssumptionsError as exc:
            self._cached = None
            logger.warning(
                "assumptions.load.failed",
                extra={"snapshot_version": version, "error_code": exc.code},
            )
            raise
        except asyncio.CancelledError:
            self._cached = None
            logger.info("assumptions.load.cancelled", extra={"snapshot_version": version})
            raise

        merged = resolve_effective_assumptions(
            self._registry,
            benchmarks,
            overrides,
            untracked_category=self._untracked_category,
            untracked_unit=self._untracked_unit,
        )

        if self._cache_enabled and version == self._version:
            self._cached = _CachedMerge(merged, (bench_snapshot, override_snapshot))

        summary = merged.summary()
        logger.info(
            "assumptions.load.success",
            extra={
                "snapshot_version": version,
                "total": summary.total,
                "benchmark_count": summary.benchmark_count,
                "override_count": summary.override_count,
                "data_source": summary.data_source.value,
            },
        )
        return merged

    async def get_effective_assumptions(self) -> EffectiveAssumptionMap:
        """Return the merged map, reusing the cached one while the tiers are unchanged."""
        cached = self._cached
        if not self._cache_enabled or cached is None:
            return await self.load()

        try:
            current = await self._both(
                self._read_tier(BenchmarkRepository, BenchmarkFetchFailed, _snapshot_only),
                self._read_tier(OverrideRepository, OverrideFetchFailed, _snapshot_only),
            )
        except (AssumptionsError, asyncio.CancelledError):
            self._cached = None
            raise

        if current == cached.snapshots and self._cached is cached:
            return cached.merged

        logger.info("assumptions.cache.stale", extra={"snapshot_version": self._version})
        return await self.load()

    async def get_effective_value(self, metric_key: str, fallback: float | None = None) -> float:
        """Return the effective value for ``metric_key`` (see fallback chain)."""
        merged = await self.get_effective_assumptions()
        return merged.get_effective_value(metric_key, fallback)

    async def get_assumption(self, metric_key: str) -> EffectiveAssumption | None:
        """Return the merged entry for ``metric_key``, if any tier knows it."""
        merged = await self.get_effective_assumptions()
        return merged.get_assumption(metric_key)

    async def list_by_category(self, category: str) -> tuple[EffectiveAssumption, ...]:
        """Return merged entries of a registry category in declaration order."""
        merged = await self.get_effective_assumptions()
        return merged.list_by_category(category)

    async def get_summary(self) -> AssumptionSummary:
        """Return source counts for the current merged map."""
        merged = await self.get_effective_assumptions()
        return merged.summary()

    # ------------------------------------------------------------------ #
    # Writes                                                             #
    # ------------------------------------------------------------------ #

    async def save_assumption(
        self,
        metric_key: str,
        value: float,
        *,
        unit: str | None = None,
        category: str | None = None,
        notes: str | None = None,
        actor: str | None = None,
    ) -> OverrideDraft:
        """Create or replace the override for one metric.

        Category and unit are inferred from the registry when omitted.

        Returns:
            OverrideDraft: The draft as written, after inference.

        Raises:
            AssumptionsSchemaError: If the key is blank or the value is not a
                finite number.
            OverrideWriteFailed: If the write fails; carries ``metric_key``.
        """
        draft = self._infer(
            OverrideDraft(
                metric_key=MetricKey(metric_key),
                value=value,
                unit=unit,
                category=category,
                notes=notes,
            )
        )

        async def _write(tx: UnitOfWork) -> None:
            repo: OverrideRepository = tx.get_repository(OverrideRepository)
            await repo.upsert_one(
                metric_key=draft.metric_key,
                value=draft.value,
                unit=draft.unit,
                category=draft.category,
                notes=draft.notes,
                actor=actor,
            )

        await self._write("save", (draft.metric_key,), _write)
        return draft

    async def save_multiple_assumptions(
        self,
        drafts: Sequence[OverrideDraft],
        *,
        actor: str | None = None,
    ) -> tuple[OverrideDraft, ...]:
        """Create or replace several overrides in one all-or-nothing batch.

        Inference runs for every draft before the single batch write is
        attempted.

        Returns:
            tuple[OverrideDraft, ...]: The drafts as written, after inference.

        Raises:
            OverrideWriteFailed: If the batch fails; carries every key of the
                batch, none of which were saved.
        """
        inferred = tuple(self._infer(draft) for draft in drafts)
        if not inferred:
            return inferred

        async def _write(tx: UnitOfWork) -> None:
            repo: OverrideRepository = tx.get_repository(OverrideRepository)
            await repo.upsert_many(inferred, actor=actor)

        await self._write("save_many", tuple(d.metric_key for d in inferred), _write)
        return inferred

    async def delete_assumption(self, metric_key: str) -> None:
        """Delete the override for ``metric_key``, reverting to lower tiers.

        Deleting a key without an override is a no-op.

        Raises:
            OverrideWriteFailed: If the delete fails; carries ``metric_key``.
        """

        async def _write(tx: UnitOfWork) -> None:
            repo: OverrideRepository = tx.get_repository(OverrideRepository)
            await repo.delete_one(metric_key)

        await self._write("delete", (metric_key,), _write)

    # ------------------------------------------------------------------ #
    # Internals                                                          #
    # ------------------------------------------------------------------ #

    def _infer(self, draft: OverrideDraft) -> OverrideDraft:
        category = (
            draft.category
            or self._registry.get_category(draft.metric_key)
            or self._untracked_category
        )
        unit = draft.unit or self._registry.get_unit(draft.metric_key)
        return OverrideDraft(
            metric_key=draft.metric_key,
            value=draft.value,
            unit=unit,
            category=category,
            notes=draft.notes,
        )

    async def _write(
        self,
        operation: str,
        metric_keys: tuple[str, ...],
        fn: Callable[[UnitOfWork], Awaitable[None]],
    ) -> None:
        logger.info(
            f"assumptions.{operation}.start",
            extra={"metric_keys": list(metric_keys)},
        )
        try:
            await run_override_write(
                self._uow_factory(), fn, operation=operation, metric_keys=metric_keys
            )
        except OverrideWriteFailed as exc:
            logger.warning(
                f"assumptions.{operation}.failed",
                extra={
                    "metric_keys": list(exc.metric_keys),
                    "error_code": exc.code,
                    "reason": exc.details.get("reason"),
                },
            )
            raise

        self.invalidate()
        logger.info(
            f"assumptions.{operation}.success",
            extra={"metric_keys": list(metric_keys), "snapshot_version": self._version},
        )

    async def _read_tier(
        self,
        repo_type: type[Any],
        failure: type[BenchmarkFetchFailed] | type[OverrideFetchFailed],
        read: Callable[[Any], Awaitable[T]],
    ) -> T:
        """Run ``read`` against one tier's repository in its own UnitOfWork."""
        try:
            async with self._uow_factory() as tx:
                return await read(tx.get_repository(repo_type))
        except failure:
            raise
        except Exception as exc:
            raise failure(
                f"Failed to fetch {failure.tier}.",
                details={"reason": type(exc).__name__},
            ) from exc

    @staticmethod
    async def _both(
        first: Coroutine[Any, Any, T], second: Coroutine[Any, Any, U]
    ) -> tuple[T, U]:
        """Await two tier reads concurrently; on failure neither keeps running.

        Raises:
            AssumptionsError: The first domain error raised by either read.
        """
        try:
            async with asyncio.TaskGroup() as tg:
                first_task = tg.create_task(first)
                second_task = tg.create_task(second)
        except BaseExceptionGroup as group:
            raise _first_error(group)  # noqa: B904
        return first_task.result(), second_task.result()


async def _snapshot_and_rows(repo: Any) -> tuple[TierSnapshot, list[Any]]:
    # Snapshot first: a change landing between the two reads only makes the
    # next cached read reload.
    snapshot = await repo.snapshot()
    return snapshot, list(await repo.list_all())


async def _snapshot_only(repo: Any) -> TierSnapshot:
    return await repo.snapshot()


def _first_error(group: BaseExceptionGroup[BaseException]) -> BaseException:
    for exc in group.exceptions:
        if isinstance(exc, AssumptionsError):
            return exc
    return group.exceptions[0]
