# tests/conftest.py
"""Shared fixtures: in-memory tier stores and a transactional fake UnitOfWork.

The fakes mirror the SQLAlchemy wiring closely enough for service tests:

    * Reads see only committed data.
    * Writes are staged per UnitOfWork and applied on commit; rollback
      discards them, so a failed batch leaves the store untouched.
    * Failures can be injected per tier, per key, or at commit time.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from types import TracebackType
from typing import Any

import pytest

from lore_engine.domain.entities.assumptions import (
    BenchmarkValue,
    MetricDefinition,
    MetricKey,
    OverrideDraft,
    OverrideValue,
    TierSnapshot,
)
from lore_engine.domain.enums.assumptions import MetricCategory, MetricUnit
from lore_engine.domain.interfaces.repositories.benchmark_repository import BenchmarkRepository
from lore_engine.domain.interfaces.repositories.override_repository import OverrideRepository
from lore_engine.domain.services.assumptions_schema import SchemaRegistry


class InMemoryAssumptionStore:
    """Committed state for both tiers plus failure switches."""

    def __init__(self) -> None:
        self.benchmarks: dict[str, BenchmarkValue] = {}
        self.benchmark_stamps: dict[str, datetime] = {}
        self.overrides: dict[str, OverrideValue] = {}

        self.benchmark_fetch_error: Exception | None = None
        self.override_fetch_error: Exception | None = None
        self.write_error: Exception | None = None
        self.commit_error: Exception | None = None
        self.reject_keys: set[str] = set()

        # Optional gates awaited inside list_all(), for interleaving tests.
        self.benchmark_gate: asyncio.Event | None = None
        self.override_gate: asyncio.Event | None = None
        self.override_fetch_started: asyncio.Event = asyncio.Event()

        self.benchmark_fetches = 0
        self.override_fetches = 0
        self.snapshot_checks = 0
        self.cancelled_fetches = 0
        self.write_calls: list[tuple[str, tuple[str, ...], str | None]] = []
        self.commits = 0
        self.rollbacks = 0

        self._tick = datetime(2026, 1, 1, tzinfo=UTC)

    def now(self) -> datetime:
        self._tick += timedelta(minutes=1)
        return self._tick

    def add_benchmark(self, key: str, value: float, unit: str | None = None) -> None:
        self.benchmarks[key] = BenchmarkValue(metric_key=MetricKey(key), value=value, unit=unit)
        self.benchmark_stamps[key] = self.now()

    def add_override(
        self,
        key: str,
        value: float,
        *,
        unit: str | None = None,
        category: str | None = None,
        notes: str | None = None,
        actor: str | None = None,
    ) -> None:
        self.overrides[key] = OverrideValue(
            metric_key=MetricKey(key),
            value=value,
            unit=unit,
            category=category,
            notes=notes,
            created_by=actor,
            updated_by=actor,
            updated_at=self.now(),
        )


async def _wait_gate(store: InMemoryAssumptionStore, gate: asyncio.Event) -> None:
    try:
        await gate.wait()
    except asyncio.CancelledError:
        store.cancelled_fetches += 1
        raise


class FakeBenchmarkRepository:
    def __init__(self, store: InMemoryAssumptionStore) -> None:
        self._store = store

    async def snapshot(self) -> TierSnapshot:
        self._store.snapshot_checks += 1
        if self._store.benchmark_fetch_error is not None:
            raise self._store.benchmark_fetch_error
        return TierSnapshot(
            row_count=len(self._store.benchmarks),
            last_updated=max(self._store.benchmark_stamps.values(), default=None),
        )

    async def list_all(self) -> Sequence[BenchmarkValue]:
        self._store.benchmark_fetches += 1
        if self._store.benchmark_gate is not None:
            await _wait_gate(self._store, self._store.benchmark_gate)
        if self._store.benchmark_fetch_error is not None:
            raise self._store.benchmark_fetch_error
        return [self._store.benchmarks[k] for k in sorted(self._store.benchmarks)]


class FakeOverrideRepository:
    def __init__(self, store: InMemoryAssumptionStore, staged: list[Callable[[], None]]) -> None:
        self._store = store
        self._staged = staged

    async def snapshot(self) -> TierSnapshot:
        self._store.snapshot_checks += 1
        if self._store.override_fetch_error is not None:
            raise self._store.override_fetch_error
        stamps = [o.updated_at for o in self._store.overrides.values() if o.updated_at is not None]
        return TierSnapshot(row_count=len(self._store.overrides), last_updated=max(stamps, default=None))

    async def list_all(self) -> Sequence[OverrideValue]:
        self._store.override_fetches += 1
        self._store.override_fetch_started.set()
        if self._store.override_gate is not None:
            await _wait_gate(self._store, self._store.override_gate)
        if self._store.override_fetch_error is not None:
            raise self._store.override_fetch_error
        return [self._store.overrides[k] for k in sorted(self._store.overrides)]

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
        draft = OverrideDraft(
            metric_key=MetricKey(metric_key),
            value=value,
            unit=unit,
            category=category,
            notes=notes,
        )
        await self.upsert_many([draft], actor=actor)

    async def upsert_many(self, overrides: Sequence[OverrideDraft], *, actor: str | None = None) -> None:
        self._store.write_calls.append(
            ("upsert", tuple(d.metric_key for d in overrides), actor),
        )
        for draft in overrides:
            if self._store.write_error is not None or draft.metric_key in self._store.reject_keys:
                raise self._store.write_error or RuntimeError(f"rejected {draft.metric_key}")
            self._staged.append(self._stage_upsert(draft, actor))

    async def delete_one(self, metric_key: str) -> None:
        self._store.write_calls.append(("delete", (metric_key,), None))
        if self._store.write_error is not None:
            raise self._store.write_error
        self._staged.append(lambda: self._store.overrides.pop(metric_key, None))

    def _stage_upsert(self, draft: OverrideDraft, actor: str | None) -> Callable[[], None]:
        def _apply() -> None:
            previous = self._store.overrides.get(draft.metric_key)
            self._store.overrides[draft.metric_key] = OverrideValue(
                metric_key=draft.metric_key,
                value=draft.value,
                unit=draft.unit,
                category=draft.category,
                notes=draft.notes,
                created_by=previous.created_by if previous else actor,
                updated_by=actor,
                updated_at=self._store.now(),
            )

        return _apply


class FakeUnitOfWork:
    """Transactional UnitOfWork over an InMemoryAssumptionStore."""

    def __init__(self, store: InMemoryAssumptionStore) -> None:
        self._store = store
        self._staged: list[Callable[[], None]] = []
        self._repos: dict[type[Any], Any] = {}
        self.active = False

    async def __aenter__(self) -> FakeUnitOfWork:
        self.active = True
        self._staged.clear()
        self._repos = {
            BenchmarkRepository: FakeBenchmarkRepository(self._store),
            OverrideRepository: FakeOverrideRepository(self._store, self._staged),
        }
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        if self._staged:
            await self.rollback()
        self.active = False
        return None

    async def commit(self) -> None:
        if self._store.commit_error is not None:
            raise self._store.commit_error
        for apply in self._staged:
            apply()
        self._staged.clear()
        self._store.commits += 1

    async def rollback(self) -> None:
        self._staged.clear()
        self._store.rollbacks += 1

    def get_repository(self, repo_type: type[Any]) -> Any:
        return self._repos[repo_type]


@pytest.fixture
def store() -> InMemoryAssumptionStore:
    """Empty committed state for both tiers."""
    return InMemoryAssumptionStore()


@pytest.fixture
def uow_factory(store: InMemoryAssumptionStore) -> Callable[[], FakeUnitOfWork]:
    """Zero-argument factory producing a fresh FakeUnitOfWork per call."""
    return lambda: FakeUnitOfWork(store)


@pytest.fixture
def small_registry() -> SchemaRegistry:
    """Compact registry covering direct, range and zero-default metrics."""
    growth = MetricCategory.GROWTH.value
    advertising = MetricCategory.ADVERTISING.value
    return SchemaRegistry(
        {
            growth: (
                MetricDefinition(
                    key=MetricKey("growth_rate"),
                    category=growth,
                    unit=MetricUnit.PERCENT.value,
                    label="Growth Rate",
                    default_value=4,
                    benchmark_keys=("creator_growth_rate",),
                ),
                MetricDefinition(
                    key=MetricKey("churn_rate"),
                    category=growth,
                    unit=MetricUnit.PERCENT.value,
                    label="Churn Rate",
                    default_value=5,
                ),
            ),
            advertising: (
                MetricDefinition(
                    key=MetricKey("hostread_cpm"),
                    category=advertising,
                    unit=MetricUnit.USD.value,
                    label="Host-Read CPM",
                    default_value=22,
                    benchmark_keys=("hostread_cpm_low", "hostread_cpm_high"),
                ),
                MetricDefinition(
                    key=MetricKey("bonus_slots"),
                    category=advertising,
                    unit=MetricUnit.SLOTS.value,
                    label="Bonus Slots",
                    default_value=0,
                ),
            ),
        }
    )
