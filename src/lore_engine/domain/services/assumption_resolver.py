# src/lore_engine/domain/services/assumption_resolver.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Layered assumption resolver.

Purpose:
    Merge the three assumption tiers into one effective value per metric key
    using a fixed precedence model:

        OVERRIDE > BENCHMARK > SCHEMA_DEFAULT

    and expose read-only query helpers over the merged result.

Merge algorithm:
    1. Seed the map from the schema registry: every registered definition
       becomes an entry with ``source=schema_default``.
    2. Apply every benchmark. Registered keys are overwritten in place;
       unknown keys are inserted with the untracked unit/category.
    3. Registered metrics that received no direct benchmark but declare
       benchmark aliases take their benchmark from the aliases: one alias
       maps directly, two aliases (low, high) use their mean when both exist.
    4. Apply every override, overwriting or inserting, while keeping the
       benchmark value in effect beforehand as ``benchmark_value``.
    5. A registered metric with a single benchmark alias that is still on
       its schema default takes an override stored under the alias name.
       Older clients saved overrides that way. Such an override ranks below
       any benchmark for the metric.

    Benchmarks are fully applied before overrides start, so the result does
    not depend on the order rows were fetched in. Entries within a tier only
    touch their own key.

Layer:
    domain/services

Notes:
    - This module performs no I/O and holds no mutable state. The merged map
      is a pure function of the registry and the two input snapshots.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import replace
from datetime import datetime
from typing import Final

from lore_engine.domain.entities.assumptions import (
    AssumptionSummary,
    BenchmarkValue,
    EffectiveAssumption,
    MetricKey,
    OverrideValue,
)
from lore_engine.domain.enums.assumptions import AssumptionSource, MetricCategory, MetricUnit
from lore_engine.domain.services.assumptions_schema import SchemaRegistry

__all__ = [
    "UNTRACKED_CATEGORY",
    "UNTRACKED_UNIT",
    "EffectiveAssumptionMap",
    "resolve_effective_assumptions",
]

UNTRACKED_CATEGORY: Final[str] = MetricCategory.GENERAL.value
UNTRACKED_UNIT: Final[str] = MetricUnit.NUMBER.value


class EffectiveAssumptionMap(Mapping[str, EffectiveAssumption]):
    """Read-only result of a merge pass, keyed by metric key.

    Iteration order is registry declaration order first, followed by
    untracked keys in the order they were first seen (benchmarks, then
    overrides).
    """

    __slots__ = ("_entries", "_registry", "_benchmark_count", "_override_count")

    def __init__(
        self,
        entries: Mapping[str, EffectiveAssumption],
        *,
        registry: SchemaRegistry,
        benchmark_count: int,
        override_count: int,
    ) -> None:
        """Wrap a completed merge.

        Args:
            entries: Merged entries keyed by metric key.
            registry: Registry the merge was seeded from.
            benchmark_count: Number of benchmark rows that fed the merge.
            override_count: Number of override rows that fed the merge.
        """
        self._entries: dict[str, EffectiveAssumption] = dict(entries)
        self._registry = registry
        self._benchmark_count = benchmark_count
        self._override_count = override_count

    def __getitem__(self, key: str) -> EffectiveAssumption:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def registry(self) -> SchemaRegistry:
        """Registry used to seed and group this map."""
        return self._registry

    # ------------------------------------------------------------------ #
    # Queries                                                            #
    # ------------------------------------------------------------------ #

    def get_effective_value(self, key: str, fallback: float | None = None) -> float:
        """Return the effective value for ``key`` using the fallback chain.

        Resolution order:
            1. The benchmark or override value when either tier has one.
            2. The registry default, when non-zero.
            3. ``fallback``, when supplied.
            4. ``0.0``.

        A registered default of exactly zero is treated like "no default" in
        step 2, so a caller-supplied fallback wins over it.
        """
        entry = self._entries.get(key)
        if entry is not None and entry.source is not AssumptionSource.SCHEMA_DEFAULT:
            return entry.value

        default = self._registry.get_default_value(key)
        if default:
            return default
        if fallback is not None:
            return fallback
        return 0.0

    def get_assumption(self, key: str) -> EffectiveAssumption | None:
        """Return the merged entry for ``key``, or None when no tier knows it."""
        return self._entries.get(key)

    def list_by_category(self, category: str) -> tuple[EffectiveAssumption, ...]:
        """Return entries of a registry category in declaration order.

        Only registry categories are enumerable here. Untracked keys, and
        categories only referenced by overrides or benchmarks, are reachable
        solely through :meth:`get_assumption` / :meth:`get_effective_value`.
        """
        return tuple(
            self._entries[definition.key]
            for definition in self._registry.list_by_category(category)
            if definition.key in self._entries
        )

    def summary(self) -> AssumptionSummary:
        """Return counts and the newest override timestamp for this map."""
        schema_default_count = 0
        last_update: datetime | None = None
        for entry in self._entries.values():
            if entry.source is AssumptionSource.SCHEMA_DEFAULT:
                schema_default_count += 1
            elif entry.source is AssumptionSource.OVERRIDE and entry.updated_at is not None:
                if last_update is None or entry.updated_at > last_update:
                    last_update = entry.updated_at

        if self._override_count:
            data_source = AssumptionSource.OVERRIDE
        elif self._benchmark_count:
            data_source = AssumptionSource.BENCHMARK
        else:
            data_source = AssumptionSource.SCHEMA_DEFAULT

        return AssumptionSummary(
            total=len(self._entries),
            schema_default_count=schema_default_count,
            benchmark_count=self._benchmark_count,
            override_count=self._override_count,
            has_overrides=self._override_count > 0,
            last_override_update=last_update,
            data_source=data_source,
        )

    def source_trace(self) -> dict[AssumptionSource, tuple[str, ...]]:
        """Return metric keys grouped by the tier that won, in map order."""
        grouped: dict[AssumptionSource, list[str]] = {source: [] for source in AssumptionSource}
        for key, entry in self._entries.items():
            grouped[entry.source].append(key)
        return {source: tuple(keys) for source, keys in grouped.items()}


def resolve_effective_assumptions(
    registry: SchemaRegistry,
    benchmarks: Iterable[BenchmarkValue],
    overrides: Iterable[OverrideValue],
    *,
    untracked_category: str = UNTRACKED_CATEGORY,
    untracked_unit: str = UNTRACKED_UNIT,
) -> EffectiveAssumptionMap:
    """Merge registry defaults, benchmarks and overrides.

    Args:
        registry: Schema registry supplying defaults, units and categories.
        benchmarks: Complete benchmark snapshot.
        overrides: Complete override snapshot.
        untracked_category: Category assigned to keys the registry does not
            know and no override categorised.
        untracked_unit: Unit assigned to untracked keys without a unit.

    Returns:
        EffectiveAssumptionMap: The merged view.
    """
    entries: dict[str, EffectiveAssumption] = {}

    # 1. Schema defaults.
    for definition in registry:
        entries[definition.key] = EffectiveAssumption(
            metric_key=definition.key,
            value=definition.default_value,
            unit=definition.unit,
            source=AssumptionSource.SCHEMA_DEFAULT,
            category=definition.category,
            label=definition.label,
            schema_default=definition.default_value,
        )

    # 2. Direct benchmarks.
    benchmark_rows = list(benchmarks)
    benchmark_by_key: dict[str, float] = {}
    for benchmark in benchmark_rows:
        benchmark_by_key[benchmark.metric_key] = benchmark.value
        entries[benchmark.metric_key] = _apply_benchmark(
            entries.get(benchmark.metric_key),
            metric_key=benchmark.metric_key,
            value=benchmark.value,
            unit=benchmark.unit,
            untracked_category=untracked_category,
            untracked_unit=untracked_unit,
        )

    # 3. Benchmark aliases for registered metrics without a direct benchmark.
    for definition in registry:
        if not definition.benchmark_keys or definition.key in benchmark_by_key:
            continue
        aliased = _aliased_benchmark(definition.benchmark_keys, benchmark_by_key)
        if aliased is None:
            continue
        entries[definition.key] = _apply_benchmark(
            entries[definition.key],
            metric_key=definition.key,
            value=aliased,
            unit=None,
            untracked_category=untracked_category,
            untracked_unit=untracked_unit,
        )

    # 4. Overrides.
    override_rows = list(overrides)
    for override in override_rows:
        existing = entries.get(override.metric_key)
        entries[override.metric_key] = _apply_override(
            existing,
            override,
            registered_category=registry.get_category(override.metric_key),
            untracked_category=untracked_category,
            untracked_unit=untracked_unit,
        )

    # 5. Legacy overrides saved under a single benchmark alias.
    override_by_key = {override.metric_key: override for override in override_rows}
    for definition in registry:
        if len(definition.benchmark_keys) != 1:
            continue
        entry = entries[definition.key]
        if entry.source is not AssumptionSource.SCHEMA_DEFAULT:
            continue
        legacy = override_by_key.get(definition.benchmark_keys[0])
        if legacy is None:
            continue
        entries[definition.key] = _apply_override(
            entry,
            replace(legacy, metric_key=definition.key, unit=None),
            registered_category=definition.category,
            untracked_category=untracked_category,
            untracked_unit=untracked_unit,
        )

    return EffectiveAssumptionMap(
        entries,
        registry=registry,
        benchmark_count=len(benchmark_rows),
        override_count=len(override_rows),
    )


def _aliased_benchmark(
    benchmark_keys: tuple[str, ...],
    benchmark_by_key: Mapping[str, float],
) -> float | None:
    if len(benchmark_keys) == 1:
        return benchmark_by_key.get(benchmark_keys[0])
    low = benchmark_by_key.get(benchmark_keys[0])
    high = benchmark_by_key.get(benchmark_keys[1])
    if low is None or high is None:
        return None
    return (low + high) / 2


def _apply_benchmark(
    existing: EffectiveAssumption | None,
    *,
    metric_key: MetricKey,
    value: float,
    unit: str | None,
    untracked_category: str,
    untracked_unit: str,
) -> EffectiveAssumption:
    if existing is None:
        return EffectiveAssumption(
            metric_key=metric_key,
            value=value,
            unit=unit or untracked_unit,
            source=AssumptionSource.BENCHMARK,
            category=untracked_category,
            benchmark_value=value,
        )
    return replace(
        existing,
        value=value,
        unit=unit or existing.unit,
        source=AssumptionSource.BENCHMARK,
        benchmark_value=value,
    )


def _apply_override(
    existing: EffectiveAssumption | None,
    override: OverrideValue,
    *,
    registered_category: str | None,
    untracked_category: str,
    untracked_unit: str,
) -> EffectiveAssumption:
    # Registry grouping wins for registered keys; otherwise the category
    # recorded at write time wins over the display fallback.
    category = registered_category or override.category or untracked_category

    if existing is None:
        return EffectiveAssumption(
            metric_key=override.metric_key,
            value=override.value,
            unit=override.unit or untracked_unit,
            source=AssumptionSource.OVERRIDE,
            category=category,
            override_value=override.value,
            notes=override.notes,
            updated_at=override.updated_at,
            updated_by=override.updated_by or override.created_by,
        )
    return replace(
        existing,
        value=override.value,
        unit=override.unit or existing.unit,
        source=AssumptionSource.OVERRIDE,
        category=category,
        override_value=override.value,
        notes=override.notes,
        updated_at=override.updated_at,
        updated_by=override.updated_by or override.created_by,
    )
