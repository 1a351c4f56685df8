# src/lore_engine/domain/entities/assumptions.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Assumption domain entities.

Purpose:
    Represent the three value tiers of the layered assumption model and the
    derived effective view in a storage-agnostic way:

        MetricDefinition     -> schema registry entry (default tier)
        BenchmarkValue       -> research benchmark (read-only tier)
        OverrideValue        -> user override (the only writable tier)
        EffectiveAssumption  -> merged, derived value (never persisted)

Layer:
    domain/entities

Notes:
    - ``metric_key`` is a soft reference across tiers. Benchmarks and
      overrides may reference keys the registry does not know; those keys are
      tolerated and surface under the "general" category.
    - All entities are immutable; the resolver derives new instances rather
      than mutating existing ones.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import NewType

from lore_engine.domain.enums.assumptions import AssumptionSource
from lore_engine.domain.exceptions.assumptions import AssumptionsSchemaError

__all__ = [
    "MetricKey",
    "MetricDefinition",
    "BenchmarkValue",
    "OverrideDraft",
    "OverrideValue",
    "EffectiveAssumption",
    "AssumptionSummary",
    "TierSnapshot",
]

# Opaque identifier for a single named assumption. Not checked against the
# registry: unregistered keys are valid by design of the business rules.
MetricKey = NewType("MetricKey", str)


def _require_key(metric_key: str, entity: str) -> None:
    if not isinstance(metric_key, str) or not metric_key.strip():
        raise AssumptionsSchemaError(
            f"{entity} requires a non-empty metric_key.",
            details={"metric_key": metric_key},
        )


def _require_finite(value: float, metric_key: str, entity: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise AssumptionsSchemaError(
            f"{entity} value must be a finite number.",
            details={"metric_key": metric_key, "value": repr(value)},
        )


@dataclass(frozen=True, slots=True)
class MetricDefinition:
    """Schema registry entry describing one known metric.

    Attributes:
        key:
            Globally unique metric identifier (e.g. ``"pro_arpu"``).
        category:
            Registry category the metric is grouped under (e.g. ``"growth"``).
        unit:
            Display unit (``percent``, ``USD``, ``count``, ...).
        label:
            Human-readable name.
        default_value:
            Schema fallback used when neither a benchmark nor an override
            exists.
        description:
            Optional longer explanation for editors.
        min_value / max_value / step:
            Optional editing bounds for slider-style inputs.
        benchmark_keys:
            Research benchmark keys this metric may be derived from. One key
            maps directly; two keys form a low/high range whose mean is used.
    """

    key: MetricKey
    category: str
    unit: str
    label: str
    default_value: float
    description: str | None = None
    min_value: float | None = None
    max_value: float | None = None
    step: float | None = None
    benchmark_keys: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate basic invariants of the definition."""
        _require_key(self.key, "MetricDefinition")
        _require_finite(self.default_value, self.key, "MetricDefinition")
        if len(self.benchmark_keys) > 2:
            raise AssumptionsSchemaError(
                "MetricDefinition supports at most two benchmark keys (low, high).",
                details={"metric_key": self.key, "benchmark_keys": list(self.benchmark_keys)},
            )


@dataclass(frozen=True, slots=True)
class BenchmarkValue:
    """Reference value supplied by the external research process.

    Attributes:
        metric_key: Metric the benchmark applies to (soft reference).
        value: Benchmark value.
        unit: Optional unit; when absent the registry unit is inherited.
        confidence: Optional research confidence label (e.g. ``"high"``).
    """

    metric_key: MetricKey
    value: float
    unit: str | None = None
    confidence: str | None = None


@dataclass(frozen=True, slots=True)
class OverrideDraft:
    """Caller-supplied override prior to category/unit inference.

    Attributes:
        metric_key: Metric to override.
        value: New override value; must be finite.
        unit: Optional unit; inferred from the registry when omitted.
        category: Optional category; inferred from the registry when omitted.
        notes: Optional free-text rationale.
    """

    metric_key: MetricKey
    value: float
    unit: str | None = None
    category: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        """Reject drafts that could never be persisted."""
        _require_key(self.metric_key, "OverrideDraft")
        _require_finite(self.value, self.metric_key, "OverrideDraft")


@dataclass(frozen=True, slots=True)
class OverrideValue:
    """Persisted user override. At most one exists per metric key.

    Attributes:
        metric_key: Metric the override applies to.
        value: Override value.
        unit: Optional unit.
        category: Category recorded at write time (registry or "general").
        notes: Optional free-text rationale.
        created_by: Actor that created the override, if known.
        updated_by: Actor that last updated the override, if known.
        updated_at: Timestamp of the last write, if known.
    """

    metric_key: MetricKey
    value: float
    unit: str | None = None
    category: str | None = None
    notes: str | None = None
    created_by: str | None = None
    updated_by: str | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class TierSnapshot:
    """Change marker for one stored tier.

    Two equal snapshots of the same tier mean no row was added, removed or
    rewritten in between.

    Attributes:
        row_count: Number of rows in the tier.
        last_updated: Newest ``updated_at`` in the tier, or None when empty.
    """

    row_count: int
    last_updated: datetime | None = None


@dataclass(frozen=True, slots=True)
class EffectiveAssumption:
    """Merged, derived value for one metric key.

    Invariant:
        ``value`` equals the value of the highest-precedence tier present for
        the key: override > benchmark > schema default.

    Attributes:
        metric_key: Metric identifier.
        value: Winning value.
        unit: Display unit of the winning value.
        source: Tier that produced ``value``.
        category: Registry category, the override's recorded category, or
            "general" for untracked keys.
        label: Registry label when the key is registered.
        schema_default: Registry default when the key is registered.
        benchmark_value: Benchmark value in effect for the key, if any. Kept
            on overridden entries so consumers can show or revert to it.
        override_value: Override value, when ``source`` is override.
        notes: Override notes, when ``source`` is override.
        updated_at: Override timestamp, when ``source`` is override.
        updated_by: Override actor, when ``source`` is override.
    """

    metric_key: MetricKey
    value: float
    unit: str
    source: AssumptionSource
    category: str
    label: str | None = None
    schema_default: float | None = None
    benchmark_value: float | None = None
    override_value: float | None = None
    notes: str | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None

    @property
    def is_overridden(self) -> bool:
        """Return True when a user override is the winning tier."""
        return self.source is AssumptionSource.OVERRIDE

    @property
    def is_registered(self) -> bool:
        """Return True when the key exists in the schema registry."""
        return self.schema_default is not None


@dataclass(frozen=True, slots=True)
class AssumptionSummary:
    """Aggregate view of where effective values came from.

    Attributes:
        total: Number of entries in the effective map.
        schema_default_count: Entries resolved from schema defaults.
        benchmark_count: Benchmark rows loaded.
        override_count: Override rows loaded.
        has_overrides: True when at least one override exists.
        last_override_update: Most recent override ``updated_at``, if any.
        data_source: Highest tier with any data: override, benchmark, or
            schema_default.
    """

    total: int
    schema_default_count: int
    benchmark_count: int
    override_count: int
    has_overrides: bool
    last_override_update: datetime | None
    data_source: AssumptionSource
