# src/lore_engine/infrastructure/observability/metrics.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Prometheus metrics utilities (registry-aware, reload safe).

Accessor functions return collectors bound to the **current**
``prometheus_client.REGISTRY``:

    - Safe under reloads and tests that swap the default registry.
    - No duplicate-registration errors.
    - Caches reset automatically when the active registry changes.

All histograms use explicit buckets so ``_bucket/_count/_sum`` series appear
after the first ``observe(...)`` call.

Example:
    hist = get_db_operation_duration_seconds()
    hist.labels(operation="list_all", model="rd_benchmarks", outcome="success").observe(0.01)
"""

from __future__ import annotations

import logging
import threading
from contextlib import suppress
from typing import Final, TypeVar

import prometheus_client as prom
from prometheus_client import Counter, Histogram

_log = logging.getLogger(__name__)

# Common histogram buckets (seconds)
_BUCKETS: Final[tuple[float, ...]] = (
    0.005,
    0.010,
    0.025,
    0.050,
    0.100,
    0.250,
    0.500,
    1.000,
    2.500,
    5.000,
    10.000,
)

_Collector = TypeVar("_Collector", Histogram, Counter)

# Collectors by name, valid for the registry whose id is recorded.
_registry_id: int | None = None
_cache: dict[str, Histogram | Counter] = {}
_lock = threading.RLock()


def _registered(name: str, kind: type[_Collector]) -> _Collector | None:
    """Find a collector of ``kind`` already registered under ``name``."""
    with suppress(Exception):
        col = getattr(prom.REGISTRY, "_names_to_collectors", {}).get(name)
        if isinstance(col, kind):
            return col
    return None


def _collector(kind: type[_Collector], name: str, help_text: str, **kwargs: object) -> _Collector:
    """Return the ``kind`` collector called ``name`` on the active registry.

    Creates it on first use. A registry swap (tests, reloads) drops the cache.
    """
    global _registry_id
    with _lock:
        if _registry_id != id(prom.REGISTRY):
            _cache.clear()
            _registry_id = id(prom.REGISTRY)

        cached = _cache.get(name)
        if isinstance(cached, kind):
            return cached

        col = _registered(name, kind)
        if col is None:
            try:
                col = kind(name, help_text, registry=prom.REGISTRY, **kwargs)  # type: ignore[arg-type]
            except ValueError:
                col = _registered(name, kind)
                if col is None:
                    _log.exception("Failed to register Prometheus %s %s", kind.__name__, name)
                    raise
        _cache[name] = col
        return col


# ---------------------------------------------------------------------------
# DB metrics
# ---------------------------------------------------------------------------


def get_db_operation_duration_seconds() -> Histogram:
    """Return histogram for DB operation latency.

    Labels:
        operation: Logical operation name (e.g. ``upsert_many``).
        model: Logical table name (e.g. ``cfo_assumptions``).
        outcome: ``success`` or ``error``.
    """
    return _collector(
        Histogram,
        "db_operation_duration_seconds",
        "Latency (seconds) of database operations.",
        labelnames=("operation", "model", "outcome"),
        buckets=_BUCKETS,
    )


def get_db_errors_total() -> Counter:
    """Return counter for DB errors.

    Labels:
        operation: Logical operation name.
        model: Logical table name.
        reason: Error class or short reason.
    """
    return _collector(
        Counter,
        "db_errors_total",
        "Total database errors by operation/model.",
        labelnames=("operation", "model", "reason"),
    )
