# src/lore_engine/domain/exceptions/assumptions.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Assumption domain exceptions.

Purpose:
    Provide the error taxonomy for the layered assumption model: failures to
    read either store, failures to write overrides, and registry/draft
    misconfiguration.

Layer:
    domain

Notes:
    - Adapters are responsible for translating persistence errors into these
      types; the resolver never retries and never substitutes empty data for
      a failed fetch.
    - An unknown metric key is NOT an error. Registry lookups return ``None``
      (or the documented sentinel) and the key surfaces under the "general"
      category instead.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from lore_engine.domain.exceptions.base import DomainError

__all__ = [
    "AssumptionsError",
    "AssumptionsSchemaError",
    "BenchmarkFetchFailed",
    "OverrideFetchFailed",
    "OverrideWriteFailed",
]


class AssumptionsError(DomainError):
    """Base class for assumption-related domain errors."""

    code = "ASSUMPTIONS_ERROR"


class AssumptionsSchemaError(AssumptionsError):
    """Raised when the metric catalog or an override draft is malformed."""

    code = "ASSUMPTIONS_SCHEMA_ERROR"


class BenchmarkFetchFailed(AssumptionsError):
    """Raised when the benchmark tier cannot be read.

    This must never be converted into an empty benchmark list: doing so
    would silently demote every metric to its schema default.
    """

    code = "BENCHMARK_FETCH_FAILED"
    tier = "benchmarks"


class OverrideFetchFailed(AssumptionsError):
    """Raised when the override tier cannot be read."""

    code = "OVERRIDE_FETCH_FAILED"
    tier = "overrides"


class OverrideWriteFailed(AssumptionsError):
    """Raised when an override upsert or delete fails.

    Attributes:
        metric_keys:
            The metric keys whose write was attempted. For a batch write this
            is every key in the batch, none of which were saved.
    """

    code = "OVERRIDE_WRITE_FAILED"

    def __init__(
        self,
        message: str,
        *,
        metric_keys: Iterable[str],
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the error with the attempted keys.

        Args:
            message: Human-readable error message.
            metric_keys: Metric keys whose write was attempted.
            details: Optional extra diagnostic payload.
        """
        keys = tuple(metric_keys)
        payload = dict(details or {})
        payload["metric_keys"] = list(keys)
        super().__init__(message, details=payload)
        self.metric_keys: tuple[str, ...] = keys
