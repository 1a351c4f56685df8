# src/lore_engine/domain/interfaces/repositories/benchmark_repository.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Benchmark repository interface.

Purpose:
    Define the domain-level contract for reading research benchmark values
    from persistence into BenchmarkValue entities.

Layer:
    domain/interfaces/repositories

Notes:
    - This interface is storage-agnostic and must not depend on SQLAlchemy or
      any other infrastructure concerns.
    - Benchmarks are read-only from the engine's perspective.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from lore_engine.domain.entities.assumptions import BenchmarkValue, TierSnapshot

__all__ = ["BenchmarkRepository"]


class BenchmarkRepository(Protocol):
    """Repository interface for research benchmark values."""

    async def list_all(self) -> Sequence[BenchmarkValue]:
        """Return every benchmark value currently stored.

        No category filtering is applied; the resolver groups values itself.

        Returns:
            Sequence[BenchmarkValue]: All benchmark values.

        Raises:
            BenchmarkFetchFailed: If the benchmark source cannot be read. An
                unreachable source must never be reported as an empty list.
        """
        ...

    async def snapshot(self) -> TierSnapshot:
        """Return the row count and newest ``updated_at`` of the tier.

        Raises:
            BenchmarkFetchFailed: If the benchmark source cannot be read.
        """
        ...
