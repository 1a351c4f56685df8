# src/lore_engine/infrastructure/database/models/assumptions.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Assumption tier tables: research benchmarks and user overrides."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lore_engine.infrastructure.database.models.base import (
    AuditActorMixin,
    Base,
    IdentityMixin,
    TimestampMixin,
)

__all__ = ["RdBenchmark", "CfoAssumption"]


class RdBenchmark(IdentityMixin, TimestampMixin, Base):
    """Research benchmark values.

    Schema:
        rd_benchmarks

    Notes:
        - Populated by the external research process; read-only to the
          assumption engine.
        - ``metric_key`` is unique: one active value per key.
    """

    __tablename__ = "rd_benchmarks"

    metric_key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    value: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    confidence: Mapped[str | None] = mapped_column(String(32), nullable=True)


class CfoAssumption(IdentityMixin, TimestampMixin, AuditActorMixin, Base):
    """User overrides of assumption values.

    Schema:
        cfo_assumptions

    Notes:
        - ``metric_key`` is the upsert conflict target; at most one row per key.
        - ``category`` is recorded at write time (registry category or
          "general" for untracked keys).
    """

    __tablename__ = "cfo_assumptions"

    metric_key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    value: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="cfo")
