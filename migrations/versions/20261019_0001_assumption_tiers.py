"""Create the assumption tier tables.

Revision ID: 20261019_0001_assumption_tiers
Revises:
Create Date: 2026-10-19

Creates:
    - rd_benchmarks: research benchmark values, one row per metric key.
    - cfo_assumptions: user overrides, one row per metric key; the unique
      index on metric_key is the upsert conflict target.
"""

from __future__ import annotations

import os
from collections.abc import Sequence

from alembic import op
from sqlalchemy import Column, DateTime, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "20261019_0001_assumption_tiers"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

_SCHEMA = os.getenv("DB_SCHEMA", "public") or None


def _timestamps() -> list[Column]:
    return [
        Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("now()")),
        Column("updated_at", DateTime(timezone=True), nullable=False, server_default=text("now()")),
    ]


def upgrade() -> None:
    """Create rd_benchmarks and cfo_assumptions with unique metric_key indexes."""
    op.create_table(
        "rd_benchmarks",
        Column("id", UUID(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        Column("metric_key", String(length=128), nullable=False),
        Column("value", Numeric(20, 6), nullable=False),
        Column("unit", String(length=32), nullable=True),
        Column("confidence", String(length=32), nullable=True),
        schema=_SCHEMA,
    )
    op.create_index(
        "ix_rd_benchmarks_metric_key",
        "rd_benchmarks",
        ["metric_key"],
        unique=True,
        schema=_SCHEMA,
    )

    op.create_table(
        "cfo_assumptions",
        Column("id", UUID(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        Column("created_by", String(length=255), nullable=True),
        Column("updated_by", String(length=255), nullable=True),
        Column("metric_key", String(length=128), nullable=False),
        Column("value", Numeric(20, 6), nullable=False),
        Column("unit", String(length=32), nullable=True),
        Column("category", String(length=64), nullable=True),
        Column("notes", Text, nullable=True),
        Column("source", String(length=32), nullable=False, server_default="cfo"),
        schema=_SCHEMA,
    )
    op.create_index(
        "ix_cfo_assumptions_metric_key",
        "cfo_assumptions",
        ["metric_key"],
        unique=True,
        schema=_SCHEMA,
    )


def downgrade() -> None:
    """Drop both tier tables."""
    op.drop_index("ix_cfo_assumptions_metric_key", table_name="cfo_assumptions", schema=_SCHEMA)
    op.drop_table("cfo_assumptions", schema=_SCHEMA)
    op.drop_index("ix_rd_benchmarks_metric_key", table_name="rd_benchmarks", schema=_SCHEMA)
    op.drop_table("rd_benchmarks", schema=_SCHEMA)
