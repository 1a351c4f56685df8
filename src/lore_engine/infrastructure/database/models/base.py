# src/lore_engine/infrastructure/database/models/base.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Declarative Base and persistence mixins.

This module defines:
    - A project-wide SQLAlchemy Declarative Base with deterministic naming
      conventions (for stable Alembic diffs).
    - Persistence mixins for identity (UUIDv4), audit timestamps (UTC), and
      the audit actor.

Design Goals:
    * UTC everywhere.
    * Deterministic schema: Alembic-friendly naming conventions prevent churn.
    * Persistence-only; no domain/business behavior.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import MetaData
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime, String

__all__ = [
    "metadata",
    "Base",
    "IdentityMixin",
    "TimestampMixin",
    "AuditActorMixin",
    "now_utc",
]

#: Deterministic naming conventions for Alembic-friendly diffs.
#: Ref: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTIONS: dict[str, str] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTIONS)


def now_utc() -> datetime:
    """Return the current UTC time with timezone info."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative Base for all ORM models.

    Attaches the metadata with stable naming conventions. Tables carry no
    schema; the engine maps them onto ``Settings.db_schema``.
    """

    metadata = metadata


class IdentityMixin:
    """Mixin providing a UUIDv4 primary key ``id`` column."""

    id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )


class TimestampMixin:
    """Mixin providing ``created_at`` and ``updated_at`` timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now_utc,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now_utc,
        onupdate=now_utc,
        server_default=func.now(),
    )


class AuditActorMixin:
    """Mixin for tracking the actor responsible for changes."""

    created_by: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
