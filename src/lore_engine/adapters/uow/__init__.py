# src/lore_engine/adapters/uow/__init__.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""
Unit of Work implementations (Adapters Layer)

Purpose:
    Provide concrete UnitOfWork implementations backed by SQLAlchemy
    AsyncSession. Application-layer code must depend only on the
    `UnitOfWork` protocol from `lore_engine.application.uow`.

Exports:
    - SqlAlchemyUnitOfWork: SQLAlchemy-backed UnitOfWork.
    - make_uow_factory: zero-argument UoW factory for AssumptionsService.
"""

from __future__ import annotations

from .sqlalchemy_uow import SqlAlchemyUnitOfWork, make_uow_factory

__all__ = ["SqlAlchemyUnitOfWork", "make_uow_factory"]
