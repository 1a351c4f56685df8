# src/lore_engine/adapters/dependencies/assumptions.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Assumptions service dependency wiring.

Purpose:
    Build a process-wide :class:`AssumptionsService` backed by the core
    async_sessionmaker and configured from :class:`Settings`.

Layer:
    adapters/dependencies
"""

from __future__ import annotations

from functools import lru_cache

from lore_engine.adapters.uow import make_uow_factory
from lore_engine.application.services.assumptions_service import AssumptionsService
from lore_engine.config.settings import Settings, get_settings
from lore_engine.infrastructure.database.session import (
    get_sessionmaker,
    init_engine_and_sessionmaker,
)
from lore_engine.infrastructure.logging.logger import configure_root_logging


def build_assumptions_service(settings: Settings) -> AssumptionsService:
    """Construct an AssumptionsService for the given settings.

    Behavior:
        - Ensures the global engine/sessionmaker are initialized (idempotent).
        - Wires a UnitOfWork factory so each tier read gets its own session.
        - Applies cache and untracked-metric settings.
    """
    init_engine_and_sessionmaker(settings)
    return AssumptionsService(
        make_uow_factory(get_sessionmaker()),
        cache_enabled=settings.assumptions_cache_enabled,
        untracked_category=settings.untracked_metric_category,
        untracked_unit=settings.untracked_metric_unit,
    )


@lru_cache(maxsize=1)
def get_assumptions_service() -> AssumptionsService:
    """Return the shared AssumptionsService, configuring logging on first use.

    The merged-map cache lives on this instance, so sharing it is what makes
    reads cheap between writes. Call ``get_assumptions_service.cache_clear()``
    in tests.
    """
    settings = get_settings()
    configure_root_logging(settings.log_level, service=settings.service_name)
    return build_assumptions_service(settings)
