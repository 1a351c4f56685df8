# src/lore_engine/adapters/presenters/assumptions_presenter.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Presenter: effective assumptions → grouped consumer payloads.

Purpose:
    Map a merged EffectiveAssumptionMap into pydantic payloads grouped by
    registry category, carrying category labels and display-formatted values
    next to the raw numbers.

Layer:
    adapters/presenters
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from lore_engine.domain.entities.assumptions import EffectiveAssumption
from lore_engine.domain.services.assumption_formatting import format_assumption_value
from lore_engine.domain.services.assumption_resolver import EffectiveAssumptionMap
from lore_engine.domain.services.assumptions_schema import CATEGORY_LABELS
from lore_engine.infrastructure.logging.logger import get_json_logger

__all__ = [
    "AssumptionItemPayload",
    "AssumptionCategoryPayload",
    "AssumptionsPayload",
    "present_effective_assumptions",
]

_LOGGER = get_json_logger(__name__)


class AssumptionItemPayload(BaseModel):
    """One effective assumption as exposed to consumers."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    metric_key: str
    label: str | None
    value: float
    display_value: str
    unit: str
    source: str
    is_overridden: bool
    schema_default: float | None
    benchmark_value: float | None
    notes: str | None
    updated_at: datetime | None
    updated_by: str | None


class AssumptionCategoryPayload(BaseModel):
    """All effective assumptions of one registry category."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    category: str
    label: str
    items: list[AssumptionItemPayload]


class AssumptionsPayload(BaseModel):
    """Grouped effective assumptions plus merge bookkeeping."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    categories: list[AssumptionCategoryPayload]
    total: int
    override_count: int
    benchmark_count: int
    data_source: str
    last_override_update: datetime | None


def _map_entry(entry: EffectiveAssumption) -> AssumptionItemPayload:
    return AssumptionItemPayload(
        metric_key=entry.metric_key,
        label=entry.label,
        value=entry.value,
        display_value=format_assumption_value(entry.value, entry.unit),
        unit=entry.unit,
        source=entry.source.value,
        is_overridden=entry.is_overridden,
        schema_default=entry.schema_default,
        benchmark_value=entry.benchmark_value,
        notes=entry.notes,
        updated_at=entry.updated_at,
        updated_by=entry.updated_by,
    )


def present_effective_assumptions(assumptions: EffectiveAssumptionMap) -> AssumptionsPayload:
    """Present a merged map grouped by registry category.

    Categories follow registry declaration order and items follow definition
    order within each category. Untracked keys are not part of any registry
    category and are therefore omitted; they only count towards ``total``.
    """
    groups: list[AssumptionCategoryPayload] = []
    for category in assumptions.registry.categories():
        entries = assumptions.list_by_category(category)
        groups.append(
            AssumptionCategoryPayload(
                category=category,
                label=CATEGORY_LABELS.get(category, category),
                items=[_map_entry(e) for e in entries],
            )
        )

    summary = assumptions.summary()
    payload = AssumptionsPayload(
        categories=groups,
        total=summary.total,
        override_count=summary.override_count,
        benchmark_count=summary.benchmark_count,
        data_source=summary.data_source.value,
        last_override_update=summary.last_override_update,
    )

    _LOGGER.debug(
        "assumptions_presenter_grouped",
        extra={
            "categories": len(groups),
            "total": summary.total,
            "override_count": summary.override_count,
        },
    )
    return payload
