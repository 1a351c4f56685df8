# src/lore_engine/domain/enums/assumptions.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Assumption enumerations.

Purpose:
    Define the stable identifiers used by the layered assumption model:
    the value tiers (sources), the registered metric categories, and the
    display units.

Layer:
    domain

Notes:
    - Values are lowercase string identifiers suitable for JSON payloads and
      persistence columns.
    - Categories and units are open sets at the storage boundary (overrides
      and benchmarks may reference keys the registry does not know), so
      entities carry plain strings and these enums name the known values.
"""

from __future__ import annotations

from enum import Enum


class AssumptionSource(str, Enum):
    """Value tier that produced an effective assumption.

    Precedence (highest first):

        OVERRIDE > BENCHMARK > SCHEMA_DEFAULT
    """

    SCHEMA_DEFAULT = "schema_default"
    BENCHMARK = "benchmark"
    OVERRIDE = "override"


class MetricCategory(str, Enum):
    """Registered assumption categories, in catalog declaration order."""

    GROWTH = "growth"
    SUBSCRIPTIONS = "subscriptions"
    ADVERTISING = "advertising"
    IMPRESSIONS = "impressions"
    EVENTS = "events"

    # Synthesized for metric keys the registry does not know.
    GENERAL = "general"


class MetricUnit(str, Enum):
    """Display units for assumption values."""

    PERCENT = "percent"
    USD = "USD"
    COUNT = "count"
    IMPRESSIONS = "impressions"
    VIEWS = "views"
    SLOTS = "slots"

    # Generic fallback for untracked metrics.
    NUMBER = "number"


__all__ = ["AssumptionSource", "MetricCategory", "MetricUnit"]
