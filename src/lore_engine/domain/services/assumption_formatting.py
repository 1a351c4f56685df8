# src/lore_engine/domain/services/assumption_formatting.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Unit-aware display formatting for assumption values."""

from __future__ import annotations

from lore_engine.domain.enums.assumptions import MetricUnit

__all__ = ["format_assumption_value"]


def _plain(value: float) -> str:
    # 5.0 -> "5", 2.5 -> "2.5"
    return str(int(value)) if float(value).is_integer() else str(value)


def _grouped(value: float) -> str:
    return f"{int(value):,}" if float(value).is_integer() else f"{value:,}"


def format_assumption_value(value: float, unit: str) -> str:
    """Render ``value`` for display according to ``unit``.

    Examples:
        >>> format_assumption_value(1234, "USD")
        '$1,234'
        >>> format_assumption_value(5, "percent")
        '5%'
        >>> format_assumption_value(1, "slots")
        '1 slot'
    """
    if unit == MetricUnit.USD.value:
        return f"${_grouped(value)}"
    if unit == MetricUnit.PERCENT.value:
        return f"{_plain(value)}%"
    if unit in (MetricUnit.IMPRESSIONS.value, MetricUnit.VIEWS.value, MetricUnit.COUNT.value):
        return _grouped(value)
    if unit == MetricUnit.SLOTS.value:
        suffix = "" if value == 1 else "s"
        return f"{_plain(value)} slot{suffix}"
    return _plain(value)
