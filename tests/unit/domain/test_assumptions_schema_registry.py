# tests/unit/domain/test_assumptions_schema_registry.py
"""Unit tests for the assumption schema registry and catalog."""

from __future__ import annotations

import pytest

from lore_engine.domain.entities.assumptions import MetricDefinition, MetricKey
from lore_engine.domain.exceptions.assumptions import AssumptionsSchemaError
from lore_engine.domain.services.assumptions_schema import (
    CATEGORY_LABELS,
    NO_SCHEMA_DEFAULT,
    SchemaRegistry,
    get_default_registry,
)


def _definition(key: str, category: str = "growth", default: float = 1) -> MetricDefinition:
    return MetricDefinition(
        key=MetricKey(key),
        category=category,
        unit="percent",
        label=key.title(),
        default_value=default,
    )


def test_lookups_for_registered_key(small_registry: SchemaRegistry) -> None:
    assert "churn_rate" in small_registry
    assert small_registry.get_default_value("churn_rate") == 5
    assert small_registry.get_category("churn_rate") == "growth"
    assert small_registry.get_unit("hostread_cpm") == "USD"
    definition = small_registry.get_definition("hostread_cpm")
    assert definition is not None
    assert definition.benchmark_keys == ("hostread_cpm_low", "hostread_cpm_high")


def test_unknown_key_is_tolerated(small_registry: SchemaRegistry) -> None:
    assert "nope" not in small_registry
    assert small_registry.get_definition("nope") is None
    assert small_registry.get_category("nope") is None
    assert small_registry.get_unit("nope") is None
    assert small_registry.get_default_value("nope") == NO_SCHEMA_DEFAULT == 0.0


def test_categories_and_keys_keep_declaration_order(small_registry: SchemaRegistry) -> None:
    assert small_registry.categories() == ("growth", "advertising")
    assert small_registry.all_metric_keys() == (
        "growth_rate",
        "churn_rate",
        "hostread_cpm",
        "bonus_slots",
    )
    assert len(small_registry) == 4
    assert [d.key for d in small_registry.list_by_category("growth")] == [
        "growth_rate",
        "churn_rate",
    ]
    assert small_registry.list_by_category("events") == ()


def test_duplicate_key_across_categories_is_rejected() -> None:
    with pytest.raises(AssumptionsSchemaError) as excinfo:
        SchemaRegistry(
            {
                "growth": (_definition("dup"),),
                "events": (_definition("dup", category="events"),),
            }
        )
    assert excinfo.value.details["metric_key"] == "dup"


def test_definition_filed_under_wrong_category_is_rejected() -> None:
    with pytest.raises(AssumptionsSchemaError):
        SchemaRegistry({"events": (_definition("x", category="growth"),)})


def test_definition_rejects_more_than_two_benchmark_keys() -> None:
    with pytest.raises(AssumptionsSchemaError):
        MetricDefinition(
            key=MetricKey("x"),
            category="growth",
            unit="percent",
            label="X",
            default_value=1,
            benchmark_keys=("a", "b", "c"),
        )


@pytest.mark.parametrize("bad_default", [float("nan"), float("inf")])
def test_definition_rejects_non_finite_default(bad_default: float) -> None:
    with pytest.raises(AssumptionsSchemaError):
        _definition("x", default=bad_default)


def test_default_catalog_shape() -> None:
    registry = get_default_registry()

    assert registry is get_default_registry()
    assert registry.categories() == (
        "growth",
        "subscriptions",
        "advertising",
        "impressions",
        "events",
    )
    assert registry.get_default_value("creator_monthly_churn_rate") == 5
    assert registry.get_unit("ad_slots_audio") == "slots"
    assert registry.get_category("avg_ticket_price") == "events"
    for category in registry.categories():
        assert category in CATEGORY_LABELS
