# tests/unit/application/test_assumptions_service_writes.py
"""AssumptionsService write path: inference, atomic batches, invalidation."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from lore_engine.application.services.assumptions_service import AssumptionsService
from lore_engine.domain.entities.assumptions import MetricDefinition, MetricKey, OverrideDraft
from lore_engine.domain.enums.assumptions import AssumptionSource
from lore_engine.domain.exceptions.assumptions import AssumptionsSchemaError, OverrideWriteFailed
from lore_engine.domain.services.assumptions_schema import SchemaRegistry


@pytest.fixture
def service(uow_factory: Any, small_registry: SchemaRegistry) -> AssumptionsService:
    return AssumptionsService(uow_factory, registry=small_registry)


def _draft(key: str, value: float, **kwargs: Any) -> OverrideDraft:
    return OverrideDraft(metric_key=MetricKey(key), value=value, **kwargs)


async def test_save_infers_category_and_unit_from_registry(
    store: Any, service: AssumptionsService
) -> None:
    draft = await service.save_assumption("churn_rate", 3.5, notes="post-launch", actor="cfo")

    assert draft.category == "growth"
    assert draft.unit == "percent"
    saved = store.overrides["churn_rate"]
    assert saved.value == 3.5
    assert saved.category == "growth"
    assert saved.notes == "post-launch"
    assert saved.created_by == "cfo"


async def test_save_unknown_key_uses_untracked_category(
    store: Any, service: AssumptionsService
) -> None:
    draft = await service.save_assumption("merch_margin", 35)

    assert draft.category == "general"
    assert draft.unit is None
    entry = await service.get_assumption("merch_margin")
    assert entry is not None
    assert entry.category == "general"
    assert entry.unit == "number"
    assert entry.source is AssumptionSource.OVERRIDE


async def test_explicit_category_and_unit_are_kept(store: Any, service: AssumptionsService) -> None:
    draft = await service.save_assumption("merch_margin", 35, unit="percent", category="commerce")

    assert draft.category == "commerce"
    assert store.overrides["merch_margin"].unit == "percent"


async def test_save_is_visible_on_next_read(store: Any, service: AssumptionsService) -> None:
    store.add_benchmark("churn_rate", 6.5)
    assert await service.get_effective_value("churn_rate") == 6.5
    version = service.snapshot_version

    await service.save_assumption("churn_rate", 2)

    assert service.snapshot_version == version + 1
    entry = await service.get_assumption("churn_rate")
    assert entry is not None
    assert entry.value == 2
    assert entry.benchmark_value == 6.5
    assert store.benchmark_fetches == 2


async def test_delete_reverts_to_lower_tier(store: Any, service: AssumptionsService) -> None:
    store.add_benchmark("churn_rate", 6.5)
    store.add_override("churn_rate", 2)
    store.add_override("growth_rate", 9)

    await service.delete_assumption("churn_rate")
    await service.delete_assumption("growth_rate")

    assert await service.get_effective_value("churn_rate") == 6.5
    growth = await service.get_assumption("growth_rate")
    assert growth is not None
    assert growth.source is AssumptionSource.SCHEMA_DEFAULT
    assert growth.value == 4


async def test_delete_missing_override_is_a_no_op(store: Any, service: AssumptionsService) -> None:
    await service.delete_assumption("never_saved")

    assert store.overrides == {}
    assert store.commits == 1


async def test_last_write_wins_for_same_key(store: Any, service: AssumptionsService) -> None:
    await service.save_assumption("pro_arpu", 29, actor="alice")
    await service.save_assumption("pro_arpu", 34, actor="bob")

    saved = store.overrides["pro_arpu"]
    assert saved.value == 34
    assert saved.created_by == "alice"
    assert saved.updated_by == "bob"


async def test_concurrent_saves_of_distinct_keys_all_land(
    store: Any, service: AssumptionsService
) -> None:
    await asyncio.gather(
        service.save_assumption("churn_rate", 1),
        service.save_assumption("growth_rate", 2),
        service.save_assumption("hostread_cpm", 3),
    )

    merged = await service.get_effective_assumptions()
    assert merged.source_trace()[AssumptionSource.OVERRIDE] == (
        "growth_rate",
        "churn_rate",
        "hostread_cpm",
    )


async def test_invalid_value_is_rejected_before_any_write(
    store: Any, service: AssumptionsService
) -> None:
    with pytest.raises(AssumptionsSchemaError):
        await service.save_assumption("churn_rate", float("nan"))

    assert store.write_calls == []


async def test_save_many_writes_one_batch(store: Any, service: AssumptionsService) -> None:
    drafts = [_draft("churn_rate", 3), _draft("custom_metric", 10, notes="new")]

    written = await service.save_multiple_assumptions(drafts, actor="cfo")

    assert [d.category for d in written] == ["growth", "general"]
    assert store.write_calls == [("upsert", ("churn_rate", "custom_metric"), "cfo")]
    assert set(store.overrides) == {"churn_rate", "custom_metric"}


async def test_save_many_with_empty_input_skips_write(
    store: Any, service: AssumptionsService
) -> None:
    version = service.snapshot_version

    assert await service.save_multiple_assumptions([]) == ()
    assert store.write_calls == []
    assert service.snapshot_version == version


async def test_failed_batch_persists_nothing(store: Any, service: AssumptionsService) -> None:
    store.add_override("churn_rate", 9)
    await service.get_effective_assumptions()
    store.reject_keys = {"growth_rate"}

    with pytest.raises(OverrideWriteFailed) as excinfo:
        await service.save_multiple_assumptions(
            [_draft("churn_rate", 1), _draft("growth_rate", 2), _draft("hostread_cpm", 3)]
        )

    assert excinfo.value.metric_keys == ("churn_rate", "growth_rate", "hostread_cpm")
    assert store.overrides["churn_rate"].value == 9
    assert set(store.overrides) == {"churn_rate"}
    assert store.rollbacks == 1
    # A failed write leaves the cached map in place.
    assert service.is_ready
    assert await service.get_effective_value("churn_rate") == 9


async def test_commit_failure_is_reported_as_write_failure(
    store: Any, service: AssumptionsService
) -> None:
    store.commit_error = ConnectionResetError("lost connection")

    with pytest.raises(OverrideWriteFailed) as excinfo:
        await service.save_assumption("churn_rate", 1)

    assert excinfo.value.metric_keys == ("churn_rate",)
    assert isinstance(excinfo.value.__cause__, ConnectionResetError)
    assert store.overrides == {}


async def test_repository_write_failure_passes_through(
    store: Any, service: AssumptionsService
) -> None:
    original = OverrideWriteFailed("constraint", metric_keys=["churn_rate"])
    store.write_error = original

    with pytest.raises(OverrideWriteFailed) as excinfo:
        await service.save_assumption("churn_rate", 1)

    assert excinfo.value is original


async def test_delete_failure_carries_key(store: Any, service: AssumptionsService) -> None:
    store.write_error = RuntimeError("boom")

    with pytest.raises(OverrideWriteFailed) as excinfo:
        await service.delete_assumption("churn_rate")

    assert excinfo.value.metric_keys == ("churn_rate",)


async def test_churn_lifecycle_default_benchmark_override_revert(
    store: Any, uow_factory: Any
) -> None:
    registry = SchemaRegistry(
        {
            "subscriptions": (
                MetricDefinition(
                    key=MetricKey("churn"),
                    category="subscriptions",
                    unit="percent",
                    label="Churn",
                    default_value=5,
                ),
            )
        }
    )
    service = AssumptionsService(uow_factory, registry=registry)

    entry = await service.get_assumption("churn")
    assert entry is not None
    assert (entry.value, entry.source, entry.unit) == (5, AssumptionSource.SCHEMA_DEFAULT, "percent")

    store.add_benchmark("churn", 3.2)
    service.invalidate()
    entry = await service.get_assumption("churn")
    assert entry is not None
    assert (entry.value, entry.source) == (3.2, AssumptionSource.BENCHMARK)

    await service.save_assumption("churn", 2.0, notes="revised Q3")
    entry = await service.get_assumption("churn")
    assert entry is not None
    assert (entry.value, entry.source, entry.benchmark_value) == (
        2.0,
        AssumptionSource.OVERRIDE,
        3.2,
    )
    assert entry.notes == "revised Q3"

    await service.delete_assumption("churn")
    entry = await service.get_assumption("churn")
    assert entry is not None
    assert (entry.value, entry.source) == (3.2, AssumptionSource.BENCHMARK)
    assert [e.metric_key for e in await service.list_by_category("subscriptions")] == ["churn"]


async def test_repeated_save_leaves_a_single_override(
    store: Any, service: AssumptionsService
) -> None:
    await service.save_assumption("x", 10)
    await service.save_assumption("x", 10)

    assert list(store.overrides) == ["x"]
    assert store.overrides["x"].value == 10


async def test_save_then_delete_reverts_to_schema_default(
    store: Any, service: AssumptionsService
) -> None:
    await service.save_assumption("churn_rate", 10)
    assert await service.get_effective_value("churn_rate") == 10

    await service.delete_assumption("churn_rate")

    assert await service.get_effective_value("churn_rate") == 5
