# tests/unit/adapters/dependencies/test_assumptions_dependency.py
from __future__ import annotations

from typing import Any

import pytest

from lore_engine.adapters.dependencies import assumptions as deps
from lore_engine.config.settings import Settings


def _settings(**overrides: Any) -> Settings:
    return Settings(DATABASE_URL="postgresql+asyncpg://u:p@localhost:5432/lore_test", **overrides)


@pytest.fixture
def wired(monkeypatch: pytest.MonkeyPatch, uow_factory: Any) -> list[Any]:
    calls: list[Any] = []
    sentinel_sessionmaker = object()

    monkeypatch.setattr(deps, "init_engine_and_sessionmaker", calls.append)
    monkeypatch.setattr(deps, "get_sessionmaker", lambda: sentinel_sessionmaker)

    def _make(session_factory: Any) -> Any:
        assert session_factory is sentinel_sessionmaker
        return uow_factory

    monkeypatch.setattr(deps, "make_uow_factory", _make)
    return calls


async def test_service_uses_untracked_settings(wired: list[Any], store: Any) -> None:
    settings = _settings(UNTRACKED_METRIC_CATEGORY="misc", UNTRACKED_METRIC_UNIT="ratio")
    store.add_benchmark("mystery_metric", 3)

    service = deps.build_assumptions_service(settings)
    entry = await service.get_assumption("mystery_metric")

    assert wired == [settings]
    assert entry is not None
    assert entry.category == "misc"
    assert entry.unit == "ratio"


async def test_service_honours_cache_flag(wired: list[Any], store: Any) -> None:
    service = deps.build_assumptions_service(_settings(ASSUMPTIONS_CACHE_ENABLED=False))

    await service.get_effective_value("creator_monthly_churn_rate", 5)
    await service.get_effective_value("creator_monthly_churn_rate", 5)

    assert store.benchmark_fetches == 2
    assert not service.is_ready


def test_shared_service_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    built: list[Settings] = []
    logging_calls: list[tuple[object, object]] = []
    settings = _settings(LOG_LEVEL="warning", SERVICE_NAME="lore-worker")

    monkeypatch.setattr(deps, "get_settings", lambda: settings)
    monkeypatch.setattr(
        deps,
        "configure_root_logging",
        lambda level, *, service: logging_calls.append((level, service)),
    )
    monkeypatch.setattr(deps, "build_assumptions_service", lambda s: built.append(s) or object())
    deps.get_assumptions_service.cache_clear()
    try:
        first = deps.get_assumptions_service()
        assert deps.get_assumptions_service() is first
        assert built == [settings]
        assert logging_calls == [("WARNING", "lore-worker")]
    finally:
        deps.get_assumptions_service.cache_clear()
