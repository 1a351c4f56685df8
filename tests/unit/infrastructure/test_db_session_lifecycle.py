# tests/unit/infrastructure/test_db_session_lifecycle.py
from __future__ import annotations

from typing import Any

import pytest

from lore_engine.config.settings import Settings
from lore_engine.infrastructure.database import session as db


def _settings(
    url: str = "postgresql+asyncpg://u:p@localhost:5432/lore_test", **overrides: Any
) -> Settings:
    return Settings(DATABASE_URL=url, **overrides)


@pytest.fixture(autouse=True)
def _clean_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(db, "_engine", None)
    monkeypatch.setattr(db, "_sessionmaker", None)


def test_sessionmaker_requires_init() -> None:
    with pytest.raises(RuntimeError, match="not initialized"):
        db.get_sessionmaker()


def test_init_is_idempotent() -> None:
    db.init_engine_and_sessionmaker(_settings())
    first = db.get_sessionmaker()

    db.init_engine_and_sessionmaker(_settings("postgresql+asyncpg://u:p@elsewhere:5432/lore"))

    assert db.get_sessionmaker() is first
    assert first.kw["expire_on_commit"] is False


def test_empty_url_is_rejected() -> None:
    with pytest.raises(ValueError):
        db.init_engine_and_sessionmaker(_settings(""))


async def test_dispose_resets_state() -> None:
    db.init_engine_and_sessionmaker(_settings())

    await db.dispose_engine()

    with pytest.raises(RuntimeError):
        db.get_sessionmaker()


def test_engine_places_tables_in_configured_schema() -> None:
    db.init_engine_and_sessionmaker(_settings(DB_SCHEMA="analytics"))

    assert db._engine is not None
    assert db._engine.get_execution_options()["schema_translate_map"] == {None: "analytics"}


def test_blank_schema_leaves_tables_unqualified() -> None:
    db.init_engine_and_sessionmaker(_settings(DB_SCHEMA=""))

    assert db._engine is not None
    assert "schema_translate_map" not in db._engine.get_execution_options()
