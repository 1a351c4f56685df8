# src/lore_engine/adapters/uow/sqlalchemy_uow.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""SQLAlchemy-backed Unit of Work implementation.

Purpose:
    Concrete implementation of the application-layer UnitOfWork protocol on
    top of SQLAlchemy's AsyncSession. Each instance coordinates the benchmark
    and override repositories within a single transactional scope.

Layer:
    adapters/uow
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import TracebackType
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lore_engine.adapters.repositories.benchmark_repository import (
    SqlAlchemyBenchmarkRepository,
)
from lore_engine.adapters.repositories.override_repository import (
    SqlAlchemyOverrideRepository,
)
from lore_engine.application.uow import UnitOfWork, UnitOfWorkFactory
from lore_engine.domain.interfaces.repositories.benchmark_repository import (
    BenchmarkRepository as BenchmarkRepositoryProtocol,
)
from lore_engine.domain.interfaces.repositories.override_repository import (
    OverrideRepository as OverrideRepositoryProtocol,
)

RepoFactory = Callable[[AsyncSession], Any]


class SqlAlchemyUnitOfWork(UnitOfWork):
    """SQLAlchemy-based UnitOfWork implementation.

    Usage:

        async with SqlAlchemyUnitOfWork(session_factory=sm) as uow:
            repo = uow.get_repository(OverrideRepository)
            await repo.upsert_many(drafts, actor="cfo@example.com")
            await uow.commit()

    Instances are single-use at a time; nested ``async with`` on the same
    instance is rejected.
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        repo_factories: Mapping[type[Any], RepoFactory] | None = None,
    ) -> None:
        """Initialize the UnitOfWork.

        Args:
            session_factory:
                Factory for creating new AsyncSession instances.
            repo_factories:
                Optional mapping from repository type to a factory taking an
                AsyncSession. Entries override the default wiring for the
                benchmark and override repositories.
        """
        self._session_factory = session_factory
        self._session: AsyncSession | None = None

        # Protocol keys for services, concrete keys for direct callers.
        default_factories: dict[type[Any], RepoFactory] = {
            BenchmarkRepositoryProtocol: lambda s: SqlAlchemyBenchmarkRepository(session=s),
            SqlAlchemyBenchmarkRepository: lambda s: SqlAlchemyBenchmarkRepository(session=s),
            OverrideRepositoryProtocol: lambda s: SqlAlchemyOverrideRepository(session=s),
            SqlAlchemyOverrideRepository: lambda s: SqlAlchemyOverrideRepository(session=s),
        }

        self._repo_factories: dict[type[Any], RepoFactory] = {
            **default_factories,
            **(dict(repo_factories) if repo_factories is not None else {}),
        }

        self._repos: dict[type[Any], Any] = {}
        self._committed = False
        self._rolled_back = False

    async def __aenter__(self) -> SqlAlchemyUnitOfWork:
        """Open a new AsyncSession.

        Raises:
            RuntimeError: If a session is already active (nested usage).
        """
        if self._session is not None:
            raise RuntimeError("UnitOfWork is already active; nested usage is not supported.")

        self._session = self._session_factory()
        self._committed = False
        self._rolled_back = False
        self._repos.clear()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        """Roll back on error (if still pending), then close the session.

        Exceptions raised inside the block are always propagated.
        """
        try:
            if exc_type is not None and not self._rolled_back:
                await self.rollback()
        finally:
            if self._session is not None:
                await self._session.close()
                self._session = None
            self._repos.clear()
        return None

    async def commit(self) -> None:
        """Commit the current transaction.

        No-op if the UnitOfWork was already committed or rolled back.

        Raises:
            RuntimeError: If called without an active session.
        """
        if self._session is None:
            raise RuntimeError("Cannot commit: UnitOfWork has no active session.")

        if self._committed or self._rolled_back:
            return

        await self._session.commit()
        self._committed = True

    async def rollback(self) -> None:
        """Roll back the current transaction; no-op when nothing is pending."""
        if self._session is None:
            return

        if self._rolled_back or self._committed:
            return

        await self._session.rollback()
        self._rolled_back = True

    def get_repository(self, repo_type: type[Any]) -> Any:
        """Return the repository bound to the active session for ``repo_type``.

        Instances are cached for the lifetime of the current context.

        Raises:
            RuntimeError: If called outside of an active UnitOfWork context.
            KeyError: If no factory is registered for ``repo_type``.
        """
        if self._session is None:
            raise RuntimeError(
                "get_repository() called outside of an active UnitOfWork scope. "
                "Use 'async with uow:' before requesting repositories.",
            )

        if repo_type in self._repos:
            return self._repos[repo_type]

        try:
            factory = self._repo_factories[repo_type]
        except KeyError as exc:
            raise KeyError(
                f"No repository factory registered for type {repo_type!r}.",
            ) from exc

        repo = factory(self._session)
        self._repos[repo_type] = repo
        return repo


def make_uow_factory(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    repo_factories: Mapping[type[Any], RepoFactory] | None = None,
) -> UnitOfWorkFactory:
    """Return a zero-argument factory producing fresh SqlAlchemyUnitOfWork instances.

    Each call yields an independent UoW (and therefore its own session), which
    lets the assumptions service read both tiers concurrently.
    """

    def _factory() -> UnitOfWork:
        return SqlAlchemyUnitOfWork(session_factory=session_factory, repo_factories=repo_factories)

    return _factory
