# src/lore_engine/application/uow.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Unit of Work boundary for assumption reads and override writes.

Purpose:
    Describe the transactional scope the assumptions service works in, and
    the helpers that run a unit of work to completion.

    * ``run_in_uow`` commits on success and rolls back on any error.
    * ``run_override_write`` does the same for the override tier and
      reports every failure, including ones raised by ``commit()`` itself,
      as ``OverrideWriteFailed`` naming the keys that were attempted.

Layer:
    application

Notes:
    - No SQLAlchemy imports here. The SQLAlchemy implementation lives in
      ``adapters/uow``.
    - The service opens one UnitOfWork per tier read and one per write, so
      callers pass a ``UnitOfWorkFactory`` rather than a live instance.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from contextlib import AbstractAsyncContextManager
from types import TracebackType
from typing import Any, Protocol, TypeVar, runtime_checkable

from lore_engine.domain.exceptions.assumptions import OverrideWriteFailed

__all__ = ["UnitOfWork", "UnitOfWorkFactory", "run_in_uow", "run_override_write"]

TResult = TypeVar("TResult")

#: Zero-argument callable returning a fresh, not yet entered UnitOfWork.
UnitOfWorkFactory = Callable[[], "UnitOfWork"]


@runtime_checkable
class UnitOfWork(Protocol, AbstractAsyncContextManager["UnitOfWork"]):
    """One transactional scope over the benchmark and override repositories."""

    async def __aenter__(self) -> UnitOfWork:
        raise NotImplementedError

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        raise NotImplementedError

    async def commit(self) -> None:
        raise NotImplementedError

    async def rollback(self) -> None:
        raise NotImplementedError

    def get_repository(self, repo_type: type[Any]) -> Any:
        """Return the repository bound to this scope for ``repo_type``.

        ``repo_type`` is usually a repository Protocol such as
        ``OverrideRepository``.
        """
        raise NotImplementedError


async def run_in_uow(  # noqa: UP047
    uow: UnitOfWork,
    fn: Callable[[UnitOfWork], Awaitable[TResult]],
) -> TResult:
    """Run ``fn`` inside ``uow``, committing on success and rolling back on error.

    Errors from ``fn`` or from the commit propagate unchanged.
    """
    async with uow as tx:
        try:
            result = await fn(tx)
        except Exception:
            await tx.rollback()
            raise
        await tx.commit()
        return result


async def run_override_write(
    uow: UnitOfWork,
    fn: Callable[[UnitOfWork], Awaitable[None]],
    *,
    operation: str,
    metric_keys: Sequence[str],
) -> None:
    """Run an override write to completion or fail it as a whole.

    Args:
        uow: Fresh UnitOfWork for this write.
        fn: Coroutine performing the repository calls.
        operation: Short name used in the error message (``save``, ``delete``).
        metric_keys: Every key the write touches.

    Raises:
        OverrideWriteFailed: Raised by the repository and passed through as
            is, or wrapping any other failure (commit, connection loss) with
            ``metric_keys`` and ``details["reason"]``. Nothing was persisted.
    """
    try:
        await run_in_uow(uow, fn)
    except OverrideWriteFailed:
        raise
    except Exception as exc:
        raise OverrideWriteFailed(
            f"Override {operation} failed.",
            metric_keys=tuple(metric_keys),
            details={"reason": type(exc).__name__},
        ) from exc
