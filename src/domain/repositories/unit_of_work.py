"""Unit of work interface.

A UnitOfWork is one atomic transaction against the store.  Used as an async
context manager it commits when the block exits normally and rolls back
when the block raises, so a recalculation cascade is either applied in full
or not at all.  Repositories are only valid inside the block.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from types import TracebackType

from .audit import AuditLogRepository
from .quotes import QuoteRepository


class UnitOfWork(ABC):
    quotes: QuoteRepository
    audit_logs: AuditLogRepository

    @abstractmethod
    async def _begin(self) -> None:
        """Open the transaction and bind quotes / audit_logs to it."""

    @abstractmethod
    async def commit(self) -> None:
        """Commit.  Raises TransactionConflictError on a concurrent-write conflict."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard every change made in this unit of work."""

    async def _close(self) -> None:
        """Release resources; called once after commit or rollback."""

    async def __aenter__(self) -> UnitOfWork:
        await self._begin()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            if exc is None:
                await self.commit()
            else:
                await self.rollback()
        finally:
            await self._close()


UnitOfWorkFactory = Callable[[], UnitOfWork]
