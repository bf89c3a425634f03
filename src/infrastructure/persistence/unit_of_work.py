"""SQLAlchemy implementation of UnitOfWork.

One SqlUnitOfWork = one AsyncSession = one database transaction.  Errors
that mean "another transaction got there first" are translated into
TransactionConflictError so callers can retry the whole unit:

  - SQLSTATE 40001 (serialization_failure) and 40P01 (deadlock_detected)
  - IntegrityError, raised when two transactions create the placeholder
    quote for the same (asset_id, quote_date) concurrently
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import TracebackType

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.errors import TransactionConflictError
from src.domain.repositories.unit_of_work import UnitOfWork
from src.infrastructure.persistence.repositories import get_repositories

logger = logging.getLogger(__name__)

CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})


def is_conflict(exc: BaseException) -> bool:
    if isinstance(exc, IntegrityError):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return code in CONFLICT_SQLSTATES
    return False


class SqlUnitOfWork(UnitOfWork):
    def __init__(self, session_factory: Callable[[], AsyncSession] | None = None) -> None:
        if session_factory is None:
            from src.infrastructure.database import AsyncSessionLocal

            session_factory = AsyncSessionLocal
        self._session_factory = session_factory
        self._session: AsyncSession | None = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("SqlUnitOfWork used outside of its async with block")
        return self._session

    async def _begin(self) -> None:
        self._session = self._session_factory()
        await self._session.begin()
        repos = get_repositories(self._session)
        self.quotes = repos.quotes
        self.audit_logs = repos.audit_logs

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except DBAPIError as exc:
            if is_conflict(exc):
                raise TransactionConflictError(f"Transaction conflict on commit: {exc}") from exc
            raise

    async def rollback(self) -> None:
        await self.session.rollback()

    async def _close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await super().__aexit__(exc_type, exc, tb)
        if exc is not None and is_conflict(exc):
            logger.info("Rolled back conflicting transaction: %s", exc)
            raise TransactionConflictError(f"Transaction conflict: {exc}") from exc
