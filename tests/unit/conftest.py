"""In-memory repository and unit-of-work fakes for service and API tests.

InMemoryStore plays the database: a unit of work copies its rows on begin,
works on the copy, and publishes the copy only on commit, so a rolled-back
recalculation leaves the store exactly as it was.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID

import pytest

from src.domain.errors import TransactionConflictError
from src.domain.models.audit import AuditLogEntry
from src.domain.models.quotes import Quote
from src.domain.registry import DependencyRegistry
from src.domain.repositories.audit import AuditLogRepository
from src.domain.repositories.quotes import QuoteRepository
from src.domain.repositories.unit_of_work import UnitOfWork


class InMemoryStore:
    def __init__(self) -> None:
        self.quotes: dict[tuple[str, date], Quote] = {}
        self.audit_logs: list[AuditLogEntry] = []
        self.commits = 0
        self.rollbacks = 0
        self.conflicts_remaining = 0
        self.fail_on_asset: str | None = None

    def seed(self, day: date, **values: float) -> None:
        for asset_id, value in values.items():
            placeholder = Quote.placeholder(asset_id, day)
            self.quotes[(asset_id, day)] = placeholder.model_copy(update={"value": value})

    def values(self, day: date) -> dict[str, float]:
        return {a: q.value for (a, d), q in self.quotes.items() if d == day}


class InMemoryQuoteRepository(QuoteRepository):
    def __init__(self, rows: dict[tuple[str, date], Quote], fail_on_asset: str | None) -> None:
        self._rows = rows
        self._fail_on_asset = fail_on_asset

    async def get_for_date(self, asset_id: str, quote_date: date) -> Quote | None:
        return self._rows.get((asset_id, quote_date))

    async def get_or_create(self, asset_id: str, quote_date: date) -> Quote:
        key = (asset_id, quote_date)
        if key not in self._rows:
            self._rows[key] = Quote.placeholder(asset_id, quote_date)
        return self._rows[key]

    async def save(self, quote: Quote) -> Quote:
        if quote.asset_id == self._fail_on_asset:
            raise RuntimeError(f"injected failure writing {quote.asset_id}")
        key = (quote.asset_id, quote.quote_date)
        existing = self._rows.get(key)
        if existing is None or existing.quote_id != quote.quote_id:
            raise LookupError(f"Quote {quote.quote_id} not found")
        self._rows[key] = quote
        return quote

    async def list_for_asset(
        self, asset_id: str, start: date | None = None, end: date | None = None
    ) -> list[Quote]:
        rows = [
            q
            for (a, d), q in self._rows.items()
            if a == asset_id and (start is None or d >= start) and (end is None or d <= end)
        ]
        return sorted(rows, key=lambda q: q.quote_date)


class InMemoryAuditLogRepository(AuditLogRepository):
    def __init__(self, entries: list[AuditLogEntry]) -> None:
        self._entries = entries

    async def get_by_id(self, log_id: UUID) -> AuditLogEntry | None:
        return next((e for e in self._entries if e.log_id == log_id), None)

    async def list(self, limit: int = 50, offset: int = 0) -> list[AuditLogEntry]:
        ordered = sorted(self._entries, key=lambda e: e.timestamp, reverse=True)
        return ordered[offset:offset + limit]

    async def create(self, entity: AuditLogEntry) -> AuditLogEntry:
        self._entries.append(entity)
        return entity

    async def create_many(self, entries: Sequence[AuditLogEntry]) -> int:
        self._entries.extend(entries)
        return len(entries)

    async def update(self, entity: AuditLogEntry) -> AuditLogEntry:
        raise NotImplementedError

    async def delete(self, id: UUID) -> None:
        raise NotImplementedError

    async def list_for_date(self, target_date: date, limit: int = 100) -> list[AuditLogEntry]:
        return [e for e in self._entries if e.target_date == target_date][:limit]

    async def list_for_period(
        self, start: date, end: date, limit: int = 500
    ) -> list[AuditLogEntry]:
        return [e for e in self._entries if start <= e.target_date <= end][:limit]

    async def delete_older_than(self, cutoff: date, limit: int) -> int:
        doomed = [e for e in self._entries if e.target_date < cutoff][:limit]
        for entry in doomed:
            self._entries.remove(entry)
        return len(doomed)


class InMemoryUnitOfWork(UnitOfWork):
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def _begin(self) -> None:
        self._rows = dict(self._store.quotes)
        self._logs = list(self._store.audit_logs)
        self.quotes = InMemoryQuoteRepository(self._rows, self._store.fail_on_asset)
        self.audit_logs = InMemoryAuditLogRepository(self._logs)

    async def commit(self) -> None:
        if self._store.conflicts_remaining > 0:
            self._store.conflicts_remaining -= 1
            raise TransactionConflictError("concurrent write")
        self._store.quotes = self._rows
        self._store.audit_logs = self._logs
        self._store.commits += 1

    async def rollback(self) -> None:
        self._store.rollbacks += 1


@pytest.fixture()
def store():
    return InMemoryStore()


@pytest.fixture()
def uow_factory(store):
    return lambda: InMemoryUnitOfWork(store)


@pytest.fixture()
def registry():
    return DependencyRegistry.default()
