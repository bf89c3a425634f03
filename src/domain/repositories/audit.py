"""Audit log repository interface."""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Sequence
from datetime import date
from uuid import UUID

from src.domain.models.audit import AuditLogEntry

from .base import Repository


class AuditLogRepository(Repository[AuditLogEntry]):
    """Append-only store of audit entries.

    update() and delete() are unsupported: entries are never mutated, and
    the only removal path is delete_older_than(), used by the retention
    sweep.
    """

    async def get(self, id: UUID) -> AuditLogEntry | None:
        return await self.get_by_id(id)

    @abstractmethod
    async def get_by_id(self, log_id: UUID) -> AuditLogEntry | None:
        """Return the entry with the given id, or None."""

    @abstractmethod
    async def list(self, limit: int = 50, offset: int = 0) -> list[AuditLogEntry]:
        """Return a page of entries ordered by timestamp descending."""

    @abstractmethod
    async def create(self, entity: AuditLogEntry) -> AuditLogEntry:
        """Append one entry."""

    @abstractmethod
    async def create_many(self, entries: Sequence[AuditLogEntry]) -> int:
        """Append several entries as one batch; return how many were written."""

    @abstractmethod
    async def list_for_date(self, target_date: date, limit: int = 100) -> list[AuditLogEntry]:
        """Most recent entries whose target_date equals the given day."""

    @abstractmethod
    async def list_for_period(
        self, start: date, end: date, limit: int = 500
    ) -> list[AuditLogEntry]:
        """Entries with start <= target_date <= end, newest target date first."""

    @abstractmethod
    async def delete_older_than(self, cutoff: date, limit: int) -> int:
        """Delete up to limit entries with target_date < cutoff; return the count."""
