"""Audit trail of manual edits.

Entries are written in one batch per recalculation, after the quote
transaction has committed, and read back by target date or period.  The
retention sweep deletes entries older than the configured horizon in
fixed-size batches.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from src.domain.models.audit import AuditLogEntry
from src.domain.models.enums import AuditAction
from src.domain.repositories.unit_of_work import UnitOfWorkFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EditedAsset:
    name: str
    old_value: float
    new_value: float


def edit_details(affected_count: int) -> str:
    return f"Valor alterado durante recálculo. {affected_count} outros ativos foram afetados."


class AuditService:
    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        retention_days: int = 90,
        purge_batch_size: int = 1000,
    ) -> None:
        if retention_days <= 0 or purge_batch_size <= 0:
            raise ValueError("retention_days and purge_batch_size must be positive")
        self._uow_factory = unit_of_work_factory
        self._retention_days = retention_days
        self._purge_batch_size = purge_batch_size

    async def record_recalculation(
        self,
        target_date: date,
        edited: Mapping[str, EditedAsset],
        affected_assets: Sequence[str],
        user: str,
    ) -> list[AuditLogEntry]:
        """Write one EDIT entry per edited asset, all in a single batch."""
        if not edited:
            return []
        timestamp = datetime.now(timezone.utc)
        affected = list(affected_assets)
        entries = [
            AuditLogEntry(
                timestamp=timestamp,
                action=AuditAction.EDIT,
                asset_id=asset_id,
                asset_name=change.name,
                old_value=change.old_value,
                new_value=change.new_value,
                user=user,
                details=edit_details(len(affected)),
                affected_assets=affected,
                target_date=target_date,
            )
            for asset_id, change in edited.items()
        ]
        async with self._uow_factory() as uow:
            await uow.audit_logs.create_many(entries)
        logger.info(
            "Recorded %d audit entries for %s", len(entries), target_date.isoformat()
        )
        return entries

    async def for_date(self, day: date, limit: int = 100) -> list[AuditLogEntry]:
        async with self._uow_factory() as uow:
            return await uow.audit_logs.list_for_date(day, limit=limit)

    async def for_period(self, start: date, end: date, limit: int = 500) -> list[AuditLogEntry]:
        if start > end:
            raise ValueError(f"start ({start}) is after end ({end})")
        async with self._uow_factory() as uow:
            return await uow.audit_logs.list_for_period(start, end, limit=limit)

    def retention_cutoff(self, today: date | None = None) -> date:
        today = today or datetime.now(timezone.utc).date()
        return today - timedelta(days=self._retention_days)

    async def cleanup_old_logs(self, today: date | None = None) -> int:
        """Delete entries whose target date is before the retention horizon.

        Each batch runs in its own transaction.  The sweep stops at the first
        batch that comes back short.
        """
        cutoff = self.retention_cutoff(today)
        total = 0
        while True:
            async with self._uow_factory() as uow:
                deleted = await uow.audit_logs.delete_older_than(
                    cutoff, limit=self._purge_batch_size
                )
            total += deleted
            if deleted < self._purge_batch_size:
                break
        logger.info("Purged %d audit entries older than %s", total, cutoff.isoformat())
        return total
