"""SQLAlchemy implementation of AuditLogRepository."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.models.audit import AuditLogEntry as DomainAuditLogEntry
from src.domain.models.enums import AuditAction
from src.domain.repositories.audit import AuditLogRepository
from src.infrastructure.persistence.models.audit import AuditLog as OrmAuditLog


def _to_domain(row: OrmAuditLog) -> DomainAuditLogEntry:
    return DomainAuditLogEntry(
        log_id=row.log_id,
        timestamp=row.timestamp,
        action=AuditAction(row.action),
        asset_id=row.asset_id,
        asset_name=row.asset_name,
        old_value=row.old_value,
        new_value=row.new_value,
        user=row.user_name,
        details=row.details,
        affected_assets=list(row.affected_assets or []),
        target_date=row.target_date,
    )


def _to_orm(entry: DomainAuditLogEntry) -> OrmAuditLog:
    return OrmAuditLog(
        log_id=entry.log_id,
        timestamp=entry.timestamp,
        action=entry.action.value,
        asset_id=entry.asset_id,
        asset_name=entry.asset_name,
        old_value=entry.old_value,
        new_value=entry.new_value,
        user_name=entry.user,
        details=entry.details,
        affected_assets=list(entry.affected_assets),
        target_date=entry.target_date,
    )


class SqlAuditLogRepository(AuditLogRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, log_id: UUID) -> DomainAuditLogEntry | None:
        row = await self._session.get(OrmAuditLog, log_id)
        return _to_domain(row) if row is not None else None

    async def list(self, limit: int = 50, offset: int = 0) -> list[DomainAuditLogEntry]:
        stmt = (
            select(OrmAuditLog)
            .order_by(OrmAuditLog.timestamp.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return [_to_domain(row) for row in result.scalars()]

    async def create(self, entity: DomainAuditLogEntry) -> DomainAuditLogEntry:
        self._session.add(_to_orm(entity))
        return entity

    async def create_many(self, entries: Sequence[DomainAuditLogEntry]) -> int:
        if not entries:
            return 0
        self._session.add_all([_to_orm(e) for e in entries])
        return len(entries)

    async def update(self, entity: DomainAuditLogEntry) -> DomainAuditLogEntry:
        raise NotImplementedError("Audit log entries are append-only")

    async def delete(self, id: UUID) -> None:
        raise NotImplementedError("Audit log entries are append-only")

    async def list_for_date(
        self, target_date: date, limit: int = 100
    ) -> list[DomainAuditLogEntry]:
        stmt = (
            select(OrmAuditLog)
            .where(OrmAuditLog.target_date == target_date)
            .order_by(OrmAuditLog.timestamp.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [_to_domain(row) for row in result.scalars()]

    async def list_for_period(
        self, start: date, end: date, limit: int = 500
    ) -> list[DomainAuditLogEntry]:
        if start > end:
            raise ValueError(f"start ({start}) must not be after end ({end})")
        stmt = (
            select(OrmAuditLog)
            .where(OrmAuditLog.target_date >= start, OrmAuditLog.target_date <= end)
            .order_by(OrmAuditLog.target_date.desc(), OrmAuditLog.timestamp.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [_to_domain(row) for row in result.scalars()]

    async def delete_older_than(self, cutoff: date, limit: int) -> int:
        batch = (
            select(OrmAuditLog.log_id)
            .where(OrmAuditLog.target_date < cutoff)
            .limit(limit)
        )
        stmt = delete(OrmAuditLog).where(OrmAuditLog.log_id.in_(batch))
        result = await self._session.execute(stmt)
        return result.rowcount
