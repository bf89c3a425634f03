"""Audit log domain model.

Entries are append-only.  The only deletion path is the time-based
retention sweep (AuditService.cleanup_old_logs).
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from .enums import AuditAction
from .quotes import format_store_date


class AuditLogEntry(BaseModel):
    """One audited change to an asset value.

    affected_assets lists every asset recalculated as a consequence of the
    change.  target_date is the business day the change applies to, which
    is generally not the day the change was made (timestamp).
    """

    model_config = ConfigDict(frozen=True)

    log_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    action: AuditAction
    asset_id: str
    asset_name: str
    old_value: float | None = None
    new_value: float | None = None
    user: str
    details: str | None = None
    affected_assets: list[str] = Field(default_factory=list)
    target_date: date

    @property
    def target_date_formatted(self) -> str:
        return format_store_date(self.target_date)
