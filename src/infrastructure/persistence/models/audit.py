"""Audit log ORM model: append-only audit_logs table."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Double, Index, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database import Base


class AuditLog(Base):
    """One audited change.  Rows are only removed by the retention sweep."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_target_date", "target_date"),
        Index("ix_audit_logs_timestamp", "timestamp"),
    )

    log_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    action: Mapped[str] = mapped_column(Text, nullable=False)  # edit / recalculate / create / delete
    asset_id: Mapped[str] = mapped_column(Text, nullable=False)
    asset_name: Mapped[str] = mapped_column(Text, nullable=False)
    old_value: Mapped[Optional[float]] = mapped_column(Double, nullable=True)
    new_value: Mapped[Optional[float]] = mapped_column(Double, nullable=True)
    user_name: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    affected_assets: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    target_date: Mapped[date] = mapped_column(Date, nullable=False)
