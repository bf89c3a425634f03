"""Quote ORM model: one row per (asset_id, quote_date)."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Double, Index, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database import Base


class Quote(Base):
    """Daily value of one asset.

    asset_id is the registry id (the per-asset collection name of the
    legacy document store).  value is the current value; last_value is the
    legacy "ultimo" field, written alongside value and only read as a
    fallback for rows imported from the legacy store.
    """

    __tablename__ = "quotes"
    __table_args__ = (
        UniqueConstraint("asset_id", "quote_date", name="uq_quotes_asset_date"),
        Index("ix_quotes_date", "quote_date"),
    )

    quote_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    asset_id: Mapped[str] = mapped_column(Text, nullable=False)
    quote_date: Mapped[date] = mapped_column(Date, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    value: Mapped[Optional[float]] = mapped_column(Double, nullable=True)
    last_value: Mapped[Optional[float]] = mapped_column(Double, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False)  # manual_edit / auto_calculated / recalculated
    source: Mapped[str] = mapped_column(Text, nullable=False)
    components: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    conversions: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
