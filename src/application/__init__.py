"""Application services: recalculation orchestration, quote reads, audit trail, business-day gate."""

from .audit import AuditService, EditedAsset
from .business_day_guard import (
    BusinessDayGuard,
    ProcessingDecision,
    QuotingStatus,
    parse_payload_date,
)
from .quotes import QuoteQueryService
from .recalculation import RecalculationService

__all__ = [
    "AuditService",
    "BusinessDayGuard",
    "EditedAsset",
    "ProcessingDecision",
    "QuoteQueryService",
    "QuotingStatus",
    "RecalculationService",
    "parse_payload_date",
]
