"""Quote domain model.

Quote — the value of one asset on one business day.

The natural key is (asset_id, quote_date).  Recalculations update the
existing record for that key instead of appending a new one; a missing
record is first created with a zero value (see Quote.placeholder).
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from .enums import QuoteStatus

STORE_DATE_FORMAT = "%d/%m/%Y"
PLACEHOLDER_SOURCE = "Cálculo Manual via Auditoria"


def format_store_date(day: date) -> str:
    """Render a date the way the quote store and the audit log display it (dd/mm/yyyy)."""
    return day.strftime(STORE_DATE_FORMAT)


def parse_store_date(text: str) -> date:
    return datetime.strptime(text, STORE_DATE_FORMAT).date()


class Quote(BaseModel):
    """Point-in-time value of one asset.

    components holds the named sub-values of a composite index (e.g. the
    weighted commodity legs of VUS); conversions holds human-readable
    currency conversion traces (e.g. "11.2 ÷ 5.6 = 2.0").
    """

    model_config = ConfigDict(frozen=True)

    quote_id: UUID = Field(default_factory=uuid4)
    asset_id: str
    quote_date: date
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    value: float
    status: QuoteStatus
    source: str
    components: dict[str, float] = Field(default_factory=dict)
    conversions: dict[str, str] = Field(default_factory=dict)

    @property
    def store_date(self) -> str:
        return format_store_date(self.quote_date)

    @classmethod
    def placeholder(cls, asset_id: str, quote_date: date) -> Quote:
        """Zero-valued record created when no quote exists yet for the date."""
        return cls(
            asset_id=asset_id,
            quote_date=quote_date,
            timestamp=datetime.combine(quote_date, time.min, tzinfo=timezone.utc),
            value=0.0,
            status=QuoteStatus.RECALCULATED,
            source=PLACEHOLDER_SOURCE,
        )
