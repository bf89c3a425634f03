"""Quote repository interface.

QuoteRepository is a specialised time-series interface and does not extend
the generic Repository[T] base — quotes are addressed by their natural key
(asset_id, quote_date), never by surrogate id alone.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from src.domain.models.quotes import Quote


class QuoteRepository(ABC):
    """Read/write interface for per-asset daily quotes.

    Implementations bound to a transaction must make reads through the same
    transaction as the writes, so a recalculation sees its own updates.
    """

    @abstractmethod
    async def get_for_date(self, asset_id: str, quote_date: date) -> Quote | None:
        """Return the quote of asset_id for quote_date, or None if there is none."""

    @abstractmethod
    async def get_or_create(self, asset_id: str, quote_date: date) -> Quote:
        """Return the existing quote, or create and return a zero-valued placeholder."""

    @abstractmethod
    async def save(self, quote: Quote) -> Quote:
        """Overwrite the stored quote identified by quote.quote_id and return it."""

    @abstractmethod
    async def list_for_asset(
        self,
        asset_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[Quote]:
        """Return quotes for one asset in ascending date order (bounds inclusive)."""
