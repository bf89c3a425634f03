"""Quote reads.

Single-day reads go through the QuoteCache; the recalculation service drops
the cached entries of every asset it rewrites, so a read after a
recalculation always reaches the store.  History reads bypass the cache.
"""

from __future__ import annotations

import logging
from datetime import date

from src.domain.models.quotes import Quote
from src.domain.repositories.unit_of_work import UnitOfWorkFactory
from src.infrastructure.cache import QuoteCache

logger = logging.getLogger(__name__)


class QuoteQueryService:
    def __init__(
        self, unit_of_work_factory: UnitOfWorkFactory, cache: QuoteCache | None = None
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._cache = cache

    async def get_quote(self, asset_id: str, quote_date: date) -> Quote | None:
        """Quote of asset_id on quote_date, or None when none is stored yet."""
        if self._cache is not None:
            cached = self._cache.get(asset_id, quote_date)
            if cached is not None:
                return cached
        async with self._uow_factory() as uow:
            rows = await uow.quotes.list_for_asset(asset_id, start=quote_date, end=quote_date)
        if not rows:
            return None
        quote = rows[0]
        if self._cache is not None:
            self._cache.set(asset_id, quote_date, quote)
            logger.debug("Cached quote %s for %s", asset_id, quote_date.isoformat())
        return quote

    async def history(self, asset_id: str, start: date, end: date) -> list[Quote]:
        """Quotes of asset_id with start <= quote_date <= end, oldest first."""
        if start > end:
            raise ValueError(f"start ({start}) must not be after end ({end})")
        async with self._uow_factory() as uow:
            return await uow.quotes.list_for_asset(asset_id, start=start, end=end)
