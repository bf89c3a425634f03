"""SQLAlchemy implementation of QuoteRepository."""

from __future__ import annotations

from datetime import date

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.models.enums import QuoteStatus
from src.domain.models.quotes import Quote as DomainQuote
from src.domain.repositories.quotes import QuoteRepository
from src.infrastructure.persistence.models.quotes import Quote as OrmQuote


class SqlQuoteRepository(QuoteRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @staticmethod
    def _to_domain(row: OrmQuote) -> DomainQuote:
        # Legacy rows may only carry last_value ("ultimo").
        value = row.value if row.value is not None else row.last_value
        return DomainQuote(
            quote_id=row.quote_id,
            asset_id=row.asset_id,
            quote_date=row.quote_date,
            timestamp=row.timestamp,
            value=value if value is not None else 0.0,
            status=QuoteStatus(row.status),
            source=row.source,
            components=dict(row.components or {}),
            conversions=dict(row.conversions or {}),
        )

    @staticmethod
    def _to_orm(quote: DomainQuote) -> OrmQuote:
        return OrmQuote(
            quote_id=quote.quote_id,
            asset_id=quote.asset_id,
            quote_date=quote.quote_date,
            timestamp=quote.timestamp,
            value=quote.value,
            last_value=quote.value,
            status=quote.status.value,
            source=quote.source,
            components=dict(quote.components),
            conversions=dict(quote.conversions),
        )

    async def get_for_date(self, asset_id: str, quote_date: date) -> DomainQuote | None:
        # Row lock: concurrent recalculations of the same day serialize here.
        stmt = (
            select(OrmQuote)
            .where(OrmQuote.asset_id == asset_id, OrmQuote.quote_date == quote_date)
            .limit(1)
            .with_for_update()
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        return self._to_domain(row) if row is not None else None

    async def get_or_create(self, asset_id: str, quote_date: date) -> DomainQuote:
        existing = await self.get_for_date(asset_id, quote_date)
        if existing is not None:
            return existing
        placeholder = DomainQuote.placeholder(asset_id, quote_date)
        self._session.add(self._to_orm(placeholder))
        # Flush now so a concurrent insert of the same key fails inside this transaction.
        await self._session.flush()
        return placeholder

    async def save(self, quote: DomainQuote) -> DomainQuote:
        stmt = (
            update(OrmQuote)
            .where(OrmQuote.quote_id == quote.quote_id)
            .values(
                timestamp=quote.timestamp,
                value=quote.value,
                last_value=quote.value,
                status=quote.status.value,
                source=quote.source,
                components=dict(quote.components),
                conversions=dict(quote.conversions),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise LookupError(f"Quote {quote.quote_id} ({quote.asset_id}) does not exist")
        return quote

    async def list_for_asset(
        self,
        asset_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[DomainQuote]:
        stmt = (
            select(OrmQuote)
            .where(OrmQuote.asset_id == asset_id)
            .order_by(OrmQuote.quote_date.asc())
        )
        if start is not None:
            stmt = stmt.where(OrmQuote.quote_date >= start)
        if end is not None:
            stmt = stmt.where(OrmQuote.quote_date <= end)
        result = await self._session.execute(stmt)
        return [self._to_domain(row) for row in result.scalars()]
