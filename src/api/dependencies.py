"""FastAPI dependency providers.

Process-wide objects (registry, cache, calendar) are built once; services
are cheap wrappers created per request.  Tests swap any of them through
app.dependency_overrides.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from src.application.audit import AuditService
from src.application.business_day_guard import BusinessDayGuard
from src.application.quotes import QuoteQueryService
from src.application.recalculation import RecalculationService
from src.config import settings
from src.domain.registry import DependencyRegistry, build_registry
from src.domain.repositories.unit_of_work import UnitOfWorkFactory
from src.domain.services.business_days import BusinessDayCalendar
from src.infrastructure.cache import QuoteCache
from src.infrastructure.external_sync import N8nWebhookClient
from src.infrastructure.persistence.unit_of_work import SqlUnitOfWork


@lru_cache
def get_registry() -> DependencyRegistry:
    return build_registry(settings.asset_registry_path)


@lru_cache
def get_cache() -> QuoteCache:
    return QuoteCache(ttl_seconds=settings.cache_ttl_seconds)


@lru_cache
def get_calendar() -> BusinessDayCalendar:
    return BusinessDayCalendar()


def get_unit_of_work_factory() -> UnitOfWorkFactory:
    return SqlUnitOfWork


def get_external_sync(
    calendar: BusinessDayCalendar = Depends(get_calendar),
) -> N8nWebhookClient | None:
    if not settings.external_sync_enabled:
        return None
    return N8nWebhookClient(
        settings.n8n_webhook_url,
        api_key=settings.n8n_api_key,
        timeout=settings.external_sync_timeout_seconds,
        calendar=calendar,
    )


def get_audit_service(
    uow_factory: UnitOfWorkFactory = Depends(get_unit_of_work_factory),
) -> AuditService:
    return AuditService(
        uow_factory,
        retention_days=settings.audit_retention_days,
        purge_batch_size=settings.audit_purge_batch_size,
    )


def get_recalculation_service(
    registry: DependencyRegistry = Depends(get_registry),
    uow_factory: UnitOfWorkFactory = Depends(get_unit_of_work_factory),
    external_sync: N8nWebhookClient | None = Depends(get_external_sync),
    audit: AuditService = Depends(get_audit_service),
    cache: QuoteCache = Depends(get_cache),
) -> RecalculationService:
    return RecalculationService(
        registry,
        uow_factory,
        external_sync=external_sync,
        audit=audit,
        cache=cache,
        max_attempts=settings.transaction_max_attempts,
    )


def get_business_day_guard(
    calendar: BusinessDayCalendar = Depends(get_calendar),
) -> BusinessDayGuard:
    return BusinessDayGuard(calendar)


def get_quote_query_service(
    uow_factory: UnitOfWorkFactory = Depends(get_unit_of_work_factory),
    cache: QuoteCache = Depends(get_cache),
) -> QuoteQueryService:
    return QuoteQueryService(uow_factory, cache)
