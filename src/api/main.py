"""HTTP API for the UCS index recalculation engine."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Annotated, Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.api.dependencies import (
    get_audit_service,
    get_business_day_guard,
    get_quote_query_service,
    get_recalculation_service,
    get_registry,
)
from src.application.audit import AuditService
from src.application.business_day_guard import BusinessDayGuard, parse_payload_date
from src.application.quotes import QuoteQueryService
from src.application.recalculation import DEFAULT_USER, RecalculationService
from src.config import configure_logging
from src.domain.errors import InvalidEditError
from src.domain.models import (
    AssetDependency,
    AuditLogEntry,
    Quote,
    RecalculationPreview,
    RecalculationResult,
)
from src.domain.registry import DependencyRegistry
from src.domain.services.planning import VALIDATION_STEP_ID

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI):
    configure_logging()
    yield


app = FastAPI(
    title="UCS Index Recalculation API",
    version="0.1.0",
    description=(
        "Manual edits of base asset quotes with transactional recalculation of "
        "every dependent index, audit trail and business-day gate for the N8N "
        "automation."
    ),
    lifespan=_app_lifespan,
)


class RecalculationRequest(BaseModel):
    target_date: date
    edited_values: dict[str, float] = Field(min_length=1)
    user: str = DEFAULT_USER


class PreviewRequest(BaseModel):
    edited_values: dict[str, float] = Field(min_length=1)
    target_date: date | None = None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Business-day gate
# ---------------------------------------------------------------------------


@app.post("/api/n8n/validate-business-day")
async def validate_business_day(
    request: Request,
    guard: BusinessDayGuard = Depends(get_business_day_guard),
) -> dict[str, Any]:
    """Tell the N8N scheduler whether to process quotes for the requested date.

    Any error here answers allowed=true so the scheduler is never blocked by
    this endpoint.
    """
    try:
        payload = await request.json()
        if not isinstance(payload, dict):
            raise ValueError("Request body must be a JSON object")
        target_date = parse_payload_date(payload)
        decision = guard.validate_processing(target_date)
    except Exception as exc:
        logger.exception("Business-day validation failed; allowing processing")
        return {
            "success": True,
            "allowed": True,
            "message": "Processamento autorizado (erro na validação)",
            "shouldProceed": True,
            "error": str(exc),
            "timestamp": _now_iso(),
        }

    logger.info(
        "Business-day gate for %s (source=%s): %s",
        target_date.isoformat(),
        payload.get("source", "n8n_webhook"),
        "allowed" if decision.allowed else "blocked",
    )
    if decision.allowed:
        return {
            "success": True,
            "allowed": True,
            "message": decision.message,
            "shouldProceed": True,
            "timestamp": _now_iso(),
        }
    return {
        "success": False,
        "allowed": False,
        "message": decision.message,
        "shouldProceed": False,
        "skipReason": decision.skip_reason,
        "date": target_date.isoformat(),
        "timestamp": _now_iso(),
    }


@app.get("/api/n8n/validate-business-day")
async def check_business_day(
    date_param: Annotated[str | None, Query(alias="date")] = None,
    guard: BusinessDayGuard = Depends(get_business_day_guard),
) -> dict[str, Any]:
    if not date_param:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query parameter 'date' is required (YYYY-MM-DD)",
        )
    try:
        target_date = date.fromisoformat(date_param)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid date {date_param!r}; expected YYYY-MM-DD",
        ) from None
    decision = guard.validate_processing(target_date)
    return {
        "success": True,
        "date": date_param,
        "allowed": decision.allowed,
        "shouldProcess": decision.should_process,
        "message": decision.message,
        "skipReason": decision.skip_reason,
        "timestamp": _now_iso(),
    }


@app.get("/api/business-day/previous")
async def previous_business_day(
    date_param: Annotated[str | None, Query(alias="date")] = None,
    guard: BusinessDayGuard = Depends(get_business_day_guard),
) -> dict[str, Any]:
    """Last business day strictly before date (default: today)."""
    start = None
    if date_param:
        try:
            start = date.fromisoformat(date_param)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid date {date_param!r}; expected YYYY-MM-DD",
            ) from None
    return {"success": True, "date": guard.previous_business_day(start).isoformat()}


@app.get("/api/business-day-status")
async def business_day_status(
    guard: BusinessDayGuard = Depends(get_business_day_guard),
) -> dict[str, Any]:
    current = guard.status()
    return {
        "success": True,
        "date": current.day.isoformat(),
        "isBusinessDay": current.is_business_day,
        "message": current.message,
        "previousBusinessDay": current.previous_business_day.isoformat(),
        "nextBusinessDay": (
            current.next_business_day.isoformat() if current.next_business_day else None
        ),
        "timestamp": _now_iso(),
    }


# ---------------------------------------------------------------------------
# Recalculation
# ---------------------------------------------------------------------------


@app.post("/api/recalculations", response_model=RecalculationResult)
async def run_recalculation(
    body: RecalculationRequest,
    response: Response,
    service: RecalculationService = Depends(get_recalculation_service),
) -> RecalculationResult:
    result = await service.execute(body.target_date, body.edited_values, user=body.user)
    if not result.success:
        failed = result.failed_step
        if failed is not None and failed.id == VALIDATION_STEP_ID:
            response.status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        else:
            response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return result


@app.post("/api/recalculations/preview", response_model=RecalculationPreview)
async def preview_recalculation(
    body: PreviewRequest,
    service: RecalculationService = Depends(get_recalculation_service),
) -> RecalculationPreview:
    try:
        return service.preview(body.edited_values, body.target_date)
    except InvalidEditError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------


def _require_asset(registry: DependencyRegistry, asset_id: str) -> None:
    if asset_id not in registry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown asset {asset_id!r}"
        )


@app.get("/api/quotes/{asset_id}", response_model=Quote)
async def get_quote(
    asset_id: str,
    day: Annotated[date, Query(alias="date")],
    registry: DependencyRegistry = Depends(get_registry),
    quotes: QuoteQueryService = Depends(get_quote_query_service),
) -> Quote:
    _require_asset(registry, asset_id)
    quote = await quotes.get_quote(asset_id, day)
    if quote is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No quote for {asset_id!r} on {day.isoformat()}",
        )
    return quote


@app.get("/api/quotes/{asset_id}/history", response_model=list[Quote])
async def get_quote_history(
    asset_id: str,
    start: date,
    end: date,
    registry: DependencyRegistry = Depends(get_registry),
    quotes: QuoteQueryService = Depends(get_quote_query_service),
) -> list[Quote]:
    _require_asset(registry, asset_id)
    try:
        return await quotes.history(asset_id, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Audit log and registry
# ---------------------------------------------------------------------------


@app.get("/api/audit-logs", response_model=list[AuditLogEntry])
async def list_audit_logs(
    day: Annotated[date | None, Query(alias="date")] = None,
    start: date | None = None,
    end: date | None = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
    audit: AuditService = Depends(get_audit_service),
) -> list[AuditLogEntry]:
    if day is not None:
        return await audit.for_date(day, limit=limit)
    if start is None or end is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide either 'date' or both 'start' and 'end'",
        )
    try:
        return await audit.for_period(start, end, limit=limit)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@app.post("/api/audit-logs/cleanup")
async def cleanup_audit_logs(
    audit: AuditService = Depends(get_audit_service),
) -> JSONResponse:
    deleted = await audit.cleanup_old_logs()
    return JSONResponse({"success": True, "deletedCount": deleted})


@app.get("/api/assets", response_model=list[AssetDependency])
async def list_assets(
    registry: DependencyRegistry = Depends(get_registry),
) -> list[AssetDependency]:
    return registry.all_dependencies()
