"""Business-day gate consulted by the external automation before it runs.

The gate fails open: if the calendar itself breaks, processing is allowed so
that the scheduled pipeline is never blocked by a bug on this side.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from src.domain.models.quotes import format_store_date, parse_store_date
from src.domain.services.business_days import WEEKEND, BusinessDayCalendar

logger = logging.getLogger(__name__)

VALIDATION_ERROR_REASON = "Erro na validação de feriados"


@dataclass(frozen=True, slots=True)
class ProcessingDecision:
    target_date: date
    allowed: bool
    message: str
    skip_reason: str | None = None
    failed_open: bool = False

    @property
    def should_process(self) -> bool:
        return self.allowed


@dataclass(frozen=True, slots=True)
class QuotingStatus:
    """Whether quotes can be produced on day, with the nearest business days around it.

    next_business_day is only set when day itself is not a business day.
    """

    day: date
    is_business_day: bool
    message: str
    previous_business_day: date
    next_business_day: date | None = None


def parse_payload_date(payload: Mapping[str, Any], today: date | None = None) -> date:
    """Target date of a gate request.

    Looks at data_especifica, then date (ISO), then data (dd/mm/yyyy);
    defaults to today.  Raises ValueError for an unparseable value.
    """
    for key in ("data_especifica", "date"):
        raw = payload.get(key)
        if raw:
            return datetime.fromisoformat(str(raw)).date()
    raw = payload.get("data")
    if raw:
        return parse_store_date(str(raw))
    return today or datetime.now(timezone.utc).date()


class BusinessDayGuard:
    def __init__(self, calendar: BusinessDayCalendar | None = None) -> None:
        self._calendar = calendar or BusinessDayCalendar()

    def validate_processing(self, target_date: date) -> ProcessingDecision:
        formatted = format_store_date(target_date)
        try:
            check = self._calendar.check(target_date)
        except Exception:
            logger.exception("Business-day check failed for %s; allowing processing", formatted)
            return ProcessingDecision(
                target_date=target_date,
                allowed=True,
                message="Processamento autorizado (erro na validação)",
                skip_reason=VALIDATION_ERROR_REASON,
                failed_open=True,
            )
        if check.is_business_day:
            return ProcessingDecision(
                target_date=target_date,
                allowed=True,
                message=f"Processamento autorizado para {formatted}",
            )
        logger.info("Blocking processing for %s: %s", formatted, check.message)
        return ProcessingDecision(
            target_date=target_date,
            allowed=False,
            message=f"Processamento bloqueado para {formatted}: {check.message}",
            skip_reason=check.reason if check.reason == WEEKEND else check.holiday_name,
        )

    def previous_business_day(self, day: date | None = None) -> date:
        """Last business day strictly before day (default: today)."""
        return self._calendar.previous_business_day(day or datetime.now(timezone.utc).date())

    def status(self, today: date | None = None) -> QuotingStatus:
        today = today or datetime.now(timezone.utc).date()
        check = self._calendar.check(today)
        return QuotingStatus(
            day=today,
            is_business_day=check.is_business_day,
            message=check.message,
            previous_business_day=self._calendar.previous_business_day(today),
            next_business_day=(
                None if check.is_business_day else self._calendar.next_business_day(today)
            ),
        )
