"""N8N webhook client used to re-run the external automation after a manual edit.

The call is bounded by a timeout and every failure mode (non-2xx status,
timeout, transport error, non-business day) surfaces as ExternalSyncError,
which the orchestrator treats as non-fatal.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any

import httpx

from src.domain.errors import ExternalSyncError
from src.domain.services.business_days import BusinessDayCalendar

logger = logging.getLogger(__name__)

ORIGIN = "painel_auditoria"
AUTH_HEADER = "x-audit-token"


def build_payload(target_date: date, edited_values: Mapping[str, float]) -> dict[str, Any]:
    """JSON body expected by the recalculation workflow."""
    return {
        "data_referencia": target_date.isoformat(),
        "ajustes_manuais": {asset_id: float(v) for asset_id, v in edited_values.items()},
        "salvar_historico": True,
        "origem": ORIGIN,
    }


class N8nWebhookClient:
    """POSTs recalculation requests to the configured N8N webhook.

    Args:
        webhook_url: Target URL.
        api_key: Sent as the x-audit-token header (empty string sends no header).
        timeout: Seconds before the request is abandoned.
        calendar: When given, triggering on a non-business day is refused.
        transport: Optional httpx transport (tests inject httpx.MockTransport).
    """

    def __init__(
        self,
        webhook_url: str,
        api_key: str = "",
        timeout: float = 5.0,
        calendar: BusinessDayCalendar | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._api_key = api_key
        self._timeout = timeout
        self._calendar = calendar
        self._transport = transport

    async def trigger(self, target_date: date, edited_values: Mapping[str, float]) -> str:
        """Trigger the workflow and return its acknowledgement message.

        Raises:
            ExternalSyncError: on any failure, including a non-business target date.
        """
        if self._calendar is not None:
            check = self._calendar.check(target_date)
            if not check.is_business_day:
                raise ExternalSyncError(
                    f"External recalculation not allowed: {check.message}"
                )

        payload = build_payload(target_date, edited_values)
        headers = {AUTH_HEADER: self._api_key} if self._api_key else {}
        logger.info("Triggering N8N recalculation for %s", payload["data_referencia"])

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self._webhook_url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise ExternalSyncError(
                f"N8N webhook timed out after {self._timeout:g}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExternalSyncError(f"N8N webhook unreachable: {exc}") from exc

        if not response.is_success:
            raise ExternalSyncError(
                f"N8N webhook responded with status {response.status_code}: {response.text[:200]}"
            )

        try:
            body = response.json()
        except ValueError:
            body = {}
        if isinstance(body, dict):
            return str(body.get("message") or body.get("msg") or "Request accepted by N8N")
        return "Request accepted by N8N"
