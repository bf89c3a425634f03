"""Tests for the N8N webhook client (httpx.MockTransport, no network)."""

import json
from datetime import date

import httpx
import pytest

from src.domain.errors import ExternalSyncError
from src.domain.services.business_days import BusinessDayCalendar
from src.infrastructure.external_sync import (
    AUTH_HEADER,
    ORIGIN,
    N8nWebhookClient,
    build_payload,
)

URL = "https://n8n.example.com/webhook/recalculate"
WEDNESDAY = date(2025, 3, 12)
SATURDAY = date(2025, 3, 15)


def _client(handler, **kwargs):
    return N8nWebhookClient(URL, transport=httpx.MockTransport(handler), **kwargs)


# --- payload ---

def test_payload_shape():
    payload = build_payload(WEDNESDAY, {"milho": 61})
    assert payload == {
        "data_referencia": "2025-03-12",
        "ajustes_manuais": {"milho": 61.0},
        "salvar_historico": True,
        "origem": ORIGIN,
    }


# --- trigger ---

async def test_posts_payload_with_token():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        seen["token"] = request.headers.get(AUTH_HEADER)
        return httpx.Response(200, json={"message": "Workflow iniciado"})

    message = await _client(handler, api_key="secret").trigger(WEDNESDAY, {"milho": 61.0})

    assert message == "Workflow iniciado"
    assert seen["body"]["ajustes_manuais"] == {"milho": 61.0}
    assert seen["token"] == "secret"


async def test_no_token_header_without_api_key():
    seen = {}

    def handler(request):
        seen["has_token"] = AUTH_HEADER in request.headers
        return httpx.Response(200, json={})

    message = await _client(handler).trigger(WEDNESDAY, {"milho": 61.0})

    assert seen["has_token"] is False
    assert message == "Request accepted by N8N"


async def test_non_json_body_is_accepted():
    message = await _client(lambda r: httpx.Response(202, text="ok")).trigger(
        WEDNESDAY, {"milho": 61.0}
    )
    assert message == "Request accepted by N8N"


async def test_error_status_raises():
    client = _client(lambda r: httpx.Response(500, text="workflow crashed"))
    with pytest.raises(ExternalSyncError, match="status 500"):
        await client.trigger(WEDNESDAY, {"milho": 61.0})


async def test_timeout_raises():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ExternalSyncError, match="timed out"):
        await _client(handler, timeout=2.0).trigger(WEDNESDAY, {"milho": 61.0})


async def test_connection_error_raises():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ExternalSyncError, match="unreachable"):
        await _client(handler).trigger(WEDNESDAY, {"milho": 61.0})


async def test_non_business_day_is_refused_without_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    client = _client(handler, calendar=BusinessDayCalendar())
    with pytest.raises(ExternalSyncError, match="not allowed"):
        await client.trigger(SATURDAY, {"milho": 61.0})
    assert calls == []
