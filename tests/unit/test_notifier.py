"""Unit tests for the order event webhook client"""

import asyncio

import httpx
import pytest

from checkout_ledger.infrastructure.clients.notifier import NotificationClient

PAYLOAD = {"event": "ORDER_PLACED", "order_number": "ORD-20260301-ABC123"}


def fake_post(statuses, calls):
    async def _post(self, url, json=None, **kwargs):
        calls.append(json)
        return httpx.Response(statuses[len(calls) - 1], request=httpx.Request("POST", url))

    return _post


@pytest.fixture
def client() -> NotificationClient:
    notifier = NotificationClient(webhook_url="http://notifier.test/order-events", timeout=1.0)
    notifier.max_retries = 3
    notifier.backoff_base = 0
    return notifier


def test_delivers_event(monkeypatch, client):
    calls = []
    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post([200], calls))

    asyncio.run(client.send_event(PAYLOAD))

    assert calls == [PAYLOAD]


def test_retries_server_errors_then_succeeds(monkeypatch, client):
    calls = []
    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post([503, 502, 200], calls))

    asyncio.run(client.send_event(PAYLOAD))

    assert len(calls) == 3


def test_gives_up_after_max_retries(monkeypatch, client):
    calls = []
    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post([500, 500, 500], calls))

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.send_event(PAYLOAD))

    assert len(calls) == 3
