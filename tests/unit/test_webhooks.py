"""Unit tests for the webhook dispatcher."""

from __future__ import annotations

import hashlib
import hmac
import json

import httpx
import pytest
import respx

from sitetrack.config import NotificationConfig, WebhookEndpointConfig
from sitetrack.notifications import WebhookDispatcher, WebhookEndpoint

HOOK_URL = "https://hooks.example.gov.ng/sitetrack"


@respx.mock
@pytest.mark.asyncio
async def test_signed_delivery() -> None:
    """Payload is posted with event and HMAC signature headers."""
    route = respx.post(HOOK_URL).mock(return_value=httpx.Response(204))

    dispatcher = WebhookDispatcher(
        [WebhookEndpoint(url=HOOK_URL, secret="k", retry_count=0)], backoff_base=0
    )
    result = await dispatcher.send("submission.queried", {"reason": "Photos?"}, event_id="e-1")
    await dispatcher.close()

    assert result is True
    request = route.calls.last.request
    body = request.content.decode()
    expected = hmac.new(b"k", body.encode(), hashlib.sha256).hexdigest()
    assert request.headers["X-SiteTrack-Signature"] == expected
    assert request.headers["X-SiteTrack-Event"] == "submission.queried"
    payload = json.loads(body)
    assert payload["event_id"] == "e-1"
    assert payload["data"] == {"reason": "Photos?"}


@respx.mock
@pytest.mark.asyncio
async def test_unsigned_without_secret() -> None:
    route = respx.post(HOOK_URL).mock(return_value=httpx.Response(200))

    dispatcher = WebhookDispatcher([WebhookEndpoint(url=HOOK_URL)], backoff_base=0)
    assert await dispatcher.send("comment.created", {}) is True
    await dispatcher.close()

    assert "X-SiteTrack-Signature" not in route.calls.last.request.headers


@respx.mock
@pytest.mark.asyncio
async def test_retries_until_success() -> None:
    route = respx.post(HOOK_URL).mock(
        side_effect=[httpx.Response(500), httpx.Response(502), httpx.Response(200)]
    )

    dispatcher = WebhookDispatcher(
        [WebhookEndpoint(url=HOOK_URL, retry_count=2)], backoff_base=0
    )
    assert await dispatcher.send("submission.approved", {}) is True
    await dispatcher.close()

    assert route.call_count == 3


@respx.mock
@pytest.mark.asyncio
async def test_exhausted_retries_report_failure() -> None:
    """Mock network error on every attempt."""
    route = respx.post(HOOK_URL).mock(side_effect=httpx.ConnectError("Connection refused"))

    dispatcher = WebhookDispatcher(
        [WebhookEndpoint(url=HOOK_URL, retry_count=1)], backoff_base=0
    )
    assert await dispatcher.send("submission.rejected", {}) is False
    await dispatcher.close()

    assert route.call_count == 2


@respx.mock
@pytest.mark.asyncio
async def test_timeout_reports_failure() -> None:
    respx.post(HOOK_URL).mock(side_effect=httpx.ReadTimeout("too slow"))

    dispatcher = WebhookDispatcher(
        [WebhookEndpoint(url=HOOK_URL, retry_count=0)], backoff_base=0
    )
    assert await dispatcher.send("section.notice", {}) is False
    await dispatcher.close()


@respx.mock
@pytest.mark.asyncio
async def test_disabled_endpoint_skipped() -> None:
    route = respx.post(HOOK_URL).mock(return_value=httpx.Response(200))

    dispatcher = WebhookDispatcher([WebhookEndpoint(url=HOOK_URL, enabled=False)])
    assert await dispatcher.send("submission.created", {}) is True
    await dispatcher.close()

    assert not route.called


@respx.mock
@pytest.mark.asyncio
async def test_one_failing_endpoint_fails_send() -> None:
    respx.post("https://hooks.test/ok").mock(return_value=httpx.Response(200))
    respx.post("https://hooks.test/missing").mock(return_value=httpx.Response(404))

    dispatcher = WebhookDispatcher(
        [
            WebhookEndpoint(url="https://hooks.test/ok", retry_count=0),
            WebhookEndpoint(url="https://hooks.test/missing", retry_count=0),
        ],
        backoff_base=0,
    )
    assert await dispatcher.send("section.notice", {}) is False
    await dispatcher.close()


@pytest.mark.asyncio
async def test_no_endpoints_is_success() -> None:
    dispatcher = WebhookDispatcher([])
    assert await dispatcher.send("submission.created", {}) is True


def test_from_config() -> None:
    config = NotificationConfig(
        endpoints=[
            WebhookEndpointConfig(url="https://hooks.test/a", secret="s", retry_count=1),
            WebhookEndpointConfig(url="https://hooks.test/b", enabled=False),
        ]
    )
    dispatcher = WebhookDispatcher.from_config(config)

    assert [e.url for e in dispatcher.endpoints] == [
        "https://hooks.test/a",
        "https://hooks.test/b",
    ]
    assert dispatcher.endpoints[0].secret == "s"
    assert dispatcher.endpoints[1].enabled is False
