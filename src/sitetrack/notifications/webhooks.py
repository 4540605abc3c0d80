"""Webhook dispatcher for SiteTrack workflow events.

This module delivers outbox events to external services (mail/SMS bridges,
chat integrations). It supports:
- Multiple webhook endpoints with per-endpoint configuration
- HMAC-SHA256 signature headers for payload authenticity
- Retry logic with exponential backoff on delivery failures
- Structured event payloads with timestamps

Example webhook configuration:
    endpoints = [
        WebhookEndpoint(
            url="https://hooks.example.gov.ng/sitetrack",
            secret="your-secret-key",
            retry_count=3,
        ),
    ]
    dispatcher = WebhookDispatcher(endpoints=endpoints)
    await dispatcher.send("submission.approved", {"submission_id": "..."})
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from sitetrack.config import NotificationConfig

logger = structlog.get_logger(__name__)


@dataclass
class WebhookEndpoint:
    """Configuration for a single webhook endpoint.

    Attributes:
        url: The URL to send webhook payloads to.
        secret: Optional secret for HMAC-SHA256 signature generation.
        enabled: Whether this endpoint is active.
        retry_count: Number of retry attempts on failure.
        timeout_seconds: Request timeout in seconds.
    """

    url: str
    secret: str | None = None
    enabled: bool = True
    retry_count: int = 3
    timeout_seconds: int = 30


class WebhookPayload(BaseModel):
    """Structured payload for webhook delivery.

    Attributes:
        event: Dotted event name, e.g. "submission.queried".
        event_id: Outbox event id, stable across redeliveries.
        timestamp: ISO 8601 timestamp of this delivery.
        data: Event-specific data payload.
    """

    event: str = Field(..., description="The workflow event type")
    event_id: str | None = Field(default=None, description="Outbox event id")
    timestamp: str = Field(..., description="ISO 8601 timestamp of the delivery")
    data: dict[str, Any] = Field(default_factory=dict, description="Event-specific data")


class WebhookDispatcher:
    """Dispatches webhook events to configured endpoints.

    Attributes:
        endpoints: List of configured webhook endpoints.
        backoff_base: Seconds to wait before the first retry; doubles each time.
        logger: Structured logger for this dispatcher.
    """

    def __init__(
        self,
        endpoints: list[WebhookEndpoint] | None = None,
        backoff_base: float = 1.0,
    ) -> None:
        """Initialize the webhook dispatcher.

        Args:
            endpoints: List of webhook endpoints to send events to.
                      If None, no webhooks will be sent.
            backoff_base: Initial retry delay in seconds.
        """
        self.endpoints = endpoints or []
        self.backoff_base = backoff_base
        self.logger = logger.bind(component="webhook_dispatcher")
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: NotificationConfig) -> WebhookDispatcher:
        """Build a dispatcher from the notifications config section."""
        return cls(
            endpoints=[
                WebhookEndpoint(
                    url=endpoint.url,
                    secret=endpoint.secret,
                    enabled=endpoint.enabled,
                    retry_count=endpoint.retry_count,
                    timeout_seconds=endpoint.timeout_seconds,
                )
                for endpoint in config.endpoints
            ]
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient()
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _sign_payload(self, payload: str, secret: str) -> str:
        """Generate HMAC-SHA256 signature for a payload.

        Args:
            payload: The JSON payload string to sign.
            secret: The secret key for HMAC generation.

        Returns:
            Hexadecimal digest of the HMAC-SHA256 signature.
        """
        return hmac.new(
            secret.encode(),
            payload.encode(),
            hashlib.sha256,
        ).hexdigest()

    def _build_headers(
        self,
        event: str,
        payload_str: str,
        secret: str | None,
    ) -> dict[str, str]:
        timestamp = str(int(datetime.now(timezone.utc).timestamp()))
        headers = {
            "Content-Type": "application/json",
            "X-SiteTrack-Event": event,
            "X-SiteTrack-Timestamp": timestamp,
        }

        if secret:
            headers["X-SiteTrack-Signature"] = self._sign_payload(payload_str, secret)

        return headers

    async def _send_to_endpoint(
        self,
        endpoint: WebhookEndpoint,
        payload: WebhookPayload,
    ) -> bool:
        """Send a webhook payload to a single endpoint with retries.

        Returns:
            True if delivery was successful, False otherwise.
        """
        if not endpoint.enabled:
            self.logger.debug(
                "webhook_endpoint_disabled", url=endpoint.url, event_type=payload.event
            )
            return True

        payload_str = payload.model_dump_json()
        headers = self._build_headers(payload.event, payload_str, endpoint.secret)

        client = await self._get_client()
        last_error: Exception | None = None

        for attempt in range(endpoint.retry_count + 1):
            try:
                response = await client.post(
                    endpoint.url,
                    content=payload_str,
                    headers=headers,
                    timeout=endpoint.timeout_seconds,
                )

                if response.is_success:
                    self.logger.info(
                        "webhook_delivered",
                        url=endpoint.url,
                        event_type=payload.event,
                        status_code=response.status_code,
                        attempt=attempt + 1,
                    )
                    return True

                self.logger.warning(
                    "webhook_non_success_status",
                    url=endpoint.url,
                    event_type=payload.event,
                    status_code=response.status_code,
                    attempt=attempt + 1,
                )
                last_error = httpx.HTTPStatusError(
                    f"HTTP {response.status_code}",
                    request=response.request,
                    response=response,
                )

            except httpx.TimeoutException as e:
                last_error = e
                self.logger.warning(
                    "webhook_timed_out",
                    url=endpoint.url,
                    event_type=payload.event,
                    attempt=attempt + 1,
                    error=str(e),
                )

            except httpx.RequestError as e:
                last_error = e
                self.logger.warning(
                    "webhook_request_failed",
                    url=endpoint.url,
                    event_type=payload.event,
                    attempt=attempt + 1,
                    error=str(e),
                )

            # Exponential backoff before retry (1s, 2s, 4s, ...)
            if attempt < endpoint.retry_count:
                await asyncio.sleep(self.backoff_base * 2**attempt)

        self.logger.error(
            "webhook_delivery_exhausted",
            url=endpoint.url,
            event_type=payload.event,
            retry_count=endpoint.retry_count,
            error=str(last_error),
        )
        return False

    async def send(
        self,
        event: str,
        data: dict[str, Any],
        event_id: str | None = None,
    ) -> bool:
        """Send an event to all configured endpoints.

        Args:
            event: Dotted event name.
            data: Event-specific data payload.
            event_id: Outbox id, repeated on redelivery so receivers can dedupe.

        Returns:
            True if delivery to all enabled endpoints succeeded, False otherwise.
        """
        if not self.endpoints:
            self.logger.debug("webhook_no_endpoints", event_type=event)
            return True

        payload = WebhookPayload(
            event=event,
            event_id=event_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
            data=data,
        )

        tasks = [self._send_to_endpoint(endpoint, payload) for endpoint in self.endpoints]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        all_success = True
        for endpoint, result in zip(self.endpoints, results):
            if isinstance(result, Exception):
                self.logger.error(
                    "webhook_unexpected_error",
                    url=endpoint.url,
                    error=str(result),
                )
                all_success = False
            elif result is not True:
                all_success = False

        return all_success
