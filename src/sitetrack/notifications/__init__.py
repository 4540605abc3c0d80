"""Notification delivery for SiteTrack workflow events."""

from sitetrack.notifications.relay import NotificationRelay, RelayReport
from sitetrack.notifications.webhooks import (
    WebhookDispatcher,
    WebhookEndpoint,
    WebhookPayload,
)

__all__ = [
    "NotificationRelay",
    "RelayReport",
    "WebhookDispatcher",
    "WebhookEndpoint",
    "WebhookPayload",
]
