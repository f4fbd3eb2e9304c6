"""Realtime notification client: persistent channel, liveness, backoff, feed and alerts."""

from realtime_notifications.client.session import NotificationSession
from realtime_notifications.shared.config import Settings
from realtime_notifications.shared.models import AlertCategory, ConnectionState, Notification, NotificationKind

__all__ = [
    "AlertCategory",
    "ConnectionState",
    "Notification",
    "NotificationKind",
    "NotificationSession",
    "Settings",
]

__version__ = "1.0.0"
