"""
MODULE OVERVIEW:
A tiny pub/sub bus for freshly inserted notifications.

WHAT IS HAPPENING HERE:
The router publishes every notification it stores; UI layers (toasts, the
terminal dashboard) subscribe. One bus per session, never a module-level
singleton, so parallel sessions in tests do not see each other's traffic.
"""

from typing import Callable, List
from loguru import logger
from .models import Notification

NotificationCallback = Callable[[Notification], None]

class NotificationBus:
    """
    Decouples the router (publisher) from presentation hooks (subscribers).
    """
    def __init__(self):
        self._subscribers: List[NotificationCallback] = []

    def subscribe(self, callback: NotificationCallback):
        self._subscribers.append(callback)

    def unsubscribe(self, callback: NotificationCallback):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def publish(self, notification: Notification):
        for sub in list(self._subscribers):
            try:
                sub(notification)
            except Exception as e:
                logger.error(f"Error in subscriber during publish: {e}")
