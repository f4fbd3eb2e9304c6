"""
MODULE OVERVIEW:
The in-memory notification feed.

WHAT IS HAPPENING HERE:
A deque with newest-first order (`appendleft` is O(1)) plus an id index so
duplicate deliveries are ignored. `unread_count` is recomputed from the
records every time it is read; an incrementally maintained counter drifts the
first time some code path forgets to update it.

Thread-safety: the deque and index are guarded by `_lock`, so a UI thread may
take snapshots while the event loop inserts.
"""

import threading
from collections import deque
from typing import Deque, Dict, List

from realtime_notifications.shared.models import Notification


class NotificationStore:
    def __init__(self, max_items: int = 0):
        # 0 means unbounded
        self.max_items = max_items
        self._items: Deque[Notification] = deque()
        self._index: Dict[str, Notification] = {}
        self._lock = threading.Lock()

    def insert(self, notification: Notification) -> bool:
        """Prepend. Returns False (and changes nothing) when the id is already stored."""
        with self._lock:
            if notification.id in self._index:
                return False
            if self.max_items and len(self._items) >= self.max_items:
                evicted = self._items.pop()
                del self._index[evicted.id]
            self._items.appendleft(notification)
            self._index[notification.id] = notification
            return True

    def mark_read(self, notification_id: str) -> None:
        with self._lock:
            record = self._index.get(notification_id)
            if record is not None:
                record.read = True

    def mark_all_read(self) -> None:
        with self._lock:
            for record in self._items:
                record.read = True

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self._index.clear()

    @property
    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for record in self._items if not record.read)

    def get(self, notification_id: str) -> Notification | None:
        with self._lock:
            record = self._index.get(notification_id)
            return record.model_copy() if record is not None else None

    def snapshot(self) -> List[Notification]:
        """Copies, newest first. Callers never hold the stored records."""
        with self._lock:
            return [record.model_copy() for record in self._items]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
