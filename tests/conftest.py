"""
Shared fakes for the notification engine tests: a clock that only moves when
told to, a transport factory whose sockets are driven by hand, and audio
resources that record what they were asked to do.
"""

import json
from typing import Any, Callable, List

import pytest

from realtime_notifications.client.connection_manager import ConnectionManager
from realtime_notifications.client.store import NotificationStore
from realtime_notifications.client.transport import TransportHandlers
from realtime_notifications.shared.config import Settings
from realtime_notifications.shared.models import Notification, NotificationKind


# ============================================================================
# Clock
# ============================================================================


class FakeTimer:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.t = start
        self.timers: List[FakeTimer] = []

    def now(self) -> float:
        return self.t

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.t + delay_s, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        target = self.t + seconds
        while True:
            due = [t for t in self.pending if t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self.t = timer.when
            timer.fired = True
            timer.callback()
        self.t = target


# ============================================================================
# Transport
# ============================================================================


class FakeSocket:
    def __init__(self, url: str, handlers: TransportHandlers):
        self.url = url
        self.handlers = handlers
        self.sent: List[str] = []
        self.closed = False

    def send(self, text: str) -> None:
        self.sent.append(text)

    def close(self) -> None:
        self.closed = True

    # Peer-side controls
    def open(self) -> None:
        self.handlers.on_open()

    def receive(self, frame: Any) -> None:
        raw = frame if isinstance(frame, (str, bytes)) else json.dumps(frame)
        self.handlers.on_message(raw)

    def drop(self, reason: str = "connection lost") -> None:
        self.handlers.on_close(reason)

    @property
    def sent_frames(self) -> List[dict]:
        return [json.loads(s) for s in self.sent]


class FakeTransportFactory:
    def __init__(self, auto_open: bool = False):
        self.auto_open = auto_open
        self.sockets: List[FakeSocket] = []

    def __call__(self, url: str, handlers: TransportHandlers) -> FakeSocket:
        socket = FakeSocket(url, handlers)
        self.sockets.append(socket)
        if self.auto_open:
            socket.open()
        return socket

    @property
    def last(self) -> FakeSocket:
        return self.sockets[-1]


# ============================================================================
# Audio
# ============================================================================


class FakeAudioResource:
    def __init__(self, error: Exception | None = None):
        self.volume = 1.0
        self.error = error
        self.plays: List[float] = []
        self.rewinds = 0
        self.pauses = 0

    def rewind(self) -> None:
        self.rewinds += 1

    async def play(self) -> None:
        if self.error is not None:
            raise self.error
        self.plays.append(self.volume)

    def pause(self) -> None:
        self.pauses += 1


class RecordingAudio:
    """Stands in for the dispatcher where only the requested categories matter."""

    def __init__(self):
        self.alerts = []

    def alert(self, category) -> None:
        self.alerts.append(category)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(
        SERVER_BASE_URL="http://warehouse.test",
        RECONNECT_JITTER_MIN=1.0,
        RECONNECT_JITTER_MAX=1.0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transports() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def frames() -> list:
    return []


@pytest.fixture
def manager(settings, clock, transports, frames) -> ConnectionManager:
    return ConnectionManager.from_settings(
        settings, "ws://warehouse.test/ws", transports, clock, on_frame=frames.append
    )


@pytest.fixture
def store() -> NotificationStore:
    return NotificationStore(max_items=0)


def make_notification(notification_id: str, kind: NotificationKind = NotificationKind.INFO) -> Notification:
    return Notification(id=notification_id, title=f"title {notification_id}", message="", kind=kind)


