"""
MODULE OVERVIEW:
Environment signals: network online/offline and visibility.

WHAT IS HAPPENING HERE:
A backoff timer may be sitting on a 30 second delay when the network comes
back. Rather than wait it out, the adapter listens to signal sources and
nudges the connection manager the moment the host says "online" or
"visible". The manager decides whether the nudge means anything (it only
acts when DISCONNECTED).

Sources only need `subscribe` / `unsubscribe`. Two are provided:
  ManualSignalSource        the host (or a test) calls `emit()`
  ReachabilitySignalSource  polls the server's health endpoint with HTTPX and
                            emits online/offline when the answer flips
"""

import asyncio
from enum import Enum
from typing import Callable, Iterable, List, Protocol

import httpx
from loguru import logger


class EnvironmentSignal(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    VISIBLE = "visible"
    HIDDEN = "hidden"


SignalCallback = Callable[[EnvironmentSignal], None]

RECONNECT_SIGNALS = frozenset({EnvironmentSignal.ONLINE, EnvironmentSignal.VISIBLE})


class SignalSource(Protocol):
    def subscribe(self, callback: SignalCallback) -> None: ...

    def unsubscribe(self, callback: SignalCallback) -> None: ...


class ManualSignalSource:
    def __init__(self):
        self._subscribers: List[SignalCallback] = []

    def subscribe(self, callback: SignalCallback) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: SignalCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self, signal: EnvironmentSignal) -> None:
        for callback in list(self._subscribers):
            callback(signal)


class ReachabilitySignalSource(ManualSignalSource):
    """
    Polls `health_url` every `interval_s`. The first answer only sets the
    baseline; after that, each flip between reachable and unreachable emits
    ONLINE or OFFLINE.
    """

    def __init__(self, health_url: str, interval_s: float = 15.0, client: httpx.AsyncClient | None = None):
        super().__init__()
        self.health_url = health_url
        self.interval_s = interval_s
        self._client = client
        self._own_client = client is None
        self._task: asyncio.Task | None = None
        self.online: bool | None = None

    async def check(self) -> bool:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=5.0)
        try:
            resp = await self._client.get(self.health_url)
            return resp.status_code < 500
        except httpx.HTTPError as e:
            logger.debug(f"event=reachability_failed url={self.health_url} error='{e}'")
            return False

    async def poll_once(self) -> None:
        reachable = await self.check()
        previous, self.online = self.online, reachable
        if previous is None or previous == reachable:
            return
        self.emit(EnvironmentSignal.ONLINE if reachable else EnvironmentSignal.OFFLINE)

    async def _run(self) -> None:
        try:
            while True:
                await self.poll_once()
                await asyncio.sleep(self.interval_s)
        except asyncio.CancelledError:
            pass

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def aclose(self) -> None:
        self.stop()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        if self._own_client and self._client is not None:
            await self._client.aclose()
            self._client = None


class EnvironmentSignalAdapter:
    def __init__(self, manager, sources: Iterable[SignalSource] = ()):
        self.manager = manager
        self.sources = list(sources)
        self._attached = False

    def attach(self) -> None:
        if self._attached:
            return
        for source in self.sources:
            source.subscribe(self.on_signal)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        for source in self.sources:
            source.unsubscribe(self.on_signal)
        self._attached = False

    def on_signal(self, signal: EnvironmentSignal) -> None:
        if signal in RECONNECT_SIGNALS:
            self.manager.nudge(signal.value)
        else:
            logger.info(f"event=environment signal={signal.value}")
