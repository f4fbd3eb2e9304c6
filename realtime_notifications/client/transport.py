"""
MODULE OVERVIEW:
The transport socket: one bidirectional, message-oriented connection.

WHAT IS HAPPENING HERE:
We use the `websockets` library, but the rest of the engine never sees it.
A transport is created by a factory `(url, handlers) -> TransportSocket` and
reports back through three callbacks, exactly like a browser WebSocket:
`on_open`, `on_message`, `on_close`. Tests swap in a fake factory and drive
those callbacks by hand.

Library-level keepalive pings are disabled (`ping_interval=None`); liveness is
detected with application frames by the health monitor.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Protocol, Set

import websockets
from loguru import logger


@dataclass
class TransportHandlers:
    on_open: Callable[[], None]
    on_message: Callable[[str | bytes], None]
    on_close: Callable[[str], None]


class TransportSocket(Protocol):
    def send(self, text: str) -> None: ...

    def close(self) -> None: ...


TransportFactory = Callable[[str, TransportHandlers], TransportSocket]


class WebSocketTransport:
    """
    Runs one connection in a background task on the running loop.
    After `close()` no callback fires any more.
    """

    def __init__(self, url: str, handlers: TransportHandlers, open_timeout_s: float = 10.0):
        self.url = url
        self.handlers = handlers
        self.open_timeout_s = open_timeout_s
        self._ws = None
        self._closed = False
        self._send_tasks: Set[asyncio.Task] = set()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        reason = "closed"
        try:
            async with websockets.connect(
                self.url, ping_interval=None, open_timeout=self.open_timeout_s
            ) as ws:
                self._ws = ws
                if self._closed:
                    return
                self.handlers.on_open()
                async for message in ws:
                    if self._closed:
                        return
                    self.handlers.on_message(message)
                reason = f"closed code={ws.close_code}"
        except asyncio.CancelledError:
            return
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
            reason = f"{type(e).__name__}: {e}"
        finally:
            self._ws = None

        if not self._closed:
            self.handlers.on_close(reason)

    def send(self, text: str) -> None:
        ws = self._ws
        if ws is None or self._closed:
            logger.warning(f"event=send_dropped reason=not_connected url={self.url}")
            return
        task = asyncio.get_running_loop().create_task(self._send(ws, text))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    async def _send(self, ws, text: str) -> None:
        try:
            await ws.send(text)
        except websockets.WebSocketException as e:
            # The reader task sees the same failure and reports on_close.
            logger.warning(f"event=send_failed url={self.url} error='{e}'")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._task.done():
            self._task.cancel()


def websocket_transport_factory(url: str, handlers: TransportHandlers) -> WebSocketTransport:
    return WebSocketTransport(url, handlers)
