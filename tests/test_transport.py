"""
The websockets-backed transport against a loopback server.
"""

import asyncio
import json
import socket

import websockets

from realtime_notifications.client.transport import TransportHandlers, WebSocketTransport


class Recorder:
    def __init__(self):
        self.opened = asyncio.Event()
        self.closed = asyncio.Event()
        self.messages = []
        self.got_message = asyncio.Event()
        self.close_reason = None

    def handlers(self) -> TransportHandlers:
        return TransportHandlers(on_open=self.opened.set, on_message=self.on_message, on_close=self.on_close)

    def on_message(self, raw):
        self.messages.append(raw)
        self.got_message.set()

    def on_close(self, reason):
        self.close_reason = reason
        self.closed.set()


async def pong_server(ws):
    await ws.send(json.dumps({"type": "connection", "message": "Connected to notification server"}))
    async for message in ws:
        if json.loads(message).get("type") == "ping":
            await ws.send(json.dumps({"type": "pong"}))


def free_port() -> int:
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def test_round_trip_and_local_close_is_silent():
    async with websockets.serve(pong_server, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        rec = Recorder()
        transport = WebSocketTransport(f"ws://127.0.0.1:{port}/ws", rec.handlers())

        await asyncio.wait_for(rec.opened.wait(), 5)
        await asyncio.wait_for(rec.got_message.wait(), 5)
        assert json.loads(rec.messages[0])["type"] == "connection"

        rec.got_message.clear()
        transport.send(json.dumps({"type": "ping", "timestamp": 1}))
        await asyncio.wait_for(rec.got_message.wait(), 5)
        assert json.loads(rec.messages[-1]) == {"type": "pong"}

        transport.close()
        await asyncio.sleep(0.05)
        assert not rec.closed.is_set()


async def test_refused_connection_reports_close():
    rec = Recorder()
    WebSocketTransport(f"ws://127.0.0.1:{free_port()}/ws", rec.handlers(), open_timeout_s=2.0)
    await asyncio.wait_for(rec.closed.wait(), 5)
    assert not rec.opened.is_set()
    assert rec.close_reason


async def test_server_going_away_reports_close():
    async def hang_up(ws):
        await ws.close()

    async with websockets.serve(hang_up, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        rec = Recorder()
        WebSocketTransport(f"ws://127.0.0.1:{port}/ws", rec.handlers())
        await asyncio.wait_for(rec.closed.wait(), 5)
        assert rec.opened.is_set()


async def test_send_before_open_is_dropped():
    rec = Recorder()
    transport = WebSocketTransport(f"ws://127.0.0.1:{free_port()}/ws", rec.handlers(), open_timeout_s=2.0)
    transport.send("{}")
    transport.close()
    await asyncio.sleep(0.05)
    assert not rec.closed.is_set()
