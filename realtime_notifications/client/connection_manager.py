"""
MODULE OVERVIEW:
The connection manager: one state machine that owns the transport socket,
the health timers and the reconnect scheduler.

WHAT IS HAPPENING HERE:
Nothing mutates connection state except `handle()`. Socket callbacks, timers,
environment nudges and the public start/stop calls are all turned into small
event objects and pushed through it. If a handler triggers another event
(a fake socket opening synchronously, say), that event is queued and handled
after the current one finishes, so transitions never interleave.

States: DISCONNECTED -> CONNECTING -> OPEN, back to DISCONNECTED on any
failure, with CLOSING only while `stop()` tears the socket down. There is no
terminal state: while running, a DISCONNECTED manager always has a reconnect
timer pending.

Every socket we open gets a generation number baked into its callbacks.
Discarding a socket bumps the generation, so a late `on_close` or
`on_message` from a replaced socket is recognised as stale and ignored.
"""

import random
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Type

from loguru import logger

from realtime_notifications.client.backoff import ReconnectScheduler
from realtime_notifications.client.health import HealthMonitor
from realtime_notifications.client.timers import Clock, TimerHandle
from realtime_notifications.client.transport import TransportFactory, TransportHandlers, TransportSocket
from realtime_notifications.shared.client_utils import make_client_stats
from realtime_notifications.shared.config import Settings
from realtime_notifications.shared.models import ConnectionState, PingFrame

StateListener = Callable[[ConnectionState, ConnectionState, str], None]
FrameSink = Callable[[str | bytes], object]


# ==========================
# EVENTS
# ==========================
@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class TransportOpened:
    generation: int


@dataclass(frozen=True)
class TransportClosed:
    generation: int
    reason: str


@dataclass(frozen=True)
class FrameReceived:
    generation: int
    raw: str | bytes


@dataclass(frozen=True)
class HealthTick:
    generation: int


@dataclass(frozen=True)
class ProbeTimeout:
    generation: int


@dataclass(frozen=True)
class ReconnectDue:
    pass


@dataclass(frozen=True)
class EnvironmentNudge:
    signal: str


class ConnectionManager:
    def __init__(
        self,
        url: str,
        transport_factory: TransportFactory,
        clock: Clock,
        scheduler: ReconnectScheduler,
        health: HealthMonitor,
        on_frame: FrameSink | None = None,
        stats: dict | None = None,
    ):
        self.url = url
        self.transport_factory = transport_factory
        self.clock = clock
        self.scheduler = scheduler
        self.health = health
        self.on_frame = on_frame
        self.stats = stats if stats is not None else make_client_stats()

        self.state = ConnectionState.DISCONNECTED
        self._running = False
        self._socket: TransportSocket | None = None
        self._generation = 0
        self._cadence_timer: TimerHandle | None = None
        self._probe_timer: TimerHandle | None = None
        self._state_listeners: List[StateListener] = []

        self._inbox: Deque[object] = deque()
        self._dispatching = False
        self._handlers: Dict[Type, Callable] = {
            Start: self._on_start,
            Stop: self._on_stop,
            TransportOpened: self._on_transport_opened,
            TransportClosed: self._on_transport_closed,
            FrameReceived: self._on_frame_received,
            HealthTick: self._on_health_tick,
            ProbeTimeout: self._on_probe_timeout,
            ReconnectDue: self._on_reconnect_due,
            EnvironmentNudge: self._on_environment_nudge,
        }

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        url: str,
        transport_factory: TransportFactory,
        clock: Clock,
        on_frame: FrameSink | None = None,
        stats: dict | None = None,
        rng: random.Random | None = None,
    ) -> "ConnectionManager":
        return cls(
            url,
            transport_factory,
            clock,
            ReconnectScheduler.from_settings(clock, settings, rng=rng),
            HealthMonitor(settings.WS_HEARTBEAT_INTERVAL_S, settings.WS_PONG_TIMEOUT_S),
            on_frame=on_frame,
            stats=stats,
        )

    # ==========================
    # PUBLIC INTERFACE
    # ==========================
    @property
    def running(self) -> bool:
        return self._running

    @property
    def generation(self) -> int:
        return self._generation

    def start(self) -> None:
        self.handle(Start())

    def stop(self) -> None:
        self.handle(Stop())

    def nudge(self, signal: str) -> None:
        """Environment hint (back online, tab visible): reconnect now if we are down."""
        self.handle(EnvironmentNudge(signal))

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        if listener in self._state_listeners:
            self._state_listeners.remove(listener)

    def handle(self, event) -> None:
        self._inbox.append(event)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._inbox:
                current = self._inbox.popleft()
                self._handlers[type(current)](current)
        finally:
            self._dispatching = False

    # ==========================
    # HELPERS
    # ==========================
    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._socket is not None

    def _set_state(self, new_state: ConnectionState, reason: str) -> None:
        old_state = self.state
        if old_state == new_state:
            return
        self.state = new_state
        logger.info(f"event=state from={old_state.value} to={new_state.value} reason='{reason}'")
        for listener in list(self._state_listeners):
            try:
                listener(old_state, new_state, reason)
            except Exception as e:
                logger.error(f"Error in state listener: {e}")

    def _open_transport(self, reason: str) -> None:
        self.scheduler.cancel()
        self._discard_socket()
        self._generation += 1
        generation = self._generation
        handlers = TransportHandlers(
            on_open=lambda: self.handle(TransportOpened(generation)),
            on_message=lambda raw: self.handle(FrameReceived(generation, raw)),
            on_close=lambda why: self.handle(TransportClosed(generation, why)),
        )
        self._set_state(ConnectionState.CONNECTING, reason)
        logger.info(f"event=open url={self.url} attempt={self.scheduler.attempt} generation={generation}")
        try:
            self._socket = self.transport_factory(self.url, handlers)
        except Exception as e:
            logger.warning(f"event=open_failed url={self.url} error='{e}'")
            self._socket = None
            self._fail_connection(f"open failed: {e}")

    def _discard_socket(self) -> None:
        socket, self._socket = self._socket, None
        if socket is None:
            return
        # Invalidate the old socket's callbacks before closing it.
        self._generation += 1
        try:
            socket.close()
        except Exception as e:
            logger.debug(f"event=close_failed error='{e}'")

    def _arm_health(self) -> None:
        self.health.arm(self.clock.now())
        self._schedule_health_tick()

    def _schedule_health_tick(self) -> None:
        # Next check lands one cadence after the last inbound frame.
        delay = max(0.0, self.health.cadence_s - self.health.idle_for(self.clock.now()))
        generation = self._generation
        self._cadence_timer = self.clock.call_later(delay, lambda: self.handle(HealthTick(generation)))

    def _stop_health(self) -> None:
        self.health.disarm()
        for timer in (self._cadence_timer, self._probe_timer):
            if timer is not None:
                timer.cancel()
        self._cadence_timer = None
        self._probe_timer = None

    def _schedule_reconnect(self) -> None:
        if not self._running:
            return
        self.stats["reconnects_scheduled"] = self.stats.get("reconnects_scheduled", 0) + 1
        self.scheduler.schedule(lambda: self.handle(ReconnectDue()))

    def _fail_connection(self, reason: str) -> None:
        self._stop_health()
        self._discard_socket()
        self._set_state(ConnectionState.DISCONNECTED, reason)
        self._schedule_reconnect()

    # ==========================
    # TRANSITIONS
    # ==========================
    def _on_start(self, event: Start) -> None:
        self._running = True
        if self.state != ConnectionState.DISCONNECTED:
            logger.debug(f"event=start_ignored state={self.state.value}")
            return
        self._open_transport("start")

    def _on_stop(self, event: Stop) -> None:
        self._running = False
        self.scheduler.cancel()
        self._stop_health()
        if self._socket is not None:
            self._set_state(ConnectionState.CLOSING, "stop")
        self._discard_socket()
        self._set_state(ConnectionState.DISCONNECTED, "stop")

    def _on_transport_opened(self, event: TransportOpened) -> None:
        if not self._is_current(event.generation) or self.state != ConnectionState.CONNECTING:
            logger.debug(f"event=stale_open generation={event.generation}")
            return
        self._set_state(ConnectionState.OPEN, "transport opened")
        self.scheduler.reset()
        self._arm_health()

    def _on_transport_closed(self, event: TransportClosed) -> None:
        if not self._is_current(event.generation):
            logger.debug(f"event=stale_close generation={event.generation} reason='{event.reason}'")
            return
        if self.state not in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            return
        logger.warning(f"event=transport_closed state={self.state.value} reason='{event.reason}'")
        self._fail_connection(event.reason)

    def _on_frame_received(self, event: FrameReceived) -> None:
        if not self._is_current(event.generation) or self.state != ConnectionState.OPEN:
            return
        self.stats["frames_received"] = self.stats.get("frames_received", 0) + 1
        self.stats["last_frame_at"] = datetime.now(timezone.utc).isoformat()

        rtt = self.health.record_frame(self.clock.now())
        if self._probe_timer is not None:
            self._probe_timer.cancel()
            self._probe_timer = None
        if rtt is not None:
            self.stats["last_rtt_ms"] = round(rtt * 1000, 1)
        if self._cadence_timer is None:
            self._schedule_health_tick()

        if self.on_frame is None:
            return
        try:
            self.on_frame(event.raw)
        except Exception:
            logger.exception("event=frame_handler_error")

    def _on_health_tick(self, event: HealthTick) -> None:
        if not self._is_current(event.generation) or self.state != ConnectionState.OPEN:
            return
        self._cadence_timer = None
        now = self.clock.now()
        if self.health.should_probe(now):
            logger.debug(f"event=probe idle_s={self.health.idle_for(now):.1f}")
            self._socket.send(PingFrame().model_dump_json())
            self.health.mark_probe_sent(now)
            self.stats["probes_sent"] = self.stats.get("probes_sent", 0) + 1
            generation = self._generation
            self._probe_timer = self.clock.call_later(
                self.health.probe_timeout_s, lambda: self.handle(ProbeTimeout(generation))
            )
            return
        if not self.health.state.pending_probe:
            self._schedule_health_tick()

    def _on_probe_timeout(self, event: ProbeTimeout) -> None:
        if not self._is_current(event.generation) or self.state != ConnectionState.OPEN:
            return
        self._probe_timer = None
        if not self.health.is_dead():
            return
        logger.warning(f"event=probe_timeout timeout_s={self.health.probe_timeout_s} url={self.url}")
        self.stats["probe_timeouts"] = self.stats.get("probe_timeouts", 0) + 1
        # Dead-peer recovery restarts the backoff curve.
        self.scheduler.reset()
        self._fail_connection("probe timeout")

    def _on_reconnect_due(self, event: ReconnectDue) -> None:
        if not self._running or self.state != ConnectionState.DISCONNECTED:
            return
        self._open_transport("reconnect")

    def _on_environment_nudge(self, event: EnvironmentNudge) -> None:
        if not self._running:
            return
        if self.state != ConnectionState.DISCONNECTED:
            logger.debug(f"event=nudge_ignored signal={event.signal} state={self.state.value}")
            return
        logger.info(f"event=nudge signal={event.signal}")
        self._open_transport(f"environment: {event.signal}")
