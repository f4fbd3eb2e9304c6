"""
MODULE OVERVIEW:
The notification session: the one object a host constructs.

WHAT IS HAPPENING HERE:
It wires store, bus, audio, router, connection manager and environment
adapter together and exposes a start/stop lifecycle. Nothing here is a
module-level singleton, so two sessions in one test run never share state.

    session = NotificationSession(settings)
    session.bus.subscribe(show_toast)
    session.start()
    ...
    await session.aclose()
"""

import random
from typing import Dict, Iterable, List

from realtime_notifications.client.audio import AudioAlertDispatcher, AudioResource
from realtime_notifications.client.connection_manager import ConnectionManager
from realtime_notifications.client.environment import (
    EnvironmentSignalAdapter,
    ReachabilitySignalSource,
    SignalSource,
)
from realtime_notifications.client.router import EventRouter
from realtime_notifications.client.store import NotificationStore
from realtime_notifications.client.timers import AsyncioClock, Clock
from realtime_notifications.client.transport import TransportFactory, websocket_transport_factory
from realtime_notifications.shared.client_utils import build_http_url, build_ws_url, make_client_stats
from realtime_notifications.shared.config import Settings
from realtime_notifications.shared.events import NotificationBus
from realtime_notifications.shared.models import AlertCategory, ConnectionState, Notification


class NotificationSession:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport_factory: TransportFactory | None = None,
        clock: Clock | None = None,
        audio_resources: Dict[AlertCategory, AudioResource] | None = None,
        signal_sources: Iterable[SignalSource] = (),
        watch_reachability: bool = False,
        rng: random.Random | None = None,
    ):
        self.settings = settings or Settings()
        self.url = build_ws_url(self.settings.SERVER_BASE_URL, self.settings.WS_PATH)
        self.stats = make_client_stats()

        self.store = NotificationStore(self.settings.FEED_MAX_ITEMS)
        self.bus = NotificationBus()
        self.audio = AudioAlertDispatcher(audio_resources)
        self.router = EventRouter(self.store, self.bus, self.audio, self.stats)
        self.manager = ConnectionManager.from_settings(
            self.settings,
            self.url,
            transport_factory or websocket_transport_factory,
            clock or AsyncioClock(),
            on_frame=self.router.route,
            stats=self.stats,
            rng=rng,
        )

        sources = list(signal_sources)
        self.reachability: ReachabilitySignalSource | None = None
        if watch_reachability:
            self.reachability = ReachabilitySignalSource(
                build_http_url(self.settings.SERVER_BASE_URL, self.settings.HEALTH_PATH),
                self.settings.REACHABILITY_INTERVAL_S,
            )
            sources.append(self.reachability)
        self.environment = EnvironmentSignalAdapter(self.manager, sources)

    # ==========================
    # LIFECYCLE
    # ==========================
    def start(self) -> None:
        self.environment.attach()
        self.manager.start()
        if self.reachability is not None:
            self.reachability.start()

    def stop(self) -> None:
        """Cancel every timer, close the socket, drop every listener. Safe to call twice."""
        self.manager.stop()
        self.environment.detach()
        if self.reachability is not None:
            self.reachability.stop()

    async def aclose(self) -> None:
        self.stop()
        if self.reachability is not None:
            await self.reachability.aclose()
        await self.audio.aclose()

    async def __aenter__(self) -> "NotificationSession":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ==========================
    # FEED
    # ==========================
    @property
    def state(self) -> ConnectionState:
        return self.manager.state

    @property
    def notifications(self) -> List[Notification]:
        return self.store.snapshot()

    @property
    def unread_count(self) -> int:
        return self.store.unread_count

    def mark_read(self, notification_id: str) -> None:
        self.store.mark_read(notification_id)

    def mark_all_read(self) -> None:
        self.store.mark_all_read()

    def clear(self) -> None:
        self.store.clear()

    def record_interaction(self) -> None:
        self.audio.record_interaction()
