"""
MODULE OVERVIEW:
The Rich terminal dashboard.

WHAT IS HAPPENING HERE:
We use Rich to render the live notification feed. The session runs on the
same loop; the dashboard subscribes to its state changes and notification bus
and redraws the Layout four times a second.
"""

from rich.live import Live
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from collections import deque
from datetime import datetime
import asyncio

from realtime_notifications.client.session import NotificationSession
from realtime_notifications.shared.models import ConnectionState, Notification, NotificationKind

KIND_STYLE = {
    NotificationKind.INFO: "cyan",
    NotificationKind.SUCCESS: "green",
    NotificationKind.WARNING: "yellow",
    NotificationKind.ERROR: "red",
}

class Visualizer:
    def __init__(self, session: NotificationSession, feed_rows: int = 15):
        self.session = session
        self.feed_rows = feed_rows
        self.status = session.state
        self.timeline = deque(maxlen=6)

    def on_state_change(self, old: ConnectionState, new: ConnectionState, reason: str):
        self.status = new
        ts = datetime.now().strftime("%H:%M:%S")
        self.timeline.appendleft(f"[{ts}] {old.value} -> {new.value} ({reason})")

    def on_notification(self, notification: Notification):
        ts = datetime.now().strftime("%H:%M:%S")
        self.timeline.appendleft(f"[{ts}] {notification.title}")

    def generate_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main")
        )
        layout["main"].split_row(
            Layout(name="left", ratio=2),
            Layout(name="right", ratio=1)
        )
        layout["right"].split_column(
            Layout(name="stats"),
            Layout(name="timeline")
        )

        color = "green" if self.status == ConnectionState.OPEN else "yellow" if self.status == ConnectionState.CONNECTING else "red"
        layout["header"].update(Panel(
            f"[{color} bold]{self.session.url} | State: {self.status.value} | Unread: {self.session.unread_count}[/]",
            style=color,
        ))

        table = Table(title="Notifications", expand=True)
        table.add_column("Time", justify="left", style="cyan", no_wrap=True)
        table.add_column("Kind")
        table.add_column("Title", style="bold")
        table.add_column("Message")

        for n in self.session.notifications[:self.feed_rows]:
            style = KIND_STYLE.get(n.kind, "white")
            marker = "" if n.read else "* "
            table.add_row(
                n.occurred_at.astimezone().strftime("%H:%M:%S"),
                f"[{style}]{n.kind.value}[/]",
                f"{marker}{n.title}",
                n.message,
            )

        layout["left"].update(Panel(table, title="Feed"))

        stats = self.session.stats
        rtt = stats["last_rtt_ms"]
        stats_text = (
            f"Frames Received: {stats['frames_received']}\n"
            f"Frames Dropped: {stats['frames_dropped']}\n"
            f"Notifications: {stats['notifications']}\n"
            f"Reconnects: {stats['reconnects_scheduled']}\n"
            f"Probes: {stats['probes_sent']} (timeouts {stats['probe_timeouts']})\n"
            f"Last RTT: {'-' if rtt is None else f'{rtt}ms'}"
        )
        layout["stats"].update(Panel(stats_text, title="Connection Stats"))

        layout["timeline"].update(Panel("\n".join(self.timeline), title="Timeline"))

        return layout

    async def run(self, duration_s: float):
        self.session.manager.add_state_listener(self.on_state_change)
        self.session.bus.subscribe(self.on_notification)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration_s
        try:
            with Live(self.generate_layout(), refresh_per_second=4) as live:
                while loop.time() < deadline:
                    live.update(self.generate_layout())
                    await asyncio.sleep(0.25)
        finally:
            self.session.bus.unsubscribe(self.on_notification)
            self.session.manager.remove_state_listener(self.on_state_change)
