"""
CLI entrypoint for the realtime notification client.
"""
import asyncio
import random
import sys
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from realtime_notifications.client.audio import preload_sounds
from realtime_notifications.client.backoff import ReconnectScheduler
from realtime_notifications.client.session import NotificationSession
from realtime_notifications.client.timers import AsyncioClock
from realtime_notifications.client.visualizer import Visualizer
from realtime_notifications.shared.config import settings

app = typer.Typer(help="Realtime notification client")

def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())

async def _listen(base_url: str, duration: float, sound: bool) -> None:
    cfg = settings.model_copy(update={"SERVER_BASE_URL": base_url})
    resources = await preload_sounds(cfg.SERVER_BASE_URL, cfg.SOUNDS_PATH)
    session = NotificationSession(cfg, audio_resources=resources, watch_reachability=True)
    if sound:
        # Passing --sound is the user's explicit interaction.
        session.record_interaction()
    async with session:
        await Visualizer(session).run(duration)

@app.command()
def listen(
    base_url: str = typer.Option(settings.SERVER_BASE_URL, help="Server base URL; https selects wss"),
    duration: float = typer.Option(3600.0, help="How long to stay connected, in seconds"),
    sound: bool = typer.Option(False, "--sound/--no-sound", help="Enable audio alerts"),
):
    """Connect to the notification channel and show the live feed."""
    # Log to a file so the dashboard owns the terminal.
    logger.remove()
    logger.add("notifications.log", level=settings.LOG_LEVEL.upper())
    try:
        asyncio.run(_listen(base_url, duration, sound))
    except KeyboardInterrupt:
        pass

@app.command()
def backoff(
    attempts: int = typer.Option(10, help="Number of attempts to show"),
    jitter: bool = typer.Option(True, "--jitter/--no-jitter", help="Apply random jitter"),
    seed: Optional[int] = typer.Option(None, help="Seed for the jitter RNG"),
):
    """Print the reconnect delay schedule for the configured backoff."""
    configure_logging(settings.LOG_LEVEL)
    cfg = settings if jitter else settings.model_copy(update={"RECONNECT_JITTER_MIN": 1.0, "RECONNECT_JITTER_MAX": 1.0})
    scheduler = ReconnectScheduler.from_settings(AsyncioClock(), cfg, rng=random.Random(seed))

    table = Table(title="Reconnect schedule")
    table.add_column("Attempt", justify="right")
    table.add_column("Base delay (s)", justify="right")
    table.add_column("Delay (s)", justify="right")
    for n in range(attempts):
        table.add_row(str(n), f"{scheduler.base_delay_for(n):.2f}", f"{scheduler.delay_for(n):.2f}")
    Console().print(table)

if __name__ == "__main__":
    app()
