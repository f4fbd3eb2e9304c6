"""
MODULE OVERVIEW:
The audio alert dispatcher.

WHAT IS HAPPENING HERE:
One preloaded resource per alert category. Hosts with an autoplay policy
reject audio until the user has interacted with the page, so playback is
gated on `user_has_interacted`. On the first interaction we play every
resource once at volume 0 ("unlock"), which lets later real alerts through.

Playback never raises. Every outcome is a `PlayResult`; failures are logged,
and the "interact to enable sound" hint is logged at most once.

The default resource fetches the category's sound file from the server with
HTTPX and rings the terminal bell through Rich when played.
"""

import asyncio
from enum import Enum
from typing import Dict, Protocol, Set

import httpx
from loguru import logger
from rich.console import Console

from realtime_notifications.shared.client_utils import build_http_url
from realtime_notifications.shared.errors import PlaybackRejectedError, ResourceMissingError
from realtime_notifications.shared.models import AlertCategory


class PlayResult(str, Enum):
    OK = "ok"
    POLICY_REJECTED = "policy_rejected"
    RESOURCE_MISSING = "resource_missing"
    FAILED = "failed"


class AudioResource(Protocol):
    volume: float

    def rewind(self) -> None: ...

    async def play(self) -> None: ...

    def pause(self) -> None: ...


class TerminalBellResource:
    def __init__(self, category: AlertCategory, data: bytes | None, console: Console | None = None):
        self.category = category
        self.data = data
        self.console = console or Console(stderr=True)
        self.volume = 1.0
        self.position = 0
        self.playing = False

    def rewind(self) -> None:
        self.position = 0

    async def play(self) -> None:
        if not self.data:
            raise ResourceMissingError(f"no sound loaded for {self.category.value}")
        self.playing = True
        if self.volume > 0:
            self.console.bell()

    def pause(self) -> None:
        self.playing = False


async def preload_sounds(
    server_base_url: str,
    sounds_path: str = "/sounds",
    client: httpx.AsyncClient | None = None,
    console: Console | None = None,
) -> Dict[AlertCategory, TerminalBellResource]:
    """Fetch `<sounds_path>/notification-<category>.mp3` for every category. Failures leave the resource empty."""
    own_client = client is None
    client = client or httpx.AsyncClient(timeout=10.0)
    resources: Dict[AlertCategory, TerminalBellResource] = {}
    try:
        for category in AlertCategory:
            url = build_http_url(server_base_url, f"{sounds_path}/notification-{category.value}.mp3")
            data = None
            try:
                resp = await client.get(url)
                resp.raise_for_status()
                data = resp.content
            except httpx.HTTPError as e:
                logger.warning(f"event=sound_preload_failed category={category.value} url={url} error='{e}'")
            resources[category] = TerminalBellResource(category, data, console)
    finally:
        if own_client:
            await client.aclose()
    return resources


class AudioAlertDispatcher:
    def __init__(self, resources: Dict[AlertCategory, AudioResource] | None = None):
        self.resources: Dict[AlertCategory, AudioResource] = dict(resources or {})
        self.user_has_interacted = False
        self._prompted = False
        self._unlock_task: asyncio.Task | None = None
        self._tasks: Set[asyncio.Task] = set()

    def _prompt_once(self) -> None:
        if not self._prompted:
            self._prompted = True
            logger.info("event=sound_locked hint='interact with the page to enable sound'")

    def _spawn(self, coro) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.debug("event=audio_skipped reason=no_running_loop")
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def record_interaction(self) -> None:
        """Host hook for the first pointer/keyboard/touch event. Later calls do nothing."""
        if self.user_has_interacted:
            return
        self.user_has_interacted = True
        logger.debug("event=user_interaction first=true")
        self._unlock_task = self._spawn(self.unlock())

    async def unlock(self) -> None:
        for category, resource in self.resources.items():
            saved_volume = resource.volume
            resource.volume = 0
            try:
                resource.rewind()
                await resource.play()
                resource.pause()
            except Exception as e:
                logger.debug(f"event=unlock_failed category={category.value} error='{e}'")
            finally:
                resource.volume = saved_volume

    async def play(self, category: AlertCategory) -> PlayResult:
        if not self.user_has_interacted:
            self._prompt_once()
            return PlayResult.POLICY_REJECTED

        if self._unlock_task is not None and not self._unlock_task.done():
            await asyncio.shield(self._unlock_task)

        resource = self.resources.get(category)
        if resource is None:
            logger.warning(f"event=sound_missing category={category.value}")
            return PlayResult.RESOURCE_MISSING

        resource.rewind()
        try:
            await resource.play()
        except ResourceMissingError as e:
            logger.warning(f"event=sound_missing category={category.value} error='{e}'")
            return PlayResult.RESOURCE_MISSING
        except PlaybackRejectedError as e:
            logger.warning(f"event=sound_rejected category={category.value} error='{e}'")
            self._prompt_once()
            return PlayResult.POLICY_REJECTED
        except Exception as e:
            logger.warning(f"event=sound_failed category={category.value} error='{e}'")
            return PlayResult.FAILED
        return PlayResult.OK

    def alert(self, category: AlertCategory) -> None:
        """Fire-and-forget `play` for synchronous callers such as the router."""
        if not self.user_has_interacted:
            self._prompt_once()
            return
        self._spawn(self.play(category))

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
