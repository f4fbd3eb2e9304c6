"""
MODULE OVERVIEW:
The reconnect scheduler.

WHAT IS HAPPENING HERE:
Delay for attempt n is `min(max_delay, base * growth**n * jitter)` with jitter
drawn uniformly per attempt. Jitter spreads a fleet of clients that lost the
server at the same instant so they do not all knock on the door together.

The attempt counter saturates at `max_attempts`. That only stops the exponent
from growing; the delay is already capped and retries never stop.
Exactly one reconnect timer may be outstanding at a time.
"""

import random
from typing import Callable

from loguru import logger

from realtime_notifications.client.timers import Clock, TimerHandle
from realtime_notifications.shared.config import Settings


class ReconnectScheduler:
    def __init__(
        self,
        clock: Clock,
        base_delay_s: float = 2.0,
        growth: float = 1.5,
        max_delay_s: float = 30.0,
        max_attempts: int = 30,
        jitter: tuple[float, float] = (0.8, 1.2),
        rng: random.Random | None = None,
    ):
        if jitter[0] > jitter[1]:
            raise ValueError(f"jitter range is inverted: {jitter}")
        self.clock = clock
        self.base_delay_s = base_delay_s
        self.growth = growth
        self.max_delay_s = max_delay_s
        self.max_attempts = max_attempts
        self.jitter = jitter
        self.rng = rng or random.Random()

        self.attempt = 0
        self._timer: TimerHandle | None = None

    @classmethod
    def from_settings(cls, clock: Clock, settings: Settings, rng: random.Random | None = None) -> "ReconnectScheduler":
        return cls(
            clock,
            base_delay_s=settings.RECONNECT_BASE_DELAY_S,
            growth=settings.RECONNECT_GROWTH,
            max_delay_s=settings.RECONNECT_MAX_DELAY_S,
            max_attempts=settings.RECONNECT_MAX_ATTEMPTS,
            jitter=(settings.RECONNECT_JITTER_MIN, settings.RECONNECT_JITTER_MAX),
            rng=rng,
        )

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def base_delay_for(self, attempt: int) -> float:
        """Un-jittered, uncapped delay for a 0-indexed attempt."""
        exponent = min(max(attempt, 0), self.max_attempts)
        return self.base_delay_s * (self.growth ** exponent)

    def delay_for(self, attempt: int) -> float:
        factor = self.rng.uniform(*self.jitter)
        return min(self.max_delay_s, self.base_delay_for(attempt) * factor)

    def schedule(self, callback: Callable[[], None]) -> float:
        """
        Arm the reconnect timer for the current attempt and advance the counter.
        Any previously pending timer is cancelled first. Returns the delay used.
        """
        self.cancel()
        delay = self.delay_for(self.attempt)
        logger.info(f"event=reconnect_scheduled attempt={self.attempt} delay_s={delay:.2f}")
        self.attempt = min(self.attempt + 1, self.max_attempts)

        def fire():
            self._timer = None
            callback()

        self._timer = self.clock.call_later(delay, fire)
        return delay

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def reset(self) -> None:
        self.attempt = 0
