import random

import pytest

from conftest import FakeClock
from realtime_notifications.client.backoff import ReconnectScheduler

BASE = 2.0
GROWTH = 1.5
MAX_DELAY = 30.0


def make_scheduler(jitter=(0.8, 1.2), seed=7, max_attempts=30) -> ReconnectScheduler:
    return ReconnectScheduler(
        FakeClock(),
        base_delay_s=BASE,
        growth=GROWTH,
        max_delay_s=MAX_DELAY,
        max_attempts=max_attempts,
        jitter=jitter,
        rng=random.Random(seed),
    )


def test_unjittered_schedule_matches_the_curve():
    scheduler = make_scheduler(jitter=(1.0, 1.0))
    assert [scheduler.delay_for(n) for n in range(3)] == pytest.approx([2.0, 3.0, 4.5])


@pytest.mark.parametrize("seed", range(5))
def test_jittered_delay_stays_in_bounds(seed):
    scheduler = make_scheduler(seed=seed)
    for n in range(40):
        raw = scheduler.base_delay_for(n)
        d = scheduler.delay_for(n)
        assert d <= MAX_DELAY
        assert d <= min(MAX_DELAY, raw * 1.2) + 1e-9
        assert d >= min(MAX_DELAY, raw * 0.8) - 1e-9


def test_attempt_counter_saturates_but_delay_is_capped():
    scheduler = make_scheduler(jitter=(1.0, 1.0), max_attempts=5)
    for _ in range(20):
        scheduler.schedule(lambda: None)
    assert scheduler.attempt == 5
    assert scheduler.delay_for(1000) == pytest.approx(scheduler.delay_for(5))

    assert make_scheduler(jitter=(1.0, 1.0)).delay_for(1000) == MAX_DELAY


def test_schedule_replaces_the_pending_timer():
    clock = FakeClock()
    scheduler = ReconnectScheduler(clock, jitter=(1.0, 1.0))
    fired = []
    scheduler.schedule(lambda: fired.append("first"))
    scheduler.schedule(lambda: fired.append("second"))

    clock.advance(60.0)

    assert fired == ["second"]
    assert not scheduler.pending


def test_cancel_and_reset():
    clock = FakeClock()
    scheduler = ReconnectScheduler(clock, jitter=(1.0, 1.0))
    fired = []
    assert scheduler.schedule(lambda: fired.append(1)) == pytest.approx(2.0)
    assert scheduler.attempt == 1
    scheduler.cancel()
    clock.advance(60.0)
    assert fired == []

    scheduler.reset()
    assert scheduler.attempt == 0


def test_inverted_jitter_is_rejected():
    with pytest.raises(ValueError):
        ReconnectScheduler(FakeClock(), jitter=(1.2, 0.8))
