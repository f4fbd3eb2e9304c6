"""
MODULE OVERVIEW:
The liveness monitor.

WHAT IS HAPPENING HERE:
A half-open TCP connection looks perfectly healthy to the socket API while the
peer is gone. We catch that at the application level: if nothing at all has
arrived for a whole heartbeat interval, send a ping; if nothing arrives within
the probe timeout after that, the connection is dead.

This class only keeps the health state and answers questions about it. The
connection manager owns the actual cadence and timeout timers and asks here
what to do when they fire.
"""

from dataclasses import dataclass


@dataclass
class HealthState:
    last_frame_at: float = 0.0
    pending_probe: bool = False
    probe_sent_at: float | None = None


class HealthMonitor:
    def __init__(self, cadence_s: float = 30.0, probe_timeout_s: float = 5.0):
        self.cadence_s = cadence_s
        self.probe_timeout_s = probe_timeout_s
        self.state = HealthState()
        self.armed = False

    def arm(self, now: float) -> None:
        self.state = HealthState(last_frame_at=now)
        self.armed = True

    def disarm(self) -> None:
        self.armed = False
        self.state.pending_probe = False
        self.state.probe_sent_at = None

    def record_frame(self, now: float) -> float | None:
        """
        Any inbound frame counts, parseable or not.
        Returns the probe round-trip in seconds when this frame answered a pending probe.
        """
        rtt = None
        if self.state.pending_probe and self.state.probe_sent_at is not None:
            rtt = now - self.state.probe_sent_at
        self.state.last_frame_at = now
        self.state.pending_probe = False
        self.state.probe_sent_at = None
        return rtt

    def idle_for(self, now: float) -> float:
        return now - self.state.last_frame_at

    def should_probe(self, now: float) -> bool:
        return self.armed and not self.state.pending_probe and self.idle_for(now) >= self.cadence_s

    def mark_probe_sent(self, now: float) -> None:
        self.state.pending_probe = True
        self.state.probe_sent_at = now

    def is_dead(self) -> bool:
        """True when the probe timeout fired with the probe still unanswered."""
        return self.armed and self.state.pending_probe
