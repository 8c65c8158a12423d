"""
Client-side phase timer

The timer holds no countdown of its own: remaining time is recomputed from
the room's anchor timestamp on every tick, so a client that reconnects
mid-phase shows the same value as everyone else.
"""
from datetime import datetime
from typing import Callable, Optional, Tuple

from services.timer_service import is_expired, seconds_left

PhaseKey = Tuple[str, int, int]


class PhaseTimer:
    """
    One timer, re-armed for each phase entry

    Fires `on_complete` at most once per arming, and only while the phase it
    was armed for is still current.
    """

    def __init__(self, on_complete: Optional[Callable[[], None]] = None):
        self.on_complete = on_complete
        self.phase: Optional[PhaseKey] = None
        self.anchor: Optional[datetime] = None
        self.duration_seconds = 0
        self.fired = False

    def arm(self, phase: PhaseKey, anchor: Optional[datetime], duration_seconds: int) -> None:
        if phase != self.phase:
            self.fired = False
        self.phase = phase
        self.anchor = anchor
        self.duration_seconds = duration_seconds

    def disarm(self) -> None:
        self.phase = None
        self.anchor = None
        self.fired = False

    def enabled_for(self, current_phase: Optional[PhaseKey]) -> bool:
        return self.phase is not None and current_phase == self.phase

    def seconds_left(self, now: datetime) -> int:
        return seconds_left(self.anchor, self.duration_seconds, now)

    def check(self, now: datetime, current_phase: Optional[PhaseKey]) -> bool:
        """True exactly once, the first time this is called at or past the deadline."""
        if self.fired or not self.enabled_for(current_phase):
            return False
        if not is_expired(self.anchor, self.duration_seconds, now):
            return False
        self.fired = True
        if self.on_complete is not None:
            self.on_complete()
        return True
