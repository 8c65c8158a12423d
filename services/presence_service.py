"""
Presence service: host liveness and player connectivity rules

The host pings on an interval; players read `last_host_ping` from the room
record and decide locally whether the host has gone away. Nothing here
pauses the game itself.
"""
from datetime import datetime, timedelta
from typing import Optional

from schemas import ACTIVE_STATUSES, GameStatus
from services.timer_service import elapsed_ms, ensure_aware


def is_host_disconnected(
    status: GameStatus,
    last_host_ping: Optional[datetime],
    now: datetime,
    timeout_ms: int
) -> bool:
    """
    True when a player should show the "host disconnected" screen

    Rules:
    - only during an active phase (never in lobby or finished)
    - a room that has never been pinged is not considered disconnected
    - otherwise: more than `timeout_ms` since the last ping
    """
    if GameStatus(status) not in ACTIVE_STATUSES:
        return False
    if last_host_ping is None:
        return False
    return elapsed_ms(last_host_ping, now) > timeout_ms


def player_seen_cutoff(now: datetime, timeout_ms: int) -> datetime:
    """Players last seen before this instant no longer count as connected."""
    return ensure_aware(now) - timedelta(milliseconds=timeout_ms)
