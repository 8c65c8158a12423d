"""
Timer service: wall-clock anchored phase timers

Phase timers are absolute timestamps (question_start_time,
scavenger_start_time) rather than countdowns, so any client can work out the
remaining time from the room record alone.
"""
import math
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Treat naive datetimes as UTC

    SQLite drops tzinfo on the way back out, so every comparison goes
    through here.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def after_ms(dt: datetime, ms: int) -> datetime:
    return ensure_aware(dt) + timedelta(milliseconds=ms)


def elapsed_ms(since: datetime, now: datetime) -> int:
    """Milliseconds from `since` to `now`; negative if `since` is in the future."""
    delta = ensure_aware(now) - ensure_aware(since)
    return int(delta.total_seconds() * 1000)


def deadline(anchor: datetime, duration_seconds: int) -> datetime:
    return ensure_aware(anchor) + timedelta(seconds=duration_seconds)


def seconds_left(anchor: Optional[datetime], duration_seconds: int, now: datetime) -> int:
    """
    Whole seconds remaining on a timer

    Before the anchor (during the 3-2-1 countdown) the full duration is shown.
    Elapsed time is floored, so the display reaches 0 exactly at the deadline.
    """
    if anchor is None:
        return duration_seconds
    elapsed = math.floor(elapsed_ms(anchor, now) / 1000)
    return max(0, min(duration_seconds, duration_seconds - elapsed))


def is_expired(anchor: Optional[datetime], duration_seconds: int, now: datetime) -> bool:
    if anchor is None:
        return False
    return ensure_aware(now) >= deadline(anchor, duration_seconds)
