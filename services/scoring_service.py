"""
Scoring service: point awards for trivia answers and scavenger submissions

Pure functions; callers persist the result and apply it to the player's
total through an atomic increment.
"""
import math
from typing import Optional

# Time-scaled trivia answers never drop below this share of the base points
MIN_TRIVIA_POINTS_RATIO = 0.5


def round_half_up(value: float) -> int:
    """
    Round .5 away from zero for positive values

    Python's round() is banker's rounding (round(2.5) == 2); point awards
    use the schoolbook rule instead.
    """
    return int(math.floor(value + 0.5))


def compute_trivia_points(
    is_correct: bool,
    base_points: int,
    time_limit_seconds: int,
    elapsed_ms: int,
    time_scaling: bool = True
) -> int:
    """
    Points for one trivia answer

    Rules:
    - wrong answer: 0, whatever the timing
    - correct, no scaling: base_points
    - correct, scaled: linear from 100% of base at 0 ms down to 50% at (and
      beyond) the time limit

        time_ratio   = clamp(elapsed_ms / (time_limit_seconds * 1000), 0, 1)
        scaled_ratio = 0.5 + 0.5 * (1 - time_ratio)

    Examples (base 100, limit 30 s):
        0 ms     -> 100
        15000 ms -> 75
        30000 ms -> 50
        45000 ms -> 50
    """
    if not is_correct:
        return 0

    if not time_scaling:
        return base_points

    time_limit_ms = time_limit_seconds * 1000
    if time_limit_ms <= 0:
        time_ratio = 1.0
    else:
        time_ratio = max(0.0, min(1.0, elapsed_ms / time_limit_ms))

    scaled_ratio = MIN_TRIVIA_POINTS_RATIO + (1 - MIN_TRIVIA_POINTS_RATIO) * (1 - time_ratio)
    return round_half_up(base_points * scaled_ratio)


def compute_scavenger_points(
    approved: Optional[bool],
    is_first_approved: bool,
    first_points: int = 10,
    other_points: int = 5,
    rejected_points: int = 2
) -> int:
    """
    Points for one reviewed scavenger submission

    ┌──────────────────────────────┬─────────────────┐
    │ approved                     │ points          │
    ├──────────────────────────────┼─────────────────┤
    │ None (pending)               │ 0               │
    │ False (rejected)             │ rejected_points │
    │ True, first approved         │ first_points    │
    │ True, not first approved     │ other_points    │
    └──────────────────────────────┴─────────────────┘

    "First approved" is decided at approval time (no other submission for the
    question approved yet), not by submission order: if the first submitter is
    rejected, the next one approved still earns first_points.
    """
    if approved is None:
        return 0

    if approved is False:
        return rejected_points

    return first_points if is_first_approved else other_points
