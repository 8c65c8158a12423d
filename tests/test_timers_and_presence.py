from datetime import datetime, timedelta, timezone

from client.timers import PhaseTimer
from schemas import GameStatus
from services.presence_service import is_host_disconnected, player_seen_cutoff
from services.timer_service import ensure_aware, is_expired, seconds_left

T0 = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


def at(ms):
    return T0 + timedelta(milliseconds=ms)


class TestTimerService:
    def test_seconds_left_counts_down_from_anchor(self):
        assert seconds_left(T0, 30, at(0)) == 30
        assert seconds_left(T0, 30, at(999)) == 30
        assert seconds_left(T0, 30, at(1000)) == 29
        assert seconds_left(T0, 30, at(30000)) == 0
        assert seconds_left(T0, 30, at(90000)) == 0

    def test_countdown_before_anchor_shows_full_duration(self):
        assert seconds_left(T0, 30, at(-3000)) == 30

    def test_late_joiner_sees_same_time(self):
        # No start event needed: the anchor alone gives remaining time
        assert seconds_left(T0, 60, at(42500)) == 18

    def test_is_expired(self):
        assert not is_expired(T0, 30, at(29999))
        assert is_expired(T0, 30, at(30000))
        assert not is_expired(None, 30, at(100000))

    def test_naive_datetimes_treated_as_utc(self):
        naive = datetime(2026, 10, 18, 12, 0, 0)
        assert ensure_aware(naive) == T0


class TestPresence:
    def test_host_disconnected_after_timeout_in_active_phase(self):
        assert not is_host_disconnected(GameStatus.TRIVIA, T0, at(10000), 10000)
        assert is_host_disconnected(GameStatus.TRIVIA, T0, at(10001), 10000)
        assert is_host_disconnected(GameStatus.REVIEW, T0, at(60000), 10000)

    def test_never_disconnected_in_lobby_or_finished(self):
        assert not is_host_disconnected(GameStatus.LOBBY, T0, at(600000), 10000)
        assert not is_host_disconnected(GameStatus.FINISHED, T0, at(600000), 10000)

    def test_never_pinged_is_not_disconnected(self):
        assert not is_host_disconnected(GameStatus.SCAVENGER, None, at(600000), 10000)

    def test_player_seen_cutoff(self):
        assert player_seen_cutoff(at(60000), 60000) == T0


class TestPhaseTimer:
    def test_fires_once_at_deadline(self):
        fired = []
        timer = PhaseTimer(on_complete=lambda: fired.append(True))
        phase = ("trivia", 1, 1)
        timer.arm(phase, T0, 30)

        assert not timer.check(at(29000), phase)
        assert timer.check(at(30000), phase)
        assert not timer.check(at(31000), phase)
        assert fired == [True]

    def test_ignored_once_phase_moved_on(self):
        timer = PhaseTimer()
        timer.arm(("trivia", 1, 1), T0, 30)
        assert not timer.check(at(60000), ("trivia_review", 1, 1))

    def test_rearming_for_new_phase_resets(self):
        timer = PhaseTimer()
        timer.arm(("trivia", 1, 1), T0, 30)
        assert timer.check(at(30000), ("trivia", 1, 1))

        timer.arm(("trivia", 1, 2), at(60000), 30)
        assert not timer.check(at(70000), ("trivia", 1, 2))
        assert timer.check(at(90000), ("trivia", 1, 2))

    def test_disarmed_never_fires(self):
        timer = PhaseTimer()
        timer.arm(("scavenger", 1, 1), T0, 30)
        timer.disarm()
        assert not timer.check(at(100000), ("scavenger", 1, 1))
