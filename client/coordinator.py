"""
Host-side auto-advance coordinator

Runs only on the host device. Each tick it may:

    every 100 ms   check the trivia / scavenger timers
    every 2000 ms  poll the room, poll answered / submitted counts
    every 3000 ms  ping host presence

and decides whether to move the game on:

    ┌─────────────────────────────┬──────────────────────────────────────┐
    │ trigger                     │ action                               │
    ├─────────────────────────────┼──────────────────────────────────────┤
    │ all players answered        │ advance                              │
    │ all players submitted       │ advance                              │
    │ count check failed          │ do nothing (assume not all answered) │
    │ trivia timer, ≥1 answer     │ advance                              │
    │ trivia timer, 0 answers     │ wait for the host (waiting flag)     │
    │ trivia timer, check failed  │ advance anyway                       │
    │ scavenger timer             │ advance                              │
    └─────────────────────────────┴──────────────────────────────────────┘

Automatic advances happen at most once per phase entry. Every advance,
manual or automatic, is held back by the advance lock and by the minimum
dwell time on a freshly loaded trivia question. The server still has the
final word: each request carries the status and version it was decided on.
"""
from datetime import datetime
from threading import Event, Lock
from typing import Callable, Optional, Set
import logging

from config import Settings
from client.api_client import GameApiClient, GameApiError
from client.room_feed import RoomFeed
from client.timers import PhaseKey, PhaseTimer
from schemas import (
    GameSettings,
    GameStatus,
    QuestionOut,
    RoomOut,
    RoomSnapshot,
    phase_key,
    status_of,
)
from services.timer_service import after_ms, elapsed_ms, utcnow

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Phases tied to one question; the question is loaded on entry
QUESTION_STATUSES = frozenset({
    GameStatus.TRIVIA,
    GameStatus.TRIVIA_REVIEW,
    GameStatus.SCAVENGER,
    GameStatus.REVIEW,
})


class AdvanceLock:
    """
    Single-flight guard for advance requests on this device

    Held while a request is outstanding and for `cooldown_ms` after it
    completes, so the coordinator does not act again before its own change
    has come back through the feed.
    """

    def __init__(self, clock: Clock, cooldown_ms: int):
        self.clock = clock
        self.cooldown_ms = cooldown_ms
        self.in_flight = False
        self.released_at: Optional[datetime] = None
        # run() ticks on its own thread while the UI calls advance()
        self._mutex = Lock()

    @property
    def held(self) -> bool:
        if self.in_flight:
            return True
        return self.released_at is not None and self.clock() < self.released_at

    def try_acquire(self) -> bool:
        with self._mutex:
            if self.held:
                return False
            self.in_flight = True
            return True

    def release(self) -> None:
        with self._mutex:
            self.in_flight = False
            self.released_at = after_ms(self.clock(), self.cooldown_ms)


class AutoAdvanceCoordinator:

    def __init__(
        self,
        api: GameApiClient,
        room_code: str,
        host_key: str,
        settings: Settings,
        clock: Clock = utcnow
    ):
        self.api = api
        self.room_code = room_code
        self.host_key = host_key
        self.settings = settings
        self.clock = clock

        self.lock = AdvanceLock(clock, settings.advance_cooldown_ms)
        self.feed = RoomFeed(api, room_code, self.apply_room_snapshot)
        self.trivia_timer = PhaseTimer()
        self.scavenger_timer = PhaseTimer()

        self.snapshot: Optional[RoomSnapshot] = None
        self.current_phase: Optional[PhaseKey] = None
        self.question: Optional[QuestionOut] = None
        self.question_loaded_at: Optional[datetime] = None
        # state_version of each phase entry already auto-advanced once
        self.auto_advanced: Set[int] = set()
        self.waiting_for_players = False
        self.last_error: Optional[str] = None

        self._next_room_poll: Optional[datetime] = None
        self._next_count_poll: Optional[datetime] = None
        self._next_ping: Optional[datetime] = None

    # ── view of the room ──────────────────────────────────────────────────

    @property
    def room(self) -> Optional[RoomOut]:
        return self.snapshot.room if self.snapshot else None

    @property
    def status(self) -> Optional[GameStatus]:
        return status_of(self.room.game_state) if self.room else None

    @property
    def game_settings(self) -> Optional[GameSettings]:
        return self.room.settings if self.room else None

    def apply_room_snapshot(self, snapshot: RoomSnapshot) -> None:
        """
        Reconcile local state with a room snapshot

        Idempotent: applying the same snapshot twice changes nothing. On a
        new phase entry the per-phase flags reset, the question is
        (re)loaded and the matching timer is armed.
        """
        self.snapshot = snapshot
        state = snapshot.room.game_state
        key = phase_key(state)
        if key == self.current_phase:
            return

        logger.info(f"Room {self.room_code} entered {state.status} (round {key[1]}, question {key[2]})")
        self.current_phase = key
        self.waiting_for_players = False

        status = status_of(state)
        if status in QUESTION_STATUSES:
            if (
                self.question is None
                or (self.question.round_number, self.question.question_number) != (key[1], key[2])
                or status == GameStatus.TRIVIA
            ):
                self.load_question(key[1], key[2])
        else:
            self.question = None
            self.question_loaded_at = None

        settings = snapshot.room.settings
        if status == GameStatus.TRIVIA:
            self.trivia_timer.arm(key, state.question_start_time, settings.time_per_trivia_question)
        else:
            self.trivia_timer.disarm()
        if status == GameStatus.SCAVENGER:
            self.scavenger_timer.arm(key, state.scavenger_start_time, settings.time_per_scavenger)
        else:
            self.scavenger_timer.disarm()

    def load_question(self, round_number: int, question_number: int) -> Optional[QuestionOut]:
        try:
            self.question = self.api.get_question(self.room_code, round_number, question_number)
            self.question_loaded_at = self.clock()
        except GameApiError as e:
            logger.error(f"Failed to load question {round_number}-{question_number}: {e}")
            self.question = None
            self.question_loaded_at = None
        return self.question

    def refresh(self) -> bool:
        try:
            return self.feed.poll()
        except GameApiError as e:
            logger.warning(f"Room poll failed for {self.room_code}: {e}")
            return False

    # ── guards ────────────────────────────────────────────────────────────

    def dwell_satisfied(self) -> bool:
        """A freshly loaded trivia question stays up for min_question_dwell_ms."""
        if self.status != GameStatus.TRIVIA:
            return True
        if self.question_loaded_at is None:
            return False
        return elapsed_ms(self.question_loaded_at, self.clock()) >= self.settings.min_question_dwell_ms

    def can_advance(self) -> bool:
        if self.room is None:
            return False
        if self.status in (GameStatus.LOBBY, GameStatus.FINISHED, GameStatus.PAUSED):
            return False
        return not self.lock.held and self.dwell_satisfied()

    def can_auto_advance(self) -> bool:
        return self.can_advance() and self.room.state_version not in self.auto_advanced

    # ── actions ───────────────────────────────────────────────────────────

    def ping_host(self) -> None:
        """Best effort: a failed ping is only logged."""
        try:
            self.api.ping_host(self.room_code, self.host_key)
        except GameApiError as e:
            logger.debug(f"Host ping failed for {self.room_code}: {e}")

    def request_advance(self, reason: str, automatic: bool = True) -> bool:
        """
        Ask the server to advance from the phase this device is looking at

        Flow:
        1. Check the guards (lock, dwell, once-per-phase for automatic calls)
        2. Ping presence so players do not see a gap during the write
        3. POST advance with expected status + version
        4. Apply the returned room; on 409 re-read the room instead

        Returns:
            True if the server moved the game on
        """
        # 1. Guards
        if not (self.can_auto_advance() if automatic else self.can_advance()):
            return False
        if not self.lock.try_acquire():
            return False

        room = self.room
        if automatic:
            self.auto_advanced.add(room.state_version)

        try:
            # 2. Presence
            self.ping_host()

            # 3. Advance
            logger.info(f"Advancing room {self.room_code} from {room.game_state.status}: {reason}")
            response = self.api.advance(
                self.room_code,
                self.host_key,
                expected_status=status_of(room.game_state),
                expected_version=room.state_version,
            )
            self.last_error = None

            # 4. Apply
            if response.changed:
                self.feed.apply(RoomSnapshot(room=response.room, players=self.snapshot.players))
            return response.changed

        except GameApiError as e:
            if e.is_conflict:
                # Someone else already moved the game; catch up
                logger.info(f"Advance for {self.room_code} was stale: {e.message}")
                self.refresh()
            else:
                logger.error(f"Failed to advance {self.room_code}: {e}")
                self.last_error = f"Failed to advance: {e.message}. Please try again."
                self.auto_advanced.discard(room.state_version)
            return False

        finally:
            self.lock.release()

    def advance(self) -> bool:
        """Manual "next" from the host."""
        return self.request_advance("host", automatic=False)

    def start_game(self) -> RoomOut:
        """
        Raises:
            GameApiError: e.g. no connected players yet
        """
        self.ping_host()
        room = self.api.start_game(self.room_code, self.host_key)
        players = self.snapshot.players if self.snapshot else []
        self.feed.apply(RoomSnapshot(room=room, players=players))
        return room

    def restart_game(self) -> RoomOut:
        room = self.api.restart_game(self.room_code, self.host_key)
        players = self.snapshot.players if self.snapshot else []
        self.feed.apply(RoomSnapshot(room=room, players=players))
        return room

    # ── periodic checks ───────────────────────────────────────────────────

    def check_participation(self) -> bool:
        """All connected players answered / submitted -> advance."""
        if self.question is None or not self.can_auto_advance():
            return False

        status = self.status
        try:
            if status == GameStatus.TRIVIA:
                counts = self.api.answered_count(self.room_code, self.question.id)
                logger.debug(f"Auto-advance check (trivia): {counts.answered_count}/{counts.player_count} answered")
                if counts.all_answered:
                    return self.request_advance("all players answered")
            elif status == GameStatus.SCAVENGER:
                counts = self.api.submitted_count(self.room_code, self.question.id)
                logger.debug(
                    f"Auto-advance check (scavenger): {counts.submitted_count}/{counts.player_count} submitted"
                )
                if counts.all_submitted:
                    return self.request_advance("all players submitted")
        except GameApiError as e:
            logger.warning(f"Count check failed for {self.room_code}, not advancing: {e}")
        return False

    def check_timers(self) -> bool:
        """Timer expiry -> advance (trivia only when someone answered)."""
        if not self.can_auto_advance():
            return False

        now = self.clock()
        if self.trivia_timer.check(now, self.current_phase):
            has_submissions = True
            if self.question is not None:
                try:
                    has_submissions = self.api.answered_count(self.room_code, self.question.id).has_submissions
                except GameApiError as e:
                    logger.warning(f"Submission check failed for {self.room_code}, advancing anyway: {e}")
            if not has_submissions:
                logger.info(f"Trivia timer expired in {self.room_code} with no answers; waiting for host")
                self.waiting_for_players = True
                return False
            return self.request_advance("trivia timer expired")

        if self.scavenger_timer.check(now, self.current_phase):
            return self.request_advance("scavenger timer expired")

        return False

    def seconds_left(self) -> Optional[int]:
        now = self.clock()
        if self.trivia_timer.enabled_for(self.current_phase):
            return self.trivia_timer.seconds_left(now)
        if self.scavenger_timer.enabled_for(self.current_phase):
            return self.scavenger_timer.seconds_left(now)
        return None

    def tick(self) -> None:
        """One pass of the schedule; call every timer_tick_ms."""
        now = self.clock()

        if self._next_room_poll is None or now >= self._next_room_poll:
            self._next_room_poll = after_ms(now, self.settings.count_poll_interval_ms)
            self.refresh()
            if self.question is None and self.status in QUESTION_STATUSES:
                self.load_question(self.current_phase[1], self.current_phase[2])

        if self.room is not None and (self._next_ping is None or now >= self._next_ping):
            self._next_ping = after_ms(now, self.settings.host_ping_interval_ms)
            self.ping_host()

        self.check_timers()

        if self._next_count_poll is None or now >= self._next_count_poll:
            self._next_count_poll = after_ms(now, self.settings.count_poll_interval_ms)
            self.check_participation()

    def run(self, stop_event: Event) -> None:
        """Drive tick() until stop_event is set (run it on its own thread)."""
        interval = self.settings.timer_tick_ms / 1000
        logger.info(f"Coordinator started for room {self.room_code}")
        while not stop_event.is_set():
            self.tick()
            stop_event.wait(interval)
        logger.info(f"Coordinator stopped for room {self.room_code}")
