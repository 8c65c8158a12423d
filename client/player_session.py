"""
Player-side session

Keeps one player's view of the room: which phase is showing, whether this
player already answered or submitted in it, and whether the host has gone
quiet. Submissions are guarded locally so a double tap sends one request;
the server's uniqueness check remains authoritative.
"""
from datetime import datetime
from typing import Callable, Optional
import logging

from config import Settings
from client.api_client import GameApiClient, GameApiError
from client.room_feed import RoomFeed
from client.timers import PhaseKey
from schemas import (
    AnswerResponse,
    GameStatus,
    PlayerOut,
    QuestionOut,
    RoomSnapshot,
    ScavengerSubmitResponse,
    phase_key,
    status_of,
)
from services.presence_service import is_host_disconnected
from services.timer_service import after_ms, elapsed_ms, seconds_left, utcnow

logger = logging.getLogger(__name__)

HOST_DISCONNECTED_VIEW = "host_disconnected"


class PlayerSession:

    def __init__(
        self,
        api: GameApiClient,
        room_code: str,
        client_uuid: str,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow
    ):
        self.api = api
        self.room_code = room_code
        self.client_uuid = client_uuid
        self.settings = settings
        self.clock = clock

        self.feed = RoomFeed(api, room_code, self.apply_room_snapshot)
        self.player: Optional[PlayerOut] = None
        self.snapshot: Optional[RoomSnapshot] = None
        self.current_phase: Optional[PhaseKey] = None
        self.question: Optional[QuestionOut] = None

        self.answered = False
        self.last_answer: Optional[AnswerResponse] = None
        self.scavenger_submitted = False

        self._next_poll: Optional[datetime] = None
        self._next_heartbeat: Optional[datetime] = None

    def join(self, display_name: str) -> PlayerOut:
        """Join (or rejoin from this device) and load the room."""
        self.player = self.api.join(self.room_code, self.client_uuid, display_name)
        logger.info(f"Joined {self.room_code} as {self.player.display_name}")
        self.feed.poll()
        return self.player

    def leave(self) -> None:
        if self.player is None:
            return
        try:
            self.api.heartbeat(self.room_code, self.player.id, connected=False)
        except GameApiError as e:
            logger.warning(f"Leave failed for {self.room_code}: {e}")

    # ── reconciliation ────────────────────────────────────────────────────

    def apply_room_snapshot(self, snapshot: RoomSnapshot) -> None:
        self.snapshot = snapshot
        if self.player is not None:
            for player in snapshot.players:
                if player.id == self.player.id:
                    self.player = player
                    break

        state = snapshot.room.game_state
        key = phase_key(state)
        if key == self.current_phase:
            return

        # New phase entry: per-phase flags start over
        self.current_phase = key
        self.answered = False
        self.last_answer = None
        self.scavenger_submitted = False

        status = status_of(state)
        if status in (GameStatus.LOBBY, GameStatus.FINISHED, GameStatus.ROUND_SUMMARY):
            self.question = None
            return

        # The reveal arrives with the trivia_review copy of the question
        try:
            self.question = self.api.get_question(self.room_code, key[1], key[2])
        except GameApiError as e:
            logger.error(f"Failed to load question {key[1]}-{key[2]}: {e}")
            self.question = None

        if status == GameStatus.SCAVENGER and self.player is not None and self.question is not None:
            try:
                self.scavenger_submitted = self.api.has_scavenger_submission(
                    self.room_code, self.player.id, self.question.id
                )
            except GameApiError as e:
                logger.warning(f"Scavenger check failed for {self.room_code}: {e}")

    # ── presentation ──────────────────────────────────────────────────────

    @property
    def status(self) -> Optional[GameStatus]:
        return status_of(self.snapshot.room.game_state) if self.snapshot else None

    @property
    def host_disconnected(self) -> bool:
        if self.snapshot is None:
            return False
        room = self.snapshot.room
        return is_host_disconnected(
            self.status, room.last_host_ping, self.clock(), self.settings.host_timeout_ms
        )

    @property
    def view(self) -> Optional[str]:
        """Screen to show: the phase name, or the host-disconnected posture."""
        if self.snapshot is None:
            return None
        if self.host_disconnected:
            return HOST_DISCONNECTED_VIEW
        return self.status.value

    def seconds_left(self) -> Optional[int]:
        if self.snapshot is None:
            return None
        state = self.snapshot.room.game_state
        settings = self.snapshot.room.settings
        now = self.clock()
        if self.status == GameStatus.TRIVIA:
            return seconds_left(state.question_start_time, settings.time_per_trivia_question, now)
        if self.status == GameStatus.SCAVENGER:
            return seconds_left(state.scavenger_start_time, settings.time_per_scavenger, now)
        return None

    # ── submissions ───────────────────────────────────────────────────────

    def answer(self, choice_id: str) -> Optional[AnswerResponse]:
        """
        Submit a trivia answer once per question

        Returns:
            the scored answer, or None when this player may not answer now
            (not trivia, already answered, host disconnected)

        Raises:
            GameApiError: anything other than the server reporting a duplicate
        """
        if (
            self.answered
            or self.player is None
            or self.question is None
            or self.status != GameStatus.TRIVIA
            or self.host_disconnected
        ):
            return None

        state = self.snapshot.room.game_state
        answer_time_ms = max(0, elapsed_ms(state.question_start_time, self.clock()))
        self.answered = True
        try:
            self.last_answer = self.api.submit_answer(
                self.room_code, self.player.id, self.question.id, choice_id, answer_time_ms
            )
        except GameApiError as e:
            if e.is_conflict:
                logger.info(f"Answer not accepted in {self.room_code}: {e.message}")
                return None
            self.answered = False
            raise
        return self.last_answer

    def submit_scavenger(self) -> Optional[ScavengerSubmitResponse]:
        """Same once-only guard as answer(), for the scavenger phase."""
        if (
            self.scavenger_submitted
            or self.player is None
            or self.question is None
            or self.status != GameStatus.SCAVENGER
            or self.host_disconnected
        ):
            return None

        self.scavenger_submitted = True
        try:
            return self.api.submit_scavenger(self.room_code, self.player.id, self.question.id)
        except GameApiError as e:
            if e.is_conflict:
                logger.info(f"Scavenger entry not accepted in {self.room_code}: {e.message}")
                return None
            self.scavenger_submitted = False
            raise

    # ── loop ──────────────────────────────────────────────────────────────

    def tick(self) -> None:
        """Poll the room and send heartbeats on their intervals."""
        now = self.clock()
        if self._next_poll is None or now >= self._next_poll:
            self._next_poll = after_ms(now, self.settings.count_poll_interval_ms)
            try:
                self.feed.poll()
            except GameApiError as e:
                logger.warning(f"Room poll failed for {self.room_code}: {e}")

        if self.player is not None and (self._next_heartbeat is None or now >= self._next_heartbeat):
            self._next_heartbeat = after_ms(now, self.settings.host_ping_interval_ms)
            try:
                self.api.heartbeat(self.room_code, self.player.id)
            except GameApiError as e:
                logger.debug(f"Heartbeat failed for {self.room_code}: {e}")
