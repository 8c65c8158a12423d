"""
Game-phase state machine

All game_state changes go through here:

    lobby ──start──▶ trivia ──▶ trivia_review ──▶ scavenger ──▶ review
                       ▲                                          │
                       ├──────────── next question ───────────────┤
                       │                                          ├──▶ round_summary ──┐
                       └──────────────── next round ──────────────┼────────────────────┘
                                                                  └──▶ finished ──restart──▶ lobby

`paused` is a reserved status: nothing enters or leaves it, and advancing
from it is a no-op.
"""
from datetime import datetime
from typing import Dict, FrozenSet, Optional
import logging

from sqlalchemy.orm import Session

from core.exceptions import InvalidStateTransition, StaleGameState
from core.room_store import RoomStore
from models import EventLog, Room
from schemas import (
    FinishedState,
    GameSettings,
    GameState,
    GameStatus,
    LobbyState,
    ReviewState,
    RoundSummaryState,
    ScavengerState,
    TriviaReviewState,
    TriviaState,
    parse_game_state,
    status_of,
)
from services.timer_service import after_ms

logger = logging.getLogger(__name__)


class GameStateMachine:
    """Transition table, successor computation and the versioned write."""

    TRANSITIONS: Dict[GameStatus, FrozenSet[GameStatus]] = {
        GameStatus.LOBBY: frozenset({GameStatus.TRIVIA}),
        GameStatus.TRIVIA: frozenset({GameStatus.TRIVIA_REVIEW}),
        GameStatus.TRIVIA_REVIEW: frozenset({GameStatus.SCAVENGER}),
        GameStatus.SCAVENGER: frozenset({GameStatus.REVIEW}),
        GameStatus.REVIEW: frozenset({GameStatus.TRIVIA, GameStatus.ROUND_SUMMARY, GameStatus.FINISHED}),
        GameStatus.ROUND_SUMMARY: frozenset({GameStatus.TRIVIA}),
        GameStatus.FINISHED: frozenset({GameStatus.LOBBY}),
        GameStatus.PAUSED: frozenset(),
    }

    @classmethod
    def can_transition(cls, from_status: GameStatus, to_status: GameStatus) -> bool:
        return GameStatus(to_status) in cls.TRANSITIONS.get(GameStatus(from_status), frozenset())

    # ── successor computation (pure) ──────────────────────────────────────

    @staticmethod
    def start_state(now: datetime, countdown_ms: int) -> TriviaState:
        """First question of round 1; the timer anchor sits after the 3-2-1 countdown."""
        return TriviaState(
            current_round=1,
            current_question=1,
            question_start_time=after_ms(now, countdown_ms),
        )

    @staticmethod
    def restart_state() -> LobbyState:
        return LobbyState()

    @staticmethod
    def next_state(
        state: GameState,
        settings: GameSettings,
        now: datetime,
        countdown_ms: int
    ) -> Optional[GameState]:
        """
        The state an "advance" leads to

        Returns:
            the successor state, or None when advancing is a no-op
            (finished, paused)

        Raises:
            InvalidStateTransition: advancing from lobby (only "start" may
                leave the lobby)
        """
        status = status_of(state)

        if status == GameStatus.LOBBY:
            raise InvalidStateTransition("The game has not started; use start instead of advance")

        if status == GameStatus.TRIVIA:
            return TriviaReviewState(
                current_round=state.current_round,
                current_question=state.current_question,
                question_start_time=state.question_start_time,
            )

        if status == GameStatus.TRIVIA_REVIEW:
            return ScavengerState(
                current_round=state.current_round,
                current_question=state.current_question,
                question_start_time=state.question_start_time,
                scavenger_start_time=now,
            )

        if status == GameStatus.SCAVENGER:
            return ReviewState(
                current_round=state.current_round,
                current_question=state.current_question,
                question_start_time=state.question_start_time,
                scavenger_start_time=state.scavenger_start_time,
            )

        if status == GameStatus.REVIEW:
            if state.current_question < settings.questions_per_round:
                return TriviaState(
                    current_round=state.current_round,
                    current_question=state.current_question + 1,
                    question_start_time=after_ms(now, countdown_ms),
                )
            if state.current_round < settings.number_of_rounds:
                return RoundSummaryState(
                    current_round=state.current_round,
                    current_question=state.current_question,
                )
            return FinishedState()

        if status == GameStatus.ROUND_SUMMARY:
            return TriviaState(
                current_round=state.current_round + 1,
                current_question=1,
                question_start_time=after_ms(now, countdown_ms),
            )

        # finished (restart is a separate action) and the reserved paused status
        return None

    @classmethod
    def validate_replacement(
        cls,
        current: GameState,
        new: GameState,
        settings: GameSettings,
        now: datetime,
        countdown_ms: int
    ) -> GameState:
        """
        Check a caller-supplied whole-state replacement

        The only acceptable replacement is the state `next_state` would
        produce: same status, same round and question. Timer anchors are
        never taken from the caller; the server-computed successor is
        returned and is what gets written.

        Raises:
            InvalidStateTransition: the status is not a legal successor, or
                the round/question coordinates differ from the successor's
        """
        from_status, to_status = status_of(current), status_of(new)
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransition(
                f"Cannot transition from {from_status.value} to {to_status.value}"
            )

        expected = cls.next_state(current, settings, now, countdown_ms)
        if expected is None or status_of(expected) != to_status:
            raise InvalidStateTransition(
                f"{to_status.value} does not follow {from_status.value} at "
                f"round {current.current_round}, question {current.current_question}"
            )
        if to_status in (GameStatus.LOBBY, GameStatus.FINISHED):
            return expected

        if (new.current_round, new.current_question) != (expected.current_round, expected.current_question):
            raise InvalidStateTransition(
                f"Expected round {expected.current_round}, question {expected.current_question} "
                f"for {to_status.value}, got round {new.current_round}, question {new.current_question}"
            )
        return expected

    # ── persistence ───────────────────────────────────────────────────────

    @staticmethod
    def transition(
        db: Session,
        room: Room,
        new_state: GameState,
        expected_version: int,
        event_type: str = "PHASE_CHANGED"
    ) -> Room:
        """
        Write `new_state` if the room is still at `expected_version`

        Records an event-log entry and returns the refreshed room. Does not
        commit; callers run inside @transactional.

        Raises:
            StaleGameState: someone else changed the game state first
        """
        previous = parse_game_state(room.game_state)
        store = RoomStore(db)

        if not store.compare_and_set_game_state(room.id, expected_version, new_state):
            raise StaleGameState(
                f"Room {room.room_code} game state changed (expected version {expected_version})"
            )

        db.add(EventLog(
            room_id=room.id,
            event_type=event_type,
            data={
                "from": previous.status,
                "to": new_state.status,
                "round": new_state.current_round,
                "question": new_state.current_question,
                "version": expected_version + 1,
            },
        ))
        db.refresh(room)

        logger.info(
            "Room %s: %s -> %s (round %s, question %s, version %s)",
            room.room_code,
            previous.status,
            new_state.status,
            new_state.current_round,
            new_state.current_question,
            room.state_version
        )
        return room
