"""
Phase Manager: host-driven game-state changes

Every operation here:
1. locks the room row
2. checks the host key
3. computes the next state through GameStateMachine
4. writes it with a compare-and-swap on state_version

A caller that read an older state (second host tab, retried request, two
auto-advance loops) gets StaleGameState instead of skipping a phase.
"""
from typing import Optional, Tuple
import logging

from sqlalchemy.orm import Session

from config import Settings
from core.exceptions import (
    InvalidStateTransition,
    NoConnectedPlayers,
    RoomNotFound,
    StaleGameState,
)
from core.locks import with_room_lock
from core.room_manager import RoomManager
from core.room_store import RoomStore
from core.state_machine import GameStateMachine
from database import transactional
from models import Player, Question, Room, ScavengerSubmission, Submission
from schemas import GameState, GameStatus, parse_game_state, status_of
from services.timer_service import utcnow

logger = logging.getLogger(__name__)


class PhaseManager:

    @staticmethod
    def _lock_room(db: Session, code: str) -> Room:
        room = RoomStore(db).get_by_code(code)
        locked = with_room_lock(room.id, db).first()
        if not locked:
            raise RoomNotFound(code)
        return locked

    @staticmethod
    def _reset_scores(db: Session, room_id: str) -> Tuple[int, int]:
        """
        Zero every player's points and drop all answers and scavenger entries

        Returns:
            (answers deleted, scavenger submissions deleted)
        """
        store = RoomStore(db)
        db.flush()
        answers = store.delete_where(Submission, Submission.room_id == room_id)
        scavenger = store.delete_where(ScavengerSubmission, ScavengerSubmission.room_id == room_id)
        db.query(Player).filter(Player.room_id == room_id).update(
            {Player.points: 0}, synchronize_session=False
        )
        # Scavenger ordering starts again from 1
        db.query(Question).filter(Question.room_id == room_id).update(
            {Question.scavenger_sequence: 0}, synchronize_session=False
        )
        return answers, scavenger

    @staticmethod
    @transactional
    def start_game(db: Session, code: str, host_key: str, settings: Settings) -> Room:
        """
        lobby -> trivia

        Flow:
        1. Lock room, check host key
        2. Require lobby and at least one connected player
        3. Fresh game: points to 0, delete prior submissions
        4. Round 1 question 1, timer anchored after the countdown

        Raises:
            Unauthorized
            InvalidStateTransition: room is not in the lobby
            NoConnectedPlayers: nobody to play with
        """
        # 1. Room
        room = PhaseManager._lock_room(db, code)
        RoomManager.verify_host_key(room, host_key)

        # 2. Preconditions
        state = parse_game_state(room.game_state)
        if status_of(state) != GameStatus.LOBBY:
            raise InvalidStateTransition(f"Cannot start a game in {state.status}")

        player_count = RoomManager.connected_player_count(db, room.id, settings)
        if player_count < 1:
            raise NoConnectedPlayers("At least one connected player is needed to start")

        # 3. Reset
        answers, scavenger = PhaseManager._reset_scores(db, room.id)

        # 4. Transition
        new_state = GameStateMachine.start_state(utcnow(), settings.countdown_ms)
        room = GameStateMachine.transition(
            db, room, new_state, room.state_version, event_type="GAME_STARTED"
        )

        logger.info(
            f"Started game in room {room.room_code} with {player_count} connected players "
            f"(cleared {answers} answers, {scavenger} scavenger submissions)"
        )
        return room

    @staticmethod
    @transactional
    def advance(
        db: Session,
        code: str,
        host_key: str,
        settings: Settings,
        expected_status: Optional[GameStatus] = None,
        expected_version: Optional[int] = None
    ) -> Tuple[Room, bool]:
        """
        Move to the successor of the current phase

        Args:
            expected_status / expected_version: what the caller last saw; if
                either no longer matches, the request is stale

        Returns:
            (room, changed); changed is False when advancing is a no-op
            (finished, paused)

        Raises:
            Unauthorized
            StaleGameState: the room moved on since the caller looked
            InvalidStateTransition: room is still in the lobby
        """
        room = PhaseManager._lock_room(db, code)
        RoomManager.verify_host_key(room, host_key)

        state = parse_game_state(room.game_state)
        if expected_status is not None and status_of(state) != GameStatus(expected_status):
            raise StaleGameState(
                f"Room {room.room_code} is in {state.status}, not {GameStatus(expected_status).value}"
            )
        if expected_version is not None and room.state_version != expected_version:
            raise StaleGameState(
                f"Room {room.room_code} is at version {room.state_version}, not {expected_version}"
            )

        game_settings = RoomManager.game_settings(room)
        new_state = GameStateMachine.next_state(state, game_settings, utcnow(), settings.countdown_ms)
        if new_state is None:
            logger.info(f"Advance in room {room.room_code} ignored in {state.status}")
            return room, False

        room = GameStateMachine.transition(db, room, new_state, room.state_version)
        return room, True

    @staticmethod
    @transactional
    def restart_game(db: Session, code: str, host_key: str) -> Room:
        """
        finished -> lobby

        Same reset as starting a game, but the room goes back to the lobby so
        players can join before the next start.
        """
        room = PhaseManager._lock_room(db, code)
        RoomManager.verify_host_key(room, host_key)

        state = parse_game_state(room.game_state)
        if status_of(state) != GameStatus.FINISHED:
            raise InvalidStateTransition(f"Cannot restart a game in {state.status}")

        PhaseManager._reset_scores(db, room.id)
        room = GameStateMachine.transition(
            db, room, GameStateMachine.restart_state(), room.state_version, event_type="GAME_RESTARTED"
        )
        return room

    @staticmethod
    @transactional
    def replace_game_state(
        db: Session,
        code: str,
        host_key: str,
        settings: Settings,
        new_state: GameState,
        expected_version: int
    ) -> Room:
        """
        Whole-state replacement from the host

        Accepted only when the version still matches and the new state is
        exactly the successor advance would write (status, round, question).
        The stored anchors come from the server clock, not the request.
        Entering trivia from the lobby or lobby from finished must go through
        start / restart, which also reset scores.

        Raises:
            Unauthorized
            StaleGameState
            InvalidStateTransition
        """
        room = PhaseManager._lock_room(db, code)
        RoomManager.verify_host_key(room, host_key)

        if room.state_version != expected_version:
            raise StaleGameState(
                f"Room {room.room_code} is at version {room.state_version}, not {expected_version}"
            )

        current = parse_game_state(room.game_state)
        if status_of(current) in (GameStatus.LOBBY, GameStatus.FINISHED):
            raise InvalidStateTransition(
                f"Use start or restart to leave {current.status}"
            )
        resolved = GameStateMachine.validate_replacement(
            current, new_state, RoomManager.game_settings(room), utcnow(), settings.countdown_ms
        )

        room = GameStateMachine.transition(
            db, room, resolved, expected_version, event_type="GAME_STATE_REPLACED"
        )
        return room

