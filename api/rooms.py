"""
Room API Endpoints (short polling)

Responsibilities:
1. Create rooms and read snapshots (clients poll GET /{code}; state_version
   tells them whether anything changed)
2. Questions by position
3. Host phase control: start, advance, game-state replacement, restart
4. Host presence ping
5. Leaderboard, snapshots and CSV export
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
import logging

from config import Settings, get_settings
from database import get_db
from schemas import (
    AdvanceRequest,
    AdvanceResponse,
    GameStateUpdate,
    HostAuth,
    LeaderboardResponse,
    PlayerOut,
    QuestionOut,
    RoomCreate,
    RoomCreateResponse,
    RoomOut,
    RoomSnapshot,
    parse_game_state,
)
from core.exceptions import PartyGameException, QuestionNotFound
from core.phase_manager import PhaseManager
from core.room_manager import RoomManager
from services.leaderboard_service import get_leaderboard, leaderboard_to_csv, save_leaderboard_snapshot
from services.question_service import get_question_by_position, to_question_out
from api.errors import to_http_exception

router = APIRouter(prefix="/api/rooms", tags=["rooms"])
logger = logging.getLogger(__name__)


def build_snapshot(db: Session, room) -> RoomSnapshot:
    return RoomSnapshot(
        room=RoomOut.model_validate(room),
        players=[PlayerOut.model_validate(p) for p in RoomManager.get_players(db, room.id)],
    )


@router.post("", response_model=RoomCreateResponse, status_code=201)
def create_room(
    payload: RoomCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Create a room (host endpoint)

    The host key is returned only in this response; keep it on the host
    device.
    """
    try:
        room, host_key = RoomManager.create_room(db, payload, settings)
        db.refresh(room)
        return RoomCreateResponse(room=RoomOut.model_validate(room), host_key=host_key)

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}", response_model=RoomSnapshot)
def get_room(code: str, db: Session = Depends(get_db)):
    """
    Room + players snapshot

    Polled by every client; feeds the same reconciliation as change
    notifications.
    """
    try:
        room = RoomManager.get_room(db, code)
        return build_snapshot(db, room)

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get room {code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/questions/{round_number}/{question_number}", response_model=QuestionOut)
def get_question(code: str, round_number: int, question_number: int, db: Session = Depends(get_db)):
    """
    Question by (round, question number)

    correct_choice_id stays hidden until the room has left this question's
    trivia phase.
    """
    try:
        room = RoomManager.get_room(db, code)
        question = get_question_by_position(db, room.id, round_number, question_number)
        if not question:
            raise QuestionNotFound(f"{round_number}-{question_number}")
        return to_question_out(question, parse_game_state(room.game_state))

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get question: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/start", response_model=RoomOut)
def start_game(
    code: str,
    auth: HostAuth,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Start the game (lobby -> trivia)

    Resets points and clears every previous submission.
    """
    try:
        room = PhaseManager.start_game(db, code, auth.host_key, settings)
        return RoomOut.model_validate(room)

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to start game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/advance", response_model=AdvanceResponse)
def advance(
    code: str,
    request: AdvanceRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Advance to the next phase

    Send expected_status / expected_version from the snapshot you acted on;
    a stale request gets 409 instead of skipping a phase.
    """
    try:
        room, changed = PhaseManager.advance(
            db,
            code,
            request.host_key,
            settings,
            expected_status=request.expected_status,
            expected_version=request.expected_version
        )
        return AdvanceResponse(room=RoomOut.model_validate(room), changed=changed)

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to advance room {code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/game-state", response_model=RoomOut)
def replace_game_state(
    code: str,
    update: GameStateUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """Replace the whole game state (version-checked, next successor only)."""
    try:
        room = PhaseManager.replace_game_state(
            db, code, update.host_key, settings, update.game_state, update.expected_version
        )
        return RoomOut.model_validate(room)

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to replace game state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/restart", response_model=RoomOut)
def restart_game(code: str, auth: HostAuth, db: Session = Depends(get_db)):
    """Back to the lobby after a finished game, with scores cleared."""
    try:
        room = PhaseManager.restart_game(db, code, auth.host_key)
        return RoomOut.model_validate(room)

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to restart game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/host-ping")
def host_ping(code: str, auth: HostAuth, db: Session = Depends(get_db)):
    try:
        room = RoomManager.record_host_ping(db, code, auth.host_key)
        return {"last_host_ping": RoomOut.model_validate(room).last_host_ping}

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to record host ping: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/leaderboard", response_model=LeaderboardResponse)
def leaderboard(code: str, db: Session = Depends(get_db)):
    try:
        room = RoomManager.get_room(db, code)
        return LeaderboardResponse(leaderboard=get_leaderboard(room.id, db))

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get leaderboard: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/leaderboard/snapshot", response_model=LeaderboardResponse, status_code=201)
def snapshot_leaderboard(code: str, auth: HostAuth, db: Session = Depends(get_db)):
    """Persist the current ranking (host endpoint)."""
    try:
        room = RoomManager.get_room(db, code)
        RoomManager.verify_host_key(room, auth.host_key)
        entries = save_leaderboard_snapshot(room.id, db)
        db.commit()
        logger.info(f"Saved leaderboard snapshot for room {room.room_code}")
        return LeaderboardResponse(leaderboard=entries)

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to save leaderboard snapshot: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/leaderboard.csv", response_class=PlainTextResponse)
def export_leaderboard(code: str, db: Session = Depends(get_db)):
    try:
        room = RoomManager.get_room(db, code)
        csv_text = leaderboard_to_csv(get_leaderboard(room.id, db))
        return PlainTextResponse(
            csv_text,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="leaderboard-{room.room_code}.csv"'},
        )

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to export leaderboard: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
