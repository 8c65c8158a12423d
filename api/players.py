"""
Player API Endpoints

Responsibilities:
1. Join (or rejoin) a room
2. Heartbeat / leave
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from config import Settings, get_settings
from database import get_db
from schemas import PlayerHeartbeat, PlayerJoin, PlayerOut
from core.exceptions import PartyGameException
from core.room_manager import RoomManager
from api.errors import to_http_exception

router = APIRouter(prefix="/api/rooms", tags=["players"])
logger = logging.getLogger(__name__)


@router.post("/{code}/join", response_model=PlayerOut)
def join_room(
    code: str,
    player_data: PlayerJoin,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Join a room (player endpoint)

    Preconditions:
    - the room exists and has not expired
    - the room has fewer than max_players_per_room players

    Flow:
    1. Find the room by code (case-insensitive)
    2. Same client_uuid already here: rejoin in place
    3. Otherwise create the player with a unique display name (Sam, Sam1, ...)

    Joining is allowed in any phase; late joiners pick up the current
    question from the room's timer anchors.
    """
    try:
        player = RoomManager.join_room(
            db, code, player_data.client_uuid, player_data.display_name, settings
        )
        return PlayerOut.model_validate(player)

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to join room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/players/{player_id}/heartbeat", response_model=PlayerOut)
def heartbeat(
    code: str,
    player_id: str,
    beat: PlayerHeartbeat,
    db: Session = Depends(get_db)
):
    """Mark the player seen; connected=false records a leave."""
    try:
        player = RoomManager.set_player_connection(db, code, player_id, beat.connected)
        return PlayerOut.model_validate(player)

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to record heartbeat: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
