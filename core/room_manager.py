"""
Room Manager: room lifecycle outside the game phases

Responsibilities:
1. Create rooms (code, host key, question layout)
2. Player join / rejoin / heartbeat
3. Host presence pings and host-key checks
4. Expired-room cleanup

Phase changes live in PhaseManager; this manager never writes game_state
except to seed it at creation.
"""
from datetime import timedelta
from typing import List, Optional, Tuple
import hmac
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import Settings
from core.exceptions import (
    PlayerNotFound,
    RoomFull,
    Unauthorized,
    ValidationFailed,
)
from core.room_store import RoomStore
from database import transactional
from models import EventLog, Player, Room
from schemas import GameSettings, LobbyState, RoomCreate, dump_game_state
from services.naming_service import (
    generate_display_name,
    generate_host_key,
    generate_room_code,
    sanitize_display_name,
)
from services.presence_service import player_seen_cutoff
from services.question_service import build_room_questions
from services.timer_service import utcnow

logger = logging.getLogger(__name__)


class RoomManager:
    """Room lifecycle manager"""

    @staticmethod
    @transactional
    def create_room(db: Session, payload: RoomCreate, settings: Settings) -> Tuple[Room, str]:
        """
        Create a room in the lobby

        Flow:
        1. Generate a room code that is not taken
        2. Create the Room with a fresh host key and a lobby game_state
        3. Lay out one question per (round, question) slot
        4. Record the event

        Returns:
            (Room, host_key); the host key is only ever returned here

        Raises:
            ValidationFailed: supplied questions do not fit the game layout
        """
        # 1. Unique room code
        code = generate_room_code()
        while db.query(Room).filter(Room.room_code == code).first():
            logger.warning(f"Room code collision detected, regenerating: {code}")
            code = generate_room_code()

        # 2. Room
        now = utcnow()
        host_key = generate_host_key()
        room = Room(
            room_code=code,
            host_key=host_key,
            host_client_uuid=payload.host_client_uuid or "anonymous",
            title=payload.title,
            settings=payload.settings.model_dump(),
            game_state=dump_game_state(LobbyState()),
            state_version=0,
            created_at=now,
            expires_at=now + timedelta(hours=settings.room_expiration_hours),
            last_activity_at=now,
        )
        db.add(room)
        db.flush()  # room.id

        # 3. Questions
        try:
            questions = build_room_questions(room.id, payload.settings, payload.questions)
        except ValueError as e:
            raise ValidationFailed(str(e))
        db.add_all(questions)

        # 4. Event
        db.add(EventLog(
            room_id=room.id,
            event_type="ROOM_CREATED",
            data={"code": code, "questions": len(questions)},
        ))

        logger.info(f"Created room {room.id} with code {code} ({len(questions)} questions)")
        return room, host_key

    @staticmethod
    def get_room(db: Session, code: str) -> Room:
        """Live room by code (RoomNotFound / RoomExpired otherwise)."""
        return RoomStore(db).get_by_code(code)

    @staticmethod
    def get_players(db: Session, room_id: str) -> List[Player]:
        return db.query(Player).filter(
            Player.room_id == room_id
        ).order_by(Player.joined_at, Player.id).all()

    @staticmethod
    def get_player(db: Session, room_id: str, player_id: str) -> Player:
        player = db.query(Player).filter(
            Player.id == player_id,
            Player.room_id == room_id
        ).first()
        if not player:
            raise PlayerNotFound(player_id)
        return player

    @staticmethod
    def game_settings(room: Room) -> GameSettings:
        return GameSettings.model_validate(room.settings)

    # ── players ───────────────────────────────────────────────────────────

    @staticmethod
    @transactional
    def join_room(
        db: Session,
        code: str,
        client_uuid: str,
        display_name: str,
        settings: Settings
    ) -> Player:
        """
        Join a room, or rejoin it from the same device

        Flow:
        1. Look up the live room
        2. Sanitise the requested name
        3. Same client_uuid already in the room: update it in place
        4. Otherwise check capacity and insert with a de-duplicated name

        Raises:
            RoomNotFound / RoomExpired
            ValidationFailed: name is empty after sanitising
            RoomFull: room already holds max_players_per_room players
        """
        # 1. Room
        room = RoomStore(db).get_by_code(code)

        # 2. Name
        requested = sanitize_display_name(display_name)
        if not requested:
            raise ValidationFailed("Display name must contain letters or digits")

        now = utcnow()

        # 3. Rejoin
        existing = db.query(Player).filter(
            Player.room_id == room.id,
            Player.client_uuid == client_uuid
        ).first()
        if existing:
            existing.display_name = generate_display_name(
                room.id, requested, db, exclude_player_id=existing.id
            )
            existing.connected = True
            existing.last_seen_at = now
            room.last_activity_at = now
            db.flush()
            logger.info(f"Player {existing.id} rejoined room {room.room_code} as {existing.display_name}")
            return existing

        # 4. New player
        player_count = db.query(Player).filter(Player.room_id == room.id).count()
        if player_count >= settings.max_players_per_room:
            raise RoomFull(f"Room {room.room_code} is full ({settings.max_players_per_room} players)")

        player = Player(
            room_id=room.id,
            client_uuid=client_uuid,
            display_name=generate_display_name(room.id, requested, db),
            connected=True,
            last_seen_at=now,
            points=0,
            joined_at=now,
        )
        db.add(player)
        room.last_activity_at = now
        try:
            db.flush()
        except IntegrityError:
            # Another request took the same name or client between our read and insert
            raise ValidationFailed("Display name or device already joined; retry")

        logger.info(f"Player {player.id} joined room {room.room_code} as {player.display_name}")
        return player

    @staticmethod
    @transactional
    def set_player_connection(
        db: Session,
        code: str,
        player_id: str,
        connected: bool = True
    ) -> Player:
        """Heartbeat (connected=True) or leave (connected=False)."""
        room = RoomStore(db).get_by_code(code)
        player = RoomManager.get_player(db, room.id, player_id)
        player.connected = connected
        player.last_seen_at = utcnow()
        db.flush()
        if not connected:
            logger.info(f"Player {player.id} left room {room.room_code}")
        return player

    @staticmethod
    def connected_player_count(db: Session, room_id: str, settings: Settings) -> int:
        """Players flagged connected and seen within player_timeout_ms."""
        cutoff = player_seen_cutoff(utcnow(), settings.player_timeout_ms)
        return RoomStore(db).count_where(
            Player,
            Player.room_id == room_id,
            Player.connected.is_(True),
            Player.last_seen_at >= cutoff
        )

    # ── host ──────────────────────────────────────────────────────────────

    @staticmethod
    def verify_host_key(room: Room, host_key: Optional[str]) -> None:
        """
        Raises:
            Unauthorized: key missing or not this room's
        """
        if not host_key or not hmac.compare_digest(room.host_key.encode(), host_key.encode()):
            raise Unauthorized()

    @staticmethod
    @transactional
    def record_host_ping(db: Session, code: str, host_key: str) -> Room:
        """Stamp last_host_ping; players read it to detect a vanished host."""
        store = RoomStore(db)
        room = store.get_by_code(code)
        RoomManager.verify_host_key(room, host_key)
        now = utcnow()
        room = store.update_by_id(room.id, last_host_ping=now, last_activity_at=now)
        logger.debug(f"Host ping for room {room.room_code}")
        return room

    # ── maintenance ───────────────────────────────────────────────────────

    @staticmethod
    @transactional
    def cleanup_expired_rooms(db: Session) -> int:
        """
        Delete rooms past expires_at together with everything they own

        Returns:
            number of rooms deleted
        """
        expired = db.query(Room).filter(Room.expires_at <= utcnow()).all()
        for room in expired:
            db.delete(room)
        db.flush()
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired room(s)")
        return len(expired)
