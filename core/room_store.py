"""
Room State Store: the record-store contract the game core is written against

    get_by_code / get_by_id      room lookups
    update_by_id                 partial field update
    compare_and_set_game_state   version-checked game_state replacement
    atomic_increment             UPDATE ... SET col = col + :delta
    next_scavenger_order         per-question sequence
    count_where / delete_where   aggregate helpers

The store is bound to one Session and never commits; the calling manager
owns the transaction.
"""
from typing import Any, Type

from sqlalchemy.orm import Session

from core.exceptions import RoomExpired, RoomNotFound, QuestionNotFound
from models import Question, Room
from schemas import GameState, dump_game_state
from services.naming_service import normalize_room_code
from services.timer_service import ensure_aware, utcnow


class RoomStore:
    def __init__(self, db: Session):
        self.db = db

    # ── lookups ───────────────────────────────────────────────────────────

    def get_by_code(self, code: str, allow_expired: bool = False) -> Room:
        """
        Raises:
            RoomNotFound: no room with this code
            RoomExpired: room exists but is past expires_at
        """
        code = normalize_room_code(code)
        room = self.db.query(Room).filter(Room.room_code == code).first()
        if not room:
            raise RoomNotFound(f"with code {code}")
        if not allow_expired and ensure_aware(room.expires_at) <= utcnow():
            raise RoomExpired(code)
        return room

    def get_by_id(self, room_id: str) -> Room:
        room = self.db.query(Room).filter(Room.id == room_id).first()
        if not room:
            raise RoomNotFound(room_id)
        return room

    # ── writes ────────────────────────────────────────────────────────────

    def update_by_id(self, room_id: str, **fields: Any) -> Room:
        updated = self.db.query(Room).filter(Room.id == room_id).update(
            fields, synchronize_session=False
        )
        if updated == 0:
            raise RoomNotFound(room_id)
        room = self.get_by_id(room_id)
        self.db.refresh(room)
        return room

    def compare_and_set_game_state(self, room_id: str, expected_version: int, state: GameState) -> bool:
        """
        Replace game_state only if nobody else wrote it since `expected_version`

        Returns:
            True if this call won (state_version is now expected_version + 1),
            False if the stored version had already moved on
        """
        updated = self.db.query(Room).filter(
            Room.id == room_id,
            Room.state_version == expected_version
        ).update(
            {
                Room.game_state: dump_game_state(state),
                Room.state_version: Room.state_version + 1,
                Room.last_activity_at: utcnow(),
            },
            synchronize_session=False
        )
        return updated == 1

    def atomic_increment(self, model: Type, row_id: str, field: str, delta: int):
        """
        Add `delta` to a numeric column in one UPDATE statement

        Never read-modify-write a counter in Python: two concurrent writers
        would both read N and one increment would be lost.

        Returns:
            the refreshed row
        """
        column = getattr(model, field)
        updated = self.db.query(model).filter(model.id == row_id).update(
            {column: column + delta},
            synchronize_session=False
        )
        if updated == 0:
            raise LookupError(f"{model.__tablename__} row {row_id} not found")
        row = self.db.get(model, row_id)
        self.db.refresh(row)
        return row

    def next_scavenger_order(self, question_id: str) -> int:
        """Take the next submission_order for a question from its sequence column."""
        try:
            question = self.atomic_increment(Question, question_id, "scavenger_sequence", 1)
        except LookupError:
            raise QuestionNotFound(question_id)
        return question.scavenger_sequence

    # ── aggregates ────────────────────────────────────────────────────────

    def count_where(self, model: Type, *criteria) -> int:
        return self.db.query(model).filter(*criteria).count()

    def delete_where(self, model: Type, *criteria) -> int:
        return self.db.query(model).filter(*criteria).delete(synchronize_session=False)
