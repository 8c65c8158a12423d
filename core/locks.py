"""
Concurrency helpers

Row-level locks via SELECT ... FOR UPDATE (pessimistic locking).
On PostgreSQL these block concurrent writers on the same row; SQLite ignores
FOR UPDATE but serialises write transactions behind its database lock.
"""
from sqlalchemy.orm import Session, Query

from models import Room, Question


def with_room_lock(room_id: str, db: Session) -> Query:
    """
    Lock one Room row

    Used by:
    - every game_state transition (read current state, decide, write)
    - host-authenticated resets (start / restart)

    Example:
        room = with_room_lock(room_id, db).first()
        if not room:
            raise RoomNotFound(room_id)
        ...

    Notes:
        - nowait=False waits for the lock instead of failing
        - must run inside a transaction (commit or rollback releases it)
    """
    return db.query(Room).filter(
        Room.id == room_id
    ).with_for_update(nowait=False)


def with_question_lock(question_id: str, db: Session) -> Query:
    """
    Lock one Question row

    Used by:
    - scavenger review, so "is this the first approval?" is decided by one
      reviewer at a time for a given question
    """
    return db.query(Question).filter(
        Question.id == question_id
    ).with_for_update(nowait=False)
