"""
ORM models

Game state is stored on the room as a JSON document (see schemas.GameState);
everything else is a plain row.
"""
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base
from services.timer_service import utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class Room(Base):
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=_uuid)
    room_code = Column(String(6), unique=True, index=True, nullable=False)
    host_key = Column(String(32), nullable=False)
    host_client_uuid = Column(String(64), nullable=False, default="anonymous")
    title = Column(String(200), nullable=False, default="")
    settings = Column(JSON, nullable=False)
    game_state = Column(JSON, nullable=False)
    # Incremented by every game_state write; game-state writes compare-and-swap on it
    state_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    last_activity_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_host_ping = Column(DateTime(timezone=True), nullable=True)

    players = relationship("Player", back_populates="room", cascade="all, delete-orphan")
    questions = relationship("Question", back_populates="room", cascade="all, delete-orphan")
    submissions = relationship("Submission", cascade="all, delete-orphan")
    scavenger_submissions = relationship("ScavengerSubmission", cascade="all, delete-orphan")
    snapshots = relationship("LeaderboardSnapshot", cascade="all, delete-orphan")
    events = relationship("EventLog", cascade="all, delete-orphan")


class Player(Base):
    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("room_id", "client_uuid", name="uq_player_client"),
        UniqueConstraint("room_id", "display_name", name="uq_player_name"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    client_uuid = Column(String(64), nullable=False)
    display_name = Column(String(40), nullable=False)
    connected = Column(Boolean, nullable=False, default=True)
    last_seen_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    points = Column(Integer, nullable=False, default=0)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    room = relationship("Room", back_populates="players")


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        UniqueConstraint("room_id", "round_number", "question_number", name="uq_question_slot"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    question_number = Column(Integer, nullable=False)
    stem = Column(Text, nullable=False)
    choices = Column(JSON, nullable=False)  # [{"id", "label", "is_correct"}]
    scavenger_instruction = Column(Text, nullable=False, default="")
    # Last submission_order handed out for this question's scavenger hunt
    scavenger_sequence = Column(Integer, nullable=False, default=0)

    room = relationship("Room", back_populates="questions")


class Submission(Base):
    """Trivia answer"""
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("player_id", "question_id", name="uq_submission_player_question"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    answer_choice_id = Column(String(40), nullable=False)
    answered_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    answer_time_ms = Column(Integer, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    points_awarded = Column(Integer, nullable=False)

    player = relationship("Player")


class ScavengerSubmission(Base):
    __tablename__ = "scavenger_submissions"
    __table_args__ = (
        UniqueConstraint("player_id", "question_id", name="uq_scavenger_player_question"),
        UniqueConstraint("question_id", "submission_order", name="uq_scavenger_order"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    submission_order = Column(Integer, nullable=False)
    approved = Column(Boolean, nullable=True)  # None = pending
    approved_by_host_at = Column(DateTime(timezone=True), nullable=True)
    points_awarded = Column(Integer, nullable=False, default=0)

    player = relationship("Player")


class LeaderboardSnapshot(Base):
    __tablename__ = "leaderboard_snapshots"

    id = Column(String(36), primary_key=True, default=_uuid)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    snapshot_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    payload = Column(JSON, nullable=False)


class EventLog(Base):
    """Append-only audit trail of room lifecycle events"""
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String(40), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
