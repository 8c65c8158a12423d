"""
Pydantic models: game configuration, the game-state union, and API bodies

GameState is a tagged union over `status`; each variant only carries the
fields meaningful in that phase.
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from services.timer_service import ensure_aware

# SQLite hands datetimes back without tzinfo; everything leaving the API is UTC-aware
UtcDatetime = Annotated[datetime, AfterValidator(ensure_aware)]


class GameStatus(str, Enum):
    LOBBY = "lobby"
    TRIVIA = "trivia"
    TRIVIA_REVIEW = "trivia_review"
    SCAVENGER = "scavenger"
    REVIEW = "review"
    ROUND_SUMMARY = "round_summary"
    FINISHED = "finished"
    PAUSED = "paused"  # reserved; no transition enters or leaves it


# Phases in which a game is being played (host presence matters)
ACTIVE_STATUSES = frozenset({
    GameStatus.TRIVIA,
    GameStatus.TRIVIA_REVIEW,
    GameStatus.SCAVENGER,
    GameStatus.REVIEW,
    GameStatus.ROUND_SUMMARY,
    GameStatus.PAUSED,
})


class GameSettings(BaseModel):
    """Per-room constants, fixed once the room exists."""
    model_config = ConfigDict(frozen=True)

    number_of_rounds: int = Field(default=3, ge=1, le=10)
    questions_per_round: int = Field(default=3, ge=1, le=20)
    time_per_trivia_question: int = Field(default=30, ge=10, le=120)
    time_per_scavenger: int = Field(default=60, ge=30, le=300)
    points_for_first_scavenger: int = Field(default=10, ge=0)
    points_for_other_approved_scavengers: int = Field(default=5, ge=0)
    points_for_rejected_scavengers: int = Field(default=2, ge=0)
    trivia_base_point: int = Field(default=100, ge=0)
    trivia_time_scaling: bool = True


# ============ Game state variants ============

class _PhaseState(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_round: int = Field(ge=1)
    current_question: int = Field(ge=1)


class LobbyState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["lobby"] = "lobby"
    current_round: Literal[0] = 0
    current_question: Literal[0] = 0


class TriviaState(_PhaseState):
    status: Literal["trivia"] = "trivia"
    question_start_time: UtcDatetime


class TriviaReviewState(_PhaseState):
    status: Literal["trivia_review"] = "trivia_review"
    question_start_time: UtcDatetime


class ScavengerState(_PhaseState):
    status: Literal["scavenger"] = "scavenger"
    question_start_time: UtcDatetime
    scavenger_start_time: UtcDatetime


class ReviewState(_PhaseState):
    status: Literal["review"] = "review"
    question_start_time: UtcDatetime
    scavenger_start_time: UtcDatetime


class RoundSummaryState(_PhaseState):
    status: Literal["round_summary"] = "round_summary"


class FinishedState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["finished"] = "finished"
    current_round: Literal[0] = 0
    current_question: Literal[0] = 0


class PausedState(_PhaseState):
    status: Literal["paused"] = "paused"


GameState = Annotated[
    Union[
        LobbyState,
        TriviaState,
        TriviaReviewState,
        ScavengerState,
        ReviewState,
        RoundSummaryState,
        FinishedState,
        PausedState,
    ],
    Field(discriminator="status"),
]

_game_state_adapter = TypeAdapter(GameState)


def parse_game_state(data) -> GameState:
    """Validate a stored/incoming game_state document into its variant."""
    return _game_state_adapter.validate_python(data)


def dump_game_state(state: GameState) -> dict:
    """JSON-safe dict for storage in the rooms.game_state column."""
    return state.model_dump(mode="json")


def status_of(state: GameState) -> GameStatus:
    return GameStatus(state.status)


def phase_key(state: GameState) -> Tuple[str, int, int]:
    """Identity of one phase entry: (status, round, question)."""
    return (state.status, state.current_round, state.current_question)


# ============ Questions ============

class ChoiceIn(BaseModel):
    id: str = Field(min_length=1, max_length=40)
    label: str = Field(min_length=1)
    is_correct: bool = False


class QuestionIn(BaseModel):
    round_number: int = Field(ge=1)
    question_number: int = Field(ge=1)
    stem: str = Field(min_length=1)
    choices: List[ChoiceIn] = Field(min_length=2)
    scavenger_instruction: str = ""

    @model_validator(mode="after")
    def check_choices(self):
        if sum(1 for c in self.choices if c.is_correct) != 1:
            raise ValueError("exactly one choice must be correct")
        ids = [c.id for c in self.choices]
        if len(set(ids)) != len(ids):
            raise ValueError("choice ids must be unique")
        return self


class ChoiceOut(BaseModel):
    id: str
    label: str


class QuestionOut(BaseModel):
    id: str
    room_id: str
    round_number: int
    question_number: int
    stem: str
    choices: List[ChoiceOut]
    scavenger_instruction: str
    # Only present once the room has moved past this question's trivia phase
    correct_choice_id: Optional[str] = None


# ============ Rooms & players ============

class RoomCreate(BaseModel):
    title: str = Field(default="Party Game", max_length=200)
    settings: GameSettings = Field(default_factory=GameSettings)
    questions: Optional[List[QuestionIn]] = None
    host_client_uuid: Optional[str] = None


class RoomOut(BaseModel):
    """Public room record; never carries the host key."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    room_code: str
    title: str
    settings: GameSettings
    game_state: GameState
    state_version: int
    created_at: UtcDatetime
    expires_at: UtcDatetime
    last_activity_at: UtcDatetime
    last_host_ping: Optional[UtcDatetime] = None


class PlayerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    room_id: str
    client_uuid: str
    display_name: str
    connected: bool
    last_seen_at: UtcDatetime
    points: int
    joined_at: UtcDatetime


class RoomCreateResponse(BaseModel):
    room: RoomOut
    host_key: str


class RoomSnapshot(BaseModel):
    room: RoomOut
    players: List[PlayerOut]


class PlayerJoin(BaseModel):
    client_uuid: str = Field(min_length=1, max_length=64)
    display_name: str = Field(min_length=1)


class PlayerHeartbeat(BaseModel):
    connected: bool = True


# ============ Host actions ============

class HostAuth(BaseModel):
    host_key: str = Field(min_length=1)


class AdvanceRequest(HostAuth):
    expected_status: Optional[GameStatus] = None
    expected_version: Optional[int] = None


class GameStateUpdate(HostAuth):
    game_state: GameState
    expected_version: int


class AdvanceResponse(BaseModel):
    room: RoomOut
    changed: bool


# ============ Submissions ============

class AnswerSubmit(BaseModel):
    player_id: str = Field(min_length=1)
    question_id: str = Field(min_length=1)
    answer_choice_id: str = Field(min_length=1)
    answer_time_ms: int = Field(ge=0)


class AnswerResponse(BaseModel):
    submission_id: str
    is_correct: bool
    points_awarded: int
    player_points: int


class ScavengerSubmit(BaseModel):
    player_id: str = Field(min_length=1)
    question_id: str = Field(min_length=1)


class ScavengerSubmitResponse(BaseModel):
    submission_id: str
    submission_order: int


class ScavengerReview(HostAuth):
    approved: bool


class ScavengerReviewResponse(BaseModel):
    submission_id: str
    approved: bool
    is_first_approved: bool
    points_awarded: int
    player_points: int


class PendingScavengerOut(BaseModel):
    id: str
    player_id: str
    player_name: str
    submitted_at: UtcDatetime
    submission_order: int


class AnsweredCount(BaseModel):
    answered_count: int
    player_count: int
    all_answered: bool
    has_submissions: bool


class SubmittedCount(BaseModel):
    submitted_count: int
    player_count: int
    all_submitted: bool


# ============ Leaderboard ============

class LeaderboardEntry(BaseModel):
    player_id: str
    display_name: str
    points: int
    rank: int


class LeaderboardResponse(BaseModel):
    leaderboard: List[LeaderboardEntry]
