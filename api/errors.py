"""
Domain exception -> HTTP status mapping shared by all routers
"""
from fastapi import HTTPException

from core.exceptions import (
    DuplicateSubmission,
    InvalidStateTransition,
    NoConnectedPlayers,
    PartyGameException,
    PlayerNotFound,
    QuestionNotFound,
    RoomFull,
    RoomNotFound,
    StaleGameState,
    SubmissionClosed,
    SubmissionNotFound,
    Unauthorized,
    ValidationFailed,
)

STATUS_BY_EXCEPTION = (
    ((RoomNotFound, PlayerNotFound, QuestionNotFound, SubmissionNotFound), 404),
    ((Unauthorized,), 403),
    ((DuplicateSubmission, StaleGameState, SubmissionClosed), 409),
    ((ValidationFailed, InvalidStateTransition, NoConnectedPlayers, RoomFull), 400),
)


def to_http_exception(error: PartyGameException) -> HTTPException:
    for exception_types, status_code in STATUS_BY_EXCEPTION:
        if isinstance(error, exception_types):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail="Internal error")
