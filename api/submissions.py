"""
Trivia answer endpoints

Players post their choice and elapsed time; correctness and points are
computed server-side. The count endpoint feeds the host's auto-advance loop.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from config import Settings, get_settings
from database import get_db
from schemas import AnswerResponse, AnswerSubmit, AnsweredCount
from core.exceptions import PartyGameException
from core.submission_manager import SubmissionManager
from api.errors import to_http_exception

router = APIRouter(prefix="/api/rooms", tags=["submissions"])
logger = logging.getLogger(__name__)


@router.post("/{code}/answers", response_model=AnswerResponse, status_code=201)
def submit_answer(code: str, answer: AnswerSubmit, db: Session = Depends(get_db)):
    """
    Submit a trivia answer

    Errors:
    - 409 already answered, or the question is no longer open
    - 400 choice id not on this question
    """
    try:
        submission, player_points = SubmissionManager.submit_answer(
            db,
            code,
            answer.player_id,
            answer.question_id,
            answer.answer_choice_id,
            answer.answer_time_ms
        )
        return AnswerResponse(
            submission_id=submission.id,
            is_correct=submission.is_correct,
            points_awarded=submission.points_awarded,
            player_points=player_points,
        )

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to submit answer: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/answers/count", response_model=AnsweredCount)
def answered_count(
    code: str,
    question_id: str = Query(...),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    try:
        return SubmissionManager.answered_count(db, code, question_id, settings)

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to count answers: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
