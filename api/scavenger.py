"""
Scavenger-hunt endpoints

Players submit during the scavenger phase; the host reviews (approve /
reject) at any time afterwards, including re-reviews.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from config import Settings, get_settings
from database import get_db
from schemas import (
    PendingScavengerOut,
    ScavengerReview,
    ScavengerReviewResponse,
    ScavengerSubmit,
    ScavengerSubmitResponse,
    SubmittedCount,
)
from core.exceptions import PartyGameException
from core.room_manager import RoomManager
from core.submission_manager import SubmissionManager
from api.errors import to_http_exception

router = APIRouter(prefix="/api/rooms", tags=["scavenger"])
logger = logging.getLogger(__name__)


@router.post("/{code}/scavenger", response_model=ScavengerSubmitResponse, status_code=201)
def submit_scavenger(code: str, entry: ScavengerSubmit, db: Session = Depends(get_db)):
    try:
        submission = SubmissionManager.submit_scavenger(db, code, entry.player_id, entry.question_id)
        return ScavengerSubmitResponse(
            submission_id=submission.id,
            submission_order=submission.submission_order,
        )

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to submit scavenger entry: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/scavenger/pending", response_model=List[PendingScavengerOut])
def pending(code: str, question_id: str = Query(...), db: Session = Depends(get_db)):
    """Entries awaiting review, oldest first."""
    try:
        return SubmissionManager.pending_scavenger(db, code, question_id)

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to list pending scavenger entries: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/scavenger/count", response_model=SubmittedCount)
def submitted_count(
    code: str,
    question_id: str = Query(...),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    try:
        return SubmissionManager.submitted_count(db, code, question_id, settings)

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to count scavenger entries: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/scavenger/check")
def check_submitted(
    code: str,
    player_id: str = Query(...),
    question_id: str = Query(...),
    db: Session = Depends(get_db)
):
    """Whether this player already submitted for the question."""
    try:
        room = RoomManager.get_room(db, code)
        player = RoomManager.get_player(db, room.id, player_id)
        return {"submitted": SubmissionManager.has_scavenger_submission(db, player.id, question_id)}

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to check scavenger entry: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/scavenger/{submission_id}/review", response_model=ScavengerReviewResponse)
def review(code: str, submission_id: str, decision: ScavengerReview, db: Session = Depends(get_db)):
    """
    Approve or reject an entry (host endpoint)

    The first entry approved for a question earns the first-approved points,
    whatever its submission order.
    """
    try:
        submission, is_first_approved, player_points = SubmissionManager.review_scavenger(
            db, code, submission_id, decision.host_key, decision.approved
        )
        return ScavengerReviewResponse(
            submission_id=submission.id,
            approved=submission.approved,
            is_first_approved=is_first_approved,
            points_awarded=submission.points_awarded,
            player_points=player_points,
        )

    except PartyGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to review scavenger entry: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
