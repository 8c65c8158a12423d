"""
Submission Manager: trivia answers and scavenger-hunt entries

Scoring is always done here, from the stored question and settings; clients
only report which choice they picked and how long they took. Point totals
move only through RoomStore.atomic_increment.
"""
from typing import List, Optional, Tuple
import logging

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import Settings
from core.exceptions import (
    DuplicateSubmission,
    QuestionNotFound,
    SubmissionClosed,
    SubmissionNotFound,
    ValidationFailed,
)
from core.locks import with_question_lock
from core.room_manager import RoomManager
from core.room_store import RoomStore
from database import transactional
from models import Player, Question, Room, ScavengerSubmission, Submission
from schemas import (
    AnsweredCount,
    GameStatus,
    PendingScavengerOut,
    SubmittedCount,
    parse_game_state,
    status_of,
)
from services.question_service import find_choice
from services.scoring_service import compute_scavenger_points, compute_trivia_points
from services.timer_service import utcnow

logger = logging.getLogger(__name__)


class SubmissionManager:

    @staticmethod
    def _get_question(db: Session, room: Room, question_id: str) -> Question:
        question = db.query(Question).filter(
            Question.id == question_id,
            Question.room_id == room.id
        ).first()
        if not question:
            raise QuestionNotFound(question_id)
        return question

    @staticmethod
    def _require_current_question(room: Room, question: Question, status: GameStatus, label: str) -> None:
        """
        Raises:
            SubmissionClosed: room is not in `status`, or `question` is not
                the one being played
        """
        state = parse_game_state(room.game_state)
        if status_of(state) != status:
            raise SubmissionClosed(f"{label} are closed while the room is in {state.status}")
        if (question.round_number, question.question_number) != (state.current_round, state.current_question):
            raise SubmissionClosed(f"{label} are only accepted for the current question")

    # ── trivia ────────────────────────────────────────────────────────────

    @staticmethod
    @transactional
    def submit_answer(
        db: Session,
        code: str,
        player_id: str,
        question_id: str,
        answer_choice_id: str,
        answer_time_ms: int
    ) -> Tuple[Submission, int]:
        """
        Record one trivia answer and award its points

        Flow:
        1. Room, player and question must exist and belong together
        2. Room must be in trivia on this question
        3. Re-derive correctness from the stored choices
        4. Score with the room's settings
        5. Insert (unique per player + question)
        6. Add the points to the player's total atomically

        Returns:
            (Submission, player's new point total)

        Raises:
            RoomNotFound / PlayerNotFound / QuestionNotFound
            SubmissionClosed: not the trivia phase of this question
            ValidationFailed: choice id is not one of the question's choices
            DuplicateSubmission: player already answered this question
        """
        # 1. Lookups
        store = RoomStore(db)
        room = store.get_by_code(code)
        player = RoomManager.get_player(db, room.id, player_id)
        question = SubmissionManager._get_question(db, room, question_id)

        # 2. Phase
        SubmissionManager._require_current_question(room, question, GameStatus.TRIVIA, "Answers")

        # 3. Correctness
        choice = find_choice(question, answer_choice_id)
        if choice is None:
            raise ValidationFailed(f"Choice {answer_choice_id} is not an option for question {question_id}")
        is_correct = bool(choice.get("is_correct"))

        existing = db.query(Submission).filter(
            Submission.player_id == player.id,
            Submission.question_id == question.id
        ).first()
        if existing:
            raise DuplicateSubmission(f"Player {player.id} already answered question {question.id}")

        # 4. Points
        settings = RoomManager.game_settings(room)
        points = compute_trivia_points(
            is_correct,
            settings.trivia_base_point,
            settings.time_per_trivia_question,
            answer_time_ms,
            settings.trivia_time_scaling
        )

        # 5. Insert
        submission = Submission(
            room_id=room.id,
            player_id=player.id,
            question_id=question.id,
            answer_choice_id=answer_choice_id,
            answered_at=utcnow(),
            answer_time_ms=answer_time_ms,
            is_correct=is_correct,
            points_awarded=points,
        )
        db.add(submission)
        try:
            db.flush()
        except IntegrityError:
            raise DuplicateSubmission(f"Player {player.id} already answered question {question.id}")

        # 6. Total
        player = store.atomic_increment(Player, player.id, "points", points)

        logger.info(
            f"Player {player.id} answered {answer_choice_id} in room {room.room_code} "
            f"(correct={is_correct}, {answer_time_ms} ms, +{points})"
        )
        return submission, player.points

    @staticmethod
    def answered_count(db: Session, code: str, question_id: str, settings: Settings) -> AnsweredCount:
        """Answers so far against the connected-player count, for auto-advance."""
        room = RoomStore(db).get_by_code(code)
        question = SubmissionManager._get_question(db, room, question_id)
        answered = RoomStore(db).count_where(Submission, Submission.question_id == question.id)
        player_count = RoomManager.connected_player_count(db, room.id, settings)
        return AnsweredCount(
            answered_count=answered,
            player_count=player_count,
            all_answered=player_count > 0 and answered >= player_count,
            has_submissions=answered > 0,
        )

    # ── scavenger ─────────────────────────────────────────────────────────

    @staticmethod
    @transactional
    def submit_scavenger(db: Session, code: str, player_id: str, question_id: str) -> ScavengerSubmission:
        """
        Record a scavenger-hunt entry, pending host review

        submission_order comes from the question's sequence counter, so two
        simultaneous entries never share a number.

        Raises:
            RoomNotFound / PlayerNotFound / QuestionNotFound
            SubmissionClosed: not the scavenger phase of this question
            DuplicateSubmission: player already submitted for this question
        """
        store = RoomStore(db)
        room = store.get_by_code(code)
        player = RoomManager.get_player(db, room.id, player_id)
        question = SubmissionManager._get_question(db, room, question_id)

        SubmissionManager._require_current_question(room, question, GameStatus.SCAVENGER, "Scavenger entries")

        if SubmissionManager.has_scavenger_submission(db, player.id, question.id):
            raise DuplicateSubmission(f"Player {player.id} already submitted for question {question.id}")

        order = store.next_scavenger_order(question.id)
        submission = ScavengerSubmission(
            room_id=room.id,
            player_id=player.id,
            question_id=question.id,
            submitted_at=utcnow(),
            submission_order=order,
            approved=None,
            points_awarded=0,
        )
        db.add(submission)
        try:
            db.flush()
        except IntegrityError:
            raise DuplicateSubmission(f"Player {player.id} already submitted for question {question.id}")

        logger.info(f"Player {player.id} submitted scavenger #{order} in room {room.room_code}")
        return submission

    @staticmethod
    def has_scavenger_submission(db: Session, player_id: str, question_id: str) -> bool:
        return RoomStore(db).count_where(
            ScavengerSubmission,
            ScavengerSubmission.player_id == player_id,
            ScavengerSubmission.question_id == question_id
        ) > 0

    @staticmethod
    def submitted_count(db: Session, code: str, question_id: str, settings: Settings) -> SubmittedCount:
        room = RoomStore(db).get_by_code(code)
        question = SubmissionManager._get_question(db, room, question_id)
        submitted = RoomStore(db).count_where(
            ScavengerSubmission, ScavengerSubmission.question_id == question.id
        )
        player_count = RoomManager.connected_player_count(db, room.id, settings)
        return SubmittedCount(
            submitted_count=submitted,
            player_count=player_count,
            all_submitted=player_count > 0 and submitted >= player_count,
        )

    @staticmethod
    def pending_scavenger(db: Session, code: str, question_id: str) -> List[PendingScavengerOut]:
        """Unreviewed entries for a question, in submission order."""
        room = RoomStore(db).get_by_code(code)
        question = SubmissionManager._get_question(db, room, question_id)
        rows = (
            db.query(ScavengerSubmission, Player.display_name)
            .join(Player, Player.id == ScavengerSubmission.player_id)
            .filter(
                ScavengerSubmission.question_id == question.id,
                ScavengerSubmission.approved.is_(None)
            )
            .order_by(ScavengerSubmission.submission_order)
            .all()
        )
        return [
            PendingScavengerOut(
                id=submission.id,
                player_id=submission.player_id,
                player_name=name,
                submitted_at=submission.submitted_at,
                submission_order=submission.submission_order,
            )
            for submission, name in rows
        ]

    @staticmethod
    @transactional
    def review_scavenger(
        db: Session,
        code: str,
        submission_id: str,
        host_key: str,
        approved: bool
    ) -> Tuple[ScavengerSubmission, bool, int]:
        """
        Host approves or rejects one scavenger entry

        Flow:
        1. Check the host key
        2. Lock the question so first-approved is decided one review at a time
        3. First approved = no *other* entry for the question was approved
           before this one; re-approving keeps the original approval time
        4. Score; re-reviews only move the player's total by the difference

        Returns:
            (submission, is_first_approved, player's new point total)

        Raises:
            Unauthorized
            SubmissionNotFound
        """
        # 1. Host
        store = RoomStore(db)
        room = store.get_by_code(code)
        RoomManager.verify_host_key(room, host_key)

        submission: Optional[ScavengerSubmission] = db.query(ScavengerSubmission).filter(
            ScavengerSubmission.id == submission_id,
            ScavengerSubmission.room_id == room.id
        ).first()
        if not submission:
            raise SubmissionNotFound(submission_id)

        # 2. Lock
        with_question_lock(submission.question_id, db).first()

        # 3. First approved
        already_approved = submission.approved is True
        approved_at = submission.approved_by_host_at if already_approved else utcnow()
        is_first_approved = False
        if approved:
            criteria = [
                ScavengerSubmission.question_id == submission.question_id,
                ScavengerSubmission.approved.is_(True),
                ScavengerSubmission.id != submission.id,
            ]
            if already_approved:
                # Re-approval keeps its place: only approvals made before it count
                criteria.append(or_(
                    ScavengerSubmission.approved_by_host_at < approved_at,
                    and_(
                        ScavengerSubmission.approved_by_host_at == approved_at,
                        ScavengerSubmission.submission_order < submission.submission_order
                    )
                ))
            is_first_approved = store.count_where(ScavengerSubmission, *criteria) == 0

        # 4. Points
        settings = RoomManager.game_settings(room)
        points = compute_scavenger_points(
            approved,
            is_first_approved,
            settings.points_for_first_scavenger,
            settings.points_for_other_approved_scavengers,
            settings.points_for_rejected_scavengers
        )
        delta = points - submission.points_awarded

        submission.approved = approved
        submission.approved_by_host_at = approved_at
        submission.points_awarded = points
        db.flush()

        player = store.atomic_increment(Player, submission.player_id, "points", delta)

        logger.info(
            f"Scavenger {submission.id} in room {room.room_code} "
            f"{'approved' if approved else 'rejected'} (first={is_first_approved}, {delta:+d})"
        )
        return submission, is_first_approved, player.points
