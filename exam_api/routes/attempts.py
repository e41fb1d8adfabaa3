"""Attempt endpoints. Every call re-checks that the attempt is the caller's."""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DbSession

from exam_api.database import get_db
from exam_api.dependencies.auth import get_current_user
from exam_api.errors import AccessDenied
from exam_api.models import (
    HeartbeatRequest,
    HeartbeatResponse,
    MarkForReviewRequest,
    MutationResponse,
    NavigateRequest,
    ResultSummary,
    SaveAnswerRequest,
)
from exam_api.models.db.attempt import Attempt
from exam_api.models.db.user import User
from exam_api.services import access_service, answer_service, attempt_service, timer_service
from exam_api.services.exam_service import load_exam
from exam_api.services.finalize_service import result_summary
from exam_api.utils import validate_id

router = APIRouter(prefix="/api/attempts/{attempt_id}", tags=["attempts"])


def _owned_attempt(
    attempt_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> Attempt:
    return attempt_service.get_owned_attempt(
        db, validate_id("attemptId", attempt_id), current_user
    )


def _writable_attempt(
    attempt: Annotated[Attempt, Depends(_owned_attempt)],
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> Attempt:
    """Owned attempt whose entitlement still holds while it is open."""
    if not attempt.is_terminal:
        exam = load_exam(attempt.exam_id)
        if not access_service.can_attempt_exam(db, exam, current_user):
            raise AccessDenied("You no longer have access to this exam")
    return attempt


@router.get("")
def get_attempt_state(
    attempt: Annotated[Attempt, Depends(_owned_attempt)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Current state of an attempt, for resuming after a reload."""
    exam = load_exam(attempt.exam_id)
    return attempt_service.get_attempt_state(db, attempt, exam)


@router.put("/answers/{question_id}", response_model=MutationResponse)
def save_answer(
    question_id: str,
    payload: SaveAnswerRequest,
    attempt: Annotated[Attempt, Depends(_writable_attempt)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Save the selection for a question."""
    return answer_service.save_answer(
        db,
        attempt,
        validate_id("questionId", question_id),
        payload.selectedOptions,
        payload.timeTaken,
    )


@router.put("/answers/{question_id}/review", response_model=MutationResponse)
def mark_for_review(
    question_id: str,
    payload: MarkForReviewRequest,
    attempt: Annotated[Attempt, Depends(_writable_attempt)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Flag or unflag a question for review."""
    return answer_service.mark_for_review(
        db, attempt, validate_id("questionId", question_id), payload.markedForReview
    )


@router.post("/navigate", response_model=MutationResponse)
def navigate(
    payload: NavigateRequest,
    attempt: Annotated[Attempt, Depends(_writable_attempt)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Move to a question by section and question index."""
    return attempt_service.navigate(db, attempt, payload.sectionIndex, payload.questionIndex)


@router.post("/heartbeat", response_model=HeartbeatResponse)
def heartbeat(
    payload: HeartbeatRequest,
    attempt: Annotated[Attempt, Depends(_owned_attempt)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Liveness ping; returns the server's remaining time."""
    return timer_service.heartbeat(
        db,
        attempt,
        payload.currentSectionIndex,
        payload.currentQuestionIndex,
        payload.timeRemaining,
    )


@router.post("/submit", response_model=ResultSummary)
def submit_attempt(
    attempt: Annotated[Attempt, Depends(_owned_attempt)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Submit the attempt. Submitting again returns the stored result."""
    return result_summary(attempt_service.submit_attempt(db, attempt))


@router.get("/result")
def get_result(
    attempt: Annotated[Attempt, Depends(_owned_attempt)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Full result of a submitted attempt."""
    exam = load_exam(attempt.exam_id)
    return attempt_service.get_result(db, attempt, exam)
