"""Exam endpoints: info, start/resume, history and leaderboard."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session as DbSession

from exam_api.config import LEADERBOARD_DEFAULT_LIMIT, SUPPORTED_LANGUAGES
from exam_api.database import get_db
from exam_api.dependencies.auth import get_current_user
from exam_api.errors import ValidationError
from exam_api.models import AttemptListItem, LeaderboardEntry, StartAttemptRequest
from exam_api.models.db.user import User
from exam_api.services import access_service, attempt_service, ranking_service
from exam_api.services.exam_service import exam_meta, load_exam
from exam_api.utils import validate_id

router = APIRouter(prefix="/api/exams", tags=["exams"])


@router.get("/{exam_id}")
def get_exam(
    exam_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    language: str = "en",
) -> dict[str, object]:
    """Get exam information without its questions."""
    if language not in SUPPORTED_LANGUAGES:
        raise ValidationError(f"Unsupported language: {language}")
    exam = load_exam(validate_id("examId", exam_id))
    meta = exam_meta(exam, language)
    meta["canAttempt"] = access_service.can_attempt_exam(db, exam, current_user)
    in_progress = attempt_service.get_in_progress_attempt(db, current_user.id, exam.id)
    meta["inProgressAttemptId"] = in_progress.id if in_progress else None
    return meta


@router.post("/{exam_id}/attempts")
def start_attempt(
    exam_id: str,
    payload: StartAttemptRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Start a new attempt, or resume the open one."""
    exam = load_exam(validate_id("examId", exam_id))
    attempt, is_resume = attempt_service.start_attempt(
        db, exam, current_user, payload.language
    )
    return attempt_service.build_attempt_view(attempt, exam, is_resume=is_resume)


@router.get("/{exam_id}/attempts", response_model=list[AttemptListItem])
def list_my_attempts(
    exam_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    status: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> list[dict[str, object]]:
    """List the current user's attempts for an exam, newest first."""
    exam_id = validate_id("examId", exam_id)
    attempts = attempt_service.get_attempts_by_user(
        db, current_user.id, exam_id, status, limit, offset
    )
    return [attempt_service.attempt_list_item(attempt) for attempt in attempts]


@router.get("/{exam_id}/leaderboard", response_model=list[LeaderboardEntry])
def get_leaderboard(
    exam_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
    limit: int = Query(LEADERBOARD_DEFAULT_LIMIT, ge=1, le=500),
) -> list[dict[str, object]]:
    """Top ranked attempts of an exam."""
    exam_id = validate_id("examId", exam_id)
    return ranking_service.get_leaderboard(db, exam_id, limit)
