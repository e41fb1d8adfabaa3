"""Answer store: durable per-question answer records of an attempt."""
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession

from exam_api.errors import Conflict, ValidationError
from exam_api.models.db.attempt import Attempt, AttemptAnswer
from exam_api.models.exams import ScoringType
from exam_api.services import timer_service
from exam_api.utils import utc_now

logger = logging.getLogger(__name__)


def get_answer(db: DbSession, attempt_id: str, question_id: str) -> AttemptAnswer | None:
    """Get the answer row for a question of an attempt."""
    return db.execute(
        select(AttemptAnswer).where(
            AttemptAnswer.attempt_id == attempt_id,
            AttemptAnswer.question_id == question_id,
        )
    ).scalar_one_or_none()


def _require_answer(db: DbSession, attempt: Attempt, question_id: str) -> AttemptAnswer:
    answer = get_answer(db, attempt.id, question_id)
    if answer is None:
        raise ValidationError(f"Question {question_id} is not part of this attempt")
    return answer


def normalize_selection(answer: AttemptAnswer, selected_options: list[str]) -> list[str]:
    """Validate option ids against the question and drop duplicates."""
    valid = set(answer.option_ids)
    selection: list[str] = []
    for option_id in selected_options:
        if option_id not in valid:
            raise ValidationError(
                f"Option {option_id} is not valid for question {answer.question_id}"
            )
        if option_id not in selection:
            selection.append(option_id)

    if answer.scoring_type == ScoringType.SINGLE.value and len(selection) > 1:
        raise ValidationError(
            f"Question {answer.question_id} accepts a single option"
        )
    return selection


def _ensure_writable(db: DbSession, attempt: Attempt, now: datetime) -> bool:
    """Conflict on terminal attempts; False when the deadline just passed."""
    if attempt.is_terminal:
        logger.info("Rejected write to %s attempt %s", attempt.status, attempt.id)
        raise Conflict("Cannot modify a submitted attempt")
    return not timer_service.expire_if_due(db, attempt, now)


def _applied(attempt: Attempt, now: datetime) -> dict[str, object]:
    return {
        "applied": True,
        "status": attempt.status,
        "timeRemaining": timer_service.remaining_seconds(attempt, now),
        "result": None,
    }


def save_answer(
    db: DbSession,
    attempt: Attempt,
    question_id: str,
    selected_options: list[str],
    time_taken: int | None = None,
    now: datetime | None = None,
) -> dict[str, object]:
    """
    Upsert the selection for one question.

    Re-sending the same set of options, in any order, leaves the row as it
    was. Rejections happen before anything is written, and a lost race with
    finalize rolls the write back, so a refused save never leaves a partial
    change behind.
    """
    now = now or utc_now()
    if not _ensure_writable(db, attempt, now):
        return timer_service.expired_outcome(attempt)

    answer = _require_answer(db, attempt, question_id)
    selection = normalize_selection(answer, selected_options)

    if not timer_service.guard_write(db, attempt.id, now):
        db.rollback()
        logger.warning("Write to attempt %s lost the race with finalize", attempt.id)
        raise Conflict("Cannot modify a submitted attempt")

    # Same options in another order is not a change
    if set(selection) != set(answer.selected_options):
        answer.selected_options = selection
        answer.answered_at = now if selection else None
    if time_taken is not None:
        answer.time_taken = time_taken
    if answer.visited_at is None:
        answer.visited_at = now

    db.commit()
    logger.debug("Saved answer %s for attempt %s", question_id, attempt.id)
    return _applied(attempt, now)


def mark_for_review(
    db: DbSession,
    attempt: Attempt,
    question_id: str,
    flag: bool,
    now: datetime | None = None,
) -> dict[str, object]:
    """Set the review flag, independent of whether the question is answered."""
    now = now or utc_now()
    if not _ensure_writable(db, attempt, now):
        return timer_service.expired_outcome(attempt)

    answer = _require_answer(db, attempt, question_id)

    if not timer_service.guard_write(db, attempt.id, now):
        db.rollback()
        logger.warning("Write to attempt %s lost the race with finalize", attempt.id)
        raise Conflict("Cannot modify a submitted attempt")

    answer.marked_for_review = flag
    db.commit()
    return _applied(attempt, now)


def mark_visited(
    db: DbSession,
    attempt: Attempt,
    section_index: int,
    question_index: int,
    now: datetime | None = None,
) -> dict[str, object]:
    """Move the attempt to a question and stamp its first visit."""
    now = now or utc_now()
    if not _ensure_writable(db, attempt, now):
        return timer_service.expired_outcome(attempt)

    sections = list(attempt.question_order.values())
    if section_index >= len(sections):
        raise ValidationError("Section index out of range")
    section_questions = sections[section_index]
    if question_index >= len(section_questions):
        raise ValidationError("Question index out of range")
    if (
        not attempt.settings.get("allowSectionNavigation", True)
        and section_index < attempt.current_section_index
    ):
        raise ValidationError("Returning to an earlier section is not allowed")

    answer = _require_answer(db, attempt, section_questions[question_index])

    if not timer_service.guard_write(
        db,
        attempt.id,
        now,
        current_section_index=section_index,
        current_question_index=question_index,
    ):
        db.rollback()
        logger.warning("Write to attempt %s lost the race with finalize", attempt.id)
        raise Conflict("Cannot modify a submitted attempt")

    if answer.visited_at is None:
        answer.visited_at = now
    db.commit()
    return _applied(attempt, now)
