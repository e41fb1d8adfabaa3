"""Terminal transition of an attempt and the stored result it produces."""
import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session as DbSession

from exam_api.errors import NotFoundError
from exam_api.models.db.attempt import (
    Attempt,
    AttemptAnswer,
    AttemptStatus,
    SubmittedBy,
)
from exam_api.models.exams import MultipleCorrectPolicy, QuestionType, ScoringType
from exam_api.services.scoring import QuestionKey, score_attempt
from exam_api.utils import as_utc, elapsed_seconds, utc_now

logger = logging.getLogger(__name__)


def question_key(answer: AttemptAnswer) -> QuestionKey:
    """Build the frozen scoring key from an answer row's snapshot."""
    return QuestionKey(
        question_id=answer.question_id,
        section_id=answer.section_id,
        question_type=QuestionType(answer.question_type),
        scoring_type=ScoringType(answer.scoring_type),
        option_ids=tuple(answer.option_ids),
        correct_answers=frozenset(answer.correct_answers),
        positive_marks=answer.positive_marks,
        negative_marks=answer.negative_marks,
    )


def finalize_attempt(
    db: DbSession,
    attempt_id: str,
    submitted_by: SubmittedBy,
    now: datetime | None = None,
) -> Attempt:
    """
    Move an attempt to its terminal status and store the scored result.

    The status flip is a single conditional UPDATE guarded by
    ``status = 'in_progress'``. Only the caller whose UPDATE matched scores
    the attempt; every other caller, concurrent or later, gets the stored
    result back untouched.
    """
    attempt = db.get(Attempt, attempt_id)
    if attempt is None:
        raise NotFoundError("Attempt not found")
    if attempt.is_terminal:
        return attempt

    now = now or utc_now()
    status = (
        AttemptStatus.COMPLETED
        if submitted_by == SubmittedBy.USER
        else AttemptStatus.AUTO_SUBMITTED
    )
    # A timer submit ends at the deadline, however late it is noticed
    completed_at = now
    if submitted_by == SubmittedBy.TIMER:
        completed_at = min(as_utc(now), attempt.deadline)

    claimed = db.execute(
        update(Attempt)
        .where(
            Attempt.id == attempt_id,
            Attempt.status == AttemptStatus.IN_PROGRESS.value,
        )
        .values(status=status.value, submitted_by=submitted_by.value, completed_at=completed_at)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        db.rollback()
        db.refresh(attempt)
        logger.info("Attempt %s already finalized as %s", attempt_id, attempt.status)
        return attempt

    # Read answers after claiming the row so saves committed before us are included
    answers = list(
        db.execute(
            select(AttemptAnswer)
            .where(AttemptAnswer.attempt_id == attempt_id)
            .order_by(AttemptAnswer.question_index)
            .execution_options(populate_existing=True)
        ).scalars().all()
    )

    settings = attempt.settings
    sections = [
        (section.get("id"), section.get("title") or section.get("id"))
        for section in settings.get("sections", [])
        if isinstance(section, dict) and section.get("id")
    ]
    result = score_attempt(
        ((question_key(answer), answer.selected_options) for answer in answers),
        sections,
        MultipleCorrectPolicy(
            settings.get("multipleCorrectPolicy", MultipleCorrectPolicy.ALL_OR_NONE.value)
        ),
        float(settings.get("passingPercentage", 0)),
    )

    for answer in answers:
        credit = result.credits[answer.question_id]
        answer.is_correct = credit.is_correct
        answer.is_partially_correct = credit.is_partially_correct
        answer.marks_obtained = credit.marks

    attempt.status = status.value
    attempt.submitted_by = submitted_by.value
    attempt.completed_at = completed_at
    attempt.total_time_taken = min(
        elapsed_seconds(attempt.started_at, completed_at), attempt.time_limit
    )
    attempt.section_progress = [section.to_dict() for section in result.sections]
    attempt.total_questions = result.total_questions
    attempt.attempted = result.attempted
    attempt.correct = result.correct
    attempt.wrong = result.wrong
    attempt.partially_correct = result.partially_correct
    attempt.skipped = result.skipped
    attempt.score = result.score
    attempt.max_score = result.max_score
    attempt.percentage = result.percentage
    attempt.grade = result.grade
    attempt.passed = result.passed

    db.commit()
    db.refresh(attempt)
    logger.info(
        "Attempt %s finalized as %s: score %s/%s (%s%%)",
        attempt_id,
        attempt.status,
        attempt.score,
        attempt.max_score,
        attempt.percentage,
    )
    return attempt


def result_summary(attempt: Attempt) -> dict[str, object]:
    """Scores of a terminal attempt, shaped like ResultSummary."""
    return {
        "attemptId": attempt.id,
        "status": attempt.status,
        "submittedBy": attempt.submitted_by,
        "score": attempt.score,
        "maxScore": attempt.max_score,
        "percentage": attempt.percentage,
        "grade": attempt.grade,
        "passed": attempt.passed,
        "rank": attempt.rank,
        "percentile": attempt.percentile,
        "totalQuestions": attempt.total_questions,
        "attempted": attempt.attempted,
        "correct": attempt.correct,
        "wrong": attempt.wrong,
        "partiallyCorrect": attempt.partially_correct,
        "skipped": attempt.skipped,
        "totalTimeTaken": attempt.total_time_taken,
        "startedAt": attempt.started_at,
        "completedAt": attempt.completed_at,
    }
