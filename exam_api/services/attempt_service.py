"""Attempt session manager: start/resume, navigation, views and submit."""
import logging
import random
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DbSession

from exam_api.errors import AccessDenied, Conflict, NotFoundError
from exam_api.models.db.attempt import (
    TERMINAL_STATUSES,
    Attempt,
    AttemptAnswer,
    AttemptStatus,
    SubmittedBy,
)
from exam_api.models.db.user import User
from exam_api.models.exams import ExamDefinition, Question
from exam_api.services import access_service, answer_service, ranking_service, timer_service
from exam_api.services.exam_service import exam_meta, find_question, localized
from exam_api.services.finalize_service import finalize_attempt, result_summary
from exam_api.services.scoring import round_marks
from exam_api.utils import utc_now

logger = logging.getLogger(__name__)


def get_attempt(db: DbSession, attempt_id: str) -> Attempt | None:
    """Get attempt by ID."""
    return db.get(Attempt, attempt_id)


def get_owned_attempt(db: DbSession, attempt_id: str, user: User) -> Attempt:
    """Get attempt by ID, checking it belongs to the user."""
    attempt = get_attempt(db, attempt_id)
    if attempt is None:
        raise NotFoundError("Attempt not found")
    if attempt.user_id != user.id:
        raise AccessDenied("Attempt belongs to another user")
    return attempt


def get_in_progress_attempt(db: DbSession, user_id: int, exam_id: str) -> Attempt | None:
    """Get the open attempt of a user for an exam, if any."""
    return db.execute(
        select(Attempt).where(
            Attempt.user_id == user_id,
            Attempt.exam_id == exam_id,
            Attempt.status == AttemptStatus.IN_PROGRESS.value,
        )
    ).scalar_one_or_none()


def get_attempts_by_user(
    db: DbSession,
    user_id: int,
    exam_id: str | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Attempt]:
    """
    Get attempts for a user, optionally filtered by exam_id and status.
    """
    query = select(Attempt).where(Attempt.user_id == user_id)

    if exam_id:
        query = query.where(Attempt.exam_id == exam_id)
    if status:
        query = query.where(Attempt.status == status)

    query = query.order_by(Attempt.started_at.desc()).limit(limit).offset(offset)

    return list(db.execute(query).scalars().all())


def count_finished_attempts(db: DbSession, user_id: int, exam_id: str) -> int:
    """Number of terminal attempts of a user for an exam."""
    return db.execute(
        select(func.count(Attempt.id)).where(
            Attempt.user_id == user_id,
            Attempt.exam_id == exam_id,
            Attempt.status.in_(TERMINAL_STATUSES),
        )
    ).scalar_one()


def attempt_list_item(attempt: Attempt) -> dict[str, object]:
    """History entry; scores stay hidden until the attempt is terminal."""
    return {
        "attemptId": attempt.id,
        "examId": attempt.exam_id,
        "status": attempt.status,
        "startedAt": attempt.started_at,
        "completedAt": attempt.completed_at,
        "score": attempt.score if attempt.is_terminal else None,
        "maxScore": attempt.max_score if attempt.is_terminal else None,
        "percentage": attempt.percentage if attempt.is_terminal else None,
        "grade": attempt.grade,
        "rank": attempt.rank,
        "percentile": attempt.percentile,
    }


def get_series_progress(db: DbSession, user_id: int, test_series_id: str) -> dict[str, object]:
    """
    Summary of a user's finished attempts in a test series.

    avgScore is the mean percentage and highestScore the best percentage;
    both are 0 when nothing has been finished yet. Attempts are listed with
    the most recently completed first.
    """
    attempts = list(
        db.execute(
            select(Attempt)
            .where(
                Attempt.user_id == user_id,
                Attempt.test_series_id == test_series_id,
                Attempt.status.in_(TERMINAL_STATUSES),
            )
            .order_by(Attempt.completed_at.desc(), Attempt.id.asc())
        ).scalars().all()
    )
    percentages = [attempt.percentage for attempt in attempts]
    return {
        "testSeriesId": test_series_id,
        "totalAttempts": len(attempts),
        "avgScore": round_marks(sum(percentages) / len(percentages)) if percentages else 0.0,
        "highestScore": max(percentages, default=0.0),
        "attempts": [attempt_list_item(attempt) for attempt in attempts],
    }


def shuffled(items: list[str], seed: str) -> list[str]:
    """Deterministic permutation of items for a given seed."""
    permutation = list(items)
    random.Random(seed).shuffle(permutation)
    return permutation


def build_layout(
    exam: ExamDefinition, attempt_id: str
) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
    """
    Question order per section and option order per question.

    The question order is always recorded so a resumed attempt replays the
    exact layout it started with; option orders only exist when shuffled.
    """
    question_order: dict[str, list[str]] = {}
    option_orders: dict[str, list[str]] = {}
    for section in exam.sections:
        question_ids = [question.id for question in section.questions]
        if exam.shuffleQuestions:
            question_ids = shuffled(question_ids, f"{attempt_id}:{section.id}")
        question_order[section.id] = question_ids

        if exam.shuffleOptions:
            for question in section.questions:
                option_orders[question.id] = shuffled(
                    question.option_ids, f"{attempt_id}:{question.id}"
                )
    return question_order, option_orders


def _settings_snapshot(exam: ExamDefinition) -> dict[str, object]:
    return {
        "multipleCorrectPolicy": exam.multipleCorrectPolicy.value,
        "passingPercentage": exam.passingPercentage,
        "allowSectionNavigation": exam.allowSectionNavigation,
        "shuffleQuestions": exam.shuffleQuestions,
        "shuffleOptions": exam.shuffleOptions,
        "sections": [{"id": section.id, "title": section.title} for section in exam.sections],
    }


def _create_attempt(
    exam: ExamDefinition, user: User, language: str, now: datetime
) -> Attempt:
    attempt_id = uuid.uuid4().hex
    question_order, option_orders = build_layout(exam, attempt_id)

    attempt = Attempt(
        id=attempt_id,
        user_id=user.id,
        exam_id=exam.id,
        test_series_id=exam.testSeriesId,
        status=AttemptStatus.IN_PROGRESS.value,
        language=language,
        started_at=now,
        last_active_at=now,
        time_limit=exam.duration * 60,
    )
    attempt.question_order = question_order
    attempt.option_orders = option_orders
    attempt.settings = _settings_snapshot(exam)

    # One answer row per question, carrying its frozen scoring snapshot
    index = 0
    for section in exam.sections:
        by_id = {question.id: question for question in section.questions}
        for question_id in question_order[section.id]:
            question = by_id[question_id]
            positive, negative = exam.marks_for(section, question)
            answer = AttemptAnswer(
                question_id=question.id,
                section_id=section.id,
                question_index=index,
                question_type=question.questionType.value,
                scoring_type=question.scoring_type.value,
                positive_marks=positive,
                negative_marks=negative,
            )
            answer.option_ids = question.option_ids
            answer.correct_answers = sorted(set(question.correctAnswers))
            attempt.answers.append(answer)
            index += 1
    return attempt


def start_attempt(
    db: DbSession,
    exam: ExamDefinition,
    user: User,
    language: str = "en",
    now: datetime | None = None,
) -> tuple[Attempt, bool]:
    """
    Resume the user's open attempt for the exam, or create one.

    Returns (attempt, is_resume). A resumed attempt is returned unchanged;
    an open attempt found past its deadline is auto-submitted first and a
    new attempt takes its place.
    """
    now = now or utc_now()
    if not access_service.can_attempt_exam(db, exam, user, now):
        raise AccessDenied("You do not have access to this exam")

    existing = get_in_progress_attempt(db, user.id, exam.id)
    if existing is not None:
        if not timer_service.expire_if_due(db, existing, now):
            logger.info("Resuming attempt %s for user %s", existing.id, user.id)
            return existing, True

    attempt = _create_attempt(exam, user, language, now)
    db.add(attempt)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent start won the one-open-attempt index; resume its attempt
        db.rollback()
        existing = get_in_progress_attempt(db, user.id, exam.id)
        if existing is None:
            raise
        logger.info("Concurrent start for user %s resolved to %s", user.id, existing.id)
        return existing, True

    db.refresh(attempt)
    logger.info(
        "Started attempt %s for user %s on exam %s (%ss)",
        attempt.id,
        user.id,
        exam.id,
        attempt.time_limit,
    )
    return attempt, False


def _ordered_options(question: Question, order: list[str] | None) -> list[object]:
    if not order:
        return list(question.options)
    by_id = {option.id: option for option in question.options}
    options = [by_id[option_id] for option_id in order if option_id in by_id]
    options.extend(option for option in question.options if option.id not in order)
    return options


def sanitize_question(
    question: Question, positive: float, negative: float, order: list[str] | None, language: str
) -> dict[str, object]:
    """Question as shown during an attempt: no correct answers, no explanation."""
    passage = None
    if question.passage is not None:
        passage = {
            "title": localized(question.passage.title, question.passage.titleHi, language),
            "text": localized(question.passage.text, question.passage.textHi, language),
            "imageUrl": question.passage.imageUrl,
        }
    return {
        "id": question.id,
        "questionType": question.questionType.value,
        "multipleSelect": question.scoring_type.value == "multiple",
        "question": localized(question.question, question.questionHi, language),
        "imageUrl": question.imageUrl,
        "options": [
            {"id": option.id, "text": localized(option.text, option.textHi, language)}
            for option in _ordered_options(question, order)
        ],
        "passage": passage,
        "positiveMarks": positive,
        "negativeMarks": negative,
    }


def sanitized_sections(
    attempt: Attempt, exam: ExamDefinition
) -> list[dict[str, object]]:
    """
    Sections and questions in the attempt's stored order.

    The section list comes from the snapshot taken at start, so editing the
    exam's sections mid-attempt does not change what a resume shows.
    """
    question_order = attempt.question_order
    option_orders = attempt.option_orders
    language = attempt.language
    frozen = attempt.settings.get("sections") or [
        {"id": section_id, "title": section_id} for section_id in question_order
    ]
    live = {section.id: section for section in exam.sections}
    sections = []
    for position, snapshot in enumerate(frozen, start=1):
        section_id = snapshot["id"]
        questions = []
        for question_id in question_order.get(section_id, []):
            found = find_question(exam, question_id)
            if found is None:
                logger.warning(
                    "Question %s of attempt %s is gone from exam %s",
                    question_id,
                    attempt.id,
                    exam.id,
                )
                continue
            owner, question = found
            positive, negative = exam.marks_for(owner, question)
            questions.append(
                sanitize_question(
                    question, positive, negative, option_orders.get(question_id), language
                )
            )
        section = live.get(section_id)
        if section is None:
            sections.append(
                {
                    "id": section_id,
                    "title": snapshot.get("title") or section_id,
                    "order": position,
                    "instructions": None,
                    "questions": questions,
                }
            )
            continue
        sections.append(
            {
                "id": section.id,
                "title": localized(section.title, section.titleHi, language),
                "order": section.order,
                "instructions": localized(section.instructions, section.instructionsHi, language),
                "questions": questions,
            }
        )
    return sections


def answer_state(attempt: Attempt) -> dict[str, dict[str, object]]:
    """Per-question answer state keyed by question id."""
    return {
        answer.question_id: {
            "selectedOptions": answer.selected_options,
            "markedForReview": answer.marked_for_review,
            "visited": answer.visited_at is not None,
            "answered": bool(answer.selected_options),
            "timeTaken": answer.time_taken,
        }
        for answer in attempt.answers
    }


def build_attempt_view(
    attempt: Attempt,
    exam: ExamDefinition,
    is_resume: bool = False,
    now: datetime | None = None,
) -> dict[str, object]:
    """Sanitized view of an in-progress attempt."""
    return {
        "attemptId": attempt.id,
        "isResume": is_resume,
        "status": attempt.status,
        "language": attempt.language,
        "exam": exam_meta(exam, attempt.language),
        "sections": sanitized_sections(attempt, exam),
        "answers": answer_state(attempt),
        "nav": {
            "sectionIndex": attempt.current_section_index,
            "questionIndex": attempt.current_question_index,
        },
        "timeRemaining": timer_service.remaining_seconds(attempt, now),
    }


def get_attempt_state(
    db: DbSession,
    attempt: Attempt,
    exam: ExamDefinition,
    now: datetime | None = None,
) -> dict[str, object]:
    """Resume view; a terminal (or just expired) attempt reports its result instead."""
    now = now or utc_now()
    timer_service.expire_if_due(db, attempt, now)
    if attempt.is_terminal:
        return {
            "attemptId": attempt.id,
            "status": attempt.status,
            "timeRemaining": 0,
            "result": result_summary(attempt),
        }
    return build_attempt_view(attempt, exam, is_resume=True, now=now)


def navigate(
    db: DbSession,
    attempt: Attempt,
    section_index: int,
    question_index: int,
    now: datetime | None = None,
) -> dict[str, object]:
    """Move to a question; stamps its first visit."""
    return answer_service.mark_visited(db, attempt, section_index, question_index, now)


def submit_attempt(db: DbSession, attempt: Attempt, now: datetime | None = None) -> Attempt:
    """Explicit submit. Past the deadline it becomes an auto-submit; repeats are no-ops."""
    now = now or utc_now()
    if timer_service.expire_if_due(db, attempt, now):
        return attempt
    return finalize_attempt(db, attempt.id, SubmittedBy.USER, now)


def _question_review(attempt: Attempt, exam: ExamDefinition) -> list[dict[str, object]]:
    language = attempt.language
    review = []
    for answer in attempt.answers:
        found = find_question(exam, answer.question_id)
        question = found[1] if found else None
        review.append(
            {
                "questionId": answer.question_id,
                "sectionId": answer.section_id,
                "questionType": answer.question_type,
                "question": localized(question.question, question.questionHi, language)
                if question
                else None,
                "options": [
                    {"id": option.id, "text": localized(option.text, option.textHi, language)}
                    for option in _ordered_options(question, attempt.option_orders.get(answer.question_id))
                ]
                if question
                else [],
                "selectedOptions": answer.selected_options,
                "correctAnswers": answer.correct_answers,
                "isCorrect": answer.is_correct,
                "isPartiallyCorrect": answer.is_partially_correct,
                "marksObtained": answer.marks_obtained,
                "maxMarks": answer.positive_marks,
                "timeTaken": answer.time_taken,
                "markedForReview": answer.marked_for_review,
                "explanation": localized(question.explanation, question.explanationHi, language)
                if question
                else None,
            }
        )
    return review


def get_result(
    db: DbSession,
    attempt: Attempt,
    exam: ExamDefinition,
    now: datetime | None = None,
) -> dict[str, object]:
    """Full score breakdown; only available once the attempt is terminal."""
    now = now or utc_now()
    timer_service.expire_if_due(db, attempt, now)
    if not attempt.is_terminal:
        raise Conflict("Exam not yet submitted")

    if attempt.rank is None:
        ranking_service.refresh_exam_rankings(db, attempt.exam_id, now)
        db.refresh(attempt)

    summary = result_summary(attempt)
    summary["attemptCount"] = count_finished_attempts(db, attempt.user_id, attempt.exam_id)
    return {
        "attempt": summary,
        "exam": exam_meta(exam, attempt.language),
        "sectionProgress": attempt.section_progress,
        "questionReview": _question_review(attempt, exam),
    }
