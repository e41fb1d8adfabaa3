from datetime import timedelta

import pytest

from exam_api.errors import AccessDenied, Conflict, NotFoundError, ValidationError
from exam_api.models.db.attempt import AttemptStatus, SubmittedBy
from exam_api.models.exams import ExamDefinition
from exam_api.services import answer_service, attempt_service
from exam_api.services.finalize_service import finalize_attempt, result_summary
from exam_api.services.exam_service import save_exam_payload

from conftest import START, exam_payload


def _minutes(value: float):
    return START + timedelta(minutes=value)


def _shuffled_exam(**overrides: object) -> ExamDefinition:
    exam = ExamDefinition.model_validate(
        exam_payload(shuffleQuestions=True, shuffleOptions=True, **overrides)
    )
    save_exam_payload(exam)
    return exam


def test_start_creates_answer_rows_in_order(db, exam, user) -> None:
    attempt, is_resume = attempt_service.start_attempt(db, exam, user, now=START)

    assert not is_resume
    assert attempt.status == AttemptStatus.IN_PROGRESS.value
    assert attempt.question_order == {"quant": ["q1", "q2", "q3"], "verbal": ["q4", "q5"]}
    assert attempt.option_orders == {}
    assert [answer.question_id for answer in attempt.answers] == ["q1", "q2", "q3", "q4", "q5"]
    assert attempt.total_questions == 0

    marks = {answer.question_id: (answer.positive_marks, answer.negative_marks) for answer in attempt.answers}
    assert marks["q1"] == (2, 0.5)
    assert marks["q3"] == (4, 1)
    assert marks["q4"] == (1, 0.25)


def test_resume_returns_same_attempt_and_layout(db, data_dir, user) -> None:
    exam = _shuffled_exam()
    first, _ = attempt_service.start_attempt(db, exam, user, now=START)
    order, options = first.question_order, first.option_orders
    assert set(options) == {"q1", "q2", "q3", "q4", "q5"}

    second, is_resume = attempt_service.start_attempt(db, exam, user, now=_minutes(5))

    assert is_resume
    assert second.id == first.id
    assert second.question_order == order
    assert second.option_orders == options

    view = attempt_service.build_attempt_view(second, exam, is_resume=True, now=_minutes(5))
    shown = [q["id"] for section in view["sections"] for q in section["questions"]]
    assert shown == order["quant"] + order["verbal"]
    first_question = view["sections"][0]["questions"][0]
    assert [o["id"] for o in first_question["options"]] == options[first_question["id"]]


def test_layout_is_deterministic_per_attempt(exam) -> None:
    shuffled = exam.model_copy(update={"shuffleQuestions": True, "shuffleOptions": True})
    assert attempt_service.build_layout(shuffled, "abc") == attempt_service.build_layout(shuffled, "abc")


def test_view_hides_answers_and_localizes(db, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, language="hi", now=START)

    view = attempt_service.build_attempt_view(attempt, exam, now=_minutes(1))

    assert view["timeRemaining"] == 3540
    assert view["exam"]["title"] == "मॉक टेस्ट 1"
    question = view["sections"][0]["questions"][0]
    assert "correctAnswers" not in question
    assert "explanation" not in question
    assert question["options"][1]["text"] == "चार"
    assert question["options"][0]["text"] == "3"
    assert view["sections"][1]["questions"][0]["passage"]["text"].startswith("The Ganga")


def test_start_requires_enrollment(db, exam, make_user) -> None:
    outsider = make_user("outsider", enrolled_in=None)
    with pytest.raises(AccessDenied):
        attempt_service.start_attempt(db, exam, outsider, now=START)

    free = exam.model_copy(update={"isFree": True})
    attempt, _ = attempt_service.start_attempt(db, free, outsider, now=START)
    assert attempt.user_id == outsider.id


def test_other_users_attempt_is_denied(db, exam, user, make_user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)
    other = make_user("other")

    with pytest.raises(AccessDenied):
        attempt_service.get_owned_attempt(db, attempt.id, other)
    with pytest.raises(NotFoundError):
        attempt_service.get_owned_attempt(db, "missing", user)


def test_save_answer_validation(db, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)

    with pytest.raises(ValidationError):
        answer_service.save_answer(db, attempt, "nope", ["a"], now=_minutes(1))
    with pytest.raises(ValidationError):
        answer_service.save_answer(db, attempt, "q1", ["z"], now=_minutes(1))
    with pytest.raises(ValidationError):
        answer_service.save_answer(db, attempt, "q1", ["a", "b"], now=_minutes(1))

    assert answer_service.get_answer(db, attempt.id, "q1").selected_options == []


def test_save_answer_is_idempotent(db, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)

    outcome = answer_service.save_answer(db, attempt, "q2", ["c", "a", "c"], 30, now=_minutes(1))
    assert outcome["applied"] is True
    assert outcome["timeRemaining"] == 3540

    answer = answer_service.get_answer(db, attempt.id, "q2")
    first_answered_at = answer.answered_at
    assert answer.selected_options == ["c", "a"]
    assert answer.time_taken == 30

    answer_service.save_answer(db, attempt, "q2", ["c", "a"], 30, now=_minutes(2))
    answer = answer_service.get_answer(db, attempt.id, "q2")
    assert answer.selected_options == ["c", "a"]
    assert answer.answered_at == first_answered_at

    answer_service.save_answer(db, attempt, "q2", ["a", "c"], now=_minutes(2.5))
    answer = answer_service.get_answer(db, attempt.id, "q2")
    assert answer.selected_options == ["c", "a"]
    assert answer.answered_at == first_answered_at

    answer_service.save_answer(db, attempt, "q2", [], now=_minutes(3))
    answer = answer_service.get_answer(db, attempt.id, "q2")
    assert answer.selected_options == []
    assert answer.answered_at is None
    assert answer.visited_at is not None


def test_mark_for_review_independent_of_answer(db, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)

    answer_service.mark_for_review(db, attempt, "q3", True, now=_minutes(1))
    answer = answer_service.get_answer(db, attempt.id, "q3")
    assert answer.marked_for_review
    assert answer.selected_options == []

    attempt_service.submit_attempt(db, attempt, now=_minutes(2))
    assert answer_service.get_answer(db, attempt.id, "q3").marks_obtained == 0


def test_navigate_updates_position_and_visits(db, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)

    outcome = attempt_service.navigate(db, attempt, 1, 1, now=_minutes(2))

    assert outcome["applied"] is True
    db.refresh(attempt)
    assert (attempt.current_section_index, attempt.current_question_index) == (1, 1)
    assert answer_service.get_answer(db, attempt.id, "q5").visited_at is not None

    with pytest.raises(ValidationError):
        attempt_service.navigate(db, attempt, 2, 0, now=_minutes(3))
    with pytest.raises(ValidationError):
        attempt_service.navigate(db, attempt, 0, 3, now=_minutes(3))


def test_navigate_forward_only_when_sections_locked(db, data_dir, user) -> None:
    exam = ExamDefinition.model_validate(exam_payload(allowSectionNavigation=False))
    save_exam_payload(exam)
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)

    attempt_service.navigate(db, attempt, 1, 0, now=_minutes(1))
    with pytest.raises(ValidationError):
        attempt_service.navigate(db, attempt, 0, 0, now=_minutes(2))
    attempt_service.navigate(db, attempt, 1, 1, now=_minutes(2))


def test_submit_scores_and_sections_sum(db, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)
    answer_service.save_answer(db, attempt, "q1", ["b"], now=_minutes(1))
    answer_service.save_answer(db, attempt, "q2", ["a"], now=_minutes(2))
    answer_service.save_answer(db, attempt, "q3", ["a"], now=_minutes(3))
    answer_service.save_answer(db, attempt, "q4", ["a"], now=_minutes(4))

    attempt = attempt_service.submit_attempt(db, attempt, now=_minutes(20))

    assert attempt.status == AttemptStatus.COMPLETED.value
    assert attempt.submitted_by == SubmittedBy.USER.value
    # q1 +2, q2 0 (all_or_none), q3 -1, q4 +1, q5 skipped
    assert attempt.score == 2
    assert attempt.max_score == 10
    assert attempt.percentage == 20
    assert attempt.grade == "F"
    assert not attempt.passed
    assert attempt.total_questions == 5
    assert (attempt.attempted, attempt.correct, attempt.wrong, attempt.skipped) == (4, 2, 2, 1)
    assert attempt.total_time_taken == 1200
    assert sum(section["marksObtained"] for section in attempt.section_progress) == attempt.score


def test_finalize_twice_is_identical(db, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)
    answer_service.save_answer(db, attempt, "q1", ["b"], now=_minutes(1))

    first = result_summary(attempt_service.submit_attempt(db, attempt, now=_minutes(10)))
    second = result_summary(
        finalize_attempt(db, attempt.id, SubmittedBy.TIMER, now=_minutes(90))
    )

    assert first == second
    assert second["submittedBy"] == SubmittedBy.USER.value


def test_writes_after_submit_conflict_and_change_nothing(db, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)
    answer_service.save_answer(db, attempt, "q1", ["b"], now=_minutes(1))
    attempt_service.submit_attempt(db, attempt, now=_minutes(2))

    with pytest.raises(Conflict):
        answer_service.save_answer(db, attempt, "q1", ["a"], now=_minutes(3))
    with pytest.raises(Conflict):
        answer_service.mark_for_review(db, attempt, "q1", True, now=_minutes(3))
    with pytest.raises(Conflict):
        attempt_service.navigate(db, attempt, 0, 1, now=_minutes(3))

    answer = answer_service.get_answer(db, attempt.id, "q1")
    assert answer.selected_options == ["b"]
    assert not answer.marked_for_review


def test_sixty_minute_exam_expires_on_late_save(db, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)
    answer_service.save_answer(db, attempt, "q1", ["b"], now=_minutes(10))
    answer_service.save_answer(db, attempt, "q5", ["a"], now=_minutes(59))

    outcome = answer_service.save_answer(db, attempt, "q3", ["b"], now=_minutes(61))

    assert outcome["applied"] is False
    assert outcome["timeRemaining"] == 0
    assert outcome["status"] == AttemptStatus.AUTO_SUBMITTED.value
    assert outcome["result"]["submittedBy"] == SubmittedBy.TIMER.value
    assert outcome["result"]["score"] == 3
    assert outcome["result"]["totalTimeTaken"] == 3600
    assert answer_service.get_answer(db, attempt.id, "q3").selected_options == []

    with pytest.raises(Conflict):
        answer_service.save_answer(db, attempt, "q3", ["b"], now=_minutes(62))


def test_submit_after_deadline_is_auto_submit(db, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)

    attempt = attempt_service.submit_attempt(db, attempt, now=_minutes(75))

    assert attempt.status == AttemptStatus.AUTO_SUBMITTED.value
    assert attempt.submitted_by == SubmittedBy.TIMER.value


def test_start_after_expiry_closes_old_attempt(db, exam, user) -> None:
    old, _ = attempt_service.start_attempt(db, exam, user, now=START)

    new, is_resume = attempt_service.start_attempt(db, exam, user, now=_minutes(120))

    assert not is_resume
    assert new.id != old.id
    db.refresh(old)
    assert old.status == AttemptStatus.AUTO_SUBMITTED.value
    assert attempt_service.count_finished_attempts(db, user.id, exam.id) == 1


def test_state_of_expired_attempt_reports_result(db, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)

    state = attempt_service.get_attempt_state(db, attempt, exam, now=_minutes(61))

    assert state["status"] == AttemptStatus.AUTO_SUBMITTED.value
    assert state["timeRemaining"] == 0
    assert "sections" not in state


def test_result_requires_terminal_attempt(db, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)
    with pytest.raises(Conflict):
        attempt_service.get_result(db, attempt, exam, now=_minutes(5))

    answer_service.save_answer(db, attempt, "q1", ["a"], now=_minutes(6))
    attempt_service.submit_attempt(db, attempt, now=_minutes(7))
    result = attempt_service.get_result(db, attempt, exam, now=_minutes(8))

    assert result["attempt"]["rank"] == 1
    assert result["attempt"]["percentile"] == 0
    assert result["attempt"]["attemptCount"] == 1
    review = {item["questionId"]: item for item in result["questionReview"]}
    assert review["q1"]["correctAnswers"] == ["b"]
    assert review["q1"]["marksObtained"] == -0.5
    assert review["q1"]["explanation"] == "Basic addition"
    assert [section["sectionId"] for section in result["sectionProgress"]] == ["quant", "verbal"]


def test_finalize_uses_frozen_snapshot(db, data_dir, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)
    answer_service.save_answer(db, attempt, "q1", ["b"], now=_minutes(1))

    # Editing the question bank mid-attempt does not change the marking
    edited = exam_payload(defaultPositiveMarks=10)
    edited["sections"][0]["questions"][0]["correctAnswers"] = ["a"]
    save_exam_payload(ExamDefinition.model_validate(edited))

    attempt = attempt_service.submit_attempt(db, attempt, now=_minutes(2))
    assert attempt.score == 2
    assert attempt.correct == 1


def test_resume_keeps_section_layout_after_exam_edit(db, data_dir, exam, user) -> None:
    attempt, _ = attempt_service.start_attempt(db, exam, user, now=START)

    edited = exam_payload()
    edited["sections"] = list(reversed(edited["sections"]))
    reordered = ExamDefinition.model_validate(edited)
    save_exam_payload(reordered)

    view = attempt_service.build_attempt_view(attempt, reordered, is_resume=True, now=_minutes(5))
    assert [section["id"] for section in view["sections"]] == ["quant", "verbal"]
    assert [q["id"] for q in view["sections"][1]["questions"]] == ["q4", "q5"]

    edited["sections"] = [edited["sections"][0]]
    trimmed = ExamDefinition.model_validate(edited)
    view = attempt_service.build_attempt_view(attempt, trimmed, is_resume=True, now=_minutes(6))
    assert [section["id"] for section in view["sections"]] == ["quant", "verbal"]
    assert view["sections"][0]["title"] == "Quantitative"
    assert [q["id"] for q in view["sections"][1]["questions"]] == ["q4", "q5"]


def test_series_progress_over_finished_attempts(db, exam, user) -> None:
    empty = attempt_service.get_series_progress(db, user.id, "series-a")
    assert (empty["totalAttempts"], empty["avgScore"], empty["highestScore"]) == (0, 0, 0)

    first, _ = attempt_service.start_attempt(db, exam, user, now=START)
    answer_service.save_answer(db, first, "q1", ["b"], now=_minutes(1))
    attempt_service.submit_attempt(db, first, now=_minutes(10))

    second, _ = attempt_service.start_attempt(db, exam, user, now=_minutes(20))
    answer_service.save_answer(db, second, "q1", ["b"], now=_minutes(21))
    answer_service.save_answer(db, second, "q3", ["b"], now=_minutes(22))
    attempt_service.submit_attempt(db, second, now=_minutes(40))

    # Still open, so not counted
    attempt_service.start_attempt(db, exam, user, now=_minutes(50))

    progress = attempt_service.get_series_progress(db, user.id, "series-a")

    assert progress["totalAttempts"] == 2
    assert progress["avgScore"] == 40
    assert progress["highestScore"] == 60
    assert [item["attemptId"] for item in progress["attempts"]] == [second.id, first.id]
    assert attempt_service.get_series_progress(db, user.id, "series-b")["totalAttempts"] == 0
