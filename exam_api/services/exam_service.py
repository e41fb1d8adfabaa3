"""Read-only access to exam definitions in the question bank."""
import logging

from pydantic import ValidationError as PydanticValidationError

from exam_api.errors import ValidationError
from exam_api.models.exams import ExamDefinition, ExamSection, Question
from exam_api.utils import (
    exam_payload_path,
    read_json_file,
    validate_exam_exists,
    validate_id,
    write_json_file,
)

logger = logging.getLogger(__name__)


def parse_exam_payload(payload: object) -> ExamDefinition:
    """Validate a raw payload into an exam definition."""
    try:
        return ExamDefinition.model_validate(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(
            f"Invalid exam payload at {location or 'root'}: {first.get('msg')}"
        ) from exc


def load_exam_payload(exam_id: str) -> dict[str, object]:
    """Load exam payload from file."""
    exam_id = validate_id("examId", exam_id)
    validate_exam_exists(exam_id)
    return read_json_file(exam_payload_path(exam_id), {})


def load_exam(exam_id: str) -> ExamDefinition:
    """Load and validate an exam by id."""
    exam = parse_exam_payload(load_exam_payload(exam_id))
    if exam.id != exam_id:
        logger.warning("Exam file %s declares id %s", exam_id, exam.id)
        raise ValidationError("Exam payload id does not match its location")
    return exam


def save_exam_payload(exam: ExamDefinition) -> None:
    """Write a validated exam to the question bank directory."""
    write_json_file(
        exam_payload_path(validate_id("examId", exam.id)),
        exam.model_dump(mode="json", exclude_none=True),
    )


def find_question(exam: ExamDefinition, question_id: str) -> tuple[ExamSection, Question] | None:
    """Find question in exam by ID."""
    for section in exam.sections:
        for question in section.questions:
            if question.id == question_id:
                return section, question
    return None


def localized(text: str | None, text_hi: str | None, language: str) -> str | None:
    """Pick the Hindi text when requested and present, English otherwise."""
    if language == "hi" and text_hi:
        return text_hi
    return text


def exam_meta(exam: ExamDefinition, language: str = "en") -> dict[str, object]:
    """Public exam information, no questions."""
    return {
        "id": exam.id,
        "title": localized(exam.title, exam.titleHi, language),
        "description": exam.description,
        "testSeriesId": exam.testSeriesId,
        "duration": exam.duration,
        "totalQuestions": exam.total_questions,
        "totalMarks": exam.total_marks,
        "defaultPositiveMarks": exam.defaultPositiveMarks,
        "defaultNegativeMarks": exam.defaultNegativeMarks,
        "passingPercentage": exam.passingPercentage,
        "multipleCorrectPolicy": exam.multipleCorrectPolicy.value,
        "allowSectionNavigation": exam.allowSectionNavigation,
        "showSectionWiseResult": exam.showSectionWiseResult,
        "shuffleQuestions": exam.shuffleQuestions,
        "shuffleOptions": exam.shuffleOptions,
        "isFree": exam.isFree,
        "sections": [
            {
                "id": section.id,
                "title": localized(section.title, section.titleHi, language),
                "questionCount": len(section.questions),
            }
            for section in exam.sections
        ],
    }
