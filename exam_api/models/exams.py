"""Pydantic models for exam definitions read from the question bank."""
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class QuestionType(str, Enum):
    """Question type as authored."""

    SINGLE = "single"
    MULTIPLE = "multiple"
    COMPREHENSION = "comprehension"


class ScoringType(str, Enum):
    """Rule a question is scored by (comprehension resolves to one of these)."""

    SINGLE = "single"
    MULTIPLE = "multiple"


class MultipleCorrectPolicy(str, Enum):
    """Credit policy for multiple-correct questions."""

    ALL_OR_NONE = "all_or_none"
    PARTIAL = "partial"
    PROPORTIONAL = "proportional"


class QuestionOption(BaseModel):
    """Single answer option."""

    id: str = Field(..., min_length=1)
    text: str
    textHi: str | None = None


class Passage(BaseModel):
    """Shared comprehension passage, context only."""

    title: str | None = None
    titleHi: str | None = None
    text: str
    textHi: str | None = None
    imageUrl: str | None = None


class Question(BaseModel):
    """Question snapshot as served by the question bank."""

    id: str = Field(..., min_length=1)
    questionType: QuestionType = QuestionType.SINGLE
    subType: ScoringType | None = None
    question: str
    questionHi: str | None = None
    imageUrl: str | None = None
    options: list[QuestionOption] = Field(..., min_length=2)
    correctAnswers: list[str] = Field(..., min_length=1)
    positiveMarks: float | None = Field(None, ge=0)
    negativeMarks: float | None = Field(None, ge=0)
    passage: Passage | None = None
    explanation: str | None = None
    explanationHi: str | None = None

    @model_validator(mode="after")
    def _check_answers(self) -> "Question":
        option_ids = [option.id for option in self.options]
        if len(set(option_ids)) != len(option_ids):
            raise ValueError(f"Duplicate option ids in question {self.id}")
        unknown = set(self.correctAnswers) - set(option_ids)
        if unknown:
            raise ValueError(
                f"Correct answers {sorted(unknown)} are not options of question {self.id}"
            )
        if self.scoring_type == ScoringType.SINGLE and len(set(self.correctAnswers)) != 1:
            raise ValueError(f"Single-answer question {self.id} needs exactly one correct answer")
        return self

    @property
    def scoring_type(self) -> ScoringType:
        """Rule used for credit; comprehension defers to its declared sub-type."""
        if self.questionType == QuestionType.MULTIPLE:
            return ScoringType.MULTIPLE
        if self.questionType == QuestionType.COMPREHENSION:
            return self.subType or ScoringType.SINGLE
        return ScoringType.SINGLE

    @property
    def option_ids(self) -> list[str]:
        return [option.id for option in self.options]


class ExamSection(BaseModel):
    """Named group of questions, scored and reported separately."""

    id: str = Field(..., min_length=1)
    title: str
    titleHi: str | None = None
    order: int = 0
    instructions: str | None = None
    instructionsHi: str | None = None
    positiveMarks: float | None = Field(None, ge=0)
    negativeMarks: float | None = Field(None, ge=0)
    questions: list[Question] = Field(default_factory=list)


class ExamDefinition(BaseModel):
    """Exam as stored in the question bank."""

    id: str = Field(..., min_length=1)
    title: str
    titleHi: str | None = None
    description: str | None = None
    testSeriesId: str | None = None
    duration: int = Field(120, gt=0)  # minutes
    defaultPositiveMarks: float = Field(4, ge=0)
    defaultNegativeMarks: float = Field(1, ge=0)
    passingPercentage: float = Field(40, ge=0, le=100)
    multipleCorrectPolicy: MultipleCorrectPolicy = MultipleCorrectPolicy.ALL_OR_NONE
    allowSectionNavigation: bool = True
    showSectionWiseResult: bool = True
    shuffleQuestions: bool = False
    shuffleOptions: bool = False
    isFree: bool = False
    sections: list[ExamSection] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _check_unique_questions(self) -> "ExamDefinition":
        seen: set[str] = set()
        for section in self.sections:
            for question in section.questions:
                if question.id in seen:
                    raise ValueError(f"Question {question.id} appears more than once")
                seen.add(question.id)
        return self

    @property
    def total_questions(self) -> int:
        return sum(len(section.questions) for section in self.sections)

    def marks_for(self, section: ExamSection, question: Question) -> tuple[float, float]:
        """Resolve (positive, negative) marks: question, then section, then exam."""
        positive = question.positiveMarks
        if positive is None:
            positive = section.positiveMarks
        if positive is None:
            positive = self.defaultPositiveMarks

        negative = question.negativeMarks
        if negative is None:
            negative = section.negativeMarks
        if negative is None:
            negative = self.defaultNegativeMarks
        return float(positive), float(negative)

    @property
    def total_marks(self) -> float:
        return sum(
            self.marks_for(section, question)[0]
            for section in self.sections
            for question in section.questions
        )
