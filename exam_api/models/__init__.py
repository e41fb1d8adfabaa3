"""Pydantic models."""
from exam_api.models.attempts import (
    AttemptListItem,
    HeartbeatRequest,
    HeartbeatResponse,
    LeaderboardEntry,
    MarkForReviewRequest,
    MutationResponse,
    NavigateRequest,
    ResultSummary,
    SaveAnswerRequest,
    SeriesProgress,
    StartAttemptRequest,
)
from exam_api.models.exams import (
    ExamDefinition,
    ExamSection,
    MultipleCorrectPolicy,
    Question,
    QuestionOption,
    QuestionType,
    ScoringType,
)

__all__ = [
    "AttemptListItem",
    "ExamDefinition",
    "ExamSection",
    "HeartbeatRequest",
    "HeartbeatResponse",
    "LeaderboardEntry",
    "MarkForReviewRequest",
    "MultipleCorrectPolicy",
    "MutationResponse",
    "NavigateRequest",
    "Question",
    "QuestionOption",
    "QuestionType",
    "ResultSummary",
    "SaveAnswerRequest",
    "ScoringType",
    "SeriesProgress",
    "StartAttemptRequest",
]
