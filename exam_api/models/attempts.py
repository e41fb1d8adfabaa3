"""Attempt-related Pydantic models."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class StartAttemptRequest(BaseModel):
    """Model for starting or resuming an attempt."""

    language: Literal["en", "hi"] = "en"


class SaveAnswerRequest(BaseModel):
    """Model for saving the selection for one question."""

    selectedOptions: list[str] = Field(default_factory=list)
    timeTaken: int | None = Field(None, ge=0)


class MarkForReviewRequest(BaseModel):
    """Model for toggling the review flag."""

    markedForReview: bool


class NavigateRequest(BaseModel):
    """Model for moving to a question."""

    sectionIndex: int = Field(..., ge=0)
    questionIndex: int = Field(..., ge=0)


class HeartbeatRequest(BaseModel):
    """Model for the periodic client ping. All values are informational."""

    currentSectionIndex: int | None = Field(None, ge=0)
    currentQuestionIndex: int | None = Field(None, ge=0)
    timeRemaining: int | None = Field(None, ge=0)


class HeartbeatResponse(BaseModel):
    """Server-side view of the clock after a heartbeat."""

    serverTimeRemaining: int
    status: str
    shouldSubmit: bool


class ResultSummary(BaseModel):
    """Scores of a terminal attempt."""

    attemptId: str
    status: str
    submittedBy: str | None = None
    score: float
    maxScore: float
    percentage: float
    grade: str | None = None
    passed: bool
    rank: int | None = None
    percentile: float | None = None
    totalQuestions: int
    attempted: int
    correct: int
    wrong: int
    partiallyCorrect: int
    skipped: int
    totalTimeTaken: int
    startedAt: datetime
    completedAt: datetime | None = None


class MutationResponse(BaseModel):
    """Outcome of a write; applied is False when the deadline had passed."""

    applied: bool
    status: str
    timeRemaining: int
    result: ResultSummary | None = None


class AttemptListItem(BaseModel):
    """Attempt history entry."""

    attemptId: str
    examId: str
    status: str
    startedAt: datetime
    completedAt: datetime | None = None
    score: float | None = None
    maxScore: float | None = None
    percentage: float | None = None
    grade: str | None = None
    rank: int | None = None
    percentile: float | None = None


class LeaderboardEntry(BaseModel):
    """Row of an exam leaderboard."""

    rank: int
    userId: int
    displayName: str
    score: float
    percentage: float
    totalTimeTaken: int
    completedAt: datetime | None = None


class SeriesProgress(BaseModel):
    """A user's finished attempts across the exams of a test series."""

    testSeriesId: str
    totalAttempts: int
    avgScore: float
    highestScore: float
    attempts: list[AttemptListItem]
