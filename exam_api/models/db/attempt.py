"""
Attempt and AttemptAnswer database models for timed exam attempts.
"""

from __future__ import annotations

import enum

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_api.database import Base
from exam_api.utils.json_utils import json_dump, json_load_or
from exam_api.utils.time_utils import as_utc

if TYPE_CHECKING:
    from exam_api.models.db.user import User


class AttemptStatus(str, enum.Enum):
    """Status of an exam attempt."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    AUTO_SUBMITTED = "auto_submitted"


TERMINAL_STATUSES = (AttemptStatus.COMPLETED.value, AttemptStatus.AUTO_SUBMITTED.value)


class SubmittedBy(str, enum.Enum):
    """Who triggered the terminal transition."""

    USER = "user"
    TIMER = "timer"


class Attempt(Base):
    """
    Exam attempt record.
    One student's run through one exam, from start to a terminal status.
    """

    __tablename__ = "exam_attempts"

    # Primary key - uuid4 hex generated at start
    id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)

    # References
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    exam_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    test_series_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=AttemptStatus.IN_PROGRESS.value, nullable=False
    )
    submitted_by: Mapped[str | None] = mapped_column(String(10), nullable=True)
    language: Mapped[str] = mapped_column(String(5), default="en", nullable=False)

    # Navigation (authoritative)
    current_section_index: Mapped[int] = mapped_column(default=0, nullable=False)
    current_question_index: Mapped[int] = mapped_column(default=0, nullable=False)

    # Last client-reported values, observability only
    client_section_index: Mapped[int | None] = mapped_column(nullable=True)
    client_question_index: Mapped[int | None] = mapped_column(nullable=True)
    client_time_remaining: Mapped[int | None] = mapped_column(nullable=True)

    # Timing
    started_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    last_active_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    time_limit: Mapped[int] = mapped_column(nullable=False)  # seconds
    total_time_taken: Mapped[int] = mapped_column(default=0, nullable=False)

    # Frozen layout and marking snapshot (JSON strings)
    question_order_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    option_orders_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    settings_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Results, zero/unset while in progress
    section_progress_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_questions: Mapped[int] = mapped_column(default=0, nullable=False)
    attempted: Mapped[int] = mapped_column(default=0, nullable=False)
    correct: Mapped[int] = mapped_column(default=0, nullable=False)
    wrong: Mapped[int] = mapped_column(default=0, nullable=False)
    partially_correct: Mapped[int] = mapped_column(default=0, nullable=False)
    skipped: Mapped[int] = mapped_column(default=0, nullable=False)
    score: Mapped[float] = mapped_column(default=0.0, nullable=False)
    max_score: Mapped[float] = mapped_column(default=0.0, nullable=False)
    percentage: Mapped[float] = mapped_column(default=0.0, nullable=False)
    grade: Mapped[str | None] = mapped_column(String(1), nullable=True)
    passed: Mapped[bool] = mapped_column(default=False, nullable=False)
    rank: Mapped[int | None] = mapped_column(nullable=True)
    percentile: Mapped[float | None] = mapped_column(nullable=True)

    __table_args__ = (
        # At most one in-progress attempt per (user, exam)
        Index(
            "uq_attempt_user_exam_in_progress",
            "user_id",
            "exam_id",
            unique=True,
            sqlite_where=sa.text("status = 'in_progress'"),
            postgresql_where=sa.text("status = 'in_progress'"),
        ),
        Index("ix_exam_attempts_exam_status_score", "exam_id", "status", "score"),
    )

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    answers: Mapped[list["AttemptAnswer"]] = relationship(
        "AttemptAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="AttemptAnswer.question_index",
    )

    @property
    def question_order(self) -> dict[str, list[str]]:
        """Section id -> question ids, in the order shown to this attempt."""
        value = json_load_or(self.question_order_json, {})
        return value if isinstance(value, dict) else {}

    @question_order.setter
    def question_order(self, value: dict[str, list[str]]) -> None:
        self.question_order_json = json_dump(value, pretty=False) if value else None

    @property
    def option_orders(self) -> dict[str, list[str]]:
        """Question id -> option ids; empty when options are not shuffled."""
        value = json_load_or(self.option_orders_json, {})
        return value if isinstance(value, dict) else {}

    @option_orders.setter
    def option_orders(self, value: dict[str, list[str]]) -> None:
        self.option_orders_json = json_dump(value, pretty=False) if value else None

    @property
    def settings(self) -> dict[str, Any]:
        """Marking configuration captured at start."""
        value = json_load_or(self.settings_json, {})
        return value if isinstance(value, dict) else {}

    @settings.setter
    def settings(self, value: dict[str, Any]) -> None:
        self.settings_json = json_dump(value, pretty=False) if value else None

    @property
    def section_progress(self) -> list[dict[str, Any]]:
        value = json_load_or(self.section_progress_json, [])
        return value if isinstance(value, list) else []

    @section_progress.setter
    def section_progress(self, value: list[dict[str, Any]]) -> None:
        self.section_progress_json = json_dump(value, pretty=False) if value else None

    @property
    def deadline(self) -> datetime:
        return as_utc(self.started_at) + timedelta(seconds=self.time_limit)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class AttemptAnswer(Base):
    """
    Answer record for one question within an attempt.
    Carries a frozen snapshot of the question's scoring data so finalize
    never depends on later question bank edits.
    """

    __tablename__ = "attempt_answers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("exam_attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Question reference
    question_id: Mapped[str] = mapped_column(String(64), nullable=False)
    section_id: Mapped[str] = mapped_column(String(64), nullable=False)
    question_index: Mapped[int] = mapped_column(nullable=False)  # Global order shown

    # Answer data
    selected_options_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_correct: Mapped[bool] = mapped_column(default=False, nullable=False)
    is_partially_correct: Mapped[bool] = mapped_column(default=False, nullable=False)
    marks_obtained: Mapped[float] = mapped_column(default=0.0, nullable=False)
    time_taken: Mapped[int] = mapped_column(default=0, nullable=False)  # seconds
    marked_for_review: Mapped[bool] = mapped_column(default=False, nullable=False)
    visited_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    answered_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    # Scoring snapshot
    question_type: Mapped[str] = mapped_column(String(20), nullable=False)
    scoring_type: Mapped[str] = mapped_column(String(20), nullable=False)
    option_ids_json: Mapped[str] = mapped_column(Text, nullable=False)
    correct_answers_json: Mapped[str] = mapped_column(Text, nullable=False)
    positive_marks: Mapped[float] = mapped_column(nullable=False)
    negative_marks: Mapped[float] = mapped_column(nullable=False)

    # Constraints
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_attempt_question"),
    )

    # Relationships
    attempt: Mapped["Attempt"] = relationship("Attempt", back_populates="answers")

    @property
    def selected_options(self) -> list[str]:
        value = json_load_or(self.selected_options_json, [])
        return value if isinstance(value, list) else []

    @selected_options.setter
    def selected_options(self, value: list[str]) -> None:
        self.selected_options_json = json_dump(value, pretty=False) if value else None

    @property
    def option_ids(self) -> list[str]:
        return json_load_or(self.option_ids_json, [])

    @option_ids.setter
    def option_ids(self, value: list[str]) -> None:
        self.option_ids_json = json_dump(value, pretty=False)

    @property
    def correct_answers(self) -> list[str]:
        return json_load_or(self.correct_answers_json, [])

    @correct_answers.setter
    def correct_answers(self, value: list[str]) -> None:
        self.correct_answers_json = json_dump(value, pretty=False)
