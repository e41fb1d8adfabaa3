"""Database models."""
from exam_api.models.db.user import User
from exam_api.models.db.enrollment import Enrollment
from exam_api.models.db.attempt import (
    TERMINAL_STATUSES,
    Attempt,
    AttemptAnswer,
    AttemptStatus,
    SubmittedBy,
)

__all__ = [
    "User",
    "Enrollment",
    "TERMINAL_STATUSES",
    "Attempt",
    "AttemptAnswer",
    "AttemptStatus",
    "SubmittedBy",
]
