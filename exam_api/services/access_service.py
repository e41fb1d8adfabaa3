"""Entitlement checks for starting and continuing exams."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession

from exam_api.models.db.enrollment import Enrollment
from exam_api.models.db.user import User
from exam_api.models.exams import ExamDefinition
from exam_api.utils import as_utc, utc_now


def get_enrollment(db: DbSession, user_id: int, test_series_id: str) -> Enrollment | None:
    """Get enrollment of a user in a test series."""
    stmt = select(Enrollment).where(
        Enrollment.user_id == user_id,
        Enrollment.test_series_id == test_series_id,
    )
    return db.execute(stmt).scalar_one_or_none()


def is_enrollment_active(enrollment: Enrollment, now: datetime | None = None) -> bool:
    """Active flag set and validity window not yet over."""
    if not enrollment.is_active:
        return False
    if enrollment.valid_until is None:
        return True
    return as_utc(enrollment.valid_until) > (now or utc_now())


def get_or_create_enrollment(
    db: DbSession,
    user_id: int,
    test_series_id: str,
    valid_until: datetime | None = None,
) -> Enrollment:
    """Get existing or create new enrollment, reactivating it if needed."""
    enrollment = get_enrollment(db, user_id, test_series_id)
    if enrollment:
        enrollment.is_active = True
        enrollment.valid_until = valid_until
        db.commit()
        db.refresh(enrollment)
        return enrollment

    enrollment = Enrollment(
        user_id=user_id,
        test_series_id=test_series_id,
        valid_until=valid_until,
    )
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    return enrollment


def can_attempt_exam(
    db: DbSession,
    exam: ExamDefinition,
    user: User,
    now: datetime | None = None,
) -> bool:
    """Check if user may start or continue an exam."""
    if not user.is_active:
        return False

    # Free exams are open to every signed-in user
    if exam.isFree:
        return True

    if not exam.testSeriesId:
        return False

    enrollment = get_enrollment(db, user.id, exam.testSeriesId)
    return enrollment is not None and is_enrollment_active(enrollment, now)
