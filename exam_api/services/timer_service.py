"""Server-authoritative attempt clock.

Remaining time is always recomputed from ``started_at`` and ``time_limit``;
there is no stored countdown and no per-attempt timer thread. Expired
attempts are reconciled lazily by whichever request observes them first.
"""
import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session as DbSession

from exam_api.models.db.attempt import Attempt, AttemptStatus, SubmittedBy
from exam_api.services.finalize_service import finalize_attempt, result_summary
from exam_api.utils import elapsed_seconds, utc_now

logger = logging.getLogger(__name__)


def remaining_seconds(attempt: Attempt, now: datetime | None = None) -> int:
    """Seconds left before the deadline, never negative."""
    now = now or utc_now()
    return max(0, attempt.time_limit - elapsed_seconds(attempt.started_at, now))


def deadline(attempt: Attempt) -> datetime:
    return attempt.deadline


def is_expired(attempt: Attempt, now: datetime | None = None) -> bool:
    """True when an in-progress attempt has run out of time."""
    return (
        attempt.status == AttemptStatus.IN_PROGRESS.value
        and remaining_seconds(attempt, now) <= 0
    )


def expire_if_due(db: DbSession, attempt: Attempt, now: datetime | None = None) -> bool:
    """Auto-submit the attempt if its deadline has passed.

    Returns True when the attempt was (or just became) auto-submitted by
    this check, in which case the caller must not apply its mutation.
    """
    if not is_expired(attempt, now):
        return False
    logger.info("Attempt %s passed its deadline, auto-submitting", attempt.id)
    finalize_attempt(db, attempt.id, SubmittedBy.TIMER, now)
    return True


def guard_write(
    db: DbSession,
    attempt_id: str,
    now: datetime | None = None,
    **values: object,
) -> bool:
    """
    Stamp last_active_at (plus any extra column values) only while the
    attempt is still in progress. Runs inside the caller's transaction, so
    a False return means the caller must roll back its pending writes.
    """
    result = db.execute(
        update(Attempt)
        .where(
            Attempt.id == attempt_id,
            Attempt.status == AttemptStatus.IN_PROGRESS.value,
        )
        .values(last_active_at=now or utc_now(), **values)
        .execution_options(synchronize_session="evaluate")
    )
    return result.rowcount == 1


def expired_outcome(attempt: Attempt) -> dict[str, object]:
    """Response for a mutation that arrived after the deadline."""
    return {
        "applied": False,
        "status": attempt.status,
        "timeRemaining": 0,
        "result": result_summary(attempt),
    }


def heartbeat(
    db: DbSession,
    attempt: Attempt,
    client_section_index: int | None = None,
    client_question_index: int | None = None,
    client_time_remaining: int | None = None,
    now: datetime | None = None,
) -> dict[str, object]:
    """
    Liveness ping. Client values are recorded for observability only and
    never influence the clock.
    """
    now = now or utc_now()
    if attempt.is_terminal:
        return {"serverTimeRemaining": 0, "status": attempt.status, "shouldSubmit": True}

    if expire_if_due(db, attempt, now):
        db.refresh(attempt)
        return {"serverTimeRemaining": 0, "status": attempt.status, "shouldSubmit": True}

    remaining = remaining_seconds(attempt, now)
    if client_time_remaining is not None and client_time_remaining != remaining:
        logger.debug(
            "Attempt %s clock drift: client %ss, server %ss",
            attempt.id,
            client_time_remaining,
            remaining,
        )

    observed: dict[str, object] = {}
    if client_section_index is not None:
        observed["client_section_index"] = client_section_index
    if client_question_index is not None:
        observed["client_question_index"] = client_question_index
    if client_time_remaining is not None:
        observed["client_time_remaining"] = client_time_remaining

    if not guard_write(db, attempt.id, now, **observed):
        # Finalized by a concurrent request between our read and write
        db.rollback()
        db.refresh(attempt)
        return {"serverTimeRemaining": 0, "status": attempt.status, "shouldSubmit": True}

    db.commit()
    return {
        "serverTimeRemaining": remaining,
        "status": AttemptStatus.IN_PROGRESS.value,
        "shouldSubmit": False,
    }
