"""Rank, percentile and leaderboard over terminal attempts of an exam."""
import bisect
import logging
import threading
import time
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession, joinedload

from exam_api.config import RANKING_INITIAL_DELAY_SECONDS, RANKING_REFRESH_INTERVAL_SECONDS
from exam_api.database import session_scope
from exam_api.models.db.attempt import TERMINAL_STATUSES, Attempt, AttemptStatus
from exam_api.services import timer_service
from exam_api.services.scoring import round_marks
from exam_api.utils import utc_now

logger = logging.getLogger(__name__)


def _ranked_query(exam_id: str):
    return (
        select(Attempt)
        .where(Attempt.exam_id == exam_id, Attempt.status.in_(TERMINAL_STATUSES))
        .order_by(Attempt.score.desc(), Attempt.completed_at.asc(), Attempt.id.asc())
    )


def reconcile_expired_attempts(
    db: DbSession, exam_id: str | None = None, now: datetime | None = None
) -> int:
    """Auto-submit in-progress attempts whose deadline passed unobserved."""
    now = now or utc_now()
    query = select(Attempt).where(Attempt.status == AttemptStatus.IN_PROGRESS.value)
    if exam_id:
        query = query.where(Attempt.exam_id == exam_id)

    expired = 0
    for attempt in db.execute(query).scalars().all():
        if timer_service.expire_if_due(db, attempt, now):
            expired += 1
    return expired


def refresh_exam_rankings(db: DbSession, exam_id: str, now: datetime | None = None) -> int:
    """
    Recompute rank and percentile for every terminal attempt of an exam.

    Rank follows score descending, earlier completion first on ties.
    Percentile is the share of attempts with a strictly lower score.
    Returns the number of ranked attempts.
    """
    reconcile_expired_attempts(db, exam_id, now)

    attempts = list(db.execute(_ranked_query(exam_id)).scalars().all())
    total = len(attempts)
    if total == 0:
        return 0

    ascending_scores = sorted(attempt.score for attempt in attempts)
    for position, attempt in enumerate(attempts, start=1):
        lower = bisect.bisect_left(ascending_scores, attempt.score)
        attempt.rank = position
        attempt.percentile = round_marks(lower / total * 100)

    db.commit()
    logger.info("Ranked %s attempts of exam %s", total, exam_id)
    return total


def refresh_all_rankings(db: DbSession, now: datetime | None = None) -> dict[str, int]:
    """Refresh rankings of every exam that has attempts."""
    exam_ids = db.execute(select(Attempt.exam_id).distinct()).scalars().all()
    return {exam_id: refresh_exam_rankings(db, exam_id, now) for exam_id in exam_ids}


def get_leaderboard(db: DbSession, exam_id: str, limit: int = 50) -> list[dict[str, object]]:
    """Top terminal attempts of an exam in rank order."""
    attempts = (
        db.execute(_ranked_query(exam_id).options(joinedload(Attempt.user)).limit(limit))
        .scalars()
        .all()
    )
    return [
        {
            "rank": position,
            "userId": attempt.user_id,
            "displayName": attempt.user.display_name or attempt.user.username,
            "score": attempt.score,
            "percentage": attempt.percentage,
            "totalTimeTaken": attempt.total_time_taken,
            "completedAt": attempt.completed_at,
        }
        for position, attempt in enumerate(attempts, start=1)
    ]


def run_rankings_refresh() -> int:
    """Refresh all rankings in a fresh session. Returns ranked attempt count."""
    try:
        with session_scope() as db:
            counts = refresh_all_rankings(db)
        return sum(counts.values())
    except Exception as e:
        logger.error(f"Failed to refresh rankings: {e}")
        return 0


def schedule_rankings_refresh() -> None:
    """Schedule periodic refresh of ranks, percentiles and expired attempts."""
    if RANKING_REFRESH_INTERVAL_SECONDS <= 0:
        return

    def _worker() -> None:
        # Initial delay before first refresh
        time.sleep(RANKING_INITIAL_DELAY_SECONDS)
        while True:
            run_rankings_refresh()
            time.sleep(RANKING_REFRESH_INTERVAL_SECONDS)

    thread = threading.Thread(
        target=_worker,
        name="rankings_refresh",
        daemon=True,
    )
    thread.start()
