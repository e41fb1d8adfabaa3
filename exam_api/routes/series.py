"""Test series endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DbSession

from exam_api.database import get_db
from exam_api.dependencies.auth import get_current_user
from exam_api.models import SeriesProgress
from exam_api.models.db.user import User
from exam_api.services import attempt_service
from exam_api.utils import validate_id

router = APIRouter(prefix="/api/series", tags=["series"])


@router.get("/{series_id}/progress", response_model=SeriesProgress)
def get_series_progress(
    series_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """The current user's finished attempts and averages in a test series."""
    series_id = validate_id("testSeriesId", series_id)
    return attempt_service.get_series_progress(db, current_user.id, series_id)
