"""
Enrollment model for test series entitlement.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_api.database import Base

if TYPE_CHECKING:
    from exam_api.models.db.user import User


class Enrollment(Base):
    """
    Grants a user access to every exam of a test series until valid_until.
    Written by the purchase flow; the attempt engine only reads it.
    """

    __tablename__ = "enrollments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    test_series_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    valid_until: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "test_series_id", name="uq_user_test_series"),
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="enrollments")
