"""Performance ORM models: PerformanceReview, Goal."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrsuite.common.constants import GoalStatus, ReviewStatus
from hrsuite.database import Base


class PerformanceReview(Base):
    __tablename__ = "performance_reviews"
    __table_args__ = (
        sa.CheckConstraint(
            "overall_rating IS NULL OR (overall_rating >= 1 AND overall_rating <= 5)",
            name="ck_review_rating",
        ),
        sa.Index("ix_performance_reviews_employee", "employee_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    reviewer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    review_period: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    review_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    overall_rating: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(3, 2))
    status: Mapped[ReviewStatus] = mapped_column(
        sa.Enum(ReviewStatus, name="review_status", native_enum=False, length=30),
        default=ReviewStatus.draft,
        server_default="draft",
    )
    comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<PerformanceReview {self.employee_id} {self.review_period} {self.status}>"


class Goal(Base):
    __tablename__ = "goals"
    __table_args__ = (
        sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_goal_progress"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    target_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    progress: Mapped[int] = mapped_column(sa.Integer, default=0, server_default="0")
    status: Mapped[GoalStatus] = mapped_column(
        sa.Enum(GoalStatus, name="goal_status", native_enum=False, length=30),
        default=GoalStatus.not_started,
        server_default="not_started",
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Goal {self.title!r} {self.progress}%>"
