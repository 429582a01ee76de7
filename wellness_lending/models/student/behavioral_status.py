"""
Student behavioral status model.

Holds the trust score and the counters it is derived from. Rows are created
lazily by the trust score engine; students never create them directly.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from wellness_lending.models.base import Base, TimestampMixin

__all__ = ["StudentBehavioralStatus"]


class StudentBehavioralStatus(TimestampMixin, Base):
    """
    Per-student trust score and sanction state.

    Attributes:
        user_id: Student identifier
        trust_score: Current score, clamped to the policy range
        total_loans: Loans picked up
        on_time_returns: Loans returned by their due date
        late_returns: Loans returned after their due date
        damages: Damage incidents
        losses: Loss and theft incidents
        events_attended: Wellness events attended
        is_blocked: Whether the student may not borrow
        blocked_until: When the block lapses (NULL for an indefinite block)
        blocked_reason: Why the student was blocked
    """

    __tablename__ = "student_behavioral_status"

    user_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)

    trust_score: Mapped[int] = mapped_column(Integer, nullable=False, default=100)

    total_loans: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    on_time_returns: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    late_returns: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    damages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    events_attended: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    blocked_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    blocked_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, comment="Optimistic lock counter")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_behavioral_blocked_until", "is_blocked", "blocked_until"),
        CheckConstraint(
            "total_loans >= 0 AND on_time_returns >= 0 AND late_returns >= 0 "
            "AND damages >= 0 AND losses >= 0 AND events_attended >= 0",
            name="ck_behavioral_counters_positive",
        ),
        {"comment": "Per-student trust score and sanctions"},
    )

    def block_elapsed(self, now: datetime) -> bool:
        """Check if a timed block has run out."""
        return self.is_blocked and self.blocked_until is not None and now >= self.blocked_until

    def block(self, until: Optional[datetime], reason: str) -> None:
        self.is_blocked = True
        self.blocked_until = until
        self.blocked_reason = reason

    def unblock(self) -> None:
        self.is_blocked = False
        self.blocked_until = None
        self.blocked_reason = None

    def __repr__(self) -> str:
        return (
            f"<StudentBehavioralStatus(user_id={self.user_id}, "
            f"trust_score={self.trust_score}, blocked={self.is_blocked})>"
        )
