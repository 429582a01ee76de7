"""
Wellness hours ledger model.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, Float, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from wellness_lending.models.base import BaseModel, WellnessSourceType, enum_column

__all__ = ["WellnessHoursEntry"]


class WellnessHoursEntry(BaseModel):
    """
    One credit or debit of wellness hours.

    Penalties are stored as negative hours so a student's balance is the sum
    of their entries.
    """

    __tablename__ = "wellness_hours"

    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    hours: Mapped[float] = mapped_column(Float, nullable=False)
    source_type: Mapped[WellnessSourceType] = mapped_column(
        enum_column(WellnessSourceType),
        nullable=False,
        default=WellnessSourceType.LOAN,
    )
    source_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    awarded_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    awarded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_wellness_user_source", "user_id", "source_type", "source_id"),
        {"comment": "Wellness hours credits and penalties"},
    )

    def __repr__(self) -> str:
        return f"<WellnessHoursEntry(user_id={self.user_id}, hours={self.hours})>"
