"""
Wellness hours ledger repository.
"""

from typing import List
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from wellness_lending.models.student import WellnessHoursEntry
from wellness_lending.repositories.base import BaseRepository


class WellnessHoursRepository(BaseRepository[WellnessHoursEntry]):
    """Repository for wellness hours credits and penalties."""

    def __init__(self, session: Session):
        super().__init__(WellnessHoursEntry, session)

    def get_balance(self, user_id: UUID) -> float:
        query = select(func.coalesce(func.sum(WellnessHoursEntry.hours), 0.0)).where(
            WellnessHoursEntry.user_id == user_id
        )
        return float(self.session.execute(query).scalar_one())

    def find_by_user(self, user_id: UUID) -> List[WellnessHoursEntry]:
        query = select(WellnessHoursEntry).where(WellnessHoursEntry.user_id == user_id).order_by(
            WellnessHoursEntry.awarded_at.desc()
        )
        return list(self.session.execute(query).scalars().all())
