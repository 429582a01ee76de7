"""
Student behavioral status repository.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from wellness_lending.models.student import StudentBehavioralStatus
from wellness_lending.repositories.base import BaseRepository


class BehavioralStatusRepository(BaseRepository[StudentBehavioralStatus]):
    """Repository for per-student trust scores."""

    def __init__(self, session: Session):
        super().__init__(StudentBehavioralStatus, session)

    def get_by_user(self, user_id: UUID, lock: bool = False) -> Optional[StudentBehavioralStatus]:
        return self.get_for_update(user_id) if lock else self.get_by_id(user_id)

    def find_blocked(self) -> List[StudentBehavioralStatus]:
        query = select(StudentBehavioralStatus).where(
            StudentBehavioralStatus.is_blocked.is_(True)
        ).order_by(StudentBehavioralStatus.blocked_until.asc())
        return list(self.session.execute(query).scalars().all())

    def find_elapsed_blocks(self, now: datetime) -> List[StudentBehavioralStatus]:
        query = select(StudentBehavioralStatus).where(
            and_(
                StudentBehavioralStatus.is_blocked.is_(True),
                StudentBehavioralStatus.blocked_until.isnot(None),
                StudentBehavioralStatus.blocked_until <= now,
            )
        )
        return list(self.session.execute(query).scalars().all())
