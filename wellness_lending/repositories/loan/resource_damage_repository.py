"""
Damage record repository.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from wellness_lending.models.loan import DamageRecord
from wellness_lending.repositories.base import BaseRepository


class DamageRecordRepository(BaseRepository[DamageRecord]):
    """Repository for damage, loss and theft records."""

    def __init__(self, session: Session):
        super().__init__(DamageRecord, session)

    def get_by_loan(self, loan_id: UUID) -> Optional[DamageRecord]:
        query = select(DamageRecord).where(DamageRecord.loan_id == loan_id)
        return self.session.execute(query).scalar_one_or_none()

    def find_by_user(self, user_id: UUID) -> List[DamageRecord]:
        query = select(DamageRecord).where(DamageRecord.user_id == user_id).order_by(
            DamageRecord.created_at.desc()
        )
        return list(self.session.execute(query).scalars().all())
