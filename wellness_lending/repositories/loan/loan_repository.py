"""
Loan repository.

Provides:
- Live-loan lookups backing the one-loan-per-resource rule
- Per-student limits (total and per category)
- Candidate selection for the time-driven sweep
- Late-return counting for the blocking window
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from wellness_lending.core.exceptions import LoanNotFoundError
from wellness_lending.models.base import LoanStatus
from wellness_lending.models.catalog import Resource
from wellness_lending.models.loan import LIVE_LOAN_STATUSES, Loan, LoanStatusHistory
from wellness_lending.repositories.base import BaseRepository


class LoanRepository(BaseRepository[Loan]):
    """Repository for loans and their status history."""

    def __init__(self, session: Session):
        super().__init__(Loan, session)

    def get_or_raise(self, loan_id: UUID, lock: bool = False) -> Loan:
        loan = self.get_for_update(loan_id) if lock else self.get_by_id(loan_id)
        if loan is None:
            raise LoanNotFoundError(loan_id)
        return loan

    # ==================== Live loans ====================

    def get_live_for_resource(self, resource_id: UUID) -> Optional[Loan]:
        """Return the loan currently holding a resource, if any."""
        query = select(Loan).where(
            and_(
                Loan.resource_id == resource_id,
                Loan.status.in_(LIVE_LOAN_STATUSES),
            )
        )
        return self.session.execute(query).scalars().first()

    def count_live_for_user(self, user_id: UUID) -> int:
        return self.count(Loan.user_id == user_id, Loan.status.in_(LIVE_LOAN_STATUSES))

    def count_live_for_user_in_category(self, user_id: UUID, category_id: UUID) -> int:
        query = (
            select(func.count(Loan.id))
            .join(Resource, Resource.id == Loan.resource_id)
            .where(
                and_(
                    Loan.user_id == user_id,
                    Loan.status.in_(LIVE_LOAN_STATUSES),
                    Resource.category_id == category_id,
                )
            )
        )
        return self.session.execute(query).scalar_one()

    def has_live_loan(self, user_id: UUID, resource_id: UUID) -> bool:
        return self.count(
            Loan.user_id == user_id,
            Loan.resource_id == resource_id,
            Loan.status.in_(LIVE_LOAN_STATUSES),
        ) > 0

    # ==================== Queries ====================

    def find_by_user(self, user_id: UUID, status: Optional[LoanStatus] = None) -> List[Loan]:
        query = select(Loan).where(Loan.user_id == user_id)
        if status is not None:
            query = query.where(Loan.status == status)
        query = query.order_by(Loan.requested_at.desc())
        return list(self.session.execute(query).scalars().all())

    def find_by_status(self, status: LoanStatus) -> List[Loan]:
        query = select(Loan).where(Loan.status == status).order_by(Loan.requested_at.asc())
        return list(self.session.execute(query).scalars().all())

    def find_sweep_candidates(self, now: datetime, approval_cutoff: datetime) -> List[Loan]:
        """
        Loans whose stored status may be stale at ``now``.

        Args:
            now: Evaluation time
            approval_cutoff: Pending requests filed before this have timed out
        """
        query = select(Loan).where(
            or_(
                and_(Loan.status == LoanStatus.PENDING, Loan.requested_at < approval_cutoff),
                and_(Loan.status == LoanStatus.APPROVED, Loan.pickup_deadline < now),
                and_(Loan.status == LoanStatus.ACTIVE, Loan.due_date < now),
            )
        ).order_by(Loan.requested_at.asc())
        return list(self.session.execute(query).scalars().all())

    def count_late_returns_since(self, user_id: UUID, since: datetime) -> int:
        """Count loans the student returned after their due date, on or after ``since``."""
        return self.count(
            Loan.user_id == user_id,
            Loan.status == LoanStatus.RETURNED,
            Loan.returned_at >= since,
            Loan.returned_at > Loan.due_date,
        )

    def get_history(self, loan_id: UUID) -> List[LoanStatusHistory]:
        query = (
            select(LoanStatusHistory)
            .where(LoanStatusHistory.loan_id == loan_id)
            .order_by(LoanStatusHistory.sequence.asc())
        )
        return list(self.session.execute(query).scalars().all())
