"""
Sweep of time-driven transitions.

The same transitions are applied lazily on read; the sweep lets an external
scheduler apply them to loans nobody is looking at. Each loan is reconciled
in its own transaction so one failure does not hold back the rest.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from wellness_lending.core.utils import Clock, utcnow
from wellness_lending.models.base import LoanStatus
from wellness_lending.models.loan import Loan
from wellness_lending.repositories.loan import LoanRepository
from wellness_lending.services.base import BaseService, EventDispatcher, ServiceResult
from wellness_lending.services.loan.loan_lifecycle_service import LoanLifecycleService


@dataclass
class SweepReport:
    """Counts of what one sweep changed."""

    expired: int = 0
    rejected: int = 0
    overdue: int = 0
    queue_expired: int = 0
    unblocked: int = 0
    failed: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.expired + self.rejected + self.overdue + self.queue_expired + self.unblocked


class LoanSweepService(BaseService[Loan, LoanRepository]):
    """Applies due expiries, overdue flags, queue lapses and block lifts."""

    def __init__(
        self,
        repository: LoanRepository,
        db_session: Session,
        loan_service: LoanLifecycleService,
        dispatcher: Optional[EventDispatcher] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(repository, db_session, dispatcher, clock)
        self.loan_service = loan_service

    def sweep(self) -> ServiceResult[SweepReport]:
        report = SweepReport()
        try:
            now = self.now()
            cutoff = now - timedelta(minutes=self.loan_service.policy.approval_timeout_minutes)
            candidates = [(loan.id, loan.status) for loan in self.repository.find_sweep_candidates(now, cutoff)]
        except Exception as e:
            return self._handle_exception(e, "sweep loans")

        for loan_id, before in candidates:
            result = self.loan_service.reconcile_loan(loan_id)
            if not result.is_success:
                report.failed.append(str(loan_id))
                continue
            after = result.data.status
            if after == before:
                continue
            if after == LoanStatus.EXPIRED:
                report.expired += 1
            elif after == LoanStatus.REJECTED:
                report.rejected += 1
            elif after == LoanStatus.OVERDUE:
                report.overdue += 1

        queue_result = self.loan_service.queue_service.expire_notifications()
        if queue_result.is_success:
            report.queue_expired = queue_result.data
        else:
            report.failed.append("queue")

        block_result = self.loan_service.trust_service.lift_elapsed_blocks()
        if block_result.is_success:
            report.unblocked = block_result.data
        else:
            report.failed.append("blocks")

        self._logger.info(
            f"Sweep finished: {report.expired} expired, {report.rejected} timed out, {report.overdue} overdue, "
            f"{report.queue_expired} queue lapses, {report.unblocked} unblocked, {len(report.failed)} failed"
        )
        return ServiceResult.success(report)
