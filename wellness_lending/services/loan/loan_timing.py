"""
Time-driven loan status.

``effective_status`` is the single rule shared by lazy reconciliation and
the sweep, so both reach the same status for the same stored fields, time
and policy.
"""

from datetime import datetime, timedelta
from typing import Optional

from wellness_lending.models.base import LoanStatus
from wellness_lending.models.loan import Loan
from wellness_lending.services.settings import PolicySettings

PICKUP_EXPIRED_REASON = "pickup deadline passed"
APPROVAL_EXPIRED_REASON = "approval timed out"


def effective_status(loan: Loan, now: datetime, policy: PolicySettings) -> LoanStatus:
    """
    Status the loan should have at ``now``.

    - pending past ``approval_timeout_minutes`` -> rejected (auto-reject)
    - approved past its pickup deadline -> expired
    - active past its due date -> overdue
    """
    if loan.status == LoanStatus.PENDING:
        if now - loan.requested_at > timedelta(minutes=policy.approval_timeout_minutes):
            return LoanStatus.REJECTED
    elif loan.status == LoanStatus.APPROVED:
        if loan.pickup_deadline is not None and now > loan.pickup_deadline:
            return LoanStatus.EXPIRED
    elif loan.status == LoanStatus.ACTIVE:
        if loan.due_date is not None and now > loan.due_date:
            return LoanStatus.OVERDUE
    return loan.status


def expiry_reason(loan: Loan) -> Optional[str]:
    if loan.status == LoanStatus.PENDING:
        return APPROVAL_EXPIRED_REASON
    if loan.status == LoanStatus.APPROVED:
        return PICKUP_EXPIRED_REASON
    return None
