from wellness_lending.models.loan.loan import (
    LIVE_LOAN_STATUSES,
    LOAN_TRANSITIONS,
    TERMINAL_LOAN_STATUSES,
    Loan,
    LoanStatusHistory,
)
from wellness_lending.models.loan.resource_damage import DamageRecord
from wellness_lending.models.loan.resource_queue import ACTIVE_QUEUE_STATUSES, QueueEntry

__all__ = [
    "ACTIVE_QUEUE_STATUSES",
    "DamageRecord",
    "LIVE_LOAN_STATUSES",
    "LOAN_TRANSITIONS",
    "Loan",
    "LoanStatusHistory",
    "QueueEntry",
    "TERMINAL_LOAN_STATUSES",
]
