from wellness_lending.services.loan.loan_lifecycle_service import (
    LoanLifecycleService,
    LoanRequestOutcome,
    RequestOutcomeKind,
    is_auto_approvable,
)
from wellness_lending.services.loan.loan_sweep_service import LoanSweepService, SweepReport
from wellness_lending.services.loan.loan_timing import effective_status

__all__ = [
    "LoanLifecycleService",
    "LoanRequestOutcome",
    "LoanSweepService",
    "RequestOutcomeKind",
    "SweepReport",
    "effective_status",
    "is_auto_approvable",
]
