from wellness_lending.schemas.loan.loan_request import (
    LoanApprove,
    LoanPickup,
    LoanReject,
    LoanRequestCreate,
    LoanReturn,
    PresentialLoanCreate,
)
from wellness_lending.schemas.loan.loan_response import (
    LoanRequestOutcomeResponse,
    LoanResponse,
    LoanStatusHistoryResponse,
)

__all__ = [
    "LoanApprove",
    "LoanPickup",
    "LoanReject",
    "LoanRequestCreate",
    "LoanRequestOutcomeResponse",
    "LoanResponse",
    "LoanReturn",
    "LoanStatusHistoryResponse",
    "PresentialLoanCreate",
]
