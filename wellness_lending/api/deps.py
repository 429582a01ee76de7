"""
FastAPI dependencies.

Example usage in a router:
    from fastapi import Depends, APIRouter
    from wellness_lending.api import deps

    router = APIRouter()

    @router.get("/loans/{loan_id}")
    def get_loan(loan_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
        return deps.unwrap(services.loans().get_loan(loan_id))
"""

from typing import Generator, TypeVar

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from wellness_lending.config.database import get_db_session
from wellness_lending.config.settings import get_settings
from wellness_lending.services import ServiceFactory
from wellness_lending.services.base import ErrorCode, ServiceResult

T = TypeVar("T")

ERROR_STATUS = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.POLICY_VIOLATION: status.HTTP_403_FORBIDDEN,
    ErrorCode.STATE_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.EXTERNAL_SERVICE_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# Policy refusals about availability rather than permission
CONFLICT_REASONS = frozenset({"RESOURCE_UNAVAILABLE", "QUEUE_FULL"})


# --- Database & services ------------------------------------------------------

def get_db() -> Generator[Session, None, None]:
    yield from get_db_session()


def get_services(db: Session = Depends(get_db)) -> ServiceFactory:
    """One factory per request: the request's session and its own event bus."""
    return ServiceFactory(db, policy_defaults=get_settings().DEFAULT_POLICY_OVERRIDES)


# --- Results -------------------------------------------------------------------

def unwrap(result: ServiceResult[T]) -> T:
    """Return the data of a successful result or raise the matching HTTP error."""
    if result.is_success:
        return result.data

    error = result.error
    status_code = ERROR_STATUS.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if error.code == ErrorCode.POLICY_VIOLATION and error.reason in CONFLICT_REASONS:
        status_code = status.HTTP_409_CONFLICT

    raise HTTPException(
        status_code=status_code,
        detail={
            "code": error.code.value,
            "message": error.message,
            "reason": error.reason,
            "details": error.details or {},
        },
    )


__all__ = ["get_db", "get_services", "unwrap"]
