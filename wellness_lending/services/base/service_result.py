"""
Result envelope returned by every public service operation.

A refused lending operation is an expected outcome (blocked student, full
queue, stale approval), so services hand back a ``ServiceResult`` instead of
raising. ``ServiceError.code`` is the broad category the API layer maps to a
status code; ``ServiceError.reason`` is the domain error code, such as
``STUDENT_BLOCKED``.
"""

from typing import TypeVar, Generic, Optional, Any, Dict
from dataclasses import dataclass, field
from enum import Enum


class ErrorCode(str, Enum):
    """Error categories returned by public service operations."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    STATE_CONFLICT = "STATE_CONFLICT"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


class ErrorSeverity(str, Enum):
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class ServiceError:
    code: ErrorCode
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def reason(self) -> Optional[str]:
        """Fine-grained domain error code, e.g. ``STUDENT_BLOCKED``."""
        return self.details.get("reason")


TData = TypeVar("TData")


@dataclass
class ServiceResult(Generic[TData]):
    """
    Outcome of a service call.

    Attributes:
        is_success: Whether the operation was applied
        data: Loan, queue entry, record or summary produced (if successful)
        error: Why the operation was refused or failed (if not)
        message: Short human-readable status
    """

    is_success: bool
    data: Optional[TData] = None
    error: Optional[ServiceError] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, data: Optional[TData] = None, message: Optional[str] = None) -> "ServiceResult[TData]":
        return cls(is_success=True, data=data, message=message)

    @classmethod
    def failure(cls, error: ServiceError) -> "ServiceResult[TData]":
        return cls(is_success=False, error=error, message=error.message)

    @classmethod
    def not_found(cls, entity_type: str, entity_id: Optional[str] = None) -> "ServiceResult[TData]":
        """Failure for a lookup that matched nothing."""
        message = f"{entity_type} not found"
        if entity_id:
            message += f" (ID: {entity_id})"
        return cls.failure(
            ServiceError(
                code=ErrorCode.NOT_FOUND,
                message=message,
                details={"reason": "RESOURCE_NOT_FOUND", "entity_type": entity_type, "entity_id": entity_id},
                severity=ErrorSeverity.WARNING,
            )
        )

    def __bool__(self) -> bool:
        return self.is_success

    def __repr__(self) -> str:
        status = "Success" if self.is_success else f"Failure[{self.error.code.value}]"
        if self.message:
            return f"ServiceResult({status}: {self.message})"
        return f"ServiceResult({status})"


__all__ = [
    "ErrorCode",
    "ErrorSeverity",
    "ServiceError",
    "ServiceResult",
]
