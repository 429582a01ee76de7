"""
Custom Exceptions for the Wellness Lending Application

This module defines the exception hierarchy raised by repositories and
domain services. Public service methods translate these into
``ServiceResult`` failures; the API layer translates those into HTTP
responses using ``status_code``.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Standard error codes for the application"""
    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    OPERATION_FAILED = "OPERATION_FAILED"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"

    # Lookup errors
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    LOAN_NOT_FOUND = "LOAN_NOT_FOUND"
    QUEUE_ENTRY_NOT_FOUND = "QUEUE_ENTRY_NOT_FOUND"
    STUDENT_NOT_FOUND = "STUDENT_NOT_FOUND"

    # Policy errors
    POLICY_VIOLATION = "POLICY_VIOLATION"
    STUDENT_BLOCKED = "STUDENT_BLOCKED"
    LOAN_LIMIT_EXCEEDED = "LOAN_LIMIT_EXCEEDED"
    RESOURCE_UNAVAILABLE = "RESOURCE_UNAVAILABLE"
    QUEUE_FULL = "QUEUE_FULL"

    # State errors
    STATE_CONFLICT = "STATE_CONFLICT"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # External service errors
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


class BaseAppException(Exception):
    """
    Base exception class for all application exceptions.

    Provides consistent error handling across the application with
    structured error information.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format"""
        return {
            "error": {
                "message": self.message,
                "code": self.error_code.value,
                "details": self.details,
                "type": self.__class__.__name__
            }
        }

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}')"


# ========================================
# Validation
# ========================================

class ValidationError(BaseAppException):
    """Exception raised when input data is malformed or incomplete"""

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: Optional[Dict[str, List[str]]] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        status_code: int = 422
    ):
        details = {"field_errors": field_errors} if field_errors else {}
        super().__init__(message, error_code, details, status_code)


class InvalidConfigurationError(ValidationError):
    """Exception raised when a policy setting is outside its documented bounds"""

    def __init__(self, key: str, message: str):
        super().__init__(
            message=message,
            field_errors={key: [message]},
            error_code=ErrorCode.INVALID_CONFIGURATION,
        )
        self.key = key


# ========================================
# Not found
# ========================================

class ResourceNotFoundError(BaseAppException):
    """Exception raised when a referenced entity is not found"""

    def __init__(
        self,
        resource_type: str = "Resource",
        resource_id: Optional[Any] = None,
        message: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND,
    ):
        if not message:
            message = f"{resource_type} not found"
            if resource_id:
                message += f" (ID: {resource_id})"

        details = {
            "resource_type": resource_type,
            "resource_id": str(resource_id) if resource_id is not None else None,
        }
        super().__init__(message, error_code, details, 404)


class LoanNotFoundError(ResourceNotFoundError):
    """Exception raised when a loan is not found"""

    def __init__(self, loan_id: Optional[Any] = None):
        super().__init__("Loan", loan_id, error_code=ErrorCode.LOAN_NOT_FOUND)


class QueueEntryNotFoundError(ResourceNotFoundError):
    """Exception raised when a queue entry is not found"""

    def __init__(self, entry_id: Optional[Any] = None):
        super().__init__("Queue entry", entry_id, error_code=ErrorCode.QUEUE_ENTRY_NOT_FOUND)


class StudentNotFoundError(ResourceNotFoundError):
    """Exception raised when a student has no behavioral record"""

    def __init__(self, user_id: Optional[Any] = None):
        super().__init__("Student", user_id, error_code=ErrorCode.STUDENT_NOT_FOUND)


# ========================================
# Policy
# ========================================

class PolicyViolationError(BaseAppException):
    """Exception raised when a lending policy forbids the operation"""

    def __init__(
        self,
        message: str = "Operation not allowed by lending policy",
        error_code: ErrorCode = ErrorCode.POLICY_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 403
    ):
        super().__init__(message, error_code, details, status_code)


class StudentBlockedError(PolicyViolationError):
    """Exception raised when a blocked student requests a loan"""

    def __init__(self, user_id: Any, blocked_until: Optional[Any] = None, reason: Optional[str] = None):
        message = "Student is blocked from borrowing"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            ErrorCode.STUDENT_BLOCKED,
            {
                "user_id": str(user_id),
                "blocked_until": blocked_until.isoformat() if blocked_until else None,
                "blocked_reason": reason,
            },
        )


class LoanLimitExceededError(PolicyViolationError):
    """Exception raised when a student already holds the maximum number of loans"""

    def __init__(self, user_id: Any, limit: int, scope: str = "active loans"):
        super().__init__(
            f"Limit of {limit} {scope} reached",
            ErrorCode.LOAN_LIMIT_EXCEEDED,
            {"user_id": str(user_id), "limit": limit, "scope": scope},
        )


class ResourceUnavailableError(PolicyViolationError):
    """Exception raised when a resource cannot be lent and queueing is disabled"""

    def __init__(self, resource_id: Any, status: Optional[str] = None):
        super().__init__(
            "Resource is not available",
            ErrorCode.RESOURCE_UNAVAILABLE,
            {"resource_id": str(resource_id), "status": status},
            status_code=409,
        )


class QueueFullError(PolicyViolationError):
    """Exception raised when the waiting list of a resource is full"""

    def __init__(self, resource_id: Any, max_size: int):
        super().__init__(
            f"Queue is full ({max_size} waiting)",
            ErrorCode.QUEUE_FULL,
            {"resource_id": str(resource_id), "max_queue_size": max_size},
            status_code=409,
        )


# ========================================
# State
# ========================================

class StateConflictError(BaseAppException):
    """Exception raised when the current state does not allow the operation"""

    def __init__(
        self,
        message: str = "State conflict",
        error_code: ErrorCode = ErrorCode.STATE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 409
    ):
        super().__init__(message, error_code, details, status_code)


class InvalidTransitionError(StateConflictError):
    """Exception raised for a loan transition outside the state machine"""

    def __init__(self, entity: str, entity_id: Any, from_status: str, to_status: str):
        super().__init__(
            f"Cannot move {entity} from {from_status} to {to_status}",
            ErrorCode.INVALID_TRANSITION,
            {
                "entity": entity,
                "entity_id": str(entity_id),
                "from_status": from_status,
                "to_status": to_status,
            },
        )


class OptimisticLockError(StateConflictError):
    """Exception raised when a row changed underneath the current operation"""

    def __init__(self, message: str = "Concurrent modification detected", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONCURRENT_MODIFICATION, details)


class DuplicateEntryError(StateConflictError):
    """Exception raised when an equivalent live record already exists"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.DUPLICATE_ENTRY, details)


# ========================================
# External services
# ========================================

class ExternalServiceError(BaseAppException):
    """Exception raised when persistence or notification delivery fails"""

    def __init__(
        self,
        message: str = "External service error",
        service_name: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
        status_code: int = 502
    ):
        details = {"service_name": service_name} if service_name else {}
        super().__init__(message, error_code, details, status_code)


class DatabaseError(ExternalServiceError):
    """Exception raised when the primary persistence write fails"""

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(message, "database", ErrorCode.DATABASE_ERROR)
