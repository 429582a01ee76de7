"""
Base service class providing common functionality for all services.
"""

from abc import ABC
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wellness_lending.config.logging import get_logger
from wellness_lending.core.events.base_event import BaseEvent
from wellness_lending.core.events.event_bus import EventBus
from wellness_lending.core.exceptions import (
    BaseAppException,
    ExternalServiceError,
    OptimisticLockError,
    PolicyViolationError,
    ResourceNotFoundError,
    StateConflictError,
    ValidationError,
)
from wellness_lending.core.utils import Clock, DateTimeUtils, utcnow
from wellness_lending.repositories.base.base_repository import BaseRepository, translate_db_error
from wellness_lending.services.base.event_dispatcher import EventDispatcher
from wellness_lending.services.base.service_result import (
    ErrorCode,
    ErrorSeverity,
    ServiceError,
    ServiceResult,
)


TModel = TypeVar("TModel")
TRepo = TypeVar("TRepo", bound=BaseRepository)
T = TypeVar("T")

# One transparent retry after a concurrent modification
MAX_ATTEMPTS = 2


class BaseService(ABC, Generic[TModel, TRepo]):
    """
    Base service with common behaviors:
    - Shared logger, db session, clock and event dispatcher
    - Consistent error handling via ServiceResult
    - Transaction management with events published after commit
    - Retry of operations that lost an optimistic-concurrency race

    Public operations return ``ServiceResult`` and own the transaction.
    Methods other services call while a transaction is already open raise
    domain exceptions and never commit.
    """

    def __init__(
        self,
        repository: TRepo,
        db_session: Session,
        dispatcher: Optional[EventDispatcher] = None,
        clock: Clock = utcnow,
    ):
        """
        Initialize base service.

        Args:
            repository: Repository instance for data access
            db_session: SQLAlchemy database session
            dispatcher: Event dispatcher shared by collaborating services
            clock: Source of the current time
        """
        self.repository: TRepo = repository
        self.db: Session = db_session
        self.dispatcher = dispatcher or EventDispatcher(EventBus())
        self.clock = clock
        self._logger = get_logger(self.__class__.__name__)

    def now(self) -> datetime:
        """Current time as naive UTC."""
        return DateTimeUtils.to_naive_utc(self.clock())

    def _emit(self, event: BaseEvent) -> None:
        """Collect an event for publication once the transaction commits."""
        self.dispatcher.collect(event)

    # -------------------------------------------------------------------------
    # Exception & Error Handling
    # -------------------------------------------------------------------------

    def _handle_exception(
        self,
        exception: Exception,
        operation: str,
        entity_ref: Optional[Any] = None,
        additional_context: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult:
        """
        Convert exception to a ServiceResult failure with logging.

        Domain exceptions keep their own message so the caller sees why the
        operation was refused; anything else is reported as a failure of
        ``operation``.
        """
        context = {
            "operation": operation,
            "entity_ref": str(entity_ref) if entity_ref is not None else None,
            "exception_type": type(exception).__name__,
        }
        if additional_context:
            context.update(additional_context)

        error_code = self._map_exception_to_error_code(exception)

        if isinstance(exception, BaseAppException) and not isinstance(exception, ExternalServiceError):
            self._logger.warning(f"{operation} refused: {exception.message}", extra=context)
            return ServiceResult.failure(
                ServiceError(
                    code=error_code,
                    message=exception.message,
                    details={"reason": exception.error_code.value, **exception.details},
                    severity=ErrorSeverity.WARNING,
                )
            )

        self._logger.error(
            f"Error during {operation}: {exception}",
            exc_info=True,
            extra=context,
        )
        details: Dict[str, Any] = {
            "error": str(exception),
            "entity_ref": str(entity_ref) if entity_ref is not None else None,
        }
        if isinstance(exception, BaseAppException):
            details["reason"] = exception.error_code.value
        return ServiceResult.failure(
            ServiceError(
                code=error_code,
                message=f"Failed to {operation}",
                details=details,
                severity=ErrorSeverity.ERROR if error_code == ErrorCode.EXTERNAL_SERVICE_ERROR else ErrorSeverity.CRITICAL,
            )
        )

    def _map_exception_to_error_code(self, exception: Exception) -> ErrorCode:
        """
        Map exception types to appropriate error codes.
        """
        exception_mapping = (
            (ValidationError, ErrorCode.VALIDATION_ERROR),
            (ResourceNotFoundError, ErrorCode.NOT_FOUND),
            (PolicyViolationError, ErrorCode.POLICY_VIOLATION),
            (StateConflictError, ErrorCode.STATE_CONFLICT),
            (ExternalServiceError, ErrorCode.EXTERNAL_SERVICE_ERROR),
            (SQLAlchemyError, ErrorCode.EXTERNAL_SERVICE_ERROR),
        )
        for exc_type, error_code in exception_mapping:
            if isinstance(exception, exc_type):
                return error_code
        return ErrorCode.INTERNAL_ERROR

    # -------------------------------------------------------------------------
    # Transaction Management
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions with automatic rollback.

        Collected events are discarded on rollback; publishing them after a
        successful commit is the caller's job (see ``_execute``).
        """
        try:
            yield self.db
            self._commit()
        except Exception:
            self._rollback()
            self.dispatcher.discard()
            raise

    def _commit(self) -> None:
        """Commit the current transaction, translating concurrency failures."""
        try:
            self.db.commit()
            self._logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            self._logger.error(f"Commit failed: {e}")
            raise translate_db_error(e, self.__class__.__name__) from e

    def _rollback(self) -> None:
        """Rollback the current transaction, suppressing rollback errors."""
        try:
            self.db.rollback()
            self._logger.debug("Transaction rolled back")
        except SQLAlchemyError as e:
            # Rollback errors should not mask the original error
            self._logger.warning(f"Rollback failed: {e}")

    def _execute(
        self,
        operation: str,
        work: Callable[[], T],
        entity_ref: Optional[Any] = None,
        success_message: Optional[str] = None,
    ) -> ServiceResult[T]:
        """
        Run ``work`` as one transaction and wrap the outcome.

        An ``OptimisticLockError`` re-runs ``work`` once from a fresh read;
        a second conflict is returned as STATE_CONFLICT. Events collected by
        ``work`` are published only after the commit succeeded.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                with self.transaction():
                    data = work()
            except OptimisticLockError as e:
                if attempt < MAX_ATTEMPTS:
                    self._logger.warning(
                        f"Concurrent modification during {operation}, retrying",
                        extra={"operation": operation, "entity_ref": str(entity_ref), "attempt": attempt},
                    )
                    continue
                return self._handle_exception(e, operation, entity_ref, {"attempts": attempt})
            except Exception as e:
                return self._handle_exception(e, operation, entity_ref)

            self.dispatcher.flush()
            return ServiceResult.success(data, message=success_message)
