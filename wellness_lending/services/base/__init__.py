"""
Service layer foundations: results, base service and event dispatch.
"""

from wellness_lending.services.base.base_service import BaseService
from wellness_lending.services.base.event_dispatcher import DispatchedEvent, DispatchResult, EventDispatcher
from wellness_lending.services.base.service_result import (
    ErrorCode,
    ErrorSeverity,
    ServiceError,
    ServiceResult,
)

__all__ = [
    "BaseService",
    "DispatchedEvent",
    "DispatchResult",
    "EventDispatcher",
    "ErrorCode",
    "ErrorSeverity",
    "ServiceError",
    "ServiceResult",
]
