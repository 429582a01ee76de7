"""
Base event classes for the event system.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

from wellness_lending.core.utils import DateTimeUtils


class EventSeverity:
    """Severity labels carried by domain events."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class BaseEvent:
    """Base class for all events in the system."""

    def __init__(self, event_type: str, data: Optional[Dict[str, Any]] = None):
        self.event_id = str(uuid4())
        self.event_type = event_type
        self.data = data or {}
        self.timestamp: datetime = DateTimeUtils.now_utc()
        self.processed = False

    def __str__(self) -> str:
        return f"{self.event_type}({self.event_id})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "processed": self.processed,
        }


class DomainEvent(BaseEvent):
    """
    Event emitted by a lending state transition.

    Carries what a notification collaborator needs to surface it: the entity
    it concerns, a severity and a human-readable title/message. ``user_id``
    is the student the event is about, if any.
    """

    def __init__(
        self,
        event_type: str,
        entity_type: str,
        entity_id: Any,
        title: str,
        message: str,
        severity: str = EventSeverity.INFO,
        user_id: Optional[Any] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(event_type, data)
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.title = title
        self.message = message
        self.severity = severity
        self.user_id = str(user_id) if user_id is not None else None

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update(
            {
                "entity_type": self.entity_type,
                "entity_id": self.entity_id,
                "title": self.title,
                "message": self.message,
                "severity": self.severity,
                "user_id": self.user_id,
            }
        )
        return payload


class LoanEvents:
    """Event type names."""
    LOAN_REQUESTED = "loan.requested"
    LOAN_APPROVED = "loan.approved"
    LOAN_REJECTED = "loan.rejected"
    LOAN_ACTIVATED = "loan.activated"
    LOAN_RETURNED = "loan.returned"
    LOAN_OVERDUE = "loan.overdue"
    LOAN_EXPIRED = "loan.expired"
    QUEUE_ENQUEUED = "queue.enqueued"
    QUEUE_SLOT_AVAILABLE = "queue.slot_available"
    QUEUE_ENTRY_EXPIRED = "queue.entry_expired"
    STUDENT_BLOCKED = "student.blocked"
    STUDENT_UNBLOCKED = "student.unblocked"
    DAMAGE_REPORTED = "damage.reported"
