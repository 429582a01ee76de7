"""
Alert service.

Subscribes to the event bus and persists in-app alerts: one for the student
an event is about, and one for administrators when the event needs their
attention. Alerts are written after the originating transaction committed,
so a failure here never undoes a loan transition.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from wellness_lending.core.events.base_event import BaseEvent, DomainEvent, LoanEvents
from wellness_lending.core.events.event_bus import ALL_EVENTS, EventBus
from wellness_lending.core.exceptions import ExternalServiceError, ResourceNotFoundError
from wellness_lending.core.utils import Clock, utcnow
from wellness_lending.models.base import AlertTargetRole
from wellness_lending.models.system import Alert
from wellness_lending.repositories.system import AlertRepository
from wellness_lending.services.base import BaseService, ServiceResult

ADMIN_EVENT_TYPES = frozenset(
    {
        LoanEvents.LOAN_REQUESTED,
        LoanEvents.LOAN_OVERDUE,
        LoanEvents.LOAN_EXPIRED,
        LoanEvents.DAMAGE_REPORTED,
        LoanEvents.STUDENT_BLOCKED,
    }
)


class AlertService(BaseService[Alert, AlertRepository]):
    """Turns domain events into persisted alerts."""

    def __init__(self, repository: AlertRepository, db_session: Session, clock: Clock = utcnow):
        super().__init__(repository, db_session, clock=clock)

    def subscribe(self, bus: EventBus) -> None:
        bus.subscribe(ALL_EVENTS, self.handle_event)

    def handle_event(self, event: BaseEvent) -> List[Alert]:
        """
        Persist the alerts for one event.

        Raises:
            ExternalServiceError: If the alerts could not be stored
        """
        if not isinstance(event, DomainEvent):
            return []

        alerts: List[Alert] = []
        if event.user_id is not None:
            alerts.append(self._build(event, AlertTargetRole.STUDENT, UUID(event.user_id)))
        if event.event_type in ADMIN_EVENT_TYPES:
            alerts.append(self._build(event, AlertTargetRole.ADMIN, None))

        try:
            for alert in alerts:
                self.repository.add(alert)
            self.db.commit()
        except Exception as e:
            self._rollback()
            raise ExternalServiceError(f"Failed to store alerts for {event.event_type}: {e}", service_name="alerts") from e

        self._logger.debug(
            f"Stored {len(alerts)} alert(s) for {event.event_type}",
            extra={"event_id": event.event_id},
        )
        return alerts

    @staticmethod
    def _build(event: DomainEvent, role: AlertTargetRole, user_id: Optional[UUID]) -> Alert:
        return Alert(
            type=event.event_type,
            severity=event.severity,
            title=event.title,
            message=event.message,
            entity_type=event.entity_type,
            entity_id=UUID(event.entity_id),
            target_role=role,
            target_user_id=user_id,
            is_read=False,
        )

    def list_for_admins(self, unread_only: bool = False) -> ServiceResult[List[Alert]]:
        try:
            return ServiceResult.success(self.repository.find_for_admins(unread_only))
        except Exception as e:
            return self._handle_exception(e, "list admin alerts")

    def list_for_user(self, user_id: UUID, unread_only: bool = False) -> ServiceResult[List[Alert]]:
        try:
            return ServiceResult.success(self.repository.find_for_user(user_id, unread_only))
        except Exception as e:
            return self._handle_exception(e, "list alerts", user_id)

    def mark_read(self, alert_id: UUID) -> ServiceResult[Alert]:
        def work() -> Alert:
            alert = self.repository.get_by_id(alert_id)
            if alert is None:
                raise ResourceNotFoundError("Alert", alert_id)
            alert.is_read = True
            self.repository.flush()
            return alert

        return self._execute("mark alert read", work, entity_ref=alert_id)
