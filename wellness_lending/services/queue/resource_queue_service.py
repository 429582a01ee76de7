"""
Queue manager.

FIFO waiting list per resource. When a resource frees up the head of the
line is notified and gets an exclusive response window; the resource stays
``reserved`` for that student until they convert the entry into a loan or
the window lapses and the next waiter is notified.
"""

from typing import TYPE_CHECKING, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from wellness_lending.core.events.base_event import DomainEvent, EventSeverity, LoanEvents
from wellness_lending.core.exceptions import (
    DuplicateEntryError,
    PolicyViolationError,
    QueueFullError,
    StateConflictError,
)
from wellness_lending.core.utils import Clock, utcnow
from wellness_lending.models.base import QueueStatus, ResourceStatus
from wellness_lending.models.catalog import Resource
from wellness_lending.models.loan import Loan, QueueEntry
from wellness_lending.repositories.catalog import ResourceRepository
from wellness_lending.repositories.loan import LoanRepository, ResourceQueueRepository
from wellness_lending.services.base import BaseService, EventDispatcher, ServiceResult
from wellness_lending.services.settings import PolicySettings, PolicySettingsService

if TYPE_CHECKING:
    from wellness_lending.services.loan.loan_lifecycle_service import LoanLifecycleService


class ResourceQueueService(BaseService[QueueEntry, ResourceQueueRepository]):
    """
    Waiting list operations.

    ``loan_service`` is attached by ``LoanLifecycleService`` so that a
    notified entry can be converted into a loan request.
    """

    def __init__(
        self,
        repository: ResourceQueueRepository,
        db_session: Session,
        settings_service: PolicySettingsService,
        dispatcher: Optional[EventDispatcher] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(repository, db_session, dispatcher, clock)
        self.settings_service = settings_service
        self.resource_repository = ResourceRepository(db_session)
        self.loan_repository = LoanRepository(db_session)
        self.loan_service: Optional["LoanLifecycleService"] = None

    @property
    def policy(self) -> PolicySettings:
        return self.settings_service.policy

    # -------------------------------------------------------------------------
    # In-transaction operations
    # -------------------------------------------------------------------------

    def add_entry(self, user_id: UUID, resource: Resource) -> QueueEntry:
        """
        Append a student to the resource's waiting line.

        Raises:
            DuplicateEntryError: The student already has an active entry
            PolicyViolationError: The student already holds the resource
            QueueFullError: ``max_queue_size`` entries are waiting
        """
        if self.repository.find_active_entry(resource.id, user_id) is not None:
            raise DuplicateEntryError(
                "Student is already in the queue for this resource",
                details={"resource_id": str(resource.id), "user_id": str(user_id)},
            )
        if self.loan_repository.has_live_loan(user_id, resource.id):
            raise PolicyViolationError(
                "Student already has a loan for this resource",
                details={"resource_id": str(resource.id), "user_id": str(user_id)},
            )

        waiting = self.repository.count_waiting(resource.id)
        if waiting >= self.policy.max_queue_size:
            raise QueueFullError(resource.id, self.policy.max_queue_size)

        entry = QueueEntry(
            resource_id=resource.id,
            user_id=user_id,
            position=waiting + 1,
            status=QueueStatus.WAITING,
            requested_at=self.now(),
        )
        self.repository.add(entry)

        self._logger.info(
            f"Queued at position {entry.position}",
            extra={"entry_id": str(entry.id), "resource_id": str(resource.id), "user_id": str(user_id)},
        )
        self._emit(
            DomainEvent(
                LoanEvents.QUEUE_ENQUEUED,
                entity_type="queue_entry",
                entity_id=entry.id,
                title="Added to waiting list",
                message=f"You are number {entry.position} in line for {resource.name}.",
                user_id=user_id,
                data={"resource_id": str(resource.id), "position": entry.position},
            )
        )
        return entry

    def promote_next(self, resource: Resource) -> Optional[QueueEntry]:
        """
        Give the resource to the next waiter.

        Returns the entry now holding the resource: an unexpired notified
        entry is left alone, a lapsed one is expired first. Returns None
        when nobody is waiting.
        """
        now = self.now()
        notified = self.repository.find_notified(resource.id)
        if notified is not None:
            if not notified.window_elapsed(now):
                return notified
            self._expire_entry(notified)

        entry = self.repository.get_next_in_line(resource.id)
        if entry is None:
            return None

        entry.notify(now, self.policy.queue_response_minutes)
        self.repository.reorder_positions(resource.id)

        self._logger.info(
            "Queue slot offered",
            extra={"entry_id": str(entry.id), "resource_id": str(resource.id), "user_id": str(entry.user_id)},
        )
        self._emit(
            DomainEvent(
                LoanEvents.QUEUE_SLOT_AVAILABLE,
                entity_type="queue_entry",
                entity_id=entry.id,
                title="Resource available",
                message=(
                    f"{resource.name} is available for you until "
                    f"{entry.expires_at:%Y-%m-%d %H:%M} UTC."
                ),
                user_id=entry.user_id,
                data={"resource_id": str(resource.id), "expires_at": entry.expires_at.isoformat()},
            )
        )
        return entry

    def release_resource(
        self,
        resource: Resource,
        expected: Iterable[ResourceStatus],
    ) -> Optional[QueueEntry]:
        """
        Free a resource after its loan ended.

        With a waiter the resource stays ``reserved`` for them; otherwise it
        becomes ``available``.
        """
        waiter = self.promote_next(resource)
        target = ResourceStatus.RESERVED if waiter is not None else ResourceStatus.AVAILABLE
        self.resource_repository.compare_and_set_status(resource, expected, target)
        return waiter

    def claim_notified_entry(self, entry_id: UUID, user_id: UUID) -> QueueEntry:
        """
        Check that a notified entry may be converted by ``user_id``.

        Raises:
            QueueEntryNotFoundError: Unknown entry
            PolicyViolationError: The entry belongs to another student
            StateConflictError: The entry is not notified or its window lapsed
        """
        entry = self.repository.get_or_raise(entry_id, lock=True)
        if entry.user_id != user_id:
            raise PolicyViolationError(
                "Queue entry belongs to another student",
                details={"entry_id": str(entry_id)},
            )
        if entry.status != QueueStatus.NOTIFIED:
            raise StateConflictError(
                f"Queue entry is {entry.status.value}, not notified",
                details={"entry_id": str(entry_id), "status": entry.status.value},
            )
        if entry.window_elapsed(self.now()):
            raise StateConflictError(
                "Response window has expired",
                details={"entry_id": str(entry_id), "expires_at": entry.expires_at.isoformat()},
            )
        return entry

    def mark_converted(self, entry: QueueEntry, loan: Loan) -> None:
        entry.convert_to_loan(loan.id)
        self.repository.flush()
        self._logger.info(
            "Queue entry converted to loan",
            extra={"entry_id": str(entry.id), "loan_id": str(loan.id), "user_id": str(entry.user_id)},
        )

    def _expire_entry(self, entry: QueueEntry) -> None:
        entry.mark_expired()
        self.repository.flush()
        self._logger.info(
            "Queue notification lapsed",
            extra={"entry_id": str(entry.id), "resource_id": str(entry.resource_id), "user_id": str(entry.user_id)},
        )
        self._emit(
            DomainEvent(
                LoanEvents.QUEUE_ENTRY_EXPIRED,
                entity_type="queue_entry",
                entity_id=entry.id,
                title="Reservation expired",
                message="Your turn for the resource has expired.",
                severity=EventSeverity.WARNING,
                user_id=entry.user_id,
                data={"resource_id": str(entry.resource_id)},
            )
        )

    def expire_lapsed_for_resource(self, resource: Resource) -> None:
        """Expire a lapsed window and pass the resource on."""
        if self.loan_repository.get_live_for_resource(resource.id) is not None:
            # A live loan holds the resource; the lapsed entry only needs closing
            notified = self.repository.find_notified(resource.id)
            if notified is not None:
                self._expire_entry(notified)
            return
        if resource.status == ResourceStatus.RESERVED:
            self.release_resource(resource, {ResourceStatus.RESERVED})
        else:
            notified = self.repository.find_notified(resource.id)
            if notified is not None:
                self._expire_entry(notified)

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def enqueue(self, user_id: UUID, resource_id: UUID) -> ServiceResult[QueueEntry]:
        """Join the waiting line of an unavailable resource."""

        def work() -> QueueEntry:
            resource = self.resource_repository.get_or_raise(resource_id, lock=True)
            if resource.status == ResourceStatus.AVAILABLE:
                raise StateConflictError(
                    "Resource is available; request a loan instead",
                    details={"resource_id": str(resource_id)},
                )
            return self.add_entry(user_id, resource)

        return self._execute("enqueue", work, entity_ref=resource_id, success_message="Added to queue")

    def promote(self, resource_id: UUID) -> ServiceResult[Optional[QueueEntry]]:
        """
        Offer an available resource to its queue.

        Used when a resource comes back into circulation outside the loan
        lifecycle, e.g. after maintenance.
        """

        def work() -> Optional[QueueEntry]:
            resource = self.resource_repository.get_or_raise(resource_id, lock=True)
            if resource.status == ResourceStatus.AVAILABLE:
                if self.loan_repository.get_live_for_resource(resource_id) is not None:
                    return None
                return self.release_resource(resource, {ResourceStatus.AVAILABLE})
            if resource.status == ResourceStatus.RESERVED and self.loan_repository.get_live_for_resource(resource_id) is None:
                return self.release_resource(resource, {ResourceStatus.RESERVED})
            return None

        return self._execute("promote queue", work, entity_ref=resource_id)

    def expire_notifications(self) -> ServiceResult[int]:
        """Expire lapsed response windows and pass each resource on."""

        def work() -> int:
            lapsed = self.repository.find_lapsed_notifications(self.now())
            for entry in lapsed:
                resource = self.resource_repository.get_or_raise(entry.resource_id, lock=True)
                self.expire_lapsed_for_resource(resource)
            return len(lapsed)

        return self._execute("expire queue notifications", work)

    def convert_to_loan(self, entry_id: UUID, user_id: UUID) -> ServiceResult[Loan]:
        """Turn a notified entry into a loan request for its student."""
        if self.loan_service is None:
            raise RuntimeError("ResourceQueueService.loan_service is not attached")
        return self.loan_service.convert_queue_entry(entry_id, user_id)

    def cancel(self, entry_id: UUID, user_id: UUID) -> ServiceResult[QueueEntry]:
        """Leave the queue. A notified student gives up their turn."""

        def work() -> QueueEntry:
            entry = self.repository.get_or_raise(entry_id, lock=True)
            if entry.user_id != user_id:
                raise PolicyViolationError(
                    "Queue entry belongs to another student",
                    details={"entry_id": str(entry_id)},
                )
            was_notified = entry.status == QueueStatus.NOTIFIED
            entry.cancel()
            self.repository.reorder_positions(entry.resource_id)

            if was_notified:
                resource = self.resource_repository.get_or_raise(entry.resource_id, lock=True)
                if (
                    resource.status == ResourceStatus.RESERVED
                    and self.loan_repository.get_live_for_resource(resource.id) is None
                ):
                    self.release_resource(resource, {ResourceStatus.RESERVED})

            self._logger.info(
                "Queue entry cancelled",
                extra={"entry_id": str(entry_id), "user_id": str(user_id)},
            )
            return entry

        return self._execute("cancel queue entry", work, entity_ref=entry_id, success_message="Left the queue")

    def list_queue(self, resource_id: UUID) -> ServiceResult[List[QueueEntry]]:
        try:
            self.resource_repository.get_or_raise(resource_id)
            return ServiceResult.success(self.repository.list_active(resource_id))
        except Exception as e:
            return self._handle_exception(e, "list queue", resource_id)

    def list_for_user(self, user_id: UUID) -> ServiceResult[List[QueueEntry]]:
        try:
            return ServiceResult.success(self.repository.find_by_user(user_id))
        except Exception as e:
            return self._handle_exception(e, "list queue entries", user_id)
