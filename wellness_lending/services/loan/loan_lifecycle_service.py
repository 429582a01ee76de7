"""
Loan state machine.

Drives a loan from request through approval, pickup and return (or damage
and loss), reserving and releasing the resource and feeding every outcome
to the trust score engine, the wellness ledger and the queue.

Time-driven transitions (pickup expiry, approval timeout, overdue) are
reconciled lazily: every operation touching a loan first brings the loans
it depends on up to date in a separate transaction, so an expiry is kept
even when the operation that triggered it is then refused.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from wellness_lending.core.events.base_event import DomainEvent, EventSeverity, LoanEvents
from wellness_lending.core.exceptions import (
    LoanLimitExceededError,
    ResourceUnavailableError,
    StateConflictError,
    ValidationError,
)
from wellness_lending.core.utils import Clock, DateTimeUtils, utcnow
from wellness_lending.models.base import (
    DamageSeverity,
    DamageType,
    DecisionSource,
    LoanStatus,
    QueueStatus,
    ResourceStatus,
)
from wellness_lending.models.catalog import Resource, ResourceCategory
from wellness_lending.models.loan import DamageRecord, Loan, LoanStatusHistory, QueueEntry
from wellness_lending.models.student import StudentBehavioralStatus
from wellness_lending.repositories.catalog import ResourceRepository
from wellness_lending.repositories.loan import LoanRepository
from wellness_lending.services.base import BaseService, EventDispatcher, ServiceResult
from wellness_lending.services.damage import DamageAdjudicationService
from wellness_lending.services.loan.loan_timing import effective_status, expiry_reason
from wellness_lending.services.queue import ResourceQueueService
from wellness_lending.services.settings import PolicySettings, PolicySettingsService
from wellness_lending.services.trust import TrustScoreService
from wellness_lending.services.wellness import WellnessHoursService


class RequestOutcomeKind(str, Enum):
    APPROVED = "approved"
    PENDING = "pending"
    QUEUED = "queued"


@dataclass
class LoanRequestOutcome:
    """Result of a loan request: a new loan, or a place in the queue."""

    kind: RequestOutcomeKind
    loan: Optional[Loan] = None
    queue_entry: Optional[QueueEntry] = None


def is_auto_approvable(
    policy: PolicySettings,
    category: Optional[ResourceCategory],
    status: StudentBehavioralStatus,
) -> bool:
    """
    All five conditions must hold; a resource without a category is never
    auto-approved.
    """
    if category is None:
        return False
    return (
        policy.auto_approve_low_risk
        and category.is_low_risk
        and not category.requires_approval
        and status.trust_score >= policy.min_trust_score_auto_approve
        and not status.is_blocked
    )


class LoanLifecycleService(BaseService[Loan, LoanRepository]):
    """
    Loan requests, decisions, pickup, return and incident reporting.

    Owns the transaction of every public operation; the trust, queue,
    wellness and damage services only contribute in-transaction steps and
    share this service's event dispatcher.
    """

    def __init__(
        self,
        repository: LoanRepository,
        db_session: Session,
        settings_service: PolicySettingsService,
        trust_service: TrustScoreService,
        queue_service: ResourceQueueService,
        wellness_service: WellnessHoursService,
        damage_service: DamageAdjudicationService,
        dispatcher: Optional[EventDispatcher] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(repository, db_session, dispatcher, clock)
        self.settings_service = settings_service
        self.trust_service = trust_service
        self.queue_service = queue_service
        self.wellness_service = wellness_service
        self.damage_service = damage_service
        self.resource_repository = ResourceRepository(db_session)
        self.queue_service.loan_service = self

    @property
    def policy(self) -> PolicySettings:
        return self.settings_service.policy

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    def request_loan(self, student_id: UUID, resource_id: UUID) -> ServiceResult[LoanRequestOutcome]:
        """
        File a loan request for ``resource_id``.

        An available resource yields an approved (auto-approval) or pending
        loan and moves to ``reserved``. An unavailable one queues the student
        when queueing is enabled. A student holding the notified queue slot
        for the resource gets the slot converted into a loan.
        """
        self._reconcile_before("request loan", user_id=student_id, resource_id=resource_id)

        def work() -> LoanRequestOutcome:
            resource = self.resource_repository.get_or_raise(resource_id, lock=True)
            status = self.trust_service.ensure_can_borrow(student_id)
            self._check_limits(student_id, resource)

            if resource.status != ResourceStatus.AVAILABLE:
                entry = self.queue_service.repository.find_active_entry(resource.id, student_id)
                if entry is not None and entry.status == QueueStatus.NOTIFIED:
                    loan = self._convert_entry(entry.id, student_id, resource, status)
                    return self._outcome_for(loan)
                if not self.policy.allow_queue_for_unavailable:
                    raise ResourceUnavailableError(resource.id, resource.status.value)
                queue_entry = self.queue_service.add_entry(student_id, resource)
                return LoanRequestOutcome(RequestOutcomeKind.QUEUED, queue_entry=queue_entry)

            loan = self._open_loan(student_id, resource, status, {ResourceStatus.AVAILABLE})
            return self._outcome_for(loan)

        return self._execute("request loan", work, entity_ref=resource_id)

    def convert_queue_entry(self, entry_id: UUID, student_id: UUID) -> ServiceResult[Loan]:
        """Turn the student's notified queue entry into a loan request."""
        entry = self.queue_service.repository.get_by_id(entry_id)
        resource_id = entry.resource_id if entry is not None else None
        self._reconcile_before("convert queue entry", user_id=student_id, resource_id=resource_id)

        def work() -> Loan:
            current = self.queue_service.repository.get_or_raise(entry_id)
            resource = self.resource_repository.get_or_raise(current.resource_id, lock=True)
            status = self.trust_service.ensure_can_borrow(student_id)
            self._check_limits(student_id, resource)
            return self._convert_entry(entry_id, student_id, resource, status)

        return self._execute("convert queue entry", work, entity_ref=entry_id, success_message="Loan requested")

    def _convert_entry(
        self,
        entry_id: UUID,
        student_id: UUID,
        resource: Resource,
        status: StudentBehavioralStatus,
    ) -> Loan:
        entry = self.queue_service.claim_notified_entry(entry_id, student_id)
        if self.repository.get_live_for_resource(resource.id) is not None:
            raise StateConflictError(
                "Resource already has a live loan",
                details={"resource_id": str(resource.id)},
            )
        loan = self._open_loan(student_id, resource, status, {ResourceStatus.RESERVED}, queue_entry=entry)
        self.queue_service.mark_converted(entry, loan)
        return loan

    def _check_limits(self, student_id: UUID, resource: Resource) -> None:
        limit = self.policy.max_active_loans
        if self.repository.count_live_for_user(student_id) >= limit:
            raise LoanLimitExceededError(student_id, limit)

        category = resource.category
        if category is not None and category.max_per_student is not None:
            held = self.repository.count_live_for_user_in_category(student_id, category.id)
            if held >= category.max_per_student:
                raise LoanLimitExceededError(
                    student_id,
                    category.max_per_student,
                    scope=f"loans in category {category.name}",
                )

    def _open_loan(
        self,
        student_id: UUID,
        resource: Resource,
        status: StudentBehavioralStatus,
        expected: Iterable[ResourceStatus],
        queue_entry: Optional[QueueEntry] = None,
    ) -> Loan:
        now = self.now()
        auto = is_auto_approvable(self.policy, resource.category, status)

        loan = Loan(
            resource_id=resource.id,
            user_id=student_id,
            status=LoanStatus.PENDING,
            decision_source=DecisionSource.HUMAN,
            requested_at=now,
            trust_score_at_request=status.trust_score,
            queue_entry_id=queue_entry.id if queue_entry is not None else None,
        )
        loan.status_history.append(
            LoanStatusHistory(
                from_status=None,
                to_status=LoanStatus.PENDING,
                changed_by=student_id,
                reason="converted from queue" if queue_entry is not None else "requested",
                changed_at=now,
                sequence=1,
            )
        )
        if auto:
            self._approve(loan, None, DecisionSource.AUTOMATIC, now, reason="auto-approved")
        self.repository.add(loan)
        self.resource_repository.compare_and_set_status(resource, expected, ResourceStatus.RESERVED)

        self._logger.info(
            f"Loan requested ({loan.status.value})",
            extra={
                "loan_id": str(loan.id),
                "resource_id": str(resource.id),
                "user_id": str(student_id),
                "to_status": loan.status.value,
            },
        )
        self._emit(
            DomainEvent(
                LoanEvents.LOAN_REQUESTED,
                entity_type="loan",
                entity_id=loan.id,
                title="New loan request",
                message=f"{resource.name} was requested.",
                user_id=student_id,
                data={
                    "resource_id": str(resource.id),
                    "status": loan.status.value,
                    "decision_source": loan.decision_source.value,
                    "trust_score_at_request": loan.trust_score_at_request,
                },
            )
        )
        if auto:
            self._emit_approved(loan, resource)
        return loan

    @staticmethod
    def _outcome_for(loan: Loan) -> LoanRequestOutcome:
        kind = RequestOutcomeKind.APPROVED if loan.status == LoanStatus.APPROVED else RequestOutcomeKind.PENDING
        return LoanRequestOutcome(kind, loan=loan)

    # -------------------------------------------------------------------------
    # Decisions
    # -------------------------------------------------------------------------

    def approve_loan(self, admin_id: UUID, loan_id: UUID, notes: Optional[str] = None) -> ServiceResult[Loan]:
        """Approve a pending request and start its pickup deadline."""
        self._reconcile_before("approve loan", loan_ids=[loan_id])

        def work() -> Loan:
            resource, loan = self._lock_loan_and_resource(loan_id)
            self._approve(loan, admin_id, DecisionSource.HUMAN, self.now(), reason="approved", notes=notes)
            self.repository.flush()
            self._emit_approved(loan, resource)
            return loan

        return self._execute("approve loan", work, entity_ref=loan_id, success_message="Loan approved")

    def reject_loan(self, admin_id: UUID, loan_id: UUID, reason: str) -> ServiceResult[Loan]:
        """Reject a pending request. The trust score is not touched."""
        self._reconcile_before("reject loan", loan_ids=[loan_id])

        def work() -> Loan:
            if not reason or not reason.strip():
                raise ValidationError("A rejection reason is required", field_errors={"reason": ["Required"]})
            resource, loan = self._lock_loan_and_resource(loan_id)
            loan.transition_to(LoanStatus.REJECTED, changed_by=admin_id, reason=reason.strip(), changed_at=self.now())
            loan.rejection_reason = reason.strip()
            self.repository.flush()
            self.queue_service.release_resource(resource, {ResourceStatus.RESERVED})

            self._logger.info(
                "Loan rejected",
                extra={"loan_id": str(loan.id), "user_id": str(loan.user_id), "to_status": loan.status.value},
            )
            self._emit(
                DomainEvent(
                    LoanEvents.LOAN_REJECTED,
                    entity_type="loan",
                    entity_id=loan.id,
                    title="Loan request rejected",
                    message=f"Your request for {resource.name} was rejected: {loan.rejection_reason}",
                    severity=EventSeverity.WARNING,
                    user_id=loan.user_id,
                    data={"resource_id": str(resource.id), "reason": loan.rejection_reason},
                )
            )
            return loan

        return self._execute("reject loan", work, entity_ref=loan_id, success_message="Loan rejected")

    def _approve(
        self,
        loan: Loan,
        admin_id: Optional[UUID],
        source: DecisionSource,
        now: datetime,
        reason: str,
        notes: Optional[str] = None,
    ) -> None:
        loan.transition_to(LoanStatus.APPROVED, changed_by=admin_id, reason=reason, changed_at=now)
        loan.decision_source = source
        loan.approved_at = now
        loan.approved_by = admin_id
        loan.pickup_deadline = now + timedelta(minutes=self.policy.pickup_timeout_minutes)
        if notes:
            loan.admin_notes = notes

    def _emit_approved(self, loan: Loan, resource: Resource) -> None:
        self._emit(
            DomainEvent(
                LoanEvents.LOAN_APPROVED,
                entity_type="loan",
                entity_id=loan.id,
                title="Loan approved",
                message=(
                    f"Your request for {resource.name} was approved. Pick it up before "
                    f"{loan.pickup_deadline:%Y-%m-%d %H:%M} UTC."
                ),
                user_id=loan.user_id,
                data={
                    "resource_id": str(resource.id),
                    "decision_source": loan.decision_source.value,
                    "pickup_deadline": loan.pickup_deadline.isoformat(),
                },
            )
        )

    # -------------------------------------------------------------------------
    # Pickup & return
    # -------------------------------------------------------------------------

    def record_pickup(
        self,
        loan_id: UUID,
        due_date: Optional[datetime] = None,
        actor_id: Optional[UUID] = None,
    ) -> ServiceResult[Loan]:
        """Hand an approved loan to the student and start the loan period."""
        self._reconcile_before("record pickup", loan_ids=[loan_id])

        def work() -> Loan:
            resource, loan = self._lock_loan_and_resource(loan_id)
            now = self.now()
            due = self._resolve_due_date(resource, due_date, now)

            loan.transition_to(LoanStatus.ACTIVE, changed_by=actor_id, reason="picked up", changed_at=now)
            loan.delivered_at = now
            loan.due_date = due
            self.repository.flush()
            self.resource_repository.compare_and_set_status(resource, {ResourceStatus.RESERVED}, ResourceStatus.BORROWED)
            self.trust_service.record_pickup(loan.user_id)

            self._logger.info(
                "Loan picked up",
                extra={"loan_id": str(loan.id), "user_id": str(loan.user_id), "to_status": loan.status.value},
            )
            self._emit_activated(loan, resource)
            return loan

        return self._execute("record pickup", work, entity_ref=loan_id, success_message="Pickup recorded")

    def create_presential_loan(
        self,
        admin_id: UUID,
        student_id: UUID,
        resource_id: UUID,
        due_date: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> ServiceResult[Loan]:
        """
        Lend an available resource to a student at the desk.

        The loan skips the request and approval steps and starts ``active``.
        Block status and loan limits apply as for a request.
        """
        self._reconcile_before("create presential loan", user_id=student_id, resource_id=resource_id)

        def work() -> Loan:
            resource = self.resource_repository.get_or_raise(resource_id, lock=True)
            status = self.trust_service.ensure_can_borrow(student_id)
            self._check_limits(student_id, resource)
            if resource.status != ResourceStatus.AVAILABLE:
                raise ResourceUnavailableError(resource.id, resource.status.value)

            now = self.now()
            due = self._resolve_due_date(resource, due_date, now)
            loan = Loan(
                resource_id=resource.id,
                user_id=student_id,
                status=LoanStatus.ACTIVE,
                decision_source=DecisionSource.HUMAN,
                requested_at=now,
                approved_at=now,
                approved_by=admin_id,
                delivered_at=now,
                due_date=due,
                trust_score_at_request=status.trust_score,
                admin_notes=notes or None,
            )
            loan.status_history.append(
                LoanStatusHistory(
                    from_status=None,
                    to_status=LoanStatus.ACTIVE,
                    changed_by=admin_id,
                    reason="presential loan",
                    changed_at=now,
                    sequence=1,
                )
            )
            self.repository.add(loan)
            self.resource_repository.compare_and_set_status(resource, {ResourceStatus.AVAILABLE}, ResourceStatus.BORROWED)
            self.trust_service.record_pickup(student_id)

            self._logger.info(
                "Presential loan created",
                extra={
                    "loan_id": str(loan.id),
                    "resource_id": str(resource.id),
                    "user_id": str(student_id),
                    "admin_id": str(admin_id),
                    "to_status": loan.status.value,
                },
            )
            self._emit_activated(loan, resource)
            return loan

        return self._execute(
            "create presential loan", work, entity_ref=resource_id, success_message="Presential loan created"
        )

    def _resolve_due_date(self, resource: Resource, due_date: Optional[datetime], now: datetime) -> datetime:
        due = DateTimeUtils.to_naive_utc(due_date)
        if due is None:
            category = resource.category
            days = category.max_loan_days if category and category.max_loan_days else self.policy.default_loan_days
            return now + timedelta(days=days)
        if due <= now:
            raise ValidationError("Due date must be in the future", field_errors={"due_date": ["Must be in the future"]})
        return due

    def _emit_activated(self, loan: Loan, resource: Resource) -> None:
        self._emit(
            DomainEvent(
                LoanEvents.LOAN_ACTIVATED,
                entity_type="loan",
                entity_id=loan.id,
                title="Loan started",
                message=f"Please return {resource.name} by {loan.due_date:%Y-%m-%d %H:%M} UTC.",
                user_id=loan.user_id,
                data={"resource_id": str(resource.id), "due_date": loan.due_date.isoformat()},
            )
        )

    def return_loan(self, loan_id: UUID, actor_id: Optional[UUID] = None) -> ServiceResult[Loan]:
        """
        Close an active or overdue loan.

        The student is scored on time or late, wellness hours are booked and
        the resource goes to the next waiter or back to ``available``.
        """
        self._reconcile_before("return loan", loan_ids=[loan_id])

        def work() -> Loan:
            resource, loan = self._lock_loan_and_resource(loan_id)
            now = self.now()
            loan.transition_to(LoanStatus.RETURNED, changed_by=actor_id, reason="returned", changed_at=now)
            loan.returned_at = now
            self.repository.flush()

            on_time = loan.due_date is None or now <= loan.due_date
            self.trust_service.record_return(loan.user_id, on_time, loan_id=loan.id)
            entries = self.wellness_service.award_for_return(loan, actor_id)
            waiter = self.queue_service.release_resource(resource, {ResourceStatus.BORROWED})

            self._logger.info(
                f"Loan returned {'on time' if on_time else 'late'}",
                extra={"loan_id": str(loan.id), "user_id": str(loan.user_id), "to_status": loan.status.value},
            )
            self._emit(
                DomainEvent(
                    LoanEvents.LOAN_RETURNED,
                    entity_type="loan",
                    entity_id=loan.id,
                    title="Resource returned",
                    message=f"{resource.name} was returned{'' if on_time else ' late'}.",
                    severity=EventSeverity.INFO if on_time else EventSeverity.WARNING,
                    user_id=loan.user_id,
                    data={
                        "resource_id": str(resource.id),
                        "on_time": on_time,
                        "wellness_hours": sum(entry.hours for entry in entries),
                        "next_in_line": str(waiter.user_id) if waiter is not None else None,
                    },
                )
            )
            return loan

        return self._execute("return loan", work, entity_ref=loan_id, success_message="Loan returned")

    # -------------------------------------------------------------------------
    # Incidents
    # -------------------------------------------------------------------------

    def report_damage(
        self,
        admin_id: UUID,
        loan_id: UUID,
        damage_type: DamageType,
        severity: DamageSeverity,
        description: str,
        images: Optional[Sequence[str]] = None,
        estimated_cost: Optional[Decimal] = None,
    ) -> ServiceResult[DamageRecord]:
        """Record a damage, loss or theft incident on an active or overdue loan."""
        self._reconcile_before("report damage", loan_ids=[loan_id])

        def work() -> DamageRecord:
            return self.damage_service.apply_incident(
                admin_id, loan_id, damage_type, severity, description, images, estimated_cost
            )

        return self._execute("report damage", work, entity_ref=loan_id, success_message="Incident recorded")

    # -------------------------------------------------------------------------
    # Time-driven transitions
    # -------------------------------------------------------------------------

    def expire_pickup(self, loan_id: UUID) -> ServiceResult[Loan]:
        """Expire an approved loan whose pickup deadline has passed."""
        return self._apply_time_rule(loan_id, LoanStatus.APPROVED, "expire pickup")

    def expire_approval(self, loan_id: UUID) -> ServiceResult[Loan]:
        """Auto-reject a pending request older than ``approval_timeout_minutes``."""
        return self._apply_time_rule(loan_id, LoanStatus.PENDING, "expire approval")

    def mark_overdue(self, loan_id: UUID) -> ServiceResult[Loan]:
        """Flag an active loan past its due date."""
        return self._apply_time_rule(loan_id, LoanStatus.ACTIVE, "mark overdue")

    def reconcile_loan(self, loan_id: UUID) -> ServiceResult[Loan]:
        """Apply whichever time-driven transition is due, if any."""

        def work() -> Loan:
            loan = self.repository.get_or_raise(loan_id)
            self._reconcile(loan)
            return loan

        return self._execute("reconcile loan", work, entity_ref=loan_id)

    def _apply_time_rule(self, loan_id: UUID, from_status: LoanStatus, operation: str) -> ServiceResult[Loan]:
        def work() -> Loan:
            loan = self.repository.get_or_raise(loan_id)
            if loan.status != from_status:
                raise StateConflictError(
                    f"Loan is {loan.status.value}, not {from_status.value}",
                    details={"loan_id": str(loan_id), "status": loan.status.value},
                )
            if not self._reconcile(loan):
                raise StateConflictError(
                    "Deadline has not passed yet",
                    details={"loan_id": str(loan_id), "status": loan.status.value},
                )
            return loan

        return self._execute(operation, work, entity_ref=loan_id)

    def _reconcile(self, loan: Loan) -> bool:
        """Bring one loan up to date. Returns True if its status changed."""
        if effective_status(loan, self.now(), self.policy) == loan.status:
            return False

        resource, loan = self._lock_loan_and_resource(loan.id)
        target = effective_status(loan, self.now(), self.policy)
        if target == loan.status:
            return False
        if target in (LoanStatus.EXPIRED, LoanStatus.REJECTED):
            self._expire(loan, resource, target)
        elif target == LoanStatus.OVERDUE:
            self._mark_overdue(loan, resource)
        return True

    def _expire(self, loan: Loan, resource: Resource, target: LoanStatus) -> None:
        """Close a loan whose deadline passed: pickup expiry, or auto-reject of a stale request."""
        reason = expiry_reason(loan)
        loan.transition_to(target, reason=reason, changed_at=self.now())
        loan.rejection_reason = reason
        self.repository.flush()
        self.queue_service.release_resource(resource, {ResourceStatus.RESERVED})

        self._logger.info(
            f"Loan {target.value}: {reason}",
            extra={"loan_id": str(loan.id), "user_id": str(loan.user_id), "to_status": loan.status.value},
        )
        if target == LoanStatus.REJECTED:
            event_type, title = LoanEvents.LOAN_REJECTED, "Loan request timed out"
            message = f"Your request for {resource.name} was rejected: {reason}."
        else:
            event_type, title = LoanEvents.LOAN_EXPIRED, "Loan expired"
            message = f"Your loan of {resource.name} expired: {reason}."
        self._emit(
            DomainEvent(
                event_type,
                entity_type="loan",
                entity_id=loan.id,
                title=title,
                message=message,
                severity=EventSeverity.WARNING,
                user_id=loan.user_id,
                data={"resource_id": str(resource.id), "reason": reason},
            )
        )

    def _mark_overdue(self, loan: Loan, resource: Resource) -> None:
        loan.transition_to(LoanStatus.OVERDUE, reason="due date passed", changed_at=self.now())
        self.repository.flush()

        self._logger.warning(
            "Loan overdue",
            extra={"loan_id": str(loan.id), "user_id": str(loan.user_id), "to_status": loan.status.value},
        )
        self._emit(
            DomainEvent(
                LoanEvents.LOAN_OVERDUE,
                entity_type="loan",
                entity_id=loan.id,
                title="Loan overdue",
                message=f"{resource.name} was due {loan.due_date:%Y-%m-%d %H:%M} UTC. Please return it.",
                severity=EventSeverity.WARNING,
                user_id=loan.user_id,
                data={"resource_id": str(resource.id), "due_date": loan.due_date.isoformat()},
            )
        )

    def _reconcile_before(
        self,
        operation: str,
        loan_ids: Sequence[UUID] = (),
        user_id: Optional[UUID] = None,
        resource_id: Optional[UUID] = None,
    ) -> None:
        """
        Commit any due time-driven transitions ahead of ``operation``.

        Failures are logged; the operation itself reports the state it finds.
        """

        def work() -> int:
            loans: Dict[UUID, Loan] = {}
            for loan_id in loan_ids:
                loan = self.repository.get_by_id(loan_id)
                if loan is not None:
                    loans[loan.id] = loan
            if user_id is not None:
                for loan in self.repository.find_by_user(user_id):
                    if loan.is_live:
                        loans[loan.id] = loan
            if resource_id is not None:
                loan = self.repository.get_live_for_resource(resource_id)
                if loan is not None:
                    loans[loan.id] = loan

            changed = sum(1 for loan in loans.values() if self._reconcile(loan))
            if resource_id is not None:
                changed += self._expire_lapsed_notification(resource_id)
            return changed

        result = self._execute(f"reconcile loans before {operation}", work)
        if not result.is_success:
            self._logger.warning(f"Reconciliation before {operation} failed: {result.message}")

    def _expire_lapsed_notification(self, resource_id: UUID) -> int:
        notified = self.queue_service.repository.find_notified(resource_id)
        if notified is None or not notified.window_elapsed(self.now()):
            return 0
        resource = self.resource_repository.get_or_raise(resource_id, lock=True)
        self.queue_service.expire_lapsed_for_resource(resource)
        return 1

    def _lock_loan_and_resource(self, loan_id: UUID) -> Tuple[Resource, Loan]:
        """Lock the resource before the loan, the order every operation uses."""
        loan = self.repository.get_or_raise(loan_id)
        resource = self.resource_repository.get_or_raise(loan.resource_id, lock=True)
        return resource, self.repository.get_or_raise(loan_id, lock=True)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_loan(self, loan_id: UUID) -> ServiceResult[Loan]:
        """Fetch a loan with its time-driven status applied."""
        self._reconcile_before("get loan", loan_ids=[loan_id])
        try:
            return ServiceResult.success(self.repository.get_or_raise(loan_id))
        except Exception as e:
            return self._handle_exception(e, "get loan", loan_id)

    def list_loans_for_user(self, user_id: UUID, status: Optional[LoanStatus] = None) -> ServiceResult[List[Loan]]:
        self._reconcile_before("list loans", user_id=user_id)
        try:
            return ServiceResult.success(self.repository.find_by_user(user_id, status))
        except Exception as e:
            return self._handle_exception(e, "list loans", user_id)

    def list_by_status(self, status: LoanStatus) -> ServiceResult[List[Loan]]:
        """Loans in ``status`` once every due time-driven transition is applied."""
        try:
            now = self.now()
            cutoff = now - timedelta(minutes=self.policy.approval_timeout_minutes)
            due = [loan.id for loan in self.repository.find_sweep_candidates(now, cutoff)]
        except Exception as e:
            return self._handle_exception(e, "list loans by status")
        if due:
            self._reconcile_before("list loans by status", loan_ids=due)
        try:
            return ServiceResult.success(self.repository.find_by_status(status))
        except Exception as e:
            return self._handle_exception(e, "list loans by status")

    def get_history(self, loan_id: UUID) -> ServiceResult[List[LoanStatusHistory]]:
        try:
            self.repository.get_or_raise(loan_id)
            return ServiceResult.success(self.repository.get_history(loan_id))
        except Exception as e:
            return self._handle_exception(e, "get loan history", loan_id)
