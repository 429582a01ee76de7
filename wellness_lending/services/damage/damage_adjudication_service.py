"""
Damage/loss adjudicator.

Records incidents against active loans, computes the fine, closes the loan
as ``damaged`` or ``lost`` and feeds the penalty to the trust score engine.
"""

from decimal import Decimal
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from wellness_lending.core.events.base_event import DomainEvent, EventSeverity, LoanEvents
from wellness_lending.core.exceptions import (
    InvalidTransitionError,
    ResourceNotFoundError,
    ValidationError,
)
from wellness_lending.core.utils import Clock, NumberUtils, utcnow
from wellness_lending.models.base import (
    DamageRecordStatus,
    DamageSeverity,
    DamageType,
    LoanStatus,
    ResourceStatus,
)
from wellness_lending.models.catalog import Resource
from wellness_lending.models.loan import DamageRecord
from wellness_lending.repositories.catalog import ResourceRepository
from wellness_lending.repositories.loan import DamageRecordRepository, LoanRepository
from wellness_lending.services.base import BaseService, EventDispatcher, ServiceResult
from wellness_lending.services.damage.fine_calculator import calculate_fine
from wellness_lending.services.settings import PolicySettings, PolicySettingsService
from wellness_lending.services.trust import TrustScoreService
from wellness_lending.services.wellness import WellnessHoursService

MAX_DAMAGE_IMAGES = 5

REPORTABLE_LOAN_STATUSES = frozenset({LoanStatus.ACTIVE, LoanStatus.OVERDUE})

LOSS_TYPES = frozenset({DamageType.LOSS, DamageType.THEFT})

RECORD_STATUS_TRANSITIONS = {
    DamageRecordStatus.REPORTED: frozenset(
        {DamageRecordStatus.REVIEWED, DamageRecordStatus.RESOLVED, DamageRecordStatus.WAIVED}
    ),
    DamageRecordStatus.REVIEWED: frozenset({DamageRecordStatus.RESOLVED, DamageRecordStatus.WAIVED}),
}


def loan_outcome(damage_type: DamageType, severity: DamageSeverity) -> LoanStatus:
    """``lost`` for a loss or a total loss, ``damaged`` otherwise."""
    if damage_type == DamageType.LOSS or severity == DamageSeverity.TOTAL_LOSS:
        return LoanStatus.LOST
    return LoanStatus.DAMAGED


class DamageAdjudicationService(BaseService[DamageRecord, DamageRecordRepository]):
    """Incident recording and fine quoting."""

    def __init__(
        self,
        repository: DamageRecordRepository,
        db_session: Session,
        settings_service: PolicySettingsService,
        trust_service: TrustScoreService,
        wellness_service: WellnessHoursService,
        dispatcher: Optional[EventDispatcher] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(repository, db_session, dispatcher, clock)
        self.settings_service = settings_service
        self.trust_service = trust_service
        self.wellness_service = wellness_service
        self.loan_repository = LoanRepository(db_session)
        self.resource_repository = ResourceRepository(db_session)

    @property
    def policy(self) -> PolicySettings:
        return self.settings_service.policy

    def replacement_cost(self, resource: Resource) -> Decimal:
        category = resource.category
        if category is not None and category.replacement_cost is not None:
            return Decimal(category.replacement_cost)
        return self.policy.default_replacement_cost

    # -------------------------------------------------------------------------
    # Fines
    # -------------------------------------------------------------------------

    def quote_fine(
        self,
        damage_type: DamageType,
        severity: DamageSeverity,
        resource_id: UUID,
    ) -> ServiceResult[Decimal]:
        """Compute the fine an incident would carry without recording it."""
        try:
            resource = self.resource_repository.get_by_id(resource_id)
            if resource is None:
                raise ResourceNotFoundError("Resource", resource_id)
            return ServiceResult.success(calculate_fine(damage_type, severity, self.replacement_cost(resource)))
        except Exception as e:
            return self._handle_exception(e, "quote fine", resource_id)

    # -------------------------------------------------------------------------
    # Incidents
    # -------------------------------------------------------------------------

    def record_incident(
        self,
        admin_id: UUID,
        loan_id: UUID,
        damage_type: DamageType,
        severity: DamageSeverity,
        description: str,
        images: Optional[Sequence[str]] = None,
        estimated_cost: Optional[Decimal] = None,
    ) -> ServiceResult[DamageRecord]:
        """
        Record an incident and close the loan.

        The loan must be active or overdue, so a second incident for the
        same loan is refused with a state conflict.
        """

        def work() -> DamageRecord:
            return self.apply_incident(
                admin_id, loan_id, damage_type, severity, description, images, estimated_cost
            )

        return self._execute("record damage incident", work, entity_ref=loan_id, success_message="Incident recorded")

    def apply_incident(
        self,
        admin_id: UUID,
        loan_id: UUID,
        damage_type: DamageType,
        severity: DamageSeverity,
        description: str,
        images: Optional[Sequence[str]] = None,
        estimated_cost: Optional[Decimal] = None,
    ) -> DamageRecord:
        """In-transaction body of ``record_incident``."""
        images = list(images or [])
        self._validate_incident(description, images, estimated_cost)

        # Resource row before loan row, as in every loan operation
        resource_id = self.loan_repository.get_or_raise(loan_id).resource_id
        resource = self.resource_repository.get_or_raise(resource_id, lock=True)
        loan = self.loan_repository.get_or_raise(loan_id, lock=True)
        target = loan_outcome(damage_type, severity)
        if loan.status not in REPORTABLE_LOAN_STATUSES:
            raise InvalidTransitionError("Loan", loan.id, loan.status.value, target.value)

        fine = calculate_fine(damage_type, severity, self.replacement_cost(resource))
        now = self.now()

        record = DamageRecord(
            loan_id=loan.id,
            resource_id=resource.id,
            user_id=loan.user_id,
            damage_type=damage_type,
            severity=severity,
            description=description.strip(),
            damage_images=images,
            estimated_cost=NumberUtils.round_money(estimated_cost) if estimated_cost is not None else None,
            fine_amount=fine,
            reported_by=admin_id,
            status=DamageRecordStatus.REVIEWED,
        )
        self.repository.add(record)

        loan.transition_to(target, changed_by=admin_id, reason=f"{damage_type.value} reported", changed_at=now)
        loan.damage_notes = f"[{damage_type.value}/{severity.value}] {description.strip()}"
        self.loan_repository.flush()

        resource_target = ResourceStatus.RETIRED if target == LoanStatus.LOST else ResourceStatus.MAINTENANCE
        self.resource_repository.compare_and_set_status(resource, {ResourceStatus.BORROWED}, resource_target)

        is_loss = damage_type in LOSS_TYPES
        self.trust_service.record_incident(loan.user_id, damage_type, severity, loan_id=loan.id)
        self.wellness_service.book_incident_penalty(loan, is_loss=is_loss, actor_id=admin_id)

        self._logger.warning(
            f"Incident recorded: {damage_type.value}/{severity.value}, fine {fine}",
            extra={
                "loan_id": str(loan.id),
                "resource_id": str(resource.id),
                "user_id": str(loan.user_id),
                "to_status": target.value,
            },
        )
        self._emit(
            DomainEvent(
                LoanEvents.DAMAGE_REPORTED,
                entity_type="loan",
                entity_id=loan.id,
                title=f"Resource {target.value}",
                message=(
                    f"A {severity.value.replace('_', ' ')} {damage_type.value} incident was recorded "
                    f"for {resource.name}. Fine: {fine}."
                ),
                severity=EventSeverity.ERROR if target == LoanStatus.LOST else EventSeverity.WARNING,
                user_id=loan.user_id,
                data={
                    "damage_record_id": str(record.id),
                    "resource_id": str(resource.id),
                    "damage_type": damage_type.value,
                    "severity": severity.value,
                    "fine_amount": str(fine),
                },
            )
        )
        return record

    def _validate_incident(
        self,
        description: str,
        images: List[str],
        estimated_cost: Optional[Decimal],
    ) -> None:
        field_errors = {}
        if not description or not description.strip():
            field_errors["description"] = ["Description is required"]
        if len(images) > MAX_DAMAGE_IMAGES:
            field_errors["images"] = [f"At most {MAX_DAMAGE_IMAGES} images"]
        if estimated_cost is not None and Decimal(str(estimated_cost)) < 0:
            field_errors["estimated_cost"] = ["Must be >= 0"]
        if field_errors:
            raise ValidationError("Invalid damage report", field_errors=field_errors)

    def update_record_status(
        self,
        admin_id: UUID,
        record_id: UUID,
        status: DamageRecordStatus,
    ) -> ServiceResult[DamageRecord]:
        """Move a record to resolved or waived. Nothing else changes after review."""

        def work() -> DamageRecord:
            record = self.repository.get_for_update(record_id)
            if record is None:
                raise ResourceNotFoundError("Damage record", record_id)
            if status not in RECORD_STATUS_TRANSITIONS.get(record.status, frozenset()):
                raise InvalidTransitionError("Damage record", record_id, record.status.value, status.value)
            record.status = status
            self.repository.flush()
            self._logger.info(
                f"Damage record {status.value}",
                extra={"loan_id": str(record.loan_id), "admin_id": str(admin_id)},
            )
            return record

        return self._execute("update damage record", work, entity_ref=record_id)

    def get_for_loan(self, loan_id: UUID) -> ServiceResult[DamageRecord]:
        try:
            record = self.repository.get_by_loan(loan_id)
            if record is None:
                return ServiceResult.not_found("Damage record", str(loan_id))
            return ServiceResult.success(record)
        except Exception as e:
            return self._handle_exception(e, "get damage record", loan_id)

    def list_for_user(self, user_id: UUID) -> ServiceResult[List[DamageRecord]]:
        try:
            return ServiceResult.success(self.repository.find_by_user(user_id))
        except Exception as e:
            return self._handle_exception(e, "list damage records", user_id)
