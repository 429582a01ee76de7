"""
Trust score engine.

Maintains one ``StudentBehavioralStatus`` per student, applies score deltas
for loan-lifecycle events and decides when a student is blocked. Blocks
with an end date are lifted lazily the next time a decision needs them.
"""

from dataclasses import asdict
from datetime import timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from wellness_lending.core.events.base_event import DomainEvent, EventSeverity, LoanEvents
from wellness_lending.core.exceptions import StudentBlockedError, ValidationError
from wellness_lending.core.utils import Clock, utcnow
from wellness_lending.models.base import DamageSeverity, DamageType
from wellness_lending.models.student import StudentBehavioralStatus
from wellness_lending.repositories.loan import LoanRepository
from wellness_lending.repositories.student import BehavioralStatusRepository
from wellness_lending.services.base import BaseService, EventDispatcher, ServiceResult
from wellness_lending.services.settings import PolicySettings, PolicySettingsService
from wellness_lending.services.trust.scoring import (
    TrustCounters,
    TrustEvent,
    TrustEventKind,
    apply_event,
    recalculate_from_counters,
    score_level,
)

LATE_RETURNS_REASON = "excessive late returns"
LOSS_REASON = "resource lost or stolen"


class TrustScoreService(BaseService[StudentBehavioralStatus, BehavioralStatusRepository]):
    """
    Per-student trust score and sanctions.

    The ``record_*`` methods run inside a caller's transaction: they lock
    the student's row, mutate it and flush, but never commit.
    """

    def __init__(
        self,
        repository: BehavioralStatusRepository,
        db_session: Session,
        settings_service: PolicySettingsService,
        dispatcher: Optional[EventDispatcher] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(repository, db_session, dispatcher, clock)
        self.settings_service = settings_service
        self.loan_repository = LoanRepository(db_session)

    @property
    def policy(self) -> PolicySettings:
        return self.settings_service.policy

    # -------------------------------------------------------------------------
    # In-transaction operations
    # -------------------------------------------------------------------------

    def get_or_create_status(self, user_id: UUID, lock: bool = False) -> StudentBehavioralStatus:
        """Fetch the student's row, creating it with default counters."""
        status = self.repository.get_by_user(user_id, lock=lock)
        if status is None:
            status = StudentBehavioralStatus(
                user_id=user_id,
                trust_score=self.policy.trust_score_default,
                total_loans=0,
                on_time_returns=0,
                late_returns=0,
                damages=0,
                losses=0,
                events_attended=0,
                is_blocked=False,
            )
            self.repository.add(status)
            self._logger.info(
                "Created behavioral status",
                extra={"user_id": str(user_id)},
            )
        return status

    def ensure_can_borrow(self, user_id: UUID) -> StudentBehavioralStatus:
        """
        Return the student's status, lifting an elapsed block first.

        Raises:
            StudentBlockedError: If the student is still blocked
        """
        status = self.get_or_create_status(user_id, lock=True)
        self._lift_elapsed_block(status)
        if status.is_blocked:
            raise StudentBlockedError(user_id, status.blocked_until, status.blocked_reason)
        return status

    def record_pickup(self, user_id: UUID) -> StudentBehavioralStatus:
        status = self.get_or_create_status(user_id, lock=True)
        self._apply(status, TrustEvent(TrustEventKind.PICKUP))
        return status

    def record_return(
        self,
        user_id: UUID,
        on_time: bool,
        loan_id: Optional[UUID] = None,
    ) -> StudentBehavioralStatus:
        """
        Score a returned loan.

        A late return may block the student once the late count (lifetime,
        or inside ``late_return_window_days``) reaches
        ``block_after_late_returns``. The returned loan must already be
        flushed so the windowed count includes it.
        """
        status = self.get_or_create_status(user_id, lock=True)
        if on_time:
            self._apply(status, TrustEvent(TrustEventKind.ON_TIME_RETURN), loan_id)
            return status

        self._apply(status, TrustEvent(TrustEventKind.LATE_RETURN), loan_id)
        late_count = self._late_return_count(status)
        if late_count >= self.policy.block_after_late_returns:
            self._block(
                status,
                days=self.policy.block_duration_days,
                reason=LATE_RETURNS_REASON,
                loan_id=loan_id,
            )
        return status

    def record_incident(
        self,
        user_id: UUID,
        damage_type: DamageType,
        severity: DamageSeverity,
        loan_id: Optional[UUID] = None,
    ) -> StudentBehavioralStatus:
        """
        Score a damage, loss or theft incident.

        Loss and theft take the loss penalty and, with ``auto_block_on_loss``,
        block the student regardless of other counters.
        """
        status = self.get_or_create_status(user_id, lock=True)
        if damage_type in (DamageType.LOSS, DamageType.THEFT):
            self._apply(status, TrustEvent(TrustEventKind.LOSS), loan_id)
            if self.policy.auto_block_on_loss:
                self._block(
                    status,
                    days=self.policy.block_duration_days,
                    reason=LOSS_REASON,
                    loan_id=loan_id,
                )
        else:
            self._apply(status, TrustEvent(TrustEventKind.DAMAGE, severity), loan_id)
        return status

    def _apply(
        self,
        status: StudentBehavioralStatus,
        event: TrustEvent,
        loan_id: Optional[UUID] = None,
    ) -> None:
        previous = status.trust_score
        outcome = apply_event(previous, TrustCounters.from_status(status), event, self.policy)

        status.trust_score = outcome.score
        status.total_loans = outcome.counters.total_loans
        status.on_time_returns = outcome.counters.on_time_returns
        status.late_returns = outcome.counters.late_returns
        status.damages = outcome.counters.damages
        status.losses = outcome.counters.losses
        self.repository.flush()

        self._logger.info(
            f"Trust event {event.kind.value}: {previous} -> {outcome.score}",
            extra={
                "user_id": str(status.user_id),
                "loan_id": str(loan_id) if loan_id else None,
                "delta": outcome.delta,
            },
        )

    def _late_return_count(self, status: StudentBehavioralStatus) -> int:
        window = self.policy.late_return_window_days
        if window <= 0:
            return status.late_returns
        since = self.now() - timedelta(days=window)
        return self.loan_repository.count_late_returns_since(status.user_id, since)

    def _block(
        self,
        status: StudentBehavioralStatus,
        days: int,
        reason: str,
        loan_id: Optional[UUID] = None,
    ) -> None:
        until = self.now() + timedelta(days=days)
        if status.is_blocked:
            # Never shorten an existing block
            if status.blocked_until is not None and until > status.blocked_until:
                status.blocked_until = until
                self.repository.flush()
            return

        status.block(until, reason)
        self.repository.flush()
        self._logger.warning(
            f"Student blocked: {reason}",
            extra={"user_id": str(status.user_id), "loan_id": str(loan_id) if loan_id else None},
        )
        self._emit(
            DomainEvent(
                LoanEvents.STUDENT_BLOCKED,
                entity_type="student",
                entity_id=status.user_id,
                title="Borrowing blocked",
                message=f"Borrowing is blocked until {until:%Y-%m-%d %H:%M} UTC: {reason}.",
                severity=EventSeverity.WARNING,
                user_id=status.user_id,
                data={"blocked_until": until.isoformat(), "reason": reason, "loan_id": str(loan_id) if loan_id else None},
            )
        )

    def _lift_elapsed_block(self, status: StudentBehavioralStatus) -> bool:
        if not status.block_elapsed(self.now()):
            return False
        self._unblock(status, "block period elapsed")
        return True

    def _unblock(self, status: StudentBehavioralStatus, reason: str, actor_id: Optional[UUID] = None) -> None:
        status.unblock()
        self.repository.flush()
        self._logger.info(
            f"Student unblocked: {reason}",
            extra={"user_id": str(status.user_id)},
        )
        self._emit(
            DomainEvent(
                LoanEvents.STUDENT_UNBLOCKED,
                entity_type="student",
                entity_id=status.user_id,
                title="Borrowing unblocked",
                message="You can borrow resources again.",
                user_id=status.user_id,
                data={"reason": reason, "lifted_by": str(actor_id) if actor_id else None},
            )
        )

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def get_status(self, user_id: UUID) -> ServiceResult[StudentBehavioralStatus]:
        """Current status of a student, with any elapsed block lifted."""

        def work() -> StudentBehavioralStatus:
            status = self.get_or_create_status(user_id, lock=True)
            self._lift_elapsed_block(status)
            return status

        return self._execute("get behavioral status", work, entity_ref=user_id)

    def get_summary(self, user_id: UUID) -> ServiceResult[Dict[str, Any]]:
        result = self.get_status(user_id)
        if not result.is_success:
            return result
        status = result.data
        return ServiceResult.success(
            {
                "user_id": str(status.user_id),
                "trust_score": status.trust_score,
                "level": score_level(status.trust_score),
                "is_blocked": status.is_blocked,
                "blocked_until": status.blocked_until.isoformat() if status.blocked_until else None,
                "blocked_reason": status.blocked_reason,
                "counters": asdict(TrustCounters.from_status(status)),
            }
        )

    def lift_block(self, admin_id: UUID, user_id: UUID, reason: Optional[str] = None) -> ServiceResult[StudentBehavioralStatus]:
        """Admin override lifting a block before it elapses."""

        def work() -> StudentBehavioralStatus:
            status = self.get_or_create_status(user_id, lock=True)
            if not status.is_blocked:
                raise ValidationError("Student is not blocked", field_errors={"user_id": ["Not blocked"]})
            self._unblock(status, reason or "lifted by administrator", actor_id=admin_id)
            return status

        return self._execute("lift student block", work, entity_ref=user_id, success_message="Block lifted")

    def block_student(
        self,
        admin_id: UUID,
        user_id: UUID,
        days: Optional[int] = None,
        reason: str = "blocked by administrator",
    ) -> ServiceResult[StudentBehavioralStatus]:
        """Admin block, for ``days`` or the policy's block duration."""

        def work() -> StudentBehavioralStatus:
            if days is not None and days < 1:
                raise ValidationError("Block duration must be at least one day", field_errors={"days": ["Must be >= 1"]})
            status = self.get_or_create_status(user_id, lock=True)
            self._block(status, days=days or self.policy.block_duration_days, reason=reason)
            self._logger.info("Manual block applied", extra={"user_id": str(user_id), "admin_id": str(admin_id)})
            return status

        return self._execute("block student", work, entity_ref=user_id, success_message="Student blocked")

    def recalculate(self, user_id: UUID) -> ServiceResult[StudentBehavioralStatus]:
        """Rebuild the trust score from the student's counters."""

        def work() -> StudentBehavioralStatus:
            status = self.get_or_create_status(user_id, lock=True)
            previous = status.trust_score
            status.trust_score = recalculate_from_counters(TrustCounters.from_status(status), self.policy)
            self.repository.flush()
            self._logger.info(
                f"Trust score recalculated: {previous} -> {status.trust_score}",
                extra={"user_id": str(user_id)},
            )
            return status

        return self._execute("recalculate trust score", work, entity_ref=user_id)

    def list_blocked(self) -> ServiceResult[List[StudentBehavioralStatus]]:
        try:
            return ServiceResult.success(self.repository.find_blocked())
        except Exception as e:
            return self._handle_exception(e, "list blocked students")

    def lift_elapsed_blocks(self) -> ServiceResult[int]:
        """Lift every block whose ``blocked_until`` has passed."""

        def work() -> int:
            lifted = 0
            for status in self.repository.find_elapsed_blocks(self.now()):
                status = self.get_or_create_status(status.user_id, lock=True)
                if self._lift_elapsed_block(status):
                    lifted += 1
            return lifted

        return self._execute("lift elapsed blocks", work)
