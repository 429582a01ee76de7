"""
Wellness hours ledger.

A completed loan earns ``base_wellness_hours + hours_used * hourly_factor``
from its category, capped at ``max_hours_per_loan``. Late returns, damage
and loss book negative entries of the matching penalty hours.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from wellness_lending.core.utils import Clock, DateTimeUtils, NumberUtils, utcnow
from wellness_lending.models.base import WellnessSourceType
from wellness_lending.models.catalog import ResourceCategory
from wellness_lending.models.loan import Loan
from wellness_lending.models.student import WellnessHoursEntry
from wellness_lending.repositories.student import WellnessHoursRepository
from wellness_lending.services.base import BaseService, EventDispatcher, ServiceResult
from wellness_lending.services.settings import PolicySettings, PolicySettingsService


def loan_hours(
    category: Optional[ResourceCategory],
    delivered_at: Optional[datetime],
    returned_at: datetime,
    policy: PolicySettings,
) -> float:
    """Hours earned for one returned loan."""
    if category is not None:
        base, factor = category.base_wellness_hours, category.hourly_factor
    else:
        base, factor = policy.base_hours_per_loan, 0.0

    hours_used = DateTimeUtils.hours_between(delivered_at, returned_at) if delivered_at else 0.0
    hours = min(base + hours_used * factor, policy.max_hours_per_loan)
    return NumberUtils.round_hours(hours, half_hour=policy.round_to_half_hour)


class WellnessHoursService(BaseService[WellnessHoursEntry, WellnessHoursRepository]):
    """Credits and penalties of wellness hours."""

    def __init__(
        self,
        repository: WellnessHoursRepository,
        db_session: Session,
        settings_service: PolicySettingsService,
        dispatcher: Optional[EventDispatcher] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(repository, db_session, dispatcher, clock)
        self.settings_service = settings_service

    @property
    def policy(self) -> PolicySettings:
        return self.settings_service.policy

    # -------------------------------------------------------------------------
    # In-transaction operations
    # -------------------------------------------------------------------------

    def award_for_return(self, loan: Loan, actor_id: Optional[UUID] = None) -> List[WellnessHoursEntry]:
        """Credit hours for a returned loan, plus the late penalty if it was late."""
        category = loan.resource.category if loan.resource else None
        hours = loan_hours(category, loan.delivered_at, loan.returned_at, self.policy)
        entries = [
            self._book(loan.user_id, hours, "Loan completed", loan.id, actor_id),
        ]
        if loan.due_date is not None and loan.returned_at > loan.due_date:
            entries.append(
                self._book(
                    loan.user_id,
                    -self.policy.late_return_penalty_hours,
                    "Late return penalty",
                    loan.id,
                    actor_id,
                )
            )
        return entries

    def book_incident_penalty(self, loan: Loan, is_loss: bool, actor_id: Optional[UUID] = None) -> WellnessHoursEntry:
        if is_loss:
            return self._book(loan.user_id, -self.policy.loss_penalty_hours, "Loss penalty", loan.id, actor_id)
        return self._book(loan.user_id, -self.policy.damage_penalty_hours, "Damage penalty", loan.id, actor_id)

    def _book(
        self,
        user_id: UUID,
        hours: float,
        description: str,
        loan_id: Optional[UUID],
        actor_id: Optional[UUID],
    ) -> WellnessHoursEntry:
        entry = WellnessHoursEntry(
            user_id=user_id,
            hours=hours,
            source_type=WellnessSourceType.LOAN,
            source_id=loan_id,
            description=description,
            awarded_by=actor_id,
            awarded_at=self.now(),
        )
        self.repository.add(entry)
        self._logger.info(
            f"Wellness hours booked: {hours:+.1f} ({description})",
            extra={"user_id": str(user_id), "loan_id": str(loan_id) if loan_id else None},
        )
        return entry

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def get_summary(self, user_id: UUID) -> ServiceResult[Dict[str, Any]]:
        try:
            entries = self.repository.find_by_user(user_id)
            return ServiceResult.success(
                {
                    "user_id": str(user_id),
                    "balance": self.repository.get_balance(user_id),
                    "earned": sum(e.hours for e in entries if e.hours > 0),
                    "penalties": sum(e.hours for e in entries if e.hours < 0),
                    "entries": len(entries),
                }
            )
        except Exception as e:
            return self._handle_exception(e, "get wellness hours summary", user_id)

    def list_entries(self, user_id: UUID) -> ServiceResult[List[WellnessHoursEntry]]:
        try:
            return ServiceResult.success(self.repository.find_by_user(user_id))
        except Exception as e:
            return self._handle_exception(e, "list wellness hours", user_id)
