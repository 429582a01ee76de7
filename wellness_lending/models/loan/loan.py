"""
Loan models.

This module defines the loan entity, the transition table that governs its
lifecycle and the status history kept as an audit trail of every change.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Dict, FrozenSet, List, Optional
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wellness_lending.core.exceptions import InvalidTransitionError
from wellness_lending.core.utils import DateTimeUtils
from wellness_lending.models.base import (
    Base,
    BaseModel,
    DecisionSource,
    LoanStatus,
    UUIDMixin,
    enum_column,
)

if TYPE_CHECKING:
    from wellness_lending.models.catalog.resource import Resource
    from wellness_lending.models.loan.resource_damage import DamageRecord

__all__ = [
    "Loan",
    "LoanStatusHistory",
    "LOAN_TRANSITIONS",
    "LIVE_LOAN_STATUSES",
    "TERMINAL_LOAN_STATUSES",
]


LOAN_TRANSITIONS: Dict[LoanStatus, FrozenSet[LoanStatus]] = {
    LoanStatus.PENDING: frozenset({LoanStatus.APPROVED, LoanStatus.REJECTED}),
    LoanStatus.APPROVED: frozenset({LoanStatus.ACTIVE, LoanStatus.EXPIRED}),
    LoanStatus.ACTIVE: frozenset(
        {LoanStatus.RETURNED, LoanStatus.OVERDUE, LoanStatus.DAMAGED, LoanStatus.LOST}
    ),
    LoanStatus.OVERDUE: frozenset({LoanStatus.RETURNED, LoanStatus.DAMAGED, LoanStatus.LOST}),
}

# A resource holds at most one loan in these statuses
LIVE_LOAN_STATUSES: FrozenSet[LoanStatus] = frozenset(
    {LoanStatus.PENDING, LoanStatus.APPROVED, LoanStatus.ACTIVE, LoanStatus.OVERDUE}
)

TERMINAL_LOAN_STATUSES: FrozenSet[LoanStatus] = frozenset(
    {
        LoanStatus.RETURNED,
        LoanStatus.REJECTED,
        LoanStatus.EXPIRED,
        LoanStatus.LOST,
        LoanStatus.DAMAGED,
    }
)

_LIVE_STATUS_SQL = "status IN ('pending', 'approved', 'active', 'overdue')"


class Loan(BaseModel):
    """
    A student's loan of a single resource.

    Attributes:
        resource_id: Borrowed resource
        user_id: Borrowing student
        status: Current lifecycle status
        decision_source: Whether the request was approved automatically or by an admin
        requested_at: When the request was filed
        approved_at: When the request was approved
        approved_by: Admin who approved (NULL for automatic approval)
        delivered_at: When the student picked the resource up
        due_date: When the resource must be returned
        returned_at: When the resource came back
        pickup_deadline: Latest pickup time for an approved loan
        trust_score_at_request: Student trust score when the request was filed
        admin_notes: Notes entered at approval
        damage_notes: Incident summary written by the adjudicator
        rejection_reason: Reason given on rejection or automatic expiry
        queue_entry_id: Queue entry the loan was converted from
    """

    __tablename__ = "loans"

    resource_id: Mapped[UUID] = mapped_column(
        ForeignKey("resources.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Borrowed resource",
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        nullable=False,
        index=True,
        comment="Borrowing student",
    )

    status: Mapped[LoanStatus] = mapped_column(
        enum_column(LoanStatus),
        nullable=False,
        default=LoanStatus.PENDING,
        index=True,
    )
    decision_source: Mapped[DecisionSource] = mapped_column(
        enum_column(DecisionSource),
        nullable=False,
        default=DecisionSource.HUMAN,
    )

    requested_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    approved_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    returned_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    pickup_deadline: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    trust_score_at_request: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Snapshot of the student's trust score at request time",
    )

    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    damage_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    queue_entry_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, comment="Optimistic lock counter")

    # Relationships
    resource: Mapped["Resource"] = relationship("Resource", lazy="select")

    status_history: Mapped[List["LoanStatusHistory"]] = relationship(
        "LoanStatusHistory",
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="LoanStatusHistory.sequence",
        lazy="select",
    )

    damage_record: Mapped[Optional["DamageRecord"]] = relationship(
        "DamageRecord",
        back_populates="loan",
        uselist=False,
        lazy="select",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_loan_user_status", "user_id", "status"),
        Index("ix_loan_status_requested", "status", "requested_at"),
        Index(
            "uq_loan_live_resource",
            "resource_id",
            unique=True,
            sqlite_where=text(_LIVE_STATUS_SQL),
            postgresql_where=text(_LIVE_STATUS_SQL),
        ),
        CheckConstraint(
            "trust_score_at_request >= 0",
            name="ck_loan_trust_snapshot_positive",
        ),
        {"comment": "Resource loans and their lifecycle state"},
    )

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_LOAN_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_LOAN_STATUSES

    def can_transition_to(self, new_status: LoanStatus) -> bool:
        return new_status in LOAN_TRANSITIONS.get(self.status, frozenset())

    def transition_to(
        self,
        new_status: LoanStatus,
        changed_by: Optional[UUID] = None,
        reason: Optional[str] = None,
        changed_at: Optional[datetime] = None,
    ) -> "LoanStatusHistory":
        """
        Move the loan to ``new_status`` and record the change.

        Raises:
            InvalidTransitionError: If the edge is not in ``LOAN_TRANSITIONS``
        """
        if not self.can_transition_to(new_status):
            raise InvalidTransitionError("Loan", self.id, self.status.value, new_status.value)

        history = LoanStatusHistory(
            from_status=self.status,
            to_status=new_status,
            changed_by=changed_by,
            reason=reason,
            changed_at=changed_at or DateTimeUtils.now_utc(),
            sequence=len(self.status_history) + 1,
        )
        self.status = new_status
        self.status_history.append(history)
        return history

    def __repr__(self) -> str:
        return f"<Loan(id={self.id}, resource_id={self.resource_id}, status={self.status})>"


class LoanStatusHistory(UUIDMixin, Base):
    """
    Loan status change history for audit trail.

    ``from_status`` is NULL for the row written when the loan is created.
    """

    __tablename__ = "loan_status_history"

    loan_id: Mapped[UUID] = mapped_column(
        ForeignKey("loans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status: Mapped[Optional[LoanStatus]] = mapped_column(
        enum_column(LoanStatus),
        nullable=True,
        comment="Previous status (NULL for initial status)",
    )
    to_status: Mapped[LoanStatus] = mapped_column(enum_column(LoanStatus), nullable=False)
    changed_by: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        nullable=True,
        comment="Actor who changed the status (NULL for time-driven changes)",
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=1, comment="Position in the loan's history")

    loan: Mapped["Loan"] = relationship("Loan", back_populates="status_history")

    __table_args__ = (
        Index("ix_loan_history_loan_changed", "loan_id", "changed_at"),
        {"comment": "Loan status change audit trail"},
    )

    def __repr__(self) -> str:
        return (
            f"<LoanStatusHistory(loan_id={self.loan_id}, "
            f"{self.from_status} -> {self.to_status})>"
        )
