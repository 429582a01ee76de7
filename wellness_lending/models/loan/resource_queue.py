"""
Resource queue model.

FIFO waiting list for resources that are not available when requested.
"""

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from wellness_lending.core.exceptions import InvalidTransitionError
from wellness_lending.models.base import BaseModel, QueueStatus, enum_column

if TYPE_CHECKING:
    from wellness_lending.models.catalog.resource import Resource

__all__ = ["QueueEntry", "ACTIVE_QUEUE_STATUSES"]

ACTIVE_QUEUE_STATUSES = frozenset({QueueStatus.WAITING, QueueStatus.NOTIFIED})

_ACTIVE_QUEUE_SQL = "status IN ('waiting', 'notified')"


class QueueEntry(BaseModel):
    """
    Waiting list entry for an unavailable resource.

    Attributes:
        resource_id: Requested resource
        user_id: Waiting student
        position: Place in line among waiting entries (1 = next)
        status: Current queue status
        requested_at: When the student joined the queue
        notified_at: When the student was told the resource is free
        expires_at: End of the response window after notification
        converted_loan_id: Loan created from this entry
    """

    __tablename__ = "resource_queue"

    resource_id: Mapped[UUID] = mapped_column(
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Position in queue (1 = first in line)",
    )
    status: Mapped[QueueStatus] = mapped_column(
        enum_column(QueueStatus),
        nullable=False,
        default=QueueStatus.WAITING,
        index=True,
    )

    requested_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    converted_loan_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, comment="Optimistic lock counter")

    resource: Mapped["Resource"] = relationship("Resource", lazy="select")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_queue_resource_status_position", "resource_id", "status", "position"),
        Index(
            "uq_queue_active_user_resource",
            "resource_id",
            "user_id",
            unique=True,
            sqlite_where=text(_ACTIVE_QUEUE_SQL),
            postgresql_where=text(_ACTIVE_QUEUE_SQL),
        ),
        CheckConstraint("position >= 0", name="ck_queue_position_positive"),
        {"comment": "Waiting list entries for unavailable resources"},
    )

    @validates("position")
    def validate_position(self, key: str, value: int) -> int:
        """Validate position is not negative."""
        if value < 0:
            raise ValueError("Position must not be negative")
        return value

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_QUEUE_STATUSES

    def window_elapsed(self, now: datetime) -> bool:
        """Check if the notification window has lapsed."""
        return (
            self.status == QueueStatus.NOTIFIED
            and self.expires_at is not None
            and now > self.expires_at
        )

    def notify(self, now: datetime, response_minutes: int) -> None:
        """
        Hand the freed resource to this entry.

        Args:
            now: Notification time
            response_minutes: Length of the response window
        """
        if self.status != QueueStatus.WAITING:
            raise InvalidTransitionError("Queue entry", self.id, self.status.value, QueueStatus.NOTIFIED.value)
        self.status = QueueStatus.NOTIFIED
        self.notified_at = now
        self.expires_at = now + timedelta(minutes=response_minutes)
        # Notified entries leave the numbered waiting line
        self.position = 0

    def mark_expired(self) -> None:
        """Mark queue entry as expired."""
        self.status = QueueStatus.EXPIRED

    def convert_to_loan(self, loan_id: UUID) -> None:
        if self.status != QueueStatus.NOTIFIED:
            raise InvalidTransitionError("Queue entry", self.id, self.status.value, QueueStatus.CONVERTED.value)
        self.status = QueueStatus.CONVERTED
        self.converted_loan_id = loan_id

    def cancel(self) -> None:
        if not self.is_active:
            raise InvalidTransitionError("Queue entry", self.id, self.status.value, QueueStatus.CANCELLED.value)
        self.status = QueueStatus.CANCELLED
        self.position = 0

    def __repr__(self) -> str:
        return (
            f"<QueueEntry(resource_id={self.resource_id}, user_id={self.user_id}, "
            f"position={self.position}, status={self.status})>"
        )
