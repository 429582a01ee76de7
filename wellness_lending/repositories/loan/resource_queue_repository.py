"""
Resource queue repository.

Keeps ``position`` among waiting entries of a resource contiguous from 1.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, case, select
from sqlalchemy.orm import Session

from wellness_lending.core.exceptions import QueueEntryNotFoundError
from wellness_lending.models.base import QueueStatus
from wellness_lending.models.loan import ACTIVE_QUEUE_STATUSES, QueueEntry
from wellness_lending.repositories.base import BaseRepository


class ResourceQueueRepository(BaseRepository[QueueEntry]):
    """
    Repository for resource queue operations.

    Provides:
    - Entry lookup per (resource, student)
    - FIFO head selection
    - Notification window tracking
    - Position renumbering after removals
    """

    def __init__(self, session: Session):
        super().__init__(QueueEntry, session)

    def get_or_raise(self, entry_id: UUID, lock: bool = False) -> QueueEntry:
        entry = self.get_for_update(entry_id) if lock else self.get_by_id(entry_id)
        if entry is None:
            raise QueueEntryNotFoundError(entry_id)
        return entry

    def find_active_entry(self, resource_id: UUID, user_id: UUID) -> Optional[QueueEntry]:
        query = select(QueueEntry).where(
            and_(
                QueueEntry.resource_id == resource_id,
                QueueEntry.user_id == user_id,
                QueueEntry.status.in_(ACTIVE_QUEUE_STATUSES),
            )
        )
        return self.session.execute(query).scalars().first()

    def count_waiting(self, resource_id: UUID) -> int:
        return self.count(
            QueueEntry.resource_id == resource_id,
            QueueEntry.status == QueueStatus.WAITING,
        )

    def find_waiting(self, resource_id: UUID) -> List[QueueEntry]:
        """Waiting entries of a resource in queue order."""
        query = select(QueueEntry).where(
            and_(
                QueueEntry.resource_id == resource_id,
                QueueEntry.status == QueueStatus.WAITING,
            )
        ).order_by(QueueEntry.position.asc(), QueueEntry.requested_at.asc())
        return list(self.session.execute(query).scalars().all())

    def get_next_in_line(self, resource_id: UUID) -> Optional[QueueEntry]:
        query = select(QueueEntry).where(
            and_(
                QueueEntry.resource_id == resource_id,
                QueueEntry.status == QueueStatus.WAITING,
            )
        ).order_by(QueueEntry.position.asc(), QueueEntry.requested_at.asc()).limit(1)
        return self.session.execute(query).scalar_one_or_none()

    def find_notified(self, resource_id: UUID) -> Optional[QueueEntry]:
        """The entry currently holding the resource's notification window."""
        query = select(QueueEntry).where(
            and_(
                QueueEntry.resource_id == resource_id,
                QueueEntry.status == QueueStatus.NOTIFIED,
            )
        )
        return self.session.execute(query).scalars().first()

    def find_lapsed_notifications(self, now: datetime) -> List[QueueEntry]:
        query = select(QueueEntry).where(
            and_(
                QueueEntry.status == QueueStatus.NOTIFIED,
                QueueEntry.expires_at.isnot(None),
                QueueEntry.expires_at < now,
            )
        ).order_by(QueueEntry.expires_at.asc())
        return list(self.session.execute(query).scalars().all())

    def list_active(self, resource_id: UUID) -> List[QueueEntry]:
        """Notified entry first, then waiting entries by position."""
        query = select(QueueEntry).where(
            and_(
                QueueEntry.resource_id == resource_id,
                QueueEntry.status.in_(ACTIVE_QUEUE_STATUSES),
            )
        ).order_by(
            case((QueueEntry.status == QueueStatus.NOTIFIED, 0), else_=1),
            QueueEntry.position.asc(),
        )
        return list(self.session.execute(query).scalars().all())

    def find_by_user(self, user_id: UUID, active_only: bool = True) -> List[QueueEntry]:
        query = select(QueueEntry).where(QueueEntry.user_id == user_id)
        if active_only:
            query = query.where(QueueEntry.status.in_(ACTIVE_QUEUE_STATUSES))
        query = query.order_by(QueueEntry.requested_at.desc())
        return list(self.session.execute(query).scalars().all())

    def reorder_positions(self, resource_id: UUID) -> None:
        """Renumber waiting entries 1..n after an entry leaves the line."""
        self.flush()
        for index, entry in enumerate(self.find_waiting(resource_id), start=1):
            if entry.position != index:
                entry.position = index
        self.flush()
