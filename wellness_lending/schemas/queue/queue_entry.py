# --- File: wellness_lending/schemas/queue/queue_entry.py ---
"""
Waiting list schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from wellness_lending.models.base import QueueStatus
from wellness_lending.schemas.common.base import BaseCreateSchema, BaseResponseSchema

__all__ = ["QueueEnqueue", "QueueAction", "QueueEntryResponse"]


class QueueEnqueue(BaseCreateSchema):
    user_id: UUID
    resource_id: UUID


class QueueAction(BaseCreateSchema):
    """Convert or cancel; only the entry's own student may do either."""

    user_id: UUID


class QueueEntryResponse(BaseResponseSchema):
    resource_id: UUID
    user_id: UUID
    position: int
    status: QueueStatus
    requested_at: datetime
    notified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    converted_loan_id: Optional[UUID] = None
