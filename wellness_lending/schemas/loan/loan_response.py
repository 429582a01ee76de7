# --- File: wellness_lending/schemas/loan/loan_response.py ---
"""
Loan response schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from wellness_lending.models.base import DecisionSource, LoanStatus
from wellness_lending.schemas.common.base import BaseResponseSchema, BaseSchema
from wellness_lending.schemas.queue.queue_entry import QueueEntryResponse

__all__ = [
    "LoanResponse",
    "LoanStatusHistoryResponse",
    "LoanRequestOutcomeResponse",
]


class LoanResponse(BaseResponseSchema):
    resource_id: UUID
    user_id: UUID
    status: LoanStatus
    decision_source: DecisionSource
    requested_at: datetime
    approved_at: Optional[datetime] = None
    approved_by: Optional[UUID] = None
    delivered_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    pickup_deadline: Optional[datetime] = None
    trust_score_at_request: int
    admin_notes: Optional[str] = None
    damage_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    queue_entry_id: Optional[UUID] = None


class LoanStatusHistoryResponse(BaseSchema):
    from_status: Optional[LoanStatus] = None
    to_status: LoanStatus
    changed_by: Optional[UUID] = None
    reason: Optional[str] = None
    changed_at: datetime
    sequence: int


class LoanRequestOutcomeResponse(BaseSchema):
    """Either a loan (approved or pending) or a queue entry."""

    kind: str
    loan: Optional[LoanResponse] = None
    queue_entry: Optional[QueueEntryResponse] = None
