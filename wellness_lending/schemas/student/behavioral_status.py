# --- File: wellness_lending/schemas/student/behavioral_status.py ---
"""
Student trust score, sanctions and wellness hours schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

from pydantic import Field

from wellness_lending.models.base import WellnessSourceType
from wellness_lending.schemas.common.base import BaseCreateSchema, BaseResponseSchema, BaseSchema

__all__ = [
    "BehavioralStatusResponse",
    "TrustSummaryResponse",
    "BlockRequest",
    "LiftBlockRequest",
    "WellnessEntryResponse",
    "WellnessSummaryResponse",
]


class BehavioralStatusResponse(BaseSchema):
    user_id: UUID
    trust_score: int
    total_loans: int
    on_time_returns: int
    late_returns: int
    damages: int
    losses: int
    events_attended: int
    is_blocked: bool
    blocked_until: Optional[datetime] = None
    blocked_reason: Optional[str] = None


class TrustSummaryResponse(BaseSchema):
    user_id: UUID
    trust_score: int
    level: str
    is_blocked: bool
    blocked_until: Optional[datetime] = None
    blocked_reason: Optional[str] = None
    counters: Dict[str, int]


class BlockRequest(BaseCreateSchema):
    admin_id: UUID
    days: Optional[int] = Field(default=None, ge=1, le=365)
    reason: str = Field(default="blocked by administrator", min_length=1, max_length=255)


class LiftBlockRequest(BaseCreateSchema):
    admin_id: UUID
    reason: Optional[str] = Field(default=None, max_length=255)


class WellnessEntryResponse(BaseResponseSchema):
    user_id: UUID
    hours: float
    source_type: WellnessSourceType
    source_id: Optional[UUID] = None
    description: Optional[str] = None
    awarded_by: Optional[UUID] = None
    awarded_at: datetime


class WellnessSummaryResponse(BaseSchema):
    user_id: UUID
    balance: float
    earned: float
    penalties: float
    entries: int
