# --- File: wellness_lending/schemas/system/settings.py ---
"""
Policy settings, alert and sweep schemas.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field

from wellness_lending.models.base import AlertTargetRole
from wellness_lending.schemas.common.base import BaseCreateSchema, BaseResponseSchema, BaseSchema

__all__ = [
    "SettingUpdate",
    "SettingsUpdate",
    "SettingResponse",
    "AlertResponse",
    "SweepReportResponse",
]


class SettingUpdate(BaseCreateSchema):
    """Value for one key; legacy key names are accepted."""

    value: Any
    actor_id: Optional[UUID] = None


class SettingsUpdate(BaseCreateSchema):
    values: Dict[str, Any] = Field(..., min_length=1)
    actor_id: Optional[UUID] = None


class SettingResponse(BaseSchema):
    key: str
    value: Any
    category: str
    description: str
    is_stored: bool


class AlertResponse(BaseResponseSchema):
    type: str
    severity: str
    title: str
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[UUID] = None
    target_role: AlertTargetRole
    target_user_id: Optional[UUID] = None
    is_read: bool


class SweepReportResponse(BaseSchema):
    expired: int
    rejected: int
    overdue: int
    queue_expired: int
    unblocked: int
    failed: List[str] = Field(default_factory=list)
