# --- File: wellness_lending/schemas/damage/damage_report.py ---
"""
Damage, loss and theft report schemas.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from wellness_lending.models.base import DamageRecordStatus, DamageSeverity, DamageType
from wellness_lending.schemas.common.base import BaseCreateSchema, BaseResponseSchema, BaseSchema

__all__ = [
    "DamageReportCreate",
    "DamageRecordResponse",
    "DamageStatusUpdate",
    "FineQuoteRequest",
    "FineQuoteResponse",
]


class DamageReportCreate(BaseCreateSchema):
    """
    Incident reported by an administrator against an active or overdue loan.

    ``images`` holds references to already uploaded pictures.
    """

    admin_id: UUID
    damage_type: DamageType
    severity: DamageSeverity
    description: str = Field(..., description="What happened")
    images: List[str] = Field(default_factory=list)
    estimated_cost: Optional[Decimal] = Field(default=None, description="Repair estimate")


class DamageStatusUpdate(BaseCreateSchema):
    admin_id: UUID
    status: DamageRecordStatus


class FineQuoteRequest(BaseCreateSchema):
    resource_id: UUID
    damage_type: DamageType
    severity: DamageSeverity


class FineQuoteResponse(BaseSchema):
    resource_id: UUID
    damage_type: DamageType
    severity: DamageSeverity
    fine_amount: Decimal


class DamageRecordResponse(BaseResponseSchema):
    loan_id: UUID
    resource_id: UUID
    user_id: UUID
    damage_type: DamageType
    severity: DamageSeverity
    description: str
    damage_images: List[str] = Field(default_factory=list)
    estimated_cost: Optional[Decimal] = None
    fine_amount: Decimal
    reported_by: UUID
    status: DamageRecordStatus
