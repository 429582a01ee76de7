# --- File: wellness_lending/schemas/loan/loan_request.py ---
"""
Loan request and decision payloads.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from wellness_lending.schemas.common.base import BaseCreateSchema

__all__ = [
    "LoanRequestCreate",
    "LoanApprove",
    "LoanReject",
    "LoanPickup",
    "LoanReturn",
    "PresentialLoanCreate",
]


class LoanRequestCreate(BaseCreateSchema):
    """A student asks to borrow a resource."""

    student_id: UUID = Field(..., description="Requesting student")
    resource_id: UUID = Field(..., description="Requested resource")


class LoanApprove(BaseCreateSchema):
    admin_id: UUID
    notes: Optional[str] = Field(default=None, max_length=2000)


class LoanReject(BaseCreateSchema):
    admin_id: UUID
    reason: str = Field(..., min_length=1, max_length=500, description="Shown to the student")


class LoanPickup(BaseCreateSchema):
    """Pickup at the desk. Without ``due_date`` the category's loan length applies."""

    actor_id: Optional[UUID] = None
    due_date: Optional[datetime] = None


class LoanReturn(BaseCreateSchema):
    actor_id: Optional[UUID] = None


class PresentialLoanCreate(BaseCreateSchema):
    """An admin lends a resource at the desk; the loan starts active."""

    admin_id: UUID
    student_id: UUID
    resource_id: UUID
    due_date: Optional[datetime] = Field(default=None, description="Defaults to the category's loan length")
    notes: Optional[str] = Field(default=None, max_length=2000)
