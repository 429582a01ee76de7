"""
Resource category model.

A category carries the lending policy attributes shared by a class of
resources: wellness hours earned, risk flags, loan length and the
replacement cost used to compute damage fines.
"""

from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, CheckConstraint, Float, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wellness_lending.models.base import BaseModel

if TYPE_CHECKING:
    from wellness_lending.models.catalog.resource import Resource

__all__ = ["ResourceCategory"]


class ResourceCategory(BaseModel):
    """
    Policy attributes attached to a class of resources.

    Attributes:
        name: Display name
        base_wellness_hours: Hours awarded for any completed loan
        hourly_factor: Extra hours per hour of use
        is_low_risk: Eligible for automatic approval
        requires_approval: Always routed to human review
        max_loan_days: Loan length; falls back to the default_loan_days policy
        max_per_student: Concurrent live loans allowed per student in this category
        replacement_cost: Cost basis for damage and loss fines
    """

    __tablename__ = "resource_categories"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    base_wellness_hours: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=1.0,
        comment="Wellness hours awarded per completed loan",
    )
    hourly_factor: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment="Additional wellness hours per hour of use",
    )
    is_low_risk: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    max_loan_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_per_student: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    replacement_cost: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Replacement value used to compute fines",
    )

    resources: Mapped[List["Resource"]] = relationship(
        "Resource",
        back_populates="category",
        lazy="select",
    )

    __table_args__ = (
        CheckConstraint("base_wellness_hours >= 0", name="ck_category_base_hours_positive"),
        CheckConstraint("hourly_factor >= 0", name="ck_category_hourly_factor_positive"),
        CheckConstraint("max_loan_days IS NULL OR max_loan_days >= 1", name="ck_category_max_loan_days"),
        CheckConstraint("max_per_student IS NULL OR max_per_student >= 1", name="ck_category_max_per_student"),
    )

    def __repr__(self) -> str:
        return f"<ResourceCategory(id={self.id}, name={self.name}, low_risk={self.is_low_risk})>"
