"""
Damage record model.
"""

from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, Numeric, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wellness_lending.models.base import (
    BaseModel,
    DamageRecordStatus,
    DamageSeverity,
    DamageType,
    enum_column,
)

if TYPE_CHECKING:
    from wellness_lending.models.loan.loan import Loan

__all__ = ["DamageRecord"]


class DamageRecord(BaseModel):
    """
    Incident reported by an admin against a loan.

    Only ``status`` changes once the record is reviewed. ``damage_images``
    holds opaque image references; nothing is uploaded here.
    """

    __tablename__ = "resource_damages"

    loan_id: Mapped[UUID] = mapped_column(
        ForeignKey("loans.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        comment="One incident per loan",
    )
    resource_id: Mapped[UUID] = mapped_column(
        ForeignKey("resources.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    damage_type: Mapped[DamageType] = mapped_column(enum_column(DamageType), nullable=False)
    severity: Mapped[DamageSeverity] = mapped_column(enum_column(DamageSeverity), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    damage_images: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    estimated_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    fine_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Computed fine charged to the student",
    )

    reported_by: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    status: Mapped[DamageRecordStatus] = mapped_column(
        enum_column(DamageRecordStatus),
        nullable=False,
        default=DamageRecordStatus.REVIEWED,
    )

    loan: Mapped["Loan"] = relationship("Loan", back_populates="damage_record")

    __table_args__ = (
        Index("ix_damage_user_type", "user_id", "damage_type"),
        CheckConstraint("fine_amount >= 0", name="ck_damage_fine_positive"),
        CheckConstraint(
            "estimated_cost IS NULL OR estimated_cost >= 0",
            name="ck_damage_estimated_cost_positive",
        ),
        {"comment": "Damage, loss and theft incidents"},
    )

    def __repr__(self) -> str:
        return f"<DamageRecord(loan_id={self.loan_id}, type={self.damage_type}, severity={self.severity})>"
