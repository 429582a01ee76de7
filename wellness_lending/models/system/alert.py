# wellness_lending/models/system/alert.py
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from wellness_lending.models.base import AlertTargetRole, BaseModel, enum_column


class Alert(BaseModel):
    """In-app alert surfaced to admins or to a single student."""
    __tablename__ = "alerts"

    type: Mapped[str] = mapped_column(String(50), index=True)
    severity: Mapped[str] = mapped_column(String(20), default="info")
    title: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(Text)

    entity_type: Mapped[Optional[str]] = mapped_column(String(50))
    entity_id: Mapped[Optional[UUID]] = mapped_column(Uuid)

    target_role: Mapped[AlertTargetRole] = mapped_column(
        enum_column(AlertTargetRole),
        default=AlertTargetRole.ADMIN,
    )
    target_user_id: Mapped[Optional[UUID]] = mapped_column(Uuid, index=True)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        Index("ix_alert_role_read", "target_role", "is_read"),
    )
