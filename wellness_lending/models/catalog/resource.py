"""
Lendable resource model.
"""

from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wellness_lending.models.base import BaseModel, ResourceStatus, enum_column

if TYPE_CHECKING:
    from wellness_lending.models.catalog.resource_category import ResourceCategory

__all__ = ["Resource", "LENDABLE_RESOURCE_STATUSES"]

# Statuses a freed resource may be handed back from
LENDABLE_RESOURCE_STATUSES = frozenset({ResourceStatus.AVAILABLE})


class Resource(BaseModel):
    """
    A physical item students can borrow.

    ``status`` is the primary contended field: every change goes through the
    ORM so the ``version`` check rejects concurrent writers.
    """

    __tablename__ = "resources"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    category_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("resource_categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    status: Mapped[ResourceStatus] = mapped_column(
        enum_column(ResourceStatus),
        nullable=False,
        default=ResourceStatus.AVAILABLE,
        index=True,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, comment="Optimistic lock counter")

    category: Mapped[Optional["ResourceCategory"]] = relationship(
        "ResourceCategory",
        back_populates="resources",
        lazy="select",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_available(self) -> bool:
        return self.status in LENDABLE_RESOURCE_STATUSES

    def __repr__(self) -> str:
        return f"<Resource(id={self.id}, name={self.name}, status={self.status})>"
