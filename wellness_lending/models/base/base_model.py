"""
Base model configuration for SQLAlchemy ORM.

Provides the declarative base and the mixins shared by every lending
table: UUID primary keys and timestamps.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Enum as SQLEnum, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Root SQLAlchemy base class."""
    pass


def enum_column(enum_cls: Type[Enum], length: int = 20) -> SQLEnum:
    """
    Store an enum by its value as a plain VARCHAR.

    Values (not member names) are persisted so raw SQL such as partial index
    predicates can use the lowercase status strings.
    """
    return SQLEnum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        validate_strings=True,
        length=length,
    )


class UUIDMixin:
    """
    Mixin for UUID primary key.
    """

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        comment="Unique identifier (UUID v4)",
    )


class TimestampMixin:
    """
    Mixin for automatic timestamp tracking.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        comment="Record creation timestamp (UTC)",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Record last update timestamp (UTC)",
    )


class BaseModel(UUIDMixin, TimestampMixin, Base):
    """
    Abstract base model with common fields and methods.
    """

    __abstract__ = True

    def to_dict(self, exclude: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Convert model instance to dictionary.

        Args:
            exclude: List of field names to exclude

        Returns:
            Dictionary representation of the model
        """
        exclude = exclude or []
        result: Dict[str, Any] = {}
        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.key)
            if isinstance(value, datetime):
                result[column.name] = value.isoformat()
            elif isinstance(value, UUID):
                result[column.name] = str(value)
            elif isinstance(value, Enum):
                result[column.name] = value.value
            else:
                result[column.name] = value
        return result
