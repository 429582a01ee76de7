# wellness_lending/models/system/system_setting.py
from typing import Any, Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from wellness_lending.models.base import BaseModel, SettingCategory, enum_column


class SystemSetting(BaseModel):
    """
    Flat key/value lending policy knob.

    ``value`` is stored as JSON so numbers and booleans round-trip unchanged.
    """
    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    category: Mapped[SettingCategory] = mapped_column(
        enum_column(SettingCategory),
        default=SettingCategory.LOANS,
        index=True,
    )
    description: Mapped[Optional[str]] = mapped_column(String(500))

    def __repr__(self) -> str:
        return f"<SystemSetting(key={self.key}, value={self.value!r})>"
