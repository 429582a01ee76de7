"""
System settings and alert repositories.
"""

from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from wellness_lending.models.base import AlertTargetRole, SettingCategory
from wellness_lending.models.system import Alert, SystemSetting
from wellness_lending.repositories.base import BaseRepository


class SystemSettingRepository(BaseRepository[SystemSetting]):
    """Repository for the flat policy key/value store."""

    def __init__(self, session: Session):
        super().__init__(SystemSetting, session)

    def get_by_key(self, key: str) -> Optional[SystemSetting]:
        query = select(SystemSetting).where(SystemSetting.key == key)
        return self.session.execute(query).scalar_one_or_none()

    def list_all(self, category: Optional[SettingCategory] = None) -> List[SystemSetting]:
        query = select(SystemSetting)
        if category is not None:
            query = query.where(SystemSetting.category == category)
        query = query.order_by(SystemSetting.category.asc(), SystemSetting.key.asc())
        return list(self.session.execute(query).scalars().all())

    def upsert(
        self,
        key: str,
        value: Any,
        category: SettingCategory,
        description: Optional[str] = None,
    ) -> SystemSetting:
        """Insert or update a setting by key."""
        setting = self.get_by_key(key)
        if setting is None:
            setting = SystemSetting(key=key, value=value, category=category, description=description)
            return self.add(setting)

        setting.value = value
        setting.category = category
        if description is not None:
            setting.description = description
        self.flush()
        return setting


class AlertRepository(BaseRepository[Alert]):
    """Repository for persisted alerts."""

    def __init__(self, session: Session):
        super().__init__(Alert, session)

    def find_for_admins(self, unread_only: bool = False) -> List[Alert]:
        query = select(Alert).where(Alert.target_role == AlertTargetRole.ADMIN)
        if unread_only:
            query = query.where(Alert.is_read.is_(False))
        return list(self.session.execute(query.order_by(Alert.created_at.desc())).scalars().all())

    def find_for_user(self, user_id: UUID, unread_only: bool = False) -> List[Alert]:
        query = select(Alert).where(
            and_(
                Alert.target_role == AlertTargetRole.STUDENT,
                Alert.target_user_id == user_id,
            )
        )
        if unread_only:
            query = query.where(Alert.is_read.is_(False))
        return list(self.session.execute(query.order_by(Alert.created_at.desc())).scalars().all())
