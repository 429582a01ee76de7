from wellness_lending.repositories.system.system_setting_repository import (
    AlertRepository,
    SystemSettingRepository,
)

__all__ = ["AlertRepository", "SystemSettingRepository"]
