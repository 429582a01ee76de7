from wellness_lending.schemas.system.settings import (
    AlertResponse,
    SettingResponse,
    SettingsUpdate,
    SettingUpdate,
    SweepReportResponse,
)

__all__ = [
    "AlertResponse",
    "SettingResponse",
    "SettingUpdate",
    "SettingsUpdate",
    "SweepReportResponse",
]
