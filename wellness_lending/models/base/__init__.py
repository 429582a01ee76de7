from wellness_lending.models.base.base_model import (
    Base,
    BaseModel,
    TimestampMixin,
    UUIDMixin,
    enum_column,
)
from wellness_lending.models.base.enums import (
    AlertTargetRole,
    DamageRecordStatus,
    DamageSeverity,
    DamageType,
    DecisionSource,
    LoanStatus,
    QueueStatus,
    ResourceStatus,
    SettingCategory,
    WellnessSourceType,
)

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "enum_column",
    "AlertTargetRole",
    "DamageRecordStatus",
    "DamageSeverity",
    "DamageType",
    "DecisionSource",
    "LoanStatus",
    "QueueStatus",
    "ResourceStatus",
    "SettingCategory",
    "WellnessSourceType",
]
