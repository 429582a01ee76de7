"""
SQLAlchemy models for the wellness lending system.

Importing this package registers every mapper on ``Base.metadata``.
"""

from wellness_lending.models.base import Base, BaseModel
from wellness_lending.models.catalog import Resource, ResourceCategory
from wellness_lending.models.loan import DamageRecord, Loan, LoanStatusHistory, QueueEntry
from wellness_lending.models.student import StudentBehavioralStatus, WellnessHoursEntry
from wellness_lending.models.system import Alert, SystemSetting

__all__ = [
    "Base",
    "BaseModel",
    "Resource",
    "ResourceCategory",
    "Loan",
    "LoanStatusHistory",
    "QueueEntry",
    "DamageRecord",
    "StudentBehavioralStatus",
    "WellnessHoursEntry",
    "Alert",
    "SystemSetting",
]
