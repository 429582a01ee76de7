"""
Data access layer. Repositories flush but never commit.
"""

from wellness_lending.repositories.base import BaseRepository
from wellness_lending.repositories.catalog import ResourceRepository
from wellness_lending.repositories.loan import DamageRecordRepository, LoanRepository, ResourceQueueRepository
from wellness_lending.repositories.student import BehavioralStatusRepository, WellnessHoursRepository
from wellness_lending.repositories.system import AlertRepository, SystemSettingRepository

__all__ = [
    "BaseRepository",
    "ResourceRepository",
    "LoanRepository",
    "ResourceQueueRepository",
    "DamageRecordRepository",
    "BehavioralStatusRepository",
    "WellnessHoursRepository",
    "SystemSettingRepository",
    "AlertRepository",
]
