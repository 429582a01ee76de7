from wellness_lending.repositories.student.behavioral_status_repository import BehavioralStatusRepository
from wellness_lending.repositories.student.wellness_hours_repository import WellnessHoursRepository

__all__ = ["BehavioralStatusRepository", "WellnessHoursRepository"]
