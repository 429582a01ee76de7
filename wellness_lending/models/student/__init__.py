from wellness_lending.models.student.behavioral_status import StudentBehavioralStatus
from wellness_lending.models.student.wellness_hours import WellnessHoursEntry

__all__ = ["StudentBehavioralStatus", "WellnessHoursEntry"]
