from wellness_lending.services.wellness.wellness_hours_service import WellnessHoursService, loan_hours

__all__ = ["WellnessHoursService", "loan_hours"]
