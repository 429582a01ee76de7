from wellness_lending.services.notification.alert_service import ADMIN_EVENT_TYPES, AlertService

__all__ = ["ADMIN_EVENT_TYPES", "AlertService"]
