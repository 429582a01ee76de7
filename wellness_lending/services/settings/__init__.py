from wellness_lending.services.settings.policy_settings import PolicySettings
from wellness_lending.services.settings.policy_settings_service import PolicySettingsService

__all__ = ["PolicySettings", "PolicySettingsService"]
