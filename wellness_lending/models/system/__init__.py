# models/system/__init__.py
from .alert import Alert
from .system_setting import SystemSetting

__all__ = [
    "Alert",
    "SystemSetting",
]
