"""
Service layer of the wellness lending system.

Use ``ServiceFactory`` to build services that share one session and one
event dispatcher.
"""

from wellness_lending.services.service_factory import ServiceFactory

__all__ = ["ServiceFactory"]
