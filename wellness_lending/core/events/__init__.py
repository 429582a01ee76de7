"""
Event system: domain events and the in-process bus that carries them to
notification collaborators.
"""
from wellness_lending.core.events.base_event import BaseEvent, DomainEvent, EventSeverity, LoanEvents
from wellness_lending.core.events.event_bus import ALL_EVENTS, EventBus, EventHandlerRegistry

__all__ = [
    "ALL_EVENTS",
    "BaseEvent",
    "DomainEvent",
    "EventBus",
    "EventHandlerRegistry",
    "EventSeverity",
    "LoanEvents",
]
