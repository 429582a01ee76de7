"""
Domain event dispatcher.

Services ``collect`` events while a transaction is open; the outermost
operation calls ``flush`` after commit, or ``discard`` after rollback, so
subscribers never see a transition that was not persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from wellness_lending.config.logging import get_logger
from wellness_lending.core.events.base_event import BaseEvent
from wellness_lending.core.events.event_bus import EventBus
from wellness_lending.core.utils import DateTimeUtils


@dataclass
class DispatchedEvent:
    """Result of event dispatch operation."""

    event: BaseEvent
    dispatched: bool
    error: Optional[str] = None
    dispatched_at: datetime = field(default_factory=DateTimeUtils.now_utc)


@dataclass
class DispatchResult:
    """Aggregated result of multiple event dispatches."""

    total: int
    successful: int
    failed: int
    events: List[DispatchedEvent] = field(default_factory=list)


class EventDispatcher:
    """
    Dispatches domain events to the application's event bus.

    Handler failures surface from the bus as ``ExternalServiceError``; they
    are logged here and never propagate to the service that emitted them.
    """

    def __init__(self, bus: EventBus):
        self.bus = bus
        self._pending: List[BaseEvent] = []
        self._logger = get_logger(self.__class__.__name__)

    # -------------------------------------------------------------------------
    # Transactional buffering
    # -------------------------------------------------------------------------

    def collect(self, event: BaseEvent) -> None:
        """Queue an event until the surrounding transaction commits."""
        self._pending.append(event)

    @property
    def pending(self) -> List[BaseEvent]:
        return list(self._pending)

    def flush(self) -> DispatchResult:
        """Dispatch every collected event in order and clear the buffer."""
        events, self._pending = self._pending, []
        return self.dispatch_many(events)

    def discard(self) -> int:
        """Drop collected events after a rollback."""
        dropped = len(self._pending)
        if dropped:
            self._logger.debug(f"Discarding {dropped} undelivered event(s) after rollback")
        self._pending = []
        return dropped

    # -------------------------------------------------------------------------
    # Event Dispatching
    # -------------------------------------------------------------------------

    def dispatch(self, event: BaseEvent) -> DispatchedEvent:
        """
        Dispatch a single event.

        Args:
            event: Event to publish

        Returns:
            DispatchedEvent with result information
        """
        try:
            self.bus.publish(event)
        except Exception as e:
            self._logger.error(
                f"Event delivery failed for {event.event_type}: {e}",
                extra={"event_type": event.event_type, "event_id": event.event_id},
            )
            return DispatchedEvent(event=event, dispatched=False, error=str(e))

        self._logger.info(
            f"Event dispatched: {event.event_type}",
            extra={"event_type": event.event_type, "event_id": event.event_id},
        )
        return DispatchedEvent(event=event, dispatched=True)

    def dispatch_many(self, events: List[BaseEvent]) -> DispatchResult:
        """
        Dispatch multiple events.

        Args:
            events: Events to dispatch, in order

        Returns:
            DispatchResult with aggregated statistics
        """
        dispatched_events = [self.dispatch(event) for event in events]
        successful = sum(1 for d in dispatched_events if d.dispatched)

        dispatch_result = DispatchResult(
            total=len(events),
            successful=successful,
            failed=len(events) - successful,
            events=dispatched_events,
        )
        if dispatch_result.failed:
            self._logger.warning(
                f"Batch dispatch completed with failures: "
                f"{dispatch_result.successful}/{dispatch_result.total} successful",
            )
        return dispatch_result
