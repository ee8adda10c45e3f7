"""Event system for the scheduler.

Emits events for reminder lifecycle changes. Operator alerts
(deactivation, persistence failures) are surfaced through the same
emitter.
"""
from typing import Any, Callable

from loguru import logger

from ..recurrence import now_utc
from ..types import SchedulerEvent

logger = logger.bind(module="scheduler.events")


# Type alias for event handlers
EventHandler = Callable[[SchedulerEvent], None]


class EventEmitter:
    """Event emitter for scheduler events."""

    def __init__(self):
        self._handlers: list[EventHandler] = []

    def add_handler(self, handler: EventHandler) -> None:
        """Add an event handler."""
        self._handlers.append(handler)

    def remove_handler(self, handler: EventHandler) -> None:
        """Remove an event handler."""
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, event: SchedulerEvent) -> None:
        """Emit an event to all handlers."""
        for handler in self._handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler error: {e}")


def emit_reminder_event(
    emitter: EventEmitter,
    event_type: str,
    reminder_id: int | None,
    payload: dict[str, Any] | None = None,
) -> None:
    """Emit a reminder-related event.

    Args:
        emitter: Event emitter instance
        event_type: Type of event (e.g., "reminder.fired")
        reminder_id: ID of the reminder, None for scheduler-wide events
        payload: Additional event payload
    """
    event = SchedulerEvent(
        type=event_type,
        reminder_id=reminder_id,
        timestamp=now_utc(),
        payload=payload or {},
    )
    emitter.emit(event)


# Event type constants
class EventTypes:
    """Constants for event types."""

    # Scheduler lifecycle
    SCHEDULER_STARTED = "scheduler.started"
    SCHEDULER_STOPPED = "scheduler.stopped"

    # Reminder lifecycle
    REMINDER_CREATED = "reminder.created"
    REMINDER_EDITED = "reminder.edited"
    REMINDER_CANCELLED = "reminder.cancelled"
    REMINDER_DELETED = "reminder.deleted"

    # Firing
    REMINDER_FIRED = "reminder.fired"
    REMINDER_DELIVERY_FAILED = "reminder.delivery_failed"

    # Operator alerts
    REMINDER_DEACTIVATED = "reminder.deactivated"
    REMINDER_PERSIST_FAILED = "reminder.persist_failed"
