"""Scheduler module for one-shot and recurring reminders.

This module provides:
- Recurrence parsing and calendar-aware next-trigger calculation
- An in-memory schedule index with an interruptible wait
- SQLite persistence of reminders
- Delivery with direct-to-origin fallback
- asyncio-based scheduler loop
"""
# Core types
from .types import (
    # Recurrence types
    RecurrenceUnit,
    NamedRecurrence,
    EveryRecurrence,
    UnparsedRecurrence,
    Recurrence,
    # Delivery
    DeliveryMode,
    # Status types
    FireStatus,
    # Result types
    SchedulerEvent,
    CancelResult,
    SchedulerStatus,
)

# Errors
from .errors import (
    ReminderError,
    InvalidTimeError,
    InvalidRecurrenceError,
    ReminderNotFoundError,
    NotOwnerError,
    DeliveryError,
    UnreachableError,
)

# Models
from .models import (
    Reminder,
    ReminderCreate,
    ReminderPatch,
)

# Recurrence utilities
from .recurrence import (
    parse_recurrence,
    compute_next_trigger,
    recurrence_to_human,
    now_utc,
)

# Delivery
from .delivery import (
    DeliveryMechanism,
    LoggingDelivery,
    WebhookDelivery,
    deliver_reminder,
    render_reminder,
)

# Service
from .service import ReminderService

__all__ = [
    # Core types
    "RecurrenceUnit",
    "NamedRecurrence",
    "EveryRecurrence",
    "UnparsedRecurrence",
    "Recurrence",
    "DeliveryMode",
    "FireStatus",
    "SchedulerEvent",
    "CancelResult",
    "SchedulerStatus",
    # Errors
    "ReminderError",
    "InvalidTimeError",
    "InvalidRecurrenceError",
    "ReminderNotFoundError",
    "NotOwnerError",
    "DeliveryError",
    "UnreachableError",
    # Models
    "Reminder",
    "ReminderCreate",
    "ReminderPatch",
    # Recurrence utilities
    "parse_recurrence",
    "compute_next_trigger",
    "recurrence_to_human",
    "now_utc",
    # Delivery
    "DeliveryMechanism",
    "LoggingDelivery",
    "WebhookDelivery",
    "deliver_reminder",
    "render_reminder",
    # Service
    "ReminderService",
]
