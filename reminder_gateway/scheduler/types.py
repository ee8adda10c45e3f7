"""Core type definitions for the reminder scheduler.

This module defines:
- Recurrence variants (named/every/unparsed)
- Delivery modes
- Result and event types
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal


# ============== Recurrence Types ==============

class RecurrenceUnit(str, Enum):
    """Calendar unit a recurrence advances by."""
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


# Adjective forms accepted for named recurrences
NAMED_RECURRENCES: dict[str, RecurrenceUnit] = {
    "minutely": RecurrenceUnit.MINUTE,
    "hourly": RecurrenceUnit.HOUR,
    "daily": RecurrenceUnit.DAY,
    "weekly": RecurrenceUnit.WEEK,
    "monthly": RecurrenceUnit.MONTH,
    "yearly": RecurrenceUnit.YEAR,
}


@dataclass(frozen=True)
class NamedRecurrence:
    """Fixed named interval, e.g. ``daily``."""
    unit: RecurrenceUnit
    kind: Literal["named"] = "named"

    def __str__(self) -> str:
        for name, unit in NAMED_RECURRENCES.items():
            if unit == self.unit:
                return name
        return self.unit.value

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "unit": self.unit.value}


@dataclass(frozen=True)
class EveryRecurrence:
    """Generic ``every N <unit>`` interval."""
    count: int
    unit: RecurrenceUnit
    kind: Literal["every"] = "every"

    def __str__(self) -> str:
        suffix = "" if self.count == 1 else "s"
        return f"every {self.count} {self.unit.value}{suffix}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "count": self.count, "unit": self.unit.value}


@dataclass(frozen=True)
class UnparsedRecurrence:
    """Stored recurrence text that no longer parses.

    Only produced when loading rows; never accepted by the mutation API.
    """
    text: str
    kind: Literal["unparsed"] = "unparsed"

    def __str__(self) -> str:
        return self.text

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "text": self.text}


# Union type for all recurrence variants
Recurrence = NamedRecurrence | EveryRecurrence | UnparsedRecurrence


# ============== Delivery ==============

class DeliveryMode(str, Enum):
    """Where a reminder is delivered."""
    DIRECT = "direct"         # Direct message to the target
    BROADCAST = "broadcast"   # Shared destination the reminder originated from


# ============== Status ==============

class FireStatus(str, Enum):
    """Outcome of processing a popped schedule entry."""
    FIRED = "fired"         # Delivered (or attempted) and bookkeeping done
    INACTIVE = "inactive"   # Reminder deleted or deactivated; entry dropped
    STALE = "stale"         # Reminder was rescheduled later; entry dropped
    FAILED = "failed"       # Store could not be read; entry dropped


# ============== Events ==============

@dataclass
class SchedulerEvent:
    """Event emitted by the scheduler."""
    type: str
    reminder_id: int | None
    timestamp: datetime
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "reminder_id": self.reminder_id,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload,
        }


# ============== Result Types ==============

@dataclass
class CancelResult:
    """Result of cancelling a reminder."""
    reminder_id: int
    deleted: bool
    deactivated: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "reminder_id": self.reminder_id,
            "deleted": self.deleted,
            "deactivated": self.deactivated,
        }


@dataclass
class SchedulerStatus:
    """Status of the scheduler service."""
    running: bool
    reminders_total: int
    reminders_active: int
    queued_entries: int
    next_wake_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "reminders_total": self.reminders_total,
            "reminders_active": self.reminders_active,
            "queued_entries": self.queued_entries,
            "next_wake_at": self.next_wake_at.isoformat() if self.next_wake_at else None,
        }
