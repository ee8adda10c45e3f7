"""Data models for reminders."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .recurrence import now_utc
from .types import DeliveryMode, Recurrence


@dataclass
class Reminder:
    """A scheduled one-shot or recurring reminder.

    ``id`` is assigned by the store on insert and is the token carried
    in the schedule index.
    """
    # Identity
    id: int | None = None
    owner_id: str = ""
    target_id: str = ""
    origin_id: str | None = None

    # Content (opaque to the scheduler)
    message: str = ""
    title: str | None = None

    # Scheduling
    trigger_time: datetime = field(default_factory=now_utc)
    recurrence: Recurrence | None = None
    last_fired: datetime | None = None
    is_active: bool = True
    delivery_mode: DeliveryMode = DeliveryMode.DIRECT

    created_at: datetime = field(default_factory=now_utc)

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "target_id": self.target_id,
            "origin_id": self.origin_id,
            "message": self.message,
            "title": self.title,
            "trigger_time": self.trigger_time.isoformat(),
            "recurrence": str(self.recurrence) if self.recurrence else None,
            "last_fired": self.last_fired.isoformat() if self.last_fired else None,
            "is_active": self.is_active,
            "delivery_mode": self.delivery_mode.value,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class ReminderCreate:
    """Request to create a new reminder."""
    owner_id: str
    message: str
    trigger_time: datetime
    target_id: str | None = None
    origin_id: str | None = None
    title: str | None = None
    recurrence: str | None = None
    delivery_mode: DeliveryMode = DeliveryMode.DIRECT


@dataclass
class ReminderPatch:
    """Request to edit an existing reminder.

    Fields left as None are not changed. ``recurrence="none"`` turns a
    recurring reminder into a one-shot reminder.
    """
    message: str | None = None
    title: str | None = None
    trigger_time: datetime | None = None
    recurrence: str | None = None

    def is_empty(self) -> bool:
        return (
            self.message is None
            and self.title is None
            and self.trigger_time is None
            and self.recurrence is None
        )
