"""Exceptions raised by the reminder scheduler.

Validation errors are raised synchronously by the mutation API.
Delivery errors are raised by delivery mechanisms and handled inside
completion handling; they never reach callers of the mutation API.
"""


class ReminderError(Exception):
    """Base class for reminder scheduler errors."""


# ============== Validation ==============

class InvalidTimeError(ReminderError):
    """Trigger time is not strictly in the future."""


class InvalidRecurrenceError(ReminderError):
    """Recurrence text could not be parsed."""


class ReminderNotFoundError(ReminderError):
    """Reminder does not exist (or is no longer active)."""

    def __init__(self, reminder_id: int):
        super().__init__(f"Reminder {reminder_id} not found")
        self.reminder_id = reminder_id


class NotOwnerError(ReminderError):
    """Caller is not the owner of the reminder."""

    def __init__(self, reminder_id: int, owner_id: str):
        super().__init__(f"User {owner_id} does not own reminder {reminder_id}")
        self.reminder_id = reminder_id
        self.owner_id = owner_id


# ============== Delivery ==============

class DeliveryError(ReminderError):
    """Delivery failed; terminal for the current firing."""


class UnreachableError(DeliveryError):
    """Delivery destination cannot receive messages."""
