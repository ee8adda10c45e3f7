"""Recurrence calculation utilities.

Parses recurrence text into recurrence variants and computes the next
trigger time. Month and year steps use dateutil's relativedelta, which
clamps to the last day of the target month.
"""
from datetime import datetime, timezone

from dateutil.relativedelta import relativedelta

from .errors import InvalidRecurrenceError
from .types import (
    NAMED_RECURRENCES,
    EveryRecurrence,
    NamedRecurrence,
    Recurrence,
    RecurrenceUnit,
    UnparsedRecurrence,
)

ONE_SHOT_VALUES = ("", "none")


def now_utc() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_recurrence(text: str | None) -> Recurrence | None:
    """Parse recurrence text.

    Args:
        text: ``None``/``"none"`` for one-shot, a named interval such as
            ``"daily"``, or ``"every N <unit>"``

    Returns:
        Recurrence variant, or None for one-shot reminders

    Raises:
        InvalidRecurrenceError: If the text is not a supported recurrence
    """
    if text is None:
        return None

    normalized = " ".join(text.lower().split())
    if normalized in ONE_SHOT_VALUES:
        return None

    unit = NAMED_RECURRENCES.get(normalized)
    if unit is not None:
        return NamedRecurrence(unit=unit)

    parts = normalized.split(" ")
    if len(parts) == 3 and parts[0] == "every":
        try:
            count = int(parts[1])
        except ValueError:
            raise InvalidRecurrenceError(f"Invalid recurrence count: {text!r}") from None
        if count <= 0:
            raise InvalidRecurrenceError(f"Recurrence count must be positive: {text!r}")

        for candidate in RecurrenceUnit:
            if parts[2].startswith(candidate.value):
                return EveryRecurrence(count=count, unit=candidate)

    raise InvalidRecurrenceError(f"Unsupported recurrence: {text!r}")


def load_recurrence(text: str | None) -> Recurrence | None:
    """Lenient variant of parse_recurrence for stored rows."""
    try:
        return parse_recurrence(text)
    except InvalidRecurrenceError:
        return UnparsedRecurrence(text=text or "")


def _step(unit: RecurrenceUnit, count: int) -> relativedelta:
    if unit == RecurrenceUnit.MINUTE:
        return relativedelta(minutes=count)
    if unit == RecurrenceUnit.HOUR:
        return relativedelta(hours=count)
    if unit == RecurrenceUnit.DAY:
        return relativedelta(days=count)
    if unit == RecurrenceUnit.WEEK:
        return relativedelta(days=7 * count)
    if unit == RecurrenceUnit.MONTH:
        return relativedelta(months=count)
    return relativedelta(years=count)


def compute_next_trigger(
    recurrence: Recurrence | str | None,
    fired_at: datetime,
) -> datetime | None:
    """Compute the next trigger time after a firing.

    Args:
        recurrence: Recurrence variant, or raw recurrence text
        fired_at: Instant the reminder fired

    Returns:
        Next trigger time in UTC, or None if the recurrence is invalid
        (callers deactivate the reminder rather than reschedule it)
    """
    if isinstance(recurrence, str):
        try:
            recurrence = parse_recurrence(recurrence)
        except InvalidRecurrenceError:
            return None

    if isinstance(recurrence, NamedRecurrence):
        delta = _step(recurrence.unit, 1)
    elif isinstance(recurrence, EveryRecurrence):
        delta = _step(recurrence.unit, recurrence.count)
    else:
        # One-shot and unparsed recurrences have no next trigger
        return None

    try:
        return ensure_utc(fired_at) + delta
    except (OverflowError, ValueError):
        return None


def recurrence_to_human(recurrence: Recurrence | None) -> str:
    """Convert a recurrence to display text."""
    if recurrence is None:
        return "once"
    if isinstance(recurrence, UnparsedRecurrence):
        return f"invalid ({recurrence.text})"
    return str(recurrence)
