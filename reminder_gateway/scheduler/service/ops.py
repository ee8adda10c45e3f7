"""Core operations for the scheduler service.

Contains the validation and store logic behind create/edit/cancel/list.
Index and gate updates are left to the service so the lock is never
held across store I/O.
"""
from datetime import datetime
from typing import Any

from loguru import logger

from ..errors import InvalidTimeError, NotOwnerError, ReminderNotFoundError
from ..models import Reminder, ReminderCreate, ReminderPatch
from ..recurrence import ensure_utc, now_utc, parse_recurrence
from ..types import CancelResult, SchedulerStatus
from .events import EventEmitter, EventTypes, emit_reminder_event
from .state import SchedulerServiceDeps, SchedulerServiceState
from .store import ReminderStore, to_ms

logger = logger.bind(module="scheduler.ops")


def _require_future(trigger_time: datetime) -> None:
    if trigger_time <= now_utc():
        raise InvalidTimeError(f"Trigger time {trigger_time.isoformat()} is not in the future")


async def create_reminder(
    store: ReminderStore,
    events: EventEmitter,
    deps: SchedulerServiceDeps,
    request: ReminderCreate,
) -> Reminder:
    """Validate and persist a new reminder.

    Args:
        store: Reminder store
        events: Event emitter
        deps: Service dependencies (identity resolver)
        request: Creation request

    Returns:
        Created reminder with its store-assigned id

    Raises:
        InvalidTimeError: trigger_time is not strictly in the future
        InvalidRecurrenceError: recurrence text does not parse
    """
    trigger_time = ensure_utc(request.trigger_time)
    _require_future(trigger_time)
    recurrence = parse_recurrence(request.recurrence)

    target_id = request.target_id or request.owner_id
    await deps.ensure_identities(request.owner_id, target_id)

    reminder = Reminder(
        owner_id=request.owner_id,
        target_id=target_id,
        origin_id=request.origin_id,
        message=request.message,
        title=request.title,
        trigger_time=trigger_time,
        recurrence=recurrence,
        delivery_mode=request.delivery_mode,
    )
    await store.insert(reminder)

    emit_reminder_event(
        events,
        EventTypes.REMINDER_CREATED,
        reminder.id,
        {"trigger_time": trigger_time.isoformat(), "recurrence": str(recurrence) if recurrence else None},
    )

    logger.info(f"Created reminder {reminder.id} for {reminder.owner_id} at {trigger_time.isoformat()}")
    return reminder


async def _get_owned(store: ReminderStore, reminder_id: int, owner_id: str) -> Reminder:
    reminder = await store.get(reminder_id)
    if reminder is None:
        raise ReminderNotFoundError(reminder_id)
    if reminder.owner_id != owner_id:
        raise NotOwnerError(reminder_id, owner_id)
    return reminder


async def edit_reminder(
    store: ReminderStore,
    events: EventEmitter,
    reminder_id: int,
    owner_id: str,
    patch: ReminderPatch,
) -> tuple[Reminder, bool]:
    """Apply a patch to an owned, active reminder.

    Returns:
        Tuple of (updated reminder, whether trigger_time changed)

    Raises:
        ReminderNotFoundError: missing or inactive reminder
        NotOwnerError: owner_id does not own the reminder
        InvalidTimeError: new trigger_time is not in the future
        InvalidRecurrenceError: new recurrence does not parse
    """
    reminder = await _get_owned(store, reminder_id, owner_id)
    if not reminder.is_active:
        raise ReminderNotFoundError(reminder_id)

    if patch.is_empty():
        return reminder, False

    # Validate everything before touching the record
    new_trigger = None
    if patch.trigger_time is not None:
        new_trigger = ensure_utc(patch.trigger_time)
        _require_future(new_trigger)
    new_recurrence = parse_recurrence(patch.recurrence) if patch.recurrence is not None else None

    # Only patched columns are written; an unpatched trigger_time is left to completion
    changed: list[str] = []
    values: dict[str, Any] = {}
    if patch.message is not None:
        values["message"] = patch.message
        changed.append("message")
    if patch.title is not None:
        values["title"] = patch.title
        changed.append("title")
    if patch.recurrence is not None:
        values["recurrence"] = str(new_recurrence) if new_recurrence else None
        values["last_fired_ms"] = None
        changed.append("recurrence")

    rescheduled = new_trigger is not None
    if rescheduled:
        values["trigger_at_ms"] = to_ms(new_trigger)
        values["last_fired_ms"] = None
        changed.append("trigger_time")

    if not await store.update_fields(reminder_id, values):
        # Cancelled after the ownership check
        raise ReminderNotFoundError(reminder_id)

    updated = await store.get(reminder_id)
    if updated is None:
        raise ReminderNotFoundError(reminder_id)

    emit_reminder_event(events, EventTypes.REMINDER_EDITED, reminder_id, {"fields": changed})

    logger.info(f"Edited reminder {reminder_id} ({', '.join(changed)})")
    return updated, rescheduled


async def cancel_reminder(
    store: ReminderStore,
    events: EventEmitter,
    reminder_id: int,
    owner_id: str,
    permanent: bool = False,
) -> CancelResult:
    """Delete or deactivate an owned reminder.

    The schedule index entry is left in place and dropped at pop time.

    Raises:
        ReminderNotFoundError: missing reminder
        NotOwnerError: owner_id does not own the reminder
    """
    reminder = await _get_owned(store, reminder_id, owner_id)

    if permanent:
        await store.delete(reminder_id)
        emit_reminder_event(events, EventTypes.REMINDER_DELETED, reminder_id)
        logger.info(f"Deleted reminder {reminder_id}")
        return CancelResult(reminder_id=reminder_id, deleted=True, deactivated=False)

    if reminder.is_active and await store.deactivate(reminder_id):
        emit_reminder_event(events, EventTypes.REMINDER_CANCELLED, reminder_id)
        logger.info(f"Cancelled reminder {reminder_id}")

    return CancelResult(reminder_id=reminder_id, deleted=False, deactivated=True)


async def list_reminders(store: ReminderStore, owner_id: str) -> list[Reminder]:
    """List an owner's active future reminders ordered by trigger time."""
    return await store.list_for_owner(owner_id, now_utc())


async def get_status(store: ReminderStore, state: SchedulerServiceState) -> SchedulerStatus:
    """Get scheduler status."""
    counts = await store.count_by_state()

    async with state.lock:
        queued = len(state.index)
        next_in_index = state.index.peek_time()

    # The loop holds its current entry outside the index while waiting
    candidates = [t for t in (state.waiting_until, next_in_index) if t is not None]

    return SchedulerStatus(
        running=state.running,
        reminders_total=counts.get("total", 0),
        reminders_active=counts.get("active", 0),
        queued_entries=queued,
        next_wake_at=min(candidates) if candidates else None,
    )
