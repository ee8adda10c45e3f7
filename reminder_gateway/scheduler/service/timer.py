"""Scheduler loop.

A single long-lived loop pops the soonest entry from the schedule index,
sleeps until it is due (or until the interrupt gate is kicked),
revalidates the reminder against the store and dispatches it.
"""
import asyncio
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from loguru import logger

from ..delivery import deliver_reminder
from ..errors import DeliveryError
from ..models import Reminder
from ..recurrence import compute_next_trigger, now_utc
from ..types import FireStatus
from .events import EventTypes, emit_reminder_event
from .state import SchedulerServiceState

if TYPE_CHECKING:
    from .service import ReminderService

logger = logger.bind(module="scheduler.timer")

# Back-off after an unexpected loop error
LOOP_ERROR_BACKOFF_SECONDS = 1.0


async def enqueue(service: "ReminderService", reminder_id: int, trigger_time: datetime) -> None:
    """Push an entry into the schedule index and kick the interrupt gate."""
    async with service.state.lock:
        service.state.index.push(reminder_id, trigger_time)
        service.state.gate.kick()


async def reconcile(service: "ReminderService") -> int:
    """Seed the schedule index with all active future reminders.

    Must complete before the loop's first pop.

    Returns:
        Number of entries seeded
    """
    reminders = await service.store.load_active_future(now_utc())

    async with service.state.lock:
        for reminder in reminders:
            service.state.index.push(reminder.id, reminder.trigger_time)
        service.state.gate.kick()

    logger.info(f"Loaded {len(reminders)} reminders into the schedule index")
    return len(reminders)


async def _wait(
    state: SchedulerServiceState,
    signal: asyncio.Event,
    timeout: float | None,
) -> bool:
    """Sleep until timeout, a kick or shutdown.

    Returns:
        True if woken early by the gate or by shutdown
    """
    waiters = [
        asyncio.ensure_future(signal.wait()),
        asyncio.ensure_future(state.stop_event.wait()),
    ]
    try:
        done, _ = await asyncio.wait(
            waiters,
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        for waiter in waiters:
            waiter.cancel()
    return bool(done)


async def scheduler_loop(service: "ReminderService") -> None:
    """Main loop that waits for and dispatches due reminders."""
    logger.info("Scheduler loop started")

    while service.state.running:
        try:
            await wait_for_next_tick(service)
        except asyncio.CancelledError:
            logger.info("Scheduler loop cancelled")
            raise
        except Exception as e:
            logger.exception(f"Scheduler loop error: {e}")
            await asyncio.sleep(LOOP_ERROR_BACKOFF_SECONDS)

    logger.info("Scheduler loop stopped")


async def wait_for_next_tick(service: "ReminderService") -> FireStatus | None:
    """Run one iteration of the scheduler loop.

    Returns:
        Outcome of the processed entry, or None if the wait was
        interrupted or the index was empty
    """
    state = service.state

    # Pop and grab the current signal atomically so no kick is lost
    async with state.lock:
        entry = state.index.pop_min()
        signal = state.gate.current()

    if entry is None:
        state.waiting_until = None
        await _wait(state, signal, None)
        return None

    reminder_id, trigger_time = entry
    state.waiting_until = trigger_time
    delay = max(0.0, (trigger_time - now_utc()).total_seconds())

    interrupted = await _wait(state, signal, delay)
    state.waiting_until = None

    if interrupted or not state.running:
        # A newer entry may be earlier; put this one back unconsumed
        async with state.lock:
            state.index.push(reminder_id, trigger_time)
        return None

    return await process_reminder(service, reminder_id, trigger_time)


async def process_reminder(
    service: "ReminderService",
    reminder_id: int,
    expected_trigger_time: datetime,
) -> FireStatus:
    """Revalidate a popped entry against the store and fire it.

    Args:
        service: The reminder service
        reminder_id: ID carried by the schedule entry
        expected_trigger_time: Trigger time carried by the schedule entry

    Returns:
        Outcome of processing
    """
    try:
        reminder = await service.store.get(reminder_id)
    except Exception as e:
        logger.error(f"Failed to load reminder {reminder_id}: {e}")
        return FireStatus.FAILED

    if reminder is None or not reminder.is_active:
        logger.debug(f"Dropping entry for inactive reminder {reminder_id}")
        return FireStatus.INACTIVE

    tolerance = timedelta(seconds=service.staleness_tolerance_seconds)
    if reminder.trigger_time > expected_trigger_time + tolerance:
        logger.debug(
            f"Dropping stale entry for reminder {reminder_id} "
            f"(popped {expected_trigger_time.isoformat()}, stored {reminder.trigger_time.isoformat()})"
        )
        return FireStatus.STALE

    fired_at = now_utc()
    await dispatch_reminder(service, reminder)
    await handle_completion(service, reminder, fired_at)
    return FireStatus.FIRED


async def dispatch_reminder(service: "ReminderService", reminder: Reminder) -> bool:
    """Render and deliver a reminder. Failures are logged, never retried."""
    try:
        content = service.deps.renderer(reminder)
        mode = await deliver_reminder(service.deps.delivery, reminder, content)
    except DeliveryError as e:
        logger.warning(f"Delivery failed for reminder {reminder.id}: {e}")
        emit_reminder_event(
            service.events,
            EventTypes.REMINDER_DELIVERY_FAILED,
            reminder.id,
            {"error": str(e)[:500]},
        )
        return False
    except Exception as e:
        logger.exception(f"Error dispatching reminder {reminder.id}: {e}")
        emit_reminder_event(
            service.events,
            EventTypes.REMINDER_DELIVERY_FAILED,
            reminder.id,
            {"error": str(e)[:500]},
        )
        return False

    logger.info(f"Sent reminder {reminder.id} ({mode.value})")
    emit_reminder_event(service.events, EventTypes.REMINDER_FIRED, reminder.id, {"mode": mode.value})
    return True


async def handle_completion(
    service: "ReminderService",
    fired: Reminder,
    fired_at: datetime,
) -> None:
    """Delete a one-shot reminder or reschedule a recurring one.

    Every write is conditional on the row still being active at the
    trigger time that fired, so a cancel or edit committed during
    delivery is never overwritten.
    """
    store = service.store

    if not fired.is_recurring:
        try:
            applied = await store.delete_fired(fired.id, fired.trigger_time)
        except Exception as e:
            _persist_failed(service, fired.id, f"delete failed: {e}")
            return
        if not applied:
            _superseded(fired)
            return
        logger.info(f"Deleted one-time reminder {fired.id}")
        return

    next_trigger = compute_next_trigger(fired.recurrence, fired_at)

    if next_trigger is None:
        logger.warning(
            f"Could not calculate next trigger time for reminder {fired.id} "
            f"(recurrence {fired.recurrence!s}). Deactivating."
        )
        try:
            applied = await store.deactivate_fired(fired.id, fired.trigger_time, fired_at)
        except Exception as e:
            _persist_failed(service, fired.id, f"deactivate failed: {e}")
            return
        if not applied:
            _superseded(fired)
            return
        emit_reminder_event(
            service.events,
            EventTypes.REMINDER_DEACTIVATED,
            fired.id,
            {"recurrence": str(fired.recurrence)},
        )
        return

    try:
        applied = await store.reschedule(fired.id, fired.trigger_time, next_trigger, fired_at)
    except Exception as e:
        # Not re-enqueued: never fire without a durable record
        _persist_failed(service, fired.id, f"reschedule failed: {e}")
        return
    if not applied:
        _superseded(fired)
        return

    async with service.state.lock:
        service.state.index.push(fired.id, next_trigger)

    logger.info(f"Updated recurring reminder {fired.id}. Next trigger: {next_trigger.isoformat()}")


def _superseded(fired: Reminder) -> None:
    logger.debug(f"Reminder {fired.id} was cancelled or rescheduled during delivery")


def _persist_failed(service: "ReminderService", reminder_id: int, error: str) -> None:
    logger.error(f"Database error for reminder {reminder_id}: {error}")
    emit_reminder_event(
        service.events,
        EventTypes.REMINDER_PERSIST_FAILED,
        reminder_id,
        {"error": error[:500]},
    )
