"""Main Reminder Service class.

This is the unified entry point for all scheduler operations:
- create / edit / cancel / list reminders
- start-up reconciliation and the scheduler loop
- lifecycle events and operator alerts
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from ..delivery import DeliveryMechanism, Renderer
from ..models import Reminder, ReminderCreate, ReminderPatch
from ..types import CancelResult, SchedulerStatus
from .events import EventEmitter, EventTypes, emit_reminder_event
from .state import IdentityResolver, SchedulerServiceDeps, SchedulerServiceState
from .store import ReminderStore
from . import ops
from . import timer

logger = logger.bind(module="scheduler.service")


class ReminderService:
    """Scheduler service for one-shot and recurring reminders.

    Mutations may be called concurrently from request handlers. Each one
    persists to the store first and then, under the state lock, updates
    the schedule index and kicks the interrupt gate.
    """

    def __init__(
        self,
        db_path: str | Path = "~/.reminder_gateway/reminders.db",
        delivery: DeliveryMechanism | None = None,
        renderer: Renderer | None = None,
        ensure_identities: IdentityResolver | None = None,
        staleness_tolerance_seconds: float = 5.0,
        shutdown_timeout_seconds: float = 10.0,
    ):
        """Initialize reminder service.

        Args:
            db_path: Path to SQLite database for persistence
            delivery: Delivery mechanism (implements deliver(target_id, mode, content))
            renderer: Turns a reminder into delivery content
            ensure_identities: Awaited with (owner_id, target_id) before insert
            staleness_tolerance_seconds: How much later than the popped entry the
                stored trigger time may be before the entry is dropped as stale
            shutdown_timeout_seconds: How long stop() waits for an in-flight dispatch
        """
        db_path = Path(db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)

        self.store = ReminderStore(db_path)
        self.events = EventEmitter()
        self.deps = SchedulerServiceDeps()
        if delivery is not None:
            self.deps.delivery = delivery
        if renderer is not None:
            self.deps.renderer = renderer
        if ensure_identities is not None:
            self.deps.ensure_identities = ensure_identities
        self.state = SchedulerServiceState()

        self.staleness_tolerance_seconds = staleness_tolerance_seconds
        self.shutdown_timeout_seconds = shutdown_timeout_seconds

    async def start(self) -> None:
        """Start the reminder service."""
        if self.state.running:
            logger.warning("Scheduler already running")
            return

        await self.store.initialize()

        # Seed the index before the loop's first pop
        await timer.reconcile(self)

        self.state.running = True
        self.state.loop_task = asyncio.create_task(timer.scheduler_loop(self))

        emit_reminder_event(self.events, EventTypes.SCHEDULER_STARTED, None)
        logger.info("Reminder service started")

    async def stop(self) -> None:
        """Stop the reminder service gracefully."""
        if not self.state.running:
            return

        self.state.running = False
        self.state.stop_event.set()

        task = self.state.loop_task
        if task:
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=self.shutdown_timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning("Scheduler loop did not stop in time, cancelling")
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        await self.store.close()

        self.state.reset()

        emit_reminder_event(self.events, EventTypes.SCHEDULER_STOPPED, None)
        logger.info("Reminder service stopped")

    async def status(self) -> SchedulerStatus:
        """Get scheduler status.

        Returns:
            Current scheduler status
        """
        return await ops.get_status(self.store, self.state)

    # ============== Reminder Management ==============

    async def create(self, request: ReminderCreate) -> Reminder:
        """Create a new reminder.

        Args:
            request: Reminder creation request

        Returns:
            Created reminder

        Raises:
            InvalidTimeError, InvalidRecurrenceError
        """
        reminder = await ops.create_reminder(self.store, self.events, self.deps, request)
        await timer.enqueue(self, reminder.id, reminder.trigger_time)
        return reminder

    async def edit(self, reminder_id: int, owner_id: str, patch: ReminderPatch) -> Reminder:
        """Edit an existing reminder.

        Args:
            reminder_id: ID of reminder to edit
            owner_id: Identity requesting the edit
            patch: Fields to change

        Returns:
            Updated reminder

        Raises:
            ReminderNotFoundError, NotOwnerError, InvalidTimeError, InvalidRecurrenceError
        """
        reminder, rescheduled = await ops.edit_reminder(
            self.store, self.events, reminder_id, owner_id, patch
        )

        if rescheduled:
            await timer.enqueue(self, reminder.id, reminder.trigger_time)

        return reminder

    async def cancel(self, reminder_id: int, owner_id: str, permanent: bool = False) -> CancelResult:
        """Cancel a reminder.

        Args:
            reminder_id: ID of reminder to cancel
            owner_id: Identity requesting the cancel
            permanent: Delete the row instead of deactivating it

        Returns:
            Cancel result

        Raises:
            ReminderNotFoundError, NotOwnerError
        """
        return await ops.cancel_reminder(self.store, self.events, reminder_id, owner_id, permanent)

    async def list(self, owner_id: str) -> list[Reminder]:
        """List an owner's active future reminders, soonest first."""
        return await ops.list_reminders(self.store, owner_id)

    async def get(self, reminder_id: int) -> Reminder | None:
        return await self.store.get(reminder_id)

    # ============== Event Handling ==============

    def on_event(self, handler: Callable[[Any], None]) -> None:
        """Register an event handler.

        Args:
            handler: Function to call when events are emitted
        """
        self.events.add_handler(handler)

    def off_event(self, handler: Callable[[Any], None]) -> None:
        """Unregister an event handler.

        Args:
            handler: Handler to remove
        """
        self.events.remove_handler(handler)
