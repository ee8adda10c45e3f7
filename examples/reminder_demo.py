"""Reminder scheduler demo.

This example demonstrates:
- One-shot reminders firing in trigger order
- A recurring reminder being rescheduled after it fires
- Fallback from an unreachable direct target to the origin channel
- Lifecycle events and operator alerts
"""
import asyncio
import tempfile
from datetime import timedelta
from pathlib import Path

from loguru import logger

from reminder_gateway.scheduler import (
    DeliveryMode,
    ReminderCreate,
    ReminderPatch,
    ReminderService,
    UnreachableError,
    now_utc,
    recurrence_to_human,
)


class ConsoleDelivery:
    """Prints reminders; targets in `blocked` cannot receive direct messages."""

    def __init__(self, blocked: set[str]):
        self.blocked = blocked

    async def deliver(self, target_id: str, mode: DeliveryMode, content: str) -> None:
        if mode == DeliveryMode.DIRECT and target_id in self.blocked:
            raise UnreachableError(f"{target_id} has direct messages disabled")
        print(f"--- [{mode.value}] {target_id} ---\n{content}\n")


async def main():
    """Run a few reminders through the scheduler."""

    logger.info("=" * 60)
    logger.info("Reminder Demo")
    logger.info("=" * 60)

    db_path = Path(tempfile.mkdtemp()) / "demo.db"
    service = ReminderService(
        db_path=db_path,
        delivery=ConsoleDelivery(blocked={"carol"}),
    )
    service.on_event(lambda event: logger.debug(f"Event: {event.type} {event.reminder_id}"))

    await service.start()

    now = now_utc()
    late = await service.create(ReminderCreate(
        owner_id="alice",
        message="Created first, fires last",
        trigger_time=now + timedelta(seconds=3),
    ))
    await service.create(ReminderCreate(
        owner_id="alice",
        message="Created second, fires first",
        trigger_time=now + timedelta(seconds=1),
    ))
    stretch = await service.create(ReminderCreate(
        owner_id="bob",
        title="Health",
        message="Stand up and stretch",
        trigger_time=now + timedelta(seconds=2),
        recurrence="every 1 minute",
    ))
    await service.create(ReminderCreate(
        owner_id="carol",
        origin_id="#general",
        message="Carol's DMs are closed, so this lands in #general",
        trigger_time=now + timedelta(seconds=2),
    ))

    # Move the late reminder a little earlier; the loop re-evaluates immediately
    await service.edit(late.id, "alice", ReminderPatch(trigger_time=now + timedelta(seconds=2.5)))

    await asyncio.sleep(4)

    for reminder in await service.list("bob"):
        logger.info(
            f"Reminder {reminder.id} ({recurrence_to_human(reminder.recurrence)}) "
            f"next at {reminder.trigger_time.isoformat()}"
        )

    await service.cancel(stretch.id, "bob", permanent=True)

    status = await service.status()
    logger.info(f"Status: {status.to_dict()}")

    await service.stop()


if __name__ == "__main__":
    asyncio.run(main())
