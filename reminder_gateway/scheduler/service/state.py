"""State management for the scheduler service.

Contains dependency injection and runtime state management.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable

from ..delivery import DeliveryMechanism, LoggingDelivery, Renderer, render_reminder
from .index import InterruptGate, ScheduleIndex

# Ensures owner/target identities exist before a reminder references them
IdentityResolver = Callable[[str, str], Awaitable[None]]


async def _noop_identity_resolver(owner_id: str, target_id: str) -> None:  # noqa: ARG001
    return None


@dataclass
class SchedulerServiceDeps:
    """Dependencies for the scheduler service.

    This allows for dependency injection of external services.
    """
    delivery: DeliveryMechanism = field(default_factory=LoggingDelivery)
    renderer: Renderer = render_reminder
    ensure_identities: IdentityResolver = _noop_identity_resolver


@dataclass
class SchedulerServiceState:
    """Runtime state of the scheduler service."""
    running: bool = False
    loop_task: asyncio.Task | None = None
    index: ScheduleIndex = field(default_factory=ScheduleIndex)
    gate: InterruptGate = field(default_factory=InterruptGate)
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)
    waiting_until: datetime | None = None

    # Guards index and gate; never held across store I/O
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def reset(self) -> None:
        """Reset state to initial values."""
        self.running = False
        self.loop_task = None
        self.index = ScheduleIndex()
        self.gate = InterruptGate()
        self.stop_event = asyncio.Event()
        self.waiting_until = None
