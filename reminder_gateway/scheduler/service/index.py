"""In-memory schedule index and interrupt gate.

The index holds only (trigger_time, reminder_id) pairs. It may contain
stale entries; the store is re-read before anything is dispatched.
Both objects are process-local and guarded by the service state lock.
"""
import asyncio
import heapq
from datetime import datetime


class ScheduleIndex:
    """Min-heap of reminder ids keyed by trigger time."""

    def __init__(self) -> None:
        self._heap: list[tuple[datetime, int, int]] = []
        # Insertion counter keeps heap entries comparable on equal instants
        self._counter = 0

    def __len__(self) -> int:
        return len(self._heap)

    def push(self, reminder_id: int, trigger_time: datetime) -> None:
        self._counter += 1
        heapq.heappush(self._heap, (trigger_time, self._counter, reminder_id))

    def pop_min(self) -> tuple[int, datetime] | None:
        """Remove and return the soonest ``(reminder_id, trigger_time)``."""
        if not self._heap:
            return None
        trigger_time, _, reminder_id = heapq.heappop(self._heap)
        return reminder_id, trigger_time

    def peek_time(self) -> datetime | None:
        return self._heap[0][0] if self._heap else None


class InterruptGate:
    """Cancellable wait signal that is swapped after every kick.

    A waiter grabs ``current()`` while holding the state lock, then
    waits on it after releasing the lock. A kick sets exactly that
    signal and installs a fresh one, so kicks issued between the grab
    and the wait are never lost.
    """

    def __init__(self) -> None:
        self._signal = asyncio.Event()

    def current(self) -> asyncio.Event:
        return self._signal

    def kick(self) -> None:
        self._signal.set()
        self._signal = asyncio.Event()
