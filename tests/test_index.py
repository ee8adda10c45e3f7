"""Tests for the schedule index and interrupt gate."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from reminder_gateway.scheduler.service.index import InterruptGate, ScheduleIndex

T = datetime(2024, 6, 1, tzinfo=timezone.utc)


def test_pop_min_returns_soonest_first():
    index = ScheduleIndex()
    index.push(1, T + timedelta(seconds=5))
    index.push(2, T + timedelta(seconds=1))
    index.push(3, T + timedelta(seconds=3))

    assert len(index) == 3
    assert index.peek_time() == T + timedelta(seconds=1)
    assert [index.pop_min()[0] for _ in range(3)] == [2, 3, 1]
    assert index.pop_min() is None
    assert index.peek_time() is None


def test_equal_instants_and_duplicate_ids():
    index = ScheduleIndex()
    index.push(7, T)
    index.push(4, T)
    index.push(7, T)

    popped = [index.pop_min() for _ in range(3)]
    assert sorted(reminder_id for reminder_id, _ in popped) == [4, 7, 7]
    assert all(trigger_time == T for _, trigger_time in popped)


@pytest.mark.asyncio
async def test_kick_sets_grabbed_signal_and_installs_fresh_one():
    gate = InterruptGate()
    grabbed = gate.current()

    gate.kick()

    assert grabbed.is_set()
    assert gate.current() is not grabbed
    assert not gate.current().is_set()


@pytest.mark.asyncio
async def test_kick_before_wait_is_not_lost():
    gate = InterruptGate()
    grabbed = gate.current()
    gate.kick()

    # Waiting after the kick still returns immediately
    await asyncio.wait_for(grabbed.wait(), timeout=0.5)
