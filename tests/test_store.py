"""Tests for the SQLite reminder store."""

from datetime import datetime, timedelta, timezone

import pytest

from reminder_gateway.scheduler import (
    DeliveryMode,
    EveryRecurrence,
    Reminder,
    RecurrenceUnit,
    UnparsedRecurrence,
)
from reminder_gateway.scheduler.service.store import ReminderStore, from_ms, to_ms

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


def _reminder(owner: str = "alice", offset_minutes: int = 10, **kwargs) -> Reminder:
    fields = dict(
        owner_id=owner,
        target_id=owner,
        message=f"ping {owner}",
        trigger_time=NOW + timedelta(minutes=offset_minutes),
    )
    fields.update(kwargs)
    return Reminder(**fields)


def test_ms_conversion():
    instant = datetime(2024, 1, 31, 8, 15, 30, 123000, tzinfo=timezone.utc)
    assert from_ms(to_ms(instant)) == instant
    assert to_ms(datetime(1970, 1, 1, 0, 0, 1)) == 1000


@pytest.mark.asyncio
async def test_insert_assigns_id_and_round_trips(store: ReminderStore):
    reminder = _reminder(
        target_id="bob",
        origin_id="chan-1",
        title="Standup",
        recurrence=EveryRecurrence(2, RecurrenceUnit.DAY),
        last_fired=NOW,
        delivery_mode=DeliveryMode.BROADCAST,
    )

    reminder_id = await store.insert(reminder)
    assert reminder.id == reminder_id

    loaded = await store.get(reminder_id)
    assert loaded is not None
    assert loaded.owner_id == "alice"
    assert loaded.target_id == "bob"
    assert loaded.origin_id == "chan-1"
    assert loaded.title == "Standup"
    assert loaded.trigger_time == reminder.trigger_time
    assert loaded.recurrence == EveryRecurrence(2, RecurrenceUnit.DAY)
    assert loaded.last_fired == NOW
    assert loaded.is_active is True
    assert loaded.delivery_mode == DeliveryMode.BROADCAST


@pytest.mark.asyncio
async def test_update_and_delete(store: ReminderStore):
    reminder = _reminder()
    await store.insert(reminder)

    reminder.message = "changed"
    reminder.is_active = False
    await store.update(reminder)

    loaded = await store.get(reminder.id)
    assert loaded.message == "changed"
    assert loaded.is_active is False

    assert await store.delete(reminder.id) is True
    assert await store.get(reminder.id) is None
    assert await store.delete(reminder.id) is False


@pytest.mark.asyncio
async def test_update_requires_id(store: ReminderStore):
    with pytest.raises(ValueError):
        await store.update(_reminder())


@pytest.mark.asyncio
async def test_update_fields_touches_only_given_columns(store: ReminderStore):
    reminder = _reminder(recurrence=EveryRecurrence(count=2, unit=RecurrenceUnit.HOUR))
    await store.insert(reminder)

    moved = NOW + timedelta(hours=3)
    assert await store.reschedule(reminder.id, reminder.trigger_time, moved, NOW) is True
    assert await store.update_fields(reminder.id, {"message": "changed"}) is True

    loaded = await store.get(reminder.id)
    assert loaded.message == "changed"
    assert loaded.trigger_time == moved
    assert loaded.last_fired == NOW

    with pytest.raises(ValueError):
        await store.update_fields(reminder.id, {"is_active": 1})


@pytest.mark.asyncio
async def test_update_fields_and_deactivate_skip_inactive(store: ReminderStore):
    reminder = _reminder()
    await store.insert(reminder)

    assert await store.deactivate(reminder.id) is True
    assert await store.deactivate(reminder.id) is False
    assert await store.update_fields(reminder.id, {"message": "late"}) is False
    assert (await store.get(reminder.id)).message == "ping alice"


@pytest.mark.asyncio
async def test_completion_writes_require_matching_active_trigger(store: ReminderStore):
    recurring = _reminder(recurrence=EveryRecurrence(count=1, unit=RecurrenceUnit.DAY))
    one_shot = _reminder(offset_minutes=20)
    await store.insert(recurring)
    await store.insert(one_shot)
    later = NOW + timedelta(days=1)

    # Wrong fired trigger: someone moved the reminder in the meantime
    wrong = recurring.trigger_time + timedelta(minutes=1)
    assert await store.reschedule(recurring.id, wrong, later, NOW) is False
    assert await store.deactivate_fired(recurring.id, wrong, NOW) is False
    assert await store.delete_fired(one_shot.id, one_shot.trigger_time + timedelta(minutes=1)) is False

    # Cancelled rows are never touched
    await store.deactivate(recurring.id)
    assert await store.reschedule(recurring.id, recurring.trigger_time, later, NOW) is False
    loaded = await store.get(recurring.id)
    assert loaded.trigger_time == recurring.trigger_time
    assert loaded.last_fired is None

    assert await store.delete_fired(one_shot.id, one_shot.trigger_time) is True
    assert await store.get(one_shot.id) is None


@pytest.mark.asyncio
async def test_deactivate_fired_records_last_fired(store: ReminderStore):
    reminder = _reminder(recurrence=UnparsedRecurrence("every fortnight"))
    await store.insert(reminder)

    assert await store.deactivate_fired(reminder.id, reminder.trigger_time, NOW) is True

    loaded = await store.get(reminder.id)
    assert loaded.is_active is False
    assert loaded.last_fired == NOW


@pytest.mark.asyncio
async def test_load_active_future_filters_inactive_and_past(store: ReminderStore):
    await store.insert(_reminder(offset_minutes=30))
    await store.insert(_reminder(offset_minutes=5))
    await store.insert(_reminder(offset_minutes=20, is_active=False))
    await store.insert(_reminder(offset_minutes=-5))

    loaded = await store.load_active_future(NOW)

    assert [r.trigger_time for r in loaded] == [
        NOW + timedelta(minutes=5),
        NOW + timedelta(minutes=30),
    ]


@pytest.mark.asyncio
async def test_list_for_owner_is_scoped_and_ordered(store: ReminderStore):
    await store.insert(_reminder("alice", offset_minutes=60))
    await store.insert(_reminder("bob", offset_minutes=1))
    await store.insert(_reminder("alice", offset_minutes=15))

    listed = await store.list_for_owner("alice", NOW)

    assert [r.owner_id for r in listed] == ["alice", "alice"]
    assert listed[0].trigger_time < listed[1].trigger_time


@pytest.mark.asyncio
async def test_count_by_state(store: ReminderStore):
    assert await store.count_by_state() == {"total": 0, "active": 0}

    await store.insert(_reminder())
    await store.insert(_reminder(is_active=False))

    assert await store.count_by_state() == {"total": 2, "active": 1}


@pytest.mark.asyncio
async def test_unparseable_stored_recurrence_loads_as_unparsed(store: ReminderStore):
    reminder = _reminder(recurrence=UnparsedRecurrence("every fortnight"))
    await store.insert(reminder)

    loaded = await store.get(reminder.id)
    assert loaded.recurrence == UnparsedRecurrence("every fortnight")
    assert loaded.is_recurring is True


@pytest.mark.asyncio
async def test_uninitialized_store_raises(db_path):
    with pytest.raises(RuntimeError):
        await ReminderStore(db_path).get(1)
