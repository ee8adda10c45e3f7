# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from reminder_gateway.scheduler import ReminderService
from reminder_gateway.scheduler.service.store import ReminderStore

from .fakes import FakeDelivery


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "reminders.db"


@pytest.fixture()
def delivery() -> FakeDelivery:
    return FakeDelivery()


@pytest_asyncio.fixture()
async def store(db_path: Path):
    """Real SQLite store in a temporary directory."""
    reminder_store = ReminderStore(db_path)
    await reminder_store.initialize()
    yield reminder_store
    await reminder_store.close()


@pytest_asyncio.fixture()
async def service(db_path: Path, delivery: FakeDelivery):
    """
    Running ReminderService wired to a FakeDelivery.

    NOTE: the store is real SQLite; only delivery is faked.
    """
    reminder_service = ReminderService(
        db_path=db_path,
        delivery=delivery,
        shutdown_timeout_seconds=2.0,
    )
    await reminder_service.start()
    yield reminder_service
    await reminder_service.stop()
