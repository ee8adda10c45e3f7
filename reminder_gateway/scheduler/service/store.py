"""SQLite persistence layer for reminders.

The store is the source of truth for reminder state. Instants are stored
as integer milliseconds since the Unix epoch (UTC).
"""
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import aiosqlite
from loguru import logger

from ..models import Reminder
from ..recurrence import ensure_utc, load_recurrence
from ..types import DeliveryMode

logger = logger.bind(module="scheduler.store")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MS = timedelta(milliseconds=1)

# Columns the mutation API may change on an active reminder
EDITABLE_COLUMNS = frozenset({"message", "title", "trigger_at_ms", "recurrence", "last_fired_ms"})


def to_ms(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds."""
    return (ensure_utc(value) - EPOCH) // ONE_MS


def from_ms(value: int) -> datetime:
    """Convert integer epoch milliseconds to an aware UTC datetime."""
    return EPOCH + timedelta(milliseconds=value)


class ReminderStore:
    """SQLite-based reminder persistence."""

    def __init__(self, db_path: str | Path):
        """Initialize reminder store.

        Args:
            db_path: Path to SQLite database
        """
        self.db_path = Path(db_path)
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Initialize database schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self.db_path)

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS reminders (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                owner_id TEXT NOT NULL,
                target_id TEXT NOT NULL,
                origin_id TEXT,
                message TEXT NOT NULL,
                title TEXT,
                trigger_at_ms INTEGER NOT NULL,
                recurrence TEXT,
                last_fired_ms INTEGER,
                is_active INTEGER DEFAULT 1,
                delivery_mode TEXT DEFAULT 'direct',
                created_at_ms INTEGER NOT NULL
            )
        """)

        await self._connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_reminders_owner ON reminders(owner_id)"
        )
        await self._connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_reminders_active_trigger "
            "ON reminders(is_active, trigger_at_ms)"
        )

        await self._connection.commit()
        logger.info(f"Reminder store initialized at {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> aiosqlite.Connection:
        if not self._connection:
            raise RuntimeError("ReminderStore not initialized")
        return self._connection

    async def insert(self, reminder: Reminder) -> int:
        """Insert a new reminder and assign its id."""
        connection = self._require_connection()

        cursor = await connection.execute(
            """
            INSERT INTO reminders (
                owner_id, target_id, origin_id, message, title,
                trigger_at_ms, recurrence, last_fired_ms, is_active,
                delivery_mode, created_at_ms
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            self._row_values(reminder),
        )
        await connection.commit()

        reminder.id = cursor.lastrowid
        return reminder.id

    async def update(self, reminder: Reminder) -> None:
        """Persist all fields of an existing reminder."""
        connection = self._require_connection()
        if reminder.id is None:
            raise ValueError("Cannot update a reminder without an id")

        await connection.execute(
            """
            UPDATE reminders SET
                owner_id = ?, target_id = ?, origin_id = ?, message = ?, title = ?,
                trigger_at_ms = ?, recurrence = ?, last_fired_ms = ?, is_active = ?,
                delivery_mode = ?, created_at_ms = ?
            WHERE id = ?
            """,
            (*self._row_values(reminder), reminder.id),
        )
        await connection.commit()

    async def update_fields(self, reminder_id: int, values: dict[str, Any]) -> bool:
        """Update selected columns of an active reminder.

        Args:
            reminder_id: Reminder to update
            values: Column name to new value, limited to EDITABLE_COLUMNS

        Returns:
            False if the reminder is missing or no longer active
        """
        connection = self._require_connection()
        unknown = set(values) - EDITABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns not editable: {sorted(unknown)}")
        if not values:
            return False

        assignments = ", ".join(f"{column} = ?" for column in values)
        cursor = await connection.execute(
            f"UPDATE reminders SET {assignments} WHERE id = ? AND is_active = 1",
            (*values.values(), reminder_id),
        )
        await connection.commit()
        return cursor.rowcount > 0

    async def deactivate(self, reminder_id: int) -> bool:
        """Mark a reminder inactive. Returns False if it was not active."""
        connection = self._require_connection()

        cursor = await connection.execute(
            "UPDATE reminders SET is_active = 0 WHERE id = ? AND is_active = 1",
            (reminder_id,),
        )
        await connection.commit()
        return cursor.rowcount > 0

    # Completion writes only apply while the row is still active with the
    # trigger time that was fired.

    async def reschedule(
        self,
        reminder_id: int,
        fired_trigger: datetime,
        next_trigger: datetime,
        last_fired: datetime,
    ) -> bool:
        """Move a fired recurring reminder to its next trigger time."""
        connection = self._require_connection()

        cursor = await connection.execute(
            "UPDATE reminders SET trigger_at_ms = ?, last_fired_ms = ? "
            "WHERE id = ? AND is_active = 1 AND trigger_at_ms = ?",
            (to_ms(next_trigger), to_ms(last_fired), reminder_id, to_ms(fired_trigger)),
        )
        await connection.commit()
        return cursor.rowcount > 0

    async def deactivate_fired(
        self,
        reminder_id: int,
        fired_trigger: datetime,
        last_fired: datetime,
    ) -> bool:
        """Deactivate a fired recurring reminder that has no next trigger."""
        connection = self._require_connection()

        cursor = await connection.execute(
            "UPDATE reminders SET is_active = 0, last_fired_ms = ? "
            "WHERE id = ? AND is_active = 1 AND trigger_at_ms = ?",
            (to_ms(last_fired), reminder_id, to_ms(fired_trigger)),
        )
        await connection.commit()
        return cursor.rowcount > 0

    async def delete_fired(self, reminder_id: int, fired_trigger: datetime) -> bool:
        """Delete a fired one-shot reminder."""
        connection = self._require_connection()

        cursor = await connection.execute(
            "DELETE FROM reminders WHERE id = ? AND is_active = 1 AND trigger_at_ms = ?",
            (reminder_id, to_ms(fired_trigger)),
        )
        await connection.commit()
        return cursor.rowcount > 0

    async def get(self, reminder_id: int) -> Reminder | None:
        """Get a reminder by id."""
        connection = self._require_connection()

        async with connection.execute(
            "SELECT * FROM reminders WHERE id = ?", (reminder_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_reminder(row, cursor.description)
        return None

    async def delete(self, reminder_id: int) -> bool:
        """Permanently delete a reminder."""
        connection = self._require_connection()

        result = await connection.execute(
            "DELETE FROM reminders WHERE id = ?", (reminder_id,)
        )
        await connection.commit()
        return result.rowcount > 0

    async def load_active_future(self, now: datetime) -> list[Reminder]:
        """Get all active reminders whose trigger time is after ``now``."""
        return await self._select(
            "SELECT * FROM reminders WHERE is_active = 1 AND trigger_at_ms > ? "
            "ORDER BY trigger_at_ms ASC",
            (to_ms(now),),
        )

    async def list_for_owner(self, owner_id: str, now: datetime) -> list[Reminder]:
        """Get an owner's active future reminders ordered by trigger time."""
        return await self._select(
            "SELECT * FROM reminders WHERE owner_id = ? AND is_active = 1 AND trigger_at_ms > ? "
            "ORDER BY trigger_at_ms ASC",
            (owner_id, to_ms(now)),
        )

    async def count_by_state(self) -> dict[str, int]:
        """Count reminders.

        Returns:
            Dict with ``total`` and ``active`` counts
        """
        connection = self._require_connection()

        async with connection.execute(
            "SELECT COUNT(*), COALESCE(SUM(is_active), 0) FROM reminders"
        ) as cursor:
            row = await cursor.fetchone()

        if not row:
            return {"total": 0, "active": 0}
        return {"total": row[0] or 0, "active": row[1] or 0}

    async def _select(self, query: str, params: tuple[Any, ...]) -> list[Reminder]:
        connection = self._require_connection()

        reminders = []
        async with connection.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            for row in rows:
                reminders.append(self._row_to_reminder(row, cursor.description))

        return reminders

    @staticmethod
    def _row_values(reminder: Reminder) -> tuple[Any, ...]:
        return (
            reminder.owner_id,
            reminder.target_id,
            reminder.origin_id,
            reminder.message,
            reminder.title,
            to_ms(reminder.trigger_time),
            str(reminder.recurrence) if reminder.recurrence else None,
            to_ms(reminder.last_fired) if reminder.last_fired else None,
            1 if reminder.is_active else 0,
            reminder.delivery_mode.value,
            to_ms(reminder.created_at),
        )

    def _row_to_reminder(self, row: Any, description: Any) -> Reminder:
        """Convert a database row to a Reminder."""
        columns = [col[0] for col in description]
        data = dict(zip(columns, row))

        last_fired_ms = data.get("last_fired_ms")

        return Reminder(
            id=data["id"],
            owner_id=data.get("owner_id", ""),
            target_id=data.get("target_id", ""),
            origin_id=data.get("origin_id"),
            message=data.get("message", ""),
            title=data.get("title"),
            trigger_time=from_ms(data["trigger_at_ms"]),
            recurrence=load_recurrence(data.get("recurrence")),
            last_fired=from_ms(last_fired_ms) if last_fired_ms is not None else None,
            is_active=bool(data.get("is_active", 1)),
            delivery_mode=DeliveryMode(data.get("delivery_mode") or "direct"),
            created_at=from_ms(data.get("created_at_ms", 0)),
        )
