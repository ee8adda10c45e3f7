"""Scheduler service package.

This package contains the core scheduler service components:
- state.py: State management and dependencies
- store.py: SQLite persistence layer
- index.py: Schedule index and interrupt gate
- ops.py: Core operations (create, edit, cancel, list)
- timer.py: Scheduler loop and start-up reconciliation
- events.py: Event system
"""
from .service import ReminderService

__all__ = ["ReminderService"]
