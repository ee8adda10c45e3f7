"""Reminder Gateway - one-shot and recurring reminder scheduler."""
