"""Reminder Hub - notification scheduling and recovery reconciliation."""

__version__ = "0.1.0"

from reminder_hub.exceptions import ReminderHubError

__all__ = ["__version__", "ReminderHubError"]
