"""Credit card alerts."""

from household_ledger.notifications.generator import NotificationGenerator, due_priority

__all__ = ["NotificationGenerator", "due_priority"]
