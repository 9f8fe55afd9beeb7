"""
Notification Models

Notifications are DERIVED values: they are recomputed on every scan and
never persisted. They carry data only; titles, icons and wording belong to
the presentation layer.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from household_ledger.clock import utc_now
from household_ledger.models.wallet import Currency


class NotificationType(str, Enum):
    """What the alert is about."""
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"
    CLOSING_SOON = "closing_soon"
    MINIMUM_PAYMENT_ALERT = "minimum_payment_alert"  # High credit usage


class NotificationPriority(str, Enum):
    """Urgency, most urgent first in PRIORITY_ORDER."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


PRIORITY_ORDER = {
    NotificationPriority.CRITICAL: 0,
    NotificationPriority.HIGH: 1,
    NotificationPriority.MEDIUM: 2,
    NotificationPriority.LOW: 3,
}


class Notification(BaseModel):
    """
    A single credit card alert.

    The id is deterministic (type + wallet + statement) so repeated scans
    produce the same id and merging can de-duplicate.
    """

    id: str
    wallet_id: str
    wallet_name: str
    statement_id: Optional[str] = Field(
        default=None,
        description="None for usage alerts, which are not tied to a statement"
    )
    type: NotificationType
    priority: NotificationPriority
    due_date: date
    amount: Decimal
    currency: Currency
    days_until_due: int
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def sort_key(self) -> tuple[int, date]:
        """Priority first, then earliest due date."""
        return PRIORITY_ORDER[self.priority], self.due_date


class NotificationSummary(BaseModel):
    """Counts of current notifications per priority and per type."""

    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    overdue: int = 0
    due_soon: int = 0
    closing_soon: int = 0
    usage_alerts: int = 0
