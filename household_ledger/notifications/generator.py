"""
Credit Card Notification Generator

Scans an owner's cards and statements and returns alert VALUES:

    due_soon / overdue      unpaid statements near or past their due date
    closing_soon            open statement about to close
    minimum_payment_alert   credit usage above the warning/critical thresholds

DESIGN DECISION: No notification is persisted and ids are deterministic
(type + wallet + statement), so running the scan twice yields the same
notifications and merging can de-duplicate by id. No titles or messages
are built here; rendering is the presentation layer's job.

The due and closing scans look up each card's current statement through
get_current_statement, which creates and stores it when the card has
none yet. That is the only write a scan can cause.
"""

from datetime import date
from typing import Optional

import structlog

from household_ledger.clock import Clock, utc_now
from household_ledger.config import LedgerSettings, get_settings
from household_ledger.errors import ValidationError
from household_ledger.models.notification import (
    Notification,
    NotificationPriority,
    NotificationSummary,
    NotificationType,
)
from household_ledger.models.wallet import Wallet, WalletKind
from household_ledger.services.storage import Collection, RecordStorageInterface
from household_ledger.statements.manager import StatementManager


logger = structlog.get_logger(__name__)


def due_priority(days_until_due: int) -> NotificationPriority:
    """Overdue is critical; due within 1 day high, 3 days medium, later low."""
    if days_until_due < 0:
        return NotificationPriority.CRITICAL
    if days_until_due <= 1:
        return NotificationPriority.HIGH
    if days_until_due <= 3:
        return NotificationPriority.MEDIUM
    return NotificationPriority.LOW


class NotificationGenerator:
    """Builds credit card alerts for one owner at a time."""

    def __init__(
        self,
        storage: RecordStorageInterface,
        statements: StatementManager,
        settings: Optional[LedgerSettings] = None,
        clock: Clock = utc_now,
    ):
        self._storage = storage
        self._statements = statements
        self._settings = settings or get_settings().ledger
        self._clock = clock

    def _today(self) -> date:
        return self._clock().date()

    async def _active_cards(self, owner: str) -> list[Wallet]:
        return await self._storage.query(
            Collection.WALLETS,
            owner=owner,
            kind=WalletKind.CREDIT_CARD,
            is_active=True,
        )

    # =========================================================================
    # GENERATORS
    # =========================================================================

    async def generate_due_notifications(
        self,
        owner: str,
        days_ahead: Optional[int] = None,
    ) -> list[Notification]:
        """
        One alert per unpaid statement due within days_ahead or overdue.

        May store a new current statement for a card that has none.
        """
        if days_ahead is None:
            days_ahead = self._settings.due_notification_days

        now = self._clock()
        notifications = []
        for upcoming in await self._statements.get_upcoming_due_dates(owner, days_ahead):
            statement = upcoming.statement
            remaining = statement.remaining_balance
            if remaining <= 0:
                continue

            days = upcoming.days_until_due
            if upcoming.is_overdue:
                kind, prefix = NotificationType.OVERDUE, "overdue"
            elif days <= 1:
                kind, prefix = NotificationType.DUE_SOON, "due_today"
            elif days <= 3:
                kind, prefix = NotificationType.DUE_SOON, "due_soon"
            else:
                kind, prefix = NotificationType.DUE_SOON, "due_reminder"

            notifications.append(Notification(
                id=f"{prefix}_{upcoming.wallet.id}_{statement.id}",
                wallet_id=upcoming.wallet.id,
                wallet_name=upcoming.wallet.name,
                statement_id=statement.id,
                type=kind,
                priority=due_priority(days),
                due_date=statement.due_date,
                amount=remaining,
                currency=statement.currency,
                days_until_due=days,
                created_at=now,
            ))

        return sorted(notifications, key=lambda n: n.sort_key)

    async def generate_closing_notifications(
        self,
        owner: str,
        days_ahead: Optional[int] = None,
    ) -> list[Notification]:
        """
        Alert when the open statement closes in 1..days_ahead days.

        May store a new current statement for a card that has none.
        """
        if days_ahead is None:
            days_ahead = self._settings.closing_notification_days

        today = self._today()
        now = self._clock()
        notifications = []
        for wallet in await self._active_cards(owner):
            if not wallet.has_billing_cycle:
                continue
            try:
                statement = await self._statements.get_current_statement(wallet.id)
            except ValidationError as e:
                logger.warning("closing_check_skipped", wallet_id=wallet.id, error=str(e))
                continue

            days_until_closing = (statement.period_end - today).days
            if not 0 < days_until_closing <= days_ahead:
                continue

            notifications.append(Notification(
                id=f"closing_{wallet.id}_{statement.id}",
                wallet_id=wallet.id,
                wallet_name=wallet.name,
                statement_id=statement.id,
                type=NotificationType.CLOSING_SOON,
                priority=(
                    NotificationPriority.MEDIUM if days_until_closing == 1
                    else NotificationPriority.LOW
                ),
                due_date=statement.period_end,
                amount=abs(wallet.balance),
                currency=wallet.currency,
                days_until_due=days_until_closing,
                created_at=now,
            ))

        return notifications

    async def generate_credit_usage_notifications(
        self,
        owner: str,
        warning_pct: Optional[float] = None,
        critical_pct: Optional[float] = None,
    ) -> list[Notification]:
        """Flag cards whose |balance| / credit_limit crosses a threshold."""
        if warning_pct is None:
            warning_pct = self._settings.usage_warning_pct
        if critical_pct is None:
            critical_pct = self._settings.usage_critical_pct

        today = self._today()
        now = self._clock()
        notifications = []
        for wallet in await self._active_cards(owner):
            usage = wallet.credit_usage_pct
            if usage is None:
                continue

            if usage >= critical_pct:
                prefix, priority = "credit_critical", NotificationPriority.CRITICAL
            elif usage >= warning_pct:
                prefix, priority = "credit_warning", NotificationPriority.MEDIUM
            else:
                continue

            notifications.append(Notification(
                id=f"{prefix}_{wallet.id}",
                wallet_id=wallet.id,
                wallet_name=wallet.name,
                type=NotificationType.MINIMUM_PAYMENT_ALERT,
                priority=priority,
                due_date=today,
                amount=abs(wallet.balance),
                currency=wallet.currency,
                days_until_due=0,
                created_at=now,
            ))

        return notifications

    # =========================================================================
    # AGGREGATES
    # =========================================================================

    async def get_all_credit_card_notifications(
        self,
        owner: str,
        include_due: bool = True,
        include_closing: bool = True,
        include_usage: bool = True,
        days_ahead: Optional[int] = None,
        usage_warning_pct: Optional[float] = None,
    ) -> list[Notification]:
        """Every alert for the owner, de-duplicated by id, most urgent first."""
        collected: list[Notification] = []
        if include_due:
            collected.extend(await self.generate_due_notifications(owner, days_ahead))
        if include_closing:
            collected.extend(await self.generate_closing_notifications(owner))
        if include_usage:
            collected.extend(await self.generate_credit_usage_notifications(owner, usage_warning_pct))

        unique = {n.id: n for n in collected}
        return sorted(unique.values(), key=lambda n: n.sort_key)

    async def get_notification_summary(self, owner: str) -> NotificationSummary:
        """Counts of the owner's current alerts per priority and type."""
        notifications = await self.get_all_credit_card_notifications(owner)
        summary = NotificationSummary(total=len(notifications))

        for notification in notifications:
            if notification.priority == NotificationPriority.CRITICAL:
                summary.critical += 1
            elif notification.priority == NotificationPriority.HIGH:
                summary.high += 1
            elif notification.priority == NotificationPriority.MEDIUM:
                summary.medium += 1
            else:
                summary.low += 1

            if notification.type == NotificationType.OVERDUE:
                summary.overdue += 1
            elif notification.type == NotificationType.DUE_SOON:
                summary.due_soon += 1
            elif notification.type == NotificationType.CLOSING_SOON:
                summary.closing_soon += 1
            else:
                summary.usage_alerts += 1

        return summary
