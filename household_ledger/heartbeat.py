"""
Daily Heartbeat

One maintenance run, meant to be triggered once a day (or on app load):

    Stage 1: automatic statement closing sweep
    Stage 2: notification tally for every owner of an active card
    Stage 3: balance consistency check (drift reported, never repaired)

DESIGN DECISION: Each stage isolates its own failures. A broken stage is
recorded in the result and the next stage still runs.
"""

from typing import Optional

import structlog

from household_ledger.audit import AuditLogger
from household_ledger.clock import Clock, utc_now
from household_ledger.ledger.reconciliation import ReconciliationService
from household_ledger.models.notification import NotificationPriority
from household_ledger.models.reports import ConsistencyReport, HeartbeatResult, NotificationTally
from household_ledger.models.wallet import WalletKind
from household_ledger.notifications.generator import NotificationGenerator
from household_ledger.services.storage import Collection, RecordStorageInterface
from household_ledger.statements.manager import StatementManager


logger = structlog.get_logger(__name__)


class Heartbeat:
    """Runs the daily maintenance stages."""

    def __init__(
        self,
        storage: RecordStorageInterface,
        statements: StatementManager,
        notifications: NotificationGenerator,
        reconciliation: ReconciliationService,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = utc_now,
    ):
        self._storage = storage
        self._statements = statements
        self._notifications = notifications
        self._reconciliation = reconciliation
        self._audit_logger = audit_logger
        self._clock = clock

    async def run_heartbeat(self) -> HeartbeatResult:
        """Run all three stages and report what happened."""
        result = HeartbeatResult(started_at=self._clock())
        logger.debug("heartbeat_started", started_at=result.started_at.isoformat())

        # Stage 1
        try:
            result.statements = await self._statements.process_automatic_closings()
        except Exception as e:
            logger.error("heartbeat_statements_failed", error=str(e))
            result.statements.errors.append(f"Failed to process statement closings: {e}")

        # Stage 2
        try:
            result.notifications = await self._tally_notifications()
        except Exception as e:
            logger.error("heartbeat_notifications_failed", error=str(e))
            result.notifications.errors.append(f"Failed to generate notifications: {e}")

        if result.notifications.critical_alerts:
            logger.warning(
                "critical_credit_card_alerts",
                owners=result.notifications.total_owners,
                critical=result.notifications.critical_alerts,
            )

        # Stage 3
        try:
            result.consistency = await self._check_consistency()
        except Exception as e:
            logger.error("heartbeat_consistency_failed", error=str(e))
            result.consistency.errors.append(f"Failed to check balances: {e}")

        result.total_errors = (
            len(result.statements.errors)
            + len(result.notifications.errors)
            + len(result.consistency.errors)
        )
        result.success = result.total_errors == 0

        logger.info(
            "heartbeat_completed",
            success=result.success,
            total_errors=result.total_errors,
            closed=result.statements.closed_count,
            notifications=result.notifications.total_notifications,
            drifts=len(result.consistency.drifts),
        )
        if self._audit_logger:
            await self._audit_logger.log_heartbeat(
                total_errors=result.total_errors,
                closed_count=result.statements.closed_count,
                notification_count=result.notifications.total_notifications,
                drift_count=len(result.consistency.drifts),
            )
        return result

    async def _tally_notifications(self) -> NotificationTally:
        cards = await self._storage.query(
            Collection.WALLETS,
            kind=WalletKind.CREDIT_CARD,
            is_active=True,
        )
        owners = sorted({card.owner for card in cards})
        tally = NotificationTally(total_owners=len(owners))

        for owner in owners:
            try:
                notifications = await self._notifications.get_all_credit_card_notifications(owner)
            except Exception as e:
                tally.errors.append(f"Failed to generate notifications for owner {owner}: {e}")
                continue
            tally.total_notifications += len(notifications)
            tally.critical_alerts += sum(
                1 for n in notifications if n.priority == NotificationPriority.CRITICAL
            )
        return tally

    async def _check_consistency(self) -> ConsistencyReport:
        wallets = await self._storage.list_all(Collection.WALLETS)
        report = ConsistencyReport()

        for wallet in wallets:
            try:
                expected = await self._reconciliation.recalculate_balance(wallet.id)
            except Exception as e:
                report.errors.append(f"Failed to check wallet {wallet.id}: {e}")
                continue
            report.wallets_checked += 1
            if expected != wallet.balance:
                drift = await self._reconciliation.report_drift(wallet, expected)
                report.drifts.append(drift)
        return report
