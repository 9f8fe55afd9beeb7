"""
Component Wiring for the Household Ledger

Builds one storage backend, one audit logger and one set of services that
share them (and share the per-record lock registry, so payments and the
closing sweep serialize on the same statement locks).

DESIGN DECISION: The clock and id generator are injected here once and
flow into every service, so a test can pin time and ids for the whole
system with one call.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from household_ledger.audit import AuditLogger
from household_ledger.clock import Clock, IdGenerator, new_id, utc_now
from household_ledger.config import LedgerSettings, get_settings
from household_ledger.heartbeat import Heartbeat
from household_ledger.ledger.balance import BalanceLedger
from household_ledger.ledger.reconciliation import ReconciliationService
from household_ledger.ledger.transactions import TransactionService
from household_ledger.notifications.generator import NotificationGenerator
from household_ledger.payments.processor import PaymentProcessor
from household_ledger.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsRecordStorage,
    InMemoryRecordStorage,
    RecordLocks,
    RecordStorageInterface,
)
from household_ledger.statements.manager import StatementManager


logger = structlog.get_logger(__name__)


@dataclass
class LedgerComponents:
    """Everything a caller needs, wired to one storage."""

    storage: RecordStorageInterface
    audit_logger: AuditLogger
    ledger: BalanceLedger
    transactions: TransactionService
    statements: StatementManager
    payments: PaymentProcessor
    notifications: NotificationGenerator
    reconciliation: ReconciliationService
    heartbeat: Heartbeat


def create_storage(backend: str) -> RecordStorageInterface:
    """
    Storage for the configured backend.

    Falls back to in-memory storage when Google Sheets is not configured.
    """
    if backend == "google_sheets":
        try:
            return GoogleSheetsRecordStorage(GoogleSheetsClient())
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", backend=backend, error=str(e))
    return InMemoryRecordStorage()


def create_app_components(
    storage: Optional[RecordStorageInterface] = None,
    settings: Optional[LedgerSettings] = None,
    clock: Clock = utc_now,
    id_generator: IdGenerator = new_id,
) -> LedgerComponents:
    """
    Factory function to create all application components.

    Args:
        storage: Backend to use. Defaults to the one named by
                 APP settings (``storage_backend``).
        settings: Business rules. Defaults to LEDGER_* environment settings.
        clock: Time source shared by every service.
        id_generator: Id source shared by every service.
    """
    if storage is None:
        storage = create_storage(get_settings().app.storage_backend)
    settings = settings or get_settings().ledger

    audit_logger = AuditLogger(storage)
    locks = RecordLocks()

    ledger = BalanceLedger(storage, clock)
    statements = StatementManager(
        storage,
        settings=settings,
        audit_logger=audit_logger,
        locks=locks,
        clock=clock,
        id_generator=id_generator,
    )
    transactions = TransactionService(
        storage,
        ledger,
        statements,
        audit_logger=audit_logger,
        clock=clock,
        id_generator=id_generator,
    )
    payments = PaymentProcessor(
        storage,
        ledger,
        statements,
        settings=settings,
        audit_logger=audit_logger,
        locks=locks,
        clock=clock,
        id_generator=id_generator,
    )
    notifications = NotificationGenerator(storage, statements, settings=settings, clock=clock)
    reconciliation = ReconciliationService(storage, audit_logger=audit_logger, clock=clock)
    heartbeat = Heartbeat(
        storage,
        statements,
        notifications,
        reconciliation,
        audit_logger=audit_logger,
        clock=clock,
    )

    return LedgerComponents(
        storage=storage,
        audit_logger=audit_logger,
        ledger=ledger,
        transactions=transactions,
        statements=statements,
        payments=payments,
        notifications=notifications,
        reconciliation=reconciliation,
        heartbeat=heartbeat,
    )
