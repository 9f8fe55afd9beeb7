"""
Data Models Package

This package contains all Pydantic models used by the ledger core.
All data flowing through the system must conform to these schemas.
"""

from household_ledger.models.wallet import (
    Category,
    CategoryKind,
    Currency,
    LedgerRecord,
    Wallet,
    WalletKind,
)
from household_ledger.models.transaction import (
    Transaction,
    TransactionKind,
    TransactionStatus,
)
from household_ledger.models.statement import (
    ClosingSweepResult,
    CreditCardPayment,
    CreditCardStatement,
    PaymentHistoryEntry,
    PaymentPlanKind,
    PaymentResult,
    PaymentStats,
    PaymentValidation,
    PolicyWarning,
    ScheduledPayment,
    StatementPeriod,
    StatementStatus,
    StatementSummary,
    SuggestedPayments,
    UpcomingDue,
)
from household_ledger.models.notification import (
    Notification,
    NotificationPriority,
    NotificationSummary,
    NotificationType,
)
from household_ledger.models.reports import (
    BalanceDrift,
    BalanceFix,
    ConsistencyReport,
    CurrencyTotal,
    HeartbeatResult,
    NotificationTally,
    WalletBalanceLine,
    WalletBalanceSummary,
)
from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Wallet models
    "Category",
    "CategoryKind",
    "Currency",
    "LedgerRecord",
    "Wallet",
    "WalletKind",
    # Transaction models
    "Transaction",
    "TransactionKind",
    "TransactionStatus",
    # Statement and payment models
    "ClosingSweepResult",
    "CreditCardPayment",
    "CreditCardStatement",
    "PaymentHistoryEntry",
    "PaymentPlanKind",
    "PaymentResult",
    "PaymentStats",
    "PaymentValidation",
    "PolicyWarning",
    "ScheduledPayment",
    "StatementPeriod",
    "StatementStatus",
    "StatementSummary",
    "SuggestedPayments",
    "UpcomingDue",
    # Notification models
    "Notification",
    "NotificationPriority",
    "NotificationSummary",
    "NotificationType",
    # Report models
    "BalanceDrift",
    "BalanceFix",
    "ConsistencyReport",
    "CurrencyTotal",
    "HeartbeatResult",
    "NotificationTally",
    "WalletBalanceLine",
    "WalletBalanceSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
