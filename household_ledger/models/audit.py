"""
Audit Models for the Household Ledger

Every money-moving action is logged for audit purposes.
This provides:
1. Complete traceability of balance changes
2. Debugging information when a balance drifts
3. An explicit record of every reconciliation repair

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from household_ledger.clock import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Transactions
    TRANSACTION_POSTED = "transaction_posted"
    TRANSACTION_REVERSED = "transaction_reversed"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Statements
    STATEMENT_CREATED = "statement_created"
    STATEMENT_CLOSED = "statement_closed"
    CLOSING_SWEEP_COMPLETED = "closing_sweep_completed"

    # Payments
    PAYMENT_PROCESSED = "payment_processed"
    PAYMENT_REJECTED = "payment_rejected"
    AUTOMATIC_PAYMENT_REQUESTED = "automatic_payment_requested"

    # Reconciliation
    BALANCE_DRIFT_DETECTED = "balance_drift_detected"
    BALANCE_FIXED = "balance_fixed"

    # System events
    HEARTBEAT_COMPLETED = "heartbeat_completed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Stored in the ``audit_events`` collection, keyed by ``id``.
    """

    id: str = Field(
        default_factory=lambda: f"audit_{uuid4().hex}",
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'wallet', 'statement', 'payment')"
    )
    entity_id: Optional[str] = None
    owner: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one payment)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "owner": self.owner,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_posted(tx, correlation_id)
        event = AuditEventBuilder.balance_fixed(wallet_id, old, new)
    """

    @staticmethod
    def transaction_posted(
        transaction_id: str,
        owner: str,
        kind: str,
        amount: Decimal,
        wallet_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_POSTED,
            entity_type="transaction",
            entity_id=transaction_id,
            owner=owner,
            correlation_id=correlation_id,
            description=f"{kind.capitalize()} of {amount} posted to {wallet_id}",
            details={"kind": kind, "amount": str(amount), "wallet_id": wallet_id},
        )

    @staticmethod
    def transaction_changed(
        event_type: AuditEventType,
        transaction_id: str,
        owner: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            entity_type="transaction",
            entity_id=transaction_id,
            owner=owner,
            correlation_id=correlation_id,
            description=f"Transaction {transaction_id} {verb}",
            details=details or {},
        )

    @staticmethod
    def statement_created(
        statement_id: str,
        wallet_id: str,
        owner: str,
        period_start: str,
        period_end: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATEMENT_CREATED,
            entity_type="statement",
            entity_id=statement_id,
            owner=owner,
            description=f"Statement opened for {wallet_id}: {period_start} to {period_end}",
            details={
                "wallet_id": wallet_id,
                "period_start": period_start,
                "period_end": period_end,
            },
        )

    @staticmethod
    def statement_closed(
        statement_id: str,
        owner: str,
        current_balance: Decimal,
        next_statement_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATEMENT_CLOSED,
            entity_type="statement",
            entity_id=statement_id,
            owner=owner,
            description=f"Statement closed with balance {current_balance}",
            details={
                "current_balance": str(current_balance),
                "next_statement_id": next_statement_id,
            },
        )

    @staticmethod
    def closing_sweep_completed(
        closed_count: int,
        created_count: int,
        error_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLOSING_SWEEP_COMPLETED,
            severity=AuditSeverity.WARNING if error_count else AuditSeverity.INFO,
            description=f"Closing sweep closed {closed_count} statements with {error_count} errors",
            details={
                "closed_count": closed_count,
                "created_count": created_count,
                "error_count": error_count,
            },
        )

    @staticmethod
    def payment_processed(
        payment_id: str,
        statement_id: str,
        owner: str,
        amount: Decimal,
        from_wallet_id: str,
        statement_status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_PROCESSED,
            entity_type="payment",
            entity_id=payment_id,
            owner=owner,
            correlation_id=correlation_id,
            description=f"Payment of {amount} applied to statement {statement_id}",
            details={
                "statement_id": statement_id,
                "amount": str(amount),
                "from_wallet_id": from_wallet_id,
                "statement_status": statement_status,
            },
        )

    @staticmethod
    def payment_rejected(
        statement_id: str,
        amount: Decimal,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="statement",
            entity_id=statement_id,
            correlation_id=correlation_id,
            description=f"Payment of {amount} rejected",
            error_message=reason,
            details={"amount": str(amount)},
        )

    @staticmethod
    def automatic_payment_requested(
        wallet_id: str,
        source_wallet_id: str,
        plan: str,
        next_payment_date: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTOMATIC_PAYMENT_REQUESTED,
            entity_type="wallet",
            entity_id=wallet_id,
            description=f"Automatic {plan} payment requested (not scheduled)",
            details={
                "source_wallet_id": source_wallet_id,
                "plan": plan,
                "next_payment_date": next_payment_date,
            },
        )

    @staticmethod
    def balance_drift_detected(
        wallet_id: str,
        stored: Decimal,
        expected: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_DRIFT_DETECTED,
            severity=AuditSeverity.WARNING,
            entity_type="wallet",
            entity_id=wallet_id,
            description=f"Balance drift on {wallet_id}: stored {stored}, expected {expected}",
            details={"stored_balance": str(stored), "expected_balance": str(expected)},
        )

    @staticmethod
    def balance_fixed(
        wallet_id: str,
        owner: str,
        old_balance: Decimal,
        new_balance: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_FIXED,
            severity=AuditSeverity.WARNING,
            entity_type="wallet",
            entity_id=wallet_id,
            owner=owner,
            description=f"Balance of {wallet_id} repaired: {old_balance} -> {new_balance}",
            details={
                "old_balance": str(old_balance),
                "new_balance": str(new_balance),
                "difference": str(new_balance - old_balance),
            },
        )

    @staticmethod
    def heartbeat_completed(
        total_errors: int,
        closed_count: int,
        notification_count: int,
        drift_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HEARTBEAT_COMPLETED,
            severity=AuditSeverity.WARNING if total_errors else AuditSeverity.INFO,
            description=f"Heartbeat completed with {total_errors} errors",
            details={
                "closed_count": closed_count,
                "notification_count": notification_count,
                "drift_count": drift_count,
                "total_errors": total_errors,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
