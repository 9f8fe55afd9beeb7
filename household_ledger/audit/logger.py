"""
Audit Logger

DESIGN DECISION: Every money-moving action in the system is logged.
This provides:
1. Complete traceability of balance changes
2. Debugging capability when reconciliation finds drift
3. An auditable trail for every explicit balance repair

The audit logger:
- Always logs locally through structlog
- Persists events to the ``audit_events`` collection when storage is configured
- Gracefully handles persistence failures (never breaks a committed operation)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from household_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from household_ledger.services.storage import Collection, RecordStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Record storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[RecordStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                await self._storage.put(Collection.AUDIT_EVENTS, event)
                return True
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=event.id,
                )
                return False

        return True

    async def events_for_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        """Persisted events about one entity, oldest first."""
        if not self._storage:
            return []
        events = await self._storage.query(
            Collection.AUDIT_EVENTS,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        return sorted(events, key=lambda e: e.timestamp)

    async def log_transaction_posted(
        self,
        transaction_id: str,
        owner: str,
        kind: str,
        amount: Decimal,
        wallet_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_posted(
            transaction_id=transaction_id,
            owner=owner,
            kind=kind,
            amount=amount,
            wallet_id=wallet_id,
            correlation_id=correlation_id,
        ))

    async def log_transaction_changed(
        self,
        event_type: AuditEventType,
        transaction_id: str,
        owner: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_changed(
            event_type=event_type,
            transaction_id=transaction_id,
            owner=owner,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_statement_created(
        self,
        statement_id: str,
        wallet_id: str,
        owner: str,
        period_start: str,
        period_end: str,
    ) -> None:
        await self.log(AuditEventBuilder.statement_created(
            statement_id=statement_id,
            wallet_id=wallet_id,
            owner=owner,
            period_start=period_start,
            period_end=period_end,
        ))

    async def log_statement_closed(
        self,
        statement_id: str,
        owner: str,
        current_balance: Decimal,
        next_statement_id: str,
    ) -> None:
        await self.log(AuditEventBuilder.statement_closed(
            statement_id=statement_id,
            owner=owner,
            current_balance=current_balance,
            next_statement_id=next_statement_id,
        ))

    async def log_closing_sweep(
        self,
        closed_count: int,
        created_count: int,
        error_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.closing_sweep_completed(
            closed_count=closed_count,
            created_count=created_count,
            error_count=error_count,
        ))

    async def log_payment_processed(
        self,
        payment_id: str,
        statement_id: str,
        owner: str,
        amount: Decimal,
        from_wallet_id: str,
        statement_status: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.payment_processed(
            payment_id=payment_id,
            statement_id=statement_id,
            owner=owner,
            amount=amount,
            from_wallet_id=from_wallet_id,
            statement_status=statement_status,
            correlation_id=correlation_id,
        ))

    async def log_payment_rejected(
        self,
        statement_id: str,
        amount: Decimal,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.payment_rejected(
            statement_id=statement_id,
            amount=amount,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_automatic_payment_requested(
        self,
        wallet_id: str,
        source_wallet_id: str,
        plan: str,
        next_payment_date: str,
    ) -> None:
        await self.log(AuditEventBuilder.automatic_payment_requested(
            wallet_id=wallet_id,
            source_wallet_id=source_wallet_id,
            plan=plan,
            next_payment_date=next_payment_date,
        ))

    async def log_balance_drift(
        self,
        wallet_id: str,
        stored: Decimal,
        expected: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.balance_drift_detected(
            wallet_id=wallet_id,
            stored=stored,
            expected=expected,
        ))

    async def log_balance_fixed(
        self,
        wallet_id: str,
        owner: str,
        old_balance: Decimal,
        new_balance: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.balance_fixed(
            wallet_id=wallet_id,
            owner=owner,
            old_balance=old_balance,
            new_balance=new_balance,
        ))

    async def log_heartbeat(
        self,
        total_errors: int,
        closed_count: int,
        notification_count: int,
        drift_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.heartbeat_completed(
            total_errors=total_errors,
            closed_count=closed_count,
            notification_count=notification_count,
            drift_count=drift_count,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., a card payment).
    Pass it through all subsequent operations.
    """
    return uuid4()
