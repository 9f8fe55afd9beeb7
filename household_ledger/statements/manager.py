"""
Statement Manager

Owns the lifecycle of credit card statements:

    get_current_statement  ->  open statement (created on demand)
    add_transaction_to_statement  ->  link a card transaction by date
    update_statement_totals  ->  recompute charges/payments/balance/minimum
    close_statement  ->  close and roll to the next period
    process_automatic_closings  ->  daily sweep of past-due open statements

DESIGN DECISION: Totals are always RECOMPUTED from the linked transactions,
never incremented. A statement can therefore be rebuilt at any time and an
edited or deleted charge is reflected by simply recomputing.

Payment-generated credits (transactions carrying a payment_id) are linked
to their statement but only counted in paid_amount. total_payments holds
the other credits on the card (refunds, direct income).
"""

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import structlog

from household_ledger.audit import AuditLogger
from household_ledger.clock import Clock, IdGenerator, new_id, utc_now
from household_ledger.config import LedgerSettings, get_settings
from household_ledger.errors import ValidationError
from household_ledger.models.statement import (
    ZERO,
    ClosingSweepResult,
    CreditCardStatement,
    StatementStatus,
    StatementSummary,
    UpcomingDue,
)
from household_ledger.models.transaction import Transaction, TransactionKind
from household_ledger.models.wallet import Wallet, WalletKind
from household_ledger.services.storage import (
    Collection,
    RecordLocks,
    RecordStorageInterface,
    UnitOfWork,
)
from household_ledger.statements.period import calculate_period, check_closing_day


logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
RECENT_STATEMENTS = 3


class StatementManager:
    """
    Creates, updates and closes credit card statements.

    Usage:
        manager = StatementManager(storage)
        statement = await manager.get_current_statement(card_id)
    """

    def __init__(
        self,
        storage: RecordStorageInterface,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        locks: Optional[RecordLocks] = None,
        clock: Clock = utc_now,
        id_generator: IdGenerator = new_id,
    ):
        self._storage = storage
        self._settings = settings or get_settings().ledger
        self._audit_logger = audit_logger
        self._locks = locks or RecordLocks()
        self._clock = clock
        self._id_generator = id_generator

    @property
    def locks(self) -> RecordLocks:
        return self._locks

    def bind(self, storage: RecordStorageInterface) -> "StatementManager":
        """Same manager (settings, locks, clock) working on another storage."""
        return StatementManager(
            storage,
            settings=self._settings,
            audit_logger=self._audit_logger,
            locks=self._locks,
            clock=self._clock,
            id_generator=self._id_generator,
        )

    def _today(self) -> date:
        return self._clock().date()

    # =========================================================================
    # CURRENT STATEMENT
    # =========================================================================

    async def get_current_statement(self, wallet_id: str) -> CreditCardStatement:
        """
        The card's open statement, created for today's period if absent.

        A statement already PAID while its period is still running counts
        as current, so paying early does not spawn a second statement for
        the same period.

        Raises:
            ReferentialError: wallet missing
            ValidationError: not a credit card, or no billing cycle configured
        """
        wallet = await self._storage.require(Collection.WALLETS, wallet_id)
        self.require_billing_cycle(wallet)

        statements = await self._storage.query(Collection.STATEMENTS, wallet_id=wallet_id)

        open_statements = sorted(
            (s for s in statements if s.status == StatementStatus.OPEN),
            key=lambda s: s.period_start,
        )
        if open_statements:
            if len(open_statements) > 1:
                logger.warning(
                    "multiple_open_statements",
                    wallet_id=wallet_id,
                    statement_ids=[s.id for s in open_statements],
                )
            return open_statements[0]

        today = self._today()
        for statement in statements:
            if statement.status == StatementStatus.PAID and statement.period.contains(today):
                return statement

        return await self.create_statement(wallet, today)

    async def create_statement(self, wallet: Wallet, reference_date: date) -> CreditCardStatement:
        """
        Create the open statement for the period containing reference_date.

        If a statement for that period already exists it is returned
        unchanged.
        """
        self.require_billing_cycle(wallet)
        period = calculate_period(
            wallet.closing_day,
            wallet.due_day,
            reference_date,
            self._settings.closing_day_overflow,
        )

        existing = await self._storage.query(
            Collection.STATEMENTS,
            wallet_id=wallet.id,
            period_start=period.period_start,
        )
        if existing:
            return existing[0]

        now = self._clock()
        statement = CreditCardStatement(
            id=self._id_generator("stmt"),
            owner=wallet.owner,
            wallet_id=wallet.id,
            period_start=period.period_start,
            period_end=period.period_end,
            due_date=period.due_date,
            currency=wallet.currency,
            created_at=now,
            updated_at=now,
        )
        await self._storage.put(Collection.STATEMENTS, statement)

        logger.info(
            "statement_created",
            statement_id=statement.id,
            wallet_id=wallet.id,
            period_start=str(period.period_start),
            period_end=str(period.period_end),
        )
        if self._audit_logger:
            await self._audit_logger.log_statement_created(
                statement_id=statement.id,
                wallet_id=wallet.id,
                owner=wallet.owner,
                period_start=period.period_start.isoformat(),
                period_end=period.period_end.isoformat(),
            )
        return statement

    # =========================================================================
    # LINKING AND TOTALS
    # =========================================================================

    async def add_transaction_to_statement(self, tx: Transaction) -> Optional[CreditCardStatement]:
        """
        Link a card transaction to the current statement.

        Only transactions flagged is_from_credit_card whose date falls
        inside the current statement's period are linked; anything else
        is left alone and None is returned.
        """
        if not tx.is_from_credit_card:
            return None

        statement = await self.get_current_statement(tx.wallet_id)
        if not statement.period.contains(tx.date):
            logger.debug(
                "transaction_outside_statement_period",
                transaction_id=tx.id,
                statement_id=statement.id,
                date=str(tx.date),
            )
            return None

        tx.statement_id = statement.id
        tx.updated_at = self._clock()
        await self._storage.put(Collection.TRANSACTIONS, tx)

        return await self.update_statement_totals(statement.id)

    async def update_statement_totals(self, statement_id: str) -> CreditCardStatement:
        """
        Recompute totals from the completed transactions linked to a statement.

        Also keeps status in step with paid_amount: PAID once it covers a
        positive balance, back to OPEN/CLOSED if new charges outgrow it.
        """
        statement = await self._storage.require(Collection.STATEMENTS, statement_id)
        linked = await self._storage.query(Collection.TRANSACTIONS, statement_id=statement_id)

        total_charges = ZERO
        total_payments = ZERO
        for tx in linked:
            if not tx.is_completed:
                continue
            if tx.kind == TransactionKind.EXPENSE:
                total_charges += tx.amount
            elif tx.kind == TransactionKind.INCOME and tx.payment_id is None:
                total_payments += tx.amount

        statement.total_charges = total_charges
        statement.total_payments = total_payments
        statement.current_balance = total_charges - total_payments
        statement.minimum_payment = self.minimum_payment_for(statement.current_balance)

        await self._sync_paid_status(statement)

        statement.updated_at = self._clock()
        await self._storage.put(Collection.STATEMENTS, statement)
        return statement

    def minimum_payment_for(self, current_balance: Decimal) -> Decimal:
        """
        max(balance x rate, floor), rounded to cents and never above the
        balance itself. Zero when nothing is owed.
        """
        if current_balance <= 0:
            return ZERO
        minimum = max(
            current_balance * self._settings.minimum_payment_rate,
            self._settings.minimum_payment_floor,
        )
        minimum = minimum.quantize(CENT, rounding=ROUND_HALF_UP)
        return min(minimum, current_balance)

    async def _sync_paid_status(self, statement: CreditCardStatement) -> None:
        covered = statement.current_balance > 0 and statement.paid_amount >= statement.current_balance

        if covered and statement.status != StatementStatus.PAID:
            statement.status = StatementStatus.PAID
            statement.paid_date = statement.paid_date or self._today()
        elif statement.status == StatementStatus.PAID and statement.current_balance > statement.paid_amount:
            # New charges outgrew the payments
            statement.paid_date = None
            statement.status = await self._unpaid_status(statement)

    async def _unpaid_status(self, statement: CreditCardStatement) -> StatementStatus:
        if self._today() > statement.period_end:
            return StatementStatus.CLOSED
        others = await self._storage.query(
            Collection.STATEMENTS,
            wallet_id=statement.wallet_id,
            status=StatementStatus.OPEN,
        )
        if any(s.id != statement.id for s in others):
            return StatementStatus.CLOSED
        return StatementStatus.OPEN

    # =========================================================================
    # CLOSING
    # =========================================================================

    async def close_statement(self, statement_id: str) -> CreditCardStatement:
        """
        Close a statement and create the next period's statement.

        Totals are recomputed under the statement lock first, so a payment
        in flight is either fully counted or not started. A PAID statement
        keeps its status.

        Returns:
            The new open statement

        Raises:
            ReferentialError: statement or wallet missing
            ValidationError: statement already closed
        """
        async with self._locks.hold(Collection.STATEMENTS, statement_id):
            async with UnitOfWork(self._storage) as uow:
                manager = self.bind(uow)
                existing = await uow.require(Collection.STATEMENTS, statement_id)
                if existing.status == StatementStatus.CLOSED:
                    raise ValidationError(f"Statement {statement_id} is already closed")

                statement = await manager.update_statement_totals(statement_id)
                wallet = await uow.require(Collection.WALLETS, statement.wallet_id)

                if statement.status == StatementStatus.OPEN:
                    statement.status = StatementStatus.CLOSED
                    statement.updated_at = self._clock()
                    await uow.put(Collection.STATEMENTS, statement)

                next_statement = await manager.create_statement(
                    wallet,
                    statement.period_end + timedelta(days=1),
                )

        logger.info(
            "statement_closed",
            statement_id=statement.id,
            status=statement.status.value,
            next_statement_id=next_statement.id,
        )
        if self._audit_logger:
            await self._audit_logger.log_statement_closed(
                statement_id=statement.id,
                owner=statement.owner,
                current_balance=statement.current_balance,
                next_statement_id=next_statement.id,
            )
        return next_statement

    async def process_automatic_closings(self) -> ClosingSweepResult:
        """
        Close every open statement whose period has ended.

        A card idle for several periods is rolled repeatedly until its open
        statement covers today. A failure on one statement is recorded and
        the sweep carries on.
        """
        today = self._today()
        result = ClosingSweepResult()

        open_statements = await self._storage.query(
            Collection.STATEMENTS,
            status=StatementStatus.OPEN,
        )
        for statement in open_statements:
            if statement.period_end >= today:
                continue
            try:
                current = statement
                while current.period_end < today:
                    current = await self.close_statement(current.id)
                    result.closed_count += 1
                    result.created_count += 1
            except Exception as e:
                logger.error(
                    "statement_close_failed",
                    statement_id=statement.id,
                    error=str(e),
                )
                result.errors.append(f"Failed to close statement {statement.id}: {e}")

        logger.info(
            "closing_sweep_completed",
            closed=result.closed_count,
            created=result.created_count,
            errors=len(result.errors),
        )
        if self._audit_logger:
            await self._audit_logger.log_closing_sweep(
                closed_count=result.closed_count,
                created_count=result.created_count,
                error_count=len(result.errors),
            )
        return result

    # =========================================================================
    # READ MODELS
    # =========================================================================

    async def get_statement_summary(self, wallet_id: str) -> StatementSummary:
        """Current statement, days to its closing/due dates, and the last three statements."""
        current = await self.get_current_statement(wallet_id)
        today = self._today()

        statements = await self._storage.query(Collection.STATEMENTS, wallet_id=wallet_id)
        recent = sorted(
            (s for s in statements if s.status != StatementStatus.OPEN and s.id != current.id),
            key=lambda s: s.period_end,
            reverse=True,
        )[:RECENT_STATEMENTS]

        return StatementSummary(
            current=current,
            next_closing_date=current.period_end,
            next_due_date=current.due_date,
            days_until_closing=max(0, (current.period_end - today).days),
            days_until_due=max(0, (current.due_date - today).days),
            recent=recent,
        )

    async def get_upcoming_due_dates(self, owner: str, days_ahead: int = 7) -> list[UpcomingDue]:
        """
        Statements of the owner's active cards due within days_ahead, or overdue.

        Covers each card's current open statement plus any closed statement
        still unpaid. Sorted by due date, most urgent first.
        """
        today = self._today()
        cards = await self._storage.query(
            Collection.WALLETS,
            owner=owner,
            kind=WalletKind.CREDIT_CARD,
            is_active=True,
        )

        upcoming = []
        for wallet in cards:
            if not wallet.has_billing_cycle:
                continue
            try:
                candidates = await self.unpaid_statements(wallet.id)
            except ValidationError as e:
                logger.warning("upcoming_due_skipped", wallet_id=wallet.id, error=str(e))
                continue

            for statement in candidates:
                days_until_due = (statement.due_date - today).days
                if days_until_due <= days_ahead:
                    upcoming.append(UpcomingDue(
                        wallet=wallet,
                        statement=statement,
                        days_until_due=days_until_due,
                        is_overdue=days_until_due < 0,
                    ))

        return sorted(upcoming, key=lambda u: u.statement.due_date)

    async def unpaid_statements(self, wallet_id: str) -> list[CreditCardStatement]:
        """The current open statement plus every closed statement not yet paid."""
        current = await self.get_current_statement(wallet_id)
        closed = await self._storage.query(
            Collection.STATEMENTS,
            wallet_id=wallet_id,
            status=StatementStatus.CLOSED,
        )
        unpaid = [s for s in closed if s.remaining_balance > 0]
        if current.status != StatementStatus.PAID:
            unpaid.append(current)
        return unpaid

    # =========================================================================
    # HELPERS
    # =========================================================================

    def require_billing_cycle(self, wallet: Wallet) -> None:
        """
        Fail unless the wallet is a card whose cycle the overflow policy can
        honour in every month.
        """
        if not wallet.is_credit_card:
            raise ValidationError(f"Wallet {wallet.id} is not a credit card", field="wallet_id")
        if not wallet.has_billing_cycle:
            raise ValidationError(
                f"Credit card {wallet.id} is missing closing/due day configuration",
                field="closing_day",
            )
        check_closing_day(wallet.closing_day, self._settings.closing_day_overflow)
