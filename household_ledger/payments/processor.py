"""
Payment Processor

Pays a credit card statement from a funding wallet.

A payment produces, in one unit of work:
1. A CreditCardPayment record
2. A debit transaction on the funding wallet ("Credit Card Payment")
3. A credit transaction on the card, linked to the statement ("Payment Received")
4. Both balance effects, applied through the ledger
5. The statement's paid_amount / status / totals update

DESIGN DECISION: Validate everything BEFORE the first write. Once writing
starts, any failure discards the whole unit, so money is never created or
destroyed by a half-applied payment.

DESIGN DECISION: The payment always applies to the statement the caller
named. A statement closed by the sweep still accepts payments (closed ->
paid). Payment processing and closing hold the same per-statement lock.

Advice such as "below minimum payment" is returned as PolicyWarning values
on the successful result, never raised.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import structlog

from household_ledger.audit import AuditLogger, create_correlation_id
from household_ledger.clock import Clock, IdGenerator, new_id, utc_now
from household_ledger.config import LedgerSettings, get_settings
from household_ledger.errors import (
    InsufficientCreditError,
    InsufficientFundsError,
    PaymentRejectedError,
    ValidationError,
)
from household_ledger.ledger.balance import BalanceLedger, to_cents
from household_ledger.models.statement import (
    ZERO,
    CreditCardPayment,
    CreditCardStatement,
    PaymentHistoryEntry,
    PaymentPlanKind,
    PaymentResult,
    PaymentStats,
    PaymentValidation,
    PolicyWarning,
    ScheduledPayment,
    StatementStatus,
    SuggestedPayments,
)
from household_ledger.models.transaction import Transaction, TransactionKind
from household_ledger.models.wallet import CategoryKind, Wallet
from household_ledger.payments.categories import find_or_create_category
from household_ledger.services.storage import (
    Collection,
    RecordLocks,
    RecordStorageInterface,
    UnitOfWork,
)
from household_ledger.statements.manager import StatementManager
from household_ledger.statements.period import shift_month


logger = structlog.get_logger(__name__)

# Suggested payment = max(half the remaining balance, minimum + this)
SUGGESTED_MARGIN = Decimal("50")
LOW_PAYMENT_SHARE = Decimal("0.1")
# Payments within this of the minimum count as minimum payments in stats
MINIMUM_MATCH_TOLERANCE = Decimal("1")


class PaymentProcessor:
    """
    Validates and executes credit card payments.

    Usage:
        processor = PaymentProcessor(storage, ledger, statements)
        result = await processor.process_payment(stmt_id, bank_id, Decimal("10000"))
    """

    def __init__(
        self,
        storage: RecordStorageInterface,
        ledger: BalanceLedger,
        statements: StatementManager,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        locks: Optional[RecordLocks] = None,
        clock: Clock = utc_now,
        id_generator: IdGenerator = new_id,
    ):
        self._storage = storage
        self._ledger = ledger
        self._statements = statements
        self._settings = settings or get_settings().ledger
        self._audit_logger = audit_logger
        self._locks = locks or statements.locks
        self._clock = clock
        self._id_generator = id_generator

    def _today(self) -> date:
        return self._clock().date()

    # =========================================================================
    # PROCESS PAYMENT
    # =========================================================================

    async def process_payment(
        self,
        statement_id: str,
        from_wallet_id: str,
        amount: Decimal,
        payment_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> PaymentResult:
        """
        Pay ``amount`` of a statement from a funding wallet.

        Raises:
            ValidationError: bad amount, inactive/same wallet, currency mismatch,
                or amount above the remaining balance
            ReferentialError: statement or a wallet missing
            InsufficientFundsError: funding wallet balance below amount
            InsufficientCreditError: funding card's available credit below amount
            StorageError: backend failed; nothing was applied
        """
        correlation_id = create_correlation_id()
        payment_date = payment_date or self._today()

        async with self._locks.hold(Collection.STATEMENTS, statement_id):
            try:
                statement, source, card = await self._validate(statement_id, from_wallet_id, amount)
            except (ValidationError, PaymentRejectedError) as e:
                logger.info("payment_rejected", statement_id=statement_id, reason=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_payment_rejected(
                        statement_id=statement_id,
                        amount=amount,
                        reason=str(e),
                        correlation_id=correlation_id,
                    )
                raise

            warnings = self.policy_warnings(statement, amount)

            async with UnitOfWork(self._storage) as uow:
                ledger = self._ledger.bind(uow)
                statements = self._statements.bind(uow)
                now = self._clock()

                debit_category = await find_or_create_category(
                    uow, card.owner, self._settings.payment_category_name,
                    CategoryKind.EXPENSE, self._clock,
                )
                credit_category = await find_or_create_category(
                    uow, card.owner, self._settings.payment_received_category_name,
                    CategoryKind.INCOME, self._clock,
                )

                payment = CreditCardPayment(
                    id=self._id_generator("pay"),
                    owner=card.owner,
                    statement_id=statement.id,
                    from_wallet_id=source.id,
                    amount=amount,
                    currency=statement.currency,
                    payment_date=payment_date,
                    notes=notes,
                    created_at=now,
                    updated_at=now,
                )
                await uow.put(Collection.PAYMENTS, payment)

                debit = Transaction(
                    id=self._id_generator("tx"),
                    owner=source.owner,
                    kind=TransactionKind.EXPENSE,
                    amount=amount,
                    currency=source.currency,
                    wallet_id=source.id,
                    category_id=debit_category.id,
                    description=f"Credit card payment - {card.name}",
                    date=payment_date,
                    payment_id=payment.id,
                    notes=f"Payment for statement {statement.id}",
                    created_at=now,
                    updated_at=now,
                )
                credit = Transaction(
                    id=self._id_generator("tx"),
                    owner=card.owner,
                    kind=TransactionKind.INCOME,
                    amount=amount,
                    currency=card.currency,
                    wallet_id=card.id,
                    category_id=credit_category.id,
                    description=f"Payment received from {source.name}",
                    date=payment_date,
                    statement_id=statement.id,
                    is_from_credit_card=True,
                    payment_id=payment.id,
                    notes=f"Payment for statement {statement.id}",
                    created_at=now,
                    updated_at=now,
                )
                await uow.put(Collection.TRANSACTIONS, debit)
                await uow.put(Collection.TRANSACTIONS, credit)

                await ledger.apply_transaction(debit)
                await ledger.apply_transaction(credit)

                statement.paid_amount = statement.paid_amount + amount
                if statement.paid_amount >= statement.current_balance:
                    statement.status = StatementStatus.PAID
                    statement.paid_date = payment_date
                statement.updated_at = now
                await uow.put(Collection.STATEMENTS, statement)

                statement = await statements.update_statement_totals(statement.id)

        logger.info(
            "payment_processed",
            payment_id=payment.id,
            statement_id=statement.id,
            amount=str(amount),
            status=statement.status.value,
            warnings=[w.code for w in warnings],
        )
        if self._audit_logger:
            await self._audit_logger.log_payment_processed(
                payment_id=payment.id,
                statement_id=statement.id,
                owner=payment.owner,
                amount=amount,
                from_wallet_id=source.id,
                statement_status=statement.status.value,
                correlation_id=correlation_id,
            )

        return PaymentResult(
            payment=payment,
            transaction=debit,
            credit_transaction=credit,
            statement=statement,
            warnings=warnings,
        )

    async def _validate(
        self,
        statement_id: str,
        from_wallet_id: str,
        amount: Decimal,
    ) -> tuple[CreditCardStatement, Wallet, Wallet]:
        if amount <= 0:
            raise ValidationError("Payment amount must be positive", field="amount")

        statement = await self._storage.require(Collection.STATEMENTS, statement_id)
        source = await self._storage.require(Collection.WALLETS, from_wallet_id)
        if not source.is_active:
            raise ValidationError(f"Source wallet {source.id} is inactive", field="from_wallet_id")

        card = await self._storage.require(Collection.WALLETS, statement.wallet_id)
        if source.id == card.id:
            raise ValidationError("A card cannot pay its own statement", field="from_wallet_id")
        if source.currency != statement.currency:
            raise ValidationError(
                f"Source wallet currency {source.currency.value} does not match "
                f"statement currency {statement.currency.value}",
                field="from_wallet_id",
            )

        remaining = statement.remaining_balance
        if amount > remaining:
            raise ValidationError(
                f"Payment amount ({amount}) exceeds remaining balance ({remaining})",
                field="amount",
            )

        self._check_funds(source, amount)
        return statement, source, card

    @staticmethod
    def _check_funds(source: Wallet, amount: Decimal) -> None:
        if source.is_credit_card:
            available = source.available_credit
            if available is not None and amount > available:
                raise InsufficientCreditError(
                    f"Insufficient credit on {source.name}: available {available}, requested {amount}"
                )
            return
        if source.balance < amount:
            raise InsufficientFundsError(
                f"Insufficient funds in {source.name}: balance {source.balance}, requested {amount}"
            )

    # =========================================================================
    # DERIVED OPERATIONS
    # =========================================================================

    async def make_minimum_payment(
        self,
        statement_id: str,
        from_wallet_id: str,
        payment_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> PaymentResult:
        """Pay the statement's minimum payment."""
        statement = await self._storage.require(Collection.STATEMENTS, statement_id)
        return await self.process_payment(
            statement_id,
            from_wallet_id,
            statement.minimum_payment,
            payment_date,
            notes or "Minimum payment",
        )

    async def pay_full_balance(
        self,
        statement_id: str,
        from_wallet_id: str,
        payment_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> PaymentResult:
        """Pay everything still owed on the statement."""
        statement = await self._storage.require(Collection.STATEMENTS, statement_id)
        return await self.process_payment(
            statement_id,
            from_wallet_id,
            statement.current_balance - statement.paid_amount,
            payment_date,
            notes or "Full balance payment",
        )

    async def get_suggested_payments(self, statement_id: str) -> SuggestedPayments:
        """
        Minimum, full and suggested amounts for a statement.

        suggested = max(50% of remaining, minimum + 50), kept between
        minimum and remaining.
        """
        statement = await self._storage.require(Collection.STATEMENTS, statement_id)
        remaining = statement.remaining_balance
        minimum = min(statement.minimum_payment, remaining)

        suggested = max(to_cents(remaining * Decimal("0.5")), minimum + SUGGESTED_MARGIN)
        suggested = max(min(suggested, remaining), minimum)

        return SuggestedPayments(minimum=minimum, full=remaining, suggested=suggested)

    async def validate_payment_amount(self, statement_id: str, amount: Decimal) -> PaymentValidation:
        """
        Check an amount against a statement without paying.

        Hard failures make the result invalid; advice comes back as warnings.
        """
        statement = await self._storage.require(Collection.STATEMENTS, statement_id)
        remaining = statement.remaining_balance

        if amount <= 0:
            return PaymentValidation(is_valid=False, error="Payment amount must be positive")
        if amount > remaining:
            return PaymentValidation(
                is_valid=False,
                error=f"Payment amount ({amount}) exceeds remaining balance ({remaining})",
            )

        return PaymentValidation(is_valid=True, warnings=self.policy_warnings(statement, amount))

    def policy_warnings(self, statement: CreditCardStatement, amount: Decimal) -> list[PolicyWarning]:
        """Non-fatal advice about a payment amount."""
        remaining = statement.remaining_balance
        minimum = statement.minimum_payment
        warnings = []

        if amount < minimum:
            warnings.append(PolicyWarning(
                code="below_minimum_payment",
                message=f"Payment is below the minimum payment of {minimum}",
            ))
        if amount == minimum and remaining > minimum:
            warnings.append(PolicyWarning(
                code="minimum_payment_only",
                message="Paying only the minimum leaves a balance that accrues interest",
            ))
        if amount < remaining * LOW_PAYMENT_SHARE:
            warnings.append(PolicyWarning(
                code="low_payment_amount",
                message="Payment is under 10% of the remaining balance",
            ))
        return warnings

    # =========================================================================
    # HISTORY AND STATS
    # =========================================================================

    async def get_payment_history(self, wallet_id: str, limit: int = 10) -> list[PaymentHistoryEntry]:
        """A card's most recent payments, newest first."""
        statements = await self._storage.query(Collection.STATEMENTS, wallet_id=wallet_id)

        entries = []
        for statement in statements:
            payments = await self._storage.query(Collection.PAYMENTS, statement_id=statement.id)
            for payment in payments:
                source = await self._storage.get(Collection.WALLETS, payment.from_wallet_id)
                if source is None:
                    logger.warning(
                        "payment_source_wallet_missing",
                        payment_id=payment.id,
                        wallet_id=payment.from_wallet_id,
                    )
                    continue
                entries.append(PaymentHistoryEntry(
                    payment=payment,
                    statement=statement,
                    source_wallet=source,
                ))

        entries.sort(key=lambda e: (e.payment.payment_date, e.payment.created_at), reverse=True)
        return entries[:limit]

    async def get_payment_stats(self, wallet_id: str, months: int = 6) -> PaymentStats:
        """Payment behaviour on statements that closed within the last ``months`` months."""
        today = self._today()
        year, month = shift_month(today.year, today.month, -months)
        cutoff = date(year, month, 1)

        statements = await self._storage.query(Collection.STATEMENTS, wallet_id=wallet_id)
        stats = PaymentStats()

        for statement in statements:
            if statement.period_end < cutoff:
                continue
            payments = await self._storage.query(Collection.PAYMENTS, statement_id=statement.id)
            for payment in payments:
                stats.payment_count += 1
                stats.total_amount_paid += payment.amount

                if payment.payment_date <= statement.due_date:
                    stats.on_time_payments += 1
                else:
                    stats.late_payments += 1

                if payment.amount >= statement.current_balance:
                    stats.full_balance_payments += 1
                elif abs(payment.amount - statement.minimum_payment) < MINIMUM_MATCH_TOLERANCE:
                    stats.minimum_payments += 1

        if stats.payment_count:
            stats.average_payment = to_cents(stats.total_amount_paid / stats.payment_count)
        return stats

    # =========================================================================
    # AUTOMATIC PAYMENTS (hook only)
    # =========================================================================

    async def schedule_automatic_payment(
        self,
        wallet_id: str,
        source_wallet_id: str,
        plan: PaymentPlanKind,
        fixed_amount: Optional[Decimal] = None,
        days_before: int = 3,
    ) -> ScheduledPayment:
        """
        Record a request for automatic payments and report when the next
        one would run.

        No job is scheduled; the request is only validated, logged and
        audited. The result's ``scheduled`` flag is always False.
        """
        card = await self._storage.require(Collection.WALLETS, wallet_id)
        await self._storage.require(Collection.WALLETS, source_wallet_id)
        if plan == PaymentPlanKind.FIXED and (fixed_amount is None or fixed_amount <= ZERO):
            raise ValidationError("Fixed payment plans need a positive amount", field="fixed_amount")
        if days_before < 0:
            raise ValidationError("days_before cannot be negative", field="days_before")

        statement = await self._statements.get_current_statement(card.id)
        next_payment_date = max(statement.due_date - timedelta(days=days_before), self._today())

        logger.info(
            "automatic_payment_requested",
            wallet_id=card.id,
            source_wallet_id=source_wallet_id,
            plan=plan.value,
            next_payment_date=str(next_payment_date),
        )
        if self._audit_logger:
            await self._audit_logger.log_automatic_payment_requested(
                wallet_id=card.id,
                source_wallet_id=source_wallet_id,
                plan=plan.value,
                next_payment_date=next_payment_date.isoformat(),
            )

        return ScheduledPayment(
            wallet_id=card.id,
            source_wallet_id=source_wallet_id,
            plan=plan,
            fixed_amount=fixed_amount,
            next_payment_date=next_payment_date,
            requested_at=self._clock(),
        )
