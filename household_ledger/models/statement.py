"""
Credit Card Statement and Payment Models

A statement is a billing-cycle snapshot of one credit card:
- charges are the card's expenses dated inside the period
- payments made through the payment processor accumulate in paid_amount
- other credits on the card (refunds, direct income) are total_payments

Lifecycle: OPEN -> CLOSED -> PAID, or OPEN -> PAID directly.
Exactly one OPEN statement exists per credit card wallet.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from household_ledger.models.transaction import Transaction
from household_ledger.models.wallet import Currency, LedgerRecord, Wallet


ZERO = Decimal("0")


class StatementStatus(str, Enum):
    """Statement lifecycle states."""
    OPEN = "open"
    CLOSED = "closed"
    PAID = "paid"


class StatementPeriod(BaseModel):
    """Boundaries of one billing cycle. Both period ends are inclusive days."""
    model_config = ConfigDict(frozen=True)

    period_start: date
    period_end: date
    due_date: date

    @model_validator(mode="after")
    def validate_order(self) -> "StatementPeriod":
        if self.period_end < self.period_start:
            raise ValueError("Period end cannot be before period start")
        if self.due_date < self.period_end:
            raise ValueError("Due date cannot be before period end")
        return self

    def contains(self, day: date) -> bool:
        return self.period_start <= day <= self.period_end


class CreditCardStatement(LedgerRecord):
    """Billing statement for one credit card wallet."""

    wallet_id: str = Field(..., min_length=1)

    period_start: date
    period_end: date = Field(..., description="Closing date")
    due_date: date

    total_charges: Decimal = ZERO
    total_payments: Decimal = ZERO
    current_balance: Decimal = Field(
        default=ZERO,
        description="total_charges - total_payments"
    )
    minimum_payment: Decimal = ZERO
    currency: Currency

    paid_amount: Decimal = Field(default=ZERO, ge=0)
    paid_date: Optional[date] = None

    status: StatementStatus = StatementStatus.OPEN

    @property
    def period(self) -> StatementPeriod:
        return StatementPeriod(
            period_start=self.period_start,
            period_end=self.period_end,
            due_date=self.due_date,
        )

    @property
    def remaining_balance(self) -> Decimal:
        """What can still be paid on this statement (never negative)."""
        return max(self.current_balance - self.paid_amount, ZERO)

    @property
    def is_paid(self) -> bool:
        return self.status == StatementStatus.PAID


class CreditCardPayment(LedgerRecord):
    """
    One payment against a statement.

    Several payments may target the same statement; their amounts
    accumulate into the statement's paid_amount.
    """

    statement_id: str = Field(..., min_length=1)
    from_wallet_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    currency: Currency
    payment_date: date
    notes: Optional[str] = Field(default=None, max_length=1000)


# =============================================================================
# RESULT OBJECTS
# =============================================================================

class PolicyWarning(BaseModel):
    """
    Non-fatal advice attached to a successful result.

    Codes are stable identifiers; the presentation layer owns the wording.
    """
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., pattern="^[a-z_]+$")
    message: str


class PaymentResult(BaseModel):
    """What a successful payment produced."""

    payment: CreditCardPayment
    transaction: Transaction = Field(..., description="Debit on the funding wallet")
    credit_transaction: Transaction = Field(..., description="Credit on the card wallet")
    statement: CreditCardStatement
    warnings: list[PolicyWarning] = Field(default_factory=list)


class PaymentValidation(BaseModel):
    """Outcome of checking a payment amount without applying it."""

    is_valid: bool
    error: Optional[str] = None
    warnings: list[PolicyWarning] = Field(default_factory=list)


class SuggestedPayments(BaseModel):
    """Payment amounts to offer the user for a statement."""

    minimum: Decimal
    full: Decimal
    suggested: Decimal
    custom: bool = True


class ClosingSweepResult(BaseModel):
    """Outcome of one automatic closing sweep."""

    closed_count: int = 0
    created_count: int = 0
    errors: list[str] = Field(default_factory=list)


class StatementSummary(BaseModel):
    """Current statement plus upcoming dates for one card."""

    current: CreditCardStatement
    next_closing_date: date
    next_due_date: date
    days_until_closing: int = Field(..., ge=0)
    days_until_due: int = Field(..., ge=0)
    recent: list[CreditCardStatement] = Field(default_factory=list)


class UpcomingDue(BaseModel):
    """A statement whose due date is close or already passed."""

    wallet: Wallet
    statement: CreditCardStatement
    days_until_due: int
    is_overdue: bool


class PaymentHistoryEntry(BaseModel):
    """One payment with the records it refers to."""

    payment: CreditCardPayment
    statement: CreditCardStatement
    source_wallet: Wallet


class PaymentStats(BaseModel):
    """Aggregate payment behaviour for one card over a time window."""

    payment_count: int = 0
    total_amount_paid: Decimal = ZERO
    average_payment: Decimal = ZERO
    on_time_payments: int = 0
    late_payments: int = 0
    full_balance_payments: int = 0
    minimum_payments: int = 0


class PaymentPlanKind(str, Enum):
    """How an automatic payment would pick its amount."""
    MINIMUM = "minimum"
    FULL = "full"
    FIXED = "fixed"


class ScheduledPayment(BaseModel):
    """
    Acknowledgement returned by the automatic-payment hook.

    Nothing is actually scheduled; see PaymentProcessor.schedule_automatic_payment.
    """

    wallet_id: str
    source_wallet_id: str
    plan: PaymentPlanKind
    fixed_amount: Optional[Decimal] = None
    next_payment_date: date
    scheduled: bool = False
    requested_at: datetime
