"""
Wallet and Category Models

A wallet is an account holding a balance in one currency: cash, a bank
account or a credit card. Balances are signed; a credit card in debt has a
NEGATIVE balance.

DESIGN DECISION: Wallet.balance is only ever mutated by the balance ledger
(or by an explicit reconciliation repair). Nothing else writes it.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from household_ledger.clock import utc_now


# =============================================================================
# ENUMS
# =============================================================================

class WalletKind(str, Enum):
    """Kinds of wallet."""
    PHYSICAL = "physical"
    BANK = "bank"
    CREDIT_CARD = "credit_card"


class Currency(str, Enum):
    """Supported currencies."""
    ARS = "ARS"
    USD = "USD"


class CategoryKind(str, Enum):
    """Categories classify either income or expenses."""
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# BASE RECORD
# =============================================================================

class LedgerRecord(BaseModel):
    """
    Common shape of every stored record.

    Storage backends key records by ``id``; ``owner`` scopes them to a user.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    owner: str = Field(..., min_length=1, description="Owning user id")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# WALLET
# =============================================================================

class Wallet(LedgerRecord):
    """
    A balance-holding account.

    Credit-card wallets additionally carry a credit limit and a billing
    cycle (closing day of month + days until due).
    """

    name: str = Field(..., min_length=1, max_length=50)
    kind: WalletKind
    currency: Currency

    balance: Decimal = Field(
        default=Decimal("0"),
        description="Signed balance; negative means debt on credit cards"
    )
    opening_balance: Decimal = Field(
        default=Decimal("0"),
        description="Balance the wallet was created with, before any transaction"
    )

    # Credit card configuration
    credit_limit: Optional[Decimal] = Field(default=None, gt=0)
    closing_day: Optional[int] = Field(default=None, ge=1, le=31)
    due_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Calendar days from closing to due date"
    )

    bank_name: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)
    is_active: bool = True

    @model_validator(mode="after")
    def validate_credit_fields(self) -> "Wallet":
        """Only credit cards carry a limit or billing cycle."""
        if self.kind != WalletKind.CREDIT_CARD and self.credit_limit is not None:
            raise ValueError("Only credit card wallets can have a credit limit")
        return self

    @property
    def is_credit_card(self) -> bool:
        return self.kind == WalletKind.CREDIT_CARD

    @property
    def has_billing_cycle(self) -> bool:
        """True when closing and due days are both configured."""
        return self.closing_day is not None and self.due_day is not None

    @property
    def available_credit(self) -> Optional[Decimal]:
        """Credit limit minus debt. None when the card has no limit."""
        if not self.is_credit_card or self.credit_limit is None:
            return None
        return self.credit_limit + self.balance

    @property
    def credit_usage_pct(self) -> Optional[float]:
        """Share of the limit in use, as a percentage."""
        if not self.is_credit_card or self.credit_limit is None:
            return None
        return float(abs(self.balance) / self.credit_limit * 100)


# =============================================================================
# CATEGORY
# =============================================================================

class Category(LedgerRecord):
    """
    Transaction category.

    (owner, name, kind) is unique: two categories with the same name may
    exist only if one is for income and the other for expenses.
    """

    name: str = Field(..., min_length=1, max_length=30)
    kind: CategoryKind
    is_default: bool = False
    is_active: bool = True
