"""
Transaction Models

Amounts are always positive; the transaction kind gives the direction:
- income adds to the wallet
- expense subtracts from the wallet
- transfer subtracts from the source wallet and adds to the target wallet

A posted transaction is never edited in place. An edit is
"reverse the old effect, then apply the new one".
"""

from datetime import date as Date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from household_ledger.models.wallet import Currency, LedgerRecord


class TransactionKind(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class TransactionStatus(str, Enum):
    """
    Only COMPLETED transactions count toward balances.

    PENDING and CANCELLED transactions are stored but ignored by the ledger
    and by reconciliation.
    """
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Transaction(LedgerRecord):
    """A single money movement touching one or two wallets."""

    kind: TransactionKind
    amount: Decimal = Field(..., gt=0, description="Always positive")
    currency: Currency

    wallet_id: str = Field(..., min_length=1, description="Source wallet")
    target_wallet_id: Optional[str] = Field(
        default=None,
        description="Destination wallet (transfers only)"
    )
    exchange_rate: Optional[Decimal] = Field(
        default=None,
        gt=0,
        description="Target units per source unit, for cross-currency transfers"
    )

    category_id: str = Field(..., min_length=1)
    description: str = Field(default="", max_length=200)
    date: Date

    # Credit card linkage
    statement_id: Optional[str] = None
    is_from_credit_card: bool = False
    payment_id: Optional[str] = Field(
        default=None,
        description="Set on the transactions generated by a card payment"
    )

    status: TransactionStatus = TransactionStatus.COMPLETED
    notes: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def validate_transfer_target(self) -> "Transaction":
        """Transfers need a distinct target; other kinds must not have one."""
        if self.kind == TransactionKind.TRANSFER:
            if not self.target_wallet_id:
                raise ValueError("Transfer transaction missing target wallet")
            if self.target_wallet_id == self.wallet_id:
                raise ValueError("Target wallet must be different from source wallet")
        elif self.target_wallet_id is not None:
            raise ValueError("Only transfers can have a target wallet")
        return self

    @property
    def is_completed(self) -> bool:
        return self.status == TransactionStatus.COMPLETED
