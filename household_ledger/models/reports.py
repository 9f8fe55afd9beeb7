"""
Reconciliation and maintenance report models.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from household_ledger.models.statement import ClosingSweepResult
from household_ledger.models.wallet import Currency


class BalanceFix(BaseModel):
    """Result of overwriting a stored balance with the recalculated one."""

    wallet_id: str
    old_balance: Decimal
    new_balance: Decimal
    difference: Decimal = Field(..., description="new_balance - old_balance")


class BalanceDrift(BaseModel):
    """A wallet whose stored balance disagrees with its history."""

    wallet_id: str
    stored_balance: Decimal
    expected_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.expected_balance - self.stored_balance


class WalletBalanceLine(BaseModel):
    wallet_id: str
    name: str
    balance: Decimal
    currency: Currency


class CurrencyTotal(BaseModel):
    currency: Currency
    total: Decimal


class WalletBalanceSummary(BaseModel):
    """Dashboard totals for one owner's wallets."""

    by_wallet: list[WalletBalanceLine] = Field(default_factory=list)
    by_currency: list[CurrencyTotal] = Field(default_factory=list)
    total_wallets: int = 0
    active_wallets: int = 0


class NotificationTally(BaseModel):
    """Heartbeat stage 2: notification counts across all card owners."""

    total_owners: int = 0
    total_notifications: int = 0
    critical_alerts: int = 0
    errors: list[str] = Field(default_factory=list)


class ConsistencyReport(BaseModel):
    """Heartbeat stage 3: balance drift found (never repaired)."""

    wallets_checked: int = 0
    drifts: list[BalanceDrift] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class HeartbeatResult(BaseModel):
    """Outcome of one daily maintenance run."""

    started_at: datetime
    statements: ClosingSweepResult = Field(default_factory=ClosingSweepResult)
    notifications: NotificationTally = Field(default_factory=NotificationTally)
    consistency: ConsistencyReport = Field(default_factory=ConsistencyReport)
    total_errors: int = 0
    success: bool = False
