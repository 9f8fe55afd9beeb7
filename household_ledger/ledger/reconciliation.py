"""
Reconciliation

Recomputes a wallet balance from its full transaction history.

    expected = opening_balance + sum(effects of completed transactions)

DESIGN DECISION: Repair is EXPLICIT. recalculate_balance and check_balances
only report; fix_balance is the single place that overwrites a stored
balance, and every repair is audited with its delta. Nothing here runs
implicitly.
"""

from decimal import Decimal
from typing import Optional

import structlog

from household_ledger.audit import AuditLogger
from household_ledger.clock import Clock, utc_now
from household_ledger.ledger.balance import transfer_credit_amount
from household_ledger.models.reports import (
    BalanceDrift,
    BalanceFix,
    CurrencyTotal,
    WalletBalanceLine,
    WalletBalanceSummary,
)
from household_ledger.models.transaction import Transaction, TransactionKind, TransactionStatus
from household_ledger.models.wallet import Currency, Wallet
from household_ledger.services.storage import Collection, RecordStorageInterface


logger = structlog.get_logger(__name__)


class ReconciliationService:
    """Detects and (on request) repairs balance drift."""

    def __init__(
        self,
        storage: RecordStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = utc_now,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._clock = clock

    async def recalculate_balance(self, wallet_id: str) -> Decimal:
        """
        Replay every completed transaction referencing the wallet.

        Returns the balance that should be stored.

        Raises:
            ReferentialError: wallet (or a transfer's source wallet) missing
        """
        wallet = await self._storage.require(Collection.WALLETS, wallet_id)
        return await self._replay(wallet)

    async def fix_balance(self, wallet_id: str) -> BalanceFix:
        """
        Overwrite the stored balance with the recalculated one.

        Returns the old and new balances and their difference.
        """
        wallet = await self._storage.require(Collection.WALLETS, wallet_id)
        expected = await self._replay(wallet)
        old_balance = wallet.balance

        wallet.balance = expected
        wallet.updated_at = self._clock()
        await self._storage.put(Collection.WALLETS, wallet)

        fix = BalanceFix(
            wallet_id=wallet_id,
            old_balance=old_balance,
            new_balance=expected,
            difference=expected - old_balance,
        )

        if self._audit_logger:
            await self._audit_logger.log_balance_fixed(
                wallet_id=wallet_id,
                owner=wallet.owner,
                old_balance=old_balance,
                new_balance=expected,
            )
        else:
            logger.warning("balance_fixed", **fix.model_dump(mode="json"))

        return fix

    async def check_balances(self, owner: Optional[str] = None) -> list[BalanceDrift]:
        """
        Report every wallet whose stored balance disagrees with its history.

        Never repairs.
        """
        filters = {"owner": owner} if owner else {}
        wallets = await self._storage.query(Collection.WALLETS, **filters)

        drifts = []
        for wallet in wallets:
            expected = await self._replay(wallet)
            if expected != wallet.balance:
                drifts.append(await self.report_drift(wallet, expected))
        return drifts

    async def report_drift(self, wallet: Wallet, expected: Decimal) -> BalanceDrift:
        """Log and audit a drifted wallet. The stored balance is left alone."""
        drift = BalanceDrift(
            wallet_id=wallet.id,
            stored_balance=wallet.balance,
            expected_balance=expected,
        )
        logger.warning(
            "balance_drift_detected",
            wallet_id=wallet.id,
            stored=str(wallet.balance),
            expected=str(expected),
        )
        if self._audit_logger:
            await self._audit_logger.log_balance_drift(
                wallet_id=wallet.id,
                stored=wallet.balance,
                expected=expected,
            )
        return drift

    async def get_wallet_balance_summary(self, owner: str) -> WalletBalanceSummary:
        """Balances of the owner's active wallets and totals per currency."""
        wallets = await self._storage.query(Collection.WALLETS, owner=owner)
        active = [w for w in wallets if w.is_active]

        totals: dict[Currency, Decimal] = {}
        for wallet in active:
            totals[wallet.currency] = totals.get(wallet.currency, Decimal("0")) + wallet.balance

        return WalletBalanceSummary(
            by_wallet=[
                WalletBalanceLine(
                    wallet_id=w.id,
                    name=w.name,
                    balance=w.balance,
                    currency=w.currency,
                )
                for w in active
            ],
            by_currency=[
                CurrencyTotal(currency=currency, total=total)
                for currency, total in totals.items()
            ],
            total_wallets=len(wallets),
            active_wallets=len(active),
        )

    async def _replay(self, wallet: Wallet) -> Decimal:
        as_source = await self._storage.query(
            Collection.TRANSACTIONS,
            wallet_id=wallet.id,
            status=TransactionStatus.COMPLETED,
        )
        as_target = await self._storage.query(
            Collection.TRANSACTIONS,
            target_wallet_id=wallet.id,
            status=TransactionStatus.COMPLETED,
        )

        balance = wallet.opening_balance
        for tx in as_source:
            if tx.kind == TransactionKind.INCOME:
                balance += tx.amount
            else:
                # expense or outgoing transfer
                balance -= tx.amount

        for tx in as_target:
            balance += await self._received(tx, wallet)

        return balance

    async def _received(self, tx: Transaction, target: Wallet) -> Decimal:
        source = await self._storage.require(Collection.WALLETS, tx.wallet_id)
        return transfer_credit_amount(
            tx.amount, tx.exchange_rate, source.currency, target.currency
        )
