"""
Balance Ledger

Applies and reverses a transaction's effect on one or two wallet balances.

    income    ->  wallet += amount
    expense   ->  wallet -= amount
    transfer  ->  source -= amount, target += amount (x exchange rate)

DESIGN DECISION: reverse_transaction is the exact inverse of
apply_transaction, computed by the same effect function with the sign
flipped. Edits and deletes are always "reverse old, apply new", so a
balance can never drift through an edit.

Only COMPLETED transactions move money; pending and cancelled ones are
no-ops here and are ignored by reconciliation too.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import structlog

from household_ledger.clock import Clock, utc_now
from household_ledger.errors import ValidationError
from household_ledger.models.transaction import Transaction, TransactionKind
from household_ledger.models.wallet import Currency, Wallet
from household_ledger.services.storage import Collection, RecordStorageInterface


logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


def to_cents(value: Decimal) -> Decimal:
    """Round a monetary value to cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def transfer_credit_amount(
    amount: Decimal,
    exchange_rate: Optional[Decimal],
    source_currency: Currency,
    target_currency: Currency,
) -> Decimal:
    """
    Amount a transfer adds to its target wallet.

    Same currency: the amount itself (any rate is ignored).
    Different currencies: amount x exchange_rate, rounded to cents.

    Raises:
        ValidationError: cross-currency transfer without an exchange rate
    """
    if source_currency == target_currency:
        return amount
    if exchange_rate is None:
        raise ValidationError(
            f"Transfer from {source_currency.value} to {target_currency.value} "
            "requires an exchange rate",
            field="exchange_rate",
        )
    return to_cents(amount * exchange_rate)


class BalanceLedger:
    """
    The only component that writes wallet balances for transactions.

    Works on any RecordStorageInterface, including a UnitOfWork, so the
    balance updates of a multi-step operation commit together.
    """

    def __init__(
        self,
        storage: RecordStorageInterface,
        clock: Clock = utc_now,
    ):
        self._storage = storage
        self._clock = clock

    def bind(self, storage: RecordStorageInterface) -> "BalanceLedger":
        """Same ledger, writing through another storage (e.g. a unit of work)."""
        return BalanceLedger(storage, self._clock)

    async def apply_transaction(self, tx: Transaction) -> list[Wallet]:
        """
        Apply a transaction's effect to its wallet(s).

        Returns:
            The updated wallets (empty if the transaction is not completed)

        Raises:
            ReferentialError: source or target wallet missing
            ValidationError: cross-currency transfer without a rate
        """
        return await self._post(tx, sign=1)

    async def reverse_transaction(self, tx: Transaction) -> list[Wallet]:
        """
        Undo a transaction's effect exactly. Used before edit/delete.
        """
        return await self._post(tx, sign=-1)

    async def effects(self, tx: Transaction) -> list[tuple[Wallet, Decimal]]:
        """
        Signed balance changes a completed transaction causes, per wallet.

        Every referenced wallet is loaded before anything is computed, so
        a missing wallet fails before any mutation.
        """
        source = await self._storage.require(Collection.WALLETS, tx.wallet_id)

        if tx.kind == TransactionKind.INCOME:
            return [(source, tx.amount)]
        if tx.kind == TransactionKind.EXPENSE:
            return [(source, -tx.amount)]

        target = await self._storage.require(Collection.WALLETS, tx.target_wallet_id)
        credit = transfer_credit_amount(
            tx.amount, tx.exchange_rate, source.currency, target.currency
        )
        return [(source, -tx.amount), (target, credit)]

    async def _post(self, tx: Transaction, sign: int) -> list[Wallet]:
        if not tx.is_completed:
            logger.debug("ledger_skip_uncompleted", transaction_id=tx.id, status=tx.status.value)
            return []

        changes = await self.effects(tx)
        now = self._clock()
        touched = []
        for wallet, delta in changes:
            wallet.balance = wallet.balance + sign * delta
            wallet.updated_at = now
            await self._storage.put(Collection.WALLETS, wallet)
            touched.append(wallet)

        logger.debug(
            "ledger_posted",
            transaction_id=tx.id,
            kind=tx.kind.value,
            direction="apply" if sign > 0 else "reverse",
            wallets=[w.id for w in touched],
        )
        return touched
