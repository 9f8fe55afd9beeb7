"""
Transaction Service

Records, edits and deletes transactions. Every change goes through the
balance ledger inside one unit of work:

    record  ->  store, apply, link to the card statement
    update  ->  reverse old, store new, apply new, relink, refresh statements
    delete  ->  reverse, remove, refresh the statement it was linked to

Transactions generated by a card payment belong to that payment and
cannot be edited or deleted here.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

import structlog

from household_ledger.audit import AuditLogger
from household_ledger.clock import Clock, IdGenerator, new_id, utc_now
from household_ledger.errors import ValidationError
from household_ledger.ledger.balance import BalanceLedger
from household_ledger.models.audit import AuditEventType
from household_ledger.models.statement import CreditCardStatement
from household_ledger.models.transaction import Transaction, TransactionKind, TransactionStatus
from household_ledger.models.wallet import Category, Wallet
from household_ledger.services.storage import Collection, RecordStorageInterface, UnitOfWork
from household_ledger.statements.manager import StatementManager


logger = structlog.get_logger(__name__)

# Fields an edit may not touch
PROTECTED_FIELDS = {"id", "owner", "created_at", "payment_id", "statement_id", "is_from_credit_card"}


class TransactionService:
    """Entry point for user-recorded income, expenses and transfers."""

    def __init__(
        self,
        storage: RecordStorageInterface,
        ledger: BalanceLedger,
        statements: StatementManager,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = utc_now,
        id_generator: IdGenerator = new_id,
    ):
        self._storage = storage
        self._ledger = ledger
        self._statements = statements
        self._audit_logger = audit_logger
        self._clock = clock
        self._id_generator = id_generator

    async def record_transaction(
        self,
        owner: str,
        kind: TransactionKind,
        amount: Decimal,
        wallet_id: str,
        category_id: str,
        tx_date: date,
        description: str = "",
        target_wallet_id: Optional[str] = None,
        exchange_rate: Optional[Decimal] = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
        notes: Optional[str] = None,
    ) -> Transaction:
        """
        Store a new transaction and apply it.

        The currency is the source wallet's. Card expenses and credits are
        linked to the card's current statement when dated inside it.

        Raises:
            ReferentialError: wallet, target wallet or category missing
            ValidationError: category kind does not fit, the card's closing day
                breaks the overflow policy, a cross-currency transfer has no
                exchange rate, or a credit would leave a paid statement
                overpaid
            pydantic.ValidationError: malformed transaction (e.g. transfer to self)
        """
        wallet = await self._storage.require(Collection.WALLETS, wallet_id)
        category = await self._storage.require(Collection.CATEGORIES, category_id)
        self._check_category(kind, category)
        if self._is_card_activity(wallet, kind):
            self._statements.require_billing_cycle(wallet)

        now = self._clock()
        tx = Transaction(
            id=self._id_generator("tx"),
            owner=owner,
            kind=kind,
            amount=amount,
            currency=wallet.currency,
            wallet_id=wallet_id,
            target_wallet_id=target_wallet_id,
            exchange_rate=exchange_rate,
            category_id=category_id,
            description=description,
            date=tx_date,
            is_from_credit_card=self._is_card_activity(wallet, kind),
            status=status,
            notes=notes,
            created_at=now,
            updated_at=now,
        )

        async with UnitOfWork(self._storage) as uow:
            await uow.put(Collection.TRANSACTIONS, tx)
            await self._ledger.bind(uow).apply_transaction(tx)
            statement = await self._statements.bind(uow).add_transaction_to_statement(tx)
            self._ensure_not_overpaid(statement)
            tx = await uow.require(Collection.TRANSACTIONS, tx.id)

        logger.info(
            "transaction_recorded",
            transaction_id=tx.id,
            kind=tx.kind.value,
            amount=str(tx.amount),
            statement_id=tx.statement_id,
        )
        if self._audit_logger:
            await self._audit_logger.log_transaction_posted(
                transaction_id=tx.id,
                owner=tx.owner,
                kind=tx.kind.value,
                amount=tx.amount,
                wallet_id=tx.wallet_id,
            )
        return tx

    async def update_transaction(self, transaction_id: str, **changes: Any) -> Transaction:
        """
        Edit a transaction by reversing its old effect and applying the new one.

        The statement link survives the edit while the transaction stays on
        the same card and inside that statement's period, whatever the
        statement's status. Otherwise the transaction is relinked to the
        card's current statement, if it fits there.

        Raises:
            ReferentialError: transaction (or a newly referenced record) missing
            ValidationError: payment transaction, a protected field changed,
                or the edit would leave a statement's payments above its balance
        """
        old = await self._storage.require(Collection.TRANSACTIONS, transaction_id)
        self._ensure_editable(old)

        protected = PROTECTED_FIELDS.intersection(changes)
        if protected:
            raise ValidationError(
                f"Cannot change {', '.join(sorted(protected))}",
                field=sorted(protected)[0],
            )

        wallet = await self._storage.require(Collection.WALLETS, changes.get("wallet_id", old.wallet_id))
        category = await self._storage.require(
            Collection.CATEGORIES, changes.get("category_id", old.category_id)
        )
        kind = TransactionKind(changes.get("kind", old.kind))
        self._check_category(kind, category)
        card_activity = self._is_card_activity(wallet, kind)
        if card_activity:
            self._statements.require_billing_cycle(wallet)

        data = old.model_dump()
        data.update(changes)
        data.update(
            currency=wallet.currency,
            statement_id=None,
            is_from_credit_card=card_activity,
            updated_at=self._clock(),
        )
        new = Transaction.model_validate(data)
        if card_activity and old.statement_id and new.wallet_id == old.wallet_id:
            linked = await self._storage.get(Collection.STATEMENTS, old.statement_id)
            if linked is not None and linked.period.contains(new.date):
                new.statement_id = linked.id

        async with UnitOfWork(self._storage) as uow:
            ledger = self._ledger.bind(uow)
            statements = self._statements.bind(uow)

            await ledger.reverse_transaction(old)
            await uow.put(Collection.TRANSACTIONS, new)
            await ledger.apply_transaction(new)
            if new.statement_id is None:
                self._ensure_not_overpaid(await statements.add_transaction_to_statement(new))
            if old.statement_id:
                self._ensure_not_overpaid(await statements.update_statement_totals(old.statement_id))
            new = await uow.require(Collection.TRANSACTIONS, new.id)

        if self._audit_logger:
            await self._audit_logger.log_transaction_changed(
                event_type=AuditEventType.TRANSACTION_UPDATED,
                transaction_id=new.id,
                owner=new.owner,
                details={"changed_fields": sorted(changes)},
            )
        return new

    async def delete_transaction(self, transaction_id: str) -> Transaction:
        """
        Reverse a transaction's effect and remove it.

        Returns the deleted transaction.

        Raises:
            ValidationError: payment transaction, or removing a charge would
                leave its statement's payments above its balance
        """
        tx = await self._storage.require(Collection.TRANSACTIONS, transaction_id)
        self._ensure_editable(tx)

        async with UnitOfWork(self._storage) as uow:
            await self._ledger.bind(uow).reverse_transaction(tx)
            await uow.delete(Collection.TRANSACTIONS, tx.id)
            if tx.statement_id:
                statement = await self._statements.bind(uow).update_statement_totals(tx.statement_id)
                self._ensure_not_overpaid(statement)

        if self._audit_logger:
            await self._audit_logger.log_transaction_changed(
                event_type=AuditEventType.TRANSACTION_DELETED,
                transaction_id=tx.id,
                owner=tx.owner,
                details={"amount": str(tx.amount), "kind": tx.kind.value},
            )
        return tx

    @staticmethod
    def _is_card_activity(wallet: Wallet, kind: TransactionKind) -> bool:
        # Charges and credits on a card belong on its statement; transfers do not
        return wallet.is_credit_card and wallet.has_billing_cycle and kind != TransactionKind.TRANSFER

    @staticmethod
    def _check_category(kind: TransactionKind, category: Category) -> None:
        if kind == TransactionKind.TRANSFER:
            return
        if category.kind.value != kind.value:
            raise ValidationError(
                f"Category {category.name} is for {category.kind.value}, not {kind.value}",
                field="category_id",
            )

    @staticmethod
    def _ensure_not_overpaid(statement: Optional[CreditCardStatement]) -> None:
        # paid_amount never exceeds current_balance; raising rolls the unit back
        if statement is None or statement.paid_amount <= statement.current_balance:
            return
        raise ValidationError(
            f"Statement {statement.id} has {statement.paid_amount} paid against a balance of "
            f"{statement.current_balance}; the change would leave it overpaid",
            field="amount",
        )

    @staticmethod
    def _ensure_editable(tx: Transaction) -> None:
        if tx.payment_id:
            raise ValidationError(
                f"Transaction {tx.id} belongs to payment {tx.payment_id} and cannot be changed",
                field="payment_id",
            )
