"""Tests for the balance ledger and the transaction service."""

from datetime import date
from decimal import Decimal

import pytest

from household_ledger.errors import ReferentialError, ValidationError
from household_ledger.ledger.balance import BalanceLedger, transfer_credit_amount
from household_ledger.models.statement import StatementStatus
from household_ledger.models.transaction import Transaction, TransactionKind, TransactionStatus
from household_ledger.models.wallet import Currency, WalletKind
from household_ledger.services.storage import Collection


def _tx(kind, amount, wallet_id="bank", **extra) -> Transaction:
    return Transaction(
        id=extra.pop("id", "tx_x"),
        owner="user_1",
        kind=kind,
        amount=Decimal(amount),
        currency=extra.pop("currency", Currency.ARS),
        wallet_id=wallet_id,
        category_id="cat_any",
        date=date(2024, 1, 10),
        **extra,
    )


async def _balance(storage, wallet_id):
    return (await storage.get(Collection.WALLETS, wallet_id)).balance


class TestTransferCreditAmount:
    """Tests for cross-currency conversion."""

    def test_same_currency_ignores_rate(self):
        assert transfer_credit_amount(Decimal("100"), Decimal("2"), Currency.ARS, Currency.ARS) == Decimal("100")

    def test_converts_and_rounds_half_up(self):
        """100.10 USD at 1000.005 ARS/USD, rounded to cents."""
        result = transfer_credit_amount(Decimal("100.10"), Decimal("1000.005"), Currency.USD, Currency.ARS)
        assert result == Decimal("100100.50")

    def test_missing_rate_rejected(self):
        with pytest.raises(ValidationError) as exc:
            transfer_credit_amount(Decimal("100"), None, Currency.USD, Currency.ARS)
        assert exc.value.field == "exchange_rate"


class TestBalanceLedger:
    """Tests for apply/reverse."""

    @pytest.mark.asyncio
    async def test_income_and_expense(self, storage, clock, make_wallet):
        await make_wallet("bank", balance=Decimal("1000"))
        ledger = BalanceLedger(storage, clock)

        await ledger.apply_transaction(_tx(TransactionKind.INCOME, "250"))
        assert await _balance(storage, "bank") == Decimal("1250")

        await ledger.apply_transaction(_tx(TransactionKind.EXPENSE, "300"))
        assert await _balance(storage, "bank") == Decimal("950")

    @pytest.mark.asyncio
    async def test_transfer_moves_between_wallets(self, storage, clock, make_wallet):
        await make_wallet("bank", balance=Decimal("1000"))
        await make_wallet("cash", kind=WalletKind.PHYSICAL)
        ledger = BalanceLedger(storage, clock)

        touched = await ledger.apply_transaction(
            _tx(TransactionKind.TRANSFER, "400", target_wallet_id="cash")
        )

        assert [w.id for w in touched] == ["bank", "cash"]
        assert await _balance(storage, "bank") == Decimal("600")
        assert await _balance(storage, "cash") == Decimal("400")

    @pytest.mark.asyncio
    async def test_cross_currency_transfer(self, storage, clock, make_wallet):
        await make_wallet("usd", balance=Decimal("100"), currency=Currency.USD)
        await make_wallet("bank")
        ledger = BalanceLedger(storage, clock)

        await ledger.apply_transaction(_tx(
            TransactionKind.TRANSFER, "10", wallet_id="usd",
            target_wallet_id="bank", exchange_rate=Decimal("1050"), currency=Currency.USD,
        ))

        assert await _balance(storage, "usd") == Decimal("90")
        assert await _balance(storage, "bank") == Decimal("10500.00")

    @pytest.mark.asyncio
    async def test_cross_currency_transfer_without_rate_changes_nothing(self, storage, clock, make_wallet):
        await make_wallet("usd", balance=Decimal("100"), currency=Currency.USD)
        await make_wallet("bank")
        ledger = BalanceLedger(storage, clock)

        with pytest.raises(ValidationError):
            await ledger.apply_transaction(_tx(
                TransactionKind.TRANSFER, "10", wallet_id="usd",
                target_wallet_id="bank", currency=Currency.USD,
            ))

        assert await _balance(storage, "usd") == Decimal("100")
        assert await _balance(storage, "bank") == Decimal("0")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,extra", [
        (TransactionKind.INCOME, {}),
        (TransactionKind.EXPENSE, {}),
        (TransactionKind.TRANSFER, {"target_wallet_id": "cash"}),
    ])
    async def test_reverse_restores_balances_exactly(self, storage, clock, make_wallet, kind, extra):
        await make_wallet("bank", balance=Decimal("1000.37"))
        await make_wallet("cash", kind=WalletKind.PHYSICAL, balance=Decimal("12.5"))
        ledger = BalanceLedger(storage, clock)
        tx = _tx(kind, "123.45", **extra)

        await ledger.apply_transaction(tx)
        await ledger.reverse_transaction(tx)

        assert await _balance(storage, "bank") == Decimal("1000.37")
        assert await _balance(storage, "cash") == Decimal("12.5")

    @pytest.mark.asyncio
    async def test_missing_wallet(self, storage, clock):
        ledger = BalanceLedger(storage, clock)
        with pytest.raises(ReferentialError) as exc:
            await ledger.apply_transaction(_tx(TransactionKind.EXPENSE, "10", wallet_id="ghost"))
        assert exc.value.record_id == "ghost"

    @pytest.mark.asyncio
    async def test_missing_target_leaves_source_untouched(self, storage, clock, make_wallet):
        await make_wallet("bank", balance=Decimal("1000"))
        ledger = BalanceLedger(storage, clock)

        with pytest.raises(ReferentialError):
            await ledger.apply_transaction(_tx(TransactionKind.TRANSFER, "10", target_wallet_id="ghost"))

        assert await _balance(storage, "bank") == Decimal("1000")

    @pytest.mark.asyncio
    async def test_pending_transaction_is_ignored(self, storage, clock, make_wallet):
        await make_wallet("bank", balance=Decimal("1000"))
        ledger = BalanceLedger(storage, clock)

        touched = await ledger.apply_transaction(
            _tx(TransactionKind.EXPENSE, "10", status=TransactionStatus.PENDING)
        )

        assert touched == []
        assert await _balance(storage, "bank") == Decimal("1000")

    @pytest.mark.asyncio
    async def test_stamps_updated_at(self, storage, clock, make_wallet):
        await make_wallet("bank")
        await BalanceLedger(storage, clock).apply_transaction(_tx(TransactionKind.INCOME, "1"))
        wallet = await storage.get(Collection.WALLETS, "bank")
        assert wallet.updated_at == clock()


class TestTransactionService:
    """Tests for record / update / delete."""

    @pytest.mark.asyncio
    async def test_record_applies_balance(self, app, storage, make_wallet, charge):
        await make_wallet("bank", balance=Decimal("1000"))

        tx = await charge("bank", "150")

        assert tx.id == "tx_0001"
        assert tx.currency == Currency.ARS
        assert not tx.is_from_credit_card
        assert await _balance(storage, "bank") == Decimal("850")

    @pytest.mark.asyncio
    async def test_card_charge_is_linked_to_statement(self, app, storage, make_card, charge):
        await make_card()

        tx = await charge("visa", "5000")

        assert tx.is_from_credit_card
        assert tx.statement_id is not None
        statement = await storage.get(Collection.STATEMENTS, tx.statement_id)
        assert statement.total_charges == Decimal("5000")
        assert statement.current_balance == Decimal("5000")
        assert await _balance(storage, "visa") == Decimal("-5000")

    @pytest.mark.asyncio
    async def test_card_charge_outside_period_not_linked(self, app, storage, make_card, charge):
        await make_card()

        tx = await charge("visa", "5000", tx_date=date(2023, 11, 20))

        assert tx.statement_id is None
        assert await _balance(storage, "visa") == Decimal("-5000")

    @pytest.mark.asyncio
    async def test_category_kind_must_match(self, app, make_wallet, categories, owner):
        await make_wallet("bank")
        with pytest.raises(ValidationError) as exc:
            await app.transactions.record_transaction(
                owner=owner,
                kind=TransactionKind.INCOME,
                amount=Decimal("10"),
                wallet_id="bank",
                category_id=categories["expense"].id,
                tx_date=date(2024, 1, 10),
            )
        assert exc.value.field == "category_id"

    @pytest.mark.asyncio
    async def test_missing_category(self, app, make_wallet, owner):
        await make_wallet("bank")
        with pytest.raises(ReferentialError):
            await app.transactions.record_transaction(
                owner=owner,
                kind=TransactionKind.EXPENSE,
                amount=Decimal("10"),
                wallet_id="bank",
                category_id="cat_missing",
                tx_date=date(2024, 1, 10),
            )

    @pytest.mark.asyncio
    async def test_failed_transfer_stores_nothing(self, app, storage, make_wallet, categories, owner):
        """A cross-currency transfer without a rate leaves no transaction behind."""
        await make_wallet("usd", currency=Currency.USD, balance=Decimal("100"))
        await make_wallet("bank")

        with pytest.raises(ValidationError):
            await app.transactions.record_transaction(
                owner=owner,
                kind=TransactionKind.TRANSFER,
                amount=Decimal("10"),
                wallet_id="usd",
                target_wallet_id="bank",
                category_id=categories["expense"].id,
                tx_date=date(2024, 1, 10),
            )

        assert await storage.query(Collection.TRANSACTIONS) == []
        assert await _balance(storage, "usd") == Decimal("100")

    @pytest.mark.asyncio
    async def test_update_reverses_then_reapplies(self, app, storage, make_wallet, charge):
        await make_wallet("bank", balance=Decimal("1000"))
        tx = await charge("bank", "150")

        updated = await app.transactions.update_transaction(tx.id, amount=Decimal("400"))

        assert updated.amount == Decimal("400")
        assert await _balance(storage, "bank") == Decimal("600")

    @pytest.mark.asyncio
    async def test_update_moves_between_wallets(self, app, storage, make_wallet, charge):
        await make_wallet("bank", balance=Decimal("1000"))
        await make_wallet("cash", kind=WalletKind.PHYSICAL, balance=Decimal("200"))
        tx = await charge("bank", "150")

        await app.transactions.update_transaction(tx.id, wallet_id="cash")

        assert await _balance(storage, "bank") == Decimal("1000")
        assert await _balance(storage, "cash") == Decimal("50")

    @pytest.mark.asyncio
    async def test_update_refreshes_statement_totals(self, app, storage, make_card, charge):
        await make_card()
        tx = await charge("visa", "5000")

        await app.transactions.update_transaction(tx.id, amount=Decimal("7000"))

        statement = await storage.get(Collection.STATEMENTS, tx.statement_id)
        assert statement.total_charges == Decimal("7000")

    @pytest.mark.asyncio
    async def test_update_out_of_period_unlinks(self, app, storage, make_card, charge):
        await make_card()
        tx = await charge("visa", "5000")

        updated = await app.transactions.update_transaction(tx.id, date=date(2023, 11, 1))

        assert updated.statement_id is None
        statement = await storage.get(Collection.STATEMENTS, tx.statement_id)
        assert statement.total_charges == Decimal("0")

    @pytest.mark.asyncio
    async def test_update_protected_field_rejected(self, app, make_wallet, charge):
        await make_wallet("bank")
        tx = await charge("bank", "10")
        with pytest.raises(ValidationError):
            await app.transactions.update_transaction(tx.id, owner="someone_else")

    @pytest.mark.asyncio
    async def test_delete_reverses_and_removes(self, app, storage, make_card, charge):
        await make_card()
        tx = await charge("visa", "5000")

        await app.transactions.delete_transaction(tx.id)

        assert await storage.get(Collection.TRANSACTIONS, tx.id) is None
        assert await _balance(storage, "visa") == Decimal("0")
        statement = await storage.get(Collection.STATEMENTS, tx.statement_id)
        assert statement.current_balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_recalculated_balance_matches_after_history(self, app, storage, make_wallet, categories, owner, charge):
        """Any sequence of records, edits and deletes reconciles."""
        await make_wallet("bank", balance=Decimal("500"))
        await make_wallet("cash", kind=WalletKind.PHYSICAL)

        first = await charge("bank", "120.50")
        await app.transactions.record_transaction(
            owner=owner, kind=TransactionKind.INCOME, amount=Decimal("1000"),
            wallet_id="bank", category_id=categories["income"].id, tx_date=date(2024, 1, 9),
        )
        await app.transactions.record_transaction(
            owner=owner, kind=TransactionKind.TRANSFER, amount=Decimal("300"),
            wallet_id="bank", target_wallet_id="cash",
            category_id=categories["expense"].id, tx_date=date(2024, 1, 9),
        )
        second = await charge("cash", "45")
        await app.transactions.update_transaction(first.id, amount=Decimal("99.99"))
        await app.transactions.delete_transaction(second.id)

        for wallet_id in ("bank", "cash"):
            expected = await app.reconciliation.recalculate_balance(wallet_id)
            assert expected == await _balance(storage, wallet_id)
        assert await _balance(storage, "bank") == Decimal("1100.01")
        assert await _balance(storage, "cash") == Decimal("300")


class TestChangesOnSettledStatements:
    """Edits and deletes of charges whose statement is closed or paid."""

    @pytest.fixture
    def closed_charge(self, app, clock, make_card, charge):
        """visa charge of 1000 on the statement closed by the 2024-01-20 sweep."""

        async def _setup():
            await make_card()
            tx = await charge("visa", "1000")
            clock.set_date(date(2024, 1, 20))
            await app.statements.process_automatic_closings()
            return tx

        return _setup

    @pytest.fixture
    def paid_charges(self, app, make_card, make_wallet, charge):
        """Charges of 1000 and 500 on one statement, paid in full."""

        async def _setup():
            await make_card()
            await make_wallet("bank", balance=Decimal("100000"))
            first = await charge("visa", "1000")
            second = await charge("visa", "500")
            await app.payments.pay_full_balance(first.statement_id, "bank")
            return first, second

        return _setup

    @pytest.mark.asyncio
    async def test_description_edit_keeps_closed_statement_link(self, app, storage, closed_charge):
        tx = await closed_charge()

        updated = await app.transactions.update_transaction(tx.id, description="Supermarket")

        assert updated.statement_id == tx.statement_id
        statement = await storage.get(Collection.STATEMENTS, tx.statement_id)
        assert statement.status == StatementStatus.CLOSED
        assert statement.total_charges == Decimal("1000")
        assert statement.current_balance == Decimal("1000")

        current = await app.statements.get_current_statement("visa")
        assert current.id != tx.statement_id
        assert current.total_charges == Decimal("0")

    @pytest.mark.asyncio
    async def test_date_edit_inside_closed_period_keeps_link(self, app, storage, closed_charge):
        tx = await closed_charge()

        updated = await app.transactions.update_transaction(tx.id, date=date(2024, 1, 2))

        assert updated.statement_id == tx.statement_id
        statement = await storage.get(Collection.STATEMENTS, tx.statement_id)
        assert statement.total_charges == Decimal("1000")

    @pytest.mark.asyncio
    async def test_date_edit_into_current_period_relinks(self, app, storage, closed_charge):
        tx = await closed_charge()

        updated = await app.transactions.update_transaction(tx.id, date=date(2024, 1, 18))

        current = await app.statements.get_current_statement("visa")
        assert updated.statement_id == current.id
        assert current.total_charges == Decimal("1000")
        closed = await storage.get(Collection.STATEMENTS, tx.statement_id)
        assert closed.total_charges == Decimal("0")

    @pytest.mark.asyncio
    async def test_amount_edit_on_closed_statement_updates_totals(self, app, storage, closed_charge):
        tx = await closed_charge()

        await app.transactions.update_transaction(tx.id, amount=Decimal("1500"))

        statement = await storage.get(Collection.STATEMENTS, tx.statement_id)
        assert statement.status == StatementStatus.CLOSED
        assert statement.current_balance == Decimal("1500")
        assert statement.minimum_payment == Decimal("75.00")

    @pytest.mark.asyncio
    async def test_delete_on_closed_statement_drops_totals(self, app, storage, closed_charge):
        tx = await closed_charge()

        await app.transactions.delete_transaction(tx.id)

        statement = await storage.get(Collection.STATEMENTS, tx.statement_id)
        assert statement.status == StatementStatus.CLOSED
        assert statement.total_charges == Decimal("0")
        assert statement.current_balance == Decimal("0")
        assert await _balance(storage, "visa") == Decimal("0")

    @pytest.mark.asyncio
    async def test_delete_on_paid_statement_rejected(self, app, storage, paid_charges):
        """Removing a paid-for charge would leave more paid than owed."""
        first, second = await paid_charges()
        visa_before = await _balance(storage, "visa")

        with pytest.raises(ValidationError) as exc:
            await app.transactions.delete_transaction(second.id)
        assert exc.value.field == "amount"

        assert await storage.get(Collection.TRANSACTIONS, second.id) is not None
        assert await _balance(storage, "visa") == visa_before
        statement = await storage.get(Collection.STATEMENTS, first.statement_id)
        assert statement.status == StatementStatus.PAID
        assert statement.current_balance == Decimal("1500")
        assert statement.paid_amount == Decimal("1500")

    @pytest.mark.asyncio
    async def test_lowering_paid_charge_rejected(self, app, storage, paid_charges):
        first, _ = await paid_charges()

        with pytest.raises(ValidationError):
            await app.transactions.update_transaction(first.id, amount=Decimal("400"))

        assert (await storage.get(Collection.TRANSACTIONS, first.id)).amount == Decimal("1000")
        statement = await storage.get(Collection.STATEMENTS, first.statement_id)
        assert statement.current_balance == Decimal("1500")

    @pytest.mark.asyncio
    async def test_raising_paid_charge_reopens_statement(self, app, storage, paid_charges):
        first, _ = await paid_charges()

        await app.transactions.update_transaction(first.id, amount=Decimal("1200"))

        statement = await storage.get(Collection.STATEMENTS, first.statement_id)
        assert statement.status == StatementStatus.OPEN
        assert statement.remaining_balance == Decimal("200")

    @pytest.mark.asyncio
    async def test_description_edit_keeps_paid_status(self, app, storage, paid_charges):
        first, _ = await paid_charges()

        updated = await app.transactions.update_transaction(first.id, description="Groceries")

        assert updated.statement_id == first.statement_id
        statement = await storage.get(Collection.STATEMENTS, first.statement_id)
        assert statement.status == StatementStatus.PAID

    @pytest.mark.asyncio
    async def test_refund_on_paid_statement_rejected(self, app, storage, categories, owner, paid_charges):
        await paid_charges()
        stored = len(await storage.query(Collection.TRANSACTIONS))

        with pytest.raises(ValidationError):
            await app.transactions.record_transaction(
                owner=owner,
                kind=TransactionKind.INCOME,
                amount=Decimal("100"),
                wallet_id="visa",
                category_id=categories["income"].id,
                tx_date=date(2024, 1, 10),
                description="Refund",
            )

        assert len(await storage.query(Collection.TRANSACTIONS)) == stored
