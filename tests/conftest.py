"""Pytest configuration and fixtures."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio

from household_ledger.config import LedgerSettings
from household_ledger.models.transaction import TransactionKind
from household_ledger.models.wallet import Category, CategoryKind, Currency, Wallet, WalletKind
from household_ledger.orchestrator import create_app_components
from household_ledger.services.storage import Collection, InMemoryRecordStorage


OWNER = "user_1"


class FixedClock:
    """Clock frozen at a given instant; tests move it explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set_date(self, day: date) -> None:
        self.now = datetime(day.year, day.month, day.day, 12, 0, tzinfo=timezone.utc)

    def advance(self, days: int) -> None:
        self.now = self.now + timedelta(days=days)


class SequentialIds:
    """Readable, predictable ids: tx_0001, tx_0002, stmt_0001, ..."""

    def __init__(self):
        self._counters: dict[str, int] = {}

    def __call__(self, prefix: str) -> str:
        self._counters[prefix] = self._counters.get(prefix, 0) + 1
        return f"{prefix}_{self._counters[prefix]:04d}"


@pytest.fixture
def clock():
    """2024-01-10 12:00 UTC."""
    return FixedClock(datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def ids():
    return SequentialIds()


@pytest.fixture
def storage():
    return InMemoryRecordStorage()


@pytest.fixture
def settings():
    return LedgerSettings()


@pytest.fixture
def app(storage, settings, clock, ids):
    """All services wired to in-memory storage, a fixed clock and sequential ids."""
    return create_app_components(storage=storage, settings=settings, clock=clock, id_generator=ids)


@pytest.fixture
def make_wallet(storage):
    """Store a wallet and return it."""

    async def _make(
        wallet_id: str,
        kind: WalletKind = WalletKind.BANK,
        balance: Decimal = Decimal("0"),
        currency: Currency = Currency.ARS,
        credit_limit: Optional[Decimal] = None,
        closing_day: Optional[int] = None,
        due_day: Optional[int] = None,
        owner: str = OWNER,
        is_active: bool = True,
    ) -> Wallet:
        wallet = Wallet(
            id=wallet_id,
            owner=owner,
            name=wallet_id.replace("_", " ").title(),
            kind=kind,
            currency=currency,
            balance=balance,
            opening_balance=balance,
            credit_limit=credit_limit,
            closing_day=closing_day,
            due_day=due_day,
            is_active=is_active,
        )
        await storage.put(Collection.WALLETS, wallet)
        return wallet

    return _make


@pytest.fixture
def make_card(make_wallet):
    """Credit card closing on the 15th, due 20 days later."""

    async def _make(
        wallet_id: str = "visa",
        balance: Decimal = Decimal("0"),
        credit_limit: Optional[Decimal] = Decimal("100000"),
        **kwargs,
    ) -> Wallet:
        kwargs.setdefault("closing_day", 15)
        kwargs.setdefault("due_day", 20)
        return await make_wallet(
            wallet_id,
            kind=WalletKind.CREDIT_CARD,
            balance=balance,
            credit_limit=credit_limit,
            **kwargs,
        )

    return _make


@pytest_asyncio.fixture
async def categories(storage):
    """One expense and one income category for OWNER."""
    groceries = Category(id="cat_groceries", owner=OWNER, name="Groceries", kind=CategoryKind.EXPENSE)
    salary = Category(id="cat_salary", owner=OWNER, name="Salary", kind=CategoryKind.INCOME)
    await storage.put(Collection.CATEGORIES, groceries)
    await storage.put(Collection.CATEGORIES, salary)
    return {"expense": groceries, "income": salary}


@pytest.fixture
def charge(app, categories):
    """Record a completed expense on a wallet (a card charge when the wallet is a card)."""

    async def _charge(wallet_id: str, amount: str, tx_date: date = date(2024, 1, 10)):
        return await app.transactions.record_transaction(
            owner=OWNER,
            kind=TransactionKind.EXPENSE,
            amount=Decimal(amount),
            wallet_id=wallet_id,
            category_id=categories["expense"].id,
            tx_date=tx_date,
            description="Test charge",
        )

    return _charge


@pytest.fixture
def owner():
    return OWNER
