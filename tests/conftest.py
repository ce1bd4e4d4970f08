"""Shared fixtures for ledger tests."""

from datetime import date
from decimal import Decimal

import pytest

from ledger.models.ledger import Expense, LedgerDocument
from ledger.orchestrator import LedgerController
from ledger.services.storage import InMemoryLedgerStore


CURRENT_MONTH = "2024-01"


@pytest.fixture
def rent() -> Expense:
    return Expense(id="rent", name="Rent", amount=Decimal("1200.00"), is_fixed=True)


@pytest.fixture
def coffee() -> Expense:
    return Expense(id="coffee", name="Coffee beans", amount=Decimal("18.50"))


@pytest.fixture
def laptop() -> Expense:
    """Installment plan from mid January to early March 2024 (three months)."""
    return Expense(
        id="laptop",
        name="Laptop",
        amount=Decimal("300.00"),
        is_installment=True,
        start="2024-01-15",
        end="2024-03-10",
    )


@pytest.fixture
def january_doc(rent, coffee) -> LedgerDocument:
    """Balance of 1000 with a fixed rent and a one-off expense in January 2024."""
    return LedgerDocument(
        account_balance=Decimal("1000"),
        expenses_by_month={"2024-01": (rent, coffee)},
    )


class MutableClock:
    """A clock a test can move forward."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(date(2024, 1, 15))


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def controller(store, clock) -> LedgerController:
    return LedgerController(store=store, clock=clock)
