"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from itertools import count
from typing import Any

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("LEDGER_API_TOKEN", "test-token")

from lending_ledger.models import (  # noqa: E402
    Account,
    AccountType,
    Address,
    Lead,
    Location,
    Route,
    Transaction,
    TransactionType,
    parse_instant,
)
from lending_ledger.store import InMemoryLedgerStore  # noqa: E402

CASH = "acc-cash"
BANK = "acc-bank"
OFFICE = "acc-office"
ROUTE_NORTE = "route-norte"
ROUTE_SUR = "route-sur"
LEAD_JUAN = "lead-juan"
LEAD_PEDRO = "lead-pedro"


@pytest.fixture
def accounts() -> list[Account]:
    return [
        Account(id=CASH, name="Fondo Juan", type=AccountType.EMPLOYEE_CASH_FUND),
        Account(id=BANK, name="Banco", type=AccountType.BANK),
        Account(id=OFFICE, name="Caja oficina", type=AccountType.OFFICE_CASH_FUND),
    ]


@pytest.fixture
def routes() -> list[Route]:
    return [
        Route(id=ROUTE_NORTE, name="Ruta Norte"),
        Route(id=ROUTE_SUR, name="Ruta Sur"),
    ]


@pytest.fixture
def leads() -> list[Lead]:
    return [
        Lead(
            id=LEAD_JUAN,
            full_name="Juan",
            addresses=(
                Address(location=Location(name="Springfield", municipality="Shelby", state="IL")),
                Address(location=Location(name="Ogdenville")),
            ),
        ),
        # No address, so the locality falls back to the route
        Lead(id=LEAD_PEDRO, full_name="Pedro"),
    ]


@pytest.fixture
def make_tx() -> Callable[..., Transaction]:
    """Factory for transactions with sensible defaults."""
    ids = count(1)

    def _make(
        tx_type: TransactionType | str,
        amount: str | Decimal | None,
        date: str | datetime = "2024-03-01T15:00:00Z",
        **kwargs: Any,
    ) -> Transaction:
        return Transaction(
            id=kwargs.pop("id", f"tx-{next(ids)}"),
            amount=Decimal(amount) if isinstance(amount, str) else amount,
            type=TransactionType(tx_type),
            date=parse_instant(date),
            **kwargs,
        )

    return _make


@pytest.fixture
def store(accounts, routes, leads) -> InMemoryLedgerStore:
    """Store with reference data and no transactions."""
    return InMemoryLedgerStore(accounts=accounts, routes=routes, leads=leads)
