"""Tests for the summary engine."""

import random
from datetime import UTC, date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import BANK, CASH, LEAD_JUAN, LEAD_PEDRO, OFFICE, ROUTE_NORTE, ROUTE_SUR

from lending_ledger.aggregation import SummaryEngine, day_window
from lending_ledger.ledger_rules import LocalitySummary
from lending_ledger.models import ExpenseSource, IncomeSource, TransactionType
from lending_ledger.store import HttpLedgerStore

MARCH_1 = datetime(2024, 3, 1, tzinfo=UTC)


def _only(rows: list[LocalitySummary], locality: str) -> LocalitySummary:
    matching = [row for row in rows if row.locality == locality]
    assert len(matching) == 1, [row.locality for row in rows]
    return matching[0]


@pytest.fixture
def juan_day(make_tx):
    """Juan collects $1000 cash and spends $50 on fuel on 2024-03-01."""
    return [
        make_tx(
            "INCOME",
            "1000",
            income_source=IncomeSource.CASH_LOAN_PAYMENT,
            destination_account_id=CASH,
            lead_id=LEAD_JUAN,
            route_id=ROUTE_NORTE,
        ),
        make_tx(
            "EXPENSE",
            "50",
            expense_source=ExpenseSource.GASOLINE,
            source_account_id=CASH,
            lead_id=LEAD_JUAN,
            route_id=ROUTE_NORTE,
        ),
    ]


class TestScenarios:
    """Worked examples."""

    @pytest.mark.asyncio
    async def test_collection_and_fuel(self, store, juan_day):
        store.transactions.extend(juan_day)

        rows = await SummaryEngine(store).summarize(MARCH_1, MARCH_1)

        row = _only(rows, "Juan - Springfield")
        assert row.date == date(2024, 3, 1)
        assert row.abono == Decimal("1000")
        assert row.cash_abono == Decimal("1000")
        assert row.cash_balance == Decimal("950")
        assert row.gasoline == Decimal("50")
        assert row.bank_balance == 0

    @pytest.mark.asyncio
    async def test_adding_cash_to_bank_transfer(self, store, juan_day, make_tx):
        store.transactions.extend(juan_day)
        store.transactions.append(
            make_tx(
                "TRANSFER",
                "200",
                source_account_id=CASH,
                destination_account_id=BANK,
                lead_id=LEAD_JUAN,
            )
        )

        rows = await SummaryEngine(store).summarize(MARCH_1, MARCH_1)

        row = _only(rows, "Juan - Springfield")
        assert row.cash_balance == Decimal("750")
        assert row.bank_balance == Decimal("200")
        assert row.transfer_from_cash == Decimal("200")
        assert row.transfer_to_bank == Decimal("200")

    @pytest.mark.asyncio
    async def test_bank_to_cash_transfer(self, store, make_tx):
        store.transactions.append(
            make_tx(
                "TRANSFER",
                "75",
                source_account_id=BANK,
                destination_account_id=CASH,
                lead_id=LEAD_JUAN,
            )
        )

        rows = await SummaryEngine(store).summarize(MARCH_1, MARCH_1)

        row = _only(rows, "Juan - Springfield")
        assert row.bank_balance == Decimal("-75")
        assert row.cash_balance == Decimal("75")
        assert row.transfer_from_cash == 0
        assert row.transfer_to_bank == 0

    @pytest.mark.asyncio
    async def test_bank_expense_leaves_balances(self, store, make_tx):
        store.transactions.append(
            make_tx(
                "EXPENSE",
                "400",
                expense_source=ExpenseSource.LOAN_GRANTED,
                source_account_id=BANK,
                route_id=ROUTE_SUR,
            )
        )

        rows = await SummaryEngine(store).summarize(MARCH_1, MARCH_1)

        row = _only(rows, "Ruta Sur")
        assert row.loan_granted == Decimal("400")
        assert row.bank_balance == 0
        assert row.cash_balance == 0

    @pytest.mark.asyncio
    async def test_unresolvable_account_takes_cash_path(self, store, make_tx):
        store.transactions.append(
            make_tx(
                "EXPENSE",
                "20",
                expense_source=ExpenseSource.VIATIC,
                source_account_id="missing-account",
            )
        )

        rows = await SummaryEngine(store).summarize(MARCH_1, MARCH_1)

        row = _only(rows, "General")
        assert row.cash_balance == Decimal("-20")


class TestBucketing:
    """Grouping by date and locality."""

    @pytest.mark.asyncio
    async def test_rows_split_by_day_and_locality(self, store, make_tx):
        store.transactions.extend(
            [
                make_tx("INCOME", "10", date="2024-03-01T10:00:00Z", lead_id=LEAD_JUAN),
                make_tx("INCOME", "20", date="2024-03-02T10:00:00Z", lead_id=LEAD_JUAN),
                make_tx("INCOME", "30", date="2024-03-02T11:00:00Z", route_id=ROUTE_SUR),
            ]
        )

        rows = await SummaryEngine(store).summarize(
            MARCH_1, datetime(2024, 3, 2, tzinfo=UTC)
        )

        assert [(row.date.isoformat(), row.locality) for row in rows] == [
            ("2024-03-01", "Juan - Springfield"),
            ("2024-03-02", "Juan - Springfield"),
            ("2024-03-02", "Ruta Sur"),
        ]

    @pytest.mark.asyncio
    async def test_empty_window_returns_no_rows(self, store):
        assert await SummaryEngine(store).summarize(MARCH_1, MARCH_1) == []

    @pytest.mark.asyncio
    async def test_window_covers_whole_days(self, store, make_tx):
        store.transactions.extend(
            [
                make_tx("INCOME", "1", date="2024-03-01T00:00:00Z"),
                make_tx("INCOME", "2", date="2024-03-01T23:59:59.999Z"),
                make_tx("INCOME", "4", date="2024-02-29T23:59:59.999Z"),
                make_tx("INCOME", "8", date="2024-03-02T00:00:00Z"),
            ]
        )

        rows = await SummaryEngine(store).summarize(
            datetime(2024, 3, 1, 18, 30, tzinfo=UTC), datetime(2024, 3, 1, 6, tzinfo=UTC)
        )

        assert len(rows) == 1
        assert rows[0].abono == Decimal("3")

    @pytest.mark.asyncio
    async def test_route_filter_matches_snapshot_or_live_route(self, store, make_tx):
        store.transactions.extend(
            [
                make_tx("INCOME", "1", route_id=ROUTE_NORTE),
                make_tx("INCOME", "2", route_id=ROUTE_SUR, snapshot_route_id=ROUTE_NORTE),
                make_tx("INCOME", "4", route_id=ROUTE_SUR),
            ]
        )

        rows = await SummaryEngine(store).summarize(MARCH_1, MARCH_1, route_id=ROUTE_NORTE)

        assert sum(row.abono for row in rows) == Decimal("3")

    @pytest.mark.asyncio
    async def test_malformed_amount_does_not_abort(self, store, make_tx):
        store.transactions.extend(
            [
                make_tx("INCOME", None, lead_id=LEAD_JUAN),
                make_tx("INCOME", "15", lead_id=LEAD_JUAN),
            ]
        )

        rows = await SummaryEngine(store).summarize(MARCH_1, MARCH_1)

        assert _only(rows, "Juan - Springfield").abono == Decimal("15")

    @pytest.mark.asyncio
    async def test_unparseable_rows_do_not_abort(self):
        store = HttpLedgerStore(base_url="http://ledger", token="t")
        response = MagicMock()
        response.status_code = 200
        response.content = b"content"
        response.json.return_value = [
            {
                "id": "t1",
                "amount": "100",
                "type": "INCOME",
                "income_source": "CASH_LOAN_PAYMENT",
                "date": "2024-03-01T15:00:00Z",
            },
            {"id": "t2", "amount": "5", "type": "ADJUSTMENT", "date": "2024-03-01T16:00:00Z"},
        ]

        with patch.object(store, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=response)
            mock_get.return_value = mock_http

            rows = await SummaryEngine(store).summarize(MARCH_1, MARCH_1)

        assert len(rows) == 1
        assert rows[0].locality == "General"
        assert rows[0].abono == Decimal("100")


class TestProperties:
    """Properties that hold for any transaction set."""

    @pytest.fixture
    def random_transactions(self, make_tx):
        rng = random.Random(20240301)
        accounts = [CASH, BANK, OFFICE, None, "missing"]
        leads = [LEAD_JUAN, LEAD_PEDRO, None, "ghost"]
        routes = [ROUTE_NORTE, ROUTE_SUR, None]
        transactions = []
        for _ in range(300):
            tx_type = rng.choice(list(TransactionType))
            kwargs = {
                "lead_id": rng.choice(leads),
                "route_id": rng.choice(routes),
                "snapshot_route_id": rng.choice(routes),
                "source_account_id": rng.choice(accounts),
                "destination_account_id": rng.choice(accounts),
            }
            if tx_type == TransactionType.INCOME:
                kwargs["income_source"] = rng.choice([*IncomeSource, None])
            elif tx_type == TransactionType.EXPENSE:
                kwargs["expense_source"] = rng.choice([*ExpenseSource, None])
            transactions.append(
                make_tx(
                    tx_type,
                    f"{rng.randint(1, 500000) / 100:.2f}",
                    date=f"2024-03-0{rng.randint(1, 7)}T12:00:00Z",
                    **kwargs,
                )
            )
        return transactions

    @pytest.mark.asyncio
    async def test_category_counters_conserve_raw_totals(self, store, random_transactions):
        store.transactions.extend(random_transactions)

        rows = await SummaryEngine(store).summarize(
            MARCH_1, datetime(2024, 3, 7, tzinfo=UTC)
        )

        def raw_expense(*sources):
            return sum(
                (
                    tx.amount
                    for tx in random_transactions
                    if tx.type == TransactionType.EXPENSE and tx.expense_source in sources
                ),
                Decimal("0"),
            )

        for source in ExpenseSource:
            if source == ExpenseSource.OTHER:
                counter, expected = "otro", raw_expense(ExpenseSource.OTHER, None)
            else:
                counter, expected = source.value.lower(), raw_expense(source)
            assert sum(getattr(row, counter) for row in rows) == expected, counter

        assert sum(row.commissions for row in rows) == raw_expense(
            ExpenseSource.LOAN_PAYMENT_COMISSION,
            ExpenseSource.LOAN_GRANTED_COMISSION,
            ExpenseSource.LEAD_COMISSION,
        )
        assert sum(row.money_investment for row in rows) == sum(
            (
                tx.amount
                for tx in random_transactions
                if tx.type == TransactionType.INCOME
                and tx.income_source == IncomeSource.MONEY_INVESMENT
            ),
            Decimal("0"),
        )
        assert sum(row.abono for row in rows) == sum(
            (
                tx.amount
                for tx in random_transactions
                if tx.type == TransactionType.INCOME
                and tx.income_source != IncomeSource.MONEY_INVESMENT
            ),
            Decimal("0"),
        )

    @pytest.mark.asyncio
    async def test_summarize_is_idempotent(self, store, random_transactions):
        store.transactions.extend(random_transactions)
        engine = SummaryEngine(store)
        end = datetime(2024, 3, 7, tzinfo=UTC)

        first = await engine.summarize(MARCH_1, end)
        second = await engine.summarize(MARCH_1, end)

        assert [row.to_dict() for row in first] == [row.to_dict() for row in second]
        assert first == second

    @pytest.mark.asyncio
    async def test_store_calls_do_not_grow_with_volume(self, store, random_transactions):
        store.transactions.extend(random_transactions)

        await SummaryEngine(store).summarize(MARCH_1, datetime(2024, 3, 7, tzinfo=UTC))

        assert store.calls == {
            "fetch_transactions": 1,
            "get_leads": 1,
            "get_routes": 1,
            "get_accounts": 1,
        }


def test_day_window_spans_full_utc_days():
    start, end = day_window(
        datetime(2024, 3, 1, 13, tzinfo=UTC), datetime(2024, 3, 3, 1, tzinfo=UTC)
    )

    assert start == datetime(2024, 3, 1, tzinfo=UTC)
    assert end == datetime(2024, 3, 3, 23, 59, 59, 999000, tzinfo=UTC)
