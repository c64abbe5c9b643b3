"""Tests for the command line entry point."""

import json

import pytest

from lending_ledger.cli import build_parser, main

SNAPSHOT = """
accounts:
  - {id: cash, name: Fondo, type: EMPLOYEE_CASH_FUND}
  - {id: bank, name: Banco, type: BANK}
routes:
  - {id: r1, name: Ruta Norte}
leads:
  - {id: l1, full_name: Juan, addresses: [{location: {name: Springfield}}]}
transactions:
  - {id: t1, amount: "300", type: INCOME, income_source: BANK_LOAN_PAYMENT,
     lead_id: l1, route_id: r1, borrower_name: Ana, date: "2024-03-01T15:00:00Z"}
  - {id: t2, amount: "40", type: EXPENSE, expense_source: GASOLINE,
     source_account_id: cash, route_id: r1, date: "2024-03-01T16:00:00Z"}
discrepancies:
  - {id: d1, discrepancy_type: EXPENSE, date: "2024-03-06T15:00:00Z",
     week_start_date: "2024-03-04T00:00:00Z", expected_amount: "100",
     actual_amount: "90", difference: "-10", description: Missing receipt,
     route_id: r1, status: PENDING}
"""


@pytest.fixture
def fixture_path(tmp_path):
    path = tmp_path / "snapshot.yaml"
    path.write_text(SNAPSHOT, encoding="utf-8")
    return str(path)


def test_parser_collects_repeated_routes():
    args = build_parser().parse_args(
        ["bank-income", "--start", "2024-03-01", "--end", "2024-03-02", "--route", "a",
         "--route", "b"]
    )

    assert args.routes == ["a", "b"]
    assert args.only_abonos is False


def test_summary_command(fixture_path, capsys):
    code = main(
        ["--fixture", fixture_path, "summary", "--start", "2024-03-01", "--end", "2024-03-01"]
    )

    rows = json.loads(capsys.readouterr().out)
    assert code == 0
    assert {row["locality"] for row in rows} == {"Juan - Springfield", "Ruta Norte"}
    norte = next(row for row in rows if row["locality"] == "Ruta Norte")
    assert norte["gasoline"] == 40.0


def test_bank_income_command(fixture_path, capsys):
    code = main(
        [
            "--fixture", fixture_path,
            "bank-income", "--start", "2024-03-01", "--end", "2024-03-31",
            "--route", "r1", "--only-abonos",
        ]
    )

    result = json.loads(capsys.readouterr().out)
    assert code == 0
    assert result["success"] is True
    assert [t["name"] for t in result["transactions"]] == ["Ana"]


def test_discrepancy_stats_command(fixture_path, capsys):
    code = main(["--fixture", fixture_path, "discrepancies", "--stats"])

    stats = json.loads(capsys.readouterr().out)
    assert code == 0
    assert stats["totalDiscrepancies"] == 1
    assert stats["totalDifference"] == -10.0


def test_invalid_dates_fail_cleanly(fixture_path, capsys):
    code = main(["--fixture", fixture_path, "summary", "--start", "soon", "--end", "later"])

    assert code == 1
    assert capsys.readouterr().out == ""
