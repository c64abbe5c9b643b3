"""Command line access to summaries, bank income and discrepancies.

Usage:
    # Locality summary for a week, from the configured backend
    python -m lending_ledger summary --start 2024-03-04 --end 2024-03-10

    # Same, from an offline YAML snapshot
    python -m lending_ledger --fixture snapshot.yaml summary --start 2024-03-01 --end 2024-03-01

    # Bank inflows for two routes, client payments only
    python -m lending_ledger bank-income --start 2024-03-01 --end 2024-03-31 \\
        --route r1 --route r2 --only-abonos

    # Pending discrepancies for a route
    python -m lending_ledger discrepancies --route r1 --status PENDING
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from typing import Any

import structlog

from lending_ledger.api import LedgerService
from lending_ledger.config import configure_logging
from lending_ledger.errors import LedgerError
from lending_ledger.store import HttpLedgerStore, load_fixture

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lending_ledger",
        description="Lending ledger summaries and discrepancy review",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--fixture",
        help="Read from a YAML snapshot instead of the configured backend",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    summary = commands.add_parser("summary", help="Per-date, per-locality summary")
    summary.add_argument("--start", required=True, help="First day (ISO-8601, UTC)")
    summary.add_argument("--end", required=True, help="Last day (ISO-8601, UTC)")
    summary.add_argument("--route", help="Only transactions of this route")

    bank = commands.add_parser("bank-income", help="Inflows into bank accounts")
    bank.add_argument("--start", required=True)
    bank.add_argument("--end", required=True)
    bank.add_argument("--route", action="append", required=True, dest="routes")
    bank.add_argument("--only-abonos", action="store_true")

    discrepancies = commands.add_parser("discrepancies", help="List discrepancies")
    discrepancies.add_argument("--route")
    discrepancies.add_argument("--start")
    discrepancies.add_argument("--end")
    discrepancies.add_argument("--status", choices=["PENDING", "COMPLETED", "DISCARDED"])
    discrepancies.add_argument("--stats", action="store_true", help="Print totals instead")

    return parser


async def run(args: argparse.Namespace) -> Any:
    """Execute the parsed command and return its JSON-ready result."""
    if args.fixture:
        store: Any = load_fixture(args.fixture)
    else:
        store = HttpLedgerStore()

    try:
        service = LedgerService(store)
        if args.command == "summary":
            return await service.get_transactions_summary(args.start, args.end, args.route)
        if args.command == "bank-income":
            return await service.get_bank_income_transactions(
                args.start, args.end, args.routes, only_abonos=args.only_abonos
            )
        if args.stats:
            return await service.get_discrepancy_stats(route_id=args.route)
        return await service.get_discrepancies(
            route_id=args.route,
            start_date=args.start,
            end_date=args.end,
            status=args.status,
        )
    finally:
        if isinstance(store, HttpLedgerStore):
            await store.close()


def main(argv: Sequence[str] | None = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)

    try:
        result = asyncio.run(run(args))
    except LedgerError as e:
        logger.error("command_failed", command=args.command, error=e.message)
        return 1

    json.dump(result, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
