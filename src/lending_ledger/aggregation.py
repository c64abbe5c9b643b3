"""Per-date, per-locality transaction summaries.

Every call recomputes from the store: no summary state is materialized or
cached, so two calls with no writes in between return identical rows.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime, time
from typing import Protocol

import structlog

from lending_ledger.ledger_rules import LocalitySummary, apply_transaction
from lending_ledger.locality import LocalityResolver
from lending_ledger.models import Account, Transaction
from lending_ledger.store.base import LedgerStore

logger = structlog.get_logger(__name__)


class SummarySource(Protocol):
    """Anything able to produce locality summaries for a date range."""

    async def summarize(
        self,
        start: datetime,
        end: datetime,
        route_id: str | None = None,
        whole_days: bool = True,
    ) -> list[LocalitySummary]: ...


def day_window(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    """Widen two instants to [start day 00:00:00.000, end day 23:59:59.999] UTC."""
    start_utc = start.astimezone(UTC) if start.tzinfo else start.replace(tzinfo=UTC)
    end_utc = end.astimezone(UTC) if end.tzinfo else end.replace(tzinfo=UTC)
    window_start = datetime.combine(start_utc.date(), time.min, tzinfo=UTC)
    window_end = datetime.combine(end_utc.date(), time(23, 59, 59, 999000), tzinfo=UTC)
    return window_start, window_end


class SummaryEngine:
    """Full-recompute implementation of ``SummarySource``."""

    def __init__(self, store: LedgerStore):
        self._store = store
        self._logger = logger.bind(component="summary_engine")

    async def summarize(
        self,
        start: datetime,
        end: datetime,
        route_id: str | None = None,
        whole_days: bool = True,
    ) -> list[LocalitySummary]:
        """Summarize transactions between the days of ``start`` and ``end``.

        Args:
            start: Any instant on the first day of the window (UTC).
            end: Any instant on the last day of the window (UTC).
            route_id: Only transactions whose snapshot route or live route
                matches.
            whole_days: Widen the bounds to whole UTC days. Pass False with
                bounds from ``business_day_bounds`` to summarize exactly one
                business day; rows are still dated by UTC day.

        Returns:
            One row per (date, locality) with at least one transaction,
            sorted by date then locality.
        """
        if whole_days:
            window_start, window_end = day_window(start, end)
        else:
            window_start, window_end = start.astimezone(UTC), end.astimezone(UTC)
        transactions = await self._store.fetch_transactions(
            window_start, window_end, route_id=route_id
        )

        account_ids: set[str] = set()
        for tx in transactions:
            if tx.source_account_id:
                account_ids.add(tx.source_account_id)
            if tx.destination_account_id:
                account_ids.add(tx.destination_account_id)

        # All lookups finish before any folding starts
        resolver, accounts = await asyncio.gather(
            LocalityResolver.load(self._store, transactions),
            self._load_accounts(account_ids),
        )

        buckets: dict[tuple[date, str], LocalitySummary] = {}
        malformed: list[str] = []
        for tx in transactions:
            if tx.amount is None:
                malformed.append(tx.id)
            key = (tx.date.astimezone(UTC).date(), resolver.resolve(tx))
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = LocalitySummary(date=key[0], locality=key[1])
            apply_transaction(
                bucket,
                tx,
                accounts.get(tx.source_account_id) if tx.source_account_id else None,
                accounts.get(tx.destination_account_id) if tx.destination_account_id else None,
            )

        if malformed:
            self._logger.warning(
                "malformed_amounts_coerced",
                count=len(malformed),
                transaction_ids=malformed[:20],
            )

        unresolved_accounts = _count_unresolved(transactions, accounts)
        if unresolved_accounts:
            self._logger.warning(
                "unresolved_accounts_defaulted_to_cash", count=unresolved_accounts
            )

        self._logger.info(
            "transactions_summarized",
            start=window_start.isoformat(),
            end=window_end.isoformat(),
            route_id=route_id,
            transactions=len(transactions),
            buckets=len(buckets),
        )
        return [buckets[key] for key in sorted(buckets)]

    async def _load_accounts(self, ids: set[str]) -> dict[str, Account]:
        if not ids:
            return {}
        return await self._store.get_accounts(ids)


def _count_unresolved(transactions: list[Transaction], accounts: dict[str, Account]) -> int:
    count = 0
    for tx in transactions:
        for account_id in (tx.source_account_id, tx.destination_account_id):
            if account_id and account_id not in accounts:
                count += 1
    return count
