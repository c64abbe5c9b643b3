"""Dictionary-backed store for tests and offline snapshots."""

from __future__ import annotations

import asyncio
import dataclasses
from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from lending_ledger.models import (
    Account,
    Discrepancy,
    DiscrepancyStatus,
    DiscrepancyType,
    Lead,
    Route,
    Transaction,
)


class InMemoryLedgerStore:
    """In-process implementation of ``LedgerStore``.

    Every public call is counted in ``calls`` so callers can assert how many
    round trips an operation needed.
    """

    def __init__(
        self,
        transactions: Iterable[Transaction] = (),
        accounts: Iterable[Account] = (),
        routes: Iterable[Route] = (),
        leads: Iterable[Lead] = (),
        discrepancies: Iterable[Discrepancy] = (),
    ):
        self.transactions: list[Transaction] = list(transactions)
        self.accounts: dict[str, Account] = {a.id: a for a in accounts}
        self.routes: dict[str, Route] = {r.id: r for r in routes}
        self.leads: dict[str, Lead] = {lead.id: lead for lead in leads}
        self.discrepancies: dict[str, Discrepancy] = {d.id: d for d in discrepancies}
        self.calls: Counter[str] = Counter()

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def reset_calls(self) -> None:
        self.calls.clear()

    # === Transactions ===

    async def fetch_transactions(
        self, start: datetime, end: datetime, route_id: str | None = None
    ) -> list[Transaction]:
        self.calls["fetch_transactions"] += 1
        return [
            tx
            for tx in self.transactions
            if start <= tx.date <= end
            and (route_id is None or route_id in (tx.snapshot_route_id, tx.route_id))
        ]

    async def fetch_route_transactions(
        self, start: datetime, end: datetime, route_ids: Iterable[str]
    ) -> list[Transaction]:
        self.calls["fetch_route_transactions"] += 1
        wanted = set(route_ids)
        return [
            tx
            for tx in self.transactions
            if start <= tx.date <= end and tx.route_id in wanted
        ]

    # === Bulk lookups ===

    async def get_routes(self, ids: Iterable[str]) -> dict[str, Route]:
        self.calls["get_routes"] += 1
        return {i: self.routes[i] for i in set(ids) if i in self.routes}

    async def get_leads(self, ids: Iterable[str]) -> dict[str, Lead]:
        self.calls["get_leads"] += 1
        return {i: self.leads[i] for i in set(ids) if i in self.leads}

    async def get_accounts(self, ids: Iterable[str]) -> dict[str, Account]:
        self.calls["get_accounts"] += 1
        return {i: self.accounts[i] for i in set(ids) if i in self.accounts}

    # === Discrepancies ===

    async def insert_discrepancy(self, discrepancy: Discrepancy) -> Discrepancy:
        self.calls["insert_discrepancy"] += 1
        self.discrepancies[discrepancy.id] = discrepancy
        return discrepancy

    async def update_discrepancy(
        self, discrepancy_id: str, changes: dict[str, Any]
    ) -> Discrepancy | None:
        self.calls["update_discrepancy"] += 1
        # Yield so concurrent writers interleave like real round trips
        await asyncio.sleep(0)
        current = self.discrepancies.get(discrepancy_id)
        if current is None:
            return None
        updated = dataclasses.replace(current, **changes)
        self.discrepancies[discrepancy_id] = updated
        return updated

    async def delete_discrepancy(self, discrepancy_id: str) -> bool:
        self.calls["delete_discrepancy"] += 1
        return self.discrepancies.pop(discrepancy_id, None) is not None

    async def get_discrepancy(self, discrepancy_id: str) -> Discrepancy | None:
        self.calls["get_discrepancy"] += 1
        return self.discrepancies.get(discrepancy_id)

    async def find_discrepancies(
        self,
        route_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        status: DiscrepancyStatus | None = None,
        discrepancy_type: DiscrepancyType | None = None,
    ) -> list[Discrepancy]:
        self.calls["find_discrepancies"] += 1
        found = [
            d
            for d in self.discrepancies.values()
            if (route_id is None or d.route_id == route_id)
            and (start is None or d.date >= start)
            and (end is None or d.date <= end)
            and (status is None or d.status == status)
            and (discrepancy_type is None or d.discrepancy_type == discrepancy_type)
        ]
        return sorted(found, key=lambda d: d.date, reverse=True)
