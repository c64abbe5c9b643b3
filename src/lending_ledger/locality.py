"""Map transactions to the business locality they were collected in."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field

from lending_ledger.models import Lead, Route, Transaction
from lending_ledger.store.base import LedgerStore, skip_lookup

GENERAL_LOCALITY = "General"


@dataclass
class LocalityResolver:
    """Resolves ``lead -> address -> location`` with route-name fallback.

    Build it with :meth:`load`, which fetches every lead and route the
    working set references in one bulk call per reference type. Resolution
    afterwards is purely in memory.
    """

    leads: dict[str, Lead] = field(default_factory=dict)
    routes: dict[str, Route] = field(default_factory=dict)

    @classmethod
    async def load(
        cls, store: LedgerStore, transactions: Iterable[Transaction]
    ) -> LocalityResolver:
        lead_ids: set[str] = set()
        route_ids: set[str] = set()
        for tx in transactions:
            if tx.lead_id:
                lead_ids.add(tx.lead_id)
            if tx.effective_route_id:
                route_ids.add(tx.effective_route_id)

        leads, routes = await asyncio.gather(
            store.get_leads(lead_ids) if lead_ids else skip_lookup(),
            store.get_routes(route_ids) if route_ids else skip_lookup(),
        )
        return cls(leads=leads, routes=routes)

    def resolve(self, transaction: Transaction) -> str:
        """Return the grouping key for ``transaction``.

        ``"{lead name} - {location}"`` when the lead has a located first
        address; otherwise the snapshot (or live) route name, or "General",
        prefixed with ``"Líder ID: {id} - "`` when a lead id was recorded but
        could not be resolved.
        """
        lead = self.leads.get(transaction.lead_id) if transaction.lead_id else None
        if lead is not None and lead.locality_name:
            return f"{lead.full_name or 'Sin nombre'} - {lead.locality_name}"

        locality = GENERAL_LOCALITY
        route_id = transaction.effective_route_id
        if route_id:
            route = self.routes.get(route_id)
            if route is not None and route.name:
                locality = route.name

        if transaction.lead_id:
            return f"Líder ID: {transaction.lead_id} - {locality}"
        return locality
