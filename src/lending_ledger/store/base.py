"""Interface to the persistent transaction and discrepancy store."""

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Protocol

from lending_ledger.models import (
    Account,
    Discrepancy,
    DiscrepancyStatus,
    DiscrepancyType,
    Lead,
    Route,
    Transaction,
)


class LedgerStore(Protocol):
    """Bulk relational lookups used by the engine.

    Transactions are read-only here. Lookups take a collection of ids and
    answer with a mapping keyed by id; ids the store does not know are
    simply absent from the result.
    """

    async def fetch_transactions(
        self, start: datetime, end: datetime, route_id: str | None = None
    ) -> list[Transaction]:
        """Transactions dated in [start, end].

        With ``route_id``, only those whose snapshot route or live route
        equals it.
        """
        ...

    async def fetch_route_transactions(
        self, start: datetime, end: datetime, route_ids: Iterable[str]
    ) -> list[Transaction]:
        """Transactions dated in [start, end] whose live route is in ``route_ids``."""
        ...

    async def get_routes(self, ids: Iterable[str]) -> dict[str, Route]: ...

    async def get_leads(self, ids: Iterable[str]) -> dict[str, Lead]: ...

    async def get_accounts(self, ids: Iterable[str]) -> dict[str, Account]: ...

    async def insert_discrepancy(self, discrepancy: Discrepancy) -> Discrepancy: ...

    async def update_discrepancy(
        self, discrepancy_id: str, changes: dict[str, Any]
    ) -> Discrepancy | None:
        """Apply ``changes`` to one row atomically; None if the id is unknown."""
        ...

    async def delete_discrepancy(self, discrepancy_id: str) -> bool: ...

    async def get_discrepancy(self, discrepancy_id: str) -> Discrepancy | None: ...

    async def find_discrepancies(
        self,
        route_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        status: DiscrepancyStatus | None = None,
        discrepancy_type: DiscrepancyType | None = None,
    ) -> list[Discrepancy]:
        """Matching discrepancies, newest date first."""
        ...


async def skip_lookup() -> dict[str, Any]:
    """Stand-in for a bulk lookup with nothing to look up."""
    return {}
