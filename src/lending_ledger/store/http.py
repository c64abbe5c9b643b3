"""REST client for the ledger backend with bearer auth and retries."""

import asyncio
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

import httpx
import structlog

from lending_ledger.config import get_settings
from lending_ledger.errors import StoreError
from lending_ledger.models import (
    Account,
    Discrepancy,
    DiscrepancyStatus,
    DiscrepancyType,
    Lead,
    Route,
    Transaction,
    parse_transactions,
)

logger = structlog.get_logger(__name__)


def _iso(value: datetime) -> str:
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


class HttpLedgerStore:
    """Async ``LedgerStore`` backed by the admin backend's REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.ledger_api_url).rstrip("/")
        self._token = token or settings.ledger_api_token.get_secret_value()
        self._timeout = timeout if timeout is not None else settings.ledger_timeout
        self._max_retries = (
            max_retries if max_retries is not None else settings.ledger_max_retries
        )
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpLedgerStore":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _get_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._token}",
        }

    # === Generic Request Methods ===

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        retry_count: int = 0,
    ) -> dict[str, Any] | list[dict[str, Any]]:
        """Make an authenticated request, retrying transport failures."""
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                json=json,
                headers=self._get_headers(),
            )

            if response.status_code == 429:
                retry_after = int(response.headers.get("Retry-After", "60"))
                raise StoreError(
                    f"Rate limited, retry after {retry_after}s",
                    status_code=429,
                    details={"retry_after": retry_after},
                )

            if response.status_code >= 400:
                try:
                    error_detail = response.json() if response.content else {}
                except ValueError:
                    error_detail = {
                        "raw": response.text[:500] if response.text else "empty response"
                    }
                raise StoreError(
                    f"Store error: {response.status_code}",
                    status_code=response.status_code,
                    details=error_detail,
                )

            return response.json() if response.content else {}

        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                logger.warning(
                    "store_request_retry", path=path, attempt=retry_count + 1, error=str(e)
                )
                await asyncio.sleep(2**retry_count)
                return await self._request(method, path, params, json, retry_count + 1)
            raise StoreError(f"Request failed: {e}") from e

    @staticmethod
    def _extract_items(result: Any) -> list[dict[str, Any]]:
        """Return list of items from a list or paged response."""
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            items = result.get("items")
            if isinstance(items, list):
                return items
        return []

    # === Transactions ===

    async def fetch_transactions(
        self, start: datetime, end: datetime, route_id: str | None = None
    ) -> list[Transaction]:
        params: dict[str, Any] = {"start": _iso(start), "end": _iso(end)}
        if route_id:
            params["route_id"] = route_id
        result = await self._request("GET", "/api/v1/transactions", params=params)
        return parse_transactions(self._extract_items(result))

    async def fetch_route_transactions(
        self, start: datetime, end: datetime, route_ids: Iterable[str]
    ) -> list[Transaction]:
        ids = sorted(set(route_ids))
        if not ids:
            return []
        params = {
            "start": _iso(start),
            "end": _iso(end),
            "live_route_ids": ",".join(ids),
        }
        result = await self._request("GET", "/api/v1/transactions", params=params)
        return parse_transactions(self._extract_items(result))

    # === Bulk lookups ===

    async def _lookup(self, path: str, ids: Iterable[str]) -> list[dict[str, Any]]:
        wanted = sorted(set(ids))
        if not wanted:
            return []
        result = await self._request("GET", path, params={"ids": ",".join(wanted)})
        return self._extract_items(result)

    async def get_routes(self, ids: Iterable[str]) -> dict[str, Route]:
        routes = [Route.from_dict(item) for item in await self._lookup("/api/v1/routes", ids)]
        return {route.id: route for route in routes}

    async def get_leads(self, ids: Iterable[str]) -> dict[str, Lead]:
        leads = [Lead.from_dict(item) for item in await self._lookup("/api/v1/leads", ids)]
        return {lead.id: lead for lead in leads}

    async def get_accounts(self, ids: Iterable[str]) -> dict[str, Account]:
        accounts = [
            Account.from_dict(item) for item in await self._lookup("/api/v1/accounts", ids)
        ]
        return {account.id: account for account in accounts}

    # === Discrepancies ===

    async def insert_discrepancy(self, discrepancy: Discrepancy) -> Discrepancy:
        result = await self._request(
            "POST", "/api/v1/discrepancies", json=discrepancy.to_record()
        )
        if not isinstance(result, dict) or not result:
            return discrepancy
        return Discrepancy.from_record(result)

    async def update_discrepancy(
        self, discrepancy_id: str, changes: dict[str, Any]
    ) -> Discrepancy | None:
        payload = {
            key: _iso(value) if isinstance(value, datetime) else getattr(value, "value", value)
            for key, value in changes.items()
        }
        try:
            result = await self._request(
                "PATCH", f"/api/v1/discrepancies/{discrepancy_id}", json=payload
            )
        except StoreError as e:
            if e.status_code == 404:
                return None
            raise
        return Discrepancy.from_record(result) if isinstance(result, dict) else None

    async def delete_discrepancy(self, discrepancy_id: str) -> bool:
        try:
            await self._request("DELETE", f"/api/v1/discrepancies/{discrepancy_id}")
        except StoreError as e:
            if e.status_code == 404:
                return False
            raise
        return True

    async def get_discrepancy(self, discrepancy_id: str) -> Discrepancy | None:
        try:
            result = await self._request("GET", f"/api/v1/discrepancies/{discrepancy_id}")
        except StoreError as e:
            if e.status_code == 404:
                return None
            raise
        return Discrepancy.from_record(result) if isinstance(result, dict) and result else None

    async def find_discrepancies(
        self,
        route_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        status: DiscrepancyStatus | None = None,
        discrepancy_type: DiscrepancyType | None = None,
    ) -> list[Discrepancy]:
        params: dict[str, Any] = {}
        if route_id:
            params["route_id"] = route_id
        if start:
            params["start"] = _iso(start)
        if end:
            params["end"] = _iso(end)
        if status:
            params["status"] = status.value
        if discrepancy_type:
            params["discrepancy_type"] = discrepancy_type.value
        result = await self._request("GET", "/api/v1/discrepancies", params=params)
        found = [Discrepancy.from_record(item) for item in self._extract_items(result)]
        return sorted(found, key=lambda d: d.date, reverse=True)
