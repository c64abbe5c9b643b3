"""Recording and tracking of expected-vs-actual discrepancies.

The expected amount comes from a source the system does not store (a paper
sheet, a PDF total). The workflow captures the mismatch, attaches evidence
and tracks review status; it never reconciles anything automatically.

Status moves PENDING -> COMPLETED or DISCARDED by operator action. Moving a
reviewed record back to PENDING is currently allowed and only logged.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import uuid4

import structlog

from lending_ledger.errors import NotFoundError, UpstreamError, ValidationError
from lending_ledger.evidence import DiscrepancyNotifier, EvidenceUploader, evidence_filename
from lending_ledger.models import (
    Discrepancy,
    DiscrepancyStatus,
    DiscrepancyType,
    parse_instant,
    week_start,
)
from lending_ledger.money import ZERO, as_float, to_decimal
from lending_ledger.store.base import LedgerStore, skip_lookup

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class WeeklyTotal:
    """Discrepancy count and summed difference for one ISO week."""

    week_start: datetime
    count: int
    total_difference: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "weekStart": self.week_start.isoformat().replace("+00:00", "Z"),
            "count": self.count,
            "totalDifference": as_float(self.total_difference),
        }


@dataclass
class _Group:
    count: int = 0
    total_difference: Decimal = ZERO

    def add(self, discrepancy: Discrepancy) -> None:
        self.count += 1
        self.total_difference += discrepancy.difference


@dataclass
class DiscrepancyStats:
    """Breakdown of a set of discrepancies."""

    total: int = 0
    pending: int = 0
    completed: int = 0
    discarded: int = 0
    total_difference: Decimal = ZERO
    by_type: dict[str, _Group] = field(default_factory=dict)
    by_route: dict[str, tuple[str | None, _Group]] = field(default_factory=dict)
    by_week: list[WeeklyTotal] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalDiscrepancies": self.total,
            "pendingCount": self.pending,
            "completedCount": self.completed,
            "discardedCount": self.discarded,
            "totalDifference": as_float(self.total_difference),
            "byType": [
                {
                    "type": key,
                    "count": group.count,
                    "totalDifference": as_float(group.total_difference),
                }
                for key, group in self.by_type.items()
            ],
            "byRoute": [
                {
                    "routeId": route_id,
                    "routeName": name,
                    "count": group.count,
                    "totalDifference": as_float(group.total_difference),
                }
                for route_id, (name, group) in self.by_route.items()
            ],
            "byWeek": [week.to_dict() for week in self.by_week],
        }


def weekly_totals(discrepancies: Iterable[Discrepancy]) -> list[WeeklyTotal]:
    """Group discrepancies by ISO week (Monday start), oldest week first."""
    groups: dict[datetime, _Group] = {}
    for discrepancy in discrepancies:
        key = week_start(discrepancy.date)
        groups.setdefault(key, _Group()).add(discrepancy)
    return [
        WeeklyTotal(week_start=key, count=group.count, total_difference=group.total_difference)
        for key, group in sorted(groups.items())
    ]


def summarize_discrepancies(discrepancies: list[Discrepancy]) -> DiscrepancyStats:
    stats = DiscrepancyStats(total=len(discrepancies))
    for d in discrepancies:
        if d.status == DiscrepancyStatus.PENDING:
            stats.pending += 1
        elif d.status == DiscrepancyStatus.COMPLETED:
            stats.completed += 1
        elif d.status == DiscrepancyStatus.DISCARDED:
            stats.discarded += 1
        stats.total_difference += d.difference
        stats.by_type.setdefault(d.discrepancy_type.value, _Group()).add(d)
        _, route_group = stats.by_route.setdefault(d.route_id, (d.route_name, _Group()))
        route_group.add(d)
    stats.by_week = weekly_totals(discrepancies)
    return stats


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DiscrepancyWorkflow:
    """Create, review and delete discrepancy records."""

    def __init__(
        self,
        store: LedgerStore,
        uploader: EvidenceUploader | None = None,
        notifier: DiscrepancyNotifier | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._uploader = uploader
        self._notifier = notifier
        self._clock = clock
        self._logger = logger.bind(component="discrepancy_workflow")

    async def create(
        self,
        discrepancy_type: str | DiscrepancyType,
        route_id: str,
        date: str | datetime,
        expected_amount: Any,
        actual_amount: Any,
        description: str,
        lead_id: str | None = None,
        category: str | None = None,
        evidence_image: str | None = None,
    ) -> Discrepancy:
        """Record a new PENDING discrepancy.

        Raises:
            ValidationError: Unknown type, empty description, non-numeric
                amounts or an unparseable date. ``details`` lists every
                problem found.
            NotFoundError: The route or the lead does not exist.
        """
        errors: list[str] = []

        parsed_type: DiscrepancyType | None = None
        try:
            parsed_type = DiscrepancyType(
                getattr(discrepancy_type, "value", discrepancy_type)
            )
        except ValueError:
            errors.append(f"Invalid discrepancy type: {discrepancy_type!r}")

        if not description or not description.strip():
            errors.append("Description is required")

        expected = to_decimal(expected_amount)
        if expected is None:
            errors.append(f"Expected amount must be numeric: {expected_amount!r}")
        actual = to_decimal(actual_amount)
        if actual is None:
            errors.append(f"Actual amount must be numeric: {actual_amount!r}")

        occurred: datetime | None = None
        try:
            occurred = parse_instant(date)
        except ValidationError as e:
            errors.append(e.message)

        if not route_id:
            errors.append("Route is required")

        if errors:
            raise ValidationError("Validation failed", details=errors)
        assert parsed_type is not None and expected is not None
        assert actual is not None and occurred is not None

        routes, leads = await asyncio.gather(
            self._store.get_routes([route_id]),
            self._store.get_leads([lead_id]) if lead_id else skip_lookup(),
        )
        route = routes.get(route_id)
        if route is None:
            raise NotFoundError("Route", route_id)
        lead = leads.get(lead_id) if lead_id else None
        if lead_id and lead is None:
            raise NotFoundError("Lead", lead_id)

        screenshot_urls = await self._upload_evidence(evidence_image)

        now = self._clock()
        discrepancy = Discrepancy(
            id=str(uuid4()),
            discrepancy_type=parsed_type,
            date=occurred,
            week_start_date=week_start(occurred),
            expected_amount=expected,
            actual_amount=actual,
            difference=actual - expected,
            description=description.strip(),
            route_id=route_id,
            route_name=route.name,
            lead_id=lead_id,
            lead_name=lead.full_name if lead else None,
            category=category,
            status=DiscrepancyStatus.PENDING,
            screenshot_urls=screenshot_urls,
            created_at=now,
            updated_at=now,
        )
        discrepancy = await self._store.insert_discrepancy(discrepancy)
        self._logger.info(
            "discrepancy_created",
            discrepancy_id=discrepancy.id,
            type=discrepancy.discrepancy_type.value,
            route_id=route_id,
            difference=str(discrepancy.difference),
            evidence=len(screenshot_urls),
        )

        return await self._notify(discrepancy)

    async def _upload_evidence(self, evidence_image: str | None) -> list[str]:
        if not evidence_image:
            return []
        if self._uploader is None:
            self._logger.warning("evidence_upload_disabled")
            return []
        try:
            url = await self._uploader.upload(evidence_image, evidence_filename(self._clock()))
        except UpstreamError as e:
            # The record is still created, just without evidence
            self._logger.warning(
                "evidence_upload_failed", error=e.message, status_code=e.status_code
            )
            return []
        return [url]

    async def _notify(self, discrepancy: Discrepancy) -> Discrepancy:
        if self._notifier is None:
            return discrepancy
        try:
            await self._notifier.report(discrepancy)
        except Exception as e:
            self._logger.warning(
                "discrepancy_notification_failed",
                discrepancy_id=discrepancy.id,
                error=str(e),
            )
            return discrepancy

        updated = await self._store.update_discrepancy(
            discrepancy.id,
            {"telegram_reported": True, "reported_at": self._clock()},
        )
        return updated or discrepancy

    async def update_status(
        self,
        discrepancy_id: str,
        status: str | DiscrepancyStatus,
        notes: str | None = None,
    ) -> Discrepancy:
        """Set the review status (and optionally notes) of one record.

        Concurrent updates are not coordinated: the last write wins.

        Raises:
            ValidationError: ``status`` is not PENDING, COMPLETED or DISCARDED.
            NotFoundError: No discrepancy has this id.
        """
        try:
            new_status = DiscrepancyStatus(getattr(status, "value", status))
        except ValueError as e:
            raise ValidationError(f"Invalid status: {status!r}") from e

        changes: dict[str, Any] = {"status": new_status, "updated_at": self._clock()}
        if notes is not None:
            changes["notes"] = notes

        updated = await self._store.update_discrepancy(discrepancy_id, changes)
        if updated is None:
            raise NotFoundError("Discrepancy", discrepancy_id)

        if new_status == DiscrepancyStatus.PENDING:
            self._logger.warning("discrepancy_reopened", discrepancy_id=discrepancy_id)
        self._logger.info(
            "discrepancy_status_updated",
            discrepancy_id=discrepancy_id,
            status=new_status.value,
        )
        return updated

    async def delete(self, discrepancy_id: str) -> None:
        """Permanently remove a discrepancy in any status.

        Raises:
            NotFoundError: No discrepancy has this id.
        """
        if not await self._store.delete_discrepancy(discrepancy_id):
            raise NotFoundError("Discrepancy", discrepancy_id)
        self._logger.info("discrepancy_deleted", discrepancy_id=discrepancy_id)

    async def get(self, discrepancy_id: str) -> Discrepancy | None:
        return await self._store.get_discrepancy(discrepancy_id)

    async def list(
        self,
        route_id: str | None = None,
        start_date: str | datetime | None = None,
        end_date: str | datetime | None = None,
        status: str | DiscrepancyStatus | None = None,
        discrepancy_type: str | DiscrepancyType | None = None,
    ) -> list[Discrepancy]:
        """List discrepancies, newest first.

        The date range only applies when both bounds are given.

        Raises:
            ValidationError: Unparseable dates or unknown status/type values.
        """
        start = end = None
        if start_date and end_date:
            start = parse_instant(start_date)
            end = parse_instant(end_date)

        try:
            parsed_status = (
                DiscrepancyStatus(getattr(status, "value", status)) if status else None
            )
            parsed_type = (
                DiscrepancyType(getattr(discrepancy_type, "value", discrepancy_type))
                if discrepancy_type
                else None
            )
        except ValueError as e:
            raise ValidationError(str(e)) from e

        return await self._store.find_discrepancies(
            route_id=route_id,
            start=start,
            end=end,
            status=parsed_status,
            discrepancy_type=parsed_type,
        )

    async def stats(
        self, route_id: str | None = None, week_start_date: str | datetime | None = None
    ) -> DiscrepancyStats:
        """Counts and totals, optionally for one route and/or one week."""
        start = end = None
        if week_start_date:
            start = parse_instant(week_start_date)
            # Week is [start, start + 7 days)
            end = start + timedelta(days=7) - timedelta(microseconds=1)
        discrepancies = await self._store.find_discrepancies(
            route_id=route_id, start=start, end=end
        )
        return summarize_discrepancies(discrepancies)
