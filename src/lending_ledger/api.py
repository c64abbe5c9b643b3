"""Operations exposed to the admin frontend, with uniform response envelopes.

Mutations answer ``{"success": ..., "message": ...}`` dictionaries instead of
raising. Only structurally invalid input (for example an unparseable date
on a summary request) raises ``ValidationError``.
"""

from datetime import UTC, date, datetime, time, timedelta
from typing import Any

import structlog

from lending_ledger.aggregation import SummaryEngine, SummarySource
from lending_ledger.bank_income import BankIncomeExtractor
from lending_ledger.config import get_settings
from lending_ledger.discrepancies import DiscrepancyWorkflow
from lending_ledger.errors import LedgerError, NotFoundError, StoreError, ValidationError
from lending_ledger.evidence import DiscrepancyNotifier, EvidenceUploader
from lending_ledger.models import parse_instant
from lending_ledger.store.base import LedgerStore

logger = structlog.get_logger(__name__)


def business_day_bounds(
    day: date, utc_offset_hours: int | None = None
) -> tuple[datetime, datetime]:
    """UTC instants bounding a business-local calendar day.

    Bank income and discrepancy lists take these bounds as they are.
    Summaries need ``whole_days=False``, otherwise the window is widened
    to whole UTC days.
    """
    if utc_offset_hours is None:
        utc_offset_hours = get_settings().business_utc_offset_hours
    offset = timedelta(hours=utc_offset_hours)
    local_start = datetime.combine(day, time.min, tzinfo=UTC)
    start = local_start - offset
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return start, end


def _error_list(error: LedgerError) -> list[str]:
    if isinstance(error.details, list):
        return [str(item) for item in error.details]
    return [error.message]


class LedgerService:
    """Facade over the summary engine, bank income and discrepancy workflow."""

    def __init__(
        self,
        store: LedgerStore,
        uploader: EvidenceUploader | None = None,
        notifier: DiscrepancyNotifier | None = None,
        summaries: SummarySource | None = None,
    ):
        self.store = store
        self.summaries = summaries or SummaryEngine(store)
        self.bank_income = BankIncomeExtractor(store)
        self.discrepancies = DiscrepancyWorkflow(store, uploader=uploader, notifier=notifier)

    # === Summaries ===

    async def get_transactions_summary(
        self,
        start_date: str | datetime,
        end_date: str | datetime,
        route_id: str | None = None,
        whole_days: bool = True,
    ) -> list[dict[str, Any]]:
        """Summary rows for a date range.

        With ``whole_days=False`` the bounds are used as given, which is how
        a ``business_day_bounds`` window must be passed.
        """
        start = parse_instant(start_date)
        end = parse_instant(end_date)
        rows = await self.summaries.summarize(
            start, end, route_id=route_id, whole_days=whole_days
        )
        return [row.to_dict() for row in rows]

    async def get_bank_income_transactions(
        self,
        start_date: str,
        end_date: str,
        route_ids: list[str],
        only_abonos: bool = False,
    ) -> dict[str, Any]:
        start = parse_instant(start_date)
        end = parse_instant(end_date)
        try:
            entries = await self.bank_income.extract(
                start, end, route_ids, only_abonos=only_abonos
            )
        except StoreError as e:
            logger.warning("bank_income_failed", error=e.message, status_code=e.status_code)
            return {
                "success": False,
                "message": "Failed to load bank income",
                "transactions": [],
            }
        return {"success": True, "transactions": [entry.to_dict() for entry in entries]}

    # === Discrepancies ===

    async def create_discrepancy(
        self,
        discrepancy_type: str,
        route_id: str,
        date: str,
        expected_amount: Any,
        actual_amount: Any,
        description: str,
        lead_id: str | None = None,
        category: str | None = None,
        screenshot_base64: str | None = None,
    ) -> dict[str, Any]:
        try:
            discrepancy = await self.discrepancies.create(
                discrepancy_type=discrepancy_type,
                route_id=route_id,
                date=date,
                expected_amount=expected_amount,
                actual_amount=actual_amount,
                description=description,
                lead_id=lead_id,
                category=category,
                evidence_image=screenshot_base64,
            )
        except (ValidationError, NotFoundError, StoreError) as e:
            return {
                "success": False,
                "discrepancy": None,
                "message": e.message,
                "errors": _error_list(e),
            }
        except Exception as e:
            logger.exception("create_discrepancy_error")
            return {
                "success": False,
                "discrepancy": None,
                "message": "Failed to create discrepancy",
                "errors": [str(e)],
            }
        return {
            "success": True,
            "discrepancy": discrepancy.to_dict(),
            "message": "Discrepancy created",
            "errors": [],
        }

    async def update_discrepancy_status(
        self, discrepancy_id: str, status: str, notes: str | None = None
    ) -> dict[str, Any]:
        try:
            discrepancy = await self.discrepancies.update_status(
                discrepancy_id, status, notes=notes
            )
        except (ValidationError, NotFoundError, StoreError) as e:
            return {"success": False, "discrepancy": None, "message": e.message}
        except Exception:
            logger.exception("update_discrepancy_status_error", discrepancy_id=discrepancy_id)
            return {"success": False, "discrepancy": None, "message": "Failed to update status"}
        return {
            "success": True,
            "discrepancy": discrepancy.to_dict(),
            "message": "Status updated",
        }

    async def delete_discrepancy(self, discrepancy_id: str) -> dict[str, Any]:
        try:
            await self.discrepancies.delete(discrepancy_id)
        except (NotFoundError, StoreError) as e:
            return {"success": False, "message": e.message}
        except Exception:
            logger.exception("delete_discrepancy_error", discrepancy_id=discrepancy_id)
            return {"success": False, "message": "Failed to delete discrepancy"}
        return {"success": True, "message": "Discrepancy deleted"}

    async def get_discrepancies(
        self,
        route_id: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        status: str | None = None,
        discrepancy_type: str | None = None,
    ) -> list[dict[str, Any]]:
        found = await self.discrepancies.list(
            route_id=route_id,
            start_date=start_date,
            end_date=end_date,
            status=status,
            discrepancy_type=discrepancy_type,
        )
        return [d.to_dict() for d in found]

    async def get_discrepancy(self, discrepancy_id: str) -> dict[str, Any] | None:
        discrepancy = await self.discrepancies.get(discrepancy_id)
        return discrepancy.to_dict() if discrepancy else None

    async def get_discrepancy_stats(
        self, route_id: str | None = None, week_start_date: str | None = None
    ) -> dict[str, Any]:
        stats = await self.discrepancies.stats(
            route_id=route_id, week_start_date=week_start_date
        )
        return stats.to_dict()
