"""Domain types shared by the ledger engine and the discrepancy workflow.

Store payloads are plain dictionaries with snake_case keys. Each type knows
how to build itself from such a payload (``from_dict``) and how to render the
camelCase shape consumed by the admin frontend (``to_dict``).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any

import structlog

from lending_ledger.errors import ValidationError
from lending_ledger.money import as_float, to_decimal

logger = structlog.get_logger(__name__)


class TransactionType(str, Enum):
    """Kinds of ledger movement recorded by upstream entry flows."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"
    INVESTMENT = "INVESTMENT"


class IncomeSource(str, Enum):
    """Category tag carried by INCOME transactions."""

    CASH_LOAN_PAYMENT = "CASH_LOAN_PAYMENT"
    BANK_LOAN_PAYMENT = "BANK_LOAN_PAYMENT"
    LOAN_PAYMENT = "LOAN_PAYMENT"
    MONEY_INVESMENT = "MONEY_INVESMENT"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Any) -> IncomeSource | None:
        if value is None or value == "":
            return None
        try:
            return cls(str(value))
        except ValueError:
            logger.warning("unknown_income_source", income_source=value)
            return cls.OTHER


class ExpenseSource(str, Enum):
    """Category tag carried by EXPENSE transactions."""

    VIATIC = "VIATIC"
    GASOLINE = "GASOLINE"
    ACCOMMODATION = "ACCOMMODATION"
    NOMINA_SALARY = "NOMINA_SALARY"
    EXTERNAL_SALARY = "EXTERNAL_SALARY"
    VEHICULE_MAINTENANCE = "VEHICULE_MAINTENANCE"
    CREDITO = "CREDITO"
    LOAN_GRANTED = "LOAN_GRANTED"
    LOAN_PAYMENT_COMISSION = "LOAN_PAYMENT_COMISSION"
    LOAN_GRANTED_COMISSION = "LOAN_GRANTED_COMISSION"
    LEAD_COMISSION = "LEAD_COMISSION"
    LEAD_EXPENSE = "LEAD_EXPENSE"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Any) -> ExpenseSource | None:
        if value is None or value == "":
            return None
        try:
            return cls(str(value))
        except ValueError:
            logger.warning("unknown_expense_source", expense_source=value)
            return cls.OTHER


class AccountType(str, Enum):
    """Account kinds; only BANK and EMPLOYEE_CASH_FUND matter to the rules."""

    EMPLOYEE_CASH_FUND = "EMPLOYEE_CASH_FUND"
    OFFICE_CASH_FUND = "OFFICE_CASH_FUND"
    BANK = "BANK"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Any) -> AccountType:
        try:
            return cls(str(value))
        except ValueError:
            return cls.OTHER


class DiscrepancyType(str, Enum):
    """What kind of movement an operator found a mismatch in."""

    PAYMENT = "PAYMENT"
    CREDIT = "CREDIT"
    EXPENSE = "EXPENSE"


class DiscrepancyStatus(str, Enum):
    """Review state of a discrepancy."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    DISCARDED = "DISCARDED"


def parse_instant(value: Any) -> datetime:
    """Parse an ISO-8601 instant into an aware UTC datetime.

    Naive values are taken to be UTC already.

    Raises:
        ValidationError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as e:
            raise ValidationError(f"Invalid date: {value!r}") from e
    else:
        raise ValidationError(f"Invalid date: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def week_start(instant: datetime) -> datetime:
    """Return Monday 00:00 of the ISO week containing ``instant``."""
    monday = instant - timedelta(days=instant.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Transaction:
    """An immutable ledger movement.

    ``amount`` is None when the stored value was missing or not a finite
    number; the aggregation engine coerces it to zero and logs it.
    """

    id: str
    amount: Decimal | None
    type: TransactionType
    date: datetime
    income_source: IncomeSource | None = None
    expense_source: ExpenseSource | None = None
    description: str | None = None
    source_account_id: str | None = None
    destination_account_id: str | None = None
    lead_id: str | None = None
    route_id: str | None = None
    snapshot_route_id: str | None = None
    loan_id: str | None = None
    borrower_name: str | None = None

    @property
    def effective_route_id(self) -> str | None:
        """Historical route when recorded, otherwise the live route."""
        return self.snapshot_route_id or self.route_id

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        return cls(
            id=str(data["id"]),
            amount=to_decimal(data.get("amount")),
            type=TransactionType(str(data["type"])),
            date=parse_instant(data["date"]),
            income_source=IncomeSource.parse(data.get("income_source")),
            expense_source=ExpenseSource.parse(data.get("expense_source")),
            description=_optional_str(data.get("description")),
            source_account_id=_optional_str(data.get("source_account_id")),
            destination_account_id=_optional_str(data.get("destination_account_id")),
            lead_id=_optional_str(data.get("lead_id")),
            route_id=_optional_str(data.get("route_id")),
            snapshot_route_id=_optional_str(data.get("snapshot_route_id")),
            loan_id=_optional_str(data.get("loan_id")),
            borrower_name=_optional_str(data.get("borrower_name")),
        )


def parse_transactions(items: Iterable[Any]) -> list[Transaction]:
    """Parse store rows one at a time.

    Rows without a usable id, type or date are dropped and reported in a
    single ``malformed_transactions_skipped`` warning.
    """
    transactions: list[Transaction] = []
    skipped: list[Any] = []
    for item in items:
        try:
            transactions.append(Transaction.from_dict(item))
        except (KeyError, TypeError, AttributeError, ValueError, ValidationError):
            skipped.append(item.get("id") if isinstance(item, dict) else None)
    if skipped:
        logger.warning(
            "malformed_transactions_skipped",
            count=len(skipped),
            transaction_ids=skipped[:20],
        )
    return transactions


@dataclass(frozen=True)
class Account:
    """A cash fund or bank account. Balances are maintained upstream."""

    id: str
    name: str
    type: AccountType
    amount: Decimal = Decimal("0")

    @property
    def is_bank(self) -> bool:
        return self.type == AccountType.BANK

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Account:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            type=AccountType.parse(data.get("type")),
            amount=to_decimal(data.get("amount")) or Decimal("0"),
        )


@dataclass(frozen=True)
class Route:
    id: str
    name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Route:
        return cls(id=str(data["id"]), name=_optional_str(data.get("name")))


@dataclass(frozen=True)
class Location:
    name: str | None
    municipality: str | None = None
    state: str | None = None


@dataclass(frozen=True)
class Address:
    location: Location | None = None


@dataclass(frozen=True)
class Lead:
    """A field employee in charge of a locality."""

    id: str
    full_name: str | None
    addresses: tuple[Address, ...] = ()

    @property
    def locality_name(self) -> str | None:
        """Name of the location on the lead's first address, if any."""
        if not self.addresses:
            return None
        location = self.addresses[0].location
        return location.name if location else None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Lead:
        addresses = []
        for raw in data.get("addresses") or []:
            location = raw.get("location")
            addresses.append(
                Address(
                    location=Location(
                        name=_optional_str(location.get("name")),
                        municipality=_optional_str(location.get("municipality")),
                        state=_optional_str(location.get("state")),
                    )
                    if location
                    else None
                )
            )
        return cls(
            id=str(data["id"]),
            full_name=_optional_str(data.get("full_name")),
            addresses=tuple(addresses),
        )


@dataclass
class Discrepancy:
    """An operator-recorded mismatch between expected and actual totals."""

    id: str
    discrepancy_type: DiscrepancyType
    date: datetime
    week_start_date: datetime
    expected_amount: Decimal
    actual_amount: Decimal
    difference: Decimal
    description: str
    route_id: str
    status: DiscrepancyStatus = DiscrepancyStatus.PENDING
    category: str | None = None
    notes: str | None = None
    screenshot_urls: list[str] = field(default_factory=list)
    route_name: str | None = None
    lead_id: str | None = None
    lead_name: str | None = None
    telegram_reported: bool = False
    reported_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON transmission."""
        return {
            "id": self.id,
            "discrepancyType": self.discrepancy_type.value,
            "date": _isoformat(self.date),
            "weekStartDate": _isoformat(self.week_start_date),
            "expectedAmount": as_float(self.expected_amount),
            "actualAmount": as_float(self.actual_amount),
            "difference": as_float(self.difference),
            "description": self.description,
            "category": self.category,
            "status": self.status.value,
            "notes": self.notes,
            "screenshotUrls": list(self.screenshot_urls),
            "telegramReported": self.telegram_reported,
            "reportedAt": _isoformat(self.reported_at),
            "route": {"id": self.route_id, "name": self.route_name},
            "lead": (
                {"id": self.lead_id, "personalData": {"fullName": self.lead_name}}
                if self.lead_id
                else None
            ),
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }

    def to_record(self) -> dict[str, Any]:
        """Serialize for the store (snake_case, string decimals)."""
        return {
            "id": self.id,
            "discrepancy_type": self.discrepancy_type.value,
            "date": _isoformat(self.date),
            "week_start_date": _isoformat(self.week_start_date),
            "expected_amount": str(self.expected_amount),
            "actual_amount": str(self.actual_amount),
            "difference": str(self.difference),
            "description": self.description,
            "category": self.category,
            "status": self.status.value,
            "notes": self.notes,
            "screenshot_urls": list(self.screenshot_urls),
            "route_id": self.route_id,
            "route_name": self.route_name,
            "lead_id": self.lead_id,
            "lead_name": self.lead_name,
            "telegram_reported": self.telegram_reported,
            "reported_at": _isoformat(self.reported_at),
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> Discrepancy:
        return cls(
            id=str(data["id"]),
            discrepancy_type=DiscrepancyType(data["discrepancy_type"]),
            date=parse_instant(data["date"]),
            week_start_date=parse_instant(data["week_start_date"]),
            expected_amount=to_decimal(data.get("expected_amount")) or Decimal("0"),
            actual_amount=to_decimal(data.get("actual_amount")) or Decimal("0"),
            difference=to_decimal(data.get("difference")) or Decimal("0"),
            description=str(data.get("description") or ""),
            route_id=str(data["route_id"]),
            status=DiscrepancyStatus(data.get("status") or "PENDING"),
            category=_optional_str(data.get("category")),
            notes=_optional_str(data.get("notes")),
            screenshot_urls=list(data.get("screenshot_urls") or []),
            route_name=_optional_str(data.get("route_name")),
            lead_id=_optional_str(data.get("lead_id")),
            lead_name=_optional_str(data.get("lead_name")),
            telegram_reported=bool(data.get("telegram_reported", False)),
            reported_at=parse_instant(data["reported_at"]) if data.get("reported_at") else None,
            created_at=parse_instant(data["created_at"]) if data.get("created_at") else datetime.now(UTC),
            updated_at=parse_instant(data["updated_at"]) if data.get("updated_at") else None,
        )
