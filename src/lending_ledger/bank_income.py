"""Audit list of money that entered the bank for a set of routes."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog

from lending_ledger.models import (
    Account,
    AccountType,
    IncomeSource,
    Lead,
    Transaction,
    TransactionType,
)
from lending_ledger.money import ZERO, as_float
from lending_ledger.store.base import LedgerStore, skip_lookup

logger = structlog.get_logger(__name__)

UNNAMED = "Sin nombre"


@dataclass(frozen=True)
class BankIncomeEntry:
    """One bank-bound inflow, normalized for review."""

    id: str
    amount: Decimal
    type: TransactionType
    income_source: IncomeSource | None
    date: datetime
    description: str | None
    employee_name: str | None
    leader_locality: str | None
    is_client_payment: bool
    is_leader_payment: bool
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "amount": as_float(self.amount),
            "type": self.type.value,
            "incomeSource": self.income_source.value if self.income_source else None,
            "date": self.date.isoformat().replace("+00:00", "Z"),
            "description": self.description,
            "locality": self.leader_locality,
            "employeeName": self.employee_name,
            "leaderLocality": self.leader_locality,
            "isClientPayment": self.is_client_payment,
            "isLeaderPayment": self.is_leader_payment,
            "name": self.name,
        }


def _is_bank_inflow(
    tx: Transaction, destination: Account | None, only_abonos: bool
) -> bool:
    is_bank_abono = (
        tx.type == TransactionType.INCOME
        and tx.income_source == IncomeSource.BANK_LOAN_PAYMENT
    )
    if only_abonos:
        return is_bank_abono
    if tx.type == TransactionType.TRANSFER:
        return destination is not None and destination.type == AccountType.BANK
    return is_bank_abono or (
        tx.type == TransactionType.INCOME
        and tx.income_source == IncomeSource.MONEY_INVESMENT
    )


class BankIncomeExtractor:
    """Reads bank-bound inflows (client bank payments, leader deposits)."""

    def __init__(self, store: LedgerStore):
        self._store = store

    async def extract(
        self,
        start: datetime,
        end: datetime,
        route_ids: list[str],
        only_abonos: bool = False,
    ) -> list[BankIncomeEntry]:
        """List bank inflows dated in [start, end] on the given live routes.

        With ``only_abonos`` only client loan payments made to the bank are
        returned; otherwise transfers into a bank account and bank investment
        income are included as well. Newest first.
        """
        transactions = await self._store.fetch_route_transactions(start, end, route_ids)

        lead_ids = {tx.lead_id for tx in transactions if tx.lead_id}
        account_ids = {
            tx.destination_account_id for tx in transactions if tx.destination_account_id
        }
        leads, accounts = await asyncio.gather(
            self._store.get_leads(lead_ids) if lead_ids else skip_lookup(),
            self._store.get_accounts(account_ids) if account_ids else skip_lookup(),
        )

        entries: list[BankIncomeEntry] = []
        for tx in transactions:
            destination = (
                accounts.get(tx.destination_account_id) if tx.destination_account_id else None
            )
            if not _is_bank_inflow(tx, destination, only_abonos):
                continue
            lead: Lead | None = leads.get(tx.lead_id) if tx.lead_id else None
            entries.append(self._entry(tx, lead, destination))

        entries.sort(key=lambda entry: entry.date, reverse=True)
        logger.info(
            "bank_income_extracted",
            routes=len(route_ids),
            only_abonos=only_abonos,
            scanned=len(transactions),
            entries=len(entries),
        )
        return entries

    @staticmethod
    def _entry(
        tx: Transaction, lead: Lead | None, destination: Account | None
    ) -> BankIncomeEntry:
        is_client_payment = (
            tx.type == TransactionType.INCOME
            and tx.income_source == IncomeSource.BANK_LOAN_PAYMENT
        )
        is_leader_payment = (
            tx.type == TransactionType.TRANSFER
            and destination is not None
            and destination.type == AccountType.BANK
        )
        employee_name = lead.full_name if lead else None
        if is_client_payment:
            name = tx.borrower_name or UNNAMED
        else:
            name = employee_name or UNNAMED
        return BankIncomeEntry(
            id=tx.id,
            amount=tx.amount if tx.amount is not None else ZERO,
            type=tx.type,
            income_source=tx.income_source,
            date=tx.date,
            description=tx.description,
            employee_name=employee_name,
            leader_locality=lead.locality_name if lead else None,
            is_client_payment=is_client_payment,
            is_leader_payment=is_leader_payment,
            name=name,
        )
