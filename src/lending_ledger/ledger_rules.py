"""Per-category rules folding a transaction into a locality bucket.

Two asymmetries hold:

- bank-sourced expenses raise their category counter but never lower
  ``bank_balance``; ``bank_balance`` only accumulates inbound bank movement.
- BANK -> cash transfers move the balances but do not touch the
  ``transfer_from_cash`` / ``transfer_to_bank`` trackers.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from typing import Any, assert_never

from lending_ledger.models import (
    Account,
    AccountType,
    ExpenseSource,
    IncomeSource,
    Transaction,
    TransactionType,
)
from lending_ledger.money import ZERO, as_float

# camelCase names used on the wire, keyed by counter attribute
_WIRE_NAMES = {
    "abono": "abono",
    "cash_abono": "cashAbono",
    "bank_abono": "bankAbono",
    "credito": "credito",
    "viatic": "viatic",
    "gasoline": "gasoline",
    "accommodation": "accommodation",
    "nomina_salary": "nominaSalary",
    "external_salary": "externalSalary",
    "vehicule_maintenance": "vehiculeMaintenance",
    "loan_granted": "loanGranted",
    "loan_payment_comission": "loanPaymentComission",
    "loan_granted_comission": "loanGrantedComission",
    "lead_comission": "leadComission",
    "lead_expense": "leadExpense",
    "money_investment": "moneyInvestment",
    "otro": "otro",
    "cash_balance": "cashBalance",
    "bank_balance": "bankBalance",
    "transfer_from_cash": "transferFromCash",
    "transfer_to_bank": "transferToBank",
}


@dataclass
class LocalitySummary:
    """Counters for one (date, locality) bucket.

    ``cash_balance`` and ``bank_balance`` are net movement inside the query
    window, not account balances, and may go negative.
    """

    date: date
    locality: str
    abono: Decimal = ZERO
    cash_abono: Decimal = ZERO
    bank_abono: Decimal = ZERO
    credito: Decimal = ZERO
    viatic: Decimal = ZERO
    gasoline: Decimal = ZERO
    accommodation: Decimal = ZERO
    nomina_salary: Decimal = ZERO
    external_salary: Decimal = ZERO
    vehicule_maintenance: Decimal = ZERO
    loan_granted: Decimal = ZERO
    loan_payment_comission: Decimal = ZERO
    loan_granted_comission: Decimal = ZERO
    lead_comission: Decimal = ZERO
    lead_expense: Decimal = ZERO
    money_investment: Decimal = ZERO
    otro: Decimal = ZERO
    cash_balance: Decimal = ZERO
    bank_balance: Decimal = ZERO
    transfer_from_cash: Decimal = ZERO
    transfer_to_bank: Decimal = ZERO

    @property
    def income(self) -> Decimal:
        return self.abono + self.money_investment

    @property
    def expenses(self) -> Decimal:
        # lead_expense is reported on its own and stays out of the totals
        return (
            self.credito
            + self.viatic
            + self.gasoline
            + self.accommodation
            + self.nomina_salary
            + self.external_salary
            + self.vehicule_maintenance
            + self.loan_granted
            + self.otro
        )

    @property
    def commissions(self) -> Decimal:
        return self.loan_payment_comission + self.loan_granted_comission + self.lead_comission

    @property
    def balance(self) -> Decimal:
        return self.income - self.expenses - self.commissions

    @property
    def profit(self) -> Decimal:
        # Commissions are excluded from profit
        return self.income - self.expenses

    def counters(self) -> dict[str, Decimal]:
        """Counter attributes and their values, in declaration order."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in ("date", "locality")
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON transmission."""
        result: dict[str, Any] = {
            "date": self.date.isoformat(),
            "locality": self.locality,
        }
        for name, value in self.counters().items():
            result[_WIRE_NAMES[name]] = as_float(value)
        result["balance"] = as_float(self.balance)
        result["profit"] = as_float(self.profit)
        return result


def _is_bank(account: Account | None) -> bool:
    # Unresolved accounts fall through to the cash path
    return account is not None and account.type == AccountType.BANK


def _apply_income(
    bucket: LocalitySummary,
    source: IncomeSource | None,
    amount: Decimal,
    destination: Account | None,
) -> None:
    to_bank = source == IncomeSource.BANK_LOAN_PAYMENT or _is_bank(destination)

    match source:
        case IncomeSource.MONEY_INVESMENT:
            bucket.money_investment += amount
            if to_bank:
                bucket.bank_balance += amount
            else:
                bucket.cash_balance += amount
            return
        case (
            IncomeSource.CASH_LOAN_PAYMENT
            | IncomeSource.BANK_LOAN_PAYMENT
            | IncomeSource.LOAN_PAYMENT
            | IncomeSource.OTHER
            | None
        ):
            pass
        case _ as unreachable:
            assert_never(unreachable)

    # Loan payments and any other income count as abono
    bucket.abono += amount
    if to_bank:
        bucket.bank_abono += amount
        bucket.bank_balance += amount
    else:
        bucket.cash_abono += amount
        bucket.cash_balance += amount


def _apply_expense(
    bucket: LocalitySummary,
    source: ExpenseSource | None,
    amount: Decimal,
    source_account: Account | None,
) -> None:
    match source:
        case ExpenseSource.VIATIC:
            bucket.viatic += amount
        case ExpenseSource.GASOLINE:
            bucket.gasoline += amount
        case ExpenseSource.ACCOMMODATION:
            bucket.accommodation += amount
        case ExpenseSource.NOMINA_SALARY:
            bucket.nomina_salary += amount
        case ExpenseSource.EXTERNAL_SALARY:
            bucket.external_salary += amount
        case ExpenseSource.VEHICULE_MAINTENANCE:
            bucket.vehicule_maintenance += amount
        case ExpenseSource.CREDITO:
            bucket.credito += amount
        case ExpenseSource.LOAN_GRANTED:
            bucket.loan_granted += amount
        case ExpenseSource.LOAN_PAYMENT_COMISSION:
            bucket.loan_payment_comission += amount
        case ExpenseSource.LOAN_GRANTED_COMISSION:
            bucket.loan_granted_comission += amount
        case ExpenseSource.LEAD_COMISSION:
            bucket.lead_comission += amount
        case ExpenseSource.LEAD_EXPENSE:
            bucket.lead_expense += amount
        case ExpenseSource.OTHER | None:
            bucket.otro += amount
        case _ as unreachable:
            assert_never(unreachable)

    # bank_balance never decreases on expenses
    if not _is_bank(source_account):
        bucket.cash_balance -= amount


def _apply_transfer(
    bucket: LocalitySummary,
    amount: Decimal,
    source_account: Account | None,
    destination: Account | None,
) -> None:
    source_type = source_account.type if source_account else None
    destination_type = destination.type if destination else None

    if source_type == AccountType.EMPLOYEE_CASH_FUND and destination_type == AccountType.BANK:
        bucket.cash_abono -= amount
        bucket.bank_abono += amount
        bucket.cash_balance -= amount
        bucket.bank_balance += amount
        bucket.transfer_from_cash += amount
        bucket.transfer_to_bank += amount
    elif source_type == AccountType.BANK and destination_type == AccountType.EMPLOYEE_CASH_FUND:
        bucket.bank_abono -= amount
        bucket.cash_abono += amount
        bucket.bank_balance -= amount
        bucket.cash_balance += amount


def apply_transaction(
    bucket: LocalitySummary,
    transaction: Transaction,
    source_account: Account | None = None,
    destination_account: Account | None = None,
) -> None:
    """Fold ``transaction`` into ``bucket`` in place.

    Args:
        bucket: Counters for the transaction's (date, locality).
        transaction: The movement to apply. A missing amount counts as zero.
        source_account: Resolved source account, or None if unknown.
        destination_account: Resolved destination account, or None if unknown.
    """
    amount = transaction.amount if transaction.amount is not None else ZERO

    match transaction.type:
        case TransactionType.INCOME:
            _apply_income(bucket, transaction.income_source, amount, destination_account)
        case TransactionType.EXPENSE:
            _apply_expense(bucket, transaction.expense_source, amount, source_account)
        case TransactionType.TRANSFER:
            _apply_transfer(bucket, amount, source_account, destination_account)
        case TransactionType.INVESTMENT:
            pass
        case _ as unreachable:
            assert_never(unreachable)
