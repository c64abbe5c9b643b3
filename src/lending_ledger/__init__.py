"""Lending ledger - transaction summaries and discrepancy reconciliation."""

__version__ = "0.1.0"

from lending_ledger.aggregation import SummaryEngine, SummarySource
from lending_ledger.api import LedgerService, business_day_bounds
from lending_ledger.bank_income import BankIncomeEntry, BankIncomeExtractor
from lending_ledger.config import configure_logging, get_settings
from lending_ledger.discrepancies import DiscrepancyWorkflow, weekly_totals
from lending_ledger.errors import (
    LedgerError,
    NotFoundError,
    StoreError,
    UpstreamError,
    ValidationError,
)
from lending_ledger.ledger_rules import LocalitySummary, apply_transaction
from lending_ledger.locality import LocalityResolver
from lending_ledger.store import HttpLedgerStore, InMemoryLedgerStore, LedgerStore, load_fixture

__all__ = [
    # Version
    "__version__",
    # Engine
    "SummaryEngine",
    "SummarySource",
    "LocalitySummary",
    "LocalityResolver",
    "apply_transaction",
    "BankIncomeExtractor",
    "BankIncomeEntry",
    # Discrepancies
    "DiscrepancyWorkflow",
    "weekly_totals",
    # Service
    "LedgerService",
    "business_day_bounds",
    # Stores
    "LedgerStore",
    "InMemoryLedgerStore",
    "HttpLedgerStore",
    "load_fixture",
    # Errors
    "LedgerError",
    "ValidationError",
    "NotFoundError",
    "StoreError",
    "UpstreamError",
    # Config
    "get_settings",
    "configure_logging",
]
