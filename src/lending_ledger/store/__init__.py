"""Transaction and discrepancy store backends."""

from lending_ledger.store.base import LedgerStore
from lending_ledger.store.fixtures import load_fixture
from lending_ledger.store.http import HttpLedgerStore
from lending_ledger.store.memory import InMemoryLedgerStore

__all__ = ["LedgerStore", "InMemoryLedgerStore", "HttpLedgerStore", "load_fixture"]
