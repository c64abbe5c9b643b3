"""Load an offline store snapshot from YAML."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from lending_ledger.models import Account, Discrepancy, Lead, Route, parse_transactions
from lending_ledger.store.memory import InMemoryLedgerStore

_SECTIONS = ("accounts", "routes", "leads", "transactions", "discrepancies")


def _section(data: dict[str, Any], key: str, source: str) -> list[dict[str, Any]]:
    items = data.get(key) or []
    if not isinstance(items, list):
        raise ValueError(f"{source}: {key} must be a list")
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"{source}: {key}[{index}] must be a mapping")
    return items


def load_fixture(path: str | Path) -> InMemoryLedgerStore:
    """Build an ``InMemoryLedgerStore`` from a YAML snapshot.

    The file holds top-level lists named accounts, routes, leads,
    transactions and discrepancies, each item in the store's snake_case
    record shape. Missing sections are treated as empty.
    """
    path = Path(path)
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path.name}: top level must be a mapping")

    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"{path.name}: unknown sections {sorted(unknown)}")

    return InMemoryLedgerStore(
        transactions=parse_transactions(_section(data, "transactions", path.name)),
        accounts=[Account.from_dict(a) for a in _section(data, "accounts", path.name)],
        routes=[Route.from_dict(r) for r in _section(data, "routes", path.name)],
        leads=[Lead.from_dict(lead) for lead in _section(data, "leads", path.name)],
        discrepancies=[
            Discrepancy.from_record(d) for d in _section(data, "discrepancies", path.name)
        ],
    )
