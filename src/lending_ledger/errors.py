"""Exception hierarchy for the lending ledger."""

from typing import Any


class LedgerError(Exception):
    """Base exception for ledger errors."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(LedgerError):
    """Input failed validation before anything was persisted."""

    pass


class NotFoundError(LedgerError):
    """A referenced route, lead or discrepancy does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}", details={"id": entity_id})
        self.entity = entity
        self.entity_id = entity_id


class StoreError(LedgerError):
    """The transaction store failed to answer a request."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message, details=details)
        self.status_code = status_code


class UpstreamError(LedgerError):
    """An external collaborator (object storage, notifier) failed."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message, details=details)
        self.status_code = status_code
