# Overview: Domain error taxonomy for stock ledger operations.

"""
Errors raised inside the service layer.

Business-rule failures (InsufficientStock, InvalidTransition, NotFound,
ValidationFailed, Unauthenticated) are converted into failed OperationResults
at the service boundary. ConsistencyViolation signals a bug: the transaction
is aborted and callers only ever see the generic OPERATION_FAILED code.
"""
from __future__ import annotations


class InventoryError(Exception):
    """Base class for stock ledger domain errors."""

    code = "INVENTORY_ERROR"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class InsufficientStock(InventoryError):
    """Requested quantity exceeds live stock. Never clamped to zero."""

    code = "INSUFFICIENT_STOCK"


class InvalidTransition(InventoryError):
    """Disallowed state change (e.g. resolving a resolved audit)."""

    code = "INVALID_TRANSITION"


class NotFound(InventoryError):
    """Referenced variation/location/audit/transfer does not exist."""

    code = "NOT_FOUND"


class ValidationFailed(InventoryError):
    """400-level input problem."""

    code = "VALIDATION_FAILED"


class Unauthenticated(InventoryError):
    """No actor identity was supplied for a mutating call."""

    code = "UNAUTHENTICATED"


class ConsistencyViolation(InventoryError):
    """Internal invariant failed. Indicates a bug, not user error."""

    code = "CONSISTENCY_VIOLATION"


# Code reported to callers for consistency violations and unexpected errors
OPERATION_FAILED = "OPERATION_FAILED"
