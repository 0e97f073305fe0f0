# Overview: Discriminated success/failure results returned across the service boundary.

from __future__ import annotations

from dataclasses import dataclass, field
from functools import wraps
from typing import Any

from flask import current_app

from ..errors import ConsistencyViolation, InventoryError, OPERATION_FAILED
from .concurrency import run_in_transaction


@dataclass(frozen=True)
class OperationResult:
    """
    Outcome of a ledger operation.

    ok=True carries `value`; ok=False carries an error `code` from the
    taxonomy in stockledger.errors (or OPERATION_FAILED) and a message.
    """
    ok: bool
    value: Any = None
    code: str | None = None
    message: str | None = None
    details: dict = field(default_factory=dict)

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, code: str, message: str, **details) -> "OperationResult":
        return cls(ok=False, code=code, message=message, details=details)

    @classmethod
    def from_error(cls, error: InventoryError) -> "OperationResult":
        return cls.failure(error.code, error.message, **error.details)

    def unwrap(self):
        """Return value, or raise RuntimeError for a failed result (tests, CLI)."""
        if not self.ok:
            raise RuntimeError(f"{self.code}: {self.message}")
        return self.value


def ledger_operation(name: str, *, mutating: bool = True):
    """
    Wrap a service function so it never raises across the boundary.

    Mutating operations run inside run_in_transaction (single commit, retry on
    lock conflicts). Business errors become typed failures; consistency
    violations and unexpected errors are logged and reported as
    OPERATION_FAILED with nothing committed.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = current_app.logger
            try:
                if mutating:
                    value = run_in_transaction(lambda: func(*args, **kwargs))
                else:
                    value = func(*args, **kwargs)
            except ConsistencyViolation as exc:
                logger.critical("%s aborted, ledger invariant violated: %s %s", name, exc.message, exc.details)
                return OperationResult.failure(OPERATION_FAILED, "Operation failed")
            except InventoryError as exc:
                logger.warning("%s rejected (%s): %s", name, exc.code, exc.message)
                return OperationResult.from_error(exc)
            except Exception:
                logger.exception("%s failed", name)
                return OperationResult.failure(OPERATION_FAILED, "Operation failed")
            return OperationResult.success(value)

        wrapper.raw = func
        return wrapper

    return decorator
