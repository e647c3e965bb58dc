"""
Ledger error taxonomy and operation results.

Business failures (unknown ids, sold out events, short balances) are
expected outcomes and travel back to callers as a failed LedgerResult.
Only data corruption escapes as an exception.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Reasons a ledger operation can be rejected."""

    NOT_FOUND = "not_found"
    INVALID_PARAMETERS = "invalid_parameters"
    EVENT_EXPIRED = "event_expired"
    EVENT_NOT_ACTIVE = "event_not_active"
    SOLD_OUT = "sold_out"
    INSUFFICIENT_PAYMENT = "insufficient_payment"
    NOT_TICKET_OWNER = "not_ticket_owner"
    TRANSFER_NOT_ALLOWED = "transfer_not_allowed"


class LedgerError(Exception):
    """Raised when a ledger precondition fails."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        self.kind = kind
        self.message = message or kind.value.replace("_", " ")
        super().__init__(f"{kind.value}: {self.message}")


class LedgerCorruptionError(Exception):
    """Raised when stored ledger data violates a creation invariant."""


@dataclass(frozen=True)
class LedgerResult(Generic[T]):
    """
    Discriminated result of a ledger operation.

    Exactly one of ``value`` or ``error`` is meaningful: ``ok`` tells
    which.

    Example:
        result = ledger.purchase_ticket("alice", event_id=1, seat_info="A1")
        if result.ok:
            print(f"minted ticket {result.value}")
        else:
            print(f"rejected: {result.error.value}")
    """

    value: T | None = None
    error: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "LedgerResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str = "") -> "LedgerResult[T]":
        return cls(error=kind, message=message or kind.value.replace("_", " "))

    @classmethod
    def from_error(cls, exc: LedgerError) -> "LedgerResult[T]":
        return cls(error=exc.kind, message=exc.message)

    def unwrap(self) -> T:
        """
        Return the success value.

        Raises:
            LedgerError: If the operation was rejected.
        """
        if self.error is not None:
            raise LedgerError(self.error, self.message)
        return self.value  # type: ignore[return-value]
