"""
External collaborator ports.

The ledger debits payers and reads the logical clock through these
interfaces. Adapters provide concrete implementations; the in-memory
ones below back tests and the CLI.

Architecture:
    - Ports are Protocols
    - The engine depends only on ports, never on a specific adapter
"""

import logging
import threading
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class PaymentService(Protocol):
    """
    Protocol for account balances and value transfer.

    Amounts are non-negative integers in the ledger's smallest unit.
    """

    def get_balance(self, account: str) -> int:
        """
        Get the spendable balance of an account.

        Args:
            account: Account identifier.

        Returns:
            Balance, 0 for unknown accounts.
        """
        ...

    def transfer(self, amount: int, sender: str, recipient: str) -> bool:
        """
        Move value between accounts.

        Args:
            amount: Amount to move.
            sender: Account debited.
            recipient: Account credited.

        Returns:
            True if the transfer happened, False if nothing moved.
        """
        ...


@runtime_checkable
class ClockSource(Protocol):
    """Protocol for the logical clock (block height)."""

    def current_height(self) -> int:
        """Return the current height; never decreases between calls."""
        ...


class InMemoryPaymentService:
    """
    Balance book kept in a dictionary.

    A transfer either moves the full amount or nothing.
    """

    def __init__(self, balances: dict[str, int] | None = None):
        self._balances: dict[str, int] = dict(balances or {})
        self._lock = threading.Lock()

    def get_balance(self, account: str) -> int:
        with self._lock:
            return self._balances.get(account, 0)

    def credit(self, account: str, amount: int) -> int:
        """Mint funds into an account and return the new balance."""
        if amount < 0:
            raise ValueError("credit amount must be non-negative")
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount
            return self._balances[account]

    def transfer(self, amount: int, sender: str, recipient: str) -> bool:
        if amount < 0:
            return False
        with self._lock:
            balance = self._balances.get(sender, 0)
            if balance < amount:
                logger.debug(f"Transfer of {amount} from {sender} refused: balance {balance}")
                return False
            self._balances[sender] = balance - amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
            return True

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {"balances": dict(self._balances)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InMemoryPaymentService":
        return cls({k: int(v) for k, v in data.get("balances", {}).items()})


class StaticClock:
    """Clock pinned to a single height."""

    def __init__(self, height: int = 0):
        self.height = height

    def current_height(self) -> int:
        return self.height


class ManualClock:
    """Clock advanced explicitly by the caller."""

    def __init__(self, height: int = 0):
        self._height = height

    def current_height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("clock cannot move backwards")
        self._height += blocks
        return self._height
