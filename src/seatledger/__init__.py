"""
Seatledger - Ticket issuance ledger.

A registry of events and the tickets minted against them, with
demand-sensitive pricing, atomic single and batch purchases, ownership
transfer and platform fee accrual.
"""

__version__ = "0.3.0"
__version_tuple__ = (0, 3, 0)
__author__ = "Seatledger Team"

from seatledger.core.config import LedgerConfig, get_config
from seatledger.ledger import (
    ErrorKind,
    LedgerError,
    LedgerResult,
    TicketLedger,
)

__all__ = [
    "__version__",
    "__version_tuple__",
    "get_config",
    "LedgerConfig",
    "TicketLedger",
    "LedgerResult",
    "LedgerError",
    "ErrorKind",
]
