"""
Seatledger ledger - events, tickets, pricing and the mutation engine.

Usage:
    from seatledger.ledger import TicketLedger, InMemoryLedgerStore

Modules:
- models: Event, Ticket and ledger-wide value types
- errors: Error kinds and the LedgerResult returned by every operation
- pricing: Demand pricing, platform fee and group discounts
- validation: Eligibility predicates
- store: Storage backends and the staged transaction
- ports: Payment and clock interfaces with in-memory adapters
- events: Notifications published after each commit
- engine: TicketLedger, the single entry point for mutations
"""

from seatledger.ledger.engine import TicketLedger
from seatledger.ledger.errors import (
    ErrorKind,
    LedgerCorruptionError,
    LedgerError,
    LedgerResult,
)
from seatledger.ledger.events import LedgerEvent, LedgerEventBus, LedgerEventType
from seatledger.ledger.models import (
    BatchPurchaseReceipt,
    BatchQuote,
    Event,
    LedgerCounters,
    LedgerSnapshot,
    PriceQuote,
    Ticket,
)
from seatledger.ledger.ports import (
    ClockSource,
    InMemoryPaymentService,
    ManualClock,
    PaymentService,
    StaticClock,
)
from seatledger.ledger.store import (
    InMemoryLedgerStore,
    JSONLedgerStore,
    LedgerStore,
    LedgerTransaction,
    SQLiteLedgerStore,
    StorageError,
    StorageFactory,
    get_store,
)

__all__ = [
    # Engine
    "TicketLedger",
    # Errors
    "ErrorKind",
    "LedgerCorruptionError",
    "LedgerError",
    "LedgerResult",
    # Notifications
    "LedgerEvent",
    "LedgerEventBus",
    "LedgerEventType",
    # Models
    "BatchPurchaseReceipt",
    "BatchQuote",
    "Event",
    "LedgerCounters",
    "LedgerSnapshot",
    "PriceQuote",
    "Ticket",
    # Ports
    "ClockSource",
    "InMemoryPaymentService",
    "ManualClock",
    "PaymentService",
    "StaticClock",
    # Storage
    "InMemoryLedgerStore",
    "JSONLedgerStore",
    "LedgerStore",
    "LedgerTransaction",
    "SQLiteLedgerStore",
    "StorageError",
    "StorageFactory",
    "get_store",
]
