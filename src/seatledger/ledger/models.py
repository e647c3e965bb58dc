"""
Ledger data models.

Pure value types for the ticket ledger. Records are frozen: the engine
never edits a record in place, it stages a replacement inside a
transaction and the store swaps it in on commit.

Architecture Rules:
- No side effects on import
- No storage or framework imports
- Only stdlib + typing allowed
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Event:
    """
    A sellable occasion with a fixed ticket supply and base price.

    ``event_height`` is the logical clock height at which the event takes
    place. ``available_supply`` is the only field that changes after
    creation.
    """

    event_id: int
    name: str
    description: str
    venue: str
    event_type: str
    event_height: int
    total_supply: int
    available_supply: int
    base_price: int
    creator: str
    active: bool = True

    @property
    def sold(self) -> int:
        """Number of tickets minted against this event."""
        return self.total_supply - self.available_supply

    @property
    def sold_out(self) -> bool:
        return self.available_supply == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_id": self.event_id,
            "name": self.name,
            "description": self.description,
            "venue": self.venue,
            "event_type": self.event_type,
            "event_height": self.event_height,
            "total_supply": self.total_supply,
            "available_supply": self.available_supply,
            "base_price": self.base_price,
            "creator": self.creator,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Event":
        """Create from dictionary."""
        return cls(
            event_id=int(data["event_id"]),
            name=data.get("name", ""),
            description=data.get("description", ""),
            venue=data.get("venue", ""),
            event_type=data.get("event_type", ""),
            event_height=int(data["event_height"]),
            total_supply=int(data["total_supply"]),
            available_supply=int(data["available_supply"]),
            base_price=int(data["base_price"]),
            creator=data.get("creator", ""),
            active=bool(data.get("active", True)),
        )


@dataclass(frozen=True, slots=True)
class Ticket:
    """
    A minted ticket owned by a single account.

    ``price_paid`` and ``purchase_height`` never change after minting.
    ``used`` and ``transferable`` are reserved for redemption and lock
    collaborators outside the ledger; the ledger only reads them.
    """

    ticket_id: int
    event_id: int
    owner: str
    price_paid: int
    purchase_height: int
    seat_info: str = ""
    used: bool = False
    transferable: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "ticket_id": self.ticket_id,
            "event_id": self.event_id,
            "owner": self.owner,
            "price_paid": self.price_paid,
            "purchase_height": self.purchase_height,
            "seat_info": self.seat_info,
            "used": self.used,
            "transferable": self.transferable,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Ticket":
        """Create from dictionary."""
        return cls(
            ticket_id=int(data["ticket_id"]),
            event_id=int(data["event_id"]),
            owner=data["owner"],
            price_paid=int(data["price_paid"]),
            purchase_height=int(data["purchase_height"]),
            seat_info=data.get("seat_info", ""),
            used=bool(data.get("used", False)),
            transferable=bool(data.get("transferable", True)),
        )


@dataclass(frozen=True, slots=True)
class LedgerCounters:
    """Ledger-wide id generators and the platform revenue accumulator."""

    next_event_id: int = 1
    next_ticket_id: int = 1
    total_platform_revenue: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "next_event_id": self.next_event_id,
            "next_ticket_id": self.next_ticket_id,
            "total_platform_revenue": self.total_platform_revenue,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LedgerCounters":
        return cls(
            next_event_id=int(data.get("next_event_id", 1)),
            next_ticket_id=int(data.get("next_ticket_id", 1)),
            total_platform_revenue=int(data.get("total_platform_revenue", 0)),
        )


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """Current single-ticket price for an event, fee included."""

    event_id: int
    price: int
    fee: int

    @property
    def total(self) -> int:
        return self.price + self.fee


@dataclass(frozen=True, slots=True)
class BatchQuote:
    """Pricing breakdown of a batch purchase."""

    unit_price: int
    discount_rate: int  # percent
    discounted_unit_price: int
    quantity: int
    subtotal: int
    fee: int

    @property
    def total(self) -> int:
        return self.subtotal + self.fee


@dataclass(frozen=True, slots=True)
class BatchPurchaseReceipt:
    """
    Outcome of a committed batch purchase.

    ``first_ticket_id`` is the id of the first ticket minted by the batch;
    the batch occupies ``quantity`` consecutive ids from there.
    """

    first_ticket_id: int
    quantity: int
    total_paid: int
    discount_rate: int
    unit_price: int = 0
    fee: int = 0

    @property
    def ticket_ids(self) -> range:
        return range(self.first_ticket_id, self.first_ticket_id + self.quantity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "first_ticket_id": self.first_ticket_id,
            "quantity": self.quantity,
            "total_paid": self.total_paid,
            "discount_rate": self.discount_rate,
            "unit_price": self.unit_price,
            "fee": self.fee,
            "ticket_ids": list(self.ticket_ids),
        }


@dataclass
class LedgerSnapshot:
    """Point-in-time copy of the whole ledger, used for comparisons and backups."""

    events: dict[int, Event] = field(default_factory=dict)
    tickets: dict[int, Ticket] = field(default_factory=dict)
    counters: LedgerCounters = field(default_factory=LedgerCounters)
