"""
Eligibility predicates.

Every function here is pure: it reads records and returns a verdict.
Mapping a failed predicate to an error kind is the engine's job.
"""

from collections.abc import Mapping

from seatledger.ledger.models import Event, Ticket
from seatledger.ledger.pricing import MAX_BATCH_SIZE


def is_purchasable(event: Event, now_height: int) -> bool:
    """
    Check whether tickets can currently be bought for an event.

    Balance is not checked here; it lives with the payment service.
    """
    return event.active and event.event_height > now_height and event.available_supply > 0


def has_valid_supply_and_price(total_tickets: int, base_price: int) -> bool:
    return total_tickets > 0 and base_price > 0


def is_future_height(height: int, now_height: int) -> bool:
    return height > now_height


def is_valid_batch_size(quantity: int) -> bool:
    return 0 < quantity <= MAX_BATCH_SIZE


def has_supply_for(event: Event, quantity: int) -> bool:
    return event.available_supply >= quantity


def is_owner(ticket: Ticket, account: str) -> bool:
    return ticket.owner == account


def can_transfer(ticket: Ticket) -> bool:
    """Tickets move only while transferable and unused."""
    return ticket.transferable and not ticket.used


def oversized_fields(values: Mapping[str, str], limits: Mapping[str, int]) -> list[str]:
    """
    Names of text fields longer than their configured limit.

    Fields without a limit are not checked.
    """
    return [
        name
        for name, value in values.items()
        if name in limits and len(value) > limits[name]
    ]
