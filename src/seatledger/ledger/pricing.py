"""
Demand-sensitive pricing.

All arithmetic is integer arithmetic with truncating division, so a
price computed twice from the same event is always identical.
"""

from seatledger.ledger.errors import LedgerCorruptionError
from seatledger.ledger.models import BatchQuote, Event

# Uplift reaches 50% of the base price when the event sells out
DEMAND_UPLIFT_DIVISOR = 200
PLATFORM_FEE_PERCENT = 5

MAX_BATCH_SIZE = 10

# (minimum quantity, discount percent), largest tier first
GROUP_DISCOUNT_TIERS: tuple[tuple[int, int], ...] = (
    (10, 15),
    (5, 10),
)


def demand_multiplier(event: Event) -> int:
    """
    Percentage of the event's supply already sold (0-100, truncated).

    Raises:
        LedgerCorruptionError: If the event has no supply at all.
    """
    if event.total_supply <= 0:
        raise LedgerCorruptionError(
            f"event {event.event_id} has total_supply={event.total_supply}"
        )
    return (event.sold * 100) // event.total_supply


def current_price(event: Event) -> int:
    """
    Price of the next ticket for an event.

    Starts at ``base_price`` and rises linearly with the sold share,
    up to ``base_price * 1.5`` (truncated) once everything is sold.
    """
    uplift = (event.base_price * demand_multiplier(event)) // DEMAND_UPLIFT_DIVISOR
    return event.base_price + uplift


def platform_fee(amount: int) -> int:
    """Platform surcharge on an amount, truncated toward zero."""
    return (amount * PLATFORM_FEE_PERCENT) // 100


def group_discount_rate(quantity: int) -> int:
    """Discount percent a group of ``quantity`` tickets qualifies for."""
    for minimum, rate in GROUP_DISCOUNT_TIERS:
        if quantity >= minimum:
            return rate
    return 0


def apply_discount(unit_price: int, rate: int) -> int:
    return unit_price - (unit_price * rate) // 100


def quote_batch(event: Event, quantity: int, apply_group_discount: bool) -> BatchQuote:
    """
    Price a batch of tickets against the event's current state.

    The unit price is frozen for the whole batch at the price implied by
    the state before the batch starts.
    """
    unit_price = current_price(event)
    rate = group_discount_rate(quantity) if apply_group_discount else 0
    discounted = apply_discount(unit_price, rate)
    subtotal = discounted * quantity
    return BatchQuote(
        unit_price=unit_price,
        discount_rate=rate,
        discounted_unit_price=discounted,
        quantity=quantity,
        subtotal=subtotal,
        fee=platform_fee(subtotal),
    )
