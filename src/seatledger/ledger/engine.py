"""
Ticket ledger engine.

TicketLedger is the single entry point for every change to the ledger:
creating events, selling tickets one at a time or in groups, and moving
tickets between accounts.

Each public operation:
1. reads the logical height once from the clock
2. opens a store transaction and checks every precondition
3. stages its writes, then collects payment as the last step
4. commits, or discards everything if any step failed

Expected failures come back as a failed LedgerResult; the ledger is left
exactly as it was.
"""

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any, TypeVar

from seatledger.core.config import LedgerConfig
from seatledger.ledger import pricing, validation
from seatledger.ledger.errors import ErrorKind, LedgerError, LedgerResult
from seatledger.ledger.events import (
    LedgerEvent,
    LedgerEventBus,
    LedgerEventHandler,
    LedgerEventType,
)
from seatledger.ledger.models import (
    BatchPurchaseReceipt,
    BatchQuote,
    Event,
    LedgerCounters,
    PriceQuote,
    Ticket,
)
from seatledger.ledger.ports import ClockSource, PaymentService
from seatledger.ledger.store import LedgerStore, LedgerTransaction

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _require(condition: bool, kind: ErrorKind, message: str) -> None:
    if not condition:
        raise LedgerError(kind, message)


class TicketLedger:
    """
    Pricing-and-mutation engine over a LedgerStore.

    Example:
        ledger = TicketLedger(
            store=InMemoryLedgerStore(),
            payments=InMemoryPaymentService({"alice": 10_000}),
            clock=ManualClock(height=100),
            treasury="treasury",
        )
        event_id = ledger.create_event(
            "organizer", name="Launch", description="", venue="Hall A",
            event_type="concert", event_height=500, total_tickets=100,
            base_price=1000,
        ).unwrap()
        ticket_id = ledger.purchase_ticket("alice", event_id, "A-12").unwrap()
    """

    def __init__(
        self,
        store: LedgerStore,
        payments: PaymentService,
        clock: ClockSource,
        treasury: str,
        config: LedgerConfig | None = None,
    ):
        if not treasury:
            raise ValueError("treasury account is required")

        self.store = store
        self.payments = payments
        self.clock = clock
        self.treasury = treasury
        self.config = config or LedgerConfig()
        self._limits = self.config.limits.as_dict()
        self._bus = LedgerEventBus()
        # Operations never interleave
        self._lock = threading.RLock()

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def subscribe(self, handler: LedgerEventHandler) -> str:
        """Receive a LedgerEvent after every committed mutation."""
        return self._bus.subscribe(handler)

    def unsubscribe(self, sub_id: str) -> bool:
        return self._bus.unsubscribe(sub_id)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _execute(
        self,
        operation: str,
        body: Callable[[int], tuple[T, LedgerEvent]],
    ) -> LedgerResult[T]:
        """Run a mutating operation as one indivisible unit."""
        with self._lock:
            height = self.clock.current_height()
            try:
                value, notification = body(height)
            except LedgerError as e:
                logger.info(f"{operation} rejected at height {height}: {e.kind.value} ({e.message})")
                return LedgerResult.from_error(e)

        logger.info(f"{operation} committed at height {height}: {notification.data}")
        self._bus.publish(notification)
        return LedgerResult.success(value)

    def _check_text(self, **fields: str) -> None:
        oversized = validation.oversized_fields(fields, self._limits)
        _require(
            not oversized,
            ErrorKind.INVALID_PARAMETERS,
            f"text too long: {', '.join(oversized)}",
        )

    def _load_event(self, txn: LedgerTransaction, event_id: int) -> Event:
        event = txn.get_event(event_id)
        _require(event is not None, ErrorKind.NOT_FOUND, f"event {event_id} not found")
        return event  # type: ignore[return-value]

    def _load_ticket(self, txn: LedgerTransaction, ticket_id: int) -> Ticket:
        ticket = txn.get_ticket(ticket_id)
        _require(ticket is not None, ErrorKind.NOT_FOUND, f"ticket {ticket_id} not found")
        return ticket  # type: ignore[return-value]

    def _check_funds(self, account: str, amount: int) -> None:
        balance = self.payments.get_balance(account)
        _require(
            balance >= amount,
            ErrorKind.INSUFFICIENT_PAYMENT,
            f"{account} has {balance}, needs {amount}",
        )

    def _collect(self, payer: str, amount: int) -> None:
        """Debit the payer and credit the treasury; a refusal aborts the operation."""
        _require(
            self.payments.transfer(amount, payer, self.treasury),
            ErrorKind.INSUFFICIENT_PAYMENT,
            f"payment of {amount} from {payer} was refused",
        )

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def create_event(
        self,
        caller: str,
        name: str,
        description: str,
        venue: str,
        event_type: str,
        event_height: int,
        total_tickets: int,
        base_price: int,
    ) -> LedgerResult[int]:
        """
        Register a new event.

        Args:
            caller: Account creating the event (recorded as creator)
            name: Event name
            description: Free-form description
            venue: Venue name
            event_type: Category label
            event_height: Height at which the event takes place
            total_tickets: Fixed ticket supply
            base_price: Price of the first ticket

        Returns:
            LedgerResult carrying the new event id
        """

        def body(height: int) -> tuple[int, LedgerEvent]:
            _require(
                validation.has_valid_supply_and_price(total_tickets, base_price),
                ErrorKind.INVALID_PARAMETERS,
                "total_tickets and base_price must be positive",
            )
            _require(
                validation.is_future_height(event_height, height),
                ErrorKind.EVENT_EXPIRED,
                f"event height {event_height} is not after current height {height}",
            )
            self._check_text(
                name=name, description=description, venue=venue, event_type=event_type
            )

            with self.store.transaction() as txn:
                event_id = txn.allocate_event_id()
                txn.put_event(
                    Event(
                        event_id=event_id,
                        name=name,
                        description=description,
                        venue=venue,
                        event_type=event_type,
                        event_height=event_height,
                        total_supply=total_tickets,
                        available_supply=total_tickets,
                        base_price=base_price,
                        creator=caller,
                        active=True,
                    )
                )

            return event_id, LedgerEvent(
                type=LedgerEventType.EVENT_CREATED,
                height=height,
                data={"event_id": event_id, "creator": caller, "total_supply": total_tickets},
            )

        return self._execute("create_event", body)

    def purchase_ticket(
        self,
        caller: str,
        event_id: int,
        seat_info: str = "",
    ) -> LedgerResult[int]:
        """
        Buy one ticket at the event's current price plus platform fee.

        Returns:
            LedgerResult carrying the minted ticket id
        """

        def body(height: int) -> tuple[int, LedgerEvent]:
            with self.store.transaction() as txn:
                event = self._load_event(txn, event_id)
                price = pricing.current_price(event)
                fee = pricing.platform_fee(price)
                total = price + fee

                _require(
                    validation.is_purchasable(event, height),
                    ErrorKind.EVENT_NOT_ACTIVE,
                    f"event {event_id} is not on sale",
                )
                self._check_text(seat_info=seat_info)
                self._check_funds(caller, total)

                ticket_id = txn.allocate_ticket_id()
                txn.put_ticket(
                    Ticket(
                        ticket_id=ticket_id,
                        event_id=event_id,
                        owner=caller,
                        price_paid=price,
                        purchase_height=height,
                        seat_info=seat_info,
                    )
                )
                txn.put_event(replace(event, available_supply=event.available_supply - 1))
                txn.accrue_platform_revenue(fee)
                self._collect(caller, total)

            return ticket_id, LedgerEvent(
                type=LedgerEventType.TICKET_PURCHASED,
                height=height,
                data={
                    "ticket_id": ticket_id,
                    "event_id": event_id,
                    "owner": caller,
                    "price": price,
                    "fee": fee,
                },
            )

        return self._execute("purchase_ticket", body)

    def purchase_batch(
        self,
        caller: str,
        event_id: int,
        quantity: int,
        seat_infos: Sequence[str],
        apply_group_discount: bool = False,
    ) -> LedgerResult[BatchPurchaseReceipt]:
        """
        Buy up to MAX_BATCH_SIZE tickets in one step.

        Every ticket in the batch is priced at the event's price before the
        batch, less the group discount when requested. Tickets get
        consecutive ids in the order of ``seat_infos``.

        Returns:
            LedgerResult carrying a BatchPurchaseReceipt
        """
        seats = list(seat_infos)

        def body(height: int) -> tuple[BatchPurchaseReceipt, LedgerEvent]:
            with self.store.transaction() as txn:
                event = self._load_event(txn, event_id)
                _require(
                    validation.is_purchasable(event, height),
                    ErrorKind.EVENT_NOT_ACTIVE,
                    f"event {event_id} is not on sale",
                )
                _require(
                    validation.is_valid_batch_size(quantity),
                    ErrorKind.INVALID_PARAMETERS,
                    f"batch size must be 1..{pricing.MAX_BATCH_SIZE}, got {quantity}",
                )
                _require(
                    validation.has_supply_for(event, quantity),
                    ErrorKind.SOLD_OUT,
                    f"only {event.available_supply} ticket(s) left for event {event_id}",
                )
                _require(
                    len(seats) == quantity,
                    ErrorKind.INVALID_PARAMETERS,
                    f"{len(seats)} seat(s) given for {quantity} ticket(s)",
                )
                for seat in seats:
                    self._check_text(seat_info=seat)

                quote = pricing.quote_batch(event, quantity, apply_group_discount)
                self._check_funds(caller, quote.total)

                first_ticket_id = txn.counters.next_ticket_id
                for seat in seats:
                    txn.put_ticket(
                        Ticket(
                            ticket_id=txn.allocate_ticket_id(),
                            event_id=event_id,
                            owner=caller,
                            price_paid=quote.discounted_unit_price,
                            purchase_height=height,
                            seat_info=seat,
                        )
                    )
                txn.put_event(
                    replace(event, available_supply=event.available_supply - quantity)
                )
                txn.accrue_platform_revenue(quote.fee)
                self._collect(caller, quote.total)

            receipt = BatchPurchaseReceipt(
                first_ticket_id=first_ticket_id,
                quantity=quantity,
                total_paid=quote.total,
                discount_rate=quote.discount_rate,
                unit_price=quote.discounted_unit_price,
                fee=quote.fee,
            )
            return receipt, LedgerEvent(
                type=LedgerEventType.TICKETS_BATCH_PURCHASED,
                height=height,
                data={"event_id": event_id, "owner": caller, **receipt.to_dict()},
            )

        return self._execute("purchase_batch", body)

    def transfer_ticket(
        self,
        caller: str,
        ticket_id: int,
        new_owner: str,
    ) -> LedgerResult[Ticket]:
        """
        Hand a ticket to another account. No payment or fee is involved.

        Returns:
            LedgerResult carrying the ticket with its new owner
        """

        def body(height: int) -> tuple[Ticket, LedgerEvent]:
            with self.store.transaction() as txn:
                ticket = self._load_ticket(txn, ticket_id)
                _require(
                    validation.is_owner(ticket, caller),
                    ErrorKind.NOT_TICKET_OWNER,
                    f"{caller} does not own ticket {ticket_id}",
                )
                _require(
                    validation.can_transfer(ticket),
                    ErrorKind.TRANSFER_NOT_ALLOWED,
                    f"ticket {ticket_id} is used or locked",
                )
                updated = replace(ticket, owner=new_owner)
                txn.put_ticket(updated)

            return updated, LedgerEvent(
                type=LedgerEventType.TICKET_TRANSFERRED,
                height=height,
                data={"ticket_id": ticket_id, "from": caller, "to": new_owner},
            )

        return self._execute("transfer_ticket", body)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_event(self, event_id: int) -> LedgerResult[Event]:
        event = self.store.get_event(event_id)
        if event is None:
            return LedgerResult.failure(ErrorKind.NOT_FOUND, f"event {event_id} not found")
        return LedgerResult.success(event)

    def get_ticket(self, ticket_id: int) -> LedgerResult[Ticket]:
        ticket = self.store.get_ticket(ticket_id)
        if ticket is None:
            return LedgerResult.failure(ErrorKind.NOT_FOUND, f"ticket {ticket_id} not found")
        return LedgerResult.success(ticket)

    def get_current_price(self, event_id: int) -> LedgerResult[PriceQuote]:
        """
        Price the next single ticket for an event.

        An unknown event is reported as NOT_FOUND rather than priced at zero.
        """
        event = self.store.get_event(event_id)
        if event is None:
            return LedgerResult.failure(ErrorKind.NOT_FOUND, f"event {event_id} not found")
        price = pricing.current_price(event)
        return LedgerResult.success(
            PriceQuote(event_id=event_id, price=price, fee=pricing.platform_fee(price))
        )

    def quote_batch(
        self,
        event_id: int,
        quantity: int,
        apply_group_discount: bool = False,
    ) -> LedgerResult[BatchQuote]:
        """
        Preview the cost of a batch purchase without buying anything.

        Rejects the same way purchase_batch would, short of the seat and
        funds checks, so a successful quote is a purchasable batch.
        """
        event = self.store.get_event(event_id)
        if event is None:
            return LedgerResult.failure(ErrorKind.NOT_FOUND, f"event {event_id} not found")
        if not validation.is_purchasable(event, self.clock.current_height()):
            return LedgerResult.failure(
                ErrorKind.EVENT_NOT_ACTIVE, f"event {event_id} is not on sale"
            )
        if not validation.is_valid_batch_size(quantity):
            return LedgerResult.failure(
                ErrorKind.INVALID_PARAMETERS,
                f"batch size must be 1..{pricing.MAX_BATCH_SIZE}, got {quantity}",
            )
        if not validation.has_supply_for(event, quantity):
            return LedgerResult.failure(
                ErrorKind.SOLD_OUT,
                f"only {event.available_supply} ticket(s) left for event {event_id}",
            )
        return LedgerResult.success(pricing.quote_batch(event, quantity, apply_group_discount))

    def is_event_active(self, event_id: int) -> bool:
        """Whether the event exists and is currently on sale."""
        event = self.store.get_event(event_id)
        return event is not None and validation.is_purchasable(event, self.clock.current_height())

    def list_events(self) -> list[Event]:
        return self.store.list_events()

    def tickets_owned_by(self, account: str) -> list[Ticket]:
        return self.store.list_tickets(owner=account)

    def get_platform_revenue(self) -> int:
        return self.store.get_counters().total_platform_revenue

    def get_counters(self) -> LedgerCounters:
        return self.store.get_counters()

    def stats(self) -> dict[str, Any]:
        """Summary numbers for status displays."""
        counters = self.store.get_counters()
        events = self.store.list_events()
        return {
            "events": len(events),
            "tickets_sold": sum(e.sold for e in events),
            "next_event_id": counters.next_event_id,
            "next_ticket_id": counters.next_ticket_id,
            "total_platform_revenue": counters.total_platform_revenue,
            "treasury": self.treasury,
            "height": self.clock.current_height(),
        }
