"""
Ledger notifications.

A LedgerEvent is published after a mutation has been committed. It is a
record of what happened, not part of the ledger state: handlers cannot
veto or undo the change they are told about.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable
from uuid import uuid4

logger = logging.getLogger(__name__)


class LedgerEventType(str, Enum):
    """Kinds of committed mutation."""

    EVENT_CREATED = "event.created"
    TICKET_PURCHASED = "ticket.purchased"
    TICKETS_BATCH_PURCHASED = "ticket.batch_purchased"
    TICKET_TRANSFERRED = "ticket.transferred"


@dataclass(frozen=True, slots=True)
class LedgerEvent:
    """
    Immutable notification of a committed mutation.

    Example:
        LedgerEvent(
            type=LedgerEventType.TICKET_PURCHASED,
            height=120,
            data={"ticket_id": 7, "event_id": 2, "owner": "alice"},
        )
    """

    type: LedgerEventType
    height: int
    data: dict[str, Any]
    notification_id: str = field(default_factory=lambda: str(uuid4()))

    @property
    def aggregate_type(self) -> str:
        """Extract aggregate type (e.g., 'ticket' from 'ticket.purchased')."""
        return self.type.value.split(".")[0]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "notification_id": self.notification_id,
            "type": self.type.value,
            "height": self.height,
            "data": self.data,
        }


LedgerEventHandler = Callable[[LedgerEvent], None]


class LedgerEventBus:
    """Synchronous fan-out of ledger notifications to subscribers."""

    def __init__(self) -> None:
        self._handlers: dict[str, LedgerEventHandler] = {}

    def subscribe(self, handler: LedgerEventHandler) -> str:
        """Register a handler and return its subscription id."""
        sub_id = str(uuid4())
        self._handlers[sub_id] = handler
        return sub_id

    def unsubscribe(self, sub_id: str) -> bool:
        return self._handlers.pop(sub_id, None) is not None

    def publish(self, event: LedgerEvent) -> None:
        for sub_id, handler in list(self._handlers.items()):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Ledger event handler {sub_id} failed on {event.type.value}")
