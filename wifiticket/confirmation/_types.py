"""
Confirmation types — what handling a completion signal can end in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from wifiticket.catalog import Zone, Pricing
from wifiticket.ledger import Ledger
from wifiticket.payments import Payment, PaymentRepository, PaymentStatus
from wifiticket.tickets import Ticket, TicketAssigner, TicketPool


# ═══════════════════════════════════════════════════════════════════════════════
# Outcomes: every one of them is an HTTP 200 for the webhook sender
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class TicketIssued:
    """PENDING → COMPLETED and one ticket bound."""

    payment: Payment
    ticket: Ticket


@dataclass(frozen=True, slots=True)
class InventoryExhausted:
    """
    PENDING → COMPLETED but the zone had no free ticket.

    Note: The payment stays COMPLETED and is flagged for reconciliation.
    This is the one outcome that needs an operator.
    """

    payment: Payment


@dataclass(frozen=True, slots=True)
class Duplicate:
    """Same notification seen before: the prior resolution, nothing re-run."""

    payment: Payment
    tickets: list[Ticket] = field(default_factory=list[Ticket])


@dataclass(frozen=True, slots=True)
class AlreadySettled:
    """Payment was already terminal when the signal arrived."""

    payment: Payment
    tickets: list[Ticket] = field(default_factory=list[Ticket])


@dataclass(frozen=True, slots=True)
class PaymentDeclined:
    """PENDING → FAILED."""

    payment: Payment


@dataclass(frozen=True, slots=True)
class Acknowledged:
    """Intermediate event (e.g. payment.initiated): recorded, no state change."""

    payment: Payment
    event: str


type Outcome = (
    TicketIssued
    | InventoryExhausted
    | Duplicate
    | AlreadySettled
    | PaymentDeclined
    | Acknowledged
)


# ═══════════════════════════════════════════════════════════════════════════════
# Read model
# ═══════════════════════════════════════════════════════════════════════════════


class Fulfilment(Enum):
    """What the customer is told: a ticket, still processing, or failed."""

    DELIVERED = "delivered"
    PROCESSING = "processing"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class PaymentView:
    """A payment as a polling customer sees it."""

    payment: Payment
    tickets: list[Ticket] = field(default_factory=list[Ticket])
    zone: Zone | None = None
    pricing: Pricing | None = None

    @property
    def fulfilment(self) -> Fulfilment:
        if self.tickets:
            return Fulfilment.DELIVERED
        if self.payment.status == PaymentStatus.FAILED:
            return Fulfilment.FAILED
        # PENDING, or COMPLETED and waiting for a ticket
        return Fulfilment.PROCESSING


# ═══════════════════════════════════════════════════════════════════════════════
# Collaborators: injected storage handles
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Collaborators:
    gateway_name: str
    ledger: Ledger
    payments: PaymentRepository
    pool: TicketPool
    assigner: TicketAssigner
    settle_timeout: float = 2.0  # seconds a race loser waits for the winner's ticket


__all__ = (
    "TicketIssued",
    "InventoryExhausted",
    "Duplicate",
    "AlreadySettled",
    "PaymentDeclined",
    "Acknowledged",
    "Outcome",
    "Fulfilment",
    "PaymentView",
    "Collaborators",
)
