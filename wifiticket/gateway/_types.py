"""
Gateway types — what the payment aggregator accepts and reports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

from kungfu import Result


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Customer:
    phone: str
    email: str = "client@example.com"
    first_name: str = "Client"
    last_name: str = "WiFi"


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    amount: int
    currency: str
    description: str
    return_url: str
    customer: Customer
    metadata: dict[str, str] = field(default_factory=dict[str, str])
    methods: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Checkout:
    gateway_ref: str
    checkout_url: str


@dataclass(frozen=True, slots=True)
class Verification:
    gateway_ref: str
    status: str
    amount: int | None = None
    currency: str | None = None
    transaction_id: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Completion Signal: parsed webhook or synthesized from a verification
# ═══════════════════════════════════════════════════════════════════════════════


class EventKind(Enum):
    SUCCESS = auto()
    FAILURE = auto()
    OTHER = auto()  # payment.initiated and anything unknown


SUCCESS_EVENT = "payment.success"
FAILURE_EVENTS = frozenset({"payment.failed", "payment.cancelled"})


def classify(event: str) -> EventKind:
    if event == SUCCESS_EVENT:
        return EventKind.SUCCESS
    if event in FAILURE_EVENTS:
        return EventKind.FAILURE
    return EventKind.OTHER


@dataclass(frozen=True, slots=True)
class CompletionSignal:
    event: str
    gateway_ref: str
    status: str | None = None
    amount: int | None = None
    currency: str | None = None
    transaction_id: str | None = None

    @property
    def kind(self) -> EventKind:
        return classify(self.event)

    @property
    def confirms_success(self) -> bool:
        return self.kind == EventKind.SUCCESS and self.status == "success"


def signal_from_verification(v: Verification) -> CompletionSignal | None:
    """
    Turn a pulled status into the signal a webhook would have carried.

    Returns None while the gateway still reports a non-final status.
    """
    match v.status:
        case "success":
            event = SUCCESS_EVENT
        case "failed" | "cancelled":
            event = f"payment.{v.status}"
        case _:
            return None
    return CompletionSignal(
        event=event,
        gateway_ref=v.gateway_ref,
        status=v.status,
        amount=v.amount,
        currency=v.currency,
        transaction_id=v.transaction_id,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class GatewayErrorKind(Enum):
    TRANSIENT = auto()  # Timeout, network error, 5xx: retry later
    REJECTED = auto()  # 4xx: request refused
    MALFORMED = auto()  # Response did not have the expected shape


@dataclass(frozen=True, slots=True)
class GatewayError:
    kind: GatewayErrorKind
    message: str
    status_code: int | None = None
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentGateway(Protocol):
    name: str

    async def create_checkout(
        self, request: CheckoutRequest
    ) -> Result[Checkout, GatewayError]: ...

    async def verify_payment(
        self, gateway_ref: str
    ) -> Result[Verification, GatewayError]: ...


__all__ = (
    "Customer",
    "CheckoutRequest",
    "Checkout",
    "Verification",
    "EventKind",
    "SUCCESS_EVENT",
    "FAILURE_EVENTS",
    "classify",
    "CompletionSignal",
    "signal_from_verification",
    "GatewayErrorKind",
    "GatewayError",
    "PaymentGateway",
)
